from decimal import Decimal

import pytest

from honeypos.errors import BusinessRuleError
from honeypos.schemas import AddonDraft, OrderItemDraft
from honeypos.services.pricing import normalize_discount_type, price_order


def _item(price=70, quantity=1, **extra):
    return OrderItemDraft(product_id=1, product_name="抹茶紅豆瑪德蓮", price=price, quantity=quantity, **extra)


def test_percentage_discount_includes_addons() -> None:
    item = _item(quantity=2, addons=[AddonDraft(product_id=9, product_name="珍珠", price=10)])
    priced = price_order([item], discount_type="percentage", discount_value=10)

    assert priced.lines[0].unit_price == Decimal("80")
    assert priced.subtotal == Decimal("160")
    assert priced.discount_amount == Decimal("16")
    assert priced.total == Decimal("144")
    assert priced.warnings == []


def test_percentage_discount_rounds_half_up_to_whole_dollars() -> None:
    priced = price_order([_item(price=485)], discount_type="percentage", discount_value=10)
    assert priced.discount_amount == Decimal("49")
    assert priced.total == Decimal("436")


def test_amount_discount_is_capped_at_subtotal() -> None:
    priced = price_order([_item(price=80)], discount_type="fixed", discount_value=500)
    assert priced.discount_type == "amount"
    assert priced.discount_amount == Decimal("80")
    assert priced.total == Decimal("0")


def test_gift_discount_waives_whole_order() -> None:
    priced = price_order([_item(quantity=3)], discount_type="gift")
    assert priced.discount_amount == Decimal("210")
    assert priced.total == Decimal("0")


def test_legacy_discount_amount_without_type_is_treated_as_amount() -> None:
    priced = price_order([_item(quantity=2)], discount_amount=30)
    assert priced.discount_type == "amount"
    assert priced.discount_value == Decimal("30")
    assert priced.discount_amount == Decimal("30")
    assert priced.total == Decimal("110")
    assert priced.warnings == []


def test_gift_line_is_item_discount_not_order_discount() -> None:
    gift = _item(is_gift=True, item_discount_label="贈送")
    paid = _item(price=80)
    priced = price_order([gift, paid])

    assert priced.lines[0].subtotal == Decimal("0")
    assert priced.item_discount_amount == Decimal("70")
    assert priced.discount_amount == Decimal("0")
    assert priced.subtotal == Decimal("80")
    assert priced.total == Decimal("80")


def test_manual_price_change_is_reported_as_item_discount() -> None:
    priced = price_order([_item(price=60, original_price=70, quantity=2)])
    assert priced.item_discount_amount == Decimal("20")
    assert priced.subtotal == Decimal("120")


def test_client_amounts_are_recomputed_with_warnings() -> None:
    priced = price_order(
        [_item(quantity=2)],
        discount_type="percentage",
        discount_value=10,
        discount_amount=10,
        client_subtotal=150,
        client_total=130,
    )
    assert priced.total == Decimal("126")
    assert priced.warnings == ["discount_amount_recomputed", "subtotal_recomputed", "total_recomputed"]


def test_percentage_out_of_range_is_rejected() -> None:
    with pytest.raises(BusinessRuleError):
        price_order([_item()], discount_type="percentage", discount_value=120)


def test_unknown_discount_type_is_rejected() -> None:
    with pytest.raises(BusinessRuleError):
        normalize_discount_type("coupon")
    assert normalize_discount_type("  ") is None
    assert normalize_discount_type("FREE") == "gift"
