"""Order pricing and discount accounting.

Line-level reductions (gift lines, manual price changes) are already inside the
line subtotals, so they are reported as ``item_discount_amount`` but never added
to the order-level ``discount_amount``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Sequence

from honeypos.constants import (
    DISCOUNT_AMOUNT,
    DISCOUNT_GIFT,
    DISCOUNT_PERCENTAGE,
    DISCOUNT_TYPE_ALIASES,
)
from honeypos.errors import BusinessRuleError
from honeypos.schemas import OrderItemDraft
from honeypos.utils import ZERO, money, round_whole, to_decimal


@dataclass
class PricedLine:
    unit_price: Decimal
    charged_price: Decimal
    list_price: Decimal
    subtotal: Decimal
    item_discount: Decimal


@dataclass
class PricedOrder:
    lines: list[PricedLine]
    subtotal: Decimal
    discount_type: Optional[str]
    discount_value: Optional[Decimal]
    discount_amount: Decimal
    item_discount_amount: Decimal
    total: Decimal
    warnings: list[str] = field(default_factory=list)


def normalize_discount_type(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    normalized = DISCOUNT_TYPE_ALIASES.get(value.strip().lower())
    if normalized is None:
        raise BusinessRuleError(f"unknown discount type: {value}")
    return normalized


def price_line(item: OrderItemDraft) -> PricedLine:
    addon_total = sum((to_decimal(addon.price) for addon in item.addons), ZERO)
    price = to_decimal(item.price)
    list_base = to_decimal(item.original_price) if item.original_price is not None else price
    charged = ZERO if item.is_gift else price
    unit = charged + addon_total
    list_unit = list_base + addon_total
    item_discount = max(ZERO, list_unit - unit) * item.quantity
    return PricedLine(
        unit_price=money(unit),
        charged_price=money(charged),
        list_price=money(list_base),
        subtotal=money(unit * item.quantity),
        item_discount=money(item_discount),
    )


def order_discount(
    subtotal: Decimal,
    discount_type: Optional[str],
    discount_value: Optional[Decimal],
) -> Decimal:
    if discount_type is None:
        return ZERO
    if discount_type == DISCOUNT_GIFT:
        return subtotal
    value = to_decimal(discount_value)
    if discount_type == DISCOUNT_PERCENTAGE:
        if value < 0 or value > 100:
            raise BusinessRuleError("percentage discount must be between 0 and 100")
        return min(subtotal, round_whole(subtotal * value / 100))
    if value < 0:
        raise BusinessRuleError("discount amount must not be negative")
    return min(value, subtotal)


def price_order(
    items: Sequence[OrderItemDraft],
    discount_type: Optional[str] = None,
    discount_value: Optional[float] = None,
    discount_amount: Optional[float] = None,
    client_subtotal: Optional[float] = None,
    client_total: Optional[float] = None,
) -> PricedOrder:
    lines = [price_line(item) for item in items]
    subtotal = money(sum((line.subtotal for line in lines), ZERO))
    item_discount_amount = money(sum((line.item_discount for line in lines), ZERO))

    normalized_type = normalize_discount_type(discount_type)
    value = to_decimal(discount_value) if discount_value is not None else None
    if normalized_type is None and discount_amount is not None and discount_amount > 0:
        normalized_type = DISCOUNT_AMOUNT
        value = to_decimal(discount_amount)
    elif normalized_type == DISCOUNT_AMOUNT and value is None and discount_amount is not None:
        value = to_decimal(discount_amount)

    amount = money(order_discount(subtotal, normalized_type, value))
    total = money(max(ZERO, subtotal - amount))

    warnings: list[str] = []
    if discount_amount is not None and money(discount_amount) != amount:
        warnings.append("discount_amount_recomputed")
    if client_subtotal is not None and money(client_subtotal) != subtotal:
        warnings.append("subtotal_recomputed")
    if client_total is not None and money(client_total) != total:
        warnings.append("total_recomputed")

    return PricedOrder(
        lines=lines,
        subtotal=subtotal,
        discount_type=normalized_type,
        discount_value=money(value) if value is not None else None,
        discount_amount=amount,
        item_discount_amount=item_discount_amount,
        total=total,
        warnings=warnings,
    )
