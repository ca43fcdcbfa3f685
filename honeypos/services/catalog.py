from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from honeypos.constants import (
    ADDON_CATEGORY,
    DISCOUNT_AMOUNT,
    DISCOUNT_PERCENTAGE,
    STATUS_ACTIVE,
    STATUS_INACTIVE,
)
from honeypos.errors import BusinessRuleError, ConflictError, NotFoundError
from honeypos.models import Discount, OrderItem, Product, ProductRecipe
from honeypos.services.pricing import normalize_discount_type
from honeypos.utils import to_decimal, utcnow

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = ("name", "price", "category", "card_color", "is_on_promotion", "promotion_price", "sort_order")


def _not_addon():
    return (Product.category.is_(None)) | (Product.category != ADDON_CATEGORY)


def list_products(db: Session, search: Optional[str] = None, category: Optional[str] = None) -> list[Product]:
    query = db.query(Product)
    if search:
        query = query.filter(Product.name.contains(search))
    if category:
        query = query.filter(Product.category == category)
    else:
        query = query.filter(_not_addon())
    return query.order_by(Product.sort_order, Product.id).all()


def list_active_products(db: Session) -> list[Product]:
    return (
        db.query(Product)
        .filter(Product.status == STATUS_ACTIVE)
        .filter(_not_addon())
        .order_by(Product.sort_order, Product.id)
        .all()
    )


def list_addons(db: Session) -> list[Product]:
    return (
        db.query(Product)
        .filter(Product.status == STATUS_ACTIVE, Product.category == ADDON_CATEGORY)
        .order_by(Product.sort_order, Product.id)
        .all()
    )


def get_product(db: Session, product_id: int) -> Product:
    product = db.get(Product, product_id)
    if product is None:
        raise NotFoundError("product not found")
    return product


def _check_promotion(product: Product) -> None:
    if to_decimal(product.price) < 0:
        raise BusinessRuleError("price must not be negative")
    if product.is_on_promotion and product.promotion_price is not None:
        promo = to_decimal(product.promotion_price)
        if promo < 0 or promo >= to_decimal(product.price):
            raise BusinessRuleError("promotion price must be at least 0 and below the regular price")


def create_product(db: Session, fields: dict[str, Any]) -> Product:
    next_sort = db.query(func.max(Product.sort_order)).scalar() or 0
    product = Product(
        name=fields["name"],
        price=to_decimal(fields["price"]),
        status=fields.get("status") or STATUS_ACTIVE,
        category=fields.get("category"),
        card_color=fields.get("card_color"),
        is_on_promotion=bool(fields.get("is_on_promotion")),
        promotion_price=(
            to_decimal(fields["promotion_price"]) if fields.get("promotion_price") is not None else None
        ),
        sort_order=fields.get("sort_order") or next_sort + 1,
        created_at=utcnow(),
    )
    _check_promotion(product)
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info("Product created: %s (%s)", product.id, product.name)
    return product


def update_product(db: Session, product_id: int, changes: dict[str, Any]) -> Product:
    product = get_product(db, product_id)
    for key in PRODUCT_FIELDS:
        if key not in changes:
            continue
        value = changes[key]
        if key in ("price", "promotion_price") and value is not None:
            value = to_decimal(value)
        if value is None and key in ("name", "price", "is_on_promotion", "sort_order"):
            continue
        setattr(product, key, value)
    if not product.is_on_promotion:
        product.promotion_price = None
    _check_promotion(product)
    product.updated_at = utcnow()
    db.commit()
    db.refresh(product)
    return product


def delete_product(db: Session, product_id: int) -> None:
    product = get_product(db, product_id)
    sold = db.query(OrderItem.id).filter(OrderItem.product_id == product_id).first()
    if sold is not None:
        raise ConflictError("product has order history; deactivate it instead")
    db.query(ProductRecipe).filter(ProductRecipe.product_id == product_id).delete()
    db.delete(product)
    db.commit()
    logger.info("Product deleted: %s", product_id)


def toggle_product_status(db: Session, product_id: int) -> Product:
    product = get_product(db, product_id)
    product.status = STATUS_INACTIVE if product.status == STATUS_ACTIVE else STATUS_ACTIVE
    product.updated_at = utcnow()
    db.commit()
    db.refresh(product)
    return product


def reorder_products(db: Session, product_ids: list[int]) -> int:
    products = {p.id: p for p in db.query(Product).filter(Product.id.in_(product_ids)).all()}
    position = 0
    for product_id in product_ids:
        product = products.get(product_id)
        if product is None:
            continue
        position += 1
        product.sort_order = position
        product.updated_at = utcnow()
    db.commit()
    return position


def _check_discount(discount_type: str, value: Any, min_purchase: Any) -> None:
    amount = to_decimal(value)
    if discount_type == DISCOUNT_PERCENTAGE and not (0 <= amount <= 100):
        raise BusinessRuleError("percentage discount must be between 0 and 100")
    if discount_type == DISCOUNT_AMOUNT and amount < 0:
        raise BusinessRuleError("discount amount must not be negative")
    if min_purchase is not None and to_decimal(min_purchase) < 0:
        raise BusinessRuleError("minimum purchase must not be negative")


def list_discounts(db: Session) -> list[Discount]:
    return db.query(Discount).order_by(Discount.id).all()


def list_active_discounts(db: Session) -> list[Discount]:
    return db.query(Discount).filter(Discount.is_active.is_(True)).order_by(Discount.id).all()


def get_discount(db: Session, discount_id: int) -> Discount:
    discount = db.get(Discount, discount_id)
    if discount is None:
        raise NotFoundError("discount not found")
    return discount


def create_discount(db: Session, fields: dict[str, Any]) -> Discount:
    discount_type = normalize_discount_type(fields["type"])
    value = fields.get("value") or 0
    _check_discount(discount_type, value, fields.get("min_purchase"))
    discount = Discount(
        name=fields["name"],
        type=discount_type,
        value=to_decimal(value),
        min_purchase=to_decimal(fields["min_purchase"]) if fields.get("min_purchase") is not None else None,
        is_active=fields.get("is_active", True),
        description=fields.get("description"),
        created_at=utcnow(),
    )
    db.add(discount)
    db.commit()
    db.refresh(discount)
    return discount


def update_discount(db: Session, discount_id: int, changes: dict[str, Any]) -> Discount:
    discount = get_discount(db, discount_id)
    if changes.get("type") is not None:
        discount.type = normalize_discount_type(changes["type"])
    for key in ("name", "description", "is_active"):
        if changes.get(key) is not None:
            setattr(discount, key, changes[key])
    if changes.get("value") is not None:
        discount.value = to_decimal(changes["value"])
    if "min_purchase" in changes:
        discount.min_purchase = (
            to_decimal(changes["min_purchase"]) if changes["min_purchase"] is not None else None
        )
    _check_discount(discount.type, discount.value, discount.min_purchase)
    db.commit()
    db.refresh(discount)
    return discount


def delete_discount(db: Session, discount_id: int) -> None:
    discount = get_discount(db, discount_id)
    db.delete(discount)
    db.commit()


def toggle_discount(db: Session, discount_id: int) -> Discount:
    discount = get_discount(db, discount_id)
    discount.is_active = not discount.is_active
    db.commit()
    db.refresh(discount)
    return discount
