from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from honeypos.constants import ORDER_COMPLETED
from honeypos.errors import BusinessRuleError, NotFoundError
from honeypos.models import DailySettlement, InventoryCount, Order, OrderItem, Product, Shift
from honeypos.services import incentive as incentive_service
from honeypos.utils import day_bounds, money, to_decimal, today, utcnow

logger = logging.getLogger(__name__)


@dataclass
class IncentiveInput:
    target: Optional[int] = None
    items_sold: Optional[int] = None
    achieved: Optional[bool] = None


def items_sold(db: Session, order_filter) -> int:
    total = (
        db.query(func.coalesce(func.sum(OrderItem.quantity), 0))
        .join(Order, Order.id == OrderItem.order_id)
        .filter(Order.status == ORDER_COMPLETED)
        .filter(order_filter)
        .scalar()
    )
    return int(total or 0)


def incentive_fields(db: Session, given: IncentiveInput, sold_fallback: int) -> dict:
    setting = incentive_service.get_incentive_settings(db)
    target = given.target
    if target is None and setting.is_enabled:
        target = setting.daily_target
    if target is None:
        return {
            "incentive_target": None,
            "incentive_items_sold": given.items_sold,
            "incentive_achieved": given.achieved,
        }
    sold = given.items_sold if given.items_sold is not None else sold_fallback
    achieved = given.achieved if given.achieved is not None else sold >= target
    return {
        "incentive_target": target,
        "incentive_items_sold": sold,
        "incentive_achieved": achieved,
    }


def create_settlement(
    db: Session,
    business_date: date,
    device_id: Optional[str],
    total_orders: int,
    total_revenue: Decimal,
    total_discount: Decimal,
    inventory_counts: Iterable[tuple[int, int]],
    incentive: dict,
) -> DailySettlement:
    """Adds a settlement and its inventory counts. Does not commit."""
    settlement = DailySettlement(
        business_date=business_date,
        device_id=device_id,
        total_orders=total_orders,
        total_revenue=money(total_revenue),
        total_discount=money(total_discount),
        net_revenue=money(to_decimal(total_revenue) - to_decimal(total_discount)),
        submitted_at=utcnow(),
        **incentive,
    )
    db.add(settlement)
    db.flush()
    for product_id, quantity in inventory_counts:
        if quantity < 0:
            raise BusinessRuleError("inventory count must not be negative")
        if db.get(Product, product_id) is None:
            logger.warning("Settlement %s skips unknown product %s", settlement.id, product_id)
            continue
        db.add(InventoryCount(settlement_id=settlement.id, product_id=product_id, quantity=quantity))
    return settlement


def submit_daily_settlement(
    db: Session,
    device_id: Optional[str],
    inventory_counts: Iterable[tuple[int, int]],
    incentive: Optional[IncentiveInput] = None,
) -> DailySettlement:
    business_date = today()
    start, end = day_bounds(business_date)
    in_day = (Order.timestamp >= start) & (Order.timestamp < end)
    count, revenue, discount = (
        db.query(
            func.count(Order.id),
            func.coalesce(func.sum(Order.subtotal), 0),
            func.coalesce(func.sum(Order.discount_amount), 0),
        )
        .filter(Order.status == ORDER_COMPLETED)
        .filter(in_day)
        .one()
    )
    fields = incentive_fields(db, incentive or IncentiveInput(), items_sold(db, in_day))
    settlement = create_settlement(
        db,
        business_date,
        device_id,
        int(count or 0),
        to_decimal(revenue),
        to_decimal(discount),
        inventory_counts,
        fields,
    )
    db.commit()
    db.refresh(settlement)
    logger.info(
        "Daily settlement %s submitted: %s orders, net %s", settlement.id, settlement.total_orders, settlement.net_revenue
    )
    return settlement


def inventory_counts(db: Session, settlement_id: int) -> list[InventoryCount]:
    return (
        db.query(InventoryCount)
        .filter(InventoryCount.settlement_id == settlement_id)
        .order_by(InventoryCount.product_id)
        .all()
    )


def today_settlement(db: Session) -> Optional[DailySettlement]:
    return (
        db.query(DailySettlement)
        .filter(DailySettlement.business_date == today())
        .order_by(DailySettlement.submitted_at.desc(), DailySettlement.id.desc())
        .first()
    )


def settlements_query(db: Session) -> Query:
    return db.query(DailySettlement).order_by(
        DailySettlement.business_date.desc(), DailySettlement.id.desc()
    )


def get_settlement(db: Session, settlement_id: int) -> DailySettlement:
    settlement = db.get(DailySettlement, settlement_id)
    if settlement is None:
        raise NotFoundError("settlement not found")
    return settlement


def settlement_detail(db: Session, settlement_id: int) -> dict:
    settlement = get_settlement(db, settlement_id)
    shift = db.query(Shift).filter(Shift.settlement_id == settlement.id).first()
    if shift is not None:
        order_filter = Order.shift_id == shift.id
    else:
        start, end = day_bounds(settlement.business_date)
        order_filter = (Order.timestamp >= start) & (Order.timestamp < end)

    sold_rows = (
        db.query(OrderItem.product_id, func.sum(OrderItem.quantity))
        .join(Order, Order.id == OrderItem.order_id)
        .filter(Order.status == ORDER_COMPLETED, OrderItem.product_id.isnot(None))
        .filter(order_filter)
        .group_by(OrderItem.product_id)
        .all()
    )
    sold = {product_id: int(quantity or 0) for product_id, quantity in sold_rows}
    counted = {count.product_id: count.quantity for count in inventory_counts(db, settlement.id)}

    product_ids = sorted(set(sold) | set(counted))
    names = {
        product.id: product.name
        for product in db.query(Product).filter(Product.id.in_(product_ids)).all()
    } if product_ids else {}
    lines = [
        {
            "product_id": product_id,
            "product_name": names.get(product_id, ""),
            "counted": counted.get(product_id),
            "sold": sold.get(product_id, 0),
        }
        for product_id in product_ids
    ]
    return {"settlement": settlement, "shift": shift, "lines": lines}
