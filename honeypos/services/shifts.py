from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from honeypos.constants import ORDER_COMPLETED, SHIFT_CLOSED, SHIFT_OPEN, TEMPLATE_DAILY_REPORT
from honeypos.errors import ConflictError, NotFoundError
from honeypos.models import DailySettlement, Order, Shift
from honeypos.services import line_oa
from honeypos.services.settlements import IncentiveInput, incentive_fields, create_settlement, items_sold
from honeypos.utils import ZERO, money, to_decimal, today, utcnow

logger = logging.getLogger(__name__)

TOTAL_FIELDS = ("total_orders", "total_revenue", "total_discount", "net_revenue")


def _device_filter(device_id: Optional[str]):
    if device_id is None:
        return Shift.device_id.is_(None)
    return Shift.device_id == device_id


def current_shift(db: Session, device_id: Optional[str]) -> Optional[Shift]:
    return (
        db.query(Shift)
        .filter(_device_filter(device_id), Shift.status == SHIFT_OPEN)
        .order_by(Shift.opened_at.desc(), Shift.id.desc())
        .first()
    )


def get_shift(db: Session, shift_id: int) -> Shift:
    shift = db.get(Shift, shift_id)
    if shift is None:
        raise NotFoundError("shift not found")
    return shift


def open_shift(db: Session, device_id: Optional[str]) -> Shift:
    if current_shift(db, device_id) is not None:
        raise ConflictError("device already has an open shift")
    shift = Shift(
        device_id=device_id,
        status=SHIFT_OPEN,
        opened_at=utcnow(),
        total_orders=0,
        total_revenue=ZERO,
        total_discount=ZERO,
        net_revenue=ZERO,
    )
    db.add(shift)
    db.commit()
    db.refresh(shift)
    logger.info("Shift %s opened for device %s", shift.id, device_id)
    return shift


def apply_order_to_shift(db: Session, shift_id: int, subtotal: Decimal, discount: Decimal) -> bool:
    """Adds one completed order to an open shift's running totals in a single UPDATE.

    Returns False when the shift is missing or closed.
    """
    result = db.execute(
        update(Shift)
        .where(Shift.id == shift_id, Shift.status == SHIFT_OPEN)
        .values(
            total_orders=Shift.total_orders + 1,
            total_revenue=Shift.total_revenue + subtotal,
            total_discount=Shift.total_discount + discount,
            net_revenue=(Shift.total_revenue + subtotal) - (Shift.total_discount + discount),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def revert_order_from_shift(db: Session, shift_id: int, subtotal: Decimal, discount: Decimal) -> bool:
    result = db.execute(
        update(Shift)
        .where(Shift.id == shift_id, Shift.status == SHIFT_OPEN)
        .values(
            total_orders=Shift.total_orders - 1,
            total_revenue=Shift.total_revenue - subtotal,
            total_discount=Shift.total_discount - discount,
            net_revenue=(Shift.total_revenue - subtotal) - (Shift.total_discount - discount),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def recomputed_totals(db: Session, shift_id: int) -> dict:
    count, revenue, discount = (
        db.query(
            func.count(Order.id),
            func.coalesce(func.sum(Order.subtotal), 0),
            func.coalesce(func.sum(Order.discount_amount), 0),
        )
        .filter(Order.shift_id == shift_id, Order.status == ORDER_COMPLETED)
        .one()
    )
    revenue = money(revenue)
    discount = money(discount)
    return {
        "total_orders": int(count or 0),
        "total_revenue": revenue,
        "total_discount": discount,
        "net_revenue": money(revenue - discount),
    }


def reconcile_shift(db: Session, shift_id: int) -> dict:
    shift = get_shift(db, shift_id)
    running = {
        "total_orders": shift.total_orders,
        "total_revenue": money(shift.total_revenue),
        "total_discount": money(shift.total_discount),
        "net_revenue": money(shift.net_revenue),
    }
    recomputed = recomputed_totals(db, shift_id)
    drift = {key: running[key] - recomputed[key] for key in TOTAL_FIELDS}
    return {
        "shift_id": shift.id,
        "running": running,
        "recomputed": recomputed,
        "drift": drift,
        "consistent": all(value == 0 for value in drift.values()),
    }


def close_shift(
    db: Session,
    shift_id: int,
    inventory_counts: Iterable[tuple[int, int]] = (),
    incentive: Optional[IncentiveInput] = None,
) -> tuple[Shift, DailySettlement]:
    shift = db.query(Shift).filter(Shift.id == shift_id).with_for_update().first()
    if shift is None:
        raise NotFoundError("shift not found")
    if shift.status != SHIFT_OPEN:
        raise ConflictError("shift is already closed")

    reconciliation = reconcile_shift(db, shift_id)
    if not reconciliation["consistent"]:
        logger.warning("Shift %s running totals drift from orders: %s", shift_id, reconciliation["drift"])

    fields = incentive_fields(db, incentive or IncentiveInput(), items_sold(db, Order.shift_id == shift_id))
    settlement = create_settlement(
        db,
        today(),
        shift.device_id,
        shift.total_orders,
        to_decimal(shift.total_revenue),
        to_decimal(shift.total_discount),
        inventory_counts,
        fields,
    )
    shift.status = SHIFT_CLOSED
    shift.closed_at = utcnow()
    shift.settlement_id = settlement.id
    db.commit()
    db.refresh(shift)
    db.refresh(settlement)
    logger.info(
        "Shift %s closed: %s orders, net %s, settlement %s",
        shift.id,
        shift.total_orders,
        shift.net_revenue,
        settlement.id,
    )
    send_daily_report(db, settlement)
    return shift, settlement


def send_daily_report(db: Session, settlement: DailySettlement) -> int:
    template = line_oa.active_template_by_type(db, TEMPLATE_DAILY_REPORT)
    if template is None:
        return 0
    text = line_oa.render_template(
        template.content,
        {
            "date": settlement.business_date.isoformat(),
            "order_count": settlement.total_orders,
            "revenue": f"{to_decimal(settlement.total_revenue):,.0f}",
            "discount": f"{to_decimal(settlement.total_discount):,.0f}",
            "net_revenue": f"{to_decimal(settlement.net_revenue):,.0f}",
        },
    )
    return line_oa.notify_admins(db, text)


def shift_orders(db: Session, shift_id: int) -> list[Order]:
    return db.query(Order).filter(Order.shift_id == shift_id).order_by(Order.timestamp, Order.id).all()
