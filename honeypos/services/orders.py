from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional, Sequence, Union

from pydantic import ValidationError
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from honeypos.config import settings
from honeypos.constants import (
    ORDER_CANCELLED,
    ORDER_COMPLETED,
    ORDER_NUMBER_PADDING,
    ORDER_NUMBER_PREFIX,
    PAYMENT_ALIASES,
    PAYMENT_CASH,
    SHIFT_OPEN,
)
from honeypos.errors import BusinessRuleError, ConflictError, NotFoundError, ServiceError
from honeypos.models import MaterialAlert, Order, OrderItem, OrderItemAddon, Shift
from honeypos.schemas import OrderDraft
from honeypos.services import materials, shifts
from honeypos.services.pricing import PricedOrder, price_order
from honeypos.utils import day_bounds, to_decimal, to_utc_naive, today, utcnow

logger = logging.getLogger(__name__)

MAX_SEQUENCE_ATTEMPTS = 5


@dataclass
class OrderResult:
    order: Order
    warnings: list[str] = field(default_factory=list)


def normalize_payment_method(value: Optional[str]) -> str:
    if not value:
        return PAYMENT_CASH
    return PAYMENT_ALIASES.get(value.strip().lower(), PAYMENT_CASH)


def normalize_status(value: Optional[str]) -> str:
    status = (value or ORDER_COMPLETED).strip().lower()
    if status not in (ORDER_COMPLETED, ORDER_CANCELLED):
        raise BusinessRuleError(f"unknown order status: {value}")
    return status


def format_order_number(sequence: int) -> str:
    return f"{ORDER_NUMBER_PREFIX}{sequence:0{ORDER_NUMBER_PADDING}d}"


def next_daily_sequence(db: Session, business_date: date) -> int:
    current = (
        db.query(func.max(Order.daily_sequence))
        .filter(Order.business_date == business_date)
        .scalar()
    )
    if current is None:
        current = settings.initial_order_sequence
    return int(current) + 1


def _resolve_shift(db: Session, draft: OrderDraft, warnings: list[str]) -> Optional[Shift]:
    if draft.shift_id is not None:
        shift = db.get(Shift, draft.shift_id)
        if shift is None:
            warnings.append("shift_not_found")
            return None
        if shift.status != SHIFT_OPEN:
            # late orders stay out of a settled shift
            warnings.append("shift_closed")
            return None
        return shift
    if draft.device_id is None:
        return None
    return shifts.current_shift(db, draft.device_id)


def _add_items(db: Session, order: Order, draft: OrderDraft, priced: PricedOrder) -> list[OrderItem]:
    items: list[OrderItem] = []
    for item_draft, line in zip(draft.items, priced.lines):
        item = OrderItem(
            order_id=order.id,
            product_id=item_draft.product_id,
            product_name=item_draft.product_name,
            price=line.charged_price,
            quantity=item_draft.quantity,
            subtotal=line.subtotal,
            is_gift=item_draft.is_gift,
            original_price=line.list_price if line.item_discount > 0 else None,
            item_discount_label=item_draft.item_discount_label,
        )
        db.add(item)
        db.flush()
        for addon in item_draft.addons:
            db.add(
                OrderItemAddon(
                    order_item_id=item.id,
                    product_id=addon.product_id,
                    product_name=addon.product_name,
                    price=to_decimal(addon.price),
                )
            )
        items.append(item)
    return items


def create_order(db: Session, draft: OrderDraft) -> OrderResult:
    """Prices and stores one order, updating the shift totals and material stock with it."""
    priced = price_order(
        draft.items,
        discount_type=draft.discount_type,
        discount_value=draft.discount_value,
        discount_amount=draft.discount_amount,
        client_subtotal=draft.subtotal,
        client_total=draft.total,
    )
    for name in priced.warnings:
        logger.warning("Order from device %s: %s", draft.device_id, name)
    status = normalize_status(draft.status)
    timestamp = to_utc_naive(draft.timestamp) or utcnow()
    business_date = timestamp.date()

    alerts: list[MaterialAlert] = []
    for attempt in range(MAX_SEQUENCE_ATTEMPTS):
        warnings = list(priced.warnings)
        shift = _resolve_shift(db, draft, warnings)
        use_client_sequence = attempt == 0 and draft.daily_sequence is not None
        sequence = draft.daily_sequence if use_client_sequence else next_daily_sequence(db, business_date)
        if use_client_sequence and draft.order_number:
            order_number = draft.order_number
        else:
            order_number = format_order_number(sequence)
        if attempt > 0 and draft.daily_sequence is not None:
            warnings.append("daily_sequence_reassigned")

        order = Order(
            order_number=order_number,
            business_date=business_date,
            daily_sequence=sequence,
            device_id=draft.device_id,
            local_id=draft.local_id,
            subtotal=priced.subtotal,
            discount_type=priced.discount_type,
            discount_value=priced.discount_value,
            discount_amount=priced.discount_amount,
            item_discount_amount=priced.item_discount_amount,
            total=priced.total,
            status=status,
            payment_method=normalize_payment_method(draft.payment_method),
            customer_tag=draft.customer_tag or None,
            timestamp=timestamp,
            cancelled_at=utcnow() if status == ORDER_CANCELLED else None,
            shift_id=shift.id if shift is not None else None,
        )
        db.add(order)
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            logger.warning(
                "Order sequence %s on %s already taken, retrying (attempt %d)",
                sequence,
                business_date,
                attempt + 1,
            )
            continue

        items = _add_items(db, order, draft, priced)
        if status == ORDER_COMPLETED:
            if shift is not None:
                applied = shifts.apply_order_to_shift(db, shift.id, order.subtotal, order.discount_amount)
                if not applied:
                    order.shift_id = None
                    warnings.append("shift_closed")
            alerts = materials.consume_for_order(db, order, items)
        db.commit()
        break
    else:
        raise ConflictError("could not allocate an order number, please retry")

    db.refresh(order)
    logger.info("Order %s created: total %s, shift %s", order.order_number, order.total, order.shift_id)
    materials.notify_alerts(db, alerts)
    return OrderResult(order=order, warnings=warnings)


def _replay_keys(draft: OrderDraft) -> set[tuple]:
    keys: set[tuple] = set()
    if not draft.device_id:
        return keys
    if draft.local_id:
        keys.add(("local", draft.device_id, draft.local_id))
    timestamp = to_utc_naive(draft.timestamp)
    if timestamp is not None:
        keys.add(("timestamp", draft.device_id, timestamp))
    return keys


def find_replayed(db: Session, draft: OrderDraft) -> Optional[Order]:
    if not draft.device_id:
        return None
    conditions = []
    if draft.local_id:
        conditions.append(Order.local_id == draft.local_id)
    timestamp = to_utc_naive(draft.timestamp)
    if timestamp is not None:
        conditions.append(Order.timestamp == timestamp)
    if not conditions:
        return None
    return (
        db.query(Order)
        .filter(Order.device_id == draft.device_id, or_(*conditions))
        .order_by(Order.id)
        .first()
    )


def _draft_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {first['msg']}" if location else first["msg"]


def replay_orders(db: Session, drafts: Sequence[Union[OrderDraft, dict[str, Any]]]) -> dict:
    """Stores a batch of offline orders, skipping ones the server has already seen.

    Raw dict drafts are validated one at a time so a malformed order is reported
    as failed instead of rejecting the whole batch.
    """
    results = []
    seen: set[tuple] = set()
    synced = duplicates = failed = 0
    for index, raw in enumerate(drafts):
        try:
            draft = raw if isinstance(raw, OrderDraft) else OrderDraft.model_validate(raw)
        except ValidationError as exc:
            failed += 1
            message = _draft_error(exc)
            logger.warning("Offline order %d is malformed: %s", index, message)
            results.append({"index": index, "status": "failed", "error": message})
            continue
        keys = _replay_keys(draft)
        if keys & seen:
            duplicates += 1
            results.append({"index": index, "status": "duplicate", "order_id": None, "order_number": None})
            continue
        existing = find_replayed(db, draft)
        if existing is not None:
            duplicates += 1
            seen |= keys
            results.append(
                {
                    "index": index,
                    "status": "duplicate",
                    "order_id": existing.id,
                    "order_number": existing.order_number,
                }
            )
            continue
        try:
            result = create_order(db, draft)
        except ServiceError as exc:
            db.rollback()
            failed += 1
            logger.warning("Offline order %d from device %s rejected: %s", index, draft.device_id, exc.message)
            results.append({"index": index, "status": "failed", "error": exc.message})
            continue
        seen |= keys
        synced += 1
        results.append(
            {
                "index": index,
                "status": "synced",
                "order_id": result.order.id,
                "order_number": result.order.order_number,
                "warnings": result.warnings,
            }
        )
    logger.info("Offline sync: %d synced, %d duplicates, %d failed", synced, duplicates, failed)
    return {"synced": synced, "duplicates": duplicates, "failed": failed, "results": results}


def get_order(db: Session, order_id: int) -> Order:
    order = db.get(Order, order_id)
    if order is None:
        raise NotFoundError("order not found")
    return order


def cancel_order(db: Session, order_id: int) -> OrderResult:
    order = db.query(Order).filter(Order.id == order_id).with_for_update().first()
    if order is None:
        raise NotFoundError("order not found")
    if order.status == ORDER_CANCELLED:
        raise ConflictError("order is already cancelled")

    warnings: list[str] = []
    order.status = ORDER_CANCELLED
    order.cancelled_at = utcnow()
    if order.shift_id is not None:
        reverted = shifts.revert_order_from_shift(db, order.shift_id, order.subtotal, order.discount_amount)
        if not reverted:
            warnings.append("shift_already_settled")
            logger.warning("Order %s cancelled after its shift %s was settled", order.order_number, order.shift_id)
    materials.restore_for_order(db, order)
    db.commit()
    db.refresh(order)
    logger.info("Order %s cancelled", order.order_number)
    return OrderResult(order=order, warnings=warnings)


def orders_query(
    db: Session,
    status: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Query:
    query = db.query(Order)
    if status:
        query = query.filter(Order.status == normalize_status(status))
    if start is not None:
        query = query.filter(Order.timestamp >= to_utc_naive(start))
    if end is not None:
        query = query.filter(Order.timestamp < to_utc_naive(end))
    return query.order_by(Order.timestamp.desc(), Order.id.desc())


def items_for_orders(db: Session, order_ids: list[int]) -> dict[int, list[tuple[OrderItem, list[OrderItemAddon]]]]:
    if not order_ids:
        return {}
    items = (
        db.query(OrderItem)
        .filter(OrderItem.order_id.in_(order_ids))
        .order_by(OrderItem.id)
        .all()
    )
    addons: dict[int, list[OrderItemAddon]] = {}
    if items:
        for addon in (
            db.query(OrderItemAddon)
            .filter(OrderItemAddon.order_item_id.in_([item.id for item in items]))
            .order_by(OrderItemAddon.id)
            .all()
        ):
            addons.setdefault(addon.order_item_id, []).append(addon)
    grouped: dict[int, list[tuple[OrderItem, list[OrderItemAddon]]]] = {}
    for item in items:
        grouped.setdefault(item.order_id, []).append((item, addons.get(item.id, [])))
    return grouped


def order_stats(db: Session) -> dict:
    start, end = day_bounds(today())
    rows = (
        db.query(Order.status, func.count(Order.id), func.coalesce(func.sum(Order.total), 0))
        .filter(Order.timestamp >= start, Order.timestamp < end)
        .group_by(Order.status)
        .all()
    )
    counts = {status: (int(count), to_decimal(total)) for status, count, total in rows}
    completed, revenue = counts.get(ORDER_COMPLETED, (0, to_decimal(0)))
    cancelled, _ = counts.get(ORDER_CANCELLED, (0, to_decimal(0)))
    return {
        "total_orders": completed + cancelled,
        "completed_orders": completed,
        "cancelled_orders": cancelled,
        "total_revenue": float(revenue),
    }


def sync_status(db: Session, device_id: Optional[str]) -> dict:
    start, end = day_bounds(today())
    query = db.query(func.count(Order.id), func.max(Order.timestamp)).filter(
        Order.timestamp >= start, Order.timestamp < end
    )
    if device_id:
        query = query.filter(Order.device_id == device_id)
    count, last_order_at = query.one()
    open_shift = shifts.current_shift(db, device_id) if device_id else None
    return {
        "server_time": utcnow().isoformat(),
        "device_id": device_id,
        "today_order_count": int(count or 0),
        "last_order_at": last_order_at.isoformat() if last_order_at else None,
        "open_shift_id": open_shift.id if open_shift is not None and open_shift.status == SHIFT_OPEN else None,
    }
