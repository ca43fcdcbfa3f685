from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from honeypos.constants import (
    STATUS_ACTIVE,
    STATUS_INACTIVE,
    STOCK_ADJUST,
    STOCK_CHANGE_TYPES,
    STOCK_IN,
    STOCK_OUT,
    STOCK_WASTE,
)
from honeypos.errors import BusinessRuleError, ConflictError, NotFoundError
from honeypos.models import (
    Material,
    MaterialAlert,
    MaterialStockRecord,
    Order,
    OrderItem,
    ProductRecipe,
)
from honeypos.services import line_oa
from honeypos.utils import ZERO, to_decimal, utcnow

logger = logging.getLogger(__name__)


def list_materials(db: Session, search: Optional[str] = None, status: Optional[str] = None) -> list[Material]:
    query = db.query(Material)
    if search:
        query = query.filter(Material.name.contains(search))
    if status:
        query = query.filter(Material.status == status)
    return query.order_by(Material.name).all()


def get_material(db: Session, material_id: int) -> Material:
    material = db.get(Material, material_id)
    if material is None:
        raise NotFoundError("material not found")
    return material


def _locked_material(db: Session, material_id: int) -> Material:
    material = (
        db.query(Material).filter(Material.id == material_id).with_for_update().first()
    )
    if material is None:
        raise NotFoundError("material not found")
    return material


def _record(
    db: Session,
    material: Material,
    change_type: str,
    before: Decimal,
    after: Decimal,
    order_id: Optional[int] = None,
    note: Optional[str] = None,
    operator_id: Optional[int] = None,
) -> MaterialStockRecord:
    record = MaterialStockRecord(
        material_id=material.id,
        change_type=change_type,
        quantity=after - before,
        stock_before=before,
        stock_after=after,
        order_id=order_id,
        note=note,
        operator_id=operator_id,
        created_at=utcnow(),
    )
    db.add(record)
    return record


def _set_stock(
    db: Session,
    material: Material,
    new_stock: Decimal,
    change_type: str,
    order_id: Optional[int] = None,
    note: Optional[str] = None,
    operator_id: Optional[int] = None,
) -> Optional[MaterialAlert]:
    before = to_decimal(material.current_stock)
    material.current_stock = new_stock
    material.updated_at = utcnow()
    _record(db, material, change_type, before, new_stock, order_id, note, operator_id)
    return sync_alert(db, material)


def sync_alert(db: Session, material: Material) -> Optional[MaterialAlert]:
    """Opens an alert when stock falls to the threshold, resolves open ones when it recovers.

    Returns the alert only when a new one was created.
    """
    stock = to_decimal(material.current_stock)
    threshold = to_decimal(material.alert_threshold)
    open_alerts = (
        db.query(MaterialAlert)
        .filter(MaterialAlert.material_id == material.id, MaterialAlert.is_resolved.is_(False))
        .all()
    )
    if stock > threshold:
        for alert in open_alerts:
            alert.is_resolved = True
            alert.resolved_at = utcnow()
        return None
    if open_alerts:
        return None
    alert = MaterialAlert(
        material_id=material.id,
        stock_level=stock,
        alert_threshold=threshold,
        is_notified=False,
        is_resolved=False,
        created_at=utcnow(),
    )
    db.add(alert)
    db.flush()
    logger.warning(
        "Low stock: material %s (%s) at %s %s, threshold %s",
        material.id,
        material.name,
        stock,
        material.unit,
        threshold,
    )
    return alert


def notify_alerts(db: Session, alerts: Iterable[Optional[MaterialAlert]]) -> None:
    """Pushes low-stock alerts to LINE admins. Call after the alerts are committed."""
    pending = [alert for alert in alerts if alert is not None]
    if not pending:
        return
    for alert in pending:
        material = db.get(Material, alert.material_id)
        if material is None:
            continue
        text = (
            f"⚠️ 原物料庫存不足\n{material.name}: 剩餘 {to_decimal(alert.stock_level).normalize():f} "
            f"{material.unit} (警戒值 {to_decimal(alert.alert_threshold).normalize():f})"
        )
        if line_oa.notify_admins(db, text) > 0:
            alert.is_notified = True
            alert.notified_at = utcnow()
    db.commit()


def create_material(
    db: Session,
    name: str,
    unit: str,
    current_stock: float = 0,
    alert_threshold: float = 0,
    description: Optional[str] = None,
    operator_id: Optional[int] = None,
) -> Material:
    if current_stock < 0 or alert_threshold < 0:
        raise BusinessRuleError("stock and alert threshold must not be negative")
    material = Material(
        name=name,
        unit=unit,
        current_stock=ZERO,
        alert_threshold=to_decimal(alert_threshold),
        status=STATUS_ACTIVE,
        description=description,
        created_at=utcnow(),
    )
    db.add(material)
    db.flush()
    if current_stock > 0:
        alert = _set_stock(
            db, material, to_decimal(current_stock), STOCK_IN, note="初始庫存", operator_id=operator_id
        )
    else:
        alert = sync_alert(db, material)
    db.commit()
    db.refresh(material)
    logger.info("Material created: %s (%s)", material.id, material.name)
    notify_alerts(db, [alert])
    return material


def update_material(db: Session, material_id: int, changes: dict[str, Any]) -> Material:
    material = get_material(db, material_id)
    if changes.get("alert_threshold") is not None and changes["alert_threshold"] < 0:
        raise BusinessRuleError("alert threshold must not be negative")
    for key in ("name", "unit", "description"):
        if changes.get(key) is not None:
            setattr(material, key, changes[key])
    if changes.get("alert_threshold") is not None:
        material.alert_threshold = to_decimal(changes["alert_threshold"])
    material.updated_at = utcnow()
    alert = sync_alert(db, material)
    db.commit()
    db.refresh(material)
    notify_alerts(db, [alert])
    return material


def delete_material(db: Session, material_id: int) -> None:
    material = get_material(db, material_id)
    in_use = db.query(ProductRecipe).filter(ProductRecipe.material_id == material_id).count()
    if in_use:
        raise ConflictError("material is used by product recipes")
    db.query(MaterialAlert).filter(MaterialAlert.material_id == material_id).delete()
    db.query(MaterialStockRecord).filter(MaterialStockRecord.material_id == material_id).delete()
    db.delete(material)
    db.commit()
    logger.info("Material deleted: %s", material_id)


def toggle_material_status(db: Session, material_id: int) -> Material:
    material = get_material(db, material_id)
    material.status = STATUS_INACTIVE if material.status == STATUS_ACTIVE else STATUS_ACTIVE
    material.updated_at = utcnow()
    db.commit()
    db.refresh(material)
    return material


def stock_in(
    db: Session, material_id: int, quantity: float, note: Optional[str] = None, operator_id: Optional[int] = None
) -> Material:
    if quantity <= 0:
        raise BusinessRuleError("quantity must be positive")
    material = _locked_material(db, material_id)
    new_stock = to_decimal(material.current_stock) + to_decimal(quantity)
    alert = _set_stock(db, material, new_stock, STOCK_IN, note=note, operator_id=operator_id)
    db.commit()
    db.refresh(material)
    notify_alerts(db, [alert])
    return material


def adjust_stock(
    db: Session, material_id: int, new_stock: float, note: Optional[str] = None, operator_id: Optional[int] = None
) -> Material:
    if new_stock < 0:
        raise BusinessRuleError("stock must not be negative")
    material = _locked_material(db, material_id)
    alert = _set_stock(db, material, to_decimal(new_stock), STOCK_ADJUST, note=note, operator_id=operator_id)
    db.commit()
    db.refresh(material)
    notify_alerts(db, [alert])
    return material


def waste(
    db: Session, material_id: int, quantity: float, note: Optional[str] = None, operator_id: Optional[int] = None
) -> Material:
    if quantity <= 0:
        raise BusinessRuleError("quantity must be positive")
    material = _locked_material(db, material_id)
    new_stock = max(ZERO, to_decimal(material.current_stock) - to_decimal(quantity))
    alert = _set_stock(db, material, new_stock, STOCK_WASTE, note=note, operator_id=operator_id)
    db.commit()
    db.refresh(material)
    notify_alerts(db, [alert])
    return material


def consume_for_order(db: Session, order: Order, items: Iterable[OrderItem]) -> list[MaterialAlert]:
    """Deducts recipe quantities for a completed order. Does not commit."""
    needed: dict[int, Decimal] = {}
    for item in items:
        if item.product_id is None:
            continue
        recipes = db.query(ProductRecipe).filter(ProductRecipe.product_id == item.product_id).all()
        for recipe in recipes:
            needed[recipe.material_id] = needed.get(recipe.material_id, ZERO) + (
                to_decimal(recipe.quantity) * item.quantity
            )

    alerts: list[MaterialAlert] = []
    for material_id in sorted(needed):
        material = (
            db.query(Material).filter(Material.id == material_id).with_for_update().first()
        )
        if material is None:
            continue
        new_stock = max(ZERO, to_decimal(material.current_stock) - needed[material_id])
        alert = _set_stock(
            db, material, new_stock, STOCK_OUT, order_id=order.id, note=f"訂單 {order.order_number} 消耗"
        )
        if alert is not None:
            alerts.append(alert)
    return alerts


def restore_for_order(db: Session, order: Order) -> int:
    """Returns stock consumed by a cancelled order. Does not commit."""
    records = (
        db.query(MaterialStockRecord)
        .filter(MaterialStockRecord.order_id == order.id, MaterialStockRecord.change_type == STOCK_OUT)
        .all()
    )
    restored = 0
    for record in records:
        consumed = -to_decimal(record.quantity)
        if consumed <= 0:
            continue
        material = (
            db.query(Material).filter(Material.id == record.material_id).with_for_update().first()
        )
        if material is None:
            continue
        _set_stock(
            db,
            material,
            to_decimal(material.current_stock) + consumed,
            STOCK_IN,
            order_id=order.id,
            note=f"訂單 {order.order_number} 取消退回",
        )
        restored += 1
    return restored


def list_active_alerts(db: Session) -> list[tuple[MaterialAlert, Material]]:
    return (
        db.query(MaterialAlert, Material)
        .join(Material, Material.id == MaterialAlert.material_id)
        .filter(MaterialAlert.is_resolved.is_(False))
        .order_by(MaterialAlert.created_at.desc())
        .all()
    )


def resolve_alert(db: Session, alert_id: int) -> MaterialAlert:
    alert = db.get(MaterialAlert, alert_id)
    if alert is None:
        raise NotFoundError("alert not found")
    if not alert.is_resolved:
        alert.is_resolved = True
        alert.resolved_at = utcnow()
        db.commit()
        db.refresh(alert)
    return alert


def material_status(db: Session) -> dict:
    materials = db.query(Material).filter(Material.status == STATUS_ACTIVE).all()
    out_of_stock = sum(1 for m in materials if to_decimal(m.current_stock) <= 0)
    low = sum(
        1
        for m in materials
        if 0 < to_decimal(m.current_stock) <= to_decimal(m.alert_threshold)
    )
    active_alerts = (
        db.query(func.count(MaterialAlert.id)).filter(MaterialAlert.is_resolved.is_(False)).scalar()
    )
    return {
        "total_materials": len(materials),
        "normal_count": len(materials) - low - out_of_stock,
        "low_stock_count": low,
        "out_of_stock_count": out_of_stock,
        "active_alerts": int(active_alerts or 0),
    }


def low_stock_materials(db: Session) -> list[Material]:
    return (
        db.query(Material)
        .filter(
            Material.status == STATUS_ACTIVE,
            Material.current_stock <= Material.alert_threshold,
        )
        .order_by(Material.current_stock, Material.name)
        .all()
    )


def stock_records_query(
    db: Session,
    material_id: Optional[int] = None,
    change_type: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Query:
    if change_type is not None and change_type not in STOCK_CHANGE_TYPES:
        raise BusinessRuleError(f"unknown change type: {change_type}")
    query = db.query(MaterialStockRecord, Material).join(
        Material, Material.id == MaterialStockRecord.material_id
    )
    if material_id is not None:
        query = query.filter(MaterialStockRecord.material_id == material_id)
    if change_type is not None:
        query = query.filter(MaterialStockRecord.change_type == change_type)
    if start is not None:
        query = query.filter(MaterialStockRecord.created_at >= start)
    if end is not None:
        query = query.filter(MaterialStockRecord.created_at < end)
    return query.order_by(MaterialStockRecord.created_at.desc(), MaterialStockRecord.id.desc())
