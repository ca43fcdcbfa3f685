from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from honeypos.deps import get_db, list_meta, meta, paginate
from honeypos.security import get_current_user, require_admin
from honeypos.serializers import order_dict, settlement_dict, shift_dict
from honeypos.services import orders, settlements, shifts

router = APIRouter(prefix="/api/admin", tags=["Orders"], dependencies=[Depends(get_current_user)])


def _float_totals(totals: dict) -> dict:
    return {key: float(value) if key != "total_orders" else value for key, value in totals.items()}


@router.get("/orders")
def list_orders(
    status: Optional[str] = Query(default=None),
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=200),
    db: Session = Depends(get_db),
) -> dict:
    rows, total = paginate(orders.orders_query(db, status, start, end), page, page_size)
    grouped = orders.items_for_orders(db, [o.id for o in rows])
    data = [order_dict(o, grouped.get(o.id, [])) for o in rows]
    return {"data": data, "meta": list_meta(page, page_size, total)}


@router.get("/orders/stats")
def order_stats(db: Session = Depends(get_db)) -> dict:
    return {"data": orders.order_stats(db), "meta": meta()}


@router.get("/orders/{order_id}")
def get_order(order_id: int, db: Session = Depends(get_db)) -> dict:
    order = orders.get_order(db, order_id)
    items = orders.items_for_orders(db, [order.id]).get(order.id, [])
    return {"data": order_dict(order, items), "meta": meta()}


@router.post("/orders/{order_id}/cancel", dependencies=[Depends(require_admin)])
def cancel_order(order_id: int, db: Session = Depends(get_db)) -> dict:
    result = orders.cancel_order(db, order_id)
    return {"data": order_dict(result.order), "meta": meta(warnings=result.warnings)}


@router.get("/shifts/{shift_id}")
def get_shift(shift_id: int, db: Session = Depends(get_db)) -> dict:
    shift = shifts.get_shift(db, shift_id)
    data = shift_dict(shift)
    data["orders"] = [order_dict(o) for o in shifts.shift_orders(db, shift_id)]
    data["settlement"] = (
        settlement_dict(settlements.get_settlement(db, shift.settlement_id)) if shift.settlement_id else None
    )
    return {"data": data, "meta": meta()}


@router.get("/shifts/{shift_id}/reconciliation")
def reconcile_shift(shift_id: int, db: Session = Depends(get_db)) -> dict:
    result = shifts.reconcile_shift(db, shift_id)
    data = {
        "shift_id": result["shift_id"],
        "consistent": result["consistent"],
        "running": _float_totals(result["running"]),
        "recomputed": _float_totals(result["recomputed"]),
        "drift": _float_totals(result["drift"]),
    }
    warnings = [] if result["consistent"] else ["running_totals_drift"]
    return {"data": data, "meta": meta(warnings=warnings)}


@router.get("/settlements", dependencies=[Depends(require_admin)])
def list_settlements(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=200),
    db: Session = Depends(get_db),
) -> dict:
    rows, total = paginate(settlements.settlements_query(db), page, page_size)
    return {"data": [settlement_dict(s) for s in rows], "meta": list_meta(page, page_size, total)}


@router.get("/settlements/{settlement_id}", dependencies=[Depends(require_admin)])
def get_settlement(settlement_id: int, db: Session = Depends(get_db)) -> dict:
    detail = settlements.settlement_detail(db, settlement_id)
    data = settlement_dict(detail["settlement"])
    data["shift"] = shift_dict(detail["shift"]) if detail["shift"] is not None else None
    data["lines"] = detail["lines"]
    return {"data": data, "meta": meta()}
