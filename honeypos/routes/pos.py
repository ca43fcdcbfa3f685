from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from honeypos.deps import get_db, meta
from honeypos.schemas import OrderDraft
from honeypos.security import get_current_user
from honeypos.serializers import (
    discount_dict,
    order_dict,
    product_dict,
    settlement_dict,
    shift_dict,
)
from honeypos.services import catalog, incentive, orders, settlements, shifts
from honeypos.services.settlements import IncentiveInput

router = APIRouter(prefix="/api/pos", tags=["POS"], dependencies=[Depends(get_current_user)])


class OrderBatch(BaseModel):
    # drafts are validated one by one during replay
    orders: list[dict[str, Any]] = Field(min_length=1, max_length=500)


class InventoryCountIn(BaseModel):
    product_id: int
    quantity: int = Field(ge=0)


class ShiftOpen(BaseModel):
    model_config = {"json_schema_extra": {"example": {"device_id": "pos-01"}}}
    device_id: Optional[str] = None


class SettlementIn(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "device_id": "pos-01",
                "inventory_counts": [{"product_id": 1, "quantity": 12}],
                "incentive_target": 125,
                "incentive_items_sold": 131,
            }
        }
    }
    device_id: Optional[str] = None
    inventory_counts: list[InventoryCountIn] = Field(default_factory=list)
    incentive_target: Optional[int] = Field(default=None, ge=1)
    incentive_items_sold: Optional[int] = Field(default=None, ge=0)
    incentive_achieved: Optional[bool] = None

    def counts(self) -> list[tuple[int, int]]:
        return [(count.product_id, count.quantity) for count in self.inventory_counts]

    def incentive(self) -> IncentiveInput:
        return IncentiveInput(
            target=self.incentive_target,
            items_sold=self.incentive_items_sold,
            achieved=self.incentive_achieved,
        )


def _order_response(result: orders.OrderResult, db: Session) -> dict:
    items = orders.items_for_orders(db, [result.order.id]).get(result.order.id, [])
    return {"data": order_dict(result.order, items), "meta": meta(warnings=result.warnings)}


@router.post("/orders")
def create_order(payload: OrderDraft, db: Session = Depends(get_db)) -> dict:
    return _order_response(orders.create_order(db, payload), db)


@router.post("/orders/batch")
def create_orders_batch(payload: OrderBatch, db: Session = Depends(get_db)) -> dict:
    return {"data": orders.replay_orders(db, payload.orders), "meta": meta()}


@router.post("/sync/orders")
def sync_offline_orders(payload: OrderBatch, db: Session = Depends(get_db)) -> dict:
    return {"data": orders.replay_orders(db, payload.orders), "meta": meta()}


@router.get("/sync/status")
def sync_status(device_id: Optional[str] = Query(default=None), db: Session = Depends(get_db)) -> dict:
    return {"data": orders.sync_status(db, device_id), "meta": meta()}


@router.post("/shift/open")
def open_shift(payload: ShiftOpen, db: Session = Depends(get_db)) -> dict:
    return {"data": shift_dict(shifts.open_shift(db, payload.device_id)), "meta": meta()}


@router.get("/shift/current")
def current_shift(device_id: Optional[str] = Query(default=None), db: Session = Depends(get_db)) -> dict:
    shift = shifts.current_shift(db, device_id)
    return {"data": shift_dict(shift) if shift is not None else None, "meta": meta()}


@router.post("/shift/{shift_id}/close")
def close_shift(shift_id: int, payload: SettlementIn, db: Session = Depends(get_db)) -> dict:
    shift, settlement = shifts.close_shift(db, shift_id, payload.counts(), payload.incentive())
    counts = settlements.inventory_counts(db, settlement.id)
    return {
        "data": {"shift": shift_dict(shift), "settlement": settlement_dict(settlement, counts)},
        "meta": meta(),
    }


@router.post("/inventory/settlement")
def submit_settlement(payload: SettlementIn, db: Session = Depends(get_db)) -> dict:
    settlement = settlements.submit_daily_settlement(
        db, payload.device_id, payload.counts(), payload.incentive()
    )
    counts = settlements.inventory_counts(db, settlement.id)
    return {"data": settlement_dict(settlement, counts), "meta": meta()}


@router.get("/inventory/today")
def today_settlement(db: Session = Depends(get_db)) -> dict:
    settlement = settlements.today_settlement(db)
    if settlement is None:
        return {"data": None, "meta": meta()}
    counts = settlements.inventory_counts(db, settlement.id)
    return {"data": settlement_dict(settlement, counts), "meta": meta()}


@router.get("/products")
def pos_products(db: Session = Depends(get_db)) -> dict:
    return {"data": [product_dict(p) for p in catalog.list_active_products(db)], "meta": meta()}


@router.get("/addons")
def pos_addons(db: Session = Depends(get_db)) -> dict:
    return {"data": [product_dict(p) for p in catalog.list_addons(db)], "meta": meta()}


@router.get("/discounts/active")
def active_discounts(db: Session = Depends(get_db)) -> dict:
    return {"data": [discount_dict(d) for d in catalog.list_active_discounts(db)], "meta": meta()}


@router.get("/incentive/settings")
def incentive_settings(db: Session = Depends(get_db)) -> dict:
    setting = incentive.get_incentive_settings(db)
    return {
        "data": {"is_enabled": setting.is_enabled, "daily_target": setting.daily_target},
        "meta": meta(),
    }
