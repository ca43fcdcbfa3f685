from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from honeypos.deps import get_db, meta
from honeypos.security import require_admin
from honeypos.serializers import discount_dict, product_dict, settlement_dict
from honeypos.services import catalog, incentive

router = APIRouter(prefix="/api/admin", tags=["Catalog"], dependencies=[Depends(require_admin)])


class ProductCreate(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {"name": "抹茶紅豆瑪德蓮", "price": 70, "category": "蛋糕", "card_color": "#A3C585"}
        }
    }
    name: str = Field(min_length=1)
    price: float = Field(ge=0)
    category: Optional[str] = None
    card_color: Optional[str] = None
    status: Optional[str] = None
    is_on_promotion: bool = False
    promotion_price: Optional[float] = None
    sort_order: Optional[int] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    price: Optional[float] = Field(default=None, ge=0)
    category: Optional[str] = None
    card_color: Optional[str] = None
    is_on_promotion: Optional[bool] = None
    promotion_price: Optional[float] = None
    sort_order: Optional[int] = None


class ProductReorder(BaseModel):
    product_ids: list[int] = Field(min_length=1)


class DiscountCreate(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {"name": "滿500折50", "type": "amount", "value": 50, "min_purchase": 500}
        }
    }
    name: str = Field(min_length=1)
    type: str
    value: float = 0
    min_purchase: Optional[float] = None
    is_active: bool = True
    description: Optional[str] = None


class DiscountUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    value: Optional[float] = None
    min_purchase: Optional[float] = None
    is_active: Optional[bool] = None
    description: Optional[str] = None


class IncentiveUpdate(BaseModel):
    is_enabled: Optional[bool] = None
    daily_target: Optional[int] = None


@router.get("/products")
def list_products(
    search: Optional[str] = Query(default=None),
    category: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
) -> dict:
    return {"data": [product_dict(p) for p in catalog.list_products(db, search, category)], "meta": meta()}


@router.post("/products")
def create_product(payload: ProductCreate, db: Session = Depends(get_db)) -> dict:
    return {"data": product_dict(catalog.create_product(db, payload.model_dump())), "meta": meta()}


@router.put("/products/reorder")
def reorder_products(payload: ProductReorder, db: Session = Depends(get_db)) -> dict:
    return {"data": {"reordered": catalog.reorder_products(db, payload.product_ids)}, "meta": meta()}


@router.get("/products/{product_id}")
def get_product(product_id: int, db: Session = Depends(get_db)) -> dict:
    return {"data": product_dict(catalog.get_product(db, product_id)), "meta": meta()}


@router.put("/products/{product_id}")
def update_product(product_id: int, payload: ProductUpdate, db: Session = Depends(get_db)) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    return {"data": product_dict(catalog.update_product(db, product_id, changes)), "meta": meta()}


@router.delete("/products/{product_id}")
def delete_product(product_id: int, db: Session = Depends(get_db)) -> dict:
    catalog.delete_product(db, product_id)
    return {"data": {"deleted": True, "id": product_id}, "meta": meta()}


@router.patch("/products/{product_id}/status")
def toggle_product(product_id: int, db: Session = Depends(get_db)) -> dict:
    return {"data": product_dict(catalog.toggle_product_status(db, product_id)), "meta": meta()}


@router.get("/discounts")
def list_discounts(db: Session = Depends(get_db)) -> dict:
    return {"data": [discount_dict(d) for d in catalog.list_discounts(db)], "meta": meta()}


@router.post("/discounts")
def create_discount(payload: DiscountCreate, db: Session = Depends(get_db)) -> dict:
    return {"data": discount_dict(catalog.create_discount(db, payload.model_dump())), "meta": meta()}


@router.put("/discounts/{discount_id}")
def update_discount(discount_id: int, payload: DiscountUpdate, db: Session = Depends(get_db)) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    return {"data": discount_dict(catalog.update_discount(db, discount_id, changes)), "meta": meta()}


@router.delete("/discounts/{discount_id}")
def delete_discount(discount_id: int, db: Session = Depends(get_db)) -> dict:
    catalog.delete_discount(db, discount_id)
    return {"data": {"deleted": True, "id": discount_id}, "meta": meta()}


@router.patch("/discounts/{discount_id}/toggle")
def toggle_discount(discount_id: int, db: Session = Depends(get_db)) -> dict:
    return {"data": discount_dict(catalog.toggle_discount(db, discount_id)), "meta": meta()}


@router.get("/incentive")
def get_incentive(db: Session = Depends(get_db)) -> dict:
    setting = incentive.get_incentive_settings(db)
    db.commit()
    return {
        "data": {
            "is_enabled": setting.is_enabled,
            "daily_target": setting.daily_target,
            "updated_at": setting.updated_at.isoformat(),
        },
        "meta": meta(),
    }


@router.put("/incentive")
def update_incentive(payload: IncentiveUpdate, db: Session = Depends(get_db)) -> dict:
    setting = incentive.update_incentive_settings(db, payload.is_enabled, payload.daily_target)
    return {
        "data": {
            "is_enabled": setting.is_enabled,
            "daily_target": setting.daily_target,
            "updated_at": setting.updated_at.isoformat(),
        },
        "meta": meta(),
    }


@router.get("/incentive/history")
def incentive_history(db: Session = Depends(get_db)) -> dict:
    return {"data": [settlement_dict(s) for s in incentive.incentive_history(db)], "meta": meta()}
