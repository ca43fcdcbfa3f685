from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from honeypos.deps import get_db, list_meta, meta, paginate
from honeypos.models import AdminUser
from honeypos.security import get_current_user
from honeypos.serializers import alert_dict, material_dict, product_dict, stock_record_dict
from honeypos.services import materials, recipes
from honeypos.utils import to_utc_naive

router = APIRouter(prefix="/api/admin", tags=["Materials"], dependencies=[Depends(get_current_user)])


class MaterialCreate(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {"name": "低筋麵粉", "unit": "g", "current_stock": 5000, "alert_threshold": 1000}
        }
    }
    name: str = Field(min_length=1)
    unit: str = Field(min_length=1)
    current_stock: float = Field(default=0, ge=0)
    alert_threshold: float = Field(default=0, ge=0)
    description: Optional[str] = None


class MaterialUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    unit: Optional[str] = Field(default=None, min_length=1)
    alert_threshold: Optional[float] = Field(default=None, ge=0)
    description: Optional[str] = None


class StockChange(BaseModel):
    quantity: float = Field(gt=0)
    note: Optional[str] = None


class StockAdjust(BaseModel):
    new_stock: float = Field(ge=0)
    note: Optional[str] = None


class RecipeRow(BaseModel):
    material_id: int
    quantity: float = Field(gt=0)


class RecipeReplace(BaseModel):
    model_config = {
        "json_schema_extra": {"example": {"items": [{"material_id": 1, "quantity": 30}]}}
    }
    items: list[RecipeRow] = Field(default_factory=list)


@router.get("/materials")
def list_materials(
    search: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
) -> dict:
    return {"data": [material_dict(m) for m in materials.list_materials(db, search, status)], "meta": meta()}


@router.post("/materials")
def create_material(
    payload: MaterialCreate,
    db: Session = Depends(get_db),
    user: AdminUser = Depends(get_current_user),
) -> dict:
    material = materials.create_material(
        db,
        payload.name,
        payload.unit,
        payload.current_stock,
        payload.alert_threshold,
        payload.description,
        operator_id=user.id,
    )
    return {"data": material_dict(material), "meta": meta()}


@router.get("/materials/status")
def material_status(db: Session = Depends(get_db)) -> dict:
    return {"data": materials.material_status(db), "meta": meta()}


@router.get("/materials/low-stock")
def low_stock(db: Session = Depends(get_db)) -> dict:
    return {"data": [material_dict(m) for m in materials.low_stock_materials(db)], "meta": meta()}


@router.get("/materials/alerts")
def active_alerts(db: Session = Depends(get_db)) -> dict:
    rows = materials.list_active_alerts(db)
    return {"data": [alert_dict(alert, material) for alert, material in rows], "meta": meta()}


@router.post("/materials/alerts/{alert_id}/resolve")
def resolve_alert(alert_id: int, db: Session = Depends(get_db)) -> dict:
    return {"data": alert_dict(materials.resolve_alert(db, alert_id)), "meta": meta()}


@router.get("/materials/records")
def stock_records(
    material_id: Optional[int] = Query(default=None),
    change_type: Optional[str] = Query(default=None),
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=200),
    db: Session = Depends(get_db),
) -> dict:
    query = materials.stock_records_query(db, material_id, change_type, to_utc_naive(start), to_utc_naive(end))
    rows, total = paginate(query, page, page_size)
    data = [stock_record_dict(record, material) for record, material in rows]
    return {"data": data, "meta": list_meta(page, page_size, total)}


@router.get("/materials/{material_id}")
def get_material(material_id: int, db: Session = Depends(get_db)) -> dict:
    return {"data": material_dict(materials.get_material(db, material_id)), "meta": meta()}


@router.put("/materials/{material_id}")
def update_material(material_id: int, payload: MaterialUpdate, db: Session = Depends(get_db)) -> dict:
    material = materials.update_material(db, material_id, payload.model_dump(exclude_unset=True))
    return {"data": material_dict(material), "meta": meta()}


@router.delete("/materials/{material_id}")
def delete_material(material_id: int, db: Session = Depends(get_db)) -> dict:
    materials.delete_material(db, material_id)
    return {"data": {"deleted": True, "id": material_id}, "meta": meta()}


@router.patch("/materials/{material_id}/status")
def toggle_material(material_id: int, db: Session = Depends(get_db)) -> dict:
    return {"data": material_dict(materials.toggle_material_status(db, material_id)), "meta": meta()}


@router.post("/materials/{material_id}/stock-in")
def stock_in(
    material_id: int,
    payload: StockChange,
    db: Session = Depends(get_db),
    user: AdminUser = Depends(get_current_user),
) -> dict:
    material = materials.stock_in(db, material_id, payload.quantity, payload.note, user.id)
    return {"data": material_dict(material), "meta": meta()}


@router.post("/materials/{material_id}/adjust")
def adjust_stock(
    material_id: int,
    payload: StockAdjust,
    db: Session = Depends(get_db),
    user: AdminUser = Depends(get_current_user),
) -> dict:
    material = materials.adjust_stock(db, material_id, payload.new_stock, payload.note, user.id)
    return {"data": material_dict(material), "meta": meta()}


@router.post("/materials/{material_id}/waste")
def waste(
    material_id: int,
    payload: StockChange,
    db: Session = Depends(get_db),
    user: AdminUser = Depends(get_current_user),
) -> dict:
    material = materials.waste(db, material_id, payload.quantity, payload.note, user.id)
    return {"data": material_dict(material), "meta": meta()}


@router.get("/recipes/products")
def products_with_recipes(db: Session = Depends(get_db)) -> dict:
    data = []
    for product, recipe_count in recipes.products_with_recipes(db):
        row = product_dict(product)
        row["recipe_count"] = recipe_count
        data.append(row)
    return {"data": data, "meta": meta()}


@router.get("/recipes/{product_id}")
def get_recipes(product_id: int, db: Session = Depends(get_db)) -> dict:
    data = [
        {
            "id": recipe.id,
            "product_id": recipe.product_id,
            "material_id": recipe.material_id,
            "material_name": material.name,
            "unit": material.unit,
            "quantity": float(recipe.quantity),
        }
        for recipe, material in recipes.recipes_for_product(db, product_id)
    ]
    return {"data": data, "meta": meta()}


@router.put("/recipes/{product_id}")
def replace_recipes(product_id: int, payload: RecipeReplace, db: Session = Depends(get_db)) -> dict:
    warnings = recipes.replace_recipes(
        db, product_id, [(row.material_id, row.quantity) for row in payload.items]
    )
    count = len(recipes.recipes_for_product(db, product_id))
    return {"data": {"product_id": product_id, "recipe_count": count}, "meta": meta(warnings=warnings)}
