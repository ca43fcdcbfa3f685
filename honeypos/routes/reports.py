from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from honeypos.deps import get_db, meta
from honeypos.security import get_current_user
from honeypos.serializers import alert_dict, material_dict
from honeypos.services import dashboard, materials, reports
from honeypos.utils import today

router = APIRouter(prefix="/api/admin", tags=["Reports"], dependencies=[Depends(get_current_user)])


def _day(value: Optional[date]) -> date:
    return value or today()


@router.get("/reports/daily")
def daily_report(day: Optional[date] = Query(default=None, alias="date"), db: Session = Depends(get_db)) -> dict:
    return {"data": reports.daily_report(db, _day(day)), "meta": meta()}


@router.get("/reports/hourly-sales")
def hourly_sales(day: Optional[date] = Query(default=None, alias="date"), db: Session = Depends(get_db)) -> dict:
    return {"data": reports.hourly_sales(db, _day(day)), "meta": meta()}


@router.get("/reports/category-sales")
def category_sales(day: Optional[date] = Query(default=None, alias="date"), db: Session = Depends(get_db)) -> dict:
    return {"data": reports.category_sales(db, _day(day)), "meta": meta()}


@router.get("/reports/payment-methods")
def payment_methods(day: Optional[date] = Query(default=None, alias="date"), db: Session = Depends(get_db)) -> dict:
    return {"data": reports.payment_methods(db, _day(day)), "meta": meta()}


@router.get("/reports/top-products")
def top_products(day: Optional[date] = Query(default=None, alias="date"), db: Session = Depends(get_db)) -> dict:
    return {"data": reports.top_products(db, _day(day)), "meta": meta()}


@router.get("/reports/top-addons")
def top_addons(day: Optional[date] = Query(default=None, alias="date"), db: Session = Depends(get_db)) -> dict:
    return {"data": reports.top_addons(db, _day(day)), "meta": meta()}


@router.get("/reports/addon-combinations")
def addon_combinations(
    day: Optional[date] = Query(default=None, alias="date"), db: Session = Depends(get_db)
) -> dict:
    return {"data": reports.addon_combinations(db, _day(day)), "meta": meta()}


@router.get("/reports/addon-trend")
def addon_trend(days: int = Query(default=7, ge=1, le=90), db: Session = Depends(get_db)) -> dict:
    return {"data": reports.addon_trend(db, days, today()), "meta": meta()}


@router.get("/reports/customer-tags")
def customer_tags(day: Optional[date] = Query(default=None, alias="date"), db: Session = Depends(get_db)) -> dict:
    return {"data": reports.customer_tag_distribution(db, _day(day)), "meta": meta()}


@router.get("/reports/export")
def export_report(day: Optional[date] = Query(default=None, alias="date"), db: Session = Depends(get_db)) -> Response:
    target = _day(day)
    return Response(
        content=reports.export_csv(db, target),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="orders-{target.isoformat()}.csv"'},
    )


@router.get("/dashboard/kpi")
def dashboard_kpi(db: Session = Depends(get_db)) -> dict:
    return {"data": dashboard.kpi(db), "meta": meta()}


@router.get("/dashboard/sales-trend")
def dashboard_sales_trend(days: int = Query(default=7, ge=1, le=90), db: Session = Depends(get_db)) -> dict:
    return {"data": dashboard.sales_trend(db, days), "meta": meta()}


@router.get("/dashboard/top-products")
def dashboard_top_products(limit: int = Query(default=5, ge=1, le=50), db: Session = Depends(get_db)) -> dict:
    return {"data": dashboard.top_products(db, limit), "meta": meta()}


@router.get("/dashboard/addon-kpi")
def dashboard_addon_kpi(db: Session = Depends(get_db)) -> dict:
    return {"data": dashboard.addon_kpi(db), "meta": meta()}


@router.get("/dashboard/customer-tags")
def dashboard_customer_tags(db: Session = Depends(get_db)) -> dict:
    return {"data": dashboard.customer_tag_kpi(db), "meta": meta()}


@router.get("/dashboard/material-status")
def dashboard_material_status(db: Session = Depends(get_db)) -> dict:
    return {"data": materials.material_status(db), "meta": meta()}


@router.get("/dashboard/low-stock-alerts")
def dashboard_low_stock(db: Session = Depends(get_db)) -> dict:
    return {
        "data": {
            "materials": [material_dict(m) for m in materials.low_stock_materials(db)],
            "alerts": [alert_dict(a, m) for a, m in materials.list_active_alerts(db)],
        },
        "meta": meta(),
    }
