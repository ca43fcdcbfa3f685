from __future__ import annotations

from datetime import timedelta

from sqlalchemy.orm import Session

from honeypos.models import Product
from honeypos.constants import STATUS_ACTIVE
from honeypos.services import reports
from honeypos.utils import ZERO, percent, percent_change, today


def _card(key: str, title: str, value: str, raw, change: float) -> dict:
    return {
        "key": key,
        "title": title,
        "value": value,
        "raw": float(raw),
        "change": f"{change:+.1f}%",
        "trend": "up" if change >= 0 else "down",
    }


def kpi(db: Session) -> list[dict]:
    day = today()
    current = reports.summarize(reports.orders_on(db, day))
    previous = reports.summarize(reports.orders_on(db, day - timedelta(days=1)))
    product_count = db.query(Product).filter(Product.status == STATUS_ACTIVE).count()
    return [
        _card(
            "revenue",
            "今日營收",
            f"NT$ {current['net_revenue']:,.0f}",
            current["net_revenue"],
            percent_change(current["net_revenue"], previous["net_revenue"]),
        ),
        _card(
            "orders",
            "訂單數",
            str(current["order_count"]),
            current["order_count"],
            percent_change(current["order_count"], previous["order_count"]),
        ),
        _card("products", "商品數", str(product_count), product_count, 0.0),
        _card(
            "average",
            "平均客單價",
            f"NT$ {current['average_order_value']:,.0f}",
            current["average_order_value"],
            percent_change(current["average_order_value"], previous["average_order_value"]),
        ),
    ]


def sales_trend(db: Session, days: int = 7) -> list[dict]:
    end = today()
    rows = []
    for offset in range(days - 1, -1, -1):
        day = end - timedelta(days=offset)
        summary = reports.summarize(reports.orders_on(db, day))
        rows.append(
            {
                "date": f"{day.month}/{day.day}",
                "revenue": float(summary["net_revenue"]),
                "orders": summary["order_count"],
            }
        )
    return rows


def top_products(db: Session, limit: int = 5) -> list[dict]:
    return reports.top_products(db, today(), limit)


def addon_kpi(db: Session) -> dict:
    orders = reports.orders_on(db, today())
    lines = reports.order_lines(db, orders)
    totals = reports.addon_totals(lines)
    with_addons = sum(1 for _, _, addons in lines if addons)
    return {
        "addon_revenue": float(sum((entry[1] for entry in totals.values()), ZERO)),
        "addon_count": sum(entry[0] for entry in totals.values()),
        "addon_rate": percent(with_addons, len(lines), 1),
    }


def customer_tag_kpi(db: Session) -> dict:
    return reports.customer_tag_distribution(db, today())
