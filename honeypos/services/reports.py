"""Read-model reports over completed orders.

Revenue is the sum of order subtotals, discount the sum of order-level discounts
and net revenue the sum of order totals. A business day is the UTC calendar day.
"""
from __future__ import annotations

import csv
import io
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from honeypos.constants import (
    AGE_TAGS,
    BUSINESS_HOUR_END,
    BUSINESS_HOUR_START,
    GENDER_TAGS,
    ORDER_COMPLETED,
    OTHER_CATEGORY,
    PAYMENT_DISPLAY_NAMES,
    UNTAGGED,
)
from honeypos.models import Order, OrderItem, OrderItemAddon, Product
from honeypos.services.orders import items_for_orders
from honeypos.utils import ZERO, day_bounds, percent, percent_change, round_whole, to_decimal

CSV_HEADER = ["訂單編號", "時間", "商品", "小計", "折扣", "總計", "付款方式", "狀態", "客群標記"]
STATUS_DISPLAY = {"completed": "已完成", "cancelled": "已取消"}


def orders_on(db: Session, day: date, completed_only: bool = True) -> list[Order]:
    start, end = day_bounds(day)
    query = db.query(Order).filter(Order.timestamp >= start, Order.timestamp < end)
    if completed_only:
        query = query.filter(Order.status == ORDER_COMPLETED)
    return query.order_by(Order.timestamp, Order.id).all()


def summarize(orders: Iterable[Order]) -> dict:
    orders = list(orders)
    revenue = sum((to_decimal(o.subtotal) for o in orders), ZERO)
    discount = sum((to_decimal(o.discount_amount) for o in orders), ZERO)
    net = sum((to_decimal(o.total) for o in orders), ZERO)
    item_discount = sum((to_decimal(o.item_discount_amount) for o in orders), ZERO)
    count = len(orders)
    return {
        "order_count": count,
        "total_revenue": revenue,
        "total_discount": discount,
        "net_revenue": net,
        "item_discount": item_discount,
        "average_order_value": round_whole(net / count) if count else ZERO,
    }


def order_lines(db: Session, orders: list[Order]) -> list[tuple[Order, OrderItem, list[OrderItemAddon]]]:
    grouped = items_for_orders(db, [o.id for o in orders])
    return [(order, item, addons) for order in orders for item, addons in grouped.get(order.id, [])]


def daily_report(db: Session, day: date) -> dict:
    orders = orders_on(db, day)
    current = summarize(orders)
    previous = summarize(orders_on(db, day - timedelta(days=1)))
    stock_sold = sum(item.quantity for _, item, _ in order_lines(db, orders))
    return {
        "date": day.isoformat(),
        "order_count": current["order_count"],
        "total_revenue": float(current["total_revenue"]),
        "total_discount": float(current["total_discount"]),
        "net_revenue": float(current["net_revenue"]),
        "item_discount": float(current["item_discount"]),
        "average_order_value": float(current["average_order_value"]),
        "stock_sold": stock_sold,
        "comparison": {
            "previous_net_revenue": float(previous["net_revenue"]),
            "previous_order_count": previous["order_count"],
            "revenue_change": percent_change(current["net_revenue"], previous["net_revenue"]),
            "order_change": percent_change(current["order_count"], previous["order_count"]),
        },
    }


def hourly_sales(db: Session, day: date) -> list[dict]:
    buckets = {hour: [ZERO, 0] for hour in range(BUSINESS_HOUR_START, BUSINESS_HOUR_END + 1)}
    for order in orders_on(db, day):
        bucket = buckets.get(order.timestamp.hour)
        if bucket is None:
            continue
        bucket[0] += to_decimal(order.total)
        bucket[1] += 1
    return [
        {"hour": f"{hour:02d}:00", "sales": float(sales), "orders": count}
        for hour, (sales, count) in buckets.items()
    ]


def category_sales(db: Session, day: date) -> list[dict]:
    lines = order_lines(db, orders_on(db, day))
    product_ids = {item.product_id for _, item, _ in lines if item.product_id is not None}
    categories = {}
    if product_ids:
        categories = dict(db.query(Product.id, Product.category).filter(Product.id.in_(product_ids)).all())
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for _, item, _ in lines:
        category = categories.get(item.product_id) or OTHER_CATEGORY
        totals[category] += to_decimal(item.subtotal)
    grand = sum(totals.values(), ZERO)
    rows = [
        {"category": category, "sales": float(sales), "percentage": int(percent(sales, grand, 0))}
        for category, sales in totals.items()
    ]
    return sorted(rows, key=lambda row: row["sales"], reverse=True)


def payment_methods(db: Session, day: date) -> list[dict]:
    orders = orders_on(db, day)
    grouped: dict[str, list] = {}
    for order in orders:
        entry = grouped.setdefault(order.payment_method, [0, ZERO])
        entry[0] += 1
        entry[1] += to_decimal(order.total)
    total = len(orders)
    rows = [
        {
            "method": PAYMENT_DISPLAY_NAMES.get(method, method),
            "count": count,
            "amount": float(amount),
            "percentage": percent(count, total, 1),
        }
        for method, (count, amount) in grouped.items()
    ]
    return sorted(rows, key=lambda row: row["count"], reverse=True)


def top_products_from(lines, limit: int) -> list[dict]:
    totals: dict[str, list] = {}
    for _, item, _ in lines:
        entry = totals.setdefault(item.product_name, [0, ZERO])
        entry[0] += item.quantity
        entry[1] += to_decimal(item.subtotal)
    ranked = sorted(totals.items(), key=lambda kv: (-kv[1][0], kv[0]))[:limit]
    return [
        {"name": name, "quantity": quantity, "revenue": float(revenue)}
        for name, (quantity, revenue) in ranked
    ]


def top_products(db: Session, day: date, limit: int = 5) -> list[dict]:
    return top_products_from(order_lines(db, orders_on(db, day)), limit)


def addon_totals(lines) -> dict[str, list]:
    """Addon name -> [count, revenue]; each addon counts once per unit of its line."""
    totals: dict[str, list] = {}
    for _, item, addons in lines:
        for addon in addons:
            entry = totals.setdefault(addon.product_name, [0, ZERO])
            entry[0] += item.quantity
            entry[1] += to_decimal(addon.price) * item.quantity
    return totals


def top_addons(db: Session, day: date, limit: int = 10) -> list[dict]:
    totals = addon_totals(order_lines(db, orders_on(db, day)))
    ranked = sorted(totals.items(), key=lambda kv: (-kv[1][0], kv[0]))[:limit]
    return [{"name": name, "count": count, "revenue": float(revenue)} for name, (count, revenue) in ranked]


def addon_combinations(db: Session, day: date, limit: int = 20) -> list[dict]:
    pairs: dict[tuple[str, str], int] = defaultdict(int)
    for _, item, addons in order_lines(db, orders_on(db, day)):
        for addon in addons:
            pairs[(item.product_name, addon.product_name)] += item.quantity
    ranked = sorted(pairs.items(), key=lambda kv: (-kv[1], kv[0]))[:limit]
    return [{"product": product, "addon": addon, "count": count} for (product, addon), count in ranked]


def addon_trend(db: Session, days: int, end: date) -> list[dict]:
    rows = []
    for offset in range(days - 1, -1, -1):
        day = end - timedelta(days=offset)
        totals = addon_totals(order_lines(db, orders_on(db, day)))
        rows.append(
            {
                "date": f"{day.month}/{day.day}",
                "revenue": float(sum((entry[1] for entry in totals.values()), ZERO)),
                "count": sum(entry[0] for entry in totals.values()),
            }
        )
    return rows


def split_tags(tag: Optional[str]) -> list[str]:
    if not tag:
        return []
    return [part.strip() for part in tag.split(",") if part.strip()]


def tag_distribution(orders: list[Order]) -> dict:
    total = len(orders)
    result = {}
    for group, tags in (("gender", GENDER_TAGS), ("age", AGE_TAGS)):
        buckets = {tag: [0, ZERO] for tag in (*tags, UNTAGGED)}
        for order in orders:
            order_tags = split_tags(order.customer_tag)
            matched = [tag for tag in tags if tag in order_tags] or [UNTAGGED]
            for tag in matched:
                buckets[tag][0] += 1
                buckets[tag][1] += to_decimal(order.total)
        result[group] = [
            {"tag": tag, "orders": count, "revenue": float(revenue), "percentage": percent(count, total, 1)}
            for tag, (count, revenue) in buckets.items()
        ]
    result["total_orders"] = total
    return result


def customer_tag_distribution(db: Session, day: date) -> dict:
    return tag_distribution(orders_on(db, day))


def _plain(value: Decimal) -> str:
    value = to_decimal(value)
    if value == value.to_integral_value():
        return str(int(value))
    return f"{value:.2f}"


def export_csv(db: Session, day: date) -> bytes:
    orders = orders_on(db, day, completed_only=False)
    grouped = items_for_orders(db, [o.id for o in orders])
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\r\n")
    writer.writerow(CSV_HEADER)
    for order in orders:
        items = "; ".join(f"{item.product_name} x {item.quantity}" for item, _ in grouped.get(order.id, []))
        writer.writerow(
            [
                order.order_number,
                order.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                items,
                _plain(order.subtotal),
                _plain(order.discount_amount),
                _plain(order.total),
                PAYMENT_DISPLAY_NAMES.get(order.payment_method, order.payment_method),
                STATUS_DISPLAY.get(order.status, order.status),
                order.customer_tag or "",
            ]
        )
    return buffer.getvalue().encode("utf-8-sig")
