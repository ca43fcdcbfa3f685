from __future__ import annotations

from typing import Optional

from honeypos.constants import PAYMENT_DISPLAY_NAMES
from honeypos.models import (
    AdminUser,
    AuditLog,
    BroadcastHistory,
    DailySettlement,
    Discount,
    InventoryCount,
    LineAdmin,
    LineOaSetting,
    Material,
    MaterialAlert,
    MaterialStockRecord,
    MessageTemplate,
    Order,
    OrderItem,
    OrderItemAddon,
    Product,
    Shift,
)
from honeypos.utils import as_float, iso, to_decimal


def product_dict(product: Product) -> dict:
    return {
        "id": product.id,
        "name": product.name,
        "price": float(product.price),
        "status": product.status,
        "is_on_promotion": product.is_on_promotion,
        "promotion_price": as_float(product.promotion_price),
        "category": product.category,
        "card_color": product.card_color,
        "sort_order": product.sort_order,
        "created_at": iso(product.created_at),
        "updated_at": iso(product.updated_at),
    }


def order_dict(order: Order, items: Optional[list[tuple[OrderItem, list[OrderItemAddon]]]] = None) -> dict:
    data = {
        "id": order.id,
        "order_number": order.order_number,
        "business_date": iso(order.business_date),
        "daily_sequence": order.daily_sequence,
        "device_id": order.device_id,
        "local_id": order.local_id,
        "subtotal": float(order.subtotal),
        "discount_type": order.discount_type,
        "discount_value": as_float(order.discount_value),
        "discount_amount": float(order.discount_amount),
        "item_discount_amount": float(order.item_discount_amount),
        "total": float(order.total),
        "status": order.status,
        "payment_method": order.payment_method,
        "payment_method_display": PAYMENT_DISPLAY_NAMES.get(order.payment_method, order.payment_method),
        "customer_tag": order.customer_tag,
        "timestamp": iso(order.timestamp),
        "cancelled_at": iso(order.cancelled_at),
        "shift_id": order.shift_id,
    }
    if items is not None:
        data["items"] = [
            {
                "id": item.id,
                "product_id": item.product_id,
                "product_name": item.product_name,
                "price": float(item.price),
                "quantity": item.quantity,
                "subtotal": float(item.subtotal),
                "is_gift": item.is_gift,
                "original_price": as_float(item.original_price),
                "item_discount_label": item.item_discount_label,
                "addons": [
                    {
                        "id": addon.id,
                        "product_id": addon.product_id,
                        "product_name": addon.product_name,
                        "price": float(addon.price),
                    }
                    for addon in addons
                ],
            }
            for item, addons in items
        ]
    return data


def shift_dict(shift: Shift) -> dict:
    return {
        "id": shift.id,
        "device_id": shift.device_id,
        "status": shift.status,
        "opened_at": iso(shift.opened_at),
        "closed_at": iso(shift.closed_at),
        "total_orders": shift.total_orders,
        "total_revenue": float(shift.total_revenue),
        "total_discount": float(shift.total_discount),
        "net_revenue": float(shift.net_revenue),
        "settlement_id": shift.settlement_id,
    }


def settlement_dict(settlement: DailySettlement, counts: Optional[list[InventoryCount]] = None) -> dict:
    data = {
        "id": settlement.id,
        "date": iso(settlement.business_date),
        "device_id": settlement.device_id,
        "total_orders": settlement.total_orders,
        "total_revenue": float(settlement.total_revenue),
        "total_discount": float(settlement.total_discount),
        "net_revenue": float(settlement.net_revenue),
        "incentive_target": settlement.incentive_target,
        "incentive_items_sold": settlement.incentive_items_sold,
        "incentive_achieved": settlement.incentive_achieved,
        "submitted_at": iso(settlement.submitted_at),
    }
    if counts is not None:
        data["inventory_counts"] = [
            {"product_id": count.product_id, "quantity": count.quantity} for count in counts
        ]
    return data


def discount_dict(discount: Discount) -> dict:
    return {
        "id": discount.id,
        "name": discount.name,
        "type": discount.type,
        "value": float(discount.value),
        "min_purchase": as_float(discount.min_purchase),
        "is_active": discount.is_active,
        "description": discount.description,
        "created_at": iso(discount.created_at),
    }


def material_dict(material: Material) -> dict:
    stock = to_decimal(material.current_stock)
    threshold = to_decimal(material.alert_threshold)
    if stock <= 0:
        level = "out"
    elif stock <= threshold:
        level = "low"
    else:
        level = "normal"
    return {
        "id": material.id,
        "name": material.name,
        "unit": material.unit,
        "current_stock": float(stock),
        "alert_threshold": float(threshold),
        "stock_level": level,
        "status": material.status,
        "description": material.description,
        "created_at": iso(material.created_at),
        "updated_at": iso(material.updated_at),
    }


def stock_record_dict(record: MaterialStockRecord, material: Optional[Material] = None) -> dict:
    return {
        "id": record.id,
        "material_id": record.material_id,
        "material_name": material.name if material is not None else None,
        "change_type": record.change_type,
        "quantity": float(record.quantity),
        "stock_before": float(record.stock_before),
        "stock_after": float(record.stock_after),
        "order_id": record.order_id,
        "note": record.note,
        "operator_id": record.operator_id,
        "created_at": iso(record.created_at),
    }


def alert_dict(alert: MaterialAlert, material: Optional[Material] = None) -> dict:
    return {
        "id": alert.id,
        "material_id": alert.material_id,
        "material_name": material.name if material is not None else None,
        "unit": material.unit if material is not None else None,
        "stock_level": float(alert.stock_level),
        "alert_threshold": float(alert.alert_threshold),
        "is_notified": alert.is_notified,
        "notified_at": iso(alert.notified_at),
        "is_resolved": alert.is_resolved,
        "resolved_at": iso(alert.resolved_at),
        "created_at": iso(alert.created_at),
    }


def user_dict(user: AdminUser) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "display_name": user.display_name,
        "role": user.role,
        "is_active": user.is_active,
        "created_at": iso(user.created_at),
        "last_login_at": iso(user.last_login_at),
    }


def audit_dict(entry: AuditLog) -> dict:
    return {
        "id": entry.id,
        "user_id": entry.user_id,
        "username": entry.username,
        "action": entry.action,
        "detail": entry.detail,
        "ip_address": entry.ip_address,
        "created_at": iso(entry.created_at),
    }


def line_settings_dict(row: LineOaSetting) -> dict:
    return {
        "channel_id": row.channel_id,
        "has_channel_secret": bool(row.channel_secret),
        "has_access_token": bool(row.access_token),
        "is_connected": row.is_connected,
        "auto_reply": row.auto_reply,
        "order_notification": row.order_notification,
        "promotion_notification": row.promotion_notification,
        "updated_at": iso(row.updated_at),
    }


def template_dict(template: MessageTemplate) -> dict:
    return {
        "id": template.id,
        "name": template.name,
        "type": template.type,
        "content": template.content,
        "is_active": template.is_active,
    }


def broadcast_dict(record: BroadcastHistory) -> dict:
    return {
        "id": record.id,
        "template_id": record.template_id,
        "message": record.message,
        "status": record.status,
        "sent_at": iso(record.sent_at),
    }


def line_admin_dict(admin: LineAdmin) -> dict:
    return {
        "id": admin.id,
        "line_user_id": admin.line_user_id,
        "display_name": admin.display_name,
        "picture_url": admin.picture_url,
        "status": admin.status,
        "approved_by_id": admin.approved_by_id,
        "approved_at": iso(admin.approved_at),
        "created_at": iso(admin.created_at),
    }
