from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from honeypos.db import Base

ID_TYPE = BigInteger().with_variant(Integer, "sqlite")
MONEY = Numeric(10, 2)
QUANTITY = Numeric(10, 2)


class AdminUser(Base):
    __tablename__ = "admin_user"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    display_name: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(Text, nullable=False, default="pos_user")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime)


class AuditLog(Base):
    __tablename__ = "audit_log"
    __table_args__ = (Index("ix_audit_log_created_at", "created_at"),)

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("admin_user.id"))
    username: Mapped[str] = mapped_column(Text, nullable=False)
    action: Mapped[str] = mapped_column(Text, nullable=False)
    detail: Mapped[str | None] = mapped_column(Text)
    ip_address: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class Product(Base):
    __tablename__ = "product"
    __table_args__ = (CheckConstraint("price >= 0", name="ck_product_price_non_negative"),)

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active")
    is_on_promotion: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    promotion_price: Mapped[Decimal | None] = mapped_column(MONEY)
    category: Mapped[str | None] = mapped_column(Text)
    card_color: Mapped[str | None] = mapped_column(Text)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime)


class Shift(Base):
    __tablename__ = "shift"
    __table_args__ = (Index("ix_shift_device_status", "device_id", "status"),)

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    device_id: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="open")
    opened_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime)
    total_orders: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_revenue: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    total_discount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    net_revenue: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    settlement_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("daily_settlement.id")
    )


class Order(Base):
    __tablename__ = "pos_order"
    __table_args__ = (
        UniqueConstraint("business_date", "daily_sequence", name="uq_order_business_date_sequence"),
        Index("ix_order_timestamp", "timestamp"),
        Index("ix_order_device_timestamp", "device_id", "timestamp"),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    order_number: Mapped[str] = mapped_column(Text, nullable=False)
    business_date: Mapped[date] = mapped_column(Date, nullable=False)
    daily_sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    device_id: Mapped[str | None] = mapped_column(Text)
    local_id: Mapped[str | None] = mapped_column(Text)
    subtotal: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    discount_type: Mapped[str | None] = mapped_column(Text)
    discount_value: Mapped[Decimal | None] = mapped_column(MONEY)
    discount_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    item_discount_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    total: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="completed")
    payment_method: Mapped[str] = mapped_column(Text, nullable=False, default="cash")
    customer_tag: Mapped[str | None] = mapped_column(Text)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime)
    shift_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("shift.id"))


class OrderItem(Base):
    __tablename__ = "order_item"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("pos_order.id"), nullable=False, index=True
    )
    product_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("product.id"))
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    is_gift: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    original_price: Mapped[Decimal | None] = mapped_column(MONEY)
    item_discount_label: Mapped[str | None] = mapped_column(Text)


class OrderItemAddon(Base):
    __tablename__ = "order_item_addon"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    order_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("order_item.id"), nullable=False, index=True
    )
    product_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("product.id"))
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)


class DailySettlement(Base):
    __tablename__ = "daily_settlement"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    business_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    device_id: Mapped[str | None] = mapped_column(Text)
    total_orders: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_revenue: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    total_discount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    net_revenue: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    incentive_target: Mapped[int | None] = mapped_column(Integer)
    incentive_items_sold: Mapped[int | None] = mapped_column(Integer)
    incentive_achieved: Mapped[bool | None] = mapped_column(Boolean)
    submitted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class InventoryCount(Base):
    __tablename__ = "inventory_count"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    settlement_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("daily_settlement.id"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("product.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)


class Discount(Base):
    __tablename__ = "discount"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    value: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    min_purchase: Mapped[Decimal | None] = mapped_column(MONEY)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class IncentiveSetting(Base):
    __tablename__ = "incentive_setting"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    daily_target: Mapped[int] = mapped_column(Integer, nullable=False, default=125)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class Material(Base):
    __tablename__ = "material"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    unit: Mapped[str] = mapped_column(Text, nullable=False)
    current_stock: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False, default=0)
    alert_threshold: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False, default=0)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active")
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime)


class ProductRecipe(Base):
    __tablename__ = "product_recipe"
    __table_args__ = (
        UniqueConstraint("product_id", "material_id", name="uq_recipe_product_material"),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("product.id"), nullable=False, index=True
    )
    material_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("material.id"), nullable=False, index=True
    )
    quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class MaterialStockRecord(Base):
    __tablename__ = "material_stock_record"
    __table_args__ = (Index("ix_stock_record_material_created", "material_id", "created_at"),)

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    material_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("material.id"), nullable=False
    )
    change_type: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    stock_before: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    stock_after: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    order_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("pos_order.id"))
    note: Mapped[str | None] = mapped_column(Text)
    operator_id: Mapped[int | None] = mapped_column(BigInteger)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class MaterialAlert(Base):
    __tablename__ = "material_alert"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    material_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("material.id"), nullable=False, index=True
    )
    stock_level: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    alert_threshold: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    is_notified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notified_at: Mapped[datetime | None] = mapped_column(DateTime)
    is_resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class LineOaSetting(Base):
    __tablename__ = "line_oa_setting"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    channel_id: Mapped[str] = mapped_column(Text, nullable=False, default="")
    channel_secret: Mapped[str] = mapped_column(Text, nullable=False, default="")
    access_token: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_connected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    auto_reply: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    order_notification: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    promotion_notification: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime)


class MessageTemplate(Base):
    __tablename__ = "message_template"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class BroadcastHistory(Base):
    __tablename__ = "broadcast_history"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    template_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("message_template.id"))
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class LineAdmin(Base):
    __tablename__ = "line_admin"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    line_user_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(Text, nullable=False)
    picture_url: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    approved_by_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("admin_user.id"))
    approved_at: Mapped[datetime | None] = mapped_column(DateTime)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
