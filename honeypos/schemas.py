from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AddonDraft(BaseModel):
    product_id: Optional[int] = None
    product_name: str
    price: float = Field(ge=0)


class OrderItemDraft(BaseModel):
    product_id: Optional[int] = None
    product_name: str
    price: float = Field(ge=0)
    quantity: int = Field(ge=1)
    is_gift: bool = False
    original_price: Optional[float] = Field(default=None, ge=0)
    item_discount_label: Optional[str] = None
    addons: list[AddonDraft] = Field(default_factory=list)


class OrderDraft(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "device_id": "pos-01",
                "timestamp": "2026-10-18T10:15:00Z",
                "payment_method": "cash",
                "discount_type": "percentage",
                "discount_value": 10,
                "customer_tag": "女,學生",
                "items": [
                    {
                        "product_id": 1,
                        "product_name": "抹茶紅豆瑪德蓮",
                        "price": 70,
                        "quantity": 2,
                        "addons": [{"product_id": 14, "product_name": "珍珠", "price": 10}],
                    }
                ],
            }
        }
    }
    device_id: Optional[str] = None
    local_id: Optional[str] = None
    shift_id: Optional[int] = None
    order_number: Optional[str] = None
    daily_sequence: Optional[int] = Field(default=None, ge=1)
    timestamp: Optional[datetime] = None
    status: str = "completed"
    payment_method: str = "cash"
    customer_tag: Optional[str] = None
    discount_type: Optional[str] = None
    discount_value: Optional[float] = None
    discount_amount: Optional[float] = None
    subtotal: Optional[float] = None
    total: Optional[float] = None
    items: list[OrderItemDraft] = Field(min_length=1)
