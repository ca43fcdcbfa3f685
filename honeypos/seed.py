from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from honeypos.constants import (
    DISCOUNT_AMOUNT,
    DISCOUNT_GIFT,
    DISCOUNT_PERCENTAGE,
    STATUS_ACTIVE,
    TEMPLATE_DAILY_REPORT,
    TEMPLATE_ORDER,
    TEMPLATE_PROMOTION,
)
from honeypos.models import Discount, MessageTemplate, Product
from honeypos.services.incentive import get_incentive_settings
from honeypos.services.line_oa import get_line_settings
from honeypos.utils import to_decimal, utcnow

logger = logging.getLogger(__name__)

PRODUCTS = [
    ("抹茶紅豆瑪德蓮", 70, "蛋糕"),
    ("芝士蛋糕", 80, "蛋糕"),
    ("草莓蛋糕", 75, "蛋糕"),
    ("檸檬塔", 65, "蛋糕"),
    ("焦糖布丁", 60, "布丁"),
    ("藍莓司康", 55, "餅乾"),
    ("杏仁餅乾", 45, "餅乾"),
    ("巧克力泡芙", 65, "泡芙"),
    ("芒果慕斯", 80, "蛋糕"),
    ("法式馬卡龍", 45, "餅乾"),
    ("香蕉蛋糕", 55, "蛋糕"),
    ("奶油可頌", 50, "餅乾"),
    ("花生酥", 40, "餅乾"),
    ("椰子塔", 60, "蛋糕"),
    ("紫薯酥", 50, "餅乾"),
]

# (name, type, value, min_purchase, is_active, description)
DISCOUNTS = [
    ("9折優惠", DISCOUNT_PERCENTAGE, 10, 0, True, "全場9折優惠"),
    ("85折優惠", DISCOUNT_PERCENTAGE, 15, 0, True, "全場85折優惠"),
    ("8折優惠", DISCOUNT_PERCENTAGE, 20, 0, True, "全場8折優惠"),
    ("75折優惠", DISCOUNT_PERCENTAGE, 25, 0, True, "全場75折優惠"),
    ("滿500折50", DISCOUNT_AMOUNT, 50, 500, True, "消費滿NT$500折NT$50"),
    ("滿1000折150", DISCOUNT_AMOUNT, 150, 1000, True, "消費滿NT$1,000折NT$150"),
    ("買5送1", DISCOUNT_GIFT, 1, 5, False, "購買5件商品贈送1件"),
]

TEMPLATES = [
    (
        "訂單確認通知",
        TEMPLATE_ORDER,
        "您的訂單 {order_number} 已確認！\n總金額：NT$ {total}\n預計完成時間：{estimated_time}",
        True,
    ),
    (
        "每日營業報表",
        TEMPLATE_DAILY_REPORT,
        "【日結報表】\n日期：{date}\n訂單數：{order_count}\n營業額：NT$ {revenue}\n實收金額：NT$ {net_revenue}",
        True,
    ),
    (
        "促銷活動通知",
        TEMPLATE_PROMOTION,
        "限時優惠活動！\n{promotion_title}\n{promotion_description}\n活動期間：{start_date} - {end_date}",
        False,
    ),
]


def seed_database(db: Session) -> bool:
    """Loads the starter catalog into an empty database. Returns False when products already exist."""
    if db.query(Product.id).first() is not None:
        logger.info("Seed skipped: products already present")
        return False

    now = utcnow()
    for position, (name, price, category) in enumerate(PRODUCTS, start=1):
        db.add(
            Product(
                name=name,
                price=to_decimal(price),
                status=STATUS_ACTIVE,
                category=category,
                is_on_promotion=False,
                sort_order=position,
                created_at=now,
            )
        )

    if db.query(Discount.id).first() is None:
        for name, discount_type, value, min_purchase, is_active, description in DISCOUNTS:
            db.add(
                Discount(
                    name=name,
                    type=discount_type,
                    value=to_decimal(value),
                    min_purchase=to_decimal(min_purchase),
                    is_active=is_active,
                    description=description,
                    created_at=now,
                )
            )

    if db.query(MessageTemplate.id).first() is None:
        for name, template_type, content, is_active in TEMPLATES:
            db.add(MessageTemplate(name=name, type=template_type, content=content, is_active=is_active))

    get_incentive_settings(db)
    db.commit()
    get_line_settings(db)
    logger.info("Seeded %d products, %d discounts, %d templates", len(PRODUCTS), len(DISCOUNTS), len(TEMPLATES))
    return True
