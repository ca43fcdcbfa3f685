from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from honeypos.constants import ADDON_CATEGORY, STATUS_ACTIVE
from honeypos.errors import BusinessRuleError, NotFoundError
from honeypos.models import Material, Product, ProductRecipe
from honeypos.utils import to_decimal, utcnow

logger = logging.getLogger(__name__)


def recipes_for_product(db: Session, product_id: int) -> list[tuple[ProductRecipe, Material]]:
    return (
        db.query(ProductRecipe, Material)
        .join(Material, Material.id == ProductRecipe.material_id)
        .filter(ProductRecipe.product_id == product_id)
        .order_by(Material.name)
        .all()
    )


def replace_recipes(db: Session, product_id: int, rows: Iterable[tuple[int, float]]) -> list[str]:
    """Replaces every recipe row of a product with ``(material_id, quantity)`` pairs.

    Unknown materials are skipped; their ids come back as warnings.
    """
    if db.get(Product, product_id) is None:
        raise NotFoundError("product not found")
    rows = list(rows)
    if any(quantity <= 0 for _, quantity in rows):
        raise BusinessRuleError("recipe quantity must be positive")

    db.query(ProductRecipe).filter(ProductRecipe.product_id == product_id).delete()
    warnings: list[str] = []
    seen: set[int] = set()
    for material_id, quantity in rows:
        if material_id in seen:
            warnings.append(f"duplicate_material:{material_id}")
            continue
        if db.get(Material, material_id) is None:
            logger.warning("Recipe for product %s skips unknown material %s", product_id, material_id)
            warnings.append(f"material_not_found:{material_id}")
            continue
        seen.add(material_id)
        db.add(
            ProductRecipe(
                product_id=product_id,
                material_id=material_id,
                quantity=to_decimal(quantity),
                created_at=utcnow(),
            )
        )
    db.commit()
    logger.info("Recipes updated for product %s: %d materials", product_id, len(seen))
    return warnings


def products_with_recipes(db: Session) -> list[tuple[Product, int]]:
    products = (
        db.query(Product)
        .filter(Product.status == STATUS_ACTIVE)
        .filter((Product.category.is_(None)) | (Product.category != ADDON_CATEGORY))
        .order_by(Product.sort_order, Product.id)
        .all()
    )
    counts = dict(
        db.query(ProductRecipe.product_id, func.count(ProductRecipe.id))
        .group_by(ProductRecipe.product_id)
        .all()
    )
    return [(product, counts.get(product.id, 0)) for product in products]
