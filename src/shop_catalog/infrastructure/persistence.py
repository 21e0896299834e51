# src/shop_catalog/infrastructure/persistence.py
"""CatalogReader — raw SQL lookups against the products table."""
from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.shop_catalog.domain.models import ProductSnapshot

_GET_PRODUCTS_SQL = text("""
    SELECT id, name, price, stock, is_active
    FROM products
    WHERE id = ANY(CAST(:ids AS VARCHAR[]))
""")


def _row_to_product(row: Any) -> ProductSnapshot:
    return ProductSnapshot(
        id=row.id,
        name=row.name,
        unit_price=Decimal(row.price),
        stock=row.stock,
        is_active=row.is_active,
    )


class CatalogReader:
    """Concrete implementation of CatalogReaderProtocol using raw SQL."""

    async def get_products(
        self, product_ids: list[str], db: AsyncSession
    ) -> dict[str, ProductSnapshot]:
        if not product_ids:
            return {}
        result = await db.execute(_GET_PRODUCTS_SQL, {"ids": list(set(product_ids))})
        return {row.id: _row_to_product(row) for row in result.fetchall()}
