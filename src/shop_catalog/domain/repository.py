# src/shop_catalog/domain/repository.py
"""CatalogReader Protocol — the price/availability lookup consumed by checkout."""
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.shop_catalog.domain.models import ProductSnapshot


class CatalogReaderProtocol(Protocol):
    async def get_products(
        self, product_ids: list[str], db: AsyncSession
    ) -> dict[str, ProductSnapshot]: ...
