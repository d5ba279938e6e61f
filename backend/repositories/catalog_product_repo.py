from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.catalog_product import ProductStatus, TcgCatalogProduct
from .base import BaseRepository


class CatalogProductRepository(BaseRepository[TcgCatalogProduct]):
    """Repository for TcgCatalogProduct entities."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_by_product_id(self, product_id: int) -> Optional[TcgCatalogProduct]:
        stmt = select(TcgCatalogProduct).where(TcgCatalogProduct.product_id == product_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, product_id: int, fields: Dict[str, Any]) -> TcgCatalogProduct:
        row = TcgCatalogProduct(product_id=product_id, **fields)
        await self.add(row)
        return row

    async def update_fields(self, row: TcgCatalogProduct, fields: Dict[str, Any]) -> TcgCatalogProduct:
        for key, value in fields.items():
            setattr(row, key, value)
        return row

    async def mark_removed_before(self, sync_timestamp: datetime) -> int:
        """Tombstone every product not touched since sync_timestamp. Returns affected row count."""
        stmt = (
            update(TcgCatalogProduct)
            .where(TcgCatalogProduct.last_synced_at < sync_timestamp)
            .where(TcgCatalogProduct.product_status != ProductStatus.REMOVED.value)
            .values(product_status=ProductStatus.REMOVED.value)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)

    async def list_by_status(self, status: str) -> List[TcgCatalogProduct]:
        stmt = (
            select(TcgCatalogProduct)
            .where(TcgCatalogProduct.product_status == status)
            .order_by(TcgCatalogProduct.product_id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
