"""Warehouse registry: which warehouses may allocate, and in what order."""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.models.warehouse import Warehouse
from catalog.repositories.inventory_repository import InventoryRepository


class WarehouseRegistry:
    """
    Read-only view of warehouse reference data.

    Allocation order is priority ascending (lower is preferred). Equal
    priorities are ordered by creation time, then by code.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = InventoryRepository(db)

    async def list_active(self) -> List[Warehouse]:
        return await self.repository.find_active_warehouses_by_priority()

    async def get_by_code(self, code: str) -> Optional[Warehouse]:
        result = await self.db.execute(
            select(Warehouse).where(Warehouse.code == code)
        )
        return result.scalar_one_or_none()
