"""Persistence access for inventory records and warehouses."""
import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional, Union

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.models.inventory import InventoryRecord
from catalog.models.product import Product, ProductVariation
from catalog.models.warehouse import Warehouse

logger = logging.getLogger(__name__)

SellableItem = Union[Product, ProductVariation]

# Deterministic allocation order; ties on priority fall back to creation order, then code
WAREHOUSE_ORDER = (Warehouse.priority.asc(), Warehouse.created_at.asc(), Warehouse.code.asc())


@dataclass(frozen=True)
class ItemRef:
    """
    Detached identity of a sellable item.

    Services capture it up front so a session rollback (which expires
    ORM instances) never forces a reload of the item mid-operation.
    """
    id: uuid.UUID
    is_variation: bool
    label: str

    @classmethod
    def of(cls, item: Union[SellableItem, "ItemRef"]) -> "ItemRef":
        if isinstance(item, ItemRef):
            return item
        return cls(id=item.id, is_variation=isinstance(item, ProductVariation), label=item.sku)


def item_clause(item: Union[SellableItem, ItemRef]):
    """WHERE clause selecting the records of a product or a variation."""
    ref = ItemRef.of(item)
    if ref.is_variation:
        return InventoryRecord.variation_id == ref.id
    return InventoryRecord.product_id == ref.id


class InventoryRepository:
    """Reads and writes InventoryRecord rows. Callers own the transaction."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_inventory(
        self,
        item: Union[SellableItem, ItemRef],
        warehouse_id: uuid.UUID,
    ) -> Optional[InventoryRecord]:
        """Get the record for an (item, warehouse) pair if it exists."""
        result = await self.db.execute(
            select(InventoryRecord)
            .where(
                and_(
                    item_clause(item),
                    InventoryRecord.warehouse_id == warehouse_id,
                )
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_for_item(
        self,
        item: Union[SellableItem, ItemRef],
        active_only: bool = False,
        for_update: bool = False,
    ) -> List[InventoryRecord]:
        """
        Get all records of an item in warehouse allocation order.

        With for_update the rows are locked (SELECT ... FOR UPDATE) and
        any stale copies already in the session are refreshed.
        """
        stmt = (
            select(InventoryRecord)
            .join(Warehouse, InventoryRecord.warehouse_id == Warehouse.id)
            .where(item_clause(item))
            .order_by(*WAREHOUSE_ORDER)
        )
        if active_only:
            stmt = stmt.where(Warehouse.is_active == True)  # noqa: E712
        if for_update:
            stmt = stmt.with_for_update(of=InventoryRecord).execution_options(populate_existing=True)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_for_variations(self, variation_ids: List[uuid.UUID]) -> List[InventoryRecord]:
        if not variation_ids:
            return []
        result = await self.db.execute(
            select(InventoryRecord).where(InventoryRecord.variation_id.in_(variation_ids))
        )
        return list(result.scalars().all())

    async def find_active_warehouses_by_priority(self) -> List[Warehouse]:
        result = await self.db.execute(
            select(Warehouse)
            .where(Warehouse.is_active == True)  # noqa: E712
            .order_by(*WAREHOUSE_ORDER)
        )
        return list(result.scalars().all())

    async def find_low_stock(self, warehouse_id: Optional[uuid.UUID] = None) -> List[InventoryRecord]:
        """Records with a threshold where 0 < quantity <= threshold."""
        stmt = (
            select(InventoryRecord)
            .join(Warehouse, InventoryRecord.warehouse_id == Warehouse.id)
            .where(
                and_(
                    InventoryRecord.low_stock_threshold.is_not(None),
                    InventoryRecord.quantity > 0,
                    InventoryRecord.quantity <= InventoryRecord.low_stock_threshold,
                )
            )
            .order_by(*WAREHOUSE_ORDER, InventoryRecord.quantity.asc())
        )
        if warehouse_id is not None:
            stmt = stmt.where(InventoryRecord.warehouse_id == warehouse_id)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    def new_record(self, item: Union[SellableItem, ItemRef], warehouse_id: uuid.UUID) -> InventoryRecord:
        """Build an empty record (quantity 0, out of stock) and add it to the session."""
        ref = ItemRef.of(item)
        record = InventoryRecord(
            warehouse_id=warehouse_id,
            quantity=0,
            reserved=0,
            backorders_allowed=False,
        )
        if ref.is_variation:
            record.variation_id = ref.id
        else:
            record.product_id = ref.id
        self.db.add(record)
        logger.debug(f"New inventory record for {ref.label} in warehouse {warehouse_id}")
        return record

    async def save(self, record: InventoryRecord) -> InventoryRecord:
        """Flush a record so constraint and version errors surface immediately."""
        self.db.add(record)
        await self.db.flush()
        return record
