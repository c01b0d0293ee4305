"""
Inventory Ledger & Reservation Service.

Tracks stock of simple products and product variations across
warehouses and reserves it in warehouse priority order:

1. get_stock()  - aggregate counters of an item over all warehouses
2. update_stock() - administrative overwrite of on-hand quantity
3. reserve() / release() - provisional holds, all-or-nothing per call

Counters are only ever written here. Every mutating call is one
all-or-nothing unit inside the caller's transaction (or its own when
the session is idle); lock conflicts are retried a bounded number of times.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, TypeVar, Union

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from catalog.config import settings
from catalog.models.inventory import InventoryRecord, InventoryStatus
from catalog.models.product import Product, ProductVariation
from catalog.models.warehouse import Warehouse
from catalog.repositories.configuration_repository import ConfigurationRepository
from catalog.repositories.inventory_repository import InventoryRepository, ItemRef, SellableItem
from catalog.schemas.inventory import (
    InventoryRecordResponse,
    InventorySettingsUpdate,
    StockSummary,
    WarehouseStock,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected, lock_not_available
LOCK_CONFLICT_SQLSTATES = {"40001", "40P01", "55P03"}


class InventoryError(Exception):
    """Base error for inventory operations."""
    pass


class InvalidQuantityError(InventoryError, ValueError):
    """Quantity outside the accepted range."""
    pass


class UnsupportedItemError(InventoryError):
    """Stock cannot be held against this kind of item."""
    pass


class InventoryPersistenceError(InventoryError):
    """The store failed; no partial changes were kept."""
    pass


class ConcurrencyConflictError(InventoryPersistenceError):
    """Concurrent writers kept winning until retries ran out."""
    pass


@dataclass
class AllocationLine:
    """Planned reservation against one record."""
    record: InventoryRecord
    quantity: int
    backordered: int = 0


class InventoryService:
    """
    Ledger over InventoryRecord counters.

    Mutations commit only when the session was idle on entry. With work
    already pending, they run in a SAVEPOINT and leave the commit to the
    caller; a failed call never discards the caller's own changes.
    """

    def __init__(
        self,
        db: AsyncSession,
        max_retries: Optional[int] = None,
        retry_backoff: Optional[float] = None,
    ):
        self.db = db
        self.repository = InventoryRepository(db)
        self.max_retries = max_retries or settings.RESERVATION_MAX_RETRIES
        self.retry_backoff = settings.RESERVATION_RETRY_BACKOFF if retry_backoff is None else retry_backoff

    # ==================== STOCK QUERIES ====================

    async def get_stock(self, item: Union[SellableItem, ItemRef]) -> StockSummary:
        """
        Aggregate stock of an item across all warehouses.

        Inactive warehouses are included in the totals; they are only
        skipped when allocating.
        """
        records = await self.repository.find_for_item(item)
        return summarize_records(records)

    async def is_in_stock(self, item: SellableItem) -> bool:
        """
        Check if an item can be sold right now.

        - virtual/downloadable: available whenever active
        - configurable: any active variation has stock or takes backorders
        - otherwise: has stock, or some warehouse takes backorders
        """
        if isinstance(item, Product):
            if not item.is_physical:
                return item.is_active
            if item.is_configurable:
                return await self._any_variation_in_stock(item)

        summary = await self.get_stock(item)
        return summary.has_stock or summary.backorders_allowed

    async def _any_variation_in_stock(self, product: Product) -> bool:
        variations = await ConfigurationRepository(self.db).find_variations_for(product, active_only=True)
        records = await self.repository.find_for_variations([v.id for v in variations])

        by_variation = {}
        for record in records:
            by_variation.setdefault(record.variation_id, []).append(record)

        for variation in variations:
            summary = summarize_records(by_variation.get(variation.id, []))
            if summary.has_stock or summary.backorders_allowed:
                return True
        return False

    async def get_record_payloads(self, item: Union[SellableItem, ItemRef]) -> List[InventoryRecordResponse]:
        """Per-warehouse admin payloads for an item."""
        records = await self.repository.find_for_item(item)
        return [InventoryRecordResponse.from_record(r) for r in records]

    async def list_low_stock(self, warehouse: Optional[Warehouse] = None) -> List[InventoryRecord]:
        """Records that are on hand but at or below their threshold."""
        warehouse_id = warehouse.id if warehouse is not None else None
        return await self.repository.find_low_stock(warehouse_id)

    # ==================== ADMINISTRATIVE UPDATES ====================

    async def update_stock(
        self,
        item: SellableItem,
        warehouse: Warehouse,
        quantity: int,
    ) -> InventoryRecord:
        """
        Overwrite the on-hand quantity of an item in a warehouse.

        Creates the record when absent. Reserved units are left as they are.

        Raises:
            InvalidQuantityError: quantity is negative
            UnsupportedItemError: item is a configurable product
        """
        if quantity is None or quantity < 0:
            raise InvalidQuantityError(f"Stock quantity must be zero or positive, got {quantity}")
        self._ensure_stockable(item)

        ref = ItemRef.of(item)
        warehouse_id = warehouse.id
        previous = {}

        async def attempt() -> InventoryRecord:
            record = await self.repository.find_inventory(ref, warehouse_id)
            if record is None:
                record = self.repository.new_record(ref, warehouse_id)
            previous["quantity"] = record.quantity
            record.quantity = quantity
            await self.repository.save(record)
            await self.db.refresh(record, ["warehouse"])
            return record

        record = await self._run_with_retry(attempt, f"update stock of {ref.label}")
        logger.info(
            f"Stock of {ref.label} in warehouse {record.warehouse.code} set "
            f"{previous['quantity']} -> {quantity} (status {record.status})"
        )
        return record

    async def update_record_settings(
        self,
        item: SellableItem,
        warehouse: Warehouse,
        data: InventorySettingsUpdate,
    ) -> InventoryRecord:
        """Update backorder, threshold and location fields of a record, creating it when absent."""
        self._ensure_stockable(item)

        ref = ItemRef.of(item)
        warehouse_id = warehouse.id
        update_data = data.get_update_data()
        if update_data.get("backorders_allowed", False) is None:
            raise ValueError("backorders_allowed cannot be cleared")

        async def attempt() -> InventoryRecord:
            record = await self.repository.find_inventory(ref, warehouse_id)
            if record is None:
                record = self.repository.new_record(ref, warehouse_id)
            for field, value in update_data.items():
                setattr(record, field, value)
            await self.repository.save(record)
            await self.db.refresh(record, ["warehouse"])
            return record

        record = await self._run_with_retry(attempt, f"update inventory settings of {ref.label}")
        logger.info(f"Inventory settings of {ref.label} in warehouse {record.warehouse.code} updated: {update_data}")
        return record

    # ==================== RESERVATIONS ====================

    async def reserve(self, item: SellableItem, quantity: int) -> bool:
        """
        Reserve quantity units across active warehouses, all or nothing.

        Returns False when the stock cannot cover the request, the quantity
        is not positive, or the item is a configurable product.

        Raises:
            InventoryPersistenceError: the store failed (nothing was reserved)
            ConcurrencyConflictError: conflicts persisted through every retry
        """
        if quantity is None or quantity <= 0:
            logger.warning(f"Rejected reservation of non-positive quantity {quantity}")
            return False
        if isinstance(item, Product) and item.is_configurable:
            logger.warning(f"Rejected reservation on configurable product {item.sku}; reserve a variation")
            return False

        ref = ItemRef.of(item)

        async def attempt() -> Optional[List[AllocationLine]]:
            records = await self.repository.find_for_item(ref, active_only=True, for_update=True)
            plan = plan_reservation(records, quantity)
            if plan is None:
                logger.warning(
                    f"Insufficient stock to reserve {quantity} of {ref.label} "
                    f"(available {sum(r.available for r in records)}, no backorder warehouse)"
                )
                return None

            for line in plan:
                line.record.reserved += line.quantity
                await self.repository.save(line.record)
            return plan

        plan = await self._run_with_retry(attempt, f"reserve {quantity} of {ref.label}")
        if plan is None:
            return False

        allocation = ", ".join(
            f"{line.record.warehouse.code}={line.quantity}"
            + (f" (backorder {line.backordered})" if line.backordered else "")
            for line in plan
        )
        logger.info(f"Reserved {quantity} of {ref.label}: {allocation}")
        return True

    async def release(self, item: SellableItem, quantity: int) -> bool:
        """
        Release previously reserved units.

        Warehouses are relieved in reverse priority order, so backorders
        held at less preferred warehouses are released first. Releasing
        more than is reserved caps at the reserved total. Returns False
        when the quantity is not positive or nothing is reserved.
        """
        if quantity is None or quantity <= 0:
            logger.warning(f"Rejected release of non-positive quantity {quantity}")
            return False

        ref = ItemRef.of(item)

        async def attempt() -> int:
            records = await self.repository.find_for_item(ref, for_update=True)
            remaining = quantity
            for record in reversed(records):
                if remaining <= 0:
                    break
                take = min(record.reserved, remaining)
                if take > 0:
                    record.reserved -= take
                    remaining -= take
                    await self.repository.save(record)
            return quantity - remaining

        released = await self._run_with_retry(attempt, f"release {quantity} of {ref.label}")

        if released == 0:
            logger.warning(f"Nothing reserved for {ref.label}; release of {quantity} ignored")
            return False
        if released < quantity:
            logger.warning(f"Release of {quantity} of {ref.label} capped; only {released} were reserved")
        else:
            logger.info(f"Released {quantity} of {ref.label}")
        return True

    # ==================== HELPERS ====================

    def _ensure_stockable(self, item: SellableItem) -> None:
        if isinstance(item, Product) and item.is_configurable:
            raise UnsupportedItemError(
                f"Product {item.sku} is configurable; stock is held by its variations"
            )
        if not isinstance(item, (Product, ProductVariation)):
            raise UnsupportedItemError(f"Cannot hold stock against {item!r}")

    def _caller_owns_transaction(self) -> bool:
        """True when the session already carries work the caller has not committed."""
        db = self.db
        return db.in_transaction() or bool(db.new or db.dirty or db.deleted)

    async def _run_with_retry(self, operation: Callable[[], Awaitable[T]], action: str) -> T:
        """
        Run one attempt as an all-or-nothing unit, retrying on lock conflicts.

        When the session is idle the service owns the transaction: it commits
        on success and rolls back on failure. Otherwise each attempt runs in a
        SAVEPOINT, so a failure discards only this call's changes and the
        caller decides when to commit.
        """
        caller_owned = self._caller_owns_transaction()

        for attempt in range(1, self.max_retries + 1):
            try:
                if caller_owned:
                    async with self.db.begin_nested():
                        return await operation()
                result = await operation()
                await self.db.commit()
                return result
            except SQLAlchemyError as e:
                if not caller_owned:
                    await self.db.rollback()
                if not is_lock_conflict(e):
                    logger.error(f"Persistence failure during {action}: {e}")
                    raise InventoryPersistenceError(f"Unable to {action}: {e}") from e
                if attempt == self.max_retries:
                    logger.error(f"Giving up on {action} after {attempt} attempts: {e}")
                    raise ConcurrencyConflictError(
                        f"Unable to {action} after {attempt} attempts"
                    ) from e
                logger.warning(f"Concurrency conflict on {action} (attempt {attempt}), retrying...")
                await asyncio.sleep(self.retry_backoff * attempt)

        raise ConcurrencyConflictError(f"Unable to {action}")


# ==================== PURE HELPERS ====================

def is_lock_conflict(error: SQLAlchemyError) -> bool:
    """
    Whether a failure is a lost race that a fresh attempt may win.

    Covers stale version counters, PostgreSQL serialization, deadlock and
    lock-timeout errors, and SQLite's busy database. Anything else (a
    refused connection, a constraint violation) is not retried.
    """
    if isinstance(error, StaleDataError):
        return True
    if not isinstance(error, OperationalError):
        return False
    if getattr(error.orig, "sqlstate", None) in LOCK_CONFLICT_SQLSTATES:
        return True
    message = str(error.orig).lower()
    return "database is locked" in message or "database table is locked" in message


def plan_reservation(records: List[InventoryRecord], quantity: int) -> Optional[List[AllocationLine]]:
    """
    Plan a reservation over records already in allocation order.

    Each warehouse gives min(available, remaining). A warehouse that is
    exhausted while units remain and that allows backorders absorbs the
    whole remainder, ending the scan. Returns None when the request
    cannot be covered; nothing is mutated either way.
    """
    remaining = quantity
    plan: List[AllocationLine] = []

    for record in records:
        if remaining <= 0:
            break
        take = min(record.available, remaining)
        remaining -= take
        backordered = 0
        if remaining > 0 and record.backorders_allowed:
            backordered = remaining
            remaining = 0
        if take + backordered > 0:
            plan.append(AllocationLine(record=record, quantity=take + backordered, backordered=backordered))

    if remaining > 0:
        return None
    return plan


def summarize_records(records: List[InventoryRecord]) -> StockSummary:
    """
    Fold per-warehouse records into a StockSummary.

    Overall status favours the most optimistic record: in_stock when any
    record has units available, else backorder when any record takes
    backorders, else out_of_stock.
    """
    total = sum(r.quantity for r in records)
    available = sum(r.available for r in records)
    reserved = sum(r.reserved for r in records)
    backorders = any(r.backorders_allowed for r in records)

    if any(r.available > 0 and r.status == InventoryStatus.IN_STOCK.value for r in records):
        status = InventoryStatus.IN_STOCK.value
    elif backorders:
        status = InventoryStatus.BACKORDER.value
    else:
        status = InventoryStatus.OUT_OF_STOCK.value

    return StockSummary(
        total_quantity=total,
        available_quantity=available,
        reserved_quantity=reserved,
        per_warehouse=[WarehouseStock.from_record(r) for r in records],
        has_stock=available > 0,
        backorders_allowed=backorders,
        status=status,
    )
