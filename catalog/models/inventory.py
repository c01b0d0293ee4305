"""Per-warehouse stock counters for sellable items."""
import uuid
from datetime import datetime, timezone, date
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, ForeignKey, Integer, Date, UniqueConstraint, CheckConstraint, case
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Mapped, mapped_column, relationship

from catalog.database import Base
from catalog.db_types import UUIDType, TimestampType
from catalog.models.warehouse import Warehouse


class InventoryStatus(str, Enum):
    """Inventory status enum. Only the first three are ever derived from counters."""
    IN_STOCK = "in_stock"
    OUT_OF_STOCK = "out_of_stock"
    BACKORDER = "backorder"
    RESERVED = "reserved"
    DISCONTINUED = "discontinued"


def derive_status(quantity: Optional[int], backorders_allowed: Optional[bool]) -> str:
    """Status as a pure function of the on-hand count and backorder flag."""
    if (quantity or 0) > 0:
        return InventoryStatus.IN_STOCK.value
    if backorders_allowed:
        return InventoryStatus.BACKORDER.value
    return InventoryStatus.OUT_OF_STOCK.value


class InventoryRecord(Base):
    """
    Stock counters for one sellable item in one warehouse.

    A record belongs to either a simple product or a product variation,
    never both. `quantity` and `reserved` are written only by the
    inventory service; status is derived from them on read.
    """

    __tablename__ = "inventory_records"
    __table_args__ = (
        UniqueConstraint("product_id", "warehouse_id", name="uq_inventory_product_warehouse"),
        UniqueConstraint("variation_id", "warehouse_id", name="uq_inventory_variation_warehouse"),
        CheckConstraint(
            "(product_id IS NULL) <> (variation_id IS NULL)",
            name="ck_inventory_single_item"
        ),
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
        CheckConstraint("reserved >= 0", name="ck_inventory_reserved_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Sellable item (exactly one is set)
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )
    variation_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("product_variations.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )
    warehouse_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("warehouses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Stock levels
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reserved: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Settings
    backorders_allowed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    low_stock_threshold: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Location / batch
    shelf_location: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    batch_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Optimistic locking
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        TimestampType,
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TimestampType,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    warehouse: Mapped["Warehouse"] = relationship("Warehouse", lazy="selectin")

    __mapper_args__ = {"version_id_col": version_id}

    @hybrid_property
    def status(self) -> str:
        return derive_status(self.quantity, self.backorders_allowed)

    @status.inplace.expression
    @classmethod
    def _status_expression(cls):
        return case(
            (cls.quantity > 0, InventoryStatus.IN_STOCK.value),
            (cls.backorders_allowed.is_(True), InventoryStatus.BACKORDER.value),
            else_=InventoryStatus.OUT_OF_STOCK.value,
        )

    @property
    def available(self) -> int:
        """Units that can still be reserved without a backorder."""
        return max(0, (self.quantity or 0) - (self.reserved or 0))

    @property
    def is_low_stock(self) -> bool:
        """On hand but at or below the configured threshold."""
        if self.low_stock_threshold is None:
            return False
        return 0 < (self.quantity or 0) <= self.low_stock_threshold

    @property
    def has_stock(self) -> bool:
        return self.available > 0

    def __repr__(self) -> str:
        item = f"variation_id={self.variation_id}" if self.variation_id else f"product_id={self.product_id}"
        return (
            f"<InventoryRecord({item}, warehouse_id={self.warehouse_id}, "
            f"quantity={self.quantity}, reserved={self.reserved})>"
        )
