import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, Boolean, ForeignKey, Integer, Float, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship, composite

from catalog.database import Base
from catalog.db_types import UUIDType, TimestampType


class ProductType(str, Enum):
    """Product type enumeration."""
    SIMPLE = "simple"
    CONFIGURABLE = "configurable"
    VIRTUAL = "virtual"
    DOWNLOADABLE = "downloadable"
    BUNDLE = "bundle"


# Types that never consume warehouse stock
NON_PHYSICAL_TYPES = {ProductType.VIRTUAL.value, ProductType.DOWNLOADABLE.value}


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class PricingInfo:
    """
    Price fields shared by products and variations.

    All amounts are integers in minor currency units (cents).
    The special price applies only inside its optional date window.
    """
    price: Optional[int] = None
    special_price: Optional[int] = None
    special_from: Optional[datetime] = None
    special_to: Optional[datetime] = None
    currency: Optional[str] = None

    def is_special_active(self, at: Optional[datetime] = None) -> bool:
        if self.special_price is None:
            return False
        now = _as_utc(at) or datetime.now(timezone.utc)
        start = _as_utc(self.special_from)
        end = _as_utc(self.special_to)
        if start is not None and now < start:
            return False
        if end is not None and now > end:
            return False
        return True

    def current_price(self, at: Optional[datetime] = None) -> Optional[int]:
        """Get the price in effect at the given moment."""
        if self.is_special_active(at):
            return self.special_price
        return self.price


def _pricing_columns(price_nullable: bool):
    return (
        mapped_column("price", Integer, nullable=price_nullable, default=None if price_nullable else 0),
        mapped_column("special_price", Integer, nullable=True),
        mapped_column("special_from", TimestampType, nullable=True),
        mapped_column("special_to", TimestampType, nullable=True),
        mapped_column("currency", String(3), nullable=True),
    )


class Product(Base):
    """Catalog product. Configurable products sell through their variations."""
    __tablename__ = "products"
    __table_args__ = (
        Index('ix_product_type_active', 'product_type', 'is_active'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Basic Info
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    product_type: Mapped[str] = mapped_column(
        String(20),
        default=ProductType.SIMPLE.value,
        nullable=False,
        comment="simple, configurable, virtual, downloadable, bundle"
    )

    # Pricing (minor units)
    pricing: Mapped[PricingInfo] = composite(PricingInfo, *_pricing_columns(price_nullable=False))

    # Physical
    weight: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

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

    @property
    def is_configurable(self) -> bool:
        return self.product_type == ProductType.CONFIGURABLE.value

    @property
    def is_physical(self) -> bool:
        return self.product_type not in NON_PHYSICAL_TYPES

    def current_price(self, at: Optional[datetime] = None) -> int:
        """Get the selling price, honouring an active special price."""
        return self.pricing.current_price(at) or 0

    def __repr__(self) -> str:
        return f"<Product(sku='{self.sku}', type='{self.product_type}')>"


class ProductVariation(Base):
    """Concrete sellable combination of a configurable product."""
    __tablename__ = "product_variations"
    __table_args__ = (
        Index('ix_variation_parent_active', 'parent_id', 'is_active'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    parent_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    sku: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Own pricing overrides the parent's when price is set
    pricing: Mapped[PricingInfo] = composite(PricingInfo, *_pricing_columns(price_nullable=True))
    weight: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

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
    parent: Mapped["Product"] = relationship("Product", lazy="selectin")

    def effective_price(self, at: Optional[datetime] = None) -> int:
        """Own current price, or the parent's when the variation has none."""
        if self.pricing.price is not None:
            return self.pricing.current_price(at)
        return self.parent.current_price(at)

    @property
    def effective_weight(self) -> Optional[float]:
        if self.weight is not None:
            return self.weight
        return self.parent.weight

    def __repr__(self) -> str:
        return f"<ProductVariation(sku='{self.sku}', parent_id={self.parent_id})>"


class Attribute(Base):
    """Named product attribute, e.g. color or size."""
    __tablename__ = "attributes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    code: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    options: Mapped[List["AttributeOption"]] = relationship(
        "AttributeOption",
        cascade="all, delete-orphan",
        order_by="AttributeOption.position",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Attribute(code='{self.code}')>"


class AttributeOption(Base):
    """Selectable value of an attribute, e.g. red."""
    __tablename__ = "attribute_options"
    __table_args__ = (
        UniqueConstraint("attribute_id", "value", name="uq_attribute_option_value"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    attribute_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("attributes.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    value: Mapped[str] = mapped_column(String(100), nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<AttributeOption(value='{self.value}')>"
