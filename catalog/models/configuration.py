"""Configurable option graph: options, their values, and the rules attached to them."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional, List

from sqlalchemy import (
    String, Boolean, ForeignKey, Integer, Float, Text, Table, Column, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from catalog.database import Base
from catalog.db_types import UUIDType, TimestampType
from catalog.models.product import Attribute, AttributeOption, ProductVariation


class OptionInputType(str, Enum):
    """How the option is presented to the shopper."""
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    COLOR = "color"
    SWATCH = "swatch"
    TEXT = "text"
    DATE = "date"
    FILE = "file"


class PriceType(str, Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


class RuleType(str, Enum):
    """Configuration rule type enumeration."""
    DEPENDENCY = "dependency"
    EXCLUSION = "exclusion"
    REQUIREMENT = "requirement"
    PRICE_ADJUSTMENT = "price_adjustment"
    WEIGHT_ADJUSTMENT = "weight_adjustment"
    VALIDATION = "validation"
    CUSTOM = "custom"


# Rules that contribute to price/weight instead of validity
ADJUSTMENT_RULE_TYPES = {RuleType.PRICE_ADJUSTMENT.value, RuleType.WEIGHT_ADJUSTMENT.value}


option_value_variations = Table(
    "configurable_option_value_variations",
    Base.metadata,
    Column(
        "option_value_id",
        UUIDType,
        ForeignKey("configurable_option_values.id", ondelete="CASCADE"),
        primary_key=True
    ),
    Column(
        "variation_id",
        UUIDType,
        ForeignKey("product_variations.id", ondelete="CASCADE"),
        primary_key=True
    ),
)


class ConfigurableOption(Base):
    """One selectable axis (attribute) of a configurable product."""
    __tablename__ = "configurable_options"
    __table_args__ = (
        UniqueConstraint("product_id", "attribute_id", name="uq_configurable_option_product_attribute"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    attribute_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("attributes.id", ondelete="CASCADE"),
        nullable=False
    )
    input_type: Mapped[str] = mapped_column(
        String(20),
        default=OptionInputType.SELECT.value,
        nullable=False,
        comment="select, radio, checkbox, color, swatch, text, date, file"
    )
    is_required: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TimestampType,
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Owned collections (no back-pointers; children carry option_id only)
    attribute: Mapped["Attribute"] = relationship("Attribute", lazy="selectin")
    values: Mapped[List["ConfigurableOptionValue"]] = relationship(
        "ConfigurableOptionValue",
        cascade="all, delete-orphan",
        order_by="ConfigurableOptionValue.position",
        lazy="selectin"
    )

    @property
    def code(self) -> str:
        """Option code is the attribute code, e.g. 'color'."""
        return self.attribute.code

    def value_by_code(self, code: str) -> Optional["ConfigurableOptionValue"]:
        for value in self.values:
            if value.code == code:
                return value
        return None

    def __repr__(self) -> str:
        return f"<ConfigurableOption(product_id={self.product_id}, attribute_id={self.attribute_id})>"


class ConfigurableOptionValue(Base):
    """A choosable value of an option, with its price and weight adjustments."""
    __tablename__ = "configurable_option_values"
    __table_args__ = (
        UniqueConstraint("option_id", "attribute_option_id", name="uq_option_value_attribute_option"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    option_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("configurable_options.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    attribute_option_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("attribute_options.id", ondelete="CASCADE"),
        nullable=False
    )

    # Adjustments
    price_adjustment: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # Minor units or percent
    price_type: Mapped[str] = mapped_column(
        String(20),
        default=PriceType.FIXED.value,
        nullable=False,
        comment="fixed, percentage"
    )
    weight_adjustment: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Relationships
    attribute_option: Mapped["AttributeOption"] = relationship("AttributeOption", lazy="selectin")
    variations: Mapped[List["ProductVariation"]] = relationship(
        "ProductVariation",
        secondary=option_value_variations,
        lazy="selectin"
    )

    @property
    def code(self) -> str:
        """Value code is the attribute option value, e.g. 'red'."""
        return self.attribute_option.value

    @property
    def label(self) -> str:
        return self.attribute_option.label

    def calculate_price_adjustment(self, base_price: int) -> int:
        """
        Price delta in minor units for this value.

        Percentages are always taken from the base price passed in, so
        several selected values never compound. Halves round away from zero.
        """
        if self.price_adjustment is None:
            return 0
        if self.price_type == PriceType.PERCENTAGE.value:
            delta = Decimal(base_price * self.price_adjustment) / 100
            return int(delta.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return self.price_adjustment

    def __repr__(self) -> str:
        return f"<ConfigurableOptionValue(option_id={self.option_id}, price_adjustment={self.price_adjustment})>"


class ConfigurationRule(Base):
    """Constraint or adjustment triggered by an option (or one of its values)."""
    __tablename__ = "configuration_rules"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    option_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("configurable_options.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    # Null means the rule fires whenever the option is selected
    value_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("configurable_option_values.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )
    rule_type: Mapped[str] = mapped_column(
        String(50),
        default=RuleType.DEPENDENCY.value,
        nullable=False
    )
    target_option_code: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    target_value_code: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    custom_validation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Overrides for adjustment-type rules
    price_adjustment: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    weight_adjustment: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    error_message: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Trigger value reference, read-only lookup (the option owns the rule)
    value: Mapped[Optional["ConfigurableOptionValue"]] = relationship("ConfigurableOptionValue", lazy="selectin")

    created_at: Mapped[datetime] = mapped_column(
        TimestampType,
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        TimestampType,
        nullable=True,
        onupdate=lambda: datetime.now(timezone.utc)
    )

    @property
    def is_adjustment(self) -> bool:
        return self.rule_type in ADJUSTMENT_RULE_TYPES

    def __repr__(self) -> str:
        return f"<ConfigurationRule(type='{self.rule_type}', target='{self.target_option_code}')>"
