"""Warehouse model for inventory allocation."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, Integer, Index
from sqlalchemy.orm import Mapped, mapped_column

from catalog.database import Base
from catalog.db_types import UUIDType, TimestampType


class Warehouse(Base):
    """Stock location. Lower priority numbers are allocated first."""

    __tablename__ = "warehouses"
    __table_args__ = (
        Index('ix_warehouse_active_priority', 'is_active', 'priority'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Allocation
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
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

    def __repr__(self) -> str:
        return f"<Warehouse(code='{self.code}', priority={self.priority}, active={self.is_active})>"
