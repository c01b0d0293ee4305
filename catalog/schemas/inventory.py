"""Inventory payloads consumed by admin/API callers."""
from datetime import date
from typing import Optional, List
import uuid

from pydantic import BaseModel, Field

from catalog.schemas.base import BaseResponseSchema, BaseUpdateSchema
from catalog.models.inventory import InventoryRecord


# ==================== RECORD SCHEMAS ====================

class WarehouseBrief(BaseResponseSchema):
    """Warehouse reference embedded in record payloads."""
    id: uuid.UUID
    name: str
    code: str


class InventoryRecordResponse(BaseResponseSchema):
    """Per-record payload for admin screens."""
    id: uuid.UUID
    quantity: int
    reserved: int
    available_quantity: int
    status: str
    backorders_allowed: bool
    low_stock_threshold: Optional[int] = None
    is_low_stock: bool
    shelf_location: Optional[str] = None
    batch_number: Optional[str] = None
    expiry_date: Optional[date] = None
    warehouse: WarehouseBrief

    @classmethod
    def from_record(cls, record: InventoryRecord) -> "InventoryRecordResponse":
        return cls(
            id=record.id,
            quantity=record.quantity,
            reserved=record.reserved,
            available_quantity=record.available,
            status=record.status,
            backorders_allowed=record.backorders_allowed,
            low_stock_threshold=record.low_stock_threshold,
            is_low_stock=record.is_low_stock,
            shelf_location=record.shelf_location,
            batch_number=record.batch_number,
            expiry_date=record.expiry_date,
            warehouse=WarehouseBrief.model_validate(record.warehouse),
        )


class InventorySettingsUpdate(BaseUpdateSchema):
    """Administrative fields of a record. Counters are not updatable here."""
    backorders_allowed: Optional[bool] = None
    low_stock_threshold: Optional[int] = Field(None, ge=0)
    shelf_location: Optional[str] = Field(None, max_length=100)
    batch_number: Optional[str] = Field(None, max_length=100)
    expiry_date: Optional[date] = None


# ==================== AGGREGATE SCHEMAS ====================

class WarehouseStock(BaseModel):
    """Stock of one item in one warehouse."""
    warehouse_id: uuid.UUID
    warehouse_code: str
    priority: int
    is_active: bool
    quantity: int
    reserved: int
    available: int
    status: str
    backorders_allowed: bool
    is_low_stock: bool

    @classmethod
    def from_record(cls, record: InventoryRecord) -> "WarehouseStock":
        return cls(
            warehouse_id=record.warehouse.id,
            warehouse_code=record.warehouse.code,
            priority=record.warehouse.priority,
            is_active=record.warehouse.is_active,
            quantity=record.quantity,
            reserved=record.reserved,
            available=record.available,
            status=record.status,
            backorders_allowed=record.backorders_allowed,
            is_low_stock=record.is_low_stock,
        )


class StockSummary(BaseModel):
    """Aggregate stock of a sellable item across all warehouses."""
    total_quantity: int = 0
    available_quantity: int = 0
    reserved_quantity: int = 0
    per_warehouse: List[WarehouseStock] = []
    has_stock: bool = False
    backorders_allowed: bool = False
    status: str
