# Services module
from catalog.services.warehouse_registry import WarehouseRegistry
from catalog.services.inventory_service import (
    InventoryService,
    InventoryError,
    InvalidQuantityError,
    UnsupportedItemError,
    InventoryPersistenceError,
    ConcurrencyConflictError,
)
from catalog.services.configuration_service import (
    ConfigurationService,
    ConfigurationError,
    VariationResolutionError,
    VariationNotFoundError,
    AmbiguousVariationError,
    ValidationResult,
    RuleViolation,
)

__all__ = [
    "WarehouseRegistry",
    "InventoryService",
    "InventoryError",
    "InvalidQuantityError",
    "UnsupportedItemError",
    "InventoryPersistenceError",
    "ConcurrencyConflictError",
    "ConfigurationService",
    "ConfigurationError",
    "VariationResolutionError",
    "VariationNotFoundError",
    "AmbiguousVariationError",
    "ValidationResult",
    "RuleViolation",
]
