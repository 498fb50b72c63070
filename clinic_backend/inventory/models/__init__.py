"""
PATH: inventory/models/__init__.py

Inventory models export surface.
"""

from .stock_batch import (
    ALLOWED_TRANSITIONS,
    DISPOSABLE_STATUSES,
    TERMINAL_STATUSES,
    UNALLOCATABLE_STATUSES,
    BatchStatus,
    ExpiryClass,
    ProductType,
    StockBatch,
    can_transition,
    initial_status,
    reconcile_status,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "DISPOSABLE_STATUSES",
    "TERMINAL_STATUSES",
    "UNALLOCATABLE_STATUSES",
    "BatchStatus",
    "ExpiryClass",
    "ProductType",
    "StockBatch",
    "can_transition",
    "initial_status",
    "reconcile_status",
]
