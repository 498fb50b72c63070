from .disposal import dispose_batch
from .expiry_monitor import classify, find_expiring, sync_expired_batches
from .stock_summary import product_summary
from .stock_transactions import deduct_stock, preview_allocation, receive_stock

__all__ = [
    "classify",
    "deduct_stock",
    "dispose_batch",
    "find_expiring",
    "preview_allocation",
    "product_summary",
    "receive_stock",
    "sync_expired_batches",
]
