# inventory/services/stock_summary.py

"""
PRODUCT STOCK SUMMARY (READ-ONLY)

Product stock is never stored: it is always derived from batches.

- total_stock:     sum of quantity_remaining over non-terminal batches
                   (includes quarantined stock, which is still on the shelf)
- available_stock: what FIFO may dispense right now (excludes quarantine and
                   batches already past expiry)
- product_summary: the totals above plus every batch of the product
                   (any status, FIFO order) rendered with derived expiry fields
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from django.utils import timezone

from inventory.models import BatchStatus, StockBatch
from inventory.serializers.stock_batch import StockBatchSerializer
from inventory.services.batch_repository import find_for_product


@dataclass(frozen=True)
class ProductStockSummary:
    product_id: str
    total_stock: int
    available_stock: int
    quarantined_stock: int
    batch_count: int
    active_batch_count: int
    next_expiry_date: date | None
    # serialized rows (StockBatchSerializer), FIFO order
    batches: tuple = field(default=())


def total_stock(product_id) -> int:
    return StockBatch.objects.for_product(product_id).non_terminal().total_remaining()


def available_stock(product_id, as_of: date | None = None) -> int:
    as_of = as_of or timezone.localdate()
    return (
        StockBatch.objects.eligible_for_allocation(product_id)
        .filter(expiry_date__gte=as_of)
        .total_remaining()
    )


def product_summary(product_id, as_of: date | None = None, *, statuses=None) -> ProductStockSummary:
    """
    statuses: optionally narrow the batch rows (totals always cover the
    whole product).
    """
    as_of = as_of or timezone.localdate()
    batches = StockBatch.objects.for_product(product_id)
    live = batches.non_terminal()

    next_batch = (
        StockBatch.objects.eligible_for_allocation(product_id)
        .filter(expiry_date__gte=as_of)
        .fifo_order()
        .first()
    )

    rows = StockBatchSerializer(
        find_for_product(product_id, statuses=statuses),
        many=True,
        context={"as_of": as_of},
    ).data

    return ProductStockSummary(
        product_id=str(product_id),
        total_stock=live.total_remaining(),
        available_stock=available_stock(product_id, as_of),
        quarantined_stock=live.filter(status=BatchStatus.QUARANTINE).total_remaining(),
        batch_count=batches.count(),
        active_batch_count=live.filter(status=BatchStatus.ACTIVE).count(),
        next_expiry_date=next_batch.expiry_date if next_batch else None,
        batches=tuple(dict(row) for row in rows),
    )
