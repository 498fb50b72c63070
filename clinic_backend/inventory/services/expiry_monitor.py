# inventory/services/expiry_monitor.py

"""
EXPIRY MONITOR

Purpose:
- Classify batches as active / expiring-soon / expired as of a given day.
- Persist the one-way active -> expired transition when a stored-active batch
  is found past its expiry date.
- List expiring batches for the (external) alerting collaborator.
- List disposal-eligible batches (expired / recalled).

Classification (days = expiry_date - as_of):
- days < 0             -> expired
- 0 < days <= 30       -> expiring-soon
- otherwise            -> active (a batch expiring today is still usable)

Urgency bands (reporting only): expired, critical (<=7), warning (<=30),
attention (<=90), good.
"""

from __future__ import annotations

import logging
from datetime import date

from django.db import transaction
from django.utils import timezone

from inventory.conf import inventory_setting
from inventory.models import BatchStatus, DISPOSABLE_STATUSES, ExpiryClass, StockBatch
from inventory.services.batch_repository import find_expiring as _find_expiring
from inventory.services.batch_repository import persist_reconciled_status

logger = logging.getLogger(__name__)


def classify_expiry(expiry_date: date, as_of: date, *, soon_days: int | None = None) -> str:
    """Pure classification of an expiry date."""
    if soon_days is None:
        soon_days = int(inventory_setting("EXPIRING_SOON_DAYS"))
    days = (expiry_date - as_of).days
    if days < 0:
        return ExpiryClass.EXPIRED
    if 0 < days <= soon_days:
        return ExpiryClass.EXPIRING_SOON
    return ExpiryClass.ACTIVE


def expiry_urgency(days_until_expiry: int) -> str:
    if days_until_expiry < 0:
        return "expired"
    for label, max_days in inventory_setting("EXPIRY_URGENCY_BANDS"):
        if days_until_expiry <= max_days:
            return label
    return "good"


def classify(batch: StockBatch, as_of: date | None = None, *, actor=None) -> str:
    """
    Classify a batch. If the stored status is still active but the batch is
    past expiry, the expired status is persisted (idempotent, one-way).
    """
    as_of = as_of or timezone.localdate()
    result = classify_expiry(batch.expiry_date, as_of)

    if result == ExpiryClass.EXPIRED and batch.status == BatchStatus.ACTIVE:
        with transaction.atomic():
            locked = StockBatch.objects.select_for_update().get(pk=batch.pk)
            if persist_reconciled_status(locked, as_of=as_of, actor=actor):
                batch.status = locked.status
                batch.version = locked.version

    return result


def find_expiring(days_ahead: int | None = None, as_of: date | None = None, *, product_type: str | None = None) -> list[StockBatch]:
    """
    Non-terminal batches with 0 < days_until_expiry <= days_ahead,
    soonest expiry first.
    """
    if days_ahead is None:
        days_ahead = int(inventory_setting("EXPIRING_SOON_DAYS"))
    as_of = as_of or timezone.localdate()

    batches = _find_expiring(days_ahead, as_of)
    if product_type:
        batches = [b for b in batches if b.product_type == product_type]
    return batches


def expiring_report(days_ahead: int | None = None, as_of: date | None = None, *, product_type: str | None = None) -> dict:
    """Payload for the alerting collaborator."""
    from inventory.serializers.stock_batch import StockBatchSerializer

    if days_ahead is None:
        days_ahead = int(inventory_setting("EXPIRING_SOON_DAYS"))
    as_of = as_of or timezone.localdate()

    batches = find_expiring(days_ahead, as_of, product_type=product_type)
    return {
        "as_of": as_of.isoformat(),
        "days_ahead": int(days_ahead),
        "count": len(batches),
        "batches": StockBatchSerializer(batches, many=True, context={"as_of": as_of}).data,
    }


def disposal_candidates(as_of: date | None = None, *, product_type: str | None = None) -> list[StockBatch]:
    """
    Batches a disposal may act on: stored expired / recalled, plus
    stored active / depleted batches already past expiry (reported, not written).
    """
    as_of = as_of or timezone.localdate()
    qs = StockBatch.objects.filter(status__in=DISPOSABLE_STATUSES) | StockBatch.objects.past_expiry(as_of)
    if product_type:
        qs = qs.filter(product_type=product_type)
    return list(qs.order_by("expiry_date", "received_date", "id"))


def sync_expired_batches(as_of: date | None = None, *, actor=None, dry_run: bool = False) -> list[StockBatch]:
    """
    Periodic sweep: persist active/depleted -> expired for every batch past
    expiry. Returns the batches that changed (or would change on dry_run).
    """
    as_of = as_of or timezone.localdate()
    changed = []

    with transaction.atomic():
        for batch in StockBatch.objects.past_expiry(as_of).select_for_update():
            if dry_run:
                changed.append(batch)
                continue
            if persist_reconciled_status(batch, as_of=as_of, actor=actor):
                changed.append(batch)

    logger.info(
        "Expiry sweep finished",
        extra={"as_of": as_of.isoformat(), "changed": len(changed), "dry_run": dry_run},
    )
    return changed
