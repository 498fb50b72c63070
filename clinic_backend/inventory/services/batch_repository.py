# inventory/services/batch_repository.py

"""
STOCK BATCH REPOSITORY

Purpose:
- The only place that reads/writes StockBatch rows for the inventory services.
- Translate database failures (unique index, lost version races) into
  inventory errors.

Rules:
- Every mutating operation must run inside a caller-opened transaction.atomic()
  block, so the transaction manager can compose them into one unit.
- Quantity/status writes are conditional on the version that was read
  (optimistic check); a mismatch raises StaleBatchError for the caller to retry.
- Row locks (select_for_update) are taken on reads meant for writing.
"""

from __future__ import annotations

import logging
from datetime import date

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import F
from django.db.transaction import TransactionManagementError
from django.utils import timezone

from inventory.exceptions import (
    DuplicateBatchNumberError,
    InsufficientStockError,
    InvalidStateTransitionError,
    NotFoundError,
    StaleBatchError,
    ValidationError,
)
from inventory.models import StockBatch, can_transition, reconcile_status
from inventory.signals import EventType, build_event, emit_on_commit

logger = logging.getLogger(__name__)


def _require_atomic(operation: str) -> None:
    if not transaction.get_connection().in_atomic_block:
        raise TransactionManagementError(f"{operation} must run inside transaction.atomic()")


def require_actor(actor):
    if actor is None or getattr(actor, "pk", None) is None:
        raise ValidationError({"actor": "an explicit actor is required for inventory writes"})
    return actor


def _conditional_update(batch: StockBatch, **changes) -> None:
    changes.setdefault("updated_at", timezone.now())
    updated = StockBatch.objects.filter(pk=batch.pk, version=batch.version).update(
        version=F("version") + 1,
        **changes,
    )
    if updated != 1:
        raise StaleBatchError(batch.pk)

    for name, value in changes.items():
        setattr(batch, name, value)
    batch.version += 1


# ============================================================
# READS
# ============================================================

def get_batch(batch_id, *, lock: bool = False) -> StockBatch:
    qs = StockBatch.objects.all()
    if lock:
        _require_atomic("get_batch(lock=True)")
        qs = qs.select_for_update()
    try:
        return qs.get(pk=batch_id)
    except (StockBatch.DoesNotExist, DjangoValidationError, ValueError) as exc:
        raise NotFoundError(batch_id) from exc


def find_eligible_for_allocation(product_id, *, lock: bool = True) -> list[StockBatch]:
    """
    Batches FIFO may draw from: not expired / depleted / recalled / disposed /
    quarantined, and with stock left.

    lock=True must be used for anything that will write; lock=False is for
    previews only.
    """
    qs = StockBatch.objects.eligible_for_allocation(product_id).fifo_order()
    if lock:
        _require_atomic("find_eligible_for_allocation(lock=True)")
        qs = qs.select_for_update()
    return list(qs)


def find_for_product(product_id, *, statuses=None) -> list[StockBatch]:
    """
    All batches of a product (any status unless `statuses` narrows it),
    in FIFO order. Read-only, no locks.
    """
    qs = StockBatch.objects.for_product(product_id)
    if statuses is not None:
        qs = qs.filter(status__in=list(statuses))
    return list(qs.fifo_order())


def find_expiring(days_ahead: int, as_of: date) -> list[StockBatch]:
    days = int(days_ahead)
    if days < 0:
        raise ValidationError({"days_ahead": "days_ahead must be zero or positive"})
    return list(StockBatch.objects.expiring_within(days_ahead=days, as_of=as_of))


# ============================================================
# WRITES
# ============================================================

def create_batch(batch: StockBatch) -> StockBatch:
    """
    Insert a new batch. Uniqueness of batch_number is enforced by the unique
    index, so two concurrent creates with the same number cannot both win.
    """
    _require_atomic("create_batch")

    batch.batch_number = (batch.batch_number or "").strip()

    try:
        batch.full_clean(validate_unique=False)
    except DjangoValidationError as exc:
        raise ValidationError.from_django(exc) from exc

    if StockBatch.objects.filter(batch_number=batch.batch_number).exists():
        raise DuplicateBatchNumberError(batch.batch_number)

    try:
        # savepoint: a unique-index violation must not poison the caller's transaction
        with transaction.atomic():
            batch.save(force_insert=True)
    except IntegrityError as exc:
        raise DuplicateBatchNumberError(batch.batch_number) from exc

    return batch


def apply_deduction(batch: StockBatch, amount: int, *, actor, as_of: date) -> StockBatch:
    _require_atomic("apply_deduction")

    amount = int(amount)
    if amount <= 0:
        raise ValidationError({"quantity": "deduction amount must be greater than zero"})

    current = int(batch.quantity_remaining)
    if amount > current:
        raise InsufficientStockError(available=current, required=amount, product_id=batch.product_id)

    new_remaining = current - amount
    new_status = reconcile_status(
        status=batch.status,
        quantity_remaining=new_remaining,
        expiry_date=batch.expiry_date,
        as_of=as_of,
    )

    _conditional_update(
        batch,
        quantity_remaining=new_remaining,
        status=new_status,
        last_updated_by=actor,
    )
    return batch


def update_status(batch: StockBatch, new_status: str, *, actor, **changes) -> StockBatch:
    """
    Manual / workflow status change, validated against the state machine.
    Extra column changes (disposal stamps, notes) are written in the same UPDATE.
    """
    _require_atomic("update_status")
    require_actor(actor)

    current = batch.status
    if not can_transition(current, new_status):
        raise InvalidStateTransitionError(batch_id=batch.pk, current=current, target=new_status)

    _conditional_update(batch, status=new_status, last_updated_by=actor, **changes)

    logger.info(
        "Stock batch status changed",
        extra={"batch_id": str(batch.pk), "from_status": current, "to_status": new_status},
    )
    emit_on_commit(
        build_event(
            event_type=EventType.BATCH_STATUS_CHANGED,
            product_id=batch.product_id,
            product_type=batch.product_type,
            actor=actor,
            quantity_delta=0,
            batches=[{"batch_id": str(batch.pk), "batch_number": batch.batch_number}],
            from_status=current,
            to_status=new_status,
        )
    )
    return batch


def persist_reconciled_status(batch: StockBatch, *, as_of: date, actor=None) -> bool:
    """
    Time-triggered one-way write (active/depleted -> expired, active -> depleted).

    This is a derived transition, not a user action: when no actor is given,
    last_updated_by keeps its previous value. Returns True if a write happened.
    """
    _require_atomic("persist_reconciled_status")

    current = batch.status
    new_status = reconcile_status(
        status=current,
        quantity_remaining=batch.quantity_remaining,
        expiry_date=batch.expiry_date,
        as_of=as_of,
    )
    if new_status == current:
        return False

    changes = {"status": new_status}
    if actor is not None:
        changes["last_updated_by"] = actor

    _conditional_update(batch, **changes)

    logger.info(
        "Stock batch status reconciled",
        extra={"batch_id": str(batch.pk), "from_status": current, "to_status": new_status},
    )
    return True
