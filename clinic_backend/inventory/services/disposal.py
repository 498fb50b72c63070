# inventory/services/disposal.py

"""
DISPOSAL WORKFLOW

Purpose:
- Retire an expired or recalled batch: status -> disposed (terminal).
- Stamp disposed_at / disposed_by, append the reason to notes.
- Emit a batch_disposed audit event after commit.

Rules:
- Only expired or recalled batches can be disposed. An active batch is never
  disposed through this path, even if it is empty.
- Disposal is a one-time explicit action: disposing twice fails.
- A stored active or depleted batch that is already past expiry is
  reconciled to expired first, then disposed.
"""

from __future__ import annotations

import logging
from datetime import date

from django.db import transaction
from django.utils import timezone

from inventory.exceptions import InvalidStateTransitionError, ValidationError
from inventory.models import BatchStatus, DISPOSABLE_STATUSES, StockBatch
from inventory.services.batch_repository import (
    get_batch,
    persist_reconciled_status,
    require_actor,
    update_status,
)
from inventory.signals import EventType, build_event, emit_on_commit

logger = logging.getLogger(__name__)


def _append_note(notes: str, line: str) -> str:
    notes = (notes or "").rstrip()
    return f"{notes}\n{line}" if notes else line


@transaction.atomic
def dispose_batch(*, batch_id, actor, reason: str, as_of: date | None = None) -> StockBatch:
    require_actor(actor)

    reason = (reason or "").strip()
    if not reason:
        raise ValidationError({"reason": "a disposal reason is required"})

    as_of = as_of or timezone.localdate()
    batch = get_batch(batch_id, lock=True)

    if batch.status == BatchStatus.DISPOSED:
        raise InvalidStateTransitionError(
            batch_id=batch.pk,
            current=batch.status,
            target=BatchStatus.DISPOSED,
            detail="batch is already disposed",
        )

    if batch.status in (BatchStatus.ACTIVE, BatchStatus.DEPLETED):
        persist_reconciled_status(batch, as_of=as_of, actor=actor)

    if batch.status not in DISPOSABLE_STATUSES:
        raise InvalidStateTransitionError(
            batch_id=batch.pk,
            current=batch.status,
            target=BatchStatus.DISPOSED,
            detail="only expired or recalled batches can be disposed",
        )

    previous_status = batch.status
    disposed_quantity = int(batch.quantity_remaining)
    now = timezone.now()

    update_status(
        batch,
        BatchStatus.DISPOSED,
        actor=actor,
        disposed_at=now,
        disposed_by=actor,
        notes=_append_note(batch.notes, f"Disposed on {now.date().isoformat()}: {reason}"),
    )

    logger.info(
        "Stock batch disposed",
        extra={
            "batch_id": str(batch.pk),
            "batch_number": batch.batch_number,
            "previous_status": previous_status,
            "quantity": disposed_quantity,
        },
    )

    emit_on_commit(
        build_event(
            event_type=EventType.BATCH_DISPOSED,
            product_id=batch.product_id,
            product_type=batch.product_type,
            actor=actor,
            quantity_delta=-disposed_quantity,
            batches=[
                {
                    "batch_id": str(batch.pk),
                    "batch_number": batch.batch_number,
                    "quantity": disposed_quantity,
                    "expiry_date": batch.expiry_date.isoformat(),
                }
            ],
            reason=reason,
            previous_status=previous_status,
        )
    )
    return batch
