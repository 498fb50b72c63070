# inventory/services/batch_lifecycle.py

"""
MANUAL BATCH TRANSITIONS

- recall_batch():            active | quarantine -> recalled
- quarantine_batch():        active -> quarantine (withheld from FIFO)
- release_from_quarantine(): quarantine -> active, then reconciled
                             (may land on depleted / expired)

Every manual transition needs an actor and a reason; the reason is appended
to the batch notes. Quarantine is never resolved automatically.
"""

from __future__ import annotations

from datetime import date

from django.db import transaction
from django.utils import timezone

from inventory.exceptions import ValidationError
from inventory.models import BatchStatus, StockBatch
from inventory.services.batch_repository import (
    get_batch,
    persist_reconciled_status,
    require_actor,
    update_status,
)


def _require_reason(reason: str) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError({"reason": "a reason is required for manual status changes"})
    return reason


def _note(batch: StockBatch, label: str, reason: str) -> str:
    line = f"{label} on {timezone.localdate().isoformat()}: {reason}"
    notes = (batch.notes or "").rstrip()
    return f"{notes}\n{line}" if notes else line


@transaction.atomic
def recall_batch(*, batch_id, actor, reason: str) -> StockBatch:
    require_actor(actor)
    reason = _require_reason(reason)
    batch = get_batch(batch_id, lock=True)
    return update_status(batch, BatchStatus.RECALLED, actor=actor, notes=_note(batch, "Recalled", reason))


@transaction.atomic
def quarantine_batch(*, batch_id, actor, reason: str) -> StockBatch:
    require_actor(actor)
    reason = _require_reason(reason)
    batch = get_batch(batch_id, lock=True)
    return update_status(batch, BatchStatus.QUARANTINE, actor=actor, notes=_note(batch, "Quarantined", reason))


@transaction.atomic
def release_from_quarantine(*, batch_id, actor, reason: str, as_of: date | None = None) -> StockBatch:
    require_actor(actor)
    reason = _require_reason(reason)
    batch = get_batch(batch_id, lock=True)
    update_status(batch, BatchStatus.ACTIVE, actor=actor, notes=_note(batch, "Released from quarantine", reason))
    persist_reconciled_status(batch, as_of=as_of or timezone.localdate(), actor=actor)
    return batch
