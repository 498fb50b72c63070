# inventory/signals.py

"""
INVENTORY AUDIT EVENTS

The inventory core does not persist or deliver audit records itself.
It emits structured events; the audit log (and anything else) connects
receivers to these signals.

Rules:
- Events are sent from transaction.on_commit, so rolled-back work emits nothing.
- Every event carries the actor, the quantity delta and a timestamp.
- Receiver errors propagate (send, not send_robust).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from django.db import transaction
from django.dispatch import Signal
from django.utils import timezone

logger = logging.getLogger(__name__)

# kwargs: event (StockEvent)
stock_received = Signal()
stock_deducted = Signal()
batch_disposed = Signal()
batch_status_changed = Signal()


class EventType:
    STOCK_RECEIVED = "stock_received"
    STOCK_DEDUCTED = "stock_deducted"
    BATCH_DISPOSED = "batch_disposed"
    BATCH_STATUS_CHANGED = "batch_status_changed"


SIGNALS = {
    EventType.STOCK_RECEIVED: stock_received,
    EventType.STOCK_DEDUCTED: stock_deducted,
    EventType.BATCH_DISPOSED: batch_disposed,
    EventType.BATCH_STATUS_CHANGED: batch_status_changed,
}


@dataclass(frozen=True)
class StockEvent:
    event_type: str
    product_id: str
    product_type: str
    actor_id: object
    quantity_delta: int
    occurred_at: datetime
    # per-batch breakdown: [{"batch_id", "batch_number", "quantity", ...}]
    batches: tuple = ()
    metadata: dict = field(default_factory=dict)


def _actor_id(actor):
    return getattr(actor, "pk", actor)


def build_event(*, event_type, product_id, product_type, actor, quantity_delta, batches=(), **metadata) -> StockEvent:
    return StockEvent(
        event_type=event_type,
        product_id=str(product_id),
        product_type=product_type,
        actor_id=_actor_id(actor),
        quantity_delta=int(quantity_delta),
        occurred_at=timezone.now(),
        batches=tuple(batches),
        metadata=metadata,
    )


def emit_on_commit(event: StockEvent) -> None:
    signal = SIGNALS[event.event_type]

    def _send():
        logger.info(
            "Inventory event emitted",
            extra={
                "event_type": event.event_type,
                "product_id": event.product_id,
                "quantity_delta": event.quantity_delta,
            },
        )
        signal.send(sender=StockEvent, event=event)

    transaction.on_commit(_send)
