# inventory/services/stock_transactions.py

"""
STOCK TRANSACTION MANAGER (APPLICATION SERVICE)

Purpose:
- receive_stock(): validate + insert a new batch (stock received).
- deduct_stock(): remove N units of a product across batches, FIFO by expiry,
  all-or-nothing.
- preview_allocation(): non-locking "what would FIFO pick" read.

Hard rules:
- Quantities are integer units.
- Every deduction re-reads eligible batches INSIDE its own transaction, with
  row locks, never from a cached view (prevents lost updates when two
  dispensing requests race for the same product).
- Insufficient stock rolls back everything; no partial plan is ever applied.
- Transient conflicts (version mismatch, deadlock / lock timeout) retry the
  whole read -> plan -> apply cycle with backoff. Only after the retry budget
  is exhausted does the caller see ConcurrencyConflictError.
- An explicit actor is required on every write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from django.db import OperationalError, transaction
from django.utils import timezone
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from inventory.conf import inventory_setting
from inventory.exceptions import (
    ConcurrencyConflictError,
    InsufficientStockError,
    StaleBatchError,
    ValidationError,
)
from inventory.models import ProductType, StockBatch, initial_status
from inventory.products import product_key
from inventory.serializers.stock_batch import StockBatchIntakeSerializer
from inventory.services.batch_repository import (
    apply_deduction,
    create_batch,
    find_eligible_for_allocation,
    persist_reconciled_status,
    require_actor,
)
from inventory.services.fifo_allocator import AllocationPlan, plan_allocation, to_quantity
from inventory.signals import EventType, build_event, emit_on_commit

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (StaleBatchError, OperationalError)


@dataclass(frozen=True)
class DeductedLine:
    batch_id: object
    batch_number: str
    quantity: int
    unit_cost: Decimal
    expiry_date: date
    remaining_after: int
    status_after: str


@dataclass(frozen=True)
class DeductionResult:
    product_id: str
    quantity: int
    lines: tuple[DeductedLine, ...]

    @property
    def total_cost(self) -> Decimal:
        return sum((line.unit_cost * line.quantity for line in self.lines), Decimal("0.00"))

    def as_breakdown(self) -> list[dict]:
        return [
            {
                "batch_id": str(line.batch_id),
                "batch_number": line.batch_number,
                "quantity": line.quantity,
                "unit_cost": str(line.unit_cost),
                "remaining_after": line.remaining_after,
                "status_after": line.status_after,
            }
            for line in self.lines
        ]


def _log_retry(retry_state) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Stock deduction conflict; retrying",
        extra={
            "attempt": retry_state.attempt_number,
            "error": type(exc).__name__ if exc else None,
        },
    )


def _retrying(max_attempts: int) -> Retrying:
    wait_min = float(inventory_setting("DEDUCTION_RETRY_WAIT_MIN"))
    wait_max = float(inventory_setting("DEDUCTION_RETRY_WAIT_MAX"))
    return Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=wait_min, min=wait_min, max=wait_max),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        before_sleep=_log_retry,
    )


# ============================================================
# RECEIVE
# ============================================================

@transaction.atomic
def receive_stock(*, product, data: dict, actor, as_of: date | None = None) -> StockBatch:
    """
    Record a received lot for a medication / vaccine.

    data: raw intake payload (see StockBatchIntakeSerializer).
    Missing unit_cost / manufacturer / supplier fall back to the product master.
    A batch whose expiry is already past `as_of` is stored as expired
    (historical import).
    """
    require_actor(actor)
    product_id = product_key(product)

    product_type = getattr(product, "product_type", None)
    if product_type not in ProductType.values:
        raise ValidationError({"product_type": f"product_type must be one of {ProductType.values}"})

    serializer = StockBatchIntakeSerializer(data=data)
    if not serializer.is_valid():
        raise ValidationError(dict(serializer.errors))
    vd = serializer.validated_data

    as_of = as_of or timezone.localdate()

    unit_cost = vd.get("unit_cost")
    if unit_cost is None:
        unit_cost = getattr(product, "unit_cost", None) or Decimal("0.00")

    quantity_received = vd["quantity_received"]
    quantity_remaining = vd.get("quantity_remaining")
    if quantity_remaining is None:
        quantity_remaining = quantity_received

    batch = StockBatch(
        product_id=product_id,
        product_type=product_type,
        product_name_snapshot=(getattr(product, "name", "") or "").strip(),
        batch_number=vd["batch_number"].strip(),
        quantity_received=quantity_received,
        quantity_remaining=quantity_remaining,
        unit_cost=Decimal(str(unit_cost)),
        expiry_date=vd["expiry_date"],
        received_date=vd.get("received_date") or as_of,
        supplier=vd.get("supplier") or getattr(product, "supplier", "") or "",
        manufacturer=vd.get("manufacturer") or getattr(product, "manufacturer", "") or "",
        purchase_order_number=vd.get("purchase_order_number", ""),
        storage_location=vd.get("storage_location", ""),
        notes=vd.get("notes", ""),
        lot_number=vd.get("lot_number", ""),
        storage_temperature=vd.get("storage_temperature", ""),
        vvm_stage=vd.get("vvm_stage"),
        status=initial_status(vd["expiry_date"], as_of),
        created_by=actor,
        last_updated_by=actor,
    )
    # historical imports may arrive already used up
    batch.reconcile(as_of)

    create_batch(batch)

    logger.info(
        "Stock received",
        extra={
            "product_id": product_id,
            "batch_id": str(batch.pk),
            "batch_number": batch.batch_number,
            "quantity": batch.quantity_remaining,
            "status": batch.status,
        },
    )

    emit_on_commit(
        build_event(
            event_type=EventType.STOCK_RECEIVED,
            product_id=product_id,
            product_type=product_type,
            actor=actor,
            quantity_delta=batch.quantity_remaining,
            batches=[
                {
                    "batch_id": str(batch.pk),
                    "batch_number": batch.batch_number,
                    "quantity": batch.quantity_remaining,
                    "expiry_date": batch.expiry_date.isoformat(),
                }
            ],
            quantity_received=batch.quantity_received,
            status=batch.status,
        )
    )
    return batch


# ============================================================
# DEDUCT
# ============================================================

def _deduct_once(*, product_id: str, quantity: int, actor, reason: str, as_of: date) -> DeductionResult:
    with transaction.atomic():
        # Batches past expiry but still stored as active must not be dispensed.
        for stale in StockBatch.objects.for_product(product_id).past_expiry(as_of).select_for_update():
            persist_reconciled_status(stale, as_of=as_of, actor=actor)

        eligible = find_eligible_for_allocation(product_id, lock=True)
        plan = plan_allocation(eligible, quantity, product_id=product_id)

        by_id = {batch.pk: batch for batch in eligible}
        lines = []
        for line in plan:
            batch = apply_deduction(by_id[line.batch_id], line.quantity, actor=actor, as_of=as_of)
            lines.append(
                DeductedLine(
                    batch_id=batch.pk,
                    batch_number=batch.batch_number,
                    quantity=line.quantity,
                    unit_cost=line.unit_cost,
                    expiry_date=batch.expiry_date,
                    remaining_after=batch.quantity_remaining,
                    status_after=batch.status,
                )
            )

        result = DeductionResult(product_id=product_id, quantity=quantity, lines=tuple(lines))

        emit_on_commit(
            build_event(
                event_type=EventType.STOCK_DEDUCTED,
                product_id=product_id,
                product_type=eligible[0].product_type,
                actor=actor,
                quantity_delta=-quantity,
                batches=result.as_breakdown(),
                reason=reason,
            )
        )
        return result


def deduct_stock(*, product_id, quantity, actor, reason: str = "", as_of: date | None = None) -> DeductionResult:
    """
    Deduct `quantity` units of a product using FEFO/FIFO.

    Returns the per-batch breakdown. Raises:
    - ValidationError: bad quantity / missing actor
    - InsufficientStockError: eligible stock cannot cover the request (nothing changes)
    - ConcurrencyConflictError: conflicts persisted past the retry budget
    """
    require_actor(actor)
    qty = to_quantity(quantity)
    as_of = as_of or timezone.localdate()
    pid = str(product_id)
    max_attempts = int(inventory_setting("DEDUCTION_MAX_ATTEMPTS"))

    try:
        for attempt in _retrying(max_attempts):
            with attempt:
                result = _deduct_once(product_id=pid, quantity=qty, actor=actor, reason=reason, as_of=as_of)
    except RetryError as exc:
        last_error = exc.last_attempt.exception()
        logger.error(
            "Stock deduction abandoned after repeated conflicts",
            extra={"product_id": pid, "quantity": qty, "attempts": max_attempts},
        )
        raise ConcurrencyConflictError(product_id=pid, attempts=max_attempts) from last_error
    except InsufficientStockError as exc:
        logger.warning(
            "Stock deduction refused: insufficient stock",
            extra={"product_id": pid, "required": exc.required, "available": exc.available},
        )
        raise

    logger.info(
        "Stock deducted",
        extra={
            "product_id": pid,
            "quantity": qty,
            "batches": [str(line.batch_id) for line in result.lines],
        },
    )
    return result


# ============================================================
# PREVIEW
# ============================================================

def preview_allocation(*, product_id, quantity, as_of: date | None = None) -> AllocationPlan:
    """
    Read-only FIFO preview for UIs / reports. Not transactional and takes no
    locks, so the real deduction may pick differently under concurrent use.
    """
    as_of = as_of or timezone.localdate()
    candidates = [
        batch
        for batch in find_eligible_for_allocation(product_id, lock=False)
        if batch.expiry_date >= as_of
    ]
    return plan_allocation(candidates, quantity, product_id=str(product_id))
