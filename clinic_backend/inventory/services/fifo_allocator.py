# inventory/services/fifo_allocator.py

"""
FIFO ALLOCATOR (PURE)

Purpose:
- Given a snapshot of eligible batches and a requested quantity, produce a
  deterministic allocation plan.

Ordering (FEFO, first-expiry-first-out):
1) expiry_date ascending
2) received_date ascending
3) id ascending (batches imported together share dates)

Rules:
- Greedy: take min(remaining, still_needed) from each batch in order.
- All or nothing: if the snapshot cannot cover the request,
  InsufficientStockError is raised and no plan exists.
- No database access here; callers pass a transactionally fresh snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable

from inventory.exceptions import InsufficientStockError, ValidationError


@dataclass(frozen=True)
class AllocationLine:
    batch_id: object
    batch_number: str
    quantity: int
    unit_cost: Decimal
    expiry_date: date
    available_before: int

    @property
    def remaining_after(self) -> int:
        return self.available_before - self.quantity

    @property
    def line_cost(self) -> Decimal:
        return self.unit_cost * self.quantity


@dataclass(frozen=True)
class AllocationPlan:
    requested_quantity: int
    lines: tuple[AllocationLine, ...]

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def total_cost(self) -> Decimal:
        return sum((line.line_cost for line in self.lines), Decimal("0.00"))

    def __iter__(self):
        return iter(self.lines)

    def __len__(self):
        return len(self.lines)


def to_quantity(value) -> int:
    """HARD RULE: quantities are whole units."""
    if isinstance(value, bool) or value is None:
        raise ValidationError({"quantity": "quantity must be a whole integer unit"})
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            raise ValidationError({"quantity": "quantity must be a whole integer unit"})
        value = int(value)
    if not isinstance(value, int):
        raise ValidationError({"quantity": "quantity must be a whole integer unit"})
    if value <= 0:
        raise ValidationError({"quantity": "quantity must be greater than zero"})
    return value


def fifo_sort_key(batch):
    return (batch.expiry_date, batch.received_date, str(batch.id))


def fifo_sorted(batches: Iterable) -> list:
    return sorted(batches, key=fifo_sort_key)


def plan_allocation(batches: Iterable, requested_quantity, *, product_id=None) -> AllocationPlan:
    qty = to_quantity(requested_quantity)

    ordered = [b for b in fifo_sorted(batches) if int(b.quantity_remaining or 0) > 0]
    total_available = sum(int(b.quantity_remaining) for b in ordered)

    if total_available < qty:
        raise InsufficientStockError(available=total_available, required=qty, product_id=product_id)

    still_needed = qty
    lines = []

    for batch in ordered:
        if still_needed == 0:
            break

        available = int(batch.quantity_remaining)
        take = min(available, still_needed)

        lines.append(
            AllocationLine(
                batch_id=batch.id,
                batch_number=batch.batch_number,
                quantity=take,
                unit_cost=Decimal(batch.unit_cost or 0),
                expiry_date=batch.expiry_date,
                available_before=available,
            )
        )
        still_needed -= take

    return AllocationPlan(requested_quantity=qty, lines=tuple(lines))
