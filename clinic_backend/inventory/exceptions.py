# inventory/exceptions.py

"""
INVENTORY SERVICE ERRORS

Centralized domain errors for the batch ledger and FIFO engine.

Every failure path in inventory services raises one of these.
Callers (checkout / checkup completion flows) handle them directly.
"""

from __future__ import annotations

from django.core.exceptions import ValidationError as DjangoValidationError


class InventoryError(Exception):
    """Base exception for all inventory service failures."""


class ValidationError(InventoryError, DjangoValidationError):
    """
    Malformed input: non-positive quantities, remaining > received,
    negative cost, bad dates, blank batch numbers, missing actor.

    Also a django ValidationError, so `messages` / `message_dict` work.
    """

    @classmethod
    def from_django(cls, exc: DjangoValidationError) -> "ValidationError":
        if hasattr(exc, "error_dict"):
            return cls(exc.error_dict)
        return cls(exc.messages)


class DuplicateBatchNumberError(InventoryError):
    def __init__(self, batch_number: str):
        self.batch_number = batch_number
        super().__init__(f"Batch number already exists: {batch_number}")


class InsufficientStockError(InventoryError):
    def __init__(self, *, available: int, required: int, product_id=None):
        self.available = int(available)
        self.required = int(required)
        self.product_id = product_id
        super().__init__(
            f"Insufficient stock for product {product_id}. "
            f"Requested: {self.required}, Available: {self.available}"
        )


class InvalidStateTransitionError(InventoryError):
    def __init__(self, *, batch_id, current: str, target: str, detail: str = ""):
        self.batch_id = batch_id
        self.current = current
        self.target = target
        msg = f"Batch {batch_id} cannot move from '{current}' to '{target}'"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class NotFoundError(InventoryError):
    def __init__(self, batch_id):
        self.batch_id = batch_id
        super().__init__(f"Stock batch not found: {batch_id}")


class ConcurrencyConflictError(InventoryError):
    """Raised only after the deduction retry budget is exhausted."""

    def __init__(self, *, product_id, attempts: int):
        self.product_id = product_id
        self.attempts = attempts
        super().__init__(
            f"Stock for product {product_id} kept changing underneath the deduction "
            f"(gave up after {attempts} attempts)"
        )


class StaleBatchError(InventoryError):
    """
    Internal transient conflict: a batch row changed between read and write.
    Retried by the transaction manager; never surfaces to callers.
    """

    def __init__(self, batch_id):
        self.batch_id = batch_id
        super().__init__(f"Stock batch {batch_id} was modified concurrently")
