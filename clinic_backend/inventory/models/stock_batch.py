# inventory/models/stock_batch.py

"""
STOCK BATCH (ONE RECEIVED LOT)

Represents ONE physical lot of a medication or vaccine.

CANONICAL MODEL:
- One generic batch table for both product families (product_type tag).
- batch_number is unique across ALL products and types.
- quantity_received / expiry_date are immutable after creation.
- quantity_remaining is mutated ONLY via services (FIFO deduction).
- status transitions are explicit service calls (reconcile_status), never
  hidden save hooks.
- Never physically deleted: status is the only removal mechanism.

CONCURRENCY:
- `version` is bumped on every quantity/status write; deductions use it as
  an optimistic check on top of select_for_update() row locks.
"""

from __future__ import annotations

import uuid
from datetime import date, timedelta
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import F, Q, Sum
from django.utils import timezone


class ProductType(models.TextChoices):
    MEDICATION = "medication", "Medication"
    VACCINE = "vaccine", "Vaccine"


class BatchStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    EXPIRED = "expired", "Expired"
    DEPLETED = "depleted", "Depleted"
    RECALLED = "recalled", "Recalled"
    QUARANTINE = "quarantine", "Quarantine"
    DISPOSED = "disposed", "Disposed"


class ExpiryClass(models.TextChoices):
    """Read-time classification; `expiring-soon` is never stored."""

    ACTIVE = "active", "Active"
    EXPIRING_SOON = "expiring-soon", "Expiring soon"
    EXPIRED = "expired", "Expired"


# Not counted in product stock
TERMINAL_STATUSES = frozenset(
    {
        BatchStatus.EXPIRED,
        BatchStatus.DEPLETED,
        BatchStatus.RECALLED,
        BatchStatus.DISPOSED,
    }
)

# Quarantined stock is withheld from FIFO until manually resolved
UNALLOCATABLE_STATUSES = TERMINAL_STATUSES | {BatchStatus.QUARANTINE}

DISPOSABLE_STATUSES = frozenset({BatchStatus.EXPIRED, BatchStatus.RECALLED})

ALLOWED_TRANSITIONS = {
    BatchStatus.ACTIVE: frozenset(
        {
            BatchStatus.DEPLETED,
            BatchStatus.EXPIRED,
            BatchStatus.RECALLED,
            BatchStatus.QUARANTINE,
        }
    ),
    BatchStatus.DEPLETED: frozenset({BatchStatus.EXPIRED}),
    BatchStatus.EXPIRED: frozenset({BatchStatus.DISPOSED}),
    BatchStatus.RECALLED: frozenset({BatchStatus.DISPOSED}),
    BatchStatus.QUARANTINE: frozenset({BatchStatus.ACTIVE, BatchStatus.RECALLED}),
    BatchStatus.DISPOSED: frozenset(),
}

EXPIRING_SOON_DAYS = 30


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def days_until(expiry_date: date, as_of: date) -> int:
    return (expiry_date - as_of).days


def initial_status(expiry_date: date, as_of: date) -> str:
    """Batches received already past expiry start life as expired."""
    if expiry_date < as_of:
        return BatchStatus.EXPIRED
    return BatchStatus.ACTIVE


def reconcile_status(*, status: str, quantity_remaining: int, expiry_date: date, as_of: date) -> str:
    """
    Pure status derivation.

    - remaining == 0 and active            -> depleted
    - expiry_date < as_of and active/depleted -> expired (checked after the above)

    Idempotent for a fixed as_of; never moves a batch back to active.
    """
    new_status = status

    if int(quantity_remaining) == 0 and new_status == BatchStatus.ACTIVE:
        new_status = BatchStatus.DEPLETED

    if expiry_date < as_of and new_status in (BatchStatus.ACTIVE, BatchStatus.DEPLETED):
        new_status = BatchStatus.EXPIRED

    return new_status


class StockBatchQuerySet(models.QuerySet):
    def for_product(self, product_id):
        return self.filter(product_id=str(product_id))

    def non_terminal(self):
        return self.exclude(status__in=TERMINAL_STATUSES)

    def eligible_for_allocation(self, product_id):
        return (
            self.for_product(product_id)
            .exclude(status__in=UNALLOCATABLE_STATUSES)
            .filter(quantity_remaining__gt=0)
        )

    def fifo_order(self):
        return self.order_by("expiry_date", "received_date", "id")

    def expiring_within(self, *, days_ahead: int, as_of: date):
        return (
            self.non_terminal()
            .filter(expiry_date__gt=as_of, expiry_date__lte=as_of + timedelta(days=int(days_ahead)))
            .fifo_order()
        )

    def past_expiry(self, as_of: date):
        """Stored active/depleted rows whose expiry has passed (not yet marked)."""
        return self.filter(
            status__in=[BatchStatus.ACTIVE, BatchStatus.DEPLETED],
            expiry_date__lt=as_of,
        )

    def total_remaining(self) -> int:
        return int(self.aggregate(total=Sum("quantity_remaining")).get("total") or 0)


class StockBatch(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Reference to the external medication / vaccine master record
    product_id = models.CharField(max_length=64)
    product_type = models.CharField(max_length=16, choices=ProductType.choices)
    product_name_snapshot = models.CharField(
        max_length=255,
        help_text="Product name at receipt time (history stays stable after renames)",
    )

    batch_number = models.CharField(
        max_length=64,
        unique=True,
        help_text="Batch reference, unique across all products",
    )

    quantity_received = models.PositiveIntegerField(help_text="Units / doses delivered (immutable)")
    quantity_remaining = models.PositiveIntegerField(help_text="Remaining units (service-managed only)")

    unit_cost = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    expiry_date = models.DateField()
    received_date = models.DateField(default=timezone.localdate)

    supplier = models.CharField(max_length=100, blank=True, default="")
    manufacturer = models.CharField(max_length=100, blank=True, default="")
    purchase_order_number = models.CharField(max_length=50, blank=True, default="")
    storage_location = models.CharField(max_length=50, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    # Vaccine-specific (blank for medications)
    lot_number = models.CharField(max_length=50, blank=True, default="")
    storage_temperature = models.CharField(max_length=50, blank=True, default="")
    vvm_stage = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(4)],
        help_text="Vaccine vial monitor stage (1 = good, 4 = discard)",
    )

    status = models.CharField(max_length=16, choices=BatchStatus.choices, default=BatchStatus.ACTIVE)
    version = models.PositiveIntegerField(default=1)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="created_stock_batches",
    )
    last_updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="updated_stock_batches",
    )

    disposed_at = models.DateTimeField(null=True, blank=True)
    disposed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="disposed_stock_batches",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = StockBatchQuerySet.as_manager()

    IMMUTABLE_FIELDS = (
        "product_id",
        "product_type",
        "batch_number",
        "quantity_received",
        "expiry_date",
    )

    class Meta:
        ordering = ["expiry_date", "received_date", "id"]
        indexes = [
            models.Index(fields=["product_id", "status", "expiry_date"], name="inv_batch_fifo_idx"),
            models.Index(fields=["product_type", "status", "expiry_date"], name="inv_batch_expiry_scan_idx"),
            models.Index(fields=["expiry_date"], name="inv_batch_expiry_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity_received__gt=0),
                name="chk_batch_qty_received_gt_zero",
            ),
            models.CheckConstraint(
                condition=Q(quantity_remaining__lte=F("quantity_received")),
                name="chk_batch_remaining_lte_received",
            ),
            models.CheckConstraint(
                condition=Q(unit_cost__gte=0),
                name="chk_batch_unit_cost_gte_zero",
            ),
        ]

    # -------------------------------------------------
    # VALIDATION
    # -------------------------------------------------

    def clean(self):
        errors = {}

        if not (self.batch_number or "").strip():
            errors["batch_number"] = "batch_number is required"

        if self.quantity_received is None or int(self.quantity_received) < 1:
            errors["quantity_received"] = "quantity_received must be at least 1"

        if self.quantity_remaining is not None and self.quantity_received is not None:
            if int(self.quantity_remaining) < 0:
                errors["quantity_remaining"] = "quantity_remaining cannot be negative"
            elif int(self.quantity_remaining) > int(self.quantity_received):
                errors["quantity_remaining"] = "quantity_remaining cannot exceed quantity_received"

        if self.unit_cost is not None and Decimal(self.unit_cost) < Decimal("0.00"):
            errors["unit_cost"] = "unit_cost must be non-negative"

        if not isinstance(self.expiry_date, date):
            errors["expiry_date"] = "expiry_date must be a valid date"

        if self.status == BatchStatus.DISPOSED and (self.disposed_at is None or self.disposed_by_id is None):
            errors["status"] = "disposed batches must record disposed_at and disposed_by"

        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        if not self._state.adding:
            original = StockBatch.objects.only(*self.IMMUTABLE_FIELDS).get(pk=self.pk)
            for field in self.IMMUTABLE_FIELDS:
                if getattr(self, field) != getattr(original, field):
                    raise ValidationError({field: f"{field} is immutable"})

        # batch_number uniqueness is left to the unique index (race-safe)
        self.full_clean(validate_unique=False)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Stock batches are never deleted; retire them through a status change.")

    # -------------------------------------------------
    # STATUS
    # -------------------------------------------------

    def reconcile(self, as_of: date | None = None) -> bool:
        """Apply reconcile_status in memory. Returns True if the status changed."""
        as_of = as_of or timezone.localdate()
        new_status = reconcile_status(
            status=self.status,
            quantity_remaining=self.quantity_remaining,
            expiry_date=self.expiry_date,
            as_of=as_of,
        )
        changed = new_status != self.status
        self.status = new_status
        return changed

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_allocatable(self) -> bool:
        return self.status not in UNALLOCATABLE_STATUSES and int(self.quantity_remaining or 0) > 0

    # -------------------------------------------------
    # DERIVED (never persisted)
    # -------------------------------------------------

    @property
    def quantity_used(self) -> int:
        return int(self.quantity_received or 0) - int(self.quantity_remaining or 0)

    @property
    def usage_percentage(self) -> int:
        received = int(self.quantity_received or 0)
        if received == 0:
            return 0
        return int(round(self.quantity_used * 100 / received))

    def days_until_expiry(self, as_of: date | None = None) -> int:
        return days_until(self.expiry_date, as_of or timezone.localdate())

    def is_expired(self, as_of: date | None = None) -> bool:
        return self.days_until_expiry(as_of) < 0

    def is_expiring_soon(self, as_of: date | None = None, days_ahead: int = EXPIRING_SOON_DAYS) -> bool:
        return 0 < self.days_until_expiry(as_of) <= days_ahead

    @property
    def is_cold_chain(self) -> bool:
        temp = (self.storage_temperature or "").lower()
        return bool(temp) and ("°c" in temp or "cold" in temp or "freeze" in temp)

    @property
    def remaining_value(self) -> Decimal:
        return Decimal(self.unit_cost or 0) * int(self.quantity_remaining or 0)

    def __str__(self):
        return f"{self.product_name_snapshot} | Batch {self.batch_number} | {self.status}"
