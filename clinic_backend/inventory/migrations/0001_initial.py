"""
======================================================
PATH: inventory/migrations/0001_initial.py
======================================================
MIGRATION: CREATE StockBatch

- One generic batch table for medications and vaccines.
- Unique batch_number across all products.
- Composite (product_id, status, expiry_date) index for FIFO queries.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="StockBatch",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("product_id", models.CharField(max_length=64)),
                (
                    "product_type",
                    models.CharField(
                        choices=[("medication", "Medication"), ("vaccine", "Vaccine")],
                        max_length=16,
                    ),
                ),
                (
                    "product_name_snapshot",
                    models.CharField(
                        help_text="Product name at receipt time (history stays stable after renames)",
                        max_length=255,
                    ),
                ),
                (
                    "batch_number",
                    models.CharField(
                        help_text="Batch reference, unique across all products",
                        max_length=64,
                        unique=True,
                    ),
                ),
                (
                    "quantity_received",
                    models.PositiveIntegerField(help_text="Units / doses delivered (immutable)"),
                ),
                (
                    "quantity_remaining",
                    models.PositiveIntegerField(help_text="Remaining units (service-managed only)"),
                ),
                (
                    "unit_cost",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12),
                ),
                ("expiry_date", models.DateField()),
                ("received_date", models.DateField(default=django.utils.timezone.localdate)),
                ("supplier", models.CharField(blank=True, default="", max_length=100)),
                ("manufacturer", models.CharField(blank=True, default="", max_length=100)),
                ("purchase_order_number", models.CharField(blank=True, default="", max_length=50)),
                ("storage_location", models.CharField(blank=True, default="", max_length=50)),
                ("notes", models.TextField(blank=True, default="")),
                ("lot_number", models.CharField(blank=True, default="", max_length=50)),
                ("storage_temperature", models.CharField(blank=True, default="", max_length=50)),
                (
                    "vvm_stage",
                    models.PositiveSmallIntegerField(
                        blank=True,
                        help_text="Vaccine vial monitor stage (1 = good, 4 = discard)",
                        null=True,
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(4),
                        ],
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("active", "Active"),
                            ("expired", "Expired"),
                            ("depleted", "Depleted"),
                            ("recalled", "Recalled"),
                            ("quarantine", "Quarantine"),
                            ("disposed", "Disposed"),
                        ],
                        default="active",
                        max_length=16,
                    ),
                ),
                ("version", models.PositiveIntegerField(default=1)),
                ("disposed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="created_stock_batches",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "last_updated_by",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="updated_stock_batches",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "disposed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="disposed_stock_batches",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["expiry_date", "received_date", "id"],
                "indexes": [
                    models.Index(
                        fields=["product_id", "status", "expiry_date"],
                        name="inv_batch_fifo_idx",
                    ),
                    models.Index(
                        fields=["product_type", "status", "expiry_date"],
                        name="inv_batch_expiry_scan_idx",
                    ),
                    models.Index(fields=["expiry_date"], name="inv_batch_expiry_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(quantity_received__gt=0),
                        name="chk_batch_qty_received_gt_zero",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(quantity_remaining__lte=models.F("quantity_received")),
                        name="chk_batch_remaining_lte_received",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(unit_cost__gte=0),
                        name="chk_batch_unit_cost_gte_zero",
                    ),
                ],
            },
        ),
    ]
