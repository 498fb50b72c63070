# inventory/serializers/stock_batch.py
"""
======================================================
PATH: inventory/serializers/stock_batch.py
======================================================
STOCK BATCH SERIALIZERS

Purpose:
- StockBatchIntakeSerializer: coerce raw intake payloads (strings from forms,
  JSON numbers, dates) into typed values before a batch is built.
- StockBatchSerializer: render batches with derived read-time fields for
  reports and the alerting collaborator.

Notes:
- quantity_remaining / status / version are never accepted from callers on
  existing batches; they are service-managed.
- unit_cost / manufacturer / supplier are optional at intake; the product
  master fills them in when omitted.
"""

from __future__ import annotations

from decimal import Decimal

from django.utils import timezone
from rest_framework import serializers

from inventory.models import StockBatch


class StockBatchIntakeSerializer(serializers.Serializer):
    batch_number = serializers.CharField(max_length=64)
    quantity_received = serializers.IntegerField(min_value=1)
    quantity_remaining = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    unit_cost = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0.00"),
        required=False,
        allow_null=True,
    )
    expiry_date = serializers.DateField()
    received_date = serializers.DateField(required=False, allow_null=True)

    supplier = serializers.CharField(max_length=100, required=False, allow_blank=True)
    manufacturer = serializers.CharField(max_length=100, required=False, allow_blank=True)
    purchase_order_number = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    storage_location = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    lot_number = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    storage_temperature = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    vvm_stage = serializers.IntegerField(min_value=1, max_value=4, required=False, allow_null=True)

    def validate(self, attrs):
        remaining = attrs.get("quantity_remaining")
        if remaining is not None and remaining > attrs["quantity_received"]:
            raise serializers.ValidationError(
                {"quantity_remaining": "quantity_remaining cannot exceed quantity_received"}
            )
        return attrs


class StockBatchSerializer(serializers.ModelSerializer):
    """
    Read-only batch view.

    Context:
    - as_of (date): reference day for derived expiry fields (default: today)
    """

    quantity_used = serializers.IntegerField(read_only=True)
    usage_percentage = serializers.IntegerField(read_only=True)
    is_cold_chain = serializers.BooleanField(read_only=True)
    days_until_expiry = serializers.SerializerMethodField()
    expiry_class = serializers.SerializerMethodField()
    urgency = serializers.SerializerMethodField()

    class Meta:
        model = StockBatch
        fields = [
            "id",
            "product_id",
            "product_type",
            "product_name_snapshot",
            "batch_number",
            "lot_number",
            "quantity_received",
            "quantity_remaining",
            "quantity_used",
            "usage_percentage",
            "unit_cost",
            "expiry_date",
            "received_date",
            "days_until_expiry",
            "expiry_class",
            "urgency",
            "supplier",
            "manufacturer",
            "storage_location",
            "storage_temperature",
            "is_cold_chain",
            "vvm_stage",
            "status",
        ]

    def _as_of(self):
        return self.context.get("as_of") or timezone.localdate()

    def get_days_until_expiry(self, obj) -> int:
        return obj.days_until_expiry(self._as_of())

    def get_expiry_class(self, obj) -> str:
        from inventory.services.expiry_monitor import classify_expiry

        return classify_expiry(obj.expiry_date, self._as_of())

    def get_urgency(self, obj) -> str:
        from inventory.services.expiry_monitor import expiry_urgency

        return expiry_urgency(obj.days_until_expiry(self._as_of()))
