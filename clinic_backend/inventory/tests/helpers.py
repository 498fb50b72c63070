# inventory/tests/helpers.py

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from types import SimpleNamespace
import uuid

from django.contrib.auth import get_user_model
from django.utils import timezone

from inventory.models import ProductType
from inventory.products import ProductRef
from inventory.services.stock_transactions import receive_stock

User = get_user_model()


def make_actor(username: str = "pharmacist"):
    return User.objects.create_user(username=username, password="pass12345")


def make_product(
    pid: str = "MED-100",
    name: str = "Paracetamol 500mg",
    product_type: str = ProductType.MEDICATION,
    **extra,
) -> ProductRef:
    return ProductRef(id=pid, name=name, product_type=product_type, **extra)


def days_from_today(days: int) -> date:
    return timezone.localdate() + timedelta(days=days)


def receive(product, actor, *, batch_number: str, quantity: int, expiry_date: date, as_of=None, **extra):
    data = {
        "batch_number": batch_number,
        "quantity_received": quantity,
        "expiry_date": expiry_date.isoformat(),
        "unit_cost": "2.50",
    }
    data.update(extra)
    return receive_stock(product=product, data=data, actor=actor, as_of=as_of)


def snapshot_batch(*, remaining: int, expiry_date: date, received_date: date | None = None, batch_id=None, unit_cost="1.00"):
    """Plain object standing in for a StockBatch row (allocator tests)."""
    bid = batch_id or uuid.uuid4()
    return SimpleNamespace(
        id=bid,
        batch_number=f"B-{str(bid)[:8]}",
        quantity_remaining=remaining,
        expiry_date=expiry_date,
        received_date=received_date or date(2024, 1, 1),
        unit_cost=Decimal(unit_cost),
    )
