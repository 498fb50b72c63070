# inventory/tests/test_batch_record.py

from datetime import date, timedelta
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.test import SimpleTestCase, TestCase

from inventory.models import (
    BatchStatus,
    ProductType,
    StockBatch,
    can_transition,
    initial_status,
    reconcile_status,
)

from .helpers import make_actor, make_product, receive

AS_OF = date(2025, 3, 1)


class ReconcileStatusTests(SimpleTestCase):
    """
    Pure status derivation.

    GUARANTEES:
    - active + empty -> depleted
    - past expiry (active or depleted) -> expired
    - idempotent for the same as_of
    - expired never goes back to active
    """

    def test_active_with_stock_stays_active(self):
        status = reconcile_status(
            status=BatchStatus.ACTIVE,
            quantity_remaining=5,
            expiry_date=AS_OF + timedelta(days=10),
            as_of=AS_OF,
        )
        self.assertEqual(status, BatchStatus.ACTIVE)

    def test_empty_active_becomes_depleted(self):
        status = reconcile_status(
            status=BatchStatus.ACTIVE,
            quantity_remaining=0,
            expiry_date=AS_OF + timedelta(days=10),
            as_of=AS_OF,
        )
        self.assertEqual(status, BatchStatus.DEPLETED)

    def test_past_expiry_active_becomes_expired(self):
        status = reconcile_status(
            status=BatchStatus.ACTIVE,
            quantity_remaining=5,
            expiry_date=AS_OF - timedelta(days=1),
            as_of=AS_OF,
        )
        self.assertEqual(status, BatchStatus.EXPIRED)

    def test_depleted_past_expiry_becomes_expired(self):
        status = reconcile_status(
            status=BatchStatus.DEPLETED,
            quantity_remaining=0,
            expiry_date=AS_OF - timedelta(days=1),
            as_of=AS_OF,
        )
        self.assertEqual(status, BatchStatus.EXPIRED)

    def test_expiring_today_is_not_expired(self):
        status = reconcile_status(
            status=BatchStatus.ACTIVE,
            quantity_remaining=5,
            expiry_date=AS_OF,
            as_of=AS_OF,
        )
        self.assertEqual(status, BatchStatus.ACTIVE)

    def test_manual_statuses_are_left_alone(self):
        for status in (BatchStatus.RECALLED, BatchStatus.QUARANTINE, BatchStatus.DISPOSED):
            with self.subTest(status=status):
                self.assertEqual(
                    reconcile_status(
                        status=status,
                        quantity_remaining=0,
                        expiry_date=AS_OF - timedelta(days=30),
                        as_of=AS_OF,
                    ),
                    status,
                )

    def test_idempotent_for_same_as_of(self):
        cases = [
            (BatchStatus.ACTIVE, 0, AS_OF + timedelta(days=3)),
            (BatchStatus.ACTIVE, 4, AS_OF - timedelta(days=3)),
            (BatchStatus.ACTIVE, 0, AS_OF - timedelta(days=3)),
            (BatchStatus.DEPLETED, 0, AS_OF - timedelta(days=3)),
        ]
        for status, remaining, expiry in cases:
            with self.subTest(status=status, remaining=remaining, expiry=expiry):
                once = reconcile_status(status=status, quantity_remaining=remaining, expiry_date=expiry, as_of=AS_OF)
                twice = reconcile_status(status=once, quantity_remaining=remaining, expiry_date=expiry, as_of=AS_OF)
                self.assertEqual(once, twice)

    def test_expired_never_reverts_even_if_as_of_moves_back(self):
        status = reconcile_status(
            status=BatchStatus.EXPIRED,
            quantity_remaining=5,
            expiry_date=AS_OF + timedelta(days=100),
            as_of=AS_OF,
        )
        self.assertEqual(status, BatchStatus.EXPIRED)

    def test_initial_status(self):
        self.assertEqual(initial_status(AS_OF - timedelta(days=1), AS_OF), BatchStatus.EXPIRED)
        self.assertEqual(initial_status(AS_OF, AS_OF), BatchStatus.ACTIVE)

    def test_state_machine(self):
        self.assertTrue(can_transition(BatchStatus.ACTIVE, BatchStatus.RECALLED))
        self.assertTrue(can_transition(BatchStatus.EXPIRED, BatchStatus.DISPOSED))
        self.assertTrue(can_transition(BatchStatus.QUARANTINE, BatchStatus.ACTIVE))
        self.assertFalse(can_transition(BatchStatus.ACTIVE, BatchStatus.DISPOSED))
        self.assertFalse(can_transition(BatchStatus.DEPLETED, BatchStatus.ACTIVE))
        self.assertFalse(can_transition(BatchStatus.EXPIRED, BatchStatus.ACTIVE))
        self.assertFalse(can_transition(BatchStatus.DISPOSED, BatchStatus.DISPOSED))


class DerivedFieldTests(SimpleTestCase):
    def _batch(self, **overrides):
        values = {
            "product_id": "VAC-1",
            "product_type": ProductType.VACCINE,
            "product_name_snapshot": "BCG",
            "batch_number": "BCG-2025-001",
            "quantity_received": 40,
            "quantity_remaining": 30,
            "unit_cost": Decimal("3.00"),
            "expiry_date": AS_OF + timedelta(days=20),
            "received_date": AS_OF - timedelta(days=5),
        }
        values.update(overrides)
        return StockBatch(**values)

    def test_usage(self):
        batch = self._batch()
        self.assertEqual(batch.quantity_used, 10)
        self.assertEqual(batch.usage_percentage, 25)
        self.assertEqual(batch.remaining_value, Decimal("90.00"))

    def test_expiry_derivations(self):
        batch = self._batch()
        self.assertEqual(batch.days_until_expiry(AS_OF), 20)
        self.assertFalse(batch.is_expired(AS_OF))
        self.assertTrue(batch.is_expiring_soon(AS_OF))
        self.assertFalse(batch.is_expiring_soon(AS_OF - timedelta(days=20)))
        self.assertTrue(batch.is_expired(AS_OF + timedelta(days=21)))

    def test_cold_chain(self):
        self.assertTrue(self._batch(storage_temperature="2-8°C").is_cold_chain)
        self.assertTrue(self._batch(storage_temperature="Keep cold").is_cold_chain)
        self.assertFalse(self._batch(storage_temperature="").is_cold_chain)

    def test_reconcile_mutates_in_memory_only(self):
        batch = self._batch(quantity_remaining=0)
        self.assertTrue(batch.reconcile(AS_OF))
        self.assertEqual(batch.status, BatchStatus.DEPLETED)
        self.assertFalse(batch.reconcile(AS_OF))


class StockBatchModelTests(TestCase):
    """
    Model-level guards.

    GUARANTEES:
    - 0 <= remaining <= received
    - immutable identity / receipt fields
    - batches are never deleted
    """

    def setUp(self):
        self.actor = make_actor()
        self.product = make_product()
        self.batch = receive(
            self.product,
            self.actor,
            batch_number="PCM-0001",
            quantity=50,
            expiry_date=AS_OF + timedelta(days=365),
            as_of=AS_OF,
        )

    def test_remaining_cannot_exceed_received(self):
        self.batch.quantity_remaining = 51
        with self.assertRaises(DjangoValidationError):
            self.batch.save()

    def test_quantity_received_is_immutable(self):
        self.batch.quantity_received = 60
        with self.assertRaises(DjangoValidationError):
            self.batch.save()

    def test_expiry_date_is_immutable(self):
        self.batch.expiry_date = self.batch.expiry_date + timedelta(days=1)
        with self.assertRaises(DjangoValidationError):
            self.batch.save()

    def test_metadata_can_change(self):
        self.batch.storage_location = "Shelf A-1"
        self.batch.save()
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.storage_location, "Shelf A-1")

    def test_delete_is_blocked(self):
        with self.assertRaises(DjangoValidationError):
            self.batch.delete()
        self.assertTrue(StockBatch.objects.filter(pk=self.batch.pk).exists())

    def test_database_rejects_remaining_above_received(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                StockBatch.objects.filter(pk=self.batch.pk).update(quantity_remaining=500)
