# inventory/tests/test_batch_repository.py

from datetime import date

from django.db import transaction
from django.db.transaction import TransactionManagementError
from django.test import TestCase, TransactionTestCase

from inventory.exceptions import (
    DuplicateBatchNumberError,
    InsufficientStockError,
    StaleBatchError,
    ValidationError,
)
from inventory.models import BatchStatus, ProductType, StockBatch
from inventory.services.batch_repository import (
    apply_deduction,
    create_batch,
    find_eligible_for_allocation,
    find_for_product,
    get_batch,
    persist_reconciled_status,
)

from .helpers import make_actor, make_product, receive

INTAKE_DAY = date(2024, 12, 1)


class BatchRepositoryTests(TestCase):
    """
    Row-level persistence.

    GUARANTEES:
    - writes are version-checked (a stale read never overwrites a newer row)
    - duplicate batch numbers become DuplicateBatchNumberError
    - validation happens before any insert
    """

    def setUp(self):
        self.actor = make_actor()
        self.product = make_product()
        self.batch = receive(
            self.product,
            self.actor,
            batch_number="REPO-1",
            quantity=30,
            expiry_date=date(2025, 6, 30),
            as_of=INTAKE_DAY,
        )

    def _new_batch(self, **overrides):
        values = {
            "product_id": self.product.id,
            "product_type": ProductType.MEDICATION,
            "product_name_snapshot": self.product.name,
            "batch_number": "REPO-2",
            "quantity_received": 10,
            "quantity_remaining": 10,
            "expiry_date": date(2025, 9, 1),
            "created_by": self.actor,
            "last_updated_by": self.actor,
        }
        values.update(overrides)
        return StockBatch(**values)

    def test_stale_snapshot_is_rejected(self):
        with transaction.atomic():
            stale = StockBatch.objects.get(pk=self.batch.pk)
            fresh = StockBatch.objects.get(pk=self.batch.pk)

            apply_deduction(fresh, 5, actor=self.actor, as_of=INTAKE_DAY)
            with self.assertRaises(StaleBatchError):
                apply_deduction(stale, 5, actor=self.actor, as_of=INTAKE_DAY)

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity_remaining, 25)
        self.assertEqual(self.batch.version, 2)

    def test_deduction_cannot_exceed_remaining(self):
        with transaction.atomic():
            with self.assertRaises(InsufficientStockError):
                apply_deduction(self.batch, 31, actor=self.actor, as_of=INTAKE_DAY)

    def test_deduction_to_zero_depletes(self):
        with transaction.atomic():
            apply_deduction(self.batch, 30, actor=self.actor, as_of=INTAKE_DAY)
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.status, BatchStatus.DEPLETED)

    def test_persist_reconciled_status_without_actor(self):
        other = make_actor("night-shift")
        with transaction.atomic():
            apply_deduction(self.batch, 1, actor=other, as_of=INTAKE_DAY)
            changed = persist_reconciled_status(self.batch, as_of=date(2025, 7, 1))

        self.assertTrue(changed)
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.status, BatchStatus.EXPIRED)
        self.assertEqual(self.batch.last_updated_by, other)

    def test_duplicate_batch_number(self):
        with transaction.atomic():
            with self.assertRaises(DuplicateBatchNumberError):
                create_batch(self._new_batch(batch_number="REPO-1"))

    def test_invalid_batch_is_not_inserted(self):
        with transaction.atomic():
            with self.assertRaises(ValidationError):
                create_batch(self._new_batch(quantity_remaining=11))
        self.assertFalse(StockBatch.objects.filter(batch_number="REPO-2").exists())

    def test_eligible_batches_are_fifo_ordered(self):
        later = receive(
            self.product, self.actor, batch_number="REPO-LATE", quantity=5, expiry_date=date(2026, 1, 1), as_of=INTAKE_DAY
        )
        earlier = receive(
            self.product, self.actor, batch_number="REPO-EARLY", quantity=5, expiry_date=date(2025, 1, 1), as_of=INTAKE_DAY
        )

        with transaction.atomic():
            batches = find_eligible_for_allocation(self.product.id, lock=True)

        self.assertEqual([b.pk for b in batches], [earlier.pk, self.batch.pk, later.pk])

    def test_get_batch(self):
        self.assertEqual(get_batch(self.batch.pk).batch_number, "REPO-1")
        self.assertEqual(get_batch(str(self.batch.pk)).pk, self.batch.pk)

    def test_find_for_product_returns_every_status_in_fifo_order(self):
        early = receive(
            self.product, self.actor, batch_number="REPO-EARLY", quantity=5, expiry_date=date(2025, 1, 1), as_of=INTAKE_DAY
        )
        gone = receive(
            self.product, self.actor, batch_number="REPO-GONE", quantity=5, expiry_date=date(2025, 3, 1), as_of=INTAKE_DAY
        )
        receive(
            make_product(pid="MED-OTHER", name="Other"),
            self.actor,
            batch_number="REPO-OTHER",
            quantity=5,
            expiry_date=date(2025, 2, 1),
            as_of=INTAKE_DAY,
        )
        with transaction.atomic():
            apply_deduction(gone, 5, actor=self.actor, as_of=INTAKE_DAY)

        batches = find_for_product(self.product.id)
        self.assertEqual([b.pk for b in batches], [early.pk, gone.pk, self.batch.pk])
        self.assertEqual(batches[1].status, BatchStatus.DEPLETED)

        active_only = find_for_product(self.product.id, statuses=[BatchStatus.ACTIVE])
        self.assertEqual([b.pk for b in active_only], [early.pk, self.batch.pk])
        self.assertEqual(find_for_product("MED-NONE"), [])


class AtomicRequirementTests(TransactionTestCase):
    """Mutations refuse to run outside a transaction (they must compose)."""

    def setUp(self):
        self.actor = make_actor()
        self.batch = receive(
            make_product(),
            self.actor,
            batch_number="ATOMIC-1",
            quantity=10,
            expiry_date=date(2025, 6, 30),
            as_of=INTAKE_DAY,
        )

    def test_writes_need_an_open_transaction(self):
        with self.assertRaises(TransactionManagementError):
            apply_deduction(self.batch, 1, actor=self.actor, as_of=INTAKE_DAY)
        with self.assertRaises(TransactionManagementError):
            persist_reconciled_status(self.batch, as_of=INTAKE_DAY)
        with self.assertRaises(TransactionManagementError):
            find_eligible_for_allocation(self.batch.product_id, lock=True)

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.quantity_remaining, 10)

    def test_unlocked_reads_are_allowed(self):
        self.assertEqual(len(find_eligible_for_allocation(self.batch.product_id, lock=False)), 1)
