# inventory/tests/test_commands.py

import json
from datetime import date
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from inventory.models import BatchStatus, ProductType

from .helpers import make_actor, make_product, receive

INTAKE_DAY = date(2025, 1, 2)


class InventoryCommandTests(TestCase):
    def setUp(self):
        self.actor = make_actor()
        self.stale = receive(
            make_product(),
            self.actor,
            batch_number="CMD-OLD",
            quantity=8,
            expiry_date=date(2025, 2, 1),
            as_of=INTAKE_DAY,
        )
        self.soon = receive(
            make_product(pid="VAC-2", name="OPV", product_type=ProductType.VACCINE),
            self.actor,
            batch_number="CMD-SOON",
            quantity=50,
            expiry_date=date(2025, 2, 20),
            as_of=INTAKE_DAY,
        )

    def test_sync_dry_run_changes_nothing(self):
        out = StringIO()
        call_command("sync_batch_expiry", "--as-of", "2025-02-15", "--dry-run", stdout=out)

        self.assertIn("DRY RUN", out.getvalue())
        self.assertIn("CMD-OLD", out.getvalue())
        self.stale.refresh_from_db()
        self.assertEqual(self.stale.status, BatchStatus.ACTIVE)

    def test_sync_marks_expired(self):
        out = StringIO()
        call_command("sync_batch_expiry", "--as-of", "2025-02-15", stdout=out)

        self.assertIn("1 batch(es) expired", out.getvalue())
        self.stale.refresh_from_db()
        self.soon.refresh_from_db()
        self.assertEqual(self.stale.status, BatchStatus.EXPIRED)
        self.assertEqual(self.soon.status, BatchStatus.ACTIVE)

    def test_sync_rejects_bad_date(self):
        with self.assertRaises(CommandError):
            call_command("sync_batch_expiry", "--as-of", "15/02/2025", stdout=StringIO())

    def test_report_text(self):
        out = StringIO()
        call_command("report_expiring_batches", "--as-of", "2025-02-15", "--days", "30", stdout=out)

        text = out.getvalue()
        self.assertIn("CMD-SOON", text)
        self.assertIn("[CRITICAL", text)
        self.assertNotIn("CMD-OLD", text)

    def test_report_json(self):
        out = StringIO()
        call_command(
            "report_expiring_batches",
            "--as-of",
            "2025-02-15",
            "--product-type",
            "vaccine",
            "--json",
            stdout=out,
        )

        payload = json.loads(out.getvalue())
        self.assertEqual(payload["count"], 1)
        self.assertEqual(payload["batches"][0]["batch_number"], "CMD-SOON")

    def test_report_rejects_negative_days(self):
        with self.assertRaises(CommandError):
            call_command("report_expiring_batches", "--days", "-1", stdout=StringIO())
