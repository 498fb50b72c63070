# inventory/management/commands/report_expiring_batches.py

from __future__ import annotations

import json
from datetime import date

from django.core.management.base import BaseCommand, CommandError

from inventory.models import ProductType
from inventory.services.expiry_monitor import expiring_report


class Command(BaseCommand):
    help = "Print batches expiring within N days (soonest first)."

    def add_arguments(self, parser):
        parser.add_argument("--days", type=int, default=None, help="Days ahead (default: EXPIRING_SOON_DAYS).")
        parser.add_argument("--product-type", type=str, default="", choices=["", *ProductType.values])
        parser.add_argument("--as-of", type=str, default="", help="Reference day (YYYY-MM-DD). Default: today.")
        parser.add_argument("--json", action="store_true", help="Emit the raw report payload as JSON.")

    def handle(self, *args, **options):
        days = options.get("days")
        if days is not None and days < 0:
            raise CommandError("--days must be zero or positive")

        as_of = None
        raw = (options.get("as_of") or "").strip()
        if raw:
            try:
                as_of = date.fromisoformat(raw)
            except ValueError as exc:
                raise CommandError(f"--as-of must be YYYY-MM-DD, got {raw!r}") from exc

        report = expiring_report(days, as_of, product_type=options.get("product_type") or None)

        if options.get("json"):
            self.stdout.write(json.dumps(report, default=str, indent=2))
            return

        self.stdout.write(
            f"Batches expiring within {report['days_ahead']} day(s) of {report['as_of']}: {report['count']}"
        )
        for row in report["batches"]:
            self.stdout.write(
                f"[{row['urgency'].upper():9}] {row['expiry_date']} | {row['product_name_snapshot']} "
                f"| batch {row['batch_number']} | remaining {row['quantity_remaining']}"
            )
