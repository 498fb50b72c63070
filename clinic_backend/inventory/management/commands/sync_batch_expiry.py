# inventory/management/commands/sync_batch_expiry.py

"""
SYNC BATCH EXPIRY (PERIODIC SWEEP)

Purpose:
- Persist active/depleted -> expired for every batch past its expiry date.
- Meant for cron / scheduler use; safe to rerun (one-way, idempotent).

Options:
- --as-of YYYY-MM-DD   reference day (default: today)
- --dry-run            list what would change without saving
"""

from __future__ import annotations

from datetime import date

from django.core.management.base import BaseCommand, CommandError

from inventory.services.expiry_monitor import sync_expired_batches


class Command(BaseCommand):
    help = "Mark stock batches past their expiry date as expired."

    def add_arguments(self, parser):
        parser.add_argument("--as-of", type=str, default="", help="Reference day (YYYY-MM-DD). Default: today.")
        parser.add_argument("--dry-run", action="store_true", help="Show what would change without saving.")

    def handle(self, *args, **options):
        as_of = None
        raw = (options.get("as_of") or "").strip()
        if raw:
            try:
                as_of = date.fromisoformat(raw)
            except ValueError as exc:
                raise CommandError(f"--as-of must be YYYY-MM-DD, got {raw!r}") from exc

        dry_run = bool(options.get("dry_run"))
        if dry_run:
            self.stdout.write("DRY RUN: no database changes will be saved.")

        changed = sync_expired_batches(as_of, dry_run=dry_run)

        for batch in changed:
            self.stdout.write(
                f"- {batch.batch_number} | {batch.product_name_snapshot} | expiry {batch.expiry_date.isoformat()}"
            )

        verb = "would expire" if dry_run else "expired"
        self.stdout.write(self.style.SUCCESS(f"{len(changed)} batch(es) {verb}."))
