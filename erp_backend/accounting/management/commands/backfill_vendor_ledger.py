# accounting/management/commands/backfill_vendor_ledger.py

from __future__ import annotations

import uuid

from django.core.management.base import BaseCommand, CommandError

from accounting.services.reconciliation import backfill_vendor_ledger


class Command(BaseCommand):
    help = "Post missing vendor ledger entries for recorded purchases, payments and returns."

    def add_arguments(self, parser):
        parser.add_argument(
            "--vendor",
            dest="vendor_id",
            help="Only this vendor id (default: all vendors)",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would change without saving.",
        )

    def handle(self, *args, **options):
        dry_run = bool(options.get("dry_run"))
        vendor_id = options.get("vendor_id")
        if vendor_id:
            try:
                vendor_id = uuid.UUID(str(vendor_id))
            except ValueError as exc:
                raise CommandError(f"Vendor {vendor_id} not found") from exc

        self.stdout.write("Backfilling vendor ledger...")
        if dry_run:
            self.stdout.write("DRY RUN: no database changes will be saved.\n")

        result = backfill_vendor_ledger(vendor_id=vendor_id, dry_run=dry_run)

        self.stdout.write(f"Purchases:          {result.purchases}")
        self.stdout.write(f"Purchase reversals: {result.purchase_reversals}")
        self.stdout.write(f"Payments:           {result.payments}")
        self.stdout.write(f"Returns:            {result.returns}")
        self.stdout.write(f"Return reversals:   {result.return_reversals}")
        self.stdout.write(f"Vendors touched:    {len(result.vendor_ids)}")

        if result.total == 0:
            self.stdout.write(self.style.SUCCESS("Nothing to backfill"))
        else:
            verb = "would be posted" if dry_run else "posted"
            self.stdout.write(self.style.SUCCESS(f"{result.total} entr(y/ies) {verb}"))
