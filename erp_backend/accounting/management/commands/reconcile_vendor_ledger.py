# accounting/management/commands/reconcile_vendor_ledger.py

from __future__ import annotations

import uuid

from django.core.management.base import BaseCommand

from accounting.services.balance_projector import reconcile_vendor
from accounting.services.reconciliation import deduplicate_ledger_entries, verify_vendor_ledger
from purchases.models import Vendor


class Command(BaseCommand):
    help = "Replay vendor ledgers: fix running balances and vendor aggregates (optionally dedupe first)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--vendor",
            dest="vendor_id",
            help="Only this vendor id (default: all vendors)",
        )
        parser.add_argument(
            "--dedupe",
            action="store_true",
            help="Delete duplicate (reference_id, entry_type) entries, keeping the earliest.",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would change without saving.",
        )
        parser.add_argument(
            "--strict",
            action="store_true",
            help="Fail (non-zero exit) if any problem remains after the run.",
        )

    def handle(self, *args, **options):
        vendor_id = options.get("vendor_id")
        dry_run = bool(options.get("dry_run"))
        strict = bool(options.get("strict"))

        vendors = Vendor.objects.all().order_by("name")
        if vendor_id:
            try:
                vendor_id = uuid.UUID(str(vendor_id))
            except ValueError:
                self.stderr.write(self.style.ERROR(f"Vendor {vendor_id} not found"))
                return self._exit(strict)
            vendors = vendors.filter(pk=vendor_id)
            if not vendors.exists():
                self.stderr.write(self.style.ERROR(f"Vendor {vendor_id} not found"))
                return self._exit(strict)

        self.stdout.write(self.style.MIGRATE_HEADING("Vendor ledger reconciliation"))
        if dry_run:
            self.stdout.write("DRY RUN: no database changes will be saved.\n")

        if options.get("dedupe"):
            dedup = deduplicate_ledger_entries(vendor_id=vendor_id, dry_run=dry_run)
            if dedup.deleted:
                self.stdout.write(
                    self.style.WARNING(
                        f"Duplicates: {dedup.groups} group(s), {dedup.deleted} entr(y/ies) removed"
                    )
                )
            else:
                self.stdout.write(self.style.SUCCESS("[OK] No duplicate ledger entries"))

        problems = 0
        for vendor in vendors:
            result = reconcile_vendor(vendor.id, dry_run=dry_run)
            if result.entries_corrected or result.aggregates_changed:
                self.stdout.write(
                    f"{vendor.name}: {result.entries_corrected}/{result.entry_count} running balance(s) corrected, "
                    f"balance {result.balance_before} -> {result.balance_after}"
                )
            else:
                self.stdout.write(f"{vendor.name}: OK ({result.entry_count} entries)")

            if not dry_run:
                report = verify_vendor_ledger(vendor.id)
                if not report.ok:
                    problems += 1
                    self.stderr.write(self.style.ERROR(f"[FAIL] {vendor.name} still inconsistent"))
                    for dup in report.duplicate_groups[:10]:
                        self.stderr.write(
                            f"  duplicate {dup['entry_type']}:{dup['reference_id']} count={dup['count']}"
                        )

        self.stdout.write("")
        if problems == 0:
            self.stdout.write(self.style.SUCCESS("Reconciliation finished"))
        else:
            self.stderr.write(self.style.ERROR(f"Reconciliation left {problems} vendor(s) inconsistent"))

        return self._exit(strict and problems > 0)

    def _exit(self, fail: bool):
        if fail:
            raise SystemExit(1)
        return None
