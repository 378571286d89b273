"""
Management command to validate stock ledger parity.

This command recomputes current_quantity from StockMovement totals and
compares it against StockItem.current_quantity.

Usage:
    python manage.py stock_check
    python manage.py stock_check --verbose
    python manage.py stock_check --fix

Exit codes:
    0 - All stock items match the ledger (clean, or fixed with --fix)
    1 - One or more mismatches found
"""
from django.core.management.base import BaseCommand, CommandError

from procurement.audit import log_stock_reconciliation
from procurement.ledger import StockTotals, apply_stock_reconciliation, stock_totals_from_db
from procurement.models import StockItem


class Command(BaseCommand):
    help = "Validate stock ledger parity by recomputing balances from StockMovement"

    def add_arguments(self, parser):
        parser.add_argument(
            "--verbose",
            action="store_true",
            help="Show detailed output for each item checked",
        )
        parser.add_argument(
            "--fix",
            action="store_true",
            help="Overwrite mismatching balances with the recomputed value",
        )

    def handle(self, *args, **options):
        verbose = options.get("verbose", False)
        fix = options.get("fix", False)

        items = StockItem.objects.order_by("category", "name")
        if not items.exists():
            self.stdout.write(self.style.WARNING("No stock items found to check"))
            return

        totals = stock_totals_from_db()
        mismatches = []
        for item in items:
            expected = totals.get(item.id, StockTotals(0, 0, 0))
            if verbose:
                self.stdout.write(
                    f"{item.name} ({item.category}, {item.unit}): in={expected.in_qty} "
                    f"out={expected.out_qty} expected={expected.resulting_quantity} actual={item.current_quantity}"
                )
            if expected.resulting_quantity != item.current_quantity:
                mismatches.append((item, expected.resulting_quantity))

        self.stdout.write("")
        self.stdout.write("=" * 60)
        self.stdout.write(f"Checked: {items.count()} items")
        self.stdout.write(f"Mismatches: {len(mismatches)}")

        if not mismatches:
            self.stdout.write(self.style.SUCCESS("All stock items match ledger (clean)"))
            return

        for item, expected in mismatches:
            self.stdout.write(
                self.style.ERROR(
                    f"  - {item.name} ({item.category}, {item.unit}): "
                    f"Expected {expected}, Actual {item.current_quantity}, "
                    f"Difference: {item.current_quantity - expected}"
                )
            )

        if fix:
            apply_stock_reconciliation()
            log_stock_reconciliation(None, [item.id for item, _ in mismatches])
            self.stdout.write(self.style.SUCCESS(f"Fixed {len(mismatches)} stock item(s)"))
            return

        raise CommandError("Stock ledger mismatches found; rerun with --fix to recompute balances.", returncode=1)
