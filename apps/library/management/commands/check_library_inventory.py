from django.core.management.base import BaseCommand, CommandError

from apps.library.exceptions import InvariantViolation
from apps.library.services import CatalogService


class Command(BaseCommand):
    help = 'Compare cached available copies with the issue records'

    def add_arguments(self, parser):
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Recompute available copies for books that drifted',
        )

    def handle(self, *args, **options):
        drift = CatalogService.inventory_report()
        if not drift:
            self.stdout.write(self.style.SUCCESS("Inventory is consistent"))
            return

        for row in drift:
            self.stdout.write(
                f"{row['title']} ({row['book_id']}): available {row['available_copies']}, "
                f"expected {row['expected_available']} "
                f"({row['on_loan']} of {row['total_copies']} on loan)"
            )

        if not options['fix']:
            raise CommandError(f"{len(drift)} book(s) have inconsistent availability; rerun with --fix")

        failed = 0
        for row in drift:
            try:
                previous, current = CatalogService.reconcile(row['book_id'])
            except InvariantViolation as e:
                failed += 1
                self.stdout.write(self.style.ERROR(f"  {row['title']}: {e}"))
                continue
            self.stdout.write(self.style.SUCCESS(f"  {row['title']}: {previous} -> {current}"))

        if failed:
            raise CommandError(f"{failed} book(s) could not be reconciled")
        self.stdout.write(self.style.SUCCESS(f"Reconciled {len(drift)} book(s)"))
