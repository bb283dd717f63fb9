import datetime

from django.core.management.base import BaseCommand, CommandError

from ledger_core.exceptions import ConfigurationError
from ledger_core.services.billing import generate_bills_for_all_eligible


class Command(BaseCommand):
    help = "Run the service-charge billing for every eligible resident."

    def add_arguments(self, parser):
        parser.add_argument(
            "--date",
            help="Bill as of this date (YYYY-MM-DD), defaults to today.",
        )

    def handle(self, *args, **options):
        today = None
        if options["date"]:
            try:
                today = datetime.date.fromisoformat(options["date"])
            except ValueError:
                raise CommandError(f"Invalid --date {options['date']!r}")

        try:
            result = generate_bills_for_all_eligible(today=today)
        except ConfigurationError as exc:
            # Operator has to fix the chart before anything is billed
            raise CommandError(str(exc))

        for bill in result.bills:
            self.stdout.write(
                f"  {bill.invoice_number}  {bill.resident.unit_number}  "
                f"{bill.amount}"
            )
        for err in result.errors:
            self.stderr.write(
                self.style.ERROR(f"  unit {err.unit_number}: {err.reason}"))

        style = self.style.SUCCESS if not result.failed else self.style.WARNING
        self.stdout.write(
            style(
                f"Billed {result.success}, failed {result.failed}, "
                f"skipped {result.skipped}."
            )
        )
