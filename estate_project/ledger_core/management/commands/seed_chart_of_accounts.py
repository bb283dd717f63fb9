from django.core.management.base import BaseCommand
from django.db import transaction

from ledger_core.models import Account, BankAccount
from ledger_core.services.accounts import ensure_chart_of_accounts


class Command(BaseCommand):
    help = (
        "Provision the default chart of accounts, including the system "
        "accounts billing and payments post to (1100, 2200, 2300, 4000)."
    )

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--bank-name",  # Define flag
            help="Map this bank to the default Bank Account (1010).",
        )
        parser.add_argument(
            "--bank-account-number",
            default="",
            help="Account number printed on that bank's statements.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        created = ensure_chart_of_accounts()
        for acct in created:
            self.stdout.write(f"  created {acct}")

        # Optional explicit bank → ledger mapping
        bank_name = options["bank_name"]
        if bank_name:
            mapping, was_created = BankAccount.objects.get_or_create(
                bank_name=bank_name,
                account_number=options["bank_account_number"],
                defaults={
                    "ledger_account": Account.objects.get(number="1010"),
                },
            )
            verb = "Mapped" if was_created else "Already mapped"
            self.stdout.write(f"{verb} {mapping} → {mapping.ledger_account}")

        self.stdout.write(
            self.style.SUCCESS(
                f"Chart of accounts ready ({len(created)} accounts created)."
            )
        )
