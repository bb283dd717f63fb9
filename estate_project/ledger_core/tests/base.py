import datetime
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase

from ledger_core.models import Account, Resident
from ledger_core.services.accounts import ensure_chart_of_accounts


class LedgerTestCase(TestCase):
    """Seeded chart of accounts plus one billable resident."""

    def setUp(self):
        ensure_chart_of_accounts()
        self.user = get_user_model().objects.create_user(
            username="treasurer", password="secret")
        self.resident = Resident.objects.create(
            unit_number="A1",
            full_name="Ada Obi",
            service_charge=Decimal("50000.00"),
            start_date=datetime.date(2024, 1, 1),
        )

    def account(self, number):
        return Account.objects.get(number=number)

    # Fresh read, balances are updated in SQL
    def balance(self, number):
        return self.account(number).balance
