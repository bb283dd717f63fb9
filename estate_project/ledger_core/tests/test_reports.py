import datetime
from decimal import Decimal

from ledger_core.models import Resident
from ledger_core.services.billing import generate_bill_for_resident
from ledger_core.services.payment import apply_payment_to_bill
from ledger_core.services.posting import (credit, debit, post_journal_entry,
                                          void_journal_entry)
from ledger_core.services.reports import (get_ar_aging, get_balance_sheet,
                                          get_income_statement,
                                          get_trial_balance)

from .base import LedgerTestCase

JAN_1 = datetime.date(2024, 1, 1)
MAR_1 = datetime.date(2024, 3, 1)


class TrialBalanceTests(LedgerTestCase):

    def setUp(self):
        super().setUp()
        self.je = post_journal_entry(
            entry_date=MAR_1,
            description="Opening balance",
            lines=[
                debit(self.account("1010"), Decimal("50000.00")),
                credit(self.account("3010"), Decimal("50000.00")),
            ],
        )

    def test_single_entry_balances(self):
        tb = get_trial_balance(datetime.date(2024, 3, 31))

        self.assertEqual(tb["total_debits"], Decimal("50000.00"))
        self.assertEqual(tb["total_credits"], Decimal("50000.00"))
        self.assertTrue(tb["balanced"])
        rows = {row["number"]: row for row in tb["accounts"]}
        self.assertEqual(rows["1010"]["debit"], Decimal("50000.00"))
        self.assertEqual(rows["3010"]["credit"], Decimal("50000.00"))

    def test_entries_after_the_date_are_ignored(self):
        tb = get_trial_balance(datetime.date(2024, 2, 28))
        self.assertEqual(tb["accounts"], [])
        self.assertEqual(tb["total_debits"], Decimal("0.00"))
        self.assertTrue(tb["balanced"])

    def test_void_entries_are_excluded(self):
        void_journal_entry(self.je.pk)
        tb = get_trial_balance(datetime.date(2024, 3, 31))
        self.assertEqual(tb["accounts"], [])

    def test_negative_balance_moves_to_the_other_column(self):
        post_journal_entry(
            entry_date=MAR_1,
            description="Overdrawn",
            lines=[
                debit(self.account("5080"), Decimal("60000.00")),
                credit(self.account("1010"), Decimal("60000.00")),
            ],
        )
        tb = get_trial_balance(datetime.date(2024, 3, 31))
        rows = {row["number"]: row for row in tb["accounts"]}
        self.assertEqual(rows["1010"]["balance"], Decimal("-10000.00"))
        self.assertEqual(rows["1010"]["credit"], Decimal("10000.00"))
        self.assertTrue(tb["balanced"])


class FinancialStatementTests(LedgerTestCase):

    def setUp(self):
        super().setUp()
        self.bill = generate_bill_for_resident(self.resident.pk, today=JAN_1)
        apply_payment_to_bill(self.bill.pk, Decimal("50000.00"),
                              payment_date=datetime.date(2024, 2, 1))
        post_journal_entry(
            entry_date=MAR_1,
            description="Security contract",
            lines=[
                debit(self.account("5010"), Decimal("15000.00")),
                credit(self.account("1010"), Decimal("15000.00")),
            ],
        )

    def test_income_statement(self):
        report = get_income_statement(JAN_1, datetime.date(2024, 12, 31))

        self.assertEqual(report["total_revenue"], Decimal("50000.00"))
        self.assertEqual(report["total_expenses"], Decimal("15000.00"))
        self.assertEqual(report["net_income"], Decimal("35000.00"))

    def test_income_statement_respects_range(self):
        report = get_income_statement(JAN_1, datetime.date(2024, 1, 31))
        # billing alone recognizes nothing
        self.assertEqual(report["total_revenue"], Decimal("0.00"))
        self.assertEqual(report["net_income"], Decimal("0.00"))

    def test_balance_sheet_identity(self):
        for as_of in (JAN_1, datetime.date(2024, 2, 1), MAR_1):
            sheet = get_balance_sheet(as_of)
            self.assertTrue(sheet["balanced"], as_of)
            self.assertEqual(
                sheet["total_assets"],
                sheet["total_liabilities"] + sheet["total_equity"],
            )

        sheet = get_balance_sheet(MAR_1)
        self.assertEqual(sheet["total_assets"], Decimal("35000.00"))
        self.assertEqual(sheet["net_income"], Decimal("35000.00"))
        self.assertEqual(sheet["equity"][-1]["name"],
                         "Current Year Net Income")

    def test_unpaid_bill_sits_in_receivables_and_deferred_revenue(self):
        sheet = get_balance_sheet(JAN_1)
        assets = {row["number"]: row["amount"] for row in sheet["assets"]}
        liabilities = {
            row["number"]: row["amount"] for row in sheet["liabilities"]}
        self.assertEqual(assets["1100"], Decimal("50000.00"))
        self.assertEqual(liabilities["2200"], Decimal("50000.00"))


class ArAgingTests(LedgerTestCase):

    def setUp(self):
        super().setUp()
        # due 2024-01-08
        self.bill = generate_bill_for_resident(self.resident.pk, today=JAN_1)
        other = Resident.objects.create(
            unit_number="B2",
            service_charge=Decimal("30000.00"),
            start_date=datetime.date(2024, 3, 1),
        )
        # due 2024-03-08
        self.other_bill = generate_bill_for_resident(other.pk, today=MAR_1)

    def test_bill_is_current_on_its_due_date(self):
        self.assertFalse(self.bill.is_overdue(datetime.date(2024, 1, 8)))
        self.assertTrue(self.bill.is_overdue(datetime.date(2024, 1, 9)))

    def test_buckets(self):
        aging = get_ar_aging(datetime.date(2024, 3, 10))

        # 62 days past due vs 2 days past due
        self.assertEqual(aging["buckets"]["61_90"], Decimal("50000.00"))
        self.assertEqual(aging["buckets"]["1_30"], Decimal("30000.00"))
        self.assertEqual(aging["total_outstanding"], Decimal("80000.00"))
        self.assertEqual(aging["total_overdue"], Decimal("80000.00"))

    def test_paid_bills_drop_out(self):
        apply_payment_to_bill(self.bill.pk, Decimal("50000.00"))
        aging = get_ar_aging(datetime.date(2024, 3, 8))

        self.assertEqual(len(aging["bills"]), 1)
        self.assertEqual(aging["buckets"]["current"], Decimal("30000.00"))
        self.assertEqual(aging["total_overdue"], Decimal("0.00"))
