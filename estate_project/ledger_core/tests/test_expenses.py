import datetime
from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError
from django.db import DatabaseError

from ledger_core.models import (BudgetStatus, Expense, ExpensePaymentStatus,
                                ExpenseStatus, ReferenceType)
from ledger_core.services import expenses
from ledger_core.services.budget import (activate_budget, close_budget,
                                         create_budget)
from ledger_core.services.expenses import (approve_expense, compute_wht,
                                           pay_expense, reject_expense)
from ledger_core.services.reports import get_budget_performance

from .base import LedgerTestCase

MAR_1 = datetime.date(2024, 3, 1)


class BudgetLifecycleTests(LedgerTestCase):

    def test_totals_follow_the_lines(self):
        budget = create_budget(
            name="2024 Operating Budget",
            fiscal_year=2024,
            start_date=datetime.date(2024, 1, 1),
            end_date=datetime.date(2024, 12, 31),
            lines=[
                {"account": self.account("5010"),
                 "allocated_amount": "1200000.00"},
                {"account": self.account("5040"),
                 "allocated_amount": "800000.00",
                 "notes": "Generator diesel"},
            ],
            created_by=self.user,
        )
        self.assertEqual(budget.status, BudgetStatus.DRAFT)
        self.assertEqual(budget.total_budget_amount, Decimal("2000000.00"))
        self.assertEqual(budget.total_remaining_amount, Decimal("2000000.00"))

        activate_budget(budget.pk)
        close_budget(budget.pk)
        budget.refresh_from_db()
        self.assertEqual(budget.status, BudgetStatus.CLOSED)

        # closed is final
        with self.assertRaises(ValidationError):
            activate_budget(budget.pk)

    def test_draft_cannot_be_closed(self):
        budget = create_budget(
            name="Draft", fiscal_year=2024,
            start_date=datetime.date(2024, 1, 1),
            end_date=datetime.date(2024, 12, 31), lines=[])
        with self.assertRaises(ValidationError):
            close_budget(budget.pk)


class ExpenseApprovalTests(LedgerTestCase):

    def setUp(self):
        super().setUp()
        self.budget = create_budget(
            name="2024 Operating Budget",
            fiscal_year=2024,
            start_date=datetime.date(2024, 1, 1),
            end_date=datetime.date(2024, 12, 31),
            lines=[{"account": self.account("5040"),
                    "allocated_amount": "100000.00"}],
        )
        activate_budget(self.budget.pk)

    def make_expense(self, incurred_on=MAR_1, account="5040"):
        return Expense.objects.create(
            description="Generator servicing",
            vendor_name="PowerGen Ltd",
            account=self.account(account),
            expense_amount=Decimal("20000.00"),
            service_charge=Decimal("10000.00"),
            incurred_on=incurred_on,
            submitted_by=self.user,
        )

    def test_approval_consumes_the_budget(self):
        expense = approve_expense(self.make_expense().pk, user=self.user)

        self.assertEqual(expense.status, ExpenseStatus.APPROVED)
        self.assertEqual(expense.reviewed_by, self.user)

        line = self.budget.lines.get()
        self.assertEqual(line.consumed_amount, Decimal("30000.00"))
        self.assertEqual(line.remaining_amount, Decimal("70000.00"))
        self.assertEqual(line.utilization, Decimal("30.00"))

        self.budget.refresh_from_db()
        self.assertEqual(self.budget.total_consumed_amount,
                         Decimal("30000.00"))
        self.assertEqual(self.budget.total_remaining_amount,
                         Decimal("70000.00"))

        report = get_budget_performance(self.budget.pk)
        self.assertEqual(report["total_consumed"], Decimal("30000.00"))
        self.assertEqual(report["lines"][0]["account"], "5040")

    def test_out_of_range_expense_falls_back_to_todays_budget(self):
        expense = self.make_expense(incurred_on=datetime.date(2023, 12, 20))
        with self.assertLogs("ledger_core.services.budget", "WARNING") as logs:
            approve_expense(expense.pk, today=MAR_1)

        self.assertIn("No active budget covers", logs.output[0])
        self.assertEqual(self.budget.lines.get().consumed_amount,
                         Decimal("30000.00"))

    def test_missing_budget_is_a_warning_not_a_failure(self):
        expense = self.make_expense(incurred_on=datetime.date(2022, 6, 1))
        with self.assertLogs("ledger_core.services.budget", "WARNING") as logs:
            approved = approve_expense(
                expense.pk, today=datetime.date(2022, 6, 1))

        self.assertEqual(approved.status, ExpenseStatus.APPROVED)
        self.assertIn("No active budget found", logs.output[0])
        self.assertEqual(self.budget.lines.get().consumed_amount,
                         Decimal("0.00"))

    def test_missing_budget_line_is_a_warning(self):
        expense = self.make_expense(account="5010")
        with self.assertLogs("ledger_core.services.budget", "WARNING") as logs:
            approve_expense(expense.pk)
        self.assertIn("has no line for account 5010", logs.output[0])

    def test_closed_budget_does_not_block_approval(self):
        close_budget(self.budget.pk)
        expense = self.make_expense()
        with self.assertLogs("ledger_core.services.budget", "WARNING"):
            approved = approve_expense(expense.pk, today=MAR_1)
        self.assertEqual(approved.status, ExpenseStatus.APPROVED)

    def test_tracking_database_error_does_not_fail_approval(self):
        expense = self.make_expense()
        with mock.patch.object(
                expenses, "track_expense_consumption",
                side_effect=DatabaseError("budget table locked")):
            with self.assertLogs("ledger_core.services.expenses",
                                 "ERROR") as logs:
                approved = approve_expense(expense.pk, user=self.user)

        self.assertEqual(approved.status, ExpenseStatus.APPROVED)
        self.assertIn("Budget tracking failed", logs.output[0])
        expense.refresh_from_db()
        self.assertEqual(expense.status, ExpenseStatus.APPROVED)
        self.assertEqual(self.budget.lines.get().consumed_amount,
                         Decimal("0.00"))

    def test_rejected_expense_cannot_be_approved(self):
        expense = reject_expense(self.make_expense().pk, reason="No quote")
        self.assertEqual(expense.status, ExpenseStatus.REJECTED)
        self.assertEqual(expense.rejection_reason, "No quote")
        with self.assertRaises(ValidationError):
            approve_expense(expense.pk)


class ExpensePaymentTests(LedgerTestCase):

    def setUp(self):
        super().setUp()
        self.expense = Expense.objects.create(
            description="Generator servicing",
            vendor_name="PowerGen Ltd",
            account=self.account("5040"),
            expense_amount=Decimal("20000.00"),
            service_charge=Decimal("10000.00"),
            incurred_on=MAR_1,
        )

    def test_wht_rounds_half_up(self):
        self.assertEqual(compute_wht(Decimal("10.10"), Decimal("5")),
                         Decimal("0.51"))
        self.assertEqual(compute_wht(Decimal("0.00"), Decimal("5")),
                         Decimal("0.00"))

    def test_payment_withholds_tax_on_service_charge(self):
        approve_expense(self.expense.pk, today=MAR_1)
        expense = pay_expense(
            self.expense.pk, self.account("1010").pk, user=self.user,
            wht_rate=Decimal("5.00"), payment_date=MAR_1)

        self.assertEqual(expense.payment_status, ExpensePaymentStatus.PAID)
        self.assertEqual(expense.wht_amount, Decimal("500.00"))
        self.assertEqual(expense.net_payment, Decimal("29500.00"))

        je = expense.payment_journal_entry
        self.assertEqual(je.reference_type, ReferenceType.EXPENSE_PAYMENT)
        self.assertEqual(je.lines.count(), 3)
        self.assertEqual(je.total_debit, Decimal("30000.00"))

        self.assertEqual(self.balance("5040"), Decimal("30000.00"))
        self.assertEqual(self.balance("1010"), Decimal("-29500.00"))
        self.assertEqual(self.balance("2300"), Decimal("500.00"))

    def test_no_wht_line_without_service_charge(self):
        self.expense.service_charge = Decimal("0.00")
        self.expense.save()
        approve_expense(self.expense.pk, today=MAR_1)
        expense = pay_expense(self.expense.pk, self.account("1010").pk,
                              payment_date=MAR_1)
        self.assertEqual(expense.payment_journal_entry.lines.count(), 2)
        self.assertEqual(self.balance("2300"), Decimal("0.00"))

    def test_fully_withheld_payment_skips_the_bank_line(self):
        self.expense.expense_amount = Decimal("0.00")
        self.expense.save()
        approve_expense(self.expense.pk, today=MAR_1)
        expense = pay_expense(
            self.expense.pk, self.account("1010").pk,
            wht_rate=Decimal("100"), payment_date=MAR_1)

        self.assertEqual(expense.wht_amount, Decimal("10000.00"))
        self.assertEqual(expense.net_payment, Decimal("0.00"))
        je = expense.payment_journal_entry
        self.assertEqual(je.lines.count(), 2)
        self.assertFalse(je.lines.filter(account__number="1010").exists())
        self.assertEqual(self.balance("1010"), Decimal("0.00"))
        self.assertEqual(self.balance("2300"), Decimal("10000.00"))

    def test_only_approved_expenses_are_paid_once(self):
        with self.assertRaises(ValidationError):
            pay_expense(self.expense.pk, self.account("1010").pk)

        approve_expense(self.expense.pk, today=MAR_1)
        pay_expense(self.expense.pk, self.account("1010").pk,
                    payment_date=MAR_1)
        with self.assertRaises(ValidationError):
            pay_expense(self.expense.pk, self.account("1010").pk,
                        payment_date=MAR_1)

    def test_paid_from_must_be_a_cash_account(self):
        approve_expense(self.expense.pk, today=MAR_1)
        with self.assertRaises(ValidationError):
            pay_expense(self.expense.pk, self.account("1100").pk)
