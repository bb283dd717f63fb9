import datetime
from decimal import Decimal

from ledger_core.exceptions import OverpaymentError
from ledger_core.models import (ApplicationType, BankStatementEntry,
                                BillStatus, EntryStatus, PaymentApplication,
                                Resident, StatementStatus)
from ledger_core.services.billing import generate_bill_for_resident
from ledger_core.services.reconciliation import (StatementEntryInput,
                                                 StatementMeta,
                                                 parse_statement_csv,
                                                 reconcile_entry_to_bill,
                                                 reconcile_statement,
                                                 unreconciled_entries)

from .base import LedgerTestCase

JAN_1 = datetime.date(2024, 1, 1)
FEB_1 = datetime.date(2024, 2, 1)

META = StatementMeta(
    bank_name="GTBank",
    account_number="0123456789",
    statement_date=datetime.date(2024, 2, 29),
    file_name="gtbank-feb.csv",
)


def line(reference, amount, description="Transfer"):
    return StatementEntryInput(
        transaction_date=FEB_1,
        description=description,
        reference_number=reference,
        amount=Decimal(amount),
    )


class ReconcileStatementTests(LedgerTestCase):

    def setUp(self):
        super().setUp()
        self.bill = generate_bill_for_resident(self.resident.pk, today=JAN_1)
        self.other = Resident.objects.create(
            unit_number="B2",
            service_charge=Decimal("50000.00"),
            start_date=JAN_1,
        )
        self.other_bill = generate_bill_for_resident(
            self.other.pk, today=JAN_1)

    def assert_conserved(self, entry):
        # applied + remaining == amount, applied == sum of applications
        self.assertEqual(entry.applied_amount + entry.remaining_amount,
                         entry.amount)
        applied = sum(
            (a.amount_applied for a in entry.applications.all()),
            Decimal("0.00"),
        )
        self.assertEqual(applied, entry.applied_amount)

    def test_short_payment_reconciles_entry_and_leaves_bill_partial(self):
        result = reconcile_statement(
            META, [line(self.bill.invoice_number, "30000.00")],
            user=self.user)

        entry = result.statement.entries.get()
        self.assertEqual(entry.status, EntryStatus.RECONCILED)
        self.assertEqual(entry.applied_amount, Decimal("30000.00"))
        self.assertEqual(entry.remaining_amount, Decimal("0.00"))
        self.assert_conserved(entry)

        self.bill.refresh_from_db()
        self.assertEqual(self.bill.status, BillStatus.PARTIAL)
        self.assertEqual(self.bill.balance, Decimal("20000.00"))

        application = entry.applications.get()
        self.assertEqual(application.application_type,
                         ApplicationType.BANK_STATEMENT)
        self.assertEqual(application.payment_date, FEB_1)
        self.assertEqual(result.summary.matched, 1)
        self.assertEqual(result.summary.total_reconciled,
                         Decimal("30000.00"))

    def test_excess_payment_leaves_a_residual(self):
        result = reconcile_statement(
            META, [line(self.bill.invoice_number, "70000.00")])

        entry = result.statement.entries.get()
        self.assertEqual(entry.status, EntryStatus.PARTIALLY_MATCHED)
        self.assertEqual(entry.applied_amount, Decimal("50000.00"))
        self.assertEqual(entry.remaining_amount, Decimal("20000.00"))
        self.assert_conserved(entry)

        self.bill.refresh_from_db()
        self.assertEqual(self.bill.status, BillStatus.PAID)

        summary = result.summary
        self.assertEqual(summary.partially_matched, 1)
        residual = summary.residual_amounts[0]
        self.assertEqual(residual.invoice_number, self.bill.invoice_number)
        self.assertEqual(residual.residual_amount, Decimal("20000.00"))
        self.assertEqual(residual.resident_id, self.resident.pk)

    def test_statement_totals_and_summary_are_stored(self):
        result = reconcile_statement(META, [
            line(self.bill.invoice_number, "50000.00"),
            line(self.other_bill.invoice_number, "10000.00"),
            line("", "2500.00", "POS refund"),
            line("INV-1999-0001", "1000.00"),
        ])

        statement = result.statement
        statement.refresh_from_db()
        self.assertEqual(statement.status, StatementStatus.COMPLETED)
        self.assertEqual(statement.total_entries, 4)
        self.assertEqual(statement.total_amount, Decimal("63500.00"))
        self.assertEqual(statement.reconciled_entries, 2)
        self.assertEqual(statement.reconciled_amount, Decimal("60000.00"))
        self.assertEqual(statement.reconciliation_summary["matched"], 2)
        self.assertEqual(statement.reconciliation_summary["unmatched"], 2)
        self.assertEqual(
            statement.reconciliation_summary["total_reconciled"], "60000.00")

        # Cash only moves for matched money
        self.assertEqual(self.balance("1010"), Decimal("60000.00"))
        self.assertEqual(self.balance("4000"), Decimal("60000.00"))
        for entry in statement.entries.all():
            self.assert_conserved(entry)

    def test_bad_line_is_isolated(self):
        result = reconcile_statement(META, [
            line(self.bill.invoice_number, "500.005"),
            line(self.other_bill.invoice_number, "50000.00"),
        ])

        summary = result.summary
        self.assertEqual(summary.unmatched, 1)
        self.assertEqual(summary.matched, 1)
        self.assertEqual(summary.errors[0]["position"], 1)

        # only the good line was persisted and applied
        self.assertEqual(result.statement.entries.count(), 1)
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.balance, Decimal("50000.00"))
        self.other_bill.refresh_from_db()
        self.assertEqual(self.other_bill.status, BillStatus.PAID)

    def test_zero_and_negative_lines_are_stored_unmatched(self):
        result = reconcile_statement(META, [
            line(self.bill.invoice_number, "0.00"),
            line(self.bill.invoice_number, "-150.00", "Bank charges"),
        ])

        summary = result.summary
        self.assertEqual(summary.unmatched, 2)
        self.assertEqual(summary.errors, [])
        self.assertEqual(result.statement.entries.count(), 2)
        self.assertEqual(result.statement.total_entries, 2)
        for entry in result.statement.entries.all():
            self.assertEqual(entry.status, EntryStatus.UNMATCHED)
            self.assertEqual(entry.remaining_amount, entry.amount)
            self.assert_conserved(entry)

        self.bill.refresh_from_db()
        self.assertEqual(self.bill.balance, Decimal("50000.00"))
        self.assertFalse(PaymentApplication.objects.exists())

    def test_settled_bill_is_not_paid_twice(self):
        reconcile_statement(META, [line(self.bill.invoice_number, "50000.00")])
        result = reconcile_statement(
            META, [line(self.bill.invoice_number, "50000.00")])

        entry = result.statement.entries.get()
        self.assertEqual(entry.status, EntryStatus.UNMATCHED)
        self.assertEqual(
            PaymentApplication.objects.filter(bill=self.bill).count(), 1)


class ManualReconcileTests(LedgerTestCase):

    def setUp(self):
        super().setUp()
        self.bill = generate_bill_for_resident(self.resident.pk, today=JAN_1)
        result = reconcile_statement(META, [line("", "10000.00", "A1 dues")])
        self.statement = result.statement
        self.entry = self.statement.entries.get()

    def test_unmatched_line_is_listed(self):
        self.assertIn(self.entry, list(unreconciled_entries()))

    def test_manual_match_applies_payment(self):
        reconcile_entry_to_bill(self.entry.pk, self.bill.pk,
                                Decimal("10000.00"), user=self.user)

        self.entry.refresh_from_db()
        self.assertEqual(self.entry.status, EntryStatus.RECONCILED)
        self.assertEqual(self.entry.remaining_amount, Decimal("0.00"))
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.balance, Decimal("40000.00"))

        self.statement.refresh_from_db()
        self.assertEqual(self.statement.reconciled_entries, 1)
        self.assertEqual(self.statement.reconciled_amount,
                         Decimal("10000.00"))
        self.assertNotIn(self.entry, list(unreconciled_entries()))

    def test_partial_manual_match(self):
        reconcile_entry_to_bill(self.entry.pk, self.bill.pk,
                                Decimal("4000.00"))
        self.entry.refresh_from_db()
        self.assertEqual(self.entry.status, EntryStatus.PARTIALLY_MATCHED)
        self.assertEqual(self.entry.remaining_amount, Decimal("6000.00"))

    def test_cannot_apply_more_than_the_line_holds(self):
        with self.assertRaises(OverpaymentError):
            reconcile_entry_to_bill(self.entry.pk, self.bill.pk,
                                    Decimal("10000.01"))
        entry = BankStatementEntry.objects.get(pk=self.entry.pk)
        self.assertEqual(entry.status, EntryStatus.UNMATCHED)
        self.assertEqual(self.balance("1010"), Decimal("0.00"))


class ParseStatementCsvTests(LedgerTestCase):

    def test_rows_are_parsed_and_bad_rows_skipped(self):
        text = (
            "Date,Description,Reference,Amount\n"
            "2024-02-01,Transfer from A1,INV-2024-0001,\"30,000.00\"\n"
            "yesterday,Broken row,INV-2024-0002,100\n"
            ",,,\n"
            "2024-02-03,POS credit,,2500.50\n"
        )
        entries, skipped = parse_statement_csv(text)

        self.assertEqual(len(entries), 2)
        self.assertEqual(entries[0].transaction_date, FEB_1)
        self.assertEqual(entries[0].reference_number, "INV-2024-0001")
        self.assertEqual(entries[0].amount, Decimal("30000.00"))
        self.assertEqual(entries[1].reference_number, "")
        self.assertEqual(entries[1].amount, Decimal("2500.50"))
        self.assertEqual(len(skipped), 1)
        self.assertEqual(skipped[0][0], 3)
