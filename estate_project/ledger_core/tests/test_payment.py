import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError

from ledger_core.exceptions import NotFoundError, OverpaymentError
from ledger_core.models import (AccountType, BankAccount, Bill, BillStatus,
                                JournalEntry, PaymentApplication,
                                PaymentStatus, ReferenceType)
from ledger_core.services.accounts import create_account
from ledger_core.services.billing import generate_bill_for_resident, void_bill
from ledger_core.services.payment import apply_payment_to_bill

from .base import LedgerTestCase

JAN_1 = datetime.date(2024, 1, 1)
FEB_1 = datetime.date(2024, 2, 1)


class ApplyPaymentTests(LedgerTestCase):

    def setUp(self):
        super().setUp()
        self.bill = generate_bill_for_resident(self.resident.pk, today=JAN_1)

    def test_full_payment_recognizes_revenue(self):
        application = apply_payment_to_bill(
            self.bill.pk, Decimal("50000.00"), payment_date=FEB_1,
            user=self.user)

        self.bill.refresh_from_db()
        self.assertEqual(self.bill.status, BillStatus.PAID)
        self.assertEqual(self.bill.payment_status, PaymentStatus.FULL_PAYMENT)
        self.assertEqual(self.bill.balance, Decimal("0.00"))
        self.assertEqual(self.bill.total_paid, Decimal("50000.00"))

        je = application.journal_entry
        self.assertEqual(je.reference_type, ReferenceType.PAYMENT)
        self.assertEqual(je.reference_id, self.bill.pk)
        self.assertEqual(je.lines.count(), 4)
        self.assertEqual(je.total_debit, Decimal("100000.00"))
        self.assertEqual(je.total_credit, Decimal("100000.00"))
        self.assertEqual(
            set(je.lines.values_list("amount", flat=True)),
            {Decimal("50000.00")},
        )

        # AR and Deferred Revenue are cleared, cash and revenue recognized
        self.assertEqual(self.balance("1010"), Decimal("50000.00"))
        self.assertEqual(self.balance("1100"), Decimal("0.00"))
        self.assertEqual(self.balance("2200"), Decimal("0.00"))
        self.assertEqual(self.balance("4000"), Decimal("50000.00"))

        self.resident.refresh_from_db()
        self.assertEqual(self.resident.total_balance, Decimal("0.00"))

    def test_partial_payments_accumulate(self):
        apply_payment_to_bill(self.bill.pk, Decimal("20000.00"),
                              payment_date=FEB_1)
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.status, BillStatus.PARTIAL)
        self.assertEqual(self.bill.payment_status,
                         PaymentStatus.PARTIAL_PAYMENT)
        self.assertEqual(self.bill.balance, Decimal("30000.00"))

        apply_payment_to_bill(self.bill.pk, Decimal("30000.00"),
                              payment_date=FEB_1)
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.status, BillStatus.PAID)
        self.assertEqual(
            sum(a.amount_applied for a in self.bill.applications.all()),
            self.bill.amount,
        )

    def test_overpayment_changes_nothing(self):
        entries_before = JournalEntry.objects.count()

        with self.assertRaises(OverpaymentError):
            apply_payment_to_bill(self.bill.pk, Decimal("60000.00"),
                                  payment_date=FEB_1)

        self.bill.refresh_from_db()
        self.assertEqual(self.bill.status, BillStatus.PENDING)
        self.assertEqual(self.bill.balance, Decimal("50000.00"))
        self.assertEqual(PaymentApplication.objects.count(), 0)
        self.assertEqual(JournalEntry.objects.count(), entries_before)
        self.assertEqual(self.balance("1010"), Decimal("0.00"))
        self.assertEqual(self.balance("1100"), Decimal("50000.00"))

    def test_payment_must_be_positive(self):
        with self.assertRaises(ValidationError):
            apply_payment_to_bill(self.bill.pk, Decimal("0.00"))

    def test_paid_bill_takes_no_more_money(self):
        apply_payment_to_bill(self.bill.pk, Decimal("50000.00"))
        with self.assertRaises(OverpaymentError):
            apply_payment_to_bill(self.bill.pk, Decimal("0.01"))

    def test_void_bill_takes_no_money(self):
        void_bill(self.bill.pk)
        with self.assertRaises(ValidationError):
            apply_payment_to_bill(self.bill.pk, Decimal("100.00"))

    def test_unknown_bill(self):
        with self.assertRaises(NotFoundError):
            apply_payment_to_bill(999999, Decimal("100.00"))

    def test_mapped_bank_receives_the_cash(self):
        zenith = create_account(
            number="1020", name="Zenith Bank",
            account_type=AccountType.ASSET, is_cash_account=True)
        BankAccount.objects.create(
            bank_name="Zenith Bank", account_number="1012345678",
            ledger_account=zenith)

        apply_payment_to_bill(
            self.bill.pk, Decimal("5000.00"), payment_date=FEB_1,
            bank_name="Zenith Bank", account_number="1012345678")

        self.assertEqual(self.balance("1020"), Decimal("5000.00"))
        self.assertEqual(self.balance("1010"), Decimal("0.00"))
        self.assertEqual(Bill.objects.get(pk=self.bill.pk).balance,
                         Decimal("45000.00"))
