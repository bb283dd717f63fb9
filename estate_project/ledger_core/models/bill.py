from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from ..exceptions import OverpaymentError
from ..managers import BillManager
from .journal import JournalEntry
from .resident import Resident


class BillStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PARTIAL = "partial", "Partially Paid"
    PAID = "paid", "Paid"
    VOID = "void", "Void"
    CANCELLED = "cancelled", "Cancelled"


class PaymentStatus(models.TextChoices):
    UNPAID = "unpaid", "Unpaid"
    PARTIAL_PAYMENT = "partial_payment", "Partial Payment"
    FULL_PAYMENT = "full_payment", "Full Payment"


# Statuses that can still receive money
OPEN_STATUSES = (BillStatus.PENDING, BillStatus.PARTIAL)

# ---------- Bills ----------

# Service charge bill (Accounts Receivable document)


class Bill(models.Model):
    # Billed resident, can't delete a resident who has bills
    resident = models.ForeignKey(
        Resident, on_delete=models.PROTECT, related_name="bills"
    )
    # Generated per fiscal year: INV-2024-0001
    invoice_number = models.CharField(max_length=30, unique=True)
    billing_type = models.CharField(
        max_length=100, default="Estate Maintenance")
    description = models.TextField(blank=True, default="")

    # amount = total_paid + balance, always
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    total_paid = models.DecimalField(
        max_digits=15, decimal_places=2, default=Decimal("0.00")
    )
    # How much is still unpaid
    balance = models.DecimalField(max_digits=15, decimal_places=2)

    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.UNPAID,
    )
    # Track workflow
    status = models.CharField(
        max_length=10,
        choices=BillStatus.choices,
        default=BillStatus.PENDING,
    )

    # Service period covered by the bill
    period_start = models.DateField()
    period_end = models.DateField()
    # when payment is expected
    due_date = models.DateField()

    # The AR-recognition entry posted when the bill was generated
    journal_entry = models.ForeignKey(
        JournalEntry,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="+",
    )

    voided_at = models.DateTimeField(null=True, blank=True)
    void_reason = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BillManager()

    class Meta:
        ordering = ["-created_at", "-id"]
        # Optimize queries for "all bills for this resident"
        # or "everything overdue"
        indexes = [
            models.Index(fields=["resident", "status"],
                         name="bill_resident_status_idx"),
            models.Index(fields=["status", "due_date"],
                         name="bill_status_due_idx"),
        ]
        constraints = [
            # 0 <= balance <= amount
            models.CheckConstraint(
                condition=models.Q(balance__gte=0) &
                models.Q(balance__lte=models.F("amount")),
                name="bill_balance_within_amount",
            ),
            # balance == amount - total_paid
            models.CheckConstraint(
                condition=models.Q(
                    balance=models.F("amount") - models.F("total_paid")),
                name="bill_balance_matches_payments",
            ),
        ]

    def __str__(self):
        return f"Bill: {self.invoice_number}"

    @property
    def is_open(self):
        return self.status in OPEN_STATUSES and self.balance > 0

    """ Single overdue rule for every report:
    still owing money and the due date has passed.
    The due date already carries the grace period given at billing. """

    def is_overdue(self, as_of):
        return self.is_open and as_of > self.due_date

    def days_overdue(self, as_of):
        if not self.is_overdue(as_of):
            return 0
        return (as_of - self.due_date).days

    def record_payment(self, amount):
        """
        Apply a settlement to the stored totals.
        Caller holds the row lock and saves afterwards.
        """
        if amount > self.balance:
            raise OverpaymentError(
                f"Payment amount {amount} exceeds bill balance {self.balance}"
            )
        self.total_paid += amount
        self.balance -= amount
        # paid only when the balance reaches exactly zero
        if self.balance == 0:
            self.transition_to(BillStatus.PAID, save=False)
            self.payment_status = PaymentStatus.FULL_PAYMENT
        else:
            self.transition_to(BillStatus.PARTIAL, save=False)
            self.payment_status = PaymentStatus.PARTIAL_PAYMENT

    def clean(self):
        if self.amount is None or self.amount <= 0:
            raise ValidationError("Bill amount must be positive")
        if self.balance is None or self.total_paid is None:
            return
        # ensure outstanding non-negative
        if self.balance < 0:
            raise ValidationError("Bill balance cannot be negative")
        if self.balance != self.amount - self.total_paid:
            raise ValidationError(
                "Bill balance must equal amount minus total paid")
        if self.period_end and self.period_start and \
                self.period_end < self.period_start:
            raise ValidationError("Billing period ends before it starts")

    """ Prevent inconsistent totals from persisting """

    def save(self, *args, **kwargs):
        if self.balance is None and self.amount is not None:
            # New bill: nothing paid yet
            self.balance = self.amount - (self.total_paid or Decimal("0.00"))
        self.full_clean()  # will trigger clean()
        return super().save(*args, **kwargs)

    def transition_to(self, new_status, save=True):
        # Current state vs. allowed next states
        allowed = {
            BillStatus.PENDING: [
                BillStatus.PARTIAL, BillStatus.PAID,
                BillStatus.VOID, BillStatus.CANCELLED,
            ],
            BillStatus.PARTIAL: [BillStatus.PARTIAL, BillStatus.PAID],
            BillStatus.PAID: [],  # "paid" → (no further transitions)
            BillStatus.VOID: [],
            BillStatus.CANCELLED: [],
        }
        # Look up what states are allowed from current self.status
        if new_status not in allowed.get(BillStatus(self.status), []):
            # If requested new_status isn't allowed → block it
            raise ValidationError(
                f"Cannot go from {self.status} to {new_status}")

        self.status = new_status
        if save:
            self.save()
