from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from .account import Account
from .journal import JournalEntry


class ExpenseStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"


class ExpensePaymentStatus(models.TextChoices):
    UNPAID = "unpaid", "Unpaid"
    PAID = "paid", "Paid"


class Expense(models.Model):
    """
    Estate expense raised by a vendor (e.g. facility maintenance).
    Approval feeds the budget tracker, payment posts to the ledger
    with withholding tax.
    """

    description = models.TextField()
    vendor_name = models.CharField(max_length=200, blank=True, default="")
    # Expense account charged, optional until approval
    account = models.ForeignKey(
        Account,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="expenses",
    )
    # Goods/materials portion
    expense_amount = models.DecimalField(max_digits=15, decimal_places=2)
    # Service/labour portion, WHT is computed on this part
    service_charge = models.DecimalField(
        max_digits=15, decimal_places=2, default=Decimal("0.00")
    )
    incurred_on = models.DateField(default=timezone.localdate)

    status = models.CharField(
        max_length=10,
        choices=ExpenseStatus.choices,
        default=ExpenseStatus.PENDING,
    )
    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True, default="")

    # Payment side
    payment_status = models.CharField(
        max_length=10,
        choices=ExpensePaymentStatus.choices,
        default=ExpensePaymentStatus.UNPAID,
    )
    paid_date = models.DateField(null=True, blank=True)
    paid_from_account = models.ForeignKey(
        Account,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="+",
    )
    paid_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    wht_rate = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("0.00")
    )
    wht_amount = models.DecimalField(
        max_digits=15, decimal_places=2, default=Decimal("0.00")
    )
    net_payment = models.DecimalField(
        max_digits=15, decimal_places=2, default=Decimal("0.00")
    )
    payment_journal_entry = models.ForeignKey(
        JournalEntry,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="+",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-incurred_on", "-id"]
        indexes = [
            models.Index(fields=["status", "payment_status"],
                         name="expense_status_idx"),
        ]

    def __str__(self):
        return f"Expense {self.pk}: {self.description[:40]}"

    @property
    def total_amount(self):
        # amount + service charge is what the estate owes the vendor
        return self.expense_amount + (self.service_charge or Decimal("0.00"))

    def clean(self):
        if self.expense_amount is not None and self.expense_amount < 0:
            raise ValidationError("Expense amount cannot be negative")
        if self.service_charge is not None and self.service_charge < 0:
            raise ValidationError("Service charge cannot be negative")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def transition_to(self, new_status):
        allowed = {
            ExpenseStatus.PENDING: [
                ExpenseStatus.APPROVED, ExpenseStatus.REJECTED],
            ExpenseStatus.APPROVED: [],
            ExpenseStatus.REJECTED: [],
        }
        if new_status not in allowed.get(ExpenseStatus(self.status), []):
            raise ValidationError(
                f"Cannot go from {self.status} to {new_status}")
        self.status = new_status
