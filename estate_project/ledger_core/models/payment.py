from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from .bill import Bill
from .journal import JournalEntry


class ApplicationType(models.TextChoices):
    MANUAL = "manual", "Manual"
    BANK_STATEMENT = "bank_statement", "Bank Statement"


class PaymentApplication(models.Model):
    """
    One discrete settlement of (part of) a bill.
    Written once by the payment service, never edited or deleted.
    """

    bill = models.ForeignKey(
        Bill, on_delete=models.PROTECT, related_name="applications"
    )
    amount_applied = models.DecimalField(max_digits=15, decimal_places=2)
    application_type = models.CharField(
        max_length=20,
        choices=ApplicationType.choices,
        default=ApplicationType.MANUAL,
    )
    # Set when the money came from a reconciled statement line
    bank_statement_entry = models.ForeignKey(
        "BankStatementEntry",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="applications",
    )
    payment_date = models.DateField()

    # Where the money arrived, used to pick the cash account
    bank_name = models.CharField(max_length=100, blank=True, default="")
    account_number = models.CharField(max_length=50, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    applied_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    applied_at = models.DateTimeField(auto_now_add=True)

    # The revenue-recognition entry this settlement posted
    journal_entry = models.ForeignKey(
        JournalEntry, on_delete=models.PROTECT, related_name="+"
    )

    class Meta:
        ordering = ["applied_at", "id"]
        indexes = [
            models.Index(fields=["bill", "payment_date"],
                         name="pa_bill_date_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount_applied__gt=0),
                name="pa_amount_positive",
            ),
        ]

    def __str__(self):
        return f"{self.amount_applied} → {self.bill.invoice_number}"

    def save(self, *args, **kwargs):
        # Applications are immutable once created
        if self.pk:
            raise ValidationError("Payment applications cannot be modified.")
        self.full_clean()
        return super().save(*args, **kwargs)
