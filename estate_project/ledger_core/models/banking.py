from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from .account import Account, AccountType


# ---------- Bank accounts ----------
class BankAccount(models.Model):
    """
    Explicit mapping from a real bank account to its GL cash account.
    Statements and payments name a bank (and usually an account number);
    this table decides which ledger account receives the money.
    """

    bank_name = models.CharField(max_length=100)
    # Full number as printed on statements
    account_number = models.CharField(max_length=50, blank=True, default="")
    # GL account for this bank
    ledger_account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="bank_accounts",
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["bank_name", "account_number"],
                name="uq_bank_account_name_number",
            )
        ]

    def __str__(self):
        return f"{self.bank_name} {self.account_number}".strip()

    def clean(self):
        # Money can only land in an asset account tagged as cash/bank
        acct = self.ledger_account
        if acct.account_type != AccountType.ASSET or not acct.is_cash_account:
            raise ValidationError(
                "Bank accounts must map to a cash/bank asset account.")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class StatementStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    ERROR = "error", "Error"


class EntryStatus(models.TextChoices):
    UNMATCHED = "unmatched", "Unmatched"
    PARTIALLY_MATCHED = "partially_matched", "Partially Matched"
    RECONCILED = "reconciled", "Reconciled"


# ---------- Bank statements ----------
class BankStatement(models.Model):
    file_name = models.CharField(max_length=255, blank=True, default="")
    bank_name = models.CharField(max_length=100)
    account_number = models.CharField(max_length=50, blank=True, default="")
    statement_date = models.DateField()

    status = models.CharField(
        max_length=12,
        choices=StatementStatus.choices,
        default=StatementStatus.PENDING,
    )
    # Totals, filled in once every entry has been processed
    total_entries = models.PositiveIntegerField(default=0)
    total_amount = models.DecimalField(
        max_digits=15, decimal_places=2, default=Decimal("0.00")
    )
    reconciled_entries = models.PositiveIntegerField(default=0)
    reconciled_amount = models.DecimalField(
        max_digits=15, decimal_places=2, default=Decimal("0.00")
    )
    # Audit copy of the run summary (counts, residuals, errors)
    reconciliation_summary = models.JSONField(null=True, blank=True)

    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    uploaded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-statement_date", "-id"]

    def __str__(self):
        return f"{self.bank_name} statement {self.statement_date}"

    def refresh_totals(self):
        """Recompute reconciled totals from the entries (after manual matches)"""
        aggs = self.entries.aggregate(
            applied=models.Sum("applied_amount"),
            reconciled=models.Count(
                "id", filter=models.Q(status=EntryStatus.RECONCILED)),
        )
        self.reconciled_amount = aggs["applied"] or Decimal("0.00")
        self.reconciled_entries = aggs["reconciled"] or 0

    def transition_to(self, new_status):
        allowed = {
            StatementStatus.PENDING: [StatementStatus.PROCESSING],
            StatementStatus.PROCESSING: [
                StatementStatus.COMPLETED, StatementStatus.ERROR],
            StatementStatus.COMPLETED: [],
            StatementStatus.ERROR: [],
        }
        if new_status not in allowed.get(StatementStatus(self.status), []):
            raise ValidationError(
                f"Cannot go from {self.status} to {new_status}")
        self.status = new_status


class BankStatementEntry(models.Model):
    """One line of an uploaded bank statement."""

    statement = models.ForeignKey(
        BankStatement, on_delete=models.CASCADE, related_name="entries"
    )
    # Order of the line in the uploaded file
    position = models.PositiveIntegerField()
    transaction_date = models.DateField()
    description = models.TextField(blank=True, default="")
    # Usually the invoice number the payer quoted
    reference_number = models.CharField(max_length=100, blank=True, default="")

    # applied + remaining == amount, always
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    applied_amount = models.DecimalField(
        max_digits=15, decimal_places=2, default=Decimal("0.00")
    )
    remaining_amount = models.DecimalField(max_digits=15, decimal_places=2)

    status = models.CharField(
        max_length=20,
        choices=EntryStatus.choices,
        default=EntryStatus.UNMATCHED,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["statement", "position"]
        indexes = [
            models.Index(fields=["reference_number"], name="bse_reference_idx"),
            models.Index(fields=["status"], name="bse_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(
                    remaining_amount=models.F("amount") -
                    models.F("applied_amount")),
                name="bse_applied_plus_remaining",
            ),
            models.UniqueConstraint(
                fields=["statement", "position"],
                name="uq_bse_statement_position",
            ),
        ]

    def __str__(self):
        return f"{self.transaction_date} {self.reference_number} {self.amount}"

    def apply(self, amount):
        """Move `amount` from remaining to applied and refresh the status."""
        if amount <= 0:
            raise ValidationError("Applied amount must be positive")
        if amount > self.remaining_amount:
            raise ValidationError(
                "Applied amount exceeds the entry's remaining amount")
        self.applied_amount += amount
        self.remaining_amount -= amount
        # reconciled iff nothing is left
        if self.remaining_amount == 0:
            self.status = EntryStatus.RECONCILED
        else:
            self.status = EntryStatus.PARTIALLY_MATCHED

    def save(self, *args, **kwargs):
        if self.remaining_amount is None and self.amount is not None:
            self.remaining_amount = self.amount - self.applied_amount
        self.full_clean()
        return super().save(*args, **kwargs)
