from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.utils import timezone

from ..exceptions import AlreadyVoidError
from ..managers import JournalLineManager
from .account import Account


# A line is either a debit or a credit, same values as NormalBalance
class LineType(models.TextChoices):
    DEBIT = "debit", "Debit"
    CREDIT = "credit", "Credit"


class JournalStatus(models.TextChoices):
    POSTED = "posted", "Posted"  # created balanced, in effect
    VOID = "void", "Void"  # balance effect reversed, kept for history


# What business event produced the entry
class ReferenceType(models.TextChoices):
    MANUAL = "manual", "Manual"
    BILL = "bill", "Bill"
    PAYMENT = "payment", "Payment"
    EXPENSE = "expense", "Expense"
    EXPENSE_PAYMENT = "expense_payment", "Expense Payment"
    REVERSAL = "reversal", "Reversal"


def flip(line_type):
    """debit ↔ credit, used by void and reversal"""
    if line_type == LineType.DEBIT:
        return LineType.CREDIT
    return LineType.DEBIT


# ---------- Journal (Header) & JournalLine ----------
class JournalEntry(models.Model):  # Represents one accounting transaction
    # Generated per day: JE-YYYYMMDD-NNNN
    entry_number = models.CharField(max_length=30, unique=True)
    # Business metadata
    entry_date = models.DateField()
    description = models.TextField()

    # optional polymorphic source info (bill, payment, expense, reversal)
    reference_type = models.CharField(
        max_length=20,
        choices=ReferenceType.choices,
        default=ReferenceType.MANUAL,
    )  # Helps trace back where the JE originated
    reference_id = models.BigIntegerField(null=True, blank=True)

    status = models.CharField(
        max_length=10,
        choices=JournalStatus.choices,
        default=JournalStatus.POSTED,
    )
    # Stored totals, equal to the cent for every entry
    total_debit = models.DecimalField(max_digits=15, decimal_places=2)
    total_credit = models.DecimalField(max_digits=15, decimal_places=2)
    notes = models.TextField(blank=True, default="")

    # Track user who created it
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    # Void bookkeeping
    voided_at = models.DateTimeField(null=True, blank=True)
    voided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )

    class Meta:
        ordering = ["entry_date", "entry_number"]
        # Speed up listing & filtering
        # (e.g. show all posted entries this month)
        indexes = [
            models.Index(fields=["entry_date", "status"],
                         name="je_date_status_idx"),
            models.Index(fields=["reference_type", "reference_id"],
                         name="je_reference_idx"),
        ]
        constraints = [
            # Double-entry rule holds for every stored header
            models.CheckConstraint(
                condition=models.Q(total_debit=models.F("total_credit")),
                name="je_debits_equal_credits",
            ),
        ]

    def __str__(self):
        return f"{self.entry_number} {self.entry_date} [{self.status}]"

    # Aggregate all debit and credit amounts across entry's lines
    def compute_totals(self):
        """Return debits, credits sums for lines"""
        aggs = self.lines.aggregate(
            total_debit=models.Sum(
                "amount", filter=models.Q(line_type=LineType.DEBIT)),
            total_credit=models.Sum(
                "amount", filter=models.Q(line_type=LineType.CREDIT)),
        )
        return (
            aggs["total_debit"] or Decimal("0.00"),
            aggs["total_credit"] or Decimal("0.00"),
        )

    # True if double-entry rule holds: total debits = total credits
    def is_balanced(self):
        debit, credit = self.compute_totals()
        return debit == credit

    @property
    def is_void(self):
        return self.status == JournalStatus.VOID

    # Void the entry safely inside a database transaction
    @transaction.atomic
    def void(self, user=None):
        """
        Reverse the balance effect of every line and mark the entry void.
        A second void is rejected, otherwise balances would be reversed twice.
        """
        # Lock the header so two voids can't interleave
        je = JournalEntry.objects.select_for_update().get(pk=self.pk)
        if je.status == JournalStatus.VOID:
            raise AlreadyVoidError(
                f"Journal entry {je.entry_number} is already void")

        # lazy import to avoid circular import at module load time
        from ..services.accounts import apply_line

        # Same account ordering as posting, so row locks are taken
        # in the same order by every writer
        for line in je.lines.order_by("account_id", "id"):
            apply_line(line.account_id, line.amount, flip(line.line_type))

        """ Update state """
        je.status = JournalStatus.VOID
        je.voided_at = timezone.now()
        je.voided_by = user
        je.save(update_fields=["status", "voided_at", "voided_by"])

        # keep the caller's instance in sync
        self.status = je.status
        self.voided_at = je.voided_at
        self.voided_by = je.voided_by
        return je

    def clean(self):
        if self.total_debit != self.total_credit:
            raise ValidationError(
                f"Journal not balanced: debits={self.total_debit}, "
                f"credits={self.total_credit}"
            )

    def save(self, *args, **kwargs):
        if self.pk:  # Does this row already exist in DB?
            # Fetch "original" row to update
            orig = JournalEntry.objects.get(pk=self.pk)
            # Void is final
            if orig.status == JournalStatus.VOID and \
                    self.status != JournalStatus.VOID:
                raise ValidationError("Cannot un-void a journal entry")
            # Posted amounts never change, corrections go through
            # void + reversing entry
            for f in ("entry_date", "total_debit", "total_credit"):
                if getattr(orig, f) != getattr(self, f):
                    raise ValidationError(
                        "Cannot modify a posted JournalEntry. "
                        "It is immutable."
                    )
        self.full_clean()
        super().save(*args, **kwargs)


class JournalLine(models.Model):  # Stores Lines ( credits / debits )
    """
    Each line belongs to a journal entry and to a GL account.
    Lines are written once, together with their entry, and never edited.
    """

    journal = models.ForeignKey(
        JournalEntry,
        on_delete=models.CASCADE,  # owned by the entry
        related_name="lines",  # default reverse name
    )
    # Must point to one Account (can't delete account if lines exist → PROTECT)
    account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="journal_lines"
    )
    line_type = models.CharField(max_length=6, choices=LineType.choices)
    # Always positive, the side is carried by line_type
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    description = models.CharField(max_length=400, blank=True, default="")

    objects = JournalLineManager()

    class Meta:
        indexes = [
            models.Index(fields=["account", "line_type"],
                         name="jl_account_type_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="jl_amount_positive",
            ),
        ]

    def __str__(self):
        return f"{self.line_type} {self.account.number} {self.amount}"

    def clean(self):
        if self.amount is not None and self.amount <= 0:
            raise ValidationError("Line amount must be positive")

    def save(self, *args, **kwargs):
        # Lines are immutable once written
        if self.pk:
            raise ValidationError("Journal lines cannot be modified.")
        self.full_clean()
        return super().save(*args, **kwargs)
