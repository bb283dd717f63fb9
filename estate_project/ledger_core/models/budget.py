from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import BudgetManager
from .account import Account


class BudgetPeriodType(models.TextChoices):
    ANNUAL = "annual", "Annual"
    QUARTERLY = "quarterly", "Quarterly"
    MONTHLY = "monthly", "Monthly"


class BudgetStatus(models.TextChoices):
    DRAFT = "draft", "Draft"  # still being prepared
    ACTIVE = "active", "Active"  # accepts consumption
    CLOSED = "closed", "Closed"  # frozen


class Budget(models.Model):
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    fiscal_year = models.PositiveIntegerField()
    period_type = models.CharField(
        max_length=10,
        choices=BudgetPeriodType.choices,
        default=BudgetPeriodType.ANNUAL,
    )
    start_date = models.DateField()
    end_date = models.DateField()
    status = models.CharField(
        max_length=10,
        choices=BudgetStatus.choices,
        default=BudgetStatus.DRAFT,
    )

    # Aggregates of the lines, moved together with them
    total_budget_amount = models.DecimalField(
        max_digits=15, decimal_places=2, default=Decimal("0.00")
    )
    total_consumed_amount = models.DecimalField(
        max_digits=15, decimal_places=2, default=Decimal("0.00")
    )
    total_remaining_amount = models.DecimalField(
        max_digits=15, decimal_places=2, default=Decimal("0.00")
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BudgetManager()

    class Meta:
        ordering = ["-fiscal_year", "start_date"]
        indexes = [
            models.Index(fields=["status", "start_date", "end_date"],
                         name="budget_status_range_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.fiscal_year})"

    def clean(self):
        if self.start_date and self.end_date and \
                self.end_date < self.start_date:
            raise ValidationError("Budget ends before it starts")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    # Control status changes
    def transition_to(self, new_status):
        allowed = {
            BudgetStatus.DRAFT: [BudgetStatus.ACTIVE],
            BudgetStatus.ACTIVE: [BudgetStatus.CLOSED],
            BudgetStatus.CLOSED: [],
        }
        if new_status not in allowed.get(BudgetStatus(self.status), []):
            raise ValidationError(
                f"Cannot go from {self.status} to {new_status}")
        self.status = new_status
        self.save(update_fields=["status", "updated_at"])


class BudgetLine(models.Model):
    budget = models.ForeignKey(
        Budget, on_delete=models.CASCADE, related_name="lines"
    )
    # Expense account this allocation covers
    account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="budget_lines"
    )
    allocated_amount = models.DecimalField(max_digits=15, decimal_places=2)
    consumed_amount = models.DecimalField(
        max_digits=15, decimal_places=2, default=Decimal("0.00")
    )
    # allocated - consumed, may go negative when overspent
    remaining_amount = models.DecimalField(max_digits=15, decimal_places=2)
    notes = models.TextField(blank=True, default="")

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["budget", "account"],
                name="uq_budget_line_account",
            ),
            models.CheckConstraint(
                condition=models.Q(
                    remaining_amount=models.F("allocated_amount") -
                    models.F("consumed_amount")),
                name="bl_remaining_matches_consumed",
            ),
        ]

    def __str__(self):
        return f"{self.budget.name}: {self.account.number}"

    @property
    def utilization(self):
        """Percent of the allocation consumed so far"""
        if not self.allocated_amount:
            return Decimal("0.00")
        pct = self.consumed_amount / self.allocated_amount * 100
        return pct.quantize(Decimal("0.01"))

    def save(self, *args, **kwargs):
        if self.remaining_amount is None and self.allocated_amount is not None:
            self.remaining_amount = self.allocated_amount - self.consumed_amount
        if self.allocated_amount is not None and self.allocated_amount < 0:
            raise ValidationError("Allocated amount cannot be negative")
        return super().save(*args, **kwargs)
