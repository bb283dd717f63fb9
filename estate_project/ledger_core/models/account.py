from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from ..exceptions import ConfigurationError, SystemAccountError
from ..managers import AccountManager


# Classify account into one of the 5 basic accounting types
class AccountType(models.TextChoices):
    ASSET = "asset", "Asset"
    LIABILITY = "liability", "Liability"
    EQUITY = "equity", "Equity"
    REVENUE = "revenue", "Revenue"
    EXPENSE = "expense", "Expense"


# Define whether the account normally increases
# on the debit side or credit side
class NormalBalance(models.TextChoices):
    DEBIT = "debit", "Debit"
    CREDIT = "credit", "Credit"


# Assets/Expenses → Debit, Liabilities/Equity/Revenue → Credit.
# Keyed by raw value so plain strings from the DB look up directly
DEFAULT_NORMAL_BALANCE = {
    AccountType.ASSET.value: NormalBalance.DEBIT,
    AccountType.EXPENSE.value: NormalBalance.DEBIT,
    AccountType.LIABILITY.value: NormalBalance.CREDIT,
    AccountType.EQUITY.value: NormalBalance.CREDIT,
    AccountType.REVENUE.value: NormalBalance.CREDIT,
}


def default_normal_balance(account_type):
    return DEFAULT_NORMAL_BALANCE.get(str(account_type))


class Account(models.Model):
    """
    Ledger account in the estate's Chart of Accounts.
    - number is the stable business key (1100, 2200, 4000 ...)
    - account_type: determines reporting - BS vs P&L
    - normal_balance: which side increases the stored balance
    - balance: running amount, only ever changed by the journal engine
    """

    # Every account has a number
    # which lets you sort/group accounts consistently in reports.
    number = models.CharField(max_length=20, unique=True)
    name = models.CharField(
        max_length=200
    )  # Human-readable name → "Accounts Receivable", "Member Dues".

    account_type = models.CharField(
        max_length=10,
        choices=AccountType.choices,
        # This tells system whether the account
        # goes on the Balance Sheet or P&L
    )

    # Blank means "derive from account_type"
    normal_balance = models.CharField(
        max_length=6,
        choices=NormalBalance.choices,
        blank=True,
        default="",
    )
    # Free text grouping for statements ("Cash and Bank", "Current Assets")
    category = models.CharField(max_length=100, blank=True, default="")
    description = models.TextField(blank=True, default="")

    # Running balance, interpreted via normal_balance
    balance = models.DecimalField(
        max_digits=15, decimal_places=2, default=Decimal("0.00")
    )

    # System accounts (AR, Deferred Revenue, Revenue, WHT) cannot be deleted
    is_system_account = models.BooleanField(default=False)
    # Tags cash/bank accounts that receive resident payments
    is_cash_account = models.BooleanField(default=False)
    # Can deactivate accounts without deleting history
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = AccountManager()

    class Meta:
        ordering = ["number"]
        indexes = [
            models.Index(fields=["account_type", "is_active"],
                         name="account_type_active_idx"),
        ]

    def __str__(self):
        return f"{self.number} - {self.name}"

    def resolve_normal_balance(self):
        """Explicit normal_balance wins, otherwise derive it from the type."""
        if self.normal_balance:
            return NormalBalance(self.normal_balance)
        derived = default_normal_balance(self.account_type)
        if derived is None:
            raise ConfigurationError(
                f"Account {self.number} has no normal balance "
                f"and unknown type {self.account_type!r}"
            )
        return derived

    def signed_delta(self, amount, line_type):
        """
        Effect of one line on the stored balance.
        Same side as the normal balance → increase, other side → decrease.
        A reversal just swaps line_type.
        """
        if line_type == self.resolve_normal_balance():
            return amount
        return -amount

    def clean(self):
        # Normal balance must agree with the account's type when both given
        if self.normal_balance and self.account_type:
            expected = default_normal_balance(self.account_type)
            if expected and self.normal_balance != expected:
                raise ValidationError(
                    f"{self.get_account_type_display()} accounts carry a "
                    f"{expected} normal balance"
                )
        # Only assets can be tagged as cash/bank
        if self.is_cash_account and self.account_type != AccountType.ASSET:
            raise ValidationError("Only asset accounts can be cash accounts.")

    def save(self, *args, **kwargs):
        if self.pk and not self.is_active:  # Deactivating
            # Can't deactivate an account the billing engine depends on
            if self.is_system_account:
                raise ValidationError(
                    "Cannot deactivate a system account.")
            # Balance has to be cleared out first
            if self.balance != 0:
                raise ValidationError(
                    "Cannot deactivate an account with a non-zero balance.")
        self.full_clean()  # will trigger clean()
        return super().save(*args, **kwargs)

    """ Deleting a system account would break billing and payments """

    def delete(self, *args, **kwargs):
        if self.is_system_account:
            raise SystemAccountError(
                f"Account {self.number} is a system account "
                "and cannot be deleted."
            )
        # History stays: deactivate instead
        if self.journal_lines.exists():
            raise ValidationError(
                "Cannot delete account used in journal lines.")
        return super().delete(*args, **kwargs)
