import logging
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.db.models.functions import Coalesce
from django.utils import timezone

from ..exceptions import ConfigurationError, NotFoundError
from ..models import (Account, AccountType, BankAccount, JournalLine,
                      LineType, NormalBalance)
from .audit_helper import log_action

logger = logging.getLogger(__name__)

# Roles of the pre-provisioned accounts, numbers come from settings
ACCOUNTS_RECEIVABLE = "accounts_receivable"
DEFERRED_REVENUE = "deferred_revenue"
MEMBER_DUES_REVENUE = "member_dues_revenue"
WHT_PAYABLE = "wht_payable"

DEFAULT_SYSTEM_NUMBERS = {
    ACCOUNTS_RECEIVABLE: "1100",
    DEFERRED_REVENUE: "2200",
    MEMBER_DUES_REVENUE: "4000",
    WHT_PAYABLE: "2300",
}

# role → (name, type, category) used when seeding the chart
SYSTEM_ACCOUNT_DEFINITIONS = {
    ACCOUNTS_RECEIVABLE: (
        "Accounts Receivable - Residents", AccountType.ASSET, "Receivables"),
    DEFERRED_REVENUE: (
        "Deferred Revenue", AccountType.LIABILITY, "Deferred Income"),
    MEMBER_DUES_REVENUE: (
        "Member Dues", AccountType.REVENUE, "Revenue"),
    WHT_PAYABLE: (
        "WHT Payable", AccountType.LIABILITY, "Tax Liabilities"),
}

# Remaining default chart: (number, name, type, category, is_cash_account)
DEFAULT_CHART = [
    ("1010", "Bank Account", AccountType.ASSET, "Cash and Bank", True),
    ("1030", "Prepaid Expenses", AccountType.ASSET, "Prepayments", False),
    ("2010", "Estate Maintenance Fund", AccountType.LIABILITY, "Funds", False),
    ("2020", "Sinking Fund", AccountType.LIABILITY, "Funds", False),
    ("2030", "Accounts Payable", AccountType.LIABILITY, "Payables", False),
    ("3010", "Retained Earnings", AccountType.EQUITY, "Equity", False),
    ("4010", "Administrative Charges", AccountType.REVENUE, "Revenue", False),
    ("4020", "Penalties / Late Payment Fees",
     AccountType.REVENUE, "Revenue", False),
    ("5010", "Security & Guards", AccountType.EXPENSE, "Security", False),
    ("5020", "Cleaning & Janitorial", AccountType.EXPENSE,
     "Maintenance", False),
    ("5030", "Waste Management", AccountType.EXPENSE, "Utilities", False),
    ("5040", "Diesel / Generator", AccountType.EXPENSE, "Utilities", False),
    ("5080", "General Maintenance", AccountType.EXPENSE, "Maintenance", False),
    ("5090", "Office/Admin Expenses", AccountType.EXPENSE,
     "Administrative", False),
]


def system_account_numbers():
    numbers = dict(DEFAULT_SYSTEM_NUMBERS)
    numbers.update(getattr(settings, "LEDGER_SYSTEM_ACCOUNTS", {}) or {})
    return numbers


# ----------------------------
# Lookups
# ----------------------------
def get_account(account_id) -> Account:
    try:
        return Account.objects.get(pk=account_id)
    except Account.DoesNotExist:
        raise NotFoundError(f"Account {account_id} not found")


def get_account_by_number(number) -> Account:
    try:
        return Account.objects.get(number=str(number))
    except Account.DoesNotExist:
        raise NotFoundError(f"Account number {number} not found")


def list_accounts(account_type=None, active=None):
    qs = Account.objects.all()
    if account_type:
        qs = qs.of_type(account_type)
    if active is not None:
        qs = qs.filter(is_active=active)
    return qs.order_by("number")


def get_system_accounts(*roles):
    """
    Return {role: Account} for the requested pre-provisioned accounts.
    A missing one is a configuration problem, not something to retry.
    """
    numbers = system_account_numbers()
    roles = roles or tuple(numbers)
    wanted = {}
    for role in roles:
        if role not in numbers:
            raise ConfigurationError(f"Unknown system account role {role!r}")
        wanted[role] = numbers[role]

    found = {
        acct.number: acct
        for acct in Account.objects.filter(
            number__in=wanted.values(), is_active=True)
    }
    missing = [
        f"{role} ({number})"
        for role, number in wanted.items()
        if number not in found
    ]
    if missing:
        raise ConfigurationError(
            "Required system accounts not configured: " + ", ".join(missing)
        )
    return {role: found[number] for role, number in wanted.items()}


def require_system_account(role) -> Account:
    return get_system_accounts(role)[role]


def resolve_cash_account(bank_name=None, account_number=None) -> Account:
    """
    Pick the ledger account that receives money for a bank.

    1. BankAccount row matching bank name (case-insensitive) and number
    2. the single ledger account mapped to that bank name (or number)
    3. lowest-numbered active account tagged as cash/bank
    """
    mappings = BankAccount.objects.filter(
        is_active=True, ledger_account__is_active=True
    ).select_related("ledger_account")
    name = (bank_name or "").strip()
    number = (account_number or "").strip()

    if name and number:
        exact = mappings.filter(
            bank_name__iexact=name, account_number=number).first()
        if exact:
            return exact.ledger_account

    candidates = mappings.none()
    if name:
        candidates = mappings.filter(bank_name__iexact=name)
    elif number:
        candidates = mappings.filter(account_number=number)
    ledger_ids = set(candidates.values_list("ledger_account_id", flat=True))
    if len(ledger_ids) == 1:
        return Account.objects.get(pk=ledger_ids.pop())
    if len(ledger_ids) > 1:
        logger.warning(
            "Bank %r maps to %d ledger accounts, using default cash account",
            name or number, len(ledger_ids),
        )

    fallback = Account.objects.cash_and_bank().first()
    if fallback is None:
        raise ConfigurationError(
            "No cash/bank account configured. Tag an asset account as "
            "a cash account or add a BankAccount mapping."
        )
    return fallback


# ----------------------------
# Maintenance
# ----------------------------
def create_account(user=None, **fields) -> Account:
    # Balances only ever come from postings
    fields.pop("balance", None)
    acct = Account(**fields)
    acct.save()
    log_action(action="create", instance=acct, user=user,
               changes={"number": acct.number, "name": acct.name})
    return acct


def update_account(account_id, user=None, **fields) -> Account:
    if "balance" in fields:
        raise ValidationError(
            "Account balance can only change through journal postings.")
    with transaction.atomic():
        try:
            acct = Account.objects.select_for_update().get(pk=account_id)
        except Account.DoesNotExist:
            raise NotFoundError(f"Account {account_id} not found")
        for name, value in fields.items():
            setattr(acct, name, value)
        # never write back a stale balance
        acct.save(update_fields=[*fields, "updated_at"])
        log_action(action="update", instance=acct, user=user, changes=fields)
    return acct


def delete_account(account_id, user=None):
    """
    Rejects system accounts (SystemAccountError) and accounts that
    already carry journal lines (ValidationError).
    """
    with transaction.atomic():
        acct = get_account(account_id)
        log_action(action="delete", instance=acct, user=user,
                   changes={"number": acct.number})
        acct.delete()


@transaction.atomic
def ensure_chart_of_accounts():
    """Idempotently provision the default chart. Returns accounts created."""
    created = []
    for role, number in system_account_numbers().items():
        name, account_type, category = SYSTEM_ACCOUNT_DEFINITIONS[role]
        acct, was_created = Account.objects.get_or_create(
            number=number,
            defaults={
                "name": name,
                "account_type": account_type,
                "category": category,
                "is_system_account": True,
            },
        )
        if not was_created and not acct.is_system_account:
            # An existing account took over a system role
            acct.is_system_account = True
            acct.save(update_fields=["is_system_account", "updated_at"])
        if was_created:
            created.append(acct)

    for number, name, account_type, category, is_cash in DEFAULT_CHART:
        acct, was_created = Account.objects.get_or_create(
            number=number,
            defaults={
                "name": name,
                "account_type": account_type,
                "category": category,
                "is_cash_account": is_cash,
            },
        )
        if was_created:
            created.append(acct)

    logger.info("Chart of accounts seeded, %d accounts created", len(created))
    return created


# ----------------------------
# Balances
# ----------------------------
def apply_line(account_id, amount, line_type):
    """
    The only writer of Account.balance, called by the journal engine.
    Same side as the normal balance → balance goes up, otherwise down.
    """
    if line_type not in LineType.values:
        raise ValidationError(f"Unknown line type {line_type!r}")
    with transaction.atomic():
        # Lock the row, then increment in SQL
        try:
            acct = Account.objects.select_for_update().get(pk=account_id)
        except Account.DoesNotExist:
            raise NotFoundError(f"Account {account_id} not found")
        delta = acct.signed_delta(amount, line_type)
        Account.objects.filter(pk=acct.pk).update(
            balance=models.F("balance") + delta,
            updated_at=timezone.now(),
        )
    return delta


def replay_account_balance(account) -> Decimal:
    """Balance rebuilt from zero out of every posted line of the account."""
    zero = models.Value(Decimal("0.00"), output_field=models.DecimalField())
    agg = JournalLine.objects.posted().filter(account=account).aggregate(
        debit=Coalesce(
            models.Sum("amount", filter=models.Q(line_type=LineType.DEBIT)),
            zero,
        ),
        credit=Coalesce(
            models.Sum("amount", filter=models.Q(line_type=LineType.CREDIT)),
            zero,
        ),
    )
    if account.resolve_normal_balance() == NormalBalance.DEBIT:
        return agg["debit"] - agg["credit"]
    return agg["credit"] - agg["debit"]


def verify_account_balances():
    """Return accounts whose stored balance drifted from the ledger."""
    drift = []
    for acct in Account.objects.order_by("number"):
        replayed = replay_account_balance(acct)
        if replayed != acct.balance:
            drift.append({
                "account": acct.number,
                "stored": acct.balance,
                "replayed": replayed,
            })
    return drift
