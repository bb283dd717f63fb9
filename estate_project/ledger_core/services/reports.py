"""
Read-only projections over posted journal lines.

Void entries are left out; their balance effect was reversed when they
were voided, so leaving them out gives the same totals as replaying both.
"""
from decimal import Decimal

from django.db.models import DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce

from ..exceptions import NotFoundError
from ..models import (Account, AccountType, Bill, Budget, JournalStatus,
                      LineType, NormalBalance)
from ..models.journal import flip

ZERO = Decimal("0.00")

AGING_BUCKETS = ("current", "1_30", "31_60", "61_90", "over_90")


def _with_activity(accounts, start=None, end=None):
    """Annotate accounts with debit/credit sums of posted lines in range."""
    line_filter = Q(journal_lines__journal__status=JournalStatus.POSTED)
    if start is not None:
        line_filter &= Q(journal_lines__journal__entry_date__gte=start)
    if end is not None:
        line_filter &= Q(journal_lines__journal__entry_date__lte=end)
    zero = Value(ZERO, output_field=DecimalField(max_digits=15,
                                                 decimal_places=2))
    return accounts.annotate(
        debit_total=Coalesce(
            Sum("journal_lines__amount",
                filter=line_filter &
                Q(journal_lines__line_type=LineType.DEBIT)),
            zero,
        ),
        credit_total=Coalesce(
            Sum("journal_lines__amount",
                filter=line_filter &
                Q(journal_lines__line_type=LineType.CREDIT)),
            zero,
        ),
    ).order_by("number")


def _row(acct, amount):
    return {
        "account_id": acct.pk,
        "number": acct.number,
        "name": acct.name,
        "category": acct.category,
        "amount": amount,
    }


def get_trial_balance(as_of):
    """
    Each account's net activity up to as_of, shown in the debit or
    credit column according to its normal balance.
    """
    rows = []
    total_debits = ZERO
    total_credits = ZERO
    for acct in _with_activity(Account.objects.all(), end=as_of):
        normal = acct.resolve_normal_balance()
        if normal == NormalBalance.DEBIT:
            balance = acct.debit_total - acct.credit_total
        else:
            balance = acct.credit_total - acct.debit_total
        if balance == 0:
            continue
        # positive balances sit on the normal side, negative on the other
        side = normal if balance > 0 else flip(normal)
        debit_col = abs(balance) if side == LineType.DEBIT else ZERO
        credit_col = abs(balance) if side == LineType.CREDIT else ZERO
        total_debits += debit_col
        total_credits += credit_col
        rows.append({
            "account_id": acct.pk,
            "number": acct.number,
            "name": acct.name,
            "account_type": acct.account_type,
            "normal_balance": normal.value,
            "balance": balance,
            "debit": debit_col,
            "credit": credit_col,
        })
    return {
        "as_of": as_of,
        "accounts": rows,
        "total_debits": total_debits,
        "total_credits": total_credits,
        "balanced": total_debits == total_credits,
    }


def get_income_statement(start, end):
    """Revenue (net credit) less expenses (net debit) within [start, end]."""
    revenue_rows = []
    expense_rows = []
    total_revenue = ZERO
    total_expenses = ZERO

    accounts = Account.objects.filter(
        account_type__in=[AccountType.REVENUE, AccountType.EXPENSE])
    for acct in _with_activity(accounts, start=start, end=end):
        if acct.account_type == AccountType.REVENUE:
            amount = acct.credit_total - acct.debit_total
            if amount:
                revenue_rows.append(_row(acct, amount))
                total_revenue += amount
        else:
            amount = acct.debit_total - acct.credit_total
            if amount:
                expense_rows.append(_row(acct, amount))
                total_expenses += amount

    return {
        "start": start,
        "end": end,
        "revenue": revenue_rows,
        "expenses": expense_rows,
        "total_revenue": total_revenue,
        "total_expenses": total_expenses,
        "net_income": total_revenue - total_expenses,
    }


def get_balance_sheet(as_of):
    """
    Assets vs liabilities + equity as of a date. Net income to date is
    folded into equity, since no closing entries are posted.
    """
    sections = {
        AccountType.ASSET: [],
        AccountType.LIABILITY: [],
        AccountType.EQUITY: [],
    }
    totals = {key: ZERO for key in sections}
    net_income = ZERO

    for acct in _with_activity(Account.objects.all(), end=as_of):
        debit_net = acct.debit_total - acct.credit_total
        # revenue (credit) raises net income, expenses (debit) lower it
        if acct.account_type in (AccountType.REVENUE, AccountType.EXPENSE):
            net_income -= debit_net
            continue
        if acct.account_type == AccountType.ASSET:
            amount = debit_net
        else:
            amount = -debit_net
        if amount:
            sections[AccountType(acct.account_type)].append(_row(acct, amount))
            totals[AccountType(acct.account_type)] += amount

    if net_income:
        sections[AccountType.EQUITY].append({
            "account_id": None,
            "number": None,
            "name": "Current Year Net Income",
            "category": "Equity",
            "amount": net_income,
        })
        totals[AccountType.EQUITY] += net_income

    total_assets = totals[AccountType.ASSET]
    total_liabilities = totals[AccountType.LIABILITY]
    total_equity = totals[AccountType.EQUITY]
    return {
        "as_of": as_of,
        "assets": sections[AccountType.ASSET],
        "liabilities": sections[AccountType.LIABILITY],
        "equity": sections[AccountType.EQUITY],
        "total_assets": total_assets,
        "total_liabilities": total_liabilities,
        "total_equity": total_equity,
        "net_income": net_income,
        "balanced": total_assets == total_liabilities + total_equity,
    }


def _bucket(days_overdue):
    if days_overdue <= 0:
        return "current"
    if days_overdue <= 30:
        return "1_30"
    if days_overdue <= 60:
        return "31_60"
    if days_overdue <= 90:
        return "61_90"
    return "over_90"


def get_ar_aging(as_of):
    """
    Open bills bucketed by days past due, using Bill.is_overdue().
    """
    buckets = {name: ZERO for name in AGING_BUCKETS}
    bills = []
    for bill in Bill.objects.open().select_related("resident").order_by(
            "due_date", "invoice_number"):
        days = bill.days_overdue(as_of)
        bucket = _bucket(days)
        buckets[bucket] += bill.balance
        bills.append({
            "bill_id": bill.pk,
            "invoice_number": bill.invoice_number,
            "unit_number": bill.resident.unit_number,
            "due_date": bill.due_date,
            "balance": bill.balance,
            "days_overdue": days,
            "bucket": bucket,
        })
    return {
        "as_of": as_of,
        "buckets": buckets,
        "total_outstanding": sum(buckets.values(), ZERO),
        "total_overdue": sum(
            (v for k, v in buckets.items() if k != "current"), ZERO),
        "bills": bills,
    }


def get_budget_performance(budget_id):
    try:
        budget = Budget.objects.get(pk=budget_id)
    except Budget.DoesNotExist:
        raise NotFoundError(f"Budget {budget_id} not found")
    lines = [
        {
            "account": line.account.number,
            "name": line.account.name,
            "allocated": line.allocated_amount,
            "consumed": line.consumed_amount,
            "remaining": line.remaining_amount,
            "utilization": line.utilization,
        }
        for line in budget.lines.select_related("account").order_by(
            "account__number")
    ]
    return {
        "budget_id": budget.pk,
        "name": budget.name,
        "status": budget.status,
        "total_budget": budget.total_budget_amount,
        "total_consumed": budget.total_consumed_amount,
        "total_remaining": budget.total_remaining_amount,
        "lines": lines,
    }
