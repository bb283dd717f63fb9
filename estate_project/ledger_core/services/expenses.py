import logging
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from ..exceptions import NotFoundError
from ..models import (Account, AccountType, Expense, ExpensePaymentStatus,
                      ExpenseStatus, ReferenceType)
from .accounts import WHT_PAYABLE, require_system_account
from .audit_helper import log_action
from .budget import track_expense_consumption
from .posting import credit, debit, post_journal_entry

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def _locked_expense(expense_id) -> Expense:
    try:
        return Expense.objects.select_for_update().get(pk=expense_id)
    except Expense.DoesNotExist:
        raise NotFoundError(f"Expense {expense_id} not found")


def approve_expense(expense_id, user=None, today=None) -> Expense:
    with transaction.atomic():
        expense = _locked_expense(expense_id)
        expense.transition_to(ExpenseStatus.APPROVED)
        expense.reviewed_by = user
        expense.reviewed_at = timezone.now()
        expense.save(update_fields=[
            "status", "reviewed_by", "reviewed_at", "updated_at"])
        log_action(action="approve", instance=expense, user=user,
                   changes={"total": expense.total_amount})

    # Outside the approval unit: a tracking problem never undoes approval
    try:
        with transaction.atomic():
            track_expense_consumption(expense, today=today)
    except ValidationError:
        logger.warning("Budget tracking skipped for expense %s",
                       expense.pk, exc_info=True)
    except Exception:
        logger.exception("Budget tracking failed for approved expense %s",
                         expense.pk)
    return expense


def reject_expense(expense_id, user=None, reason="") -> Expense:
    with transaction.atomic():
        expense = _locked_expense(expense_id)
        expense.transition_to(ExpenseStatus.REJECTED)
        expense.reviewed_by = user
        expense.reviewed_at = timezone.now()
        expense.rejection_reason = reason
        expense.save(update_fields=[
            "status", "reviewed_by", "reviewed_at", "rejection_reason",
            "updated_at",
        ])
        log_action(action="reject", instance=expense, user=user,
                   changes={"reason": reason})
    return expense


def compute_wht(service_charge, rate) -> Decimal:
    """Withholding tax applies to the service portion only."""
    return (service_charge * rate / Decimal("100")).quantize(
        CENT, rounding=ROUND_HALF_UP)


def pay_expense(
    expense_id,
    paid_from_account_id,
    user=None,
    wht_rate=None,
    payment_date=None,
) -> Expense:
    """
    Pay an approved expense, withholding tax on its service charge:
        Dr expense account   total
        Cr bank              total - WHT
        Cr WHT Payable       WHT
    The bank line is left out when the whole amount is withheld.
    """
    if wht_rate is None:
        wht_rate = getattr(settings, "LEDGER_DEFAULT_WHT_RATE", Decimal("5.00"))
    wht_rate = Decimal(str(wht_rate))
    if wht_rate < 0 or wht_rate > 100:
        raise ValidationError("WHT rate must be between 0 and 100")
    payment_date = payment_date or timezone.localdate()

    with transaction.atomic():
        expense = _locked_expense(expense_id)
        if expense.status != ExpenseStatus.APPROVED:
            raise ValidationError("Only approved expenses can be paid")
        if expense.payment_status == ExpensePaymentStatus.PAID:
            raise ValidationError("Expense has already been paid")
        if expense.account is None:
            raise ValidationError("Expense has no expense account assigned")

        try:
            bank = Account.objects.get(pk=paid_from_account_id)
        except Account.DoesNotExist:
            raise NotFoundError(f"Account {paid_from_account_id} not found")
        if bank.account_type != AccountType.ASSET or not bank.is_cash_account:
            raise ValidationError("Expenses are paid from a cash/bank account")

        total = expense.total_amount
        wht = compute_wht(expense.service_charge, wht_rate)
        net = total - wht

        lines = [debit(expense.account, total, expense.description[:400])]
        if net > 0:
            # fully withheld payments never touch the bank
            lines.append(
                credit(bank, net, f"Payment to {expense.vendor_name}".strip()))
        if wht > 0:
            lines.append(
                credit(require_system_account(WHT_PAYABLE), wht,
                       f"WHT {wht_rate}% on service charge"))

        je = post_journal_entry(
            entry_date=payment_date,
            description=f"Expense payment: {expense.description[:200]}",
            lines=lines,
            reference_type=ReferenceType.EXPENSE_PAYMENT,
            reference_id=expense.pk,
            created_by=user,
        )

        expense.payment_status = ExpensePaymentStatus.PAID
        expense.paid_date = payment_date
        expense.paid_from_account = bank
        expense.paid_by = user
        expense.wht_rate = wht_rate
        expense.wht_amount = wht
        expense.net_payment = net
        expense.payment_journal_entry = je
        expense.save()

        log_action(action="pay", instance=expense, user=user,
                   changes={"net": net, "wht": wht,
                            "journal_entry": je.entry_number})

    logger.info("Paid expense %s: net %s, WHT %s", expense.pk, net, wht)
    return expense
