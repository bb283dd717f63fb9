import logging

from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.utils import timezone

from ..exceptions import NotFoundError, OverpaymentError
from ..models import (ApplicationType, Bill, BillStatus, PaymentApplication,
                      ReferenceType, Resident)
from .accounts import (ACCOUNTS_RECEIVABLE, DEFERRED_REVENUE,
                       MEMBER_DUES_REVENUE, get_system_accounts,
                       resolve_cash_account)
from .audit_helper import log_action
from .posting import credit, debit, post_journal_entry, to_amount

logger = logging.getLogger(__name__)


# ----------------------------
# Payment-related workflows
# ----------------------------
def apply_payment_to_bill(
    bill_id,
    amount,
    source=ApplicationType.MANUAL,
    payment_date=None,
    *,
    user=None,
    bank_name="",
    account_number="",
    notes="",
) -> PaymentApplication:
    """
    Apply part (or all) of a payment to a bill.
    Locks the bill row for the whole operation.
    """
    # Everything inside either succeeds
    # as one unit or rolls back if something fails
    with transaction.atomic():
        try:
            bill = Bill.objects.select_for_update().get(pk=bill_id)
        except Bill.DoesNotExist:
            raise NotFoundError(f"Bill {bill_id} not found")
        return apply_payment_locked(
            bill,
            amount,
            source=source,
            payment_date=payment_date,
            user=user,
            bank_name=bank_name,
            account_number=account_number,
            notes=notes,
        )


def apply_payment_locked(
    bill,
    amount,
    *,
    source=ApplicationType.MANUAL,
    payment_date=None,
    user=None,
    bank_name="",
    account_number="",
    bank_statement_entry=None,
    notes="",
) -> PaymentApplication:
    """
    Payment application for a bill the caller has already locked with
    select_for_update() inside its own atomic block.

    Records the application, moves the bill totals and posts the
    four-line recognition entry:
        Dr Cash / Cr AR            (money in, receivable settled)
        Dr Deferred / Cr Revenue   (revenue recognized on receipt)
    """
    amount = to_amount(amount)
    payment_date = payment_date or timezone.localdate()

    """ Business validations, before any write """
    if amount <= 0:
        raise ValidationError("Payment amount must be positive")
    if bill.status in (BillStatus.VOID, BillStatus.CANCELLED):
        raise ValidationError(
            f"Cannot apply payment to {bill.status} bill "
            f"{bill.invoice_number}")
    if amount > bill.balance:
        raise OverpaymentError(
            f"Payment amount {amount} exceeds bill balance {bill.balance} "
            f"for {bill.invoice_number}"
        )

    accounts = get_system_accounts(
        ACCOUNTS_RECEIVABLE, DEFERRED_REVENUE, MEMBER_DUES_REVENUE)
    cash = resolve_cash_account(bank_name, account_number)
    inv = bill.invoice_number

    je = post_journal_entry(
        entry_date=payment_date,
        description=f"Payment received for {inv}",
        lines=[
            debit(cash, amount, f"Payment received for {inv}"),
            credit(accounts[ACCOUNTS_RECEIVABLE], amount,
                   f"Payment for {inv} - reduce AR"),
            debit(accounts[DEFERRED_REVENUE], amount,
                  f"Relieve deferred revenue for {inv}"),
            credit(accounts[MEMBER_DUES_REVENUE], amount,
                   f"Revenue recognized for {inv}"),
        ],
        reference_type=ReferenceType.PAYMENT,
        reference_id=bill.pk,
        created_by=user,
    )

    # This represents X amount settling this bill
    application = PaymentApplication.objects.create(
        bill=bill,
        amount_applied=amount,
        application_type=source,
        bank_statement_entry=bank_statement_entry,
        payment_date=payment_date,
        bank_name=bank_name or "",
        account_number=account_number or "",
        notes=notes or "",
        applied_by=user,
        journal_entry=je,
    )

    # Update bill totals and status
    bill.record_payment(amount)
    bill.save(update_fields=[
        "total_paid", "balance", "status", "payment_status", "updated_at"])

    # Resident's running outstanding amount
    Resident.objects.filter(pk=bill.resident_id).update(
        total_balance=models.F("total_balance") - amount,
        updated_at=timezone.now(),
    )

    log_action(
        action="apply_payment",
        instance=bill,
        user=user,
        changes={
            "application_id": application.pk,
            "amount": amount,
            "source": source,
            "balance": bill.balance,
            "journal_entry": je.entry_number,
        },
    )
    logger.info("Applied %s to %s (%s), balance now %s",
                amount, inv, source, bill.balance)
    return application
