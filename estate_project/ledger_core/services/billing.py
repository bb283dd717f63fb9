import datetime
import logging
from dataclasses import asdict, dataclass, field
from typing import List, Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.utils import timezone

from ..exceptions import ConfigurationError, NotFoundError
from ..models import (Bill, BillStatus, JournalStatus, ReferenceType,
                      Resident, ResidentStatus)
from .accounts import (ACCOUNTS_RECEIVABLE, DEFERRED_REVENUE,
                       get_system_accounts)
from .audit_helper import log_action
from .posting import credit, debit, post_journal_entry, void_journal_entry
from .sequences import generate_invoice_number

logger = logging.getLogger(__name__)

ONE_DAY = datetime.timedelta(days=1)


@dataclass(frozen=True)
class BillingPeriod:
    start: datetime.date
    end: datetime.date


@dataclass
class BillingError:
    resident_id: int
    unit_number: str
    reason: str


@dataclass
class BatchBillingResult:
    success: int = 0
    failed: int = 0
    skipped: int = 0
    bills: List[Bill] = field(default_factory=list)
    errors: List[BillingError] = field(default_factory=list)

    def to_dict(self):
        return {
            "success": self.success,
            "failed": self.failed,
            "skipped": self.skipped,
            "bills": [bill.invoice_number for bill in self.bills],
            "errors": [asdict(err) for err in self.errors],
        }


def _add_one_year(day):
    try:
        return day.replace(year=day.year + 1)
    except ValueError:
        # Feb 29 → Mar 1 of the following year
        return datetime.date(day.year + 1, 3, 1)


def compute_billing_period(resident, today) -> Optional[BillingPeriod]:
    """
    Next one-year period for the resident, or None while the last
    billed period is still running.
    """
    prior_end = resident.current_period_end
    if prior_end is not None and prior_end >= today:
        return None
    if prior_end is None:
        start = resident.start_date
    else:
        start = prior_end + ONE_DAY
    return BillingPeriod(start=start, end=_add_one_year(start) - ONE_DAY)


def eligible_residents():
    return Resident.objects.filter(
        account_status=ResidentStatus.ACTIVE,
        service_charge__gt=0,
        start_date__isnull=False,
    ).order_by("unit_number")


def _billing_accounts():
    return get_system_accounts(ACCOUNTS_RECEIVABLE, DEFERRED_REVENUE)


# ----------------------------
# Bill generation
# ----------------------------
def generate_bill_for_resident(resident_id, user=None, today=None):
    """
    Bill the resident's next service-charge period.
    Returns the new Bill, or None when the resident is not eligible
    or the current period has not ended yet.
    """
    today = today or timezone.localdate()

    with transaction.atomic():
        # Lock the resident so two runs can't bill the same period
        try:
            resident = Resident.objects.select_for_update().get(pk=resident_id)
        except Resident.DoesNotExist:
            raise NotFoundError(f"Resident {resident_id} not found")

        if not resident.is_billable:
            logger.debug("Unit %s is not eligible for billing",
                         resident.unit_number)
            return None

        period = compute_billing_period(resident, today)
        if period is None:
            logger.debug("Unit %s period open until %s, nothing to bill",
                         resident.unit_number, resident.current_period_end)
            return None

        accounts = _billing_accounts()
        amount = resident.service_charge
        billing_type = getattr(
            settings, "LEDGER_BILLING_TYPE", "Estate Maintenance")
        due_days = getattr(settings, "LEDGER_BILL_DUE_DAYS", 7)

        bill = Bill.objects.create(
            resident=resident,
            invoice_number=generate_invoice_number(today),
            billing_type=billing_type,
            description=(
                f"Service Charge for {resident.unit_number} - Period: "
                f"{period.start:%Y-%m-%d} to {period.end:%Y-%m-%d}"
            ),
            amount=amount,
            balance=amount,
            status=BillStatus.PENDING,
            period_start=period.start,
            period_end=period.end,
            due_date=today + datetime.timedelta(days=due_days),
        )

        # Revenue waits in Deferred Revenue until cash arrives
        je = post_journal_entry(
            entry_date=today,
            description=(
                f"{billing_type} bill {bill.invoice_number} "
                f"- Unit {resident.unit_number}"
            ),
            lines=[
                debit(accounts[ACCOUNTS_RECEIVABLE], amount,
                      f"AR - {resident.unit_number}"),
                credit(accounts[DEFERRED_REVENUE], amount,
                       f"Deferred Revenue - {resident.unit_number} "
                       "(revenue recognized upon payment)"),
            ],
            reference_type=ReferenceType.BILL,
            reference_id=bill.pk,
            created_by=user,
        )
        bill.journal_entry = je
        bill.save(update_fields=["journal_entry", "updated_at"])

        # Advance the resident's period and running balance
        Resident.objects.filter(pk=resident.pk).update(
            current_period_end=period.end,
            total_balance=models.F("total_balance") + amount,
            updated_at=timezone.now(),
        )

        log_action(
            action="generate_bill",
            instance=bill,
            user=user,
            changes={
                "invoice_number": bill.invoice_number,
                "amount": amount,
                "period_start": period.start,
                "period_end": period.end,
                "journal_entry": je.entry_number,
            },
        )

    logger.info("Billed unit %s: %s for %s",
                resident.unit_number, bill.invoice_number, amount)
    return bill


def generate_bills_for_all_eligible(user=None, today=None):
    """
    Daily billing run. One resident's failure never aborts the others;
    missing system accounts abort the whole run.
    """
    today = today or timezone.localdate()
    # Fatal up front, before any resident is touched
    _billing_accounts()

    result = BatchBillingResult()
    for resident in eligible_residents():
        try:
            bill = generate_bill_for_resident(
                resident.pk, user=user, today=today)
        except ConfigurationError:
            raise
        except Exception as exc:
            logger.exception("Billing failed for unit %s",
                             resident.unit_number)
            result.failed += 1
            result.errors.append(
                BillingError(
                    resident_id=resident.pk,
                    unit_number=resident.unit_number,
                    reason=str(exc),
                )
            )
            continue

        if bill is None:
            result.skipped += 1
        else:
            result.success += 1
            result.bills.append(bill)

    logger.info(
        "Billing run %s: %d billed, %d failed, %d skipped",
        today, result.success, result.failed, result.skipped,
    )
    return result


def void_bill(bill_id, user=None, reason=""):
    """
    Cancel an unpaid bill: void its AR entry and undo the resident side.
    Bills with payments need a refund workflow instead.
    """
    with transaction.atomic():
        try:
            bill = Bill.objects.select_for_update().get(pk=bill_id)
        except Bill.DoesNotExist:
            raise NotFoundError(f"Bill {bill_id} not found")

        if bill.applications.exists() or bill.total_paid > 0:
            raise ValidationError("Cannot void a bill with applied payments.")
        # raises ValidationError unless the bill is still pending
        bill.transition_to(BillStatus.VOID, save=False)

        if bill.journal_entry_id and \
                bill.journal_entry.status == JournalStatus.POSTED:
            void_journal_entry(bill.journal_entry_id, user=user)

        bill.voided_at = timezone.now()
        bill.void_reason = reason
        bill.save(update_fields=[
            "status", "voided_at", "void_reason", "updated_at"])

        resident = Resident.objects.select_for_update().get(
            pk=bill.resident_id)
        resident.total_balance -= bill.balance
        fields = ["total_balance", "updated_at"]
        # Latest period → open it up for billing again
        if resident.current_period_end == bill.period_end:
            if resident.start_date is None or \
                    bill.period_start <= resident.start_date:
                resident.current_period_end = None
            else:
                resident.current_period_end = bill.period_start - ONE_DAY
            fields.append("current_period_end")
        resident.save(update_fields=fields)

        log_action(
            action="void_bill",
            instance=bill,
            user=user,
            changes={"invoice_number": bill.invoice_number, "reason": reason},
        )

    logger.info("Voided bill %s", bill.invoice_number)
    return bill
