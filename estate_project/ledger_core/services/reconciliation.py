import csv
import datetime
import io
import logging
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional

from django.core.exceptions import ValidationError
from django.db import transaction

from ..exceptions import NotFoundError, OverpaymentError
from ..models import (ApplicationType, BankStatement, BankStatementEntry,
                      Bill, BillStatus, EntryStatus, StatementStatus)
from .audit_helper import log_action
from .payment import apply_payment_locked
from .posting import to_amount

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatementMeta:
    bank_name: str
    account_number: str
    statement_date: datetime.date
    file_name: str = ""


@dataclass(frozen=True)
class StatementEntryInput:
    transaction_date: datetime.date
    description: str
    reference_number: str
    amount: Decimal


@dataclass
class ResidualAmount:
    entry_id: int
    entry_reference: str
    bill_id: int
    invoice_number: str
    resident_id: int
    entry_amount: Decimal
    applied_amount: Decimal
    residual_amount: Decimal
    description: str


@dataclass
class ReconciliationSummary:
    total_entries: int = 0
    matched: int = 0
    partially_matched: int = 0
    unmatched: int = 0
    total_reconciled: Decimal = Decimal("0.00")
    residual_amounts: List[ResidualAmount] = field(default_factory=list)
    details: List[dict] = field(default_factory=list)
    errors: List[dict] = field(default_factory=list)

    def to_dict(self):
        data = asdict(self)
        # JSON friendly copy for BankStatement.reconciliation_summary
        data["total_reconciled"] = str(self.total_reconciled)
        for residual in data["residual_amounts"]:
            for key in ("entry_amount", "applied_amount", "residual_amount"):
                residual[key] = str(residual[key])
        for detail in data["details"]:
            for key in ("amount", "applied", "residual"):
                detail[key] = str(detail[key])
        return data


@dataclass
class ReconciliationResult:
    statement: BankStatement
    summary: ReconciliationSummary


@dataclass
class _EntryOutcome:
    entry: BankStatementEntry
    bill: Optional[Bill] = None
    applied: Decimal = Decimal("0.00")


# ----------------------------
# Statement parsing
# ----------------------------
def parse_statement_csv(text: str):
    """
    Parse a "Date,Description,Reference,Amount" statement export.
    Returns (entries, skipped) where skipped lists (row number, reason).
    """
    reader = csv.DictReader(io.StringIO(text))
    entries = []
    skipped = []
    for row_number, row in enumerate(reader, start=2):
        # header names vary in case between banks
        row = {(k or "").strip().lower(): (v or "").strip()
               for k, v in row.items()}
        if not any(row.values()):
            continue
        date_raw = row.get("date") or row.get("transaction date", "")
        amount_raw = (row.get("amount") or "").replace(",", "")
        try:
            txn_date = datetime.datetime.strptime(date_raw, "%Y-%m-%d").date()
            amount = to_amount(amount_raw)
        except (ValueError, ValidationError):
            skipped.append((row_number, f"Unreadable date or amount: {row}"))
            continue
        entries.append(
            StatementEntryInput(
                transaction_date=txn_date,
                description=row.get("description", ""),
                reference_number=(
                    row.get("reference") or row.get("reference number", "")),
                amount=amount,
            )
        )
    return entries, skipped


# ----------------------------
# Reconciliation
# ----------------------------
def _find_bill(reference):
    """Fresh, locked read of the bill a statement line points at."""
    if not reference:
        return None
    return (
        Bill.objects.select_for_update()
        .filter(invoice_number=reference)
        .exclude(status__in=[BillStatus.VOID, BillStatus.CANCELLED])
        .first()
    )


def _reconcile_entry(statement, position, raw, meta, user) -> _EntryOutcome:
    """All work for one statement line, run inside its own atomic block."""
    entry = BankStatementEntry.objects.create(
        statement=statement,
        position=position,
        transaction_date=raw.transaction_date,
        description=raw.description,
        reference_number=raw.reference_number,
        amount=to_amount(raw.amount),
        status=EntryStatus.UNMATCHED,
    )
    outcome = _EntryOutcome(entry=entry)
    if entry.amount <= 0:
        # charges and debits are stored but only receipts settle bills
        return outcome

    bill = _find_bill(entry.reference_number.strip())
    if bill is None:
        return outcome
    outcome.bill = bill

    amount_to_apply = min(entry.amount, bill.balance)
    if amount_to_apply <= 0:
        # already settled, nothing to apply
        return outcome

    apply_payment_locked(
        bill,
        amount_to_apply,
        source=ApplicationType.BANK_STATEMENT,
        payment_date=entry.transaction_date,
        user=user,
        bank_name=meta.bank_name,
        account_number=meta.account_number,
        bank_statement_entry=entry,
        notes=f"Auto-reconciled from bank statement: {entry.description}",
    )
    entry.apply(amount_to_apply)
    entry.save(update_fields=["applied_amount", "remaining_amount", "status"])
    outcome.applied = amount_to_apply
    return outcome


def _record_outcome(summary, outcome):
    entry = outcome.entry
    if entry.status == EntryStatus.RECONCILED:
        summary.matched += 1
    elif entry.status == EntryStatus.PARTIALLY_MATCHED:
        summary.partially_matched += 1
        bill = outcome.bill
        # Leftover money needs a human to decide where it goes
        summary.residual_amounts.append(
            ResidualAmount(
                entry_id=entry.pk,
                entry_reference=entry.reference_number,
                bill_id=bill.pk,
                invoice_number=bill.invoice_number,
                resident_id=bill.resident_id,
                entry_amount=entry.amount,
                applied_amount=entry.applied_amount,
                residual_amount=entry.remaining_amount,
                description=entry.description,
            )
        )
    else:
        summary.unmatched += 1
    summary.total_reconciled += outcome.applied
    summary.details.append({
        "entry_id": entry.pk,
        "entry_reference": entry.reference_number,
        "invoice_number": outcome.bill.invoice_number if outcome.bill else None,
        "amount": entry.amount,
        "applied": entry.applied_amount,
        "residual": entry.remaining_amount,
        "status": entry.status,
    })


def _amount_or_zero(value):
    # unreadable amounts fail later, inside their own line's unit
    try:
        return to_amount(value)
    except ValidationError:
        return Decimal("0.00")


def reconcile_statement(
    meta: StatementMeta,
    entries: Iterable[StatementEntryInput],
    user=None,
) -> ReconciliationResult:
    """
    Store the statement and match every line against bills by reference.
    Each line commits or rolls back on its own; a failing line is
    counted as unmatched and the run carries on.
    """
    entries = list(entries)
    statement = BankStatement.objects.create(
        file_name=meta.file_name,
        bank_name=meta.bank_name,
        account_number=meta.account_number,
        statement_date=meta.statement_date,
        total_entries=len(entries),
        total_amount=sum((_amount_or_zero(e.amount) for e in entries),
                         Decimal("0.00")),
        uploaded_by=user,
    )
    statement.transition_to(StatementStatus.PROCESSING)
    statement.save(update_fields=["status"])

    summary = ReconciliationSummary(total_entries=len(entries))
    for position, raw in enumerate(entries, start=1):
        try:
            with transaction.atomic():
                outcome = _reconcile_entry(statement, position, raw, meta, user)
        except Exception as exc:
            # Only this line's work was rolled back
            logger.exception(
                "Statement %s line %d (%s) failed",
                statement.pk, position, raw.reference_number,
            )
            summary.unmatched += 1
            summary.errors.append({
                "position": position,
                "reference": raw.reference_number,
                "error": str(exc),
            })
            continue
        _record_outcome(summary, outcome)

    statement.transition_to(StatementStatus.COMPLETED)
    statement.reconciled_entries = summary.matched
    statement.reconciled_amount = summary.total_reconciled
    statement.reconciliation_summary = summary.to_dict()
    statement.save(update_fields=[
        "status", "reconciled_entries", "reconciled_amount",
        "reconciliation_summary",
    ])

    log_action(
        action="reconcile",
        instance=statement,
        user=user,
        changes={
            "total_entries": summary.total_entries,
            "matched": summary.matched,
            "partially_matched": summary.partially_matched,
            "unmatched": summary.unmatched,
            "total_reconciled": summary.total_reconciled,
        },
    )
    logger.info(
        "Statement %s reconciled: %d matched, %d partial, %d unmatched, %s",
        statement.pk, summary.matched, summary.partially_matched,
        summary.unmatched, summary.total_reconciled,
    )
    return ReconciliationResult(statement=statement, summary=summary)


def reconcile_entry_to_bill(entry_id, bill_id, amount, user=None):
    """
    Manually match (part of) a statement line's remaining amount to a bill,
    e.g. a residual left by automatic matching or a line with no reference.
    """
    amount = to_amount(amount)
    with transaction.atomic():
        try:
            entry = (
                BankStatementEntry.objects.select_for_update()
                .select_related("statement")
                .get(pk=entry_id)
            )
        except BankStatementEntry.DoesNotExist:
            raise NotFoundError(f"Statement entry {entry_id} not found")
        try:
            bill = Bill.objects.select_for_update().get(pk=bill_id)
        except Bill.DoesNotExist:
            raise NotFoundError(f"Bill {bill_id} not found")

        if amount > entry.remaining_amount:
            raise OverpaymentError(
                f"Amount {amount} exceeds the entry's remaining "
                f"{entry.remaining_amount}"
            )

        statement = entry.statement
        application = apply_payment_locked(
            bill,
            amount,
            source=ApplicationType.BANK_STATEMENT,
            payment_date=entry.transaction_date,
            user=user,
            bank_name=statement.bank_name,
            account_number=statement.account_number,
            bank_statement_entry=entry,
            notes=f"Manually reconciled from bank statement: "
                  f"{entry.description}",
        )
        entry.apply(amount)
        entry.save(update_fields=[
            "applied_amount", "remaining_amount", "status"])

        statement.refresh_totals()
        statement.save(update_fields=[
            "reconciled_entries", "reconciled_amount"])

        log_action(
            action="manual_reconcile",
            instance=entry,
            user=user,
            changes={
                "bill": bill.invoice_number,
                "amount": amount,
                "remaining": entry.remaining_amount,
            },
        )
    logger.info("Manually matched entry %s to %s for %s",
                entry.pk, bill.invoice_number, amount)
    return application


def unreconciled_entries():
    """Lines still waiting for a manual decision."""
    return BankStatementEntry.objects.exclude(
        status=EntryStatus.RECONCILED
    ).select_related("statement")
