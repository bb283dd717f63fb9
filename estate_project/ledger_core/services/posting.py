import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable, List

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from ..exceptions import (AlreadyReversedError, AlreadyVoidError,
                          NotFoundError, UnbalancedEntryError)
from ..models import (Account, JournalEntry, JournalLine, JournalStatus,
                      LineType, ReferenceType)
from ..models.journal import flip
from .accounts import apply_line
from .audit_helper import log_action
from .sequences import generate_entry_number

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


@dataclass(frozen=True)
class LineSpec:
    """One line of an entry about to be posted."""

    account: object  # Account instance or its pk
    line_type: str
    amount: Decimal
    description: str = ""

    @property
    def account_id(self):
        return getattr(self.account, "pk", self.account)


def debit(account, amount, description="") -> LineSpec:
    return LineSpec(account, LineType.DEBIT, amount, description)


def credit(account, amount, description="") -> LineSpec:
    return LineSpec(account, LineType.CREDIT, amount, description)


def to_amount(value) -> Decimal:
    """Money in, Decimal with exactly two places out."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid amount {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount {value!r}")
    if amount != amount.quantize(CENT):
        raise ValidationError(f"Amount {value} has more than two decimals")
    return amount.quantize(CENT)


def validate_lines(lines: List[LineSpec]):
    """
    Enforce double-entry rule before touching the database.
    Returns (total_debit, total_credit), equal to the cent.
    """
    if len(lines) < 2:
        raise UnbalancedEntryError(
            "A journal entry needs at least two lines")

    total_debit = Decimal("0.00")
    total_credit = Decimal("0.00")
    for item in lines:
        amount = to_amount(item.amount)
        if amount <= 0:
            raise ValidationError("Journal line amounts must be positive")
        if item.line_type == LineType.DEBIT:
            total_debit += amount
        elif item.line_type == LineType.CREDIT:
            total_credit += amount
        else:
            raise ValidationError(f"Unknown line type {item.line_type!r}")

    if total_debit != total_credit:
        raise UnbalancedEntryError(
            f"Journal not balanced: debits={total_debit}, "
            f"credits={total_credit}"
        )
    return total_debit, total_credit


def _load_accounts(lines):
    ids = {item.account_id for item in lines}
    accounts = Account.objects.in_bulk(ids)
    for account_id in ids:
        acct = accounts.get(account_id)
        if acct is None:
            raise NotFoundError(f"Account {account_id} not found")
        # Inactive accounts take no new postings
        if not acct.is_active:
            raise ValidationError(
                f"Cannot post to inactive account {acct.number}")
    return accounts


# ----------------------------
# Journal-related workflows
# ----------------------------
def post_journal_entry(
    *,
    entry_date,
    description: str,
    lines: Iterable[LineSpec],
    reference_type=ReferenceType.MANUAL,
    reference_id=None,
    created_by=None,
    notes: str = "",
) -> JournalEntry:
    """
    Create a balanced entry, its lines and the balance updates
    as one all-or-nothing unit.
    """
    lines = list(lines)
    total_debit, total_credit = validate_lines(lines)

    with transaction.atomic():
        accounts = _load_accounts(lines)

        je = JournalEntry.objects.create(
            entry_number=generate_entry_number(entry_date),
            entry_date=entry_date,
            description=description,
            reference_type=reference_type,
            reference_id=reference_id,
            status=JournalStatus.POSTED,
            total_debit=total_debit,
            total_credit=total_credit,
            created_by=created_by,
            notes=notes,
        )
        for item in lines:
            JournalLine.objects.create(
                journal=je,
                account=accounts[item.account_id],
                line_type=item.line_type,
                amount=to_amount(item.amount),
                description=item.description,
            )

        # Apply in account order so concurrent postings lock rows
        # in the same sequence
        for item in sorted(lines, key=lambda s: s.account_id):
            apply_line(item.account_id, to_amount(item.amount), item.line_type)

        log_action(
            action="post",
            instance=je,
            user=created_by,
            changes={
                "entry_number": je.entry_number,
                "reference_type": je.reference_type,
                "reference_id": je.reference_id,
                "total": total_debit,
            },
        )

    logger.info(
        "Posted %s (%s #%s) debits=%s credits=%s",
        je.entry_number, je.reference_type, je.reference_id,
        total_debit, total_credit,
    )
    return je


def _locked_entry(entry_id) -> JournalEntry:
    try:
        # Lock the row to avoid race conditions
        return JournalEntry.objects.select_for_update().get(pk=entry_id)
    except JournalEntry.DoesNotExist:
        raise NotFoundError(f"Journal entry {entry_id} not found")


def void_journal_entry(entry_id, user=None) -> JournalEntry:
    """
    Reverse every line's balance effect and mark the entry void.
    A second void raises AlreadyVoidError and changes nothing.
    """
    with transaction.atomic():
        je = _locked_entry(entry_id)
        je.void(user=user)
        log_action(
            action="void",
            instance=je,
            user=user,
            changes={"entry_number": je.entry_number},
        )
    logger.info("Voided %s", je.entry_number)
    return je


def reverse_journal_entry(
    entry_id, user=None, entry_date=None, description=None
) -> JournalEntry:
    """
    Post a new entry that mirrors the original with every side flipped.
    The original stays posted; the pair nets to zero.
    """
    with transaction.atomic():
        je = _locked_entry(entry_id)
        if je.status != JournalStatus.POSTED:
            raise AlreadyVoidError(
                f"Only posted entries can be reversed ({je.entry_number} "
                f"is {je.status})"
            )
        already = JournalEntry.objects.filter(
            reference_type=ReferenceType.REVERSAL,
            reference_id=je.pk,
            status=JournalStatus.POSTED,
        ).exists()
        if already:
            raise AlreadyReversedError(
                f"Journal entry {je.entry_number} has already been reversed")

        lines = [
            LineSpec(
                line.account_id,
                flip(line.line_type),
                line.amount,
                f"Reversal: {line.description}".strip(),
            )
            for line in je.lines.order_by("id")
        ]
        reversal = post_journal_entry(
            entry_date=entry_date or timezone.localdate(),
            description=description or f"Reversal of {je.entry_number}",
            lines=lines,
            reference_type=ReferenceType.REVERSAL,
            reference_id=je.pk,
            created_by=user,
            notes=f"Reverses {je.entry_number}",
        )
    return reversal
