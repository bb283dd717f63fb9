from django.db import models, transaction

from ..models import NumberSequence

ENTRY_SERIES = "journal_entry"
INVOICE_SERIES = "invoice"


def next_in_series(series_key: str, period_key: str) -> int:
    """
    Atomic increment-or-insert on the (series, period) counter row.
    The row is locked for the rest of the caller's transaction, so two
    callers can never be handed the same number.
    """
    with transaction.atomic():
        # get_or_create retries the get when a concurrent insert wins
        seq, _ = NumberSequence.objects.select_for_update().get_or_create(
            series_key=series_key, period_key=period_key
        )
        NumberSequence.objects.filter(pk=seq.pk).update(
            last_number=models.F("last_number") + 1
        )
        seq.refresh_from_db(fields=["last_number"])
        return seq.last_number


def generate_entry_number(entry_date) -> str:
    # One sequence per calendar day: JE-20240101-0001
    day = entry_date.strftime("%Y%m%d")
    n = next_in_series(ENTRY_SERIES, day)
    return f"JE-{day}-{n:04d}"


def generate_invoice_number(on_date) -> str:
    # One sequence per fiscal (calendar) year: INV-2024-0001
    year = str(on_date.year)
    n = next_in_series(INVOICE_SERIES, year)
    return f"INV-{year}-{n:04d}"
