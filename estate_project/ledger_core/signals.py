from django.core.exceptions import ValidationError
from django.db.models.signals import pre_delete
from django.dispatch import receiver

from .models import Bill, JournalEntry

"""The ledger is append-only: entries are voided or reversed, never deleted."""


# pre_delete signal auto-fires just before Django deletes a model instance
# (also for queryset.delete(), which bypasses Model.delete())
@receiver(pre_delete, sender=JournalEntry)
def prevent_delete_journal_entry(sender, instance, **kwargs):
    raise ValidationError(
        f"Cannot delete journal entry {instance.entry_number}. "
        "Void or reverse it instead."
    )


"""Block deletion of bills whose AR was already posted."""


@receiver(pre_delete, sender=Bill)
def prevent_delete_posted_bill(sender, instance, **kwargs):
    # Bills with payments are held back by PROTECT on PaymentApplication
    if instance.journal_entry_id:
        raise ValidationError("Cannot delete a posted bill. Void it instead.")
