from django.db import models

# -----------------------------------------
# Reusable query helpers for ledger models
# -----------------------------------------


# Define subclass of Django's QuerySet
class AccountQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)  # only accounts open for posting

    def of_type(self, account_type):
        return self.filter(account_type=account_type)

    def cash_and_bank(self):
        # accounts tagged as cash/bank, lowest number first
        return self.active().filter(is_cash_account=True).order_by("number")

    # Enables query:
    # Account.objects.cash_and_bank().first()


class JournalLineQuerySet(models.QuerySet):
    def posted(self):
        # Lines of void entries were reversed by the void itself,
        # so reports only ever look at posted entries
        return self.filter(journal__status="posted")

    def up_to(self, as_of):
        return self.filter(journal__entry_date__lte=as_of)

    def between(self, start, end):
        return self.filter(
            journal__entry_date__gte=start,
            journal__entry_date__lte=end,
        )


class BillQuerySet(models.QuerySet):
    def open(self):
        # Bills that still expect money
        return self.filter(
            status__in=["pending", "partial"],
            balance__gt=0,
        )

    def overdue(self, as_of):
        # Same rule as Bill.is_overdue()
        return self.open().filter(due_date__lt=as_of)


class BudgetQuerySet(models.QuerySet):
    def active(self):
        return self.filter(status="active")

    def covering(self, on_date):
        # Active budget whose date range contains on_date
        return self.active().filter(
            start_date__lte=on_date,
            end_date__gte=on_date,
        )


# Attach querysets to .objects
AccountManager = models.Manager.from_queryset(AccountQuerySet)
JournalLineManager = models.Manager.from_queryset(JournalLineQuerySet)
BillManager = models.Manager.from_queryset(BillQuerySet)
BudgetManager = models.Manager.from_queryset(BudgetQuerySet)
