from django.db import models


class NumberSequence(models.Model):
    """
    One counter row per (series, period).
    e.g. ("journal_entry", "20240101") or ("invoice", "2024")
    Rows are locked with SELECT ... FOR UPDATE and incremented in place,
    never derived from MAX(number) + 1.
    """

    series_key = models.CharField(max_length=50)
    # Date scope of the counter: a day for entries, a fiscal year for bills
    period_key = models.CharField(max_length=20)
    # Last number handed out, 0 means nothing issued yet
    last_number = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["series_key", "period_key"],
                name="uq_sequence_series_period",
            )
        ]

    def __str__(self):
        return f"{self.series_key}/{self.period_key}: {self.last_number}"
