from decimal import Decimal

from django.conf import settings
from django.db import models


class ResidentStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"
    SUSPENDED = "suspended", "Suspended"


class Resident(models.Model):
    """
    Billing view of a resident: only the fields the ledger reads or advances.
    Profile, visitor and gate data live outside the ledger.
    """

    # Login account, managed by the auth layer
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="resident",
    )
    unit_number = models.CharField(max_length=50, unique=True)
    full_name = models.CharField(max_length=200, blank=True, default="")

    account_status = models.CharField(
        max_length=10,
        choices=ResidentStatus.choices,
        default=ResidentStatus.ACTIVE,
    )
    # Annual service charge, null/0 means "not billed"
    service_charge = models.DecimalField(
        max_digits=15, decimal_places=2, null=True, blank=True
    )
    # First day of the first billing period
    start_date = models.DateField(null=True, blank=True)
    # End of the last billed period, advanced by the billing engine
    current_period_end = models.DateField(null=True, blank=True)
    # Running outstanding amount across all bills
    total_balance = models.DecimalField(
        max_digits=15, decimal_places=2, default=Decimal("0.00")
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["unit_number"]

    def __str__(self):
        return f"Unit {self.unit_number}"

    @property
    def is_billable(self):
        # active, with a positive charge and a start date
        return (
            self.account_status == ResidentStatus.ACTIVE
            and self.service_charge is not None
            and self.service_charge > 0
            and self.start_date is not None
        )
