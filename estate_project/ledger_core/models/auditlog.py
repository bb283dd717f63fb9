from django.conf import settings  # To access global project settings
from django.db import models


# ---------- Audit / Event log ----------
class AuditLog(
    models.Model
):  # Gives accountability and traceability across the ledger
    # Which user performed the action
    # (Nullable in case the action was automated
    # (e.g., the daily billing run, a management command))
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )
    # Type of event being logged
    action = models.CharField(
        max_length=50
    )  # Common choices: post, void, reverse, apply_payment, reconcile
    # What kind of object was affected
    object_type = models.CharField(
        max_length=100
    )  # (e.g., "Bill", "JournalEntry", "BankStatement")
    # The primary key (or identifier) of the object
    object_id = models.CharField(max_length=100)
    # Store details of what changed, in JSON format
    changes = models.JSONField(null=True, blank=True)
    # Timestamp when the event was logged
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        # Filter logs quickly
        indexes = [
            models.Index(fields=["object_type", "object_id"],
                         name="audit_object_idx"),
            models.Index(fields=["created_at"], name="audit_created_idx"),
        ]

    # Show created_at, user, action, object_type, and
    # object_id in admin dropdowns and debug logs
    def __str__(self):
        time = self.created_at
        usr = self.user or "system"
        return (
            f"[{time:%Y-%m-%d %H:%M}] {usr} {self.action} "
            f"{self.object_type}({self.object_id})"
        )
