from decimal import Decimal

from ..models import AuditLog


def _jsonable(value):
    # Decimals and dates are stored as strings in the JSON payload
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Decimal) or hasattr(value, "isoformat"):
        return str(value)
    return value


def log_action(
    *,
    action: str,
    instance,
    user=None,
    changes: dict | None = None,
):
    """
    Central audit logger.
    Safe to call multiple times (caller ensures idempotency).
    """
    return AuditLog.objects.create(
        user=user,
        action=action,
        object_type=instance.__class__.__name__,
        object_id=str(instance.pk),
        changes=_jsonable(changes) if changes is not None else None,
    )
