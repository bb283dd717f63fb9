from django.core.exceptions import ValidationError


class LedgerError(Exception):
    """Base class for every error raised by the ledger core."""
    pass


class ConfigurationError(LedgerError):
    """Raised when a required system account or mapping is missing.

    Fatal: the triggering operation aborts and an operator has to fix
    the chart of accounts before retrying.
    """
    pass


class NotFoundError(LedgerError):
    """Raised when a referenced ledger object does not exist."""
    pass


class InvariantViolation(LedgerError):
    """Raised when a request would break a ledger invariant.

    Nothing is persisted when one of these is raised.
    """
    pass


class UnbalancedEntryError(InvariantViolation):
    """Raised when a JournalEntry fails double-entry balance check."""
    pass


class AlreadyVoidError(InvariantViolation):
    """Raised when voiding (or reversing) an entry that is already void."""
    pass


class AlreadyReversedError(InvariantViolation):
    """Raised when a reversing entry already exists for a JournalEntry."""
    pass


class OverpaymentError(InvariantViolation):
    """Raised when a payment is larger than the amount still owed."""
    pass


class SystemAccountError(InvariantViolation):
    """Raised when deleting an account flagged as a system account."""
    pass


# Boundary mapping used by request handlers
# keeps fatal (5xx) and caller (4xx) errors apart
def http_status_for(exc):
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, (AlreadyVoidError, AlreadyReversedError)):
        return 409  # conflicts with current entry state
    if isinstance(exc, (InvariantViolation, ValidationError)):
        return 400
    # ConfigurationError and anything unexpected is fatal
    return 500
