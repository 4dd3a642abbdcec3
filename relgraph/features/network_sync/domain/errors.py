"""
Error taxonomy for calendar sync.

Callers only need to tell "reconnect your calendar" apart from a generic,
retryable failure; the subclasses carry enough context for logs.
"""


class CalendarSyncError(Exception):
    """Base error for a sync pass."""

    status_code = 500

    def __init__(
        self,
        message: str,
        user_id: str | None = None,
        recoverable: bool = True,
        account_id: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.recoverable = recoverable
        self.account_id = account_id


class CredentialExpiredError(CalendarSyncError):
    """No usable credential: missing, undecryptable, or rejected by the provider."""

    status_code = 401

    def __init__(self, message: str = "Calendar access expired", **kwargs):
        kwargs.setdefault("recoverable", False)
        super().__init__(message, **kwargs)


class CalendarFetchError(CalendarSyncError):
    """Provider paging failed; nothing from the pass was written."""

    pass


class GraphPersistenceError(CalendarSyncError):
    """A store write failed mid-reconciliation; earlier contacts stay applied."""

    def __init__(self, message: str, operation: str = "unknown", **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation


class SyncTargetNotFoundError(CalendarSyncError):
    """User or calendar account does not exist (or is not owned by the user)."""

    status_code = 404

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", False)
        super().__init__(message, **kwargs)
