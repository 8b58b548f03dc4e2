"""Exceptions raised by the supplier sync services.

Each carries the HTTP status the API layer should answer with.
"""


class SyncError(Exception):
    """Base class for expected sync failures."""

    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class SyncNotFoundError(SyncError):
    """The order, sync request or buyer does not exist (or is deleted)."""

    status_code = 404


class SyncStateError(SyncError):
    """The operation conflicts with the current sync state.

    Covers already-processed requests, resend of synced/pending orders and
    edits outside the edit window. Callers must not retry blindly.
    """

    status_code = 400


class EditWindowExpiredError(SyncStateError):
    """An order edit was attempted after the edit window closed."""

    def __init__(self, window_hours: int):
        self.window_hours = window_hours
        super().__init__(f"Edit window expired (>{window_hours}hrs)")


class SyncPermissionError(SyncError):
    """The caller's organization does not own the referenced record."""

    status_code = 403
