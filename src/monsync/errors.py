"""Monsync error types.

All custom exceptions inherit from MonsyncError to allow
catching any monsync-specific error.
"""

from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from monsync.models.diagnostics import Diagnostic


class MonsyncError(Exception):
    """Base exception for all monsync errors."""

    pass


class StorageError(MonsyncError):
    """Database or storage operation failed."""

    pass


class StateMigrationError(MonsyncError):
    """Persisted state could not be upgraded to the current layout."""

    def __init__(self, message: str, version: int | None = None) -> None:
        super().__init__(message)
        self.version = version


class ValidationError(MonsyncError):
    """Desired configuration cannot be turned into a remote request.

    Carries every error diagnostic found, not only the first one.
    """

    def __init__(self, diagnostics: Iterable["Diagnostic"]) -> None:
        self.diagnostics = list(diagnostics)
        summaries = [d.summary for d in self.diagnostics] or ["invalid configuration"]
        super().__init__("; ".join(summaries))


class RemoteAPIError(MonsyncError):
    """Remote monitor API call failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """Rate limits and server-side failures are worth another attempt."""
        if self.status_code is None:
            return False
        return self.status_code == 429 or self.status_code >= 500


class NotFoundError(RemoteAPIError):
    """Remote monitor does not exist (404/410)."""

    def __init__(self, message: str, status_code: int = 404) -> None:
        super().__init__(message, status_code)


class RemoteMutationError(MonsyncError):
    """Create, update or delete was rejected; remote effect is uncertain."""

    def __init__(self, operation: str, detail: str) -> None:
        super().__init__(f"{operation} failed: {detail}")
        self.operation = operation
        self.detail = detail


class SettleTimeoutError(MonsyncError):
    """Remote state did not converge before the deadline.

    Carries the last observed snapshot so callers can still make progress.
    """

    def __init__(
        self,
        message: str,
        last_snapshot: Any = None,
        differences: Sequence[str] = (),
    ) -> None:
        super().__init__(message)
        self.last_snapshot = last_snapshot
        self.differences = list(differences)


class PartialApplicationError(MonsyncError):
    """Remote accepted a mutation but did not apply part of it."""

    def __init__(
        self,
        subject: str,
        requested: Iterable[str],
        applied: Iterable[str],
    ) -> None:
        self.subject = subject
        self.requested = sorted(set(requested))
        self.applied = sorted(set(applied))
        self.missing = sorted(set(self.requested) - set(self.applied))
        super().__init__(
            f"Some {subject} were not applied.\n"
            f"Requested IDs: {self.requested}\n"
            f"Applied IDs:   {self.applied}\n"
            f"Missing IDs:   {self.missing}"
        )
