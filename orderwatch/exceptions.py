"""
Exception taxonomy for the OrderWatch engine.

RepositoryError is converted into an unavailable snapshot at the
aggregator / monitor boundary; SubscriptionError degrades the dashboard to
"no live updates". Unmatched status text is not an exception: the
classifier counts it as a classification gap.
"""

from typing import Optional

from orderwatch.models.enums import RepositoryErrorKind


class OrderWatchError(Exception):
    """Base exception for all OrderWatch failures."""

    pass


class RepositoryError(OrderWatchError):
    """
    Raised when the order repository cannot serve a read or write.

    Attributes:
        kind: Failure class (backend I/O failure or missed deadline)
        operation: Repository operation that failed
    """

    def __init__(
        self,
        message: str,
        kind: RepositoryErrorKind = RepositoryErrorKind.BACKEND,
        operation: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.operation = operation


class SubscriptionError(OrderWatchError):
    """Raised when a change-event channel cannot be established."""

    def __init__(self, message: str, table: Optional[str] = None):
        super().__init__(message)
        self.table = table
