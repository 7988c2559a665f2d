"""
Enumeration types for the OrderWatch dashboard engine.

All enums inherit from str to ensure JSON serialization compatibility.
"""

from enum import Enum


class CanonicalStatus(str, Enum):
    """
    Canonical order status buckets.

    Derived from the free-text status written by the order-taking subsystem
    (English and Spanish labels, priority prefixes, punctuation noise).
    Never stored; always a pure function of the raw status.
    """

    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class ActionSeverity(str, Enum):
    """Visual weight of a recommended activity action."""

    DEFAULT = "default"
    WARNING = "warning"
    DANGER = "danger"


class ChangeKind(str, Enum):
    """Kind of row change delivered by the change-event source."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeTable(str, Enum):
    """Tables the dashboard listens to."""

    ORDERS = "orders"
    ORDER_ITEMS = "order_items"


class RepositoryErrorKind(str, Enum):
    """Failure classes surfaced by the order repository."""

    BACKEND = "backend"
    TIMEOUT = "timeout"


class ActivityTab(str, Enum):
    """Activity feed tabs."""

    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXCEPTIONS = "exceptions"


class ActivityFlag(str, Enum):
    """Secondary activity feed filters, applied after the tab."""

    DELAYED = "delayed"
    CANCELLED = "cancelled"
    DISCOUNTS = "discounts"
    KITCHEN = "kitchen"
