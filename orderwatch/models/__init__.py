"""
Pydantic v2 data models for the OrderWatch dashboard engine.

Model Organization:
    - enums: Enumeration types for consistent classification
    - orders: Order / order item read models and half-open date windows
    - stats: Sales, orders, customers and popular-item snapshot models
    - activity: Activity feed items, actions and per-tab counts
    - events: Typed change events from the change-event source

Usage:
    >>> from orderwatch.models import OrderRecord, CanonicalStatus
    >>> order = OrderRecord(
    ...     id="ord-1",
    ...     total=Decimal("24.50"),
    ...     raw_status="Preparando",
    ...     created_at=datetime.now(timezone.utc),
    ...     customer_name="Ana",
    ... )
"""

# Enumerations
from .enums import (
    ActionSeverity,
    ActivityFlag,
    ActivityTab,
    CanonicalStatus,
    ChangeKind,
    ChangeTable,
    RepositoryErrorKind,
)

# Order read models
from .orders import DateRange, OrderItemRecord, OrderRecord

# Snapshot models
from .stats import CustomersStats, OrdersStats, PopularItem, SalesStats, StatsSnapshot

# Activity models
from .activity import ActionDescriptor, ActivityCounts, ActivityFeed, ActivityItem

# Change events
from .events import ChangeEvent, OrderChangeEvent, OrderItemChangeEvent, parse_change_event

__all__ = [
    # Enumerations
    "ActionSeverity",
    "ActivityFlag",
    "ActivityTab",
    "CanonicalStatus",
    "ChangeKind",
    "ChangeTable",
    "RepositoryErrorKind",
    # Order read models
    "DateRange",
    "OrderItemRecord",
    "OrderRecord",
    # Snapshot models
    "CustomersStats",
    "OrdersStats",
    "PopularItem",
    "SalesStats",
    "StatsSnapshot",
    # Activity models
    "ActionDescriptor",
    "ActivityCounts",
    "ActivityFeed",
    "ActivityItem",
    # Change events
    "ChangeEvent",
    "OrderChangeEvent",
    "OrderItemChangeEvent",
    "parse_change_event",
]
