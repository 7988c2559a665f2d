"""
Dashboard engine.

This package derives the restaurant dashboard from raw order rows:

- Status classification: free-text status → canonical bucket
- Date windows: business-day and trailing windows from an injectable clock
- Stats aggregation: sales, order buckets, customers and popular items
- Activity monitoring: annotated recent orders, filters and prioritization
- Realtime: change subscriptions and coalesced recomputation

Components receive their dependencies through an EngineContext; nothing
in this package holds process-wide state.

Example:
    >>> from orderwatch.engine import EngineContext, StatsAggregator
    >>> context = EngineContext(repository, settings=settings)
    >>> snapshot = StatsAggregator(context).compute_stats()
"""

from .activity_monitor import ActivityMonitor, count_activity, filter_activity
from .context import EngineContext
from .date_ranges import DateRangeCalculator, FixedClock, SystemClock
from .realtime import CoalescingRecompute, DashboardRefresher, RealtimeCoordinator
from .safe_compute import Err, FetchRunner, Ok, attempt, safe_compute
from .stats_aggregator import StatsAggregator
from .status_classifier import StatusClassifier, normalize_status

__all__ = [
    "ActivityMonitor",
    "CoalescingRecompute",
    "DashboardRefresher",
    "DateRangeCalculator",
    "EngineContext",
    "Err",
    "FetchRunner",
    "FixedClock",
    "Ok",
    "RealtimeCoordinator",
    "StatsAggregator",
    "StatusClassifier",
    "SystemClock",
    "attempt",
    "count_activity",
    "filter_activity",
    "normalize_status",
    "safe_compute",
]
