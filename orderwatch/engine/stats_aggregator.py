"""
Stats Aggregator — Dashboard Snapshot for the Current Business Day.

One pass reads today's orders, yesterday's orders and the order items
of the popular-items window, then derives four independent groups of figures:

1. Sales (all_orders_today): totals over every order placed today,
   regardless of status
2. Orders: count per canonical bucket; active = pending + preparing
3. Customers: distinct case-normalized customer names
4. Popular items (completed_orders): quantities on items whose parent
   classifies into the completed-order buckets (``ready`` by default)

"Sale" therefore has two meanings here and they are kept apart:
sales and customers count every order placed today; popular items count
only completed orders.

Any repository failure yields a zero-valued snapshot flagged
``available=False``; compute_stats() never raises RepositoryError.
"""

from collections import Counter
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

import structlog

from orderwatch.models.enums import CanonicalStatus
from orderwatch.models.orders import OrderItemRecord, OrderRecord
from orderwatch.models.stats import (
    CustomersStats,
    OrdersStats,
    PopularItem,
    SalesStats,
    StatsSnapshot,
)

from .context import EngineContext
from .safe_compute import safe_compute
from .status_classifier import StatusClassifier

logger = structlog.get_logger()

TWO_PLACES = Decimal("0.01")


def _to_float(value: Decimal) -> float:
    return float(value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


def change_percentage(current: Decimal, baseline: Decimal) -> Decimal:
    """
    Relative change of current against baseline, in percent.

    A baseline of zero (or below) has no meaningful ratio and yields 0.
    """
    current = Decimal(current)
    baseline = Decimal(baseline)
    if baseline <= 0:
        return Decimal("0")
    return (current - baseline) / baseline * 100


def calculate_sales_stats(
    today_orders: Iterable[OrderRecord],
    yesterday_orders: Iterable[OrderRecord],
    now: datetime,
) -> SalesStats:
    """Sales figures for all orders placed today."""
    today_orders = list(today_orders)
    daily_total = sum((order.total for order in today_orders), Decimal("0"))
    yesterday_total = sum((order.total for order in yesterday_orders), Decimal("0"))
    count = len(today_orders)
    average = daily_total / count if count else Decimal("0")

    return SalesStats(
        daily_total=_to_float(daily_total),
        transaction_count=count,
        average_ticket=_to_float(average),
        change_percentage=_to_float(change_percentage(daily_total, yesterday_total)),
        last_updated=now,
    )


def calculate_order_counts(
    today_orders: Iterable[OrderRecord],
    classifier: StatusClassifier,
    now: datetime,
) -> OrdersStats:
    """
    Count today's orders per canonical bucket.

    Ready orders are reported separately and are not part of active_orders.
    """
    buckets = Counter(classifier.classify(order.raw_status) for order in today_orders)
    pending = buckets[CanonicalStatus.PENDING]
    preparing = buckets[CanonicalStatus.PREPARING]

    return OrdersStats(
        active_orders=pending + preparing,
        pending_orders=pending,
        in_preparation_orders=preparing,
        ready_orders=buckets[CanonicalStatus.READY],
        completed_orders=buckets[CanonicalStatus.COMPLETED],
        cancelled_orders=buckets[CanonicalStatus.CANCELLED],
        unknown_orders=buckets[CanonicalStatus.UNKNOWN],
        last_updated=now,
    )


def distinct_customers(orders: Iterable[OrderRecord]) -> int:
    """Number of distinct non-blank customer names, case-insensitive."""
    names = {" ".join(order.customer_name.lower().split()) for order in orders}
    names.discard("")
    return len(names)


def calculate_customer_stats(
    today_orders: Iterable[OrderRecord],
    yesterday_orders: Iterable[OrderRecord],
    now: datetime,
) -> CustomersStats:
    today_count = distinct_customers(today_orders)
    yesterday_count = distinct_customers(yesterday_orders)
    return CustomersStats(
        today_count=today_count,
        change_percentage=_to_float(
            change_percentage(Decimal(today_count), Decimal(yesterday_count))
        ),
        last_updated=now,
    )


def calculate_popular_items(
    items: Iterable[OrderItemRecord],
    classifier: StatusClassifier,
    completed_buckets: Iterable[CanonicalStatus],
    limit: int = 5,
) -> list[PopularItem]:
    """
    Rank menu items by quantity sold on completed orders.

    Items are grouped by menu_item_id, or by name for free-form items.
    Sorted by quantity descending, then name ascending.

    Args:
        items: Order items joined with their parent status
        classifier: Used to re-check each parent's bucket
        completed_buckets: Buckets that count as completed
        limit: Maximum items returned

    Returns:
        At most ``limit`` PopularItem entries
    """
    completed = {CanonicalStatus(bucket) for bucket in completed_buckets}
    quantities: Counter = Counter()
    names: dict[str, str] = {}

    for item in items:
        # Bucket membership is decided by the classifier, not by raw text
        if classifier.classify(item.parent_status) not in completed:
            continue
        key = item.menu_item_id or item.name
        quantities[key] += item.quantity
        # Alphabetically smallest name labels the group
        if key not in names or item.name < names[key]:
            names[key] = item.name

    ranked = sorted(quantities.items(), key=lambda kv: (-kv[1], names[kv[0]], kv[0]))
    return [
        PopularItem(id=key, name=names[key], quantity=quantity)
        for key, quantity in ranked[:limit]
    ]


class StatsAggregator:
    """
    Computes StatsSnapshot instances from an EngineContext.

    Stateless between calls: every compute_stats() returns a fresh snapshot
    and writes no shared state, so one aggregator can serve concurrent
    callers.

    Example:
        >>> aggregator = StatsAggregator(EngineContext(repository))
        >>> snapshot = aggregator.compute_stats()
        >>> snapshot.orders_stats.active_orders
    """

    def __init__(self, context: EngineContext):
        self.context = context
        self.logger = structlog.get_logger()

    def compute_stats(self) -> StatsSnapshot:
        """
        Run one aggregation pass.

        Returns:
            StatsSnapshot; zero-valued with available=False and the error
            kind when the repository failed or timed out
        """
        now = self.context.clock.now()
        return safe_compute(
            lambda: self._compute(now),
            fallback=lambda error: StatsSnapshot.unavailable(error.kind, at=now),
            operation="compute_stats",
        )

    def _compute(self, now: datetime) -> StatsSnapshot:
        ctx = self.context
        settings = ctx.settings
        repo = ctx.repository

        today = ctx.dates.today_range()
        yesterday = ctx.dates.yesterday_range(today.start)
        completed_buckets = settings.completed_buckets

        # Independent reads run concurrently, each under its own deadline
        today_fetch = ctx.fetcher.submit("list_orders_today", repo.list_orders, today)
        yesterday_fetch = ctx.fetcher.submit(
            "list_orders_yesterday", repo.list_orders, yesterday
        )
        # No raw-status filter: parents reaching a completed bucket only through
        # fragment matching ("listo!") must still count
        items_fetch = ctx.fetcher.submit(
            "list_order_items",
            repo.list_order_items_by_parent_status,
            None,
            self._popular_items_window(),
        )

        today_orders = today_fetch.result()
        yesterday_orders = yesterday_fetch.result()
        order_items = items_fetch.result()

        snapshot = StatsSnapshot(
            sales_stats=calculate_sales_stats(today_orders, yesterday_orders, now),
            orders_stats=calculate_order_counts(today_orders, ctx.classifier, now),
            customers_stats=calculate_customer_stats(today_orders, yesterday_orders, now),
            popular_items=calculate_popular_items(
                order_items,
                ctx.classifier,
                completed_buckets,
                limit=settings.popular_items_limit,
            ),
            available=True,
            generated_at=now,
        )

        self.logger.info(
            "stats_computed",
            transaction_count=snapshot.sales_stats.transaction_count,
            active_orders=snapshot.orders_stats.active_orders,
            unknown_orders=snapshot.orders_stats.unknown_orders,
            popular_items=len(snapshot.popular_items),
        )
        return snapshot

    def _popular_items_window(self):
        days: Optional[int] = self.context.settings.popular_items_window_days
        if days is None:
            return None
        return self.context.dates.trailing_window(days)
