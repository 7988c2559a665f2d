"""
Activity Monitor — Operational Feed of Recent Orders.

Annotates the most recent orders with:
1. Elapsed minutes since creation (floored, never negative)
2. Exception flags: delayed, cancelled, discounted / high discount
3. Operator actions derived from those flags

Also provides the feed's tab/flag filters and per-tab counts, and the one
write the dashboard performs: prioritizing a delayed order.
"""

from datetime import datetime
from typing import Iterable, Optional, Union

import structlog

from orderwatch.exceptions import RepositoryError
from orderwatch.models.activity import (
    ActionDescriptor,
    ActivityCounts,
    ActivityFeed,
    ActivityItem,
)
from orderwatch.models.enums import (
    ActionSeverity,
    ActivityFlag,
    ActivityTab,
    CanonicalStatus,
)
from orderwatch.models.orders import OrderRecord

from .context import EngineContext
from .safe_compute import safe_compute
from .status_classifier import normalize_status

logger = structlog.get_logger()

ACTIVE_BUCKETS = frozenset({CanonicalStatus.PENDING, CanonicalStatus.PREPARING})

PRIORITY_PREFIX = "priority-"

# Canonical bucket → raw status written when an order is prioritized
PRIORITY_STATUS = {
    CanonicalStatus.PENDING: "priority-pending",
    CanonicalStatus.PREPARING: "priority-preparing",
}


def elapsed_minutes(created_at: datetime, now: datetime) -> int:
    """Whole minutes between created_at and now; 0 for future timestamps."""
    seconds = (now - created_at).total_seconds()
    return max(0, int(seconds // 60))


def is_prioritized(raw_status: str) -> bool:
    return normalize_status(raw_status).startswith(PRIORITY_PREFIX)


def build_actions(
    order_id: str,
    is_delayed: bool,
    prioritized: bool,
    has_cancellation: bool,
    is_high_discount: bool,
) -> list[ActionDescriptor]:
    """Operator actions for one order, "View Details" always first."""
    actions = [
        ActionDescriptor(
            label="View Details",
            action_code=f"view:{order_id}",
            severity=ActionSeverity.DEFAULT,
        )
    ]
    if is_delayed and not prioritized:
        actions.append(
            ActionDescriptor(
                label="Prioritize",
                action_code=f"prioritize:{order_id}",
                severity=ActionSeverity.WARNING,
            )
        )
    if has_cancellation:
        actions.append(
            ActionDescriptor(
                label="Review Cancellation",
                action_code=f"review-cancel:{order_id}",
                severity=ActionSeverity.DANGER,
            )
        )
    if is_high_discount:
        actions.append(
            ActionDescriptor(
                label="Review Discount",
                action_code=f"review-discount:{order_id}",
                severity=ActionSeverity.WARNING,
            )
        )
    return actions


def filter_activity(
    items: Iterable[ActivityItem],
    tab: Union[ActivityTab, str] = ActivityTab.ALL,
    flag: Optional[Union[ActivityFlag, str]] = None,
) -> list[ActivityItem]:
    """
    Select feed items for a tab, optionally narrowed by a flag.

    Tabs:
        all: every item
        active: pending and preparing (ready excluded)
        completed: completed bucket only
        cancelled: cancelled bucket only
        exceptions: delayed, cancelled or high-discount items

    Flags:
        delayed, cancelled, discounts (any discount), kitchen (routed to a
        kitchen)

    Raises:
        ValueError: If tab or flag is not a known name
    """
    tab = ActivityTab(tab)
    flag = ActivityFlag(flag) if flag else None
    selected = [item for item in items if _in_tab(item, tab)]

    if flag == ActivityFlag.DELAYED:
        selected = [item for item in selected if item.is_delayed]
    elif flag == ActivityFlag.CANCELLED:
        selected = [item for item in selected if item.has_cancellation]
    elif flag == ActivityFlag.DISCOUNTS:
        selected = [item for item in selected if item.has_discount]
    elif flag == ActivityFlag.KITCHEN:
        selected = [item for item in selected if item.kitchen_id]

    return selected


def _in_tab(item: ActivityItem, tab: ActivityTab) -> bool:
    if tab == ActivityTab.ACTIVE:
        return item.canonical_status in ACTIVE_BUCKETS
    if tab == ActivityTab.COMPLETED:
        return item.canonical_status == CanonicalStatus.COMPLETED
    if tab == ActivityTab.CANCELLED:
        return item.canonical_status == CanonicalStatus.CANCELLED
    if tab == ActivityTab.EXCEPTIONS:
        return item.has_exception
    return True


def count_activity(items: Iterable[ActivityItem]) -> ActivityCounts:
    """Number of items per tab, using the same rules as filter_activity."""
    items = list(items)
    return ActivityCounts(
        **{tab.value: sum(1 for item in items if _in_tab(item, tab)) for tab in ActivityTab}
    )


class ActivityMonitor:
    """
    Builds the activity feed and handles order prioritization.

    Read paths never raise RepositoryError; a failed read produces an empty
    feed flagged ``available=False``.

    Example:
        >>> monitor = ActivityMonitor(context)
        >>> feed = monitor.build_activity(limit=20)
        >>> delayed = filter_activity(feed.items, "active", "delayed")
    """

    def __init__(self, context: EngineContext):
        self.context = context
        self.logger = structlog.get_logger()

    # =========================================================================
    # Feed
    # =========================================================================

    def annotate(self, order: OrderRecord, now: datetime) -> ActivityItem:
        """
        Annotate a single order.

        Args:
            order: Source record (not modified)
            now: Reference instant for elapsed time

        Returns:
            ActivityItem with flags and actions
        """
        settings = self.context.settings
        canonical = self.context.classifier.classify(order.raw_status)
        elapsed = elapsed_minutes(order.created_at, now)

        is_delayed = canonical in ACTIVE_BUCKETS and elapsed > settings.delay_threshold_minutes
        has_cancellation = canonical == CanonicalStatus.CANCELLED
        has_discount = order.discount_percentage > 0
        is_high_discount = (
            has_discount and order.discount_percentage >= settings.high_discount_threshold
        )
        prioritized = is_prioritized(order.raw_status)

        return ActivityItem(
            order_id=order.id,
            canonical_status=canonical,
            raw_status=order.raw_status,
            customer=order.customer_name,
            total=float(order.total),
            timestamp=order.created_at,
            time_elapsed_minutes=elapsed,
            is_delayed=is_delayed,
            has_cancellation=has_cancellation,
            has_discount=has_discount,
            is_high_discount=is_high_discount,
            discount_percentage=order.discount_percentage,
            items_count=order.items_count,
            kitchen_id=order.kitchen_id,
            order_source=order.order_source,
            is_prioritized=prioritized,
            actions=build_actions(
                order.id, is_delayed, prioritized, has_cancellation, is_high_discount
            ),
        )

    def build_activity(self, limit: Optional[int] = None) -> ActivityFeed:
        """
        Build the feed for the most recent orders.

        Args:
            limit: Orders to include (default: settings.activity_limit)

        Returns:
            ActivityFeed newest first; empty with available=False on failure
        """
        if limit is None:
            limit = self.context.settings.activity_limit
        now = self.context.clock.now()
        return safe_compute(
            lambda: self._build(limit, now),
            fallback=lambda error: ActivityFeed(
                items=[], available=False, error_kind=error.kind, generated_at=now
            ),
            operation="build_activity",
        )

    def _build(self, limit: int, now: datetime) -> ActivityFeed:
        repo = self.context.repository
        orders = self.context.fetcher.run("list_recent_orders", repo.list_recent_orders, limit)
        items = [self.annotate(order, now) for order in orders]

        self.logger.info(
            "activity_built",
            items=len(items),
            exceptions=sum(1 for item in items if item.has_exception),
        )
        return ActivityFeed(items=items, available=True, generated_at=now)

    # =========================================================================
    # Prioritization
    # =========================================================================

    def prioritize_order(self, order_id: str) -> bool:
        """
        Mark an order as priority.

        pending becomes "priority-pending", preparing becomes
        "priority-preparing". Orders already prioritized, or in a bucket
        that cannot be prioritized, are left untouched.

        Args:
            order_id: Order identifier

        Returns:
            True if written, already prioritized or not prioritizable;
            False if the order is missing, no writer is configured, or the
            read/write failed or timed out
        """
        writer = self.context.writer
        if writer is None:
            self.logger.warning("prioritize_no_writer", order_id=order_id)
            return False

        fetcher = self.context.fetcher
        try:
            order = fetcher.run("get_order", self.context.repository.get_order, order_id)
            if order is None:
                self.logger.warning("prioritize_order_not_found", order_id=order_id)
                return False

            if is_prioritized(order.raw_status):
                return True

            canonical = self.context.classifier.classify(order.raw_status)
            new_status = PRIORITY_STATUS.get(canonical)
            if new_status is None:
                self.logger.info(
                    "prioritize_skipped",
                    order_id=order_id,
                    canonical_status=canonical.value,
                )
                return True

            updated = fetcher.run(
                "update_order_status", writer.update_order_status, order_id, new_status
            )
        except RepositoryError as e:
            self.logger.error(
                "prioritize_failed",
                order_id=order_id,
                error_kind=e.kind.value,
                error=str(e),
            )
            return False

        if updated:
            self.logger.info("order_prioritized", order_id=order_id, new_status=new_status)
        else:
            self.logger.warning("prioritize_order_not_found", order_id=order_id)
        return bool(updated)
