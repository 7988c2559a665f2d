"""
Realtime Coordinator — Live Dashboard Updates.

Subscribes to order and order-item change channels and turns change events
into dashboard recomputations:

    change source ──► RealtimeCoordinator ──► CoalescingRecompute ──► refresh()

- RealtimeCoordinator owns the channel pair of each subscription and
  guarantees both are released, including when opening the second fails.
- CoalescingRecompute keeps at most one recomputation running and at most
  one pending; a burst of events collapses into one trailing run.
- DashboardRefresher wires both to a StatsAggregator / ActivityMonitor and
  holds the latest results.
"""

import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Protocol, Union

import structlog

from orderwatch.exceptions import SubscriptionError
from orderwatch.models.activity import ActivityFeed
from orderwatch.models.enums import ChangeTable
from orderwatch.models.events import OrderChangeEvent, OrderItemChangeEvent
from orderwatch.models.stats import StatsSnapshot

from .activity_monitor import ActivityMonitor
from .context import EngineContext
from .stats_aggregator import StatsAggregator

logger = structlog.get_logger()

ChangeEventT = Union[OrderChangeEvent, OrderItemChangeEvent]
OnChange = Callable[[], None]
OnEvent = Callable[[ChangeEventT], None]
Unsubscribe = Callable[[], None]

SUBSCRIBED_TABLES = (ChangeTable.ORDERS, ChangeTable.ORDER_ITEMS)


class ChannelLike(Protocol):
    def close(self) -> None: ...


class ChangeSource(Protocol):
    """Anything that can open a per-table change channel."""

    def subscribe(self, table: ChangeTable, handler: OnEvent) -> ChannelLike: ...


def _noop() -> None:
    return None


class _Subscription:
    """One callback bound to its channel pair."""

    def __init__(self, coordinator: "RealtimeCoordinator", on_event: OnEvent):
        self._coordinator = coordinator
        self._on_event = on_event
        self._channels: list[ChannelLike] = []
        self._lock = threading.Lock()
        self.active = False

    def handle(self, event: ChangeEventT) -> None:
        if not self.active:
            return
        self._coordinator._log_event(event)
        self._on_event(event)

    def close(self) -> None:
        with self._lock:
            if not self._channels and not self.active:
                return
            self.active = False
            channels, self._channels = self._channels, []

        for channel in channels:
            try:
                channel.close()
            except Exception as e:
                logger.warning("realtime_channel_close_failed", error=str(e))
        self._coordinator._forget(self)


class RealtimeCoordinator:
    """
    Manages change-channel subscriptions for the dashboard.

    Each subscribe() opens one channel per table (orders, order_items).
    Failure to open either channel is logged as a SubscriptionError and
    degrades to "no live updates": the caller gets a no-op unsubscribe.

    Example:
        >>> coordinator = RealtimeCoordinator(change_feed)
        >>> unsubscribe = coordinator.subscribe(recompute.request)
        >>> unsubscribe()
        >>> with coordinator.subscription(on_change):
        ...     serve()
    """

    def __init__(self, source: ChangeSource):
        self.source = source
        self._subscriptions: list[_Subscription] = []
        self._lock = threading.Lock()
        self.logger = structlog.get_logger()

    @property
    def active(self) -> bool:
        """Whether at least one subscription is receiving events."""
        with self._lock:
            return any(sub.active for sub in self._subscriptions)

    def subscribe(self, on_change: OnChange) -> Unsubscribe:
        """
        Open the orders and order_items channels for on_change.

        Args:
            on_change: Called with no arguments on every change event

        Returns:
            Idempotent unsubscribe callable; after it returns, events no
            longer reach on_change
        """
        return self.subscribe_events(lambda event: on_change())

    def subscribe_events(self, on_event: OnEvent) -> Unsubscribe:
        """
        Like subscribe(), but on_event receives the typed change event.

        Args:
            on_event: Called with every OrderChangeEvent / OrderItemChangeEvent

        Returns:
            Idempotent unsubscribe callable
        """
        subscription = _Subscription(self, on_event)
        subscription.active = True

        for table in SUBSCRIBED_TABLES:
            try:
                channel = self.source.subscribe(table, subscription.handle)
            except Exception as e:
                subscription.close()
                error = SubscriptionError(
                    f"Failed to open {table.value} change channel: {e}",
                    table=table.value,
                )
                self.logger.error(
                    "realtime_subscription_failed",
                    table=error.table,
                    error=str(error),
                )
                return _noop
            subscription._channels.append(channel)

        with self._lock:
            self._subscriptions.append(subscription)

        self.logger.info(
            "realtime_subscribed",
            tables=[table.value for table in SUBSCRIBED_TABLES],
        )
        return subscription.close

    @contextmanager
    def subscription(self, on_change: OnChange) -> Iterator[Unsubscribe]:
        """Subscribe for the duration of a with-block."""
        unsubscribe = self.subscribe(on_change)
        try:
            yield unsubscribe
        finally:
            unsubscribe()

    def close(self) -> None:
        """Release every open subscription."""
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.close()

    def _forget(self, subscription: _Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
                self.logger.info("realtime_unsubscribed")

    def _log_event(self, event: ChangeEventT) -> None:
        if isinstance(event, OrderChangeEvent) and event.status_transition:
            old_status, new_status = event.status_transition
            self.logger.info(
                "order_status_changed",
                order_id=event.record_id,
                old_status=old_status,
                new_status=new_status,
            )
        else:
            self.logger.debug(
                "change_event_received",
                table=event.table.value,
                kind=event.kind.value,
                record_id=event.record_id,
            )


def _thread_runner(job: Callable[[], None]) -> None:
    threading.Thread(target=job, name="orderwatch-recompute", daemon=True).start()


class CoalescingRecompute:
    """
    At most one run in flight plus at most one pending.

    request() while idle starts a run; request() while running marks a
    single trailing run, no matter how many requests arrive. Exceptions from
    the wrapped function are logged and never reach the requester.

    Attributes:
        run_count: Number of times fn has been invoked
    """

    def __init__(
        self,
        fn: Callable[[], object],
        runner: Optional[Callable[[Callable[[], None]], None]] = None,
    ):
        """
        Args:
            fn: Recomputation to run
            runner: Starts the drain loop; defaults to a daemon thread.
                Pass ``lambda job: job()`` to run inline.
        """
        self._fn = fn
        self._runner = runner or _thread_runner
        self._lock = threading.Lock()
        self._running = False
        self._pending = False
        self._idle = threading.Event()
        self._idle.set()
        self.run_count = 0

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending

    def request(self) -> bool:
        """
        Ask for a recomputation.

        Returns:
            True if a new run was started, False if coalesced into the
            pending run
        """
        with self._lock:
            if self._running:
                self._pending = True
                return False
            self._running = True
            self._idle.clear()

        self._runner(self._drain)
        return True

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no run is in flight; False on timeout."""
        return self._idle.wait(timeout)

    def _drain(self) -> None:
        while True:
            self.run_count += 1
            try:
                self._fn()
            except Exception as e:
                logger.error("recompute_failed", error=str(e), exc_info=True)

            with self._lock:
                if self._pending:
                    self._pending = False
                    continue
                self._running = False
                self._idle.set()
                return


class DashboardRefresher:
    """
    Keeps the latest StatsSnapshot and ActivityFeed current.

    start() computes once, then recomputes (coalesced) on every change
    event. If the change channels cannot be opened the dashboard still
    serves on-demand refreshes; ``live`` reports False.
    """

    def __init__(
        self,
        context: EngineContext,
        coordinator: RealtimeCoordinator,
        runner: Optional[Callable[[Callable[[], None]], None]] = None,
    ):
        self.context = context
        self.coordinator = coordinator
        self.aggregator = StatsAggregator(context)
        self.monitor = ActivityMonitor(context)
        self.recompute = CoalescingRecompute(self.refresh, runner=runner)
        self._lock = threading.Lock()
        self._stats: Optional[StatsSnapshot] = None
        self._activity: Optional[ActivityFeed] = None
        self._unsubscribe: Unsubscribe = _noop
        self.logger = structlog.get_logger()

    @property
    def latest_stats(self) -> Optional[StatsSnapshot]:
        with self._lock:
            return self._stats

    @property
    def latest_activity(self) -> Optional[ActivityFeed]:
        with self._lock:
            return self._activity

    @property
    def live(self) -> bool:
        return self.coordinator.active

    def activity_for(self, limit: Optional[int] = None) -> Optional[ActivityFeed]:
        """
        Latest feed cut to ``limit`` items.

        Returns None before the first refresh, and when ``limit`` asks for
        more orders than the refresher keeps (settings.activity_limit).
        """
        feed = self.latest_activity
        if feed is None or limit is None:
            return feed
        if limit > self.context.settings.activity_limit:
            return None
        return feed.model_copy(update={"items": feed.items[:limit]})

    def refresh(self) -> StatsSnapshot:
        """Recompute stats and activity now and store the results."""
        stats = self.aggregator.compute_stats()
        activity = self.monitor.build_activity()
        with self._lock:
            self._stats = stats
            self._activity = activity
        self.logger.debug(
            "dashboard_refreshed",
            stats_available=stats.available,
            activity_available=activity.available,
        )
        return stats

    def start(self) -> None:
        """Compute the first snapshot and start listening for changes."""
        self.refresh()
        self._unsubscribe = self.coordinator.subscribe(self.recompute.request)
        self.logger.info("dashboard_refresher_started", live=self.live)

    def stop(self) -> None:
        """Stop listening; idempotent."""
        self._unsubscribe()
        self._unsubscribe = _noop
        self.logger.info("dashboard_refresher_stopped")
