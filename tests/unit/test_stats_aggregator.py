"""
Unit tests for the stats aggregator.

Covers the four stat groups, the two notions of "sale", the active-orders
definition, zero baselines, failure and timeout degradation.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from orderwatch.engine import EngineContext, StatsAggregator, StatusClassifier
from orderwatch.engine.stats_aggregator import (
    calculate_order_counts,
    calculate_popular_items,
    calculate_sales_stats,
    change_percentage,
    distinct_customers,
)
from orderwatch.exceptions import RepositoryError
from orderwatch.models.enums import CanonicalStatus, RepositoryErrorKind
from tests.conftest import FIXED_NOW, MockRepository, make_item, make_order, make_settings

YESTERDAY = FIXED_NOW - timedelta(days=1)


class TestChangePercentage:
    def test_zero_baseline_is_zero(self):
        assert change_percentage(Decimal("50"), Decimal("0")) == 0

    def test_growth(self):
        assert change_percentage(Decimal("150"), Decimal("100")) == Decimal("50")

    def test_decline(self):
        assert change_percentage(Decimal("75"), Decimal("100")) == Decimal("-25")


class TestSalesStats:
    def test_no_orders(self):
        sales = calculate_sales_stats([], [], FIXED_NOW)

        assert sales.daily_total == 0
        assert sales.transaction_count == 0
        assert sales.average_ticket == 0
        assert sales.change_percentage == 0

    def test_average_ticket_rounded(self):
        orders = [make_order(total="10.00"), make_order(total="10.00"), make_order(total="10.01")]
        sales = calculate_sales_stats(orders, [], FIXED_NOW)

        assert sales.daily_total == 30.01
        assert sales.average_ticket == 10.0

    def test_decimal_totals_do_not_drift(self):
        orders = [make_order(total="0.10") for _ in range(3)]
        assert calculate_sales_stats(orders, [], FIXED_NOW).daily_total == 0.3


class TestOrderCounts:
    def test_active_excludes_ready(self):
        """Regression: ready orders are never part of active_orders."""
        classifier = StatusClassifier()
        orders = [
            make_order(raw_status="pending"),
            make_order(raw_status="preparando"),
            make_order(raw_status="listo"),
            make_order(raw_status="ready"),
        ]

        counts = calculate_order_counts(orders, classifier, FIXED_NOW)

        assert counts.active_orders == 2
        assert counts.ready_orders == 2
        assert counts.active_orders == counts.pending_orders + counts.in_preparation_orders

    def test_unknown_counted_separately(self):
        counts = calculate_order_counts(
            [make_order(raw_status="on hold")], StatusClassifier(), FIXED_NOW
        )
        assert counts.unknown_orders == 1
        assert counts.active_orders == 0


class TestCustomers:
    def test_case_insensitive_names(self):
        orders = [make_order(customer_name="Ana"), make_order(customer_name="ANA")]
        assert distinct_customers(orders) == 1

    def test_blank_names_ignored(self):
        orders = [make_order(customer_name=""), make_order(customer_name="   ")]
        assert distinct_customers(orders) == 0


class TestPopularItems:
    def test_only_completed_bucket_counted(self):
        classifier = StatusClassifier()
        ready = make_order(raw_status="Listo")
        paid = make_order(raw_status="pagado")
        items = [
            make_item(ready, name="Tacos", quantity=3).model_copy(update={"parent_status": "Listo"}),
            make_item(paid, name="Tacos", quantity=10).model_copy(update={"parent_status": "pagado"}),
        ]

        popular = calculate_popular_items(items, classifier, [CanonicalStatus.READY])

        assert [(p.name, p.quantity) for p in popular] == [("Tacos", 3)]

    def test_sorted_by_quantity_then_name(self):
        classifier = StatusClassifier()
        order = make_order(raw_status="ready")
        items = [
            make_item(order, name=name, quantity=qty).model_copy(update={"parent_status": "ready"})
            for name, qty in [("Flan", 2), ("Agua", 2), ("Tacos", 5), ("Torta", 1)]
        ]

        popular = calculate_popular_items(items, classifier, ["ready"])

        assert [p.name for p in popular] == ["Tacos", "Agua", "Flan", "Torta"]

    def test_grouped_by_menu_item_id(self):
        classifier = StatusClassifier()
        order = make_order(raw_status="ready")
        items = [
            make_item(order, name="Taco", quantity=1, menu_item_id="m1"),
            make_item(order, name="Tacos", quantity=2, menu_item_id="m1"),
        ]
        items = [i.model_copy(update={"parent_status": "ready"}) for i in items]

        popular = calculate_popular_items(items, classifier, ["ready"])

        assert len(popular) == 1
        assert popular[0].id == "m1"
        assert popular[0].quantity == 3

    def test_limit(self):
        classifier = StatusClassifier()
        order = make_order(raw_status="ready")
        items = [
            make_item(order, name=f"Item {i}", quantity=i).model_copy(update={"parent_status": "ready"})
            for i in range(1, 9)
        ]

        popular = calculate_popular_items(items, classifier, ["ready"], limit=5)

        assert len(popular) == 5
        assert popular[0].quantity == 8


class TestStatsAggregator:
    def test_scenario_paid_and_cancelled(self, context, mock_repository):
        """pagado 10 + Cancelado 20 today: 30 total, nothing active."""
        mock_repository.add_order(make_order(total="10", raw_status="pagado"))
        mock_repository.add_order(make_order(total="20", raw_status="Cancelado"))

        snapshot = StatsAggregator(context).compute_stats()

        assert snapshot.available is True
        assert snapshot.sales_stats.daily_total == 30
        assert snapshot.sales_stats.transaction_count == 2
        assert snapshot.orders_stats.pending_orders == 0
        assert snapshot.orders_stats.active_orders == 0
        assert snapshot.orders_stats.completed_orders == 1
        assert snapshot.orders_stats.cancelled_orders == 1

    def test_scenario_zero_baseline(self, context, mock_repository):
        mock_repository.add_order(make_order(total="50"))

        snapshot = StatsAggregator(context).compute_stats()

        assert snapshot.sales_stats.daily_total == 50
        assert snapshot.sales_stats.change_percentage == 0

    def test_change_against_yesterday(self, context, mock_repository):
        mock_repository.add_order(make_order(total="150"))
        mock_repository.add_order(make_order(total="100", created_at=YESTERDAY))

        snapshot = StatsAggregator(context).compute_stats()

        assert snapshot.sales_stats.transaction_count == 1
        assert snapshot.sales_stats.change_percentage == 50.0

    def test_customers_change(self, context, mock_repository):
        mock_repository.add_order(make_order(customer_name="Ana"))
        mock_repository.add_order(make_order(customer_name="ANA"))
        mock_repository.add_order(make_order(customer_name="Luis"))
        mock_repository.add_order(make_order(customer_name="Ana", created_at=YESTERDAY))

        snapshot = StatsAggregator(context).compute_stats()

        assert snapshot.customers_stats.today_count == 2
        assert snapshot.customers_stats.change_percentage == 100.0

    def test_orders_outside_today_ignored(self, context, mock_repository):
        mock_repository.add_order(make_order(created_at=FIXED_NOW + timedelta(days=1)))

        snapshot = StatsAggregator(context).compute_stats()

        assert snapshot.sales_stats.transaction_count == 0

    def test_popular_items_from_ready_orders(self, context, mock_repository):
        ready = mock_repository.add_order(make_order(raw_status="ready"))
        pending = mock_repository.add_order(make_order(raw_status="pending"))
        mock_repository.add_item(make_item(ready, name="Tacos", quantity=4))
        mock_repository.add_item(make_item(pending, name="Torta", quantity=9))

        snapshot = StatsAggregator(context).compute_stats()

        assert [(p.name, p.quantity) for p in snapshot.popular_items] == [("Tacos", 4)]

    @pytest.mark.parametrize("raw_status", ["Listo!", "listo para servir", "READY."])
    def test_noisy_ready_status_counts_in_popular_items(self, duckdb_repository, clock, raw_status):
        order = make_order(order_id="o1", raw_status=raw_status)
        duckdb_repository.insert_order(order)
        duckdb_repository.insert_order_item(make_item(order, name="Tacos", quantity=3))

        with EngineContext(duckdb_repository, settings=make_settings(), clock=clock) as ctx:
            snapshot = StatsAggregator(ctx).compute_stats()

        assert snapshot.orders_stats.ready_orders == 1
        assert [(p.name, p.quantity) for p in snapshot.popular_items] == [("Tacos", 3)]

    def test_completed_buckets_configurable(self, mock_repository, clock):
        paid = mock_repository.add_order(make_order(raw_status="pagado"))
        mock_repository.add_item(make_item(paid, name="Flan", quantity=2))
        settings = make_settings(completed_order_buckets="ready,completed")

        with EngineContext(mock_repository, settings=settings, clock=clock) as ctx:
            snapshot = StatsAggregator(ctx).compute_stats()

        assert [p.name for p in snapshot.popular_items] == ["Flan"]

    def test_popular_items_window(self, mock_repository, clock):
        old = mock_repository.add_order(
            make_order(raw_status="ready", created_at=FIXED_NOW - timedelta(days=30))
        )
        recent = mock_repository.add_order(make_order(raw_status="ready"))
        mock_repository.add_item(make_item(old, name="Old", quantity=50))
        mock_repository.add_item(make_item(recent, name="New", quantity=1))
        settings = make_settings(popular_items_window_days=7)

        with EngineContext(mock_repository, settings=settings, clock=clock) as ctx:
            snapshot = StatsAggregator(ctx).compute_stats()

        assert [p.name for p in snapshot.popular_items] == ["New"]

    def test_backend_failure_yields_unavailable_snapshot(self, context, mock_repository, backend_error):
        mock_repository.add_order(make_order(total="10"))
        mock_repository.fail_with = backend_error

        snapshot = StatsAggregator(context).compute_stats()

        assert snapshot.available is False
        assert snapshot.error_kind == RepositoryErrorKind.BACKEND
        assert snapshot.sales_stats.daily_total == 0
        assert snapshot.popular_items == []
        assert snapshot.generated_at == FIXED_NOW

    def test_driver_exception_is_wrapped(self, context, mock_repository):
        mock_repository.fail_with = OSError("socket closed")

        snapshot = StatsAggregator(context).compute_stats()

        assert snapshot.available is False
        assert snapshot.error_kind == RepositoryErrorKind.BACKEND

    def test_timeout_yields_unavailable_snapshot(self, mock_repository, clock):
        mock_repository.delay_seconds = 0.3
        settings = make_settings(fetch_timeout_seconds=0.05)

        with EngineContext(mock_repository, settings=settings, clock=clock) as ctx:
            snapshot = StatsAggregator(ctx).compute_stats()

        assert snapshot.available is False
        assert snapshot.error_kind == RepositoryErrorKind.TIMEOUT

    def test_fetches_run_concurrently(self, mock_repository, clock):
        """Three 0.2s fetches finish inside a 0.5s per-fetch deadline."""
        mock_repository.delay_seconds = 0.2
        settings = make_settings(fetch_timeout_seconds=0.5, fetch_max_workers=3)

        with EngineContext(mock_repository, settings=settings, clock=clock) as ctx:
            snapshot = StatsAggregator(ctx).compute_stats()

        assert snapshot.available is True

    def test_compute_stats_never_raises(self, context, mock_repository):
        mock_repository.fail_with = RepositoryError("boom")
        try:
            StatsAggregator(context).compute_stats()
        except RepositoryError:
            pytest.fail("compute_stats must not raise RepositoryError")
