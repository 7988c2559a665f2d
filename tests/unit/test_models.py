"""
Unit tests for pydantic models and settings validation.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from orderwatch.models import (
    ActivityTab,
    OrderRecord,
    RepositoryErrorKind,
    StatsSnapshot,
)
from tests.conftest import FIXED_NOW, make_order, make_settings


class TestOrderRecord:
    def test_null_text_becomes_empty(self):
        order = OrderRecord(id="o1", created_at=FIXED_NOW, raw_status=None, customer_name=None)

        assert order.raw_status == ""
        assert order.customer_name == ""

    def test_timestamps_normalized_to_utc(self):
        order = OrderRecord(id="o1", created_at=datetime(2026, 3, 5, 14, 0))
        assert order.created_at.tzinfo == timezone.utc

    def test_frozen(self):
        order = make_order()
        with pytest.raises(ValidationError):
            order.raw_status = "ready"

    def test_discount_bounds(self):
        with pytest.raises(ValidationError):
            OrderRecord(id="o1", created_at=FIXED_NOW, discount_percentage=120)


class TestStatsSnapshot:
    def test_unavailable_is_all_zero(self):
        snapshot = StatsSnapshot.unavailable(RepositoryErrorKind.TIMEOUT, at=FIXED_NOW)

        assert snapshot.available is False
        assert snapshot.error_kind == RepositoryErrorKind.TIMEOUT
        assert snapshot.sales_stats.daily_total == 0
        assert snapshot.orders_stats.active_orders == 0
        assert snapshot.customers_stats.today_count == 0
        assert snapshot.popular_items == []
        assert snapshot.sales_stats.last_updated == FIXED_NOW

    def test_json_dump(self):
        data = StatsSnapshot(generated_at=FIXED_NOW).model_dump(mode="json")
        assert data["available"] is True
        assert data["error_kind"] is None


class TestSettings:
    def test_defaults(self):
        settings = make_settings()

        assert settings.delay_threshold_minutes == 15
        assert settings.high_discount_threshold == 15.0
        assert settings.popular_items_limit == 5
        assert settings.completed_buckets == ["ready"]
        assert settings.popular_items_window_days is None

    def test_completed_buckets_normalized(self):
        settings = make_settings(completed_order_buckets=" Ready , COMPLETED ")
        assert settings.completed_buckets == ["ready", "completed"]

    def test_unknown_bucket_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(completed_order_buckets="ready,shipped")

    def test_cors_origins_parsed(self):
        settings = make_settings(cors_origins="http://a.test, http://b.test")
        assert settings.cors_origins == ["http://a.test", "http://b.test"]

    def test_total_decimal(self):
        assert make_order(total="12.30").total == Decimal("12.30")

    def test_activity_tab_values(self):
        assert {tab.value for tab in ActivityTab} == {
            "all",
            "active",
            "completed",
            "cancelled",
            "exceptions",
        }
