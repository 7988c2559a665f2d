"""
Pytest configuration and shared fixtures for the OrderWatch test suite.

Provides model factories, an in-memory mock repository with failure and
latency injection, a frozen clock, and ready-made engine contexts.
"""

import os
import tempfile
import time
import uuid as _uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Collection, Optional

import pytest

# Set testing environment BEFORE importing the app. DuckDB creates the file.
_test_db_path = os.path.join(tempfile.gettempdir(), f"orderwatch_test_{_uuid.uuid4().hex[:8]}.duckdb")
os.environ["TESTING"] = "true"
os.environ["DB_PATH"] = _test_db_path
os.environ["LOG_FORMAT"] = "console"


from orderwatch.config import Settings
from orderwatch.connectors.change_feed import InMemoryChangeFeed
from orderwatch.engine import EngineContext, FixedClock
from orderwatch.exceptions import RepositoryError
from orderwatch.models.enums import RepositoryErrorKind
from orderwatch.models.orders import DateRange, OrderItemRecord, OrderRecord
from orderwatch.storage.base import OrderRepository, OrderStatusWriter
from orderwatch.storage.duckdb_storage import DuckDBOrderRepository

# Thursday 2026-03-05 14:00 UTC
FIXED_NOW = datetime(2026, 3, 5, 14, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Pydantic model factories
# ---------------------------------------------------------------------------


def make_order(
    order_id: Optional[str] = None,
    total: str = "10.00",
    raw_status: str = "pending",
    created_at: Optional[datetime] = None,
    minutes_ago: Optional[int] = None,
    customer_name: str = "Ana",
    discount_percentage: float = 0.0,
    kitchen_id: Optional[str] = None,
    items_count: int = 1,
    now: datetime = FIXED_NOW,
) -> OrderRecord:
    """Build an OrderRecord, created ``minutes_ago`` before now by default."""
    if created_at is None:
        created_at = now - timedelta(minutes=minutes_ago if minutes_ago is not None else 5)
    return OrderRecord(
        id=order_id or f"ord_{_uuid.uuid4().hex[:8]}",
        total=Decimal(total),
        raw_status=raw_status,
        created_at=created_at,
        updated_at=created_at,
        customer_name=customer_name,
        kitchen_id=kitchen_id,
        discount_percentage=discount_percentage,
        items_count=items_count,
    )


def make_item(
    order: OrderRecord,
    name: str = "Tacos al pastor",
    quantity: int = 1,
    menu_item_id: Optional[str] = None,
    price: str = "5.00",
    item_id: Optional[str] = None,
) -> OrderItemRecord:
    """Build an OrderItemRecord belonging to order."""
    return OrderItemRecord(
        id=item_id or f"itm_{_uuid.uuid4().hex[:8]}",
        order_id=order.id,
        menu_item_id=menu_item_id,
        name=name,
        quantity=quantity,
        price=Decimal(price),
    )


def make_settings(**overrides) -> Settings:
    """Settings isolated from the developer's .env file."""
    defaults = {
        "fetch_timeout_seconds": 2.0,
        "testing": True,
        "dev_mode": True,
        "enable_realtime": False,
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


# ---------------------------------------------------------------------------
# Mock repository, in-memory stand-in for pure unit tests
# ---------------------------------------------------------------------------


class MockRepository(OrderRepository, OrderStatusWriter):
    """
    In-memory OrderRepository and OrderStatusWriter.

    Attributes:
        fail_with: Exception raised by every read and write when set
        delay_seconds: Sleep before answering, to exercise fetch deadlines
        calls: Names of the methods invoked, in order
    """

    def __init__(self, orders=None, items=None):
        self._orders: dict[str, OrderRecord] = {}
        self._items: list[OrderItemRecord] = []
        self.fail_with: Optional[Exception] = None
        self.delay_seconds: float = 0.0
        self.calls: list[str] = []
        for order in orders or []:
            self.add_order(order)
        for item in items or []:
            self.add_item(item)

    # --- Seeding ---
    def add_order(self, order: OrderRecord) -> OrderRecord:
        self._orders[order.id] = order
        return order

    def add_item(self, item: OrderItemRecord) -> OrderItemRecord:
        self._items.append(item)
        return item

    def _enter(self, name: str) -> None:
        self.calls.append(name)
        if self.delay_seconds:
            time.sleep(self.delay_seconds)
        if self.fail_with is not None:
            raise self.fail_with

    @staticmethod
    def _matches(raw_status: str, status_filter: Optional[Collection[str]]) -> bool:
        if status_filter is None:
            return True
        wanted = {s.strip().lower() for s in status_filter}
        return raw_status.strip().lower() in wanted

    # --- Read methods ---
    def list_orders(self, date_range: DateRange, status_filter=None):
        self._enter("list_orders")
        results = [
            o
            for o in self._orders.values()
            if date_range.contains(o.created_at) and self._matches(o.raw_status, status_filter)
        ]
        return sorted(results, key=lambda o: (o.created_at, o.id))

    def list_recent_orders(self, limit: int):
        self._enter("list_recent_orders")
        newest = sorted(self._orders.values(), key=lambda o: o.created_at, reverse=True)
        return newest[:limit]

    def list_order_items_by_parent_status(self, status_filter, date_range=None):
        self._enter("list_order_items_by_parent_status")
        results = []
        for item in self._items:
            parent = self._orders.get(item.order_id)
            if parent is None or not self._matches(parent.raw_status, status_filter):
                continue
            if date_range is not None and not date_range.contains(parent.created_at):
                continue
            results.append(
                item.model_copy(
                    update={
                        "parent_status": parent.raw_status,
                        "parent_created_at": parent.created_at,
                        "parent_kitchen_id": parent.kitchen_id,
                    }
                )
            )
        return results

    def get_order(self, order_id: str):
        self._enter("get_order")
        return self._orders.get(order_id)

    def ping(self) -> bool:
        self._enter("ping")
        return True

    # --- Write methods ---
    def update_order_status(self, order_id: str, new_status: str) -> bool:
        self._enter("update_order_status")
        order = self._orders.get(order_id)
        if order is None:
            return False
        self._orders[order_id] = order.model_copy(update={"raw_status": new_status})
        return True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock():
    """Clock frozen at FIXED_NOW."""
    return FixedClock(FIXED_NOW)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def mock_repository():
    """Fresh MockRepository instance for each test."""
    return MockRepository()


@pytest.fixture
def context(mock_repository, settings, clock):
    """EngineContext over the mock repository and frozen clock."""
    ctx = EngineContext(mock_repository, settings=settings, clock=clock)
    yield ctx
    ctx.close()


@pytest.fixture
def backend_error():
    return RepositoryError("connection refused", kind=RepositoryErrorKind.BACKEND, operation="test")


@pytest.fixture
def change_feed():
    return InMemoryChangeFeed()


@pytest.fixture
def duckdb_repository(change_feed):
    """In-memory DuckDB repository wired to a fresh change feed."""
    repo = DuckDBOrderRepository(db_path=":memory:", change_feed=change_feed, threads=1)
    yield repo
    repo.close()
