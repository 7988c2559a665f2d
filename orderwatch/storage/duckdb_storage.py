"""
DuckDB implementation of the order repository.

Provides a local backing store for the dashboard engine with the same read
shapes as the production database: orders, order items joined with their
parent order, and a single status write path. Every write publishes a typed
change event to the attached change feed so live listeners are notified
the same way the production realtime channel would notify them.

Key features:
- Thread-safe access via per-thread cursors on one root connection
- Automatic schema creation
- Case-insensitive status filters
- Discount stored as an amount, exposed as a percentage
"""

import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Any, Collection, Optional

import duckdb
import structlog

from orderwatch.connectors.change_feed import InMemoryChangeFeed
from orderwatch.models.enums import ChangeKind
from orderwatch.models.events import OrderChangeEvent, OrderItemChangeEvent
from orderwatch.models.orders import DateRange, OrderItemRecord, OrderRecord

from .base import OrderRepository, OrderStatusWriter, RepositoryError

logger = structlog.get_logger(__name__)


_ORDER_COLUMNS = """
    id, total, status, created_at, updated_at, customer_name, kitchen_id,
    table_number, is_delivery, discount, items_count, order_source
"""


def _to_db_timestamp(value: Optional[datetime]) -> Optional[datetime]:
    """Store instants as naive UTC timestamps."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _normalize_statuses(statuses: Collection[str]) -> list[str]:
    return sorted({s.strip().lower() for s in statuses if s is not None})


def discount_percentage(total: Decimal, discount: Optional[Decimal]) -> float:
    """
    Percentage of the pre-discount amount that was discounted.

    Args:
        total: Order total after discount
        discount: Discount amount (None or 0 means no discount)

    Returns:
        Whole percentage in [0, 100], rounded half up
    """
    if not discount or discount <= 0:
        return 0.0
    gross = Decimal(total) + Decimal(discount)
    if gross <= 0:
        return 0.0
    pct = (Decimal(discount) / gross * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return float(min(max(pct, Decimal("0")), Decimal("100")))


class DuckDBOrderRepository(OrderRepository, OrderStatusWriter):
    """
    DuckDB implementation of the order repository and status writer.

    Attributes:
        db_path: Path to the DuckDB database file, or ":memory:"
        change_feed: Optional feed that receives an event for every write
    """

    def __init__(
        self,
        db_path: str = "./data/orders.duckdb",
        change_feed: Optional[InMemoryChangeFeed] = None,
        threads: int = 4,
    ):
        """
        Initialize DuckDB order repository.

        Args:
            db_path: Path to DuckDB database file (":memory:" for tests)
            change_feed: Feed notified on every write
            threads: DuckDB worker threads
        """
        self.db_path = db_path
        self.change_feed = change_feed

        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self._root = duckdb.connect(db_path, config={"threads": threads})
        except Exception as e:
            logger.error("duckdb_connection_failed", db_path=db_path, error=str(e))
            raise RepositoryError(f"Failed to connect to DuckDB: {e}", operation="connect") from e

        self._local = threading.local()
        self._lock = threading.Lock()
        self._initialized = False

        logger.info("duckdb_repository_initialized", db_path=db_path)

        self._initialize_schema()

    @contextmanager
    def _get_connection(self):
        """
        Get a thread-local DuckDB cursor.

        Yields:
            DuckDB cursor sharing the root connection's database
        """
        if not hasattr(self._local, "connection"):
            with self._lock:
                self._local.connection = self._root.cursor()
            logger.debug("duckdb_cursor_created", thread_id=threading.get_ident())

        yield self._local.connection

    def _initialize_schema(self) -> None:
        """
        Create the orders and order_items tables. Idempotent.

        Raises:
            RepositoryError: If schema creation fails
        """
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return
            try:
                self._root.execute("""
                    CREATE TABLE IF NOT EXISTS orders (
                        id VARCHAR PRIMARY KEY,
                        total DECIMAL(12, 2) NOT NULL DEFAULT 0,
                        status VARCHAR NOT NULL,
                        created_at TIMESTAMP NOT NULL,
                        updated_at TIMESTAMP,
                        customer_name VARCHAR,
                        kitchen_id VARCHAR,
                        table_number INTEGER,
                        is_delivery BOOLEAN NOT NULL DEFAULT FALSE,
                        discount DECIMAL(12, 2),
                        items_count INTEGER NOT NULL DEFAULT 0,
                        order_source VARCHAR
                    )
                """)
                self._root.execute("""
                    CREATE INDEX IF NOT EXISTS idx_orders_created_at
                    ON orders(created_at)
                """)
                self._root.execute("""
                    CREATE TABLE IF NOT EXISTS order_items (
                        id VARCHAR PRIMARY KEY,
                        order_id VARCHAR NOT NULL,
                        menu_item_id VARCHAR,
                        name VARCHAR NOT NULL,
                        quantity INTEGER NOT NULL DEFAULT 1,
                        price DECIMAL(12, 2) NOT NULL DEFAULT 0,
                        notes VARCHAR
                    )
                """)
                self._root.execute("""
                    CREATE INDEX IF NOT EXISTS idx_order_items_order_id
                    ON order_items(order_id)
                """)
                self._initialized = True
                logger.info("duckdb_schema_initialized")
            except Exception as e:
                logger.error("duckdb_schema_initialization_failed", error=str(e))
                raise RepositoryError(
                    f"Failed to initialize schema: {e}", operation="initialize_schema"
                ) from e

    def clear_for_testing(self) -> None:
        """Delete all rows. Each test starts from an empty store."""
        with self._get_connection() as conn:
            conn.execute("DELETE FROM order_items")
            conn.execute("DELETE FROM orders")

    def close(self) -> None:
        """Close the root connection."""
        self._root.close()

    # =========================================================================
    # Row mapping
    # =========================================================================

    @staticmethod
    def _row_to_order(row: tuple) -> OrderRecord:
        total = row[1] if row[1] is not None else Decimal("0")
        return OrderRecord(
            id=row[0],
            total=total,
            raw_status=row[2],
            created_at=row[3],
            updated_at=row[4],
            customer_name=row[5],
            kitchen_id=row[6] or None,
            table_number=row[7],
            is_delivery=bool(row[8]),
            discount_percentage=discount_percentage(total, row[9]),
            items_count=row[10] or 0,
            order_source=row[11] or "pos",
        )

    @staticmethod
    def _row_to_item(row: tuple) -> OrderItemRecord:
        return OrderItemRecord(
            id=row[0],
            order_id=row[1],
            menu_item_id=row[2] or None,
            name=row[3],
            quantity=row[4],
            price=row[5],
            notes=row[6],
            parent_status=row[7],
            parent_created_at=row[8],
            parent_kitchen_id=row[9] or None,
        )

    # =========================================================================
    # Reads
    # =========================================================================

    def list_orders(
        self,
        date_range: DateRange,
        status_filter: Optional[Collection[str]] = None,
    ) -> list[OrderRecord]:
        """List orders created inside [start, end)."""
        try:
            with self._get_connection() as conn:
                query = f"""
                    SELECT {_ORDER_COLUMNS}
                    FROM orders
                    WHERE created_at >= ? AND created_at < ?
                """
                params: list[Any] = [
                    _to_db_timestamp(date_range.start),
                    _to_db_timestamp(date_range.end),
                ]

                if status_filter is not None:
                    statuses = _normalize_statuses(status_filter)
                    if not statuses:
                        return []
                    placeholders = ",".join(["?"] * len(statuses))
                    query += f" AND lower(trim(status)) IN ({placeholders})"
                    params.extend(statuses)

                query += " ORDER BY created_at ASC, id ASC"
                rows = conn.execute(query, params).fetchall()

            orders = [self._row_to_order(row) for row in rows]
            logger.debug("orders_read", count=len(orders))
            return orders

        except RepositoryError:
            raise
        except Exception as e:
            logger.error("list_orders_failed", error=str(e))
            raise RepositoryError(f"Failed to list orders: {e}", operation="list_orders") from e

    def list_recent_orders(self, limit: int) -> list[OrderRecord]:
        """List the newest orders first."""
        try:
            with self._get_connection() as conn:
                rows = conn.execute(
                    f"""
                    SELECT {_ORDER_COLUMNS}
                    FROM orders
                    ORDER BY created_at DESC, id ASC
                    LIMIT ?
                    """,
                    [limit],
                ).fetchall()

            orders = [self._row_to_order(row) for row in rows]
            logger.debug("recent_orders_read", count=len(orders), limit=limit)
            return orders

        except Exception as e:
            logger.error("list_recent_orders_failed", error=str(e))
            raise RepositoryError(
                f"Failed to list recent orders: {e}", operation="list_recent_orders"
            ) from e

    def list_order_items_by_parent_status(
        self,
        status_filter: Optional[Collection[str]],
        date_range: Optional[DateRange] = None,
    ) -> list[OrderItemRecord]:
        """List order items joined with parent status, created_at and kitchen."""
        try:
            with self._get_connection() as conn:
                query = """
                    SELECT i.id, i.order_id, i.menu_item_id, i.name, i.quantity,
                           i.price, i.notes, o.status, o.created_at, o.kitchen_id
                    FROM order_items i
                    INNER JOIN orders o ON o.id = i.order_id
                    WHERE 1=1
                """
                params: list[Any] = []

                if status_filter is not None:
                    statuses = _normalize_statuses(status_filter)
                    if not statuses:
                        return []
                    placeholders = ",".join(["?"] * len(statuses))
                    query += f" AND lower(trim(o.status)) IN ({placeholders})"
                    params.extend(statuses)

                if date_range is not None:
                    query += " AND o.created_at >= ? AND o.created_at < ?"
                    params.append(_to_db_timestamp(date_range.start))
                    params.append(_to_db_timestamp(date_range.end))

                query += " ORDER BY o.created_at ASC, i.id ASC"
                rows = conn.execute(query, params).fetchall()

            items = [self._row_to_item(row) for row in rows]
            logger.debug("order_items_read", count=len(items))
            return items

        except RepositoryError:
            raise
        except Exception as e:
            logger.error("list_order_items_failed", error=str(e))
            raise RepositoryError(
                f"Failed to list order items: {e}",
                operation="list_order_items_by_parent_status",
            ) from e

    def get_order(self, order_id: str) -> Optional[OrderRecord]:
        """Fetch one order by id."""
        try:
            with self._get_connection() as conn:
                row = conn.execute(
                    f"SELECT {_ORDER_COLUMNS} FROM orders WHERE id = ?",
                    [order_id],
                ).fetchone()
            return self._row_to_order(row) if row else None

        except Exception as e:
            logger.error("get_order_failed", order_id=order_id, error=str(e))
            raise RepositoryError(f"Failed to read order: {e}", operation="get_order") from e

    def ping(self) -> bool:
        """Run a trivial query."""
        try:
            with self._get_connection() as conn:
                conn.execute("SELECT 1").fetchone()
            return True
        except Exception as e:
            logger.warning("duckdb_ping_failed", error=str(e))
            return False

    # =========================================================================
    # Writes (seeding and the prioritize path)
    # =========================================================================

    def insert_order(
        self,
        order: OrderRecord,
        discount: Optional[Decimal] = None,
    ) -> str:
        """
        Insert an order row and publish an INSERT event.

        Args:
            order: Order to insert (discount_percentage is ignored)
            discount: Discount amount stored alongside the total

        Returns:
            The order id
        """
        try:
            with self._get_connection() as conn:
                conn.execute(
                    f"""
                    INSERT INTO orders ({_ORDER_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        order.id,
                        order.total,
                        order.raw_status,
                        _to_db_timestamp(order.created_at),
                        _to_db_timestamp(order.updated_at or order.created_at),
                        order.customer_name,
                        order.kitchen_id,
                        order.table_number,
                        order.is_delivery,
                        discount,
                        order.items_count,
                        order.order_source,
                    ],
                )
        except Exception as e:
            logger.error("insert_order_failed", order_id=order.id, error=str(e))
            raise RepositoryError(f"Failed to insert order: {e}", operation="insert_order") from e

        stored = self.get_order(order.id)
        self._publish(OrderChangeEvent(kind=ChangeKind.INSERT, current=stored))
        logger.info("order_inserted", order_id=order.id)
        return order.id

    def insert_order_item(self, item: OrderItemRecord) -> str:
        """
        Insert an order item row and publish an INSERT event.

        Args:
            item: Item to insert (parent_* fields are ignored)

        Returns:
            The item id
        """
        try:
            with self._get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO order_items (
                        id, order_id, menu_item_id, name, quantity, price, notes
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        item.id,
                        item.order_id,
                        item.menu_item_id,
                        item.name,
                        item.quantity,
                        item.price,
                        item.notes,
                    ],
                )
        except Exception as e:
            logger.error("insert_order_item_failed", item_id=item.id, error=str(e))
            raise RepositoryError(
                f"Failed to insert order item: {e}", operation="insert_order_item"
            ) from e

        self._publish(OrderItemChangeEvent(kind=ChangeKind.INSERT, current=item))
        return item.id

    def update_order_status(self, order_id: str, new_status: str) -> bool:
        """Overwrite the raw status and publish an UPDATE event."""
        previous = self.get_order(order_id)
        if previous is None:
            return False

        try:
            with self._get_connection() as conn:
                conn.execute(
                    "UPDATE orders SET status = ?, updated_at = ? WHERE id = ?",
                    [new_status, _to_db_timestamp(datetime.now(timezone.utc)), order_id],
                )
        except Exception as e:
            logger.error("update_order_status_failed", order_id=order_id, error=str(e))
            raise RepositoryError(
                f"Failed to update order status: {e}", operation="update_order_status"
            ) from e

        current = self.get_order(order_id)
        self._publish(
            OrderChangeEvent(kind=ChangeKind.UPDATE, previous=previous, current=current)
        )
        logger.info(
            "order_status_updated",
            order_id=order_id,
            old_status=previous.raw_status,
            new_status=new_status,
        )
        return True

    def delete_order(self, order_id: str) -> bool:
        """Delete an order and its items, publishing a DELETE event."""
        previous = self.get_order(order_id)
        if previous is None:
            return False

        try:
            with self._get_connection() as conn:
                conn.execute("DELETE FROM order_items WHERE order_id = ?", [order_id])
                conn.execute("DELETE FROM orders WHERE id = ?", [order_id])
        except Exception as e:
            logger.error("delete_order_failed", order_id=order_id, error=str(e))
            raise RepositoryError(f"Failed to delete order: {e}", operation="delete_order") from e

        self._publish(OrderChangeEvent(kind=ChangeKind.DELETE, previous=previous))
        return True

    def _publish(self, event) -> None:
        if self.change_feed is not None:
            self.change_feed.publish(event)
