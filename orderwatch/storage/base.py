"""
Abstract order repository interface for the OrderWatch engine.

The engine never assumes a specific store or query language. It consumes
only the read shapes defined here, plus a single write path used to
prioritize orders, so the DuckDB implementation can be swapped for the
production database client without changing engine code.

Status filters are collections of raw status strings. Implementations match
them case-insensitively after trimming whitespace; ``None`` means no filter.
"""

from abc import ABC, abstractmethod
from typing import Collection, Optional

from orderwatch.exceptions import RepositoryError
from orderwatch.models.orders import DateRange, OrderItemRecord, OrderRecord


class OrderRepository(ABC):
    """
    Read access to orders and order items.

    Implementations must:
    - Raise RepositoryError (never a driver-specific exception) on failure
    - Return immutable OrderRecord / OrderItemRecord instances
    - Be safe to call from several threads at once
    """

    @abstractmethod
    def list_orders(
        self,
        date_range: DateRange,
        status_filter: Optional[Collection[str]] = None,
    ) -> list[OrderRecord]:
        """
        List orders created inside a half-open window.

        Args:
            date_range: Window on created_at, [start, end)
            status_filter: Optional raw statuses to keep

        Returns:
            OrderRecord list ordered by created_at ascending

        Raises:
            RepositoryError: If the read fails
        """
        pass

    @abstractmethod
    def list_recent_orders(self, limit: int) -> list[OrderRecord]:
        """
        List the most recently created orders.

        Args:
            limit: Maximum number of orders

        Returns:
            OrderRecord list ordered by created_at descending

        Raises:
            RepositoryError: If the read fails
        """
        pass

    @abstractmethod
    def list_order_items_by_parent_status(
        self,
        status_filter: Optional[Collection[str]],
        date_range: Optional[DateRange] = None,
    ) -> list[OrderItemRecord]:
        """
        List order items joined with their parent order.

        Args:
            status_filter: Raw parent statuses to keep (None keeps all)
            date_range: Optional window on the parent's created_at

        Returns:
            OrderItemRecord list with parent_status, parent_created_at and
            parent_kitchen_id populated

        Raises:
            RepositoryError: If the read fails
        """
        pass

    @abstractmethod
    def get_order(self, order_id: str) -> Optional[OrderRecord]:
        """
        Fetch a single order.

        Args:
            order_id: Order identifier

        Returns:
            OrderRecord if found, None otherwise

        Raises:
            RepositoryError: If the read fails
        """
        pass

    @abstractmethod
    def ping(self) -> bool:
        """Return True if the backing store answers a trivial query."""
        pass


class OrderStatusWriter(ABC):
    """Write path owned by the order-taking subsystem."""

    @abstractmethod
    def update_order_status(self, order_id: str, new_status: str) -> bool:
        """
        Overwrite an order's raw status.

        Args:
            order_id: Order identifier
            new_status: New raw status text

        Returns:
            True if the order existed and was updated, False if not found

        Raises:
            RepositoryError: If the write fails
        """
        pass


__all__ = ["OrderRepository", "OrderStatusWriter", "RepositoryError"]
