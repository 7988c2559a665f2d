"""
Dashboard statistics snapshot models.

A StatsSnapshot is an ephemeral value object produced by one aggregation
pass. It is never persisted; every pass returns a fresh instance.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from .enums import RepositoryErrorKind


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SalesStats(BaseModel):
    """
    Sales for the current business day.

    "Sale" here means "order placed today", regardless of its status.

    Attributes:
        daily_total: Sum of order totals placed today
        transaction_count: Number of orders placed today
        average_ticket: daily_total / transaction_count, 0 with no orders
        change_percentage: Change vs yesterday's total, 0 with no baseline
        last_updated: When the figures were computed
    """

    daily_total: float = Field(default=0.0, description="Sum of today's order totals")
    transaction_count: int = Field(default=0, ge=0, description="Orders placed today")
    average_ticket: float = Field(default=0.0, description="Average order value")
    change_percentage: float = Field(default=0.0, description="Change vs yesterday (%)")
    last_updated: datetime = Field(default_factory=_utcnow)


class OrdersStats(BaseModel):
    """
    Order counts per canonical bucket for the current business day.

    active_orders is pending + preparing; ready orders are reported on their
    own and never added in.
    """

    active_orders: int = Field(default=0, ge=0, description="Pending + preparing")
    pending_orders: int = Field(default=0, ge=0)
    in_preparation_orders: int = Field(default=0, ge=0)
    ready_orders: int = Field(default=0, ge=0)
    completed_orders: int = Field(default=0, ge=0)
    cancelled_orders: int = Field(default=0, ge=0)
    unknown_orders: int = Field(default=0, ge=0)
    last_updated: datetime = Field(default_factory=_utcnow)


class CustomersStats(BaseModel):
    """Distinct customers today (case-insensitive) and change vs yesterday."""

    today_count: int = Field(default=0, ge=0, description="Distinct customers today")
    change_percentage: float = Field(default=0.0, description="Change vs yesterday (%)")
    last_updated: datetime = Field(default_factory=_utcnow)


class PopularItem(BaseModel):
    """A menu item ranked by quantity sold on completed orders."""

    id: str = Field(description="Menu item id, or item name when no menu id exists")
    name: str = Field(description="Item name")
    quantity: int = Field(ge=0, description="Units sold")


class StatsSnapshot(BaseModel):
    """
    Combined result of one aggregation pass.

    Attributes:
        sales_stats: Sales figures (all orders placed today)
        orders_stats: Order bucket counts
        customers_stats: Distinct customer counts
        popular_items: Top items on completed orders
        available: False when the data could not be fetched
        error_kind: Failure class when available is False
        generated_at: When the snapshot was produced
    """

    sales_stats: SalesStats = Field(default_factory=SalesStats)
    orders_stats: OrdersStats = Field(default_factory=OrdersStats)
    customers_stats: CustomersStats = Field(default_factory=CustomersStats)
    popular_items: list[PopularItem] = Field(default_factory=list)
    available: bool = Field(default=True, description="Whether data was fetched")
    error_kind: Optional[RepositoryErrorKind] = Field(default=None)
    generated_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def unavailable(
        cls,
        error_kind: RepositoryErrorKind,
        at: Optional[datetime] = None,
    ) -> "StatsSnapshot":
        """Zero-valued snapshot returned when the backend could not be read."""
        at = at or _utcnow()
        return cls(
            sales_stats=SalesStats(last_updated=at),
            orders_stats=OrdersStats(last_updated=at),
            customers_stats=CustomersStats(last_updated=at),
            popular_items=[],
            available=False,
            error_kind=error_kind,
            generated_at=at,
        )
