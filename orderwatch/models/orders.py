"""
Order read models and date windows.

OrderRecord and OrderItemRecord mirror the rows owned by the external
order-taking subsystem. The engine only reads them; they are frozen so that
aggregation passes can never mutate source data.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class DateRange(BaseModel):
    """
    Half-open time window [start, end).

    Attributes:
        start: Inclusive lower bound (UTC)
        end: Exclusive upper bound (UTC)
    """

    model_config = ConfigDict(frozen=True)

    start: datetime = Field(description="Inclusive lower bound")
    end: datetime = Field(description="Exclusive upper bound")

    @field_validator("start", "end")
    @classmethod
    def normalize_to_utc(cls, v: datetime) -> datetime:
        """Store both bounds as UTC-aware instants."""
        return _as_utc(v)

    @model_validator(mode="after")
    def validate_ordering(self) -> "DateRange":
        """Ensure the window is not empty or inverted."""
        if self.start >= self.end:
            raise ValueError("DateRange start must be before end")
        return self

    def contains(self, instant: datetime) -> bool:
        """Return True if instant falls inside [start, end)."""
        instant = _as_utc(instant)
        return self.start <= instant < self.end


class OrderRecord(BaseModel):
    """
    A restaurant order as read from the persistence layer.

    Attributes:
        id: Order identifier
        total: Order total after discount
        raw_status: Free-text status exactly as stored
        created_at: Creation instant (UTC)
        updated_at: Last modification instant (UTC)
        customer_name: Customer name as typed at the till
        kitchen_id: Kitchen the order was routed to, if any
        table_number: Table number for dine-in orders
        is_delivery: Whether the order is a delivery
        discount_percentage: Discount applied, 0-100
        items_count: Number of items on the order
        order_source: Channel that created the order (pos, web, ...)
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Order identifier")
    total: Decimal = Field(default=Decimal("0"), description="Order total")
    raw_status: str = Field(default="", description="Free-text status")
    created_at: datetime = Field(description="Creation instant")
    updated_at: Optional[datetime] = Field(default=None, description="Last update instant")
    customer_name: str = Field(default="", description="Customer name")
    kitchen_id: Optional[str] = Field(default=None, description="Kitchen identifier")
    table_number: Optional[int] = Field(default=None, description="Table number")
    is_delivery: bool = Field(default=False, description="Delivery order flag")
    discount_percentage: float = Field(
        default=0.0, ge=0.0, le=100.0, description="Discount percentage"
    )
    items_count: int = Field(default=0, ge=0, description="Items on the order")
    order_source: str = Field(default="pos", description="Order channel")

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Normalize timestamps to UTC."""
        return _as_utc(v) if v is not None else None

    @field_validator("raw_status", "customer_name", mode="before")
    @classmethod
    def coerce_missing_text(cls, v: Optional[str]) -> str:
        """Null text columns become empty strings."""
        return v if v is not None else ""


class OrderItemRecord(BaseModel):
    """
    A line item of an order, optionally joined with its parent order.

    Attributes:
        id: Item identifier
        order_id: Parent order identifier
        menu_item_id: Menu item reference (absent for free-form items)
        name: Item name as printed on the ticket
        quantity: Units ordered
        price: Unit price
        notes: Kitchen notes
        parent_status: Parent order raw status (when joined)
        parent_created_at: Parent order creation instant (when joined)
        parent_kitchen_id: Parent order kitchen (when joined)
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Item identifier")
    order_id: str = Field(description="Parent order identifier")
    menu_item_id: Optional[str] = Field(default=None, description="Menu item reference")
    name: str = Field(description="Item name")
    quantity: int = Field(default=1, ge=0, description="Units ordered")
    price: Decimal = Field(default=Decimal("0"), description="Unit price")
    notes: Optional[str] = Field(default=None, description="Kitchen notes")
    parent_status: Optional[str] = Field(default=None, description="Parent raw status")
    parent_created_at: Optional[datetime] = Field(
        default=None, description="Parent creation instant"
    )
    parent_kitchen_id: Optional[str] = Field(default=None, description="Parent kitchen")

    @field_validator("parent_created_at")
    @classmethod
    def normalize_parent_created_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Normalize the joined timestamp to UTC."""
        return _as_utc(v) if v is not None else None
