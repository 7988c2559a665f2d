"""
Typed change events delivered by the change-event source.

A change event is a tagged variant: the ``table`` field selects whether the
previous/current snapshots are OrderRecord or OrderItemRecord instances.
"""

from datetime import datetime, timezone
from typing import Annotated, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field, TypeAdapter, model_validator

from .enums import ChangeKind, ChangeTable
from .orders import OrderItemRecord, OrderRecord


class _ChangeEventBase(BaseModel):
    """Fields shared by every change event."""

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    kind: ChangeKind
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def validate_snapshots(self):
        """Inserts and updates carry a current row; deletes carry the previous row."""
        if self.kind in (ChangeKind.INSERT, ChangeKind.UPDATE) and self.current is None:
            raise ValueError(f"{self.kind.value} events require a current snapshot")
        if self.kind == ChangeKind.DELETE and self.previous is None:
            raise ValueError("DELETE events require a previous snapshot")
        return self

    @property
    def record_id(self) -> str:
        """Identifier of the changed row."""
        row = self.current if self.current is not None else self.previous
        return row.id


class OrderChangeEvent(_ChangeEventBase):
    """A change to the orders table."""

    table: Literal[ChangeTable.ORDERS] = ChangeTable.ORDERS
    previous: Optional[OrderRecord] = None
    current: Optional[OrderRecord] = None

    @property
    def status_transition(self) -> Optional[tuple[str, str]]:
        """(old, new) raw status when an update changed the status."""
        if self.previous is None or self.current is None:
            return None
        if self.previous.raw_status == self.current.raw_status:
            return None
        return self.previous.raw_status, self.current.raw_status


class OrderItemChangeEvent(_ChangeEventBase):
    """A change to the order_items table."""

    table: Literal[ChangeTable.ORDER_ITEMS] = ChangeTable.ORDER_ITEMS
    previous: Optional[OrderItemRecord] = None
    current: Optional[OrderItemRecord] = None


ChangeEvent = Annotated[
    Union[OrderChangeEvent, OrderItemChangeEvent],
    Field(discriminator="table"),
]

_change_event_adapter: TypeAdapter = TypeAdapter(ChangeEvent)


def parse_change_event(payload: dict) -> Union[OrderChangeEvent, OrderItemChangeEvent]:
    """
    Parse an untyped change payload into its typed variant.

    Args:
        payload: Dict with "table", "kind" and optional "previous"/"current"

    Returns:
        OrderChangeEvent or OrderItemChangeEvent

    Raises:
        pydantic.ValidationError: If the payload does not match either variant
    """
    return _change_event_adapter.validate_python(payload)
