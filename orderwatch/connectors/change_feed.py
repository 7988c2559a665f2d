"""
In-process change-event source.

Plays the role the database's realtime channel plays in production: writers
publish typed change events, listeners subscribe per table. Handlers run
synchronously on the publishing thread; a failing handler is logged and
never prevents delivery to the other handlers or breaks the writer.
"""

import threading
from typing import Callable, Union
from uuid import uuid4

import structlog

from orderwatch.models.enums import ChangeTable
from orderwatch.models.events import OrderChangeEvent, OrderItemChangeEvent

logger = structlog.get_logger()

ChangeHandler = Callable[[Union[OrderChangeEvent, OrderItemChangeEvent]], None]


class ChannelHandle:
    """
    Handle for one open channel.

    Closing is idempotent.
    """

    def __init__(self, feed: "InMemoryChangeFeed", table: ChangeTable, channel_id: str):
        self._feed = feed
        self.table = table
        self.channel_id = channel_id
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop delivering events to this channel's handler."""
        if self._closed:
            return
        self._closed = True
        self._feed._remove(self.table, self.channel_id)


class InMemoryChangeFeed:
    """
    Thread-safe publish/subscribe hub keyed by table.

    Example:
        >>> feed = InMemoryChangeFeed()
        >>> handle = feed.subscribe(ChangeTable.ORDERS, print)
        >>> feed.publish(event)
        >>> handle.close()
    """

    def __init__(self):
        self._handlers: dict[ChangeTable, dict[str, ChangeHandler]] = {
            table: {} for table in ChangeTable
        }
        self._lock = threading.Lock()

    def subscribe(self, table: Union[ChangeTable, str], handler: ChangeHandler) -> ChannelHandle:
        """
        Open a channel on a table.

        Args:
            table: Table to listen to ("orders" or "order_items")
            handler: Called with every change event for that table

        Returns:
            ChannelHandle used to close the channel

        Raises:
            ValueError: If the table is not a known change table
        """
        table = ChangeTable(table)
        channel_id = str(uuid4())
        with self._lock:
            self._handlers[table][channel_id] = handler

        logger.debug("change_channel_opened", table=table.value, channel_id=channel_id)
        return ChannelHandle(self, table, channel_id)

    def publish(self, event: Union[OrderChangeEvent, OrderItemChangeEvent]) -> int:
        """
        Deliver an event to every handler subscribed to its table.

        Args:
            event: Typed change event

        Returns:
            Number of handlers that received the event without raising
        """
        with self._lock:
            handlers = list(self._handlers[event.table].items())

        delivered = 0
        for channel_id, handler in handlers:
            try:
                handler(event)
                delivered += 1
            except Exception as e:
                logger.error(
                    "change_handler_failed",
                    table=event.table.value,
                    channel_id=channel_id,
                    event_id=event.event_id,
                    error=str(e),
                )
        return delivered

    def listener_count(self, table: Union[ChangeTable, str]) -> int:
        """Number of open channels on a table."""
        with self._lock:
            return len(self._handlers[ChangeTable(table)])

    def _remove(self, table: ChangeTable, channel_id: str) -> None:
        with self._lock:
            self._handlers[table].pop(channel_id, None)
        logger.debug("change_channel_closed", table=table.value, channel_id=channel_id)
