"""
Change-event sources for live dashboard updates.

InMemoryChangeFeed is the in-process source: repository writes publish
typed events to it and the RealtimeCoordinator listens on it.
"""

from .change_feed import ChangeHandler, ChannelHandle, InMemoryChangeFeed

__all__ = ["ChangeHandler", "ChannelHandle", "InMemoryChangeFeed"]
