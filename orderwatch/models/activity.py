"""
Activity feed models.

Each ActivityItem is one order annotated with elapsed time, exception flags
and the actions an operator may take on it.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from .enums import ActionSeverity, CanonicalStatus, RepositoryErrorKind


class ActionDescriptor(BaseModel):
    """
    A recommended operator action.

    Attributes:
        label: Human-readable label
        action_code: Machine code in the form "<verb>:<order id>"
        severity: Visual weight of the action
    """

    label: str
    action_code: str
    severity: ActionSeverity = ActionSeverity.DEFAULT


class ActivityItem(BaseModel):
    """An order annotated for the operational activity feed."""

    order_id: str
    canonical_status: CanonicalStatus
    raw_status: str
    customer: str
    total: float
    timestamp: datetime
    time_elapsed_minutes: int = Field(ge=0)
    is_delayed: bool = False
    has_cancellation: bool = False
    has_discount: bool = False
    is_high_discount: bool = False
    discount_percentage: float = 0.0
    items_count: int = 0
    kitchen_id: Optional[str] = None
    order_source: str = "pos"
    is_prioritized: bool = False
    actions: list[ActionDescriptor] = Field(default_factory=list)

    @property
    def has_exception(self) -> bool:
        """Whether the order needs operator attention."""
        return self.is_delayed or self.has_cancellation or self.is_high_discount


class ActivityFeed(BaseModel):
    """Result of one activity pass."""

    items: list[ActivityItem] = Field(default_factory=list)
    available: bool = True
    error_kind: Optional[RepositoryErrorKind] = None
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ActivityCounts(BaseModel):
    """Number of feed items per activity tab."""

    all: int = 0
    active: int = 0
    completed: int = 0
    cancelled: int = 0
    exceptions: int = 0
