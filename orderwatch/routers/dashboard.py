"""
Dashboard router — Stats snapshot, activity feed and order prioritization.

Wired to:
- DashboardRefresher for live snapshots when realtime is running
- StatsAggregator for the four stats cards and popular items
- ActivityMonitor for the activity feed, tab counts and prioritize action
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from orderwatch.engine import (
    ActivityMonitor,
    DashboardRefresher,
    EngineContext,
    StatsAggregator,
    count_activity,
    filter_activity,
)
from orderwatch.exceptions import RepositoryError
from orderwatch.models.enums import ActivityFlag, ActivityTab
from orderwatch.utils.logging import get_logger

from .dependencies import get_engine_context, get_live_refresher

logger = get_logger(__name__)
router = APIRouter()


@router.get("/stats")
async def get_dashboard_stats(
    context: EngineContext = Depends(get_engine_context),
    refresher: Optional[DashboardRefresher] = Depends(get_live_refresher),
):
    """
    Stats snapshot for the current business day.

    Served from the live refresher when one is running; computed on demand
    otherwise. ``available`` is False (with ``error_kind``) when the order
    store could not be read; the figures are then all zero.
    """
    snapshot = refresher.latest_stats if refresher else None
    source = "live"
    if snapshot is None:
        snapshot = StatsAggregator(context).compute_stats()
        source = "on_demand"
    logger.info("dashboard_stats", available=snapshot.available, source=source)

    return {
        "success": True,
        "data": snapshot.model_dump(mode="json"),
    }


@router.get("/activity")
async def get_dashboard_activity(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    tab: ActivityTab = Query(ActivityTab.ALL),
    flag: Optional[ActivityFlag] = Query(None),
    context: EngineContext = Depends(get_engine_context),
    refresher: Optional[DashboardRefresher] = Depends(get_live_refresher),
):
    """
    Activity feed of the most recent orders.

    Counts are computed over the whole feed; ``items`` is narrowed by the
    selected tab and flag. A limit above the live feed's size is computed
    on demand.
    """
    feed = refresher.activity_for(limit) if refresher else None
    source = "live"
    if feed is None:
        feed = ActivityMonitor(context).build_activity(limit=limit)
        source = "on_demand"
    items = filter_activity(feed.items, tab=tab, flag=flag)

    logger.info(
        "dashboard_activity",
        tab=tab.value,
        flag=flag.value if flag else None,
        total=len(feed.items),
        returned=len(items),
        source=source,
    )

    return {
        "success": True,
        "data": {
            "items": [item.model_dump(mode="json") for item in items],
            "counts": count_activity(feed.items).model_dump(),
            "available": feed.available,
            "error_kind": feed.error_kind.value if feed.error_kind else None,
            "generated_at": feed.generated_at.isoformat(),
        },
    }


@router.post("/activity/{order_id}/prioritize")
async def prioritize_order(
    order_id: str,
    context: EngineContext = Depends(get_engine_context),
):
    """
    Mark a pending or preparing order as priority.

    Returns 404 when the order does not exist and 503 when the write could
    not be completed.
    """
    monitor = ActivityMonitor(context)
    if monitor.prioritize_order(order_id):
        return {"success": True, "data": {"order_id": order_id, "prioritized": True}}

    try:
        exists = context.fetcher.run("get_order", context.repository.get_order, order_id)
    except RepositoryError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    if exists is None:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    raise HTTPException(status_code=503, detail=f"Order {order_id} could not be prioritized")
