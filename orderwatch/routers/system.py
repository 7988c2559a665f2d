"""
System status router.

Wired to:
- OrderRepository.ping() for database reachability
- DashboardRefresher (app state) for the live-updates flag
- StatusClassifier gap counters for synonym-table drift
"""

import time

from fastapi import APIRouter, Depends, Query, Request

from orderwatch import __version__
from orderwatch.engine import EngineContext
from orderwatch.exceptions import RepositoryError
from orderwatch.utils.logging import get_logger

from .dependencies import get_engine_context

logger = get_logger(__name__)
router = APIRouter()

# Track startup time for uptime calculation
_startup_time = time.time()


@router.get("/status")
async def system_status(
    request: Request,
    top_gaps: int = Query(10, ge=0, le=100),
    context: EngineContext = Depends(get_engine_context),
):
    """
    Report database reachability, live updates and classification gaps.

    ``classification_gaps`` lists the most frequent raw statuses that no
    synonym matched since startup. ``classification_gap_count`` counts
    classify() calls and grows with traffic; ``classification_gap_statuses``
    counts distinct unmatched statuses.
    """
    db_status = "healthy"
    try:
        if not context.fetcher.run("ping", context.repository.ping):
            db_status = "unhealthy: ping failed"
    except RepositoryError as e:
        db_status = f"unhealthy: {e}"

    refresher = getattr(request.app.state, "refresher", None)
    live_updates = bool(refresher and refresher.live)

    gaps = context.classifier.gaps()
    frequent = sorted(gaps.items(), key=lambda kv: (-kv[1], kv[0]))[:top_gaps]

    logger.info("system_status", database=db_status, live_updates=live_updates)

    return {
        "success": True,
        "data": {
            "status": "healthy" if db_status == "healthy" else "degraded",
            "version": __version__,
            "uptime_seconds": round(time.time() - _startup_time, 1),
            "database": db_status,
            "realtime_enabled": context.settings.enable_realtime,
            "live_updates": live_updates,
            "classification_gap_count": context.classifier.gap_count,
            "classification_gap_statuses": context.classifier.distinct_gap_count,
            "classification_gaps": [
                {"raw_status": raw, "occurrences": count} for raw, count in frequent
            ],
        },
    }
