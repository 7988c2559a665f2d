"""
FastAPI dependencies shared by the routers.

The EngineContext is built once per process from settings and the cached
repository. Tests replace it through ``app.dependency_overrides``.
The live DashboardRefresher, when running, lives on ``app.state``.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Request

from orderwatch.config import get_settings
from orderwatch.engine import DashboardRefresher, EngineContext
from orderwatch.storage import get_repository


@lru_cache
def get_engine_context() -> EngineContext:
    """Process-wide engine context for request handlers."""
    settings = get_settings()
    repository = get_repository()
    return EngineContext(repository, settings=settings)


def get_live_refresher(request: Request) -> Optional[DashboardRefresher]:
    """
    Refresher started by the app lifespan, while it receives change events.

    A refresher whose channels could not be opened is not returned: its
    snapshot would never move, so callers compute on demand instead.
    """
    refresher = getattr(request.app.state, "refresher", None)
    if refresher is None or not refresher.live:
        return None
    return refresher
