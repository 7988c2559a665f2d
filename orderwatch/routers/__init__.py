"""API routers for all endpoints."""

from orderwatch.routers import dashboard, system

__all__ = [
    "dashboard",
    "system",
]
