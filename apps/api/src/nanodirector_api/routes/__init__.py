"""API routes."""

from .director import router as director_router
from .history import router as history_router
from .jobs import router as jobs_router
from .persistence import router as persistence_router

__all__ = [
    "director_router",
    "history_router",
    "jobs_router",
    "persistence_router",
]
