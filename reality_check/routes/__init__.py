"""
Routes package for the Reality Check API.

Routers define their own feature prefixes ("/conversation", "/search", ...);
the application mounts them all under a common base path (``/api``).
"""

from __future__ import annotations

from fastapi import FastAPI

from .analysis import router as analysis_router
from .conversation import router as conversation_router
from .health import router as health_router
from .search import router as search_router

__all__ = [
    "analysis_router",
    "conversation_router",
    "health_router",
    "search_router",
    "all_routers",
    "register_all_routers",
]

all_routers = [
    conversation_router,
    search_router,
    analysis_router,
    health_router,
]


def register_all_routers(app: FastAPI, *, prefix: str = "/api") -> None:
    for router in all_routers:
        app.include_router(router, prefix=prefix)
