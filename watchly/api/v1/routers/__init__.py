"""
🧭 Watchly • API v1 Router Aggregator
====================================

`build_v1_router()` composes the versioned API surface (mounted under
`settings.API_V1_STR`). Health routes are mounted at the root by `main.py`.
"""

from fastapi import APIRouter

from .health import router as health_router
from .movies import router as movies_router


def build_v1_router() -> APIRouter:
    r = APIRouter()
    r.include_router(movies_router)
    return r


router = build_v1_router()

__all__ = ["router", "build_v1_router", "health_router", "movies_router"]
