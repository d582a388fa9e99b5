# watchly/main.py
from __future__ import annotations

"""
# Watchly API — Application Entrypoint (FastAPI)

ASGI application factory and lifecycle for the Watchly movie catalog.

## Middleware order
1) request id → 2) CORS → 3) gzip → 4) strip `Server` header

## Lifespan
- Startup: resolve the staging directory, start the health monitor.
- Shutdown: stop the monitor, drain rendition jobs, dispose the DB engine.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable
import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware
from starlette.responses import JSONResponse, Response

from watchly.core import logger as _logsetup  # noqa: F401  (Loguru sinks + stdlib intercept)
from watchly.core.config import settings
from watchly.core.exception_handlers import install_exception_handlers
from watchly.core.exceptions import StagingException
from watchly.middleware.request_id import RequestIDMiddleware
from watchly.api.v1.routers import health_router, router as api_v1_router

logger = logging.getLogger("watchly")


# ─────────────────────────────────────────────────────────────────────────────
# 🔄 Lifespan: startup & shutdown
# ─────────────────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    from watchly.db.session import dispose_engine
    from watchly.services.health_service import get_health_sampler
    from watchly.services.media_host import get_media_host
    from watchly.services.staging import get_staging_area

    logger.info("✅ %s starting up (env=%s)", settings.PROJECT_NAME, settings.ENV)

    try:
        get_staging_area().resolve_directory()
    except StagingException:
        logger.error("No writable staging directory; uploads will fail until one is available")

    sampler = get_health_sampler()
    if settings.HEALTH_MONITOR_ENABLED:
        sampler.start_monitoring(settings.HEALTH_MONITOR_INTERVAL_MS)

    missing = settings.missing_required()
    if missing:
        logger.warning("Missing required settings: %s", ", ".join(missing))

    try:
        yield
    finally:
        sampler.stop_monitoring()

        try:
            await get_media_host().renditions.drain(timeout=settings.RENDITION_DRAIN_TIMEOUT)
        except Exception:
            logger.exception("Error draining rendition jobs")

        try:
            await dispose_engine()
            logger.info("🛑 Database engine disposed")
        except Exception:
            logger.exception("Error disposing DB engine")

        logger.info("🛑 %s shutting down", settings.PROJECT_NAME)


# ─────────────────────────────────────────────────────────────────────────────
# 🏗️ App factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app() -> FastAPI:
    """Build the FastAPI app with middleware, exception handlers and routers."""
    enable_docs = settings.ENABLE_DOCS
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        docs_url="/docs" if enable_docs else None,
        redoc_url="/redoc" if enable_docs else None,
        openapi_url="/openapi.json" if enable_docs else None,
        lifespan=lifespan,
    )

    # ── Middlewares (order matters) ─────────────────────────────────────────
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.frontend_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1024)

    @app.middleware("http")
    async def _strip_server_header(request: Request, call_next: Callable) -> Response:
        """Remove the `Server` header to avoid leaking implementation details."""
        response: Response = await call_next(request)
        if "server" in response.headers:
            del response.headers["server"]
        return response

    install_exception_handlers(app)

    # ── Routers ─────────────────────────────────────────────────────────────
    app.include_router(api_v1_router, prefix=settings.API_V1_STR)
    app.include_router(health_router)

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        return JSONResponse(
            {
                "name": settings.PROJECT_NAME,
                "docs": app.docs_url or "",
                "version": settings.VERSION,
            }
        )

    return app


# ─────────────────────────────────────────────────────────────────────────────
# 🚀 Module-level ASGI app for Uvicorn
# ─────────────────────────────────────────────────────────────────────────────
app = create_app()
__all__ = ["create_app", "app"]


# Local dev runner (prefer: `uvicorn watchly.main:app --reload`)
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "watchly.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=os.getenv("RELOAD", "1") == "1",
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
