# watchly/api/v1/routers/health.py
# ╔══════════════════════════════════════════════════════════════════════════╗
# ║ 🩺 Watchly · Health API                                                  ║
# ║                                                                          ║
# ║  - GET /health            → fresh aggregate                              ║
# ║  - GET /health/detailed   → fresh aggregate + checks + system info       ║
# ║  - GET /health/cached     → last sampled aggregate (no probing)          ║
# ║  - GET /health/ping       → load-balancer ping                           ║
# ║  - GET /health/ready      → database + environment                       ║
# ║  - GET /health/live       → process liveness                             ║
# ║ healthy/warning → 200, unhealthy/not ready → 503                         ║
# ╚══════════════════════════════════════════════════════════════════════════╝

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from watchly.schemas.enums import HealthStatus
from watchly.schemas.health import HealthReport
from watchly.services.health_service import HealthSampler, get_health_sampler, liveness

router = APIRouter(prefix="/health", tags=["Health"])


def _status_code(report: HealthReport) -> int:
    if report.status is HealthStatus.UNHEALTHY:
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_200_OK


def _summary(report: HealthReport) -> Dict[str, Any]:
    healthy = report.status is HealthStatus.HEALTHY
    return {
        "success": healthy,
        "status": report.status.value,
        "message": "Server is healthy" if healthy else "Server has issues",
        "timestamp": report.timestamp.isoformat(),
        "uptime": report.uptime,
        "version": report.version,
    }


@router.get("", summary="Run all health checks")
async def health(sampler: HealthSampler = Depends(get_health_sampler)) -> JSONResponse:
    report = await sampler.check_now()
    return JSONResponse(_summary(report), status_code=_status_code(report))


@router.get("/detailed", summary="Health checks with per-check results and system info")
async def health_detailed(sampler: HealthSampler = Depends(get_health_sampler)) -> JSONResponse:
    report = await sampler.detailed()
    body = _summary(report)
    dumped = report.model_dump(mode="json", exclude_none=True)
    body["checks"] = dumped["checks"]
    body["system"] = dumped["system"]
    return JSONResponse(body, status_code=_status_code(report))


@router.get("/cached", summary="Last sampled health status")
async def health_cached(sampler: HealthSampler = Depends(get_health_sampler)) -> JSONResponse:
    report = sampler.cached_status()
    body = _summary(report)
    body["cached"] = True
    return JSONResponse(body, status_code=_status_code(report))


@router.get("/ping", summary="Ping")
async def ping() -> Dict[str, Any]:
    return {"success": True, "message": "pong", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/ready", summary="Readiness (database + environment)")
async def ready(sampler: HealthSampler = Depends(get_health_sampler)) -> JSONResponse:
    is_ready, report = await sampler.readiness()
    body = {
        "success": is_ready,
        "status": report.status,
        "message": "Service is ready" if is_ready else "Service is not ready",
        "timestamp": report.timestamp.isoformat(),
        "critical_checks": {name: check.status.value for name, check in report.checks.items()},
    }
    code = status.HTTP_200_OK if is_ready else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(body, status_code=code)


@router.get("/live", summary="Liveness")
async def live() -> JSONResponse:
    body = liveness()
    code = status.HTTP_200_OK if body["success"] else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(body, status_code=code)


__all__ = ["router"]
