from __future__ import annotations

"""
🩺 Watchly — Health sampler
===========================

Runs a fixed set of probes and aggregates them worst-of
(unhealthy > warning > healthy):

- `database`    → `SELECT 1` through the async engine
- `media_host`  → S3 credentials/bucket configured (no network call)
- `staging`     → staging directory present and listable
- `memory`      → process RSS below `HEALTH_MEMORY_WARNING_MB`
- `environment` → required settings present

The latest report lives in a `HealthState` written only by `check_now()`;
an APScheduler interval job keeps it fresh for `/health/cached`.
"""

import inspect
import logging
import os
import platform
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union

import psutil
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.engine import make_url

from watchly.core.config import settings
from watchly.db.session import db_healthcheck
from watchly.schemas.enums import HealthStatus
from watchly.schemas.health import CheckResult, DetailedHealthReport, HealthReport, ReadinessReport
from watchly.services.staging import StagingArea, get_staging_area

logger = logging.getLogger(__name__)

PROCESS_STARTED = time.monotonic()
CRITICAL_CHECKS = ("database", "environment")

Probe = Callable[[], Union[CheckResult, Awaitable[CheckResult]]]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _uptime() -> float:
    return round(time.monotonic() - PROCESS_STARTED, 3)


def _mask(value: Optional[str]) -> str:
    if not value:
        return "not set"
    return "***" + value[-4:]


# ──────────────────────────────────────────────────────────────
# 🔎 Probes
# ──────────────────────────────────────────────────────────────
async def check_database() -> CheckResult:
    url = make_url(settings.ASYNC_DATABASE_URL)
    details = {"dialect": url.get_backend_name(), "host": url.host, "port": url.port, "database": url.database}
    if await db_healthcheck():
        return CheckResult(status=HealthStatus.HEALTHY, message="Database connection successful", details=details)
    return CheckResult(
        status=HealthStatus.UNHEALTHY,
        message="Database connection failed",
        details=details,
        error="SELECT 1 did not succeed",
    )


def check_media_host() -> CheckResult:
    if not settings.media_host_configured:
        return CheckResult(
            status=HealthStatus.UNHEALTHY,
            message="Media host configuration incomplete",
            error="Missing required S3 bucket or credentials",
        )
    secret = settings.AWS_SECRET_ACCESS_KEY.get_secret_value() if settings.AWS_SECRET_ACCESS_KEY else None
    return CheckResult(
        status=HealthStatus.HEALTHY,
        message="Media host configuration valid",
        details={
            "bucket": settings.AWS_BUCKET_NAME,
            "region": settings.AWS_REGION,
            "cdn": settings.cdn_base_url or None,
            "access_key_id": _mask(settings.AWS_ACCESS_KEY_ID),
            "secret_access_key": _mask(secret),
        },
    )


def make_staging_check(staging: StagingArea) -> Probe:
    def check_staging() -> CheckResult:
        directory = staging.known_directory
        try:
            if not directory.exists():
                return CheckResult(
                    status=HealthStatus.WARNING,
                    message="Staging directory does not exist",
                    details={"path": str(directory), "suggestion": "Directory is created on first upload"},
                )
            files = staging.list_files()
            return CheckResult(
                status=HealthStatus.HEALTHY,
                message="Staging directory available",
                details={
                    "path": str(directory),
                    "files_count": len(files),
                    "last_modified": datetime.fromtimestamp(directory.stat().st_mtime, timezone.utc).isoformat(),
                },
            )
        except OSError as exc:
            return CheckResult(status=HealthStatus.UNHEALTHY, message="Staging directory check failed", error=str(exc))

    return check_staging


def make_memory_check(limit_mb: Optional[int] = None, rss_bytes: Optional[Callable[[], int]] = None) -> Probe:
    def check_memory() -> CheckResult:
        limit = limit_mb or settings.HEALTH_MEMORY_WARNING_MB
        rss = rss_bytes() if rss_bytes else psutil.Process().memory_info().rss
        rss_mb = round(rss / 1024 / 1024)
        healthy = rss_mb < limit
        return CheckResult(
            status=HealthStatus.HEALTHY if healthy else HealthStatus.WARNING,
            message="Memory usage normal" if healthy else "High memory usage detected",
            details={"rss": f"{rss_mb} MB", "warning_threshold": f"{limit} MB"},
        )

    return check_memory


def check_environment() -> CheckResult:
    missing = settings.missing_required()
    if missing:
        return CheckResult(
            status=HealthStatus.UNHEALTHY,
            message="Missing required environment variables",
            error=f"Missing: {', '.join(missing)}",
        )
    return CheckResult(
        status=HealthStatus.HEALTHY,
        message="All required environment variables are set",
        details={"port": settings.PORT, "env": settings.ENV},
    )


def default_probes(staging: Optional[StagingArea] = None) -> Dict[str, Probe]:
    return {
        "database": check_database,
        "media_host": check_media_host,
        "staging": make_staging_check(staging or get_staging_area()),
        "memory": make_memory_check(),
        "environment": check_environment,
    }


# ──────────────────────────────────────────────────────────────
# 🧠 State + sampler
# ──────────────────────────────────────────────────────────────
class HealthState:
    """Holds the most recent report; replaced wholesale, read without locking."""

    def __init__(self, version: str) -> None:
        self.report = HealthReport(timestamp=_now(), uptime=_uptime(), version=version)

    def replace(self, report: HealthReport) -> None:
        self.report = report


class HealthSampler:
    def __init__(self, probes: Optional[Dict[str, Probe]] = None, *, version: Optional[str] = None) -> None:
        self._probes = probes
        self.version = version or settings.VERSION
        self.state = HealthState(self.version)
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def probes(self) -> Dict[str, Probe]:
        if self._probes is None:
            self._probes = default_probes()
        return self._probes

    async def _run_probe(self, name: str, probe: Probe) -> CheckResult:
        try:
            result = probe()
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as exc:
            logger.exception("Health probe %s raised", name)
            return CheckResult(status=HealthStatus.UNHEALTHY, message=f"{name} check failed", error=str(exc))

    async def check_now(self) -> HealthReport:
        """Run every probe, publish the aggregate to the cache and return it."""
        checks = {name: await self._run_probe(name, probe) for name, probe in self.probes.items()}
        report = HealthReport(
            status=HealthStatus.worst(c.status for c in checks.values()),
            timestamp=_now(),
            uptime=_uptime(),
            version=self.version,
            checks=checks,
        )
        self.state.replace(report)
        if report.status is not HealthStatus.HEALTHY:
            failing = {k: v.status.value for k, v in checks.items() if v.status is not HealthStatus.HEALTHY}
            logger.warning("Health status %s: %s", report.status.value, failing)
        return report

    def cached_status(self) -> HealthReport:
        return self.state.report

    async def detailed(self) -> DetailedHealthReport:
        report = await self.check_now()
        return DetailedHealthReport(**report.model_dump(), system=system_info())

    async def readiness(self) -> Tuple[bool, ReadinessReport]:
        report = await self.check_now()
        critical = {name: report.checks[name] for name in CRITICAL_CHECKS if name in report.checks}
        ready = len(critical) == len(CRITICAL_CHECKS) and all(
            c.status is HealthStatus.HEALTHY for c in critical.values()
        )
        return ready, ReadinessReport(
            status="ready" if ready else "not ready",
            timestamp=report.timestamp,
            checks=critical,
        )

    # ─────────────────────────────────────────────────────────
    # ⏱️ Background monitoring
    # ─────────────────────────────────────────────────────────
    @property
    def monitoring(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start_monitoring(self, interval_ms: Optional[int] = None) -> None:
        """Refresh the cached report every `interval_ms` (needs a running event loop)."""
        if self.monitoring:
            return
        interval_ms = interval_ms or settings.HEALTH_MONITOR_INTERVAL_MS
        sched = AsyncIOScheduler(timezone=timezone.utc)
        sched.add_job(
            self._refresh,
            IntervalTrigger(seconds=interval_ms / 1000, timezone=timezone.utc),
            id="health_refresh",
            max_instances=1,
            coalesce=True,
            next_run_time=_now(),
        )
        sched.start()
        self._scheduler = sched
        logger.info("Health monitoring started (interval: %sms)", interval_ms)

    def stop_monitoring(self) -> None:
        if self._scheduler is not None:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Health monitoring stopped")

    async def _refresh(self) -> None:
        try:
            await self.check_now()
        except Exception as exc:
            logger.warning("Scheduled health check failed: %s", exc)


def system_info() -> Dict[str, Any]:
    proc = psutil.Process()
    return {
        "python_version": platform.python_version(),
        "platform": platform.system().lower(),
        "arch": platform.machine(),
        "pid": os.getpid(),
        "memory_usage": proc.memory_info()._asdict(),
        "cpu_times": proc.cpu_times()._asdict(),
    }


def liveness() -> Dict[str, Any]:
    uptime = _uptime()
    alive = uptime >= 0
    return {
        "success": alive,
        "status": "alive" if alive else "dead",
        "message": "Process is alive" if alive else "Process is not responding",
        "uptime": uptime,
        "timestamp": _now().isoformat(),
    }


_sampler: Optional[HealthSampler] = None


def get_health_sampler() -> HealthSampler:
    global _sampler
    if _sampler is None:
        _sampler = HealthSampler()
    return _sampler


__all__ = [
    "HealthSampler",
    "HealthState",
    "check_database",
    "check_media_host",
    "check_environment",
    "make_staging_check",
    "make_memory_check",
    "default_probes",
    "system_info",
    "liveness",
    "get_health_sampler",
]
