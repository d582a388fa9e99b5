# tests/test_services/test_health.py
from __future__ import annotations

import asyncio

import pytest
from pydantic import SecretStr

from watchly.core.config import settings
from watchly.schemas.enums import HealthStatus
from watchly.schemas.health import CheckResult
from watchly.services import health_service
from watchly.services.health_service import (
    HealthSampler,
    check_database,
    check_environment,
    check_media_host,
    liveness,
    make_memory_check,
    make_staging_check,
    system_info,
)
from watchly.services.staging import StagingArea
from tests.fixtures.app import fixed_probe, healthy_probes

pytestmark = pytest.mark.anyio

MB = 1024 * 1024


@pytest.fixture()
def configured(monkeypatch):
    monkeypatch.setattr(settings, "DATABASE_URL", "postgresql://u:p@db.internal:5432/watchly")
    monkeypatch.setattr(settings, "AWS_BUCKET_NAME", "watchly-media")
    monkeypatch.setattr(settings, "AWS_ACCESS_KEY_ID", "AKIAEXAMPLEWXYZ")
    monkeypatch.setattr(settings, "AWS_SECRET_ACCESS_KEY", SecretStr("not-a-real-secret-1234"))


# ─────────────────────────────────────────────────────────────
# Aggregation
# ─────────────────────────────────────────────────────────────
async def test_all_healthy():
    report = await HealthSampler(healthy_probes(), version="t").check_now()
    assert report.status is HealthStatus.HEALTHY
    assert set(report.checks) == {"database", "media_host", "staging", "memory", "environment"}
    assert report.version == "t"


async def test_warning_outranks_healthy():
    probes = healthy_probes()
    probes["memory"] = fixed_probe(HealthStatus.WARNING, "High memory usage detected")
    report = await HealthSampler(probes).check_now()
    assert report.status is HealthStatus.WARNING


async def test_unhealthy_outranks_warning():
    probes = healthy_probes()
    probes["memory"] = fixed_probe(HealthStatus.WARNING)
    probes["media_host"] = fixed_probe(HealthStatus.UNHEALTHY)
    report = await HealthSampler(probes).check_now()
    assert report.status is HealthStatus.UNHEALTHY


async def test_raising_probe_counts_as_unhealthy():
    def broken() -> CheckResult:
        raise RuntimeError("disk on fire")

    probes = healthy_probes()
    probes["staging"] = broken
    report = await HealthSampler(probes).check_now()

    assert report.status is HealthStatus.UNHEALTHY
    assert report.checks["staging"].error == "disk on fire"
    assert report.checks["database"].status is HealthStatus.HEALTHY


async def test_async_probes_are_awaited():
    async def slow_db() -> CheckResult:
        await asyncio.sleep(0)
        return CheckResult(status=HealthStatus.UNHEALTHY, message="Database connection failed")

    probes = healthy_probes()
    probes["database"] = slow_db
    report = await HealthSampler(probes).check_now()
    assert report.checks["database"].message == "Database connection failed"


async def test_cached_status_follows_last_check():
    sampler = HealthSampler(healthy_probes())
    initial = sampler.cached_status()
    assert initial.status is HealthStatus.HEALTHY
    assert initial.checks == {}

    sampler.probes["database"] = fixed_probe(HealthStatus.UNHEALTHY)
    report = await sampler.check_now()
    assert sampler.cached_status() is report


async def test_detailed_includes_system_info():
    report = await HealthSampler(healthy_probes()).detailed()
    assert {"python_version", "platform", "pid", "memory_usage"} <= set(report.system)


# ─────────────────────────────────────────────────────────────
# Readiness / liveness
# ─────────────────────────────────────────────────────────────
async def test_ready_when_critical_checks_pass():
    probes = healthy_probes()
    probes["memory"] = fixed_probe(HealthStatus.WARNING)
    ready, report = await HealthSampler(probes).readiness()
    assert ready is True
    assert report.status == "ready"
    assert set(report.checks) == {"database", "environment"}


async def test_not_ready_when_database_fails():
    probes = healthy_probes()
    probes["database"] = fixed_probe(HealthStatus.UNHEALTHY)
    ready, report = await HealthSampler(probes).readiness()
    assert ready is False
    assert report.status == "not ready"


async def test_not_ready_when_critical_check_missing():
    probes = healthy_probes()
    del probes["environment"]
    ready, _ = await HealthSampler(probes).readiness()
    assert ready is False


def test_liveness_and_system_info():
    body = liveness()
    assert body["success"] is True
    assert body["status"] == "alive"
    assert body["uptime"] >= 0
    assert system_info()["pid"] > 0


# ─────────────────────────────────────────────────────────────
# Individual probes
# ─────────────────────────────────────────────────────────────
def test_memory_check_threshold():
    below = make_memory_check(limit_mb=512, rss_bytes=lambda: 100 * MB)()
    above = make_memory_check(limit_mb=512, rss_bytes=lambda: 600 * MB)()

    assert below.status is HealthStatus.HEALTHY
    assert below.details == {"rss": "100 MB", "warning_threshold": "512 MB"}
    assert above.status is HealthStatus.WARNING
    assert above.message == "High memory usage detected"


def test_environment_check_lists_missing(monkeypatch, configured):
    assert check_environment().status is HealthStatus.HEALTHY

    monkeypatch.setattr(settings, "AWS_BUCKET_NAME", None)
    monkeypatch.setattr(settings, "DATABASE_URL", "  ")
    result = check_environment()
    assert result.status is HealthStatus.UNHEALTHY
    assert result.error == "Missing: DATABASE_URL, AWS_BUCKET_NAME"


def test_media_host_check_masks_credentials(configured):
    result = check_media_host()
    assert result.status is HealthStatus.HEALTHY
    assert result.details["bucket"] == "watchly-media"
    assert result.details["access_key_id"] == "***WXYZ"
    assert result.details["secret_access_key"] == "***1234"
    assert "not-a-real-secret" not in str(result.model_dump())


def test_media_host_check_incomplete(monkeypatch, configured):
    monkeypatch.setattr(settings, "AWS_ACCESS_KEY_ID", None)
    result = check_media_host()
    assert result.status is HealthStatus.UNHEALTHY
    assert result.details is None


def test_staging_check_absent_directory_is_warning(tmp_path):
    result = make_staging_check(StagingArea(tmp_path / "not-yet"))()
    assert result.status is HealthStatus.WARNING
    assert result.message == "Staging directory does not exist"


def test_staging_check_counts_files(tmp_path):
    directory = tmp_path / "uploads"
    directory.mkdir()
    (directory / "video-1-1.mp4").write_bytes(b"x")
    (directory / ".keep").write_bytes(b"")

    result = make_staging_check(StagingArea(directory))()
    assert result.status is HealthStatus.HEALTHY
    assert result.details["files_count"] == 1
    assert result.details["path"] == str(directory)


async def test_database_check_reports_target(monkeypatch, configured):
    async def down() -> bool:
        return False

    monkeypatch.setattr(health_service, "db_healthcheck", down)
    result = await check_database()

    assert result.status is HealthStatus.UNHEALTHY
    assert result.details["host"] == "db.internal"
    assert result.details["database"] == "watchly"
    assert "p@" not in str(result.details)


# ─────────────────────────────────────────────────────────────
# Background monitoring
# ─────────────────────────────────────────────────────────────
async def test_monitoring_refreshes_cache():
    probes = healthy_probes()
    probes["memory"] = fixed_probe(HealthStatus.WARNING)
    sampler = HealthSampler(probes)
    sampler.start_monitoring(60_000)
    try:
        assert sampler.monitoring
        for _ in range(100):
            if sampler.cached_status().checks:
                break
            await asyncio.sleep(0.02)
        assert sampler.cached_status().status is HealthStatus.WARNING
    finally:
        sampler.stop_monitoring()
    assert not sampler.monitoring
