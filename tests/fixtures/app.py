# tests/fixtures/app.py
"""
🧩 App fixtures
- Builds the real app via `create_app()`
- Overrides the movie service (memory repo + fake media host + tmp staging)
- Overrides the health sampler with deterministic probes
- Exposes an httpx AsyncClient over ASGITransport
"""

from __future__ import annotations

from typing import AsyncGenerator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from watchly.dependencies.movies import get_movie_service
from watchly.main import create_app
from watchly.repositories.movies import MemoryMovieRepository
from watchly.schemas.enums import HealthStatus
from watchly.schemas.health import CheckResult
from watchly.services.health_service import HealthSampler, get_health_sampler
from watchly.services.movie_service import MovieService
from watchly.services.staging import StagingArea
from tests.fixtures.mocks.media import FakeMediaHost


def fixed_probe(status: HealthStatus, message: str = "ok"):
    def probe() -> CheckResult:
        return CheckResult(status=status, message=message)

    return probe


def healthy_probes():
    return {
        name: fixed_probe(HealthStatus.HEALTHY)
        for name in ("database", "media_host", "staging", "memory", "environment")
    }


@pytest.fixture()
def movie_repo() -> MemoryMovieRepository:
    return MemoryMovieRepository()


@pytest.fixture()
def media_host() -> FakeMediaHost:
    return FakeMediaHost()


@pytest.fixture()
def staging_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture()
def staging(staging_dir) -> StagingArea:
    return StagingArea(staging_dir)


@pytest.fixture()
def movie_service(movie_repo, media_host, staging) -> MovieService:
    return MovieService(movie_repo, media_host, staging)  # type: ignore[arg-type]


@pytest.fixture()
def health_probes():
    """Mutable probe map; tests swap entries to simulate failures."""
    return healthy_probes()


@pytest.fixture()
def health_sampler(health_probes) -> HealthSampler:
    return HealthSampler(probes=health_probes, version="test")


@pytest.fixture()
def app(movie_service, health_sampler) -> FastAPI:
    app = create_app()
    app.dependency_overrides[get_movie_service] = lambda: movie_service
    app.dependency_overrides[get_health_sampler] = lambda: health_sampler
    return app


@pytest.fixture()
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


__all__ = [
    "fixed_probe",
    "healthy_probes",
    "movie_repo",
    "media_host",
    "staging_dir",
    "staging",
    "movie_service",
    "health_probes",
    "health_sampler",
    "app",
    "async_client",
]
