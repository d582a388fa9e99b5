# tests/test_movies/test_crud.py
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from watchly.schemas.enums import ResourceKind
from watchly.schemas.movie import MovieCreate

pytestmark = pytest.mark.anyio


async def _seed(repo, title: str = "Seeded", created_at: datetime | None = None):
    return await repo.create(
        MovieCreate(
            title=title,
            description="desc",
            category="Drama",
            language="en",
            quality="720p",
            thumbnail_url="https://cdn.test/watchly/images/t.png",
            thumbnail_asset_id="watchly/images/t.png",
            video_url="https://cdn.test/watchly/videos/v.mp4",
            video_asset_id="watchly/videos/v.mp4",
            format="mp4",
            duration=42.0,
            byte_size=1024,
            width=1280,
            height=720,
            created_at=created_at or datetime(2025, 1, 1, tzinfo=timezone.utc),
        )
    )


async def test_list_movies_empty(async_client: AsyncClient):
    r = await async_client.get("/api/v1/movies")
    assert r.status_code == 200
    assert r.json() == []


async def test_list_movies_newest_first(async_client: AsyncClient, movie_repo):
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)
    older = await _seed(movie_repo, "Older", base)
    newer = await _seed(movie_repo, "Newer", base + timedelta(days=1))

    r = await async_client.get("/api/v1/movies")
    assert [m["id"] for m in r.json()] == [str(newer.id), str(older.id)]


async def test_get_movie_not_found(async_client: AsyncClient):
    r = await async_client.get(f"/api/v1/movies/{uuid.uuid4()}")
    assert r.status_code == 404
    body = r.json()
    assert body["success"] is False
    assert body["message"] == "Movie not found"


async def test_get_movie_malformed_id_is_not_found(async_client: AsyncClient):
    r = await async_client.get("/api/v1/movies/not-a-uuid")
    assert r.status_code == 404


async def test_update_changes_only_given_fields(async_client: AsyncClient, movie_repo):
    movie = await _seed(movie_repo)

    r = await async_client.put(f"/api/v1/movies/{movie.id}", json={"title": "New Title"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["title"] == "New Title"
    assert body["description"] == "desc"
    assert body["video_asset_id"] == movie.video_asset_id
    assert body["id"] == str(movie.id)
    assert body["created_at"] == movie.created_at.isoformat().replace("+00:00", "Z")


async def test_update_rejects_created_at(async_client: AsyncClient, movie_repo):
    movie = await _seed(movie_repo)
    r = await async_client.put(f"/api/v1/movies/{movie.id}", json={"created_at": "2030-01-01T00:00:00Z"})
    assert r.status_code == 400
    assert (await movie_repo.get(movie.id)).created_at == movie.created_at


async def test_update_requires_changes(async_client: AsyncClient, movie_repo):
    movie = await _seed(movie_repo)
    r = await async_client.put(f"/api/v1/movies/{movie.id}", json={})
    assert r.status_code == 400
    assert r.json()["message"] == "No updatable fields provided"


async def test_update_unknown_movie(async_client: AsyncClient):
    r = await async_client.put(f"/api/v1/movies/{uuid.uuid4()}", json={"title": "x"})
    assert r.status_code == 404


async def test_delete_removes_record_and_assets(async_client: AsyncClient, movie_repo, media_host):
    movie = await _seed(movie_repo)

    r = await async_client.delete(f"/api/v1/movies/{movie.id}")
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "Movie deleted"}
    assert media_host.deleted == [
        ("watchly/images/t.png", ResourceKind.IMAGE),
        ("watchly/videos/v.mp4", ResourceKind.VIDEO),
    ]
    assert (await async_client.get(f"/api/v1/movies/{movie.id}")).status_code == 404


async def test_delete_unknown_movie_makes_no_remote_calls(async_client: AsyncClient, media_host):
    r = await async_client.delete(f"/api/v1/movies/{uuid.uuid4()}")
    assert r.status_code == 404
    assert media_host.deleted == []


async def test_delete_succeeds_when_remote_delete_fails(async_client: AsyncClient, movie_repo, media_host):
    movie = await _seed(movie_repo)
    media_host.delete_result = False

    r = await async_client.delete(f"/api/v1/movies/{movie.id}")
    assert r.status_code == 200
    assert await movie_repo.get(movie.id) is None
