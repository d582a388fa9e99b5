# tests/test_movies/test_upload.py
from __future__ import annotations

import pytest
from httpx import AsyncClient

from watchly.core.exceptions import DatabaseException
from watchly.schemas.enums import ResourceKind
from tests.fixtures.uploads import IMAGE_BYTES, VIDEO_BYTES

pytestmark = pytest.mark.anyio

UPLOAD_URL = "/api/v1/movies/upload"


def _staged_files(staging_dir):
    if not staging_dir.exists():
        return []
    return [p for p in staging_dir.iterdir() if not p.name.startswith(".")]


async def test_upload_creates_movie(async_client: AsyncClient, upload_files, media_host, movie_repo, staging_dir):
    data = {"title": "Test", "description": "A test movie", "category": "Drama", "language": "en", "quality": "1080p"}
    r = await async_client.post(UPLOAD_URL, files=upload_files, data=data)

    assert r.status_code == 201, r.text
    body = r.json()
    assert body["id"]
    assert body["title"] == "Test"
    assert body["category"] == "Drama"
    assert body["video_url"].startswith("https://")
    assert body["thumbnail_url"].startswith("https://")
    assert body["video_asset_id"] and body["thumbnail_asset_id"]
    assert body["duration"] == 12.5
    assert body["byte_size"] == len(VIDEO_BYTES)
    assert body["created_at"].startswith("2025-10-01T12:00:00")

    assert media_host.uploaded_kinds == [ResourceKind.IMAGE, ResourceKind.VIDEO]
    thumb_options = media_host.uploads[0][2]
    assert (thumb_options.transformation.width, thumb_options.transformation.height) == (300, 200)
    video_options = media_host.uploads[1][2]
    assert video_options.chunk_size == 6_000_000
    assert media_host.rendition_requests == [(body["video_asset_id"], [720, 480])]

    assert len(await movie_repo.list_all()) == 1
    assert _staged_files(staging_dir) == []


async def test_uploaded_movie_is_listed_and_fetchable(async_client: AsyncClient, upload_files):
    created = (await async_client.post(UPLOAD_URL, files=upload_files, data={"title": "Listed"})).json()

    listed = (await async_client.get("/api/v1/movies")).json()
    assert [m["id"] for m in listed] == [created["id"]]

    r = await async_client.get(f"/api/v1/movies/{created['id']}")
    assert r.status_code == 200
    assert r.json()["title"] == "Listed"


@pytest.mark.parametrize("missing", ["video", "thumbnail"])
async def test_upload_requires_both_files(async_client: AsyncClient, upload_files, missing, media_host, staging_dir):
    upload_files.pop(missing)
    r = await async_client.post(UPLOAD_URL, files=upload_files, data={"title": "Test"})

    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["message"] == "Both video and thumbnail files are required"
    assert media_host.uploads == []
    assert _staged_files(staging_dir) == []


async def test_upload_rejects_invalid_video_type(async_client: AsyncClient, upload_files, media_host):
    upload_files["video"] = ("movie.txt", b"not a video", "text/plain")
    r = await async_client.post(UPLOAD_URL, files=upload_files)

    assert r.status_code == 400
    body = r.json()
    assert body["message"].startswith("Invalid video file type")
    assert "video/mp4" in body["details"]["allowed"]
    assert media_host.uploads == []


async def test_upload_rejects_invalid_thumbnail_type(async_client: AsyncClient, upload_files):
    upload_files["thumbnail"] = ("poster.bmp", IMAGE_BYTES, "image/bmp")
    r = await async_client.post(UPLOAD_URL, files=upload_files)

    assert r.status_code == 400
    assert r.json()["message"].startswith("Invalid image file type")


async def test_upload_accepts_quicktime(async_client: AsyncClient, upload_files):
    upload_files["video"] = ("clip.mov", VIDEO_BYTES, "video/quicktime")
    r = await async_client.post(UPLOAD_URL, files=upload_files)
    assert r.status_code == 201


async def test_upload_rejects_unexpected_field(async_client: AsyncClient, upload_files, media_host):
    files = [("video", upload_files["video"]), ("poster", upload_files["thumbnail"])]
    r = await async_client.post(UPLOAD_URL, files=files)

    assert r.status_code == 400
    assert r.json()["message"] == "Unexpected field: poster"
    assert media_host.uploads == []


async def test_upload_rejects_too_many_files(async_client: AsyncClient, upload_files, media_host, staging_dir):
    files = [
        ("video", upload_files["video"]),
        ("video", ("second.mp4", VIDEO_BYTES, "video/mp4")),
        ("thumbnail", upload_files["thumbnail"]),
    ]
    r = await async_client.post(UPLOAD_URL, files=files)

    assert r.status_code == 400
    assert r.json()["message"] == "Too many files. Maximum 2 files allowed."
    assert media_host.uploads == []
    assert _staged_files(staging_dir) == []


async def test_upload_rejects_duplicate_role(async_client: AsyncClient, upload_files, media_host):
    files = [("video", upload_files["video"]), ("video", ("second.mp4", VIDEO_BYTES, "video/mp4"))]
    r = await async_client.post(UPLOAD_URL, files=files)

    assert r.status_code == 400
    assert r.json()["message"].startswith("Too many files")
    assert media_host.uploads == []


async def test_upload_rejects_oversized_file(async_client: AsyncClient, upload_files, staging, media_host, staging_dir):
    staging.max_file_size = 1024
    r = await async_client.post(UPLOAD_URL, files=upload_files)

    assert r.status_code == 400
    assert r.json()["message"] == "File too large. Maximum size is 1KB."
    assert media_host.uploads == []
    assert _staged_files(staging_dir) == []


async def test_thumbnail_failure_never_attempts_video(
    async_client: AsyncClient, upload_files, media_host, movie_repo, staging_dir
):
    media_host.fail_kinds.add(ResourceKind.IMAGE)
    r = await async_client.post(UPLOAD_URL, files=upload_files, data={"title": "Test"})

    assert r.status_code == 500
    body = r.json()
    assert body["message"] == "image upload rejected by storage"
    assert body["details"] == {"stage": "thumbnail"}
    assert media_host.uploaded_kinds == [ResourceKind.IMAGE]
    assert media_host.deleted == []
    assert media_host.rendition_requests == []
    assert await movie_repo.list_all() == []
    assert _staged_files(staging_dir) == []


async def test_video_failure_retracts_thumbnail(
    async_client: AsyncClient, upload_files, media_host, movie_repo, staging_dir
):
    media_host.fail_kinds.add(ResourceKind.VIDEO)
    r = await async_client.post(UPLOAD_URL, files=upload_files)

    assert r.status_code == 500
    assert r.json()["details"] == {"stage": "video"}
    assert media_host.deleted == [("watchly/images/asset1.png", ResourceKind.IMAGE)]
    assert media_host.rendition_requests == []
    assert await movie_repo.list_all() == []
    assert _staged_files(staging_dir) == []


async def test_persistence_failure_retracts_both_assets(
    async_client: AsyncClient, upload_files, media_host, movie_repo, staging_dir, monkeypatch
):
    async def _boom(data):
        raise DatabaseException(details={"operation": "create"})

    monkeypatch.setattr(movie_repo, "create", _boom)
    r = await async_client.post(UPLOAD_URL, files=upload_files)

    assert r.status_code == 500
    assert r.json()["message"] == "Database operation failed"
    assert {kind for _, kind in media_host.deleted} == {ResourceKind.IMAGE, ResourceKind.VIDEO}
    # nothing is rendered for a movie that was never saved
    assert media_host.rendition_requests == []
    assert _staged_files(staging_dir) == []


async def test_upload_response_carries_request_id(async_client: AsyncClient, upload_files):
    r = await async_client.post(UPLOAD_URL, files=upload_files)
    assert r.headers.get("X-Request-ID")


async def test_upload_error_body_echoes_request_id(async_client: AsyncClient, upload_files):
    rid = "8f14e45f-ceea-4e7b-9c1a-2f1f3c6c9d10"
    upload_files.pop("video")
    r = await async_client.post(UPLOAD_URL, files=upload_files, headers={"X-Request-ID": rid})

    assert r.status_code == 400
    assert r.json()["request_id"] == rid
    assert r.headers["X-Request-ID"] == rid


async def test_upload_accepts_thumbnail_without_extension(async_client: AsyncClient, upload_files, media_host):
    upload_files["thumbnail"] = ("poster", IMAGE_BYTES, "image/png")
    r = await async_client.post(UPLOAD_URL, files=upload_files)

    assert r.status_code == 201, r.text
    staged_thumbnail = media_host.uploads[0][1]
    assert staged_thumbnail.suffix == ".png"
    assert r.json()["thumbnail_asset_id"].endswith(".png")
