from __future__ import annotations

"""
🎬 Watchly — Movie service (upload orchestration + catalog CRUD)
================================================================

`create_movie` runs one upload end to end:

    validate staged files → upload thumbnail (fill-crop) → upload video
    (multipart) → persist record → request renditions → release staged files

Failure semantics
-----------------
- Thumbnail failure aborts before the video is attempted.
- Video failure retracts the stored thumbnail.
- Persistence failure retracts both stored assets.
- Renditions are only requested for a persisted record, so a retracted video
  never has a rendition job writing next to it.
- Staged files are released on every exit path.
Retractions are best-effort: failures are logged and the original error wins.
"""

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from starlette.datastructures import UploadFile

from watchly.core.config import settings
from watchly.core.exceptions import (
    NotFoundException,
    RemoteUploadException,
    ValidationException,
)
from watchly.repositories.movies import MovieRepositoryProtocol
from watchly.schemas.enums import MediaRole, ResourceKind
from watchly.schemas.movie import MovieCreate, MovieFields, MovieRecord
from watchly.services.media_host import (
    MediaHost,
    MediaHostError,
    MediaUploadResult,
    Transformation,
    UploadOptions,
)
from watchly.services.staging import StagedFile, StagingArea

logger = logging.getLogger(__name__)

BOTH_FILES_REQUIRED = "Both video and thumbnail files are required"


class MovieService:
    def __init__(self, repo: MovieRepositoryProtocol, media: MediaHost, staging: StagingArea):
        self.repo = repo
        self.media = media
        self.staging = staging

    # ─────────────────────────────────────────────────────────
    # ⬆️ Upload
    # ─────────────────────────────────────────────────────────
    async def ingest(self, fields: MovieFields, uploads: Dict[MediaRole, UploadFile]) -> MovieRecord:
        """Stage both uploads and create the movie; nothing touches disk if one is missing."""
        if MediaRole.VIDEO not in uploads or MediaRole.THUMBNAIL not in uploads:
            raise ValidationException(BOTH_FILES_REQUIRED)
        staged = await self.staging.stage_all(uploads)
        return await self.create_movie(
            fields,
            staged.get(MediaRole.THUMBNAIL),
            staged.get(MediaRole.VIDEO),
        )

    async def create_movie(
        self,
        fields: MovieFields,
        staged_thumbnail: Optional[StagedFile],
        staged_video: Optional[StagedFile],
    ) -> MovieRecord:
        try:
            if not _usable(staged_thumbnail) or not _usable(staged_video):
                raise ValidationException(BOTH_FILES_REQUIRED)

            thumbnail = await self._upload(
                "thumbnail",
                staged_thumbnail,
                ResourceKind.IMAGE,
                UploadOptions(
                    content_type=staged_thumbnail.content_type,
                    transformation=Transformation(settings.THUMBNAIL_WIDTH, settings.THUMBNAIL_HEIGHT),
                ),
            )
            try:
                video = await self._upload(
                    "video",
                    staged_video,
                    ResourceKind.VIDEO,
                    UploadOptions(
                        content_type=staged_video.content_type,
                        chunk_size=settings.VIDEO_CHUNK_SIZE,
                    ),
                )
            except RemoteUploadException:
                await self._retract(thumbnail, ResourceKind.IMAGE)
                raise

            try:
                record = await self.repo.create(_build_record(fields, thumbnail, video))
            except Exception:
                await self._retract(thumbnail, ResourceKind.IMAGE)
                await self._retract(video, ResourceKind.VIDEO)
                raise
        finally:
            self.staging.release_all([staged_thumbnail, staged_video])

        self.media.request_renditions(video, settings.rendition_heights)
        logger.info("Created movie %s (%r)", record.id, record.title)
        return record

    async def _upload(
        self,
        stage: str,
        staged: StagedFile,
        kind: ResourceKind,
        options: UploadOptions,
    ) -> MediaUploadResult:
        try:
            return await self.media.upload(staged.path, kind, options)
        except MediaHostError as exc:
            raise RemoteUploadException(str(exc), stage=stage) from exc

    async def _retract(self, result: MediaUploadResult, kind: ResourceKind) -> None:
        if not await self.media.delete(result.asset_id, kind):
            logger.warning("Orphaned %s asset left on media host: %s", kind.value, result.asset_id)

    # ─────────────────────────────────────────────────────────
    # 📚 Catalog
    # ─────────────────────────────────────────────────────────
    async def list_movies(self) -> List[MovieRecord]:
        return await self.repo.list_all()

    async def get_movie(self, movie_id: UUID) -> MovieRecord:
        record = await self.repo.get(movie_id)
        if record is None:
            raise NotFoundException("Movie not found", details={"id": str(movie_id)})
        return record

    async def update_movie(self, movie_id: UUID, changes: Dict[str, Any]) -> MovieRecord:
        if not changes:
            raise ValidationException("No updatable fields provided")
        record = await self.repo.update(movie_id, changes)
        if record is None:
            raise NotFoundException("Movie not found", details={"id": str(movie_id)})
        return record

    async def delete_movie(self, movie_id: UUID) -> None:
        record = await self.get_movie(movie_id)
        # Remote deletion failures never block removing the record.
        if record.thumbnail_asset_id:
            await self.media.delete(record.thumbnail_asset_id, ResourceKind.IMAGE)
        if record.video_asset_id:
            await self.media.delete(record.video_asset_id, ResourceKind.VIDEO)
        if not await self.repo.delete(movie_id):
            raise NotFoundException("Movie not found", details={"id": str(movie_id)})
        logger.info("Deleted movie %s", movie_id)


def _usable(staged: Optional[StagedFile]) -> bool:
    return staged is not None and staged.size > 0 and staged.exists


def _build_record(fields: MovieFields, thumbnail: MediaUploadResult, video: MediaUploadResult) -> MovieCreate:
    return MovieCreate(
        **fields.model_dump(),
        thumbnail_url=thumbnail.url,
        thumbnail_asset_id=thumbnail.asset_id,
        video_url=video.url,
        video_asset_id=video.asset_id,
        format=video.format,
        duration=video.duration_seconds,
        byte_size=video.byte_size,
        width=video.width,
        height=video.height,
        created_at=video.created_at,
    )


__all__ = ["MovieService", "BOTH_FILES_REQUIRED"]
