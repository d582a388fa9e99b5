from __future__ import annotations

"""
☁️ Watchly — Remote media host
==============================

Forwards staged files to S3 (optionally fronted by CloudFront) and reports
what was stored.

Upload flow
-----------
1) Optional image transformation (fill-crop W×H) into a sibling temp file
   whose extension follows the declared content type
2) Best-effort ffprobe for format / duration / width / height
3) Managed streaming transfer from disk (multipart for large videos), in a
   worker thread so the event loop stays free

Renditions are requested separately with `request_renditions()` once the
caller has committed to keeping the video (the movie record is persisted).

The object key is the durable asset id:
`<MEDIA_FOLDER>/<images|videos>/<uuid><ext>`.
"""

import asyncio
import logging
import os
import posixpath
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional
from uuid import uuid4

from watchly.core.config import settings
from watchly.schemas.enums import ResourceKind
from watchly.services.renditions import RenditionScheduler, rendition_key
from watchly.utils import media_probe
from watchly.utils.aws import S3Client, S3StorageError

logger = logging.getLogger(__name__)


class MediaHostError(RuntimeError):
    """Storage or transformation failure; the message is safe to show to clients."""


@dataclass
class Transformation:
    width: int
    height: int
    crop: str = "fill"


@dataclass
class UploadOptions:
    content_type: Optional[str] = None
    transformation: Optional[Transformation] = None
    chunk_size: Optional[int] = None


@dataclass
class MediaUploadResult:
    asset_id: str
    url: str
    format: Optional[str]
    byte_size: int
    created_at: datetime
    duration_seconds: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None


class MediaHost:
    """S3-backed media host. The S3 client is built on first use."""

    def __init__(
        self,
        s3: Optional[S3Client] = None,
        *,
        folder: Optional[str] = None,
        renditions: Optional[RenditionScheduler] = None,
    ) -> None:
        self._s3 = s3
        self.folder = (folder if folder is not None else settings.MEDIA_FOLDER).strip("/")
        self.renditions = renditions or RenditionScheduler(lambda: self.s3)

    @property
    def s3(self) -> S3Client:
        if self._s3 is None:
            self._s3 = S3Client()
        return self._s3

    def new_key(self, kind: ResourceKind, filename: str) -> str:
        ext = os.path.splitext(filename)[1].lower()
        return posixpath.join(self.folder, kind.folder, f"{uuid4().hex}{ext}")

    # ─────────────────────────────────────────────────────────
    # ⬆️ Upload
    # ─────────────────────────────────────────────────────────
    async def upload(
        self,
        file_path: Path,
        kind: ResourceKind,
        options: Optional[UploadOptions] = None,
    ) -> MediaUploadResult:
        """Store `file_path`; completes once the primary object is in the bucket."""
        options = options or UploadOptions()
        source = Path(file_path)
        derived: Optional[Path] = None
        try:
            if options.transformation is not None:
                t = options.transformation
                ext = media_probe.ext_for_content_type(options.content_type) or source.suffix or ".png"
                derived = source.with_name(f"{source.stem}-{t.crop}-{t.width}x{t.height}{ext}")
                await asyncio.to_thread(media_probe.fill_crop, str(source), str(derived), t.width, t.height)
                source = derived

            info = await self._probe(source)
            key = self.new_key(kind, source.name)
            await asyncio.to_thread(
                self.s3.upload_file,
                str(source),
                key,
                content_type=options.content_type,
                multipart_chunksize=options.chunk_size,
            )
            byte_size = source.stat().st_size
        except (S3StorageError, media_probe.MediaProcessingError, OSError) as exc:
            logger.error("%s upload of %s failed: %s", kind.value, file_path, exc)
            raise MediaHostError(str(exc)) from exc
        finally:
            if derived is not None:
                derived.unlink(missing_ok=True)

        logger.info("Stored %s %s (%d bytes)", kind.value, key, byte_size)
        return MediaUploadResult(
            asset_id=key,
            url=self.s3.public_url(key),
            format=info.format,
            byte_size=byte_size,
            created_at=datetime.now(timezone.utc),
            duration_seconds=info.duration,
            width=info.width,
            height=info.height,
        )

    async def _probe(self, path: Path) -> media_probe.MediaInfo:
        try:
            return await asyncio.to_thread(media_probe.probe, str(path))
        except (media_probe.MediaProcessingError, OSError) as exc:
            logger.warning("Could not read media attributes of %s: %s", path.name, exc)
            return media_probe.MediaInfo(format=path.suffix.lstrip(".").lower() or None)

    def request_renditions(
        self,
        video: MediaUploadResult,
        heights: Optional[Iterable[int]] = None,
    ) -> Optional[asyncio.Task]:
        """Start background renditions of a stored video; does not wait for them."""
        return self.renditions.schedule(video.asset_id, heights, source_height=video.height)

    # ─────────────────────────────────────────────────────────
    # 🗑️ Delete
    # ─────────────────────────────────────────────────────────
    async def delete(self, asset_id: str, kind: ResourceKind) -> bool:
        """Best-effort removal of an asset (and, for videos, its renditions)."""
        if not asset_id:
            return False
        if kind is ResourceKind.VIDEO:
            self.renditions.cancel(asset_id)
        try:
            ok = await asyncio.to_thread(self.s3.delete, asset_id)
            if kind is ResourceKind.VIDEO:
                for height in self.renditions.heights:
                    await asyncio.to_thread(self.s3.delete, rendition_key(asset_id, height))
        except Exception as exc:
            logger.warning("Failed to delete %s %s: %s", kind.value, asset_id, exc)
            return False
        if not ok:
            logger.warning("Media host did not confirm deletion of %s %s", kind.value, asset_id)
        return ok


_media_host: Optional[MediaHost] = None


def get_media_host() -> MediaHost:
    global _media_host
    if _media_host is None:
        _media_host = MediaHost()
    return _media_host


__all__ = [
    "MediaHost",
    "MediaHostError",
    "MediaUploadResult",
    "Transformation",
    "UploadOptions",
    "get_media_host",
]
