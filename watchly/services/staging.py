from __future__ import annotations

"""
🗂️ Watchly — Upload staging
===========================

Uploads are written to a local staging directory before being forwarded to
the media host, and removed again on every exit path.

Steps
-----
1) `collect(form)`   → validate count / field / type / declared size (no disk writes)
2) `stage(upload)`   → stream to `<role>-<epoch-ms>-<random><ext>` in chunks
                       (`<ext>` from the filename, else from the content type)
3) `release(staged)` → unlink; errors are logged, never raised

Directory resolution tries an ordered candidate list (configured
`UPLOAD_DIR` or the project's `uploads/`, then `./uploads`, then
`<tmp>/watchly-uploads`) and keeps the first writable one.
"""

import logging
import os
import re
import secrets
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import FormData, UploadFile

from watchly.core.config import settings
from watchly.core.exceptions import (
    InvalidFileTypeException,
    PayloadTooLargeException,
    StagingException,
    TooManyFilesException,
    ValidationException,
)
from watchly.schemas.enums import MediaRole
from watchly.utils.media_probe import ext_for_content_type

logger = logging.getLogger(__name__)

ALLOWED_TYPES: Dict[MediaRole, tuple] = {
    MediaRole.VIDEO: (
        "video/mp4",
        "video/avi",
        "video/mov",
        "video/quicktime",
        "video/wmv",
        "video/flv",
        "video/webm",
    ),
    MediaRole.THUMBNAIL: (
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
    ),
}
_TYPE_LABELS = {MediaRole.VIDEO: "video", MediaRole.THUMBNAIL: "image"}

PROJECT_UPLOADS_DIR = Path(__file__).resolve().parents[2] / "uploads"
_SAFE_EXT_RE = re.compile(r"^\.[A-Za-z0-9]{1,10}$")


@dataclass
class StagedFile:
    """A single upload persisted to the staging directory."""

    path: Path
    role: MediaRole
    filename: str
    content_type: Optional[str]
    size: int

    @property
    def exists(self) -> bool:
        return self.path.exists()


def _is_empty_part(upload: UploadFile) -> bool:
    # Browsers send an empty, nameless part for an unselected file input.
    return not upload.filename and not upload.size


def _safe_ext(filename: Optional[str]) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    return ext if _SAFE_EXT_RE.match(ext) else ""


def _base_content_type(content_type: Optional[str]) -> str:
    return (content_type or "").split(";", 1)[0].strip().lower()


class StagingArea:
    """Owns the staging directory and the lifecycle of staged files."""

    def __init__(
        self,
        directory: Optional[Path] = None,
        *,
        max_file_size: Optional[int] = None,
        max_files: Optional[int] = None,
        chunk_size: Optional[int] = None,
    ) -> None:
        self._explicit = Path(directory) if directory is not None else None
        self._directory: Optional[Path] = None
        self.max_file_size = max_file_size or settings.UPLOAD_MAX_FILE_SIZE
        self.max_files = max_files or settings.UPLOAD_MAX_FILES
        self.chunk_size = chunk_size or settings.UPLOAD_CHUNK_SIZE

    # ─────────────────────────────────────────────────────────
    # 📁 Directory resolution
    # ─────────────────────────────────────────────────────────
    def candidates(self) -> List[Path]:
        if self._explicit is not None:
            return [self._explicit]
        ordered = [
            Path(settings.UPLOAD_DIR) if settings.UPLOAD_DIR else PROJECT_UPLOADS_DIR,
            Path.cwd() / "uploads",
            Path(tempfile.gettempdir()) / "watchly-uploads",
        ]
        unique: List[Path] = []
        for path in ordered:
            if path not in unique:
                unique.append(path)
        return unique

    def resolve_directory(self) -> Path:
        """First candidate that can be created and written to."""
        for candidate in self.candidates():
            try:
                candidate.mkdir(parents=True, exist_ok=True)
                with tempfile.NamedTemporaryFile(dir=candidate, prefix=".probe-"):
                    pass
            except OSError as exc:
                logger.warning("Staging directory %s is not usable: %s", candidate, exc)
                continue
            if self._directory != candidate:
                logger.info("Using staging directory %s", candidate)
            self._directory = candidate
            return candidate
        raise StagingException(details={"candidates": [str(c) for c in self.candidates()]})

    @property
    def directory(self) -> Path:
        if self._directory is None:
            return self.resolve_directory()
        return self._directory

    @property
    def known_directory(self) -> Path:
        """Resolved directory, or the first candidate when nothing was resolved yet."""
        return self._directory or self.candidates()[0]

    # ─────────────────────────────────────────────────────────
    # ✅ Intake validation
    # ─────────────────────────────────────────────────────────
    def collect(self, form: FormData) -> Dict[MediaRole, UploadFile]:
        """Pick the file parts out of a parsed form, enforcing the upload limits."""
        files = [
            (key, value)
            for key, value in form.multi_items()
            if isinstance(value, UploadFile) and not _is_empty_part(value)
        ]
        if len(files) > self.max_files:
            raise TooManyFilesException(self.max_files)

        uploads: Dict[MediaRole, UploadFile] = {}
        for field, upload in files:
            try:
                role = MediaRole(field)
            except ValueError:
                raise ValidationException(f"Unexpected field: {field}", details={"field": field}) from None
            if role in uploads:
                raise TooManyFilesException(self.max_files)

            allowed = ALLOWED_TYPES[role]
            content_type = _base_content_type(upload.content_type)
            if content_type not in allowed:
                raise InvalidFileTypeException(
                    role.value, upload.content_type, allowed, label=_TYPE_LABELS[role]
                )
            if upload.size is not None and upload.size > self.max_file_size:
                raise PayloadTooLargeException(self.max_file_size, field=role.value)
            uploads[role] = upload
        return uploads

    # ─────────────────────────────────────────────────────────
    # 💾 Staging
    # ─────────────────────────────────────────────────────────
    def _target_path(self, role: MediaRole, filename: Optional[str], content_type: Optional[str] = None) -> Path:
        stamp = int(time.time() * 1000)
        suffix = secrets.randbelow(10 ** 9)
        ext = _safe_ext(filename) or ext_for_content_type(content_type)
        return self.directory / f"{role.value}-{stamp}-{suffix}{ext}"

    async def stage(self, upload: UploadFile, role: MediaRole) -> StagedFile:
        """Stream an upload to disk in chunks; partial files never outlive a failure."""
        path = self._target_path(role, upload.filename, upload.content_type)
        written = 0
        try:
            with open(path, "wb") as fh:
                while True:
                    chunk = await upload.read(self.chunk_size)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > self.max_file_size:
                        raise PayloadTooLargeException(self.max_file_size, field=role.value)
                    await run_in_threadpool(fh.write, chunk)
        except OSError as exc:
            self._unlink(path)
            logger.error("Failed to stage %s upload: %s", role.value, exc)
            raise StagingException(f"Failed to stage {role.value} file") from exc
        except BaseException:
            self._unlink(path)
            raise

        logger.debug("Staged %s (%d bytes) at %s", role.value, written, path)
        return StagedFile(
            path=path,
            role=role,
            filename=upload.filename or path.name,
            content_type=upload.content_type,
            size=written,
        )

    async def stage_all(self, uploads: Dict[MediaRole, UploadFile]) -> Dict[MediaRole, StagedFile]:
        staged: Dict[MediaRole, StagedFile] = {}
        try:
            for role, upload in uploads.items():
                staged[role] = await self.stage(upload, role)
        except BaseException:
            self.release_all(staged.values())
            raise
        return staged

    # ─────────────────────────────────────────────────────────
    # 🧹 Cleanup
    # ─────────────────────────────────────────────────────────
    def release(self, staged: Optional[StagedFile]) -> None:
        if staged is not None:
            self._unlink(staged.path)

    def release_all(self, staged: Iterable[Optional[StagedFile]]) -> None:
        for item in list(staged):
            self.release(item)

    @staticmethod
    def _unlink(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.error("Error cleaning up staged file %s: %s", path, exc)

    def list_files(self) -> List[Path]:
        directory = self.known_directory
        return [p for p in directory.iterdir() if p.is_file() and not p.name.startswith(".")]


_staging_area: Optional[StagingArea] = None


def get_staging_area() -> StagingArea:
    """Process-wide staging area (directory resolved on first use)."""
    global _staging_area
    if _staging_area is None:
        _staging_area = StagingArea()
    return _staging_area


__all__ = ["ALLOWED_TYPES", "StagedFile", "StagingArea", "get_staging_area"]
