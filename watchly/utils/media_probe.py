from __future__ import annotations

"""
ffmpeg helpers (ffmpeg-python) for staged media files.

- `probe()` reads container format, duration and frame size with ffprobe.
- `fill_crop()` scales an image to cover W×H and center-crops the overflow.
- `transcode_to_height()` renders an H.264/AAC MP4 at a lower height.

All functions are blocking; async callers run them in a worker thread. A
missing ffmpeg/ffprobe binary surfaces as `MediaProcessingError` like any
other ffmpeg failure.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

import ffmpeg

logger = logging.getLogger(__name__)

# MIME → file extension; ffmpeg picks the output muxer from the extension.
EXT_MAP = {
    # images
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    # video
    "video/mp4": ".mp4",
    "video/avi": ".avi",
    "video/mov": ".mov",
    "video/quicktime": ".mov",
    "video/wmv": ".wmv",
    "video/flv": ".flv",
    "video/webm": ".webm",
}


class MediaProcessingError(RuntimeError):
    """ffmpeg/ffprobe failed; the message carries ffmpeg's stderr when available."""


@dataclass
class MediaInfo:
    format: Optional[str] = None
    duration: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None


def ext_for_content_type(content_type: Optional[str]) -> str:
    """`image/png; q=1` → `.png`; unknown types map to ``""``."""
    base = (content_type or "").split(";", 1)[0].strip().lower()
    return EXT_MAP.get(base, "")


def _describe(e: Exception) -> str:
    if not isinstance(e, ffmpeg.Error):
        return str(e)
    raw = getattr(e, "stderr", None) or b""
    text = raw.decode(errors="replace") if isinstance(raw, bytes) else str(raw)
    return text.strip().splitlines()[-1] if text.strip() else str(e)


def _to_float(value) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def probe(path: str) -> MediaInfo:
    """Read media attributes; the format is the file extension when present."""
    try:
        data = ffmpeg.probe(str(path))
    except (ffmpeg.Error, OSError) as e:
        raise MediaProcessingError(f"ffprobe failed for {os.path.basename(path)}: {_describe(e)}") from e

    fmt = data.get("format", {}) or {}
    stream = next((s for s in data.get("streams", []) if s.get("codec_type") == "video"), {})

    ext = os.path.splitext(str(path))[1].lstrip(".").lower()
    format_name = ext or (fmt.get("format_name") or "").split(",")[0] or None
    duration = _to_float(stream.get("duration")) or _to_float(fmt.get("duration"))

    return MediaInfo(
        format=format_name,
        duration=duration,
        width=int(stream["width"]) if stream.get("width") else None,
        height=int(stream["height"]) if stream.get("height") else None,
    )


def fill_crop_stream(src: str, dst: str, width: int, height: int):
    return (
        ffmpeg
        .input(str(src))
        .filter("scale", width, height, force_original_aspect_ratio="increase")
        .filter("crop", width, height)
        .output(str(dst), vframes=1)
        .overwrite_output()
    )


def fill_crop(src: str, dst: str, width: int, height: int) -> str:
    """Cover-scale `src` to at least W×H, center-crop to exactly W×H, write `dst`."""
    try:
        fill_crop_stream(src, dst, width, height).run(quiet=True)
    except (ffmpeg.Error, OSError) as e:
        raise MediaProcessingError(f"Image transformation failed: {_describe(e)}") from e
    return str(dst)


def transcode_stream(src: str, dst: str, height: int):
    return (
        ffmpeg
        .input(str(src))
        .output(
            str(dst),
            vf=f"scale=-2:{int(height)}",
            vcodec="libx264",
            crf=23,
            preset="medium",
            acodec="aac",
            movflags="+faststart",
        )
        .overwrite_output()
    )


def transcode_to_height(src: str, dst: str, height: int) -> str:
    """H.264/AAC MP4 scaled to `height` (width keeps aspect ratio, even)."""
    try:
        transcode_stream(src, dst, height).run(quiet=True)
    except (ffmpeg.Error, OSError) as e:
        raise MediaProcessingError(f"Transcode to {height}p failed: {_describe(e)}") from e
    return str(dst)


__all__ = [
    "EXT_MAP",
    "MediaInfo",
    "MediaProcessingError",
    "ext_for_content_type",
    "probe",
    "fill_crop",
    "fill_crop_stream",
    "transcode_to_height",
    "transcode_stream",
]
