# tests/fixtures/uploads.py
"""
📎 Upload helpers
- `make_upload()` builds Starlette UploadFile objects for service-level tests
- small byte payloads standing in for real media
"""

from __future__ import annotations

import io

import pytest
from starlette.datastructures import Headers, UploadFile

VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x01" * 2048
IMAGE_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x02" * 512


def make_upload(filename: str, data: bytes, content_type: str) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        size=len(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


@pytest.fixture()
def upload_files():
    """Multipart `files=` payload accepted by httpx for a valid upload."""
    return {
        "video": ("movie.mp4", VIDEO_BYTES, "video/mp4"),
        "thumbnail": ("poster.png", IMAGE_BYTES, "image/png"),
    }


__all__ = ["VIDEO_BYTES", "IMAGE_BYTES", "make_upload", "upload_files"]
