# watchly/utils/aws.py
from __future__ import annotations

"""
🧊 Watchly • S3 Utilities
=========================

Thin boto3 wrapper used by the media host service:
- Managed streaming uploads from disk (`upload_file` + `TransferConfig`)
- Downloads to disk (rendition jobs)
- Best-effort delete
- CDN-aware public URL building

Implementation notes
--------------------
- All methods are **blocking**; async callers run them in a worker thread.
- Keys are normalized (no leading slash, no `..`); storage failures surface as
  `S3StorageError` carrying boto's message.
- Secrets are never logged.
"""

import logging
import re
from typing import Any, Dict, Optional

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.config import Config as BotoConfig

from watchly.core.config import settings

logger = logging.getLogger(__name__)


class S3StorageError(RuntimeError):
    """Raised when a storage operation fails (network, auth, policy, etc.)."""


_KEY_ALLOWED_RE = re.compile(r"[A-Za-z0-9._\-/+=@() ]+")


def _normalize_key(key: str) -> str:
    """Strip leading '/', collapse '//' runs, reject traversal and odd characters."""
    k = str(key or "").strip().lstrip("/")
    k = re.sub(r"/{2,}", "/", k)
    if not k:
        raise S3StorageError("Invalid storage key: empty")
    if ".." in k:
        raise S3StorageError("Invalid storage key: path traversal detected")
    if not _KEY_ALLOWED_RE.fullmatch(k):
        raise S3StorageError("Invalid storage key: contains forbidden characters")
    return k


def _secret_value(v) -> Optional[str]:
    if v is None:
        return None
    return v.get_secret_value() if hasattr(v, "get_secret_value") else str(v)


class S3Client:
    """
    High-level S3 wrapper with safe defaults.

    Parameters
    ----------
    bucket : str | None
        Destination bucket. Defaults to `settings.AWS_BUCKET_NAME`.
    region_name : str | None
        Defaults to `settings.AWS_REGION`.
    endpoint_url : str | None
        Custom S3-compatible endpoint (LocalStack/MinIO). Defaults to
        `settings.AWS_S3_ENDPOINT_URL`.
    cdn_base_url : str | None
        When set, `public_url()` returns CDN links. Defaults to
        `settings.cdn_base_url`.
    client : Any
        Pre-built boto3-compatible client (tests inject a fake here).
    """

    def __init__(
        self,
        bucket: Optional[str] = None,
        *,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        cdn_base_url: Optional[str] = None,
        client: Any = None,
    ) -> None:
        self.bucket = bucket or settings.AWS_BUCKET_NAME
        if not self.bucket:
            raise S3StorageError("AWS_BUCKET_NAME not configured")

        self.region = region_name or settings.AWS_REGION or "us-east-1"
        self._endpoint = endpoint_url or settings.AWS_S3_ENDPOINT_URL
        self._cdn_base = (cdn_base_url if cdn_base_url is not None else settings.cdn_base_url).rstrip("/")

        if client is not None:
            self.client = client
        else:
            self.client = self._build_client()

        self._repr = f"S3Client(bucket={self.bucket}, region={self.region}, endpoint={'yes' if self._endpoint else 'no'})"

    def _build_client(self):
        cfg = BotoConfig(
            signature_version="s3v4",
            retries={"max_attempts": 5, "mode": "standard"},
            connect_timeout=5,
            read_timeout=60,
            s3={"addressing_style": "virtual"},
        )
        client_kwargs: Dict[str, Any] = {"config": cfg, "region_name": self.region}
        if self._endpoint:
            client_kwargs["endpoint_url"] = self._endpoint
        ak = settings.AWS_ACCESS_KEY_ID
        sk = _secret_value(settings.AWS_SECRET_ACCESS_KEY)
        if ak and sk:
            client_kwargs["aws_access_key_id"] = ak
            client_kwargs["aws_secret_access_key"] = sk
        try:
            return boto3.client("s3", **client_kwargs)
        except Exception as e:  # pragma: no cover
            raise S3StorageError(f"Failed to create S3 client: {e}") from e

    # ────────────────────────────────────────────────────────────────────────
    # 🚀 Transfers
    # ────────────────────────────────────────────────────────────────────────

    def upload_file(
        self,
        path: str,
        key: str,
        *,
        content_type: Optional[str] = None,
        multipart_chunksize: Optional[int] = None,
        cache_control: Optional[str] = None,
    ) -> str:
        """
        Stream a file from disk to S3 with boto3's managed transfer.

        Files larger than `multipart_chunksize` are sent as a multipart upload
        in parts of that size; the whole file is never held in memory.

        Returns the normalized key.
        """
        k = _normalize_key(key)
        extra: Dict[str, Any] = {}
        if content_type:
            extra["ContentType"] = content_type
        if cache_control:
            extra["CacheControl"] = cache_control

        config = None
        if multipart_chunksize:
            config = TransferConfig(
                multipart_threshold=multipart_chunksize,
                multipart_chunksize=multipart_chunksize,
            )
        try:
            self.client.upload_file(str(path), self.bucket, k, ExtraArgs=extra or None, Config=config)
        except Exception as e:
            raise S3StorageError(f"Failed to upload object: {e}") from e
        return k

    def download_file(self, key: str, path: str) -> None:
        k = _normalize_key(key)
        try:
            self.client.download_file(self.bucket, k, str(path))
        except Exception as e:
            raise S3StorageError(f"Failed to download object: {e}") from e

    def delete(self, key: str) -> bool:
        """
        Best-effort delete.

        Returns True when the request was accepted (S3 deletes are idempotent),
        False on errors (logged at WARNING).
        """
        k = _normalize_key(key)
        try:
            self.client.delete_object(Bucket=self.bucket, Key=k)
            return True
        except Exception as e:
            logger.warning("delete_object failed for %s (non-fatal): %s", k, e)
            return False

    # ────────────────────────────────────────────────────────────────────────
    # 🌐 Public URL helpers
    # ────────────────────────────────────────────────────────────────────────

    def cdn_url(self, key: str) -> Optional[str]:
        if not self._cdn_base:
            return None
        return f"{self._cdn_base}/{_normalize_key(key)}"

    def object_url(self, key: str) -> str:
        """Direct (non-signed) S3 URL; custom endpoints use path-style."""
        k = _normalize_key(key)
        if self._endpoint:
            return f"{self._endpoint.rstrip('/')}/{self.bucket}/{k}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{k}"

    def public_url(self, key: str) -> str:
        return self.cdn_url(key) or self.object_url(key)

    def __repr__(self) -> str:  # pragma: no cover
        return self._repr


__all__ = ["S3Client", "S3StorageError"]
