from __future__ import annotations

"""
🎬 Watchly — Movie (catalog record)
===================================

One row per uploaded movie: editable descriptive metadata plus the durable
ids/URLs and media attributes returned by the media host.

Integrity
---------
• `thumbnail_asset_id` and `video_asset_id` are both set or both NULL
  (rows are only written after both uploads succeeded).
• `created_at` comes from the video upload and is never touched by updates.
"""

from uuid import uuid4

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from watchly.db.base_class import Base


class Movie(Base):
    """Persisted movie metadata and media references."""

    __tablename__ = "movies"

    # ── Identity ──────────────────────────────────────────────
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)

    # ── Editable metadata ─────────────────────────────────────
    title = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True, index=True)
    language = Column(String(64), nullable=True)
    quality = Column(String(32), nullable=True)

    # ── Media references ──────────────────────────────────────
    thumbnail_url = Column(String(2048), nullable=True)
    thumbnail_asset_id = Column(String(1024), nullable=True)
    video_url = Column(String(2048), nullable=True)
    video_asset_id = Column(String(1024), nullable=True)

    # ── Media attributes ──────────────────────────────────────
    format = Column(String(32), nullable=True)
    duration = Column(Float, nullable=True)
    byte_size = Column(BigInteger, nullable=True)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)

    __table_args__ = (
        CheckConstraint(
            "(thumbnail_asset_id IS NULL) = (video_asset_id IS NULL)",
            name="asset_ids_paired",
        ),
        CheckConstraint("(byte_size IS NULL) OR (byte_size >= 0)", name="byte_size_nonneg"),
        CheckConstraint("(duration IS NULL) OR (duration >= 0)", name="duration_nonneg"),
    )


__all__ = ["Movie"]
