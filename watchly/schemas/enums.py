from __future__ import annotations

"""
Central enum definitions used across Watchly.

All enums subclass `str, PyEnum` for JSON-friendly serialization; value
strings are stable once deployed.
"""

from enum import Enum as PyEnum


class MediaRole(str, PyEnum):
    """Multipart field a staged upload arrived under."""
    VIDEO = "video"
    THUMBNAIL = "thumbnail"


class ResourceKind(str, PyEnum):
    """Kind of object stored on the media host."""
    IMAGE = "image"
    VIDEO = "video"

    @property
    def folder(self) -> str:
        return "images" if self is ResourceKind.IMAGE else "videos"


class HealthStatus(str, PyEnum):
    """Health check outcome, ordered by severity."""
    HEALTHY = "healthy"
    WARNING = "warning"
    UNHEALTHY = "unhealthy"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @classmethod
    def worst(cls, statuses) -> "HealthStatus":
        """Worst-of aggregation (unhealthy > warning > healthy); empty → healthy."""
        return max(statuses, key=lambda s: s.severity, default=cls.HEALTHY)


_SEVERITY = {
    HealthStatus.HEALTHY: 0,
    HealthStatus.WARNING: 1,
    HealthStatus.UNHEALTHY: 2,
}


__all__ = ["MediaRole", "ResourceKind", "HealthStatus"]
