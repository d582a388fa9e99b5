from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from watchly.schemas.enums import HealthStatus


class CheckResult(BaseModel):
    status: HealthStatus
    message: str
    details: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class HealthReport(BaseModel):
    status: HealthStatus = HealthStatus.HEALTHY
    timestamp: datetime
    uptime: float = Field(..., description="Process uptime in seconds")
    version: str
    checks: Dict[str, CheckResult] = Field(default_factory=dict)


class DetailedHealthReport(HealthReport):
    system: Dict[str, Any] = Field(default_factory=dict)


class ReadinessReport(BaseModel):
    status: str
    timestamp: datetime
    checks: Dict[str, CheckResult] = Field(default_factory=dict)


__all__ = ["CheckResult", "HealthReport", "DetailedHealthReport", "ReadinessReport"]
