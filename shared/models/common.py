"""Common Pydantic models shared across services."""

from enum import Enum
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field


class HealthStatus(str, Enum):
    """Health status enum."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


class ServiceInfo(BaseModel):
    """Service information model."""

    service_name: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    status: HealthStatus = Field(..., description="Service health status")
    uptime_seconds: float = Field(..., description="Service uptime in seconds")
    dependencies: Dict[str, HealthStatus] = Field(
        default_factory=dict, description="Dependency health status"
    )

    model_config = ConfigDict(use_enum_values=True)
