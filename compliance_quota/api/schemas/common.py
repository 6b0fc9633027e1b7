"""Envelope and health models shared by all routers."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from compliance_quota import __version__


class HealthStatusEnum(str, Enum):
    healthy = "healthy"
    unhealthy = "unhealthy"
    degraded = "degraded"


class ErrorResponse(BaseModel):
    """Body of every non-2xx response (see ``api.middleware``)."""
    success: bool = Field(default=False, examples=[False])
    error: str = Field(..., examples=["quota_exceeded"])
    message: Optional[str] = Field(
        default=None,
        examples=["File upload limit reached. You have used 100/100 uploads for your Starter plan."],
    )
    details: Optional[List[Dict[str, Any]]] = None
    upgrade: Optional[Dict[str, Any]] = None
    request_id: Optional[str] = Field(default=None, examples=["a1b2c3d4"])


class HealthStatus(BaseModel):
    status: HealthStatusEnum = Field(default=HealthStatusEnum.healthy, examples=["healthy"])
    version: str = Field(default=__version__, examples=[__version__])
    timestamp: datetime
    components: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
