"""Health-related Pydantic schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    """Health status enumeration."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"


class HealthResponse(BaseModel):
    """Health ping response schema."""

    status: HealthStatus = Field(..., description="healthy when the database answers")
    database: str = Field(..., description="ok or unavailable")
    environment: str
    default_currency: str = Field(..., description="Currency assumed for bookings without one")
    timestamp: datetime = Field(..., description="Current server time (ISO 8601)")
    version: str
