"""Common Pydantic schemas."""

from datetime import date
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, computed_field, model_validator

from ..models.enums import TicketStatus


class Violation(BaseModel):
    """Validation error violation."""

    path: str = Field(..., description="JSON path to the invalid field")
    message: str = Field(..., description="Validation error message")


class Problem(BaseModel):
    """RFC 9457 Problem Details response."""

    type: Optional[str] = Field(None, description="Problem type URI")
    title: str = Field(..., description="Short human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: Optional[str] = Field(None, description="Human-readable explanation")
    instance: Optional[str] = Field(None, description="URI reference for this occurrence")
    code: Optional[str] = Field(None, description="Application-specific error code")
    retryable: Optional[bool] = Field(None, description="Whether the operation can be retried")
    trace_id: Optional[str] = Field(None, description="Trace ID for debugging")
    violations: Optional[List[Violation]] = Field(None, description="Validation errors")


class PaginatedResponse(BaseModel):
    """Base class for page-based responses."""

    total: int = Field(..., ge=0, description="Total matching rows")
    page: int = Field(..., ge=1, description="Current page, starting at 1")
    page_size: int = Field(..., ge=1, description="Rows per page")

    @computed_field
    @property
    def has_more(self) -> bool:
        return self.page * self.page_size < self.total


class DateRange(BaseModel):
    """Inclusive status-date range shared by reports and searches."""

    start_date: Optional[date] = Field(None, description="Inclusive lower bound")
    end_date: Optional[date] = Field(None, description="Inclusive upper bound")

    @model_validator(mode="after")
    def check_range(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class BookingFilters(DateRange):
    """Booking filters used by search and analytics."""

    ticket_status: Optional[TicketStatus] = Field(None, description="Booking status")
    platform: Optional[str] = Field(None, max_length=64, description="Exact platform")
    airline: Optional[str] = Field(None, max_length=64, description="Airline substring, case-insensitive")
    agent_id: Optional[UUID] = Field(None, description="Agent filter")
    issued_partner_id: Optional[UUID] = Field(None, description="Issuing partner filter")
