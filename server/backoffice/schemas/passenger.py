"""Passenger directory Pydantic schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models.enums import PassengerType


class CreatePassengerRequest(BaseModel):
    """Request schema for adding a passenger to the directory."""

    title: Optional[str] = Field(None, max_length=20)
    first_name: Optional[str] = Field(None, max_length=128)
    surname: Optional[str] = Field(None, max_length=128)
    name: Optional[str] = Field(None, max_length=255, description="Display name; built from the parts when omitted")
    passport_number: Optional[str] = Field(None, max_length=64)
    contact_info: Optional[str] = Field(None, max_length=2000)
    phone_number: Optional[str] = Field(None, max_length=64)
    passenger_type: PassengerType = PassengerType.ADULT

    @model_validator(mode="after")
    def require_name(self):
        if not (self.name or "").strip() and not (self.first_name or "").strip():
            raise ValueError("Either name or first_name is required")
        return self


class ListPassengersRequest(BaseModel):
    """Request schema for listing passengers."""

    query: Optional[str] = Field(None, max_length=128, description="Matches name or passport number")
    limit: int = Field(100, ge=1, le=1000)


class PassengerIdRequest(BaseModel):
    """Request schema addressing a single passenger."""

    passenger_id: UUID


class Passenger(BaseModel):
    """Passenger response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: Optional[str] = None
    first_name: Optional[str] = None
    surname: Optional[str] = None
    name: str
    passport_number: Optional[str] = None
    contact_info: Optional[str] = None
    phone_number: Optional[str] = None
    passenger_type: PassengerType
    is_deleted: bool
    created_at: datetime


class PassengerList(BaseModel):
    """Passenger listing response schema."""

    items: List[Passenger]
