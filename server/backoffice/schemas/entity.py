"""Agent and issuing partner Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from .ledger import EntityType


class CreateEntityRequest(BaseModel):
    """Request schema for creating an agent or issuing partner."""

    entity_type: EntityType
    name: str = Field(..., min_length=1, max_length=255)
    opening_balance: Decimal = Field(
        Decimal("0"),
        max_digits=12,
        decimal_places=2,
        description="Existing debt (agent) or prepaid credit (partner)"
    )

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be blank")
        return v


class RenameEntityRequest(BaseModel):
    """Request schema for renaming an agent or issuing partner."""

    entity_type: EntityType
    entity_id: UUID
    name: str = Field(..., min_length=1, max_length=255)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be blank")
        return v


class EntityIdRequest(BaseModel):
    """Request schema addressing one agent or issuing partner."""

    entity_type: EntityType
    entity_id: UUID


class ListEntitiesRequest(BaseModel):
    """Request schema for listing agents or issuing partners."""

    entity_type: EntityType


class Entity(BaseModel):
    """Agent or issuing partner response schema."""

    id: str
    entity_type: EntityType
    name: str
    balance: Decimal
    is_deleted: bool
    created_at: datetime


class EntityList(BaseModel):
    """Entity listing response schema."""

    items: List[Entity]
