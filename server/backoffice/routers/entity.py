"""Entity router for agents and issuing partners."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DatabaseSession
from ..models.entity import Agent, IssuedPartner
from ..schemas.entity import (
    CreateEntityRequest,
    Entity,
    EntityIdRequest,
    EntityList,
    ListEntitiesRequest,
    RenameEntityRequest,
)
from ..schemas.ledger import EntityType
from ..services.entity_service import EntityService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/entity", tags=["entity"])


def _convert_entity_to_schema(entity_model: Agent | IssuedPartner) -> Entity:
    """Convert agent or partner model to schema."""
    return Entity(
        id=str(entity_model.id),
        entity_type=EntityType.AGENT if isinstance(entity_model, Agent) else EntityType.PARTNER,
        name=entity_model.name,
        balance=entity_model.balance,
        is_deleted=entity_model.is_deleted,
        created_at=entity_model.created_at,
    )


@router.post("/create", response_model=Entity)
async def create_entity(
    request: CreateEntityRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Create an agent or issuing partner with an optional opening balance."""
    entity = await EntityService(db).create_entity(request)
    return JSONResponse(status_code=200, content=_convert_entity_to_schema(entity).model_dump(mode="json"))


@router.post("/list", response_model=EntityList)
async def list_entities(
    request: ListEntitiesRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """List non-deleted agents or partners by name."""
    entities = await EntityService(db).list_entities(request.entity_type)
    response_data = EntityList(items=[_convert_entity_to_schema(entity) for entity in entities])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/get", response_model=Entity)
async def get_entity(
    request: EntityIdRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Get an agent or partner, including deleted ones."""
    entity = await EntityService(db).get_entity(request.entity_type, request.entity_id)
    return JSONResponse(status_code=200, content=_convert_entity_to_schema(entity).model_dump(mode="json"))


@router.post("/rename", response_model=Entity)
async def rename_entity(
    request: RenameEntityRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Rename an agent or partner."""
    entity = await EntityService(db).rename_entity(request)
    return JSONResponse(status_code=200, content=_convert_entity_to_schema(entity).model_dump(mode="json"))


@router.post("/delete", response_model=Entity)
async def delete_entity(
    request: EntityIdRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Soft-delete an agent or partner."""
    entity = await EntityService(db).delete_entity(request.entity_type, request.entity_id)
    return JSONResponse(status_code=200, content=_convert_entity_to_schema(entity).model_dump(mode="json"))
