"""Passenger router for the passenger directory."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DatabaseSession
from ..models.passenger import Passenger as PassengerModel
from ..schemas.passenger import (
    CreatePassengerRequest,
    ListPassengersRequest,
    Passenger,
    PassengerIdRequest,
    PassengerList,
)
from ..services.passenger_service import PassengerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/passenger", tags=["passenger"])


def _convert_passenger_to_schema(passenger_model: PassengerModel) -> Passenger:
    """Convert passenger model to schema."""
    return Passenger(
        id=str(passenger_model.id),
        title=passenger_model.title,
        first_name=passenger_model.first_name,
        surname=passenger_model.surname,
        name=passenger_model.name,
        passport_number=passenger_model.passport_number,
        contact_info=passenger_model.contact_info,
        phone_number=passenger_model.phone_number,
        passenger_type=passenger_model.passenger_type,
        is_deleted=passenger_model.is_deleted,
        created_at=passenger_model.created_at,
    )


@router.post("/create", response_model=Passenger)
async def create_passenger(
    request: CreatePassengerRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Add a passenger to the directory."""
    passenger = await PassengerService(db).create_passenger(request)
    return JSONResponse(
        status_code=200,
        content=_convert_passenger_to_schema(passenger).model_dump(mode="json")
    )


@router.post("/list", response_model=PassengerList)
async def list_passengers(
    request: ListPassengersRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """List passengers alphabetically, optionally filtered by name or passport."""
    passengers = await PassengerService(db).list_passengers(request)
    response_data = PassengerList(items=[_convert_passenger_to_schema(p) for p in passengers])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/get", response_model=Passenger)
async def get_passenger(
    request: PassengerIdRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Get a passenger."""
    passenger = await PassengerService(db).get_passenger(request.passenger_id)
    return JSONResponse(
        status_code=200,
        content=_convert_passenger_to_schema(passenger).model_dump(mode="json")
    )


@router.post("/delete", response_model=Passenger)
async def delete_passenger(
    request: PassengerIdRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Soft-delete a passenger."""
    passenger = await PassengerService(db).delete_passenger(request.passenger_id)
    return JSONResponse(
        status_code=200,
        content=_convert_passenger_to_schema(passenger).model_dump(mode="json")
    )
