"""Passenger directory service."""

import logging
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError
from ..models.passenger import Passenger
from ..schemas.passenger import CreatePassengerRequest, ListPassengersRequest

logger = logging.getLogger(__name__)


def display_name(title: str | None, first_name: str | None, surname: str | None) -> str:
    """Join the non-empty name parts."""
    return " ".join(part.strip() for part in (title, first_name, surname) if part and part.strip())


class PassengerService:
    """Service for the passenger directory."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_passenger(self, request: CreatePassengerRequest) -> Passenger:
        """Add a passenger; the display name is built from its parts when not given."""
        name = (request.name or "").strip() or display_name(request.title, request.first_name, request.surname)

        passenger = Passenger(
            title=request.title,
            first_name=request.first_name,
            surname=request.surname,
            name=name,
            passport_number=request.passport_number,
            contact_info=request.contact_info,
            phone_number=request.phone_number,
            passenger_type=request.passenger_type.value,
            is_deleted=False,
        )

        self.db.add(passenger)
        await self.db.commit()
        await self.db.refresh(passenger)

        logger.info(
            "Passenger created successfully",
            extra={"passenger_id": str(passenger.id), "passenger_name": passenger.name}
        )

        return passenger

    async def get_passenger(self, passenger_id: UUID) -> Passenger:
        """
        Get a passenger by ID.

        Raises:
            NotFoundError: If passenger not found or deleted
        """
        passenger = await self.db.get(Passenger, passenger_id)
        if passenger is None or passenger.is_deleted:
            raise NotFoundError("passenger", str(passenger_id))
        return passenger

    async def list_passengers(self, request: ListPassengersRequest) -> list[Passenger]:
        """List non-deleted passengers alphabetically."""
        stmt = select(Passenger).where(Passenger.is_deleted.is_(False))

        if request.query and request.query.strip():
            pattern = f"%{request.query.strip()}%"
            stmt = stmt.where(or_(
                Passenger.name.ilike(pattern),
                Passenger.passport_number.ilike(pattern),
            ))

        stmt = stmt.order_by(Passenger.name, Passenger.created_at).limit(request.limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def delete_passenger(self, passenger_id: UUID) -> Passenger:
        """Soft-delete a passenger; bookings keep their copied names."""
        passenger = await self.get_passenger(passenger_id)
        passenger.is_deleted = True
        await self.db.commit()

        logger.info("Passenger deleted", extra={"passenger_id": str(passenger_id)})

        return passenger
