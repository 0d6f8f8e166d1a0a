"""Passenger directory model definition."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base
from .enums import PassengerType


class Passenger(Base):
    """A traveller kept in the agency's passenger directory."""

    __tablename__ = "passengers"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Name parts; name is the display form
    title: Mapped[str | None] = mapped_column(String(20), nullable=True)
    first_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    surname: Mapped[str | None] = mapped_column(String(128), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    passport_number: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    contact_info: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    passenger_type: Mapped[PassengerType] = mapped_column(
        String(10),
        nullable=False,
        default=PassengerType.ADULT
    )
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=datetime.utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("length(name) > 0", name="ck_passenger_name_not_empty"),
    )

    def __repr__(self) -> str:
        return f"<Passenger(id={self.id}, name='{self.name}')>"
