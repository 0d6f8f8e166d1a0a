"""Booking, ticket line and booking history model definitions."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Integer, Numeric, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base
from .enums import BookingSource, HistoryAction, PassengerType, TicketStatus

ZERO = Decimal("0")


class Booking(Base):
    """Booking header: one PNR with its ticket lines and derived financial totals."""

    __tablename__ = "bookings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Reservation details
    pnr: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    airline: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    origin: Mapped[str | None] = mapped_column(String(64), nullable=True)
    destination: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Dates
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    departure_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    return_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    ticket_issued_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    # Date the current status was entered; reports filter on this
    status_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    refund_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Status and channel
    ticket_status: Mapped[TicketStatus] = mapped_column(
        String(20),
        nullable=False,
        default=TicketStatus.PENDING,
        index=True
    )
    booking_source: Mapped[BookingSource] = mapped_column(
        String(20),
        nullable=False,
        default=BookingSource.DIRECT
    )
    platform: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    payment_method: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")
    advance_payment: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)

    # Ledger assignment
    agent_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("agents.id"),
        nullable=True,
        index=True
    )
    issued_partner_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("issued_partners.id"),
        nullable=True,
        index=True
    )

    # Reissue chain
    parent_booking_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("bookings.id"),
        nullable=True,
        index=True
    )

    # Totals derived from ticket lines by the ledger engine
    total_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    total_sale: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    refund_partner_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    refund_customer_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    profit: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)

    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=datetime.utcnow,
        server_default=func.now(),
        index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("length(pnr) > 0", name="ck_booking_pnr_not_empty"),
        CheckConstraint("total_cost >= 0", name="ck_booking_total_cost_non_negative"),
        CheckConstraint("total_sale >= 0", name="ck_booking_total_sale_non_negative"),
        CheckConstraint("advance_payment >= 0", name="ck_booking_advance_payment_non_negative"),
    )

    # Relationships
    passengers: Mapped[list["BookingPassenger"]] = relationship(
        "BookingPassenger",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingPassenger.position",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, pnr='{self.pnr}', status={self.ticket_status}, "
            f"sale={self.total_sale}, cost={self.total_cost})>"
        )


class BookingPassenger(Base):
    """One ticket on a booking, with its own prices and optional status override."""

    __tablename__ = "booking_passengers"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    passenger_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("passengers.id"),
        nullable=True,
        index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    title: Mapped[str | None] = mapped_column(String(20), nullable=True)
    first_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    surname: Mapped[str | None] = mapped_column(String(128), nullable=True)
    pax_type: Mapped[PassengerType] = mapped_column(String(10), nullable=False, default=PassengerType.ADULT)

    ticket_number: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)
    # None means the line follows the booking status
    ticket_status: Mapped[TicketStatus | None] = mapped_column(String(20), nullable=True)

    cost_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    sale_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    refund_amount_partner: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)
    refund_amount_customer: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=ZERO)

    __table_args__ = (
        CheckConstraint("cost_price >= 0", name="ck_booking_passenger_cost_non_negative"),
        CheckConstraint("sale_price >= 0", name="ck_booking_passenger_sale_non_negative"),
        CheckConstraint("refund_amount_partner >= 0", name="ck_booking_passenger_refund_partner_non_negative"),
        CheckConstraint("refund_amount_customer >= 0", name="ck_booking_passenger_refund_customer_non_negative"),
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="passengers")

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.title, self.first_name, self.surname) if part)

    def __repr__(self) -> str:
        return (
            f"<BookingPassenger(id={self.id}, booking_id={self.booking_id}, "
            f"ticket_number={self.ticket_number}, status={self.ticket_status})>"
        )


class BookingHistory(Base):
    """Append-only audit trail of booking changes."""

    __tablename__ = "booking_history"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    action: Mapped[HistoryAction] = mapped_column(String(20), nullable=False)
    previous_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    new_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    actor: Mapped[str] = mapped_column(String(255), nullable=False, default="system")

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=datetime.utcnow,
        server_default=func.now(),
        index=True
    )

    def __repr__(self) -> str:
        return (
            f"<BookingHistory(id={self.id}, booking_id={self.booking_id}, action={self.action}, "
            f"{self.previous_status} -> {self.new_status})>"
        )
