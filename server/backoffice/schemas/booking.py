"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..models.enums import BookingSource, Currency, HistoryAction, PassengerType, TicketStatus
from .common import BookingFilters, PaginatedResponse

Money = Decimal


def _normalize_pnr(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().upper()
    if not value:
        raise ValueError("PNR must not be blank")
    return value


class PassengerLineInput(BaseModel):
    """One ticket line on a create, update or reissue request."""

    passenger_id: Optional[UUID] = Field(None, description="Directory passenger to copy names from")
    title: Optional[str] = Field(None, max_length=20)
    first_name: Optional[str] = Field(None, max_length=128)
    surname: Optional[str] = Field(None, max_length=128)
    pax_type: PassengerType = Field(PassengerType.ADULT, description="Passenger age category")
    ticket_number: Optional[str] = Field(None, max_length=32, description="Airline ticket number")
    ticket_status: Optional[TicketStatus] = Field(None, description="Per-ticket override of the booking status")
    cost_price: Money = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    sale_price: Money = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    refund_amount_partner: Money = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    refund_amount_customer: Money = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)

    @field_validator("ticket_number")
    @classmethod
    def strip_ticket_number(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @model_validator(mode="after")
    def check_refunds(self):
        if self.refund_amount_partner > self.cost_price:
            raise ValueError("refund_amount_partner must not exceed cost_price")
        if self.refund_amount_customer > self.sale_price:
            raise ValueError("refund_amount_customer must not exceed sale_price")
        return self


class _BookingDetails(BaseModel):
    """Header fields shared by create and reissue."""

    airline: Optional[str] = Field(None, max_length=64)
    origin: Optional[str] = Field(None, max_length=64)
    destination: Optional[str] = Field(None, max_length=64)
    entry_date: Optional[date] = Field(None, description="Defaults to today")
    departure_date: Optional[date] = None
    return_date: Optional[date] = None
    ticket_issued_date: Optional[date] = None
    status_date: Optional[date] = Field(None, description="Defaults to today")
    booking_source: BookingSource = BookingSource.DIRECT
    platform: Optional[str] = Field(None, max_length=64)
    payment_method: Optional[str] = Field(None, max_length=64)
    payment_status: str = Field("PENDING", max_length=20)
    currency: Optional[Currency] = Field(None, description="Defaults to the configured currency")
    advance_payment: Money = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    passengers: List[PassengerLineInput] = Field(default_factory=list, max_length=50)

    @model_validator(mode="after")
    def check_dates(self):
        if self.departure_date and self.return_date and self.return_date < self.departure_date:
            raise ValueError("return_date must not be before departure_date")
        return self


class CreateBookingRequest(_BookingDetails):
    """Request schema for creating a booking."""

    pnr: str = Field(..., min_length=1, max_length=32, description="Airline reservation locator")
    ticket_status: TicketStatus = Field(TicketStatus.PENDING, description="Booking status")
    agent_id: Optional[UUID] = Field(None, description="Selling agent")
    issued_partner_id: Optional[UUID] = Field(None, description="Issuing partner")
    parent_booking_id: Optional[UUID] = Field(None, description="Original booking of a reissue")

    @field_validator("pnr")
    @classmethod
    def normalize_pnr(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_pnr(v)


class UpdateBookingRequest(BaseModel):
    """
    Request schema for updating a booking.

    Only fields present in the request are changed. When passengers is
    given the ticket lines are replaced wholesale.
    """

    booking_id: UUID = Field(..., description="Booking to update")
    pnr: Optional[str] = Field(None, min_length=1, max_length=32)
    airline: Optional[str] = Field(None, max_length=64)
    origin: Optional[str] = Field(None, max_length=64)
    destination: Optional[str] = Field(None, max_length=64)
    entry_date: Optional[date] = None
    departure_date: Optional[date] = None
    return_date: Optional[date] = None
    ticket_issued_date: Optional[date] = None
    ticket_status: Optional[TicketStatus] = None
    status_date: Optional[date] = Field(None, description="Date of a status change; defaults to today")
    booking_source: Optional[BookingSource] = None
    platform: Optional[str] = Field(None, max_length=64)
    payment_method: Optional[str] = Field(None, max_length=64)
    payment_status: Optional[str] = Field(None, max_length=20)
    currency: Optional[Currency] = None
    advance_payment: Optional[Money] = Field(None, ge=0, max_digits=12, decimal_places=2)
    agent_id: Optional[UUID] = None
    issued_partner_id: Optional[UUID] = None
    refund_date: Optional[date] = None
    passengers: Optional[List[PassengerLineInput]] = Field(None, max_length=50)

    @field_validator("pnr")
    @classmethod
    def normalize_pnr(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_pnr(v)


class DeleteBookingRequest(BaseModel):
    """Request schema for deleting a booking."""

    booking_id: UUID = Field(..., description="Booking to delete")


class GetBookingRequest(BaseModel):
    """Request schema for getting a booking."""

    booking_id: UUID = Field(..., description="Booking to retrieve")


class ReissueBookingRequest(_BookingDetails):
    """
    Request schema for reissuing a booking.

    PNR, airline, agent and partner default to the parent's values.
    """

    parent_booking_id: UUID = Field(..., description="Booking being reissued")
    pnr: Optional[str] = Field(None, min_length=1, max_length=32)
    agent_id: Optional[UUID] = None
    issued_partner_id: Optional[UUID] = None

    @field_validator("pnr")
    @classmethod
    def normalize_pnr(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_pnr(v)


class SearchBookingsRequest(BookingFilters):
    """Request schema for searching bookings."""

    query: Optional[str] = Field(
        None,
        max_length=128,
        description="Free text matched against PNR, airline, ticket number and passenger name"
    )
    page: int = Field(1, ge=1, description="Page number, starting at 1")
    page_size: int = Field(20, ge=1, le=200, description="Rows per page")


# Responses

class BookingPassenger(BaseModel):
    """Ticket line response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    passenger_id: Optional[str] = None
    title: Optional[str] = None
    first_name: Optional[str] = None
    surname: Optional[str] = None
    pax_type: PassengerType
    ticket_number: Optional[str] = None
    ticket_status: Optional[TicketStatus] = None
    effective_status: TicketStatus
    cost_price: Money
    sale_price: Money
    refund_amount_partner: Money
    refund_amount_customer: Money


class Booking(BaseModel):
    """Booking response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Unique booking ID")
    pnr: str
    airline: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    entry_date: date
    departure_date: Optional[date] = None
    return_date: Optional[date] = None
    ticket_issued_date: Optional[date] = None
    status_date: date
    refund_date: Optional[date] = None
    ticket_status: TicketStatus
    booking_source: BookingSource
    platform: Optional[str] = None
    payment_method: Optional[str] = None
    payment_status: str
    currency: str
    advance_payment: Money
    agent_id: Optional[str] = None
    issued_partner_id: Optional[str] = None
    parent_booking_id: Optional[str] = None
    total_cost: Money
    total_sale: Money
    refund_partner_total: Money
    refund_customer_total: Money
    profit: Money
    is_deleted: bool
    created_at: datetime
    updated_at: datetime
    passengers: List[BookingPassenger] = Field(default_factory=list)


class BookingPage(PaginatedResponse):
    """Booking search response schema."""

    items: List[Booking]


class LinkedBookings(BaseModel):
    """Reissue chain around a booking."""

    booking: Booking
    parent: Optional[Booking] = None
    children: List[Booking] = Field(default_factory=list)


class BookingHistoryItem(BaseModel):
    """Booking history response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    booking_id: str
    action: HistoryAction
    previous_status: Optional[TicketStatus] = None
    new_status: Optional[TicketStatus] = None
    details: Optional[str] = None
    actor: str
    created_at: datetime


class BookingHistoryList(BaseModel):
    """Booking history listing, oldest first."""

    items: List[BookingHistoryItem]
