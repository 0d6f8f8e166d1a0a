"""Booking router for booking lifecycle operations."""

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import Actor, DatabaseSession, IdempotencyKey
from ..core.exceptions import ProblemDetailsException
from ..models.booking import Booking as BookingModel
from ..models.booking import BookingHistory as BookingHistoryModel
from ..models.enums import TicketStatus
from ..schemas.booking import (
    Booking,
    BookingHistoryItem,
    BookingHistoryList,
    BookingPage,
    BookingPassenger,
    CreateBookingRequest,
    DeleteBookingRequest,
    GetBookingRequest,
    LinkedBookings,
    ReissueBookingRequest,
    SearchBookingsRequest,
    UpdateBookingRequest,
)
from ..services.booking_service import BookingService
from .idempotent import handle_idempotent_operation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/booking", tags=["booking"])


def _optional_str(value) -> str | None:
    return str(value) if value is not None else None


def _convert_booking_to_schema(booking_model: BookingModel) -> Booking:
    """Convert booking model to schema."""
    booking_status = TicketStatus(booking_model.ticket_status)
    return Booking(
        id=str(booking_model.id),
        pnr=booking_model.pnr,
        airline=booking_model.airline,
        origin=booking_model.origin,
        destination=booking_model.destination,
        entry_date=booking_model.entry_date,
        departure_date=booking_model.departure_date,
        return_date=booking_model.return_date,
        ticket_issued_date=booking_model.ticket_issued_date,
        status_date=booking_model.status_date,
        refund_date=booking_model.refund_date,
        ticket_status=booking_status,
        booking_source=booking_model.booking_source,
        platform=booking_model.platform,
        payment_method=booking_model.payment_method,
        payment_status=booking_model.payment_status,
        currency=booking_model.currency,
        advance_payment=booking_model.advance_payment,
        agent_id=_optional_str(booking_model.agent_id),
        issued_partner_id=_optional_str(booking_model.issued_partner_id),
        parent_booking_id=_optional_str(booking_model.parent_booking_id),
        total_cost=booking_model.total_cost,
        total_sale=booking_model.total_sale,
        refund_partner_total=booking_model.refund_partner_total,
        refund_customer_total=booking_model.refund_customer_total,
        profit=booking_model.profit,
        is_deleted=booking_model.is_deleted,
        created_at=booking_model.created_at,
        updated_at=booking_model.updated_at,
        passengers=[
            BookingPassenger(
                id=str(line.id),
                passenger_id=_optional_str(line.passenger_id),
                title=line.title,
                first_name=line.first_name,
                surname=line.surname,
                pax_type=line.pax_type,
                ticket_number=line.ticket_number,
                ticket_status=line.ticket_status,
                effective_status=TicketStatus(line.ticket_status) if line.ticket_status else booking_status,
                cost_price=line.cost_price,
                sale_price=line.sale_price,
                refund_amount_partner=line.refund_amount_partner,
                refund_amount_customer=line.refund_amount_customer,
            )
            for line in booking_model.passengers
        ],
    )


def _convert_history_to_schema(history_model: BookingHistoryModel) -> BookingHistoryItem:
    """Convert booking history model to schema."""
    return BookingHistoryItem(
        id=str(history_model.id),
        booking_id=str(history_model.booking_id),
        action=history_model.action,
        previous_status=history_model.previous_status,
        new_status=history_model.new_status,
        details=history_model.details,
        actor=history_model.actor,
        created_at=history_model.created_at,
    )


@router.post("/create", response_model=Booking)
async def create_booking(
    request: CreateBookingRequest,
    db: AsyncSession = DatabaseSession,
    idempotency_key: str = IdempotencyKey,
    actor: str = Actor
) -> JSONResponse:
    """
    Create a booking and post its ledger transactions.

    This operation is idempotent based on the Idempotency-Key header.
    """
    booking_service = BookingService(db)

    async def operation():
        booking = await booking_service.create_booking(request, actor)
        return _convert_booking_to_schema(booking).model_dump(mode="json")

    try:
        return await handle_idempotent_operation(
            method="booking/create",
            idempotency_key=idempotency_key,
            request_body=request.model_dump(mode="json"),
            operation_func=operation,
            db=db
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking creation",
            extra={
                "pnr": request.pnr,
                "idempotency_key": idempotency_key,
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/reissue", response_model=Booking)
async def reissue_booking(
    request: ReissueBookingRequest,
    db: AsyncSession = DatabaseSession,
    idempotency_key: str = IdempotencyKey,
    actor: str = Actor
) -> JSONResponse:
    """
    Reissue a billable booking as a linked child booking.

    This operation is idempotent based on the Idempotency-Key header.
    """
    booking_service = BookingService(db)

    async def operation():
        booking = await booking_service.reissue_booking(request, actor)
        return _convert_booking_to_schema(booking).model_dump(mode="json")

    try:
        return await handle_idempotent_operation(
            method="booking/reissue",
            idempotency_key=idempotency_key,
            request_body=request.model_dump(mode="json"),
            operation_func=operation,
            db=db
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking reissue",
            extra={
                "parent_booking_id": str(request.parent_booking_id),
                "idempotency_key": idempotency_key,
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/update", response_model=Booking)
async def update_booking(
    request: UpdateBookingRequest,
    db: AsyncSession = DatabaseSession,
    actor: str = Actor
) -> JSONResponse:
    """
    Update a booking; the ledger receives only the difference.

    Re-sending the same update posts nothing new.
    """
    booking_service = BookingService(db)

    try:
        booking = await booking_service.update_booking(request, actor)
        return JSONResponse(
            status_code=200,
            content=_convert_booking_to_schema(booking).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking update",
            extra={"booking_id": str(request.booking_id), "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/delete", response_model=Booking)
async def delete_booking(
    request: DeleteBookingRequest,
    db: AsyncSession = DatabaseSession,
    actor: str = Actor
) -> JSONResponse:
    """
    Soft-delete a booking and reverse its ledger transactions.

    Deleting an already deleted booking returns it unchanged.
    """
    booking_service = BookingService(db)

    try:
        booking = await booking_service.delete_booking(request, actor)
        return JSONResponse(
            status_code=200,
            content=_convert_booking_to_schema(booking).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking deletion",
            extra={"booking_id": str(request.booking_id), "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/get", response_model=Booking)
async def get_booking(
    request: GetBookingRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Get a booking with its ticket lines."""
    booking = await BookingService(db).get_booking(request.booking_id)
    return JSONResponse(
        status_code=200,
        content=_convert_booking_to_schema(booking).model_dump(mode="json")
    )


@router.post("/linked", response_model=LinkedBookings)
async def get_linked_bookings(
    request: GetBookingRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Get a booking together with its reissue parent and children."""
    booking, parent, children = await BookingService(db).get_linked_bookings(request.booking_id)

    response_data = LinkedBookings(
        booking=_convert_booking_to_schema(booking),
        parent=_convert_booking_to_schema(parent) if parent else None,
        children=[_convert_booking_to_schema(child) for child in children],
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/history", response_model=BookingHistoryList)
async def get_booking_history(
    request: GetBookingRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Get a booking's audit trail, oldest first."""
    entries = await BookingService(db).get_history(request.booking_id)

    response_data = BookingHistoryList(items=[_convert_history_to_schema(entry) for entry in entries])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/search", response_model=BookingPage)
async def search_bookings(
    request: SearchBookingsRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Search non-deleted bookings with filters and page-based pagination."""
    items, total = await BookingService(db).search_bookings(request)

    response_data = BookingPage(
        items=[_convert_booking_to_schema(booking) for booking in items],
        total=total,
        page=request.page,
        page_size=request.page_size,
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))
