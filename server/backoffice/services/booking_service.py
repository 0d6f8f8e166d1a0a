"""Booking service for the booking lifecycle and its ledger effects."""

import logging
from collections.abc import Iterable
from datetime import date
from uuid import UUID, uuid4

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.config import settings
from ..core.exceptions import (
    ConflictError,
    DuplicateBookingError,
    InactiveEntityError,
    NonBillableParentError,
    NotFoundError,
    ValidationError,
)
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingHistory, BookingPassenger
from ..models.enums import BILLABLE_STATUSES, HistoryAction, LedgerKind, TicketStatus
from ..models.passenger import Passenger
from ..schemas.booking import (
    CreateBookingRequest,
    DeleteBookingRequest,
    PassengerLineInput,
    ReissueBookingRequest,
    SearchBookingsRequest,
    UpdateBookingRequest,
)
from ..schemas.ledger import BookingSnapshot, BookingTotals, HistoryEntry, PassengerLine
from . import ledger_engine
from .ledger_service import LedgerService

logger = logging.getLogger(__name__)

# Header fields copied verbatim from an update request when present
_UPDATABLE_FIELDS = (
    "airline",
    "origin",
    "destination",
    "entry_date",
    "departure_date",
    "return_date",
    "ticket_issued_date",
    "platform",
    "payment_method",
    "payment_status",
    "advance_payment",
)

# Columns that cannot be cleared
_REQUIRED_FIELDS = frozenset({"entry_date", "payment_status", "advance_payment"})


def _enum_value(value):
    return value.value if hasattr(value, "value") else value


def snapshot_of(booking: Booking) -> BookingSnapshot:
    """Ledger engine view of a booking and its ticket lines."""
    return BookingSnapshot(
        pnr=booking.pnr,
        ticket_status=TicketStatus(booking.ticket_status),
        agent_id=booking.agent_id,
        issued_partner_id=booking.issued_partner_id,
        is_deleted=bool(booking.is_deleted),
        lines=[
            PassengerLine(
                ticket_status=TicketStatus(line.ticket_status) if line.ticket_status else None,
                ticket_number=line.ticket_number,
                cost_price=line.cost_price or 0,
                sale_price=line.sale_price or 0,
                refund_amount_partner=line.refund_amount_partner or 0,
                refund_amount_customer=line.refund_amount_customer or 0,
            )
            for line in booking.passengers
        ],
    )


class BookingService:
    """Service for booking-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = LedgerService(db)

    async def get_booking(self, booking_id: UUID) -> Booking:
        """
        Get a booking with its ticket lines, including soft-deleted bookings.

        Raises:
            NotFoundError: If booking not found
        """
        stmt = (
            select(Booking)
            .options(selectinload(Booking.passengers))
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        booking = result.scalar_one_or_none()

        if booking is None:
            raise NotFoundError("booking", str(booking_id))

        return booking

    async def _require_active_entity(self, ledger: LedgerKind, entity_id: UUID) -> None:
        entity = await self.ledger.get_entity(ledger, entity_id)
        if entity.is_deleted:
            raise InactiveEntityError(
                "agent" if ledger == LedgerKind.AGENT else "partner",
                str(entity_id)
            )

    async def _get_reissuable_parent(self, parent_booking_id: UUID) -> Booking:
        parent = await self.get_booking(parent_booking_id)
        if parent.is_deleted or TicketStatus(parent.ticket_status) not in BILLABLE_STATUSES:
            status = "DELETED" if parent.is_deleted else parent.ticket_status
            raise NonBillableParentError(str(parent.id), _enum_value(status))
        return parent

    async def _build_lines(self, inputs: Iterable[PassengerLineInput]) -> list[BookingPassenger]:
        """Turn request lines into ticket rows, filling names from the passenger directory."""
        lines = []
        for position, item in enumerate(inputs):
            title, first_name, surname = item.title, item.first_name, item.surname

            if item.passenger_id is not None:
                passenger = await self.db.get(Passenger, item.passenger_id)
                if passenger is None or passenger.is_deleted:
                    raise NotFoundError("passenger", str(item.passenger_id))
                title = title or passenger.title
                first_name = first_name or passenger.first_name or passenger.name
                surname = surname or passenger.surname

            lines.append(BookingPassenger(
                id=uuid4(),
                passenger_id=item.passenger_id,
                position=position,
                title=title,
                first_name=first_name,
                surname=surname,
                pax_type=item.pax_type.value,
                ticket_number=item.ticket_number,
                ticket_status=item.ticket_status.value if item.ticket_status else None,
                cost_price=item.cost_price,
                sale_price=item.sale_price,
                refund_amount_partner=item.refund_amount_partner,
                refund_amount_customer=item.refund_amount_customer,
            ))
        return lines

    async def _check_duplicates(
        self,
        pnr: str,
        ticket_status: TicketStatus,
        ticket_numbers: Iterable[str | None],
        exclude_id: UUID | None = None
    ) -> None:
        """
        Enforce booking uniqueness among non-deleted bookings.

        A PNR may hold one booking per status, except reissues. A ticket
        number may only be reused within the same PNR.

        Raises:
            DuplicateBookingError: If either rule is broken
        """
        if ticket_status != TicketStatus.REISSUE:
            stmt = select(Booking.id).where(
                Booking.pnr == pnr,
                Booking.ticket_status == ticket_status.value,
                Booking.is_deleted.is_(False),
            )
            if exclude_id is not None:
                stmt = stmt.where(Booking.id != exclude_id)

            existing_id = (await self.db.execute(stmt.limit(1))).scalar_one_or_none()
            if existing_id is not None:
                raise DuplicateBookingError(
                    detail=f"A {ticket_status.value} booking for PNR {pnr} already exists",
                    existing_booking_id=str(existing_id),
                    pnr=pnr,
                )

        numbers = sorted({number for number in ticket_numbers if number})
        if not numbers:
            return

        stmt = (
            select(BookingPassenger.ticket_number, Booking.id, Booking.pnr)
            .join(Booking, BookingPassenger.booking_id == Booking.id)
            .where(
                BookingPassenger.ticket_number.in_(numbers),
                Booking.is_deleted.is_(False),
                Booking.pnr != pnr,
            )
        )
        if exclude_id is not None:
            stmt = stmt.where(Booking.id != exclude_id)

        clash = (await self.db.execute(stmt.limit(1))).first()
        if clash is not None:
            raise DuplicateBookingError(
                detail=f"Ticket number {clash.ticket_number} is already used on PNR {clash.pnr}",
                existing_booking_id=str(clash.id),
                pnr=clash.pnr,
            )

    @staticmethod
    def _store_totals(booking: Booking, totals: BookingTotals) -> None:
        booking.total_cost = totals.total_cost
        booking.total_sale = totals.total_sale
        booking.refund_partner_total = totals.refund_partner_total
        booking.refund_customer_total = totals.refund_customer_total
        booking.profit = totals.profit

    def _add_history(self, booking_id: UUID, entries: Iterable[HistoryEntry], actor: str) -> None:
        for entry in entries:
            self.db.add(BookingHistory(
                booking_id=booking_id,
                action=entry.action.value,
                previous_status=_enum_value(entry.previous_status),
                new_status=_enum_value(entry.new_status),
                details=entry.details,
                actor=actor,
            ))

    async def create_booking(self, request: CreateBookingRequest, actor: str = "system") -> Booking:
        """
        Create a booking and post its ledger effect in one commit.

        Raises:
            ValidationError: If a REISSUE booking has no parent, or a parent is given for another status
            NotFoundError: If a referenced agent, partner, passenger or parent does not exist
            InactiveEntityError: If a referenced agent or partner has been deleted
            NonBillableParentError: If the parent booking was never issued
            DuplicateBookingError: If the booking duplicates an existing one
        """
        is_reissue = request.ticket_status == TicketStatus.REISSUE
        if is_reissue and request.parent_booking_id is None:
            raise ValidationError(
                detail="A REISSUE booking requires parent_booking_id",
                errors={"parent_booking_id": "required for REISSUE"},
            )
        if not is_reissue and request.parent_booking_id is not None:
            raise ValidationError(
                detail="parent_booking_id is only allowed on REISSUE bookings",
                errors={"parent_booking_id": "not allowed"},
            )

        if request.agent_id is not None:
            await self._require_active_entity(LedgerKind.AGENT, request.agent_id)
        if request.issued_partner_id is not None:
            await self._require_active_entity(LedgerKind.ISSUED_PARTNER, request.issued_partner_id)

        parent = await self._get_reissuable_parent(request.parent_booking_id) if is_reissue else None

        lines = await self._build_lines(request.passengers)
        await self._check_duplicates(
            request.pnr,
            request.ticket_status,
            (line.ticket_number for line in lines),
        )

        today = date.today()
        status_date = request.status_date or today
        booking = Booking(
            id=uuid4(),
            pnr=request.pnr,
            airline=request.airline,
            origin=request.origin,
            destination=request.destination,
            entry_date=request.entry_date or today,
            departure_date=request.departure_date,
            return_date=request.return_date,
            ticket_issued_date=request.ticket_issued_date,
            status_date=status_date,
            refund_date=status_date if request.ticket_status == TicketStatus.REFUNDED else None,
            ticket_status=request.ticket_status.value,
            booking_source=request.booking_source.value,
            platform=request.platform,
            payment_method=request.payment_method,
            payment_status=request.payment_status,
            currency=request.currency.value if request.currency else settings.default_currency,
            advance_payment=request.advance_payment,
            agent_id=request.agent_id,
            issued_partner_id=request.issued_partner_id,
            parent_booking_id=request.parent_booking_id,
            is_deleted=False,
            passengers=lines,
        )

        snapshot = snapshot_of(booking)
        plan = ledger_engine.plan_reissue(snapshot) if is_reissue else ledger_engine.plan_create(snapshot)
        self._store_totals(booking, plan.totals)

        self.db.add(booking)
        await self.db.flush()

        await self.ledger.apply_plan(plan, booking_id=booking.id)
        self._add_history(booking.id, plan.history, actor)

        if parent is not None:
            self.db.add(BookingHistory(
                booking_id=parent.id,
                action=HistoryAction.REISSUED.value,
                previous_status=parent.ticket_status,
                new_status=parent.ticket_status,
                details=f"Reissued as booking {booking.id}",
                actor=actor,
            ))

        await self.db.commit()

        metrics_collector.record_booking_created(request.ticket_status.value)
        if is_reissue:
            metrics_collector.record_booking_reissued()

        logger.info(
            "Booking created successfully",
            extra={
                "booking_id": str(booking.id),
                "pnr": booking.pnr,
                "ticket_status": request.ticket_status.value,
                "parent_booking_id": str(request.parent_booking_id) if request.parent_booking_id else None,
                "total_sale": str(plan.totals.total_sale),
                "total_cost": str(plan.totals.total_cost),
                "ledger_entries": len(plan.entries),
                "actor": actor,
            }
        )

        return await self.get_booking(booking.id)

    async def reissue_booking(self, request: ReissueBookingRequest, actor: str = "system") -> Booking:
        """
        Reissue a booking as a linked child charged for its own lines.

        PNR, airline, platform, currency, agent and partner are inherited
        from the parent unless the request overrides them.
        """
        parent = await self._get_reissuable_parent(request.parent_booking_id)
        fields = request.model_fields_set

        create_request = CreateBookingRequest(
            pnr=request.pnr or parent.pnr,
            airline=request.airline or parent.airline,
            origin=request.origin,
            destination=request.destination,
            entry_date=request.entry_date,
            departure_date=request.departure_date,
            return_date=request.return_date,
            ticket_issued_date=request.ticket_issued_date,
            status_date=request.status_date,
            booking_source=request.booking_source,
            platform=request.platform or parent.platform,
            payment_method=request.payment_method,
            payment_status=request.payment_status,
            currency=request.currency or parent.currency,
            advance_payment=request.advance_payment,
            passengers=request.passengers,
            ticket_status=TicketStatus.REISSUE,
            agent_id=request.agent_id if "agent_id" in fields else parent.agent_id,
            issued_partner_id=request.issued_partner_id if "issued_partner_id" in fields else parent.issued_partner_id,
            parent_booking_id=parent.id,
        )

        return await self.create_booking(create_request, actor)

    async def update_booking(self, request: UpdateBookingRequest, actor: str = "system") -> Booking:
        """
        Update a booking and post the ledger difference.

        Only fields present in the request change. A status change moves the
        status date; passengers, when given, replace every ticket line.

        Raises:
            NotFoundError: If booking (or a referenced entity) not found
            ConflictError: If the booking has been deleted
            ValidationError: If REISSUE is requested by an update or the dates are out of order
            DuplicateBookingError: If the change would duplicate another booking
        """
        booking = await self.get_booking(request.booking_id)
        if booking.is_deleted:
            raise ConflictError(
                detail=f"Booking {booking.id} has been deleted and cannot be edited",
                conflicting_resource={"booking_id": str(booking.id)},
            )

        fields = request.model_fields_set
        before = snapshot_of(booking)
        previous_status = TicketStatus(booking.ticket_status)

        if "agent_id" in fields and request.agent_id not in (None, booking.agent_id):
            await self._require_active_entity(LedgerKind.AGENT, request.agent_id)
        if "issued_partner_id" in fields and request.issued_partner_id not in (None, booking.issued_partner_id):
            await self._require_active_entity(LedgerKind.ISSUED_PARTNER, request.issued_partner_id)

        new_status = request.ticket_status or previous_status
        if new_status == TicketStatus.REISSUE and previous_status != TicketStatus.REISSUE:
            raise ValidationError(
                detail="Status REISSUE is only set by reissuing a booking",
                errors={"ticket_status": new_status.value},
            )

        departure_date = request.departure_date if "departure_date" in fields else booking.departure_date
        return_date = request.return_date if "return_date" in fields else booking.return_date
        if departure_date and return_date and return_date < departure_date:
            raise ValidationError(
                detail="return_date must not be before departure_date",
                errors={"return_date": return_date.isoformat()},
            )

        lines = await self._build_lines(request.passengers) if request.passengers is not None else None
        pnr = request.pnr or booking.pnr
        await self._check_duplicates(
            pnr,
            new_status,
            (line.ticket_number for line in (lines if lines is not None else booking.passengers)),
            exclude_id=booking.id,
        )

        # Header
        booking.pnr = pnr
        for name in _UPDATABLE_FIELDS:
            value = getattr(request, name)
            if name in fields and (value is not None or name not in _REQUIRED_FIELDS):
                setattr(booking, name, value)
        if "booking_source" in fields and request.booking_source is not None:
            booking.booking_source = request.booking_source.value
        if "currency" in fields and request.currency is not None:
            booking.currency = request.currency.value
        if "agent_id" in fields:
            booking.agent_id = request.agent_id
        if "issued_partner_id" in fields:
            booking.issued_partner_id = request.issued_partner_id
        if "refund_date" in fields:
            booking.refund_date = request.refund_date

        # Status
        if new_status != previous_status:
            booking.ticket_status = new_status.value
            booking.status_date = request.status_date or date.today()
            if new_status == TicketStatus.REFUNDED and booking.refund_date is None:
                booking.refund_date = booking.status_date
        elif request.status_date is not None:
            booking.status_date = request.status_date

        if lines is not None:
            booking.passengers = lines

        after = snapshot_of(booking)
        plan = ledger_engine.plan_update(before, after)
        self._store_totals(booking, plan.totals)

        if booking.refund_date is None and (plan.totals.refund_customer_total or plan.totals.refund_partner_total):
            booking.refund_date = date.today()

        await self.db.flush()
        await self.ledger.apply_plan(plan, booking_id=booking.id)
        self._add_history(booking.id, plan.history, actor)
        await self.db.commit()

        logger.info(
            "Booking updated successfully",
            extra={
                "booking_id": str(booking.id),
                "pnr": booking.pnr,
                "previous_status": previous_status.value,
                "ticket_status": new_status.value,
                "ledger_entries": len(plan.entries),
                "history_action": plan.history[0].action.value,
                "actor": actor,
            }
        )

        return await self.get_booking(booking.id)

    async def delete_booking(self, request: DeleteBookingRequest, actor: str = "system") -> Booking:
        """
        Soft-delete a booking and reverse its ledger effect.

        Deleting an already deleted booking returns it unchanged.
        """
        booking = await self.get_booking(request.booking_id)

        if booking.is_deleted:
            logger.info(
                "Booking already deleted - returning unchanged (idempotent)",
                extra={"booking_id": str(booking.id), "pnr": booking.pnr}
            )
            return booking

        before = snapshot_of(booking)
        plan = ledger_engine.plan_delete(before)

        booking.is_deleted = True
        await self.db.flush()
        await self.ledger.apply_plan(plan, booking_id=booking.id)
        self._add_history(booking.id, plan.history, actor)
        await self.db.commit()

        metrics_collector.record_booking_deleted()

        logger.info(
            "Booking deleted successfully",
            extra={
                "booking_id": str(booking.id),
                "pnr": booking.pnr,
                "ledger_entries": len(plan.entries),
                "actor": actor,
            }
        )

        return await self.get_booking(booking.id)

    async def get_linked_bookings(self, booking_id: UUID) -> tuple[Booking, Booking | None, list[Booking]]:
        """Return a booking with its reissue parent and children."""
        booking = await self.get_booking(booking_id)

        parent = None
        if booking.parent_booking_id is not None:
            parent = await self.get_booking(booking.parent_booking_id)

        stmt = (
            select(Booking)
            .options(selectinload(Booking.passengers))
            .where(Booking.parent_booking_id == booking.id)
            .order_by(Booking.created_at)
        )
        children = list((await self.db.execute(stmt)).scalars().all())

        return booking, parent, children

    async def get_history(self, booking_id: UUID) -> list[BookingHistory]:
        """Return a booking's history, oldest first."""
        await self.get_booking(booking_id)

        stmt = (
            select(BookingHistory)
            .where(BookingHistory.booking_id == booking_id)
            .order_by(BookingHistory.created_at)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def search_bookings(self, request: SearchBookingsRequest) -> tuple[list[Booking], int]:
        """
        Search non-deleted bookings, newest first.

        Returns:
            Tuple of (bookings on the requested page, total matching bookings)
        """
        stmt = select(Booking).where(Booking.is_deleted.is_(False))

        if request.start_date is not None:
            stmt = stmt.where(Booking.status_date >= request.start_date)
        if request.end_date is not None:
            stmt = stmt.where(Booking.status_date <= request.end_date)
        if request.ticket_status is not None:
            stmt = stmt.where(Booking.ticket_status == request.ticket_status.value)
        if request.platform:
            stmt = stmt.where(Booking.platform == request.platform)
        if request.airline:
            stmt = stmt.where(Booking.airline.ilike(f"%{request.airline.strip()}%"))
        if request.agent_id is not None:
            stmt = stmt.where(Booking.agent_id == request.agent_id)
        if request.issued_partner_id is not None:
            stmt = stmt.where(Booking.issued_partner_id == request.issued_partner_id)

        if request.query and request.query.strip():
            pattern = f"%{request.query.strip()}%"
            matching_lines = select(BookingPassenger.booking_id).where(or_(
                BookingPassenger.ticket_number.ilike(pattern),
                BookingPassenger.first_name.ilike(pattern),
                BookingPassenger.surname.ilike(pattern),
            ))
            stmt = stmt.where(or_(
                Booking.pnr.ilike(pattern),
                Booking.airline.ilike(pattern),
                Booking.id.in_(matching_lines),
            ))

        total = (await self.db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

        page_stmt = (
            stmt.options(selectinload(Booking.passengers))
            .order_by(Booking.created_at.desc(), Booking.id)
            .offset((request.page - 1) * request.page_size)
            .limit(request.page_size)
        )
        items = list((await self.db.execute(page_stmt)).scalars().all())

        logger.debug(
            "Bookings searched",
            extra={"total": total, "page": request.page, "returned": len(items)}
        )

        return items, total
