"""Unit tests for booking service."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from backoffice.core.exceptions import (
    ConflictError,
    DuplicateBookingError,
    InactiveEntityError,
    NonBillableParentError,
    NotFoundError,
    ValidationError,
)
from backoffice.models.enums import HistoryAction, LedgerKind, TicketStatus
from backoffice.models.transaction import CreditTransaction
from backoffice.schemas.booking import (
    DeleteBookingRequest,
    PassengerLineInput,
    ReissueBookingRequest,
    SearchBookingsRequest,
    UpdateBookingRequest,
)
from backoffice.schemas.ledger import EntityType
from backoffice.schemas.passenger import CreatePassengerRequest
from backoffice.services.booking_service import BookingService
from backoffice.services.entity_service import EntityService
from backoffice.services.ledger_service import LedgerService
from backoffice.services.passenger_service import PassengerService


async def balance(session, ledger, entity_id) -> Decimal:
    entity = await LedgerService(session).get_entity(ledger, entity_id)
    return Decimal(entity.balance)


async def transaction_count(session, booking_id) -> int:
    result = await session.execute(
        select(func.count()).select_from(CreditTransaction).where(CreditTransaction.booking_id == booking_id)
    )
    return result.scalar_one()


def refund_lines(pnr="ABC123", partner="300.00", customer="350.00"):
    return [PassengerLineInput(
        first_name="Nimal",
        surname="Perera",
        ticket_number=f"{pnr}-1",
        cost_price=Decimal("400.00"),
        sale_price=Decimal("500.00"),
        refund_amount_partner=Decimal(partner),
        refund_amount_customer=Decimal(customer),
    )]


@pytest.mark.asyncio
async def test_create_issued_booking_posts_ledger(test_session, agent, partner, make_booking_request):
    """Test creating an issued booking charges partner and agent."""
    service = BookingService(test_session)

    booking = await service.create_booking(make_booking_request(), actor="alice")

    assert booking.pnr == "ABC123"
    assert booking.total_cost == Decimal("400.00")
    assert booking.total_sale == Decimal("500.00")
    assert booking.profit == Decimal("100.00")
    assert len(booking.passengers) == 1
    assert await balance(test_session, LedgerKind.ISSUED_PARTNER, partner.id) == Decimal("600.00")
    assert await balance(test_session, LedgerKind.AGENT, agent.id) == Decimal("500.00")
    assert await transaction_count(test_session, booking.id) == 2

    history = await service.get_history(booking.id)
    assert [entry.action for entry in history] == [HistoryAction.CREATED.value]
    assert history[0].actor == "alice"


@pytest.mark.asyncio
async def test_create_pending_booking_leaves_balances(test_session, agent, partner, make_booking_request):
    service = BookingService(test_session)

    booking = await service.create_booking(make_booking_request(ticket_status="PENDING"))

    assert booking.ticket_status == TicketStatus.PENDING.value
    assert await transaction_count(test_session, booking.id) == 0
    assert await balance(test_session, LedgerKind.ISSUED_PARTNER, partner.id) == Decimal("1000.00")


@pytest.mark.asyncio
async def test_create_booking_pnr_is_normalized(test_session, make_booking_request):
    booking = await BookingService(test_session).create_booking(make_booking_request(pnr=" abc999 "))

    assert booking.pnr == "ABC999"


@pytest.mark.asyncio
async def test_create_duplicate_pnr_and_status(test_session, make_booking_request):
    """Test a second booking with the same PNR and status is rejected."""
    service = BookingService(test_session)
    await service.create_booking(make_booking_request())

    with pytest.raises(DuplicateBookingError):
        await service.create_booking(make_booking_request(lines=[]))


@pytest.mark.asyncio
async def test_same_pnr_different_status_allowed(test_session, make_booking_request):
    """Ticket numbers may repeat within one PNR."""
    service = BookingService(test_session)
    await service.create_booking(make_booking_request(ticket_status="PENDING"))

    booking = await service.create_booking(make_booking_request())

    assert booking.ticket_status == TicketStatus.ISSUED.value


@pytest.mark.asyncio
async def test_ticket_number_reuse_across_pnrs_rejected(test_session, make_booking_request):
    service = BookingService(test_session)
    await service.create_booking(make_booking_request())

    with pytest.raises(DuplicateBookingError):
        await service.create_booking(make_booking_request(
            pnr="XYZ789",
            lines=[{"first_name": "Kamal", "ticket_number": "ABC123-1", "sale_price": "10"}],
        ))


@pytest.mark.asyncio
async def test_reissue_status_requires_parent(test_session, make_booking_request):
    with pytest.raises(ValidationError):
        await BookingService(test_session).create_booking(make_booking_request(ticket_status="REISSUE"))


@pytest.mark.asyncio
async def test_parent_only_allowed_on_reissue(test_session, make_booking_request):
    with pytest.raises(ValidationError):
        await BookingService(test_session).create_booking(make_booking_request(parent_booking_id=uuid4()))


@pytest.mark.asyncio
async def test_create_with_deleted_agent_rejected(test_session, agent, make_booking_request):
    await EntityService(test_session).delete_entity(EntityType.AGENT, agent.id)

    with pytest.raises(InactiveEntityError):
        await BookingService(test_session).create_booking(make_booking_request())


@pytest.mark.asyncio
async def test_create_with_unknown_agent_rejected(test_session, make_booking_request):
    with pytest.raises(NotFoundError):
        await BookingService(test_session).create_booking(make_booking_request(agent_id=uuid4()))


@pytest.mark.asyncio
async def test_create_copies_names_from_directory(test_session, make_booking_request, sample_passenger_data):
    """Ticket lines take names from the directory passenger."""
    passenger = await PassengerService(test_session).create_passenger(
        CreatePassengerRequest(**sample_passenger_data)
    )

    booking = await BookingService(test_session).create_booking(make_booking_request(
        lines=[{"passenger_id": passenger.id, "ticket_number": "T-1", "sale_price": "100"}],
    ))

    line = booking.passengers[0]
    assert line.passenger_id == passenger.id
    assert line.title == "Mr"
    assert line.first_name == "Nimal"
    assert line.surname == "Perera"


@pytest.mark.asyncio
async def test_create_with_unknown_passenger_rejected(test_session, make_booking_request):
    with pytest.raises(NotFoundError):
        await BookingService(test_session).create_booking(make_booking_request(
            lines=[{"passenger_id": uuid4(), "sale_price": "100"}],
        ))


@pytest.mark.asyncio
async def test_update_to_refunded_posts_refunds(test_session, agent, partner, make_booking_request):
    """Test refunding credits partner and agent with the refund amounts only."""
    service = BookingService(test_session)
    booking = await service.create_booking(make_booking_request())

    updated = await service.update_booking(UpdateBookingRequest(
        booking_id=booking.id,
        ticket_status=TicketStatus.REFUNDED,
        passengers=refund_lines(),
    ))

    assert updated.ticket_status == TicketStatus.REFUNDED.value
    assert updated.refund_partner_total == Decimal("300.00")
    assert updated.refund_customer_total == Decimal("350.00")
    assert updated.profit == Decimal("50.00")
    assert updated.refund_date is not None
    assert await balance(test_session, LedgerKind.ISSUED_PARTNER, partner.id) == Decimal("900.00")
    assert await balance(test_session, LedgerKind.AGENT, agent.id) == Decimal("150.00")

    history = await service.get_history(booking.id)
    assert [entry.action for entry in history] == [HistoryAction.CREATED.value, HistoryAction.REFUNDED.value]


@pytest.mark.asyncio
async def test_repeated_update_posts_nothing_new(test_session, make_booking_request):
    """Test sending the same update twice only moves balances once."""
    service = BookingService(test_session)
    booking = await service.create_booking(make_booking_request())
    request = UpdateBookingRequest(
        booking_id=booking.id,
        ticket_status=TicketStatus.REFUNDED,
        passengers=refund_lines(),
    )

    await service.update_booking(request)
    count_after_first = await transaction_count(test_session, booking.id)
    await service.update_booking(request)

    assert await transaction_count(test_session, booking.id) == count_after_first


@pytest.mark.asyncio
async def test_update_header_fields_only(test_session, agent, make_booking_request):
    """Fields missing from the request are left alone."""
    service = BookingService(test_session)
    booking = await service.create_booking(make_booking_request(platform="Amadeus"))

    updated = await service.update_booking(UpdateBookingRequest(booking_id=booking.id, airline="EK"))

    assert updated.airline == "EK"
    assert updated.platform == "Amadeus"
    assert len(updated.passengers) == 1
    assert await balance(test_session, LedgerKind.AGENT, agent.id) == Decimal("500.00")


@pytest.mark.asyncio
async def test_update_deleted_booking_conflicts(test_session, make_booking_request):
    service = BookingService(test_session)
    booking = await service.create_booking(make_booking_request())
    await service.delete_booking(DeleteBookingRequest(booking_id=booking.id))

    with pytest.raises(ConflictError):
        await service.update_booking(UpdateBookingRequest(booking_id=booking.id, airline="EK"))


@pytest.mark.asyncio
async def test_update_unknown_booking(test_session):
    with pytest.raises(NotFoundError):
        await BookingService(test_session).update_booking(UpdateBookingRequest(booking_id=uuid4()))


@pytest.mark.asyncio
async def test_delete_booking_restores_balances(test_session, agent, partner, make_booking_request):
    """Test deleting a refunded booking returns both balances to where they started."""
    service = BookingService(test_session)
    booking = await service.create_booking(make_booking_request())
    await service.update_booking(UpdateBookingRequest(
        booking_id=booking.id,
        ticket_status=TicketStatus.REFUNDED,
        passengers=refund_lines(),
    ))

    deleted = await service.delete_booking(DeleteBookingRequest(booking_id=booking.id))

    assert deleted.is_deleted is True
    assert await balance(test_session, LedgerKind.ISSUED_PARTNER, partner.id) == Decimal("1000.00")
    assert await balance(test_session, LedgerKind.AGENT, agent.id) == Decimal("0.00")

    history = await service.get_history(booking.id)
    assert history[-1].action == HistoryAction.DELETED.value


@pytest.mark.asyncio
async def test_delete_is_idempotent(test_session, make_booking_request):
    service = BookingService(test_session)
    booking = await service.create_booking(make_booking_request())
    await service.delete_booking(DeleteBookingRequest(booking_id=booking.id))
    count = await transaction_count(test_session, booking.id)

    again = await service.delete_booking(DeleteBookingRequest(booking_id=booking.id))

    assert again.is_deleted is True
    assert await transaction_count(test_session, booking.id) == count


@pytest.mark.asyncio
async def test_deleted_booking_frees_pnr_and_status(test_session, make_booking_request):
    service = BookingService(test_session)
    booking = await service.create_booking(make_booking_request())
    await service.delete_booking(DeleteBookingRequest(booking_id=booking.id))

    replacement = await service.create_booking(make_booking_request())

    assert replacement.id != booking.id


@pytest.mark.asyncio
async def test_reissue_creates_linked_child(test_session, agent, partner, make_booking_request):
    """Test reissuing inherits PNR and ledgers and charges the child's own lines."""
    service = BookingService(test_session)
    parent = await service.create_booking(make_booking_request())

    child = await service.reissue_booking(ReissueBookingRequest(
        parent_booking_id=parent.id,
        passengers=[PassengerLineInput(first_name="Nimal", ticket_number="ABC123-2",
                                       cost_price=Decimal("50"), sale_price=Decimal("80"))],
    ))

    assert child.ticket_status == TicketStatus.REISSUE.value
    assert child.parent_booking_id == parent.id
    assert child.pnr == parent.pnr
    assert child.agent_id == agent.id
    assert child.issued_partner_id == partner.id
    assert await balance(test_session, LedgerKind.ISSUED_PARTNER, partner.id) == Decimal("550.00")
    assert await balance(test_session, LedgerKind.AGENT, agent.id) == Decimal("580.00")

    parent_history = await service.get_history(parent.id)
    assert parent_history[-1].action == HistoryAction.REISSUED.value
    child_history = await service.get_history(child.id)
    assert child_history[0].action == HistoryAction.REISSUED.value

    booking, linked_parent, children = await service.get_linked_bookings(child.id)
    assert booking.id == child.id
    assert linked_parent.id == parent.id
    assert children == []

    _, no_parent, parent_children = await service.get_linked_bookings(parent.id)
    assert no_parent is None
    assert [c.id for c in parent_children] == [child.id]


@pytest.mark.asyncio
async def test_reissue_pending_booking_rejected(test_session, make_booking_request):
    service = BookingService(test_session)
    parent = await service.create_booking(make_booking_request(ticket_status="PENDING"))

    with pytest.raises(NonBillableParentError):
        await service.reissue_booking(ReissueBookingRequest(parent_booking_id=parent.id))


@pytest.mark.asyncio
async def test_update_cannot_set_reissue_status(test_session, make_booking_request):
    """Test REISSUE is only reachable through reissue, even for a former reissue."""
    service = BookingService(test_session)
    parent = await service.create_booking(make_booking_request())
    child = await service.reissue_booking(ReissueBookingRequest(
        parent_booking_id=parent.id,
        passengers=[PassengerLineInput(first_name="Nimal", ticket_number="ABC123-2",
                                       cost_price=Decimal("50"), sale_price=Decimal("80"))],
    ))

    # Saving a reissue without changing its status is fine
    kept = await service.update_booking(UpdateBookingRequest(booking_id=child.id, platform="Web"))
    assert kept.ticket_status == TicketStatus.REISSUE.value

    await service.update_booking(UpdateBookingRequest(booking_id=child.id, ticket_status=TicketStatus.PENDING))
    with pytest.raises(ValidationError):
        await service.update_booking(UpdateBookingRequest(booking_id=child.id, ticket_status=TicketStatus.REISSUE))

    with pytest.raises(ValidationError):
        await service.update_booking(UpdateBookingRequest(booking_id=parent.id, ticket_status=TicketStatus.REISSUE))

    assert (await service.get_booking(child.id)).ticket_status == TicketStatus.PENDING.value


@pytest.mark.asyncio
async def test_update_rejects_return_before_stored_departure(test_session, make_booking_request):
    service = BookingService(test_session)
    booking = await service.create_booking(make_booking_request(departure_date=date(2026, 5, 10)))

    with pytest.raises(ValidationError):
        await service.update_booking(UpdateBookingRequest(booking_id=booking.id, return_date=date(2026, 5, 1)))

    updated = await service.update_booking(UpdateBookingRequest(booking_id=booking.id, return_date=date(2026, 5, 20)))
    assert updated.return_date == date(2026, 5, 20)


def test_refund_above_line_price_rejected():
    with pytest.raises(ValueError, match="refund_amount_customer"):
        PassengerLineInput(first_name="Nimal", cost_price=Decimal("1200.00"), sale_price=Decimal("1500.00"),
                           refund_amount_customer=Decimal("3000.00"))
    with pytest.raises(ValueError, match="refund_amount_partner"):
        PassengerLineInput(first_name="Nimal", cost_price=Decimal("1200.00"), sale_price=Decimal("1500.00"),
                           refund_amount_partner=Decimal("1200.01"))

    line = PassengerLineInput(first_name="Nimal", cost_price=Decimal("1200.00"), sale_price=Decimal("1500.00"),
                              refund_amount_partner=Decimal("1200.00"), refund_amount_customer=Decimal("1500.00"))
    assert line.refund_amount_customer == Decimal("1500.00")


@pytest.mark.asyncio
async def test_search_bookings(test_session, make_booking_request):
    """Test free-text search and pagination."""
    service = BookingService(test_session)
    await service.create_booking(make_booking_request(pnr="AAA111"))
    await service.create_booking(make_booking_request(pnr="BBB222", airline="EK"))
    deleted = await service.create_booking(make_booking_request(pnr="CCC333"))
    await service.delete_booking(DeleteBookingRequest(booking_id=deleted.id))

    items, total = await service.search_bookings(SearchBookingsRequest())
    assert total == 2
    assert {booking.pnr for booking in items} == {"AAA111", "BBB222"}

    items, total = await service.search_bookings(SearchBookingsRequest(query="bbb2"))
    assert [booking.pnr for booking in items] == ["BBB222"]

    items, total = await service.search_bookings(SearchBookingsRequest(query="AAA111-1"))
    assert [booking.pnr for booking in items] == ["AAA111"]

    items, total = await service.search_bookings(SearchBookingsRequest(airline="ek"))
    assert [booking.pnr for booking in items] == ["BBB222"]

    items, total = await service.search_bookings(SearchBookingsRequest(page=2, page_size=1))
    assert total == 2
    assert len(items) == 1
