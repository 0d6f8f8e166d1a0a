"""Unit tests for ledger service."""

from datetime import datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from backoffice.core.exceptions import InactiveEntityError, NotFoundError
from backoffice.models.enums import LedgerKind, TransactionType
from backoffice.schemas.ledger import EntityType, ListTransactionsRequest, TopUpRequest
from backoffice.services.booking_service import BookingService
from backoffice.services.entity_service import EntityService
from backoffice.services.ledger_service import LedgerService, transaction_view


@pytest.mark.asyncio
async def test_partner_top_up_adds_credit(test_session, partner):
    """Test a partner top-up increases prepaid credit."""
    service = LedgerService(test_session)

    transaction = await service.top_up(TopUpRequest(
        entity_type=EntityType.PARTNER,
        entity_id=partner.id,
        amount=Decimal("250.00"),
    ))

    assert transaction.amount == Decimal("250.00")
    assert transaction.transaction_type == TransactionType.TOPUP.value
    assert transaction.description == "Manual Top Up"
    entity = await service.get_entity(LedgerKind.ISSUED_PARTNER, partner.id)
    assert entity.balance == Decimal("1250.00")


@pytest.mark.asyncio
async def test_agent_payment_reduces_debt(test_session, agent, make_booking_request):
    """Test an agent payment is posted as a negative amount."""
    await BookingService(test_session).create_booking(make_booking_request())
    service = LedgerService(test_session)

    transaction = await service.top_up(TopUpRequest(
        entity_type=EntityType.AGENT,
        entity_id=agent.id,
        amount=Decimal("200.00"),
        description="Bank transfer",
    ))

    assert transaction.amount == Decimal("-200.00")
    assert transaction.description == "Bank transfer"
    entity = await service.get_entity(LedgerKind.AGENT, agent.id)
    assert entity.balance == Decimal("300.00")


@pytest.mark.asyncio
async def test_top_up_deleted_entity_rejected(test_session, partner):
    await EntityService(test_session).delete_entity(EntityType.PARTNER, partner.id)

    with pytest.raises(InactiveEntityError):
        await LedgerService(test_session).top_up(TopUpRequest(
            entity_type=EntityType.PARTNER,
            entity_id=partner.id,
            amount=Decimal("10"),
        ))


@pytest.mark.asyncio
async def test_top_up_unknown_entity(test_session):
    with pytest.raises(NotFoundError):
        await LedgerService(test_session).top_up(TopUpRequest(
            entity_type=EntityType.AGENT,
            entity_id=uuid4(),
            amount=Decimal("10"),
        ))


@pytest.mark.asyncio
async def test_top_up_keeps_backdated_transaction_date(test_session, partner):
    backdated = datetime(2026, 1, 15, 9, 30)

    transaction = await LedgerService(test_session).top_up(TopUpRequest(
        entity_type=EntityType.PARTNER,
        entity_id=partner.id,
        amount=Decimal("10"),
        transaction_date=backdated,
    ))

    assert transaction.transaction_date == backdated


@pytest.mark.asyncio
async def test_list_transactions_newest_first_and_filtered(test_session, partner, make_booking_request):
    """Test listing an entity's transactions with type and date filters."""
    service = LedgerService(test_session)
    await BookingService(test_session).create_booking(make_booking_request())
    await service.top_up(TopUpRequest(
        entity_type=EntityType.PARTNER,
        entity_id=partner.id,
        amount=Decimal("50"),
        transaction_date=datetime.utcnow() - timedelta(days=30),
    ))

    transactions = await service.list_transactions(ListTransactionsRequest(
        entity_type=EntityType.PARTNER,
        entity_id=partner.id,
    ))
    # Opening balance, booking deduction, backdated top-up
    assert len(transactions) == 3
    assert transactions[-1].transaction_type == TransactionType.TOPUP.value
    dates = [t.transaction_date for t in transactions]
    assert dates == sorted(dates, reverse=True)

    deductions = await service.list_transactions(ListTransactionsRequest(
        entity_type=EntityType.PARTNER,
        entity_id=partner.id,
        transaction_type=TransactionType.BOOKING_DEDUCTION,
    ))
    assert [t.amount for t in deductions] == [Decimal("-400.00")]

    recent = await service.list_transactions(ListTransactionsRequest(
        entity_type=EntityType.PARTNER,
        entity_id=partner.id,
        start_date=datetime.utcnow() - timedelta(days=1),
    ))
    assert len(recent) == 2


@pytest.mark.asyncio
async def test_transaction_view_includes_entity_name(test_session, partner):
    service = LedgerService(test_session)
    transactions = await service.list_transactions(ListTransactionsRequest(
        entity_type=EntityType.PARTNER,
        entity_id=partner.id,
    ))

    names = await service.entity_names(transactions)
    view = transaction_view(transactions[0], names)

    assert view.entity_name == "Lanka Air Consolidators"
    assert view.issued_partner_id == str(partner.id)
    assert view.agent_id is None


@pytest.mark.asyncio
async def test_reconcile_consistent_after_bookings(test_session, agent, partner, make_booking_request):
    """Test balances equal transaction sums after ledger activity."""
    await BookingService(test_session).create_booking(make_booking_request())
    service = LedgerService(test_session)

    report = await service.reconcile(EntityType.PARTNER, partner.id)

    assert report.balance == Decimal("600.00")
    assert report.transaction_sum == Decimal("600.00")
    assert report.drift == Decimal("0.00")
    assert report.is_consistent

    reports = await service.reconcile_all()
    assert {r.entity_id for r in reports} == {str(agent.id), str(partner.id)}
    assert all(r.is_consistent for r in reports)


@pytest.mark.asyncio
async def test_reconcile_detects_drift(test_session, agent):
    """Test a balance edited outside the ledger shows up as drift."""
    service = LedgerService(test_session)
    entity = await service.get_entity(LedgerKind.AGENT, agent.id)
    entity.balance = Decimal("75.00")
    await test_session.commit()

    report = await service.reconcile(EntityType.AGENT, agent.id)

    assert report.drift == Decimal("75.00")
    assert not report.is_consistent
    assert report.model_dump()["is_consistent"] is False


@pytest.mark.asyncio
async def test_reconcile_all_filters_by_type(test_session, agent, partner):
    reports = await LedgerService(test_session).reconcile_all(EntityType.AGENT)

    assert [r.entity_id for r in reports] == [str(agent.id)]
    assert reports[0].entity_type == EntityType.AGENT
