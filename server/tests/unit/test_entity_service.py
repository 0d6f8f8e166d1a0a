"""Unit tests for entity service."""

from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError as PydanticValidationError

from backoffice.core.exceptions import InactiveEntityError, NotFoundError
from backoffice.models.entity import Agent, IssuedPartner
from backoffice.models.enums import TransactionType
from backoffice.schemas.entity import CreateEntityRequest, RenameEntityRequest
from backoffice.schemas.ledger import EntityType, ListTransactionsRequest
from backoffice.services.entity_service import EntityService
from backoffice.services.ledger_service import LedgerService


@pytest.mark.asyncio
async def test_create_agent(test_session):
    """Test creating an agent without opening balance posts nothing."""
    service = EntityService(test_session)

    agent = await service.create_entity(CreateEntityRequest(entity_type=EntityType.AGENT, name="  Kandy Holidays "))

    assert isinstance(agent, Agent)
    assert agent.name == "Kandy Holidays"
    assert agent.balance == Decimal("0")
    transactions = await LedgerService(test_session).list_transactions(ListTransactionsRequest(
        entity_type=EntityType.AGENT,
        entity_id=agent.id,
    ))
    assert transactions == []


@pytest.mark.asyncio
async def test_opening_balance_is_posted_as_adjustment(test_session, partner):
    """Test the opening balance is backed by a transaction."""
    assert isinstance(partner, IssuedPartner)
    assert partner.balance == Decimal("1000.00")

    transactions = await LedgerService(test_session).list_transactions(ListTransactionsRequest(
        entity_type=EntityType.PARTNER,
        entity_id=partner.id,
    ))
    assert len(transactions) == 1
    assert transactions[0].transaction_type == TransactionType.ADJUSTMENT.value
    assert transactions[0].description == "Opening balance"

    report = await LedgerService(test_session).reconcile(EntityType.PARTNER, partner.id)
    assert report.is_consistent


def test_blank_name_rejected():
    with pytest.raises(PydanticValidationError):
        CreateEntityRequest(entity_type=EntityType.AGENT, name="   ")


@pytest.mark.asyncio
async def test_list_entities_excludes_deleted(test_session):
    service = EntityService(test_session)
    zeta = await service.create_entity(CreateEntityRequest(entity_type=EntityType.AGENT, name="Zeta Tours"))
    await service.create_entity(CreateEntityRequest(entity_type=EntityType.AGENT, name="Alpha Travels"))
    await service.create_entity(CreateEntityRequest(entity_type=EntityType.PARTNER, name="Partner One"))
    await service.delete_entity(EntityType.AGENT, zeta.id)

    agents = await service.list_entities(EntityType.AGENT)

    assert [agent.name for agent in agents] == ["Alpha Travels"]


@pytest.mark.asyncio
async def test_rename_entity(test_session, agent):
    service = EntityService(test_session)

    renamed = await service.rename_entity(RenameEntityRequest(
        entity_type=EntityType.AGENT,
        entity_id=agent.id,
        name="Colombo Travel Desk (Fort)",
    ))

    assert renamed.name == "Colombo Travel Desk (Fort)"


@pytest.mark.asyncio
async def test_rename_deleted_entity_rejected(test_session, agent):
    service = EntityService(test_session)
    await service.delete_entity(EntityType.AGENT, agent.id)

    with pytest.raises(InactiveEntityError):
        await service.rename_entity(RenameEntityRequest(
            entity_type=EntityType.AGENT,
            entity_id=agent.id,
            name="New name",
        ))


@pytest.mark.asyncio
async def test_delete_entity_keeps_balance(test_session, partner):
    """Test soft delete keeps the balance and is repeatable."""
    service = EntityService(test_session)

    deleted = await service.delete_entity(EntityType.PARTNER, partner.id)
    again = await service.delete_entity(EntityType.PARTNER, partner.id)

    assert deleted.is_deleted is True
    assert again.is_deleted is True
    assert again.balance == Decimal("1000.00")

    fetched = await service.get_entity(EntityType.PARTNER, partner.id)
    assert fetched.is_deleted is True


@pytest.mark.asyncio
async def test_get_entity_wrong_type_not_found(test_session, agent):
    with pytest.raises(NotFoundError):
        await EntityService(test_session).get_entity(EntityType.PARTNER, agent.id)


@pytest.mark.asyncio
async def test_delete_unknown_entity(test_session):
    with pytest.raises(NotFoundError):
        await EntityService(test_session).delete_entity(EntityType.AGENT, uuid4())
