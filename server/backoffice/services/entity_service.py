"""Agent and issuing partner management service."""

import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import InactiveEntityError
from ..models.entity import Agent, IssuedPartner
from ..models.enums import TransactionType
from ..schemas.entity import CreateEntityRequest, RenameEntityRequest
from ..schemas.ledger import EntityType
from .ledger_service import LedgerService

logger = logging.getLogger(__name__)


def _model(entity_type: EntityType):
    return Agent if entity_type == EntityType.AGENT else IssuedPartner


class EntityService:
    """Service for agents and issuing partners."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = LedgerService(db)

    async def create_entity(self, request: CreateEntityRequest) -> Agent | IssuedPartner:
        """
        Create an agent or issuing partner.

        A non-zero opening balance is posted as an adjustment so that the
        balance always reconciles with the transaction history.
        """
        entity = _model(request.entity_type)(
            name=request.name,
            balance=Decimal("0"),
            is_deleted=False,
        )
        self.db.add(entity)
        await self.db.flush()

        if request.opening_balance:
            await self.ledger.post(
                ledger=request.entity_type.ledger,
                entity_id=entity.id,
                amount=request.opening_balance,
                transaction_type=TransactionType.ADJUSTMENT,
                description="Opening balance",
            )

        await self.db.commit()
        await self.db.refresh(entity)

        logger.info(
            "Entity created successfully",
            extra={
                "entity_type": request.entity_type.value,
                "entity_id": str(entity.id),
                "entity_name": entity.name,
                "opening_balance": str(request.opening_balance),
            }
        )

        return entity

    async def get_entity(self, entity_type: EntityType, entity_id: UUID) -> Agent | IssuedPartner:
        return await self.ledger.get_entity(entity_type.ledger, entity_id)

    async def list_entities(self, entity_type: EntityType) -> list[Agent | IssuedPartner]:
        """List non-deleted agents or partners by name."""
        model = _model(entity_type)
        result = await self.db.execute(
            select(model).where(model.is_deleted.is_(False)).order_by(model.name)
        )
        return list(result.scalars().all())

    async def rename_entity(self, request: RenameEntityRequest) -> Agent | IssuedPartner:
        """
        Rename an agent or partner.

        Raises:
            NotFoundError: If the entity does not exist
            InactiveEntityError: If the entity has been deleted
        """
        entity = await self.get_entity(request.entity_type, request.entity_id)
        if entity.is_deleted:
            raise InactiveEntityError(request.entity_type.value, str(request.entity_id))

        previous_name = entity.name
        entity.name = request.name
        await self.db.commit()
        await self.db.refresh(entity)

        logger.info(
            "Entity renamed",
            extra={
                "entity_type": request.entity_type.value,
                "entity_id": str(entity.id),
                "previous_name": previous_name,
                "entity_name": entity.name,
            }
        )

        return entity

    async def delete_entity(self, entity_type: EntityType, entity_id: UUID) -> Agent | IssuedPartner:
        """Soft-delete an agent or partner; its balance and history are kept."""
        entity = await self.get_entity(entity_type, entity_id)
        if entity.is_deleted:
            return entity

        entity.is_deleted = True
        await self.db.commit()
        await self.db.refresh(entity)

        logger.info(
            "Entity deleted",
            extra={
                "entity_type": entity_type.value,
                "entity_id": str(entity_id),
                "balance": str(entity.balance),
            }
        )

        return entity
