"""Ledger service for posting credit transactions and checking balances."""

import logging
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import InactiveEntityError, NotFoundError
from ..core.observability import metrics_collector
from ..models.entity import Agent, IssuedPartner
from ..models.enums import LedgerKind, TransactionType
from ..models.transaction import CreditTransaction
from ..schemas.ledger import (
    EntityType,
    LedgerPlan,
    ListTransactionsRequest,
    Reconciliation,
    TopUpRequest,
    Transaction,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

_MODELS = {
    LedgerKind.AGENT: Agent,
    LedgerKind.ISSUED_PARTNER: IssuedPartner,
}


def _owner_column(ledger: LedgerKind):
    return CreditTransaction.agent_id if ledger == LedgerKind.AGENT else CreditTransaction.issued_partner_id


def _entity_type(ledger: LedgerKind) -> EntityType:
    return EntityType.AGENT if ledger == LedgerKind.AGENT else EntityType.PARTNER


def transaction_view(transaction: CreditTransaction, names: dict[UUID, str] | None = None) -> Transaction:
    """Convert a credit transaction model to its response schema."""
    owner_id = transaction.agent_id or transaction.issued_partner_id
    return Transaction(
        id=str(transaction.id),
        agent_id=str(transaction.agent_id) if transaction.agent_id else None,
        issued_partner_id=str(transaction.issued_partner_id) if transaction.issued_partner_id else None,
        booking_id=str(transaction.booking_id) if transaction.booking_id else None,
        entity_name=(names or {}).get(owner_id),
        amount=transaction.amount,
        transaction_type=transaction.transaction_type,
        description=transaction.description,
        transaction_date=transaction.transaction_date,
        created_at=transaction.created_at,
    )


class LedgerService:
    """Service for agent and issuing partner balances."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_entity(
        self,
        ledger: LedgerKind,
        entity_id: UUID,
        for_update: bool = False
    ) -> Agent | IssuedPartner:
        """
        Load an agent or issuing partner, optionally locking its row.

        Raises:
            NotFoundError: If no such entity exists
        """
        model = _MODELS[ledger]
        stmt = select(model).where(model.id == entity_id).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()

        result = await self.db.execute(stmt)
        entity = result.scalar_one_or_none()
        if entity is None:
            raise NotFoundError(_entity_type(ledger).value, str(entity_id))
        return entity

    async def post(
        self,
        ledger: LedgerKind,
        entity_id: UUID,
        amount: Decimal,
        transaction_type: TransactionType,
        description: str | None,
        booking_id: UUID | None = None,
        transaction_date: datetime | None = None,
    ) -> CreditTransaction:
        """
        Add a signed amount to an entity balance and record it.

        The caller owns the commit so the movement lands atomically with the
        booking change that caused it.
        """
        entity = await self.get_entity(ledger, entity_id, for_update=True)
        amount = Decimal(amount).quantize(CENT)

        entity.balance = (entity.balance or Decimal("0")) + amount

        transaction = CreditTransaction(
            agent_id=entity_id if ledger == LedgerKind.AGENT else None,
            issued_partner_id=entity_id if ledger == LedgerKind.ISSUED_PARTNER else None,
            booking_id=booking_id,
            amount=amount,
            transaction_type=transaction_type.value,
            description=description,
            transaction_date=transaction_date or datetime.utcnow(),
        )
        self.db.add(transaction)
        # Sessions do not autoflush; the next locked read must see this balance
        await self.db.flush()

        metrics_collector.record_transaction(ledger.value, transaction_type.value)

        logger.info(
            "Credit transaction posted",
            extra={
                "ledger": ledger.value,
                "entity_id": str(entity_id),
                "booking_id": str(booking_id) if booking_id else None,
                "transaction_type": transaction_type.value,
                "amount": str(amount),
                "balance": str(entity.balance),
            }
        )

        return transaction

    async def apply_plan(self, plan: LedgerPlan, booking_id: UUID | None = None) -> list[CreditTransaction]:
        """
        Post every entry of a ledger plan.

        Soft-deleted entities still receive entries so reversals can settle.
        """
        transactions = []
        for entry in plan.entries:
            transactions.append(await self.post(
                ledger=entry.ledger,
                entity_id=entry.entity_id,
                amount=entry.amount,
                transaction_type=entry.transaction_type,
                description=entry.description,
                booking_id=booking_id,
            ))
        return transactions

    async def top_up(self, request: TopUpRequest) -> CreditTransaction:
        """
        Record a manual partner top-up or agent payment.

        A partner top-up adds prepaid credit; an agent payment reduces the
        agent's debt.

        Raises:
            NotFoundError: If the entity does not exist
            InactiveEntityError: If the entity has been deleted
        """
        ledger = request.entity_type.ledger
        entity = await self.get_entity(ledger, request.entity_id)
        if entity.is_deleted:
            raise InactiveEntityError(request.entity_type.value, str(request.entity_id))

        if ledger == LedgerKind.ISSUED_PARTNER:
            amount = request.amount
            default_description = "Manual Top Up"
        else:
            amount = -request.amount
            default_description = "Manual Payment"

        transaction = await self.post(
            ledger=ledger,
            entity_id=request.entity_id,
            amount=amount,
            transaction_type=TransactionType.TOPUP,
            description=request.description or default_description,
            transaction_date=request.transaction_date,
        )

        await self.db.commit()
        await self.db.refresh(transaction)

        logger.info(
            "Manual top up recorded",
            extra={
                "entity_type": request.entity_type.value,
                "entity_id": str(request.entity_id),
                "amount": str(request.amount),
                "transaction_id": str(transaction.id),
            }
        )

        return transaction

    async def list_transactions(self, request: ListTransactionsRequest) -> list[CreditTransaction]:
        """List an entity's transactions, newest first."""
        ledger = request.entity_type.ledger
        await self.get_entity(ledger, request.entity_id)

        stmt = select(CreditTransaction).where(_owner_column(ledger) == request.entity_id)
        if request.transaction_type is not None:
            stmt = stmt.where(CreditTransaction.transaction_type == request.transaction_type.value)
        if request.start_date is not None:
            stmt = stmt.where(CreditTransaction.transaction_date >= request.start_date)
        if request.end_date is not None:
            stmt = stmt.where(CreditTransaction.transaction_date <= request.end_date)

        stmt = stmt.order_by(
            CreditTransaction.transaction_date.desc(),
            CreditTransaction.created_at.desc()
        ).limit(request.limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def transaction_sum(self, ledger: LedgerKind, entity_id: UUID) -> Decimal:
        """Sum of all transaction amounts of one entity."""
        stmt = select(func.coalesce(func.sum(CreditTransaction.amount), 0)).where(
            _owner_column(ledger) == entity_id
        )
        result = await self.db.execute(stmt)
        return Decimal(result.scalar_one() or 0).quantize(CENT)

    async def reconcile(self, entity_type: EntityType, entity_id: UUID) -> Reconciliation:
        """Compare an entity's stored balance with the sum of its transactions."""
        ledger = entity_type.ledger
        entity = await self.get_entity(ledger, entity_id)

        balance = Decimal(entity.balance or 0).quantize(CENT)
        transaction_sum = await self.transaction_sum(ledger, entity_id)
        drift = balance - transaction_sum

        if drift != 0:
            logger.warning(
                "Ledger drift detected",
                extra={
                    "ledger": ledger.value,
                    "entity_id": str(entity_id),
                    "balance": str(balance),
                    "transaction_sum": str(transaction_sum),
                    "drift": str(drift),
                }
            )

        return Reconciliation(
            entity_type=entity_type,
            entity_id=str(entity_id),
            name=entity.name,
            balance=balance,
            transaction_sum=transaction_sum,
            drift=drift,
        )

    async def reconcile_all(self, entity_type: EntityType | None = None) -> list[Reconciliation]:
        """Reconcile every non-deleted agent and issuing partner."""
        entity_types = [entity_type] if entity_type else [EntityType.AGENT, EntityType.PARTNER]
        reports = []

        for current in entity_types:
            model = _MODELS[current.ledger]
            result = await self.db.execute(
                select(model.id).where(model.is_deleted.is_(False)).order_by(model.name)
            )
            for entity_id in result.scalars().all():
                reports.append(await self.reconcile(current, entity_id))

        return reports

    async def entity_names(self, transactions: list[CreditTransaction]) -> dict[UUID, str]:
        """Names of the agents and partners owning the given transactions."""
        agent_ids = {t.agent_id for t in transactions if t.agent_id}
        partner_ids = {t.issued_partner_id for t in transactions if t.issued_partner_id}
        names: dict[UUID, str] = {}

        if agent_ids:
            result = await self.db.execute(select(Agent.id, Agent.name).where(Agent.id.in_(agent_ids)))
            names.update({row.id: row.name for row in result})
        if partner_ids:
            result = await self.db.execute(
                select(IssuedPartner.id, IssuedPartner.name).where(IssuedPartner.id.in_(partner_ids))
            )
            names.update({row.id: row.name for row in result})

        return names
