"""Credit transaction model definition."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Numeric, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base
from .enums import TransactionType


class CreditTransaction(Base):
    """
    One signed movement on an agent or issuing partner balance.

    The amount is the delta applied to the owning entity's balance, so an
    entity's balance always equals the sum of its transaction amounts.
    """

    __tablename__ = "credit_transactions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Exactly one owner
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
    booking_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("bookings.id"),
        nullable=True,
        index=True
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    transaction_type: Mapped[TransactionType] = mapped_column(String(20), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Business date; manual payments may be backdated
    transaction_date: Mapped[datetime] = mapped_column(nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=datetime.utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "(agent_id IS NULL) <> (issued_partner_id IS NULL)",
            name="ck_credit_transaction_single_owner"
        ),
    )

    def __repr__(self) -> str:
        owner = f"agent_id={self.agent_id}" if self.agent_id else f"issued_partner_id={self.issued_partner_id}"
        return (
            f"<CreditTransaction(id={self.id}, {owner}, type={self.transaction_type}, "
            f"amount={self.amount})>"
        )
