"""Ledger engine and ledger API Pydantic schemas."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from ..models.enums import HistoryAction, LedgerKind, TicketStatus, TransactionType

ZERO = Decimal("0.00")


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class EntityType(str, Enum):
    """Entity kinds accepted by the ledger and entity endpoints."""
    AGENT = "agent"
    PARTNER = "partner"

    @property
    def ledger(self) -> LedgerKind:
        return LedgerKind.AGENT if self is EntityType.AGENT else LedgerKind.ISSUED_PARTNER


# Engine inputs and outputs

class PassengerLine(BaseModel):
    """Financial view of one ticket line."""

    model_config = ConfigDict(frozen=True)

    ticket_status: Optional[TicketStatus] = None
    ticket_number: Optional[str] = None
    cost_price: Decimal = ZERO
    sale_price: Decimal = ZERO
    refund_amount_partner: Decimal = ZERO
    refund_amount_customer: Decimal = ZERO


class BookingSnapshot(BaseModel):
    """State of a booking as the ledger engine sees it."""

    model_config = ConfigDict(frozen=True)

    pnr: str
    ticket_status: TicketStatus
    agent_id: Optional[UUID] = None
    issued_partner_id: Optional[UUID] = None
    is_deleted: bool = False
    lines: List[PassengerLine] = Field(default_factory=list)


class BookingTotals(BaseModel):
    """Totals derived from the ticket lines of a booking."""

    model_config = ConfigDict(frozen=True)

    total_cost: Decimal = ZERO
    total_sale: Decimal = ZERO
    refund_partner_total: Decimal = ZERO
    refund_customer_total: Decimal = ZERO
    net_cost: Decimal = ZERO
    net_sale: Decimal = ZERO
    profit: Decimal = ZERO
    ticket_count: int = 0


class LedgerEntry(BaseModel):
    """Signed balance movement the ledger service must post."""

    model_config = ConfigDict(frozen=True)

    ledger: LedgerKind
    entity_id: UUID
    amount: Decimal
    transaction_type: TransactionType
    description: str


class HistoryEntry(BaseModel):
    """Audit trail record for a booking transition."""

    model_config = ConfigDict(frozen=True)

    action: HistoryAction
    previous_status: Optional[TicketStatus] = None
    new_status: Optional[TicketStatus] = None
    details: Optional[str] = None


class LedgerPlan(BaseModel):
    """Result of planning a booking transition."""

    model_config = ConfigDict(frozen=True)

    totals: BookingTotals
    entries: List[LedgerEntry] = Field(default_factory=list)
    history: List[HistoryEntry] = Field(default_factory=list)


# API requests

class TopUpRequest(BaseModel):
    """Request schema for a manual partner top-up or agent payment."""

    entity_type: EntityType = Field(..., description="agent or partner")
    entity_id: UUID = Field(..., description="Agent or issuing partner ID")
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Positive amount")
    description: Optional[str] = Field(None, max_length=500, description="Free-text note")
    transaction_date: Optional[datetime] = Field(None, description="Business date; may be backdated")

    @field_validator("transaction_date")
    @classmethod
    def normalize_transaction_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(v)


class ListTransactionsRequest(BaseModel):
    """Request schema for listing an entity's transactions."""

    entity_type: EntityType = Field(..., description="agent or partner")
    entity_id: UUID = Field(..., description="Agent or issuing partner ID")
    transaction_type: Optional[TransactionType] = Field(None, description="Filter by type")
    start_date: Optional[datetime] = Field(None, description="Inclusive lower bound on transaction_date")
    end_date: Optional[datetime] = Field(None, description="Inclusive upper bound on transaction_date")
    limit: int = Field(100, ge=1, le=1000, description="Maximum number of rows")

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(v)


class ReconcileRequest(BaseModel):
    """Request schema for reconciling one entity; omit entity_id to reconcile everything."""

    entity_type: Optional[EntityType] = None
    entity_id: Optional[UUID] = None


# API responses

class Transaction(BaseModel):
    """Credit transaction response schema."""

    id: str
    agent_id: Optional[str] = None
    issued_partner_id: Optional[str] = None
    booking_id: Optional[str] = None
    entity_name: Optional[str] = None
    amount: Decimal
    transaction_type: TransactionType
    description: Optional[str] = None
    transaction_date: datetime
    created_at: datetime


class TransactionList(BaseModel):
    """Transaction listing response schema."""

    items: List[Transaction]


class Reconciliation(BaseModel):
    """Balance versus transaction-sum check for one entity."""

    entity_type: EntityType
    entity_id: str
    name: str
    balance: Decimal
    transaction_sum: Decimal
    drift: Decimal

    @computed_field
    @property
    def is_consistent(self) -> bool:
        return self.drift == 0


class ReconciliationReport(BaseModel):
    """Reconciliation response schema."""

    items: List[Reconciliation]
    inconsistent_count: int = Field(..., description="Entities whose drift is not zero")
