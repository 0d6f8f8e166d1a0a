"""Analytics and report Pydantic schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.enums import TicketStatus, TransactionType
from .common import BookingFilters, DateRange
from .ledger import EntityType, Transaction


class DashboardStatsRequest(DateRange):
    """Request schema for dashboard statistics."""


class RecentSalesRequest(BaseModel):
    """Request schema for the recent sales feed."""

    limit: Optional[int] = Field(None, ge=1, le=100, description="Defaults to the configured feed size")


class ReportRequest(BookingFilters):
    """Request schema for reports filtered like the booking search."""


class EntityAnalyticsRequest(DateRange):
    """Request schema for one agent's or partner's analytics."""

    entity_type: EntityType
    entity_id: UUID


class PaymentReportRequest(DateRange):
    """Request schema for the payment report."""

    entity_type: EntityType
    entity_id: Optional[UUID] = Field(None, description="Restrict to one entity")
    transaction_type: Optional[TransactionType] = None


class DashboardStats(BaseModel):
    """Dashboard headline numbers."""

    revenue: Decimal
    profit: Decimal
    bookings: int
    average_margin: Decimal = Field(..., description="Profit as a percentage of revenue")
    total_agent_debt: Decimal
    total_partner_balance: Decimal


class RecentSale(BaseModel):
    """One entry of the recent sales feed."""

    booking_id: str
    pnr: str
    airline: Optional[str] = None
    ticket_status: TicketStatus
    total_sale: Decimal
    profit: Decimal
    status_date: date
    agent_name: Optional[str] = None
    created_at: datetime


class RecentSales(BaseModel):
    items: List[RecentSale]


class DistributionItem(BaseModel):
    """Count per label."""

    name: str
    value: int


class TrendPoint(BaseModel):
    """Per-day figures."""

    day: date
    revenue: Decimal = Decimal("0")
    profit: Decimal = Decimal("0")
    tickets: int = 0
    bookings: int = 0


class Summary(BaseModel):
    """Analytics overview."""

    revenue: Decimal
    cost: Decimal
    profit: Decimal
    average_margin: Decimal
    booking_count: int
    ticket_count: int
    revenue_trend: List[TrendPoint]
    tickets_by_airline: List[DistributionItem]
    tickets_by_platform: List[DistributionItem]
    tickets_by_partner: List[DistributionItem]
    bookings_by_status: List[DistributionItem]


class AgentPerformance(BaseModel):
    """Per-agent performance row."""

    agent_id: str
    name: str
    bookings: int
    revenue: Decimal = Field(..., description="Sales of issued bookings in the period")
    profit: Decimal = Field(..., description="Profit of issued bookings in the period")
    current_due: Decimal = Field(..., description="Current balance")
    payments_received: Decimal = Field(..., description="Manual payments in the period")


class AgentPerformanceReport(BaseModel):
    items: List[AgentPerformance]


class PartnerPerformance(BaseModel):
    """Per-partner performance row."""

    partner_id: str
    name: str
    issued_bookings: int
    cost: Decimal
    balance: Decimal


class PartnerPerformanceReport(BaseModel):
    items: List[PartnerPerformance]


class EntityAnalytics(BaseModel):
    """Breakdown of one entity's bookings."""

    top_airlines: List[DistributionItem]
    status_distribution: List[DistributionItem]
    daily_trend: List[TrendPoint]


class PaymentReport(BaseModel):
    """Money movements on agent or partner ledgers."""

    money_in: Decimal
    money_out: Decimal
    net_flow: Decimal
    transactions: List[Transaction]
