"""
Analytics service for dashboards and reports.

All figures exclude soft-deleted bookings and filter on status_date, the
date a booking entered its current status. Money figures come from
billable bookings only and are net of refunds:

    revenue = total_sale - refund_customer_total
    cost    = total_cost - refund_partner_total
    profit  = revenue - cost
"""

import logging
from collections import Counter, defaultdict
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.config import settings
from ..models.booking import Booking
from ..models.entity import Agent, IssuedPartner
from ..models.enums import BILLABLE_STATUSES, TicketStatus, TransactionType
from ..models.transaction import CreditTransaction
from ..schemas.analytics import (
    AgentPerformance,
    DashboardStats,
    DistributionItem,
    EntityAnalytics,
    EntityAnalyticsRequest,
    PartnerPerformance,
    PaymentReport,
    PaymentReportRequest,
    RecentSale,
    Summary,
    TrendPoint,
)
from ..schemas.common import BookingFilters, DateRange
from ..schemas.ledger import EntityType
from .ledger_service import LedgerService, transaction_view

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
UNKNOWN = "Unknown"


def _money(value) -> Decimal:
    return Decimal(value or 0).quantize(CENT)


def _margin(profit: Decimal, revenue: Decimal) -> Decimal:
    if revenue <= 0:
        return ZERO
    return (profit / revenue * 100).quantize(CENT)


def _is_billable(booking: Booking) -> bool:
    return TicketStatus(booking.ticket_status) in BILLABLE_STATUSES


def _revenue(booking: Booking) -> Decimal:
    return _money(booking.total_sale) - _money(booking.refund_customer_total)


def _cost(booking: Booking) -> Decimal:
    return _money(booking.total_cost) - _money(booking.refund_partner_total)


def _ticket_count(booking: Booking) -> int:
    """Tickets that are not VOID, honouring per-ticket status overrides."""
    status = booking.ticket_status
    return sum(1 for line in booking.passengers if (line.ticket_status or status) != TicketStatus.VOID.value)


def _distribution(counter: Counter, limit: int | None = None) -> list[DistributionItem]:
    items = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    if limit is not None:
        items = items[:limit]
    return [DistributionItem(name=name, value=value) for name, value in items]


def _datetime_bounds(period: DateRange) -> tuple[datetime | None, datetime | None]:
    """Inclusive date range as [start, end) datetimes."""
    start = datetime.combine(period.start_date, time.min) if period.start_date else None
    end = datetime.combine(period.end_date + timedelta(days=1), time.min) if period.end_date else None
    return start, end


def _filter_bookings(stmt, filters: DateRange):
    stmt = stmt.where(Booking.is_deleted.is_(False))
    if filters.start_date is not None:
        stmt = stmt.where(Booking.status_date >= filters.start_date)
    if filters.end_date is not None:
        stmt = stmt.where(Booking.status_date <= filters.end_date)

    if isinstance(filters, BookingFilters):
        if filters.ticket_status is not None:
            stmt = stmt.where(Booking.ticket_status == filters.ticket_status.value)
        if filters.platform:
            stmt = stmt.where(Booking.platform == filters.platform)
        if filters.airline:
            stmt = stmt.where(Booking.airline.ilike(f"%{filters.airline.strip()}%"))
        if filters.agent_id is not None:
            stmt = stmt.where(Booking.agent_id == filters.agent_id)
        if filters.issued_partner_id is not None:
            stmt = stmt.where(Booking.issued_partner_id == filters.issued_partner_id)

    return stmt


class AnalyticsService:
    """Service for dashboard statistics and reports."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _bookings(self, filters: DateRange, with_lines: bool = False) -> list[Booking]:
        stmt = _filter_bookings(select(Booking), filters)
        if with_lines:
            stmt = stmt.options(selectinload(Booking.passengers))
        result = await self.db.execute(stmt.order_by(Booking.status_date, Booking.created_at))
        return list(result.scalars().all())

    async def dashboard_stats(self, period: DateRange) -> DashboardStats:
        """Headline revenue, profit and booking figures plus global balances."""
        bookings = await self._bookings(period)
        billable = [booking for booking in bookings if _is_billable(booking)]

        revenue = sum((_revenue(booking) for booking in billable), ZERO)
        cost = sum((_cost(booking) for booking in billable), ZERO)
        profit = revenue - cost

        agent_debt = (await self.db.execute(
            select(func.coalesce(func.sum(Agent.balance), 0)).where(Agent.is_deleted.is_(False))
        )).scalar_one()
        partner_balance = (await self.db.execute(
            select(func.coalesce(func.sum(IssuedPartner.balance), 0)).where(IssuedPartner.is_deleted.is_(False))
        )).scalar_one()

        return DashboardStats(
            revenue=revenue,
            profit=profit,
            bookings=len(bookings),
            average_margin=_margin(profit, revenue),
            total_agent_debt=_money(agent_debt),
            total_partner_balance=_money(partner_balance),
        )

    async def recent_sales(self, limit: int | None = None) -> list[RecentSale]:
        """Latest non-deleted bookings."""
        stmt = (
            select(Booking, Agent.name)
            .outerjoin(Agent, Booking.agent_id == Agent.id)
            .where(Booking.is_deleted.is_(False))
            .order_by(Booking.created_at.desc())
            .limit(limit or settings.recent_sales_limit)
        )
        result = await self.db.execute(stmt)

        return [
            RecentSale(
                booking_id=str(booking.id),
                pnr=booking.pnr,
                airline=booking.airline,
                ticket_status=booking.ticket_status,
                total_sale=_money(booking.total_sale),
                profit=_money(booking.profit),
                status_date=booking.status_date,
                agent_name=agent_name,
                created_at=booking.created_at,
            )
            for booking, agent_name in result.all()
        ]

    async def summary(self, filters: BookingFilters) -> Summary:
        """Overview figures, daily trend and distributions for the filtered bookings."""
        bookings = await self._bookings(filters, with_lines=True)

        partner_ids = {booking.issued_partner_id for booking in bookings if booking.issued_partner_id}
        partner_names: dict[UUID, str] = {}
        if partner_ids:
            result = await self.db.execute(
                select(IssuedPartner.id, IssuedPartner.name).where(IssuedPartner.id.in_(partner_ids))
            )
            partner_names = {row.id: row.name for row in result}

        revenue = cost = ZERO
        ticket_total = 0
        trend: dict[date, TrendPoint] = {}
        by_airline: Counter = Counter()
        by_platform: Counter = Counter()
        by_partner: Counter = Counter()
        by_status: Counter = Counter()

        for booking in bookings:
            tickets = _ticket_count(booking)
            ticket_total += tickets
            by_status[booking.ticket_status] += 1
            by_airline[booking.airline or UNKNOWN] += tickets
            by_platform[booking.platform or UNKNOWN] += tickets
            by_partner[partner_names.get(booking.issued_partner_id, UNKNOWN)] += tickets

            point = trend.setdefault(booking.status_date, TrendPoint(day=booking.status_date))
            point.tickets += tickets
            point.bookings += 1

            if _is_billable(booking):
                booking_revenue = _revenue(booking)
                booking_cost = _cost(booking)
                revenue += booking_revenue
                cost += booking_cost
                point.revenue += booking_revenue
                point.profit += booking_revenue - booking_cost

        profit = revenue - cost

        return Summary(
            revenue=revenue,
            cost=cost,
            profit=profit,
            average_margin=_margin(profit, revenue),
            booking_count=len(bookings),
            ticket_count=ticket_total,
            revenue_trend=[trend[day] for day in sorted(trend)],
            tickets_by_airline=_distribution(by_airline),
            tickets_by_platform=_distribution(by_platform),
            tickets_by_partner=_distribution(by_partner),
            bookings_by_status=_distribution(by_status),
        )

    async def agent_performance(self, filters: BookingFilters) -> list[AgentPerformance]:
        """
        Per-agent bookings, revenue, profit, current due and payments received.

        Agents without activity or balance are left out unless asked for.
        """
        stmt = select(Agent).where(Agent.is_deleted.is_(False))
        if filters.agent_id is not None:
            stmt = stmt.where(Agent.id == filters.agent_id)
        agents = list((await self.db.execute(stmt)).scalars().all())

        booking_stmt = _filter_bookings(select(Booking), DateRange(
            start_date=filters.start_date,
            end_date=filters.end_date,
        )).where(Booking.agent_id.is_not(None))
        bookings = list((await self.db.execute(booking_stmt)).scalars().all())

        start, end = _datetime_bounds(filters)
        payment_stmt = select(
            CreditTransaction.agent_id,
            func.coalesce(func.sum(CreditTransaction.amount), 0),
        ).where(
            CreditTransaction.agent_id.is_not(None),
            CreditTransaction.transaction_type == TransactionType.TOPUP.value,
        ).group_by(CreditTransaction.agent_id)
        if start is not None:
            payment_stmt = payment_stmt.where(CreditTransaction.transaction_date >= start)
        if end is not None:
            payment_stmt = payment_stmt.where(CreditTransaction.transaction_date < end)
        # Agent payments are posted as negative amounts
        payments = {agent_id: -_money(total) for agent_id, total in (await self.db.execute(payment_stmt)).all()}

        counts: Counter = Counter()
        revenue: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
        profit: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
        for booking in bookings:
            counts[booking.agent_id] += 1
            if _is_billable(booking):
                revenue[booking.agent_id] += _revenue(booking)
                profit[booking.agent_id] += _revenue(booking) - _cost(booking)

        rows = [
            AgentPerformance(
                agent_id=str(agent.id),
                name=agent.name,
                bookings=counts[agent.id],
                revenue=revenue[agent.id],
                profit=profit[agent.id],
                current_due=_money(agent.balance),
                payments_received=payments.get(agent.id, ZERO),
            )
            for agent in agents
        ]
        rows = [
            row for row in rows
            if row.bookings or row.current_due != 0 or row.payments_received or filters.agent_id is not None
        ]
        return sorted(rows, key=lambda row: (-row.revenue, row.name))

    async def partner_performance(self, filters: BookingFilters) -> list[PartnerPerformance]:
        """Per-partner issued bookings, net cost and current balance."""
        stmt = select(IssuedPartner).where(IssuedPartner.is_deleted.is_(False))
        if filters.issued_partner_id is not None:
            stmt = stmt.where(IssuedPartner.id == filters.issued_partner_id)
        partners = list((await self.db.execute(stmt)).scalars().all())

        booking_stmt = _filter_bookings(select(Booking), DateRange(
            start_date=filters.start_date,
            end_date=filters.end_date,
        )).where(
            Booking.issued_partner_id.is_not(None),
            Booking.ticket_status.in_([status.value for status in BILLABLE_STATUSES]),
        )
        bookings = list((await self.db.execute(booking_stmt)).scalars().all())

        counts: Counter = Counter()
        cost: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
        for booking in bookings:
            counts[booking.issued_partner_id] += 1
            cost[booking.issued_partner_id] += _cost(booking)

        rows = [
            PartnerPerformance(
                partner_id=str(partner.id),
                name=partner.name,
                issued_bookings=counts[partner.id],
                cost=cost[partner.id],
                balance=_money(partner.balance),
            )
            for partner in partners
        ]
        rows = [
            row for row in rows
            if row.issued_bookings or row.balance != 0 or filters.issued_partner_id is not None
        ]
        return sorted(rows, key=lambda row: (-row.cost, row.name))

    async def entity_analytics(self, request: EntityAnalyticsRequest) -> EntityAnalytics:
        """Top airlines, status mix and daily trend of one agent's or partner's bookings."""
        owner = Booking.agent_id if request.entity_type == EntityType.AGENT else Booking.issued_partner_id
        stmt = _filter_bookings(select(Booking), request).where(owner == request.entity_id)
        bookings = list((await self.db.execute(stmt)).scalars().all())

        airlines: Counter = Counter()
        statuses: Counter = Counter()
        trend: dict[date, TrendPoint] = {}

        for booking in bookings:
            airlines[booking.airline or UNKNOWN] += 1
            statuses[booking.ticket_status] += 1
            point = trend.setdefault(booking.status_date, TrendPoint(day=booking.status_date))
            point.bookings += 1
            if _is_billable(booking):
                point.revenue += _revenue(booking)
                point.profit += _revenue(booking) - _cost(booking)

        return EntityAnalytics(
            top_airlines=_distribution(airlines, limit=10),
            status_distribution=_distribution(statuses),
            daily_trend=[trend[day] for day in sorted(trend)],
        )

    async def payment_report(self, request: PaymentReportRequest) -> PaymentReport:
        """
        Money movements on agent or partner ledgers.

        Top-ups and refunds count as money in, booking deductions as money
        out. Adjustments are listed but not counted.
        """
        owner = (
            CreditTransaction.agent_id if request.entity_type == EntityType.AGENT
            else CreditTransaction.issued_partner_id
        )
        stmt = select(CreditTransaction)
        if request.entity_id is not None:
            stmt = stmt.where(owner == request.entity_id)
        else:
            stmt = stmt.where(owner.is_not(None))
        if request.transaction_type is not None:
            stmt = stmt.where(CreditTransaction.transaction_type == request.transaction_type.value)

        start, end = _datetime_bounds(request)
        if start is not None:
            stmt = stmt.where(CreditTransaction.transaction_date >= start)
        if end is not None:
            stmt = stmt.where(CreditTransaction.transaction_date < end)

        stmt = stmt.order_by(CreditTransaction.transaction_date.desc(), CreditTransaction.created_at.desc())
        transactions = list((await self.db.execute(stmt)).scalars().all())

        money_in = money_out = ZERO
        for transaction in transactions:
            amount = abs(_money(transaction.amount))
            if transaction.transaction_type in (TransactionType.TOPUP.value, TransactionType.REFUND.value):
                money_in += amount
            elif transaction.transaction_type == TransactionType.BOOKING_DEDUCTION.value:
                money_out += amount

        names = await LedgerService(self.db).entity_names(transactions)

        logger.debug(
            "Payment report generated",
            extra={
                "entity_type": request.entity_type.value,
                "transactions": len(transactions),
                "money_in": str(money_in),
                "money_out": str(money_out),
            }
        )

        return PaymentReport(
            money_in=money_in,
            money_out=money_out,
            net_flow=money_in - money_out,
            transactions=[transaction_view(transaction, names) for transaction in transactions],
        )
