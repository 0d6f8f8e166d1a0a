"""Analytics router for dashboards and reports."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DatabaseSession
from ..schemas.analytics import (
    AgentPerformanceReport,
    DashboardStats,
    DashboardStatsRequest,
    EntityAnalytics,
    EntityAnalyticsRequest,
    PartnerPerformanceReport,
    PaymentReport,
    PaymentReportRequest,
    RecentSales,
    RecentSalesRequest,
    ReportRequest,
    Summary,
)
from ..services.analytics_service import AnalyticsService

router = APIRouter(prefix="/v1/analytics", tags=["analytics"])


@router.post("/dashboard", response_model=DashboardStats)
async def dashboard_stats(
    request: DashboardStatsRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Revenue, profit and booking count for a period plus outstanding balances."""
    stats = await AnalyticsService(db).dashboard_stats(request)
    return JSONResponse(status_code=200, content=stats.model_dump(mode="json"))


@router.post("/recent-sales", response_model=RecentSales)
async def recent_sales(
    request: RecentSalesRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Latest bookings."""
    items = await AnalyticsService(db).recent_sales(request.limit)
    return JSONResponse(status_code=200, content=RecentSales(items=items).model_dump(mode="json"))


@router.post("/summary", response_model=Summary)
async def summary(
    request: ReportRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Overview figures, revenue trend and distributions."""
    result = await AnalyticsService(db).summary(request)
    return JSONResponse(status_code=200, content=result.model_dump(mode="json"))


@router.post("/agents", response_model=AgentPerformanceReport)
async def agent_performance(
    request: ReportRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Per-agent performance."""
    items = await AnalyticsService(db).agent_performance(request)
    return JSONResponse(status_code=200, content=AgentPerformanceReport(items=items).model_dump(mode="json"))


@router.post("/partners", response_model=PartnerPerformanceReport)
async def partner_performance(
    request: ReportRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Per-partner performance."""
    items = await AnalyticsService(db).partner_performance(request)
    return JSONResponse(status_code=200, content=PartnerPerformanceReport(items=items).model_dump(mode="json"))


@router.post("/entity", response_model=EntityAnalytics)
async def entity_analytics(
    request: EntityAnalyticsRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Breakdown of one agent's or partner's bookings."""
    result = await AnalyticsService(db).entity_analytics(request)
    return JSONResponse(status_code=200, content=result.model_dump(mode="json"))


@router.post("/payments", response_model=PaymentReport)
async def payment_report(
    request: PaymentReportRequest,
    db: AsyncSession = DatabaseSession
) -> JSONResponse:
    """Money in and out of agent or partner ledgers."""
    report = await AnalyticsService(db).payment_report(request)
    return JSONResponse(status_code=200, content=report.model_dump(mode="json"))
