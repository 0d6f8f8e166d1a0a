"""Prometheus scrape endpoint for booking and ledger metrics."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST

from ..core.observability import get_prometheus_metrics

router = APIRouter(tags=["Observability"])


@router.get("/metrics", response_class=Response, include_in_schema=False)
async def metrics() -> Response:
    """Booking counters, posted transactions and per-entity ledger drift."""
    return Response(content=get_prometheus_metrics(), media_type=CONTENT_TYPE_LATEST)
