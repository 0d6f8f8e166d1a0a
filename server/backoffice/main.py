"""Travel back-office API application."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from .core.config import settings
from .core.database import close_db, engine, init_db
from .core.exceptions import (
    ProblemDetailsException,
    generic_exception_handler,
    problem_details_handler,
    request_validation_handler,
)
from .core.middleware import REQUEST_ID_HEADER, setup_middleware
from .core.observability import (
    SERVICE_NAME,
    SERVICE_VERSION,
    instrument_fastapi,
    instrument_sqlalchemy,
    setup_metrics,
    setup_structured_logging,
    setup_tracing,
)
from .routers import analytics, booking, entity, health, ledger, metrics, passenger
from .services.idempotency_service import IDEMPOTENT_OPERATIONS
from .workers.manager import worker_manager

setup_structured_logging()

# Stdlib loggers carry the extra= fields used throughout the services
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

API_ROUTERS = (
    health.router,
    passenger.router,
    entity.router,
    booking.router,
    ledger.router,
    analytics.router,
    metrics.router,
)


async def database_status() -> str:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("Database check failed", extra={"error": str(e)})
        return "unavailable"
    return "ok"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Set up tracing, tables and the reconciliation and cleanup workers; tear them down on exit."""
    logger.info(
        "Starting back-office API",
        extra={"environment": settings.environment, "version": SERVICE_VERSION}
    )

    setup_tracing(SERVICE_NAME)
    setup_metrics(SERVICE_NAME)
    instrument_sqlalchemy()
    await init_db()
    await worker_manager.start_all()

    logger.info("Back-office API ready")

    try:
        yield
    finally:
        await worker_manager.stop_all()
        await close_db()
        logger.info("Back-office API stopped")


def create_app() -> FastAPI:
    """Build the FastAPI application with middleware, problem handlers and all routers."""
    app = FastAPI(
        title="Travel Back-Office API",
        description="RPC-over-HTTP API for airline ticket bookings with agent and partner ledgers",
        version=SERVICE_VERSION,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Idempotency-Key", "X-Actor", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER, "Idempotent-Replayed", "traceparent", "tracestate"],
    )
    setup_middleware(app)
    instrument_fastapi(app)

    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    @app.get("/health", tags=["Health"], summary="Liveness probe")
    async def health_check():
        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "environment": settings.environment,
        }

    @app.get("/ready", tags=["Health"], summary="Readiness probe")
    async def readiness_check():
        """Database reachability plus the state of the background workers."""
        database = await database_status()
        return {
            "status": "ready" if database == "ok" else "degraded",
            "service": SERVICE_NAME,
            "checks": {
                "database": database,
                "workers": worker_manager.get_worker_status(),
            },
        }

    @app.get("/info", tags=["Info"], summary="Service information")
    async def service_info():
        return {
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "environment": settings.environment,
            "default_currency": settings.default_currency,
            "features": {
                "idempotency": True,
                "tracing": bool(settings.otlp_endpoint),
                "problem_details": True,
                "ledger_reconciliation": True,
            },
            "idempotent_operations": sorted(IDEMPOTENT_OPERATIONS),
        }

    for router in API_ROUTERS:
        app.include_router(router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "backoffice.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
