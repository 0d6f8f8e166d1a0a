"""Observability setup for OpenTelemetry, metrics, and structured logging."""

import logging

from opentelemetry import trace, metrics
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from prometheus_client import Counter, Gauge, generate_latest, CollectorRegistry
import structlog

from .config import settings

SERVICE_NAME = "travel-backoffice-api"
SERVICE_VERSION = "1.0.5"

# Prometheus metrics
REGISTRY = CollectorRegistry()

BOOKINGS_CREATED = Counter(
    'backoffice_bookings_created_total',
    'Total bookings created',
    ['ticket_status'],
    registry=REGISTRY
)

BOOKINGS_DELETED = Counter(
    'backoffice_bookings_deleted_total',
    'Total bookings soft-deleted',
    registry=REGISTRY
)

BOOKINGS_REISSUED = Counter(
    'backoffice_bookings_reissued_total',
    'Total reissue bookings created',
    registry=REGISTRY
)

LEDGER_TRANSACTIONS = Counter(
    'backoffice_ledger_transactions_total',
    'Credit transactions posted',
    ['ledger', 'transaction_type'],
    registry=REGISTRY
)

LEDGER_DRIFT = Gauge(
    'backoffice_ledger_drift',
    'Balance minus transaction sum per ledger entity (should be zero)',
    ['ledger', 'entity_id'],
    registry=REGISTRY
)


def setup_structured_logging():
    """Configure structured logging with structlog."""

    def add_trace_context(logger, method_name, event_dict):
        """Add trace context to log events."""
        span = trace.get_current_span()
        if span and span.is_recording():
            ctx = span.get_span_context()
            event_dict['trace_id'] = format(ctx.trace_id, '032x')
            event_dict['span_id'] = format(ctx.span_id, '016x')
        return event_dict

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_trace_context,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _resource(app_name: str) -> Resource:
    return Resource.create({
        "service.name": app_name,
        "service.version": SERVICE_VERSION,
        "environment": settings.environment,
    })


def setup_tracing(app_name: str = SERVICE_NAME):
    """Setup OpenTelemetry tracing."""
    trace.set_tracer_provider(TracerProvider(resource=_resource(app_name)))

    # Export only when an OTLP endpoint is configured
    if settings.otlp_endpoint:
        otlp_exporter = OTLPSpanExporter(endpoint=settings.otlp_endpoint)
        trace.get_tracer_provider().add_span_processor(BatchSpanProcessor(otlp_exporter))

    return trace.get_tracer(__name__)


def setup_metrics(app_name: str = SERVICE_NAME):
    """Setup OpenTelemetry metrics."""
    if settings.otlp_endpoint:
        otlp_exporter = OTLPMetricExporter(endpoint=settings.otlp_endpoint)
        reader = PeriodicExportingMetricReader(exporter=otlp_exporter, export_interval_millis=60000)
        metrics.set_meter_provider(MeterProvider(resource=_resource(app_name), metric_readers=[reader]))

    return metrics.get_meter(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy():
    """Instrument SQLAlchemy with OpenTelemetry."""
    SQLAlchemyInstrumentor().instrument()


class MetricsCollector:
    """Collector for business metrics."""

    @staticmethod
    def record_booking_created(ticket_status: str):
        """Record a booking creation."""
        BOOKINGS_CREATED.labels(ticket_status=ticket_status).inc()

    @staticmethod
    def record_booking_deleted():
        """Record a booking soft delete."""
        BOOKINGS_DELETED.inc()

    @staticmethod
    def record_booking_reissued():
        """Record a reissue."""
        BOOKINGS_REISSUED.inc()

    @staticmethod
    def record_transaction(ledger: str, transaction_type: str):
        """Record a posted credit transaction."""
        LEDGER_TRANSACTIONS.labels(ledger=ledger, transaction_type=transaction_type).inc()

    @staticmethod
    def set_ledger_drift(ledger: str, entity_id: str, drift: float):
        """Set the reconciliation drift for one agent or partner."""
        LEDGER_DRIFT.labels(ledger=ledger, entity_id=entity_id).set(drift)


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()
