"""Observability setup for OpenTelemetry, metrics, and structured logging."""

import logging
from typing import Any

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
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CollectorRegistry
import structlog

from .config import settings

SERVICE_NAME = "trip-registration-engine"
SERVICE_VERSION = "1.0.0"

# Prometheus metrics
REGISTRY = CollectorRegistry()

# Request metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code'],
    registry=REGISTRY
)

REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=REGISTRY
)

# Business metrics
REGISTRATIONS_CREATED = Counter(
    'trip_registrations_created_total',
    'Total registrations created',
    ['trip_id'],
    registry=REGISTRY
)

REGISTRATIONS_CANCELLED = Counter(
    'trip_registrations_cancelled_total',
    'Total registrations cancelled',
    ['trip_id'],
    registry=REGISTRY
)

CAPACITY_EXHAUSTED = Counter(
    'trip_capacity_exhausted_total',
    'Registration attempts rejected because the trip was full',
    ['trip_id'],
    registry=REGISTRY
)

PAYMENTS_RECORDED = Counter(
    'registration_payments_recorded_total',
    'Total payments recorded against registrations',
    ['payment_status'],
    registry=REGISTRY
)

CONCURRENCY_RETRIES = Counter(
    'trip_concurrency_retries_total',
    'Atomic units retried after losing a concurrent write race',
    ['operation'],
    registry=REGISTRY
)

AVAILABLE_SPOTS = Gauge(
    'trip_available_spots',
    'Remaining unreserved spots on a trip',
    ['trip_id'],
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


def _resource() -> Resource:
    return Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": SERVICE_VERSION,
        "environment": settings.environment,
    })


def setup_tracing():
    """Setup OpenTelemetry tracing; spans are exported only when an OTLP endpoint is configured."""
    provider = TracerProvider(resource=_resource())
    if settings.otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint)))
    trace.set_tracer_provider(provider)
    return trace.get_tracer(__name__)


def setup_metrics():
    """Setup OpenTelemetry metrics."""
    if settings.otlp_endpoint:
        reader = PeriodicExportingMetricReader(
            exporter=OTLPMetricExporter(endpoint=settings.otlp_endpoint),
            export_interval_millis=60000,
        )
        metrics.set_meter_provider(MeterProvider(resource=_resource(), metric_readers=[reader]))
    return metrics.get_meter(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine):
    """Instrument the application's SQLAlchemy engine with OpenTelemetry."""
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


class MetricsCollector:
    """Collector for business metrics."""

    @staticmethod
    def record_registration_created(trip_id: str):
        REGISTRATIONS_CREATED.labels(trip_id=trip_id).inc()

    @staticmethod
    def record_registration_cancelled(trip_id: str):
        REGISTRATIONS_CANCELLED.labels(trip_id=trip_id).inc()

    @staticmethod
    def record_capacity_exhausted(trip_id: str):
        """Record a registration rejected by a full trip."""
        CAPACITY_EXHAUSTED.labels(trip_id=trip_id).inc()

    @staticmethod
    def record_payment(payment_status: str):
        PAYMENTS_RECORDED.labels(payment_status=payment_status).inc()

    @staticmethod
    def record_concurrency_retry(operation: str):
        """Record one internal retry of an atomic unit."""
        CONCURRENCY_RETRIES.labels(operation=operation).inc()

    @staticmethod
    def set_available_spots(trip_id: str, available_spots: int):
        AVAILABLE_SPOTS.labels(trip_id=trip_id).set(available_spots)


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()


class StructuredLogger:
    """Structured logger with business context."""

    def __init__(self, name: str, bound_logger: Any = None):
        self.name = name
        self.logger = bound_logger if bound_logger is not None else structlog.get_logger(name)

    def info(self, message: str, **kwargs):
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs):
        self.logger.error(message, **kwargs)

    def debug(self, message: str, **kwargs):
        self.logger.debug(message, **kwargs)

    def with_context(self, **kwargs) -> "StructuredLogger":
        """Return a logger that carries ``kwargs`` on every event."""
        return StructuredLogger(self.name, self.logger.bind(**kwargs))


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(name)
