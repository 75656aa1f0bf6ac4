from typing import Any, Dict, Optional
import functools
import inspect
import logging
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.resources import Resource, SERVICE_NAME
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from common.core.config import settings

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    force=True,
)


# Global flag to ensure initialization only happens once
_initialized = False
axiom_tracer = None


def _axiom_headers() -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {settings.axiom_token}",
        "X-Axiom-Dataset": settings.axiom_dataset or settings.otel_service_name,
    }


def _initialize_telemetry():
    """Initialize telemetry once and only once.

    Spans are always recorded in-process; they are only shipped to Axiom
    when an ``axiom_token`` is configured.
    """
    global _initialized, axiom_tracer

    if _initialized:
        return

    resource = Resource(attributes={SERVICE_NAME: settings.otel_service_name})

    # TRACING SETUP
    provider = TracerProvider(resource=resource)
    if settings.axiom_token:
        otlp_trace_exporter = OTLPSpanExporter(
            endpoint="https://api.axiom.co/v1/traces",
            headers=_axiom_headers(),
        )
        provider.add_span_processor(BatchSpanProcessor(otlp_trace_exporter))
    trace.set_tracer_provider(provider)
    axiom_tracer = trace.get_tracer(settings.otel_service_name)

    # LOGGING SETUP
    root_logger = logging.getLogger()
    if settings.axiom_token:
        logger_provider = LoggerProvider(resource=resource)
        otlp_log_exporter = OTLPLogExporter(
            endpoint="https://api.axiom.co/v1/logs",
            headers=_axiom_headers(),
        )
        logger_provider.add_log_record_processor(
            BatchLogRecordProcessor(otlp_log_exporter)
        )
        set_logger_provider(logger_provider)
        root_logger.addHandler(
            LoggingHandler(level=logging.INFO, logger_provider=logger_provider)
        )

    _initialized = True
    root_logger.debug(
        f"Telemetry initialized, exporting={bool(settings.axiom_token)}"
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance. Ensures telemetry is initialized.
    Use this instead of logging.getLogger() directly.
    """
    if not _initialized:
        _initialize_telemetry()
    return logging.getLogger(name)


def trace_span(func):
    """Decorator that automatically creates a span with the function name."""

    def _span_name(args) -> str:
        if args and hasattr(args[0], func.__name__):
            # Bound method, include class name
            return f"{args[0].__class__.__name__}.{func.__name__}"
        return func.__name__

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        if not _initialized:
            _initialize_telemetry()
        with axiom_tracer.start_as_current_span(_span_name(args)):
            return func(*args, **kwargs)

    @functools.wraps(func)
    async def async_wrapper(*args, **kwargs):
        if not _initialized:
            _initialize_telemetry()
        with axiom_tracer.start_as_current_span(_span_name(args)):
            return await func(*args, **kwargs)

    if inspect.iscoroutinefunction(func):
        return async_wrapper
    return sync_wrapper


def log_span_event(
    message: str,
    attributes: Optional[Dict[str, Any]] = None,
    logger: Optional[logging.Logger] = None,
):
    """
    Record a message as an event on the current span and log it.
    """
    current_span = trace.get_current_span()
    if current_span and current_span.is_recording():
        current_span.add_event(message, attributes=attributes or {})

    (logger or get_logger(__name__)).info(message, extra=attributes)
