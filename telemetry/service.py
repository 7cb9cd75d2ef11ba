"""
Logging and tracing for the session store.

TelemetryService installs a JSON log handler on the root logger, optionally
exports one OpenTelemetry span per Redis round trip, and reports metrics
such as the number of stale index entries removed.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional


class JSONFormatter(logging.Formatter):
    """
    Render each log record as one line of JSON.
    
    The entry holds the UTC timestamp, level, logger name, message and
    source location. Structured context passed as
    ``extra={"extra_data": {...}}`` is merged into the top level.
    """
    
    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": created.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        entry.update(getattr(record, "extra_data", None) or {})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class RedisSpan:
    """
    Tracing scope around one Redis round trip.
    
    Without a tracer the scope does nothing, so the store can wrap every
    command the same way whether or not tracing is configured.
    
    Attributes:
        operation: Store operation name, e.g. ``get`` or ``srem``
        attributes: Span attributes describing the operation
        span: The OpenTelemetry span while the scope is open, or None
        failure: The transport error recorded on this scope, if any
    """
    
    def __init__(
        self,
        tracer: Any,
        operation: str,
        attributes: Optional[dict[str, Any]] = None
    ):
        self.operation = operation
        self.attributes = attributes or {}
        self.span = None
        self.failure: Optional[BaseException] = None
        self._tracer = tracer
        self._scope = None
    
    def __enter__(self) -> "RedisSpan":
        if self._tracer is not None:
            from opentelemetry.trace import SpanKind
            
            self._scope = self._tracer.start_as_current_span(
                f"redis.{self.operation}",
                kind=SpanKind.CLIENT,
                attributes=self.attributes,
            )
            self.span = self._scope.__enter__()
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if self._scope is None:
            return False
        return bool(self._scope.__exit__(exc_type, exc_val, exc_tb))
    
    def record_failure(self, exc: BaseException) -> None:
        """Mark the round trip as failed with ``exc``."""
        self.failure = exc
        if self.span is None:
            return
        from opentelemetry.trace import Status, StatusCode
        
        self.span.record_exception(exc)
        self.span.set_status(Status(StatusCode.ERROR, str(exc)))


class TelemetryService:
    """
    Process-wide logging and tracing setup for the session store.
    
    Attributes:
        settings: Object providing ``log_level``, ``otel_endpoint`` and
            ``otel_service_name`` (normally StoreSettings), or None
        tracer: OpenTelemetry tracer, or None when tracing is off
    """
    
    DEFAULT_SERVICE_NAME = "redis-session-store"
    
    def __init__(self, settings: Optional[Any] = None):
        self.settings = settings
        self.tracer = None
        self._logger = logging.getLogger("telemetry")
        self._configure_logging()
        self._configure_tracing()
    
    def _configure_logging(self) -> None:
        level_name = (getattr(self.settings, "log_level", None) or "INFO").upper()
        level = getattr(logging, level_name, logging.INFO)
        
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        
        root = logging.getLogger()
        root.handlers[:] = [handler]
        root.setLevel(level)
        self._logger.info(
            "Session store logging configured",
            extra={"extra_data": {"log_level": level_name}}
        )
    
    def _configure_tracing(self) -> None:
        """
        Export spans over OTLP when an endpoint is configured.
        
        The OpenTelemetry packages are an optional extra; without them
        tracing stays off and a warning is logged.
        """
        endpoint = getattr(self.settings, "otel_endpoint", None)
        if not endpoint:
            self._logger.debug("No OpenTelemetry endpoint, Redis spans disabled")
            return
        
        try:
            from opentelemetry import trace
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
            from opentelemetry.sdk.resources import SERVICE_NAME, Resource
            from opentelemetry.sdk.trace import TracerProvider
            from opentelemetry.sdk.trace.export import BatchSpanProcessor
        except ImportError as e:
            self._logger.warning(
                "OpenTelemetry packages not installed, Redis spans disabled",
                extra={"extra_data": {"error": str(e)}}
            )
            return
        
        service_name = (
            getattr(self.settings, "otel_service_name", None) or self.DEFAULT_SERVICE_NAME
        )
        provider = TracerProvider(resource=Resource.create({SERVICE_NAME: service_name}))
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
        trace.set_tracer_provider(provider)
        self.tracer = trace.get_tracer("session_store")
        self._logger.info(
            "Exporting Redis spans",
            extra={"extra_data": {"otel_endpoint": endpoint, "service_name": service_name}}
        )
    
    def redis_span(
        self,
        operation: str,
        key: Optional[str] = None,
        count: Optional[int] = None
    ) -> RedisSpan:
        """
        Open a tracing scope for one Redis round trip.
        
        Args:
            operation: Store operation name
            key: The Redis key the command addresses (a sid or a user set key)
            count: Number of sids the command carries, for bulk commands
        """
        attributes: dict[str, Any] = {
            "db.system": "redis",
            "session_store.operation": operation,
        }
        if key is not None:
            attributes["session_store.key"] = key
        if count is not None:
            attributes["session_store.count"] = count
        return RedisSpan(self.tracer, operation, attributes)
    
    def record_metric(
        self,
        name: str,
        value: float,
        tags: Optional[dict[str, str]] = None
    ) -> None:
        """Report a metric as a debug-level structured log entry."""
        self._logger.debug(
            f"{name}={value}",
            extra={"extra_data": {"metric": name, "value": value, "tags": tags or {}}}
        )


_telemetry_service: Optional[TelemetryService] = None


def get_telemetry_service() -> Optional[TelemetryService]:
    """Return the process-wide service, or None before initialize_telemetry()."""
    return _telemetry_service


def initialize_telemetry(settings: Optional[Any] = None) -> TelemetryService:
    """Create the process-wide telemetry service from ``settings``."""
    global _telemetry_service
    _telemetry_service = TelemetryService(settings)
    return _telemetry_service
