"""
Unit tests for structured logging and Redis span reporting.
"""

import json
import logging
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

import telemetry.service as telemetry_service
from telemetry import (
    JSONFormatter,
    RedisSpan,
    TelemetryService,
    get_telemetry_service,
    initialize_telemetry,
)
from session.redis_store import RedisSessionStore


def make_record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="session.redis_store",
        level=logging.WARNING,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def make_tracer() -> MagicMock:
    """Tracer whose current span is ``tracer.span``."""
    tracer = MagicMock()
    scope = tracer.start_as_current_span.return_value
    scope.__exit__.return_value = False
    tracer.span = scope.__enter__.return_value
    return tracer


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    telemetry_service._telemetry_service = None


class TestJSONFormatter:
    """Tests for JSONFormatter."""
    
    def test_base_fields(self):
        output = json.loads(JSONFormatter().format(make_record("Redis unavailable")))
        
        assert output["level"] == "WARNING"
        assert output["message"] == "Redis unavailable"
        assert output["logger"] == "session.redis_store"
        assert output["source"].endswith(":10")
        assert output["timestamp"].endswith("Z")
    
    def test_extra_data_is_merged(self):
        record = make_record("Redis unavailable", extra_data={"operation": "get"})
        
        output = json.loads(JSONFormatter().format(record))
        
        assert output["operation"] == "get"
    
    def test_exception_is_included(self):
        try:
            raise RedisConnectionError("Connection refused")
        except RedisConnectionError as e:
            record = make_record("Redis unavailable")
            record.exc_info = (type(e), e, e.__traceback__)
        
        output = json.loads(JSONFormatter().format(record))
        
        assert "Connection refused" in output["exception"]


class TestTelemetryService:
    """Tests for TelemetryService."""
    
    def test_configures_root_logger(self, restore_logging):
        service = TelemetryService(SimpleNamespace(log_level="DEBUG", otel_endpoint=None))
        
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert service.tracer is None
    
    def test_initialize_sets_global(self, restore_logging):
        service = initialize_telemetry()
        
        assert get_telemetry_service() is service
    
    def test_redis_span_attributes(self, restore_logging):
        service = TelemetryService()
        
        span = service.redis_span("mget", key="user_sessions:u1", count=3)
        
        assert span.operation == "mget"
        assert span.attributes == {
            "db.system": "redis",
            "session_store.operation": "mget",
            "session_store.key": "user_sessions:u1",
            "session_store.count": 3,
        }
    
    def test_untraced_span_records_failure(self):
        error = RedisConnectionError("Connection refused")
        
        with RedisSpan(None, "get") as span:
            span.record_failure(error)
        
        assert span.span is None
        assert span.failure is error
    
    @pytest.mark.asyncio
    async def test_store_operation_opens_span(self, restore_logging, fake_redis):
        service = TelemetryService()
        service.tracer = make_tracer()
        store = RedisSessionStore({"client": fake_redis}, telemetry=service)
        
        await store.get("sid-1")
        
        call = service.tracer.start_as_current_span.call_args
        assert call.args == ("redis.get",)
        assert call.kwargs["attributes"]["session_store.key"] == "sid-1"
        service.tracer.span.record_exception.assert_not_called()
    
    @pytest.mark.asyncio
    async def test_transport_failure_is_recorded_on_span(self, restore_logging, mock_redis):
        service = TelemetryService()
        service.tracer = make_tracer()
        error = RedisConnectionError("Connection refused")
        mock_redis.get.side_effect = error
        store = RedisSessionStore({"client": mock_redis}, telemetry=service)
        
        assert await store.get("sid-1") is None
        
        service.tracer.span.record_exception.assert_called_once_with(error)
        service.tracer.span.set_status.assert_called_once()
    
    @pytest.mark.asyncio
    async def test_store_records_stale_metric(self, restore_logging, mock_redis, monkeypatch):
        service = TelemetryService()
        metrics = []
        monkeypatch.setattr(
            service, "record_metric",
            lambda name, value, tags=None: metrics.append((name, value))
        )
        mock_redis.smembers.return_value = {"s1"}
        mock_redis.mget.return_value = [None]
        store = RedisSessionStore({"client": mock_redis}, telemetry=service)
        
        await store.all_user_sessions("u1")
        await store.drain()
        
        assert metrics == [("session_store.stale_sessions_removed", 1)]
