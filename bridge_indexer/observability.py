"""
Observability Module - Logging, Metrics, and Health

Provides:
- Structured JSON logging with request IDs
- Request/response logging middleware for the API
- Metrics collection (apply latency, outcomes per event kind, diagnostics)
- Health check utilities

Configuration:
- BRIDGE_INDEXER_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- BRIDGE_INDEXER_LOG_FORMAT: json, text (default: json in production)
- BRIDGE_INDEXER_PRODUCTION: Enable production mode

Usage:
    from bridge_indexer.observability import get_logger

    logger = get_logger(__name__)
    logger.warning("Status change for unknown message", message_id=message_id)
"""

import json
import logging
import os
import sys
import time
import uuid
from collections import Counter
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

# Context variable for request tracking
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


# ============================================================
# CONFIGURATION
# ============================================================

def _is_production() -> bool:
    return os.environ.get("BRIDGE_INDEXER_PRODUCTION", "").lower() in ("1", "true", "yes")


_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _get_log_level() -> int:
    level_str = os.environ.get("BRIDGE_INDEXER_LOG_LEVEL", "INFO").upper()
    if level_str not in _LOG_LEVELS:
        return logging.INFO
    return getattr(logging, level_str)


def _use_json_logging() -> bool:
    format_str = os.environ.get("BRIDGE_INDEXER_LOG_FORMAT", "").lower()
    if format_str == "json":
        return True
    if format_str == "text":
        return False
    return _is_production()


# ============================================================
# STRUCTURED LOGGING
# ============================================================

_RESERVED_RECORD_KEYS = frozenset((
    "name", "msg", "args", "created", "levelname", "levelno",
    "pathname", "filename", "module", "lineno", "funcName",
    "exc_info", "exc_text", "stack_info", "message", "msecs",
    "relativeCreated", "thread", "threadName", "processName",
    "process", "taskName",
))


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Output format:
    {
        "timestamp": "2024-01-15T10:30:00.000Z",
        "level": "WARNING",
        "logger": "bridge_indexer.core.reconciler",
        "message": "Validator list rejected",
        "request_id": "abc-123",
        "proposal_id": "0x...",
        ...extra fields...
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_KEYS or key.startswith("_"):
                continue
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = str(value)

        return json.dumps(log_data)


class TextFormatter(logging.Formatter):
    """
    Human-readable formatter for development.

    Message ids and Substrate addresses are 32-byte hex; extras longer
    than HEX_DISPLAY_WIDTH are shown as 0xaaaaaaaa..aaaa.
    """

    HEX_DISPLAY_WIDTH = 18

    def _short(self, value: Any) -> Any:
        if isinstance(value, str) and value.startswith("0x") and len(value) > self.HEX_DISPLAY_WIDTH:
            return f"{value[:10]}..{value[-4:]}"
        return value

    def format(self, record: logging.LogRecord) -> str:
        prefix = ""
        request_id = request_id_var.get()
        if request_id:
            prefix = f"[{request_id[:8]}] "

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        msg = f"{timestamp} {record.levelname:8} {prefix}{record.name}: {record.getMessage()}"

        extras = {
            key: value for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_KEYS and not key.startswith("_")
        }
        if extras:
            msg += " " + " ".join(f"{k}={self._short(v)}" for k, v in extras.items())

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that turns keyword arguments into record extras, so
    engine code can write

        logger.warning("Status change for unknown message", target_id=message_id)

    and the formatters render target_id as a field.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = kwargs.get("extra", {})

        # Move non-standard kwargs to extra
        for key in list(kwargs.keys()):
            if key not in ("exc_info", "stack_info", "stacklevel", "extra"):
                extra[key] = kwargs.pop(key)

        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    """Structured logger for a module; pass __name__."""
    return ContextLogger(logging.getLogger(name), {})


def setup_logging() -> None:
    """
    Install one stderr handler on the root logger.

    Called when bridge_indexer.main is imported, so uvicorn workers log
    through it. The CLI leaves logging unconfigured and prints its own
    summaries.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(_get_log_level())

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(_get_log_level())

    if _use_json_logging():
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(TextFormatter())

    root_logger.addHandler(handler)

    # Suppress noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ============================================================
# REQUEST CONTEXT MIDDLEWARE
# ============================================================

class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Tags every log line written while serving a request with its
    request id (the caller's X-Request-ID, or a fresh one) and logs the
    response status and timing. The id is echoed back in X-Request-ID so
    an event source can match an ingest batch to its log lines.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request_id_var.set(request_id)

        logger = get_logger("bridge_indexer.request")
        start_time = time.perf_counter()

        logger.debug(
            f"{request.method} {request.url.path}",
            method=request.method,
            path=request.url.path,
            query=str(request.query_params) if request.query_params else None,
        )

        try:
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start_time) * 1000
            log_level = logging.INFO if response.status_code < 400 else logging.WARNING
            logger.log(
                log_level,
                f"{request.method} {request.url.path} -> {response.status_code}",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )

            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.exception(
                f"{request.method} {request.url.path} -> 500",
                method=request.method,
                path=request.url.path,
                status_code=500,
                duration_ms=round(duration_ms, 2),
                error=str(e),
            )
            raise

        finally:
            request_id_var.set("")


# ============================================================
# METRICS
# ============================================================

@dataclass
class MetricsCollector:
    """
    Simple in-memory metrics collector.

    For production, replace with Prometheus, StatsD, or similar.
    """

    # Counters
    events_applied: int = 0
    reconciliation_failures: int = 0
    unknown_targets: int = 0
    rejected_transitions: int = 0
    outcomes: Counter = field(default_factory=Counter)
    events_by_kind: Counter = field(default_factory=Counter)

    # Gauges
    last_block_number: Optional[int] = None

    # Histograms (simplified as lists)
    apply_latencies_ms: list = field(default_factory=list)

    def record_apply(
        self,
        event_kind: str,
        outcome: str,
        block_number: int,
        latency_ms: float,
    ) -> None:
        """Record one applied event."""
        self.events_applied += 1
        self.events_by_kind[event_kind] += 1
        self.outcomes[outcome] += 1
        self.last_block_number = block_number
        self.apply_latencies_ms.append(latency_ms)
        # Keep only last 1000 samples
        if len(self.apply_latencies_ms) > 1000:
            self.apply_latencies_ms = self.apply_latencies_ms[-1000:]

    def record_diagnostic(self, code: str) -> None:
        if code == "reconciliation_failed":
            self.reconciliation_failures += 1
        elif code == "unknown_target":
            self.unknown_targets += 1
        elif code == "transition_rejected":
            self.rejected_transitions += 1

    def get_summary(self) -> Dict[str, Any]:
        """Get metrics summary."""
        def percentile(data: list, p: float) -> Optional[float]:
            if not data:
                return None
            sorted_data = sorted(data)
            idx = int(len(sorted_data) * p)
            return sorted_data[min(idx, len(sorted_data) - 1)]

        return {
            "events_applied": self.events_applied,
            "reconciliation_failures": self.reconciliation_failures,
            "unknown_targets": self.unknown_targets,
            "rejected_transitions": self.rejected_transitions,
            "outcomes": dict(self.outcomes),
            "events_by_kind": dict(self.events_by_kind),
            "last_block_number": self.last_block_number,
            "apply_latency_p50_ms": percentile(self.apply_latencies_ms, 0.5),
            "apply_latency_p95_ms": percentile(self.apply_latencies_ms, 0.95),
            "apply_latency_p99_ms": percentile(self.apply_latencies_ms, 0.99),
        }


# Global metrics instance
_metrics = MetricsCollector()


def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return _metrics


# ============================================================
# HEALTH CHECKS
# ============================================================

@dataclass
class HealthStatus:
    """Health check result."""
    healthy: bool
    checks: Dict[str, Dict[str, Any]]
    duration_ms: float


def check_health(store=None) -> HealthStatus:
    """
    Run all health checks.

    Args:
        store: EntityStore instance

    Returns:
        HealthStatus with all check results
    """
    start = time.perf_counter()
    checks = {}
    all_healthy = True

    checks["liveness"] = {"status": "healthy"}

    if store is not None:
        try:
            checks["entity_store"] = {
                "status": "healthy",
                "backend": type(store).__name__,
                "message_count": store.messages.count(),
                "last_message_block": store.messages.max_block_number(),
            }
        except Exception as e:
            checks["entity_store"] = {
                "status": "unhealthy",
                "error": str(e),
            }
            all_healthy = False

    duration_ms = (time.perf_counter() - start) * 1000

    return HealthStatus(
        healthy=all_healthy,
        checks=checks,
        duration_ms=round(duration_ms, 2),
    )
