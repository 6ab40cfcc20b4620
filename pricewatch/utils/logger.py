"""
Structured logging for the PriceWatch comparison service.

Every entry carries the request trace ID, so a single /compare call can be
followed from the shopping search through ranking and link resolution.
"""
import uuid
import logging
import structlog
from contextvars import ContextVar
from typing import Any, Dict, Optional

from pricewatch.config import config

_trace_id: ContextVar[str] = ContextVar("pricewatch_trace_id", default="")


def _new_trace_id() -> str:
    return uuid.uuid4().hex[:8]


def get_trace_id() -> str:
    """Return the trace ID bound to the current context, creating one if needed."""
    current = _trace_id.get()
    if not current:
        current = set_trace_id()
    return current


def set_trace_id(trace_id: Optional[str] = None) -> str:
    """Bind a trace ID (given or freshly generated) to the current context."""
    value = trace_id or _new_trace_id()
    _trace_id.set(value)
    return value


def add_trace_id(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    event_dict.setdefault("trace_id", get_trace_id())
    return event_dict


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None):
    """Install the structlog pipeline. Defaults come from LOG_LEVEL / LOG_FORMAT."""
    level = (level or config.LOG_LEVEL).upper()
    fmt = fmt or config.LOG_FORMAT

    renderer = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer(colors=True)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_trace_id,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level, logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)


class LayerLogger:
    """
    Logger bound to one pipeline stage or adapter.

    Every event carries a ``layer`` field, and the event names are shared by all
    stages (``decision_made``, ``fallback_triggered`` and so on), so a request
    can be filtered by stage or by kind of event.
    """

    def __init__(self, layer_name: str):
        self.layer_name = layer_name
        self.logger = get_logger(layer_name).bind(layer=layer_name)

    def log_decision(self, decision: str, reason: str, query: Optional[str] = None, **extra):
        """A stage chose one branch over another (dropped an offer, skipped a lookup...)."""
        self.logger.info("decision_made", decision=decision, reason=reason, query=query, **extra)

    def log_action(self, action: str, status: str = "started", **extra):
        self.logger.info(f"action_{status}", action=action, **extra)

    def log_fallback(self, from_source: str, to_source: str, reason: str, **extra):
        """A preferred source failed and a degraded one is used instead."""
        self.logger.warning(
            "fallback_triggered",
            from_source=from_source,
            to_source=to_source,
            reason=reason,
            **extra
        )

    def log_error(self, error: str, error_type: str = "unknown", **extra):
        self.logger.error("error_occurred", error=error, error_type=error_type, **extra)

    def log_http_attempt(self, url: str, attempt: int, status_code: Optional[int], result: str, **extra):
        """One outbound request; ``status_code`` is None when no response arrived."""
        self.logger.info(
            "http_attempt",
            url=url,
            attempt=attempt,
            status_code=status_code,
            result=result,
            **extra
        )

    def log_filtering(self, stage: str, kept: int, dropped: Dict[str, int], **extra):
        """Offers kept by a stage, with drop counts keyed by reason."""
        self.logger.info(
            "offers_filtered",
            stage=stage,
            kept=kept,
            dropped={reason: count for reason, count in dropped.items() if count},
            **extra
        )


configure_logging()
