"""Log rendering for folio.

Modules log through ``logging.getLogger(__name__)``.  :func:`configure_logging`
puts a structlog ``ProcessorFormatter`` on the root logger so those records
render as coloured console lines (``text``) or JSON lines (``json``), each
tagged with the list view that issued it and the current trace ids.

With ``log_root`` set, records are also appended as JSON to
``<log_root>/folio.log``, and httpx/httpcore transport records to
``<log_root>/http.log``.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path

import structlog
from opentelemetry import trace

from folio.config import LoggingConfig

APP_LOG = "folio.log"
HTTP_LOG = "http.log"

TRANSPORT_LOGGERS = ("httpx", "httpcore")

# Marks handlers installed here so reconfiguring replaces only those.
_OWNED = "_folio_handler"

_view_context: ContextVar[str | None] = ContextVar("folio_view", default=None)


def set_view_context(name: str | None) -> None:
    """Tag log records from the current task with list view *name*."""
    _view_context.set(name)


def get_view_context() -> str | None:
    return _view_context.get()


# ---------------------------------------------------------------------------
# Processors
# ---------------------------------------------------------------------------


def add_view_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Add ``view`` when a list view is active."""
    view = _view_context.get()
    if view is not None:
        event_dict.setdefault("view", view)
    return event_dict


def add_otel_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Add ``trace_id``/``span_id`` while a recording span is current."""
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        event_dict["trace_id"] = trace.format_trace_id(ctx.trace_id)
        event_dict["span_id"] = trace.format_span_id(ctx.span_id)
    return event_dict


def _pre_chain(timestamp: str) -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt=timestamp, utc=timestamp == "iso"),
        add_view_context,
        add_otel_context,
        structlog.stdlib.ExtraAdder(),
    ]


def _formatter(renderer: structlog.types.Processor, timestamp: str) -> logging.Formatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=_pre_chain(timestamp),
    )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _own(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _OWNED, True)
    return handler


def _drop_owned_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if getattr(handler, _OWNED, False):
            logger.removeHandler(handler)
            handler.close()


def _json_file_handler(path: Path) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(_formatter(structlog.processors.JSONRenderer(), "iso"))
    return _own(handler)


def configure_logging(
    config: LoggingConfig | None = None,
    *,
    view_name: str | None = None,
) -> None:
    """Route folio's (and the host's) stdlib logging through structlog.

    Safe to call again: handlers from a previous call are replaced, handlers
    the host installed itself are left alone.

    Raises
    ------
    ValueError
        If ``config.format`` is neither ``"text"`` nor ``"json"``.
    """
    config = config or LoggingConfig()
    if config.format == "json":
        console = _formatter(structlog.processors.JSONRenderer(), "iso")
    elif config.format == "text":
        console = _formatter(structlog.dev.ConsoleRenderer(), "%H:%M:%S")
    else:
        raise ValueError(f"Unknown log format {config.format!r}")

    if view_name is not None:
        set_view_context(view_name)

    root = logging.getLogger()
    _drop_owned_handlers(root)
    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(console)
    root.addHandler(_own(stream))
    root.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for name in TRANSPORT_LOGGERS:
        transport = logging.getLogger(name)
        _drop_owned_handlers(transport)
        transport.setLevel(logging.WARNING)

    if config.log_root:
        log_root = Path(config.log_root)
        log_root.mkdir(parents=True, exist_ok=True)
        root.addHandler(_json_file_handler(log_root / APP_LOG))
        http_handler = _json_file_handler(log_root / HTTP_LOG)
        for name in TRANSPORT_LOGGERS:
            logging.getLogger(name).addHandler(http_handler)

    structlog.configure(
        processors=[
            *_pre_chain("iso" if config.format == "json" else "%H:%M:%S"),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
