"""Structured logging for the response engine.

Applications call :func:`configure_logging` once at startup; it sets up
structlog with stdlib logging routed through the same processor chain.  Every
turn binds its ``turn_id`` (and the user, when known) into contextvars so
analyzer, enrichment and grading events of one turn can be correlated.

Environment:
    RESPONSE_ENGINE_LOG_LEVEL / LOG_LEVEL   root level (default INFO)
    LOG_PRETTY                              console renderer instead of JSON
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

import structlog

from response_engine.core.config import SYSTEM_VERSION

__all__ = ["configure_logging", "bind_turn_context", "clear_turn_context"]

_TURN_KEYS = ("turn_id", "user_id")
_handler: Optional[logging.Handler] = None


def _log_level() -> int:
    name = os.getenv("RESPONSE_ENGINE_LOG_LEVEL") or os.getenv("LOG_LEVEL", "INFO")
    return getattr(logging, name.upper(), logging.INFO)


def _renderer() -> Any:
    if os.getenv("LOG_PRETTY", "0").lower() in {"1", "true", "yes"}:
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def _add_engine_version(_, __, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    event_dict.setdefault("engine_version", SYSTEM_VERSION)
    return event_dict


def _chain() -> List[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        _add_engine_version,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def configure_logging(force: bool = False) -> None:
    """Configure structlog and the stdlib root handler.

    Repeated calls are no-ops unless ``force`` is set (tests switching
    renderers, for instance).  Handlers installed by the host application
    are left alone.
    """
    global _handler
    if _handler is not None and not force:
        return

    renderer = _renderer()
    chain = _chain()

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)
    root.addHandler(handler)
    root.setLevel(_log_level())

    structlog.configure(
        processors=[structlog.stdlib.filter_by_level, *chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _handler = handler


def bind_turn_context(turn_id: Optional[str] = None, user_id: Optional[str] = None) -> None:
    """Bind the identifiers of the current turn; empty values are skipped."""
    values = {k: v for k, v in zip(_TURN_KEYS, (turn_id, user_id)) if v}
    if not values:
        return
    try:
        structlog.contextvars.bind_contextvars(**values)
    except (TypeError, ValueError) as exc:
        logging.getLogger(__name__).debug("turn context not bound: %s", exc)


def clear_turn_context() -> None:
    structlog.contextvars.unbind_contextvars(*_TURN_KEYS)

