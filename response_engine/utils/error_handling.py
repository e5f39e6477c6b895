"""
Failure taxonomy of the response pipeline plus the catch/log/substitute
helpers shared by the orchestrator, enrichment engine and evaluator.
Nothing in this taxonomy is allowed to escape ``generate`` or ``grade``.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

import structlog

_logger = structlog.get_logger(__name__)


class ResponseEngineError(Exception):
    """Base class for pipeline failures."""


class AnalyzerError(ResponseEngineError):
    """A single analyzer task failed; its slot stays empty."""

    def __init__(self, analyzer: str, message: str = ""):
        self.analyzer = analyzer
        super().__init__(message or f"{analyzer} analyzer failed")


class SynthesisError(ResponseEngineError):
    """Context enrichment or strategy determination failed."""


class GenerationError(ResponseEngineError):
    """The generator raised or produced no text."""


class GradingError(ResponseEngineError):
    """Quality grading failed."""


def log_exception(event: str, exc: BaseException, **fields: Any) -> None:
    """Emit ``event`` as a warning carrying the error text and type.

    Logging problems are dropped so a failing handler cannot turn a degraded
    turn into a failed one.
    """
    try:
        _logger.warning(event, error=str(exc), error_type=type(exc).__name__, **fields)
    except Exception:
        pass


def add_warning(
    metadata: Optional[Dict[str, Any]],
    code: str,
    message: str,
    **details: Any,
) -> Dict[str, Any]:
    """Record a non-fatal problem on turn metadata and flag it ``degraded``."""
    metadata = {} if metadata is None else metadata
    entry = {"code": code, "message": message}
    entry.update(details)
    metadata["warnings"] = [*(metadata.get("warnings") or []), entry]
    metadata["degraded"] = True
    return metadata


@contextmanager
def safely(event: str, *, non_fatal: bool = False, **fields: Any) -> Iterator[None]:
    """Log any exception raised in the block under ``event``.

    The exception propagates unless ``non_fatal`` is set.
    """
    try:
        yield
    except Exception as exc:
        log_exception(event, exc, **fields)
        if not non_fatal:
            raise
