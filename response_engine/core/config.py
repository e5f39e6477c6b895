"""
Core configuration for the response engine

Centralizes the tunable knobs of the analysis pipeline (which analyzers run,
advisory time budget, feedback queue sizing) so we avoid scattering magic
numbers throughout the services.  Values can be overridden via env vars.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Optional

import structlog

logger = structlog.get_logger(__name__)

ENV_PREFIX = "RESPONSE_ENGINE_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)) or default)
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)) or default)
    except Exception:
        return default


# ────────────────────────────────────────────────────────────
#  Pipeline defaults (env-overridable)
# ────────────────────────────────────────────────────────────

# Responses graded at or above this score are flagged in metadata
QUALITY_THRESHOLD: float = _env_float("RESPONSE_ENGINE_QUALITY_THRESHOLD", 0.7)

# Advisory only: exceeding it marks the turn metadata, nothing is cancelled
MAX_PROCESSING_TIME_MS: int = _env_int("RESPONSE_ENGINE_MAX_PROCESSING_TIME_MS", 5000)

# Outbound learning feedback queue; submissions beyond this are dropped
FEEDBACK_QUEUE_MAXSIZE: int = _env_int("RESPONSE_ENGINE_FEEDBACK_QUEUE_MAXSIZE", 256)

# Number of graded scores the in-memory learning store keeps for its baseline
QUALITY_HISTORY_LIMIT: int = _env_int("RESPONSE_ENGINE_QUALITY_HISTORY_LIMIT", 1000)

APOLOGY_TEXT = "I'm sorry, something went wrong while preparing a response. Please try again."

SYSTEM_VERSION = "v2.0"


@dataclass
class EngineConfig:
    """Feature toggles and budgets consumed by the orchestrator."""

    enable_template_analysis: bool = True
    enable_emotion_analysis: bool = True
    enable_personal_adaptation: bool = True
    enable_input_quality_analysis: bool = False
    enable_context_enrichment: bool = True
    quality_threshold: float = QUALITY_THRESHOLD
    max_processing_time_ms: int = MAX_PROCESSING_TIME_MS
    feedback_queue_maxsize: int = FEEDBACK_QUEUE_MAXSIZE
    quality_history_limit: int = QUALITY_HISTORY_LIMIT

    def as_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _coerce_override(raw: str, current: Any) -> Any:
    if isinstance(current, bool):
        value = raw.strip().lower()
        if value in _TRUE_VALUES:
            return True
        if value in _FALSE_VALUES:
            return False
        raise ValueError(f"not a boolean: {raw!r}")
    if isinstance(current, int):
        return max(0, int(raw))
    if isinstance(current, float):
        return max(0.0, min(1.0, float(raw)))
    return raw


def build_engine_config(
    *,
    base: Optional[EngineConfig] = None,
    **overrides: Any,
) -> EngineConfig:
    """Build an EngineConfig from ``base`` + environment + explicit overrides.

    Environment keys are ``RESPONSE_ENGINE_<FIELD_NAME>`` (upper-cased).
    Explicit keyword overrides win over the environment.  Invalid environment
    values are logged and ignored.
    """
    cfg = EngineConfig() if base is None else replace(base)

    for f in fields(cfg):
        env_key = f"{ENV_PREFIX}{f.name.upper()}"
        raw = os.getenv(env_key)
        if raw is None or not raw.strip():
            continue
        try:
            setattr(cfg, f.name, _coerce_override(raw, getattr(cfg, f.name)))
        except Exception as exc:
            logger.warning(
                "Invalid engine config override ignored",
                env_key=env_key,
                raw_value=raw,
                error=str(exc),
            )

    known = {f.name for f in fields(cfg)}
    for name, value in overrides.items():
        if name not in known:
            raise TypeError(f"Unknown engine config option: {name}")
        setattr(cfg, name, value)

    return cfg
