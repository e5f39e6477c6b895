"""Core configuration package."""

from .config import EngineConfig, build_engine_config

__all__ = ["EngineConfig", "build_engine_config"]
