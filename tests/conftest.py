"""Shared fixtures for response engine tests."""

from __future__ import annotations

import pytest

from engine_stubs import (
    StubEmotionAnalyzer,
    StubGenerator,
    StubLearningStore,
    StubQualityPredictor,
    StubTechnicalClassifier,
    StubTemplateEngine,
)
from response_engine.core.config import EngineConfig
from response_engine.logging_config import configure_logging
from response_engine.services.learning_store import FeedbackChannel, InMemoryLearningStore
from response_engine.services.quality_evaluator import ResponseQualityEvaluator
from response_engine.services.response_orchestrator import ResponseOrchestrator
from response_engine.services.response_stats import ResponseStats


@pytest.fixture(scope="session", autouse=True)
def structured_logging():
    configure_logging()


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def learning_store() -> StubLearningStore:
    return StubLearningStore()


@pytest.fixture
def predictor() -> StubQualityPredictor:
    return StubQualityPredictor()


@pytest.fixture
def evaluator(predictor, learning_store) -> ResponseQualityEvaluator:
    channel = FeedbackChannel(learning_store, predictor, maxsize=8)
    return ResponseQualityEvaluator(predictor, learning_store, channel)


@pytest.fixture
def memory_store() -> InMemoryLearningStore:
    return InMemoryLearningStore(history_limit=10)


@pytest.fixture
def make_orchestrator(engine_config):
    """Factory building an orchestrator wired entirely from stubs."""

    def _make(**overrides) -> ResponseOrchestrator:
        params = dict(
            config=engine_config,
            technical_classifier=StubTechnicalClassifier(),
            template_engine=StubTemplateEngine(),
            emotion_analyzer=StubEmotionAnalyzer(),
            quality_predictor=StubQualityPredictor(),
            learning_store=StubLearningStore(),
            generator=StubGenerator(),
            stats=ResponseStats(),
        )
        params.update(overrides)
        return ResponseOrchestrator(**params)

    return _make
