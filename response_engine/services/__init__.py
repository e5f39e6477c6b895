"""
Response engine services
Pipeline components, reference analyzers and the learning feedback path
"""

from .context_enrichment import ContextEnrichmentEngine
from .heuristic_analyzers import (
    HeuristicQualityPredictor,
    KeywordEmotionAnalyzer,
    TechnicalPatternClassifier,
)
from .learning_store import FeedbackChannel, InMemoryLearningStore
from .quality_evaluator import ResponseQualityEvaluator
from .response_generation import TemplateResponseGenerator
from .response_orchestrator import ResponseOrchestrator, determine_response_strategy
from .response_stats import ResponseStats

__all__ = [
    "ContextEnrichmentEngine",
    "HeuristicQualityPredictor",
    "KeywordEmotionAnalyzer",
    "TechnicalPatternClassifier",
    "FeedbackChannel",
    "InMemoryLearningStore",
    "ResponseQualityEvaluator",
    "TemplateResponseGenerator",
    "ResponseOrchestrator",
    "determine_response_strategy",
    "ResponseStats",
]
