"""Turn response engine: analysis, context enrichment, strategy and grading."""

from .logging_config import configure_logging
from .models.analysis import AnalysisResult, GenerationResult, QualityReport
from .services.context_enrichment import ContextEnrichmentEngine
from .services.quality_evaluator import ResponseQualityEvaluator
from .services.response_orchestrator import ResponseOrchestrator

__all__ = [
    "AnalysisResult",
    "GenerationResult",
    "QualityReport",
    "ContextEnrichmentEngine",
    "ResponseQualityEvaluator",
    "ResponseOrchestrator",
    "configure_logging",
]

__version__ = "2.0.0"
