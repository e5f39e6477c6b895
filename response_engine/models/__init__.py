"""
Data models for the response engine
"""

from .analysis import (
    AnalysisResult,
    ContextEnrichment,
    EmotionAnalysis,
    GenerationResult,
    PersonalAnalysis,
    PrimaryStrategy,
    QualityBaseline,
    QualityGrade,
    QualityPrediction,
    QualityReport,
    ResponseGuidance,
    ResponseMetrics,
    ResponseStrategy,
    SecondaryStrategy,
    TechnicalAnalysis,
    TemplateAnalysis,
)

__all__ = [
    "AnalysisResult",
    "ContextEnrichment",
    "EmotionAnalysis",
    "GenerationResult",
    "PersonalAnalysis",
    "PrimaryStrategy",
    "QualityBaseline",
    "QualityGrade",
    "QualityPrediction",
    "QualityReport",
    "ResponseGuidance",
    "ResponseMetrics",
    "ResponseStrategy",
    "SecondaryStrategy",
    "TechnicalAnalysis",
    "TemplateAnalysis",
]
