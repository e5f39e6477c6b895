"""
Analysis Models for the Response Engine
Defines the per-turn analysis record and every typed slot written into it
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from response_engine.utils.text_utils import clamp_unit

RecordT = TypeVar("RecordT", bound=BaseModel)


class PrimaryStrategy(str, Enum):
    """Primary generation approach for a turn"""

    TECHNICAL = "technical"
    EMOTIONAL = "emotional"
    PERSONALIZED = "personalized"
    BALANCED = "balanced"


class SecondaryStrategy(str, Enum):
    """Post-processing passes applied after primary generation"""

    TEMPLATE_DRIVEN = "template_driven"
    EMOTION_AWARE = "emotion_aware"
    PERSONALIZED = "personalized"


class QualityGrade(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    POOR = "poor"


class ResponseStructure(str, Enum):
    ADAPTIVE = "adaptive"
    STEP_BY_STEP = "step_by_step"
    SUMMARY_ONLY = "summary_only"


class ContentGuideline(str, Enum):
    BE_CONCISE = "be_concise"
    BE_DETAILED = "be_detailed"


class _Record(BaseModel):
    """Base for analyzer records: accepts camelCase keys from collaborators."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# --- Analyzer slots ---


class TechnicalAnalysis(_Record):
    is_technical: bool = Field(False, alias="isTechnical")
    confidence: float = 0.0
    category: str = "general"
    pattern: Optional[str] = None

    @field_validator("is_technical", mode="before")
    @classmethod
    def _coerce_flag(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> float:
        return clamp_unit(v)

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, v: Any) -> str:
        return str(v) if v else "general"


class TemplateAnalysis(_Record):
    template_type: Optional[str] = Field(None, alias="templateType")
    confidence: float = 0.0

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> float:
        return clamp_unit(v)


class EmotionAnalysis(_Record):
    dominant_emotion: str = Field("neutral", alias="dominantEmotion")
    confidence: float = 0.0
    scores: Dict[str, float] = Field(default_factory=dict)

    @field_validator("dominant_emotion", mode="before")
    @classmethod
    def _emotion(cls, v: Any) -> str:
        return str(v) if v else "neutral"

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> float:
        return clamp_unit(v)

    @field_validator("scores", mode="before")
    @classmethod
    def _clamp_scores(cls, v: Any) -> Dict[str, float]:
        if not isinstance(v, dict):
            return {}
        return {str(k): clamp_unit(s) for k, s in v.items()}


class PersonalAnalysis(_Record):
    adaptation_strength: float = Field(0.0, alias="adaptationStrength")
    personal_factors: Dict[str, Any] = Field(default_factory=dict, alias="personalFactors")

    @field_validator("adaptation_strength", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> float:
        return clamp_unit(v)

    @field_validator("personal_factors", mode="before")
    @classmethod
    def _factors(cls, v: Any) -> Dict[str, Any]:
        return dict(v) if isinstance(v, dict) else {}


class QualityPrediction(_Record):
    quality_score: float = Field(0.5, alias="qualityScore")
    confidence: float = 0.5
    improvements: List[str] = Field(default_factory=list)

    @field_validator("quality_score", "confidence", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> float:
        return clamp_unit(v)

    @field_validator("improvements", mode="before")
    @classmethod
    def _improvements(cls, v: Any) -> List[str]:
        if not v:
            return []
        return [str(item) for item in v]


# --- Context enrichment ---


class ConversationalContinuity(BaseModel):
    continuity: float = 0.0
    flow: str = "initial"
    turn_count: int = 0

    @field_validator("continuity", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> float:
        return clamp_unit(v)


class TopicalCoherence(BaseModel):
    score: float = 0.5
    factors: List[str] = Field(default_factory=list)

    @field_validator("score", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> float:
        return clamp_unit(v)


class EmotionalProgression(BaseModel):
    stability: float = 0.5
    progression: str = "neutral"
    trend: str = "stable"

    @field_validator("stability", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> float:
        return clamp_unit(v)


class PersonalContextualFit(BaseModel):
    fit: float = 0.5
    adaptation: str = "standard"
    factors: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("fit", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> float:
        return clamp_unit(v)


class TechnicalContextualDepth(BaseModel):
    depth: float = 0.0
    category: str = "general"
    complexity: Optional[str] = None

    @field_validator("depth", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> float:
        return clamp_unit(v)


class ContextEnrichment(BaseModel):
    """Five per-dimension sub-scores plus the weighted aggregate"""

    model_config = ConfigDict(validate_assignment=True)

    conversational_continuity: ConversationalContinuity
    topical_coherence: TopicalCoherence
    emotional_progression: EmotionalProgression
    personal_contextual_fit: PersonalContextualFit
    technical_contextual_depth: TechnicalContextualDepth
    overall_score: float = 0.5
    confidence: float = 0.5
    processing_time_ms: float = 0.0
    fallback: bool = False

    @field_validator("overall_score", "confidence", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> float:
        return clamp_unit(v)

    def sub_scores(self) -> Tuple[float, float, float, float, float]:
        """Raw sub-scores in aggregation order."""
        return (
            self.conversational_continuity.continuity,
            self.topical_coherence.score,
            self.emotional_progression.stability,
            self.personal_contextual_fit.fit,
            self.technical_contextual_depth.depth,
        )


# --- Strategy & quality ---


class ResponseStrategy(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    primary: PrimaryStrategy = PrimaryStrategy.BALANCED
    secondary: List[SecondaryStrategy] = Field(default_factory=list)
    confidence: float = 0.5
    # Diagnostic tags only; nothing downstream branches on them
    reasoning: List[str] = Field(default_factory=list)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> float:
        return clamp_unit(v)

    def add_secondary(self, strategy: SecondaryStrategy) -> None:
        if strategy not in self.secondary:
            self.secondary.append(strategy)


class QualityBaseline(BaseModel):
    """Population statistics of historical quality scores"""

    average: float = 0.5
    std_dev: float = Field(0.1, alias="stdDev")
    count: int = 0

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("std_dev", mode="before")
    @classmethod
    def _non_negative(cls, v: Any) -> float:
        try:
            return max(0.0, float(v))
        except (TypeError, ValueError):
            return 0.0


class ResponseMetrics(BaseModel):
    relevance: float = 0.0
    coherence: float = 0.0
    completeness: float = 0.0
    personalization: float = 0.0
    technical_accuracy: float = 0.0
    overall_score: float = 0.0

    @field_validator(
        "relevance",
        "coherence",
        "completeness",
        "personalization",
        "technical_accuracy",
        "overall_score",
        mode="before",
    )
    @classmethod
    def _clamp(cls, v: Any) -> float:
        return clamp_unit(v)


class QualityReport(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    score: float = 0.5
    confidence: float = 0.5
    grade: QualityGrade = QualityGrade.ACCEPTABLE
    improvements: List[str] = Field(default_factory=list)
    improved_response: Optional[str] = None
    baseline: Optional[QualityBaseline] = None
    metrics: Optional[ResponseMetrics] = None
    fallback: bool = False

    @field_validator("score", "confidence", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> float:
        return clamp_unit(v)

    @classmethod
    def neutral(cls) -> "QualityReport":
        return cls(
            score=0.5,
            confidence=0.5,
            grade=QualityGrade.ACCEPTABLE,
            improvements=[],
            fallback=True,
        )


class ResponseGuidance(BaseModel):
    """Optional caller instructions applied after all strategy passes.

    ``style`` (formal / casual register) is carried for generators that honour
    it; the built-in adjustments leave the text unchanged for it.
    """

    model_config = ConfigDict(populate_by_name=True)

    structure: ResponseStructure = ResponseStructure.ADAPTIVE
    content_guidelines: List[ContentGuideline] = Field(default_factory=list)
    style: Optional[str] = Field(default=None, alias="styleInstructions")


# --- Turn record ---


class AnalysisResult(BaseModel):
    """Everything known about one conversational turn.

    ``input`` and ``history`` are frozen once the record exists.  Every other
    slot has exactly one writer and may be absent; readers substitute their
    documented defaults instead of failing.
    """

    model_config = ConfigDict(validate_assignment=True)

    input: str = Field("", frozen=True)
    history: Tuple[Any, ...] = Field(default_factory=tuple, frozen=True)
    turn_id: str = Field(default_factory=lambda: uuid.uuid4().hex, frozen=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    technical: Optional[TechnicalAnalysis] = None
    template: Optional[TemplateAnalysis] = None
    emotion: Optional[EmotionAnalysis] = None
    personal: Optional[PersonalAnalysis] = None
    quality_prediction: Optional[QualityPrediction] = None

    context_enrichment: Optional[ContextEnrichment] = None
    strategy: Optional[ResponseStrategy] = None
    quality: Optional[QualityReport] = None

    processing_time_ms: float = 0.0

    @field_validator("input", mode="before")
    @classmethod
    def _coerce_input(cls, v: Any) -> str:
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)

    @field_validator("history", mode="before")
    @classmethod
    def _coerce_history(cls, v: Any) -> Tuple[Any, ...]:
        if v is None:
            return ()
        if isinstance(v, (str, bytes, dict)):
            return (v,)
        try:
            return tuple(v)
        except TypeError:
            return ()

    @property
    def last_turn(self) -> Any:
        return self.history[-1] if self.history else None


class GenerationResult(BaseModel):
    response_text: str
    analysis_result: Optional[AnalysisResult] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


def coerce_record(model: Type[RecordT], value: Any) -> RecordT:
    """Accept a typed record or a plain mapping from a collaborator."""
    if isinstance(value, model):
        return value
    if isinstance(value, BaseModel):
        return model.model_validate(value.model_dump(by_alias=False))
    if isinstance(value, Mapping):
        return model.model_validate(dict(value))
    raise TypeError(f"cannot build {model.__name__} from {type(value).__name__}")
