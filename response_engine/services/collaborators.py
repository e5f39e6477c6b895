"""
Collaborator interfaces consumed by the response pipeline.

The orchestrator never depends on concrete analyzers, generators or storage.
Anything matching these shapes can be plugged in; methods may be plain
functions or coroutines, and analyzers may return either the typed records
from ``response_engine.models.analysis`` or plain mappings (camelCase keys
accepted), which are coerced at the call site.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Protocol, Sequence, Union

from response_engine.models.analysis import (
    AnalysisResult,
    EmotionAnalysis,
    PersonalAnalysis,
    PrimaryStrategy,
    QualityBaseline,
    QualityPrediction,
    TechnicalAnalysis,
    TemplateAnalysis,
)


# ----------------------------
# Protocols (Interfaces)
# ----------------------------

class TechnicalClassifier(Protocol):
    def classify(self, text: str) -> Union[TechnicalAnalysis, Mapping[str, Any]]:
        """
        Synchronous and cheap; must not block. Return minimally:
        { "is_technical": bool, "confidence": float, "category": str }
        """


class TemplateEngine(Protocol):
    def detect(
        self, text: str, category_hint: Optional[str]
    ) -> Union[TemplateAnalysis, Mapping[str, Any]]:
        """Return { "template_type": str | None, "confidence": float }."""

    def render(
        self,
        text: str,
        detection: TemplateAnalysis,
        category_hint: Optional[str],
        session: Mapping[str, Any],
    ) -> Optional[str]:
        """Render literal text for the detected template, or None."""


class EmotionAnalyzer(Protocol):
    def analyze(
        self, text: str, history: Sequence[Any]
    ) -> Union[EmotionAnalysis, Mapping[str, Any]]:
        """Return { "dominant_emotion": str, "confidence": float }."""


class PersonalAdapter(Protocol):
    def analyze_context(
        self, text: str, profile: Mapping[str, Any], history: Sequence[Any]
    ) -> Union[PersonalAnalysis, Mapping[str, Any]]:
        """Return { "adaptation_strength": float, "personal_factors": dict }."""

    def render_personalized(self, text: str, personal_analysis: PersonalAnalysis) -> str:
        """Rewrite ``text`` for the user described by ``personal_analysis``."""


class QualityPredictor(Protocol):
    def predict(self, text: str) -> Union[QualityPrediction, Mapping[str, Any]]:
        """Return { "quality_score": float, "confidence": float, "improvements": list }."""

    def learn(self, sample: Mapping[str, Any], score: float) -> None:
        """Best-effort online update; failures are logged by the caller."""


class LearningStore(Protocol):
    def get_quality_baseline(self) -> Union[QualityBaseline, Mapping[str, Any]]:
        """Return { "average": float, "std_dev": float }."""

    def record_feedback(self, sample: Mapping[str, Any]) -> None:
        """Persist one graded sample: { "text", "user_id", "score" }."""


class ResponseGenerator(Protocol):
    def generate(
        self,
        primary: PrimaryStrategy,
        analysis: AnalysisResult,
        session: Dict[str, Any],
    ) -> Optional[str]:
        """Produce literal response text for ``primary``; None/"" means failure."""
