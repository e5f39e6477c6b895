"""
Context Enrichment Engine
Combines per-dimension sub-scores of a turn into one context score + confidence
"""

from __future__ import annotations

import time
from typing import Callable, Dict, TypeVar

import numpy as np
import structlog

from response_engine.models.analysis import (
    AnalysisResult,
    ContextEnrichment,
    ConversationalContinuity,
    EmotionalProgression,
    PersonalContextualFit,
    TechnicalContextualDepth,
    TopicalCoherence,
)
from response_engine.utils.error_handling import log_exception
from response_engine.utils.text_utils import topic_similarity

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Aggregation weights; must sum to 1.0
CONTEXT_WEIGHTS: Dict[str, float] = {
    "conversational_continuity": 0.25,
    "topical_coherence": 0.25,
    "emotional_progression": 0.2,
    "personal_contextual_fit": 0.15,
    "technical_contextual_depth": 0.15,
}

CONTINUITY_BASE = 0.5
CONTINUITY_BONUS = 0.2
MIN_CONFIDENCE = 0.3


def _fallback_continuity() -> ConversationalContinuity:
    return ConversationalContinuity(continuity=0.5, flow="transitional")


def _fallback_coherence() -> TopicalCoherence:
    return TopicalCoherence(score=0.5, factors=[])


def _fallback_emotion() -> EmotionalProgression:
    return EmotionalProgression(stability=0.5, progression="neutral")


def _fallback_personal() -> PersonalContextualFit:
    return PersonalContextualFit(fit=0.5, adaptation="standard")


def _fallback_technical() -> TechnicalContextualDepth:
    return TechnicalContextualDepth(depth=0.3, category="general")


def neutral_enrichment() -> ContextEnrichment:
    """Canned record used when synthesis itself fails."""
    return ContextEnrichment(
        conversational_continuity=_fallback_continuity(),
        topical_coherence=_fallback_coherence(),
        emotional_progression=_fallback_emotion(),
        personal_contextual_fit=_fallback_personal(),
        technical_contextual_depth=_fallback_technical(),
        overall_score=0.5,
        confidence=0.5,
        processing_time_ms=0.0,
        fallback=True,
    )


# --- Sub-analyses (pure functions of the snapshot) ---


def analyze_conversational_flow(result: AnalysisResult) -> ConversationalContinuity:
    history = result.history
    if not history:
        return ConversationalContinuity(continuity=0.0, flow="initial", turn_count=0)

    flow_score = CONTINUITY_BASE + topic_similarity(history[-1], result.input) * CONTINUITY_BONUS
    flow_score = min(flow_score, 1.0)
    if flow_score > 0.7:
        flow = "continuous"
    elif flow_score > 0.4:
        flow = "transitional"
    else:
        flow = "divergent"
    return ConversationalContinuity(
        continuity=flow_score, flow=flow, turn_count=len(history)
    )


def analyze_topical_coherence(result: AnalysisResult) -> TopicalCoherence:
    coherence = 0.5
    factors = []
    if result.technical is not None and result.technical.is_technical:
        coherence += 0.3
        factors.append("technical_continuity")
    if result.template is not None and result.template.confidence > 0.5:
        coherence += 0.2
        factors.append("template_alignment")
    return TopicalCoherence(score=min(coherence, 1.0), factors=factors)


def analyze_emotional_progression(result: AnalysisResult) -> EmotionalProgression:
    emotion = result.emotion
    if emotion is None:
        return EmotionalProgression(stability=0.5, progression="neutral")
    return EmotionalProgression(
        stability=emotion.confidence,
        progression=emotion.dominant_emotion,
        trend="stable",
    )


def analyze_personal_fit(result: AnalysisResult) -> PersonalContextualFit:
    personal = result.personal
    if personal is None:
        return PersonalContextualFit(fit=0.5, adaptation="standard")
    strength = personal.adaptation_strength
    return PersonalContextualFit(
        fit=strength,
        adaptation="high" if strength > 0.7 else "standard",
        factors=dict(personal.personal_factors),
    )


def analyze_technical_depth(result: AnalysisResult) -> TechnicalContextualDepth:
    technical = result.technical
    if technical is None or not technical.is_technical:
        return TechnicalContextualDepth(depth=0.0, category="general")
    return TechnicalContextualDepth(
        depth=technical.confidence,
        category=technical.category,
        complexity="high" if technical.confidence > 0.7 else "medium",
    )


# --- Aggregation ---


def overall_context_score(enrichment: ContextEnrichment) -> float:
    scores = dict(zip(CONTEXT_WEIGHTS.keys(), enrichment.sub_scores()))
    return sum(scores[name] * weight for name, weight in CONTEXT_WEIGHTS.items())


def context_confidence(enrichment: ContextEnrichment) -> float:
    """Low dispersion across the five dimensions means high confidence."""
    variance = float(np.var(np.asarray(enrichment.sub_scores(), dtype=float)))
    return max(MIN_CONFIDENCE, 1.0 - float(np.sqrt(variance)))


class ContextEnrichmentEngine:
    """Runs the five sub-analyses and synthesises the weighted context score.

    ``enrich`` never raises: a failing sub-analysis is replaced by its fallback
    record, and a failing synthesis by :func:`neutral_enrichment`.
    """

    def __init__(self) -> None:
        self.enrichment_count = 0
        self.fallback_count = 0

    def _guarded(
        self,
        name: str,
        analysis: Callable[[AnalysisResult], T],
        fallback: Callable[[], T],
        result: AnalysisResult,
    ) -> T:
        try:
            return analysis(result)
        except Exception as exc:
            log_exception("context_sub_analysis_failed", exc, dimension=name)
            return fallback()

    def enrich(self, result: AnalysisResult) -> ContextEnrichment:
        start = time.perf_counter()
        try:
            enrichment = ContextEnrichment(
                conversational_continuity=self._guarded(
                    "conversational_continuity", analyze_conversational_flow,
                    _fallback_continuity, result,
                ),
                topical_coherence=self._guarded(
                    "topical_coherence", analyze_topical_coherence,
                    _fallback_coherence, result,
                ),
                emotional_progression=self._guarded(
                    "emotional_progression", analyze_emotional_progression,
                    _fallback_emotion, result,
                ),
                personal_contextual_fit=self._guarded(
                    "personal_contextual_fit", analyze_personal_fit,
                    _fallback_personal, result,
                ),
                technical_contextual_depth=self._guarded(
                    "technical_contextual_depth", analyze_technical_depth,
                    _fallback_technical, result,
                ),
            )
            enrichment.overall_score = overall_context_score(enrichment)
            enrichment.confidence = context_confidence(enrichment)
            enrichment.processing_time_ms = (time.perf_counter() - start) * 1000.0
        except Exception as exc:
            log_exception("context_enrichment_failed", exc, turn_id=result.turn_id)
            self.fallback_count += 1
            return neutral_enrichment()

        self.enrichment_count += 1
        logger.debug(
            "context_enriched",
            overall_score=round(enrichment.overall_score, 3),
            confidence=round(enrichment.confidence, 3),
            flow=enrichment.conversational_continuity.flow,
        )
        return enrichment
