import math
from unittest.mock import patch

import pytest

from response_engine.models.analysis import (
    AnalysisResult,
    ContextEnrichment,
    ConversationalContinuity,
    EmotionalProgression,
    PersonalAnalysis,
    PersonalContextualFit,
    TechnicalAnalysis,
    TechnicalContextualDepth,
    TemplateAnalysis,
    TopicalCoherence,
)
from response_engine.services import context_enrichment as ce
from response_engine.services.context_enrichment import (
    CONTEXT_WEIGHTS,
    ContextEnrichmentEngine,
    context_confidence,
    overall_context_score,
)


def _enrichment(scores):
    continuity, coherence, stability, fit, depth = scores
    return ContextEnrichment(
        conversational_continuity=ConversationalContinuity(continuity=continuity),
        topical_coherence=TopicalCoherence(score=coherence),
        emotional_progression=EmotionalProgression(stability=stability),
        personal_contextual_fit=PersonalContextualFit(fit=fit),
        technical_contextual_depth=TechnicalContextualDepth(depth=depth),
    )


def test_weights_sum_to_one():
    assert math.isclose(sum(CONTEXT_WEIGHTS.values()), 1.0)


@pytest.mark.parametrize(
    "scores",
    [(0.0, 0.0, 0.0, 0.0, 0.0), (1.0, 1.0, 1.0, 1.0, 1.0), (0.2, 0.9, 0.4, 0.7, 0.1)],
)
def test_overall_score_is_weighted_sum(scores):
    expected = 0.25 * scores[0] + 0.25 * scores[1] + 0.2 * scores[2] + 0.15 * scores[3] + 0.15 * scores[4]
    assert math.isclose(overall_context_score(_enrichment(scores)), expected)


def test_confidence_identical_scores_is_one():
    assert math.isclose(context_confidence(_enrichment((0.4,) * 5)), 1.0)


def test_confidence_never_below_floor():
    confidence = context_confidence(_enrichment((0.0, 0.0, 0.0, 1.0, 1.0)))
    assert confidence >= 0.3
    assert math.isclose(confidence, 1.0 - math.sqrt(0.24))


def test_empty_history_means_initial_flow():
    engine = ContextEnrichmentEngine()
    for text in ["", "hello there", "python docker kubernetes"]:
        enrichment = engine.enrich(AnalysisResult(input=text))
        assert enrichment.conversational_continuity.continuity == 0.0
        assert enrichment.conversational_continuity.flow == "initial"


def test_reference_scenario_scores():
    result = AnalysisResult(input="How do I configure the build?")
    result.technical = TechnicalAnalysis(is_technical=True, confidence=0.9, category="devops")
    result.template = TemplateAnalysis(template_type="how_to", confidence=0.6)

    enrichment = ContextEnrichmentEngine().enrich(result)

    assert enrichment.topical_coherence.score == 1.0
    assert enrichment.technical_contextual_depth.depth == 0.9
    assert enrichment.technical_contextual_depth.complexity == "high"
    assert math.isclose(enrichment.overall_score, 0.56)
    assert enrichment.confidence == pytest.approx(0.646, abs=1e-3)
    assert enrichment.fallback is False


def test_continuity_uses_topic_similarity_with_mapping_history():
    result = AnalysisResult(
        input="deploying python services with docker",
        history=[{"content": "deploying python services with docker"}],
    )
    continuity = ce.analyze_conversational_flow(result)
    assert math.isclose(continuity.continuity, 0.7)
    assert continuity.flow == "transitional"
    assert continuity.turn_count == 1


def test_continuity_divergent_topics_stay_transitional():
    result = AnalysisResult(input="weather is nice today", history=["fix my python build"])
    continuity = ce.analyze_conversational_flow(result)
    assert continuity.continuity == 0.5
    assert continuity.flow == "transitional"


def test_personal_fit_marks_high_adaptation():
    result = AnalysisResult(input="hi")
    result.personal = PersonalAnalysis(adaptation_strength=0.9)
    fit = ce.analyze_personal_fit(result)
    assert fit.fit == 0.9
    assert fit.adaptation == "high"


def test_failing_sub_analysis_uses_its_fallback():
    engine = ContextEnrichmentEngine()
    with patch.object(ce, "analyze_technical_depth", side_effect=RuntimeError("boom")):
        enrichment = engine.enrich(AnalysisResult(input="hello"))

    assert enrichment.technical_contextual_depth.depth == 0.3
    assert enrichment.technical_contextual_depth.category == "general"
    assert enrichment.fallback is False


def test_failing_synthesis_returns_neutral_record():
    engine = ContextEnrichmentEngine()
    with patch.object(ce, "overall_context_score", side_effect=ValueError("bad weights")):
        enrichment = engine.enrich(AnalysisResult(input="hello"))

    assert enrichment.fallback is True
    assert enrichment.overall_score == 0.5
    assert enrichment.confidence == 0.5
    assert enrichment.conversational_continuity.flow == "transitional"
    assert engine.fallback_count == 1


def test_all_scores_stay_in_unit_interval():
    result = AnalysisResult(input="x" * 500, history=["y"] * 30)
    result.technical = TechnicalAnalysis(is_technical=True, confidence=1.0)
    result.template = TemplateAnalysis(confidence=1.0)
    enrichment = ContextEnrichmentEngine().enrich(result)
    for score in enrichment.sub_scores() + (enrichment.overall_score, enrichment.confidence):
        assert 0.0 <= score <= 1.0
