import pytest

from engine_stubs import StubPersonalAdapter, StubTemplateEngine
from response_engine.models.analysis import (
    AnalysisResult,
    EmotionAnalysis,
    PersonalAnalysis,
    PrimaryStrategy,
    ResponseGuidance,
    SecondaryStrategy,
    TechnicalAnalysis,
    TemplateAnalysis,
)
from response_engine.services.response_generation import (
    BALANCED_FALLBACK,
    DETAIL_INVITATION,
    EMOTIONAL_PHRASES,
    EMPATHY_PREAMBLE,
    TemplateResponseGenerator,
    apply_response_guidance,
    apply_secondary_strategy,
)


def _analysis(**slots):
    result = AnalysisResult(input="How do I deploy this?")
    for name, value in slots.items():
        setattr(result, name, value)
    return result


@pytest.mark.asyncio
async def test_technical_renders_through_template_engine():
    engine = StubTemplateEngine(rendered="Step one: build the image.")
    generator = TemplateResponseGenerator(template_engine=engine)
    analysis = _analysis(
        technical=TechnicalAnalysis(is_technical=True, confidence=0.8, category="devops"),
        template=TemplateAnalysis(template_type="how_to", confidence=0.7),
    )

    text = await generator.generate(PrimaryStrategy.TECHNICAL, analysis, {})

    assert text == "Step one: build the image."
    assert engine.render_calls == [("How do I deploy this?", "devops")]


@pytest.mark.asyncio
async def test_technical_falls_back_without_template():
    generator = TemplateResponseGenerator()
    analysis = _analysis(technical=TechnicalAnalysis(is_technical=True, confidence=0.8, category="web_frontend"))
    text = await generator.generate(PrimaryStrategy.TECHNICAL, analysis, {})
    assert text == "Let's look at this web frontend question in detail."


@pytest.mark.asyncio
async def test_balanced_falls_back_when_render_returns_nothing():
    generator = TemplateResponseGenerator(template_engine=StubTemplateEngine(rendered=None))
    analysis = _analysis(template=TemplateAnalysis(template_type="greeting", confidence=0.9))
    assert await generator.generate(PrimaryStrategy.BALANCED, analysis, {}) == BALANCED_FALLBACK


@pytest.mark.asyncio
async def test_emotional_acknowledges_dominant_emotion():
    generator = TemplateResponseGenerator()
    analysis = _analysis(emotion=EmotionAnalysis(dominant_emotion="sadness", confidence=0.8))
    text = await generator.generate(PrimaryStrategy.EMOTIONAL, analysis, {})
    assert text == EMOTIONAL_PHRASES["sadness"]


@pytest.mark.asyncio
async def test_personalized_uses_adapter():
    generator = TemplateResponseGenerator(personal_adapter=StubPersonalAdapter(prefix="Hey Sam, "))
    analysis = _analysis(personal=PersonalAnalysis(adaptation_strength=0.9))
    text = await generator.generate(PrimaryStrategy.PERSONALIZED, analysis, {})
    assert text == "Hey Sam, " + BALANCED_FALLBACK


@pytest.mark.asyncio
async def test_emotion_aware_pass_only_for_frustration():
    frustrated = _analysis(emotion=EmotionAnalysis(dominant_emotion="frustration", confidence=0.9))
    joyful = _analysis(emotion=EmotionAnalysis(dominant_emotion="joy", confidence=0.9))

    assert await apply_secondary_strategy("Try again.", SecondaryStrategy.EMOTION_AWARE, frustrated) == (
        EMPATHY_PREAMBLE + "Try again."
    )
    assert await apply_secondary_strategy("Try again.", SecondaryStrategy.EMOTION_AWARE, joyful) == "Try again."


@pytest.mark.asyncio
@pytest.mark.parametrize("strategy", [SecondaryStrategy.TEMPLATE_DRIVEN, SecondaryStrategy.PERSONALIZED])
async def test_placeholder_passes_are_identity(strategy):
    assert await apply_secondary_strategy("unchanged", strategy, _analysis()) == "unchanged"


def test_guidance_step_by_step():
    guidance = ResponseGuidance(structure="step_by_step")
    assert apply_response_guidance("Open it. Edit it. Save it.", guidance) == (
        "Step by step:\n1. Open it\n2. Edit it\n3. Save it"
    )
    assert apply_response_guidance("Only one sentence", guidance) == "Only one sentence"


def test_guidance_summary_only():
    guidance = ResponseGuidance(structure="summary_only")
    summary = apply_response_guidance("Alpha beta. Gamma delta. Epsilon zeta.", guidance)
    assert summary.startswith("Alpha beta. Gamma delta. ...")
    assert summary.endswith("Key points: Alpha, beta, Gamma")


def test_guidance_concise_and_detailed():
    long_text = " ".join(["This sentence repeats to make the answer long."] * 10)
    concise = apply_response_guidance(long_text, ResponseGuidance(content_guidelines=["be_concise"]))
    assert len(concise) <= 203

    detailed = apply_response_guidance("Short answer.", ResponseGuidance(content_guidelines=["be_detailed"]))
    assert detailed == "Short answer." + DETAIL_INVITATION


def test_no_guidance_is_identity():
    assert apply_response_guidance("same", None) == "same"


@pytest.mark.parametrize("style", ["formal", "casual"])
def test_style_guidance_is_carried_but_not_applied(style):
    guidance = ResponseGuidance.model_validate({"styleInstructions": style})
    assert guidance.style == style
    assert apply_response_guidance("Keep the text as is.", guidance) == "Keep the text as is."
