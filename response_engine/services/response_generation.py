"""
Response Generation
Strategy-to-text dispatch, secondary post-processing passes and optional
caller guidance adjustments
"""

from __future__ import annotations

import re
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog

from response_engine.models.analysis import (
    AnalysisResult,
    ContentGuideline,
    PrimaryStrategy,
    ResponseGuidance,
    ResponseStructure,
    SecondaryStrategy,
)
from response_engine.services.collaborators import PersonalAdapter, TemplateEngine
from response_engine.utils.async_utils import call_collaborator
from response_engine.utils.error_handling import log_exception
from response_engine.utils.text_utils import split_sentences

logger = structlog.get_logger(__name__)


EMPATHY_PREAMBLE = "I understand how frustrating this situation is. "

EMOTIONAL_PHRASES: Dict[str, str] = {
    "frustration": "That sounds really frustrating. Let's work through it step by step.",
    "sadness": "I'm sorry you're going through this. I'm here to listen.",
    "anxiety": "It's understandable to feel uneasy about this. Let's take it one piece at a time.",
    "joy": "That's wonderful to hear! Tell me more.",
    "gratitude": "You're very welcome. I'm glad I could help.",
    "curiosity": "Great question. Let's explore it together.",
}
DEFAULT_EMOTIONAL_PHRASE = "Thank you for sharing how you feel. I'm here to help."

TECHNICAL_FALLBACK = "Let's look at this {category} question in detail."
BALANCED_FALLBACK = "Thanks for your message. Here is what I can tell you about that."


class TemplateResponseGenerator:
    """Default generator dispatching on the primary strategy.

    Technical and balanced turns render through the template collaborator when
    one is configured and a template was detected; otherwise a deterministic
    sentence is used.  The personalized branch routes the balanced text through
    the personal adapter.
    """

    def __init__(
        self,
        template_engine: Optional[TemplateEngine] = None,
        personal_adapter: Optional[PersonalAdapter] = None,
    ):
        self.template_engine = template_engine
        self.personal_adapter = personal_adapter

    async def _render_template(
        self,
        analysis: AnalysisResult,
        category_hint: Optional[str],
        session: Dict[str, Any],
    ) -> Optional[str]:
        if self.template_engine is None or analysis.template is None:
            return None
        if not analysis.template.template_type and analysis.template.confidence <= 0.5:
            return None
        rendered = await call_collaborator(
            self.template_engine.render,
            analysis.input,
            analysis.template,
            category_hint,
            session,
        )
        return rendered or None

    async def generate_technical(self, analysis: AnalysisResult, session: Dict[str, Any]) -> str:
        category = analysis.technical.category if analysis.technical else "general"
        rendered = await self._render_template(analysis, category, session)
        if rendered:
            return rendered
        return TECHNICAL_FALLBACK.format(category=category.replace("_", " "))

    async def generate_balanced(self, analysis: AnalysisResult, session: Dict[str, Any]) -> str:
        rendered = await self._render_template(analysis, "general", session)
        return rendered or BALANCED_FALLBACK

    async def generate_emotional(self, analysis: AnalysisResult, session: Dict[str, Any]) -> str:
        emotion = analysis.emotion.dominant_emotion if analysis.emotion else "neutral"
        return EMOTIONAL_PHRASES.get(emotion, DEFAULT_EMOTIONAL_PHRASE)

    async def generate_personalized(self, analysis: AnalysisResult, session: Dict[str, Any]) -> str:
        base = await self.generate_balanced(analysis, session)
        if self.personal_adapter is None or analysis.personal is None:
            return base
        personalized = await call_collaborator(
            self.personal_adapter.render_personalized, base, analysis.personal
        )
        return personalized or base

    async def generate(
        self,
        primary: PrimaryStrategy,
        analysis: AnalysisResult,
        session: Dict[str, Any],
    ) -> Optional[str]:
        handlers = {
            PrimaryStrategy.TECHNICAL: self.generate_technical,
            PrimaryStrategy.EMOTIONAL: self.generate_emotional,
            PrimaryStrategy.PERSONALIZED: self.generate_personalized,
            PrimaryStrategy.BALANCED: self.generate_balanced,
        }
        handler = handlers.get(PrimaryStrategy(primary), self.generate_balanced)
        text = await handler(analysis, session)
        logger.debug("response_text_generated", primary=PrimaryStrategy(primary).value, length=len(text or ""))
        return text


# --- Secondary passes ---

SecondaryPass = Callable[[str, AnalysisResult], Awaitable[str]]


async def _template_driven_pass(response: str, analysis: AnalysisResult) -> str:
    # Reserved for template-element injection
    return response


async def _emotion_aware_pass(response: str, analysis: AnalysisResult) -> str:
    emotion = analysis.emotion.dominant_emotion if analysis.emotion else None
    if emotion == "frustration":
        return EMPATHY_PREAMBLE + response
    return response


async def _personalized_pass(response: str, analysis: AnalysisResult) -> str:
    # Reserved for per-user phrasing adjustments
    return response


SECONDARY_PASSES: Dict[SecondaryStrategy, SecondaryPass] = {
    SecondaryStrategy.TEMPLATE_DRIVEN: _template_driven_pass,
    SecondaryStrategy.EMOTION_AWARE: _emotion_aware_pass,
    SecondaryStrategy.PERSONALIZED: _personalized_pass,
}


async def apply_secondary_strategy(
    response: str,
    strategy: SecondaryStrategy,
    analysis: AnalysisResult,
) -> str:
    pass_fn = SECONDARY_PASSES.get(SecondaryStrategy(strategy))
    if pass_fn is None:
        return response
    return await pass_fn(response, analysis)


# --- Guidance adjustments ---

KEYWORD_RE = re.compile(r"[A-Za-z]{3,}|[぀-ゟ゠-ヿ一-龯]{2,}")

DETAIL_INVITATION = (
    "\n\nIf you would like more detail, concrete examples or related topics, just ask."
)


def restructure_step_by_step(response: str) -> str:
    sentences = split_sentences(response)
    if len(sentences) <= 1:
        return response
    lines = [f"{i}. {s}" for i, s in enumerate(sentences, start=1)]
    return "Step by step:\n" + "\n".join(lines)


def summarize_response(response: str) -> str:
    sentences = split_sentences(response)
    if len(sentences) <= 1:
        return response
    summary = ". ".join(sentences[:2]) + "."
    if len(sentences) > 2:
        summary += " ..."
    keywords = list(dict.fromkeys(KEYWORD_RE.findall(response)))
    if keywords:
        summary += "\nKey points: " + ", ".join(keywords[:3])
    return summary


def condense_response(response: str) -> str:
    if len(response) < 100:
        return response
    sentences = split_sentences(response)
    condensed = ". ".join(s for s in sentences if KEYWORD_RE.search(s))
    if len(condensed) > 200:
        condensed = condensed[:200] + "..."
    elif not condensed and sentences:
        condensed = sentences[0] + "..."
    return condensed or response[:100] + "..."


def expand_response(response: str) -> str:
    if len(response) > 500:
        return response
    return response + DETAIL_INVITATION


def apply_response_guidance(response: str, guidance: Optional[ResponseGuidance]) -> str:
    """Apply caller guidance after every strategy pass; never raises."""
    if guidance is None:
        return response
    adjusted = response
    try:
        if guidance.structure == ResponseStructure.STEP_BY_STEP:
            adjusted = restructure_step_by_step(adjusted)
        elif guidance.structure == ResponseStructure.SUMMARY_ONLY:
            adjusted = summarize_response(adjusted)

        if ContentGuideline.BE_CONCISE in guidance.content_guidelines:
            adjusted = condense_response(adjusted)
        if ContentGuideline.BE_DETAILED in guidance.content_guidelines:
            adjusted = expand_response(adjusted)
    except Exception as exc:
        log_exception("response_guidance_failed", exc)
        return response
    return adjusted
