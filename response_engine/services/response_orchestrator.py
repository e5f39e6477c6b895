"""
Response Orchestrator
Runs one conversational turn end to end: analysis fan-out, context
enrichment, strategy selection, generation, grading and statistics
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Type

import structlog
from pydantic import ValidationError

from response_engine.core.config import APOLOGY_TEXT, SYSTEM_VERSION, EngineConfig, build_engine_config
from response_engine.logging_config import bind_turn_context, clear_turn_context
from response_engine.models.analysis import (
    AnalysisResult,
    EmotionAnalysis,
    GenerationResult,
    PersonalAnalysis,
    PrimaryStrategy,
    QualityPrediction,
    ResponseGuidance,
    ResponseStrategy,
    SecondaryStrategy,
    TechnicalAnalysis,
    TemplateAnalysis,
    coerce_record,
)
from response_engine.services.collaborators import (
    EmotionAnalyzer,
    LearningStore,
    PersonalAdapter,
    QualityPredictor,
    ResponseGenerator,
    TechnicalClassifier,
    TemplateEngine,
)
from response_engine.services.context_enrichment import ContextEnrichmentEngine, neutral_enrichment
from response_engine.services.heuristic_analyzers import (
    HeuristicQualityPredictor,
    KeywordEmotionAnalyzer,
    TechnicalPatternClassifier,
)
from response_engine.services.learning_store import FeedbackChannel, InMemoryLearningStore
from response_engine.services.quality_evaluator import ResponseQualityEvaluator
from response_engine.services.response_generation import (
    TemplateResponseGenerator,
    apply_response_guidance,
    apply_secondary_strategy,
)
from response_engine.services.response_stats import ResponseStats
from response_engine.utils.async_utils import call_collaborator
from response_engine.utils.error_handling import (
    AnalyzerError,
    GenerationError,
    SynthesisError,
    add_warning,
    log_exception,
)

logger = structlog.get_logger(__name__)


# --- Strategy determination ---

def fallback_strategy() -> ResponseStrategy:
    return ResponseStrategy(
        primary=PrimaryStrategy.BALANCED,
        secondary=[],
        confidence=0.5,
        reasoning=["fallback"],
    )


def determine_response_strategy(analysis: AnalysisResult) -> ResponseStrategy:
    """Pure rule set over the analyzer slots.

    Only ``technical`` and ``balanced`` are ever selected as primary; the
    emotional and personalized signals surface as secondary passes.
    """
    primary = PrimaryStrategy.BALANCED
    secondary: List[SecondaryStrategy] = []
    confidence = 0.5
    reasoning: List[str] = []

    if analysis.technical is not None and analysis.technical.is_technical:
        primary = PrimaryStrategy.TECHNICAL
        confidence += 0.3
        reasoning.append("technical_content")

    if analysis.template is not None and analysis.template.confidence > 0.5:
        secondary.append(SecondaryStrategy.TEMPLATE_DRIVEN)
        confidence += 0.2
        reasoning.append("template_match")

    if analysis.emotion is not None and analysis.emotion.confidence > 0.6:
        secondary.append(SecondaryStrategy.EMOTION_AWARE)
        confidence += 0.15
        reasoning.append(f"emotion:{analysis.emotion.dominant_emotion}")

    if analysis.personal is not None and analysis.personal.adaptation_strength > 0.6:
        secondary.append(SecondaryStrategy.PERSONALIZED)
        confidence += 0.15
        reasoning.append("personal_adaptation")

    return ResponseStrategy(
        primary=primary,
        secondary=secondary,
        confidence=min(confidence, 1.0),
        reasoning=reasoning,
    )


def _user_id_from_profile(profile: Any) -> Optional[str]:
    if profile is None:
        return None
    if isinstance(profile, Mapping):
        value = profile.get("user_id") or profile.get("userId") or profile.get("id")
    else:
        value = getattr(profile, "user_id", None)
    return str(value) if value else None


AnalyzerTask = Tuple[str, str, Type, Callable[..., Any], Tuple[Any, ...]]


class ResponseOrchestrator:
    """Coordinates the analyzers, generator and evaluator for each turn.

    ``generate`` never raises.  Analyzer failures leave their slot empty and
    add a metadata warning; generation failures return the apology text and
    count as a failed attempt in the running statistics.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        technical_classifier: Optional[TechnicalClassifier] = None,
        template_engine: Optional[TemplateEngine] = None,
        emotion_analyzer: Optional[EmotionAnalyzer] = None,
        personal_adapter: Optional[PersonalAdapter] = None,
        quality_predictor: Optional[QualityPredictor] = None,
        learning_store: Optional[LearningStore] = None,
        generator: Optional[ResponseGenerator] = None,
        enrichment_engine: Optional[ContextEnrichmentEngine] = None,
        evaluator: Optional[ResponseQualityEvaluator] = None,
        stats: Optional[ResponseStats] = None,
    ):
        self.config = config if config is not None else build_engine_config()

        self.technical_classifier = (
            technical_classifier if technical_classifier is not None else TechnicalPatternClassifier()
        )
        self.template_engine = template_engine
        self.emotion_analyzer = emotion_analyzer if emotion_analyzer is not None else KeywordEmotionAnalyzer()
        self.personal_adapter = personal_adapter
        self.quality_predictor = quality_predictor if quality_predictor is not None else HeuristicQualityPredictor()
        self.learning_store = (
            learning_store
            if learning_store is not None
            else InMemoryLearningStore(self.config.quality_history_limit)
        )
        self.generator = (
            generator
            if generator is not None
            else TemplateResponseGenerator(template_engine, personal_adapter)
        )
        self.enrichment_engine = enrichment_engine if enrichment_engine is not None else ContextEnrichmentEngine()
        if evaluator is None:
            channel = FeedbackChannel(
                self.learning_store,
                self.quality_predictor,
                maxsize=self.config.feedback_queue_maxsize,
            )
            evaluator = ResponseQualityEvaluator(self.quality_predictor, self.learning_store, channel)
        self.evaluator = evaluator
        self.stats = stats if stats is not None else ResponseStats()

        logger.info(
            "Response orchestrator initialized",
            template_engine=type(self.template_engine).__name__ if self.template_engine else None,
            personal_adapter=type(self.personal_adapter).__name__ if self.personal_adapter else None,
            generator=type(self.generator).__name__,
        )

    def set_personal_adapter(self, adapter: Optional[PersonalAdapter]) -> None:
        """Install (or remove with None) the optional personal adapter."""
        self.personal_adapter = adapter
        if isinstance(self.generator, TemplateResponseGenerator):
            self.generator.personal_adapter = adapter
        logger.info("Personal adapter set", adapter=type(adapter).__name__ if adapter else None)

    # --- Analysis ---

    def _analyze_technical(self, text: str, metadata: Dict[str, Any]) -> TechnicalAnalysis:
        try:
            return coerce_record(TechnicalAnalysis, self.technical_classifier.classify(text))
        except Exception as exc:
            log_exception("analyzer_failed", exc, analyzer="technical")
            add_warning(metadata, "analyzer_failed", str(exc), analyzer="technical")
            return TechnicalAnalysis(is_technical=False, confidence=0.0)

    def _analyzer_tasks(
        self,
        analysis: AnalysisResult,
        user_profile: Any,
    ) -> List[AnalyzerTask]:
        text, history = analysis.input, analysis.history
        technical = analysis.technical
        category_hint = technical.category if technical is not None and technical.is_technical else None

        tasks: List[AnalyzerTask] = []
        if self.config.enable_template_analysis and self.template_engine is not None:
            tasks.append(("template", "template", TemplateAnalysis, self.template_engine.detect, (text, category_hint)))
        if self.config.enable_emotion_analysis and self.emotion_analyzer is not None:
            tasks.append(("emotion", "emotion", EmotionAnalysis, self.emotion_analyzer.analyze, (text, history)))
        if self.config.enable_personal_adaptation and self.personal_adapter is not None:
            tasks.append((
                "personal",
                "personal",
                PersonalAnalysis,
                self.personal_adapter.analyze_context,
                (text, user_profile or {}, history),
            ))
        if self.config.enable_input_quality_analysis and self.quality_predictor is not None:
            tasks.append((
                "input_quality",
                "quality_prediction",
                QualityPrediction,
                self.quality_predictor.predict,
                (text,),
            ))
        return tasks

    async def _run_analyzer(
        self,
        name: str,
        model: Type,
        func: Callable[..., Any],
        args: Tuple[Any, ...],
    ) -> Any:
        start = time.perf_counter()
        try:
            raw = await call_collaborator(func, *args)
            if raw is None:
                raise AnalyzerError(name, f"{name} analyzer returned no result")
            record = coerce_record(model, raw)
        except AnalyzerError:
            raise
        except Exception as exc:
            raise AnalyzerError(name, str(exc)) from exc
        logger.debug(
            "analyzer_completed",
            analyzer=name,
            duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
        )
        return record

    async def _run_analyzers(
        self,
        analysis: AnalysisResult,
        user_profile: Any,
        metadata: Dict[str, Any],
    ) -> None:
        tasks = self._analyzer_tasks(analysis, user_profile)
        if not tasks:
            return

        coros: List[Awaitable[Any]] = [
            self._run_analyzer(name, model, func, args) for name, _, model, func, args in tasks
        ]
        results = await asyncio.gather(*coros, return_exceptions=True)

        # Slots are written only after every task has settled
        for (name, slot, _, _, _), result in zip(tasks, results):
            if isinstance(result, BaseException):
                log_exception("analyzer_failed", result, analyzer=name)
                add_warning(metadata, "analyzer_failed", str(result), analyzer=name)
                continue
            setattr(analysis, slot, result)

    @staticmethod
    def _synthesize(stage: str, func: Callable[[AnalysisResult], Any], analysis: AnalysisResult) -> Any:
        try:
            return func(analysis)
        except Exception as exc:
            raise SynthesisError(f"{stage} failed: {exc}") from exc

    def _enrich(self, analysis: AnalysisResult, metadata: Dict[str, Any]) -> None:
        if not self.config.enable_context_enrichment:
            return
        try:
            analysis.context_enrichment = self._synthesize(
                "context_enrichment", self.enrichment_engine.enrich, analysis
            )
        except SynthesisError as exc:
            log_exception("context_enrichment_failed", exc)
            add_warning(metadata, "enrichment_failed", str(exc))
            analysis.context_enrichment = neutral_enrichment()

    def _determine_strategy(self, analysis: AnalysisResult, metadata: Dict[str, Any]) -> ResponseStrategy:
        try:
            strategy = self._synthesize("strategy_determination", determine_response_strategy, analysis)
        except SynthesisError as exc:
            log_exception("strategy_determination_failed", exc)
            add_warning(metadata, "strategy_fallback", str(exc))
            strategy = fallback_strategy()
        analysis.strategy = strategy
        return strategy

    # --- Generation ---

    def _validate_guidance(self, guidance: Any, metadata: Dict[str, Any]) -> Optional[ResponseGuidance]:
        """Invalid caller guidance is dropped with a warning; the turn continues."""
        if guidance is None:
            return None
        try:
            return coerce_record(ResponseGuidance, guidance)
        except (TypeError, ValidationError) as exc:
            log_exception("response_guidance_invalid", exc)
            add_warning(metadata, "guidance_invalid", str(exc))
            return None

    async def _generate_text(
        self,
        analysis: AnalysisResult,
        strategy: ResponseStrategy,
        session: Dict[str, Any],
        guidance: Optional[ResponseGuidance],
    ) -> str:
        try:
            text = await call_collaborator(self.generator.generate, strategy.primary, analysis, session)
        except Exception as exc:
            raise GenerationError(f"generator failed: {exc}") from exc
        if not isinstance(text, str) or not text.strip():
            raise GenerationError(f"generator returned no text for {strategy.primary.value}")

        for secondary in strategy.secondary:
            text = await apply_secondary_strategy(text, secondary, analysis)

        if guidance is not None:
            text = apply_response_guidance(text, guidance)
        return text

    async def generate(
        self,
        input: Any,
        history: Sequence[Any] = (),
        user_profile: Any = None,
        *,
        guidance: Any = None,
    ) -> GenerationResult:
        start = time.perf_counter()
        self.stats.record_request()
        metadata: Dict[str, Any] = {"warnings": [], "degraded": False}
        analysis: Optional[AnalysisResult] = None
        user_id = _user_id_from_profile(user_profile)

        try:
            analysis = AnalysisResult(input=input, history=history)
            bind_turn_context(turn_id=analysis.turn_id, user_id=user_id)
            metadata["turn_id"] = analysis.turn_id

            analysis.technical = self._analyze_technical(analysis.input, metadata)
            await self._run_analyzers(analysis, user_profile, metadata)
            self._enrich(analysis, metadata)
            strategy = self._determine_strategy(analysis, metadata)

            guidance = self._validate_guidance(guidance, metadata)
            session = {
                "turn_id": analysis.turn_id,
                "user_id": user_id,
                "user_profile": user_profile,
                "history": analysis.history,
                "guidance": guidance,
            }
            response_text = await self._generate_text(analysis, strategy, session, guidance)

            quality = await self.evaluator.grade(response_text, analysis, user_id)
            analysis.quality = quality

            elapsed_ms = (time.perf_counter() - start) * 1000.0
            analysis.processing_time_ms = elapsed_ms
            self.stats.record_success(elapsed_ms, quality.score, strategy.primary.value)

            enrichment = analysis.context_enrichment
            metadata.update(
                {
                    "processing_time_ms": round(elapsed_ms, 3),
                    "quality_score": quality.score,
                    "quality_grade": quality.grade.value,
                    "response_strategy": strategy.primary.value,
                    "secondary_strategies": [s.value for s in strategy.secondary],
                    "strategy_confidence": strategy.confidence,
                    "context_score": enrichment.overall_score if enrichment else None,
                    "context_confidence": enrichment.confidence if enrichment else None,
                    "over_budget": elapsed_ms > self.config.max_processing_time_ms,
                    "meets_quality_threshold": quality.score >= self.config.quality_threshold,
                    "system_version": SYSTEM_VERSION,
                }
            )
            logger.info(
                "response_generated",
                strategy=strategy.primary.value,
                quality_score=round(quality.score, 3),
                grade=quality.grade.value,
                processing_time_ms=round(elapsed_ms, 2),
                degraded=metadata["degraded"],
            )
            return GenerationResult(
                response_text=response_text,
                analysis_result=analysis,
                metadata=metadata,
            )
        except Exception as exc:
            log_exception("response_generation_failed", exc)
            self.stats.record_failure()
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            metadata.update(
                {
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                    "processing_time_ms": round(elapsed_ms, 3),
                    "system_version": SYSTEM_VERSION,
                }
            )
            return GenerationResult(
                response_text=APOLOGY_TEXT,
                analysis_result=analysis,
                metadata=metadata,
            )
        finally:
            clear_turn_context()

    # --- Introspection / lifecycle ---

    def get_system_stats(self) -> Dict[str, Any]:
        stats = self.stats.snapshot().as_dict()
        stats["config"] = self.config.as_dict()
        stats["enrichment"] = {
            "enriched": getattr(self.enrichment_engine, "enrichment_count", 0),
            "fallbacks": getattr(self.enrichment_engine, "fallback_count", 0),
        }
        if hasattr(self.evaluator, "stats"):
            stats["grading"] = self.evaluator.stats()
        channel = getattr(self.evaluator, "feedback_channel", None)
        if channel is not None and hasattr(channel, "stats"):
            stats["feedback"] = channel.stats()
        stats["system_version"] = SYSTEM_VERSION
        return stats

    async def shutdown(self) -> None:
        """Flush pending learning feedback and stop the delivery worker."""
        channel = getattr(self.evaluator, "feedback_channel", None)
        if channel is not None:
            await channel.stop()
