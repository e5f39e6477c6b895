"""
Response Quality Evaluator
Grades produced responses against the learning store's live baseline
"""

from __future__ import annotations

import time
from typing import Dict, Optional

import structlog

from response_engine.models.analysis import (
    AnalysisResult,
    QualityBaseline,
    QualityGrade,
    QualityPrediction,
    QualityReport,
    ResponseMetrics,
    coerce_record,
)
from response_engine.services.collaborators import LearningStore, QualityPredictor
from response_engine.services.learning_store import FeedbackChannel, InMemoryLearningStore
from response_engine.utils.async_utils import call_collaborator
from response_engine.utils.error_handling import GradingError, log_exception
from response_engine.utils.text_utils import split_sentences

logger = structlog.get_logger(__name__)

# Weighted heuristic diagnostics of a produced response
METRIC_WEIGHTS: Dict[str, float] = {
    "relevance": 0.3,
    "coherence": 0.25,
    "completeness": 0.2,
    "personalization": 0.15,
    "technical_accuracy": 0.1,
}

SHORT_RESPONSE_LENGTH = 20
CLARIFYING_SENTENCE = " Let me explain in more detail."
INVITATION_SENTENCE = " Feel free to ask if you have any questions."
QUESTION_MARKS = ("?", "？")
TERMINATORS = (".", "。", "!", "！")


def grade_for_baseline(score: float, baseline: QualityBaseline) -> QualityGrade:
    """Band a score by its distance from the population mean in std-dev units."""
    average, std_dev = baseline.average, baseline.std_dev
    if score > average + std_dev:
        return QualityGrade.EXCELLENT
    if score > average:
        return QualityGrade.GOOD
    if score > average - std_dev:
        return QualityGrade.ACCEPTABLE
    return QualityGrade.POOR


def improve_response(response: str) -> str:
    """Deterministic repair for weak responses; both rules may apply."""
    improved = response
    if len(response) < SHORT_RESPONSE_LENGTH:
        improved += CLARIFYING_SENTENCE
    has_question = any(mark in response for mark in QUESTION_MARKS)
    has_terminator = any(mark in response for mark in TERMINATORS)
    if not has_question and not has_terminator:
        improved += INVITATION_SENTENCE
    return improved


def evaluate_response_metrics(analysis: AnalysisResult, response: str) -> ResponseMetrics:
    input_words = set(analysis.input.lower().split())
    response_words = set((response or "").lower().split())
    relevance = min(len(input_words & response_words) / max(len(input_words), 1), 1.0)

    sentences = split_sentences(response)
    avg_length = sum(len(s) for s in sentences) / max(len(sentences), 1)
    coherence = min(avg_length / 100.0, 1.0)

    completeness = 0.8 if len(response or "") > 50 else 0.4

    personal = analysis.personal
    personalization = (personal.adaptation_strength if personal else 0.0) or 0.5

    technical = analysis.technical
    technical_accuracy = 0.8 if technical is not None and technical.is_technical else 0.6

    values = {
        "relevance": relevance,
        "coherence": coherence,
        "completeness": completeness,
        "personalization": personalization,
        "technical_accuracy": technical_accuracy,
    }
    overall = sum(values[name] * weight for name, weight in METRIC_WEIGHTS.items())
    return ResponseMetrics(overall_score=overall, **values)


class ResponseQualityEvaluator:
    """Grades responses and feeds every score back to the learning store.

    ``grade`` never raises.  Feedback is handed to a bounded
    :class:`FeedbackChannel` and is never awaited, so a slow or failing store
    cannot delay or break grading.
    """

    def __init__(
        self,
        predictor: Optional[QualityPredictor] = None,
        learning_store: Optional[LearningStore] = None,
        feedback_channel: Optional[FeedbackChannel] = None,
    ):
        self.predictor = predictor
        self.learning_store = learning_store if learning_store is not None else InMemoryLearningStore()
        if feedback_channel is None:
            feedback_channel = FeedbackChannel(self.learning_store, predictor)
        self.feedback_channel = feedback_channel
        self.graded_count = 0
        self.fallback_count = 0

    async def _predict(
        self, response_text: str, analysis_result: Optional[AnalysisResult]
    ) -> QualityPrediction:
        if self.predictor is not None:
            try:
                raw = await call_collaborator(self.predictor.predict, response_text)
                if raw is not None:
                    return coerce_record(QualityPrediction, raw)
            except Exception as exc:
                log_exception("quality_prediction_failed", exc)

        if analysis_result is not None and analysis_result.quality_prediction is not None:
            return analysis_result.quality_prediction
        return QualityPrediction(quality_score=0.5, confidence=0.5, improvements=[])

    async def _baseline(self) -> QualityBaseline:
        try:
            raw = await call_collaborator(self.learning_store.get_quality_baseline)
        except Exception as exc:
            raise GradingError(f"quality baseline unavailable: {exc}") from exc
        if raw is None:
            return QualityBaseline()
        return coerce_record(QualityBaseline, raw)

    def _metrics(
        self, response_text: str, analysis_result: Optional[AnalysisResult]
    ) -> Optional[ResponseMetrics]:
        if analysis_result is None:
            return None
        try:
            return evaluate_response_metrics(analysis_result, response_text)
        except Exception as exc:
            log_exception("response_metrics_failed", exc)
            return None

    def _submit_feedback(
        self,
        response_text: str,
        user_id: Optional[str],
        score: float,
        metrics: Optional[ResponseMetrics],
    ) -> None:
        if self.feedback_channel is None:
            return
        observed = metrics.overall_score if metrics is not None else None
        try:
            self.feedback_channel.submit(response_text, user_id, score, observed=observed)
        except Exception as exc:
            log_exception("learning_submission_failed", exc, user_id=user_id)

    async def grade(
        self,
        response_text: str,
        analysis_result: Optional[AnalysisResult] = None,
        user_id: Optional[str] = None,
    ) -> QualityReport:
        start = time.perf_counter()
        try:
            response_text = response_text if isinstance(response_text, str) else str(response_text or "")
            prediction = await self._predict(response_text, analysis_result)
            baseline = await self._baseline()
            grade = grade_for_baseline(prediction.quality_score, baseline)
            metrics = self._metrics(response_text, analysis_result)

            report = QualityReport(
                score=prediction.quality_score,
                confidence=prediction.confidence,
                grade=grade,
                improvements=list(prediction.improvements),
                baseline=baseline,
                metrics=metrics,
            )

            self._submit_feedback(response_text, user_id, prediction.quality_score, metrics)

            if grade in (QualityGrade.POOR, QualityGrade.ACCEPTABLE):
                report.improved_response = improve_response(response_text)
        except Exception as exc:
            log_exception("quality_grading_failed", exc, user_id=user_id)
            self.fallback_count += 1
            return QualityReport.neutral()

        self.graded_count += 1
        logger.debug(
            "response_graded",
            score=round(report.score, 3),
            grade=report.grade.value,
            baseline_average=round(baseline.average, 3),
            baseline_std_dev=round(baseline.std_dev, 3),
            duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
        )
        return report

    def stats(self) -> Dict[str, int]:
        return {"graded": self.graded_count, "fallbacks": self.fallback_count}
