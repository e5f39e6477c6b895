"""
Reference analyzers for the response pipeline

Deterministic keyword heuristics that satisfy the collaborator interfaces so
the orchestrator works out of the box.  They make no claim to linguistic
accuracy; production deployments plug in real models through the same shapes.
"""

from __future__ import annotations

import re
import threading
from collections import deque
from typing import Any, Deque, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import structlog

from response_engine.models.analysis import (
    EmotionAnalysis,
    QualityPrediction,
    TechnicalAnalysis,
)
from response_engine.utils.text_utils import clamp_unit, split_sentences, turn_text

logger = structlog.get_logger(__name__)


def _tokenize(text: str) -> List[str]:
    """Simple tokenization"""
    text = re.sub(r"[^\w\s]", " ", (text or "").lower())
    return [t for t in text.split() if len(t) > 1]


# --- Technical patterns ---

TECHNICAL_KEYWORDS: Dict[str, List[str]] = {
    "programming": [
        "python", "javascript", "typescript", "java", "rust", "golang", "function",
        "class", "method", "variable", "compile", "syntax", "algorithm", "recursion",
        "async", "library", "api",
    ],
    "web_frontend": [
        "react", "vue", "angular", "css", "html", "dom", "component", "hooks",
        "frontend", "browser",
    ],
    "data_science": [
        "pandas", "numpy", "dataframe", "regression", "dataset", "model", "training",
        "neural", "statistics", "machine learning", "sklearn",
    ],
    "debugging": [
        "error", "exception", "traceback", "bug", "crash", "stack trace", "debug",
        "segfault", "undefined", "null pointer",
    ],
    "devops": [
        "docker", "kubernetes", "deploy", "pipeline", "terraform", "nginx", "server",
        "linux", "bash", "container",
    ],
}

CODE_MARKERS = re.compile(r"`|\(\)|\{|\}|::|=>|->|==|\bdef\b|\bimport\b")

TECHNICAL_THRESHOLD = 0.6


class TechnicalPatternClassifier:
    """Keyword/regex classifier for technical turns (synchronous, cheap)"""

    def __init__(self, keywords: Optional[Mapping[str, Sequence[str]]] = None):
        source = keywords or TECHNICAL_KEYWORDS
        self.patterns: Dict[str, List[Tuple[str, re.Pattern]]] = {
            category: [
                (kw, re.compile(rf"\b{re.escape(kw)}\b", re.IGNORECASE))
                for kw in kws
            ]
            for category, kws in source.items()
        }

    def classify(self, text: str) -> TechnicalAnalysis:
        text = text or ""
        best_category: Optional[str] = None
        best_hits: List[str] = []
        for category, patterns in self.patterns.items():
            hits = [kw for kw, pattern in patterns if pattern.search(text)]
            if len(hits) > len(best_hits):
                best_category, best_hits = category, hits

        if not best_hits:
            return TechnicalAnalysis(is_technical=False, confidence=0.0)

        confidence = 0.3 + 0.2 * len(best_hits)
        if CODE_MARKERS.search(text):
            confidence += 0.1
        confidence = min(confidence, 1.0)

        if confidence >= TECHNICAL_THRESHOLD:
            return TechnicalAnalysis(
                is_technical=True,
                confidence=confidence,
                category=best_category,
                pattern="|".join(best_hits),
            )
        return TechnicalAnalysis(is_technical=False, confidence=confidence)


# --- Emotion lexicon ---

EMOTION_LEXICON: Dict[str, List[str]] = {
    "joy": ["happy", "glad", "great", "awesome", "love", "excited", "wonderful", "yay"],
    "gratitude": ["thanks", "thank", "grateful", "appreciate", "appreciated"],
    "sadness": ["sad", "unhappy", "lonely", "depressed", "miss", "lost", "cry"],
    "frustration": [
        "frustrated", "frustrating", "annoying", "annoyed", "stuck", "broken",
        "useless", "again", "still", "ugh", "hate",
    ],
    "anxiety": ["worried", "anxious", "nervous", "afraid", "scared", "panic", "stress"],
    "curiosity": ["wonder", "curious", "interested", "why", "how"],
}

HISTORY_WEIGHT = 0.5


class KeywordEmotionAnalyzer:
    """Lexicon-count emotion analyzer; recent history contributes at half weight"""

    def __init__(self, lexicon: Optional[Mapping[str, Sequence[str]]] = None):
        self.lexicon = {k: set(v) for k, v in (lexicon or EMOTION_LEXICON).items()}

    def _count(self, tokens: Sequence[str]) -> Dict[str, float]:
        return {
            emotion: float(sum(1 for t in tokens if t in words))
            for emotion, words in self.lexicon.items()
        }

    def analyze(self, text: str, history: Sequence[Any] = ()) -> EmotionAnalysis:
        current = self._count(_tokenize(text))
        counts = dict(current)
        if history:
            previous = self._count(_tokenize(turn_text(history[-1])))
            for emotion, value in previous.items():
                counts[emotion] += value * HISTORY_WEIGHT

        total = sum(counts.values())
        if total <= 0 or max(current.values()) <= 0:
            return EmotionAnalysis(dominant_emotion="neutral", confidence=0.3, scores={})

        # Dominance is decided by the current turn; history only sharpens it
        dominant = max(current, key=lambda e: (current[e], counts[e]))
        confidence = 0.4 + 0.2 * current[dominant]
        if "!" in (text or ""):
            confidence += 0.1
        scores = {e: round(v / total, 3) for e, v in counts.items() if v > 0}
        return EmotionAnalysis(
            dominant_emotion=dominant,
            confidence=min(confidence, 1.0),
            scores=scores,
        )


# --- Quality prediction ---

class HeuristicQualityPredictor:
    """Text-shape quality estimate with a small learned calibration offset.

    ``learn`` stores ``(heuristic, observed)`` pairs; ``predict`` shifts the
    heuristic by half the mean residual of the retained samples.  The observed
    value is the sample's ``observed_score`` when present, else ``score``.
    """

    def __init__(self, history_limit: int = 500):
        self._samples: Deque[Tuple[float, float]] = deque(maxlen=max(1, history_limit))
        self._lock = threading.Lock()

    def _heuristic(self, text: str) -> Tuple[float, float, List[str]]:
        words = (text or "").split()
        improvements: List[str] = []
        if not words:
            return 0.0, 0.3, ["Response is empty"]

        word_count = len(words)
        if word_count < 8:
            length_score = word_count / 8.0
            improvements.append("Add more detail to the response")
        elif word_count > 120:
            length_score = max(0.4, 120.0 / word_count)
            improvements.append("Shorten the response")
        else:
            length_score = 1.0

        diversity = len({w.lower() for w in words}) / float(word_count)
        if diversity < 0.5:
            improvements.append("Vary the vocabulary")

        sentences = split_sentences(text)
        avg_len = float(np.mean([len(s) for s in sentences])) if sentences else 0.0
        coherence = min(avg_len / 100.0, 1.0)

        stripped = text.rstrip()
        terminated = bool(stripped) and stripped[-1] in ".!?。！？"
        if not terminated:
            improvements.append("End with a complete sentence")

        score = (
            0.35 * length_score
            + 0.25 * diversity
            + 0.2 * coherence
            + 0.2 * (1.0 if terminated else 0.0)
        )
        confidence = min(0.9, 0.4 + word_count / 100.0)
        return clamp_unit(score), confidence, improvements

    def predict(self, text: str) -> QualityPrediction:
        score, confidence, improvements = self._heuristic(text)
        with self._lock:
            samples = list(self._samples)
        if samples:
            residual = float(np.mean([observed - h for h, observed in samples]))
            score = clamp_unit(score + 0.5 * residual)
        return QualityPrediction(
            quality_score=score,
            confidence=confidence,
            improvements=improvements,
        )

    def learn(self, sample: Mapping[str, Any], score: float) -> None:
        text = str(sample.get("text") or "")
        observed = sample.get("observed_score")
        target = score if observed is None else observed
        heuristic, _, _ = self._heuristic(text)
        with self._lock:
            self._samples.append((heuristic, clamp_unit(target)))
        logger.debug("quality_predictor_learned", samples=len(self._samples))

    @property
    def sample_count(self) -> int:
        with self._lock:
            return len(self._samples)
