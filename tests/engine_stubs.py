"""Stub collaborators shared by the response engine tests."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from response_engine.models.analysis import QualityBaseline


class StubTechnicalClassifier:
    def __init__(self, result: Any = None, error: Optional[Exception] = None):
        self.result = result if result is not None else {"is_technical": False, "confidence": 0.1}
        self.error = error
        self.calls: List[str] = []

    def classify(self, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.result


class StubTemplateEngine:
    def __init__(self, detection: Any = None, rendered: Optional[str] = "Rendered template answer."):
        self.detection = detection if detection is not None else {"templateType": "how_to", "confidence": 0.6}
        self.rendered = rendered
        self.detect_calls: List[Any] = []
        self.render_calls: List[Any] = []

    async def detect(self, text, category_hint):
        self.detect_calls.append((text, category_hint))
        return self.detection

    def render(self, text, detection, category_hint, session):
        self.render_calls.append((text, category_hint))
        return self.rendered


class StubEmotionAnalyzer:
    def __init__(self, result: Any = None, error: Optional[Exception] = None):
        self.result = result if result is not None else {"dominantEmotion": "neutral", "confidence": 0.3}
        self.error = error

    async def analyze(self, text, history):
        if self.error is not None:
            raise self.error
        return self.result


class StubPersonalAdapter:
    def __init__(self, strength: float = 0.8, prefix: str = "[for you] "):
        self.strength = strength
        self.prefix = prefix
        self.profiles: List[Any] = []

    def analyze_context(self, text, profile, history):
        self.profiles.append(profile)
        return {"adaptationStrength": self.strength, "personalFactors": {"tone": "casual"}}

    def render_personalized(self, text, personal_analysis):
        return self.prefix + text


class StubQualityPredictor:
    def __init__(self, score: float = 0.6, confidence: float = 0.7, error: Optional[Exception] = None):
        self.score = score
        self.confidence = confidence
        self.error = error
        self.learned: List[Any] = []

    def predict(self, text):
        if self.error is not None:
            raise self.error
        return {"qualityScore": self.score, "confidence": self.confidence, "improvements": []}

    async def learn(self, sample, score):
        self.learned.append((sample, score))


class StubLearningStore:
    def __init__(self, average: float = 0.6, std_dev: float = 0.1):
        self.baseline = QualityBaseline(average=average, std_dev=std_dev)
        self.records: List[Dict[str, Any]] = []

    def get_quality_baseline(self):
        return self.baseline

    def record_feedback(self, sample):
        self.records.append(dict(sample))


class StubGenerator:
    def __init__(self, text: Optional[str] = "A generated answer.", error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.calls: List[Any] = []

    async def generate(self, primary, analysis, session):
        self.calls.append(primary)
        if self.error is not None:
            raise self.error
        return self.text

