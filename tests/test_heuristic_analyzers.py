import pytest

from response_engine.services.heuristic_analyzers import (
    HeuristicQualityPredictor,
    KeywordEmotionAnalyzer,
    TechnicalPatternClassifier,
)


class TestTechnicalPatternClassifier:
    def test_detects_programming_question(self):
        result = TechnicalPatternClassifier().classify("How do I write a recursive function in python?")
        assert result.is_technical is True
        assert result.category == "programming"
        assert result.confidence >= 0.6

    def test_code_markers_raise_confidence(self):
        classifier = TechnicalPatternClassifier()
        plain = classifier.classify("my docker container")
        with_code = classifier.classify("my docker container `docker ps` -> nothing")
        assert with_code.confidence > plain.confidence

    def test_single_weak_hit_is_not_technical(self):
        result = TechnicalPatternClassifier().classify("the server room is cold")
        assert result.is_technical is False
        assert result.category == "general"

    def test_small_talk(self):
        result = TechnicalPatternClassifier().classify("Good morning, how are you?")
        assert result.is_technical is False
        assert result.confidence == 0.0


class TestKeywordEmotionAnalyzer:
    def test_neutral_without_lexicon_hits(self):
        result = KeywordEmotionAnalyzer().analyze("The meeting is at noon.", [])
        assert result.dominant_emotion == "neutral"
        assert result.confidence == pytest.approx(0.3)

    def test_frustration_with_exclamation(self):
        result = KeywordEmotionAnalyzer().analyze("I'm stuck and frustrated!", [])
        assert result.dominant_emotion == "frustration"
        assert result.confidence == pytest.approx(0.9)

    def test_history_does_not_override_current_turn(self):
        history = [{"content": "I am so sad and lonely"}]
        result = KeywordEmotionAnalyzer().analyze("thanks for listening", history)
        assert result.dominant_emotion == "gratitude"
        assert "sadness" in result.scores


class TestHeuristicQualityPredictor:
    def test_empty_text_scores_zero(self):
        prediction = HeuristicQualityPredictor().predict("")
        assert prediction.quality_score == 0.0
        assert prediction.improvements == ["Response is empty"]

    def test_well_formed_text_beats_fragment(self):
        predictor = HeuristicQualityPredictor()
        good = predictor.predict(
            "Restart the service after editing the configuration file. "
            "Then check the logs to confirm the new settings were loaded."
        )
        fragment = predictor.predict("ok then")
        assert good.quality_score > fragment.quality_score
        assert "End with a complete sentence" in fragment.improvements

    def test_learning_shifts_predictions(self):
        predictor = HeuristicQualityPredictor()
        text = "A short but complete answer for the user."
        before = predictor.predict(text).quality_score
        for _ in range(5):
            predictor.learn({"text": text}, 1.0)
        after = predictor.predict(text).quality_score
        assert predictor.sample_count == 5
        assert after > before
        assert 0.0 <= after <= 1.0

    def test_observed_score_overrides_graded_score(self):
        predictor = HeuristicQualityPredictor()
        text = "A short but complete answer for the user."
        before = predictor.predict(text).quality_score
        for _ in range(5):
            # The graded score equals the prediction; only the observed score moves it
            predictor.learn({"text": text, "observed_score": 0.0}, before)
        after = predictor.predict(text).quality_score
        assert after < before
