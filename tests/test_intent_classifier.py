"""Unit tests for query intent classification."""

import pytest

from app.core.exceptions import ValidationError
from app.schemas.search import RetrievalIntent
from app.services.retrieval.intent_classifier import IntentClassifier

QUERIES = [
    "UFO sightings near me",
    "triangle",
    "orange lights lake",
    "what did people see over the lake last night?",
    "how do triangle craft move",
    '"black triangle"',
    "ufo -balloon",
    "lights OR orbs",
    "wie sieht ein ufo aus",
    "bright hovering silent orange triangle craft hovering lake",
]


class TestIntentClassifier:
    """Tests for IntentClassifier."""

    @pytest.fixture
    def classifier(self):
        return IntentClassifier()

    def test_natural_language_query_prefers_semantic(self, classifier):
        intent = classifier.classify("UFO sightings near me")

        assert intent.is_natural_language is True
        assert intent.is_question is False
        assert intent.vector_weight > intent.fts_weight
        assert intent.vector_weight == pytest.approx(0.7)

    def test_short_query_is_keyword(self, classifier):
        intent = classifier.classify("triangle")

        assert intent.is_keyword is True
        assert intent.fts_weight > intent.vector_weight

    def test_question_mark_marks_question(self, classifier):
        intent = classifier.classify("what did people see over the lake last night?")

        assert intent.is_question is True
        assert intent.vector_weight == pytest.approx(0.8)
        assert intent.confidence == 0.9

    def test_leading_interrogative_marks_question(self, classifier):
        intent = classifier.classify("how do triangle craft move")

        assert intent.is_question is True
        assert intent.confidence == 0.75

    def test_german_interrogative(self, classifier):
        assert classifier.classify("wie sieht ein ufo aus").is_question is True

    @pytest.mark.parametrize("query", ['"black triangle"', "ufo -balloon", "lights OR orbs"])
    def test_exact_match_markers_prefer_lexical(self, classifier, query):
        intent = classifier.classify(query)

        assert intent.is_keyword is True
        assert intent.vector_weight == pytest.approx(0.2)

    def test_dense_long_query_uses_default_profile(self, classifier):
        intent = classifier.classify("bright hovering silent orange triangle craft hovering lake")

        assert intent.is_natural_language is False
        assert intent.is_keyword is False
        assert intent.vector_weight == pytest.approx(0.6)

    @pytest.mark.parametrize("query", QUERIES)
    def test_weights_always_sum_to_one(self, classifier, query):
        intent = classifier.classify(query)

        assert intent.vector_weight + intent.fts_weight == pytest.approx(1.0)
        assert 0.0 <= intent.vector_weight <= 1.0
        assert 0.0 <= intent.fts_weight <= 1.0

    @pytest.mark.parametrize("query", ["", "   ", None])
    def test_empty_query_is_not_classified(self, classifier, query):
        with pytest.raises(ValidationError):
            classifier.classify(query)

    def test_default_intent(self, classifier):
        intent = classifier.default_intent()

        assert intent.vector_weight == pytest.approx(0.6)
        assert intent.fts_weight == pytest.approx(0.4)
        assert intent.confidence == 1.0

    def test_keyword_density(self):
        tokens = IntentClassifier.tokenize("UFO sightings near me")

        assert tokens == ["ufo", "sightings", "near", "me"]
        assert IntentClassifier.keyword_density(tokens) == 0.5


class TestRetrievalIntent:
    def test_weights_must_sum_to_one(self):
        with pytest.raises(ValueError):
            RetrievalIntent(confidence=0.5, vector_weight=0.7, fts_weight=0.7)

    def test_from_vector_weight_clamps(self):
        intent = RetrievalIntent.from_vector_weight(1.5, confidence=0.5)

        assert intent.vector_weight == 1.0
        assert intent.fts_weight == 0.0
