"""Unit tests for controlled-vocabulary fuzzy validation."""

import pytest

from app.services.extraction.fuzzy_validator import FuzzyValidator

SHAPES = ["triangle", "disc", "sphere"]


class TestFuzzyValidator:
    """Tests for FuzzyValidator."""

    @pytest.fixture
    def validator(self):
        return FuzzyValidator(threshold=0.7, correction_penalty=0.9)

    def test_transposition_is_corrected(self, validator):
        """'triangel' is one transposition away from 'triangle'."""
        result = validator.validate("triangel", SHAPES)

        assert result.accepted is True
        assert result.corrected_value == "triangle"
        assert result.similarity == pytest.approx(0.875)
        assert result.corrected is True
        assert validator.adjust_confidence(0.8, result) == pytest.approx(0.72)

    def test_exact_match_is_not_penalised(self, validator):
        for value in SHAPES:
            result = validator.validate(value, SHAPES)
            assert result.accepted is True
            assert result.corrected_value == value
            assert result.similarity == 1.0
            assert result.corrected is False
            assert validator.adjust_confidence(0.8, result) == 0.8

    def test_case_insensitive_match_uses_allowed_spelling(self, validator):
        result = validator.validate("  TRIANGLE ", SHAPES)

        assert result.accepted is True
        assert result.corrected_value == "triangle"
        assert result.similarity == 1.0
        assert result.corrected is False

    def test_distant_value_is_rejected(self, validator):
        result = validator.validate("cigar", SHAPES)

        assert result.accepted is False
        assert result.corrected_value is None
        assert result.similarity < 0.7

    def test_accepted_results_meet_threshold(self, validator):
        for raw in ["triangl", "disk", "sphear", "spere", "tri", "circle", "orb"]:
            result = validator.validate(raw, SHAPES)
            if result.accepted:
                assert result.similarity >= 0.7

    def test_empty_inputs_are_rejected(self, validator):
        assert validator.validate("", SHAPES).accepted is False
        assert validator.validate("disc", []).accepted is False

    def test_similarity_formula(self):
        # one substitution over four characters
        assert FuzzyValidator.similarity("disk", "disc") == pytest.approx(0.75)
        assert FuzzyValidator.similarity("", "") == 1.0

    def test_threshold_defaults_from_settings(self):
        validator = FuzzyValidator()

        assert validator.threshold == 0.7
        assert validator.correction_penalty == 0.9
