"""Controlled-vocabulary validation with edit-distance correction."""

from typing import Optional, Sequence

from rapidfuzz.distance import OSA

from app.core.config import settings
from app.schemas.attributes import FuzzyValidationResult


class FuzzyValidator:
    """Accept, correct or reject a raw value against a set of allowed values.

    Similarity is `1 - distance / max(len(a), len(b))` on lower-cased
    strings, where distance is the optimal-string-alignment edit distance
    (Levenshtein plus adjacent transpositions, so "triangel" is one edit
    away from "triangle").
    """

    def __init__(
        self,
        threshold: Optional[float] = None,
        correction_penalty: Optional[float] = None,
    ):
        self.threshold = (
            threshold if threshold is not None else settings.extraction.fuzzy_threshold
        )
        self.correction_penalty = (
            correction_penalty
            if correction_penalty is not None
            else settings.extraction.correction_penalty
        )

    @staticmethod
    def similarity(a: str, b: str) -> float:
        a, b = a.lower(), b.lower()
        longest = max(len(a), len(b))
        if longest == 0:
            return 1.0
        return 1.0 - OSA.distance(a, b) / longest

    def validate(self, raw_value: str, allowed_values: Sequence[str]) -> FuzzyValidationResult:
        """Match raw_value to the closest allowed value.

        Exact case-insensitive matches short-circuit with similarity 1.0.
        Otherwise the best-scoring allowed value wins (first one on ties)
        and is accepted when its similarity reaches the threshold.
        """
        raw = (raw_value or "").strip()
        candidates = [value for value in allowed_values if value]
        if not raw or not candidates:
            return FuzzyValidationResult(accepted=False, similarity=0.0)

        lowered = raw.lower()
        for allowed in candidates:
            if allowed.lower() == lowered:
                return FuzzyValidationResult(
                    accepted=True, corrected_value=allowed, similarity=1.0, corrected=False
                )

        best_value, best_score = None, -1.0
        for allowed in candidates:
            score = self.similarity(raw, allowed)
            if score > best_score:
                best_value, best_score = allowed, score

        if best_score < self.threshold:
            return FuzzyValidationResult(accepted=False, similarity=max(best_score, 0.0))

        return FuzzyValidationResult(
            accepted=True,
            corrected_value=best_value,
            similarity=best_score,
            corrected=best_value.lower() != lowered,
        )

    def adjust_confidence(self, confidence: float, result: FuzzyValidationResult) -> float:
        """Apply the correction penalty when the stored value differs from the raw one."""
        if result.corrected:
            return confidence * self.correction_penalty
        return confidence
