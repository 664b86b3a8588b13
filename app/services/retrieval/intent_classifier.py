"""
Intent Classification for Report Search

Classifies a free-text query into a retrieval weighting profile:
- Question: interrogative phrasing, semantic retrieval dominates
- Natural language: multi-word phrasing with low keyword density
- Keyword: short, dense queries where lexical matching dominates
- Exact match: quoted phrases or boolean operators, lexical dominates
"""

import re
from typing import List, Optional

from app.core.config import RetrievalSettings, settings
from app.core.exceptions import ValidationError
from app.schemas.search import RetrievalIntent
from app.services.retrieval.constants import (
    EXACT_MATCH_OPERATORS,
    INTERROGATIVE_WORDS,
    STOPWORDS,
)
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

_TOKEN = re.compile(r"[\w']+", re.UNICODE)


class IntentClassifier:
    """Rule-based query intent classifier."""

    def __init__(self, retrieval_settings: Optional[RetrievalSettings] = None):
        self.config = retrieval_settings or settings.retrieval

    @staticmethod
    def tokenize(query: str) -> List[str]:
        return _TOKEN.findall(query.lower())

    @staticmethod
    def keyword_density(tokens: List[str]) -> float:
        """Fraction of tokens that are content words (not stopwords)."""
        if not tokens:
            return 0.0
        return sum(1 for token in tokens if token not in STOPWORDS) / len(tokens)

    @staticmethod
    def has_exact_match_markers(query: str) -> bool:
        if '"' in query:
            return True
        raw_terms = query.split()
        if any(term in EXACT_MATCH_OPERATORS for term in raw_terms):
            return True
        return any(len(term) > 1 and term.startswith("-") for term in raw_terms)

    def classify(self, query: str) -> RetrievalIntent:
        """Classify a query.

        Args:
            query: Raw user query

        Returns:
            RetrievalIntent with vector_weight + fts_weight == 1

        Raises:
            ValidationError: For empty queries; callers run the recent-items
                fallback instead of classifying
        """
        if not query or not query.strip():
            raise ValidationError("Cannot classify an empty query")

        tokens = self.tokenize(query)
        word_count = len(tokens)
        density = self.keyword_density(tokens)

        is_question = query.strip().endswith("?") or (
            word_count > 1 and tokens[0] in INTERROGATIVE_WORDS
        )
        is_natural_language = (
            word_count >= self.config.natural_language_min_words
            and density <= self.config.natural_language_max_keyword_density
        )
        is_keyword = (
            not is_question
            and not is_natural_language
            and word_count <= self.config.keyword_max_words
        )

        if self.has_exact_match_markers(query):
            vector_weight = self.config.exact_match_vector_weight
            confidence = 0.9
            is_keyword = True
            profile = "exact_match"
        elif is_question:
            vector_weight = self.config.question_vector_weight
            confidence = 0.9 if query.strip().endswith("?") else 0.75
            profile = "question"
        elif is_natural_language:
            vector_weight = self.config.natural_language_vector_weight
            confidence = min(1.0, 0.5 + (1.0 - density) * 0.5)
            profile = "natural_language"
        elif is_keyword:
            vector_weight = self.config.keyword_vector_weight
            confidence = min(1.0, 0.5 + density * 0.4)
            profile = "keyword"
        else:
            vector_weight = self.config.default_vector_weight
            confidence = 0.5
            profile = "default"

        intent = RetrievalIntent.from_vector_weight(
            vector_weight,
            is_question=is_question,
            is_natural_language=is_natural_language,
            is_keyword=is_keyword,
            confidence=round(confidence, 3),
        )

        LOGGER.info(
            "Query intent classified",
            extra={
                "query": query[:100],
                "profile": profile,
                "keyword_density": round(density, 3),
                "vector_weight": intent.vector_weight,
            },
        )
        return intent

    def default_intent(self) -> RetrievalIntent:
        """Intent reported when no classification ran (empty query)."""
        return RetrievalIntent.from_vector_weight(
            self.config.default_vector_weight, confidence=1.0
        )
