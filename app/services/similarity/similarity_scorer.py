"""Composite pairwise report similarity.

tagLocationScore = base (same category) + min(shared tags * per_tag, cap) + location bonus
attributeScore   = shared attribute values / max(|A|, |B|, 1) * 100
hybridScore      = round(tagLocationScore * w_tl + attributeScore * w_attr)
"""

import math
from typing import Mapping, Optional, Tuple

from app.core.config import SimilaritySettings, settings
from app.schemas.similarity import SimilarityScore
from app.utils.geo import haversine_km


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class SimilarityScorer:
    """Pure scoring; callers supply reports and their attribute maps."""

    def __init__(self, similarity_settings: Optional[SimilaritySettings] = None):
        self.config = similarity_settings or settings.similarity

    def location_bonus(self, distance_km: Optional[float]) -> float:
        if distance_km is None:
            return 0.0
        if distance_km < self.config.near_distance_km:
            return self.config.location_bonus
        if distance_km < self.config.far_distance_km:
            return self.config.location_bonus * (1 - distance_km / self.config.far_distance_km)
        return 0.0

    @staticmethod
    def distance_between(source, candidate) -> Optional[float]:
        coords = (
            source.location_lat,
            source.location_lng,
            candidate.location_lat,
            candidate.location_lng,
        )
        if any(c is None for c in coords):
            return None
        return haversine_km(*coords)

    def tag_location_score(self, source, candidate) -> Tuple[float, list, Optional[float]]:
        """Returns (score, shared tags, distance in km or None)."""
        score = self.config.base_score if source.category == candidate.category else 0.0

        candidate_tags = {tag.lower() for tag in (candidate.tags or [])}
        shared_tags = sorted({tag.lower() for tag in (source.tags or [])} & candidate_tags)
        score += min(len(shared_tags) * self.config.points_per_tag, self.config.max_tag_points)

        distance = self.distance_between(source, candidate)
        score += self.location_bonus(distance)
        return score, shared_tags, distance

    @staticmethod
    def attribute_score(
        source_attributes: Mapping[str, str], candidate_attributes: Mapping[str, str]
    ) -> Tuple[float, list]:
        """Returns (score in [0, 100], shared keys in source order)."""
        shared = [
            key
            for key, value in source_attributes.items()
            if key in candidate_attributes
            and str(candidate_attributes[key]).lower() == str(value).lower()
        ]
        total = max(len(source_attributes), len(candidate_attributes), 1)
        return len(shared) / total * 100, shared

    def score(
        self,
        source,
        candidate,
        source_attributes: Mapping[str, str],
        candidate_attributes: Mapping[str, str],
    ) -> SimilarityScore:
        tag_location, shared_tags, distance = self.tag_location_score(source, candidate)
        attribute, shared_attributes = self.attribute_score(source_attributes, candidate_attributes)

        hybrid = round_half_up(
            tag_location * self.config.tag_location_weight
            + attribute * self.config.attribute_weight
        )

        return SimilarityScore(
            hybrid_score=min(100, max(0, hybrid)),
            tag_location_score=tag_location,
            attribute_score=attribute,
            shared_attributes=shared_attributes,
            shared_tags=shared_tags,
            distance_km=distance,
        )
