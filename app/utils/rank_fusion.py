"""Weighted reciprocal rank fusion."""

from typing import Dict, Hashable, List, Sequence, Tuple

DEFAULT_RRF_K = 60


def weighted_rrf(
    semantic_ids: Sequence[Hashable],
    lexical_ids: Sequence[Hashable],
    vector_weight: float,
    fts_weight: float,
    k: int = DEFAULT_RRF_K,
) -> List[Tuple[Hashable, float]]:
    """Fuse two ranked id lists into one weighted ranking.

    score(d) = vector_weight / (k + rank_sem(d)) + fts_weight / (k + rank_lex(d))

    Ranks are 1-based; an id absent from a list contributes nothing for it.
    Ties keep first-seen order (semantic list first, then lexical).

    Args:
        semantic_ids: Ids ordered by semantic relevance (best first)
        lexical_ids: Ids ordered by lexical relevance (best first)
        vector_weight: Weight applied to the semantic ranking
        fts_weight: Weight applied to the lexical ranking
        k: Smoothing constant

    Returns:
        List of (id, fused score) sorted by descending score
    """
    scores: Dict[Hashable, float] = {}

    for rank, item_id in enumerate(semantic_ids, start=1):
        scores[item_id] = scores.get(item_id, 0.0) + vector_weight / (k + rank)

    for rank, item_id in enumerate(lexical_ids, start=1):
        scores[item_id] = scores.get(item_id, 0.0) + fts_weight / (k + rank)

    # sorted() is stable, so insertion order breaks ties
    return sorted(scores.items(), key=lambda item: item[1], reverse=True)
