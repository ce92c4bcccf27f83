"""
Diversity-Aware Ranker for StyleMatch
Sorts scored candidates and caps how many of one category a result may hold
"""

import logging
from collections import defaultdict
from typing import List, Iterable, Optional

from stylematch.models.data_structures import RecommendationCandidate
from stylematch.models.fashion_rules import normalize_category

logger = logging.getLogger(__name__)

DEFAULT_DIVERSITY_CAP = 3


class DiversityRanker:
    """Greedy top-N selection with a per-category cap"""

    def __init__(self, diversity_cap: int = DEFAULT_DIVERSITY_CAP):
        self.diversity_cap = diversity_cap

    def rank(self,
             scored: Iterable[RecommendationCandidate],
             limit: int,
             diversity_cap: Optional[int] = None) -> List[RecommendationCandidate]:
        """
        Rank candidates by relevance with a category cap

        Candidates are sorted by score (ties by product id) and accepted in
        order; a candidate whose category already holds diversity_cap items
        is skipped. When diverse candidates run out the result is shorter
        than limit rather than relaxing the cap.

        Args:
            scored: Scored candidates
            limit: Maximum number of results
            diversity_cap: Per-category cap, defaults to the ranker's cap

        Returns:
            At most limit candidates, never more than the cap per category
        """
        cap = self.diversity_cap if diversity_cap is None else diversity_cap
        if limit <= 0 or cap <= 0:
            return []

        ordered = sorted(scored, key=lambda c: (-c.relevance_score, c.product.product_id))
        counts = defaultdict(int)
        ranked = []

        for candidate in ordered:
            if len(ranked) >= limit:
                break
            category = normalize_category(candidate.product.category)
            if counts[category] >= cap:
                continue
            ranked.append(candidate)
            counts[category] += 1

        if len(ranked) < limit and len(ordered) > len(ranked):
            logger.info(f"Diversity cap {cap} left {len(ranked)} of {limit} slots filled")
        return ranked
