"""
Wardrobe Gap Analyzer for StyleMatch
Infers a wardrobe from purchase history and finds what it is missing
"""

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import List, Dict, Optional, Iterable

import numpy as np

from stylematch.models.data_structures import (
    Product, UserProfile, WardrobeItem, CategoryGap, WardrobeAnalysis, RecommendationCandidate, clamp,
)
from stylematch.models.fashion_rules import (
    BASIC_WARDROBE_COLORS, ESSENTIAL_CATEGORIES, SEASONS, is_harmony_pair, is_neutral, season_matches,
)
from stylematch.models.feature_builder import style_match, price_fit, versatility
from stylematch.models.ranker import DiversityRanker
from stylematch.models.trend_adjuster import current_season

logger = logging.getLogger(__name__)

# Items per essential category below which the category is a gap
MIN_ESSENTIAL_ITEMS = 3
# In-season items below which a seasonal gap is reported
MIN_SEASONAL_ITEMS = 5
SEASONAL_GAP_SEVERITY = 4
SUGGESTIONS_PER_GAP = 3
MIN_GAP_FILL_SCORE = 0.5

# Days after purchase at which estimated wear frequency halves
WEAR_HALF_LIFE_DAYS = 90.0

# Variance of per-season shares when everything sits in one season
MAX_SEASON_VARIANCE = 0.1875


def gap_severity(count: int) -> int:
    return max(0, 5 - count)


class WardrobeAnalyzer:
    """Analyzes an inferred wardrobe and suggests gap-filling products"""

    def __init__(self, ranker: Optional[DiversityRanker] = None):
        """Initialize wardrobe analyzer"""
        self.ranker = ranker or DiversityRanker()
        logger.info("WardrobeAnalyzer initialized")

    def build_wardrobe(self, profile: UserProfile, when: Optional[datetime] = None) -> List[WardrobeItem]:
        """
        Map purchases to wardrobe items

        Wear frequency and last-worn date are estimated from purchase
        recency: frequency = 1 / (1 + days / 90) and the item is assumed
        last worn that fraction of the way from purchase to now.
        """
        now = when or datetime.now()
        wardrobe = []

        for event in profile.history.purchases:
            product = profile.interacted_products.get(event.product_id)
            if product is None:
                logger.warning(f"Purchased product {event.product_id} not in profile snapshots, skipping")
                continue

            elapsed = max(now - event.timestamp, timedelta(0))
            days = elapsed.total_seconds() / 86400.0
            wear_frequency = 1.0 / (1.0 + days / WEAR_HALF_LIFE_DAYS)

            wardrobe.append(WardrobeItem(
                product_id=product.product_id,
                category=product.category,
                color=product.primary_color,
                style=product.style or 'casual',
                season=product.season,
                wear_frequency=wear_frequency,
                last_worn=event.timestamp + elapsed * wear_frequency,
            ))

        return wardrobe

    def find_gaps(self, wardrobe: List[WardrobeItem], when: Optional[datetime] = None) -> List[CategoryGap]:
        """Essential-category gaps followed by the seasonal gap, if any"""
        counts = Counter(item.category for item in wardrobe)
        gaps = []

        for category in ESSENTIAL_CATEGORIES:
            count = counts.get(category, 0)
            if count < MIN_ESSENTIAL_ITEMS:
                reason = "missing essential category" if count == 0 else "limited variety"
                gaps.append(CategoryGap(category=category, severity=gap_severity(count), reason=reason))

        season = current_season(when)
        in_season = sum(1 for item in wardrobe if season_matches(item.season, season))
        if in_season < MIN_SEASONAL_ITEMS:
            gaps.append(CategoryGap(
                category=f"{season}_essentials",
                severity=SEASONAL_GAP_SEVERITY,
                reason=f"Limited {season} appropriate clothing",
                kind='seasonal',
            ))

        return gaps

    def gap_filling_score(self, profile: UserProfile, product: Product, gap: CategoryGap,
                          when: Optional[datetime] = None) -> float:
        """
        Score a product as a filler for a gap

        0.5 base, +0.3 exact match (category, or season for a seasonal gap),
        +0.2 style match above 0.7, +0.1 price fit above 0.6,
        +0.1 x versatility, +0.1 rating above 4; capped at 1.
        """
        style = profile.style_profile
        if gap.kind == 'seasonal':
            exact = product.season == current_season(when)
        else:
            exact = product.category == gap.category

        score = 0.5
        if exact:
            score += 0.3
        if style_match(style, product) > 0.7:
            score += 0.2
        if price_fit(style.price_range, product.price) > 0.6:
            score += 0.1
        score += versatility(product) * 0.1
        if product.rating is not None and product.rating > 4:
            score += 0.1
        return min(1.0, score)

    def suggest_for_gap(self,
                        profile: UserProfile,
                        gap: CategoryGap,
                        catalog: Iterable[Product],
                        when: Optional[datetime] = None) -> List[Product]:
        """Top gap-filling products for one gap, via the diversity ranker"""
        season = current_season(when)
        owned = {e.product_id for e in profile.history.purchases}
        candidates = []

        for product in catalog:
            if not product.in_stock or product.product_id in owned:
                continue
            if gap.kind == 'seasonal':
                if not season_matches(product.season, season):
                    continue
            elif product.category != gap.category:
                continue

            score = self.gap_filling_score(profile, product, gap, when)
            if score > MIN_GAP_FILL_SCORE:
                candidates.append(RecommendationCandidate(
                    product=product,
                    relevance_score=score,
                    reasoning=['Fills a gap in your wardrobe'],
                    category='wardrobe_gap',
                    base_score=score,
                ))

        ranked = self.ranker.rank(candidates, limit=SUGGESTIONS_PER_GAP)
        return [candidate.product for candidate in ranked]

    def analyze(self,
                profile: UserProfile,
                catalog: Iterable[Product],
                when: Optional[datetime] = None) -> WardrobeAnalysis:
        """
        Analyze a user's wardrobe

        Args:
            profile: User profile with purchase history
            catalog: Products available as gap fillers
            when: Request time

        Returns:
            WardrobeAnalysis with gaps, suggestions and metrics
        """
        catalog = list(catalog)
        wardrobe = self.build_wardrobe(profile, when)
        gaps = self.find_gaps(wardrobe, when)

        recommendations = []
        seen = set()
        for gap in gaps:
            gap.suggested_items = self.suggest_for_gap(profile, gap, catalog, when)
            for product in gap.suggested_items:
                if product.product_id not in seen:
                    seen.add(product.product_id)
                    recommendations.append(product)

        analysis = WardrobeAnalysis(
            gaps=gaps,
            recommendations=recommendations,
            versatility_score=self.versatility_score(wardrobe),
            seasonal_balance=self.seasonal_balance(wardrobe),
            color_harmony=self.color_harmony(wardrobe),
            color_gaps=self.color_gaps(wardrobe),
            wardrobe=wardrobe,
        )

        logger.info(f"Wardrobe analysis for {profile.user_id}: {len(wardrobe)} items, "
                    f"{len(gaps)} gaps, {len(recommendations)} suggestions")
        return analysis

    def versatility_score(self, wardrobe: List[WardrobeItem]) -> float:
        """Coverage of essential categories, each saturating at three items"""
        counts = Counter(item.category for item in wardrobe)
        coverage = [min(counts.get(c, 0), MIN_ESSENTIAL_ITEMS) / MIN_ESSENTIAL_ITEMS for c in ESSENTIAL_CATEGORIES]
        return float(np.mean(coverage))

    def seasonal_balance(self, wardrobe: List[WardrobeItem]) -> float:
        """1 - normalized variance of per-season shares; all-season items count a quarter each"""
        if not wardrobe:
            return 0.0

        counts: Dict[str, float] = {season: 0.0 for season in SEASONS}
        for item in wardrobe:
            if item.season in counts:
                counts[item.season] += 1.0
            else:
                for season in SEASONS:
                    counts[season] += 0.25

        shares = np.array([counts[s] for s in SEASONS]) / len(wardrobe)
        return clamp(1.0 - float(np.var(shares)) / MAX_SEASON_VARIANCE)

    def color_harmony(self, wardrobe: List[WardrobeItem]) -> float:
        """Fraction of items that are neutral or pair harmoniously with another owned item"""
        if not wardrobe:
            return 0.0

        harmonious = 0
        for i, item in enumerate(wardrobe):
            if is_neutral(item.color):
                harmonious += 1
            elif any(is_harmony_pair(item.color, other.color) for j, other in enumerate(wardrobe) if j != i):
                harmonious += 1
        return harmonious / len(wardrobe)

    def color_gaps(self, wardrobe: List[WardrobeItem]) -> List[str]:
        """Basic colors the wardrobe does not have yet"""
        owned = {item.color for item in wardrobe}
        return [color for color in BASIC_WARDROBE_COLORS if color not in owned]
