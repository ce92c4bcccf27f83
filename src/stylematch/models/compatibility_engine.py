"""
Compatibility Engine for StyleMatch
Determines how well garments work together in outfits
"""

import itertools
import logging
from datetime import datetime
from typing import List, Tuple, Dict, Optional

import numpy as np

from stylematch.models.data_structures import Product, OutfitCombination, clamp
from stylematch.models.fashion_rules import (
    OPPOSITE_SEASON, anchor_category, are_complementary, color_compatibility, colors_in_season,
    formality_level, is_luxury_brand, is_neutral, season_matches,
)
from stylematch.models.scoring import Scorer, LearnedScorer, CompatibilityFallbackScorer
from stylematch.models.trend_adjuster import current_season

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

OUTFIT_FEATURE_DIM = 20

# Output order of garments inside an outfit
SLOT_ORDER = {'top': 0, 'bottom': 1, 'shoes': 2, 'outerwear': 3, 'accessory': 4}

# Bounded fan-out per slot when enumerating combinations
FAN_OUT = {'top': 5, 'bottom': 5, 'shoes': 3, 'accessory': 3}

MIN_OUTFIT_SCORE = 0.6
MAX_OUTFITS = 10

PATTERNS = {'striped', 'plaid', 'floral', 'polka', 'geometric'}
LAYERING_STYLES = {'cardigan', 'blazer', 'jacket', 'vest', 'sweater'}


def pair_compatibility(item1: Product, item2: Product) -> float:
    """
    Calculate compatibility between two garments (how well they work together)

    Args:
        item1: First garment
        item2: Second garment

    Returns:
        Compatibility score (0.0 to 1.0, higher = more compatible)
    """
    # Same item = no compatibility (can't wear same item twice)
    if item1.product_id == item2.product_id:
        return 0.0

    slot1 = anchor_category(item1.category)
    slot2 = anchor_category(item2.category)

    # Same slot penalty (usually don't want two tops together)
    if slot1 == slot2:
        return _same_slot_compatibility(item1, slot1)

    color_score = color_compatibility(item1.primary_color, item2.primary_color)
    formality_score = 1.0 - abs(formality_level(item1) - formality_level(item2)) / 4.0
    season_score = _season_compatibility(item1, item2)
    pattern_score = _pattern_compatibility(item1, item2)

    compatibility = (
        color_score * 0.4 +
        formality_score * 0.3 +
        season_score * 0.15 +
        pattern_score * 0.15
    )
    return clamp(compatibility)


def _same_slot_compatibility(item: Product, slot: Optional[str]) -> float:
    """Compatibility between garments filling the same slot"""
    # Exception: layering pieces
    if slot == 'outerwear' or any(s in f"{item.style or ''} {item.name}".lower() for s in LAYERING_STYLES):
        return 0.6
    # Exception: accessories can be combined
    if slot == 'accessory':
        return 0.7
    return 0.1


def _season_compatibility(item1: Product, item2: Product) -> float:
    season1 = item1.season or 'all'
    season2 = item2.season or 'all'

    # 'all' season items work with everything
    if season1 == 'all' or season2 == 'all':
        return 1.0
    if season1 == season2:
        return 1.0
    return 0.3


def _pattern_compatibility(item1: Product, item2: Product) -> float:
    """Pattern compatibility from style and name keywords"""
    text1 = f"{item1.style or ''} {item1.name}".lower()
    text2 = f"{item2.style or ''} {item2.name}".lower()

    has_pattern1 = any(pattern in text1 for pattern in PATTERNS)
    has_pattern2 = any(pattern in text2 for pattern in PATTERNS)

    # If both have patterns, lower compatibility
    if has_pattern1 and has_pattern2:
        return 0.4
    # One patterned, one solid = good
    if has_pattern1 or has_pattern2:
        return 0.8
    # Both solid = neutral
    return 0.7


def _variance(values: List[float]) -> float:
    return float(np.var(values)) if values else 0.0


class CompatibilityEngine:
    """Engine for scoring outfits and generating compatible combinations"""

    def __init__(self, model: Optional[Scorer] = None, timeout: float = 0.25):
        """
        Initialize compatibility engine

        Args:
            model: Optional learned outfit model over the 20-dimension outfit vector
            timeout: Seconds to wait for the model before falling back to rules
        """
        self.scorer = LearnedScorer(model, CompatibilityFallbackScorer(), timeout=timeout)
        logger.info(f"CompatibilityEngine initialized (learned model: {self.scorer.available})")

    def calculate_pair_compatibility(self, item1: Product, item2: Product) -> float:
        """Pairwise garment compatibility"""
        return pair_compatibility(item1, item2)

    def extract_outfit_features(self, items: List[Product], when: Optional[datetime] = None) -> np.ndarray:
        """
        Build the 20-dimension outfit vector

        Blocks: color harmony (5), style consistency (3), seasonal
        appropriateness (4), formality (3), price (2), brand synergy (3).
        Only sets, counts and aggregates are used, so the vector does not
        depend on item order.
        """
        if not items:
            return np.zeros(OUTFIT_FEATURE_DIM, dtype=np.float64)

        season = current_season(when)
        features = (
            self._color_features(items) +
            self._style_features(items) +
            self._seasonal_features(items, season) +
            self._formality_features(items) +
            self._price_features(items) +
            self._brand_features(items)
        )
        return np.clip(np.array(features, dtype=np.float64), 0.0, 1.0)

    def _color_features(self, items: List[Product]) -> List[float]:
        colors = [item.primary_color for item in items]
        unique = set(colors)
        harmony = 1.0 if len(unique) <= 3 else max(0.0, 1.0 - (len(unique) - 3) * 0.2)
        has_accent = len(items) >= 2 and any(not is_neutral(c) for c in unique)
        has_complementary = any(are_complementary(a, b) for a, b in itertools.combinations(sorted(unique), 2))

        return [
            harmony,
            1.0 if any(is_neutral(c) for c in unique) else 0.0,
            1.0 if has_accent else 0.0,
            1.0 if has_complementary else 0.0,
            1.0 if len(unique) == 1 else 0.0,
        ]

    def _style_features(self, items: List[Product]) -> List[float]:
        styles = {item.style or 'casual' for item in items}
        levels = sorted(formality_level(item) for item in items)
        consistency = 1.0 if len(styles) == 1 else max(0.0, 1.0 - (len(styles) - 1) * 0.3)

        return [
            consistency,
            1.0 if len(styles) <= 2 else 0.0,
            1.0 if max(levels) - min(levels) <= 2 else 0.0,
        ]

    def _seasonal_features(self, items: List[Product], season: str) -> List[float]:
        in_season = sum(1 for item in items if season_matches(item.season, season)) / len(items)
        all_colors = {c for item in items for c in item.colors}
        opposite = OPPOSITE_SEASON.get(season)

        if season in ('fall', 'winter'):
            layered = any(anchor_category(i.category) == 'outerwear' for i in items) or len(items) >= 3
        else:
            layered = True

        return [
            in_season,
            1.0 if colors_in_season(all_colors, season) else 0.0,
            0.0 if any(item.season == opposite for item in items) else 1.0,
            1.0 if layered else 0.0,
        ]

    def _formality_features(self, items: List[Product]) -> List[float]:
        levels = sorted(formality_level(item) for item in items)
        return [
            float(np.mean(levels)) / 5.0,
            1.0 - _variance(levels) / 4.0,  # lower variance = better consistency
            1.0 if max(levels) - min(levels) <= 1 else 0.0,
        ]

    def _price_features(self, items: List[Product]) -> List[float]:
        prices = sorted(item.price for item in items)
        avg_price = float(np.mean(prices))
        spread = min(1.0, (max(prices) - min(prices)) / avg_price) if avg_price > 0 else 0.0

        # No item should be more than 3x another
        if min(prices) > 0:
            balanced = max(prices) / min(prices) <= 3
        else:
            balanced = max(prices) == 0

        return [spread, 1.0 if balanced else 0.0]

    def _brand_features(self, items: List[Product]) -> List[float]:
        brands = [item.brand or 'unknown' for item in items]
        luxury = [is_luxury_brand(b) for b in brands]
        return [
            1.0 - len(set(brands)) / len(brands),
            1.0 if all(luxury) or not any(luxury) else 0.0,
            1.0 if any(luxury) and not all(luxury) else 0.0,
        ]

    def score_outfit(self, items: List[Product], when: Optional[datetime] = None) -> float:
        """
        Score the overall compatibility of an outfit

        Returns:
            Outfit compatibility score (0.0 to 1.0)
        """
        if len(items) < 2:
            return 0.0
        return self.scorer.score(self.extract_outfit_features(items, when))

    def calculate_outfit_compatibility(self,
                                       items: List[Product],
                                       when: Optional[datetime] = None) -> OutfitCombination:
        """
        Score a set of garments as one outfit

        Args:
            items: Garments in the outfit (any order)
            when: Request time for seasonal features

        Returns:
            OutfitCombination with score, reasoning and suggested occasions
        """
        return self._make_outfit(items, self.score_outfit(items, when))

    def _make_outfit(self, items: List[Product], score: float) -> OutfitCombination:
        ordered = sorted(items, key=self._slot_key)
        return OutfitCombination(
            items=ordered,
            compatibility_score=score,
            style_reasoning=self.style_reasoning(ordered, score),
            recommended_occasions=self.recommended_occasions(ordered),
        )

    @staticmethod
    def _slot_key(item: Product) -> Tuple[int, str]:
        return SLOT_ORDER.get(anchor_category(item.category), len(SLOT_ORDER)), item.product_id

    def style_reasoning(self, items: List[Product], score: float) -> List[str]:
        """Human-readable notes from the score band"""
        if score > 0.8:
            reasoning = ["Excellent color harmony and style cohesion", "Perfect for sophisticated occasions"]
        elif score > 0.6:
            reasoning = ["Good overall compatibility", "Minor adjustments could improve harmony"]
        else:
            reasoning = ["Consider adjusting color coordination", "Style elements could be more cohesive"]

        if len({item.primary_color for item in items}) > 3:
            reasoning.append("Consider reducing color variety for better harmony")
        return reasoning

    def recommended_occasions(self, items: List[Product]) -> List[str]:
        """Occasions by mean formality"""
        avg_formality = float(np.mean([formality_level(item) for item in items]))

        if avg_formality >= 4:
            return ["Formal events", "Business meetings", "Evening occasions"]
        if avg_formality >= 3:
            return ["Business casual", "Date nights", "Social gatherings"]
        if avg_formality >= 2:
            return ["Casual outings", "Weekend activities", "Lunch meetings"]
        return ["Leisure activities", "Home comfort", "Exercise"]

    def generate_outfit_recommendations(self,
                                        base_pool: List[Product],
                                        anchor_item: Optional[Product] = None,
                                        when: Optional[datetime] = None,
                                        limit: int = MAX_OUTFITS,
                                        min_score: float = MIN_OUTFIT_SCORE) -> List[OutfitCombination]:
        """
        Generate compatible outfits from a pool of garments

        The pool is partitioned into tops, bottoms, shoes and accessories and
        the first entries of each (pool order) are combined. An anchor item
        fixes its slot in every combination. An accessory is added when it
        raises the score.

        Args:
            base_pool: Candidate garments, best first
            anchor_item: Optional garment every outfit must contain
            when: Request time for seasonal features
            limit: Maximum number of outfits
            min_score: Outfits must score above this

        Returns:
            Up to limit outfits, best first
        """
        slots = self._partition(base_pool, anchor_item)
        extra = []
        if anchor_item is not None and anchor_category(anchor_item.category) not in ('top', 'bottom', 'shoes'):
            # Outerwear, accessories and unslotted garments ride along in every outfit
            extra = [anchor_item]

        anchor_slots = [slots[s] for s in ('top', 'bottom', 'shoes') if slots[s]]
        if not anchor_slots:
            logger.info("No tops, bottoms or shoes in pool; no outfits generated")
            return []

        bases = []
        seen = set()
        for combo in itertools.product(*anchor_slots):
            items = list(combo) + extra
            key = frozenset(item.product_id for item in items)
            if len(key) >= 2 and key not in seen:
                seen.add(key)
                bases.append(items)

        if not bases:
            return []

        base_scores = self._score_many(bases, when)
        outfits = []

        for items, score in zip(bases, base_scores):
            items, score = self._best_with_accessory(items, score, slots['accessory'], when)
            if score > min_score:
                outfits.append(self._make_outfit(items, score))

        outfits.sort(key=lambda o: (-o.compatibility_score, tuple(sorted(o.item_ids))))
        result = outfits[:limit]

        logger.info(f"Generated {len(result)} outfits from {len(bases)} combinations")
        return result

    def _partition(self, pool: List[Product], anchor_item: Optional[Product]) -> Dict[str, List[Product]]:
        """Bucket the pool by outfit slot, keeping pool order and fan-out"""
        slots = {slot: [] for slot in FAN_OUT}
        anchor_id = anchor_item.product_id if anchor_item is not None else None

        for product in pool:
            slot = anchor_category(product.category)
            if slot not in slots or product.product_id == anchor_id:
                continue
            if len(slots[slot]) < FAN_OUT[slot]:
                slots[slot].append(product)

        if anchor_item is not None:
            slot = anchor_category(anchor_item.category)
            if slot in ('top', 'bottom', 'shoes'):
                slots[slot] = [anchor_item]
        return slots

    def _best_with_accessory(self,
                             items: List[Product],
                             score: float,
                             accessories: List[Product],
                             when: Optional[datetime]) -> Tuple[List[Product], float]:
        """Add the best accessory if it raises the outfit score"""
        ids = {item.product_id for item in items}
        options = [items + [a] for a in accessories if a.product_id not in ids]
        if not options:
            return items, score

        scores = self._score_many(options, when)
        best = int(np.argmax(scores))
        if scores[best] > score:
            return options[best], float(scores[best])
        return items, score

    def _score_many(self, outfits: List[List[Product]], when: Optional[datetime]) -> np.ndarray:
        matrix = np.vstack([self.extract_outfit_features(items, when) for items in outfits])
        return self.scorer.score_batch(matrix)

    def close(self):
        self.scorer.close()
