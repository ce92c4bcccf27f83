"""
Feature Vector Builder for StyleMatch
Builds the 50-dimension (user, product) vector consumed by the relevance scorers
"""

import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import List, Dict, Optional, Tuple, Iterable, Callable

import numpy as np

from stylematch.models.data_structures import Product, UserProfile, StyleProfile, clamp
from stylematch.models.fashion_rules import (
    ESSENTIAL_CATEGORIES, OPPOSITE_SEASON, SEASONAL_COLORS, VERSATILE_STYLES, STYLE_FORMALITY,
    anchor_category, best_color_match, formality_level, is_harmony_pair, is_neutral, season_matches,
)
from stylematch.models.compatibility_engine import pair_compatibility as default_pair_compatibility
from stylematch.models.trend_adjuster import TrendAdjuster, current_season

FEATURE_DIM = 50
PRODUCT_BLOCK_DIM = 20

FEATURE_NAMES = (
    # (a) user-style alignment
    'style_match', 'color_match', 'price_fit', 'brand_affinity', 'formality_preference',
    'trendiness', 'category_preference', 'seasonal_preference', 'recency_boost', 'popularity',
    # (b) product intrinsics
    'price_norm', 'rating_norm', 'category_popularity', 'seasonal_relevance', 'trend_score',
    'new_arrival', 'discount', 'stock_availability', 'size_availability', 'image_quality',
    # (c) interaction history
    'viewed', 'purchased', 'wishlisted', 'carted', 'tried_on',
    'similar_engagement', 'category_engagement', 'brand_engagement', 'context_recognized', 'context_match',
    # (d) seasonal and trend
    'seasonal_trend', 'color_trend', 'style_trend', 'influencer', 'social',
    'purchase_velocity', 'seasonal_inventory', 'holiday', 'event', 'weather',
    # (e) outfit completion
    'wardrobe_complement', 'versatility', 'mix_match', 'gap_filling', 'color_coordination',
    'style_coordination', 'occasion_fit', 'seasonal_need', 'wear_potential', 'value',
)
FEATURE_INDEX = {name: i for i, name in enumerate(FEATURE_NAMES)}

# Positions of the product-only signals inside the full vector
PRODUCT_BLOCK_INDICES = tuple(range(10, 20)) + tuple(range(30, 40))

KNOWN_CONTEXTS = ('outfit_completion', 'homepage', 'product_page', 'cart', 'wardrobe', 'search', 'seasonal')

PRICE_CEILING = 500.0
RECENCY_DAYS = 30.0
NEW_ARRIVAL_DAYS = 30.0


@dataclass(frozen=True)
class CatalogStats:
    """Catalog-wide aggregates computed once per request"""
    category_counts: Tuple[Tuple[str, int], ...] = ()
    price_ceiling: float = PRICE_CEILING
    total: int = 0

    @classmethod
    def from_products(cls, products: Iterable[Product]) -> 'CatalogStats':
        products = list(products)
        counts = Counter(p.category for p in products)
        ceiling = max((p.price for p in products), default=PRICE_CEILING) or PRICE_CEILING
        return cls(tuple(sorted(counts.items())), float(ceiling), len(products))

    def category_popularity(self, category: str) -> float:
        """Share of the largest category, 0.5 without catalog data"""
        counts = dict(self.category_counts)
        if not counts:
            return 0.5
        return counts.get(category, 0) / max(counts.values())


def style_match(style_profile: StyleProfile, product: Product) -> float:
    style = product.style or 'casual'
    if style == style_profile.dominant_style:
        return 1.0
    if style in style_profile.secondary_styles:
        return 0.7
    return 0.3


def color_match(palette: Iterable[str], product: Product) -> float:
    """1.0 for a palette color, 0.7 for a harmonizing color, 0.3 otherwise"""
    palette = list(palette)
    if not product.colors:
        return 0.5
    if any(color in palette for color in product.colors):
        return 1.0
    if any(is_harmony_pair(color, owned) for color in product.colors for owned in palette):
        return 0.7
    return 0.3


def price_fit(price_range: Tuple[float, float], price: float) -> float:
    """
    How well a price sits in the preferred range

    1.0 inside the range, falling off linearly relative to the nearest
    bound outside it, floored at 0.
    """
    low, high = price_range
    if low <= price <= high:
        return 1.0
    if price < low:
        return max(0.0, 1.0 - (low - price) / low) if low > 0 else 1.0
    return max(0.0, 1.0 - (price - high) / high) if high > 0 else 0.0


def brand_affinity(style_profile: StyleProfile, product: Product) -> float:
    if not product.brand:
        return 0.5
    return style_profile.brand_affinities.get(product.brand, 0.3)


def rating_norm(product: Product) -> float:
    return product.rating / 5.0 if product.rating is not None else 0.5


def versatility(product: Product) -> float:
    """How many outfits a product can plausibly join"""
    score = 0.0
    if is_neutral(product.primary_color):
        score += 0.3
    if (product.style or 'casual') in VERSATILE_STYLES:
        score += 0.3
    if product.season == 'all':
        score += 0.2
    if anchor_category(product.category) is not None:
        score += 0.2
    return clamp(score)


def weather_relevance(product: Product, season: str) -> float:
    if product.season == season:
        return 1.0
    if product.season == 'all':
        return 0.7
    if OPPOSITE_SEASON.get(season) == product.season:
        return 0.1
    return 0.4


class FeatureVectorBuilder:
    """Builds relevance feature vectors; pure apart from reading the trend table"""

    def __init__(self,
                 trend_adjuster: Optional[TrendAdjuster] = None,
                 pair_compatibility: Optional[Callable[[Product, Product], float]] = None):
        """
        Initialize feature builder

        Args:
            trend_adjuster: Source of seasonal and trend signals
            pair_compatibility: Pairwise garment compatibility used for mix-and-match
        """
        self.trend_adjuster = trend_adjuster or TrendAdjuster()
        self.pair_compatibility = pair_compatibility or default_pair_compatibility

    def build(self,
              profile: UserProfile,
              product: Product,
              context: Optional[str] = None,
              when: Optional[datetime] = None,
              stats: Optional[CatalogStats] = None,
              product_block: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Build the full feature vector for a (user, product) pair

        Args:
            profile: User profile
            product: Product snapshot
            context: Optional request context (e.g. 'outfit_completion')
            when: Request time, defaults to now
            stats: Catalog aggregates for the request
            product_block: Cached result of build_product_block for this product

        Returns:
            float64 array of FEATURE_DIM values in [0, 1]
        """
        when = when or datetime.now()
        season = current_season(when)
        if product_block is None:
            product_block = self.build_product_block(product, when, stats)

        vector = np.zeros(FEATURE_DIM, dtype=np.float64)
        vector[0:10] = self._user_style_block(profile, product, season, when)
        vector[20:30] = self._interaction_block(profile, product, context)
        vector[40:50] = self._outfit_block(profile, product, season)
        vector[list(PRODUCT_BLOCK_INDICES)] = product_block

        return np.nan_to_num(np.clip(vector, 0.0, 1.0), nan=0.0)

    def build_product_block(self,
                            product: Product,
                            when: Optional[datetime] = None,
                            stats: Optional[CatalogStats] = None) -> np.ndarray:
        """Product-only signals (blocks b and d); depends on season, stats and trends"""
        when = when or datetime.now()
        season = current_season(when)
        stats = stats or CatalogStats()
        return np.array(
            self._intrinsic_block(product, season, when, stats) + self._trend_block(product, season, when),
            dtype=np.float64,
        )

    # (a) user-style alignment
    def _user_style_block(self, profile: UserProfile, product: Product, season: str, when: datetime) -> List[float]:
        style = profile.style_profile
        return [
            style_match(style, product),
            color_match(style.color_palette, product),
            price_fit(style.price_range, product.price),
            brand_affinity(style, product),
            style.formality_preference / 5.0,
            style.trendiness / 5.0,
            self._category_preference(profile, product),
            self._seasonal_preference(profile, product, season),
            self._recency_boost(profile, product, when),
            0.6 * rating_norm(product) + 0.4 * (1.0 if product.featured else 0.0),
        ]

    def _category_preference(self, profile: UserProfile, product: Product) -> float:
        weights = profile.style_profile.category_weights
        if not weights:
            return 0.5
        return weights.get(product.category, 0.0)

    def _seasonal_preference(self, profile: UserProfile, product: Product, season: str) -> float:
        weight = profile.seasonal_preferences.category_weight(season, product.category)
        return weight if weight is not None else 0.3

    def _recency_boost(self, profile: UserProfile, product: Product, when: datetime) -> float:
        """Decays with days since the last interaction in the product's category"""
        if profile.is_new_user:
            return 0.5
        latest = None
        for event in profile.history.events():
            seen = profile.interacted_products.get(event.product_id)
            if seen is not None and seen.category == product.category:
                if latest is None or event.timestamp > latest:
                    latest = event.timestamp
        if latest is None:
            return 0.0
        days = max(0.0, (when - latest).total_seconds() / 86400.0)
        return math.exp(-days / RECENCY_DAYS)

    # (b) product intrinsics
    def _intrinsic_block(self, product: Product, season: str, when: datetime, stats: CatalogStats) -> List[float]:
        if product.created_at is not None:
            age_days = max(0.0, (when - product.created_at).total_seconds() / 86400.0)
            new_arrival = clamp(1.0 - age_days / NEW_ARRIVAL_DAYS)
        else:
            new_arrival = 0.5

        discount = 0.0
        if product.original_price and product.original_price > product.price:
            discount = (product.original_price - product.price) / product.original_price

        return [
            min(product.price / stats.price_ceiling, 1.0) if stats.price_ceiling > 0 else 0.0,
            rating_norm(product),
            stats.category_popularity(product.category),
            self.trend_adjuster.seasonal_relevance(product.category, season),
            self.trend_adjuster.trend_score(product.category),
            new_arrival,
            discount,
            min(product.stock / 100.0, 1.0),
            min(len(product.sizes) / 5.0, 1.0) if product.sizes else 1.0,
            0.8 if product.image_url else 0.3,
        ]

    # (c) interaction history
    def _interaction_block(self, profile: UserProfile, product: Product, context: Optional[str]) -> List[float]:
        history = profile.history
        pid = product.product_id
        return [
            min(history.count(pid, 'view') / 10.0, 1.0),
            min(history.count(pid, 'purchase'), 1),
            min(history.count(pid, 'wishlist'), 1),
            min(history.count(pid, 'cart_add'), 1),
            min(history.count(pid, 'try_on') / 3.0, 1.0),
            self._similar_engagement(profile, product),
            self._share_of_events(profile, lambda p: p.category == product.category),
            self._share_of_events(profile, lambda p: bool(product.brand) and p.brand == product.brand),
            self._context_recognized(context),
            self._context_match(profile, product, context),
        ]

    def _share_of_events(self, profile: UserProfile, predicate) -> float:
        """Fraction of interaction events whose product satisfies predicate"""
        events = [e for e in profile.history.events() if e.product_id in profile.interacted_products]
        if not events:
            return 0.5
        hits = sum(1 for e in events if predicate(profile.interacted_products[e.product_id]))
        return hits / len(events)

    def _similar_engagement(self, profile: UserProfile, product: Product) -> float:
        """Engagement with other products sharing category and style or color"""
        def similar(other: Product) -> bool:
            if other.product_id == product.product_id or other.category != product.category:
                return False
            return other.style == product.style or bool(set(other.colors) & set(product.colors))
        return self._share_of_events(profile, similar)

    def _context_recognized(self, context: Optional[str]) -> float:
        if context is None:
            return 0.5
        return 1.0 if context in KNOWN_CONTEXTS else 0.3

    def _context_match(self, profile: UserProfile, product: Product, context: Optional[str]) -> float:
        if context == 'outfit_completion':
            owned_slots = {anchor_category(p.category) for p in profile.purchased_products()}
            slot = anchor_category(product.category)
            if slot is None:
                return 0.3
            return 1.0 if slot not in owned_slots else 0.6
        if context == 'wardrobe':
            return self._gap_filling(profile.purchased_products(), product)
        if context == 'seasonal':
            return 1.0 if product.season != 'all' else 0.6
        return 0.5

    # (d) seasonal and trend
    def _trend_block(self, product: Product, season: str, when: datetime) -> List[float]:
        trends = self.trend_adjuster
        formality = formality_level(product)

        colors = set(product.colors)
        if not colors:
            color_trend = 0.5
        elif colors & SEASONAL_COLORS.get(season, set()):
            color_trend = 1.0
        elif colors & SEASONAL_COLORS.get(OPPOSITE_SEASON.get(season, ''), set()):
            color_trend = 0.4
        else:
            color_trend = 0.5

        if season_matches(product.season, season):
            seasonal_inventory = min(product.stock / 50.0, 1.0)
        else:
            seasonal_inventory = 0.3

        if when.month in (11, 12):
            holiday = 1.0 if formality >= 4 or product.category == 'accessories' else 0.6
        else:
            holiday = 0.5

        return [
            trends.trend_seasonal_relevance(product.category),
            color_trend,
            trends.style_trend(product.style),
            trends.influencer_signal(product.category),
            trends.social_signal(product.category),
            trends.purchase_velocity(product.category),
            seasonal_inventory,
            holiday,
            formality / 5.0,
            weather_relevance(product, season),
        ]

    # (e) outfit completion
    def _outfit_block(self, profile: UserProfile, product: Product, season: str) -> List[float]:
        owned = profile.purchased_products()
        style = profile.style_profile
        product_versatility = versatility(product)

        if product.season == 'all':
            season_wear = 1.0
        elif product.season == season:
            season_wear = 0.7
        else:
            season_wear = 0.3

        return [
            self._wardrobe_complement(owned, product),
            product_versatility,
            self._mix_match(owned, product),
            self._gap_filling(owned, product),
            self._color_coordination(owned, product),
            self._style_coordination(owned, product),
            1.0 - abs(formality_level(product) - style.formality_preference) / 4.0,
            self._seasonal_need(owned, product, season),
            0.6 * product_versatility + 0.4 * season_wear,
            rating_norm(product) * price_fit(style.price_range, product.price),
        ]

    def _wardrobe_complement(self, owned: List[Product], product: Product) -> float:
        """Best color pairing with owned items that fill other outfit slots"""
        if not owned:
            return 0.5
        slot = anchor_category(product.category)
        others = [p for p in owned if anchor_category(p.category) != slot]
        if not others:
            return 0.5
        return best_color_match(product.primary_color, [p.primary_color for p in others])

    def _mix_match(self, owned: List[Product], product: Product) -> float:
        """Share of owned items in other slots that pair well with the product"""
        slot = anchor_category(product.category)
        others = [p for p in owned if anchor_category(p.category) != slot and p.product_id != product.product_id]
        if not others:
            return 0.5
        good = sum(1 for p in others if self.pair_compatibility(product, p) >= 0.6)
        return good / len(others)

    def _gap_filling(self, owned: List[Product], product: Product) -> float:
        if product.category not in ESSENTIAL_CATEGORIES:
            return 0.2
        count = sum(1 for p in owned if p.category == product.category)
        return max(0.0, (3 - count) / 3.0)

    def _color_coordination(self, owned: List[Product], product: Product) -> float:
        owned_colors = sorted({c for p in owned for c in p.colors})
        if not owned_colors:
            return 0.5
        if not product.colors:
            return 0.6
        return max(best_color_match(color, owned_colors) for color in product.colors)

    def _style_coordination(self, owned: List[Product], product: Product) -> float:
        owned_styles = [p.style for p in owned if p.style]
        if not owned_styles:
            return 0.5
        style = product.style or 'casual'
        if style in owned_styles:
            return 1.0
        mean_formality = sum(STYLE_FORMALITY.get(s, 2) for s in owned_styles) / len(owned_styles)
        if abs(STYLE_FORMALITY.get(style, 2) - mean_formality) <= 1.0:
            return 0.7
        return 0.3

    def _seasonal_need(self, owned: List[Product], product: Product, season: str) -> float:
        """High when the wardrobe is short on items for the current season"""
        if not season_matches(product.season, season):
            return 0.0
        in_season = sum(1 for p in owned if season_matches(p.season, season))
        return max(0.0, 1.0 - in_season / 5.0)
