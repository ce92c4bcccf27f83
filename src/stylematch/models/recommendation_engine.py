"""
Unified Recommendation Engine for StyleMatch
Combines profiles, feature vectors, scoring, ranking, outfits and wardrobe analysis
"""

import logging
import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import List, Dict, Optional, Tuple

import numpy as np

from stylematch.config import EngineConfig
from stylematch.exceptions import InvalidProfileInput, ModelUnavailable, RecommendationCancelled
from stylematch.data.cache import TTLCache
from stylematch.data.catalog_gateway import CatalogGateway, ProductFilter
from stylematch.data.data_manager import DataManager
from stylematch.models.data_structures import (
    Product, InteractionEvent, UserProfile, RecommendationCandidate, OutfitCombination, WardrobeAnalysis,
)
from stylematch.models.fashion_rules import BASIC_WARDROBE_COLORS, ESSENTIAL_CATEGORIES, anchor_category
from stylematch.models.feature_builder import CatalogStats, FeatureVectorBuilder, price_fit, rating_norm
from stylematch.models.profile_builder import UserProfileBuilder
from stylematch.models.ranker import DiversityRanker
from stylematch.models.scoring import HeuristicScorer, LearnedScorer, Scorer, blend_scores, load_torch_model
from stylematch.models.compatibility_engine import CompatibilityEngine
from stylematch.models.similarity_engine import SimilarityEngine
from stylematch.models.trend_adjuster import TrendAdjuster, TrendSource, current_season
from stylematch.models.wardrobe_analyzer import WardrobeAnalyzer, MIN_ESSENTIAL_ITEMS

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

MAX_REASONS = 3
SEASONAL_THRESHOLD = 0.7
TRENDING_THRESHOLD = 0.7


class RecommendationEngine:
    """Unified engine combining personalization, compatibility and wardrobe analysis"""

    def __init__(self,
                 gateway: Optional[CatalogGateway] = None,
                 config: Optional[EngineConfig] = None,
                 profile_cache: Optional[TTLCache] = None,
                 feature_cache: Optional[TTLCache] = None,
                 trend_adjuster: Optional[TrendAdjuster] = None,
                 relevance_model: Optional[Scorer] = None,
                 compatibility_model: Optional[Scorer] = None):
        """
        Initialize recommendation engine

        Args:
            gateway: Catalog gateway; a DataManager on config.db_path when omitted
            config: Engine settings, EngineConfig.from_env() when omitted
            profile_cache: Cache of UserProfile objects keyed by user id
            feature_cache: Cache of product feature blocks keyed by product id
            trend_adjuster: Shared trend table
            relevance_model: Learned relevance backend; loaded from config when omitted
            compatibility_model: Learned outfit backend; loaded from config when omitted
        """
        self.config = config if config is not None else EngineConfig.from_env()

        self.gateway = gateway if gateway is not None else DataManager(self.config.db_path)

        self.profile_cache = profile_cache if profile_cache is not None else TTLCache(
            ttl_seconds=self.config.profile_ttl_seconds,
            max_entries=self.config.profile_cache_size,
            name="profile",
        )
        self.feature_cache = feature_cache if feature_cache is not None else TTLCache(
            ttl_seconds=self.config.feature_cache_ttl_seconds,
            max_entries=self.config.feature_cache_size,
            name="feature",
        )
        self.trend_adjuster = trend_adjuster or TrendAdjuster(refresh_seconds=self.config.trend_refresh_seconds)

        if relevance_model is None:
            relevance_model = self._load_model(self.config.relevance_model_path, "relevance")
        if compatibility_model is None:
            compatibility_model = self._load_model(self.config.compatibility_model_path, "compatibility")

        self.relevance_scorer = LearnedScorer(relevance_model, HeuristicScorer(),
                                              timeout=self.config.model_timeout_seconds)
        self.compatibility_engine = CompatibilityEngine(compatibility_model,
                                                        timeout=self.config.model_timeout_seconds)
        self.similarity_engine = SimilarityEngine()
        self.profile_builder = UserProfileBuilder()
        self.feature_builder = FeatureVectorBuilder(
            trend_adjuster=self.trend_adjuster,
            pair_compatibility=self.compatibility_engine.calculate_pair_compatibility,
        )
        self.ranker = DiversityRanker(self.config.diversity_cap)
        self.wardrobe_analyzer = WardrobeAnalyzer(self.ranker)

        self._executor = ThreadPoolExecutor(max_workers=self.config.max_workers,
                                            thread_name_prefix="stylematch-score")
        logger.info(f"RecommendationEngine initialized (learned relevance: {self.relevance_scorer.available}, "
                    f"workers: {self.config.max_workers})")

    def _load_model(self, path: Optional[str], name: str) -> Optional[Scorer]:
        if not path:
            return None
        try:
            return load_torch_model(path, device=self.config.model_device)
        except ModelUnavailable as e:
            logger.warning(f"No {name} model, using heuristic fallback: {e}")
            return None

    #
    # User profiles
    #

    def get_user_profile(self, user_id: str) -> UserProfile:
        """
        Cached profile for a user, built from the catalog store on a miss

        Raises:
            CatalogUnavailable: if the store cannot be read
        """
        return self.profile_cache.get_or_build(user_id, lambda: self._build_profile(user_id))

    def _build_profile(self, user_id: str) -> UserProfile:
        user = self.gateway.get_user(user_id)
        events = self.gateway.get_interactions(user_id)
        orders = self.gateway.get_orders_by_user_id(user_id)

        product_ids = {e.product_id for e in events}
        for order in orders:
            product_ids.update(item.product_id for item in order.items)
        products = self.gateway.get_products_by_ids(product_ids)

        return self.profile_builder.build(user_id, events=events, orders=orders, products=products, user=user)

    def update_user_profile(self, user_id: str, event: InteractionEvent):
        """
        Fold a live interaction into the cached profile

        The cached profile is replaced, never mutated, so requests already
        holding the previous profile are unaffected.

        Raises:
            InvalidProfileInput: if the event belongs to another user
        """
        if event.user_id != user_id:
            raise InvalidProfileInput(f"Event for user {event.user_id} passed to update of {user_id}")

        product = self.gateway.get_product_by_id(event.product_id)
        if product is None:
            logger.warning(f"Product {event.product_id} in {event.event_type} event not found in catalog")

        self.profile_cache.update(
            user_id,
            lambda profile: self.profile_builder.apply_event(profile, event, product),
            builder=lambda: self._build_profile(user_id),
        )
        logger.info(f"Applied {event.event_type} of {event.product_id} to profile {user_id}")

    #
    # Personalized recommendations
    #

    def get_personalized_recommendations(self,
                                         user_id: str,
                                         limit: Optional[int] = None,
                                         context: Optional[str] = None,
                                         cancel_event: Optional[threading.Event] = None,
                                         when: Optional[datetime] = None) -> List[RecommendationCandidate]:
        """
        Get personalized recommendations for a user

        Args:
            user_id: User identifier
            limit: Maximum number of recommendations, config.default_limit when None
            context: Request context (e.g. 'homepage', 'outfit_completion')
            cancel_event: Set it to stop the catalog scan at the next batch
            when: Request time, defaults to now

        Returns:
            Ranked recommendations, possibly fewer than limit

        Raises:
            CatalogUnavailable: if the catalog cannot be read
            RecommendationCancelled: if cancel_event was set during the scan
        """
        limit = self.config.default_limit if limit is None else limit
        if limit <= 0:
            return []

        when = when or datetime.now()
        self.trend_adjuster.maybe_refresh(when=when)
        profile = self.get_user_profile(user_id)

        products = [p for p in self.gateway.get_products(ProductFilter(in_stock_only=True)) if p.in_stock]
        if not products:
            logger.info(f"No in-stock products to recommend for {user_id}")
            return []

        stats = CatalogStats.from_products(products)
        anchors = self._wardrobe_anchors(profile, when) if context == 'outfit_completion' else []

        candidates = self._score_catalog(profile, products, context, when, stats, anchors, cancel_event)
        candidates = [c for c in candidates if c.relevance_score > self.config.min_relevance]
        ranked = self.ranker.rank(candidates, limit)

        if not ranked and profile.is_new_user:
            logger.info(f"No personalized matches for new user {user_id}, using fallback recommendations")
            return self.get_fallback_recommendations(limit, when=when)

        logger.info(f"Recommended {len(ranked)} of {len(products)} products for {user_id}")
        return ranked

    def _score_catalog(self,
                       profile: UserProfile,
                       products: List[Product],
                       context: Optional[str],
                       when: datetime,
                       stats: CatalogStats,
                       anchors: List[Product],
                       cancel_event: Optional[threading.Event]) -> List[RecommendationCandidate]:
        """Score the catalog in batches on the worker pool, merging results in batch order"""
        size = self.config.batch_size
        batches = [products[i:i + size] for i in range(0, len(products), size)]
        futures = [
            self._executor.submit(self._score_batch, profile, batch, context, when, stats, anchors, cancel_event)
            for batch in batches
        ]

        candidates = []
        for index, future in enumerate(futures):
            batch_candidates = future.result()
            if cancel_event is not None and cancel_event.is_set():
                for pending in futures[index + 1:]:
                    pending.cancel()
                logger.info(f"Recommendation for {profile.user_id} cancelled after {index + 1} of {len(batches)} batches")
                raise RecommendationCancelled(f"Recommendation request for {profile.user_id} was cancelled")
            candidates.extend(batch_candidates)
        return candidates

    def _score_batch(self,
                     profile: UserProfile,
                     products: List[Product],
                     context: Optional[str],
                     when: datetime,
                     stats: CatalogStats,
                     anchors: List[Product],
                     cancel_event: Optional[threading.Event]) -> List[RecommendationCandidate]:
        if cancel_event is not None and cancel_event.is_set():
            return []

        season = current_season(when)
        matrix = np.vstack([
            self.feature_builder.build(profile, product, context, when, stats,
                                       product_block=self._product_block(product, when, stats))
            for product in products
        ])
        base_scores = self.relevance_scorer.score_batch(matrix)
        compatibility = self._anchor_compatibility(products, anchors, when)
        owned = Counter(p.category for p in profile.purchased_products())
        owned_colors = {p.primary_color for p in profile.purchased_products()}

        candidates = []
        for product, base, compat in zip(products, base_scores, compatibility):
            seasonal = self.trend_adjuster.seasonal_score(product.category, season)
            trend = self.trend_adjuster.trend_score(product.category)
            category, reasoning = self._classify(profile, product, seasonal, trend, owned, owned_colors)
            candidates.append(RecommendationCandidate(
                product=product,
                relevance_score=blend_scores(float(base), seasonal, trend, compat),
                reasoning=reasoning,
                category=category,
                base_score=float(base),
                seasonal_score=seasonal,
                trend_score=trend,
                compatibility_score=compat,
            ))
        return candidates

    def _product_block(self, product: Product, when: datetime, stats: CatalogStats) -> np.ndarray:
        """Product-only features, cached per product until the snapshot, day, stats or trends change"""
        # Date covers the season, the holiday months and new-arrival age
        stamp = (product, when.date(), stats, self.trend_adjuster.version)
        return self.feature_cache.get_or_build(
            product.product_id,
            lambda: self.feature_builder.build_product_block(product, when, stats),
            stamp=stamp,
        )

    def _wardrobe_anchors(self, profile: UserProfile, when: datetime) -> List[Product]:
        """Owned garments with an outfit slot, most worn first"""
        wardrobe = self.wardrobe_analyzer.build_wardrobe(profile, when)
        wardrobe.sort(key=lambda item: (-item.wear_frequency, item.product_id))
        anchors = []
        for item in wardrobe:
            product = profile.interacted_products.get(item.product_id)
            if product is not None and anchor_category(product.category) is not None:
                anchors.append(product)
        return anchors

    def _anchor_compatibility(self, products: List[Product], anchors: List[Product], when: datetime) -> List[float]:
        """
        Outfit score of each product with the most worn owned garment from another slot

        1.0 when there is no such garment.
        """
        scores = [1.0] * len(products)
        pairs, positions = [], []
        for i, product in enumerate(products):
            slot = anchor_category(product.category)
            anchor = next((a for a in anchors
                           if a.product_id != product.product_id and anchor_category(a.category) != slot), None)
            if anchor is not None:
                pairs.append([anchor, product])
                positions.append(i)

        if pairs:
            matrix = np.vstack([self.compatibility_engine.extract_outfit_features(items, when) for items in pairs])
            for i, score in zip(positions, self.compatibility_engine.scorer.score_batch(matrix)):
                scores[i] = float(score)
        return scores

    def _classify(self,
                  profile: UserProfile,
                  product: Product,
                  seasonal: float,
                  trend: float,
                  owned: Counter,
                  owned_colors: set) -> Tuple[str, List[str]]:
        """Recommendation category and up to three reasons; later matches take precedence"""
        style = profile.style_profile
        reasoning = []
        category = 'similar_style'

        if style.category_weights.get(product.category, 0.0) > 0:
            reasoning.append(f"Matches your {product.category} preferences")

        if product.category in ESSENTIAL_CATEGORIES and owned.get(product.category, 0) < MIN_ESSENTIAL_ITEMS:
            if owned.get(product.category, 0) == 0:
                reasoning.append("Fills a gap in your wardrobe")
            else:
                reasoning.append(f"Adds to your {product.category} collection")
            category = 'wardrobe_gap'

        if seasonal >= SEASONAL_THRESHOLD:
            reasoning.append("Perfect for current season")
            category = 'seasonal'

        low, _ = style.price_range
        if price_fit(style.price_range, product.price) >= 1.0:
            reasoning.append("Within your typical price range")
            category = 'price_match'
        elif product.price < low:
            reasoning.append("Great value option")

        color = product.primary_color
        if color in BASIC_WARDROBE_COLORS and color not in owned_colors and not profile.is_new_user:
            reasoning.append(f"Adds {color} to your wardrobe")

        if product.featured or trend >= TRENDING_THRESHOLD:
            reasoning.append("Currently trending")
            category = 'trending'

        return category, reasoning[:MAX_REASONS]

    def get_fallback_recommendations(self,
                                     limit: Optional[int] = None,
                                     when: Optional[datetime] = None) -> List[RecommendationCandidate]:
        """
        Non-personalized recommendations by popularity and trend

        Base score is 0.6 x normalized rating + 0.4 for featured products,
        blended with the seasonal and trend scores and diversity ranked.
        """
        limit = self.config.default_limit if limit is None else limit
        if limit <= 0:
            return []

        season = current_season(when)
        candidates = []
        for product in self.gateway.get_products(ProductFilter(in_stock_only=True)):
            if not product.in_stock:
                continue
            base = 0.6 * rating_norm(product) + (0.4 if product.featured else 0.0)
            seasonal = self.trend_adjuster.seasonal_score(product.category, season)
            trend = self.trend_adjuster.trend_score(product.category)
            candidates.append(RecommendationCandidate(
                product=product,
                relevance_score=blend_scores(base, seasonal, trend),
                reasoning=["Currently trending"] if product.featured else ["Popular with shoppers"],
                category='trending' if product.featured else 'similar_style',
                base_score=base,
                seasonal_score=seasonal,
                trend_score=trend,
            ))

        ranked = self.ranker.rank(candidates, limit)
        logger.info(f"Fallback recommendations: {len(ranked)} products")
        return ranked

    #
    # Similar products and outfits
    #

    def get_similar_products(self, product_id: str, limit: int = 4) -> List[Product]:
        """
        Find in-stock products similar to a given product

        Returns:
            Up to limit products, most similar first; empty for an unknown product
        """
        target = self.gateway.get_product_by_id(product_id)
        if target is None:
            logger.warning(f"Product {product_id} not found for similarity search")
            return []

        candidates = self.gateway.get_products(ProductFilter(in_stock_only=True))
        similar = self.similarity_engine.find_similar_products(target, candidates, top_k=limit)
        return [product for product, _ in similar]

    def generate_outfit_recommendations(self,
                                        base_pool: Optional[List[Product]] = None,
                                        anchor_item: Optional[Product] = None,
                                        when: Optional[datetime] = None) -> List[OutfitCombination]:
        """
        Generate compatible outfits

        Args:
            base_pool: Garments to combine, best first; the in-stock catalog when None
            anchor_item: Optional garment every outfit must contain
            when: Request time for seasonal features

        Returns:
            Up to 10 outfits scoring above 0.6, best first
        """
        if base_pool is None:
            base_pool = self.gateway.get_products(ProductFilter(in_stock_only=True))
        return self.compatibility_engine.generate_outfit_recommendations(base_pool, anchor_item, when=when)

    def analyze_wardrobe(self, user_id: str, when: Optional[datetime] = None) -> WardrobeAnalysis:
        """
        Analyze a user's inferred wardrobe and suggest gap fillers

        Raises:
            CatalogUnavailable: if the catalog cannot be read
        """
        profile = self.get_user_profile(user_id)
        catalog = self.gateway.get_products(ProductFilter(in_stock_only=True))
        return self.wardrobe_analyzer.analyze(profile, catalog, when)

    def get_profile_summary(self, user_id: str, when: Optional[datetime] = None) -> Dict:
        """
        Spending, engagement and wardrobe-gap summary for a user

        Gap counts come from the inferred wardrobe only, so no catalog scan
        is needed.

        Raises:
            CatalogUnavailable: if the profile has to be built and the store cannot be read
        """
        profile = self.get_user_profile(user_id)
        wardrobe = self.wardrobe_analyzer.build_wardrobe(profile, when)
        gaps = self.wardrobe_analyzer.find_gaps(wardrobe, when)

        summary = profile.behavior.to_dict()
        summary.update({
            'user_id': user_id,
            'is_new_user': profile.is_new_user,
            'dominant_style': profile.style_profile.dominant_style,
            'wardrobe_gaps': sum(1 for gap in gaps if gap.kind == 'essential'),
            'seasonal_needs': sum(1 for gap in gaps if gap.kind == 'seasonal'),
        })
        return summary

    #
    # Maintenance
    #

    def refresh_trends(self, source: TrendSource) -> bool:
        """Replace the trend table; cached product features rebuild on next use"""
        return self.trend_adjuster.refresh(source)

    def invalidate_catalog(self):
        """Drop cached product features after a catalog change"""
        self.feature_cache.clear()
        logger.info("Catalog caches invalidated")

    def get_stats(self) -> Dict:
        """Engine statistics"""
        return {
            'profile_cache': self.profile_cache.get_stats(),
            'feature_cache': self.feature_cache.get_stats(),
            'trend_version': self.trend_adjuster.version,
            'learned_relevance': self.relevance_scorer.available,
            'learned_compatibility': self.compatibility_engine.scorer.available,
        }

    def close(self):
        """Release worker threads"""
        self._executor.shutdown(wait=True)
        self.relevance_scorer.close()
        self.compatibility_engine.close()
        logger.info("RecommendationEngine closed")
