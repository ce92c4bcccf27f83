"""
Similarity Engine for StyleMatch
Finds similar products for "you may also like" lists and substitutions
"""

import logging
from typing import List, Tuple, Optional

import numpy as np

from stylematch.models.data_structures import Product
from stylematch.models.fashion_rules import (
    CANONICAL_CATEGORIES, COLOR_COMPATIBILITY, NEUTRAL_COLORS, SEASONS, SEASONAL_COLORS,
    STYLE_FORMALITY, formality_level,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

STYLE_VOCABULARY = tuple(sorted(STYLE_FORMALITY)) + ('other',)
COLOR_VOCABULARY = tuple(sorted(
    set(COLOR_COMPATIBILITY) | NEUTRAL_COLORS | {c for colors in SEASONAL_COLORS.values() for c in colors}
))
SEASON_VOCABULARY = SEASONS + ('all',)


class SimilarityEngine:
    """Engine for finding similar products by attribute vectors"""

    def __init__(self):
        """Initialize similarity engine"""
        self._category_index = {c: i for i, c in enumerate(CANONICAL_CATEGORIES)}
        self._style_index = {s: i for i, s in enumerate(STYLE_VOCABULARY)}
        self._color_index = {c: i for i, c in enumerate(COLOR_VOCABULARY)}
        self._season_index = {s: i for i, s in enumerate(SEASON_VOCABULARY)}
        self.dimension = (len(CANONICAL_CATEGORIES) + len(STYLE_VOCABULARY) + len(COLOR_VOCABULARY)
                          + len(SEASON_VOCABULARY) + 4)
        logger.info("SimilarityEngine initialized")

    def product_vector(self, product: Product, price_ceiling: float = 500.0) -> np.ndarray:
        """
        Unit-length attribute vector of a product

        Layout: category one-hot, style one-hot, color multi-hot, season
        one-hot, then normalized price, rating, formality and featured flag.
        """
        vector = np.zeros(self.dimension, dtype=np.float64)
        offset = 0

        vector[offset + self._category_index.get(product.category, self._category_index['other'])] = 1.0
        offset += len(CANONICAL_CATEGORIES)

        vector[offset + self._style_index.get(product.style or 'other', self._style_index['other'])] = 1.0
        offset += len(STYLE_VOCABULARY)

        for color in product.colors:
            if color in self._color_index:
                vector[offset + self._color_index[color]] = 1.0
        offset += len(COLOR_VOCABULARY)

        vector[offset + self._season_index.get(product.season, self._season_index['all'])] = 1.0
        offset += len(SEASON_VOCABULARY)

        vector[offset] = min(product.price / price_ceiling, 1.0) if price_ceiling > 0 else 0.0
        vector[offset + 1] = product.rating / 5.0 if product.rating is not None else 0.5
        vector[offset + 2] = formality_level(product) / 5.0
        vector[offset + 3] = 1.0 if product.featured else 0.0

        # L2 normalize
        norm = np.linalg.norm(vector)
        return vector / norm if norm > 0 else vector

    def calculate_similarity(self, product1: Product, product2: Product, price_ceiling: float = 500.0) -> float:
        """
        Cosine similarity between two products

        Returns:
            Similarity score (0.0 to 1.0, higher = more similar)
        """
        similarity = np.dot(self.product_vector(product1, price_ceiling), self.product_vector(product2, price_ceiling))
        return max(0.0, min(1.0, float(similarity)))

    def find_similar_products(self,
                              target: Product,
                              candidates: List[Product],
                              top_k: int = 4,
                              min_similarity: float = 0.0,
                              in_stock_only: bool = True) -> List[Tuple[Product, float]]:
        """
        Find products similar to the target product

        Args:
            target: Product to find similarities for
            candidates: Pool of products to search in
            top_k: Maximum number of similar products to return
            min_similarity: Minimum similarity threshold
            in_stock_only: Skip candidates without stock

        Returns:
            List of (product, similarity_score) tuples, most similar first
        """
        pool = [c for c in candidates
                if c.product_id != target.product_id and (c.in_stock or not in_stock_only)]
        if not pool or top_k <= 0:
            return []

        price_ceiling = max([target.price] + [c.price for c in pool]) or 500.0
        target_vector = self.product_vector(target, price_ceiling)
        matrix = np.vstack([self.product_vector(c, price_ceiling) for c in pool])
        scores = np.clip(matrix @ target_vector, 0.0, 1.0)

        similarities = [(c, float(s)) for c, s in zip(pool, scores) if s >= min_similarity]

        # Sort by similarity (descending), ties by product id
        similarities.sort(key=lambda x: (-x[1], x[0].product_id))
        result = similarities[:top_k]

        logger.info(f"Found {len(result)} similar products for {target.product_id}")
        return result
