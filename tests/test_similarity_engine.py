"""
Test cases for Similarity Engine
"""

import unittest
import sys
from pathlib import Path

import numpy as np

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from stylematch.models.similarity_engine import SimilarityEngine
from tests.helpers import make_product, sample_catalog


class TestSimilarityEngine(unittest.TestCase):
    """Test cases for SimilarityEngine"""

    def setUp(self):
        """Set up engine and catalog"""
        self.engine = SimilarityEngine()
        self.catalog = sample_catalog()
        self.by_id = {p.product_id: p for p in self.catalog}

    def test_product_vector_is_unit_length(self):
        """Test attribute vectors are L2 normalized"""
        for product in self.catalog:
            vector = self.engine.product_vector(product)
            self.assertEqual(vector.shape, (self.engine.dimension,))
            self.assertAlmostEqual(float(np.linalg.norm(vector)), 1.0)

        unknown = make_product("odd_001", "gizmo", colors=('chartreuse',), style='avant-garde')
        self.assertAlmostEqual(float(np.linalg.norm(self.engine.product_vector(unknown))), 1.0)

        print(f"✅ Product vectors: {self.engine.dimension} dims, unit length")

    def test_similarity_properties(self):
        """Test similarity is bounded, symmetric and maximal for identical attributes"""
        top = self.by_id["top_001"]
        twin = make_product("top_twin", "tops", 45.0, ('white',), 'casual', brand='Other Brand')
        coat = self.by_id["outer_002"]

        self.assertAlmostEqual(self.engine.calculate_similarity(top, twin), 1.0)
        self.assertAlmostEqual(self.engine.calculate_similarity(top, coat),
                               self.engine.calculate_similarity(coat, top))
        self.assertLess(self.engine.calculate_similarity(top, coat), 0.5)

        print("✅ Similarity: symmetric, 1.0 for identical attributes")

    def test_find_similar_products(self):
        """Test results exclude the target and sold-out items and are ordered"""
        target = self.by_id["top_001"]
        results = self.engine.find_similar_products(target, self.catalog, top_k=4)

        self.assertEqual(len(results), 4)
        ids = [p.product_id for p, _ in results]
        self.assertNotIn("top_001", ids)
        self.assertNotIn("sold_out_001", ids)

        scores = [s for _, s in results]
        self.assertEqual(scores, sorted(scores, reverse=True))
        # White casual all-season sneakers beat same-category tops
        self.assertEqual(ids[0], "shoes_001")

        print(f"✅ Similar products: {ids}")

    def test_find_similar_options(self):
        """Test threshold, top_k and out-of-stock options"""
        target = self.by_id["top_001"]

        self.assertEqual(self.engine.find_similar_products(target, self.catalog, top_k=0), [])
        self.assertEqual(self.engine.find_similar_products(target, [target]), [])
        self.assertEqual(self.engine.find_similar_products(target, self.catalog, min_similarity=1.01), [])

        with_sold_out = self.engine.find_similar_products(target, self.catalog, top_k=50, in_stock_only=False)
        self.assertIn("sold_out_001", [p.product_id for p, _ in with_sold_out])
        self.assertEqual(len(with_sold_out), len(self.catalog) - 1)

        print("✅ Similar product options: threshold, top_k and stock filter")


if __name__ == '__main__':
    unittest.main()
