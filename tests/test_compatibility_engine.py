"""
Test cases for Compatibility Engine
"""

import unittest
import itertools
import sys
from pathlib import Path

import numpy as np

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from stylematch.models.compatibility_engine import CompatibilityEngine, OUTFIT_FEATURE_DIM
from stylematch.models.data_structures import OutfitCombination
from stylematch.models.fashion_rules import anchor_category
from stylematch.models.scoring import Scorer
from tests.helpers import make_product, sample_catalog, WHEN


class BrokenOutfitModel(Scorer):
    def score(self, vector):
        raise RuntimeError("outfit model crashed")


class TestCompatibilityEngine(unittest.TestCase):
    """Test cases for CompatibilityEngine"""

    def setUp(self):
        """Set up engine and test garments"""
        self.engine = CompatibilityEngine()

        self.white_shirt = make_product("shirt_001", "shirt", 60.0, ('white',), 'smart-casual')
        self.blue_jeans = make_product("jeans_001", "jeans", 80.0, ('blue',), 'casual')
        self.brown_shoes = make_product("shoes_001", "loafers", 120.0, ('brown',), 'smart-casual')
        self.red_shirt = make_product("shirt_002", "shirt", 50.0, ('red',), 'casual')
        self.navy_blazer = make_product("blazer_001", "blazer", 250.0, ('navy',), 'formal')
        self.gold_watch = make_product("watch_001", "watch", 400.0, ('gold',), 'classic', brand='Gucci')

    def tearDown(self):
        self.engine.close()

    def test_pair_compatibility(self):
        """Test pairwise compatibility across and within slots"""
        cross = self.engine.calculate_pair_compatibility(self.white_shirt, self.blue_jeans)
        same_slot = self.engine.calculate_pair_compatibility(self.white_shirt, self.red_shirt)
        same_item = self.engine.calculate_pair_compatibility(self.white_shirt, self.white_shirt)

        self.assertGreater(cross, 0.5)
        self.assertLessEqual(cross, 1.0)
        self.assertEqual(same_slot, 0.1)
        self.assertEqual(same_item, 0.0)

        print(f"✅ Pair compatibility: shirt + jeans {cross:.3f}, two shirts {same_slot:.3f}")

    def test_outfit_features_dimension_and_range(self):
        """Test the outfit vector has 20 values in [0, 1]"""
        features = self.engine.extract_outfit_features(
            [self.white_shirt, self.blue_jeans, self.brown_shoes, self.gold_watch], WHEN)

        self.assertEqual(features.shape, (OUTFIT_FEATURE_DIM,))
        self.assertTrue(np.all((features >= 0.0) & (features <= 1.0)))
        self.assertEqual(self.engine.extract_outfit_features([], WHEN).shape, (OUTFIT_FEATURE_DIM,))

        print("✅ Outfit features: 20 dims within [0, 1]")

    def test_permutation_invariance(self):
        """Test item order does not change features or score"""
        items = [self.white_shirt, self.blue_jeans, self.brown_shoes, self.navy_blazer]
        reference = self.engine.extract_outfit_features(items, WHEN)
        reference_score = self.engine.score_outfit(items, WHEN)

        for permutation in itertools.permutations(items):
            np.testing.assert_array_equal(self.engine.extract_outfit_features(list(permutation), WHEN), reference)
            self.assertEqual(self.engine.score_outfit(list(permutation), WHEN), reference_score)

        print("✅ Permutation invariance: 24 orderings agree")

    def test_monochrome_outfit(self):
        """Test an all-black outfit is detected as monochromatic with full harmony"""
        items = [
            make_product("m_top", "tops", 50.0, ('black',), 'minimalist'),
            make_product("m_bottom", "trousers", 60.0, ('black',), 'minimalist'),
            make_product("m_shoes", "boots", 70.0, ('black',), 'minimalist'),
        ]
        features = self.engine.extract_outfit_features(items, WHEN)
        outfit = self.engine.calculate_outfit_compatibility(items, WHEN)

        self.assertEqual(features[0], 1.0)  # color-count harmony
        self.assertEqual(features[4], 1.0)  # monochromatic
        self.assertEqual(outfit.compatibility_score, 1.0)
        self.assertIn("Excellent color harmony and style cohesion", outfit.style_reasoning)

        print(f"✅ Monochrome outfit: {outfit}")

    def test_score_range_and_small_outfits(self):
        """Test outfit scores are bounded and single items score zero"""
        catalog = sample_catalog()
        for items in itertools.combinations(catalog[:8], 3):
            score = self.engine.score_outfit(list(items), WHEN)
            self.assertGreaterEqual(score, 0.0)
            self.assertLessEqual(score, 1.0)

        self.assertEqual(self.engine.score_outfit([self.white_shirt], WHEN), 0.0)
        self.assertEqual(self.engine.score_outfit([], WHEN), 0.0)

        print("✅ Outfit scores: bounded, single items score 0")

    def test_reasoning_and_occasions(self):
        """Test reasoning bands and formality occasions"""
        many_colors = [make_product(f"c{i}", "tops", colors=(c,)) for i, c in
                       enumerate(('red', 'green', 'yellow', 'purple'))]

        self.assertIn("Good overall compatibility", self.engine.style_reasoning(many_colors[:2], 0.7))
        self.assertIn("Consider adjusting color coordination", self.engine.style_reasoning(many_colors[:2], 0.5))
        self.assertIn("Consider reducing color variety for better harmony",
                      self.engine.style_reasoning(many_colors, 0.9))

        formal = [self.navy_blazer, make_product("suit_pants", "trousers", style='formal')]
        self.assertEqual(self.engine.recommended_occasions(formal)[0], "Formal events")
        self.assertEqual(self.engine.recommended_occasions([self.blue_jeans])[0], "Casual outings")
        athletic = [make_product("run_top", "tops", style='athletic')]
        self.assertEqual(self.engine.recommended_occasions(athletic)[0], "Leisure activities")

        print("✅ Reasoning and occasions: bands verified")

    def test_generate_outfit_recommendations(self):
        """Test generated outfits are complete, above threshold and ordered"""
        outfits = self.engine.generate_outfit_recommendations(sample_catalog(), when=WHEN)

        self.assertGreater(len(outfits), 0)
        self.assertLessEqual(len(outfits), 10)
        scores = [o.compatibility_score for o in outfits]
        self.assertEqual(scores, sorted(scores, reverse=True))

        for outfit in outfits:
            self.assertIsInstance(outfit, OutfitCombination)
            self.assertGreater(outfit.compatibility_score, 0.6)
            slots = [anchor_category(item.category) for item in outfit.items]
            self.assertIn('top', slots)
            self.assertIn('bottom', slots)
            self.assertIn('shoes', slots)
            self.assertEqual(len(set(outfit.item_ids)), len(outfit.items))

        print(f"✅ Outfit generation: {len(outfits)} outfits, best {scores[0]:.3f}")

    def test_anchor_item_in_every_outfit(self):
        """Test an anchor item fixes its slot"""
        outfits = self.engine.generate_outfit_recommendations(sample_catalog(), anchor_item=self.blue_jeans,
                                                              when=WHEN)

        self.assertGreater(len(outfits), 0)
        for outfit in outfits:
            self.assertIn("jeans_001", outfit.item_ids)
            bottoms = [i for i in outfit.items if anchor_category(i.category) == 'bottom']
            self.assertEqual(len(bottoms), 1)

        print(f"✅ Anchored outfits: jeans in all {len(outfits)} outfits")

    def test_empty_pool(self):
        """Test pools without anchor slots produce no outfits"""
        self.assertEqual(self.engine.generate_outfit_recommendations([], when=WHEN), [])
        self.assertEqual(self.engine.generate_outfit_recommendations([self.gold_watch], when=WHEN), [])

        print("✅ Empty pool: no outfits")

    def test_broken_model_falls_back_to_rules(self):
        """Test a failing learned model gives the rule-based score"""
        items = [self.white_shirt, self.blue_jeans, self.brown_shoes]
        expected = self.engine.score_outfit(items, WHEN)

        broken = CompatibilityEngine(model=BrokenOutfitModel())
        try:
            self.assertEqual(broken.score_outfit(items, WHEN), expected)
        finally:
            broken.close()

        print("✅ Model failure: rule-based fallback used")


if __name__ == '__main__':
    unittest.main()
