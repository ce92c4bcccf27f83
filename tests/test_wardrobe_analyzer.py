"""
Test cases for Wardrobe Gap Analyzer
"""

import unittest
import sys
from datetime import timedelta
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from stylematch.models.data_structures import CategoryGap, WardrobeItem
from stylematch.models.profile_builder import UserProfileBuilder
from stylematch.models.wardrobe_analyzer import WardrobeAnalyzer, gap_severity
from tests.helpers import make_product, make_order, sample_catalog, WHEN


def wardrobe_item(product_id, category, color='black', season='all'):
    return WardrobeItem(product_id=product_id, category=category, color=color, style='casual',
                        season=season, wear_frequency=0.5)


class TestWardrobeAnalyzer(unittest.TestCase):
    """Test cases for WardrobeAnalyzer"""

    def setUp(self):
        """Set up analyzer, catalog and profiles"""
        self.analyzer = WardrobeAnalyzer()
        self.catalog = sample_catalog()
        self.by_id = {p.product_id: p for p in self.catalog}

        profiles = UserProfileBuilder()
        self.empty_profile = profiles.build("new_user")
        orders = [make_order("o1", "u1", [self.by_id["top_001"], self.by_id["bottom_001"]], days_ago=90)]
        self.profile = profiles.build("u1", orders=orders, products=self.by_id)

    def test_gap_severity(self):
        """Test severity falls with item count"""
        self.assertEqual(gap_severity(0), 5)
        self.assertEqual(gap_severity(2), 3)
        self.assertEqual(gap_severity(7), 0)

        print("✅ Gap severity: max(0, 5 - count)")

    def test_empty_history_gaps(self):
        """Test an empty wardrobe reports every essential gap plus the season"""
        wardrobe = self.analyzer.build_wardrobe(self.empty_profile, WHEN)
        gaps = self.analyzer.find_gaps(wardrobe, WHEN)

        self.assertEqual(wardrobe, [])
        essential = [g for g in gaps if g.kind == 'essential']
        self.assertEqual([g.category for g in essential], ['tops', 'bottoms', 'shoes', 'outerwear'])
        self.assertTrue(all(g.severity == 5 for g in essential))
        self.assertTrue(all(g.reason == "missing essential category" for g in essential))

        seasonal = [g for g in gaps if g.kind == 'seasonal']
        self.assertEqual(len(seasonal), 1)
        self.assertEqual(seasonal[0].category, 'summer_essentials')
        self.assertEqual(seasonal[0].severity, 4)

        print(f"✅ Empty wardrobe: {len(gaps)} gaps")

    def test_build_wardrobe_from_purchases(self):
        """Test purchases become wardrobe items with estimated wear"""
        wardrobe = self.analyzer.build_wardrobe(self.profile, WHEN)

        self.assertEqual({item.product_id for item in wardrobe}, {"top_001", "bottom_001"})
        for item in wardrobe:
            # Bought 90 days ago, so wear frequency has halved
            self.assertAlmostEqual(item.wear_frequency, 0.5)
            self.assertEqual(item.last_worn, WHEN - timedelta(days=45))

        gaps = {g.category: g for g in self.analyzer.find_gaps(wardrobe, WHEN)}
        self.assertEqual(gaps['tops'].reason, "limited variety")
        self.assertEqual(gaps['tops'].severity, 4)
        self.assertEqual(gaps['shoes'].severity, 5)

        print(f"✅ Wardrobe: {len(wardrobe)} items inferred from orders")

    def test_gap_filling_score(self):
        """Test gap-filling scores stay capped at 1"""
        gap = CategoryGap(category='tops', severity=5, reason="missing essential category")
        ideal = make_product("ideal_top", "tops", 100.0, ('black',), 'casual', rating=4.8)
        poor = make_product("poor_shoe", "boots", 1000.0, ('purple',), 'edgy', 'winter', rating=2.0)

        self.assertEqual(self.analyzer.gap_filling_score(self.empty_profile, ideal, gap, WHEN), 1.0)
        self.assertLess(self.analyzer.gap_filling_score(self.empty_profile, poor, gap, WHEN), 0.6)

        print("✅ Gap filling score: capped at 1.0")

    def test_seasonal_balance(self):
        """Test balance is 1 for all-season wardrobes and 0 for single-season ones"""
        all_season = [wardrobe_item(f"a{i}", 'tops') for i in range(4)]
        summer_only = [wardrobe_item(f"s{i}", 'tops', season='summer') for i in range(4)]
        spread = [wardrobe_item(f"x{i}", 'tops', season=s) for i, s in
                  enumerate(('spring', 'summer', 'fall', 'winter'))]

        self.assertAlmostEqual(self.analyzer.seasonal_balance(all_season), 1.0)
        self.assertAlmostEqual(self.analyzer.seasonal_balance(summer_only), 0.0)
        self.assertAlmostEqual(self.analyzer.seasonal_balance(spread), 1.0)
        self.assertEqual(self.analyzer.seasonal_balance([]), 0.0)

        print("✅ Seasonal balance: extremes verified")

    def test_color_metrics(self):
        """Test color harmony, color gaps and versatility"""
        wardrobe = [wardrobe_item("w1", 'tops', 'white'), wardrobe_item("w2", 'bottoms', 'black')]

        self.assertEqual(self.analyzer.color_harmony(wardrobe), 1.0)
        self.assertEqual(self.analyzer.color_gaps(wardrobe), ['navy', 'gray', 'brown'])
        self.assertAlmostEqual(self.analyzer.versatility_score(wardrobe), 2.0 / 12.0)

        full = [wardrobe_item(f"{c}{i}", c) for c in ('tops', 'bottoms', 'shoes', 'outerwear') for i in range(3)]
        self.assertEqual(self.analyzer.versatility_score(full), 1.0)
        self.assertEqual(self.analyzer.versatility_score([]), 0.0)

        print("✅ Color metrics: harmony, gaps and versatility")

    def test_analyze_suggestions(self):
        """Test suggestions are in stock, not owned and at most three per gap"""
        analysis = self.analyzer.analyze(self.profile, self.catalog, WHEN)
        owned = {"top_001", "bottom_001"}

        self.assertGreater(len(analysis.gaps), 0)
        for gap in analysis.gaps:
            self.assertLessEqual(len(gap.suggested_items), 3)
            for product in gap.suggested_items:
                self.assertTrue(product.in_stock)
                self.assertNotIn(product.product_id, owned)
                if gap.kind == 'essential':
                    self.assertEqual(product.category, gap.category)

        outerwear = [g for g in analysis.gaps if g.category == 'outerwear'][0]
        self.assertEqual({p.product_id for p in outerwear.suggested_items}, {"outer_001", "outer_002"})

        ids = [p.product_id for p in analysis.recommendations]
        self.assertEqual(len(ids), len(set(ids)))
        self.assertIn('navy', analysis.color_gaps)

        print(f"✅ Wardrobe analysis: {len(analysis.gaps)} gaps, {len(ids)} suggestions")


if __name__ == '__main__':
    unittest.main()
