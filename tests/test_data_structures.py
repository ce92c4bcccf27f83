"""
Test cases for core data structures
"""

import unittest
import sys
from datetime import datetime
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from stylematch.exceptions import InvalidProfileInput
from stylematch.models.data_structures import (
    Product, InteractionEvent, InteractionHistory, StyleProfile, RecommendationCandidate,
    OutfitCombination, CategoryGap, WardrobeAnalysis, Order, OrderItem, clamp, DEFAULT_PRICE_RANGE,
)
from tests.helpers import make_product, WHEN


class TestProduct(unittest.TestCase):
    """Test cases for Product snapshots"""

    def test_product_normalization(self):
        """Test product fields are normalized on creation"""
        product = Product(
            product_id=42,
            category="Sneakers",
            price=-5,
            colors=("White ", "RED"),
            style=" Casual",
            season="monsoon",
            rating=7.5,
            stock=-3,
        )

        self.assertEqual(product.product_id, "42")
        self.assertEqual(product.category, "shoes")
        self.assertEqual(product.price, 0.0)
        self.assertEqual(product.colors, ("white", "red"))
        self.assertEqual(product.style, "casual")
        self.assertEqual(product.season, "all")
        self.assertEqual(product.rating, 5.0)
        self.assertEqual(product.stock, 0)
        self.assertFalse(product.in_stock)
        self.assertEqual(product.primary_color, "white")

        print(f"✅ Product normalization: {product}")

    def test_product_is_immutable(self):
        """Test product snapshots cannot be modified"""
        product = make_product("p1", "tops")
        with self.assertRaises(AttributeError):
            product.price = 10.0

        print("✅ Product immutability: snapshot is frozen")

    def test_product_from_dict(self):
        """Test product creation from a database style record"""
        record = {
            'product_id': 'p9',
            'category': 'coat',
            'price': 250.0,
            'colors': ['Gray'],
            'featured': 1,
            'created_at': '2024-05-01T10:00:00',
        }
        product = Product.from_dict(record)

        self.assertEqual(product.category, 'outerwear')
        self.assertTrue(product.featured)
        self.assertEqual(product.created_at, datetime(2024, 5, 1, 10, 0))
        self.assertEqual(product.to_dict()['colors'], ['gray'])

        print("✅ Product from dict: record converted")

    def test_order_total(self):
        """Test order total derived from items"""
        order = Order("o1", "u1", [OrderItem("p1", 20.0, 2), OrderItem("p2", 15.0)])
        self.assertEqual(order.total, 55.0)

        print("✅ Order total: derived from items")


class TestInteractions(unittest.TestCase):
    """Test cases for interaction events and history"""

    def test_unknown_event_type_rejected(self):
        """Test invalid events raise InvalidProfileInput"""
        with self.assertRaises(InvalidProfileInput):
            InteractionEvent(user_id="u1", product_id="p1", event_type="like")
        with self.assertRaises(ValueError):
            InteractionEvent(user_id="u1", product_id="", event_type="view")

        print("✅ Event validation: unknown types rejected")

    def test_history_copy_on_write(self):
        """Test with_event returns a new history"""
        history = InteractionHistory()
        event = InteractionEvent(user_id="u1", product_id="p1", event_type="wishlist", timestamp=WHEN)
        updated = history.with_event(event)

        self.assertEqual(len(history), 0)
        self.assertEqual(len(updated), 1)
        self.assertEqual(updated.count("p1", "wishlist"), 1)
        self.assertEqual(updated.count("p1", "view"), 0)
        self.assertEqual(len(updated.events("wishlist")), 1)

        print("✅ Interaction history: copy-on-write update")


class TestProfilesAndResults(unittest.TestCase):
    """Test cases for profile and result values"""

    def test_style_profile_defaults_and_clamping(self):
        """Test out-of-range preferences are clamped or reset"""
        profile = StyleProfile(price_range=(300.0, 100.0), formality_preference=9, trendiness=0,
                               brand_affinities={'Acme': 1.7})

        self.assertEqual(profile.price_range, DEFAULT_PRICE_RANGE)
        self.assertEqual(profile.formality_preference, 5.0)
        self.assertEqual(profile.trendiness, 1.0)
        self.assertEqual(profile.brand_affinities['Acme'], 1.0)

        print("✅ Style profile: invalid values reset to defaults")

    def test_clamp(self):
        """Test clamp bounds and NaN handling"""
        self.assertEqual(clamp(1.5), 1.0)
        self.assertEqual(clamp(-0.2), 0.0)
        self.assertEqual(clamp(float('nan')), 0.0)
        self.assertEqual(clamp(7, 1, 5), 5)

        print("✅ Clamp: bounds respected")

    def test_recommendation_candidate_validation(self):
        """Test candidate scores are clamped and categories validated"""
        candidate = RecommendationCandidate(
            product=make_product("p1", "tops"),
            relevance_score=1.4,
            category="unknown",
            base_score=-1,
        )

        self.assertEqual(candidate.relevance_score, 1.0)
        self.assertEqual(candidate.base_score, 0.0)
        self.assertEqual(candidate.category, "similar_style")
        self.assertEqual(candidate.to_dict()['product']['product_id'], "p1")

        print("✅ Recommendation candidate: validated")

    def test_outfit_combination(self):
        """Test outfits drop duplicates and reject empty item lists"""
        top = make_product("t1", "tops", colors=('white',))
        jeans = make_product("b1", "jeans", colors=('blue',))
        outfit = OutfitCombination(items=[top, jeans, top], compatibility_score=0.75)

        self.assertEqual(len(outfit), 2)
        self.assertEqual(outfit.item_ids, ("t1", "b1"))
        self.assertEqual(outfit.color_palette, ["white", "blue"])

        with self.assertRaises(ValueError):
            OutfitCombination(items=[], compatibility_score=0.5)

        print(f"✅ Outfit combination: {outfit}")

    def test_gap_and_analysis_bounds(self):
        """Test gap severity and analysis metrics are bounded"""
        gap = CategoryGap(category="tops", severity=9, reason="missing essential category", kind="other")
        self.assertEqual(gap.severity, 5)
        self.assertEqual(gap.kind, "essential")

        analysis = WardrobeAnalysis(gaps=[gap, CategoryGap("summer_essentials", 4, "seasonal", kind="seasonal")],
                                    versatility_score=2.0, color_harmony=-1.0)
        self.assertEqual(analysis.versatility_score, 1.0)
        self.assertEqual(analysis.color_harmony, 0.0)
        self.assertEqual(len(analysis.essential_gaps), 1)

        print("✅ Gap analysis values: bounded")


if __name__ == '__main__':
    unittest.main()
