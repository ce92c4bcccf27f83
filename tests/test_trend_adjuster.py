"""
Test cases for Seasonal/Trend Adjuster
"""

import unittest
import sys
from datetime import datetime
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from stylematch.models.trend_adjuster import TrendAdjuster, TrendInsight, current_season
from tests.helpers import WHEN


class TestTrendAdjuster(unittest.TestCase):
    """Test cases for TrendAdjuster"""

    def setUp(self):
        """Set up a summer trend table"""
        self.trends = TrendAdjuster(when=WHEN)

    def test_current_season(self):
        """Test month to season mapping"""
        expected = {1: 'winter', 2: 'winter', 3: 'spring', 5: 'spring', 6: 'summer',
                    8: 'summer', 9: 'fall', 11: 'fall', 12: 'winter'}
        for month, season in expected.items():
            self.assertEqual(current_season(datetime(2024, month, 10)), season)

        print("✅ Current season: months mapped")

    def test_seeded_summer_trends(self):
        """Test seeded trends and blended seasonal score"""
        self.assertAlmostEqual(self.trends.trend_score('dresses'), 0.90)
        self.assertAlmostEqual(self.trends.seasonal_score('dresses', 'summer'), 0.9)
        self.assertEqual(self.trends.seasonal_relevance('swimwear', 'summer'), 1.0)
        self.assertEqual(self.trends.trending_categories(), ['dresses', 'shoes'])

        print("✅ Seeded trends: summer table loaded")

    def test_missing_data_defaults(self):
        """Test unknown categories fall back to neutral scores"""
        self.assertEqual(self.trends.trend_score('other'), 0.5)
        self.assertEqual(self.trends.seasonal_score('other', 'summer'), 0.5)
        self.assertEqual(self.trends.style_trend(None), 0.5)
        self.assertEqual(self.trends.influencer_signal('other'), 0.3)

        print("✅ Missing trend data: neutral defaults")

    def test_refresh_replaces_table(self):
        """Test refresh swaps the table and bumps the version"""
        version = self.trends.version
        refreshed = self.trends.refresh([
            {'category': 'outerwear', 'trendScore': 72, 'seasonalFactor': 1.2, 'keywords': ['Layering']},
            TrendInsight('shoes', 0.4),
        ])

        self.assertTrue(refreshed)
        self.assertEqual(self.trends.version, version + 1)
        self.assertAlmostEqual(self.trends.trend_score('outerwear'), 0.72)
        self.assertEqual(self.trends.trend_score('dresses'), 0.5)
        self.assertEqual(self.trends.style_trend('layering'), 0.72)

        print("✅ Trend refresh: table replaced")

    def test_failed_refresh_keeps_table(self):
        """Test a failing trend source leaves the previous table"""
        def broken_source():
            raise ConnectionError("trend feed down")

        version = self.trends.version
        self.assertFalse(self.trends.refresh(broken_source))
        self.assertFalse(self.trends.refresh([{'trend_score': 0.5}]))

        self.assertEqual(self.trends.version, version)
        self.assertAlmostEqual(self.trends.trend_score('dresses'), 0.90)

        print("✅ Failed refresh: previous trends kept")

    def test_maybe_refresh_respects_interval(self):
        """Test maybe_refresh only reloads stale tables"""
        self.assertFalse(self.trends.maybe_refresh(when=WHEN))

        stale = TrendAdjuster(refresh_seconds=0, when=WHEN)
        version = stale.version
        self.assertTrue(stale.maybe_refresh(when=datetime(2024, 1, 10)))
        self.assertEqual(stale.version, version + 1)
        self.assertAlmostEqual(stale.trend_score('tops'), 0.88)

        print("✅ Maybe refresh: interval respected")

    def test_loaded_feed_survives_periodic_refresh(self):
        """Test periodic refreshes reload the last feed instead of the seeded trends"""
        stale = TrendAdjuster(refresh_seconds=0, when=WHEN)
        self.assertFalse(stale.has_feed)
        self.assertTrue(stale.refresh([TrendInsight('bottoms', 0.99)]))
        self.assertTrue(stale.has_feed)

        version = stale.version
        self.assertTrue(stale.maybe_refresh(when=WHEN))

        self.assertEqual(stale.version, version + 1)
        self.assertEqual(list(stale.trends), ['bottoms'])
        self.assertAlmostEqual(stale.trend_score('bottoms'), 0.99)
        self.assertEqual(stale.trend_score('dresses'), 0.5)

        print("✅ Periodic refresh: loaded feed kept")

    def test_callable_feed_called_again(self):
        """Test a callable feed is polled on each periodic refresh"""
        readings = iter([0.6, 0.7])

        def feed():
            return [{'category': 'shoes', 'trend_score': next(readings)}]

        stale = TrendAdjuster(refresh_seconds=0, when=WHEN)
        self.assertTrue(stale.refresh(feed))
        self.assertAlmostEqual(stale.trend_score('shoes'), 0.6)

        self.assertTrue(stale.maybe_refresh(when=WHEN))
        self.assertAlmostEqual(stale.trend_score('shoes'), 0.7)

        # Exhausted feed fails and the last good table stays
        self.assertFalse(stale.maybe_refresh(when=WHEN))
        self.assertAlmostEqual(stale.trend_score('shoes'), 0.7)

        print("✅ Periodic refresh: callable feed polled")


if __name__ == '__main__':
    unittest.main()
