"""
Seasonal/Trend Adjuster for StyleMatch
Season- and trend-aware adjustments per product category
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import List, Dict, Optional, Tuple, Iterable, Callable, Union

from stylematch.models.data_structures import clamp
from stylematch.models.fashion_rules import normalize_category

logger = logging.getLogger(__name__)

# Demand multiplier of each category per season
SEASONAL_BOOSTS = {
    'spring': {'dresses': 1.3, 'tops': 1.2, 'shoes': 1.1, 'accessories': 1.0, 'bottoms': 0.9},
    'summer': {'dresses': 1.4, 'tops': 1.1, 'shoes': 1.2, 'accessories': 1.1, 'bottoms': 0.8},
    'fall': {'bottoms': 1.3, 'tops': 1.2, 'shoes': 1.1, 'accessories': 1.0, 'dresses': 0.9},
    'winter': {'tops': 1.4, 'bottoms': 1.2, 'accessories': 1.1, 'shoes': 1.0, 'dresses': 0.8},
}

# Categories that belong entirely to one season
PEAK_SEASON_CATEGORIES = {
    ('summer', 'swimwear'): 1.0,
    ('winter', 'outerwear'): 1.0,
}


def current_season(when: Optional[datetime] = None) -> str:
    """Mar-May spring, Jun-Aug summer, Sep-Nov fall, Dec-Feb winter"""
    month = (when or datetime.now()).month
    if 3 <= month <= 5:
        return 'spring'
    if 6 <= month <= 8:
        return 'summer'
    if 9 <= month <= 11:
        return 'fall'
    return 'winter'


def factor_to_relevance(factor: float) -> float:
    """Map a demand multiplier (1.0 = neutral) onto a 0-1 relevance"""
    return clamp(factor - 0.5)


@dataclass(frozen=True)
class TrendInsight:
    """Trend reading for one category"""
    category: str
    trend_score: float
    growth_rate: float = 0.0
    seasonal_factor: float = 1.0
    keywords: Tuple[str, ...] = ()
    demand_forecast: str = 'stable'
    social_mentions: Optional[int] = None
    influencer_endorsements: Optional[int] = None
    purchase_velocity: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, 'category', normalize_category(self.category))
        object.__setattr__(self, 'trend_score', clamp(float(self.trend_score)))
        object.__setattr__(self, 'keywords', tuple(k.lower() for k in self.keywords))

    @classmethod
    def from_dict(cls, data: Dict) -> 'TrendInsight':
        """
        Create from a trend feed record

        Feeds report trend scores either on a 0-1 or a 0-100 scale.
        """
        score = float(data.get('trend_score', data.get('trendScore', 50)))
        if score > 1.0:
            score = score / 100.0
        return cls(
            category=data['category'],
            trend_score=score,
            growth_rate=float(data.get('growth_rate', data.get('growthRate', 0.0))),
            seasonal_factor=float(data.get('seasonal_factor', data.get('seasonalFactor', 1.0))),
            keywords=tuple(data.get('keywords', ())),
            demand_forecast=data.get('demand_forecast', data.get('demandForecast', 'stable')),
            social_mentions=data.get('social_mentions'),
            influencer_endorsements=data.get('influencer_endorsements'),
            purchase_velocity=data.get('purchase_velocity'),
        )


def fallback_trends(season: str) -> List[TrendInsight]:
    """Seeded seasonal trends used until a trend feed has been loaded"""
    table = {
        'spring': [
            TrendInsight('dresses', 0.85, 25, 1.3, ('floral', 'light', 'feminine'), 'rising'),
            TrendInsight('tops', 0.75, 20, 1.2, ('layering', 'versatile'), 'stable'),
        ],
        'summer': [
            TrendInsight('dresses', 0.90, 30, 1.4, ('breathable', 'bright', 'casual'), 'rising'),
            TrendInsight('shoes', 0.80, 22, 1.2, ('sandals', 'comfort'), 'stable'),
        ],
        'fall': [
            TrendInsight('bottoms', 0.85, 25, 1.3, ('warm', 'layering'), 'rising'),
            TrendInsight('tops', 0.82, 23, 1.2, ('sweaters', 'cozy'), 'stable'),
        ],
        'winter': [
            TrendInsight('tops', 0.88, 27, 1.4, ('warm', 'layering', 'cozy'), 'rising'),
            TrendInsight('accessories', 0.78, 20, 1.1, ('scarves', 'hats'), 'stable'),
        ],
    }
    return table.get(season, table['spring'])


TrendSource = Union[Callable[[], Iterable], Iterable]


class TrendAdjuster:
    """Holds the current trend table and derives seasonal and trend scores"""

    def __init__(self, refresh_seconds: float = 6 * 60 * 60, when: Optional[datetime] = None):
        """
        Initialize trend adjuster

        Args:
            refresh_seconds: Age after which maybe_refresh reloads the table
            when: Date used to pick the seeded seasonal trends
        """
        self.refresh_seconds = refresh_seconds
        self._lock = threading.Lock()
        self._trends: Dict[str, TrendInsight] = {}
        self._loaded_at = 0.0
        self.version = 0
        # Last trend source that loaded; None while only seeded trends exist
        self._source: Optional[TrendSource] = None
        self._install(fallback_trends(current_season(when)))
        logger.info(f"TrendAdjuster initialized with {len(self._trends)} seeded trends")

    def _install(self, insights: Iterable[TrendInsight]):
        """Swap in a new trend table in one assignment"""
        table = {}
        for insight in insights:
            table[insight.category] = insight
        with self._lock:
            self._trends = table
            self._loaded_at = time.monotonic()
            self.version += 1

    def refresh(self, source: TrendSource) -> bool:
        """
        Replace the trend table from a trend source

        The source is remembered so that later periodic refreshes reload it
        instead of the seeded trends. Callables are called again; plain
        iterables are kept as the parsed insights.

        Args:
            source: Iterable of TrendInsight/dict records, or a callable returning one

        Returns:
            True if the table was replaced; on failure the previous table stays
        """
        insights = self._load(source)
        if insights is None:
            return False

        self._source = source if callable(source) else insights
        self._install(insights)
        logger.info(f"Trend table refreshed with {len(insights)} categories")
        return True

    def _load(self, source: TrendSource) -> Optional[List[TrendInsight]]:
        try:
            records = source() if callable(source) else source
            return [r if isinstance(r, TrendInsight) else TrendInsight.from_dict(r) for r in records]
        except Exception as e:
            logger.warning(f"Trend refresh failed, keeping previous trends: {e}")
            return None

    @property
    def has_feed(self) -> bool:
        """True once a trend source has been loaded"""
        return self._source is not None

    def maybe_refresh(self, source: Optional[TrendSource] = None, when: Optional[datetime] = None) -> bool:
        """
        Refresh when the table is older than the configured interval

        Without a source, the last loaded trend source is reused. The seeded
        seasonal trends are only reinstalled when no source was ever loaded.
        """
        if time.monotonic() - self._loaded_at < self.refresh_seconds:
            return False
        if source is not None:
            return self.refresh(source)
        if self._source is not None:
            return self.refresh(self._source)

        self._install(fallback_trends(current_season(when)))
        logger.info("No trend feed loaded, reseeded seasonal trends")
        return True

    @property
    def trends(self) -> Dict[str, TrendInsight]:
        """Current trend table (replaced, never mutated)"""
        return self._trends

    def insight(self, category: str) -> Optional[TrendInsight]:
        return self._trends.get(normalize_category(category))

    def seasonal_relevance(self, category: str, season: str) -> float:
        """Category x season relevance table, 0.5 for unknown combinations"""
        category = normalize_category(category)
        if (season, category) in PEAK_SEASON_CATEGORIES:
            return PEAK_SEASON_CATEGORIES[(season, category)]
        factor = SEASONAL_BOOSTS.get(season, {}).get(category)
        if factor is None:
            return 0.5
        return factor_to_relevance(factor)

    def trend_seasonal_relevance(self, category: str) -> float:
        """Seasonal relevance reported by the trend table, 0.5 with no data"""
        insight = self.insight(category)
        if insight is None:
            return 0.5
        return factor_to_relevance(insight.seasonal_factor)

    def seasonal_score(self, category: str, season: str) -> float:
        """Blend of the relevance table and the trend table's seasonal factor"""
        table_score = self.seasonal_relevance(category, season)
        if self.insight(category) is None:
            return table_score
        return clamp(0.5 * table_score + 0.5 * self.trend_seasonal_relevance(category))

    def trend_score(self, category: str) -> float:
        """Trend strength of a category, 0.5 with no data"""
        insight = self.insight(category)
        return insight.trend_score if insight else 0.5

    def style_trend(self, style: Optional[str]) -> float:
        """Strongest trend whose keywords mention the style, 0.5 otherwise"""
        if not style:
            return 0.5
        scores = [i.trend_score for i in self._trends.values() if style.lower() in i.keywords]
        return max(scores) if scores else 0.5

    def influencer_signal(self, category: str) -> float:
        insight = self.insight(category)
        if insight is None or insight.influencer_endorsements is None:
            return 0.3
        return clamp(insight.influencer_endorsements / 100.0)

    def social_signal(self, category: str) -> float:
        insight = self.insight(category)
        if insight is None or insight.social_mentions is None:
            return 0.3
        return clamp(insight.social_mentions / 10000.0)

    def purchase_velocity(self, category: str) -> float:
        insight = self.insight(category)
        if insight is None or insight.purchase_velocity is None:
            return 0.5
        return clamp(insight.purchase_velocity)

    def trending_categories(self, threshold: float = 0.6) -> List[str]:
        """Categories whose trend score exceeds the threshold, strongest first"""
        ranked = sorted(self._trends.values(), key=lambda i: (-i.trend_score, i.category))
        return [i.category for i in ranked if i.trend_score > threshold]
