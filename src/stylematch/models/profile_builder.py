"""
User Profile Builder for StyleMatch
Turns interaction history and orders into a weighted style profile
"""

import logging
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from typing import List, Dict, Optional, Iterable, Tuple

from stylematch.exceptions import InvalidProfileInput
from stylematch.models.data_structures import (
    Product, Order, User, InteractionEvent, InteractionHistory, StyleProfile,
    CategoryWeight, SeasonalPreferences, UserProfile, BehaviorMetrics, DEFAULT_PRICE_RANGE,
)
from stylematch.models.fashion_rules import SEASONS, formality_level

logger = logging.getLogger(__name__)

# Strength of each interaction type when weighting preferences
EVENT_WEIGHTS = {
    'purchase': 3.0,
    'wishlist': 2.0,
    'cart_add': 1.5,
    'try_on': 1.5,
    'view': 1.0,
}

# Prior pseudo-count for formality and trendiness nudging
PRIOR_STRENGTH = 3


def default_seasonal_preferences() -> SeasonalPreferences:
    """Seasonal category weights used before any seasonal purchases exist"""
    return SeasonalPreferences(
        spring=[CategoryWeight('tops', 0.8, ('pastels', 'light colors'), ('casual', 'fresh'))],
        summer=[CategoryWeight('tops', 0.9, ('bright colors', 'white'), ('casual', 'breezy'))],
        fall=[CategoryWeight('outerwear', 0.7, ('earth tones',), ('layered',))],
        winter=[CategoryWeight('outerwear', 0.9, ('dark colors', 'rich tones'), ('warm', 'cozy'))],
    )


def _top_keys(weights: Dict[str, float], count: int) -> List[str]:
    """Heaviest keys first, ties broken alphabetically"""
    ranked = sorted(weights.items(), key=lambda kv: (-kv[1], kv[0]))
    return [key for key, _ in ranked[:count]]


def _nudge(base: float, target: float, n: int) -> float:
    """Move base toward target with weight n / (n + PRIOR_STRENGTH)"""
    if n <= 0:
        return base
    return base + (target - base) * n / (n + PRIOR_STRENGTH)


def engagement_score(metrics: BehaviorMetrics, category_count: int) -> float:
    """
    Engagement on a 0-100 scale

    30 for any spend, 20 more for an average order above 100, 10 per
    preferred category up to 30, and 5 per try-on up to 20.
    """
    score = 0.0
    if metrics.total_spent > 0:
        score += 30
    if metrics.average_order_value > 100:
        score += 20
    score += min(category_count * 10, 30)
    score += min(metrics.try_on_usage * 5, 20)
    return min(score, 100.0)


class UserProfileBuilder:
    """Builds and incrementally updates UserProfile objects"""

    def __init__(self):
        """Initialize profile builder"""
        self.event_weights = dict(EVENT_WEIGHTS)
        logger.info("UserProfileBuilder initialized")

    def build(self,
              user_id: str,
              events: Iterable[InteractionEvent] = (),
              orders: Iterable[Order] = (),
              products: Optional[Dict[str, Product]] = None,
              user: Optional[User] = None) -> UserProfile:
        """
        Build a profile from stored history

        Orders are the source of purchases; purchase events coming from the
        interaction log are skipped so that one sale is not counted twice.

        Args:
            user_id: User identifier
            events: Logged interaction events (views, wishlist, cart, try-on)
            orders: Completed orders for the user
            products: Product snapshots referenced by events and orders
            user: Optional user record carrying stated preferences

        Returns:
            UserProfile (never raises for missing or partial history)
        """
        products = dict(products or {})
        orders = list(orders)
        history = InteractionHistory()

        for event in events:
            if event.event_type == 'purchase':
                continue
            history = history.with_event(event)

        for event in self._purchases_from_orders(user_id, orders):
            history = history.with_event(event)

        stated = self.seed_from_preferences(user)
        referenced = {pid: products[pid] for pid in {e.product_id for e in history.events()} if pid in products}

        missing = len({e.product_id for e in history.events()}) - len(referenced)
        if missing:
            logger.warning(f"{missing} interacted products unknown to the catalog for user {user_id}")

        total_spent = sum(order.total for order in orders)
        style_profile = self._build_style_profile(history, referenced, stated)
        behavior = self._with_engagement(BehaviorMetrics(
            total_spent=total_spent,
            order_count=len(orders),
            average_order_value=total_spent / len(orders) if orders else 0.0,
            favorite_categories=self._favorite_categories(history, referenced),
            browsing_sessions=len(history.views),
            try_on_usage=len(history.try_ons),
            cart_adds=len(history.cart_adds),
        ), style_profile)

        profile = UserProfile(
            user_id=user_id,
            style_profile=style_profile,
            history=history,
            seasonal_preferences=self._build_seasonal_preferences(history, referenced),
            behavior=behavior,
            interacted_products=referenced,
            built_at=datetime.now(),
            stated_profile=stated,
        )

        logger.info(f"Built profile for {user_id} from {len(history)} interactions")
        return profile

    def apply_event(self,
                    profile: UserProfile,
                    event: InteractionEvent,
                    product: Optional[Product] = None) -> UserProfile:
        """
        Fold a live interaction into a profile

        The input profile is left untouched; a new profile is returned.
        """
        history = profile.history.with_event(event)
        interacted = dict(profile.interacted_products)
        if product is not None:
            interacted[product.product_id] = product

        stated = profile.stated_profile or StyleProfile()
        style_profile = self._build_style_profile(history, interacted, stated)
        return replace(
            profile,
            history=history,
            interacted_products=interacted,
            style_profile=style_profile,
            seasonal_preferences=self._build_seasonal_preferences(history, interacted),
            behavior=self._updated_behavior(profile.behavior, event, product, history, interacted, style_profile),
        )

    def _updated_behavior(self,
                          behavior: BehaviorMetrics,
                          event: InteractionEvent,
                          product: Optional[Product],
                          history: InteractionHistory,
                          products: Dict[str, Product],
                          style_profile: StyleProfile) -> BehaviorMetrics:
        """Counters after one live event; a live purchase counts as a one-line order"""
        changes = {}
        if event.event_type == 'view':
            changes['browsing_sessions'] = behavior.browsing_sessions + 1
        elif event.event_type == 'try_on':
            changes['try_on_usage'] = behavior.try_on_usage + 1
        elif event.event_type == 'cart_add':
            changes['cart_adds'] = behavior.cart_adds + 1
        elif event.event_type == 'purchase':
            price = event.price if event.price is not None else (product.price if product else 0.0)
            total_spent = behavior.total_spent + max(0.0, float(price))
            order_count = behavior.order_count + 1
            changes.update(
                total_spent=total_spent,
                order_count=order_count,
                average_order_value=total_spent / order_count,
                favorite_categories=self._favorite_categories(history, products),
            )

        return self._with_engagement(replace(behavior, **changes), style_profile)

    def _with_engagement(self, behavior: BehaviorMetrics, style_profile: StyleProfile) -> BehaviorMetrics:
        return replace(behavior, engagement_score=engagement_score(behavior, len(style_profile.category_weights)))

    def _favorite_categories(self, history: InteractionHistory, products: Dict[str, Product]) -> Tuple[str, ...]:
        """Three most purchased categories"""
        counts = defaultdict(float)
        for event in history.purchases:
            product = products.get(event.product_id)
            if product is not None:
                counts[product.category] += 1
        return tuple(_top_keys(counts, 3))

    def seed_from_preferences(self, user: Optional[User]) -> StyleProfile:
        """
        Style profile seeded from a user's stated preferences

        Invalid entries are logged and left at their defaults.
        """
        values = {}
        if user is None or not user.preferences:
            return StyleProfile()

        for key, raw in user.preferences.items():
            try:
                values.update(self._parse_preference(key, raw))
            except InvalidProfileInput as e:
                logger.warning(f"Ignoring stated preference for {user.user_id}: {e}")

        return StyleProfile(**values)

    def _parse_preference(self, key: str, raw) -> Dict:
        """Validate one stated preference entry"""
        if key in ('style', 'dominant_style'):
            if not isinstance(raw, str) or not raw.strip():
                raise InvalidProfileInput(f"style must be a non-empty string, got {raw!r}")
            return {'dominant_style': raw.strip().lower()}

        if key in ('styles', 'secondary_styles'):
            if not isinstance(raw, (list, tuple)) or not all(isinstance(s, str) for s in raw):
                raise InvalidProfileInput(f"styles must be a list of strings, got {raw!r}")
            return {'secondary_styles': tuple(s.lower() for s in raw[:3])}

        if key in ('colors', 'color_palette'):
            if not isinstance(raw, (list, tuple)) or not all(isinstance(c, str) for c in raw):
                raise InvalidProfileInput(f"colors must be a list of strings, got {raw!r}")
            return {'color_palette': tuple(c.lower() for c in raw[:5])}

        if key == 'price_range':
            try:
                low, high = (float(v) for v in raw)
            except (TypeError, ValueError):
                raise InvalidProfileInput(f"price_range must be a [min, max] pair, got {raw!r}")
            if low < 0 or high <= 0 or low > high:
                raise InvalidProfileInput(f"price_range out of order: {raw!r}")
            return {'price_range': (low, high)}

        if key in ('brands', 'brand_affinities'):
            if isinstance(raw, dict):
                try:
                    return {'brand_affinities': {str(b): float(a) for b, a in raw.items()}}
                except (TypeError, ValueError):
                    raise InvalidProfileInput(f"brand affinities must be numeric, got {raw!r}")
            if isinstance(raw, (list, tuple)):
                return {'brand_affinities': {str(b): 1.0 for b in raw}}
            raise InvalidProfileInput(f"brands must be a list or mapping, got {raw!r}")

        if key in ('formality', 'formality_preference', 'trendiness'):
            try:
                value = float(raw)
            except (TypeError, ValueError):
                raise InvalidProfileInput(f"{key} must be numeric, got {raw!r}")
            if not 1.0 <= value <= 5.0:
                raise InvalidProfileInput(f"{key} must be between 1 and 5, got {value}")
            name = 'trendiness' if key == 'trendiness' else 'formality_preference'
            return {name: value}

        # Unrecognized keys (sizes, notification settings...) do not shape the style profile
        return {}

    def _purchases_from_orders(self, user_id: str, orders: Iterable[Order]) -> List[InteractionEvent]:
        """One purchase event per order line"""
        events = []
        for order in orders:
            for item in order.items:
                events.append(InteractionEvent(
                    user_id=user_id,
                    product_id=item.product_id,
                    event_type='purchase',
                    timestamp=order.created_at,
                    price=item.price,
                ))
        return events

    def _build_style_profile(self,
                             history: InteractionHistory,
                             products: Dict[str, Product],
                             stated: StyleProfile) -> StyleProfile:
        """Weight styles, colors, brands and categories across all events"""
        style_weights = defaultdict(float)
        color_weights = defaultdict(float)
        brand_weights = defaultdict(float)
        category_weights = defaultdict(float)

        for event in history.events():
            product = products.get(event.product_id)
            if product is None:
                continue
            weight = self.event_weights[event.event_type]

            if product.style:
                style_weights[product.style] += weight
            for color in product.colors:
                color_weights[color] += weight
            if product.brand:
                brand_weights[product.brand] += weight
            category_weights[product.category] += weight

        styles = _top_keys(style_weights, 4)
        if styles:
            dominant_style = styles[0]
            secondary_styles = tuple(styles[1:]) or stated.secondary_styles
        else:
            dominant_style = stated.dominant_style
            secondary_styles = stated.secondary_styles

        palette = tuple(_top_keys(color_weights, 5)) or stated.color_palette

        brand_affinities = dict(stated.brand_affinities)
        if brand_weights:
            heaviest = max(brand_weights.values())
            brand_affinities.update({b: w / heaviest for b, w in brand_weights.items()})

        category_preferences = {}
        if category_weights:
            heaviest = max(category_weights.values())
            category_preferences = {c: w / heaviest for c, w in category_weights.items()}

        price_range, formality, trendiness = self._purchase_signals(history, products, stated)

        return StyleProfile(
            dominant_style=dominant_style,
            secondary_styles=secondary_styles,
            color_palette=palette,
            price_range=price_range,
            brand_affinities=brand_affinities,
            category_weights=category_preferences,
            formality_preference=formality,
            trendiness=trendiness,
        )

    def _purchase_signals(self,
                          history: InteractionHistory,
                          products: Dict[str, Product],
                          stated: StyleProfile) -> Tuple[Tuple[float, float], float, float]:
        """Price range, formality and trendiness from purchases"""
        prices = []
        formality_levels = []
        featured = 0

        for event in history.purchases:
            product = products.get(event.product_id)
            price = event.price if event.price is not None else (product.price if product else None)
            if price is not None and price > 0:
                prices.append(float(price))
            if product is not None:
                formality_levels.append(formality_level(product))
                featured += 1 if product.featured else 0

        price_range = (min(prices), max(prices)) if prices else stated.price_range
        if price_range[1] <= 0:
            price_range = DEFAULT_PRICE_RANGE

        n = len(formality_levels)
        formality = stated.formality_preference
        trendiness = stated.trendiness
        if n:
            mean_formality = sum(formality_levels) / n
            formality = _nudge(formality, mean_formality, n)
            # Featured ratio mapped onto the 1-5 trendiness scale
            trendiness = _nudge(trendiness, 1.0 + 4.0 * featured / n, n)

        return price_range, formality, trendiness

    def _build_seasonal_preferences(self,
                                    history: InteractionHistory,
                                    products: Dict[str, Product]) -> SeasonalPreferences:
        """Replace a season's default weights once purchases tagged with it exist"""
        preferences = default_seasonal_preferences()
        by_season = {season: [] for season in SEASONS}

        for event in history.purchases:
            product = products.get(event.product_id)
            if product is not None and product.season in by_season:
                by_season[product.season].append(product)

        for season, purchased in by_season.items():
            if not purchased:
                continue

            counts = defaultdict(float)
            colors = defaultdict(float)
            styles = defaultdict(float)
            for product in purchased:
                counts[product.category] += 1
                for color in product.colors:
                    colors[color] += 1
                if product.style:
                    styles[product.style] += 1

            total = float(len(purchased))
            weights = [
                CategoryWeight(
                    category=category,
                    weight=counts[category] / total,
                    color_preferences=tuple(_top_keys(colors, 3)),
                    style_preferences=tuple(_top_keys(styles, 2)),
                )
                for category in _top_keys(counts, len(counts))
            ]
            setattr(preferences, season, weights)

        return preferences
