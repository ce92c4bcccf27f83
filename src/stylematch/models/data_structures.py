"""
Core Data Structures for StyleMatch
Shared data models used across the recommendation system
"""

from typing import List, Dict, Optional, Any, Tuple
from dataclasses import dataclass, field, replace
from datetime import datetime

from stylematch.exceptions import InvalidProfileInput
from stylematch.models.fashion_rules import normalize_category, SEASONS

EVENT_TYPES = ('view', 'purchase', 'wishlist', 'cart_add', 'try_on')
RECOMMENDATION_CATEGORIES = ('trending', 'wardrobe_gap', 'similar_style', 'price_match', 'seasonal')

DEFAULT_PRICE_RANGE = (50.0, 200.0)
DEFAULT_COLOR_PALETTE = ('black', 'white', 'navy', 'gray')


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp a score into [low, high]; NaN collapses to low"""
    if value != value:
        return low
    return max(low, min(high, value))


def _parse_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass(frozen=True)
class Product:
    """Immutable catalog snapshot of a product"""
    product_id: str
    category: str
    price: float
    brand: Optional[str] = None
    colors: Tuple[str, ...] = ()
    style: Optional[str] = None
    season: str = "all"
    rating: Optional[float] = None
    stock: int = 0
    featured: bool = False
    name: str = ""
    sizes: Tuple[str, ...] = ()
    original_price: Optional[float] = None
    created_at: Optional[datetime] = None
    image_url: Optional[str] = None
    formality: Optional[int] = None

    def __post_init__(self):
        """Validate and normalize fields after initialization"""
        # Frozen dataclass, so normalized values go through object.__setattr__
        object.__setattr__(self, 'product_id', str(self.product_id))
        object.__setattr__(self, 'category', normalize_category(self.category))
        object.__setattr__(self, 'price', max(0.0, float(self.price)))
        object.__setattr__(self, 'colors', tuple(c.strip().lower() for c in (self.colors or ()) if c))
        object.__setattr__(self, 'sizes', tuple(self.sizes or ()))

        if self.style:
            object.__setattr__(self, 'style', self.style.strip().lower())

        if self.season not in SEASONS and self.season != 'all':
            object.__setattr__(self, 'season', 'all')

        if self.rating is not None:
            object.__setattr__(self, 'rating', max(0.0, min(5.0, float(self.rating))))

        object.__setattr__(self, 'stock', max(0, int(self.stock or 0)))

        if self.formality is not None:
            object.__setattr__(self, 'formality', max(1, min(5, int(self.formality))))

    @property
    def primary_color(self) -> str:
        return self.colors[0] if self.colors else 'neutral'

    @property
    def in_stock(self) -> bool:
        return self.stock > 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses"""
        return {
            'product_id': self.product_id,
            'category': self.category,
            'price': self.price,
            'brand': self.brand,
            'colors': list(self.colors),
            'style': self.style,
            'season': self.season,
            'rating': self.rating,
            'stock': self.stock,
            'featured': self.featured,
            'name': self.name,
            'sizes': list(self.sizes),
            'original_price': self.original_price,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'image_url': self.image_url,
            'formality': self.formality,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        """Create Product from dictionary or database record"""
        return cls(
            product_id=data['product_id'],
            category=data.get('category', 'other'),
            price=data.get('price', 0.0),
            brand=data.get('brand'),
            colors=tuple(data.get('colors') or ()),
            style=data.get('style'),
            season=data.get('season') or 'all',
            rating=data.get('rating'),
            stock=data.get('stock') or 0,
            featured=bool(data.get('featured', False)),
            name=data.get('name') or '',
            sizes=tuple(data.get('sizes') or ()),
            original_price=data.get('original_price'),
            created_at=_parse_datetime(data.get('created_at')),
            image_url=data.get('image_url'),
            formality=data.get('formality'),
        )

    def __str__(self) -> str:
        """String representation"""
        parts = [self.product_id, self.primary_color]
        if self.style:
            parts.append(self.style)
        parts.append(f"({self.category})")
        return " ".join(parts)


@dataclass
class OrderItem:
    """A purchased line in an order"""
    product_id: str
    price: float
    quantity: int = 1


@dataclass
class Order:
    """A completed order owned by the catalog store"""
    order_id: str
    user_id: str
    items: List[OrderItem] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    total: Optional[float] = None

    def __post_init__(self):
        if self.total is None:
            self.total = sum(item.price * item.quantity for item in self.items)


@dataclass
class User:
    """User record with optional stated preferences"""
    user_id: str
    name: Optional[str] = None
    preferences: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.preferences is None:
            self.preferences = {}


@dataclass(frozen=True)
class InteractionEvent:
    """A timestamped user interaction with a product"""
    user_id: str
    product_id: str
    event_type: str
    timestamp: datetime = field(default_factory=datetime.now)
    price: Optional[float] = None
    duration: Optional[float] = None
    context: Optional[str] = None

    def __post_init__(self):
        """Reject events the profile builder cannot interpret"""
        if self.event_type not in EVENT_TYPES:
            raise InvalidProfileInput(f"Unknown interaction type: {self.event_type!r}")
        if not self.product_id:
            raise InvalidProfileInput("Interaction event without a product id")
        object.__setattr__(self, 'product_id', str(self.product_id))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id,
            'product_id': self.product_id,
            'event_type': self.event_type,
            'timestamp': self.timestamp.isoformat(),
            'price': self.price,
            'duration': self.duration,
            'context': self.context,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InteractionEvent':
        return cls(
            user_id=data['user_id'],
            product_id=data['product_id'],
            event_type=data['event_type'],
            timestamp=_parse_datetime(data.get('timestamp')) or datetime.now(),
            price=data.get('price'),
            duration=data.get('duration'),
            context=data.get('context'),
        )


@dataclass(frozen=True)
class InteractionHistory:
    """Timestamped interactions grouped by type"""
    views: Tuple[InteractionEvent, ...] = ()
    purchases: Tuple[InteractionEvent, ...] = ()
    wishlist: Tuple[InteractionEvent, ...] = ()
    cart_adds: Tuple[InteractionEvent, ...] = ()
    try_ons: Tuple[InteractionEvent, ...] = ()

    _FIELDS = {
        'view': 'views',
        'purchase': 'purchases',
        'wishlist': 'wishlist',
        'cart_add': 'cart_adds',
        'try_on': 'try_ons',
    }

    def with_event(self, event: InteractionEvent) -> 'InteractionHistory':
        """Return a new history with the event appended"""
        name = self._FIELDS[event.event_type]
        return replace(self, **{name: getattr(self, name) + (event,)})

    def events(self, event_type: Optional[str] = None) -> Tuple[InteractionEvent, ...]:
        """All events, or only those of one type"""
        if event_type is not None:
            return getattr(self, self._FIELDS[event_type])
        return self.views + self.purchases + self.wishlist + self.cart_adds + self.try_ons

    def count(self, product_id: str, event_type: str) -> int:
        return sum(1 for event in self.events(event_type) if event.product_id == product_id)

    def __len__(self) -> int:
        return len(self.events())


@dataclass
class StyleProfile:
    """A user's learned style, color, brand and price preferences"""
    dominant_style: str = 'casual'
    secondary_styles: Tuple[str, ...] = ('smart-casual',)
    color_palette: Tuple[str, ...] = DEFAULT_COLOR_PALETTE
    price_range: Tuple[float, float] = DEFAULT_PRICE_RANGE
    brand_affinities: Dict[str, float] = field(default_factory=dict)
    category_weights: Dict[str, float] = field(default_factory=dict)
    formality_preference: float = 2.0
    trendiness: float = 3.0

    def __post_init__(self):
        """Clamp preference values to their documented ranges"""
        self.formality_preference = clamp(float(self.formality_preference), 1.0, 5.0)
        self.trendiness = clamp(float(self.trendiness), 1.0, 5.0)
        self.brand_affinities = {b: clamp(a) for b, a in (self.brand_affinities or {}).items()}
        self.category_weights = {c: clamp(w) for c, w in (self.category_weights or {}).items()}
        self.secondary_styles = tuple(self.secondary_styles or ())
        self.color_palette = tuple(self.color_palette or ())

        low, high = self.price_range
        if low < 0 or high <= 0 or low > high:
            self.price_range = DEFAULT_PRICE_RANGE
        else:
            self.price_range = (float(low), float(high))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'dominant_style': self.dominant_style,
            'secondary_styles': list(self.secondary_styles),
            'color_palette': list(self.color_palette),
            'price_range': list(self.price_range),
            'brand_affinities': dict(self.brand_affinities),
            'category_weights': dict(self.category_weights),
            'formality_preference': self.formality_preference,
            'trendiness': self.trendiness,
        }


@dataclass(frozen=True)
class CategoryWeight:
    """Weight of a category within a season, with color and style bias"""
    category: str
    weight: float
    color_preferences: Tuple[str, ...] = ()
    style_preferences: Tuple[str, ...] = ()


@dataclass
class SeasonalPreferences:
    """Per-season category weights"""
    spring: List[CategoryWeight] = field(default_factory=list)
    summer: List[CategoryWeight] = field(default_factory=list)
    fall: List[CategoryWeight] = field(default_factory=list)
    winter: List[CategoryWeight] = field(default_factory=list)

    def for_season(self, season: str) -> List[CategoryWeight]:
        return getattr(self, season, [])

    def category_weight(self, season: str, category: str) -> Optional[float]:
        for entry in self.for_season(season):
            if entry.category == category:
                return entry.weight
        return None


@dataclass(frozen=True)
class BehaviorMetrics:
    """Spending and engagement counters for one user"""
    total_spent: float = 0.0
    order_count: int = 0
    average_order_value: float = 0.0
    favorite_categories: Tuple[str, ...] = ()
    browsing_sessions: int = 0
    try_on_usage: int = 0
    cart_adds: int = 0
    # 0-100
    engagement_score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_spent': self.total_spent,
            'order_count': self.order_count,
            'average_order_value': self.average_order_value,
            'favorite_categories': list(self.favorite_categories),
            'browsing_sessions': self.browsing_sessions,
            'try_on_usage': self.try_on_usage,
            'cart_adds': self.cart_adds,
            'engagement_score': self.engagement_score,
        }


@dataclass
class UserProfile:
    """Aggregated view of a user used for scoring"""
    user_id: str
    style_profile: StyleProfile = field(default_factory=StyleProfile)
    history: InteractionHistory = field(default_factory=InteractionHistory)
    seasonal_preferences: SeasonalPreferences = field(default_factory=SeasonalPreferences)
    behavior: BehaviorMetrics = field(default_factory=BehaviorMetrics)
    interacted_products: Dict[str, Product] = field(default_factory=dict)
    built_at: datetime = field(default_factory=datetime.now)
    # Profile seeded from stated preferences, before any history is applied
    stated_profile: Optional[StyleProfile] = None

    @property
    def is_new_user(self) -> bool:
        return len(self.history) == 0

    def purchased_products(self) -> List[Product]:
        """Products the user bought, one entry per purchase event"""
        products = []
        for event in self.history.purchases:
            product = self.interacted_products.get(event.product_id)
            if product is not None:
                products.append(product)
        return products


@dataclass
class WardrobeItem:
    """Garment inferred from purchase history"""
    product_id: str
    category: str
    color: str
    style: str
    season: str
    wear_frequency: float
    last_worn: Optional[datetime] = None

    def __post_init__(self):
        self.wear_frequency = clamp(self.wear_frequency)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'category': self.category,
            'color': self.color,
            'style': self.style,
            'season': self.season,
            'wear_frequency': self.wear_frequency,
            'last_worn': self.last_worn.isoformat() if self.last_worn else None,
        }


@dataclass
class RecommendationCandidate:
    """A single recommendation with metadata"""
    product: Product
    relevance_score: float
    reasoning: List[str] = field(default_factory=list)
    category: str = 'similar_style'
    base_score: float = 0.0
    seasonal_score: float = 0.5
    trend_score: float = 0.5
    compatibility_score: float = 1.0

    def __post_init__(self):
        """Validate recommendation data"""
        self.relevance_score = clamp(self.relevance_score)
        self.base_score = clamp(self.base_score)
        self.seasonal_score = clamp(self.seasonal_score)
        self.trend_score = clamp(self.trend_score)
        self.compatibility_score = clamp(self.compatibility_score)

        if self.category not in RECOMMENDATION_CATEGORIES:
            self.category = 'similar_style'

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses"""
        return {
            'product': self.product.to_dict(),
            'relevance_score': self.relevance_score,
            'reasoning': list(self.reasoning),
            'category': self.category,
            'base_score': self.base_score,
            'seasonal_score': self.seasonal_score,
            'trend_score': self.trend_score,
            'compatibility_score': self.compatibility_score,
        }


@dataclass
class OutfitCombination:
    """A scored combination of garments"""
    items: List[Product]
    compatibility_score: float
    style_reasoning: List[str] = field(default_factory=list)
    recommended_occasions: List[str] = field(default_factory=list)

    def __post_init__(self):
        """Validate outfit data"""
        if not self.items:
            raise ValueError("Outfit must contain at least one item")

        # Remove duplicate items
        seen_ids = set()
        unique_items = []
        for item in self.items:
            if item.product_id not in seen_ids:
                unique_items.append(item)
                seen_ids.add(item.product_id)
        self.items = unique_items

        self.compatibility_score = clamp(self.compatibility_score)

    @property
    def item_ids(self) -> Tuple[str, ...]:
        return tuple(item.product_id for item in self.items)

    @property
    def color_palette(self) -> List[str]:
        """Get list of colors in the outfit"""
        return [item.primary_color for item in self.items]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'items': [item.to_dict() for item in self.items],
            'compatibility_score': self.compatibility_score,
            'style_reasoning': list(self.style_reasoning),
            'recommended_occasions': list(self.recommended_occasions),
        }

    def __str__(self) -> str:
        """String representation"""
        item_summary = ', '.join(f"{item.category}({item.primary_color})" for item in self.items)
        return f"Outfit: {item_summary}, score: {self.compatibility_score:.2f}"

    def __len__(self) -> int:
        """Number of items in outfit"""
        return len(self.items)


@dataclass
class CategoryGap:
    """A missing or under-represented wardrobe category"""
    category: str
    severity: int
    reason: str
    suggested_items: List[Product] = field(default_factory=list)
    kind: str = 'essential'

    def __post_init__(self):
        self.severity = max(0, min(5, int(self.severity)))
        if self.kind not in ('essential', 'seasonal'):
            self.kind = 'essential'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category': self.category,
            'severity': self.severity,
            'reason': self.reason,
            'suggested_items': [item.to_dict() for item in self.suggested_items],
            'kind': self.kind,
        }


@dataclass
class WardrobeAnalysis:
    """Result of a wardrobe gap analysis"""
    gaps: List[CategoryGap] = field(default_factory=list)
    recommendations: List[Product] = field(default_factory=list)
    versatility_score: float = 0.0
    seasonal_balance: float = 0.0
    color_harmony: float = 0.0
    color_gaps: List[str] = field(default_factory=list)
    wardrobe: List[WardrobeItem] = field(default_factory=list)

    def __post_init__(self):
        self.versatility_score = clamp(self.versatility_score)
        self.seasonal_balance = clamp(self.seasonal_balance)
        self.color_harmony = clamp(self.color_harmony)

    @property
    def essential_gaps(self) -> List[CategoryGap]:
        return [gap for gap in self.gaps if gap.kind == 'essential']

    def to_dict(self) -> Dict[str, Any]:
        return {
            'gaps': [gap.to_dict() for gap in self.gaps],
            'recommendations': [item.to_dict() for item in self.recommendations],
            'versatility_score': self.versatility_score,
            'seasonal_balance': self.seasonal_balance,
            'color_harmony': self.color_harmony,
            'color_gaps': list(self.color_gaps),
            'wardrobe': [item.to_dict() for item in self.wardrobe],
        }
