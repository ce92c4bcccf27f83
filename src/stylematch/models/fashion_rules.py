"""
Fashion Rules for StyleMatch
Shared category, color, style and season tables used across the engines
"""

from typing import Iterable, Optional, Set

SEASONS = ('spring', 'summer', 'fall', 'winter')
OPPOSITE_SEASON = {'spring': 'fall', 'summer': 'winter', 'fall': 'spring', 'winter': 'summer'}

# Canonical catalog categories and the raw labels that map onto them
CANONICAL_CATEGORIES = ('tops', 'bottoms', 'dresses', 'shoes', 'outerwear', 'accessories', 'swimwear', 'other')

CATEGORY_SYNONYMS = {
    'tops': {'top', 'tops', 'shirt', 'shirts', 'blouse', 'tee', 't-shirt', 'tank', 'sweater', 'polo', 'hoodie'},
    'bottoms': {'bottom', 'bottoms', 'pants', 'jeans', 'trousers', 'chinos', 'skirt', 'shorts', 'leggings'},
    'dresses': {'dress', 'dresses', 'gown', 'jumpsuit'},
    'shoes': {'shoe', 'shoes', 'boots', 'sneakers', 'sandals', 'heels', 'loafers', 'flats', 'oxfords'},
    'outerwear': {'outerwear', 'jacket', 'coat', 'blazer', 'cardigan', 'parka', 'vest'},
    'accessories': {'accessory', 'accessories', 'bag', 'jewelry', 'watch', 'hat', 'scarf', 'belt'},
    'swimwear': {'swimwear', 'swimsuit', 'bikini', 'swim'},
}

# Outfit slots used by the compatibility engine
ANCHOR_BY_CATEGORY = {
    'tops': 'top',
    'dresses': 'top',
    'bottoms': 'bottom',
    'shoes': 'shoes',
    'outerwear': 'outerwear',
    'accessories': 'accessory',
}
OUTFIT_ANCHORS = ('top', 'bottom', 'shoes')

ESSENTIAL_CATEGORIES = ('tops', 'bottoms', 'shoes', 'outerwear')

NEUTRAL_COLORS = {'black', 'white', 'gray', 'grey', 'beige', 'cream', 'navy', 'neutral'}

# Basic colors every wardrobe should carry
BASIC_WARDROBE_COLORS = ('black', 'white', 'navy', 'gray', 'brown')

# Based on fashion color theory
COLOR_COMPATIBILITY = {
    'white': {'black': 0.95, 'blue': 0.9, 'red': 0.85, 'green': 0.8, 'brown': 0.85, 'gray': 0.9},
    'black': {'white': 0.95, 'gray': 0.9, 'red': 0.8, 'blue': 0.85, 'green': 0.75},
    'blue': {'white': 0.9, 'gray': 0.85, 'khaki': 0.9, 'brown': 0.8, 'black': 0.85},
    'navy': {'white': 0.95, 'khaki': 0.9, 'gray': 0.85, 'brown': 0.8, 'red': 0.75},
    'gray': {'white': 0.9, 'black': 0.9, 'blue': 0.85, 'red': 0.8, 'yellow': 0.7},
    'red': {'white': 0.85, 'black': 0.8, 'gray': 0.8, 'blue': 0.7, 'khaki': 0.75},
    'green': {'white': 0.8, 'khaki': 0.85, 'brown': 0.8, 'black': 0.75},
    'brown': {'white': 0.85, 'khaki': 0.9, 'blue': 0.8, 'green': 0.8, 'cream': 0.85},
    'khaki': {'white': 0.9, 'blue': 0.9, 'brown': 0.9, 'navy': 0.9, 'green': 0.85},
    'beige': {'white': 0.85, 'brown': 0.9, 'blue': 0.8, 'black': 0.75},
    'cream': {'brown': 0.85, 'blue': 0.8, 'black': 0.8, 'green': 0.75},
}

COMPLEMENTARY_PAIRS = (
    frozenset({'red', 'green'}),
    frozenset({'blue', 'orange'}),
    frozenset({'yellow', 'purple'}),
)

COLOR_FAMILIES = (
    {'blue', 'navy', 'royal', 'teal'},
    {'red', 'burgundy', 'maroon', 'pink'},
    {'green', 'olive', 'forest', 'mint'},
    {'brown', 'tan', 'khaki', 'beige'},
    {'gray', 'grey', 'silver', 'charcoal'},
)

SEASONAL_COLORS = {
    'spring': {'pink', 'mint', 'lavender', 'yellow', 'light blue', 'white', 'pastel'},
    'summer': {'white', 'yellow', 'coral', 'turquoise', 'orange', 'red'},
    'fall': {'brown', 'burgundy', 'olive', 'mustard', 'orange', 'camel', 'rust'},
    'winter': {'black', 'navy', 'burgundy', 'gray', 'emerald', 'white', 'red'},
}

# Formality on a 1 (leisure) to 5 (formal) scale
STYLE_FORMALITY = {
    'athletic': 1,
    'sporty': 1,
    'athleisure': 1,
    'casual': 2,
    'bohemian': 2,
    'vintage': 2,
    'edgy': 2,
    'streetwear': 2,
    'minimalist': 3,
    'smart-casual': 3,
    'classic': 3,
    'business': 4,
    'elegant': 4,
    'formal': 5,
}

CATEGORY_FORMALITY_KEYWORDS = (
    ('suit', 5),
    ('formal', 5),
    ('business', 4),
    ('dress', 4),
    ('blazer', 4),
    ('smart', 3),
    ('casual', 2),
    ('leisure', 1),
    ('athletic', 1),
)

VERSATILE_STYLES = {'casual', 'smart-casual', 'minimalist', 'classic'}

LUXURY_BRANDS = {
    'gucci', 'prada', 'chanel', 'louis vuitton', 'hermes', 'dior', 'burberry',
    'saint laurent', 'balenciaga', 'versace', 'armani', 'valentino',
}


def normalize_category(raw: Optional[str]) -> str:
    """Map a raw catalog category label onto a canonical category"""
    if not raw:
        return 'other'
    label = raw.strip().lower()
    if label in CANONICAL_CATEGORIES:
        return label
    for canonical, synonyms in CATEGORY_SYNONYMS.items():
        if label in synonyms:
            return canonical
    for canonical, synonyms in CATEGORY_SYNONYMS.items():
        if any(synonym in label for synonym in synonyms if len(synonym) > 3):
            return canonical
    return 'other'


def anchor_category(category: str) -> Optional[str]:
    """Outfit slot for a canonical category, or None if it has no slot"""
    return ANCHOR_BY_CATEGORY.get(normalize_category(category))


def is_neutral(color: Optional[str]) -> bool:
    return bool(color) and color.lower() in NEUTRAL_COLORS


def same_color_family(color1: str, color2: str) -> bool:
    """Check if two colors are in the same family"""
    for family in COLOR_FAMILIES:
        if color1 in family and color2 in family:
            return True
    return False


def are_complementary(color1: str, color2: str) -> bool:
    return frozenset({color1.lower(), color2.lower()}) in COMPLEMENTARY_PAIRS


def color_compatibility(color1: Optional[str], color2: Optional[str]) -> float:
    """
    Symmetric compatibility between two colors

    Returns:
        Compatibility score (0.0 to 1.0)
    """
    if not color1 or not color2:
        return 0.6  # Neutral if color info missing

    c1 = color1.lower()
    c2 = color2.lower()

    if c1 == c2:
        return 0.85

    direct = max(COLOR_COMPATIBILITY.get(c1, {}).get(c2, 0.0),
                 COLOR_COMPATIBILITY.get(c2, {}).get(c1, 0.0))
    if direct:
        return direct

    if are_complementary(c1, c2):
        return 0.8

    # Neutral colors work with everything
    if c1 in NEUTRAL_COLORS or c2 in NEUTRAL_COLORS:
        return 0.8

    if same_color_family(c1, c2):
        return 0.6

    return 0.4


def is_harmony_pair(color1: Optional[str], color2: Optional[str]) -> bool:
    """Recognized harmony: complementary colors or a strong table match"""
    if not color1 or not color2:
        return False
    if are_complementary(color1, color2):
        return True
    return color_compatibility(color1, color2) >= 0.8


def best_color_match(color: Optional[str], palette: Iterable[str]) -> float:
    """Highest compatibility between a color and any color in a palette"""
    scores = [color_compatibility(color, other) for other in palette]
    return max(scores) if scores else 0.5


def formality_level(product) -> int:
    """
    Formality of a product on a 1-5 scale

    Explicit product formality wins, then the style tag, then category
    keywords; anything unknown is treated as everyday wear (2).
    """
    if getattr(product, 'formality', None):
        return max(1, min(5, int(product.formality)))

    style = (product.style or '').lower()
    if style in STYLE_FORMALITY:
        return STYLE_FORMALITY[style]

    labels = f"{product.category or ''} {product.name or ''}".lower()
    for keyword, level in CATEGORY_FORMALITY_KEYWORDS:
        if keyword in labels:
            return level
    return 2


def is_luxury_brand(brand: Optional[str]) -> bool:
    return bool(brand) and brand.lower() in LUXURY_BRANDS


def season_matches(item_season: Optional[str], season: str) -> bool:
    """True when an item tagged with item_season is appropriate for season"""
    return item_season in (None, 'all', season)


def colors_in_season(colors: Set[str], season: str) -> bool:
    seasonal = SEASONAL_COLORS.get(season, set())
    return any(color in seasonal for color in colors)
