"""
Shared test data for StyleMatch tests
"""

from datetime import datetime, timedelta
from typing import List

import numpy as np

from stylematch.models.data_structures import Product, InteractionEvent, Order, OrderItem

# Mid-summer request time so seasonal tables are predictable
WHEN = datetime(2024, 7, 15, 12, 0, 0)


def make_product(product_id: str,
                 category: str,
                 price: float = 100.0,
                 colors=('black',),
                 style: str = 'casual',
                 season: str = 'all',
                 rating: float = 4.0,
                 stock: int = 10,
                 featured: bool = False,
                 brand: str = None,
                 **kwargs) -> Product:
    return Product(
        product_id=product_id,
        category=category,
        price=price,
        colors=tuple(colors),
        style=style,
        season=season,
        rating=rating,
        stock=stock,
        featured=featured,
        brand=brand,
        name=kwargs.pop('name', f"{style} {category}"),
        **kwargs,
    )


def sample_catalog() -> List[Product]:
    """Small catalog spanning every outfit slot"""
    return [
        make_product("top_001", "tops", 45.0, ('white',), 'casual', brand='Basics'),
        make_product("top_002", "shirt", 80.0, ('navy',), 'smart-casual', brand='Oxford & Co'),
        make_product("top_003", "tops", 120.0, ('red',), 'casual', 'summer', rating=4.6, featured=True),
        make_product("top_004", "blouse", 150.0, ('black',), 'elegant', rating=4.8),
        make_product("top_005", "tops", 60.0, ('green',), 'bohemian', 'spring', rating=3.5),
        make_product("bottom_001", "jeans", 90.0, ('blue',), 'casual', brand='Basics'),
        make_product("bottom_002", "trousers", 140.0, ('black',), 'business', rating=4.4),
        make_product("bottom_003", "shorts", 40.0, ('khaki',), 'casual', 'summer'),
        make_product("bottom_004", "skirt", 70.0, ('navy',), 'classic', rating=4.1),
        make_product("shoes_001", "sneakers", 110.0, ('white',), 'casual', rating=4.7),
        make_product("shoes_002", "loafers", 180.0, ('brown',), 'smart-casual'),
        make_product("shoes_003", "sandals", 55.0, ('brown',), 'casual', 'summer', featured=True),
        make_product("outer_001", "jacket", 220.0, ('navy',), 'classic', 'fall'),
        make_product("outer_002", "coat", 300.0, ('gray',), 'formal', 'winter', rating=4.9),
        make_product("acc_001", "belt", 35.0, ('brown',), 'classic'),
        make_product("acc_002", "scarf", 30.0, ('red',), 'casual', 'winter'),
        make_product("dress_001", "dress", 160.0, ('black',), 'elegant', 'summer', rating=4.5),
        make_product("sold_out_001", "tops", 70.0, ('black',), 'casual', stock=0, rating=5.0),
    ]


def make_event(user_id: str, product_id: str, event_type: str = 'view', days_ago: float = 1.0) -> InteractionEvent:
    return InteractionEvent(
        user_id=user_id,
        product_id=product_id,
        event_type=event_type,
        timestamp=WHEN - timedelta(days=days_ago),
    )


def make_order(order_id: str, user_id: str, products: List[Product], days_ago: float = 10.0) -> Order:
    return Order(
        order_id=order_id,
        user_id=user_id,
        items=[OrderItem(product_id=p.product_id, price=p.price) for p in products],
        created_at=WHEN - timedelta(days=days_ago),
    )


def random_feature_matrix(rows: int, dim: int = 50, seed: int = 7) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.random((rows, dim))
