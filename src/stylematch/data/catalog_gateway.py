"""
Catalog Gateway for StyleMatch
Read interface onto the product catalog, users, orders and interactions
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Dict, Optional, Iterable, Tuple

from stylematch.models.data_structures import Product, Order, User, InteractionEvent
from stylematch.models.fashion_rules import normalize_category, season_matches

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProductFilter:
    """Product query; unset fields do not filter"""
    category: Optional[str] = None
    featured: Optional[bool] = None
    in_stock_only: bool = False
    season: Optional[str] = None
    product_ids: Optional[Tuple[str, ...]] = None
    search: Optional[str] = None
    limit: Optional[int] = None
    offset: int = 0

    def matches(self, product: Product) -> bool:
        """True if the product passes every set criterion"""
        if self.category and product.category != normalize_category(self.category):
            return False
        if self.featured is not None and product.featured != self.featured:
            return False
        if self.in_stock_only and not product.in_stock:
            return False
        if self.season and not season_matches(product.season, self.season):
            return False
        if self.product_ids is not None and product.product_id not in self.product_ids:
            return False
        if self.search:
            term = self.search.lower()
            haystack = f"{product.name} {product.brand or ''} {product.style or ''} {' '.join(product.colors)}"
            if term not in haystack.lower():
                return False
        return True

    def page(self, products: List[Product]) -> List[Product]:
        """Apply offset and limit"""
        end = None if self.limit is None else self.offset + self.limit
        return products[self.offset:end]


class CatalogGateway(ABC):
    """
    Source of catalog and user data for the engine

    Implementations raise CatalogUnavailable when the underlying store
    cannot be read.
    """

    @abstractmethod
    def get_products(self, product_filter: Optional[ProductFilter] = None) -> List[Product]:
        pass

    @abstractmethod
    def get_product_by_id(self, product_id: str) -> Optional[Product]:
        pass

    @abstractmethod
    def get_orders_by_user_id(self, user_id: str) -> List[Order]:
        pass

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]:
        pass

    def get_interactions(self, user_id: str) -> List[InteractionEvent]:
        """Logged interaction events; stores without an event log have none"""
        return []

    def get_products_by_ids(self, product_ids: Iterable[str]) -> Dict[str, Product]:
        """Batch lookup; unknown ids are left out"""
        ids = tuple(sorted(set(product_ids)))
        if not ids:
            return {}
        return {p.product_id: p for p in self.get_products(ProductFilter(product_ids=ids))}


class InMemoryCatalogGateway(CatalogGateway):
    """Catalog gateway over in-process collections, for tests and embedding"""

    def __init__(self,
                 products: Iterable[Product] = (),
                 orders: Iterable[Order] = (),
                 users: Iterable[User] = (),
                 interactions: Iterable[InteractionEvent] = ()):
        self._lock = threading.Lock()
        self._products: Dict[str, Product] = {p.product_id: p for p in products}
        self._orders: List[Order] = list(orders)
        self._users: Dict[str, User] = {u.user_id: u for u in users}
        self._interactions: List[InteractionEvent] = list(interactions)
        logger.info(f"InMemoryCatalogGateway initialized with {len(self._products)} products")

    def get_products(self, product_filter: Optional[ProductFilter] = None) -> List[Product]:
        product_filter = product_filter or ProductFilter()
        with self._lock:
            products = [p for p in self._products.values() if product_filter.matches(p)]
        products.sort(key=lambda p: p.product_id)
        return product_filter.page(products)

    def get_product_by_id(self, product_id: str) -> Optional[Product]:
        with self._lock:
            return self._products.get(str(product_id))

    def get_orders_by_user_id(self, user_id: str) -> List[Order]:
        with self._lock:
            return [o for o in self._orders if o.user_id == user_id]

    def get_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            return self._users.get(user_id)

    def get_interactions(self, user_id: str) -> List[InteractionEvent]:
        with self._lock:
            return [e for e in self._interactions if e.user_id == user_id]

    def add_product(self, product: Product):
        """Insert or replace a product snapshot"""
        with self._lock:
            self._products[product.product_id] = product

    def add_order(self, order: Order):
        with self._lock:
            self._orders.append(order)

    def add_user(self, user: User):
        with self._lock:
            self._users[user.user_id] = user

    def add_interaction(self, event: InteractionEvent):
        with self._lock:
            self._interactions.append(event)
