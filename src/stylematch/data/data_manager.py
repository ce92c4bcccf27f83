"""
Data Manager for StyleMatch
SQLite-backed catalog gateway: products, users, orders and interactions
"""

import sqlite3
import json
import time
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Any, Iterable
from datetime import datetime
import logging

from stylematch.exceptions import CatalogUnavailable
from stylematch.data.catalog_gateway import CatalogGateway, ProductFilter
from stylematch.models.data_structures import Product, Order, OrderItem, User, InteractionEvent
from stylematch.models.fashion_rules import normalize_category

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Stay below SQLite's 999 bound-variable limit
ID_BATCH_SIZE = 900

PRODUCT_FIELDS = {
    'name', 'category', 'price', 'original_price', 'brand', 'colors', 'style', 'season',
    'rating', 'stock', 'featured', 'sizes', 'formality', 'image_url',
}


class DataManager(CatalogGateway):
    def __init__(self, db_path: str = "data/stylematch.db"):
        """
        Initialize data manager with SQLite database

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # Initialize database
        self._init_database()
        logger.info(f"DataManager initialized with database: {self.db_path}")

    def _init_database(self):
        """Create database tables if they don't exist"""
        with sqlite3.connect(self.db_path) as conn:
            conn.executescript("""
                -- Catalog products
                CREATE TABLE IF NOT EXISTS products (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    product_id TEXT UNIQUE NOT NULL,
                    name TEXT DEFAULT '',
                    category TEXT NOT NULL,          -- canonical category: 'tops', 'bottoms', 'shoes', ...
                    price REAL NOT NULL,
                    original_price REAL,             -- compare-at price for discounts
                    brand TEXT,
                    colors_json TEXT,                -- JSON array, primary color first
                    style TEXT,
                    season TEXT DEFAULT 'all',       -- 'spring', 'summer', 'fall', 'winter', 'all'
                    rating REAL,
                    stock INTEGER DEFAULT 0,
                    featured INTEGER DEFAULT 0,
                    sizes_json TEXT,
                    formality INTEGER,               -- explicit 1-5, NULL to infer
                    image_url TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT UNIQUE NOT NULL,
                    name TEXT,
                    preferences_json TEXT,           -- Stated preferences as JSON
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS orders (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    order_id TEXT UNIQUE NOT NULL,
                    user_id TEXT NOT NULL,
                    total REAL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS order_items (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    order_id TEXT NOT NULL,
                    product_id TEXT NOT NULL,
                    price REAL NOT NULL,
                    quantity INTEGER DEFAULT 1,
                    FOREIGN KEY (order_id) REFERENCES orders (order_id)
                );

                -- Interaction log (views, wishlist, cart adds, try-ons, purchases)
                CREATE TABLE IF NOT EXISTS interactions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    product_id TEXT NOT NULL,
                    event_type TEXT NOT NULL,
                    price REAL,
                    duration REAL,
                    context TEXT,
                    timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                -- Create indexes for performance
                CREATE INDEX IF NOT EXISTS idx_products_category ON products (category);
                CREATE INDEX IF NOT EXISTS idx_products_featured ON products (featured);
                CREATE INDEX IF NOT EXISTS idx_orders_user_id ON orders (user_id);
                CREATE INDEX IF NOT EXISTS idx_order_items_order_id ON order_items (order_id);
                CREATE INDEX IF NOT EXISTS idx_interactions_user_id ON interactions (user_id);
            """)

        logger.info("Database tables initialized")

    def _write(self, description: str, statements: List[Tuple[str, Any]], max_retries: int = 3) -> bool:
        """
        Run write statements in one transaction, retrying while the database is locked

        Args:
            description: What is being written, for logs
            statements: (sql, params) pairs; params may be a list of tuples for executemany

        Returns:
            True if successful, False otherwise
        """
        for attempt in range(max_retries):
            try:
                with sqlite3.connect(self.db_path, timeout=30.0) as conn:
                    for sql, params in statements:
                        if isinstance(params, list):
                            conn.executemany(sql, params)
                        else:
                            conn.execute(sql, params)
                return True
            except sqlite3.OperationalError as e:
                if "database is locked" in str(e) and attempt < max_retries - 1:
                    time.sleep(0.1 * (attempt + 1))  # Backoff before retrying
                    continue
                logger.error(f"Error {description}: {e}")
                return False
            except sqlite3.Error as e:
                logger.error(f"Error {description}: {e}")
                return False
        return False

    def _read(self, description: str, query: str, params: Iterable = ()) -> List[sqlite3.Row]:
        """Run a read query; storage failures become CatalogUnavailable"""
        try:
            with sqlite3.connect(self.db_path, timeout=30.0) as conn:
                conn.row_factory = sqlite3.Row
                return conn.execute(query, list(params)).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Error {description}: {e}")
            raise CatalogUnavailable(f"Error {description}: {e}") from e

    #
    # CRUD helper functions for 'products' object/table
    #

    def add_product(self, product: Product) -> bool:
        """
        Add or replace a product

        Args:
            product: Product snapshot to store

        Returns:
            True if successful, False otherwise
        """
        now = datetime.now().isoformat()
        return self._write(f"adding product {product.product_id}", [("""
            INSERT OR REPLACE INTO products
            (product_id, name, category, price, original_price, brand, colors_json, style, season,
             rating, stock, featured, sizes_json, formality, image_url, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, self._product_params(product, now))])

    def add_products(self, products: Iterable[Product]) -> bool:
        """Add or replace many products in one transaction"""
        now = datetime.now().isoformat()
        rows = [self._product_params(p, now) for p in products]
        if not rows:
            return True
        ok = self._write(f"adding {len(rows)} products", [("""
            INSERT OR REPLACE INTO products
            (product_id, name, category, price, original_price, brand, colors_json, style, season,
             rating, stock, featured, sizes_json, formality, image_url, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, rows)])
        if ok:
            logger.info(f"Stored {len(rows)} products")
        return ok

    def _product_params(self, product: Product, now: str) -> Tuple:
        return (
            product.product_id, product.name, product.category, product.price, product.original_price,
            product.brand, json.dumps(list(product.colors)), product.style, product.season,
            product.rating, product.stock, 1 if product.featured else 0,
            json.dumps(list(product.sizes)) if product.sizes else None, product.formality,
            product.image_url, (product.created_at.isoformat() if product.created_at else now), now,
        )

    def get_products(self, product_filter: Optional[ProductFilter] = None) -> List[Product]:
        """
        Retrieve products with optional filtering

        Args:
            product_filter: Filter criteria, all products when None

        Returns:
            List of Product objects ordered by product id

        Raises:
            CatalogUnavailable: if the database cannot be read
        """
        product_filter = product_filter or ProductFilter()
        query = "SELECT * FROM products WHERE 1=1"
        params = []

        if product_filter.category:
            query += " AND category = ?"
            params.append(normalize_category(product_filter.category))
        if product_filter.featured is not None:
            query += " AND featured = ?"
            params.append(1 if product_filter.featured else 0)
        if product_filter.in_stock_only:
            query += " AND stock > 0"
        if product_filter.season:
            query += " AND (season = ? OR season = 'all')"
            params.append(product_filter.season)
        if product_filter.search:
            query += " AND (name LIKE ? OR brand LIKE ? OR style LIKE ? OR colors_json LIKE ?)"
            params.extend([f"%{product_filter.search}%"] * 4)

        if product_filter.product_ids is None:
            query += " ORDER BY product_id"
            if product_filter.limit is not None:
                query += " LIMIT ? OFFSET ?"
                params.extend([product_filter.limit, product_filter.offset])
            elif product_filter.offset:
                query += " LIMIT -1 OFFSET ?"
                params.append(product_filter.offset)
            rows = self._read("retrieving products", query, params)
            return [self._row_to_product(row) for row in rows]

        # Process id lists in chunks to avoid SQL variable limit
        ids = list(product_filter.product_ids)
        products = []
        for i in range(0, len(ids), ID_BATCH_SIZE):
            batch_ids = ids[i:i + ID_BATCH_SIZE]
            placeholders = ','.join(['?'] * len(batch_ids))
            rows = self._read(
                f"retrieving products batch {i // ID_BATCH_SIZE}",
                f"{query} AND product_id IN ({placeholders})",
                params + batch_ids,
            )
            products.extend(self._row_to_product(row) for row in rows)

        products.sort(key=lambda p: p.product_id)
        return product_filter.page(products)

    def get_product_by_id(self, product_id: str) -> Optional[Product]:
        """Get one product, or None if it does not exist"""
        rows = self._read(f"retrieving product {product_id}",
                          "SELECT * FROM products WHERE product_id = ?", (str(product_id),))
        return self._row_to_product(rows[0]) if rows else None

    def update_product(self, product_id: str, **kwargs) -> bool:
        """
        Update fields of an existing product

        Args:
            product_id: Product identifier
            **kwargs: Fields to update (price, stock, featured, colors, ...)

        Returns:
            True if a product was updated, False otherwise
        """
        update_fields = []
        params = []

        for field, value in kwargs.items():
            if field not in PRODUCT_FIELDS:
                continue
            if field in ('colors', 'sizes'):
                update_fields.append(f"{field}_json = ?")
                params.append(json.dumps(list(value)) if value else None)
            elif field == 'category':
                update_fields.append("category = ?")
                params.append(normalize_category(value))
            elif field == 'featured':
                update_fields.append("featured = ?")
                params.append(1 if value else 0)
            else:
                update_fields.append(f"{field} = ?")
                params.append(value)

        if not update_fields:
            logger.warning(f"No valid fields provided for updating product {product_id}")
            return False

        update_fields.append("updated_at = ?")
        params.append(datetime.now().isoformat())
        params.append(product_id)  # For WHERE clause

        query = f"UPDATE products SET {', '.join(update_fields)} WHERE product_id = ?"

        try:
            with sqlite3.connect(self.db_path, timeout=30.0) as conn:
                cursor = conn.execute(query, params)
                if cursor.rowcount > 0:
                    logger.info(f"Successfully updated product {product_id}")
                    return True
                else:
                    logger.warning(f"Product {product_id} not found for update")
                    return False
        except sqlite3.Error as e:
            logger.error(f"Error updating product {product_id}: {e}")
            return False

    def delete_product(self, product_id: str) -> bool:
        """
        Delete a product

        Returns:
            True if a product was deleted, False otherwise
        """
        try:
            with sqlite3.connect(self.db_path, timeout=30.0) as conn:
                cursor = conn.execute("DELETE FROM products WHERE product_id = ?", (product_id,))
                if cursor.rowcount > 0:
                    logger.info(f"Successfully deleted product {product_id}")
                    return True
                else:
                    logger.warning(f"Product {product_id} not found for deletion")
                    return False
        except sqlite3.Error as e:
            logger.error(f"Error deleting product {product_id}: {e}")
            return False

    def _row_to_product(self, row: sqlite3.Row) -> Product:
        record = dict(row)
        record['colors'] = json.loads(record.pop('colors_json') or '[]')
        record['sizes'] = json.loads(record.pop('sizes_json') or '[]')
        record['featured'] = bool(record.get('featured'))
        return Product.from_dict(record)

    #
    # CRUD helper functions for 'users' object/table
    #

    def add_user(self, user_id: str, name: Optional[str] = None, preferences: Optional[Dict] = None) -> bool:
        """
        Add a new user

        Args:
            user_id: Unique user identifier
            name: User's name
            preferences: Stated preferences as dictionary

        Returns:
            True if successful, False otherwise
        """
        ok = self._write(f"adding user {user_id}", [("""
            INSERT OR REPLACE INTO users (user_id, name, preferences_json, created_at)
            VALUES (?, ?, ?, ?)
        """, (user_id, name, json.dumps(preferences) if preferences else None, datetime.now().isoformat()))])
        if ok:
            logger.info(f"Successfully added user {user_id}")
        return ok

    def get_user(self, user_id: str) -> Optional[User]:
        """
        Get user information

        Returns:
            User or None if not found
        """
        rows = self._read(f"retrieving user {user_id}", "SELECT * FROM users WHERE user_id = ?", (user_id,))
        if not rows:
            return None
        record = dict(rows[0])
        preferences = json.loads(record['preferences_json']) if record['preferences_json'] else {}
        return User(user_id=record['user_id'], name=record['name'], preferences=preferences)

    def update_user(self, user_id: str, name: Optional[str] = None, preferences: Optional[Dict] = None) -> bool:
        """
        Update user information

        Args:
            user_id: User identifier
            name: New name (optional)
            preferences: New preferences (optional)

        Returns:
            True if successful, False otherwise
        """
        update_fields = []
        params = []

        if name is not None:
            update_fields.append("name = ?")
            params.append(name)

        if preferences is not None:
            update_fields.append("preferences_json = ?")
            params.append(json.dumps(preferences))

        if not update_fields:
            logger.warning(f"No fields provided for updating user {user_id}")
            return False

        query = f"UPDATE users SET {', '.join(update_fields)} WHERE user_id = ?"
        params.append(user_id)

        try:
            with sqlite3.connect(self.db_path, timeout=30.0) as conn:
                cursor = conn.execute(query, params)
                if cursor.rowcount > 0:
                    logger.info(f"Successfully updated user {user_id}")
                    return True
                else:
                    logger.warning(f"User {user_id} not found for update")
                    return False
        except sqlite3.Error as e:
            logger.error(f"Error updating user {user_id}: {e}")
            return False

    #
    # CRUD helper functions for 'orders' and 'order_items' tables
    #

    def add_order(self, order: Order) -> bool:
        """
        Store an order with its items

        Returns:
            True if successful, False otherwise
        """
        statements = [
            ("DELETE FROM order_items WHERE order_id = ?", (order.order_id,)),
            ("""
                INSERT OR REPLACE INTO orders (order_id, user_id, total, created_at)
                VALUES (?, ?, ?, ?)
            """, (order.order_id, order.user_id, order.total, order.created_at.isoformat())),
            ("""
                INSERT INTO order_items (order_id, product_id, price, quantity)
                VALUES (?, ?, ?, ?)
            """, [(order.order_id, item.product_id, item.price, item.quantity) for item in order.items]),
        ]
        ok = self._write(f"adding order {order.order_id}", statements)
        if ok:
            logger.info(f"Successfully added order {order.order_id} with {len(order.items)} items")
        return ok

    def get_orders_by_user_id(self, user_id: str) -> List[Order]:
        """
        Get a user's orders, oldest first

        Raises:
            CatalogUnavailable: if the database cannot be read
        """
        order_rows = self._read(f"retrieving orders for {user_id}",
                                "SELECT * FROM orders WHERE user_id = ? ORDER BY created_at, order_id",
                                (user_id,))
        if not order_rows:
            return []

        item_rows = self._read(f"retrieving order items for {user_id}", """
            SELECT oi.* FROM order_items oi
            JOIN orders o ON o.order_id = oi.order_id
            WHERE o.user_id = ?
            ORDER BY oi.id
        """, (user_id,))

        items_by_order: Dict[str, List[OrderItem]] = {}
        for row in item_rows:
            items_by_order.setdefault(row['order_id'], []).append(
                OrderItem(product_id=row['product_id'], price=row['price'], quantity=row['quantity'])
            )

        return [
            Order(
                order_id=row['order_id'],
                user_id=row['user_id'],
                items=items_by_order.get(row['order_id'], []),
                created_at=datetime.fromisoformat(row['created_at']),
                total=row['total'],
            )
            for row in order_rows
        ]

    #
    # CRUD helper functions for 'interactions' table
    #

    def add_interaction(self, event: InteractionEvent) -> bool:
        """
        Append an interaction event to the log

        Returns:
            True if successful, False otherwise
        """
        return self._write(f"logging {event.event_type} for {event.user_id}", [("""
            INSERT INTO interactions (user_id, product_id, event_type, price, duration, context, timestamp)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (event.user_id, event.product_id, event.event_type, event.price, event.duration,
              event.context, event.timestamp.isoformat()))])

    def get_interactions(self, user_id: str) -> List[InteractionEvent]:
        """
        Get a user's logged interactions, oldest first

        Rows with an unknown event type are skipped with a warning.
        """
        rows = self._read(f"retrieving interactions for {user_id}",
                          "SELECT * FROM interactions WHERE user_id = ? ORDER BY timestamp, id", (user_id,))
        events = []
        for row in rows:
            try:
                events.append(InteractionEvent.from_dict(dict(row)))
            except ValueError as e:
                logger.warning(f"Skipping interaction {row['id']} for {user_id}: {e}")
        return events

    #
    # Database statistics
    #

    def get_stats(self) -> Dict:
        """Get database statistics"""
        try:
            with sqlite3.connect(self.db_path) as conn:
                stats = {}

                # Product counts by category
                cursor = conn.execute("SELECT category, COUNT(*) FROM products GROUP BY category")
                stats['products_by_category'] = dict(cursor.fetchall())

                cursor = conn.execute("SELECT COUNT(*) FROM products")
                stats['total_products'] = cursor.fetchone()[0]

                cursor = conn.execute("SELECT COUNT(*) FROM products WHERE stock > 0")
                stats['in_stock_products'] = cursor.fetchone()[0]

                cursor = conn.execute("SELECT COUNT(*) FROM users")
                stats['total_users'] = cursor.fetchone()[0]

                cursor = conn.execute("SELECT COUNT(*) FROM orders")
                stats['total_orders'] = cursor.fetchone()[0]

                cursor = conn.execute("SELECT event_type, COUNT(*) FROM interactions GROUP BY event_type")
                stats['interactions_by_type'] = dict(cursor.fetchall())

                return stats
        except sqlite3.Error as e:
            logger.error(f"Error getting stats: {e}")
            return {}
