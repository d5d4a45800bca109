"""
Collaborator Providers

The engine never fetches its own inputs. Hosts (HTTP handler, CLI, tests)
pull catalogs, deals and preferences through these interfaces and pass the
typed records in.

Implementations:
- InMemoryStore: records held in memory, loadable from a JSON fixture
- SQLiteStore: SQLite-backed store with a read-through price cache
"""

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .errors import InvalidArgument
from .price_cache import PriceCache
from .schema import Deal, Identifier, RetailerProduct, UserPreferences, utc_now, validate_identifier

logger = logging.getLogger(__name__)


def _retailer_key(retailer_id: Identifier) -> str:
    return str(validate_identifier(retailer_id, "retailer id")).strip().lower()


class CatalogProvider(ABC):
    @abstractmethod
    def get_products_for_retailer(self, retailer_id: Identifier) -> List[RetailerProduct]:
        pass


class DealsProvider(ABC):
    @abstractmethod
    def get_active_deals(
        self,
        retailer_id: Optional[Identifier] = None,
        now: Optional[datetime] = None,
    ) -> List[Deal]:
        pass


class PreferencesProvider(ABC):
    @abstractmethod
    def get_user_preferences(self, user_id: Identifier) -> Optional[UserPreferences]:
        pass


class InMemoryStore(CatalogProvider, DealsProvider, PreferencesProvider):
    """
    Dictionary-backed provider for all three collaborator interfaces.

    Example:
        store = InMemoryStore.from_json("fixtures/walmart.json")
        products = store.get_products_for_retailer(1)
    """

    def __init__(
        self,
        products: Optional[Dict[Identifier, Iterable[RetailerProduct]]] = None,
        deals: Optional[Iterable[Deal]] = None,
        preferences: Optional[Dict[Identifier, UserPreferences]] = None,
    ):
        self._products: Dict[str, List[RetailerProduct]] = {
            _retailer_key(rid): list(items) for rid, items in (products or {}).items()
        }
        self._deals: List[Deal] = list(deals or [])
        self._preferences: Dict[str, UserPreferences] = {
            str(uid): prefs for uid, prefs in (preferences or {}).items()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryStore":
        """
        Build a store from fixture data.

        Expected shape:
            {
                "retailers": {"1": [{"id": 1, "name": "...", "price": 349}]},
                "deals": [{"id": 1, "product_name": "...", ...}],
                "preferences": {"42": {"prefer_organic": true}}
            }
        """
        if not isinstance(data, dict):
            raise InvalidArgument("Fixture root must be an object")
        products = {
            rid: [RetailerProduct.from_dict(p) for p in items]
            for rid, items in (data.get('retailers') or {}).items()
        }
        deals = [Deal.from_dict(d) for d in data.get('deals') or []]
        preferences = {
            uid: UserPreferences.from_dict(p)
            for uid, p in (data.get('preferences') or {}).items()
        }
        return cls(products, deals, preferences)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "InMemoryStore":
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        store = cls.from_dict(data)
        logger.info(
            f"Loaded fixture {path}: {sum(len(p) for p in store._products.values())} products, "
            f"{len(store._deals)} deals"
        )
        return store

    def add_product(self, retailer_id: Identifier, product: RetailerProduct):
        self._products.setdefault(_retailer_key(retailer_id), []).append(product)

    def add_deal(self, deal: Deal):
        self._deals.append(deal)

    def set_user_preferences(self, user_id: Identifier, preferences: UserPreferences):
        self._preferences[str(user_id)] = preferences

    def get_products_for_retailer(self, retailer_id: Identifier) -> List[RetailerProduct]:
        return list(self._products.get(_retailer_key(retailer_id), []))

    def get_active_deals(
        self,
        retailer_id: Optional[Identifier] = None,
        now: Optional[datetime] = None,
    ) -> List[Deal]:
        now = now or utc_now()
        key = _retailer_key(retailer_id) if retailer_id is not None else None
        return [
            d for d in self._deals
            if d.is_active(now) and (key is None or str(d.retailer_id).lower() == key)
        ]

    def get_user_preferences(self, user_id: Identifier) -> Optional[UserPreferences]:
        return self._preferences.get(str(user_id))


# === SQLite ===

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS retailer_products (
    retailer_id TEXT NOT NULL,
    product_id NOT NULL,
    name TEXT NOT NULL,
    price INTEGER NOT NULL,
    quantity REAL NOT NULL DEFAULT 1,
    is_name_brand INTEGER NOT NULL DEFAULT 0,
    category TEXT,
    PRIMARY KEY (retailer_id, product_id)
);

CREATE TABLE IF NOT EXISTS deals (
    deal_id NOT NULL PRIMARY KEY,
    retailer_id TEXT NOT NULL,
    product_name TEXT NOT NULL,
    regular_price INTEGER NOT NULL,
    sale_price INTEGER NOT NULL,
    start_date TEXT NOT NULL,
    end_date TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_deals_retailer ON deals(retailer_id);

CREATE TABLE IF NOT EXISTS user_preferences (
    user_id TEXT PRIMARY KEY,
    prefer_name_brand INTEGER NOT NULL DEFAULT 0,
    prefer_organic INTEGER NOT NULL DEFAULT 0,
    buy_in_bulk INTEGER NOT NULL DEFAULT 0,
    prioritize_cost_savings INTEGER NOT NULL DEFAULT 0
);
"""


class SQLiteStore(CatalogProvider, DealsProvider, PreferencesProvider):
    """
    SQLite-backed provider.

    Prices are also served individually through a PriceCache so hot
    (retailer, product) lookups skip the database.
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:", price_cache: Optional[PriceCache] = None):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.price_cache = price_cache or PriceCache()
        self._connection: Optional[sqlite3.Connection] = None

    def connect(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._connection is None:
            self._connection = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                timeout=30.0,
            )
            self._connection.row_factory = sqlite3.Row
            if self.db_path != ":memory:":
                self._connection.execute("PRAGMA journal_mode = WAL")
        return self._connection

    def close(self):
        if self._connection:
            self._connection.close()
            self._connection = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @contextmanager
    def transaction(self):
        """Context manager for transactions."""
        conn = self.connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def init_schema(self):
        conn = self.connect()
        conn.executescript(SCHEMA_SQL)
        conn.commit()
        logger.info(f"Database schema initialized: {self.db_path}")

    # === Writes ===

    def add_product(self, retailer_id: Identifier, product: RetailerProduct):
        key = _retailer_key(retailer_id)
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO retailer_products
                (retailer_id, product_id, name, price, quantity, is_name_brand, category)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (key, product.id, product.name, product.price, product.quantity,
                 int(product.is_name_brand), product.category),
            )
        self.price_cache.invalidate(key, product.id)

    def update_price(self, retailer_id: Identifier, product_id: Identifier, price: int):
        key = _retailer_key(retailer_id)
        with self.transaction() as conn:
            cur = conn.execute(
                "UPDATE retailer_products SET price = ? WHERE retailer_id = ? AND product_id = ?",
                (price, key, product_id),
            )
            if cur.rowcount == 0:
                raise InvalidArgument(f"Unknown product {product_id!r} for retailer {retailer_id!r}")
        self.price_cache.invalidate(key, product_id)

    def add_deal(self, deal: Deal):
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO deals
                (deal_id, retailer_id, product_name, regular_price, sale_price, start_date, end_date)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (deal.id, _retailer_key(deal.retailer_id), deal.product_name,
                 deal.regular_price, deal.sale_price,
                 deal.start_date.isoformat(), deal.end_date.isoformat()),
            )

    def set_user_preferences(self, user_id: Identifier, preferences: UserPreferences):
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO user_preferences
                (user_id, prefer_name_brand, prefer_organic, buy_in_bulk, prioritize_cost_savings)
                VALUES (?, ?, ?, ?, ?)
                """,
                (str(user_id), int(preferences.prefer_name_brand), int(preferences.prefer_organic),
                 int(preferences.buy_in_bulk), int(preferences.prioritize_cost_savings)),
            )

    # === Reads ===

    def get_products_for_retailer(self, retailer_id: Identifier) -> List[RetailerProduct]:
        rows = self.connect().execute(
            """
            SELECT product_id, name, price, quantity, is_name_brand, category
            FROM retailer_products WHERE retailer_id = ?
            ORDER BY name
            """,
            (_retailer_key(retailer_id),),
        ).fetchall()
        return [
            RetailerProduct.from_dict({
                'id': row['product_id'],
                'name': row['name'],
                'price': row['price'],
                'quantity': row['quantity'],
                'is_name_brand': bool(row['is_name_brand']),
                'category': row['category'],
            })
            for row in rows
        ]

    def get_active_deals(
        self,
        retailer_id: Optional[Identifier] = None,
        now: Optional[datetime] = None,
    ) -> List[Deal]:
        now = now or utc_now()
        query = "SELECT * FROM deals"
        params: tuple = ()
        if retailer_id is not None:
            query += " WHERE retailer_id = ?"
            params = (_retailer_key(retailer_id),)

        deals = []
        for row in self.connect().execute(query, params).fetchall():
            deal = Deal.from_dict({
                'id': row['deal_id'],
                'retailer_id': row['retailer_id'],
                'product_name': row['product_name'],
                'regular_price': row['regular_price'],
                'sale_price': row['sale_price'],
                'start_date': row['start_date'],
                'end_date': row['end_date'],
            })
            if deal.is_active(now):
                deals.append(deal)
        return deals

    def get_user_preferences(self, user_id: Identifier) -> Optional[UserPreferences]:
        row = self.connect().execute(
            "SELECT * FROM user_preferences WHERE user_id = ?", (str(user_id),)
        ).fetchone()
        if row is None:
            return None
        return UserPreferences.from_dict({k: bool(row[k]) for k in row.keys() if k != 'user_id'})

    def get_price(self, retailer_id: Identifier, product_id: Identifier) -> Optional[int]:
        """Current shelf price, served through the price cache."""
        key = _retailer_key(retailer_id)

        def load() -> Optional[int]:
            row = self.connect().execute(
                "SELECT price FROM retailer_products WHERE retailer_id = ? AND product_id = ?",
                (key, product_id),
            ).fetchone()
            return row['price'] if row else None

        return self.price_cache.get_or_load(key, product_id, load)
