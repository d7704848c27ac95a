"""
Catalog read interface and its backends.

The pipeline only ever reads the catalog through the three operations of
``CatalogStore``: point lookup, equality-filtered query and full scan.
``LocalCatalogStore`` keeps one JSON document per product in SQLite;
``InMemoryCatalogStore`` offers the same contract over a dict.
"""
from __future__ import annotations

import json
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from pydantic import ValidationError

from storebot.data.models import Product
from storebot.utils.logger import get_logger

logger = get_logger("data.catalog_store")


class CatalogStoreError(RuntimeError):
    """Raised when the catalog store cannot be read or written."""


class CatalogStore(Protocol):
    """Read interface the pipeline depends on."""

    def get(self, product_id: str) -> Optional[Product]:
        ...

    def query(
        self,
        category: Optional[str] = None,
        subcategory: Optional[str] = None,
        active: Optional[bool] = True,
        limit: Optional[int] = None,
    ) -> List[Product]:
        ...

    def scan(self, active: Optional[bool] = None) -> List[Product]:
        ...


def _format_sql_with_params(sql: str, params: Sequence[Any]) -> str:
    """Return human-readable SQL with positional parameters substituted for logging."""
    formatted = sql
    for value in params:
        formatted = formatted.replace("?", repr(value), 1)
    return formatted


def _stamp(product: Product) -> Product:
    """Assign id and creation time where the caller left them empty."""
    updates: Dict[str, Any] = {}
    if not product.id:
        updates["id"] = uuid.uuid4().hex
    if product.created_at is None:
        updates["created_at"] = datetime.now(timezone.utc)
    return product.model_copy(update=updates) if updates else product


SCHEMA = """
CREATE TABLE IF NOT EXISTS products (
    id TEXT PRIMARY KEY,
    category TEXT NOT NULL,
    subcategory TEXT NOT NULL DEFAULT '',
    active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    document TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_products_category ON products (category, subcategory, active);
"""


@dataclass
class LocalCatalogStore:
    """
    SQLite-backed document store for products.

    Args:
        db_path: Location of the database file (created on first use).
    """

    db_path: Path
    last_sql_query: Optional[str] = None  # Last executed query, formatted with params

    def __post_init__(self) -> None:
        self.db_path = Path(self.db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with self._connect() as conn:
                conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise CatalogStoreError(f"Cannot initialise catalog at {self.db_path}: {e}") from e

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _row_to_product(self, row: sqlite3.Row) -> Optional[Product]:
        try:
            return Product.from_document(row["id"], json.loads(row["document"]))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Skipping malformed product document {row['id']}: {e}")
            return None

    def _fetch(self, sql: str, params: Sequence[Any]) -> List[Product]:
        self.last_sql_query = _format_sql_with_params(sql, params)
        logger.debug(f"SQL: {self.last_sql_query}")
        try:
            with self._connect() as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise CatalogStoreError(f"Catalog query failed: {e}") from e
        products = [self._row_to_product(row) for row in rows]
        return [p for p in products if p is not None]

    # ------------------------------------------------------------------ #
    # Read interface
    # ------------------------------------------------------------------ #

    def get(self, product_id: str) -> Optional[Product]:
        products = self._fetch("SELECT * FROM products WHERE id = ?", [product_id])
        return products[0] if products else None

    def query(
        self,
        category: Optional[str] = None,
        subcategory: Optional[str] = None,
        active: Optional[bool] = True,
        limit: Optional[int] = None,
    ) -> List[Product]:
        clauses: List[str] = []
        params: List[Any] = []
        if active is not None:
            clauses.append("active = ?")
            params.append(1 if active else 0)
        if category:
            clauses.append("category = ?")
            params.append(category)
        if subcategory:
            clauses.append("subcategory = ?")
            params.append(subcategory)

        sql = "SELECT * FROM products"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at DESC, id ASC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        return self._fetch(sql, params)

    def scan(self, active: Optional[bool] = None) -> List[Product]:
        return self.query(active=active)

    # ------------------------------------------------------------------ #
    # Seeding helpers (the admin CRUD layer owns real writes)
    # ------------------------------------------------------------------ #

    def upsert(self, product: Product) -> str:
        """Insert or replace a product; returns its id."""
        product = _stamp(product)
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO products (id, category, subcategory, active, created_at, document) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        product.id,
                        product.category,
                        product.subcategory,
                        1 if product.active else 0,
                        product.created_at.isoformat(),
                        json.dumps(product.to_document(), ensure_ascii=False),
                    ),
                )
        except sqlite3.Error as e:
            raise CatalogStoreError(f"Failed to write product {product.id}: {e}") from e
        return product.id

    def upsert_many(self, products: Iterable[Product]) -> List[str]:
        return [self.upsert(product) for product in products]

    def count(self) -> int:
        try:
            with self._connect() as conn:
                return int(conn.execute("SELECT COUNT(*) FROM products").fetchone()[0])
        except sqlite3.Error as e:
            raise CatalogStoreError(f"Catalog count failed: {e}") from e


class InMemoryCatalogStore:
    """Dict-backed store with the same contract as ``LocalCatalogStore``."""

    def __init__(self, products: Optional[Iterable[Product]] = None):
        self.products: Dict[str, Product] = {}
        for product in products or []:
            self.upsert(product)

    def _ordered(self) -> List[Product]:
        def sort_key(product: Product) -> Tuple[float, str]:
            created = product.created_at.timestamp() if product.created_at else 0.0
            return (-created, product.id or "")
        return sorted(self.products.values(), key=sort_key)

    def get(self, product_id: str) -> Optional[Product]:
        return self.products.get(product_id)

    def query(
        self,
        category: Optional[str] = None,
        subcategory: Optional[str] = None,
        active: Optional[bool] = True,
        limit: Optional[int] = None,
    ) -> List[Product]:
        matches = [
            p for p in self._ordered()
            if (active is None or p.active == active)
            and (not category or p.category == category)
            and (not subcategory or p.subcategory == subcategory)
        ]
        return matches if limit is None else matches[:limit]

    def scan(self, active: Optional[bool] = None) -> List[Product]:
        return self.query(active=active)

    def upsert(self, product: Product) -> str:
        product = _stamp(product)
        self.products[product.id] = product
        return product.id

    def count(self) -> int:
        return len(self.products)
