#!/usr/bin/env python3
"""
Catalog Seeding Script
======================
Loads products from a JSON file (a list of product documents) into the
local SQLite catalog used by the chat server.

Documents follow the Product shape: name, description, category,
subcategory, active, and a list of variations, each with colors, an image
url and size offers (size, quantity, price). Documents without an "id" get
a fresh one.

Usage:
  python scripts/seed_catalog.py                          # load data/sample_catalog.json
  python scripts/seed_catalog.py --file my_catalog.json
  python scripts/seed_catalog.py --db /tmp/catalog.db --dry-run
"""

import argparse
import json
import sys
from pathlib import Path

from pydantic import ValidationError

# Allow running from repo root or scripts/ dir
_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(_ROOT))

from storebot.core.config import get_config
from storebot.data.catalog_store import CatalogStoreError, LocalCatalogStore
from storebot.data.models import Product
from storebot.utils.logger import configure_logging, get_logger

logger = get_logger("scripts.seed_catalog")

DEFAULT_FILE = _ROOT / "data" / "sample_catalog.json"


def load_products(path: Path) -> list:
    with open(path, "r", encoding="utf-8") as f:
        documents = json.load(f)
    if not isinstance(documents, list):
        raise ValueError(f"{path} must contain a JSON list of products")

    products = []
    for index, document in enumerate(documents):
        try:
            products.append(Product.model_validate(document))
        except ValidationError as e:
            logger.warning(f"Skipping document #{index} ({document.get('name', '?')}): {e}")
    return products


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed the local product catalog")
    parser.add_argument("--file", type=Path, default=DEFAULT_FILE, help="JSON list of product documents")
    parser.add_argument("--db", type=Path, default=None, help="Catalog database (default: configured path)")
    parser.add_argument("--dry-run", action="store_true", help="Validate only, write nothing")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING... (default: $LOG_LEVEL or INFO)")
    args = parser.parse_args()

    if args.log_level:
        configure_logging(args.log_level)

    products = load_products(args.file)
    logger.info(f"Loaded {len(products)} valid products from {args.file}")

    if args.dry_run:
        for product in products:
            low, high = product.price_range
            print(f"  {product.name:<40} {product.category:<20} stock={product.total_stock:<4} {low:.2f}-{high:.2f}")
        return 0

    db_path = args.db or get_config().catalog_db_path
    try:
        store = LocalCatalogStore(db_path)
        ids = store.upsert_many(products)
    except CatalogStoreError as e:
        logger.error(f"Seeding failed: {e}")
        return 1

    logger.info(f"Wrote {len(ids)} products to {db_path} ({store.count()} total)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
