"""
Preload module for storebot.

Warms up the resources the first chat request would otherwise pay for:
- Catalog database connection
- Taxonomy cache (one full catalog scan)

Usage:
    from storebot.core.preload import preload_all
    preload_all()  # Call at server startup
"""
import time
from typing import Dict, Optional

from storebot.core.config import StorebotConfig, get_config
from storebot.data.catalog_store import CatalogStore, LocalCatalogStore
from storebot.taxonomy.cache import TaxonomyCache, get_taxonomy_cache
from storebot.utils.logger import get_logger

logger = get_logger("core.preload")


def preload_all(
    store: Optional[CatalogStore] = None,
    taxonomy_cache: Optional[TaxonomyCache] = None,
    config: Optional[StorebotConfig] = None,
) -> Dict[str, float]:
    """
    Preload the catalog store and taxonomy at startup.

    Args:
        store: Catalog to warm up (defaults to the configured SQLite store)
        taxonomy_cache: Cache to fill (defaults to the process-wide one)
        config: Configuration (defaults to the global one)

    Returns:
        Dict with timing info for each component (-1 on failure)
    """
    config = config or get_config()
    total_start = time.time()
    timings: Dict[str, float] = {}

    logger.info("=" * 60)
    logger.info("PRELOADING RESOURCES...")
    logger.info("=" * 60)

    # 1. Catalog store
    start = time.time()
    try:
        if store is None:
            store = LocalCatalogStore(config.catalog_db_path)
        store.query(limit=1)
        timings["catalog"] = time.time() - start
        logger.info(f"[OK] Catalog store ({timings['catalog']:.2f}s)")
    except Exception as e:
        logger.error(f"[FAIL] Catalog preload failed: {e}")
        timings["catalog"] = -1

    # 2. Taxonomy cache
    start = time.time()
    try:
        if taxonomy_cache is None:
            taxonomy_cache = get_taxonomy_cache(store, ttl_seconds=config.taxonomy_ttl_seconds)
        taxonomy = taxonomy_cache.get()
        timings["taxonomy"] = time.time() - start
        logger.info(f"[OK] Taxonomy - {len(taxonomy)} categories ({timings['taxonomy']:.2f}s)")
    except Exception as e:
        logger.error(f"[FAIL] Taxonomy preload failed: {e}")
        timings["taxonomy"] = -1

    timings["total"] = time.time() - total_start
    logger.info("=" * 60)
    logger.info(f"PRELOAD COMPLETE ({timings['total']:.2f}s total)")
    logger.info("=" * 60)
    return timings
