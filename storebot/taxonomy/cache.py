"""
Time-expiring cache of the live category -> subcategories taxonomy.

The taxonomy is derived from the active products in the catalog so the
classifier always sees the vocabulary that actually exists. It is rebuilt
wholesale after the TTL expires; writes to the catalog do not invalidate it.
"""
import time
from typing import Callable, Dict, List, Optional, Set, Tuple

from storebot.data.catalog_store import CatalogStore
from storebot.utils.logger import get_logger

logger = get_logger("taxonomy.cache")

Taxonomy = Dict[str, List[str]]

DEFAULT_TTL_SECONDS = 3600.0

FALLBACK_TAXONOMY: Taxonomy = {
    "Bolsos y Mochilas": ["Bolsos y mochilas", "Mochila de niña", "Mochilas"],
    "Conjuntos": ["Bodies para bebé", "Conjunto de bebé", "Pijamas"],
    "Maternidad": ["Batas maternas", "Blusas de Maternidad", "Polos de maternidad"],
    "Prendas superiores": ["Polos del diario", "Polos infantiles"],
}


def build_taxonomy(store: CatalogStore) -> Taxonomy:
    """Full scan of active products, grouped and sorted per category."""
    grouped: Dict[str, Set[str]] = {}
    for product in store.scan(active=True):
        if not product.active or not product.category:
            continue
        subcategories = grouped.setdefault(product.category, set())
        if product.subcategory:
            subcategories.add(product.subcategory)
    return {category: sorted(subs) for category, subs in sorted(grouped.items())}


class TaxonomyCache:
    """
    Lazily computed taxonomy with a fixed time-to-live.

    Args:
        store: Catalog to scan
        ttl_seconds: Age after which the cached value is rebuilt
        clock: Monotonic time source (injectable for tests)
        fallback: Returned, uncached, when the scan fails
    """

    def __init__(
        self,
        store: CatalogStore,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        fallback: Optional[Taxonomy] = None,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.fallback = fallback if fallback is not None else FALLBACK_TAXONOMY
        # (taxonomy, refreshed_at) swapped as one value so readers never see a half-built entry
        self._entry: Optional[Tuple[Taxonomy, float]] = None
        self.scan_count = 0

    @property
    def last_refreshed(self) -> Optional[float]:
        entry = self._entry
        return entry[1] if entry else None

    def get(self) -> Taxonomy:
        """Return the cached taxonomy, rebuilding it if missing or expired."""
        entry = self._entry
        now = self.clock()
        if entry is not None and now - entry[1] < self.ttl_seconds:
            return entry[0]

        try:
            self.scan_count += 1
            taxonomy = build_taxonomy(self.store)
        except Exception as e:
            logger.error(f"Taxonomy scan failed, using built-in fallback: {e}")
            return {category: list(subs) for category, subs in self.fallback.items()}

        self._entry = (taxonomy, now)
        logger.info(f"Taxonomy refreshed: {list(taxonomy)}")
        return taxonomy

    def invalidate(self) -> None:
        """Drop the cached value; the next ``get`` rescans."""
        self._entry = None
        logger.info("Taxonomy cache invalidated")


# Process-wide instance
_cache: Optional[TaxonomyCache] = None


def get_taxonomy_cache(store: Optional[CatalogStore] = None, ttl_seconds: float = DEFAULT_TTL_SECONDS) -> TaxonomyCache:
    """Get (creating on first call) the process-wide taxonomy cache."""
    global _cache
    if _cache is None:
        if store is None:
            raise ValueError("A catalog store is required to create the taxonomy cache")
        _cache = TaxonomyCache(store, ttl_seconds=ttl_seconds)
    return _cache


def set_taxonomy_cache(cache: Optional[TaxonomyCache]) -> None:
    """Replace (or clear) the process-wide taxonomy cache."""
    global _cache
    _cache = cache
