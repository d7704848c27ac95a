"""
Structured catalog search.

First-pass, deterministic retrieval: equality filters go to the store,
then free-text, color and size filters are applied client-side and the
survivors are ranked by a simple stock/name/category score.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional
import re
import unicodedata

from storebot.data.catalog_store import CatalogStore
from storebot.data.models import Product
from storebot.utils.logger import get_logger

logger = get_logger("search.structured_search")


# Spanish/English shop vocabulary; each key also matches its listed variants
SYNONYMS: Dict[str, List[str]] = {
    "bebé": ["baby", "bebe", "angelitos", "cargador"],
    "bebe": ["baby", "bebé", "angelitos", "cargador"],
    "baby": ["bebé", "bebe", "angelitos", "cargador"],
    "bolso": ["bolso", "cartera", "mochila"],
    "cartera": ["bolso", "cartera"],
    "mochila": ["mochila", "bolso"],
    "niño": ["niño", "niña", "infantil"],
    "niña": ["niña", "niño", "infantil"],
}

# Filler words that would otherwise match almost every description
STOPWORDS = frozenset({
    "a", "al", "con", "de", "del", "el", "en", "es", "hay", "la", "las", "lo", "los",
    "me", "mi", "para", "por", "que", "quiero", "si", "su", "tienen", "tienes", "un",
    "una", "unos", "unas", "y", "busco", "algo", "hola",
})

NAME_MATCH_BONUS = 10
CATEGORY_MATCH_BONUS = 5

_EDGE_PUNCTUATION = re.compile(r"^[^\w]+|[^\w]+$", re.UNICODE)


def normalize_text(text: str) -> str:
    """Lower-case, strip accents and surrounding whitespace."""
    decomposed = unicodedata.normalize("NFD", text or "")
    without_marks = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return without_marks.casefold().strip()


def _fold_synonyms(table: Dict[str, List[str]]) -> Dict[str, List[str]]:
    folded: Dict[str, List[str]] = {}
    for key, variants in table.items():
        bucket = folded.setdefault(normalize_text(key), [])
        for variant in variants:
            variant = normalize_text(variant)
            if variant not in bucket:
                bucket.append(variant)
    return folded


_FOLDED_SYNONYMS = _fold_synonyms(SYNONYMS)


def expand_terms(text: str) -> List[str]:
    """
    Split a free-text query into normalized terms and expand synonyms.

    Returns:
        Ordered, de-duplicated list of terms (originals first, then variants)
    """
    expanded: List[str] = []
    for raw in (text or "").split():
        term = _EDGE_PUNCTUATION.sub("", normalize_text(raw))
        if len(term) < 2 or term in STOPWORDS:
            continue
        for candidate in [term, *_FOLDED_SYNONYMS.get(term, [])]:
            if candidate not in expanded:
                expanded.append(candidate)
    return expanded


@dataclass
class SearchFilter:
    """Any subset of search constraints."""
    category: Optional[str] = None
    subcategory: Optional[str] = None
    active: Optional[bool] = True
    text: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    # None means the searcher's default limit
    limit: Optional[int] = None


def filter_by_text(products: List[Product], text: str) -> List[Product]:
    """Keep products whose searchable text contains ANY expanded term."""
    terms = expand_terms(text)
    if not terms:
        return list(products)
    return [
        p for p in products
        if any(term in normalize_text(p.searchable_text()) for term in terms)
    ]


def filter_by_color(products: List[Product], color: str) -> List[Product]:
    """Case-insensitive substring match on any variation color (stock is ignored)."""
    wanted = color.casefold()
    return [
        p for p in products
        if any(wanted in c.casefold() for v in p.variations for c in v.colors)
    ]


def filter_by_size(products: List[Product], size: str) -> List[Product]:
    """Exact size label with positive stock in any variation."""
    return [
        p for p in products
        if any(offer.size == size and offer.quantity > 0 for offer in p.size_offers())
    ]


def relevance_score(product: Product, search_filter: SearchFilter) -> int:
    score = product.total_stock
    if search_filter.text and search_filter.text.casefold() in product.name.casefold():
        score += NAME_MATCH_BONUS
    if search_filter.category and product.category == search_filter.category:
        score += CATEGORY_MATCH_BONUS
    return score


def rank_products(products: List[Product], search_filter: SearchFilter) -> List[Product]:
    """Sort by descending score; ties keep store order (stable sort)."""
    return sorted(products, key=lambda p: relevance_score(p, search_filter), reverse=True)


class StructuredSearch:
    """
    Exact-match and free-text search over a catalog store.

    Never raises: store failures surface as an empty result list.
    """

    def __init__(self, store: CatalogStore, default_limit: int = 3):
        self.store = store
        self.default_limit = default_limit

    def search(self, search_filter: SearchFilter) -> List[Product]:
        """
        Run a filtered search.

        Args:
            search_filter: Constraints; equality ones are pushed to the store

        Returns:
            Up to ``search_filter.limit`` products (or the default limit), best first
        """
        limit = search_filter.limit or self.default_limit
        try:
            # Over-fetch to leave room for client-side filtering
            products = self.store.query(
                category=search_filter.category,
                subcategory=search_filter.subcategory,
                active=search_filter.active,
                limit=limit * 2,
            )
        except Exception as e:
            logger.error(f"Catalog query failed for {search_filter}: {e}")
            return []

        equality_only = products
        if search_filter.text:
            products = filter_by_text(products, search_filter.text)
            has_equality = bool(search_filter.category or search_filter.subcategory)
            if not products and has_equality and equality_only:
                logger.info("Free-text matched nothing; keeping equality-filter results")
                products = equality_only

        if search_filter.color:
            products = filter_by_color(products, search_filter.color)

        if search_filter.size:
            products = filter_by_size(products, search_filter.size)

        ranked = rank_products(products, search_filter)[:limit]
        logger.info(
            f"Search {self._describe(search_filter)} -> {len(ranked)} of {len(equality_only)} fetched"
        )
        return ranked

    # ------------------------------------------------------------------ #
    # Convenience queries
    # ------------------------------------------------------------------ #

    def search_by_category(self, category: str, limit: int = 5) -> List[Product]:
        return self.search(SearchFilter(category=category, limit=limit))

    def recommended(self, limit: int = 3) -> List[Product]:
        """Best-stocked active products."""
        products = self.search(SearchFilter(limit=10))
        return sorted(products, key=lambda p: p.total_stock, reverse=True)[:limit]

    def similar_to(self, product: Product, limit: int = 3) -> List[Product]:
        """Other products from the same category."""
        products = self.search(SearchFilter(category=product.category, limit=limit + 1))
        return [p for p in products if p.id != product.id][:limit]

    @staticmethod
    def _describe(search_filter: SearchFilter) -> str:
        parts = {
            key: value for key, value in vars(search_filter).items()
            if value not in (None, "") and key != "active"
        }
        return str(parts)
