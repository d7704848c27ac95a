"""
Structured search tests.

Covers term normalization, client-side filters, ranking determinism and
the never-raise contract.
"""

from unittest.mock import MagicMock

from storebot.core.config import StorebotConfig
from storebot.core.controller import ChatController
from storebot.data.catalog_store import CatalogStoreError, InMemoryCatalogStore
from storebot.search.structured_search import (
    SearchFilter,
    StructuredSearch,
    expand_terms,
    filter_by_color,
    filter_by_size,
    filter_by_text,
    normalize_text,
    relevance_score,
)
from storebot.taxonomy.cache import TaxonomyCache


# ============================================================================
# Text helpers
# ============================================================================

class TestTextHelpers:
    def test_normalize_strips_accents_and_case(self):
        assert normalize_text("  Bebé NIÑA ") == "bebe nina"

    def test_expand_terms_adds_synonyms(self):
        terms = expand_terms("bolso")
        assert terms[0] == "bolso"
        assert "cartera" in terms and "mochila" in terms

    def test_expand_terms_is_accent_insensitive(self):
        assert expand_terms("bebé") == expand_terms("bebe")
        assert "baby" in expand_terms("BEBÉ")

    def test_expand_terms_drops_stopwords_and_punctuation(self):
        assert expand_terms("¿tienen mochilas para niña?")[:2] == ["mochilas", "nina"]
        assert "para" not in expand_terms("ropa para bebé")

    def test_expand_terms_deduplicates(self):
        terms = expand_terms("mochila mochila bolso")
        assert len(terms) == len(set(terms))


# ============================================================================
# Filters
# ============================================================================

class TestFilters:
    def test_text_filter_matches_any_term(self, catalog):
        products = catalog.query()
        names = {p.name for p in filter_by_text(products, "unicornio dinosaurio")}
        assert names == {"Mochila Niña Unicornio"}

    def test_text_filter_ignores_accents(self, catalog):
        names = {p.name for p in filter_by_text(catalog.query(), "bebe")}
        assert "Baby Onesie" in names

    def test_color_filter_is_substring_and_case_insensitive(self, catalog):
        names = {p.name for p in filter_by_color(catalog.query(), "ROJ")}
        assert names == {"Blusa de Maternidad Lino"}

    def test_size_filter_requires_positive_stock(self, catalog):
        products = catalog.query()
        assert {p.id for p in filter_by_size(products, "4")} == {"pijama-1"}
        assert filter_by_size(products, "6") == []

    def test_relevance_bonuses(self, onesie):
        base = relevance_score(onesie, SearchFilter())
        assert relevance_score(onesie, SearchFilter(text="onesie")) == base + 10
        assert relevance_score(onesie, SearchFilter(category="Conjuntos")) == base + 5


# ============================================================================
# Search
# ============================================================================

class TestStructuredSearch:
    def test_equality_search_returns_active_only(self, catalog):
        search = StructuredSearch(catalog)
        result = search.search(SearchFilter(category="Prendas superiores", limit=10))
        assert result == []

    def test_results_ranked_by_stock(self, many_bodies):
        search = StructuredSearch(InMemoryCatalogStore(many_bodies))
        result = search.search(SearchFilter(subcategory="Bodies para bebé", limit=5))
        assert [p.id for p in result] == ["body-10", "body-9", "body-8", "body-7", "body-6"]

    def test_search_is_deterministic(self, many_bodies):
        search = StructuredSearch(InMemoryCatalogStore(many_bodies))
        search_filter = SearchFilter(category="Conjuntos", text="body", limit=20)
        first = [p.id for p in search.search(search_filter)]
        second = [p.id for p in search.search(search_filter)]
        assert first == second

    def test_equal_scores_keep_store_order(self, make_product):
        store = InMemoryCatalogStore([
            make_product("old", "Body", sizes=(("M", 2, 1.0),), age_days=5),
            make_product("new", "Body", sizes=(("M", 2, 1.0),), age_days=1),
        ])
        result = StructuredSearch(store).search(SearchFilter(limit=5))
        assert [p.id for p in result] == ["new", "old"]

    def test_text_miss_falls_back_to_equality_results(self, catalog):
        search = StructuredSearch(catalog)
        result = search.search(SearchFilter(category="Maternidad", text="zapatillas", limit=5))
        assert [p.id for p in result] == ["blusa-1"]

    def test_text_only_miss_returns_nothing(self, catalog):
        assert StructuredSearch(catalog).search(SearchFilter(text="zapatillas", limit=5)) == []

    def test_color_and_size_filters_combine(self, catalog):
        search = StructuredSearch(catalog)
        assert search.search(SearchFilter(color="rojo", size="M", limit=5))[0].id == "blusa-1"
        assert search.search(SearchFilter(color="rojo", size="XL", limit=5)) == []

    def test_store_failure_returns_empty(self):
        store = MagicMock()
        store.query.side_effect = CatalogStoreError("down")
        assert StructuredSearch(store).search(SearchFilter(category="Conjuntos")) == []

    def test_overfetches_for_client_side_filters(self):
        store = MagicMock()
        store.query.return_value = []
        StructuredSearch(store).search(SearchFilter(category="Conjuntos", limit=3))
        assert store.query.call_args.kwargs["limit"] == 6

    def test_filter_without_limit_uses_searcher_default(self, many_bodies):
        search = StructuredSearch(InMemoryCatalogStore(many_bodies), default_limit=5)
        result = search.search(SearchFilter(subcategory="Bodies para bebé"))
        assert [p.id for p in result] == ["body-10", "body-9", "body-8", "body-7", "body-6"]

    def test_controller_uses_configured_default_limit(self, catalog, stub_oracle, fake_clock):
        config = StorebotConfig(search_default_limit=7)
        controller = ChatController(catalog, stub_oracle(), TaxonomyCache(catalog, clock=fake_clock), config)
        assert controller.search.default_limit == 7


class TestConvenienceQueries:
    def test_search_by_category(self, catalog):
        result = StructuredSearch(catalog).search_by_category("Conjuntos")
        assert {p.id for p in result} == {"onesie-1", "pijama-1"}

    def test_recommended_prefers_stock(self, catalog):
        result = StructuredSearch(catalog).recommended(limit=2)
        assert [p.id for p in result] == ["mochila-1", "onesie-1"]

    def test_similar_to_excludes_the_product(self, catalog, onesie):
        result = StructuredSearch(catalog).similar_to(onesie)
        assert [p.id for p in result] == ["pijama-1"]
