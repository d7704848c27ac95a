"""
Chat controller.

Runs one customer message through the pipeline:

    Received -> Classified -> OffTopic | NeedsClarification | FollowUp -> Done
                           -> ProductQuery -> Searched -> Filtered -> Validated -> Synthesized -> Done

Each stage returns a typed result and owns its fallback, so a failing oracle
or store degrades the reply instead of aborting it. Nothing persists between
requests except the taxonomy cache.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from storebot.conversation.session import ConversationSession
from storebot.core.config import StorebotConfig, get_config
from storebot.data.catalog_store import CatalogStore
from storebot.data.models import Product
from storebot.llm.oracle import Oracle, OracleImage
from storebot.parsing.query_classifier import (
    FollowUp,
    Intent,
    NeedsClarification,
    OffTopic,
    ProductQuery,
    classify,
)
from storebot.prompts import render
from storebot.ranking.candidate_filter import filter_candidates
from storebot.ranking.spec_validator import ValidationResult, validate
from storebot.response.synthesizer import (
    clarification_reply,
    no_results_reply,
    off_topic_reply,
    synthesize,
)
from storebot.search.structured_search import SearchFilter, StructuredSearch, expand_terms
from storebot.taxonomy.cache import Taxonomy, TaxonomyCache
from storebot.utils.logger import get_logger

logger = get_logger("core.controller")

# Upper bound on concurrent per-category searches for one request
MAX_SEARCH_WORKERS = 4


class Stage(str, Enum):
    RECEIVED = "received"
    CLASSIFIED = "classified"
    SEARCHED = "searched"
    FILTERED = "filtered"
    VALIDATED = "validated"
    SYNTHESIZED = "synthesized"
    DONE = "done"


@dataclass
class ChatReply:
    """Result of one pass through the pipeline."""
    response_type: str  # 'off_topic', 'clarification', 'follow_up', 'products', 'no_results' or 'error'
    message: str
    product_ids: List[str] = field(default_factory=list)
    is_only_similar: bool = False
    categories: List[str] = field(default_factory=list)
    stages: List[Stage] = field(default_factory=list)


def merge_unique(*groups: List[Product]) -> List[Product]:
    """Concatenate product lists, first occurrence of each id wins."""
    seen = set()
    merged = []
    for group in groups:
        for product in group:
            if product.id in seen:
                continue
            seen.add(product.id)
            merged.append(product)
    return merged


def plan_searches(query: ProductQuery, taxonomy: Taxonomy, limit: int) -> List[SearchFilter]:
    """
    One filter per named subcategory (scoped to its parent category when the
    taxonomy knows it) plus one per named category with no subcategory named.
    """
    parents: Dict[str, str] = {}
    for category, subcategories in taxonomy.items():
        for subcategory in subcategories:
            parents.setdefault(subcategory, category)

    filters: List[SearchFilter] = []
    covered = set()
    for subcategory in query.subcategories:
        parent = parents.get(subcategory)
        if parent is not None:
            covered.add(parent)
        filters.append(SearchFilter(category=parent, subcategory=subcategory, limit=limit))

    for category in query.categories:
        if category not in covered:
            filters.append(SearchFilter(category=category, limit=limit))
    return filters


class ChatController:
    """
    Request pipeline for the storefront assistant.

    Args:
        store: Catalog read interface
        oracle: Generative oracle
        taxonomy_cache: Shared taxonomy cache
        config: Configuration (defaults to the global one)
    """

    def __init__(
        self,
        store: CatalogStore,
        oracle: Oracle,
        taxonomy_cache: TaxonomyCache,
        config: Optional[StorebotConfig] = None,
    ):
        self.config = config or get_config()
        self.store = store
        self.oracle = oracle
        self.taxonomy_cache = taxonomy_cache
        self.search = StructuredSearch(store, default_limit=self.config.search_default_limit)

        logger.info(f"Chat controller initialized: model={self.config.oracle_model}")

    def respond(
        self,
        session: ConversationSession,
        utterance: str,
        image: Optional[OracleImage] = None,
    ) -> ChatReply:
        """
        Answer one customer message.

        Args:
            session: Prior conversation, supplied by the caller
            utterance: The new message
            image: Optional attached photo

        Returns:
            ChatReply. Never raises.
        """
        logger.info(f"Processing message: {utterance[:100]}")
        stages = [Stage.RECEIVED]
        try:
            reply = self._run(session, utterance, image, stages)
        except Exception as e:
            logger.exception(f"Unhandled pipeline error: {e}")
            reply = ChatReply(response_type="error", message=render("error", self.config))
        stages.append(Stage.DONE)
        reply.stages = stages
        logger.info(f"Reply type={reply.response_type} products={reply.product_ids}")
        return reply

    # ------------------------------------------------------------------ #
    # Stages
    # ------------------------------------------------------------------ #

    def _run(
        self,
        session: ConversationSession,
        utterance: str,
        image: Optional[OracleImage],
        stages: List[Stage],
    ) -> ChatReply:
        taxonomy = self.taxonomy_cache.get()
        intent = classify(
            utterance,
            session,
            taxonomy,
            self.oracle,
            image=image,
            shown_names=self._shown_names(session),
            config=self.config,
        )
        stages.append(Stage.CLASSIFIED)

        if isinstance(intent, OffTopic):
            message = off_topic_reply(utterance, session, self.oracle, image=image, config=self.config)
            return ChatReply(response_type="off_topic", message=message)

        if isinstance(intent, NeedsClarification):
            message = clarification_reply(intent.suggested_question, self.config)
            return ChatReply(response_type="clarification", message=message)

        if isinstance(intent, FollowUp):
            reply = self._follow_up(intent, utterance, stages)
            if reply is not None:
                return reply
            intent = ProductQuery()

        return self._product_query(intent, utterance, taxonomy, stages)

    def _follow_up(self, intent: FollowUp, utterance: str, stages: List[Stage]) -> Optional[ChatReply]:
        products = self._resolve(intent.referenced_product_ids)
        if not products:
            logger.warning(
                f"None of the referenced products {intent.referenced_product_ids} resolved; searching instead"
            )
            return None

        message = synthesize(products, False, utterance, self.oracle, self.config)
        stages.append(Stage.SYNTHESIZED)
        return ChatReply(
            response_type="follow_up",
            message=message,
            product_ids=[p.id for p in products],
        )

    def _product_query(
        self,
        query: ProductQuery,
        utterance: str,
        taxonomy: Taxonomy,
        stages: List[Stage],
    ) -> ChatReply:
        candidates = self._search_candidates(query, utterance, taxonomy)
        stages.append(Stage.SEARCHED)

        if not candidates:
            categories = list(taxonomy)[:self.config.max_suggested_categories]
            return ChatReply(
                response_type="no_results",
                message=no_results_reply(utterance, taxonomy, self.config),
                categories=categories,
            )

        filtered = filter_candidates(candidates, utterance, self.oracle, self.config)
        stages.append(Stage.FILTERED)

        validated = validate(filtered, utterance, self.oracle, self.config)
        stages.append(Stage.VALIDATED)
        if not validated.products:
            # Nothing met the stated constraints; show the closest matches instead
            validated = ValidationResult(
                products=filtered[:self.config.similar_results_size],
                is_only_similar=True,
            )
            logger.info(f"No exact matches; showing {len(validated.products)} similar products")

        message = synthesize(
            validated.products, validated.is_only_similar, utterance, self.oracle, self.config
        )
        stages.append(Stage.SYNTHESIZED)
        return ChatReply(
            response_type="products",
            message=message,
            product_ids=[p.id for p in validated.products],
            is_only_similar=validated.is_only_similar,
            categories=list(query.categories),
        )

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _search_candidates(self, query: ProductQuery, utterance: str, taxonomy: Taxonomy) -> List[Product]:
        filters = plan_searches(query, taxonomy, self.config.category_search_limit)

        results: List[List[Product]] = []
        if len(filters) == 1:
            results.append(self.search.search(filters[0]))
        elif filters:
            # Independent reads; map() keeps the plan order for the merge
            with ThreadPoolExecutor(max_workers=min(len(filters), MAX_SEARCH_WORKERS)) as pool:
                results.extend(pool.map(self.search.search, filters))

        candidates = merge_unique(*results)
        logger.info(f"Category searches ({len(filters)}) returned {len(candidates)} candidates")

        if len(candidates) < self.config.min_candidates_before_text_search and expand_terms(utterance):
            text_hits = self.search.search(
                SearchFilter(text=utterance, limit=self.config.text_search_limit)
            )
            candidates = merge_unique(candidates, text_hits)
            logger.info(f"Text search widened candidates to {len(candidates)}")

        return candidates

    def _resolve(self, product_ids: List[str]) -> List[Product]:
        """Point-get each id; missing or failing ids are dropped."""
        products = []
        for product_id in product_ids:
            try:
                product = self.store.get(product_id)
            except Exception as e:
                logger.error(f"Failed to load product {product_id}: {e}")
                continue
            if product is not None and product.active:
                products.append(product)
        return products

    def _shown_names(self, session: ConversationSession) -> Optional[List[str]]:
        if not session.has_shown_products:
            return None
        return [p.name for p in self._resolve(list(session.last_shown_product_ids))] or None


def create_controller(
    store: Optional[CatalogStore] = None,
    oracle: Optional[Oracle] = None,
    config: Optional[StorebotConfig] = None,
    taxonomy_cache: Optional[TaxonomyCache] = None,
) -> ChatController:
    """
    Build a controller wired to the configured backends.

    Defaults: the SQLite catalog at ``config.catalog_db_path``, the OpenAI
    oracle, and a taxonomy cache with the configured TTL.
    """
    config = config or get_config()
    if store is None:
        from storebot.data.catalog_store import LocalCatalogStore
        store = LocalCatalogStore(config.catalog_db_path)
    if oracle is None:
        from storebot.llm.oracle import OpenAIOracle
        oracle = OpenAIOracle(config)
    if taxonomy_cache is None:
        taxonomy_cache = TaxonomyCache(store, ttl_seconds=config.taxonomy_ttl_seconds)
    return ChatController(store, oracle, taxonomy_cache, config)
