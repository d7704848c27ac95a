"""
Oracle-assisted candidate narrowing.

Reduces a few dozen search hits to the handful that are semantically and
demographically appropriate for the query. Small sets skip the oracle;
any oracle failure falls back to the best-stocked candidates.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from storebot.core.config import StorebotConfig, get_config
from storebot.data.models import Product
from storebot.llm.oracle import Oracle, OracleError
from storebot.parsing.json_extract import ParseFailure, extract_json_object
from storebot.prompts import render
from storebot.utils.logger import get_logger

logger = get_logger("ranking.candidate_filter")


class SelectionOutput(BaseModel):
    productos_seleccionados: List[Any] = Field(default_factory=list)


def summarize(product: Product, max_chars: int) -> Dict[str, Any]:
    description = product.description or ""
    if len(description) > max_chars:
        description = description[:max_chars] + "..."
    return {
        "id": product.id,
        "name": product.name,
        "description": description,
        "category": product.category,
        "subcategory": product.subcategory,
        "total_stock": product.total_stock,
        "min_price": product.min_price,
    }


def format_candidates(products: List[Product], config: StorebotConfig) -> str:
    lines = []
    for i, product in enumerate(products, start=1):
        s = summarize(product, config.description_max_chars)
        lines.append(
            f"{i}. ID: {s['id']} | {s['name']} | {s['category']} / {s['subcategory']} | "
            f"{s['description']} | Stock: {s['total_stock']} | "
            f"Desde {config.currency_symbol} {s['min_price']:.2f}"
        )
    return "\n".join(lines)


def top_by_stock(products: List[Product], n: int) -> List[Product]:
    """Deterministic fallback: highest total stock first, ties in input order."""
    return sorted(products, key=lambda p: p.total_stock, reverse=True)[:n]


def select_by_ids(products: List[Product], selected_ids: List[Any], cap: int) -> List[Product]:
    """Keep candidates named by the oracle, in candidate order; unknown ids are ignored."""
    wanted = {str(pid).strip() for pid in selected_ids}
    return [p for p in products if p.id in wanted][:cap]


def filter_candidates(
    candidates: List[Product],
    utterance: str,
    oracle: Oracle,
    config: Optional[StorebotConfig] = None,
) -> List[Product]:
    """
    Narrow ``candidates`` to those appropriate for ``utterance``.

    Args:
        candidates: Raw search hits (de-duplicated)
        utterance: Customer query
        oracle: Generative oracle
        config: Configuration (defaults to the global one)

    Returns:
        A non-empty subset when ``candidates`` is non-empty. Never raises.
    """
    config = config or get_config()

    if len(candidates) <= config.filter_threshold:
        logger.info(f"{len(candidates)} candidates <= {config.filter_threshold}; skipping oracle filter")
        return list(candidates)

    fallback_size = config.filter_max_selection
    prompt = render(
        "candidate_filter",
        config,
        query=utterance,
        products=format_candidates(candidates, config),
        max_selection=config.filter_max_selection,
    )

    try:
        raw = oracle.generate(prompt, temperature=config.temperature)
    except OracleError as e:
        logger.error(f"Candidate filter oracle call failed, using top {fallback_size} by stock: {e}")
        return top_by_stock(candidates, fallback_size)

    logger.debug(f"Candidate filter raw output: {raw}")
    parsed = extract_json_object(raw)
    if isinstance(parsed, ParseFailure):
        logger.warning(f"Unparseable selection ({parsed.reason}), using top {fallback_size} by stock")
        return top_by_stock(candidates, fallback_size)

    try:
        output = SelectionOutput.model_validate(parsed)
    except ValidationError as e:
        logger.warning(f"Malformed selection, using top {fallback_size} by stock: {e}")
        return top_by_stock(candidates, fallback_size)

    selected = select_by_ids(candidates, output.productos_seleccionados, config.filter_max_selection)
    if not selected:
        logger.warning(f"Oracle selected no known candidates, using top {fallback_size} by stock")
        return top_by_stock(candidates, fallback_size)

    logger.info(f"Candidate filter kept {len(selected)} of {len(candidates)}")
    return selected
