"""
Explicit-constraint validation.

Asks the oracle whether the customer's stated color, size or price
constraints hold for each candidate. The validator only narrows; widening
back to "similar" products when none match is the controller's decision.
The oracle may also flag the products it kept as only similar.
"""
from dataclasses import dataclass
from typing import Any, List, Optional

from pydantic import BaseModel, Field, ValidationError

from storebot.core.config import StorebotConfig, get_config
from storebot.data.models import Product
from storebot.llm.oracle import Oracle, OracleError
from storebot.parsing.json_extract import ParseFailure, extract_json_object
from storebot.prompts import render
from storebot.utils.logger import get_logger

logger = get_logger("ranking.spec_validator")


@dataclass
class ValidationResult:
    products: List[Product]
    is_only_similar: bool = False


class ValidationOutput(BaseModel):
    tiene_especificaciones: bool = False
    productos_finales: List[Any] = Field(default_factory=list)
    son_similares: bool = False


def describe_for_validation(product: Product, currency: str) -> str:
    low, high = product.price_range
    price = f"{currency} {low:.2f}" if low == high else f"{currency} {low:.2f} - {currency} {high:.2f}"
    sizes = ", ".join(product.in_stock_sizes) or "sin stock"
    return (
        f"ID: {product.id} | {product.name} | Colores: {', '.join(product.colors)} | "
        f"Tallas con stock: {sizes} | Precio: {price}"
    )


def validate(
    candidates: List[Product],
    utterance: str,
    oracle: Oracle,
    config: Optional[StorebotConfig] = None,
) -> ValidationResult:
    """
    Keep the candidates that satisfy the explicit constraints in ``utterance``.

    If no constraint was stated every candidate passes. On oracle failure
    the first few candidates are kept optimistically. Never raises.
    """
    config = config or get_config()
    if not candidates:
        return ValidationResult(products=[])

    fallback = ValidationResult(products=list(candidates[:config.validator_fallback_size]))

    prompt = render(
        "validation",
        config,
        query=utterance,
        products="\n".join(describe_for_validation(p, config.currency_symbol) for p in candidates),
        max_results=config.validator_max_results,
    )

    try:
        raw = oracle.generate(prompt, temperature=config.temperature)
    except OracleError as e:
        logger.error(f"Validation oracle call failed, keeping first {len(fallback.products)}: {e}")
        return fallback

    logger.debug(f"Validation raw output: {raw}")
    parsed = extract_json_object(raw)
    if isinstance(parsed, ParseFailure):
        logger.warning(f"Unparseable validation ({parsed.reason}), keeping first {len(fallback.products)}")
        return fallback

    try:
        output = ValidationOutput.model_validate(parsed)
    except ValidationError as e:
        logger.warning(f"Malformed validation, keeping first {len(fallback.products)}: {e}")
        return fallback

    if not output.tiene_especificaciones:
        logger.info("No explicit constraints stated; all candidates pass")
        return ValidationResult(products=list(candidates))

    wanted = {str(pid).strip() for pid in output.productos_finales}
    matching = [p for p in candidates if p.id in wanted][:config.validator_max_results]
    logger.info(f"Validation kept {len(matching)} of {len(candidates)}")
    return ValidationResult(products=matching, is_only_similar=output.son_similares)
