"""
Assistant reply generation.

Product replies are phrased by the oracle from a strict fact sheet, and the
product-reference marker is always stamped mechanically afterwards, so the
ids the UI resolves are exactly the ids that were selected. Off-topic,
clarification and no-results replies take simpler paths and never carry a
marker.
"""
from typing import List, Optional

from storebot.conversation.markers import attach_marker, format_marker, strip_markers
from storebot.conversation.session import ConversationSession
from storebot.core.config import StorebotConfig, get_config
from storebot.data.models import Product
from storebot.llm.oracle import Oracle, OracleError, OracleImage
from storebot.prompts import get_template, render
from storebot.taxonomy.cache import Taxonomy
from storebot.utils.logger import get_logger

logger = get_logger("response.synthesizer")


def format_price(value: float, currency: str) -> str:
    return f"{currency} {value:.2f}"


def format_price_range(product: Product, currency: str) -> str:
    low, high = product.price_range
    if low == high:
        return format_price(low, currency)
    return f"{format_price(low, currency)} - {format_price(high, currency)}"


def format_fact_sheet(product: Product, currency: str) -> str:
    """
    Everything the oracle may say about one product.

    Only sizes with positive stock are listed, each with its quantity and price.
    """
    sizes = [
        f"{offer.size} ({offer.quantity} unid., {format_price(offer.price, currency)})"
        for offer in product.size_offers()
        if offer.in_stock
    ]
    return "\n".join([
        f"ID: {product.id}",
        f"Nombre: {product.name}",
        f"Precio: {format_price_range(product, currency)}",
        f"Colores: {', '.join(product.colors)}",
        f"Tallas disponibles: {'; '.join(sizes) if sizes else 'sin stock'}",
    ])


def fallback_reply(products: List[Product], is_only_similar: bool, config: StorebotConfig) -> str:
    """Template reply used when the oracle cannot phrase one."""
    items = ", ".join(
        f"{p.name} ({format_price_range(p, config.currency_symbol)})" for p in products
    )
    name = "synthesis_fallback_similar" if is_only_similar else "synthesis_fallback_exact"
    return render(name, config, items=items)


def synthesize(
    products: List[Product],
    is_only_similar: bool,
    utterance: str,
    oracle: Oracle,
    config: Optional[StorebotConfig] = None,
) -> str:
    """
    Phrase a reply about ``products``.

    The returned text always ends with one marker listing exactly the ids of
    ``products``, whatever the oracle produced. Never raises.
    """
    config = config or get_config()
    product_ids = [p.id for p in products]
    currency = config.currency_symbol

    prompt = render(
        "response",
        config,
        store_name=config.store_info.get("name", ""),
        heading=get_template("response_heading_similar" if is_only_similar else "response_heading_exact", config),
        products="\n\n".join(format_fact_sheet(p, currency) for p in products),
        query=utterance,
        word_budget=config.reply_word_budget,
        tone_instruction=get_template("tone_similar" if is_only_similar else "tone_exact", config),
        marker=format_marker(product_ids),
    )

    try:
        text = oracle.generate(prompt, temperature=config.temperature)
    except OracleError as e:
        logger.error(f"Response oracle call failed, using template reply: {e}")
        text = fallback_reply(products, is_only_similar, config)

    if not strip_markers(text):
        logger.warning("Oracle reply was only a marker, using template reply")
        text = fallback_reply(products, is_only_similar, config)

    return attach_marker(text, product_ids)


def no_results_reply(query: str, taxonomy: Taxonomy, config: Optional[StorebotConfig] = None) -> str:
    """Fixed reply suggesting a few catalog categories by name."""
    config = config or get_config()
    categories = list(taxonomy)[:config.max_suggested_categories]
    if not categories:
        return render("no_results_no_categories", config, query=query)
    return render("no_results", config, query=query, categories=", ".join(categories))


def clarification_reply(suggested_question: str, config: Optional[StorebotConfig] = None) -> str:
    config = config or get_config()
    question = strip_markers(suggested_question or "")
    return question or render("clarification_fallback", config)


def off_topic_reply(
    utterance: str,
    session: ConversationSession,
    oracle: Oracle,
    image: Optional[OracleImage] = None,
    config: Optional[StorebotConfig] = None,
) -> str:
    """General store answer; falls back to a fixed store-info reply."""
    config = config or get_config()
    try:
        text = oracle.generate(
            utterance,
            system=render("general_system", config),
            history=session.recent(config.classifier_history_turns),
            image=image,
            temperature=config.general_temperature,
        )
    except OracleError as e:
        logger.error(f"General oracle call failed, using store-info reply: {e}")
        return render("off_topic_fallback", config)

    # No products were selected, so no marker may survive
    text = strip_markers(text)
    return text or render("off_topic_fallback", config)
