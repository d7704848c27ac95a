"""
Query classifier.

Turns the customer's utterance plus recent conversation into a structured
intent, constrained to the live taxonomy:

1. OffTopic - not about catalog products
2. FollowUp - refers to the products shown last
3. NeedsClarification - a product request too vague to search
4. ProductQuery - searchable, with one or more candidate categories

Malformed oracle output fails open to an unconstrained ProductQuery so a
real product question is never dropped.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from storebot.conversation.markers import strip_markers
from storebot.conversation.session import ASSISTANT, ConversationSession
from storebot.core.config import StorebotConfig, get_config
from storebot.llm.oracle import Oracle, OracleError, OracleImage
from storebot.parsing.json_extract import ParseFailure, extract_json_object
from storebot.prompts import render
from storebot.taxonomy.cache import Taxonomy
from storebot.utils.logger import get_logger

logger = get_logger("parsing.query_classifier")


# ---------------------------------------------------------------------------
# Intents
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OffTopic:
    pass


@dataclass(frozen=True)
class FollowUp:
    referenced_product_ids: List[str]


@dataclass(frozen=True)
class NeedsClarification:
    suggested_question: str


@dataclass(frozen=True)
class ProductQuery:
    categories: List[str] = field(default_factory=list)
    subcategories: List[str] = field(default_factory=list)

    @property
    def is_unconstrained(self) -> bool:
        return not self.categories and not self.subcategories


Intent = Union[OffTopic, FollowUp, NeedsClarification, ProductQuery]


class ClassificationOutput(BaseModel):
    """Shape the oracle is asked to return."""
    intent: str
    categories: List[str] = Field(default_factory=list)
    subcategories: List[str] = Field(default_factory=list)
    clarification_question: Optional[str] = ""

    @field_validator("intent")
    @classmethod
    def _normalize_intent(cls, value: str) -> str:
        value = value.strip().lower().replace("-", "_").replace(" ", "_")
        if value not in {"off_topic", "follow_up", "needs_clarification", "product_query"}:
            raise ValueError(f"unknown intent {value!r}")
        return value

    @field_validator("clarification_question", mode="before")
    @classmethod
    def _null_question(cls, value):
        return "" if value is None else value

    @field_validator("categories", "subcategories", mode="before")
    @classmethod
    def _coerce_names(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        names = []
        for item in value:
            if isinstance(item, str) and item.strip() and item.strip() not in names:
                names.append(item.strip())
        return names


# ---------------------------------------------------------------------------
# Prompt context
# ---------------------------------------------------------------------------

def format_taxonomy(taxonomy: Taxonomy) -> str:
    if not taxonomy:
        return "(sin categorías)"
    return "\n".join(f"- {category}: [{', '.join(subs)}]" for category, subs in taxonomy.items())


def format_history(session: ConversationSession, turns: int) -> str:
    lines = []
    for msg in session.recent(turns):
        speaker = "Asistente" if msg.role == ASSISTANT else "Cliente"
        suffix = " [imagen adjunta]" if msg.has_image else ""
        lines.append(f"{speaker}: {strip_markers(msg.text)}{suffix}")
    return "\n".join(lines) if lines else "(sin historial)"


def format_shown_products(session: ConversationSession, shown_names: Optional[List[str]] = None) -> str:
    if not session.has_shown_products:
        return "(ninguno)"
    if shown_names:
        return ", ".join(shown_names)
    return ", ".join(session.last_shown_product_ids)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def interpret(output: ClassificationOutput, session: ConversationSession) -> Intent:
    """Map validated oracle output onto an Intent."""
    if output.intent == "off_topic":
        return OffTopic()

    if output.intent == "follow_up":
        if session.has_shown_products:
            return FollowUp(referenced_product_ids=list(session.last_shown_product_ids))
        # Nothing was shown, so there is nothing to follow up on
        logger.info("Follow-up without shown products; treating as product query")
        return ProductQuery(categories=output.categories, subcategories=output.subcategories)

    if output.intent == "needs_clarification":
        question = output.clarification_question.strip()
        return NeedsClarification(suggested_question=question)

    return ProductQuery(categories=output.categories, subcategories=output.subcategories)


def classify(
    utterance: str,
    session: ConversationSession,
    taxonomy: Taxonomy,
    oracle: Oracle,
    image: Optional[OracleImage] = None,
    shown_names: Optional[List[str]] = None,
    config: Optional[StorebotConfig] = None,
) -> Intent:
    """
    Classify a customer utterance.

    Args:
        utterance: The customer's latest message
        session: Prior conversation (not including ``utterance``)
        taxonomy: Live category -> subcategories vocabulary
        oracle: Generative oracle
        image: Optional photo attached to the message
        shown_names: Names of the products shown last, for prompt context
        config: Configuration (defaults to the global one)

    Returns:
        The Intent. Never raises.
    """
    config = config or get_config()

    prompt = render(
        "classification",
        config,
        store_name=config.store_info.get("name", ""),
        taxonomy=format_taxonomy(taxonomy),
        history=format_history(session, config.classifier_history_turns),
        shown_products=format_shown_products(session, shown_names),
        query=utterance,
    )

    try:
        raw = oracle.generate(prompt, image=image, temperature=config.temperature)
    except OracleError as e:
        logger.error(f"Classification oracle call failed, defaulting to product query: {e}")
        return ProductQuery()

    logger.debug(f"Classification raw output: {raw}")
    parsed = extract_json_object(raw)
    if isinstance(parsed, ParseFailure):
        logger.warning(f"Unparseable classification ({parsed.reason}), defaulting to product query")
        return ProductQuery()

    try:
        output = ClassificationOutput.model_validate(parsed)
    except ValidationError as e:
        logger.warning(f"Malformed classification, defaulting to product query: {e}")
        return ProductQuery()

    intent = interpret(output, session)
    logger.info(f"Classified {utterance[:80]!r} as {intent}")
    return intent
