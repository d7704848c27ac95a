"""
Configuration management for storebot.

Loads settings from a YAML config file and provides typed access.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import os
import yaml

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()


def _project_root() -> Path:
    """Return project root (parent of storebot package)."""
    return Path(__file__).resolve().parent.parent.parent


DEFAULT_CONFIG_PATH = _project_root() / "config" / "default.yaml"


DEFAULT_STORE_INFO: Dict[str, str] = {
    "name": "Torres Jr. 2",
    "description": "tienda de ropa infantil en Sullana, Piura",
    "hours": "9:00 AM – 9:00 PM todos los días",
    "address": "Calle Grau #739, Sullana, Piura",
    "payment_methods": "Efectivo, tarjeta, Yape, Plin, transferencias",
    "exchanges": "Sí, con boleta y producto intacto",
    "specialty": "ropa de bebé, niños y niñas, ropa de mujer, maternidad y lactancia, bolsos, mochilas y cargadores de bebé",
    "not_sold": "ropa de hombre adulto, zapatos de adultos, uniformes, disfraces completos",
}


@dataclass
class StorebotConfig:
    """Configuration for the storefront assistant."""

    # Oracle (generative model) parameters
    oracle_model: str = "gpt-4o-mini"
    temperature: float = 0.1
    general_temperature: float = 0.2    # Off-topic replies are allowed a little more variety
    top_p: float = 0.8
    top_k: int = 10                     # Forwarded only to backends that accept it
    oracle_timeout_seconds: float = 20.0
    oracle_max_retries: int = 1

    # Structured search
    search_default_limit: int = 3
    category_search_limit: int = 50
    text_search_limit: int = 20
    min_candidates_before_text_search: int = 3

    # Taxonomy cache
    taxonomy_ttl_seconds: float = 3600.0

    # Candidate filter
    filter_threshold: int = 6           # At or below this, the oracle call is skipped
    filter_max_selection: int = 6
    description_max_chars: int = 150

    # Specification validator
    validator_fallback_size: int = 3
    validator_max_results: int = 4
    similar_results_size: int = 3

    # Response synthesis
    reply_word_budget: int = 40
    currency_symbol: str = "S/"
    max_suggested_categories: int = 5

    # Classifier context
    classifier_history_turns: int = 6

    # Data paths
    catalog_db: str = "data/catalog.db"

    # Store facts and prompt overrides (configuration data, not pipeline logic)
    store_info: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_STORE_INFO))
    prompt_overrides: Dict[str, str] = field(default_factory=dict)

    @property
    def catalog_db_path(self) -> Path:
        """Resolve the catalog database path ($STOREBOT_DB_PATH wins)."""
        raw = os.getenv("STOREBOT_DB_PATH") or self.catalog_db
        path = Path(raw)
        if not path.is_absolute():
            path = _project_root() / path
        return path

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "StorebotConfig":
        """Load configuration from YAML file."""
        path = config_path or DEFAULT_CONFIG_PATH
        if not path.exists():
            return cls()

        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        oracle_config = data.get('oracle', {})
        search_config = data.get('search', {})
        taxonomy_config = data.get('taxonomy', {})
        filter_config = data.get('candidate_filter', {})
        validator_config = data.get('validator', {})
        response_config = data.get('response', {})
        classifier_config = data.get('classifier', {})
        data_config = data.get('data', {})

        store_info = dict(DEFAULT_STORE_INFO)
        store_info.update(data.get('store', {}) or {})

        defaults = cls()
        return cls(
            oracle_model=os.getenv("OPENAI_MODEL") or oracle_config.get('model', defaults.oracle_model),
            temperature=oracle_config.get('temperature', defaults.temperature),
            general_temperature=oracle_config.get('general_temperature', defaults.general_temperature),
            top_p=oracle_config.get('top_p', defaults.top_p),
            top_k=oracle_config.get('top_k', defaults.top_k),
            oracle_timeout_seconds=oracle_config.get('timeout_seconds', defaults.oracle_timeout_seconds),
            oracle_max_retries=oracle_config.get('max_retries', defaults.oracle_max_retries),
            search_default_limit=search_config.get('default_limit', defaults.search_default_limit),
            category_search_limit=search_config.get('category_limit', defaults.category_search_limit),
            text_search_limit=search_config.get('text_limit', defaults.text_search_limit),
            min_candidates_before_text_search=search_config.get(
                'min_candidates_before_text_search', defaults.min_candidates_before_text_search
            ),
            taxonomy_ttl_seconds=taxonomy_config.get('ttl_seconds', defaults.taxonomy_ttl_seconds),
            filter_threshold=filter_config.get('threshold', defaults.filter_threshold),
            filter_max_selection=filter_config.get('max_selection', defaults.filter_max_selection),
            description_max_chars=filter_config.get('description_max_chars', defaults.description_max_chars),
            validator_fallback_size=validator_config.get('fallback_size', defaults.validator_fallback_size),
            validator_max_results=validator_config.get('max_results', defaults.validator_max_results),
            similar_results_size=validator_config.get('similar_results_size', defaults.similar_results_size),
            reply_word_budget=response_config.get('word_budget', defaults.reply_word_budget),
            currency_symbol=response_config.get('currency_symbol', defaults.currency_symbol),
            max_suggested_categories=response_config.get('max_suggested_categories', defaults.max_suggested_categories),
            classifier_history_turns=classifier_config.get('history_turns', defaults.classifier_history_turns),
            catalog_db=data_config.get('catalog_db', defaults.catalog_db),
            store_info=store_info,
            prompt_overrides=dict(data.get('prompts', {}) or {}),
        )


# Global config instance
_config: Optional[StorebotConfig] = None


def get_config() -> StorebotConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = StorebotConfig.from_yaml()
    return _config


def set_config(config: StorebotConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
