"""
storebot - storefront shopping assistant

Answers customer chat messages about a clothing store's catalog:
- Oracle-based query classification against the live taxonomy
- Structured catalog search with free-text widening
- Candidate filtering and explicit-constraint validation
- Grounded replies carrying a product-reference marker
"""

from storebot.core.controller import ChatController, ChatReply, create_controller
from storebot.core.config import StorebotConfig, get_config, set_config

__all__ = [
    'ChatController',
    'ChatReply',
    'create_controller',
    'StorebotConfig',
    'get_config',
    'set_config',
]

__version__ = '0.1.0'
