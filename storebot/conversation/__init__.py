"""Conversation state and the product-reference wire format."""
from storebot.conversation.markers import attach_marker, find_marker_ids, format_marker, strip_markers
from storebot.conversation.session import ConversationMessage, ConversationSession

__all__ = [
    "attach_marker",
    "find_marker_ids",
    "format_marker",
    "strip_markers",
    "ConversationMessage",
    "ConversationSession",
]
