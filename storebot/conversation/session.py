"""
Conversation state supplied by the caller on every request.

The core never stores conversations. The caller passes the full history by
value; the ids of the products shown last are carried explicitly, and are
only recovered by scanning marker text when a session is built from the
wire format.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from storebot.conversation.markers import find_marker_ids

USER = "user"
ASSISTANT = "assistant"

# Wire roles as sent by the chat UI
_WIRE_ROLES = {"user": USER, "model": ASSISTANT, "assistant": ASSISTANT}


@dataclass(frozen=True)
class ConversationMessage:
    """One turn of the conversation."""
    role: str
    text: str
    has_image: bool = False

    @classmethod
    def from_wire(cls, payload: Dict[str, Any]) -> Optional["ConversationMessage"]:
        """Build from ``{role: "user"|"model", text: str}``; None if unusable."""
        if not isinstance(payload, dict):
            return None
        role = _WIRE_ROLES.get(str(payload.get("role", "")).lower())
        text = payload.get("text")
        if role is None or not isinstance(text, str):
            return None
        return cls(role=role, text=text, has_image=bool(payload.get("has_image", False)))


@dataclass(frozen=True)
class ConversationSession:
    """Ordered message history plus the products shown most recently."""
    messages: Tuple[ConversationMessage, ...] = field(default_factory=tuple)
    last_shown_product_ids: Optional[Tuple[str, ...]] = None

    @classmethod
    def from_messages(
        cls,
        messages: Iterable[ConversationMessage],
        last_shown_product_ids: Optional[Iterable[str]] = None,
    ) -> "ConversationSession":
        messages = tuple(messages)
        if last_shown_product_ids is None:
            last_shown_product_ids = _last_marker_ids(messages)
        else:
            last_shown_product_ids = tuple(last_shown_product_ids)
        return cls(messages=messages, last_shown_product_ids=last_shown_product_ids)

    @classmethod
    def from_wire(cls, history: Iterable[Dict[str, Any]]) -> "ConversationSession":
        """Parse the UI's prior-message array, skipping malformed entries."""
        messages = [ConversationMessage.from_wire(item) for item in history or []]
        return cls.from_messages(m for m in messages if m is not None)

    def recent(self, turns: int) -> List[ConversationMessage]:
        if turns <= 0:
            return []
        return list(self.messages[-turns:])

    @property
    def has_shown_products(self) -> bool:
        return bool(self.last_shown_product_ids)


def _last_marker_ids(messages: Tuple[ConversationMessage, ...]) -> Optional[Tuple[str, ...]]:
    for message in reversed(messages):
        if message.role != ASSISTANT:
            continue
        ids = find_marker_ids(message.text)
        if ids:
            return tuple(ids)
    return None
