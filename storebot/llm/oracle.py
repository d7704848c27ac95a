"""
Generative-model boundary.

The pipeline treats the model as an untrusted text-in/text-out oracle: it
sends a prompt (optionally with history and an inline image) and gets back
best-effort text that every caller parses defensively.
"""
import base64
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

from openai import OpenAI

from storebot.conversation.session import ConversationMessage
from storebot.core.config import StorebotConfig, get_config
from storebot.utils.logger import get_logger

logger = get_logger("llm.oracle")


class OracleError(RuntimeError):
    """Raised when the oracle call fails or returns nothing usable."""


@dataclass(frozen=True)
class OracleImage:
    """Inline image attached to a request."""
    data: bytes
    mime_type: str = "image/jpeg"

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("utf-8")
        return f"data:{self.mime_type};base64,{encoded}"


class Oracle(Protocol):
    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        history: Optional[Sequence[ConversationMessage]] = None,
        image: Optional[OracleImage] = None,
        temperature: Optional[float] = None,
    ) -> str:
        ...


class OpenAIOracle:
    """
    Oracle backed by the OpenAI chat completions API.

    Sampling is biased toward determinism (low temperature, bounded top_p).
    top_k has no equivalent in this API and is not sent.
    """

    def __init__(self, config: Optional[StorebotConfig] = None, client: Optional[OpenAI] = None):
        self.config = config or get_config()
        # Fail fast: every stage has its own fallback, so slow retries buy nothing
        self.client = client or OpenAI(
            timeout=self.config.oracle_timeout_seconds,
            max_retries=self.config.oracle_max_retries,
        )

    def _build_messages(
        self,
        prompt: str,
        system: Optional[str],
        history: Optional[Sequence[ConversationMessage]],
        image: Optional[OracleImage],
    ) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})

        for msg in history or []:
            messages.append({"role": msg.role, "content": msg.text})

        if image is None:
            messages.append({"role": "user", "content": prompt})
        else:
            messages.append({
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": image.to_data_url()}},
                ],
            })
        return messages

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        history: Optional[Sequence[ConversationMessage]] = None,
        image: Optional[OracleImage] = None,
        temperature: Optional[float] = None,
    ) -> str:
        messages = self._build_messages(prompt, system, history, image)
        try:
            response = self.client.chat.completions.create(
                model=self.config.oracle_model,
                messages=messages,
                temperature=self.config.temperature if temperature is None else temperature,
                top_p=self.config.top_p,
            )
            text = response.choices[0].message.content or ""
        except Exception as e:
            raise OracleError(f"Oracle call failed: {e}") from e

        text = text.strip()
        if not text:
            raise OracleError("Oracle returned an empty response")
        logger.debug(f"Oracle raw output: {text[:500]}")
        return text
