"""Single-shot chat completion over a lazily loaded LangChain chat model."""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

from langchain_core.messages import HumanMessage, SystemMessage

from inference.config import AgentConfig
from inference.model_factory import create_model_loader

logger = logging.getLogger(__name__)


class PromptLike(Protocol):
    """Anything carrying system and user instructions."""

    @property
    def system(self) -> str: ...

    @property
    def user(self) -> str: ...


def message_text(message: Any) -> str:
    """Return the text of a chat model reply.

    Providers return either a plain string or a list of content parts
    (``{"type": "text", "text": ...}`` dicts or strings).
    """
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and isinstance(part.get("text"), str):
                parts.append(part["text"])
        return "".join(parts)
    return ""


class ChatCompletion:
    """Run one system+user exchange against the configured chat model.

    Args:
        model_loader: Callable returning a LangChain chat model. Defaults to a
            loader built from ``AgentConfig.from_env()``.
    """

    def __init__(
        self,
        model_loader: Callable[[], Any] | None = None,
        *,
        config: AgentConfig | None = None,
    ) -> None:
        """Store the loader; the model itself loads on first use."""
        self._model_loader = model_loader or create_model_loader(config)

    async def complete(self, prompt: PromptLike) -> str:
        """Return the model's text reply to ``prompt``."""
        model = self._model_loader()
        logger.debug(
            "Invoking chat model: system_chars=%d user_chars=%d",
            len(prompt.system),
            len(prompt.user),
        )
        reply = await model.ainvoke(
            [
                SystemMessage(content=prompt.system),
                HumanMessage(content=prompt.user),
            ]
        )
        return message_text(reply)
