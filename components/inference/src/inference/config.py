"""Configuration for the chat model backing protocol generation.

This module is shared across services to keep env var semantics consistent.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

SUPPORTED_BACKENDS = frozenset({"openai", "gemini"})

DEFAULT_MODEL_NAMES = {
    "openai": "gpt-4o-mini",
    "gemini": "gemini-2.0-flash",
}


@dataclass(frozen=True)
class AgentConfig:
    """Configuration for the chat model infrastructure.

    Attributes:
        backend: Model backend selection ("openai" or "gemini").
        model_name: Provider model identifier. Empty means the backend default.
        temperature: Sampling temperature; low values keep protocols consistent.
        max_tokens: Maximum tokens generated for a single call.
    """

    backend: str = "openai"
    model_name: str = ""
    temperature: float = 0.3
    max_tokens: int = 2500

    @property
    def resolved_model_name(self) -> str:
        """Model name with the backend default applied."""
        return self.model_name or DEFAULT_MODEL_NAMES[self.backend]

    @classmethod
    def from_env(cls) -> "AgentConfig":
        """Create AgentConfig from environment variables."""
        backend = (os.getenv("MODEL_BACKEND") or "openai").strip().lower()
        if backend not in SUPPORTED_BACKENDS:
            backend = "openai"

        raw_max_tokens = os.getenv("MODEL_MAX_TOKENS", "2500")
        try:
            max_tokens = int(raw_max_tokens)
        except ValueError:
            max_tokens = 2500
        if max_tokens <= 0:
            max_tokens = 2500

        raw_temperature = os.getenv("MODEL_TEMPERATURE", "0.3")
        try:
            temperature = float(raw_temperature)
        except ValueError:
            temperature = 0.3
        if not 0.0 <= temperature <= 2.0:
            temperature = 0.3

        return cls(
            backend=backend,
            model_name=os.getenv("MODEL_NAME", cls.model_name).strip(),
            temperature=temperature,
            max_tokens=max_tokens,
        )
