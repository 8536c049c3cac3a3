"""Configuration for protocol generation."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_COMPLETION_URL = "http://localhost:8000"
DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class GenerationConfig:
    """Configuration for the generation orchestrator and completion client.

    Attributes:
        completion_base_url: Base URL of the service exposing ``/api/analyze``.
        timeout_seconds: Upper bound for one completion attempt.
    """

    completion_base_url: str = DEFAULT_COMPLETION_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive.")

    @classmethod
    def from_env(cls) -> "GenerationConfig":
        """Create config from environment variables."""
        return cls(
            completion_base_url=(
                os.getenv("PROTOCOL_COMPLETION_URL") or DEFAULT_COMPLETION_URL
            ).strip(),
            timeout_seconds=_read_float_env(
                "PROTOCOL_COMPLETION_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS
            ),
        )


def _read_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid number for {name}: {raw}") from exc
