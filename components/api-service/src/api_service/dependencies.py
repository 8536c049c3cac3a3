"""FastAPI dependencies for shared resources."""

from __future__ import annotations

from inference import ChatCompletion
from protocol_service.completion_client import CompletionBackend
from protocol_service.config import GenerationConfig
from shared.lazy_cache import lazy_singleton


@lazy_singleton
def get_chat_backend() -> CompletionBackend:
    """Provide the process-wide chat completion backend.

    The underlying chat model is created on the first completion, so resolving
    this dependency does not require provider credentials.
    """
    return ChatCompletion()


def get_generation_config() -> GenerationConfig:
    """Provide generation settings read from the environment."""
    return GenerationConfig.from_env()
