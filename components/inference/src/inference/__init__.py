"""Shared chat model inference utilities."""

from inference.chat import ChatCompletion, message_text
from inference.config import AgentConfig
from inference.model_factory import create_model_loader

__all__ = [
    "AgentConfig",
    "ChatCompletion",
    "create_model_loader",
    "message_text",
]
