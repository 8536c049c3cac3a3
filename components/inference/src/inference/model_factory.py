"""Factory for creating chat model loaders.

The factory returns a lazy loader (callable). Importing this module should remain
lightweight; provider SDKs are imported only when the loader runs.
"""

from __future__ import annotations

from typing import Any, Callable

from shared.lazy_cache import lazy_singleton

from inference.config import AgentConfig


def _build_openai_model(*, model_name: str, temperature: float, max_tokens: int) -> Any:
    try:
        from langchain_openai import ChatOpenAI
    except ImportError as exc:  # pragma: no cover
        raise ImportError(
            "OpenAI backend requires langchain-openai installed."
        ) from exc

    # API key and base URL come from OPENAI_API_KEY / OPENAI_BASE_URL.
    return ChatOpenAI(
        model=model_name,
        temperature=temperature,
        max_tokens=max_tokens,
    )


def _build_gemini_model(*, model_name: str, temperature: float, max_tokens: int) -> Any:
    try:
        from langchain_google_genai import ChatGoogleGenerativeAI
    except ImportError as exc:  # pragma: no cover
        raise ImportError(
            "Gemini backend requires langchain-google-genai installed."
        ) from exc

    return ChatGoogleGenerativeAI(
        model=model_name,
        temperature=temperature,
        max_output_tokens=max_tokens,
    )


_BUILDERS: dict[str, Callable[..., Any]] = {
    "openai": _build_openai_model,
    "gemini": _build_gemini_model,
}


def create_model_loader(config: AgentConfig | None = None) -> Callable[[], Any]:
    """Create a lazy chat model loader for the configured backend.

    Args:
        config: Agent configuration. Defaults to `AgentConfig.from_env()`.

    Returns:
        Callable that loads and returns a LangChain chat model when invoked.

    Raises:
        ValueError: If the backend is not supported.
    """
    cfg = config or AgentConfig.from_env()
    builder = _BUILDERS.get(cfg.backend)
    if builder is None:
        raise ValueError(f"Unsupported MODEL_BACKEND: {cfg.backend}")

    @lazy_singleton
    def load_model() -> Any:
        return builder(
            model_name=cfg.resolved_model_name,
            temperature=cfg.temperature,
            max_tokens=cfg.max_tokens,
        )

    return load_model
