"""HTTP client for the ``/api/analyze`` completion boundary.

The boundary accepts ``{"query": <prompt>}`` and answers ``{"result": <text>}``
on success or ``{"error": <message>}`` with a 4xx/5xx status. The client makes
exactly one request per call; recovery is the orchestrator's job.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from protocol_service.config import GenerationConfig
from protocol_service.errors import (
    CompletionEmptyResponseError,
    CompletionStatusError,
    CompletionTransportError,
)
from protocol_service.prompts import PromptPair

logger = logging.getLogger(__name__)

ANALYZE_PATH = "/api/analyze"
MAX_ERROR_BODY_CHARS = 500


class CompletionBackend(Protocol):
    """Anything that can turn a prompt pair into raw text."""

    async def complete(self, prompt: PromptPair) -> str:
        """Return the model's raw text for ``prompt``."""
        ...


class HttpCompletionClient:
    """Async client for a service exposing ``POST /api/analyze``.

    Use as an async context manager so the underlying connection pool is
    closed on exit.

    Args:
        base_url: Service root. Defaults to ``config.completion_base_url``.
        config: Generation config; read from the environment when omitted.
        transport: Optional httpx transport, mainly for tests.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        config: GenerationConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client configuration."""
        self.config = config or GenerationConfig.from_env()
        self.base_url = (base_url or self.config.completion_base_url).rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.config.timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "HttpCompletionClient":
        """Enter context manager scope."""
        return self

    async def __aexit__(self, _exc_type: object, _exc: object, _tb: object) -> None:
        """Exit context manager scope and close resources."""
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()

    async def complete(self, prompt: PromptPair) -> str:
        """Send ``prompt`` to the completion service and return its text.

        Args:
            prompt: Rendered prompt pair.

        Returns:
            The non-blank ``result`` string.

        Raises:
            CompletionTransportError: If the request could not be sent.
            CompletionStatusError: If the service answered with a non-2xx status.
            CompletionEmptyResponseError: If ``result`` is missing or blank.
        """
        query = prompt.as_query()
        logger.debug(
            "Posting %d-char query to %s%s", len(query), self.base_url, ANALYZE_PATH
        )
        try:
            response = await self._http.post(ANALYZE_PATH, json={"query": query})
        except httpx.RequestError as exc:
            raise CompletionTransportError(f"Completion request failed: {exc}") from exc

        if not response.is_success:
            raise self._map_http_error(response)
        return self._extract_result(response)

    def _map_http_error(self, response: httpx.Response) -> CompletionStatusError:
        status = response.status_code
        body = response.text[:MAX_ERROR_BODY_CHARS]
        detail = _error_detail(response) or body
        if status >= 500:
            logger.warning("Completion service %d error: %s", status, detail)
        else:
            logger.error("Completion service rejected request (%d): %s", status, detail)
        return CompletionStatusError(
            f"Completion service returned {status}: {detail}",
            status_code=status,
            response_body=body,
        )

    def _extract_result(self, response: httpx.Response) -> str:
        try:
            data: Any = response.json()
        except ValueError as exc:
            raise CompletionEmptyResponseError(
                "Completion response is not valid JSON."
            ) from exc
        result = data.get("result") if isinstance(data, dict) else None
        if not isinstance(result, str) or not result.strip():
            raise CompletionEmptyResponseError(
                "Completion response has no usable 'result' field."
            )
        return result


def _error_detail(response: httpx.Response) -> str | None:
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return None
