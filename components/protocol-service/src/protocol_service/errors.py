"""Error taxonomy for protocol generation.

Only ``ValidationError`` reaches callers of the orchestrator. ``GenerationError``
and its subclasses describe failed completion attempts and are recovered by
falling back to the deterministic generator.
"""

from __future__ import annotations


class ProtocolServiceError(Exception):
    """Base exception for the protocol service."""


class ValidationError(ProtocolServiceError, ValueError):
    """Malformed or missing experiment input."""


class GenerationError(ProtocolServiceError):
    """External generation failed or produced unusable content."""


class CompletionTransportError(GenerationError):
    """Network-level failure talking to the completion service."""


class CompletionStatusError(GenerationError):
    """Completion service answered with a non-success status."""

    def __init__(
        self,
        message: str,
        status_code: int,
        response_body: str | None = None,
    ) -> None:
        """Initialize completion status error.

        Args:
            message: Error message.
            status_code: HTTP status code.
            response_body: Truncated response body, if any.
        """
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)


class CompletionEmptyResponseError(GenerationError):
    """Completion service answered without usable text."""


class GenerationCancelledError(GenerationError):
    """The caller signalled cancellation while the completion was pending."""
