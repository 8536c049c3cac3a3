"""Generation orchestrator: one completion attempt, deterministic fallback.

``ProtocolGenerator.generate_protocol`` validates the descriptor, renders the
prompt and calls the completion backend once under a timeout. Model output is
parsed into sections; every failure on the way (transport, status, empty
response, timeout, cancellation) is logged and answered with the deterministic
protocol instead. Only ``ValidationError`` reaches the caller.
"""

from __future__ import annotations

import logging
from datetime import date as date_cls
from typing import Any, Dict, Optional

import anyio

from shared.catalog import AnalysisCatalog
from shared.models import Protocol

from protocol_service.completion_client import CompletionBackend, HttpCompletionClient
from protocol_service.config import GenerationConfig
from protocol_service.errors import (
    CompletionEmptyResponseError,
    GenerationCancelledError,
    GenerationError,
)
from protocol_service.fallback import AnalysisRegistry, generate_default_protocol
from protocol_service.parsing import parse_protocol_sections
from protocol_service.prompts import PromptPair, build_prompt
from protocol_service.validation import validate_descriptor

logger = logging.getLogger(__name__)


def today_iso() -> str:
    """Return today's date as ``YYYY-MM-DD``."""
    return date_cls.today().isoformat()


class ProtocolGenerator:
    """Generate protocols through a completion backend.

    Args:
        backend: Completion backend, e.g. ``HttpCompletionClient`` or
            ``inference.ChatCompletion``.
        config: Generation config; read from the environment when omitted.
        catalog: Analysis catalog passed to the deterministic generator.
        registry: Analysis category table passed to the deterministic generator.
    """

    def __init__(
        self,
        backend: CompletionBackend,
        config: Optional[GenerationConfig] = None,
        *,
        catalog: Optional[AnalysisCatalog] = None,
        registry: Optional[AnalysisRegistry] = None,
    ) -> None:
        """Store the backend and configuration."""
        self.backend = backend
        self.config = config or GenerationConfig.from_env()
        self.catalog = catalog
        self.registry = registry

    async def generate_protocol(
        self,
        value: Any,
        *,
        date: Optional[str] = None,
        cancel_event: Optional[anyio.Event] = None,
    ) -> Protocol:
        """Generate a protocol for ``value``.

        Args:
            value: ``ExperimentDescriptor`` or descriptor-shaped mapping.
            date: ISO date stamped on the protocol. Defaults to today.
            cancel_event: When set while the completion is pending, the call is
                abandoned and the deterministic protocol is returned.

        Returns:
            A protocol with at least one section. ``ai_generated`` tells
            whether it came from the model or from the fallback.

        Raises:
            ValidationError: If ``value`` is not a valid descriptor.
        """
        descriptor = validate_descriptor(value)
        protocol_date = date or today_iso()
        prompt = build_prompt(descriptor)

        try:
            text = await self._complete(prompt, cancel_event)
            sections = parse_protocol_sections(text)
            if not sections:
                raise GenerationError("Parser produced no sections.")
        except (GenerationError, TimeoutError) as exc:
            logger.warning(
                "Falling back to default protocol for %r: %s",
                descriptor.title,
                str(exc) or type(exc).__name__,
            )
            return generate_default_protocol(
                descriptor, protocol_date, catalog=self.catalog, registry=self.registry
            )
        except Exception:
            logger.warning(
                "Falling back to default protocol for %r after backend failure",
                descriptor.title,
                exc_info=True,
            )
            return generate_default_protocol(
                descriptor, protocol_date, catalog=self.catalog, registry=self.registry
            )

        logger.info(
            "Generated protocol for %r with %d sections",
            descriptor.title,
            len(sections),
        )
        return Protocol(
            title=descriptor.title.strip(),
            date=protocol_date,
            sections=sections,
            ai_generated=True,
        )

    async def _complete(
        self, prompt: PromptPair, cancel_event: Optional[anyio.Event]
    ) -> str:
        with anyio.fail_after(self.config.timeout_seconds):
            if cancel_event is None:
                text = await self.backend.complete(prompt)
            else:
                text = await self._complete_cancellable(prompt, cancel_event)
        if not isinstance(text, str) or not text.strip():
            raise CompletionEmptyResponseError("Completion backend returned no text.")
        return text

    async def _complete_cancellable(
        self, prompt: PromptPair, cancel_event: anyio.Event
    ) -> str:
        outcome: Dict[str, Any] = {}

        async with anyio.create_task_group() as tg:

            async def run() -> None:
                try:
                    outcome["text"] = await self.backend.complete(prompt)
                except Exception as exc:
                    outcome["error"] = exc
                tg.cancel_scope.cancel()

            async def watch() -> None:
                await cancel_event.wait()
                tg.cancel_scope.cancel()

            tg.start_soon(run)
            tg.start_soon(watch)

        if "text" in outcome:
            return outcome["text"]
        if "error" in outcome:
            raise outcome["error"]
        raise GenerationCancelledError("Generation cancelled by caller.")


async def generate_protocol(
    value: Any,
    *,
    backend: CompletionBackend,
    config: Optional[GenerationConfig] = None,
    date: Optional[str] = None,
    cancel_event: Optional[anyio.Event] = None,
    catalog: Optional[AnalysisCatalog] = None,
    registry: Optional[AnalysisRegistry] = None,
) -> Protocol:
    """Generate one protocol with a throwaway ``ProtocolGenerator``."""
    generator = ProtocolGenerator(backend, config, catalog=catalog, registry=registry)
    return await generator.generate_protocol(
        value, date=date, cancel_event=cancel_event
    )


def generate_protocol_sync(
    value: Any,
    *,
    backend: Optional[CompletionBackend] = None,
    config: Optional[GenerationConfig] = None,
    date: Optional[str] = None,
) -> Protocol:
    """Blocking wrapper around ``generate_protocol``.

    Without ``backend`` an ``HttpCompletionClient`` is opened for the call and
    closed afterwards.
    """
    resolved = config or GenerationConfig.from_env()

    async def _run() -> Protocol:
        if backend is not None:
            return await generate_protocol(
                value, backend=backend, config=resolved, date=date
            )
        async with HttpCompletionClient(config=resolved) as client:
            return await generate_protocol(
                value, backend=client, config=resolved, date=date
            )

    return anyio.run(_run)
