import logging
import re
from typing import Any

import anyio
import pytest
from shared.models import build_descriptor

from protocol_service import orchestrator
from protocol_service.config import GenerationConfig
from protocol_service.errors import CompletionStatusError, ValidationError
from protocol_service.fallback import (
    AnalysisContent,
    generate_default_protocol,
    register_analysis_category,
)
from protocol_service.orchestrator import (
    ProtocolGenerator,
    generate_protocol,
    generate_protocol_sync,
    today_iso,
)
from protocol_service.prompts import PromptPair

DATE = "2024-01-01"
MARKED_REPLY = (
    "🔬 What you'll need\n- 50 mL PBS\n"
    "📋 Step-by-Step Procedure\n1. Warm PBS\n2. Add cells"
)
FAST = GenerationConfig(timeout_seconds=5)


class SlowBackend:
    def __init__(self, delay: float = 10.0) -> None:
        self.delay = delay
        self.finished = False

    async def complete(self, prompt: PromptPair) -> str:
        await anyio.sleep(self.delay)
        self.finished = True
        return "# Methods\nMix"


def _assert_is_fallback(protocol: Any) -> None:
    expected = generate_default_protocol(build_descriptor(), DATE)
    assert protocol.ai_generated is False
    assert protocol.sections == expected.sections
    assert protocol.date == DATE


@pytest.mark.anyio
async def test_model_output_is_parsed(fake_backend_factory: Any) -> None:
    backend = fake_backend_factory(reply=MARKED_REPLY)
    generator = ProtocolGenerator(backend, FAST)

    protocol = await generator.generate_protocol(build_descriptor(), date=DATE)

    assert protocol.ai_generated is True
    assert protocol.title == "pH and Growth"
    assert [s.id for s in protocol.sections] == [
        "what_you_ll_need",
        "step_by_step_procedure",
    ]
    assert len(backend.prompts) == 1
    assert "Experiment Title: pH and Growth" in backend.prompts[0].user


@pytest.mark.anyio
async def test_mapping_input_is_validated_and_used(fake_backend_factory: Any) -> None:
    backend = fake_backend_factory(reply="# Methods\nMix")
    generator = ProtocolGenerator(backend, FAST)

    protocol = await generator.generate_protocol(
        {"title": "Enzyme Assay", "analysisTypes": ["regression"]}, date=DATE
    )

    assert protocol.title == "Enzyme Assay"
    assert "Analysis Types: regression" in backend.prompts[0].user


@pytest.mark.anyio
async def test_invalid_descriptor_raises_without_calling_backend(
    fake_backend_factory: Any,
) -> None:
    backend = fake_backend_factory(reply="# Methods\nMix")

    with pytest.raises(ValidationError):
        await ProtocolGenerator(backend, FAST).generate_protocol({"title": " "})
    assert backend.prompts == []


@pytest.mark.anyio
@pytest.mark.parametrize(
    "error",
    [
        CompletionStatusError("boom", status_code=500),
        RuntimeError("provider exploded"),
        ConnectionError("refused"),
    ],
)
async def test_backend_failure_falls_back(
    fake_backend_factory: Any,
    error: Exception,
    caplog: pytest.LogCaptureFixture,
) -> None:
    backend = fake_backend_factory(error=error)

    with caplog.at_level(logging.WARNING, logger="protocol_service.orchestrator"):
        protocol = await ProtocolGenerator(backend, FAST).generate_protocol(
            build_descriptor(), date=DATE
        )

    _assert_is_fallback(protocol)
    assert "Falling back to default protocol" in caplog.text


@pytest.mark.anyio
async def test_fallback_uses_injected_registry(fake_backend_factory: Any) -> None:
    registry = register_analysis_category(
        "kinetics", lambda d: AnalysisContent(label="Enzyme kinetics")
    )
    backend = fake_backend_factory(error=RuntimeError("down"))
    generator = ProtocolGenerator(backend, FAST, registry=registry)

    protocol = await generator.generate_protocol(
        build_descriptor(analysis_types=["kinetics"]), date=DATE
    )

    analysis = protocol.section("data_collection_and_analysis")
    assert protocol.ai_generated is False
    assert analysis is not None
    assert "- Enzyme kinetics" in analysis.content


@pytest.mark.anyio
@pytest.mark.parametrize("reply", ["", "   \n\n  "])
async def test_blank_reply_falls_back(fake_backend_factory: Any, reply: str) -> None:
    backend = fake_backend_factory(reply=reply)

    protocol = await ProtocolGenerator(backend, FAST).generate_protocol(
        build_descriptor(), date=DATE
    )

    _assert_is_fallback(protocol)


@pytest.mark.anyio
async def test_timeout_falls_back() -> None:
    backend = SlowBackend()
    generator = ProtocolGenerator(backend, GenerationConfig(timeout_seconds=0.05))

    protocol = await generator.generate_protocol(build_descriptor(), date=DATE)

    _assert_is_fallback(protocol)
    assert backend.finished is False


@pytest.mark.anyio
async def test_cancel_event_falls_back() -> None:
    backend = SlowBackend()
    generator = ProtocolGenerator(backend, FAST)
    cancel = anyio.Event()
    result: dict[str, Any] = {}

    async def run() -> None:
        result["protocol"] = await generator.generate_protocol(
            build_descriptor(), date=DATE, cancel_event=cancel
        )

    with anyio.fail_after(2):
        async with anyio.create_task_group() as tg:
            tg.start_soon(run)
            await anyio.sleep(0.05)
            cancel.set()

    _assert_is_fallback(result["protocol"])
    assert backend.finished is False


@pytest.mark.anyio
async def test_unset_cancel_event_does_not_interfere(
    fake_backend_factory: Any,
) -> None:
    backend = fake_backend_factory(reply="# Methods\nMix")

    protocol = await ProtocolGenerator(backend, FAST).generate_protocol(
        build_descriptor(), date=DATE, cancel_event=anyio.Event()
    )

    assert protocol.ai_generated is True


@pytest.mark.anyio
async def test_backend_error_with_cancel_event_falls_back(
    fake_backend_factory: Any,
) -> None:
    backend = fake_backend_factory(error=RuntimeError("down"))

    protocol = await ProtocolGenerator(backend, FAST).generate_protocol(
        build_descriptor(), date=DATE, cancel_event=anyio.Event()
    )

    _assert_is_fallback(protocol)


@pytest.mark.anyio
async def test_caller_cancellation_is_not_swallowed() -> None:
    generator = ProtocolGenerator(SlowBackend(), FAST)

    with anyio.move_on_after(0.05) as scope:
        await generator.generate_protocol(build_descriptor(), date=DATE)
        pytest.fail("generation should have been cancelled")

    assert scope.cancelled_caught


@pytest.mark.anyio
async def test_default_date_is_today(fake_backend_factory: Any) -> None:
    backend = fake_backend_factory(reply="# Methods\nMix")

    protocol = await ProtocolGenerator(backend, FAST).generate_protocol(
        build_descriptor()
    )

    assert protocol.date == today_iso()
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}", protocol.date)


@pytest.mark.anyio
async def test_module_level_generate_protocol(fake_backend_factory: Any) -> None:
    backend = fake_backend_factory(reply="# Methods\nMix")

    protocol = await generate_protocol(
        build_descriptor(), backend=backend, config=FAST, date=DATE
    )

    assert protocol.ai_generated is True
    assert protocol.sections[0].id == "methods"


def test_generate_protocol_sync_with_backend(fake_backend_factory: Any) -> None:
    backend = fake_backend_factory(reply="# Methods\nMix")

    protocol = generate_protocol_sync(
        build_descriptor(), backend=backend, config=FAST, date=DATE
    )

    assert protocol.ai_generated is True


def test_generate_protocol_sync_opens_http_client(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    events: list[str] = []

    class FakeClient:
        def __init__(self, *, config: GenerationConfig) -> None:
            assert config is FAST

        async def __aenter__(self) -> "FakeClient":
            events.append("open")
            return self

        async def __aexit__(self, *_exc: object) -> None:
            events.append("close")

        async def complete(self, prompt: PromptPair) -> str:
            events.append("complete")
            return "# Methods\nMix"

    monkeypatch.setattr(orchestrator, "HttpCompletionClient", FakeClient)

    protocol = generate_protocol_sync(build_descriptor(), config=FAST, date=DATE)

    assert protocol.ai_generated is True
    assert events == ["open", "complete", "close"]
