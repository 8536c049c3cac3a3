from __future__ import annotations

import pytest
from shared import models

from protocol_service.prompts import PromptPair


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def descriptor() -> models.ExperimentDescriptor:
    return models.build_descriptor()


class FakeBackend:
    """Completion backend returning a canned reply and recording prompts."""

    def __init__(self, reply: str = "", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.prompts: list[PromptPair] = []

    async def complete(self, prompt: PromptPair) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture()
def fake_backend_factory() -> type[FakeBackend]:
    return FakeBackend
