from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from api_service.dependencies import get_chat_backend
from api_service.main import app
from protocol_service.prompts import PromptPair


class FakeChat:
    """Stands in for the LangChain-backed chat completion."""

    def __init__(self) -> None:
        self.reply = "pH 7 gives the fastest growth."
        self.error: Exception | None = None
        self.prompts: list[PromptPair] = []

    async def complete(self, prompt: PromptPair) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture()
def fake_chat() -> FakeChat:
    return FakeChat()


@pytest.fixture()
def client(
    fake_chat: FakeChat, monkeypatch: pytest.MonkeyPatch
) -> Iterator[TestClient]:
    monkeypatch.setenv("PROTOCOL_COMPLETION_TIMEOUT_SECONDS", "5")
    app.dependency_overrides[get_chat_backend] = lambda: fake_chat
    yield TestClient(app)
    app.dependency_overrides.clear()
