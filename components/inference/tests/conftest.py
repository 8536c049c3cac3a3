from __future__ import annotations

import pytest


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def clean_model_env(monkeypatch: pytest.MonkeyPatch) -> None:
    names = ("MODEL_BACKEND", "MODEL_NAME", "MODEL_TEMPERATURE", "MODEL_MAX_TOKENS")
    for name in names:
        monkeypatch.delenv(name, raising=False)
