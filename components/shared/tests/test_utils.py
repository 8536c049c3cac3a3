from __future__ import annotations

import sys
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from shared import mlflow_utils
from shared.lazy_cache import lazy_singleton


def test_lazy_singleton_caches_once() -> None:
    calls: list[int] = []

    def _loader() -> dict[str, int]:
        calls.append(1)
        return {"value": 42}

    cached = lazy_singleton(_loader)
    first = cached()
    second = cached()

    assert first is second
    assert calls == [1]
    assert cached.__name__ == "_loader"


def test_lazy_singleton_cache_clear_rebuilds() -> None:
    def _loader() -> object:
        return object()

    cached = lazy_singleton(_loader)
    first = cached()

    cached.cache_clear()

    assert cached() is not first


def test_lazy_singleton_builds_once_across_threads() -> None:
    calls: list[int] = []
    start = threading.Barrier(8)

    def _loader() -> object:
        calls.append(1)
        time.sleep(0.01)
        return object()

    cached = lazy_singleton(_loader)
    results: list[object] = []

    def _worker() -> None:
        start.wait()
        results.append(cached())

    threads = [threading.Thread(target=_worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert calls == [1]
    assert len({id(result) for result in results}) == 1


def test_get_mlflow_tracking_uri_prefers_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MLFLOW_TRACKING_URI", "http://mlflow.test")

    assert mlflow_utils.get_mlflow_tracking_uri() == "http://mlflow.test"


def test_get_mlflow_tracking_uri_uses_repo_root(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_path = tmp_path / ".env"
    env_path.write_text("TEST=1\n")
    monkeypatch.delenv("MLFLOW_TRACKING_URI", raising=False)
    monkeypatch.setattr(mlflow_utils, "find_dotenv", lambda **_: str(env_path))

    uri = mlflow_utils.get_mlflow_tracking_uri()

    assert uri == f"sqlite:///{tmp_path / 'mlflow.db'}"


def test_get_mlflow_tracking_uri_without_env_file(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.delenv("MLFLOW_TRACKING_URI", raising=False)
    monkeypatch.setattr(mlflow_utils, "find_dotenv", lambda **_: "")

    assert mlflow_utils.get_mlflow_tracking_uri() is None


def _fake_mlflow(calls: dict[str, list[Any]], fail: bool = False) -> SimpleNamespace:
    def _set_tracking_uri(uri: str) -> None:
        if fail:
            raise RuntimeError("tracking server down")
        calls["uri"].append(uri)

    def _set_experiment(name: str) -> None:
        calls["experiment"].append(name)

    def _autolog(**kwargs: object) -> None:
        calls["autolog"].append("called")

    return SimpleNamespace(
        set_tracking_uri=_set_tracking_uri,
        set_experiment=_set_experiment,
        langchain=SimpleNamespace(autolog=_autolog),
    )


def test_configure_mlflow_once_sets_tracking(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: dict[str, list[Any]] = {"uri": [], "experiment": [], "autolog": []}
    monkeypatch.setitem(sys.modules, "mlflow", _fake_mlflow(calls))
    monkeypatch.setattr(
        mlflow_utils, "get_mlflow_tracking_uri", lambda: "sqlite:///tmp/mlflow.db"
    )
    monkeypatch.setattr(
        mlflow_utils, "_format_experiment_name", lambda name: f"{name}-fixed"
    )

    assert mlflow_utils.configure_mlflow_once("protocol-generation") is True

    assert calls["uri"] == ["sqlite:///tmp/mlflow.db"]
    assert calls["experiment"] == ["protocol-generation-fixed"]
    assert calls["autolog"] == ["called"]


def test_configure_mlflow_once_without_location(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    calls: dict[str, list[Any]] = {"uri": [], "experiment": [], "autolog": []}
    monkeypatch.setitem(sys.modules, "mlflow", _fake_mlflow(calls))
    monkeypatch.setattr(mlflow_utils, "get_mlflow_tracking_uri", lambda: None)

    assert mlflow_utils.configure_mlflow_once("protocol-generation") is False
    assert calls["uri"] == []


def test_configure_mlflow_once_survives_failures(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    calls: dict[str, list[Any]] = {"uri": [], "experiment": [], "autolog": []}
    monkeypatch.setitem(sys.modules, "mlflow", _fake_mlflow(calls, fail=True))
    monkeypatch.setattr(
        mlflow_utils, "get_mlflow_tracking_uri", lambda: "sqlite:///tmp/mlflow.db"
    )

    assert mlflow_utils.configure_mlflow_once("protocol-generation") is False
    assert "MLflow configuration failed" in caplog.text


def test_configure_mlflow_once_without_mlflow(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setitem(sys.modules, "mlflow", None)

    assert mlflow_utils.configure_mlflow_once("protocol-generation") is False


def test_format_experiment_name_appends_utc_timestamp() -> None:
    stamp = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    assert (
        mlflow_utils._format_experiment_name("protocol-generation", stamp)
        == "protocol-generation-20240102-030405"
    )
