from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from dotenv import find_dotenv

logger = logging.getLogger(__name__)


def get_mlflow_tracking_uri() -> str | None:
    """Return the MLflow tracking URI for the repository.

    ``MLFLOW_TRACKING_URI`` wins when set. Otherwise a SQLite database next to
    the repository ``.env`` file is used. Returns None when neither is available.
    """
    explicit = os.getenv("MLFLOW_TRACKING_URI", "").strip()
    if explicit:
        return explicit
    env_path = find_dotenv(usecwd=True)
    if not env_path:
        return None
    repo_root = Path(env_path).parent.absolute()
    return f"sqlite:///{repo_root / 'mlflow.db'}"


def configure_mlflow_once(experiment_name: str) -> bool:
    """Configure MLflow LangChain autologging at application startup.

    Tracing is optional: a missing ``mlflow`` install or tracking location is
    logged and generation proceeds untraced.

    Args:
        experiment_name: The MLflow experiment name to use. A UTC timestamp
            suffix is appended to separate runs by session.

    Returns:
        True when tracing was enabled.
    """
    try:
        import mlflow
    except ImportError:
        logger.info("MLflow not installed; running without tracing")
        return False

    uri = get_mlflow_tracking_uri()
    if uri is None:
        logger.info("No MLflow tracking location configured; tracing disabled")
        return False

    try:
        mlflow.set_tracking_uri(uri)
        experiment_name_with_timestamp = _format_experiment_name(experiment_name)
        mlflow.set_experiment(experiment_name_with_timestamp)
        mlflow.langchain.autolog()
        logger.info(
            "MLflow configured: uri=%s experiment=%s",
            uri,
            experiment_name_with_timestamp,
        )
    except Exception as exc:  # noqa: BLE001 - surface config issues without crashing
        logger.warning("MLflow configuration failed: %s", exc)
        return False
    return True


def _format_experiment_name(
    experiment_name: str, timestamp: datetime | None = None
) -> str:
    """Return an MLflow experiment name with a UTC timestamp suffix."""
    resolved_timestamp = timestamp or datetime.now(timezone.utc)
    suffix = resolved_timestamp.strftime("%Y%m%d-%H%M%S")
    return f"{experiment_name}-{suffix}"
