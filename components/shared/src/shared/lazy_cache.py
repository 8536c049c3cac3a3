"""Process-wide lazy construction of expensive objects such as chat models."""

from __future__ import annotations

import functools
import threading
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class LazySingleton(Generic[T]):
    """Callable that builds its object on first call and returns it afterwards.

    Construction happens under a lock, so FastAPI threadpool workers resolving
    the same dependency concurrently still share one instance.
    """

    def __init__(self, loader: Callable[[], T]) -> None:
        self._loader = loader
        self._lock = threading.Lock()
        self._built = False
        self._instance: T | None = None
        functools.update_wrapper(self, loader)

    def __call__(self) -> T:
        if not self._built:
            with self._lock:
                if not self._built:
                    self._instance = self._loader()
                    self._built = True
        return self._instance  # type: ignore[return-value]

    def cache_clear(self) -> None:
        """Drop the instance so the next call rebuilds it."""
        with self._lock:
            self._instance = None
            self._built = False


def lazy_singleton(loader: Callable[[], T]) -> LazySingleton[T]:
    """Wrap a zero-argument loader in a ``LazySingleton``."""
    return LazySingleton(loader)
