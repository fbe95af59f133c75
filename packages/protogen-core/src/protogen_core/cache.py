"""Per-key memoizing cache with single-flight computation.

At most one computation runs per key at a time. Concurrent callers for a key
that is being computed wait for that computation and observe its outcome.
Failed computations are evicted immediately, so the next call recomputes
instead of replaying the failure.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import Future
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class SingleFlightCache(Generic[K, V]):
    """Memoizes ``loader(key)`` results; never caches exceptions.

    Args:
        loader: Computes the value for a key. May raise.

    Example:
        >>> cache = SingleFlightCache(lambda version: resolve_tool(version))
        >>> path = cache.get("3.11.0")  # resolves
        >>> path = cache.get("3.11.0")  # cached
    """

    def __init__(self, loader: Callable[[K], V]) -> None:
        self._loader = loader
        self._entries: dict[K, Future[V]] = {}
        self._lock = threading.Lock()

    def get(self, key: K) -> V:
        """Return the value for ``key``, computing it if needed.

        Raises:
            Exception: Whatever the loader raised for this computation.
        """
        with self._lock:
            future = self._entries.get(key)
            owner = future is None
            if future is None:
                future = Future()
                self._entries[key] = future

        if not owner:
            return future.result()

        try:
            value = self._loader(key)
        except BaseException as exc:
            with self._lock:
                if self._entries.get(key) is future:
                    del self._entries[key]
            future.set_exception(exc)
            raise

        future.set_result(value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return sum(
                1 for f in self._entries.values() if f.done() and f.exception() is None
            )
