"""Engine-wide mutual exclusion for mutating operations."""

from __future__ import annotations

import threading
from types import TracebackType

from stable_engine.core.errors import ReentrantCall


class ReentrancyGuard:
    """Coarse lock held for the full duration of a mutating operation.

    A second entry from the thread already holding the guard (for example a
    token's transfer hook calling back into the engine) fails with
    ReentrantCall. Entries from other threads wait until the guard is free.

    Usage:
        guard = ReentrancyGuard("engine")
        with guard:
            ...
    """

    def __init__(self, name: str = "engine") -> None:
        self.name = name
        self._lock = threading.Lock()
        self._owner: int | None = None

    @property
    def locked(self) -> bool:
        """Whether an operation currently holds the guard."""
        return self._lock.locked()

    def __enter__(self) -> ReentrancyGuard:
        if self._owner == threading.get_ident():
            raise ReentrantCall(
                f"Re-entrant call into {self.name!r} while an operation is in flight"
            )
        self._lock.acquire()
        self._owner = threading.get_ident()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self._owner = None
        self._lock.release()
