"""Wait-group style join used to detect the end of a run."""

from __future__ import annotations

from threading import Condition


class CompletionTracker:
    """Count outstanding work items and block until all are retired.

    A unit is registered when an item is dispatched and retired exactly once by
    the stage that ends its journey, whatever the outcome.
    """

    def __init__(self) -> None:
        self._pending = 0
        self._condition = Condition()

    @property
    def pending(self) -> int:
        with self._condition:
            return self._pending

    def add(self, count: int = 1) -> None:
        if count < 0:
            raise ValueError("count must be >= 0")
        with self._condition:
            self._pending += count

    def done(self) -> None:
        with self._condition:
            if self._pending <= 0:
                raise RuntimeError("CompletionTracker.done called more times than add")
            self._pending -= 1
            if self._pending == 0:
                self._condition.notify_all()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until nothing is pending; return ``False`` on timeout."""

        with self._condition:
            return self._condition.wait_for(lambda: self._pending == 0, timeout=timeout)


__all__ = ["CompletionTracker"]
