"""Run statistics shared by every pipeline worker."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from threading import Lock


@dataclass
class RunStatistics:
    """Per-run counters; increments are safe from any worker thread."""

    total: int = 0
    skipped: int = 0
    downloaded: int = 0
    download_failures: int = 0
    unzipped: int = 0
    extraction_failures: int = 0
    members_seen: int = 0
    ingested: int = 0
    duplicates: int = 0
    _lock: Lock = field(default_factory=Lock, init=False, repr=False, compare=False)

    def increment(self, counter: str, amount: int = 1) -> None:
        if counter.startswith("_") or counter not in self.counter_names():
            raise KeyError(f"Unknown counter: {counter}")
        with self._lock:
            setattr(self, counter, getattr(self, counter) + amount)

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return {name: getattr(self, name) for name in self.counter_names()}

    @classmethod
    def counter_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls) if not f.name.startswith("_"))


__all__ = ["RunStatistics"]
