"""Idempotency marks layered over a hash/list store backend."""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock

from ..config import StoreConfig
from ..infra.storage import IdempotencyStore

_LOCK_STRIPES = 64


@dataclass(frozen=True)
class StoreStatus:
    completed_archives: int
    seen_records: int
    queued_records: int


class DeduplicationStore:
    """Track completed archives, seen record ids and the ingestion queue."""

    def __init__(
        self,
        backend: IdempotencyStore,
        queue_key: str = "NEWS_XML",
        seen_key: str = "NEWS_XML_KEY",
        completed_key: str = "NEWS_ZIP_URL",
    ) -> None:
        self.backend = backend
        self.queue_key = queue_key
        self.seen_key = seen_key
        self.completed_key = completed_key
        self._locks = [Lock() for _ in range(_LOCK_STRIPES)]

    @classmethod
    def from_config(cls, backend: IdempotencyStore, config: StoreConfig) -> "DeduplicationStore":
        return cls(
            backend,
            queue_key=config.queue_key,
            seen_key=config.seen_key,
            completed_key=config.completed_key,
        )

    def is_archive_completed(self, url: str) -> bool:
        return self.backend.hash_exists(self.completed_key, url)

    def mark_archive_completed(self, url: str) -> None:
        self.backend.hash_set(self.completed_key, url, "")

    def is_record_seen(self, record_id: str) -> bool:
        return self.backend.hash_exists(self.seen_key, record_id)

    def mark_record_seen(self, record_id: str) -> None:
        self.backend.hash_set(self.seen_key, record_id, "")

    def push_record(self, payload: bytes) -> None:
        self.backend.list_append(self.queue_key, payload)

    def check_and_ingest(self, record_id: str, payload: bytes) -> bool:
        """Push ``payload`` unless ``record_id`` was seen; return whether it was pushed.

        Workers sharing this store hold a per-id lock, so two archives carrying
        the same record cannot both pass the membership check in one run.
        The record is pushed before it is marked seen: a crash in between
        replays at most this one record.
        """

        with self._locks[hash(record_id) % len(self._locks)]:
            if self.is_record_seen(record_id):
                return False
            self.push_record(payload)
            self.mark_record_seen(record_id)
        return True

    def status(self) -> StoreStatus:
        return StoreStatus(
            completed_archives=self.backend.hash_len(self.completed_key),
            seen_records=self.backend.hash_len(self.seen_key),
            queued_records=self.backend.list_len(self.queue_key),
        )

    def reset(self, *, archives: bool = True, records: bool = True) -> list[str]:
        """Forget idempotency marks; the ingestion queue itself is left alone."""

        keys: list[str] = []
        if archives:
            keys.append(self.completed_key)
        if records:
            keys.append(self.seen_key)
        self.backend.delete(*keys)
        return keys


__all__ = ["DeduplicationStore", "StoreStatus"]
