"""Idempotency store backends (Redis and local SQLite)."""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock

import redis

from ..config import StoreConfig
from ..errors import StoreError, StoreUnavailable


class IdempotencyStore(ABC):
    """Minimal hash/list contract the pipeline needs from its store.

    Implementations serialize concurrent calls themselves; every method is a
    single round trip that may be invoked from any worker thread.
    """

    @abstractmethod
    def ping(self) -> None:
        """Raise :class:`StoreUnavailable` when the store cannot be reached."""

    @abstractmethod
    def hash_exists(self, key: str, field: str) -> bool:
        """Return whether ``field`` is present in hash ``key``."""

    @abstractmethod
    def hash_set(self, key: str, field: str, value: str = "") -> None:
        """Set ``field`` in hash ``key``."""

    @abstractmethod
    def list_append(self, key: str, payload: bytes) -> None:
        """Append ``payload`` to the tail of list ``key``."""

    @abstractmethod
    def hash_len(self, key: str) -> int:
        """Number of fields in hash ``key``."""

    @abstractmethod
    def list_len(self, key: str) -> int:
        """Number of entries in list ``key``."""

    @abstractmethod
    def delete(self, *keys: str) -> None:
        """Drop the given hashes/lists entirely."""

    def close(self) -> None:
        """Release underlying resources."""


class RedisStore(IdempotencyStore):
    """Store backed by a Redis server; Redis serializes the mutations."""

    def __init__(self, url: str, *, client: redis.Redis | None = None, timeout: float = 5.0) -> None:
        self.url = url
        # Payloads are raw bytes, keep responses undecoded.
        self._client = client or redis.Redis.from_url(
            url,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
            decode_responses=False,
        )

    def ping(self) -> None:
        try:
            self._client.ping()
        except redis.RedisError as exc:
            raise StoreUnavailable(f"Redis at {self.url} is unreachable: {exc}") from exc

    def hash_exists(self, key: str, field: str) -> bool:
        try:
            return bool(self._client.hexists(key, field))
        except redis.RedisError as exc:
            raise StoreError(f"HEXISTS {key} failed: {exc}") from exc

    def hash_set(self, key: str, field: str, value: str = "") -> None:
        try:
            self._client.hset(key, field, value)
        except redis.RedisError as exc:
            raise StoreError(f"HSET {key} failed: {exc}") from exc

    def list_append(self, key: str, payload: bytes) -> None:
        try:
            self._client.rpush(key, payload)
        except redis.RedisError as exc:
            raise StoreError(f"RPUSH {key} failed: {exc}") from exc

    def hash_len(self, key: str) -> int:
        try:
            return int(self._client.hlen(key))
        except redis.RedisError as exc:
            raise StoreError(f"HLEN {key} failed: {exc}") from exc

    def list_len(self, key: str) -> int:
        try:
            return int(self._client.llen(key))
        except redis.RedisError as exc:
            raise StoreError(f"LLEN {key} failed: {exc}") from exc

    def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            self._client.delete(*keys)
        except redis.RedisError as exc:
            raise StoreError(f"DEL {' '.join(keys)} failed: {exc}") from exc

    def close(self) -> None:
        self._client.close()


class SQLiteStore(IdempotencyStore):
    """Single-file store with the same hash/list semantics as Redis."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = Lock()
        self._conn: sqlite3.Connection | None = None

    def _connection(self) -> sqlite3.Connection:
        with self._lock:
            if self._conn is None:
                try:
                    self.path.parent.mkdir(parents=True, exist_ok=True)
                    conn = sqlite3.connect(self.path, check_same_thread=False)
                    self._ensure_schema(conn)
                except (OSError, sqlite3.Error) as exc:
                    raise StoreUnavailable(f"SQLite store {self.path} cannot be opened: {exc}") from exc
                self._conn = conn
            return self._conn

    @staticmethod
    def _ensure_schema(conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS hash_entries (
                key TEXT NOT NULL,
                field TEXT NOT NULL,
                value TEXT,
                PRIMARY KEY (key, field)
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS list_entries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                key TEXT NOT NULL,
                payload BLOB NOT NULL
            )
            """
        )
        conn.commit()

    def _execute(self, sql: str, params: tuple = (), *, commit: bool = False) -> list[tuple]:
        conn = self._connection()
        with self._lock:
            try:
                rows = conn.execute(sql, params).fetchall()
                if commit:
                    conn.commit()
            except sqlite3.Error as exc:
                raise StoreError(f"SQLite store query failed: {exc}") from exc
        return rows

    def ping(self) -> None:
        self._execute("SELECT 1")

    def hash_exists(self, key: str, field: str) -> bool:
        rows = self._execute(
            "SELECT 1 FROM hash_entries WHERE key = ? AND field = ?", (key, field)
        )
        return bool(rows)

    def hash_set(self, key: str, field: str, value: str = "") -> None:
        self._execute(
            "INSERT OR REPLACE INTO hash_entries(key, field, value) VALUES (?, ?, ?)",
            (key, field, value),
            commit=True,
        )

    def list_append(self, key: str, payload: bytes) -> None:
        self._execute(
            "INSERT INTO list_entries(key, payload) VALUES (?, ?)",
            (key, sqlite3.Binary(payload)),
            commit=True,
        )

    def hash_len(self, key: str) -> int:
        return self._execute("SELECT count(*) FROM hash_entries WHERE key = ?", (key,))[0][0]

    def list_len(self, key: str) -> int:
        return self._execute("SELECT count(*) FROM list_entries WHERE key = ?", (key,))[0][0]

    def hash_fields(self, key: str) -> list[str]:
        rows = self._execute("SELECT field FROM hash_entries WHERE key = ? ORDER BY field", (key,))
        return [row[0] for row in rows]

    def list_items(self, key: str) -> list[bytes]:
        rows = self._execute("SELECT payload FROM list_entries WHERE key = ? ORDER BY id", (key,))
        return [bytes(row[0]) for row in rows]

    def delete(self, *keys: str) -> None:
        for key in keys:
            self._execute("DELETE FROM hash_entries WHERE key = ?", (key,), commit=True)
            self._execute("DELETE FROM list_entries WHERE key = ?", (key,), commit=True)

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None


def open_store(config: StoreConfig, base_dir: Path) -> IdempotencyStore:
    """Build the configured backend and verify it is reachable."""

    store: IdempotencyStore
    if config.backend == "sqlite":
        store = SQLiteStore(config.resolved_sqlite_path(base_dir))
    else:
        store = RedisStore(config.redis_url)
    try:
        store.ping()
    except StoreUnavailable:
        store.close()
        raise
    return store


__all__ = ["IdempotencyStore", "RedisStore", "SQLiteStore", "open_store"]
