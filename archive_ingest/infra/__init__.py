"""Infra layer utilities (idempotency store backends)."""

from .storage import IdempotencyStore, RedisStore, SQLiteStore, open_store

__all__ = ["IdempotencyStore", "RedisStore", "SQLiteStore", "open_store"]
