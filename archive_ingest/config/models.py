"""Pydantic models describing an ingest run."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_LISTING_URL = "http://bitly.com/nuvi-plz"
DEFAULT_DOWNLOAD_WORKERS = 10
DEFAULT_PROCESS_WORKERS = 10


class RecordIdStrategy(str, Enum):
    """How a record identifier is derived from an archive member."""

    NAME = "name"
    CONTENT_HASH = "content-hash"


class StoreConfig(BaseModel):
    """Connection and key layout of the idempotency store."""

    backend: Literal["redis", "sqlite"] = "redis"
    redis_url: str = "redis://localhost:6379/1"
    sqlite_path: Path = Field(default=Path("data/store.db"))
    queue_key: str = "NEWS_XML"
    seen_key: str = "NEWS_XML_KEY"
    completed_key: str = "NEWS_ZIP_URL"

    @field_validator("sqlite_path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    @model_validator(mode="after")
    def _validate_keys(self) -> "StoreConfig":
        keys = {self.queue_key, self.seen_key, self.completed_key}
        if "" in keys:
            raise ValueError("Store keys cannot be empty")
        if len(keys) != 3:
            raise ValueError("queue_key, seen_key and completed_key must be distinct")
        return self

    def resolved_sqlite_path(self, base_dir: Path) -> Path:
        """Return the SQLite store path relative to the project home."""

        if not self.sqlite_path.is_absolute():
            return (base_dir / self.sqlite_path).resolve()
        return self.sqlite_path


class IngestConfig(BaseModel):
    """Settings for a single pipeline run."""

    listing_url: str = DEFAULT_LISTING_URL
    download_workers: int = DEFAULT_DOWNLOAD_WORKERS
    process_workers: int = DEFAULT_PROCESS_WORKERS
    request_timeout: float = 60.0
    work_dir: Path | None = None
    record_id_strategy: RecordIdStrategy = RecordIdStrategy.NAME
    enable_progress_bar: bool = True
    store: StoreConfig = Field(default_factory=StoreConfig)

    @field_validator("work_dir", mode="before")
    @classmethod
    def _coerce_work_dir(cls, value: Any) -> Path | None:
        if value in (None, ""):
            return None
        return Path(value)

    @model_validator(mode="after")
    def _validate_pools(self) -> "IngestConfig":
        if not self.listing_url:
            raise ValueError("listing_url cannot be empty")
        if self.download_workers < 1:
            raise ValueError("download_workers must be >= 1")
        if self.process_workers < 1:
            raise ValueError("process_workers must be >= 1")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be > 0")
        return self


__all__ = [
    "DEFAULT_DOWNLOAD_WORKERS",
    "DEFAULT_LISTING_URL",
    "DEFAULT_PROCESS_WORKERS",
    "IngestConfig",
    "RecordIdStrategy",
    "StoreConfig",
]
