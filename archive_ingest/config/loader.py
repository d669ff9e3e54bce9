"""Configuration loading helpers for archive-ingest."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from .models import IngestConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
CONFIG_FILENAME = "config.yaml"
HOME_ENV = "ARCHIVE_INGEST_HOME"

# Environment variable -> (section, field). ``None`` section means top level.
_ENV_FIELDS: dict[str, tuple[str | None, str]] = {
    "ARCHIVE_INGEST_LIST_LINK": (None, "listing_url"),
    "ARCHIVE_INGEST_POOL_DOWNLOADS": (None, "download_workers"),
    "ARCHIVE_INGEST_POOL_PROCESSING": (None, "process_workers"),
    "ARCHIVE_INGEST_WORK_DIR": (None, "work_dir"),
    "ARCHIVE_INGEST_STORE": ("store", "backend"),
    "ARCHIVE_INGEST_REDIS_URL": ("store", "redis_url"),
    "ARCHIVE_INGEST_SQLITE_PATH": ("store", "sqlite_path"),
}
_POOL_FIELDS = {"download_workers", "process_workers"}


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _pool_size(raw: str) -> int | None:
    # Unset, non-numeric and zero all mean "use the default".
    try:
        value = int(raw.strip())
    except ValueError:
        return None
    return value or None


def _merge(base: dict[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _merge(dict(merged[key]), value)
        elif isinstance(value, Mapping):
            merged[key] = _merge({}, value)
        else:
            merged[key] = value
    return merged


@dataclass(slots=True)
class ConfigLocator:
    """Resolve the home, data and log directories."""

    project_root: Path | None = None
    data_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get(HOME_ENV)
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path.cwd()).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.logs_dir = (root / "logs").resolve()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def config_path(self) -> Path:
        return self.project_root / CONFIG_FILENAME


class ConfigRepository:
    """Layer defaults, config file, environment and explicit overrides."""

    def __init__(
        self,
        locator: ConfigLocator | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.locator = locator or ConfigLocator()
        self.environ = os.environ if environ is None else environ

    def load(
        self,
        config_path: Path | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> IngestConfig:
        payload: dict[str, Any] = {}
        path = config_path or self.locator.config_path()
        if config_path is not None and not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        if path.exists():
            if path.suffix not in CONFIG_EXTENSIONS:
                raise ValueError(f"Unsupported configuration format: {path}")
            payload = _read_file(path)
        payload = _merge(payload, self.environment_overrides())
        payload = _merge(payload, overrides or {})
        return IngestConfig.model_validate(payload)

    def environment_overrides(self) -> dict[str, Any]:
        overrides: dict[str, Any] = {}
        for name, (section, field) in _ENV_FIELDS.items():
            raw = self.environ.get(name)
            if not raw:
                continue
            value: Any = _pool_size(raw) if field in _POOL_FIELDS else raw
            if value is None:
                continue
            if section is None:
                overrides[field] = value
            else:
                overrides.setdefault(section, {})[field] = value
        return overrides


__all__ = ["CONFIG_EXTENSIONS", "ConfigLocator", "ConfigRepository"]
