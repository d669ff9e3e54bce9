"""Shared fixtures: ZIP builders, a mock archive server and a SQLite-backed store."""

from __future__ import annotations

import zipfile
from io import BytesIO
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Mapping

import httpx
import pytest

from archive_ingest.engine import DeduplicationStore
from archive_ingest.infra import SQLiteStore

LISTING_URL = "http://archives.test/pub/"


def build_zip(members: Mapping[str, bytes] | Iterable[tuple[str, bytes]]) -> bytes:
    """Return ZIP bytes holding ``members`` in the given order."""

    items = members.items() if isinstance(members, Mapping) else members
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, payload in items:
            archive.writestr(name, payload)
    return buffer.getvalue()


def render_listing(hrefs: Iterable[str]) -> str:
    rows = "\n".join(f'<tr><td><a href="{href}">{href}</a></td></tr>' for href in hrefs)
    return (
        "<html><body><table>\n"
        '<tr><th><a href="?C=N;O=D">Name</a></th></tr>\n'
        '<tr><td><a href="/">Parent Directory</a></td></tr>\n'
        f"{rows}\n"
        "</table></body></html>"
    )


@dataclass
class ArchiveServer:
    """In-memory HTTP server for listings and archives."""

    listing_url: str = LISTING_URL
    archives: dict[str, bytes] = field(default_factory=dict)
    failing: set[str] = field(default_factory=set)
    listing_status: int = 200
    requests: list[str] = field(default_factory=list)

    def add(self, name: str, members: Mapping[str, bytes]) -> str:
        url = self.listing_url + name
        self.archives[url] = build_zip(members)
        return url

    def add_raw(self, name: str, payload: bytes) -> str:
        url = self.listing_url + name
        self.archives[url] = payload
        return url

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if url == self.listing_url:
            if self.listing_status != 200:
                return httpx.Response(self.listing_status, text="unavailable")
            names = [archive_url[len(self.listing_url):] for archive_url in self.archives]
            return httpx.Response(200, text=render_listing(names))
        if url in self.failing:
            return httpx.Response(503, text="try later")
        if url in self.archives:
            return httpx.Response(200, content=self.archives[url])
        return httpx.Response(404, text="not found")

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler), follow_redirects=True)


@pytest.fixture
def archive_server() -> ArchiveServer:
    return ArchiveServer()


@pytest.fixture
def make_zip(tmp_path: Path) -> Callable[..., Path]:
    def _builder(name: str, members: Mapping[str, bytes] | Iterable[tuple[str, bytes]]) -> Path:
        path = tmp_path / name
        path.write_bytes(build_zip(members))
        return path

    return _builder


@pytest.fixture
def sqlite_backend(tmp_path: Path) -> Iterable[SQLiteStore]:
    store = SQLiteStore(tmp_path / "store" / "ingest.db")
    store.ping()
    yield store
    store.close()


@pytest.fixture
def dedup_store(sqlite_backend: SQLiteStore) -> DeduplicationStore:
    return DeduplicationStore(sqlite_backend)


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ARCHIVE_INGEST_HOME", str(tmp_path / "home"))
    for name in (
        "ARCHIVE_INGEST_LIST_LINK",
        "ARCHIVE_INGEST_POOL_DOWNLOADS",
        "ARCHIVE_INGEST_POOL_PROCESSING",
        "ARCHIVE_INGEST_WORK_DIR",
        "ARCHIVE_INGEST_STORE",
        "ARCHIVE_INGEST_REDIS_URL",
        "ARCHIVE_INGEST_SQLITE_PATH",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def listing_html() -> Callable[[Iterable[str]], str]:
    return render_listing
