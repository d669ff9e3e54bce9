"""Archive download into transient local files."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import httpx
import structlog

from ..errors import DownloadError
from ..logging_conf import get_logger

CHUNK_SIZE = 1 << 16


class ArchiveDownloader:
    """Stream remote archives to freshly created temporary files.

    One shared ``httpx.Client`` serves every download worker; the client is
    thread-safe and pools connections per host.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        work_dir: Path | None = None,
        timeout: float = 60.0,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(follow_redirects=True, timeout=timeout)
        self.work_dir = work_dir
        self.logger = logger or get_logger("fetcher")

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def download(self, url: str) -> Path:
        """Fetch ``url`` and return the local path; raises :class:`DownloadError`."""

        if self.work_dir is not None:
            self.work_dir.mkdir(parents=True, exist_ok=True)
        try:
            fd, name = tempfile.mkstemp(prefix="archive-", suffix=".zip", dir=self.work_dir)
        except OSError as exc:
            raise DownloadError(url, f"cannot create temporary file: {exc}") from exc
        path = Path(name)
        try:
            with os.fdopen(fd, "wb") as target:
                with self._client.stream("GET", url, follow_redirects=True) as response:
                    response.raise_for_status()
                    for chunk in response.iter_bytes(CHUNK_SIZE):
                        target.write(chunk)
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as exc:
            path.unlink(missing_ok=True)
            raise DownloadError(url, str(exc)) from exc
        self.logger.debug("archive_downloaded", url=url, path=str(path), size=path.stat().st_size)
        return path


__all__ = ["ArchiveDownloader"]
