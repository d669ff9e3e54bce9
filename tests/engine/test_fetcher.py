from __future__ import annotations

import httpx
import pytest

from archive_ingest.engine.fetcher import ArchiveDownloader
from archive_ingest.errors import DownloadError


def test_download_streams_to_fresh_file(archive_server, tmp_path) -> None:
    url = archive_server.add("A.zip", {"1.xml": b"<doc>1</doc>"})
    work_dir = tmp_path / "work"
    with archive_server.client() as client:
        downloader = ArchiveDownloader(client=client, work_dir=work_dir)
        first = downloader.download(url)
        second = downloader.download(url)

    assert first != second
    assert first.parent == work_dir
    assert first.suffix == ".zip"
    assert first.read_bytes() == archive_server.archives[url]
    assert second.read_bytes() == archive_server.archives[url]


def test_download_error_status_leaves_no_file(archive_server, tmp_path) -> None:
    url = archive_server.add("B.zip", {"2.xml": b"2"})
    archive_server.failing.add(url)
    work_dir = tmp_path / "work"
    with archive_server.client() as client:
        downloader = ArchiveDownloader(client=client, work_dir=work_dir)
        with pytest.raises(DownloadError) as excinfo:
            downloader.download(url)

    assert excinfo.value.url == url
    assert "503" in excinfo.value.reason
    assert list(work_dir.iterdir()) == []


def test_download_missing_archive_raises(archive_server, tmp_path) -> None:
    with archive_server.client() as client:
        downloader = ArchiveDownloader(client=client, work_dir=tmp_path)
        with pytest.raises(DownloadError):
            downloader.download(archive_server.listing_url + "missing.zip")


def test_download_transport_error_raises(tmp_path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    downloader = ArchiveDownloader(client=client, work_dir=tmp_path / "work")
    with pytest.raises(DownloadError, match="timed out"):
        downloader.download("http://slow.test/archive.zip")
    client.close()
    assert list((tmp_path / "work").iterdir()) == []


def test_download_invalid_url_raises_and_leaves_no_file(archive_server, tmp_path) -> None:
    work_dir = tmp_path / "work"
    with archive_server.client() as client:
        downloader = ArchiveDownloader(client=client, work_dir=work_dir)
        with pytest.raises(DownloadError) as excinfo:
            downloader.download(archive_server.listing_url + "a\x01b.zip")

    assert excinfo.value.url.endswith("a\x01b.zip")
    assert list(work_dir.iterdir()) == []
    assert archive_server.requests == []
