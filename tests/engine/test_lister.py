from __future__ import annotations

import httpx
import pytest

from archive_ingest.engine.lister import DirectoryLister, parse_listing
from archive_ingest.errors import ListingFetchError


def test_parse_listing_filters_markers_and_keeps_order(listing_html) -> None:
    html = listing_html(["b.zip", "./self", "../up/", "/abs/c.zip", "a.zip", "b.zip"])
    urls = parse_listing(html, "http://host/dir")
    assert urls == [
        "http://host/dir/b.zip",
        "http://host/dir/a.zip",
        "http://host/dir/b.zip",
    ]


def test_parse_listing_is_case_insensitive_and_ignores_other_markup() -> None:
    html = (
        '<TR><TD valign="top"></TD></TR>\n'
        '<TR><TD><A HREF="Upper.ZIP">x</A></TD></TR>\n'
        '<tr><td><img src="/icons/c.gif"> <a href="x.zip">x.zip</a></td></tr>\n'
        '<p><a href="not-in-table.zip">nope</a></p>'
    )
    assert parse_listing(html, "http://host/") == ["http://host/Upper.ZIP", "http://host/x.zip"]


def test_parse_listing_without_matches_is_empty() -> None:
    assert parse_listing("<html><body>Nothing here</body></html>", "http://host/") == []


def test_lister_resolves_against_redirected_url(listing_html) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/short":
            return httpx.Response(302, headers={"Location": "http://mirror.test/feeds/news"})
        if request.url.path == "/feeds/news":
            return httpx.Response(200, text=listing_html(["one.zip", "two.zip"]))
        return httpx.Response(404)

    client = httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True)
    lister = DirectoryLister(client=client)
    urls = lister.list("http://short.test/short")
    client.close()

    assert urls == [
        "http://mirror.test/feeds/news/one.zip",
        "http://mirror.test/feeds/news/two.zip",
    ]


def test_lister_reads_archive_server_listing(archive_server) -> None:
    archive_server.add("A.zip", {"1.xml": b"1"})
    archive_server.add("B.zip", {"2.xml": b"2"})
    with archive_server.client() as client:
        urls = DirectoryLister(client=client).list(archive_server.listing_url)
    assert urls == [archive_server.listing_url + "A.zip", archive_server.listing_url + "B.zip"]


def test_lister_raises_on_error_status(archive_server) -> None:
    archive_server.listing_status = 500
    with archive_server.client() as client:
        with pytest.raises(ListingFetchError) as excinfo:
            DirectoryLister(client=client).list(archive_server.listing_url)
    assert excinfo.value.url == archive_server.listing_url


def test_lister_raises_on_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    with pytest.raises(ListingFetchError, match="connection refused"):
        DirectoryLister(client=client).list("http://down.test/")
    client.close()
