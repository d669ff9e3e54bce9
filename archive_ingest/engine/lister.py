"""Directory listing discovery for remotely hosted archives."""

from __future__ import annotations

import re
from urllib.parse import urljoin

import httpx
import structlog

from ..errors import ListingFetchError
from ..logging_conf import get_logger

# Anchors inside table rows, as rendered by Apache/nginx style index pages.
LISTING_PATTERN = re.compile(r'<tr><td>.*?href="([^"]*)', re.IGNORECASE)


def parse_listing(html: str, base_url: str) -> list[str]:
    """Extract absolute item URLs from a listing body, keeping listing order."""

    if not base_url.endswith("/"):
        base_url += "/"
    urls: list[str] = []
    for href in LISTING_PATTERN.findall(html):
        # Skip absolute paths (parent links, sort links) and ./ ../ markers.
        if href.startswith(("/", ".")):
            continue
        urls.append(urljoin(base_url, href))
    return urls


class DirectoryLister:
    """Fetch a listing page and turn it into archive URLs."""

    def __init__(
        self,
        client: httpx.Client | None = None,
        timeout: float = 30.0,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(follow_redirects=True, timeout=timeout)
        self.logger = logger or get_logger("lister")

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def list(self, listing_url: str) -> list[str]:
        try:
            response = self._client.get(listing_url, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ListingFetchError(listing_url, str(exc)) from exc
        final_url = str(response.url)
        urls = parse_listing(response.text, final_url)
        self.logger.info(
            "listing_parsed", listing_url=listing_url, final_url=final_url, candidates=len(urls)
        )
        return urls


__all__ = ["DirectoryLister", "LISTING_PATTERN", "parse_listing"]
