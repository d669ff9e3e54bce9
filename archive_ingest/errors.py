"""Exception hierarchy shared by the ingest pipeline."""

from __future__ import annotations


class IngestError(Exception):
    """Base class for every error raised by archive-ingest."""


class StoreError(IngestError):
    """A store query or mutation failed."""


class StoreUnavailable(StoreError):
    """The idempotency store cannot be reached; fatal at startup."""


class ListingFetchError(IngestError):
    """The directory listing could not be fetched."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Failed to fetch listing {url}: {reason}")
        self.url = url
        self.reason = reason


class DownloadError(IngestError):
    """An archive could not be downloaded to local storage."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Failed to download {url}: {reason}")
        self.url = url
        self.reason = reason


class ExtractionError(IngestError):
    """An archive is malformed or could not be unpacked."""


class MemberReadError(IngestError):
    """An extracted archive member could not be read back."""


__all__ = [
    "DownloadError",
    "ExtractionError",
    "IngestError",
    "ListingFetchError",
    "MemberReadError",
    "StoreError",
    "StoreUnavailable",
]
