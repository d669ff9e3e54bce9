"""Per-archive extraction, record dedup and ingestion."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path

import structlog

from ..config import RecordIdStrategy
from ..errors import MemberReadError
from ..logging_conf import get_logger
from .dedup import DeduplicationStore
from .extractor import ArchiveExtractor, ExtractedArchive
from .stats import RunStatistics


@dataclass
class WorkItem:
    """An archive travelling through the pipeline."""

    url: str
    local_path: Path | None = None


@dataclass
class ArchiveResult:
    url: str
    members: int = 0
    ingested: int = 0
    duplicates: int = 0


def derive_record_id(
    member_name: str, payload: bytes, strategy: RecordIdStrategy = RecordIdStrategy.NAME
) -> str:
    """Return the record identifier for an archive member.

    Member files are named after the MD5 of their content (``<md5>.xml``), so
    the base name up to the first dot identifies the record. Names that carry
    no identifier fall back to hashing the bytes the same way.
    """

    if strategy is RecordIdStrategy.NAME:
        record_id = Path(member_name).name.split(".", 1)[0]
        if record_id:
            return record_id
    return hashlib.md5(payload, usedforsecurity=False).hexdigest()


class ArchiveProcessor:
    """Unpack one downloaded archive and ingest its unseen records."""

    def __init__(
        self,
        store: DeduplicationStore,
        extractor: ArchiveExtractor,
        stats: RunStatistics,
        record_id_strategy: RecordIdStrategy = RecordIdStrategy.NAME,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.store = store
        self.extractor = extractor
        self.stats = stats
        self.record_id_strategy = record_id_strategy
        self.logger = logger or get_logger("processor")

    def process(self, item: WorkItem) -> ArchiveResult:
        """Ingest ``item``; the archive is marked complete only if every member succeeds.

        Raises :class:`ExtractionError`, :class:`MemberReadError` or
        :class:`StoreError`. The local archive and scratch directory are
        removed on every exit path.
        """

        if item.local_path is None:
            raise ValueError(f"Work item {item.url} has not been downloaded")
        extracted: ExtractedArchive | None = None
        try:
            extracted = self.extractor.extract(item.local_path)
            item.local_path.unlink(missing_ok=True)
            result = ArchiveResult(url=item.url, members=len(extracted.members))
            for member in extracted.members:
                self._ingest_member(member, result)
            self.store.mark_archive_completed(item.url)
            self.stats.increment("unzipped")
        finally:
            if extracted is not None:
                extracted.cleanup()
            item.local_path.unlink(missing_ok=True)
        self.logger.debug(
            "archive_processed",
            url=item.url,
            members=result.members,
            ingested=result.ingested,
            duplicates=result.duplicates,
        )
        return result

    def _ingest_member(self, member: Path, result: ArchiveResult) -> None:
        self.stats.increment("members_seen")
        try:
            payload = member.read_bytes()
        except OSError as exc:
            raise MemberReadError(f"Cannot read member {member.name}: {exc}") from exc
        record_id = derive_record_id(member.name, payload, self.record_id_strategy)
        # Reclaim scratch space as we go.
        member.unlink(missing_ok=True)

        if not self.store.check_and_ingest(record_id, payload):
            self.stats.increment("duplicates")
            result.duplicates += 1
            return
        self.stats.increment("ingested")
        result.ingested += 1


__all__ = ["ArchiveProcessor", "ArchiveResult", "WorkItem", "derive_record_id"]
