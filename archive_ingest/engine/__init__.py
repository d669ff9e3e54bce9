"""Engine components wiring list → download → extract → dedup → ingest."""

from .dedup import DeduplicationStore, StoreStatus
from .extractor import ArchiveExtractor, ExtractedArchive
from .fetcher import ArchiveDownloader
from .lister import DirectoryLister, parse_listing
from .processor import ArchiveProcessor, ArchiveResult, WorkItem, derive_record_id
from .stats import RunStatistics
from .thread_pool import PipelineStage
from .tracker import CompletionTracker

__all__ = [
    "ArchiveDownloader",
    "ArchiveExtractor",
    "ArchiveProcessor",
    "ArchiveResult",
    "CompletionTracker",
    "DeduplicationStore",
    "DirectoryLister",
    "ExtractedArchive",
    "PipelineStage",
    "RunStatistics",
    "StoreStatus",
    "WorkItem",
    "derive_record_id",
    "parse_listing",
]
