"""Run orchestrator wiring listing, download, extraction, dedup and progress."""

from __future__ import annotations

from functools import partial
from typing import Callable

import structlog

from .config import IngestConfig
from .engine import (
    ArchiveDownloader,
    ArchiveExtractor,
    ArchiveProcessor,
    CompletionTracker,
    DeduplicationStore,
    DirectoryLister,
    PipelineStage,
    RunStatistics,
    WorkItem,
)
from .errors import IngestError, ListingFetchError, StoreError
from .logging_conf import get_logger
from .ui import ProgressActivity, ProgressReporter


class IngestOrchestrator:
    """Central coordinator for one pass over the remote listing."""

    def __init__(
        self,
        config: IngestConfig,
        store: DeduplicationStore,
        lister: DirectoryLister,
        downloader: ArchiveDownloader,
        extractor: ArchiveExtractor,
        progress_factory: Callable[[], ProgressReporter] | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self.lister = lister
        self.downloader = downloader
        self.extractor = extractor
        self.progress_factory = progress_factory
        self.logger = logger or get_logger("orchestrator")

    @classmethod
    def from_config(
        cls,
        config: IngestConfig,
        store: DeduplicationStore,
        progress_factory: Callable[[], ProgressReporter] | None = None,
    ) -> "IngestOrchestrator":
        return cls(
            config=config,
            store=store,
            lister=DirectoryLister(timeout=config.request_timeout),
            downloader=ArchiveDownloader(work_dir=config.work_dir, timeout=config.request_timeout),
            extractor=ArchiveExtractor(work_dir=config.work_dir),
            progress_factory=progress_factory,
        )

    def close(self) -> None:
        self.lister.close()
        self.downloader.close()

    # ------------------------------------------------------------------
    def list_candidates(self) -> list[str]:
        """Return listing URLs; a failed fetch yields no candidates."""

        try:
            return self.lister.list(self.config.listing_url)
        except ListingFetchError as exc:
            self.logger.error("listing_fetch_failed", listing_url=exc.url, error=exc.reason)
            return []

    def run(self) -> RunStatistics:
        stats = RunStatistics()
        tracker = CompletionTracker()
        if self.progress_factory is not None:
            progress = self.progress_factory()
        else:
            progress = ProgressReporter(enabled=self.config.enable_progress_bar)

        with ProgressActivity(enabled=self.config.enable_progress_bar) as activity:
            activity.start(f"Fetching listing {self.config.listing_url} …")
            urls = self.list_candidates()

        processor = ArchiveProcessor(
            self.store, self.extractor, stats, record_id_strategy=self.config.record_id_strategy
        )
        # Every candidate fits in either queue, so forwarding never blocks shutdown.
        capacity = max(1, len(urls))
        process_stage: PipelineStage[WorkItem] = PipelineStage(
            "process",
            self.config.process_workers,
            partial(self._process_item, processor, tracker, progress, stats),
            maxsize=capacity,
        )
        download_stage: PipelineStage[WorkItem] = PipelineStage(
            "download",
            self.config.download_workers,
            partial(self._download_item, process_stage, tracker, progress, stats),
            maxsize=capacity,
        )

        self.logger.info(
            "run_started",
            listing_url=self.config.listing_url,
            candidates=len(urls),
            download_workers=self.config.download_workers,
            process_workers=self.config.process_workers,
        )
        progress.start(len(urls))
        process_stage.start()
        download_stage.start()
        try:
            for url in urls:
                stats.increment("total")
                if self._already_completed(url):
                    stats.increment("skipped")
                    progress.advance(skipped=True, current_url=url)
                    continue
                tracker.add()
                download_stage.submit(WorkItem(url=url))
        finally:
            download_stage.close()
            tracker.wait()
            process_stage.close()
            download_stage.join()
            process_stage.join()
            progress.close()

        self.logger.info("run_finished", **stats.snapshot())
        return stats

    # ------------------------------------------------------------------
    def _already_completed(self, url: str) -> bool:
        try:
            return self.store.is_archive_completed(url)
        except StoreError as exc:
            # Reprocessing is duplicate-safe, so an unknown state means "not done".
            self.logger.warning("completed_check_failed", url=url, error=str(exc))
            return False

    def _download_item(
        self,
        process_stage: PipelineStage[WorkItem],
        tracker: CompletionTracker,
        progress: ProgressReporter,
        stats: RunStatistics,
        item: WorkItem,
    ) -> None:
        forwarded = False
        try:
            item.local_path = self.downloader.download(item.url)
            stats.increment("downloaded")
            process_stage.submit(item)
            forwarded = True
        except IngestError as exc:
            stats.increment("download_failures")
            self.logger.warning("download_failed", url=item.url, error=str(exc))
            progress.advance(failed=True, current_url=item.url)
        except Exception as exc:  # noqa: BLE001
            stats.increment("download_failures")
            self.logger.error("download_crashed", url=item.url, error=str(exc), exc_info=True)
            progress.advance(failed=True, current_url=item.url)
        finally:
            if not forwarded:
                if item.local_path is not None:
                    item.local_path.unlink(missing_ok=True)
                tracker.done()

    def _process_item(
        self,
        processor: ArchiveProcessor,
        tracker: CompletionTracker,
        progress: ProgressReporter,
        stats: RunStatistics,
        item: WorkItem,
    ) -> None:
        succeeded = False
        try:
            result = processor.process(item)
            succeeded = True
            self.logger.info(
                "archive_ingested",
                url=item.url,
                members=result.members,
                ingested=result.ingested,
                duplicates=result.duplicates,
            )
        except IngestError as exc:
            stats.increment("extraction_failures")
            self.logger.warning(
                "archive_failed", url=item.url, error=str(exc), error_type=type(exc).__name__
            )
        except Exception as exc:  # noqa: BLE001
            stats.increment("extraction_failures")
            self.logger.error("archive_crashed", url=item.url, error=str(exc), exc_info=True)
        finally:
            try:
                progress.advance(success=succeeded, failed=not succeeded, current_url=item.url)
            finally:
                tracker.done()


__all__ = ["IngestOrchestrator"]
