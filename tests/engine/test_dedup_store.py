from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from archive_ingest.config import StoreConfig
from archive_ingest.engine import DeduplicationStore, StoreStatus


def test_archive_marks(dedup_store) -> None:
    url = "http://archives.test/pub/A.zip"
    assert not dedup_store.is_archive_completed(url)
    dedup_store.mark_archive_completed(url)
    dedup_store.mark_archive_completed(url)
    assert dedup_store.is_archive_completed(url)
    assert dedup_store.status().completed_archives == 1


def test_check_and_ingest_pushes_once(dedup_store, sqlite_backend) -> None:
    assert dedup_store.check_and_ingest("abc", b"first") is True
    assert dedup_store.check_and_ingest("abc", b"second") is False
    assert sqlite_backend.list_items("NEWS_XML") == [b"first"]
    assert dedup_store.status() == StoreStatus(completed_archives=0, seen_records=1, queued_records=1)


def test_concurrent_ingest_of_same_record_pushes_once(dedup_store, sqlite_backend) -> None:
    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(lambda n: dedup_store.check_and_ingest("shared", b"%d" % n), range(32)))

    assert outcomes.count(True) == 1
    assert sqlite_backend.list_len("NEWS_XML") == 1


def test_reset_clears_marks_but_keeps_queue(dedup_store) -> None:
    dedup_store.mark_archive_completed("http://archives.test/pub/A.zip")
    dedup_store.check_and_ingest("r1", b"payload")

    cleared = dedup_store.reset(records=False)
    assert cleared == ["NEWS_ZIP_URL"]
    assert dedup_store.status() == StoreStatus(completed_archives=0, seen_records=1, queued_records=1)

    cleared = dedup_store.reset()
    assert cleared == ["NEWS_ZIP_URL", "NEWS_XML_KEY"]
    assert dedup_store.status() == StoreStatus(completed_archives=0, seen_records=0, queued_records=1)


def test_from_config_uses_configured_keys(sqlite_backend) -> None:
    config = StoreConfig(queue_key="Q", seen_key="S", completed_key="C")
    store = DeduplicationStore.from_config(sqlite_backend, config)
    store.check_and_ingest("id", b"x")
    store.mark_archive_completed("u")

    assert sqlite_backend.list_items("Q") == [b"x"]
    assert sqlite_backend.hash_fields("S") == ["id"]
    assert sqlite_backend.hash_fields("C") == ["u"]
