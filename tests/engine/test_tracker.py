from __future__ import annotations

import threading

import pytest

from archive_ingest.engine import CompletionTracker


def test_wait_returns_immediately_when_idle() -> None:
    assert CompletionTracker().wait(timeout=0.1) is True


def test_wait_blocks_until_every_unit_is_retired() -> None:
    tracker = CompletionTracker()
    tracker.add(3)
    release = threading.Event()

    def retire() -> None:
        release.wait()
        for _ in range(3):
            tracker.done()

    worker = threading.Thread(target=retire)
    worker.start()
    assert tracker.wait(timeout=0.05) is False
    assert tracker.pending == 3

    release.set()
    assert tracker.wait(timeout=5) is True
    worker.join()
    assert tracker.pending == 0


def test_done_without_add_is_an_error() -> None:
    tracker = CompletionTracker()
    tracker.add()
    tracker.done()
    with pytest.raises(RuntimeError):
        tracker.done()


def test_add_rejects_negative_counts() -> None:
    with pytest.raises(ValueError):
        CompletionTracker().add(-1)
