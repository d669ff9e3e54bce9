from __future__ import annotations

import io
import threading

import pytest
from rich.console import Console

from archive_ingest.ui import ProgressActivity, ProgressReporter


def test_progress_reporter_counts() -> None:
    reporter = ProgressReporter(enabled=False)
    reporter.start(total=3)
    reporter.advance(success=True, current_url="http://archives.test/pub/A.zip")
    reporter.advance(failed=True)
    reporter.advance(skipped=True)
    summary = reporter.summary()
    reporter.close()

    assert summary == {"success": 1, "failed": 1, "skipped": 1}
    assert reporter.state.completed == 3
    assert reporter.state.current_url == "http://archives.test/pub/A.zip"


def test_progress_requires_start() -> None:
    reporter = ProgressReporter(enabled=False)
    with pytest.raises(RuntimeError):
        reporter.advance()


def test_progress_stays_silent_without_terminal() -> None:
    buffer = io.StringIO()
    reporter = ProgressReporter(console=Console(file=buffer, force_terminal=False))
    reporter.start(total=2)
    reporter.advance(success=True)
    reporter.close()

    assert reporter.enabled is False
    assert buffer.getvalue() == ""


def test_progress_advance_is_thread_safe() -> None:
    reporter = ProgressReporter(enabled=False)
    reporter.start(total=400)
    threads = [
        threading.Thread(target=lambda: [reporter.advance(success=True) for _ in range(100)])
        for _ in range(4)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert reporter.summary()["success"] == 400


def test_progress_activity_is_noop_when_disabled() -> None:
    buffer = io.StringIO()
    with ProgressActivity(enabled=False, console=Console(file=buffer)) as activity:
        activity.start("Fetching listing …")
    assert buffer.getvalue() == ""
