"""Bounded-queue worker pools chained into pipeline stages."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from queue import Queue
from threading import Lock
from typing import Callable, Generic, TypeVar

import structlog

from ..logging_conf import get_logger

T = TypeVar("T")

_STOP = object()


class PipelineStage(Generic[T]):
    """Fan-out/fan-in stage: ``workers`` threads draining one bounded queue.

    Producers block in :meth:`submit` while the queue is full. Each worker
    hands items to ``handler``; an exception escaping the handler is logged
    and the worker moves on to the next item.
    """

    def __init__(
        self,
        name: str,
        workers: int,
        handler: Callable[[T], None],
        maxsize: int = 0,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self.name = name
        self.workers = workers
        self.handler = handler
        self.logger = logger or get_logger("stage").bind(stage=name)
        self._queue: Queue = Queue(maxsize=maxsize)
        self._executor: ThreadPoolExecutor | None = None
        self._futures: list[Future] = []
        self._closed = False
        self._lock = Lock()

    def start(self) -> None:
        with self._lock:
            if self._executor is not None:
                return
            self._executor = ThreadPoolExecutor(
                max_workers=self.workers, thread_name_prefix=f"ingest-{self.name}"
            )
            self._futures = [self._executor.submit(self._worker_loop) for _ in range(self.workers)]

    def submit(self, item: T) -> None:
        if self._closed:
            raise RuntimeError(f"Stage {self.name} is closed")
        self._queue.put(item)

    def close(self) -> None:
        """Stop accepting items; workers exit once the queue is drained."""

        with self._lock:
            if self._closed:
                return
            self._closed = True
        for _ in range(self.workers):
            self._queue.put(_STOP)

    def join(self) -> None:
        for future in self._futures:
            future.result()
        if self._executor is not None:
            self._executor.shutdown(wait=True)

    def _worker_loop(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self.handler(item)
            except Exception as exc:  # noqa: BLE001
                self.logger.error("stage_item_error", item=repr(item), error=str(exc), exc_info=True)
            finally:
                self._queue.task_done()


__all__ = ["PipelineStage"]
