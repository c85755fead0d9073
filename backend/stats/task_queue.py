"""
Queue of pending stats recomputations.

Change events are turned into ``RecomputeTask`` messages, one per affected
student. A task already waiting for the same student absorbs new ones, since
a recompute reads the latest state anyway. Worker threads consume the queue
and retry failed recomputes with exponential backoff; ``run_pending`` drains
it on the calling thread instead.
"""

from __future__ import annotations

import queue
import threading
import time
from dataclasses import dataclass
from typing import Optional, Set

from core import config
from core.errors import InvalidArgument, NotFound
from core.logger import logger
from stats.events import DocumentChange, affected_students

# Retrying these cannot succeed
_PERMANENT_ERRORS = (InvalidArgument, NotFound)


@dataclass(frozen=True)
class RecomputeTask:
    tenant_id: str
    student_id: str


class StatsTaskQueue:
    """Coalescing task queue feeding ``StatsAggregator.recompute``."""

    def __init__(
        self,
        aggregator,
        workers: Optional[int] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
    ):
        self._aggregator = aggregator
        self._workers = config.STATS_TASK_WORKERS if workers is None else workers
        self._max_attempts = max(1, max_attempts or config.STATS_TASK_MAX_ATTEMPTS)
        self._backoff = config.STATS_TASK_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        self._queue: "queue.Queue[RecomputeTask]" = queue.Queue()
        self._pending: Set[RecomputeTask] = set()
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._threads = []
        self.completed = 0
        self.failed = 0

    # ----- producers -----

    def publish(self, change: DocumentChange) -> Set[str]:
        """Enqueue a recompute for every student affected by ``change``."""
        students = affected_students(change)
        for student_id in sorted(students):
            self.submit(change.tenant_id, student_id)
        if students:
            logger.debug(
                f"{change.collection}/{change.document_id} in tenant {change.tenant_id} "
                f"queued {len(students)} stats recomputes"
            )
        return students

    def submit(self, tenant_id: str, student_id: str) -> bool:
        """Queue one recompute; returns False when an identical task is already waiting."""
        task = RecomputeTask(tenant_id, student_id)
        with self._lock:
            if task in self._pending:
                return False
            self._pending.add(task)
        self._queue.put(task)
        return True

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    # ----- consumers -----

    def run_pending(self) -> int:
        """Process every queued task on the calling thread; returns how many ran."""
        processed = 0
        while True:
            try:
                task = self._queue.get_nowait()
            except queue.Empty:
                return processed
            try:
                self._process(task)
            finally:
                self._queue.task_done()
            processed += 1

    def start(self) -> None:
        if self._threads or self._workers <= 0:
            return
        self._stop.clear()
        for index in range(self._workers):
            thread = threading.Thread(
                target=self._worker_loop, name=f"stats-worker-{index}", daemon=True
            )
            thread.start()
            self._threads.append(thread)
        logger.info(f"Started {self._workers} stats recompute workers")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout=timeout)
        self._threads = []

    def join(self) -> None:
        """Block until every queued task has been processed."""
        self._queue.join()

    def _worker_loop(self) -> None:
        while not self._stop.is_set():
            try:
                task = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue
            try:
                self._process(task)
            finally:
                self._queue.task_done()

    def _process(self, task: RecomputeTask) -> bool:
        # Changes arriving while this runs must queue a fresh task
        with self._lock:
            self._pending.discard(task)

        for attempt in range(1, self._max_attempts + 1):
            try:
                self._aggregator.recompute(task.tenant_id, task.student_id)
                with self._lock:
                    self.completed += 1
                return True
            except _PERMANENT_ERRORS as exc:
                logger.warning(f"Dropping stats task for {task.student_id} in {task.tenant_id}: {exc}")
                break
            except Exception as exc:
                if attempt >= self._max_attempts:
                    logger.error(
                        f"Stats recompute for {task.student_id} in {task.tenant_id} failed "
                        f"after {attempt} attempts: {exc}",
                        exc_info=True,
                    )
                    break
                delay = self._backoff * (2 ** (attempt - 1))
                logger.warning(
                    f"Stats recompute for {task.student_id} failed (attempt {attempt}), "
                    f"retrying in {delay:.2f}s: {exc}"
                )
                time.sleep(delay)

        with self._lock:
            self.failed += 1
        return False
