"""Background job runner with cooperative cancellation."""

from __future__ import annotations

import logging
import queue
import threading
import time
import uuid
from enum import Enum
from typing import Any, Callable, Optional

from .notifications import JOB_CHANNEL, NotificationHub

LOGGER = logging.getLogger(__name__)


class CancellationToken:
    """Flag observed by pipeline steps between units of work.

    Attributes:
        job_id: Identifier of the job the token belongs to, if any.
    """

    def __init__(self, job_id: str | None = None) -> None:
        self.job_id = job_id
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class JobHandle:
    """Caller-side view of a submitted job.

    Attributes:
        id: Unique job identifier.
        name: Short job description, e.g. ``synchronize``.
        status: Current lifecycle status.
        result: Return value of the job once it succeeded.
        error: Exception raised by the job once it failed.
        token: Cancellation token passed to the job.
    """

    def __init__(self, name: str) -> None:
        self.id = uuid.uuid4().hex
        self.name = name
        self.status = JobStatus.QUEUED
        self.result: Any = None
        self.error: Optional[BaseException] = None
        self.token = CancellationToken(self.id)
        self._done = threading.Event()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def cancel(self) -> None:
        """Request cooperative cancellation."""
        self.token.cancel()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the job finishes; return False on timeout."""
        return self._done.wait(timeout)

    def _finish(self, status: JobStatus) -> None:
        self.status = status
        self._done.set()

    def __repr__(self) -> str:
        return f"JobHandle(id={self.id!r}, name={self.name!r}, status={self.status.value!r})"


_Job = tuple[JobHandle, Callable[[CancellationToken], Any], int]


class JobDispatcher:
    """Run submitted callables on a fixed pool of worker threads.

    Jobs start in submission order; with more than one worker they may run
    concurrently. A job that raises is marked failed and a terminal event is
    published on the job channel.
    """

    def __init__(self, hub: NotificationHub, *, max_workers: int = 2) -> None:
        self._hub = hub
        self._max_workers = max(1, max_workers)
        self._queue: queue.Queue[Optional[_Job]] = queue.Queue()
        self._workers: list[threading.Thread] = []
        self._lock = threading.Lock()
        self._closed = False

    def submit(
        self,
        name: str,
        work: Callable[[CancellationToken], Any],
        *,
        failure_status: int = 1,
    ) -> JobHandle:
        """Queue ``work`` and return its handle immediately.

        Args:
            name: Job description used in logs and events.
            work: Callable receiving the job's cancellation token.
            failure_status: Status code published if the job raises.

        Returns:
            JobHandle: Handle for tracking and cancelling the job.
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("JobDispatcher has been shut down.")
            self._start_workers()
            handle = JobHandle(name)
            self._queue.put((handle, work, failure_status))
        LOGGER.info("Queued job %s (%s)", handle.name, handle.id)
        return handle

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting jobs and let workers exit after the queue drains."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            for _ in self._workers:
                self._queue.put(None)
            workers = list(self._workers)
        if wait:
            for worker in workers:
                worker.join()

    def __enter__(self) -> "JobDispatcher":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.shutdown()

    def _start_workers(self) -> None:
        while len(self._workers) < self._max_workers:
            worker = threading.Thread(
                target=self._run_worker,
                name=f"tidydrop-job-{len(self._workers) + 1}",
                daemon=True,
            )
            worker.start()
            self._workers.append(worker)

    def _run_worker(self) -> None:
        while True:
            job = self._queue.get()
            if job is None:
                return
            self._execute(*job)

    def _execute(
        self,
        handle: JobHandle,
        work: Callable[[CancellationToken], Any],
        failure_status: int,
    ) -> None:
        if handle.token.cancelled:
            LOGGER.info("Job %s (%s) cancelled before start", handle.name, handle.id)
            handle._finish(JobStatus.CANCELLED)
            return

        handle.status = JobStatus.RUNNING
        started = time.monotonic()
        try:
            handle.result = work(handle.token)
        except Exception as exc:
            elapsed = format_elapsed(started)
            handle.error = exc
            LOGGER.exception("Job %s (%s) failed after [%s]", handle.name, handle.id, elapsed)
            self._hub.send(
                JOB_CHANNEL,
                handle.id,
                f"Job {handle.name} failed in [{elapsed}]: {exc}",
                failure_status,
                job_id=handle.id,
            )
            handle._finish(JobStatus.FAILED)
            return

        status = JobStatus.CANCELLED if handle.token.cancelled else JobStatus.SUCCEEDED
        LOGGER.info(
            "Job %s (%s) %s in [%s]", handle.name, handle.id, status.value, format_elapsed(started)
        )
        handle._finish(status)


def format_elapsed(started: float) -> str:
    """Format the time since the ``time.monotonic()`` value ``started`` as ``"<n> ms"``."""
    return f"{int((time.monotonic() - started) * 1000)} ms"


__all__ = ["CancellationToken", "JobStatus", "JobHandle", "JobDispatcher", "format_elapsed"]
