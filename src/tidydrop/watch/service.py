"""Watch the origin folder and schedule synchronization when it changes."""

from __future__ import annotations

import logging
import queue
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from tidydrop.ingestion import SyncReport
from tidydrop.jobs import JobHandle

if TYPE_CHECKING:
    from tidydrop.service import TidydropService

LOGGER = logging.getLogger(__name__)


class WatchService:
    """Debounce filesystem events on the origin folder into sync jobs.

    Every burst of create, modify, or move events is collapsed into a single
    call to :meth:`TidydropService.request_synchronize` once the folder has
    been quiet for the debounce interval.
    """

    def __init__(
        self,
        service: "TidydropService",
        *,
        debounce_override: Optional[float] = None,
    ) -> None:
        """Initialize the watch service.

        Args:
            service: Service whose origin folder is monitored.
            debounce_override: Optional debounce interval override in seconds.
        """
        self._service = service
        self._root = service.provider.origin_dir()
        configured = service.provider.config.jobs.watch_debounce_seconds
        self._debounce_seconds = (
            max(0.1, debounce_override)
            if debounce_override and debounce_override > 0
            else max(0.1, configured)
        )
        self._observer: Optional[Observer] = None  # type: ignore[valid-type]
        self._queue: queue.Queue[Optional[Path]] = queue.Queue()
        self._stop_event = threading.Event()

    @property
    def root(self) -> Path:
        return self._root

    @property
    def debounce_seconds(self) -> float:
        return self._debounce_seconds

    def process_once(self) -> SyncReport:
        """Run one synchronization inline, e.g. before starting to watch."""
        return self._service.synchronize()

    def watch(self, callback: Callable[[JobHandle], None]) -> None:
        """Block and schedule a sync job after each burst of changes.

        Args:
            callback: Callable invoked with the handle of each scheduled job.
        """
        if self._observer is not None:
            raise RuntimeError("WatchService is already running.")
        if not self._root.is_dir():
            raise FileNotFoundError(f"Origin folder does not exist: {self._root}")

        self._stop_event.clear()
        self._discard_stop_sentinels()
        self._observer = Observer()
        self._observer.schedule(
            _OriginEventHandler(self._queue), str(self._root), recursive=False
        )
        self._observer.start()
        LOGGER.info("Watching %s (debounce %.1fs)", self._root, self._debounce_seconds)
        try:
            self._run_loop(callback)
        finally:
            self.stop()

    def stop(self) -> None:
        """Stop the observer and release the processing loop."""
        self._stop_event.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
        self._queue.put(None)

    def notify(self, path: Path) -> None:
        """Queue a changed path as if the observer had reported it."""
        self._queue.put(path)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _discard_stop_sentinels(self) -> None:
        # A previous stop() leaves a None behind; keep any queued paths.
        queued: list[Path] = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            if item is not None:
                queued.append(item)
        for item in queued:
            self._queue.put(item)

    def _run_loop(self, callback: Callable[[JobHandle], None]) -> None:
        pending: set[Path] = set()
        flush_deadline: Optional[float] = None

        while not self._stop_event.is_set():
            timeout: Optional[float] = None
            if flush_deadline is not None:
                timeout = max(0.0, flush_deadline - time.monotonic())

            try:
                path = self._queue.get(timeout=timeout)
            except queue.Empty:
                if pending:
                    self._flush(pending, callback)
                    pending.clear()
                flush_deadline = None
                continue

            if path is None:
                break
            pending.add(path)
            flush_deadline = time.monotonic() + self._debounce_seconds

    def _flush(self, paths: set[Path], callback: Callable[[JobHandle], None]) -> None:
        LOGGER.info("Detected %d changed paths in %s", len(paths), self._root)
        handle = self._service.request_synchronize()
        callback(handle)


class _OriginEventHandler(FileSystemEventHandler):
    """Forward file events from the origin folder into the service queue."""

    def __init__(self, queue_handle: queue.Queue[Optional[Path]]) -> None:
        self._queue = queue_handle

    def on_created(self, event: FileSystemEvent) -> None:
        self._enqueue(event.src_path, event.is_directory)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._enqueue(event.src_path, event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:  # pragma: no cover - watchdog-specific
        self._enqueue(getattr(event, "dest_path", event.src_path), event.is_directory)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._enqueue(event.src_path, event.is_directory)

    def _enqueue(self, raw_path: object, is_directory: bool) -> None:
        if is_directory:
            return
        path = Path(str(raw_path)).expanduser()
        if path.name.startswith("."):
            return
        self._queue.put(path)


__all__ = ["WatchService"]
