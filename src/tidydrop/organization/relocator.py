"""Move confirmed files into their category folders."""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path
from typing import Iterable, Optional

from tidydrop.classification import TrainingCorpus, TrainingExample
from tidydrop.config import ConfigProvider
from tidydrop.inventory import FileRecord, InventoryRepository
from tidydrop.jobs import (
    JOB_CHANNEL,
    MOVE_FILES_CHANNEL,
    CancellationToken,
    MoveResult,
    NotificationHub,
    format_elapsed,
)

from .models import ItemOutcome, RelocationItem, RelocationReport

LOGGER = logging.getLogger(__name__)


class BatchRelocator:
    """Relocate a batch of records one at a time, isolating per-item failures.

    For every item the file is moved, the record is marked relocated, and a
    training example is appended to the corpus. Items are processed in order
    and all events for an item are published before the next item starts.
    The ``is_not_to_move`` hold is not consulted here: callers decide which
    records belong in a batch. Retired records count as not present.
    """

    def __init__(
        self,
        provider: ConfigProvider,
        repository: InventoryRepository,
        hub: NotificationHub,
    ) -> None:
        self._provider = provider
        self._repository = repository
        self._hub = hub

    def relocate(
        self,
        items: Iterable[RelocationItem],
        token: CancellationToken | None = None,
        *,
        job_id: str | None = None,
    ) -> RelocationReport:
        """Process a relocation batch.

        Args:
            items: Records to move and the categories approved for them.
            token: Optional cancellation token checked between items.
            job_id: Identifier attached to published events.

        Returns:
            RelocationReport: Per-item outcomes and aggregate counts.

        Raises:
            MissingSettingError: If a required directory setting is unset.
                Raised before any item is touched.
        """
        batch = list(items)
        started = time.monotonic()
        origin = self._provider.origin_dir()
        destination_root = self._provider.destination_root()
        corpus = TrainingCorpus(self._provider.training_file())

        report = RelocationReport(requested=len(batch))
        for item in batch:
            if token is not None and token.cancelled:
                remaining = len(batch) - len(report.outcomes)
                LOGGER.info("Relocation cancelled with %d items left", remaining)
                report.cancelled = True
                break
            outcome = self._relocate_one(item, origin, destination_root, corpus, job_id)
            report.outcomes.append(outcome)
            if outcome.destination is not None:
                report.moved += 1
            if outcome.status is MoveResult.FAILED:
                report.failed += 1
            elif outcome.status is MoveResult.ID_NOT_PRESENT:
                report.missing += 1

        elapsed = format_elapsed(started)
        report.elapsed_ms = int((time.monotonic() - started) * 1000)
        LOGGER.info("Job completed: [%s]", elapsed)
        message = f"Completed Job in [{elapsed}] - Moved {report.moved} files"
        if report.failed or report.missing:
            message += f", {report.failed} failed, {report.missing} not present"
        if report.cancelled:
            message += " (cancelled)"
        self._hub.send(
            JOB_CHANNEL, job_id or "relocate", message, MoveResult.COMPLETED, job_id=job_id
        )
        return report

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _relocate_one(
        self,
        item: RelocationItem,
        origin: Path,
        destination_root: Path,
        corpus: TrainingCorpus,
        job_id: Optional[str],
    ) -> ItemOutcome:
        record: Optional[FileRecord] = None
        destination: Optional[Path] = None
        try:
            record = self._repository.get(item.record_id)
            if record is None or not record.active:
                LOGGER.warning("File with id %s is not present.", item.record_id)
                self._send(
                    item.record_id,
                    f"fileName with id {item.record_id} not present",
                    MoveResult.ID_NOT_PRESENT,
                    job_id,
                )
                return ItemOutcome(
                    record_id=item.record_id,
                    category=item.category,
                    status=MoveResult.ID_NOT_PRESENT,
                )

            example = TrainingExample(
                record_id=item.record_id, category=item.category, name=record.name
            )
            TrainingCorpus.format_line(example)

            source = origin / record.name
            folder = destination_root / item.category
            target = folder / record.name

            if not folder.is_dir():
                folder.mkdir(parents=True, exist_ok=True)
                LOGGER.info("Destination folder %s created", folder)

            self._move(source, target)
            LOGGER.info("%s moved to %s.", source, target)
            self._send(record.id, f"fileName = {record.name} moved", MoveResult.MOVED, job_id)

            self._confirm(record, item.category, source, target)
            destination = target
            LOGGER.info("Inventory updated: file %s", record.name)

            corpus.append(example)
            self._send(
                record.id, f"fileName = {record.name} completed", MoveResult.COMPLETED, job_id
            )
            return ItemOutcome(
                record_id=item.record_id,
                category=item.category,
                status=MoveResult.COMPLETED,
                name=record.name,
                destination=target,
            )
        except Exception as exc:
            LOGGER.error("Move file process failed for id %s: %s", item.record_id, exc)
            self._send(
                item.record_id,
                f"Error in moving fileName with id {item.record_id}: {exc}",
                MoveResult.FAILED,
                job_id,
            )
            return ItemOutcome(
                record_id=item.record_id,
                category=item.category,
                status=MoveResult.FAILED,
                name=record.name if record else None,
                destination=destination,
                error=str(exc),
            )

    def _move(self, source: Path, target: Path) -> None:
        if not source.is_file():
            raise FileNotFoundError(f"Source file is missing: {source}")
        if target.exists():
            raise FileExistsError(f"Destination already exists: {target}")
        shutil.move(str(source), str(target))

    def _confirm(self, record: FileRecord, category: str, source: Path, target: Path) -> None:
        try:
            record.mark_relocated(category)
            self._repository.update(record)
        except Exception:
            # Undo the move; the record was not updated.
            try:
                shutil.move(str(target), str(source))
            except OSError as undo_exc:
                LOGGER.error("Unable to return %s to %s: %s", target, source, undo_exc)
            raise

    def _send(
        self, subject: object, message: str, status: MoveResult, job_id: Optional[str]
    ) -> None:
        self._hub.send(MOVE_FILES_CHANNEL, subject, message, status, job_id=job_id)


__all__ = ["BatchRelocator"]
