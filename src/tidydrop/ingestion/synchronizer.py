"""Reconcile the origin directory with the inventory."""

from __future__ import annotations

import logging
import time
from typing import Optional, Sequence

from tidydrop.classification import ClassificationEngine, ClassificationError
from tidydrop.config import ConfigProvider
from tidydrop.inventory import DuplicateRecordError, FileRecord, InventoryRepository, RecordState
from tidydrop.jobs import (
    JOB_CHANNEL,
    REFRESH_FILES_CHANNEL,
    CancellationToken,
    NotificationHub,
    SyncStage,
    format_elapsed,
)

from .discovery import DirectoryScanner
from .models import RecategorizeReport, ScannedFile, SyncReport

LOGGER = logging.getLogger(__name__)

_SUBJECT = "refresh"


class InventorySynchronizer:
    """Create inventory records for files that appeared in the origin directory.

    New records are classified before their first write, so a synchronized
    record is never visible without its predicted category unless prediction
    failed for it.
    """

    def __init__(
        self,
        provider: ConfigProvider,
        repository: InventoryRepository,
        engine: ClassificationEngine,
        hub: NotificationHub,
        scanner: DirectoryScanner | None = None,
    ) -> None:
        self._provider = provider
        self._repository = repository
        self._engine = engine
        self._hub = hub
        self._scanner = scanner or DirectoryScanner()

    def synchronize(
        self,
        token: CancellationToken | None = None,
        *,
        job_id: str | None = None,
    ) -> SyncReport:
        """Scan the origin directory and record unseen files.

        Args:
            token: Optional cancellation token checked between steps.
            job_id: Identifier attached to published events.

        Returns:
            SyncReport: Scan and insert counts.

        Raises:
            MissingSettingError: If the origin directory is not configured.
            ScanError: If the origin directory cannot be read.
        """
        started = time.monotonic()
        report = SyncReport()
        self._progress("Started refresh files", SyncStage.STARTED, job_id)
        LOGGER.info("Start refresh files process")

        try:
            origin = self._provider.origin_dir()
            scanned = self._scanner.scan(origin)
            report.scanned = len(scanned)
            records = self._diff(scanned)
            self._progress(
                f"Scanned {report.scanned} files, {len(records)} not in inventory",
                SyncStage.SCANNED,
                job_id,
            )
            if _cancelled(token):
                return self._finish_cancelled(report, started, job_id)

            if records:
                LOGGER.info("Start prediction process for %d files", len(records))
                prediction_started = time.monotonic()
                self._predict(records)
                LOGGER.info("End prediction process: [%s]", format_elapsed(prediction_started))
                report.categorized = sum(1 for r in records if r.state is RecordState.CATEGORIZED)
                report.uncategorized = len(records) - report.categorized
                self._progress(
                    f"Predicted categories for {report.categorized} of {len(records)} files",
                    SyncStage.CLASSIFIED,
                    job_id,
                )
                if _cancelled(token):
                    return self._finish_cancelled(report, started, job_id)

                stored = self._persist(records)
                report.added = len(stored)
                report.categorized = sum(1 for r in stored if r.state is RecordState.CATEGORIZED)
                report.uncategorized = report.added - report.categorized
                self._progress(f"Added {report.added} files", SyncStage.PERSISTED, job_id)
        except Exception as exc:
            LOGGER.error("Error in refresh files: %s", exc)
            self._progress(f"Error in refresh files: {exc}", SyncStage.FAILED, job_id)
            raise

        elapsed = format_elapsed(started)
        report.elapsed_ms = int((time.monotonic() - started) * 1000)
        LOGGER.info("Refresh files job completed: [%s]", elapsed)
        self._hub.send(
            JOB_CHANNEL,
            job_id or _SUBJECT,
            f"Refresh Files job Completed in [{elapsed}] - Added {report.added} files, "
            f"total files in folder: {report.scanned}",
            SyncStage.COMPLETED,
            job_id=job_id,
        )
        return report

    def recategorize(self, token: CancellationToken | None = None) -> RecategorizeReport:
        """Re-run prediction for active records still waiting for a category.

        Records already carrying a provisional category are left untouched.

        Raises:
            ModelUnavailableError: If no model exists and none can be trained.
        """
        waiting = [
            record
            for record in self._repository.pending()
            if record.state is RecordState.PENDING_CATEGORIZATION
        ]
        report = RecategorizeReport(considered=len(waiting))
        if not waiting or _cancelled(token):
            report.still_pending = len(waiting)
            return report

        predictions = self._engine.classify([record.name for record in waiting])
        for record, prediction in zip(waiting, predictions, strict=True):
            record.apply_prediction(prediction.category)
        if _cancelled(token):
            report.still_pending = len(waiting)
            return report
        self._repository.update_many(waiting)
        report.categorized = sum(1 for r in waiting if r.state is RecordState.CATEGORIZED)
        report.still_pending = report.considered - report.categorized
        LOGGER.info(
            "Recategorized %d of %d pending records", report.categorized, report.considered
        )
        return report

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _diff(self, scanned: Sequence[ScannedFile]) -> list[FileRecord]:
        known = self._repository.active_names()
        records: list[FileRecord] = []
        for item in scanned:
            if item.name in known:
                continue
            LOGGER.info("File %s not present in inventory", item.name)
            known.add(item.name)
            records.append(
                FileRecord(
                    name=item.name,
                    path=str(item.path.parent),
                    size=item.size_bytes,
                    last_modified=item.modified_at,
                )
            )
        return records

    def _predict(self, records: list[FileRecord]) -> None:
        try:
            predictions = self._engine.classify([record.name for record in records])
        except ClassificationError as exc:
            LOGGER.warning("Files left uncategorized: %s", exc)
            for record in records:
                record.apply_prediction(None)
            return
        for record, prediction in zip(records, predictions, strict=True):
            if prediction.error:
                LOGGER.warning("No category predicted for %s: %s", record.name, prediction.error)
            record.apply_prediction(prediction.category)

    def _persist(self, records: list[FileRecord]) -> list[FileRecord]:
        LOGGER.info("Start add process")
        add_started = time.monotonic()
        try:
            stored = self._repository.add_many(records)
        except DuplicateRecordError:
            # Another run recorded some of these names after the diff.
            known = self._repository.active_names()
            remaining = [record for record in records if record.name not in known]
            stored = self._repository.add_many(remaining)
        LOGGER.info("End adding process: [%s]", format_elapsed(add_started))
        return stored

    def _finish_cancelled(
        self, report: SyncReport, started: float, job_id: Optional[str]
    ) -> SyncReport:
        report.cancelled = True
        report.elapsed_ms = int((time.monotonic() - started) * 1000)
        LOGGER.info("Refresh files cancelled after [%s]", format_elapsed(started))
        self._hub.send(
            JOB_CHANNEL,
            job_id or _SUBJECT,
            f"Refresh Files job cancelled - scanned {report.scanned} files, nothing added",
            SyncStage.COMPLETED,
            job_id=job_id,
        )
        return report

    def _progress(self, message: str, stage: SyncStage, job_id: Optional[str]) -> None:
        self._hub.send(REFRESH_FILES_CHANNEL, job_id or _SUBJECT, message, stage, job_id=job_id)


def _cancelled(token: CancellationToken | None) -> bool:
    return token is not None and token.cancelled


__all__ = ["InventorySynchronizer"]
