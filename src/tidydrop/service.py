"""Composition root exposing the pipeline's trigger surface."""

from __future__ import annotations

import logging
from typing import Iterable

from tidydrop.classification import ClassificationEngine, TrainingSummary
from tidydrop.config import ConfigProvider, TidydropConfig
from tidydrop.ingestion import InventorySynchronizer, RecategorizeReport, SyncReport
from tidydrop.inventory import FileRecord, InventoryRepository
from tidydrop.jobs import (
    CancellationToken,
    JobDispatcher,
    JobHandle,
    MoveResult,
    NotificationHub,
    SyncStage,
)
from tidydrop.organization import BatchRelocator, RelocationItem, RelocationReport

LOGGER = logging.getLogger(__name__)


class TidydropService:
    """Wire the pipeline components together for one configuration.

    The ``request_*`` methods schedule work on the dispatcher and return a
    job handle immediately; the plain methods run the same work inline.
    """

    def __init__(
        self,
        config: TidydropConfig,
        *,
        hub: NotificationHub | None = None,
        dispatcher: JobDispatcher | None = None,
    ) -> None:
        self.provider = ConfigProvider(config)
        self.hub = hub or NotificationHub()
        self.dispatcher = dispatcher or JobDispatcher(self.hub, max_workers=config.jobs.max_workers)
        self.repository = InventoryRepository(self.provider.state_dir())
        self.engine = ClassificationEngine(self.provider, config.classifier)
        self.synchronizer = InventorySynchronizer(
            self.provider, self.repository, self.engine, self.hub
        )
        self.relocator = BatchRelocator(self.provider, self.repository, self.hub)

    # ------------------------------------------------------------------ #
    # Inline operations                                                  #
    # ------------------------------------------------------------------ #

    def synchronize(self, token: CancellationToken | None = None) -> SyncReport:
        return self.synchronizer.synchronize(token)

    def relocate(
        self,
        items: Iterable[RelocationItem],
        token: CancellationToken | None = None,
    ) -> RelocationReport:
        return self.relocator.relocate(items, token)

    def train(self) -> TrainingSummary:
        return self.engine.train_and_save()

    def recategorize(self, token: CancellationToken | None = None) -> RecategorizeReport:
        return self.synchronizer.recategorize(token)

    def pending_relocations(self) -> list[RelocationItem]:
        """Build a relocation batch from categorized records that are not on hold."""
        return [
            RelocationItem(record_id=record.id, category=record.category)
            for record in self.repository.relocation_candidates()
            if record.id is not None and record.category
        ]

    def retire(self, record_id: int) -> FileRecord:
        """Soft-delete a record; a file with the same name is picked up again as new."""
        record = self.repository.retire(record_id)
        LOGGER.info("Retired inventory record %s (%s)", record.id, record.name)
        return record

    # ------------------------------------------------------------------ #
    # Background triggers                                                #
    # ------------------------------------------------------------------ #

    def request_synchronize(self) -> JobHandle:
        """Schedule a synchronization job."""
        return self.dispatcher.submit(
            "synchronize",
            lambda token: self.synchronizer.synchronize(token, job_id=token.job_id),
            failure_status=SyncStage.FAILED,
        )

    def request_relocate(self, items: Iterable[RelocationItem]) -> JobHandle:
        """Schedule a relocation job.

        Raises:
            ValueError: If ``items`` is empty.
        """
        batch = list(items)
        if not batch:
            raise ValueError("No files to move")
        return self.dispatcher.submit(
            "relocate",
            lambda token: self.relocator.relocate(batch, token, job_id=token.job_id),
            failure_status=MoveResult.FAILED,
        )

    def request_training(self) -> JobHandle:
        """Schedule an administrative retrain."""
        return self.dispatcher.submit("train", lambda _token: self.engine.train_and_save())

    def close(self) -> None:
        self.dispatcher.shutdown()

    def __enter__(self) -> "TidydropService":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


__all__ = ["TidydropService"]
