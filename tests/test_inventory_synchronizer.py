"""Synchronization tests: origin folder scan, prediction and inventory writes."""

from __future__ import annotations

from pathlib import Path

import pytest

from tidydrop.classification import ClassificationEngine, Prediction
from tidydrop.config import ConfigProvider
from tidydrop.ingestion import DirectoryScanner, InventorySynchronizer, ScanError
from tidydrop.inventory import InventoryRepository, RecordState
from tidydrop.jobs import (
    JOB_CHANNEL,
    REFRESH_FILES_CHANNEL,
    CancellationToken,
    NotificationHub,
    SyncStage,
)


def _synchronizer(
    provider: ConfigProvider, repository: InventoryRepository, hub: NotificationHub
) -> InventorySynchronizer:
    return InventorySynchronizer(provider, repository, ClassificationEngine(provider), hub)


def _drop(dirs: dict[str, Path], *names: str) -> None:
    for name in names:
        (dirs["origin"] / name).write_text(name, encoding="utf-8")


def test_new_file_is_recorded_with_predicted_category(
    provider, repository, hub, dirs, sample_corpus
) -> None:
    _drop(dirs, "invoice_2024.pdf")

    report = _synchronizer(provider, repository, hub).synchronize()

    assert report.scanned == 1
    assert report.added == 1
    assert report.categorized == 1
    record = repository.find_by_name("invoice_2024.pdf")
    assert record is not None
    assert record.category == "Invoices"
    assert record.state is RecordState.CATEGORIZED
    assert record.is_new and record.is_to_categorize
    assert record.size == len("invoice_2024.pdf")


def test_synchronize_is_idempotent(provider, repository, hub, dirs, sample_corpus) -> None:
    _drop(dirs, "invoice_2024.pdf", "IMG_0001.jpg")
    synchronizer = _synchronizer(provider, repository, hub)

    first = synchronizer.synchronize()
    second = synchronizer.synchronize()

    assert first.added == 2
    assert second.added == 0
    assert second.scanned == 2
    assert len(repository.list_active()) == 2


def test_without_model_records_wait_for_category(provider, repository, hub, dirs) -> None:
    _drop(dirs, "mystery.bin")

    report = _synchronizer(provider, repository, hub).synchronize()

    assert report.added == 1
    assert report.uncategorized == 1
    record = repository.find_by_name("mystery.bin")
    assert record.category is None
    assert record.state is RecordState.PENDING_CATEGORIZATION


def test_hidden_files_and_directories_are_ignored(
    provider, repository, hub, dirs, sample_corpus
) -> None:
    _drop(dirs, ".DS_Store", "invoice_2024.pdf")
    (dirs["origin"] / "nested").mkdir()
    (dirs["origin"] / "nested" / "inner.pdf").write_text("x", encoding="utf-8")

    report = _synchronizer(provider, repository, hub).synchronize()

    assert report.scanned == 1
    assert repository.active_names() == {"invoice_2024.pdf"}


def test_missing_origin_raises_and_reports_failure(provider, repository, hub, dirs) -> None:
    dirs["origin"].rmdir()
    subscription = hub.subscribe([REFRESH_FILES_CHANNEL])

    with pytest.raises(ScanError):
        _synchronizer(provider, repository, hub).synchronize()

    stages = [event.status for event in subscription.drain()]
    assert stages == [SyncStage.STARTED, SyncStage.FAILED]
    assert repository.list_active() == []


def test_progress_events_and_completion_message(
    provider, repository, hub, dirs, sample_corpus
) -> None:
    _drop(dirs, "invoice_2024.pdf")
    subscription = hub.subscribe()

    _synchronizer(provider, repository, hub).synchronize(job_id="job-1")

    events = subscription.drain()
    refresh = [event.status for event in events if event.channel == REFRESH_FILES_CHANNEL]
    assert refresh == [
        SyncStage.STARTED,
        SyncStage.SCANNED,
        SyncStage.CLASSIFIED,
        SyncStage.PERSISTED,
    ]
    final = events[-1]
    assert final.channel == JOB_CHANNEL
    assert final.status == SyncStage.COMPLETED
    assert final.message.startswith("Refresh Files job Completed in [")
    assert final.message.endswith("- Added 1 files, total files in folder: 1")
    assert all(event.job_id == "job-1" for event in events)


def test_cancelled_synchronize_writes_nothing(
    provider, repository, hub, dirs, sample_corpus
) -> None:
    _drop(dirs, "invoice_2024.pdf")
    token = CancellationToken()
    token.cancel()

    report = _synchronizer(provider, repository, hub).synchronize(token)

    assert report.cancelled
    assert report.added == 0
    assert repository.list_active() == []


def test_recategorize_fills_in_waiting_records(
    provider, repository, hub, dirs, corpus_writer
) -> None:
    _drop(dirs, "invoice_2024.pdf")
    synchronizer = _synchronizer(provider, repository, hub)
    synchronizer.synchronize()
    assert repository.find_by_name("invoice_2024.pdf").category is None

    corpus_writer()
    report = synchronizer.recategorize()

    assert report.considered == 1
    assert report.categorized == 1
    assert repository.find_by_name("invoice_2024.pdf").category == "Invoices"


def test_scanner_rejects_file_as_root(tmp_path: Path) -> None:
    target = tmp_path / "file.txt"
    target.write_text("x", encoding="utf-8")

    with pytest.raises(ScanError):
        DirectoryScanner().scan(target)


def test_failed_prediction_leaves_only_that_file_pending(
    provider, repository, hub, dirs, monkeypatch: pytest.MonkeyPatch
) -> None:
    _drop(dirs, "invoice_2024.pdf", "mystery.bin", "IMG_0001.jpg")
    engine = ClassificationEngine(provider)

    def _classify(names):
        return [
            Prediction(name=name, error="unreadable")
            if name == "mystery.bin"
            else Prediction(name=name, category="Invoices", score=0.9)
            for name in names
        ]

    monkeypatch.setattr(engine, "classify", _classify)
    synchronizer = InventorySynchronizer(provider, repository, engine, hub)

    report = synchronizer.synchronize()

    assert report.added == 3
    assert report.categorized == 2
    assert report.uncategorized == 1
    failed = repository.find_by_name("mystery.bin")
    assert failed.state is RecordState.PENDING_CATEGORIZATION
    assert failed.category is None
    for name in ("invoice_2024.pdf", "IMG_0001.jpg"):
        record = repository.find_by_name(name)
        assert record.state is RecordState.CATEGORIZED
        assert record.category == "Invoices"
