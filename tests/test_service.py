"""Service composition, background triggers and watch mode tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from tidydrop.ingestion import SyncReport
from tidydrop.jobs import JOB_CHANNEL, JobHandle, JobStatus, SyncStage
from tidydrop.organization import RelocationItem, RelocationReport
from tidydrop.service import TidydropService
from tidydrop.watch import WatchService


def test_request_relocate_rejects_empty_batch(service: TidydropService) -> None:
    with pytest.raises(ValueError, match="No files to move"):
        service.request_relocate([])


def test_request_synchronize_runs_in_background(
    service: TidydropService, dirs: dict[str, Path], sample_corpus: Path
) -> None:
    (dirs["origin"] / "invoice_2024.pdf").write_text("x", encoding="utf-8")
    subscription = service.hub.subscribe([JOB_CHANNEL])

    handle = service.request_synchronize()

    assert handle.wait(30)
    assert handle.status is JobStatus.SUCCEEDED
    assert isinstance(handle.result, SyncReport)
    assert handle.result.added == 1
    (event,) = subscription.drain()
    assert event.job_id == handle.id
    assert event.status == SyncStage.COMPLETED


def test_request_synchronize_failure_publishes_failed_stage(
    service: TidydropService, dirs: dict[str, Path]
) -> None:
    dirs["origin"].rmdir()
    subscription = service.hub.subscribe([JOB_CHANNEL])

    handle = service.request_synchronize()

    assert handle.wait(30)
    assert handle.status is JobStatus.FAILED
    (event,) = subscription.drain()
    assert event.status == SyncStage.FAILED


def test_pending_relocations_skip_held_records(
    service: TidydropService, dirs: dict[str, Path], sample_corpus: Path
) -> None:
    for name in ("invoice_2024.pdf", "IMG_0001.jpg"):
        (dirs["origin"] / name).write_text(name, encoding="utf-8")
    service.synchronize()
    held = service.repository.find_by_name("IMG_0001.jpg")
    service.repository.set_hold(held.id, True)

    batch = service.pending_relocations()

    assert [item.category for item in batch] == ["Invoices"]

    handle = service.request_relocate(batch)
    assert handle.wait(30)
    assert isinstance(handle.result, RelocationReport)
    assert handle.result.moved == 1
    assert (dirs["destination"] / "Invoices" / "invoice_2024.pdf").is_file()
    assert (dirs["origin"] / "IMG_0001.jpg").is_file()


def test_request_training_returns_summary(
    service: TidydropService, sample_corpus: Path
) -> None:
    handle = service.request_training()

    assert handle.wait(30)
    assert handle.result.examples == 10
    assert service.engine.current_version() == handle.result.version


def test_relocate_inline_reports_missing_ids(service: TidydropService) -> None:
    report = service.relocate([RelocationItem(record_id=5, category="Invoices")])

    assert report.missing == 1
    assert report.moved == 0


def test_watch_debounces_changes_into_one_sync(
    service: TidydropService, dirs: dict[str, Path], sample_corpus: Path
) -> None:
    watcher = WatchService(service, debounce_override=0.2)
    handles: list[JobHandle] = []

    def _on_job(handle: JobHandle) -> None:
        handles.append(handle)
        watcher.stop()

    for name in ("invoice_2024.pdf", "IMG_0001.jpg"):
        path = dirs["origin"] / name
        path.write_text(name, encoding="utf-8")
        watcher.notify(path)

    watcher.watch(_on_job)

    assert len(handles) == 1
    assert handles[0].wait(30)
    assert handles[0].result.added == 2


def test_watch_process_once_synchronizes(
    service: TidydropService, dirs: dict[str, Path]
) -> None:
    (dirs["origin"] / "notes.txt").write_text("x", encoding="utf-8")

    report = WatchService(service).process_once()

    assert report.added == 1


def test_watch_can_restart_after_stop(
    service: TidydropService, dirs: dict[str, Path]
) -> None:
    watcher = WatchService(service, debounce_override=0.2)
    watcher.stop()
    handles: list[JobHandle] = []

    def _on_job(handle: JobHandle) -> None:
        handles.append(handle)
        watcher.stop()

    path = dirs["origin"] / "notes.txt"
    path.write_text("x", encoding="utf-8")
    watcher.notify(path)

    watcher.watch(_on_job)

    assert len(handles) == 1
    assert handles[0].wait(30)
    assert handles[0].result.added == 1


def test_retire_removes_record_from_inventory(
    service: TidydropService, dirs: dict[str, Path]
) -> None:
    (dirs["origin"] / "notes.txt").write_text("x", encoding="utf-8")
    service.synchronize()
    record = service.repository.find_by_name("notes.txt")

    retired = service.retire(record.id)

    assert retired.is_deleted
    assert service.repository.find_by_name("notes.txt") is None

    report = service.synchronize()

    assert report.added == 1
    assert service.repository.find_by_name("notes.txt").id != record.id
