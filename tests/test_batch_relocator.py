"""Relocation tests: moves, inventory updates and the training feedback loop."""

from __future__ import annotations

from pathlib import Path

import pytest

from tidydrop.classification import ClassificationEngine, TrainingCorpus
from tidydrop.config import ConfigProvider
from tidydrop.inventory import FileRecord, InventoryError, InventoryRepository, RecordState
from tidydrop.jobs import (
    JOB_CHANNEL,
    MOVE_FILES_CHANNEL,
    CancellationToken,
    MoveResult,
    NotificationHub,
)
from tidydrop.organization import BatchRelocator, RelocationItem


def _seed(dirs: dict[str, Path], repository: InventoryRepository, *names: str) -> list[int]:
    ids: list[int] = []
    for name in names:
        (dirs["origin"] / name).write_text(name, encoding="utf-8")
        record = FileRecord(name=name, path=str(dirs["origin"]))
        record.apply_prediction(None)
        ids.append(repository.add(record).id)
    return ids


def _relocator(
    provider: ConfigProvider, repository: InventoryRepository, hub: NotificationHub
) -> BatchRelocator:
    return BatchRelocator(provider, repository, hub)


def test_relocate_moves_file_and_records_training_example(
    provider, repository, hub, dirs
) -> None:
    (record_id,) = _seed(dirs, repository, "invoice_2024.pdf")

    report = _relocator(provider, repository, hub).relocate(
        [RelocationItem(record_id=record_id, category="Invoices")]
    )

    target = dirs["destination"] / "Invoices" / "invoice_2024.pdf"
    assert target.is_file()
    assert not (dirs["origin"] / "invoice_2024.pdf").exists()
    assert report.moved == 1
    assert report.outcomes[0].status is MoveResult.COMPLETED
    assert report.outcomes[0].destination == target

    record = repository.require(record_id)
    assert record.state is RecordState.RELOCATED
    assert record.category == "Invoices"
    assert not record.is_new and not record.is_to_categorize

    examples, _ = TrainingCorpus(provider.training_file()).read()
    assert [(e.record_id, e.category, e.name) for e in examples] == [
        (record_id, "Invoices", "invoice_2024.pdf")
    ]


def test_partial_failure_does_not_stop_batch(provider, repository, hub, dirs) -> None:
    first, second = _seed(dirs, repository, "a.pdf", "b.jpg")

    report = _relocator(provider, repository, hub).relocate(
        [
            RelocationItem(record_id=first, category="Invoices"),
            RelocationItem(record_id=999, category="Invoices"),
            RelocationItem(record_id=second, category="Photos"),
        ]
    )

    statuses = [outcome.status for outcome in report.outcomes]
    assert statuses == [MoveResult.COMPLETED, MoveResult.ID_NOT_PRESENT, MoveResult.COMPLETED]
    assert report.moved == 2
    assert report.missing == 1
    assert report.failed == 0
    assert (dirs["destination"] / "Photos" / "b.jpg").is_file()


def test_existing_destination_fails_item_and_leaves_record(
    provider, repository, hub, dirs
) -> None:
    (record_id,) = _seed(dirs, repository, "a.pdf")
    occupied = dirs["destination"] / "Invoices"
    occupied.mkdir()
    (occupied / "a.pdf").write_text("older", encoding="utf-8")

    report = _relocator(provider, repository, hub).relocate(
        [RelocationItem(record_id=record_id, category="Invoices")]
    )

    assert report.outcomes[0].status is MoveResult.FAILED
    assert report.failed == 1
    assert report.moved == 0
    assert (dirs["origin"] / "a.pdf").is_file()
    assert (occupied / "a.pdf").read_text(encoding="utf-8") == "older"
    assert repository.require(record_id).state is RecordState.PENDING_CATEGORIZATION
    assert not provider.training_file().exists()


def test_missing_source_file_fails_item(provider, repository, hub, dirs) -> None:
    (record_id,) = _seed(dirs, repository, "gone.pdf")
    (dirs["origin"] / "gone.pdf").unlink()

    report = _relocator(provider, repository, hub).relocate(
        [RelocationItem(record_id=record_id, category="Invoices")]
    )

    assert report.outcomes[0].status is MoveResult.FAILED
    assert "missing" in report.outcomes[0].error


def test_held_records_are_still_moved_when_requested(provider, repository, hub, dirs) -> None:
    (record_id,) = _seed(dirs, repository, "keep.pdf")
    repository.set_hold(record_id, True)

    report = _relocator(provider, repository, hub).relocate(
        [RelocationItem(record_id=record_id, category="Invoices")]
    )

    assert report.moved == 1
    assert not repository.require(record_id).is_not_to_move


def test_events_are_ordered_per_item(provider, repository, hub, dirs) -> None:
    first, second = _seed(dirs, repository, "a.pdf", "b.pdf")
    subscription = hub.subscribe()

    _relocator(provider, repository, hub).relocate(
        [
            RelocationItem(record_id=first, category="Invoices"),
            RelocationItem(record_id=second, category="Invoices"),
        ],
        job_id="job-7",
    )

    events = subscription.drain()
    moves = [(e.subject, e.status) for e in events if e.channel == MOVE_FILES_CHANNEL]
    assert moves == [
        (first, MoveResult.MOVED),
        (first, MoveResult.COMPLETED),
        (second, MoveResult.MOVED),
        (second, MoveResult.COMPLETED),
    ]
    assert events[0].message == "fileName = a.pdf moved"
    assert events[1].message == "fileName = a.pdf completed"
    final = events[-1]
    assert final.channel == JOB_CHANNEL
    assert final.status == MoveResult.COMPLETED
    assert final.message.startswith("Completed Job in [")
    assert final.message.endswith("- Moved 2 files")
    assert {event.job_id for event in events} == {"job-7"}


def test_cancelled_batch_stops_before_next_item(provider, repository, hub, dirs) -> None:
    (record_id,) = _seed(dirs, repository, "a.pdf")
    token = CancellationToken()
    token.cancel()

    report = _relocator(provider, repository, hub).relocate(
        [RelocationItem(record_id=record_id, category="Invoices")], token
    )

    assert report.cancelled
    assert report.outcomes == []
    assert (dirs["origin"] / "a.pdf").is_file()


def test_relocation_feeds_next_training_run(
    provider, repository, hub, dirs, sample_corpus
) -> None:
    (record_id,) = _seed(dirs, repository, "contract_acme_2024.docx")
    engine = ClassificationEngine(provider)
    engine.train_and_save()

    _relocator(provider, repository, hub).relocate(
        [RelocationItem(record_id=record_id, category="Contracts")]
    )
    lines = sample_corpus.read_text(encoding="utf-8").splitlines()
    assert lines[-1] == f"{record_id};Contracts;contract_acme_2024.docx"

    summary = engine.train_and_save()
    assert "Contracts" in summary.categories


@pytest.mark.parametrize("category", ["", "  ", "..", "a/b", "a\\b"])
def test_invalid_category_is_rejected(category: str) -> None:
    with pytest.raises(ValueError):
        RelocationItem(record_id=1, category=category)


def test_retired_record_is_reported_not_present(provider, repository, hub, dirs) -> None:
    (record_id,) = _seed(dirs, repository, "old.pdf")
    repository.retire(record_id)
    subscription = hub.subscribe([MOVE_FILES_CHANNEL])

    report = _relocator(provider, repository, hub).relocate(
        [RelocationItem(record_id=record_id, category="Invoices")]
    )

    assert report.outcomes[0].status is MoveResult.ID_NOT_PRESENT
    assert report.missing == 1
    assert report.moved == 0
    assert (dirs["origin"] / "old.pdf").is_file()
    assert not (dirs["destination"] / "Invoices").exists()
    assert [event.status for event in subscription.drain()] == [MoveResult.ID_NOT_PRESENT]
    assert repository.require(record_id).state is RecordState.RETIRED


def test_name_unfit_for_training_fails_before_moving(provider, repository, hub, dirs) -> None:
    (record_id,) = _seed(dirs, repository, "bad\nname.pdf")

    report = _relocator(provider, repository, hub).relocate(
        [RelocationItem(record_id=record_id, category="Invoices")]
    )

    assert report.outcomes[0].status is MoveResult.FAILED
    assert report.moved == 0
    assert "line breaks" in report.outcomes[0].error
    assert (dirs["origin"] / "bad\nname.pdf").is_file()
    assert repository.require(record_id).state is RecordState.PENDING_CATEGORIZATION
    assert not provider.training_file().exists()


def test_inventory_failure_moves_file_back(
    provider, repository, hub, dirs, monkeypatch: pytest.MonkeyPatch
) -> None:
    (record_id,) = _seed(dirs, repository, "a.pdf")

    def _fail_update(_record):
        raise InventoryError("inventory is read-only")

    monkeypatch.setattr(repository, "update", _fail_update)

    report = _relocator(provider, repository, hub).relocate(
        [RelocationItem(record_id=record_id, category="Invoices")]
    )

    assert report.outcomes[0].status is MoveResult.FAILED
    assert report.failed == 1
    assert report.moved == 0
    assert (dirs["origin"] / "a.pdf").is_file()
    assert not (dirs["destination"] / "Invoices" / "a.pdf").exists()
    assert not provider.training_file().exists()
    assert repository.require(record_id).state is RecordState.PENDING_CATEGORIZATION
