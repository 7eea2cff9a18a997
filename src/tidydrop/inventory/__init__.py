"""JSON-backed inventory of files seen in the origin directory."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Optional, TypeVar

from pydantic import ValidationError

from .errors import DuplicateRecordError, InventoryError, MissingRecordError
from .models import FileRecord, InventoryState, RecordState

LOGGER = logging.getLogger(__name__)

DEFAULT_INVENTORY_FILENAME = "inventory.json"

_T = TypeVar("_T")


class InventoryRepository:
    """Create, read and update file records stored in a single JSON document.

    Every operation re-reads the document so that separate processes sharing
    the store see each other's writes; concurrent writers are last-write-wins.
    Within one process the repository serializes access with a lock.
    """

    def __init__(self, directory: Path, filename: str = DEFAULT_INVENTORY_FILENAME) -> None:
        """Initialize the repository.

        Args:
            directory: Directory holding the inventory document.
            filename: Name of the inventory document.
        """
        self._directory = directory.expanduser()
        self._filename = filename
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        """Return the location of the inventory document."""
        return self._directory / self._filename

    def initialize(self) -> Path:
        """Create the inventory directory and an empty document if needed.

        Returns:
            Path: Location of the inventory document.
        """
        with self._lock:
            self._directory.mkdir(parents=True, exist_ok=True)
            if not self.path.exists():
                self._save(InventoryState())
        return self.path

    def load(self) -> InventoryState:
        """Load the full inventory.

        Returns:
            InventoryState: Stored state, or an empty state when nothing was saved yet.

        Raises:
            InventoryError: If the document cannot be parsed.
        """
        with self._lock:
            if not self.path.exists():
                return InventoryState()
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
                return InventoryState.model_validate(data)
            except (json.JSONDecodeError, ValidationError) as exc:
                raise InventoryError(f"Invalid inventory data in {self.path}: {exc}") from exc

    # ------------------------------------------------------------------ #
    # Lookups                                                            #
    # ------------------------------------------------------------------ #

    def get(self, record_id: int) -> Optional[FileRecord]:
        """Return the record with ``record_id`` or None."""
        return self.load().records.get(record_id)

    def require(self, record_id: int) -> FileRecord:
        """Return the record with ``record_id``.

        Raises:
            MissingRecordError: If the id is unknown.
        """
        record = self.get(record_id)
        if record is None:
            raise MissingRecordError(record_id)
        return record

    def find_by_name(self, name: str) -> Optional[FileRecord]:
        """Return the active record named ``name`` or None."""
        for record in self.load().records.values():
            if record.active and record.name == name:
                return record
        return None

    def name_is_present(self, name: str) -> bool:
        return self.find_by_name(name) is not None

    def active_names(self) -> set[str]:
        """Return the names of all active records."""
        return {record.name for record in self.load().records.values() if record.active}

    def list_active(self) -> list[FileRecord]:
        """Return active records ordered by name."""
        return self._select(lambda record: record.active)

    def pending(self) -> list[FileRecord]:
        """Return active records still waiting for a confirmed category."""
        return self._select(lambda record: record.is_to_categorize)

    def by_category(self, category: str) -> list[FileRecord]:
        """Return active records whose category equals ``category``."""
        return self._select(lambda record: record.active and record.category == category)

    def categories(self) -> list[str]:
        """Return the distinct categories in use, sorted."""
        found = {record.category for record in self.load().records.values() if record.category}
        return sorted(found)

    def recent(self, limit: int = 20) -> list[FileRecord]:
        """Return the most recently updated active records."""
        records = [record for record in self.load().records.values() if record.active]
        records.sort(key=lambda record: record.updated_at, reverse=True)
        return records[: max(0, limit)]

    def relocation_candidates(self) -> list[FileRecord]:
        """Return categorized records eligible for a relocation batch.

        Records on hold (``is_not_to_move``) are left out here; the relocator
        itself does not look at the flag.
        """
        return self._select(
            lambda record: record.state is RecordState.CATEGORIZED and not record.is_not_to_move
        )

    # ------------------------------------------------------------------ #
    # Mutations                                                          #
    # ------------------------------------------------------------------ #

    def add_many(self, records: Iterable[FileRecord]) -> list[FileRecord]:
        """Insert new records in one write and assign their ids.

        Args:
            records: Records without ids.

        Returns:
            list[FileRecord]: The stored records, ids populated.

        Raises:
            DuplicateRecordError: If a name clashes with an active record or
                appears twice in the batch.
        """
        batch = list(records)
        if not batch:
            return []
        with self._lock:
            state = self.load()
            taken = {record.name for record in state.records.values() if record.active}
            now = datetime.now(timezone.utc)
            stored: list[FileRecord] = []
            for record in batch:
                if record.name in taken:
                    raise DuplicateRecordError(f"An active record named {record.name!r} exists")
                taken.add(record.name)
                item = record.model_copy(deep=True)
                item.id = state.next_id
                state.next_id += 1
                item.created_at = now
                item.updated_at = now
                state.records[item.id] = item
                stored.append(item)
            self._save(state)
        LOGGER.debug("Inserted %d inventory records", len(stored))
        return stored

    def add(self, record: FileRecord) -> FileRecord:
        return self.add_many([record])[0]

    def update(self, record: FileRecord) -> FileRecord:
        """Persist changes to an existing record.

        Raises:
            MissingRecordError: If the record has no id or the id is unknown.
        """
        if record.id is None:
            raise MissingRecordError(-1)
        with self._lock:
            state = self.load()
            if record.id not in state.records:
                raise MissingRecordError(record.id)
            item = record.model_copy(deep=True)
            item.updated_at = datetime.now(timezone.utc)
            state.records[item.id] = item
            self._save(state)
        return item

    def update_many(self, records: Iterable[FileRecord]) -> list[FileRecord]:
        """Persist changes to several existing records in one write."""
        with self._lock:
            state = self.load()
            now = datetime.now(timezone.utc)
            stored: list[FileRecord] = []
            for record in records:
                if record.id is None or record.id not in state.records:
                    raise MissingRecordError(record.id if record.id is not None else -1)
                item = record.model_copy(deep=True)
                item.updated_at = now
                state.records[item.id] = item
                stored.append(item)
            self._save(state)
        return stored

    def set_hold(self, record_id: int, hold: bool) -> FileRecord:
        """Set or clear the ``is_not_to_move`` hold on a record."""
        return self._mutate(record_id, lambda record: setattr(record, "is_not_to_move", hold))

    def retire(self, record_id: int) -> FileRecord:
        """Soft-delete a record so its name can be seen again as new."""
        return self._mutate(record_id, FileRecord.retire)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _mutate(self, record_id: int, change: Callable[[FileRecord], _T]) -> FileRecord:
        with self._lock:
            record = self.require(record_id)
            change(record)
            return self.update(record)

    def _select(self, predicate: Callable[[FileRecord], bool]) -> list[FileRecord]:
        records = [record for record in self.load().records.values() if predicate(record)]
        records.sort(key=lambda record: record.name.lower())
        return records

    def _save(self, state: InventoryState) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        state.updated_at = datetime.now(timezone.utc)
        payload = state.model_dump_json(indent=2)
        handle, temp_name = tempfile.mkstemp(
            prefix=".inventory-", suffix=".tmp", dir=self._directory
        )
        try:
            with os.fdopen(handle, "w", encoding="utf-8") as temp_file:
                temp_file.write(payload)
            os.replace(temp_name, self.path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise


__all__ = [
    "InventoryRepository",
    "DEFAULT_INVENTORY_FILENAME",
    "FileRecord",
    "InventoryState",
    "RecordState",
    "InventoryError",
    "MissingRecordError",
    "DuplicateRecordError",
]
