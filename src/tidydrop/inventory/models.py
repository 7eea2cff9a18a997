"""Inventory data models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field, computed_field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordState(str, Enum):
    """Lifecycle position of a file record.

    ``DISCOVERED`` records exist only between a scan and the first write;
    every other state is persisted.
    """

    DISCOVERED = "discovered"
    PENDING_CATEGORIZATION = "pending_categorization"
    CATEGORIZED = "categorized"
    RELOCATED = "relocated"
    RETIRED = "retired"


_AWAITING_CONFIRMATION = frozenset(
    {
        RecordState.DISCOVERED,
        RecordState.PENDING_CATEGORIZATION,
        RecordState.CATEGORIZED,
    }
)


class FileRecord(BaseModel):
    """A file the pipeline has seen in the origin directory.

    Attributes:
        id: Identifier assigned by the inventory repository on insert.
        name: File name, unique among active records.
        path: Directory that contained the file at the last scan.
        size: File size in bytes.
        last_modified: Filesystem modification time.
        category: Provisional or confirmed category, depending on ``state``.
        state: Lifecycle state; the boolean flags are derived from it.
        is_not_to_move: User hold excluding the file from relocation batches.
        note: Optional free-form annotation.
        created_at: Timestamp of the first write.
        updated_at: Timestamp of the latest write.
    """

    id: Optional[int] = None
    name: str
    path: str
    size: int = 0
    last_modified: Optional[datetime] = None
    category: Optional[str] = None
    state: RecordState = RecordState.DISCOVERED
    is_not_to_move: bool = False
    note: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_new(self) -> bool:
        return self.state in _AWAITING_CONFIRMATION

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_to_categorize(self) -> bool:
        return self.state in _AWAITING_CONFIRMATION

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_deleted(self) -> bool:
        return self.state is RecordState.RETIRED

    @computed_field  # type: ignore[prop-decorator]
    @property
    def active(self) -> bool:
        return self.state is not RecordState.RETIRED

    def apply_prediction(self, category: Optional[str]) -> None:
        """Record a machine prediction, or the absence of one."""
        if self.state not in _AWAITING_CONFIRMATION:
            raise ValueError(f"Cannot predict a category for a {self.state.value} record")
        if category:
            self.category = category
            self.state = RecordState.CATEGORIZED
        else:
            self.category = None
            self.state = RecordState.PENDING_CATEGORIZATION

    def mark_relocated(self, category: str) -> None:
        """Confirm ``category`` after the file reached its destination folder."""
        if self.state is RecordState.RETIRED:
            raise ValueError("Cannot relocate a retired record")
        self.category = category
        self.state = RecordState.RELOCATED
        self.is_not_to_move = False
        self.updated_at = _utcnow()

    def retire(self) -> None:
        self.state = RecordState.RETIRED
        self.updated_at = _utcnow()


class InventoryState(BaseModel):
    """Serialized contents of the inventory store."""

    next_id: int = 1
    records: Dict[int, FileRecord] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


__all__ = ["RecordState", "FileRecord", "InventoryState"]
