"""Relocation request and result models."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from tidydrop.jobs import MoveResult


class RelocationItem(BaseModel):
    """Request to move one inventory record into a category folder.

    Attributes:
        record_id: Inventory id of the file.
        category: Approved category; also the destination folder name.
    """

    record_id: int
    category: str

    @field_validator("category")
    @classmethod
    def _check_category(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("category must not be empty")
        if value in {".", ".."} or "/" in value or "\\" in value or "\x00" in value:
            raise ValueError(f"category {value!r} is not a valid folder name")
        return value


class ItemOutcome(BaseModel):
    """Final result for one relocation item.

    Attributes:
        record_id: Inventory id from the request.
        category: Category from the request.
        status: ``COMPLETED``, ``FAILED`` or ``ID_NOT_PRESENT``.
        name: File name, when the record exists.
        destination: Path the file was moved to, when it was moved.
        error: Failure description for ``FAILED`` items.
    """

    record_id: int
    category: str
    status: MoveResult
    name: Optional[str] = None
    destination: Optional[Path] = None
    error: Optional[str] = None


class RelocationReport(BaseModel):
    """Aggregate result of a relocation batch.

    Attributes:
        outcomes: Per-item results in processing order.
        requested: Number of items in the request.
        moved: Files physically moved.
        failed: Items that failed.
        missing: Items whose record id was unknown.
        elapsed_ms: Wall-clock duration of the batch.
        cancelled: Whether processing stopped early on request.
    """

    outcomes: List[ItemOutcome] = Field(default_factory=list)
    requested: int = 0
    moved: int = 0
    failed: int = 0
    missing: int = 0
    elapsed_ms: int = 0
    cancelled: bool = False


__all__ = ["RelocationItem", "ItemOutcome", "RelocationReport"]
