"""Ingestion data models."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel


class ScannedFile(BaseModel):
    """A regular file found in the origin directory.

    Attributes:
        path: Absolute path of the file.
        size_bytes: File size in bytes.
        modified_at: Last modification time.
    """

    path: Path
    size_bytes: int
    modified_at: datetime

    @property
    def name(self) -> str:
        return self.path.name


class SyncReport(BaseModel):
    """Counts produced by one synchronization run.

    Attributes:
        scanned: Files found in the origin directory.
        added: New inventory records written.
        categorized: New records that received a predicted category.
        uncategorized: New records left waiting for a category.
        elapsed_ms: Wall-clock duration of the run.
        cancelled: Whether the run stopped early on request.
    """

    scanned: int = 0
    added: int = 0
    categorized: int = 0
    uncategorized: int = 0
    elapsed_ms: int = 0
    cancelled: bool = False


class RecategorizeReport(BaseModel):
    """Counts produced by re-running prediction over waiting records.

    Attributes:
        considered: Records passed to the classifier.
        categorized: Records that now carry a predicted category.
        still_pending: Records the classifier could not categorize.
    """

    considered: int = 0
    categorized: int = 0
    still_pending: int = 0
