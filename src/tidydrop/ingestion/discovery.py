"""File discovery in the origin directory."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from .errors import ScanError
from .models import ScannedFile


def _is_hidden(path: Path) -> bool:
    return path.name.startswith(".")


class DirectoryScanner:
    """List the visible regular files directly inside a directory.

    Sub-directories are neither descended into nor reported. The scan is all
    or nothing: any read error aborts it with :class:`ScanError`.
    """

    def __init__(self, *, include_hidden: bool = False) -> None:
        self.include_hidden = include_hidden

    def scan(self, root: Path) -> list[ScannedFile]:
        """Return files under ``root`` sorted by name.

        Raises:
            ScanError: If ``root`` is missing, not a directory, or unreadable.
        """
        root = root.expanduser()
        if not root.exists():
            raise ScanError(f"Origin directory does not exist: {root}")
        if not root.is_dir():
            raise ScanError(f"Origin path is not a directory: {root}")

        try:
            entries = sorted(root.iterdir(), key=lambda entry: entry.name)
        except OSError as exc:
            raise ScanError(f"Unable to list origin directory {root}: {exc}") from exc

        found: list[ScannedFile] = []
        for entry in entries:
            if not self.include_hidden and _is_hidden(entry):
                continue
            try:
                if not entry.is_file():
                    continue
                stat = entry.stat()
            except OSError as exc:
                raise ScanError(f"Unable to read {entry}: {exc}") from exc
            found.append(
                ScannedFile(
                    path=entry.resolve(),
                    size_bytes=stat.st_size,
                    modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                )
            )
        return found


__all__ = ["DirectoryScanner"]
