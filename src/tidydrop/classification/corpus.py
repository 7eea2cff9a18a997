"""Append-only training corpus stored as semicolon-delimited text."""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from .errors import TrainingDataError
from .models import TrainingExample

LOGGER = logging.getLogger(__name__)

HEADER = "Id;Area;FileName"
SEPARATOR = ";"

_APPEND_LOCK = threading.Lock()


class TrainingCorpus:
    """Read and extend the ``recordId;category;name`` training file.

    The first line is a header row, written when the file is created. Names
    may contain the separator: only the first two separators split fields.
    """

    def __init__(self, path: Path) -> None:
        self._path = path.expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    @staticmethod
    def format_line(example: TrainingExample) -> str:
        """Render ``example`` as a corpus row.

        Raises:
            ValueError: If the category or name contains a line break.
        """
        for value in (example.category, example.name):
            if "\n" in value or "\r" in value:
                raise ValueError(f"Training values cannot contain line breaks: {value!r}")
        return SEPARATOR.join((str(example.record_id), example.category, example.name))

    def append(self, example: TrainingExample) -> None:
        """Append one example, creating the file with a header when absent."""
        line = self.format_line(example)
        with _APPEND_LOCK:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            prefix = ""
            if not self.exists() or self._path.stat().st_size == 0:
                prefix = HEADER + "\n"
            elif not self._ends_with_newline():
                prefix = "\n"
            with self._path.open("a", encoding="utf-8", newline="\n") as handle:
                handle.write(f"{prefix}{line}\n")
        LOGGER.info("File %s added to training data as %s", example.name, example.category)

    def read(self) -> tuple[list[TrainingExample], int]:
        """Parse the corpus.

        Returns:
            tuple[list[TrainingExample], int]: Valid examples and the number of
            malformed lines that were skipped.

        Raises:
            TrainingDataError: If the file is missing or unreadable.
        """
        if not self.exists():
            raise TrainingDataError(f"Training data not found at {self._path}")
        try:
            lines = self._path.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as exc:
            raise TrainingDataError(f"Unable to read training data {self._path}: {exc}") from exc

        examples: list[TrainingExample] = []
        skipped = 0
        for number, raw in enumerate(lines, start=1):
            line = raw.strip()
            if not line:
                continue
            example = _parse_line(line)
            if example is None:
                if number == 1:
                    continue  # header row
                skipped += 1
                LOGGER.warning("Skipping malformed training line %d: %r", number, raw)
                continue
            examples.append(example)
        return examples, skipped

    def _ends_with_newline(self) -> bool:
        with self._path.open("rb") as handle:
            handle.seek(-1, 2)
            return handle.read(1) == b"\n"


def _parse_line(line: str) -> TrainingExample | None:
    parts = line.split(SEPARATOR, 2)
    if len(parts) != 3:
        return None
    raw_id, category, name = (part.strip() for part in parts)
    if not category or not name:
        return None
    try:
        record_id = int(raw_id)
    except ValueError:
        return None
    return TrainingExample(record_id=record_id, category=category, name=name)


__all__ = ["TrainingCorpus", "HEADER", "SEPARATOR"]
