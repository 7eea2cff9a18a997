"""Training corpus tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from tidydrop.classification import TrainingCorpus, TrainingDataError, TrainingExample
from tidydrop.classification.corpus import HEADER


def test_append_creates_file_with_header(tmp_path: Path) -> None:
    corpus = TrainingCorpus(tmp_path / "data" / "training.csv")

    corpus.append(TrainingExample(record_id=7, category="Invoices", name="invoice_2024.pdf"))

    lines = corpus.path.read_text(encoding="utf-8").splitlines()
    assert lines == [HEADER, "7;Invoices;invoice_2024.pdf"]


def test_append_repairs_missing_trailing_newline(tmp_path: Path) -> None:
    path = tmp_path / "training.csv"
    path.write_text(f"{HEADER}\n1;Photos;a.jpg", encoding="utf-8")
    corpus = TrainingCorpus(path)

    corpus.append(TrainingExample(record_id=2, category="Photos", name="b.jpg"))

    examples, skipped = corpus.read()
    assert [example.name for example in examples] == ["a.jpg", "b.jpg"]
    assert skipped == 0


def test_names_may_contain_separator(tmp_path: Path) -> None:
    corpus = TrainingCorpus(tmp_path / "training.csv")

    corpus.append(TrainingExample(record_id=1, category="Notes", name="todo;later.txt"))

    examples, _ = corpus.read()
    assert examples[0].name == "todo;later.txt"
    assert examples[0].category == "Notes"


def test_read_skips_malformed_lines(tmp_path: Path) -> None:
    path = tmp_path / "training.csv"
    path.write_text(
        "\n".join(
            [
                HEADER,
                "1;Invoices;a.pdf",
                "garbage",
                "x;Invoices;b.pdf",
                "3;;c.pdf",
                "",
                "4;Photos;d.jpg",
            ]
        ),
        encoding="utf-8",
    )

    examples, skipped = TrainingCorpus(path).read()

    assert [(e.record_id, e.category, e.name) for e in examples] == [
        (1, "Invoices", "a.pdf"),
        (4, "Photos", "d.jpg"),
    ]
    assert skipped == 3


def test_read_accepts_corpus_without_header(tmp_path: Path) -> None:
    path = tmp_path / "training.csv"
    path.write_text("1;Invoices;a.pdf\n", encoding="utf-8")

    examples, skipped = TrainingCorpus(path).read()

    assert len(examples) == 1
    assert skipped == 0


def test_read_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(TrainingDataError):
        TrainingCorpus(tmp_path / "missing.csv").read()


def test_append_rejects_line_breaks(tmp_path: Path) -> None:
    corpus = TrainingCorpus(tmp_path / "training.csv")

    with pytest.raises(ValueError):
        corpus.append(TrainingExample(record_id=1, category="Notes", name="two\nlines.txt"))

    assert not corpus.exists()
