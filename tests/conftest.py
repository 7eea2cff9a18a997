"""Shared fixtures for Tidydrop tests."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from tidydrop.classification.corpus import HEADER
from tidydrop.config import ConfigProvider, PathSettings, TidydropConfig
from tidydrop.inventory import InventoryRepository
from tidydrop.jobs import NotificationHub
from tidydrop.service import TidydropService

SAMPLE_CORPUS = [
    (1, "Invoices", "invoice_2023_01.pdf"),
    (2, "Invoices", "Invoice-March-2023.pdf"),
    (3, "Invoices", "invoice_acme_0042.pdf"),
    (4, "Invoices", "invoice-q3-2022.pdf"),
    (5, "Invoices", "InvoiceSupplier2021.pdf"),
    (6, "Photos", "IMG_1234.jpg"),
    (7, "Photos", "holiday_beach.jpg"),
    (8, "Photos", "IMG_2020_0815.jpg"),
    (9, "Photos", "photo_family.png"),
    (10, "Photos", "DSC_0042.jpg"),
]


def write_corpus(path: Path, rows: list[tuple[int, str, str]] = SAMPLE_CORPUS) -> Path:
    """Write a training corpus with a header row.

    Args:
        path: Destination file.
        rows: ``(record_id, category, name)`` tuples.

    Returns:
        Path: The written corpus path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [HEADER] + [f"{record_id};{category};{name}" for record_id, category, name in rows]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def dirs(tmp_path: Path) -> dict[str, Path]:
    """Create the working directories used by a test profile."""
    layout = {
        "origin": tmp_path / "origin",
        "destination": tmp_path / "destination",
        "model": tmp_path / "model",
        "training": tmp_path / "training",
        "state": tmp_path / "state",
    }
    for name in ("origin", "destination"):
        layout[name].mkdir()
    return layout


@pytest.fixture
def config(dirs: dict[str, Path]) -> TidydropConfig:
    """Return a configuration whose production profile points at ``dirs``."""
    profile = PathSettings(
        origin_dir=str(dirs["origin"]),
        destination_root=str(dirs["destination"]),
        model_path=str(dirs["model"]),
        training_path=str(dirs["training"]),
        state_dir=str(dirs["state"]),
    )
    return TidydropConfig(profiles={"production": profile, "development": PathSettings()})


@pytest.fixture
def provider(config: TidydropConfig) -> ConfigProvider:
    return ConfigProvider(config)


@pytest.fixture
def corpus_path(provider: ConfigProvider) -> Path:
    return provider.training_file()


@pytest.fixture
def repository(provider: ConfigProvider) -> InventoryRepository:
    return InventoryRepository(provider.state_dir())


@pytest.fixture
def hub() -> NotificationHub:
    return NotificationHub()


@pytest.fixture
def service(config: TidydropConfig, hub: NotificationHub) -> Iterator[TidydropService]:
    with TidydropService(config, hub=hub) as instance:
        yield instance


@pytest.fixture
def corpus_writer(corpus_path: Path):
    """Return a callable writing rows to the configured training corpus."""

    def _write(rows: list[tuple[int, str, str]] = SAMPLE_CORPUS) -> Path:
        return write_corpus(corpus_path, rows)

    return _write


@pytest.fixture
def sample_corpus(corpus_writer) -> Path:
    return corpus_writer()
