"""Classification data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class TrainingExample(BaseModel):
    """One labelled row of the training corpus.

    Attributes:
        record_id: Inventory id of the relocated file.
        category: Confirmed category.
        name: File name used as classifier input.
    """

    record_id: int
    category: str
    name: str


class Prediction(BaseModel):
    """Classifier output for a single file name.

    Attributes:
        name: File name that was classified.
        category: Predicted category, None when prediction failed.
        score: Probability assigned to ``category`` when the model exposes one.
        error: Failure description when no category could be produced.
    """

    name: str
    category: Optional[str] = None
    score: Optional[float] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.category is not None


class TrainingSummary(BaseModel):
    """Outcome of a training run.

    Attributes:
        version: Identifier of the published model.
        examples: Number of rows used for fitting.
        skipped: Number of malformed rows ignored.
        categories: Distinct categories learned, sorted.
        model_path: Location of the published artifact.
        trained_at: Completion timestamp.
        elapsed_ms: Wall-clock duration of the run.
    """

    version: str
    examples: int
    skipped: int = 0
    categories: list[str]
    model_path: str
    trained_at: datetime
    elapsed_ms: int


@dataclass(frozen=True)
class ModelHandle:
    """Immutable reference to a fitted model and its provenance.

    Attributes:
        estimator: Fitted scikit-learn estimator accepting raw file names.
        version: Identifier written alongside the artifact.
        categories: Categories the estimator can emit.
        trained_at: Time the estimator was fitted.
        examples: Number of training rows.
        artifact_stamp: ``(mtime_ns, size)`` of the artifact the handle was loaded from.
    """

    estimator: Any
    version: str
    categories: tuple[str, ...]
    trained_at: datetime
    examples: int
    artifact_stamp: tuple[int, int] = field(default=(0, 0), compare=False)


__all__ = ["TrainingExample", "Prediction", "TrainingSummary", "ModelHandle"]
