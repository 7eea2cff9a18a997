"""File-name classifier built on scikit-learn.

The engine keeps an explicit :class:`ModelHandle` for the model it last
loaded or trained. ``classify`` reuses the handle while the artifact on disk is
unchanged, reloads it when another process republished the artifact, and
trains a fresh model when the artifact is missing. Training writes to a
temporary file and publishes with an atomic rename, so readers never observe a
partial artifact and a failed run leaves the previous model in place.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

import joblib
from sklearn.dummy import DummyClassifier
from sklearn.linear_model import LogisticRegression
from sklearn.pipeline import Pipeline

from tidydrop.config import ConfigProvider
from tidydrop.config.models import ClassifierSettings

from .corpus import TrainingCorpus
from .errors import ClassificationError, ModelUnavailableError, TrainingDataError
from .features import build_features
from .models import ModelHandle, Prediction, TrainingExample, TrainingSummary

LOGGER = logging.getLogger(__name__)

_ARTIFACT_KEYS = {"estimator", "version", "categories", "trained_at", "examples"}


class ClassificationEngine:
    """Predict categories from file names and retrain from the corpus."""

    def __init__(
        self,
        provider: ConfigProvider,
        settings: ClassifierSettings | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            provider: Source of the model and training-corpus locations.
            settings: Feature and solver options; defaults when omitted.
        """
        self._provider = provider
        self._settings = settings or provider.config.classifier
        self._handle: Optional[ModelHandle] = None
        self._handle_lock = threading.Lock()
        self._train_lock = threading.Lock()

    @property
    def corpus(self) -> TrainingCorpus:
        """Return the training corpus at its currently configured location."""
        return TrainingCorpus(self._provider.training_file())

    def current(self) -> Optional[ModelHandle]:
        """Return the model handle in use, if any."""
        return self._handle

    def current_version(self) -> Optional[str]:
        handle = self._handle
        return handle.version if handle else None

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    def classify(self, names: Iterable[str]) -> list[Prediction]:
        """Predict a category for each file name.

        Args:
            names: File names to classify.

        Returns:
            list[Prediction]: One prediction per name, in input order. Names
            that could not be classified carry an ``error`` and no category.

        Raises:
            ModelUnavailableError: If no model exists and training fails.
        """
        requested = list(names)
        if not requested:
            return []
        handle = self._ensure_model()
        predictions = [self._predict(handle, name) for name in requested]
        failed = sum(1 for prediction in predictions if not prediction.succeeded)
        LOGGER.debug(
            "Classified %d names with model %s (%d failed)",
            len(predictions),
            handle.version,
            failed,
        )
        return predictions

    def classify_one(self, name: str) -> Prediction:
        return self.classify([name])[0]

    def load(self) -> ModelHandle:
        """Load the published artifact and make it the current handle.

        Raises:
            ModelUnavailableError: If no artifact exists.
            ClassificationError: If the artifact cannot be read.
        """
        path = self._provider.model_file()
        try:
            stamp = _stamp(path)
        except OSError as exc:
            raise ModelUnavailableError(f"No model found at {path}") from exc
        try:
            payload = joblib.load(path)
        except FileNotFoundError as exc:
            raise ModelUnavailableError(f"No model found at {path}") from exc
        except Exception as exc:
            raise ClassificationError(f"Unable to load model {path}: {exc}") from exc
        if not isinstance(payload, dict) or not _ARTIFACT_KEYS.issubset(payload):
            raise ClassificationError(f"Model artifact {path} has an unexpected layout")

        handle = ModelHandle(
            estimator=payload["estimator"],
            version=str(payload["version"]),
            categories=tuple(payload["categories"]),
            trained_at=payload["trained_at"],
            examples=int(payload["examples"]),
            artifact_stamp=stamp,
        )
        self._swap(handle)
        LOGGER.info("Loaded model %s from %s", handle.version, path)
        return handle

    def train_and_save(self) -> TrainingSummary:
        """Fit a model on the whole corpus and publish it.

        Returns:
            TrainingSummary: Details of the published model.

        Raises:
            TrainingDataError: If the corpus is missing or has no usable rows.
        """
        with self._train_lock:
            started = time.monotonic()
            corpus = self.corpus
            model_path = self._provider.model_file()
            LOGGER.info("Start training and saving of model")

            LOGGER.info("Loading data from file %s", corpus.path)
            examples, skipped = corpus.read()
            if not examples:
                raise TrainingDataError(f"Training data {corpus.path} contains no valid rows")

            estimator = self._fit(examples)
            trained_at = datetime.now(timezone.utc)
            categories = tuple(str(label) for label in estimator.classes_)
            version = _version(trained_at, examples)

            LOGGER.info("Saving model %s", version)
            payload = {
                "estimator": estimator,
                "version": version,
                "categories": list(categories),
                "trained_at": trained_at,
                "examples": len(examples),
            }
            _publish(payload, model_path)

            self._swap(
                ModelHandle(
                    estimator=estimator,
                    version=version,
                    categories=categories,
                    trained_at=trained_at,
                    examples=len(examples),
                    artifact_stamp=_stamp(model_path),
                )
            )
            elapsed_ms = int((time.monotonic() - started) * 1000)
            LOGGER.info("Training and saving of model completed: [%d ms]", elapsed_ms)
            return TrainingSummary(
                version=version,
                examples=len(examples),
                skipped=skipped,
                categories=sorted(categories),
                model_path=str(model_path),
                trained_at=trained_at,
                elapsed_ms=elapsed_ms,
            )

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _ensure_model(self) -> ModelHandle:
        path = self._provider.model_file()
        try:
            stamp = _stamp(path)
        except OSError:
            LOGGER.info("Model %s not found; training a new one", path)
            return self._train_missing()

        handle = self._handle
        if handle is not None and handle.artifact_stamp == stamp:
            return handle
        try:
            return self.load()
        except ModelUnavailableError:
            LOGGER.info("Model %s disappeared before loading; training a new one", path)
            return self._train_missing()

    def _train_missing(self) -> ModelHandle:
        try:
            self.train_and_save()
        except TrainingDataError as exc:
            raise ModelUnavailableError(f"Classification unavailable: {exc}") from exc
        handle = self._handle
        if handle is None:  # pragma: no cover - train_and_save always swaps
            raise ModelUnavailableError("Classification unavailable after training")
        return handle

    def _fit(self, examples: list[TrainingExample]) -> Pipeline:
        names = [example.name for example in examples]
        labels = [example.category for example in examples]
        if len(set(labels)) > 1:
            classifier = LogisticRegression(
                max_iter=self._settings.max_iter,
                random_state=self._settings.random_state,
            )
        else:
            classifier = DummyClassifier(strategy="most_frequent")
        pipeline = Pipeline(
            [
                ("features", build_features(self._settings)),
                ("classifier", classifier),
            ]
        )
        try:
            pipeline.fit(names, labels)
        except ValueError as exc:
            raise TrainingDataError(f"Unable to fit model on training data: {exc}") from exc
        return pipeline

    def _predict(self, handle: ModelHandle, name: str) -> Prediction:
        if not name or not name.strip():
            return Prediction(name=name, error="empty file name")
        try:
            probabilities = handle.estimator.predict_proba([name])[0]
        except Exception as exc:
            LOGGER.warning("Prediction failed for %s: %s", name, exc)
            return Prediction(name=name, error=str(exc))
        best = int(probabilities.argmax())
        category = str(handle.estimator.classes_[best])
        LOGGER.debug("%s ===> category predicted: %s", name, category)
        return Prediction(name=name, category=category, score=float(probabilities[best]))

    def _swap(self, handle: ModelHandle) -> None:
        with self._handle_lock:
            self._handle = handle


def _stamp(path: Path) -> tuple[int, int]:
    stat = path.stat()
    return stat.st_mtime_ns, stat.st_size


def _version(trained_at: datetime, examples: list[TrainingExample]) -> str:
    digest = hashlib.sha1()
    for example in examples:
        digest.update(f"{example.category}\x1f{example.name}\n".encode("utf-8"))
    return f"{trained_at:%Y%m%d%H%M%S}-{digest.hexdigest()[:8]}"


def _publish(payload: dict, destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    handle, temp_name = tempfile.mkstemp(
        prefix=f".{destination.name}-", suffix=".tmp", dir=destination.parent
    )
    os.close(handle)
    try:
        joblib.dump(payload, temp_name)
        os.replace(temp_name, destination)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise


__all__ = ["ClassificationEngine"]
