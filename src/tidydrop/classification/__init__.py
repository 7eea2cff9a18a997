"""File-name classification package."""

from .corpus import TrainingCorpus
from .engine import ClassificationEngine
from .errors import ClassificationError, ModelUnavailableError, TrainingDataError
from .models import ModelHandle, Prediction, TrainingExample, TrainingSummary

__all__ = [
    "ClassificationEngine",
    "TrainingCorpus",
    "ClassificationError",
    "ModelUnavailableError",
    "TrainingDataError",
    "ModelHandle",
    "Prediction",
    "TrainingExample",
    "TrainingSummary",
]
