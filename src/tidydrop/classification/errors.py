"""Classification errors."""


class ClassificationError(Exception):
    """Base exception for classifier operations."""


class TrainingDataError(ClassificationError):
    """Raised when the training corpus is missing, empty or has no usable rows."""


class ModelUnavailableError(ClassificationError):
    """Raised when no model exists and none can be trained."""
