"""Configuration models describing Tidydrop settings."""

from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TidydropBaseModel(BaseModel):
    """Shared configuration for Tidydrop Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class PathSettings(TidydropBaseModel):
    """Filesystem locations used by the pipeline for one environment.

    Attributes:
        origin_dir: Directory where incoming files are dropped.
        destination_root: Root of the category-named destination tree.
        model_path: Directory holding the classifier artifact.
        model_name: File name of the classifier artifact.
        training_path: Directory holding the training corpus.
        training_name: File name of the training corpus.
        state_dir: Directory holding the inventory store.
    """

    origin_dir: Optional[str] = None
    destination_root: Optional[str] = None
    model_path: Optional[str] = None
    model_name: str = "filename-model.joblib"
    training_path: Optional[str] = None
    training_name: str = "training-data.csv"
    state_dir: str = "~/.tidydrop/state"


class ClassifierSettings(TidydropBaseModel):
    """Feature extraction and fitting options for the name classifier.

    Attributes:
        word_ngram_max: Largest word n-gram extracted from file-name tokens.
        char_ngram_min: Smallest character n-gram extracted from file names.
        char_ngram_max: Largest character n-gram extracted from file names.
        max_iter: Iteration cap for the logistic-regression solver.
        random_state: Seed used when fitting, to keep predictions reproducible.
    """

    word_ngram_max: int = Field(default=2, ge=1)
    char_ngram_min: int = Field(default=2, ge=1)
    char_ngram_max: int = Field(default=4, ge=1)
    max_iter: int = Field(default=1_000, ge=1)
    random_state: int = 0

    @model_validator(mode="after")
    def _check_char_range(self) -> "ClassifierSettings":
        if self.char_ngram_min > self.char_ngram_max:
            raise ValueError("char_ngram_min must not exceed char_ngram_max")
        return self


class JobSettings(TidydropBaseModel):
    """Background job and watch-mode options.

    Attributes:
        max_workers: Number of worker threads executing pipeline jobs.
        watch_debounce_seconds: Quiet period before a watch event triggers a sync.
    """

    max_workers: int = Field(default=2, ge=1)
    watch_debounce_seconds: float = Field(default=2.0, gt=0)


class LoggingSettings(TidydropBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Optional log file path; console-only logging when unset.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    file: Optional[str] = None
    max_size_mb: int = 100
    backup_count: int = 5


def _default_profiles() -> Dict[str, PathSettings]:
    return {"production": PathSettings(), "development": PathSettings()}


class TidydropConfig(TidydropBaseModel):
    """Top-level configuration struct for Tidydrop.

    Attributes:
        environment: Name of the active profile.
        profiles: Path settings keyed by environment name.
        classifier: Classifier fitting options.
        jobs: Background job options.
        logging: Logging configuration.
    """

    environment: str = "production"
    profiles: Dict[str, PathSettings] = Field(default_factory=_default_profiles)
    classifier: ClassifierSettings = Field(default_factory=ClassifierSettings)
    jobs: JobSettings = Field(default_factory=JobSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @model_validator(mode="after")
    def _check_environment(self) -> "TidydropConfig":
        if self.environment not in self.profiles:
            raise ValueError(f"environment '{self.environment}' has no matching profile")
        return self

    @property
    def active_profile(self) -> PathSettings:
        """Return the path settings selected by ``environment``."""
        return self.profiles[self.environment]


__all__ = [
    "TidydropBaseModel",
    "PathSettings",
    "ClassifierSettings",
    "JobSettings",
    "LoggingSettings",
    "TidydropConfig",
]
