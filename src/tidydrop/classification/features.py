"""File-name text features."""

from __future__ import annotations

import re

from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.pipeline import FeatureUnion

from tidydrop.config.models import ClassifierSettings

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z])(?=[A-Z])")
_DIGIT_BOUNDARY = re.compile(r"(?<=[A-Za-z])(?=\d)|(?<=\d)(?=[A-Za-z])")
_SEPARATORS = re.compile(r"[\s_\-.,;()\[\]{}+]+")


def normalize_name(name: str) -> str:
    """Split a file name into lower-case, space-separated tokens.

    ``InvoiceMarch_2024-final.PDF`` becomes ``invoice march 2024 final pdf``.
    """
    text = _CAMEL_BOUNDARY.sub(" ", name)
    text = _DIGIT_BOUNDARY.sub(" ", text)
    text = _SEPARATORS.sub(" ", text)
    return text.strip().lower()


def build_features(settings: ClassifierSettings) -> FeatureUnion:
    """Return the word and character n-gram union applied to raw file names."""
    words = TfidfVectorizer(
        preprocessor=normalize_name,
        token_pattern=r"(?u)\b\w+\b",
        ngram_range=(1, settings.word_ngram_max),
        sublinear_tf=True,
    )
    characters = TfidfVectorizer(
        preprocessor=normalize_name,
        analyzer="char_wb",
        ngram_range=(settings.char_ngram_min, settings.char_ngram_max),
        sublinear_tf=True,
    )
    return FeatureUnion([("words", words), ("characters", characters)])


__all__ = ["normalize_name", "build_features"]
