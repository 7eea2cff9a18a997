"""Ingestion errors."""


class ScanError(Exception):
    """Raised when the origin directory cannot be read; aborts the whole scan."""
