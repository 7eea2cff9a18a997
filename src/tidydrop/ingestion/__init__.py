"""Ingestion of files dropped into the origin directory."""

from .discovery import DirectoryScanner
from .errors import ScanError
from .models import RecategorizeReport, ScannedFile, SyncReport
from .synchronizer import InventorySynchronizer

__all__ = [
    "DirectoryScanner",
    "InventorySynchronizer",
    "ScanError",
    "ScannedFile",
    "SyncReport",
    "RecategorizeReport",
]
