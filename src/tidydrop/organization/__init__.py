"""Relocation of confirmed files into the destination tree."""

from .models import ItemOutcome, RelocationItem, RelocationReport
from .relocator import BatchRelocator

__all__ = ["BatchRelocator", "RelocationItem", "ItemOutcome", "RelocationReport"]
