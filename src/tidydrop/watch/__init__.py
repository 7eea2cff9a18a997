"""Origin folder monitoring."""

from .service import WatchService

__all__ = ["WatchService"]
