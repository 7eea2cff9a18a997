"""Inventory store errors."""


class InventoryError(Exception):
    """Base exception for inventory repository operations."""


class MissingRecordError(InventoryError):
    """Raised when a record id is not present in the store."""

    def __init__(self, record_id: int) -> None:
        super().__init__(f"File record with id {record_id} does not exist")
        self.record_id = record_id


class DuplicateRecordError(InventoryError):
    """Raised when an insert would duplicate the name of an active record."""
