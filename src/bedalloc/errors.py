"""
Exception hierarchy shared by intake, allocation and storage.
"""

from __future__ import annotations

from typing import Optional


class AllocationError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(AllocationError):
    def __init__(self, message: str, field: Optional[str] = None, index: Optional[int] = None):
        self.field = field
        self.index = index
        location = []
        if index is not None:
            location.append(f"record {index}")
        if field is not None:
            location.append(f"field '{field}'")
        prefix = f"{', '.join(location)}: " if location else ""
        super().__init__(f"{prefix}{message}")


class StorageError(AllocationError):
    pass


class StaleSnapshotError(StorageError):
    """Store state changed between load_snapshot() and commit()."""
