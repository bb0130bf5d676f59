"""
Error taxonomy for the CodeContext memory store.

Every error names the operation that failed and the project path it ran
against so callers can decide between retrying and aborting.
"""

from pathlib import Path
from typing import Optional


class CodeContextError(Exception):
    """Base class for all memory store errors."""

    kind = "error"

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        path: Optional[str | Path] = None,
    ):
        self.message = message
        self.operation = operation
        self.path = str(path) if path is not None else None
        super().__init__(message)

    def __str__(self) -> str:
        parts = []
        if self.operation:
            parts.append(self.operation)
        if self.path:
            parts.append(self.path)
        if parts:
            return f"{self.message} ({': '.join(parts)})"
        return self.message

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "message": self.message,
            "operation": self.operation,
            "path": self.path,
        }


class StoreUnavailable(CodeContextError):
    """The state directory or store file cannot be created or opened."""

    kind = "store_unavailable"


class AlreadyInitialized(CodeContextError):
    """Initialization was re-run without force."""

    kind = "already_initialized"


class NotFound(CodeContextError):
    """No initialized store exists for the project path."""

    kind = "not_found"


class InvalidRecord(CodeContextError, ValueError):
    """A record failed validation before it was written."""

    kind = "invalid_record"


class InvalidMemory(InvalidRecord):
    """Memory content is empty or malformed."""

    kind = "invalid_memory"


class StorageError(CodeContextError):
    """The underlying database failed during a read or write."""

    kind = "storage_error"


class BatchIngestError(StorageError):
    """A scan batch stopped at its first failure.

    Records written before the failure stay committed.
    """

    kind = "batch_ingest_error"

    def __init__(
        self,
        message: str,
        completed: int,
        total: int,
        operation: Optional[str] = None,
        path: Optional[str | Path] = None,
    ):
        super().__init__(message, operation=operation, path=path)
        self.completed = completed
        self.total = total

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["completed"] = self.completed
        data["total"] = self.total
        return data
