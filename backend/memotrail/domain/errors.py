from __future__ import annotations

from dataclasses import dataclass


@dataclass
class MemoOperationError(RuntimeError):
    """Domain error for memo graph operations."""

    code: str
    message: str

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class NotFoundError(MemoOperationError):
    """Memo, node, version or checkout target does not exist."""


class InvalidOperationError(MemoOperationError):
    """Navigation precondition violated (no next or previous version)."""


class WriteConflictError(MemoOperationError):
    """Another writer advanced the memo first; the write may be retried."""


class StorageUnavailableError(MemoOperationError):
    """The backing store failed."""
