"""
Error taxonomy for the todo store.

``ValidationError`` and ``NotFound`` are expected outcomes handed back to the
caller. ``PoolExhausted`` and transient ``StorageError`` instances may be
retried with backoff. ``ProvisioningError`` and ``MigrationError`` abort
startup.
"""
from __future__ import annotations

from typing import Optional


class TodoStoreError(Exception):
    """Base class for every error raised by this package."""

    retryable = False


class ProvisioningError(TodoStoreError):
    """Database unreachable, unauthorized, or misconfigured at setup time."""


class MigrationError(TodoStoreError):
    """A migration revision failed; its transaction was rolled back."""

    def __init__(self, failed_id: str, cause: BaseException):
        self.failed_id = failed_id
        self.cause = cause
        super().__init__(f"Migration {failed_id} failed: {cause}")


class PoolExhausted(TodoStoreError):
    """No connection became available within the acquire timeout."""

    retryable = True


class StorageError(TodoStoreError):
    """Underlying connection or query fault."""

    def __init__(self, message: str, *, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class ValidationError(TodoStoreError):
    """Caller supplied invalid input."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFound(TodoStoreError):
    """No todo exists with the given id."""

    def __init__(self, todo_id):
        self.todo_id = todo_id
        super().__init__(f"Todo {todo_id} not found")
