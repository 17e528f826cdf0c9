"""
Persistence core for todo records: migrations, a connection pool and a
transactional repository.
"""

from todo_store.errors import (
    MigrationError,
    NotFound,
    PoolExhausted,
    ProvisioningError,
    StorageError,
    TodoStoreError,
    ValidationError,
)

__all__ = [
    "MigrationError",
    "NotFound",
    "PoolExhausted",
    "ProvisioningError",
    "StorageError",
    "TodoStoreError",
    "ValidationError",
]
