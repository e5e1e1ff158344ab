"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the record
store, the identity provider's photo hint, and audit storage.
"""

from src.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    IdentityProviderInterface,
    RecordStoreInterface,
    StorageError,
)
from src.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryIdentityProvider,
    InMemoryRecordStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "IdentityProviderInterface",
    "RecordStoreInterface",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryIdentityProvider",
    "InMemoryRecordStore",
]
