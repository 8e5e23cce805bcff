"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the ledger
store: SQLAlchemy for durable storage, in-memory for tests.
"""

from aidledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    LedgerTransaction,
    NotFoundError,
    StorageError,
)
from aidledger.services.storage.memory import (
    MemoryAuditStorage,
    MemoryLedgerStorage,
)
from aidledger.services.storage.sql_store import (
    SqlAuditStorage,
    SqlLedgerStorage,
    create_ledger_engine,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    "LedgerTransaction",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "MemoryAuditStorage",
    "MemoryLedgerStorage",
    # SQL implementation
    "SqlAuditStorage",
    "SqlLedgerStorage",
    "create_ledger_engine",
]
