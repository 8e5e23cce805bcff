"""Services package."""

from aidledger.services.payment import (
    BankTransferProcessor,
    PaymentGateway,
    PaymentProcessor,
    PaymentProcessorError,
    SimulatedCardProcessor,
    SimulatedMobileMoneyProcessor,
)
from aidledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    LedgerTransaction,
    MemoryAuditStorage,
    MemoryLedgerStorage,
    NotFoundError,
    SqlAuditStorage,
    SqlLedgerStorage,
    StorageError,
)

__all__ = [
    # Payment services
    "BankTransferProcessor",
    "PaymentGateway",
    "PaymentProcessor",
    "PaymentProcessorError",
    "SimulatedCardProcessor",
    "SimulatedMobileMoneyProcessor",
    # Storage services
    "AuditStorageInterface",
    "LedgerStorageInterface",
    "LedgerTransaction",
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    "MemoryAuditStorage",
    "MemoryLedgerStorage",
    "SqlAuditStorage",
    "SqlLedgerStorage",
]
