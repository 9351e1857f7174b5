"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
The in-memory backend is the default; Google Sheets is the persistent one.
"""

from splitledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    SettlementStorageInterface,
    StorageError,
)
from splitledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemorySettlementStorage,
)
from splitledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    GoogleSheetsSettlementStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ExpenseStorageInterface",
    "SettlementStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    "InMemorySettlementStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
    "GoogleSheetsSettlementStorage",
]
