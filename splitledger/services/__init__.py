"""Services package."""

from splitledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    GoogleSheetsSettlementStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemorySettlementStorage,
    SettlementStorageInterface,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "ExpenseStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
    "GoogleSheetsSettlementStorage",
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    "InMemorySettlementStorage",
    "SettlementStorageInterface",
    "StorageError",
]
