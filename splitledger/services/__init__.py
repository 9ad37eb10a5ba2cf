"""Services package."""

from splitledger.services.storage import (
    ConnectionError,
    DuplicateError,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryStore,
    JsonFileStore,
    KeyValueLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Storage services
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueLedgerStorage",
    "LedgerStorageInterface",
    "NotFoundError",
    "StorageError",
]
