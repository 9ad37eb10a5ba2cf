"""
Storage Services Package

Provides the abstract ledger storage interface and concrete implementations.
The key-value backend (in memory or a JSON file) is the default; Google
Sheets is available for users who want their ledger in a spreadsheet.
"""

from splitledger.services.storage.interface import (
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    merge_fields,
)
from splitledger.services.storage.keyvalue import (
    InMemoryStore,
    JsonFileStore,
    KeyValueLedgerStorage,
)
from splitledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interface
    "LedgerStorageInterface",
    "merge_fields",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Key-value implementation
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueLedgerStorage",
    # Google Sheets implementation
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
