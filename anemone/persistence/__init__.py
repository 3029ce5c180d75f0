"""SQLite-backed collaborators."""

from anemone.persistence.sqlite_store import (
    SQLiteDatabase,
    SQLiteMessageStore,
    SQLiteProfileRepository,
    SQLiteWalletRepository,
)

__all__ = [
    "SQLiteDatabase",
    "SQLiteMessageStore",
    "SQLiteProfileRepository",
    "SQLiteWalletRepository",
]
