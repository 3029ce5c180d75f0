"""SQLite persistence for messages, the agent profile and the wallet address.

One table each, one short-lived connection per operation (a single shared
connection for in-memory databases).
"""

import json
import logging
import sqlite3
import threading
from contextlib import closing, contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from anemone.exceptions_unified import PersistenceError

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS message_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        role TEXT NOT NULL,
        content TEXT NOT NULL,
        timestamp TEXT NOT NULL,
        message_type TEXT DEFAULT 'text',
        metadata TEXT,
        conversation_round INTEGER,
        message_id TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_message_user ON message_history(user_id, timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_message_id ON message_history(user_id, message_id)",
    """
    CREATE TABLE IF NOT EXISTS profile (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        role_id TEXT NOT NULL,
        package_id TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS wallet (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        address TEXT NOT NULL UNIQUE,
        created_at TEXT NOT NULL
    )
    """,
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteDatabase:
    """Owns the database file and schema.

    ``:memory:`` databases live only as long as their connection, so they
    keep one shared connection instead of opening one per operation.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._memory_conn: Optional[sqlite3.Connection] = None
        self._memory_lock = threading.Lock()
        if db_path == MEMORY_PATH:
            self._memory_conn = self.connect()
        else:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=self.db_path != MEMORY_PATH)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        if self._memory_conn is not None:
            with self._memory_lock:
                yield self._memory_conn
            return
        with closing(self.connect()) as conn:
            yield conn

    def _init_database(self) -> None:
        try:
            with self._connection() as conn, conn:
                for statement in _SCHEMA:
                    conn.execute(statement)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to initialise database {self.db_path}: {e}") from e
        logger.info("SQLite database ready at %s", self.db_path)

    def execute(self, query: str, params: Sequence[Any] = ()) -> int:
        """Run a write; returns the last row id."""
        try:
            with self._connection() as conn, conn:
                cursor = conn.execute(query, params)
                return cursor.lastrowid
        except sqlite3.Error as e:
            raise PersistenceError(f"Database write failed: {e}") from e

    def fetch_all(self, query: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        try:
            with self._connection() as conn:
                return conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Database read failed: {e}") from e

    def fetch_one(self, query: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        rows = self.fetch_all(query, params)
        return rows[0] if rows else None


_MESSAGE_COLUMNS = "id, user_id, role, content, timestamp, message_type, metadata, conversation_round"


def _message_row(row: sqlite3.Row) -> Dict[str, Any]:
    message = dict(row)
    raw = message.get("metadata")
    if raw:
        try:
            message["metadata"] = json.loads(raw)
        except ValueError:
            logger.warning("Message %s has unreadable metadata", message["id"])
            message["metadata"] = None
    return message


class SQLiteMessageStore:
    """Satisfies ``anemone.interfaces.IMessageStore``."""

    def __init__(self, database: SQLiteDatabase):
        self.db = database

    def save_message(
        self,
        user_id: str,
        role: str,
        content: str,
        timestamp: Optional[str] = None,
        message_type: str = "text",
        metadata: Optional[Dict[str, Any]] = None,
        conversation_round: Optional[int] = None,
    ) -> int:
        """Store one message; ``metadata["messageId"]`` is indexed for reply lookup."""
        return self.db.execute(
            "INSERT INTO message_history "
            "(user_id, role, content, timestamp, message_type, metadata, conversation_round, message_id) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                user_id,
                role,
                content,
                timestamp or _now(),
                message_type,
                json.dumps(metadata, ensure_ascii=False) if metadata else None,
                conversation_round,
                (metadata or {}).get("messageId"),
            ),
        )

    def find_message(self, user_id: str, message_id: str, role: str) -> Optional[Dict[str, Any]]:
        row = self.db.fetch_one(
            f"SELECT {_MESSAGE_COLUMNS} FROM message_history "
            "WHERE user_id = ? AND message_id = ? AND role = ? ORDER BY id DESC LIMIT 1",
            (user_id, message_id, role),
        )
        return _message_row(row) if row is not None else None

    def get_recent_messages(
        self,
        user_id: str,
        limit: int = 5,
        before_timestamp: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        query = f"SELECT {_MESSAGE_COLUMNS} FROM message_history WHERE user_id = ?"
        params: List[Any] = [user_id]
        if before_timestamp:
            query += " AND timestamp < ?"
            params.append(before_timestamp)
        query += " ORDER BY timestamp DESC, id DESC LIMIT ?"
        params.append(limit)
        return [_message_row(row) for row in self.db.fetch_all(query, params)]

    def get_conversation_history(self, user_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        rows = self.db.fetch_all(
            f"SELECT {_MESSAGE_COLUMNS} FROM message_history WHERE user_id = ? "
            "ORDER BY timestamp ASC, id ASC LIMIT ?",
            (user_id, limit),
        )
        return [_message_row(row) for row in rows]

    def get_messages_by_rounds(self, user_id: str, rounds: int = 3) -> List[Dict[str, Any]]:
        if rounds <= 0:
            return []
        row = self.db.fetch_one(
            "SELECT MAX(conversation_round) AS max_round FROM message_history "
            "WHERE user_id = ? AND conversation_round IS NOT NULL",
            (user_id,),
        )
        max_round = (row["max_round"] if row else None) or 0
        if max_round == 0:
            return []
        min_round = max(1, max_round - rounds + 1)
        rows = self.db.fetch_all(
            f"SELECT {_MESSAGE_COLUMNS} FROM message_history "
            "WHERE user_id = ? AND conversation_round BETWEEN ? AND ? "
            "ORDER BY conversation_round ASC, timestamp ASC, id ASC",
            (user_id, min_round, max_round),
        )
        return [_message_row(r) for r in rows]

    def get_next_conversation_round(self, user_id: str) -> int:
        row = self.db.fetch_one(
            "SELECT MAX(conversation_round) AS max_round FROM message_history WHERE user_id = ?",
            (user_id,),
        )
        return ((row["max_round"] if row else None) or 0) + 1

    def delete_user_messages(self, user_id: str) -> None:
        self.db.execute("DELETE FROM message_history WHERE user_id = ?", (user_id,))


class SQLiteProfileRepository:
    """Satisfies ``anemone.interfaces.IProfileRepository``. The newest profile wins."""

    def __init__(self, database: SQLiteDatabase):
        self.db = database

    def init_profile(self, role_id: str, package_id: str) -> int:
        existing = self.db.fetch_one("SELECT id FROM profile ORDER BY id DESC LIMIT 1")
        now = _now()
        if existing is not None:
            self.db.execute(
                "UPDATE profile SET role_id = ?, package_id = ?, updated_at = ? WHERE id = ?",
                (role_id, package_id, now, existing["id"]),
            )
            return existing["id"]
        return self.db.execute(
            "INSERT INTO profile (role_id, package_id, created_at, updated_at) VALUES (?, ?, ?, ?)",
            (role_id, package_id, now, now),
        )

    def get_profile(self) -> Optional[Dict[str, Any]]:
        row = self.db.fetch_one(
            "SELECT id, role_id, package_id, created_at, updated_at FROM profile ORDER BY id DESC LIMIT 1"
        )
        return dict(row) if row is not None else None


class SQLiteWalletRepository:
    """Satisfies ``anemone.interfaces.IWalletRepository``. Stores the address only."""

    def __init__(self, database: SQLiteDatabase):
        self.db = database

    def get_wallet(self) -> Optional[Dict[str, Any]]:
        row = self.db.fetch_one("SELECT id, address, created_at FROM wallet ORDER BY id DESC LIMIT 1")
        return dict(row) if row is not None else None

    def save_wallet_address(self, address: str) -> int:
        existing = self.db.fetch_one("SELECT id FROM wallet WHERE address = ?", (address,))
        if existing is not None:
            return existing["id"]
        return self.db.execute(
            "INSERT INTO wallet (address, created_at) VALUES (?, ?)", (address, _now())
        )
