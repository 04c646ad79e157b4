"""SQLite database operations for FinTrack."""

import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from fintrack.config import settings
from fintrack.models import Document, ParsedTransaction, StoredTransaction
from fintrack.services.status import status_for

# SQL schema
SCHEMA = """
CREATE TABLE IF NOT EXISTS imported_documents (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    file_name TEXT NOT NULL,
    file_path TEXT NOT NULL,
    file_type TEXT NOT NULL DEFAULT '',
    file_size_bytes INTEGER NOT NULL DEFAULT 0,
    uploaded_at TEXT NOT NULL,
    is_processed INTEGER NOT NULL DEFAULT 0,
    processed_at TEXT,
    transaction_count INTEGER,
    failure_reason TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    deleted_at TEXT
);

CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id INTEGER REFERENCES imported_documents(id),
    date TEXT NOT NULL,
    amount TEXT NOT NULL,
    description TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_transactions_document ON transactions(document_id);
CREATE INDEX IF NOT EXISTS idx_transactions_date ON transactions(date);
"""

DOCUMENT_COLUMNS = """
    id, file_name, file_path, file_type, file_size_bytes, uploaded_at,
    is_processed, processed_at, transaction_count, failure_reason,
    created_at, updated_at, deleted_at
"""

TRANSACTION_COLUMNS = "id, document_id, date, amount, description, created_at, updated_at"


class DocumentNotFoundError(Exception):
    """Raised when a document id does not exist (or was deleted)."""

    def __init__(self, document_id: int):
        super().__init__(f"Document not found: {document_id}")
        self.document_id = document_id


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_timestamp(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class Database:
    """SQLite store for imported documents and their transactions."""

    def __init__(self, db_path: Path | None = None):
        if db_path is None:
            settings.ensure_directories()
            db_path = settings.db_path
        self.db_path = db_path
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the database schema."""
        with self._get_connection() as conn:
            conn.executescript(SCHEMA)
            conn.commit()

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    # Documents

    def create_document(self, file_name: str, file_path: str, file_type: str, file_size_bytes: int) -> Document:
        """Record an uploaded document in the unprocessed state."""
        now = _now()
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO imported_documents
                (file_name, file_path, file_type, file_size_bytes, uploaded_at, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (file_name, file_path, file_type, file_size_bytes, now, now, now),
            )
            conn.commit()
            row = conn.execute(
                f"SELECT {DOCUMENT_COLUMNS} FROM imported_documents WHERE id = ?",
                (cursor.lastrowid,),
            ).fetchone()
            return self._row_to_document(row)

    def get_document(self, document_id: int) -> Document | None:
        """Get a single document by ID, ignoring soft-deleted ones."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"SELECT {DOCUMENT_COLUMNS} FROM imported_documents WHERE id = ? AND deleted_at IS NULL",
                (document_id,),
            )
            row = cursor.fetchone()
            return self._row_to_document(row) if row else None

    def list_documents(self) -> list[Document]:
        """Get all documents, newest first."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"""
                SELECT {DOCUMENT_COLUMNS} FROM imported_documents
                WHERE deleted_at IS NULL
                ORDER BY created_at DESC, id DESC
                """
            )
            return [self._row_to_document(row) for row in cursor.fetchall()]

    def update_status(
        self,
        document_id: int,
        is_processed: bool,
        transaction_count: int | None = None,
        failure_reason: str | None = None,
    ) -> Document:
        """
        Overwrite a document's processing status.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        status = status_for(is_processed, transaction_count, failure_reason)
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                UPDATE imported_documents
                SET is_processed = ?, processed_at = ?, transaction_count = ?,
                    failure_reason = ?, updated_at = ?
                WHERE id = ? AND deleted_at IS NULL
                """,
                (
                    int(status.is_processed),
                    status.processed_at.isoformat() if status.processed_at else None,
                    status.transaction_count,
                    status.failure_reason,
                    _now(),
                    document_id,
                ),
            )
            conn.commit()
            if cursor.rowcount == 0:
                raise DocumentNotFoundError(document_id)

        document = self.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    def delete_document(self, document_id: int) -> bool:
        """Soft-delete a document. Returns False if it does not exist."""
        now = _now()
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE imported_documents SET deleted_at = ?, updated_at = ? WHERE id = ? AND deleted_at IS NULL",
                (now, now, document_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    # Transactions

    def create_bulk(self, document_id: int | None, transactions: list[ParsedTransaction]) -> list[StoredTransaction]:
        """
        Store the transactions of one processing run.

        Rows from a previous run of the same document are replaced in the
        same database transaction, so a re-run never duplicates rows.
        """
        now = _now()
        with self._get_connection() as conn:
            try:
                if document_id is not None:
                    conn.execute("DELETE FROM transactions WHERE document_id = ?", (document_id,))
                ids = []
                for txn in transactions:
                    cursor = conn.execute(
                        """
                        INSERT INTO transactions (document_id, date, amount, description, created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        (document_id, txn.date.isoformat(), str(txn.amount), txn.description, now, now),
                    )
                    ids.append(cursor.lastrowid)
                conn.commit()
            except sqlite3.Error:
                conn.rollback()
                raise

        created_at = datetime.fromisoformat(now)
        return [
            StoredTransaction(
                id=txn_id,
                document_id=document_id,
                date=txn.date,
                amount=txn.amount,
                description=txn.description,
                created_at=created_at,
                updated_at=created_at,
            )
            for txn_id, txn in zip(ids, transactions)
        ]

    def list_transactions(self, document_id: int | None = None, limit: int = 1000) -> list[StoredTransaction]:
        """Get stored transactions, newest date first."""
        query = f"SELECT {TRANSACTION_COLUMNS} FROM transactions WHERE 1=1"
        params: list = []

        if document_id is not None:
            query += " AND document_id = ?"
            params.append(document_id)

        query += " ORDER BY date DESC, id ASC LIMIT ?"
        params.append(limit)

        with self._get_connection() as conn:
            cursor = conn.execute(query, params)
            return [self._row_to_transaction(row) for row in cursor.fetchall()]

    def get_transaction_count(self) -> int:
        """Get total number of transactions."""
        with self._get_connection() as conn:
            cursor = conn.execute("SELECT COUNT(*) as count FROM transactions")
            return cursor.fetchone()["count"]

    def _row_to_document(self, row: sqlite3.Row) -> Document:
        """Convert a database row to a Document model."""
        return Document(
            id=row["id"],
            file_name=row["file_name"],
            file_path=row["file_path"],
            file_type=row["file_type"],
            file_size_bytes=row["file_size_bytes"],
            uploaded_at=datetime.fromisoformat(row["uploaded_at"]),
            is_processed=bool(row["is_processed"]),
            processed_at=_parse_timestamp(row["processed_at"]),
            transaction_count=row["transaction_count"],
            failure_reason=row["failure_reason"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            deleted_at=_parse_timestamp(row["deleted_at"]),
        )

    def _row_to_transaction(self, row: sqlite3.Row) -> StoredTransaction:
        """Convert a database row to a StoredTransaction model."""
        return StoredTransaction(
            id=row["id"],
            document_id=row["document_id"],
            date=date.fromisoformat(row["date"]),
            amount=Decimal(row["amount"]),
            description=row["description"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


@lru_cache
def get_db() -> Database:
    """Global database instance, created on first use."""
    return Database()
