"""SQLite database initialization, transactions, and book/user persistence."""

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from config.exceptions import DatabaseError, ShelfError
from models.access import ListingFilter
from models.book import Book
from models.enums import (
    PublicationStatus, BookStatus, ContentType,
    UserRole, Plan, SubscriptionStatus,
)
from models.user import User

logger = logging.getLogger(__name__)

# SQL for creating all tables
_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    role TEXT NOT NULL DEFAULT 'reader',
    age INTEGER CHECK (age IS NULL OR age >= 0),
    plan TEXT NOT NULL DEFAULT 'free',
    subscription_status TEXT NOT NULL DEFAULT 'inactive',
    subscription_expires_at TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS books (
    id TEXT PRIMARY KEY,
    author_id TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT DEFAULT '',
    genre TEXT DEFAULT '',
    tags TEXT DEFAULT '',
    status TEXT NOT NULL DEFAULT 'draft',
    book_status TEXT NOT NULL DEFAULT 'ongoing',
    content_type TEXT NOT NULL DEFAULT 'kids',
    is_premium BOOLEAN NOT NULL DEFAULT FALSE,
    reading_time TEXT NOT NULL DEFAULT '0 min read',
    view_count INTEGER NOT NULL DEFAULT 0,
    published_at TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS chapters (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    book_id TEXT NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    chapter_number INTEGER NOT NULL,
    title TEXT NOT NULL,
    content TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

# Indexes and constraints added via migration (idempotent)
_MIGRATION_SQL = [
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_chapters_book_number ON chapters(book_id, chapter_number)",
    "CREATE INDEX IF NOT EXISTS idx_books_author ON books(author_id)",
    "CREATE INDEX IF NOT EXISTS idx_books_status ON books(status, content_type, book_status)",
]

# Columns BookService may write through update_book_fields
_BOOK_WRITABLE_COLUMNS = {
    "title", "description", "genre", "tags", "status", "book_status",
    "content_type", "is_premium", "reading_time", "published_at",
}

_BOOK_SELECT = (
    "SELECT b.*, (SELECT COUNT(*) FROM chapters c WHERE c.book_id = b.id) AS chapter_count "
    "FROM books b"
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_db_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def from_db_timestamp(value) -> Optional[datetime]:
    """Parse a stored timestamp; naive values (SQLite defaults) are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Database:
    """SQLite database manager for books, chapters, and users.

    Every call opens its own connection, so a single instance is safe to
    share across request threads. Multi-step writes go through
    :meth:`transaction`.
    """

    def __init__(self, db_path: str | Path, busy_timeout: float = 30.0):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.busy_timeout = busy_timeout
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        # isolation_level=None: transactions are issued explicitly below
        conn = sqlite3.connect(str(self.db_path), timeout=self.busy_timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _init_db(self):
        with self.connect() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(_CREATE_TABLES_SQL)
        self._migrate()

    def _migrate(self):
        """Apply idempotent schema migrations (indexes, constraints)."""
        with self.connect() as conn:
            for sql in _MIGRATION_SQL:
                try:
                    conn.execute(sql)
                except sqlite3.OperationalError as e:
                    logger.debug("Migration skipped (already applied): %s", e)

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Yield an autocommit connection for single-statement reads/writes."""
        conn = self._get_conn()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self, conn: Optional[sqlite3.Connection] = None) -> Iterator[sqlite3.Connection]:
        """Run a block atomically.

        Passing ``conn`` joins a transaction already opened by the caller;
        commit and rollback then belong to the outermost block. Any exception
        rolls the whole transaction back. Raw ``sqlite3`` errors are
        re-raised as :class:`DatabaseError`.
        """
        if conn is not None:
            yield conn
            return

        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            self._rollback(conn)
            raise DatabaseError("Transaction failed", {"cause": str(e)}) from e
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            conn.close()

    @staticmethod
    def _rollback(conn: sqlite3.Connection):
        if conn.in_transaction:
            conn.execute("ROLLBACK")
            logger.debug("Transaction rolled back")

    # ---- Book CRUD ----

    def create_book(self, book: Book, conn: Optional[sqlite3.Connection] = None) -> str:
        book_id = book.id or uuid.uuid4().hex
        with self.transaction(conn) as tx:
            tx.execute(
                "INSERT INTO books (id, author_id, title, description, genre, tags, status, "
                "book_status, content_type, is_premium, reading_time, published_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (book_id, book.author_id, book.title, book.description, book.genre,
                 book.tags, book.status.value, book.book_status.value,
                 book.content_type.value, book.is_premium, book.reading_time,
                 to_db_timestamp(book.published_at)),
            )
        return book_id

    def get_book(self, book_id: str, conn: Optional[sqlite3.Connection] = None) -> Optional[Book]:
        sql = f"{_BOOK_SELECT} WHERE b.id = ?"
        if conn is not None:
            row = conn.execute(sql, (book_id,)).fetchone()
        else:
            with self.connect() as own:
                row = own.execute(sql, (book_id,)).fetchone()
        if not row:
            return None
        return self._row_to_book(row)

    def update_book_fields(self, book_id: str, fields: dict, conn: Optional[sqlite3.Connection] = None):
        """Write a subset of book columns. Enum and datetime values are converted."""
        unknown = set(fields) - _BOOK_WRITABLE_COLUMNS
        if unknown:
            raise ShelfError("Unknown book columns", {"columns": sorted(unknown)})
        if not fields:
            return
        assignments = ", ".join(f"{col}=?" for col in fields)
        values = [self._to_column_value(v) for v in fields.values()]
        with self.transaction(conn) as tx:
            tx.execute(
                f"UPDATE books SET {assignments}, updated_at=CURRENT_TIMESTAMP WHERE id=?",
                (*values, book_id),
            )

    def set_reading_time(self, conn: sqlite3.Connection, book_id: str, reading_time: str):
        conn.execute(
            "UPDATE books SET reading_time=?, updated_at=CURRENT_TIMESTAMP WHERE id=?",
            (reading_time, book_id),
        )

    def increment_view_count(self, book_id: str):
        with self.connect() as conn:
            conn.execute("UPDATE books SET view_count = view_count + 1 WHERE id = ?", (book_id,))

    def delete_book(self, book_id: str):
        """Delete a book and all of its chapters."""
        with self.transaction() as conn:
            conn.execute("DELETE FROM chapters WHERE book_id = ?", (book_id,))
            conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
        logger.info("Book %s and its chapters deleted", book_id)

    def list_books(self, listing: ListingFilter, page: int, limit: int) -> tuple[list[Book], int]:
        """Return one page of published books matching ``listing`` plus the total count."""
        clauses = ["b.status = ?"]
        params: list = [PublicationStatus.PUBLISHED.value]
        if listing.content_types is not None:
            clauses.append(f"b.content_type IN ({', '.join('?' * len(listing.content_types))})")
            params.extend(ct.value for ct in listing.content_types)
        if listing.book_statuses is not None:
            clauses.append(f"b.book_status IN ({', '.join('?' * len(listing.book_statuses))})")
            params.extend(bs.value for bs in listing.book_statuses)
        return self._paged_books(" AND ".join(clauses), params, "b.created_at DESC, b.rowid DESC", page, limit)

    def list_books_by_author(
        self,
        author_id: str,
        status: Optional[PublicationStatus] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> tuple[list[Book], int]:
        clauses = ["b.author_id = ?"]
        params: list = [author_id]
        if status is not None:
            clauses.append("b.status = ?")
            params.append(status.value)
        return self._paged_books(" AND ".join(clauses), params, "b.created_at DESC, b.rowid DESC", page, limit)

    def _paged_books(self, where: str, params: list, order: str, page: int, limit: Optional[int]):
        with self.connect() as conn:
            total = conn.execute(f"SELECT COUNT(*) FROM books b WHERE {where}", params).fetchone()[0]
            sql = f"{_BOOK_SELECT} WHERE {where} ORDER BY {order}"
            query_params = list(params)
            if limit is not None:
                sql += " LIMIT ? OFFSET ?"
                query_params.extend([limit, (page - 1) * limit])
            rows = conn.execute(sql, query_params).fetchall()
        return [self._row_to_book(r) for r in rows], total

    @staticmethod
    def _to_column_value(value):
        if isinstance(value, (PublicationStatus, BookStatus, ContentType)):
            return value.value
        if isinstance(value, datetime):
            return to_db_timestamp(value)
        return value

    def _row_to_book(self, row) -> Book:
        return Book(
            id=row["id"], author_id=row["author_id"], title=row["title"],
            description=row["description"] or "", genre=row["genre"] or "",
            tags=row["tags"] or "",
            status=PublicationStatus(row["status"]),
            book_status=BookStatus(row["book_status"]),
            content_type=ContentType(row["content_type"]),
            is_premium=bool(row["is_premium"]),
            reading_time=row["reading_time"],
            view_count=row["view_count"],
            chapter_count=row["chapter_count"],
            published_at=from_db_timestamp(row["published_at"]),
            created_at=from_db_timestamp(row["created_at"]),
            updated_at=from_db_timestamp(row["updated_at"]),
        )

    # ---- User CRUD ----

    def create_user(self, user: User) -> str:
        user_id = user.id or uuid.uuid4().hex
        with self.connect() as conn:
            conn.execute(
                "INSERT INTO users (id, name, role, age, plan, subscription_status, "
                "subscription_expires_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (user_id, user.name, user.role.value, user.age, user.plan.value,
                 user.subscription_status.value,
                 to_db_timestamp(user.subscription_expires_at)),
            )
        return user_id

    def get_user(self, user_id: str) -> Optional[User]:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if not row:
            return None
        return User(
            id=row["id"], name=row["name"], role=UserRole(row["role"]),
            age=row["age"], plan=Plan(row["plan"]),
            subscription_status=SubscriptionStatus(row["subscription_status"]),
            subscription_expires_at=from_db_timestamp(row["subscription_expires_at"]),
            created_at=from_db_timestamp(row["created_at"]),
            updated_at=from_db_timestamp(row["updated_at"]),
        )

    def update_user_subscription(self, user: User):
        with self.connect() as conn:
            conn.execute(
                "UPDATE users SET plan=?, subscription_status=?, subscription_expires_at=?, "
                "updated_at=CURRENT_TIMESTAMP WHERE id=?",
                (user.plan.value, user.subscription_status.value,
                 to_db_timestamp(user.subscription_expires_at), user.id),
            )
