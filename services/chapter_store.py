"""Chapter persistence and the contiguous-numbering invariant.

For every book the stored ``chapter_number`` values are exactly ``1..N``.
Each mutation runs in one transaction together with the book's derived
reading time, so a concurrent reader never sees a partial renumber.

Renumbering addresses chapters by their stable row id. SQLite enforces the
``(book_id, chapter_number)`` unique index row by row, even inside a single
UPDATE, so final numbers are written in two phases: first every affected
row gets a distinct negative placeholder, then its final number.
"""

import logging
import sqlite3
from typing import Iterable, Optional, Sequence

from config.exceptions import NotFoundError, ValidationError, InvalidChapterOrderError
from config.settings import Settings
from models.access import TocEntry
from models.chapter import Chapter, ChapterInput
from models.database import Database, from_db_timestamp
from tools.text_utils import calculate_reading_time, join_chapter_contents

logger = logging.getLogger(__name__)


def coerce_chapter_input(value, position: Optional[int] = None) -> ChapterInput:
    """Accept a ChapterInput or a ``{"title", "content"}`` mapping; both fields must be non-empty."""
    where = f"chapters[{position}]" if position is not None else "chapter"
    if isinstance(value, ChapterInput):
        title, content = value.title, value.content
    elif isinstance(value, dict):
        title, content = value.get("title"), value.get("content")
    else:
        raise ValidationError(f"{where} must be an object with title and content", field=where)

    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Chapter title is required", field=f"{where}.title")
    if not isinstance(content, str) or not content.strip():
        raise ValidationError("Chapter content is required", field=f"{where}.content")
    return ChapterInput(title=title, content=content)


def validate_chapter_order(new_order, existing_numbers: Sequence[int]) -> list[int]:
    """Check that ``new_order`` is a permutation of ``existing_numbers``."""
    if not isinstance(new_order, (list, tuple)) or not new_order:
        raise InvalidChapterOrderError("Chapter order must be a non-empty array.")
    if any(isinstance(n, bool) or not isinstance(n, int) for n in new_order):
        raise InvalidChapterOrderError("Chapter order must contain only integers.")
    if len(new_order) != len(existing_numbers):
        raise InvalidChapterOrderError("Chapter order array length must match the number of chapters.")
    if sorted(new_order) != sorted(existing_numbers):
        raise InvalidChapterOrderError("Chapter order array must contain all existing chapter numbers.")
    return list(new_order)


class ChapterStore:
    """Owns chapter rows and their numbering for every book."""

    def __init__(self, db: Database, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or Settings()

    # ---- Reads ----

    def count(self, book_id: str, conn: Optional[sqlite3.Connection] = None) -> int:
        sql = "SELECT COUNT(*) FROM chapters WHERE book_id = ?"
        if conn is not None:
            return conn.execute(sql, (book_id,)).fetchone()[0]
        with self.db.connect() as own:
            return own.execute(sql, (book_id,)).fetchone()[0]

    def list_chapters(self, book_id: str, page: int = 1, limit: Optional[int] = None) -> list[Chapter]:
        sql = "SELECT * FROM chapters WHERE book_id = ? ORDER BY chapter_number"
        params: list = [book_id]
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend([limit, (page - 1) * limit])
        with self.db.connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_chapter(r) for r in rows]

    def get_chapter(self, book_id: str, chapter_number: int) -> Optional[Chapter]:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT * FROM chapters WHERE book_id = ? AND chapter_number = ?",
                (book_id, chapter_number),
            ).fetchone()
        if not row:
            return None
        return self._row_to_chapter(row)

    def table_of_contents(self, book_id: str) -> list[TocEntry]:
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT chapter_number, title FROM chapters WHERE book_id = ? ORDER BY chapter_number",
                (book_id,),
            ).fetchall()
        return [TocEntry(chapter_number=r["chapter_number"], title=r["title"]) for r in rows]

    # ---- Writes ----

    def bulk_replace(
        self,
        book_id: str,
        chapters: Iterable,
        conn: Optional[sqlite3.Connection] = None,
    ) -> list[Chapter]:
        """Replace every chapter of a book with ``chapters``, numbered 1..N in input order."""
        inputs = [coerce_chapter_input(c, i) for i, c in enumerate(chapters)]
        with self.db.transaction(conn) as tx:
            tx.execute("DELETE FROM chapters WHERE book_id = ?", (book_id,))
            self._insert_chapters(tx, book_id, inputs)
            self.recompute_reading_time(tx, book_id)
            rows = tx.execute(
                "SELECT * FROM chapters WHERE book_id = ? ORDER BY chapter_number", (book_id,),
            ).fetchall()
        logger.info("Book %s: replaced chapter set (%d chapters)", book_id, len(inputs))
        return [self._row_to_chapter(r) for r in rows]

    def append(self, book_id: str, chapter) -> Chapter:
        """Add a chapter after the current last one."""
        data = coerce_chapter_input(chapter)
        with self.db.transaction() as tx:
            row = tx.execute(
                "SELECT MAX(chapter_number) AS max_ch FROM chapters WHERE book_id = ?", (book_id,),
            ).fetchone()
            number = (row["max_ch"] or 0) + 1
            cursor = tx.execute(
                "INSERT INTO chapters (book_id, chapter_number, title, content) VALUES (?, ?, ?, ?)",
                (book_id, number, data.title, data.content),
            )
            chapter_id = cursor.lastrowid
            self.recompute_reading_time(tx, book_id)
            created = tx.execute("SELECT * FROM chapters WHERE id = ?", (chapter_id,)).fetchone()
        logger.info("Book %s: appended chapter %d", book_id, number)
        return self._row_to_chapter(created)

    def update_chapter(
        self,
        book_id: str,
        chapter_number: int,
        title: Optional[str] = None,
        content: Optional[str] = None,
    ) -> Chapter:
        """Edit a chapter's title and/or content in place; its number is unchanged."""
        if title is not None and (not isinstance(title, str) or not title.strip()):
            raise ValidationError("Chapter title must not be empty", field="title")
        if content is not None and (not isinstance(content, str) or not content.strip()):
            raise ValidationError("Chapter content must not be empty", field="content")

        with self.db.transaction() as tx:
            row = tx.execute(
                "SELECT * FROM chapters WHERE book_id = ? AND chapter_number = ?",
                (book_id, chapter_number),
            ).fetchone()
            if not row:
                raise NotFoundError("Chapter", chapter_number)
            tx.execute(
                "UPDATE chapters SET title = COALESCE(?, title), content = COALESCE(?, content), "
                "updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (title, content, row["id"]),
            )
            if content is not None:
                self.recompute_reading_time(tx, book_id)
            updated = tx.execute("SELECT * FROM chapters WHERE id = ?", (row["id"],)).fetchone()
        return self._row_to_chapter(updated)

    def delete_and_renumber(self, book_id: str, chapter_number: int) -> None:
        """Delete one chapter and close the gap: later chapters shift down by one."""
        with self.db.transaction() as tx:
            deleted = tx.execute(
                "DELETE FROM chapters WHERE book_id = ? AND chapter_number = ?",
                (book_id, chapter_number),
            ).rowcount
            if not deleted:
                raise NotFoundError("Chapter", chapter_number)

            remaining = self._ordered_ids(tx, book_id)
            self._renumber(tx, remaining)
            self.recompute_reading_time(tx, book_id)
        logger.info("Book %s: deleted chapter %d, %d remain", book_id, chapter_number, len(remaining))

    def reorder(self, book_id: str, new_order) -> list[Chapter]:
        """Renumber chapters so the chapter at ``new_order[i]`` becomes number ``i + 1``.

        ``new_order`` must contain every existing chapter number exactly once.
        Validation happens before any write; content never moves.
        """
        with self.db.transaction() as tx:
            rows = tx.execute(
                "SELECT id, chapter_number FROM chapters WHERE book_id = ? ORDER BY chapter_number",
                (book_id,),
            ).fetchall()
            id_by_number = {r["chapter_number"]: r["id"] for r in rows}
            order = validate_chapter_order(new_order, list(id_by_number))

            self._renumber(tx, [id_by_number[n] for n in order])
            final = tx.execute(
                "SELECT * FROM chapters WHERE book_id = ? ORDER BY chapter_number", (book_id,),
            ).fetchall()
        logger.info("Book %s: chapters reordered to %s", book_id, order)
        return [self._row_to_chapter(r) for r in final]

    def recompute_reading_time(self, conn: sqlite3.Connection, book_id: str) -> str:
        """Recalculate the book's reading time from its current chapters, inside ``conn``."""
        rows = conn.execute(
            "SELECT content FROM chapters WHERE book_id = ? ORDER BY chapter_number", (book_id,),
        ).fetchall()
        reading_time = calculate_reading_time(
            join_chapter_contents(r["content"] for r in rows),
            self.settings.words_per_minute,
        )
        self.db.set_reading_time(conn, book_id, reading_time)
        return reading_time

    # ---- Internals ----

    def _insert_chapters(self, conn: sqlite3.Connection, book_id: str, inputs: list[ChapterInput]):
        conn.executemany(
            "INSERT INTO chapters (book_id, chapter_number, title, content) VALUES (?, ?, ?, ?)",
            [(book_id, i + 1, c.title, c.content) for i, c in enumerate(inputs)],
        )

    @staticmethod
    def _ordered_ids(conn: sqlite3.Connection, book_id: str) -> list[int]:
        rows = conn.execute(
            "SELECT id FROM chapters WHERE book_id = ? ORDER BY chapter_number", (book_id,),
        ).fetchall()
        return [r["id"] for r in rows]

    @staticmethod
    def _renumber(conn: sqlite3.Connection, ordered_ids: list[int]):
        """Give ``ordered_ids[i]`` the number ``i + 1`` (two-phase)."""
        conn.executemany(
            "UPDATE chapters SET chapter_number = ? WHERE id = ?",
            [(-(i + 1), chapter_id) for i, chapter_id in enumerate(ordered_ids)],
        )
        conn.executemany(
            "UPDATE chapters SET chapter_number = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            [(i + 1, chapter_id) for i, chapter_id in enumerate(ordered_ids)],
        )

    @staticmethod
    def _row_to_chapter(row) -> Chapter:
        return Chapter(
            id=row["id"], book_id=row["book_id"],
            chapter_number=row["chapter_number"], title=row["title"],
            content=row["content"],
            created_at=from_db_timestamp(row["created_at"]),
            updated_at=from_db_timestamp(row["updated_at"]),
        )
