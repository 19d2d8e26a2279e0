"""Book aggregate orchestration: book + chapters as one unit.

Writes are authorized here (author, or admin where allowed) and delegate
chapter numbering to :class:`ChapterStore`. Reads delegate gating to
:class:`AccessEvaluator` and only fetch chapter content when the decision
allows it.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import Optional, Type

from config.exceptions import (
    BookAlreadyPublishedError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from config.settings import Settings
from models.access import BookListing, BookView, ChapterPage, ChapterView, Navigation, Pagination
from models.book import Book
from models.chapter import Chapter, ChapterInput
from models.database import Database, utcnow
from models.enums import BookStatus, ContentType, PublicationStatus, UserRole
from models.user import Requester
from services.access_evaluator import AccessEvaluator
from services.chapter_store import ChapterStore, coerce_chapter_input
from services.subscription_gate import SubscriptionGate
from tools.text_utils import calculate_reading_time, join_chapter_contents

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("title", "description", "genre", "tags")
_ENUM_FIELDS: dict[str, Type[Enum]] = {
    "content_type": ContentType,
    "book_status": BookStatus,
}
_ALLOWED_FIELDS = set(_TEXT_FIELDS) | set(_ENUM_FIELDS) | {"is_premium", "chapters"}


def parse_enum(enum_cls: Type[Enum], value, field: str):
    """Convert ``value`` to ``enum_cls``, raising ValidationError for unknown values."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(f"'{m.value}'" for m in enum_cls)
        raise ValidationError(f"{field} must be one of {allowed}", field=field) from None


class BookService:
    """Create/update/delete books and serve gated reads."""

    def __init__(self, db: Database, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or Settings()
        self.gate = SubscriptionGate(db)
        self.evaluator = AccessEvaluator(db, self.gate, self.settings)
        self.chapters = ChapterStore(db, self.settings)
        self._background = ThreadPoolExecutor(
            max_workers=self.settings.view_count_workers,
            thread_name_prefix="view-count",
        )

    def close(self):
        """Wait for outstanding view-count increments and stop the worker pool."""
        self._background.shutdown(wait=True)

    def __enter__(self) -> "BookService":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ---- Book writes ----

    def create_book(self, data: dict, actor: Optional[Requester]) -> Book:
        """Create a draft book and its chapters in one transaction.

        Args:
            data: Book fields (title required) plus an optional ``chapters`` list
                of ``{"title", "content"}`` items, numbered in list order.
            actor: The creating author; becomes the book's owner.
        """
        if actor is None or actor.role not in (UserRole.AUTHOR, UserRole.ADMIN):
            raise PermissionDeniedError("Only authors can create books")

        fields, chapters = self._parse_book_data(data, partial=False)
        if fields.get("content_type") == ContentType.ADULT:
            self._check_author_age(actor.id)

        book = Book(author_id=actor.id, **fields)
        book.reading_time = calculate_reading_time(
            join_chapter_contents(c.content for c in chapters or []),
            self.settings.words_per_minute,
        )
        with self.db.transaction() as tx:
            book_id = self.db.create_book(book, conn=tx)
            self.chapters.bulk_replace(book_id, chapters or [], conn=tx)

        logger.info("Book %s created by %s with %d chapters", book_id, actor.id, len(chapters or []))
        return self.db.get_book(book_id)

    def update_book_by_id(self, book_id: str, data: dict, actor: Optional[Requester]) -> Book:
        """Update metadata; a non-empty ``chapters`` list replaces the whole chapter set.

        Only the book's author may update it.
        """
        book = self._load_for_write(book_id, actor, allow_admin=False)
        fields, chapters = self._parse_book_data(data, partial=True)
        if fields.get("content_type") == ContentType.ADULT:
            self._check_author_age(book.author_id)

        if chapters:
            with self.db.transaction() as tx:
                self.db.update_book_fields(book_id, fields, conn=tx)
                self.chapters.bulk_replace(book_id, chapters, conn=tx)
            logger.info("Book %s updated with %d replacement chapters", book_id, len(chapters))
        elif fields:
            self.db.update_book_fields(book_id, fields)
            logger.info("Book %s metadata updated: %s", book_id, sorted(fields))
        return self.db.get_book(book_id)

    def delete_book_by_id(self, book_id: str, actor: Optional[Requester]) -> None:
        self._load_for_write(book_id, actor)
        self.db.delete_book(book_id)

    def publish_book(self, book_id: str, actor: Optional[Requester]) -> Book:
        """Move a draft to published. Publishing is one-way."""
        book = self._load_for_write(book_id, actor)
        if book.status == PublicationStatus.PUBLISHED:
            raise BookAlreadyPublishedError(book_id)
        self.db.update_book_fields(book_id, {
            "status": PublicationStatus.PUBLISHED,
            "published_at": utcnow(),
        })
        logger.info("Book %s published", book_id)
        return self.db.get_book(book_id)

    def toggle_premium(self, book_id: str, actor: Optional[Requester]) -> Book:
        book = self._load_for_write(book_id, actor)
        self.db.update_book_fields(book_id, {"is_premium": not book.is_premium})
        return self.db.get_book(book_id)

    def update_book_status(self, book_id: str, book_status, actor: Optional[Requester]) -> Book:
        """Set ongoing/finished; ``book_status=None`` flips the current status."""
        book = self._load_for_write(book_id, actor)
        if book_status is None:
            new_status = BookStatus.FINISHED if book.book_status == BookStatus.ONGOING else BookStatus.ONGOING
        else:
            new_status = parse_enum(BookStatus, book_status, "book_status")
        self.db.update_book_fields(book_id, {"book_status": new_status})
        return self.db.get_book(book_id)

    def update_content_type(self, book_id: str, content_type, actor: Optional[Requester]) -> Book:
        book = self._load_for_write(book_id, actor)
        new_type = parse_enum(ContentType, content_type, "content_type")
        if new_type == ContentType.ADULT:
            self._check_author_age(book.author_id)
        self.db.update_book_fields(book_id, {"content_type": new_type})
        return self.db.get_book(book_id)

    # ---- Chapter writes ----

    def add_chapter(self, book_id: str, chapter, actor: Optional[Requester]) -> Chapter:
        self._load_for_write(book_id, actor)
        return self.chapters.append(book_id, chapter)

    def update_chapter(self, book_id: str, chapter_number: int, data: dict, actor: Optional[Requester]) -> Chapter:
        self._load_for_write(book_id, actor)
        unknown = set(data) - {"title", "content"}
        if unknown:
            raise ValidationError(f"Unknown chapter fields: {', '.join(sorted(unknown))}")
        return self.chapters.update_chapter(
            book_id, chapter_number, title=data.get("title"), content=data.get("content"),
        )

    def delete_chapter(self, book_id: str, chapter_number: int, actor: Optional[Requester]) -> None:
        self._load_for_write(book_id, actor)
        self.chapters.delete_and_renumber(book_id, chapter_number)

    def reorder_chapters(self, book_id: str, chapter_order, actor: Optional[Requester]) -> list[Chapter]:
        self._load_for_write(book_id, actor)
        return self.chapters.reorder(book_id, chapter_order)

    # ---- Reads ----

    def get_book_by_id(
        self,
        book_id: str,
        requester: Optional[Requester] = None,
        chapter_page: int = 1,
        chapter_limit: Optional[int] = None,
    ) -> BookView:
        """Book metadata, access decision, table of contents, and a chapter page if readable."""
        chapter_limit = self._check_paging(chapter_page, chapter_limit, self.settings.default_chapter_limit)
        book = self.db.get_book(book_id)
        access = self.evaluator.evaluate(book, requester)
        self._record_view(book_id)

        toc = self.chapters.table_of_contents(book_id)
        chapters = []
        if access.can_read_chapters:
            chapters = self.chapters.list_chapters(book_id, chapter_page, chapter_limit)
        return BookView(
            book=book,
            access=access,
            chapters=chapters,
            table_of_contents=toc,
            chapter_pagination=Pagination.build(chapter_page, chapter_limit, len(toc)),
        )

    def get_book_chapters(
        self,
        book_id: str,
        requester: Optional[Requester] = None,
        chapter_page: int = 1,
        chapter_limit: Optional[int] = None,
    ) -> ChapterPage:
        chapter_limit = self._check_paging(chapter_page, chapter_limit, self.settings.default_chapter_limit)
        book = self.db.get_book(book_id)
        access = self.evaluator.evaluate(book, requester)

        chapters = []
        if access.can_read_chapters:
            chapters = self.chapters.list_chapters(book_id, chapter_page, chapter_limit)
        return ChapterPage(
            book_id=book.id,
            book_title=book.title,
            access=access,
            chapters=chapters,
            pagination=Pagination.build(chapter_page, chapter_limit, book.chapter_count),
        )

    def get_chapter_by_number(
        self, book_id: str, chapter_number: int, requester: Optional[Requester] = None,
    ) -> ChapterView:
        """A single chapter with navigation; content is withheld when access is restricted."""
        book = self.db.get_book(book_id)
        access = self.evaluator.evaluate(book, requester)

        chapter = self.chapters.get_chapter(book_id, chapter_number)
        if chapter is None:
            raise NotFoundError("Chapter", chapter_number)
        if not access.can_read_chapters:
            chapter.content = None
        return ChapterView(
            chapter=chapter,
            book_title=book.title,
            access=access,
            navigation=Navigation.for_number(chapter_number, book.chapter_count),
        )

    def list_books(
        self, requester: Optional[Requester] = None, page: int = 1, limit: Optional[int] = None,
    ) -> BookListing:
        """Published catalog filtered by the requester's age and plan."""
        limit = self._check_paging(page, limit, self.settings.default_page_limit)
        listing = self.evaluator.listing_filter(requester)
        books, total = self.db.list_books(listing, page, limit)
        return BookListing(books=books, pagination=Pagination.build(page, limit, total))

    def get_books_by_author(
        self,
        actor: Requester,
        status=None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> BookListing:
        """The actor's own books, drafts included. Without ``limit`` all books are returned."""
        status = parse_enum(PublicationStatus, status, "status") if status is not None else None
        if limit is not None:
            self._check_paging(page, limit, limit)
        elif page != 1:
            self._check_paging(page, None, 1)
            raise ValidationError("page requires limit", field="page")
        books, total = self.db.list_books_by_author(actor.id, status, page, limit)
        pagination = Pagination.build(page, limit or max(total, 1), total)
        return BookListing(books=books, pagination=pagination)

    # ---- Internals ----

    def _record_view(self, book_id: str):
        # Not awaited: concurrent increments may be lost under contention
        try:
            future = self._background.submit(self.db.increment_view_count, book_id)
        except RuntimeError as e:
            logger.warning("View count not recorded for book %s: %s", book_id, e)
            return
        future.add_done_callback(_log_view_failure)

    def _load_for_write(self, book_id: str, actor: Optional[Requester], allow_admin: bool = True) -> Book:
        book = self.db.get_book(book_id)
        if book is None:
            raise NotFoundError("Book", book_id)
        if actor is not None and actor.id == book.author_id:
            return book
        if allow_admin and actor is not None and actor.is_admin:
            return book
        raise PermissionDeniedError(details={"book_id": book_id})

    def _check_author_age(self, author_id: str):
        author = self.db.get_user(author_id)
        if author is None:
            raise NotFoundError("Author", author_id)
        if author.age is not None and author.age < self.settings.adult_min_age:
            raise PermissionDeniedError(
                f"Authors under {self.settings.adult_min_age} years old cannot create adult content."
            )

    def _check_paging(self, page, limit, default: int) -> int:
        limit = default if limit is None else limit
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise ValidationError("page must be a positive integer", field="page")
        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= self.settings.max_page_limit:
            raise ValidationError(
                f"limit must be between 1 and {self.settings.max_page_limit}", field="limit",
            )
        return limit

    def _parse_book_data(self, data: dict, partial: bool) -> tuple[dict, Optional[list[ChapterInput]]]:
        """Validate a create/update payload into Book field values and chapter inputs."""
        if not isinstance(data, dict):
            raise ValidationError("Book data must be an object")
        unknown = set(data) - _ALLOWED_FIELDS
        if unknown:
            raise ValidationError(f"Unknown or read-only book fields: {', '.join(sorted(unknown))}")

        fields = {}
        for name in _TEXT_FIELDS:
            if name in data:
                value = data[name]
                if not isinstance(value, str):
                    raise ValidationError(f"{name} must be a string", field=name)
                fields[name] = value
        if "title" in fields and not fields["title"].strip():
            raise ValidationError("Title is required", field="title")
        if not partial and "title" not in fields:
            raise ValidationError("Title is required", field="title")

        for name, enum_cls in _ENUM_FIELDS.items():
            if name in data:
                fields[name] = parse_enum(enum_cls, data[name], name)

        if "is_premium" in data:
            if not isinstance(data["is_premium"], bool):
                raise ValidationError("is_premium must be a boolean", field="is_premium")
            fields["is_premium"] = data["is_premium"]

        chapters = None
        if data.get("chapters") is not None:
            if not isinstance(data["chapters"], list):
                raise ValidationError("chapters must be a list", field="chapters")
            chapters = [coerce_chapter_input(c, i) for i, c in enumerate(data["chapters"])]
        return fields, chapters


def _log_view_failure(future: Future):
    error = future.exception()
    if error is not None:
        logger.warning("View count increment failed: %s", error)
