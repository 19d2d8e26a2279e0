"""Access decisions and read-path result types."""

from dataclasses import dataclass, field
from typing import Optional

from models.book import Book
from models.chapter import Chapter
from models.enums import RestrictionType, ContentType, BookStatus


@dataclass
class Restriction:
    """One reason, from a fixed taxonomy, why chapter content is withheld."""
    type: RestrictionType
    reason: str
    requires_login: Optional[bool] = None
    requires_age: Optional[bool] = None
    requires_subscription: Optional[bool] = None
    current_age: Optional[int] = None
    required_age: Optional[int] = None
    current_plan: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"type": self.type.value, "reason": self.reason}
        optional = {
            "requiresLogin": self.requires_login,
            "requiresAge": self.requires_age,
            "requiresSubscription": self.requires_subscription,
            "currentAge": self.current_age,
            "requiredAge": self.required_age,
            "currentPlan": self.current_plan,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data


@dataclass
class AccessDecision:
    can_view_book: bool = True
    can_read_chapters: bool = True
    restrictions: list[Restriction] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "canViewBook": self.can_view_book,
            "canReadChapters": self.can_read_chapters,
            "restrictions": [r.to_dict() for r in self.restrictions],
        }


@dataclass(frozen=True)
class ListingFilter:
    """Catalog visibility rule for a requester.

    ``content_types``/``book_statuses`` of ``None`` mean no filtering.
    """
    content_types: Optional[tuple[ContentType, ...]] = None
    book_statuses: Optional[tuple[BookStatus, ...]] = None


@dataclass
class Navigation:
    has_next: bool
    has_previous: bool
    total_chapters: int

    @classmethod
    def for_number(cls, chapter_number: int, total_chapters: int) -> "Navigation":
        return cls(
            has_next=chapter_number < total_chapters,
            has_previous=chapter_number > 1,
            total_chapters=total_chapters,
        )

    def to_dict(self) -> dict:
        return {
            "hasNext": self.has_next,
            "hasPrevious": self.has_previous,
            "totalChapters": self.total_chapters,
        }


@dataclass
class Pagination:
    current_page: int
    total_pages: int
    total_items: int

    @property
    def has_more(self) -> bool:
        return self.current_page < self.total_pages

    @classmethod
    def build(cls, page: int, limit: int, total_items: int) -> "Pagination":
        total_pages = -(-total_items // limit) if total_items else 0
        return cls(current_page=page, total_pages=total_pages, total_items=total_items)

    def to_dict(self) -> dict:
        return {
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "totalItems": self.total_items,
            "hasMore": self.has_more,
        }


@dataclass
class TocEntry:
    chapter_number: int
    title: str

    def to_dict(self) -> dict:
        return {"chapterNumber": self.chapter_number, "title": self.title}


@dataclass
class BookView:
    """Full book read: metadata, access decision, TOC, and (if allowed) a chapter page."""
    book: Book
    access: AccessDecision
    chapters: list[Chapter]
    table_of_contents: list[TocEntry]
    chapter_pagination: Pagination

    def to_dict(self) -> dict:
        data = self.book.to_dict()
        data.update({
            "accessControl": self.access.to_dict(),
            "chapters": [c.to_dict() for c in self.chapters],
            "tableOfContents": [t.to_dict() for t in self.table_of_contents],
            "chapterPagination": self.chapter_pagination.to_dict(),
        })
        return data


@dataclass
class ChapterPage:
    book_id: str
    book_title: str
    access: AccessDecision
    chapters: list[Chapter]
    pagination: Pagination

    def to_dict(self) -> dict:
        return {
            "bookId": self.book_id,
            "bookTitle": self.book_title,
            "accessControl": self.access.to_dict(),
            "chapters": [c.to_dict() for c in self.chapters],
            "pagination": self.pagination.to_dict(),
        }


@dataclass
class ChapterView:
    """Single chapter read. ``chapter.content`` is ``None`` when access is restricted."""
    chapter: Chapter
    book_title: str
    access: AccessDecision
    navigation: Navigation

    def to_dict(self) -> dict:
        data = self.chapter.to_dict()
        data.update({
            "bookTitle": self.book_title,
            "accessControl": self.access.to_dict(),
            "navigation": self.navigation.to_dict(),
        })
        return data


@dataclass
class BookListing:
    books: list[Book]
    pagination: Pagination

    def to_dict(self) -> dict:
        return {
            "books": [b.to_dict() for b in self.books],
            "pagination": self.pagination.to_dict(),
        }
