"""Models package: database, data models, and enums."""

from models.database import Database
from models.book import Book
from models.chapter import Chapter, ChapterInput
from models.user import User, Requester
from models.access import (
    Restriction,
    AccessDecision,
    ListingFilter,
    Navigation,
    Pagination,
    TocEntry,
    BookView,
    ChapterPage,
    ChapterView,
    BookListing,
)
from models.enums import (
    PublicationStatus,
    BookStatus,
    ContentType,
    UserRole,
    Plan,
    SubscriptionStatus,
    RestrictionType,
)

__all__ = [
    "Database",
    "Book",
    "Chapter",
    "ChapterInput",
    "User",
    "Requester",
    "Restriction",
    "AccessDecision",
    "ListingFilter",
    "Navigation",
    "Pagination",
    "TocEntry",
    "BookView",
    "ChapterPage",
    "ChapterView",
    "BookListing",
    "PublicationStatus",
    "BookStatus",
    "ContentType",
    "UserRole",
    "Plan",
    "SubscriptionStatus",
    "RestrictionType",
]
