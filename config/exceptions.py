"""Custom exception hierarchy for the serialized-content core."""

from typing import Optional


class ShelfError(Exception):
    """Base exception for all serialshelf errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# ---- Lookup Errors ----

class NotFoundError(ShelfError):
    """Resource is absent, or hidden from the requester (draft books)."""

    def __init__(self, resource: str, identifier: Optional[object] = None):
        details = {"id": identifier} if identifier is not None else {}
        super().__init__(f"{resource} not found", details)
        self.resource = resource
        self.identifier = identifier


# ---- Authorization Errors ----

class PermissionDeniedError(ShelfError):
    """Write attempted by someone other than the book's author (or admin)."""

    def __init__(self, message: str = "You do not have permission", details: Optional[dict] = None):
        super().__init__(message, details)


# ---- Validation Errors ----

class ValidationError(ShelfError):
    """Input validation failed."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, {"field": field} if field else None)
        self.field = field


class InvalidChapterOrderError(ValidationError):
    """Reorder input is not a permutation of the existing chapter numbers."""

    def __init__(self, message: str):
        super().__init__(message, field="chapter_order")


# ---- State Errors ----

class ConflictError(ShelfError):
    """Requested transition conflicts with the current state."""


class BookAlreadyPublishedError(ConflictError):
    """Publishing a book that is already published."""

    def __init__(self, book_id: str):
        super().__init__("This book has already been published", {"book_id": book_id})
        self.book_id = book_id


# ---- Database Errors ----

class DatabaseError(ShelfError):
    """Database operation failed."""
