"""Book data model."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from models.enums import PublicationStatus, BookStatus, ContentType


@dataclass
class Book:
    """Represents a book and its metadata. Chapters are stored separately."""
    id: Optional[str] = None
    author_id: str = ""
    title: str = ""
    description: str = ""
    genre: str = ""
    tags: str = ""
    status: PublicationStatus = PublicationStatus.DRAFT
    book_status: BookStatus = BookStatus.ONGOING
    content_type: ContentType = ContentType.KIDS
    is_premium: bool = False
    reading_time: str = "0 min read"
    view_count: int = 0
    chapter_count: int = 0  # derived, filled in by Database reads
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_draft(self) -> bool:
        return self.status == PublicationStatus.DRAFT

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "authorId": self.author_id,
            "title": self.title,
            "description": self.description,
            "genre": self.genre,
            "tags": self.tags,
            "status": self.status.value,
            "bookStatus": self.book_status.value,
            "contentType": self.content_type.value,
            "isPremium": self.is_premium,
            "readingTime": self.reading_time,
            "viewCount": self.view_count,
            "totalChapters": self.chapter_count,
            "publishedAt": self.published_at.isoformat() if self.published_at else None,
        }
