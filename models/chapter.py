"""Chapter data model."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Chapter:
    """Represents a single chapter.

    ``id`` is the stable internal identifier; ``chapter_number`` is the
    external 1-based ordinal and changes on delete and reorder.
    """
    id: Optional[int] = None
    book_id: str = ""
    chapter_number: int = 0
    title: str = ""
    content: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self, include_content: bool = True) -> dict:
        data = {
            "id": self.id,
            "bookId": self.book_id,
            "chapterNumber": self.chapter_number,
            "title": self.title,
        }
        if include_content:
            data["content"] = self.content
        return data


@dataclass
class ChapterInput:
    """A chapter as submitted by an author, before it is numbered."""
    title: str
    content: str
