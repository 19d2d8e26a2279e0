"""Configuration package: settings, logging, and exceptions."""

from config.exceptions import (
    ShelfError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    InvalidChapterOrderError,
    ConflictError,
    BookAlreadyPublishedError,
    DatabaseError,
)
from config.logging_config import setup_logging
from config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "setup_logging",
    "ShelfError",
    "NotFoundError",
    "PermissionDeniedError",
    "ValidationError",
    "InvalidChapterOrderError",
    "ConflictError",
    "BookAlreadyPublishedError",
    "DatabaseError",
]
