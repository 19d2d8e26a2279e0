"""Configuration settings loaded from .env file."""

from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings, loaded from .env file (prefix ``SHELF_``)."""

    # Database
    sqlite_db_path: Path = Path("./data/serialshelf.db")

    # Reading time
    words_per_minute: int = 225

    # Access policy
    adult_min_age: int = 18

    # Pagination
    default_chapter_limit: int = 10
    max_page_limit: int = 100
    default_page_limit: int = 10

    # Background view-count increments
    view_count_workers: int = 2

    # Logging
    log_dir: Path = Path("./data/logs")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "SHELF_",
        "extra": "ignore",
    }

    @field_validator("words_per_minute", "view_count_workers")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be >= 1")
        return v

    @field_validator("adult_min_age")
    @classmethod
    def validate_adult_min_age(cls, v: int) -> int:
        if v < 0:
            raise ValueError("adult_min_age must be non-negative")
        return v

    @field_validator("default_chapter_limit", "max_page_limit", "default_page_limit")
    @classmethod
    def validate_limits(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Page limit must be >= 1")
        return v

    @field_validator("sqlite_db_path", "log_dir")
    @classmethod
    def ensure_parent_dirs(cls, v: Path) -> Path:
        v.parent.mkdir(parents=True, exist_ok=True)
        return v

    @model_validator(mode="after")
    def validate_chapter_limits(self) -> "Settings":
        if self.default_chapter_limit > self.max_page_limit:
            raise ValueError(
                f"default_chapter_limit ({self.default_chapter_limit}) must not exceed "
                f"max_page_limit ({self.max_page_limit})"
            )
        return self


_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
