"""Shared pytest fixtures for the serialshelf test suite."""

from datetime import timedelta

import pytest


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite database path."""
    return tmp_path / "test_shelf.db"


@pytest.fixture
def db(tmp_db_path):
    """Return an initialized Database instance backed by a temp file."""
    from models.database import Database
    return Database(tmp_db_path)


# ---------------------------------------------------------------------------
# Settings fixture
# ---------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path):
    """Return a Settings instance with all paths pointing to tmp_path."""
    from config.settings import Settings
    return Settings(
        _env_file=None,
        sqlite_db_path=tmp_path / "shelf.db",
        log_dir=tmp_path / "logs",
    )


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

def _make_user(db, user_id, **kwargs):
    from models.user import User, Requester
    user = User(id=user_id, name=user_id, **kwargs)
    db.create_user(user)
    return Requester.from_user(db.get_user(user_id))


@pytest.fixture
def author(db):
    """Adult author; owns the sample books."""
    from models.enums import UserRole
    return _make_user(db, "author-1", role=UserRole.AUTHOR, age=35)


@pytest.fixture
def other_author(db):
    from models.enums import UserRole
    return _make_user(db, "author-2", role=UserRole.AUTHOR, age=40)


@pytest.fixture
def young_author(db):
    from models.enums import UserRole
    return _make_user(db, "author-teen", role=UserRole.AUTHOR, age=16)


@pytest.fixture
def admin(db):
    from models.enums import UserRole
    return _make_user(db, "admin-1", role=UserRole.ADMIN, age=50)


@pytest.fixture
def adult_reader(db):
    return _make_user(db, "reader-adult", age=30)


@pytest.fixture
def minor_reader(db):
    return _make_user(db, "reader-minor", age=15)


@pytest.fixture
def ageless_reader(db):
    return _make_user(db, "reader-noage")


@pytest.fixture
def premium_reader(db):
    """Adult reader with a premium subscription that is still running."""
    from models.database import utcnow
    from models.enums import Plan, SubscriptionStatus
    return _make_user(
        db, "reader-premium", age=28, plan=Plan.PREMIUM,
        subscription_status=SubscriptionStatus.ACTIVE,
        subscription_expires_at=utcnow() + timedelta(days=30),
    )


@pytest.fixture
def expired_reader(db):
    """Reader whose premium subscription lapsed yesterday but was never downgraded."""
    from models.database import utcnow
    from models.enums import Plan, SubscriptionStatus
    return _make_user(
        db, "reader-expired", age=28, plan=Plan.PREMIUM,
        subscription_status=SubscriptionStatus.ACTIVE,
        subscription_expires_at=utcnow() - timedelta(days=1),
    )


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

@pytest.fixture
def service(db, settings):
    """BookService over the temp database; waits for background work on teardown."""
    from services.book_service import BookService
    svc = BookService(db, settings)
    yield svc
    svc.close()


@pytest.fixture
def store(db, settings):
    from services.chapter_store import ChapterStore
    return ChapterStore(db, settings)


def chapter_payload(count: int, words: int = 10) -> list[dict]:
    """``count`` chapters titled "Chapter N" whose content is ``words`` words tagged with N."""
    return [
        {"title": f"Chapter {n}", "content": " ".join([f"body{n}"] * words)}
        for n in range(1, count + 1)
    ]


@pytest.fixture
def draft_book(service, author):
    """Draft kids book with three chapters."""
    return service.create_book(
        {"title": "Draft Tales", "genre": "fantasy", "chapters": chapter_payload(3)},
        author,
    )


@pytest.fixture
def published_book(service, author):
    """Published, free, kids book with three chapters."""
    book = service.create_book(
        {"title": "Open Tales", "genre": "fantasy", "chapters": chapter_payload(3)},
        author,
    )
    return service.publish_book(book.id, author)


@pytest.fixture
def adult_book(service, author):
    book = service.create_book(
        {"title": "Night Stories", "content_type": "adult", "chapters": chapter_payload(2)},
        author,
    )
    return service.publish_book(book.id, author)


@pytest.fixture
def premium_book(service, author):
    book = service.create_book(
        {"title": "Gold Stories", "is_premium": True, "chapters": chapter_payload(2)},
        author,
    )
    return service.publish_book(book.id, author)


@pytest.fixture
def make_chapters():
    """Factory fixture for chapter payload lists."""
    return chapter_payload
