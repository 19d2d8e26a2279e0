"""Tests for database CRUD operations and result types."""

import sqlite3
from datetime import datetime, timezone

import pytest

from config.exceptions import DatabaseError, ShelfError
from models.access import ListingFilter, Navigation, Pagination, Restriction
from models.book import Book
from models.enums import (
    BookStatus, ContentType, Plan, PublicationStatus, RestrictionType,
    SubscriptionStatus, UserRole,
)
from models.user import Requester, User


@pytest.fixture
def sample_book(db):
    book = Book(author_id="author-1", title="Sample", genre="mystery")
    book.id = db.create_book(book)
    return book


class TestBookCRUD:
    def test_create_and_get_book(self, db):
        book_id = db.create_book(Book(
            author_id="a1", title="测试小说", genre="fantasy",
            content_type=ContentType.ADULT, is_premium=True,
        ))
        assert len(book_id) == 32

        retrieved = db.get_book(book_id)
        assert retrieved.title == "测试小说"
        assert retrieved.status == PublicationStatus.DRAFT
        assert retrieved.content_type == ContentType.ADULT
        assert retrieved.is_premium is True
        assert retrieved.reading_time == "0 min read"
        assert retrieved.chapter_count == 0
        assert retrieved.created_at.tzinfo is not None

    def test_get_book_not_found_returns_none(self, db):
        assert db.get_book("missing") is None

    def test_update_book_fields_converts_values(self, db, sample_book):
        published_at = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        db.update_book_fields(sample_book.id, {
            "status": PublicationStatus.PUBLISHED,
            "book_status": BookStatus.FINISHED,
            "published_at": published_at,
        })
        retrieved = db.get_book(sample_book.id)
        assert retrieved.status == PublicationStatus.PUBLISHED
        assert retrieved.book_status == BookStatus.FINISHED
        assert retrieved.published_at == published_at

    def test_update_unknown_column_rejected(self, db, sample_book):
        with pytest.raises(ShelfError, match="Unknown book columns"):
            db.update_book_fields(sample_book.id, {"view_count": 100})

    def test_increment_view_count(self, db, sample_book):
        db.increment_view_count(sample_book.id)
        db.increment_view_count(sample_book.id)
        assert db.get_book(sample_book.id).view_count == 2

    def test_delete_book_cascades_chapters(self, db, sample_book):
        with db.connect() as conn:
            conn.execute(
                "INSERT INTO chapters (book_id, chapter_number, title, content) VALUES (?, 1, 't', 'c')",
                (sample_book.id,),
            )
        db.delete_book(sample_book.id)
        with db.connect() as conn:
            assert conn.execute("SELECT COUNT(*) FROM chapters").fetchone()[0] == 0

    def test_duplicate_chapter_number_raises_integrity_error(self, db, sample_book):
        with db.connect() as conn:
            conn.execute(
                "INSERT INTO chapters (book_id, chapter_number, title, content) VALUES (?, 1, 'a', 'a')",
                (sample_book.id,),
            )
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute(
                    "INSERT INTO chapters (book_id, chapter_number, title, content) VALUES (?, 1, 'b', 'b')",
                    (sample_book.id,),
                )


class TestBookListings:
    def _publish(self, db, title, **kwargs):
        book_id = db.create_book(Book(author_id="a1", title=title, **kwargs))
        db.update_book_fields(book_id, {"status": PublicationStatus.PUBLISHED})
        return book_id

    def test_list_books_filters(self, db):
        self._publish(db, "kids finished", book_status=BookStatus.FINISHED)
        self._publish(db, "adult finished", content_type=ContentType.ADULT, book_status=BookStatus.FINISHED)
        self._publish(db, "kids ongoing")
        db.create_book(Book(author_id="a1", title="draft", book_status=BookStatus.FINISHED))

        listing = ListingFilter(content_types=(ContentType.KIDS,), book_statuses=(BookStatus.FINISHED,))
        books, total = db.list_books(listing, page=1, limit=10)
        assert [b.title for b in books] == ["kids finished"]
        assert total == 1

        books, total = db.list_books(ListingFilter(), page=1, limit=10)
        assert total == 3

    def test_list_books_pages(self, db):
        for i in range(5):
            self._publish(db, f"b{i}")
        books, total = db.list_books(ListingFilter(), page=3, limit=2)
        assert total == 5
        assert [b.title for b in books] == ["b0"]

    def test_list_books_newest_first(self, db):
        older = self._publish(db, "older")
        newer = self._publish(db, "newer")
        with db.connect() as conn:
            conn.execute("UPDATE books SET created_at = ? WHERE id = ?", ("2024-01-01 00:00:00", older))
        books, _ = db.list_books(ListingFilter(), page=1, limit=10)
        assert [b.id for b in books] == [newer, older]

    def test_list_books_by_author(self, db):
        draft_id = db.create_book(Book(author_id="a1", title="draft"))
        published_id = self._publish(db, "published")
        db.create_book(Book(author_id="a2", title="someone else"))

        books, total = db.list_books_by_author("a1")
        assert total == 2
        assert {b.id for b in books} == {draft_id, published_id}

        books, _ = db.list_books_by_author("a1", PublicationStatus.DRAFT)
        assert [b.id for b in books] == [draft_id]


class TestTransactions:
    def test_commit(self, db, sample_book):
        with db.transaction() as conn:
            conn.execute("UPDATE books SET title = 'committed' WHERE id = ?", (sample_book.id,))
        assert db.get_book(sample_book.id).title == "committed"

    def test_rollback_on_exception(self, db, sample_book):
        with pytest.raises(RuntimeError):
            with db.transaction() as conn:
                conn.execute("UPDATE books SET title = 'lost' WHERE id = ?", (sample_book.id,))
                raise RuntimeError("abort")
        assert db.get_book(sample_book.id).title == "Sample"

    def test_sqlite_error_wrapped(self, db, sample_book):
        with pytest.raises(DatabaseError, match="Transaction failed"):
            with db.transaction() as conn:
                conn.execute("UPDATE books SET title = 'lost' WHERE id = ?", (sample_book.id,))
                conn.execute("INSERT INTO books (id) VALUES (NULL)")
        assert db.get_book(sample_book.id).title == "Sample"

    def test_joined_transaction_rolls_back_with_outer(self, db, sample_book):
        with pytest.raises(RuntimeError):
            with db.transaction() as outer:
                db.update_book_fields(sample_book.id, {"title": "inner"}, conn=outer)
                raise RuntimeError("outer failure")
        assert db.get_book(sample_book.id).title == "Sample"


class TestUserCRUD:
    def test_create_and_get_user(self, db):
        expires = datetime(2030, 1, 1, tzinfo=timezone.utc)
        db.create_user(User(
            id="u1", name="Ada", role=UserRole.AUTHOR, age=36, plan=Plan.PREMIUM,
            subscription_status=SubscriptionStatus.ACTIVE, subscription_expires_at=expires,
        ))
        user = db.get_user("u1")
        assert user.role == UserRole.AUTHOR
        assert user.age == 36
        assert user.plan == Plan.PREMIUM
        assert user.subscription_expires_at == expires

    def test_get_user_not_found(self, db):
        assert db.get_user("nobody") is None

    def test_negative_age_rejected(self, db):
        with pytest.raises(sqlite3.IntegrityError):
            db.create_user(User(id="u2", age=-1))

    def test_update_subscription(self, db):
        db.create_user(User(id="u1", plan=Plan.BASIC, subscription_status=SubscriptionStatus.ACTIVE))
        user = db.get_user("u1")
        user.plan = Plan.FREE
        user.subscription_status = SubscriptionStatus.INACTIVE
        db.update_user_subscription(user)
        assert db.get_user("u1").plan == Plan.FREE

    def test_requester_from_user(self, db):
        db.create_user(User(id="u1", role=UserRole.ADMIN, age=40))
        requester = Requester.from_user(db.get_user("u1"))
        assert requester.is_admin
        assert requester.age == 40


class TestResultTypes:
    def test_restriction_omits_unset(self):
        r = Restriction(type=RestrictionType.SUBSCRIPTION, reason="pay", requires_login=True,
                        requires_subscription=True)
        assert r.to_dict() == {
            "type": "subscription", "reason": "pay",
            "requiresLogin": True, "requiresSubscription": True,
        }

    @pytest.mark.parametrize("number,total,has_prev,has_next", [
        (1, 1, False, False),
        (1, 3, False, True),
        (2, 3, True, True),
        (3, 3, True, False),
    ])
    def test_navigation(self, number, total, has_prev, has_next):
        nav = Navigation.for_number(number, total)
        assert (nav.has_previous, nav.has_next) == (has_prev, has_next)

    def test_pagination_rounds_up(self):
        p = Pagination.build(page=1, limit=10, total_items=21)
        assert p.total_pages == 3
        assert p.has_more is True

    def test_pagination_empty(self):
        p = Pagination.build(page=1, limit=10, total_items=0)
        assert p.total_pages == 0
        assert p.has_more is False
