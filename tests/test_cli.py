"""Tests for the click command group."""

import json
import logging
from logging.handlers import RotatingFileHandler

import pytest
from click.testing import CliRunner

import config.settings
from cli.main import cli
from config.logging_config import ACCESS_LOGGERS
from config.settings import Settings


@pytest.fixture(autouse=True)
def _release_log_files():
    yield
    for name in (None, *ACCESS_LOGGERS):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            if isinstance(handler, RotatingFileHandler):
                logger.removeHandler(handler)
                handler.close()


@pytest.fixture
def run(tmp_db_path, tmp_path):
    """Invoke the CLI against the test database."""
    runner = CliRunner()
    env = {"SHELF_LOG_DIR": str(tmp_path / "logs")}

    def _run(*args, input=None):
        return runner.invoke(cli, ["--db", str(tmp_db_path), *args], env=env, input=input)

    return _run


class TestSetup:
    def test_init_creates_database(self, run, tmp_db_path):
        result = run("init")
        assert result.exit_code == 0
        assert "Database ready" in result.output
        assert tmp_db_path.exists()

    def test_cached_settings_used_without_db_option(self, tmp_path, monkeypatch):
        cached = Settings(sqlite_db_path=tmp_path / "cached.db", log_dir=tmp_path / "logs")
        monkeypatch.setattr(config.settings, "_settings_instance", cached)
        result = CliRunner().invoke(cli, ["init"])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "cached.db").exists()

    def test_add_user(self, run, db):
        result = run("add-user", "alice", "--role", "author", "--age", "30")
        assert result.exit_code == 0, result.output
        user = db.get_user("alice")
        assert user.role.value == "author"
        assert user.age == 30

    def test_add_user_with_subscription(self, run, db):
        result = run("add-user", "bob", "--plan", "premium", "--days", "7")
        assert result.exit_code == 0, result.output
        assert db.get_user("bob").subscription_status.value == "active"

    def test_add_duplicate_user(self, run):
        run("add-user", "alice")
        result = run("add-user", "alice")
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_subscription_lapsed(self, run, expired_reader):
        result = run("subscription", expired_reader.id, "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["plan"] == "free"
        assert data["subscriptionStatus"] == "inactive"

    def test_subscription_unknown_user(self, run):
        result = run("subscription", "ghost")
        assert result.exit_code == 1
        assert "User not found" in result.output


class TestImport:
    def test_import_and_publish(self, run, author, db, tmp_path):
        source = tmp_path / "book.json"
        source.write_text(json.dumps({
            "title": "Imported",
            "genre": "mystery",
            "chapters": [
                {"title": "One", "content": "first chapter text"},
                {"title": "Two", "content": "second chapter text"},
            ],
        }), encoding="utf-8")

        result = run("--as", author.id, "import", str(source), "--publish")
        assert result.exit_code == 0, result.output
        assert "Book imported" in result.output

        books, total = db.list_books_by_author(author.id)
        assert total == 1
        assert books[0].status.value == "published"
        assert books[0].chapter_count == 2

    def test_import_requires_identity(self, run, tmp_path):
        source = tmp_path / "book.json"
        source.write_text('{"title": "x"}', encoding="utf-8")
        result = run("import", str(source))
        assert result.exit_code == 1
        assert "--as" in result.output

    def test_import_invalid_json(self, run, author, tmp_path):
        source = tmp_path / "book.json"
        source.write_text("{not json", encoding="utf-8")
        result = run("--as", author.id, "import", str(source))
        assert result.exit_code == 1
        assert "Invalid JSON" in result.output

    def test_unknown_acting_user(self, run, tmp_path):
        source = tmp_path / "book.json"
        source.write_text('{"title": "x"}', encoding="utf-8")
        result = run("--as", "nobody", "import", str(source))
        assert result.exit_code == 1
        assert "User not found" in result.output


class TestReadCommands:
    def test_show_json(self, run, published_book):
        result = run("show", published_book.id, "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["title"] == "Open Tales"
        assert len(data["tableOfContents"]) == 3
        assert data["accessControl"]["canReadChapters"] is True

    def test_show_rendered(self, run, published_book):
        result = run("show", published_book.id)
        assert result.exit_code == 0, result.output
        assert "Open Tales" in result.output
        assert "Table of contents" in result.output

    def test_show_draft_hidden(self, run, draft_book):
        result = run("show", draft_book.id)
        assert result.exit_code == 1
        assert "Book not found" in result.output

    def test_show_draft_as_author(self, run, draft_book, author):
        result = run("--as", author.id, "show", draft_book.id)
        assert result.exit_code == 0, result.output
        assert "Draft Tales" in result.output

    def test_read_chapter(self, run, published_book):
        result = run("read", published_book.id, "2")
        assert result.exit_code == 0, result.output
        assert "body2" in result.output

    def test_read_restricted(self, run, premium_book):
        result = run("read", premium_book.id, "1")
        assert result.exit_code == 0, result.output
        assert "Content withheld" in result.output
        assert "body1" not in result.output

    def test_read_restricted_json(self, run, adult_book, minor_reader):
        result = run("--as", minor_reader.id, "read", adult_book.id, "1", "--json")
        data = json.loads(result.output)
        assert data["content"] is None
        assert data["accessControl"]["restrictions"][0]["requiredAge"] == 18

    def test_read_missing_chapter(self, run, published_book):
        result = run("read", published_book.id, "9")
        assert result.exit_code == 1
        assert "Chapter not found" in result.output

    def test_list_catalog(self, run, service, published_book, author):
        service.update_book_status(published_book.id, "finished", author)
        result = run("list", "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [b["title"] for b in data["books"]] == ["Open Tales"]

    def test_list_mine_includes_drafts(self, run, draft_book, published_book, author):
        result = run("--as", author.id, "list", "--mine", "--json")
        data = json.loads(result.output)
        assert data["pagination"]["totalItems"] == 2

    def test_list_empty(self, run):
        result = run("list")
        assert result.exit_code == 0
        assert "No books found" in result.output


class TestWriteCommands:
    def test_add_chapter(self, run, draft_book, author, service):
        result = run("--as", author.id, "add-chapter", draft_book.id, "-t", "Four", "-c", "fresh words")
        assert result.exit_code == 0, result.output
        assert service.chapters.get_chapter(draft_book.id, 4).title == "Four"

    def test_add_chapter_from_file(self, run, draft_book, author, service, tmp_path):
        text = tmp_path / "ch.txt"
        text.write_text("from a file", encoding="utf-8")
        result = run("--as", author.id, "add-chapter", draft_book.id, "-t", "Four", "-f", str(text))
        assert result.exit_code == 0, result.output
        assert service.chapters.get_chapter(draft_book.id, 4).content == "from a file"

    def test_add_chapter_without_content(self, run, draft_book, author):
        result = run("--as", author.id, "add-chapter", draft_book.id, "-t", "Empty")
        assert result.exit_code == 1
        assert "content" in result.output

    def test_reorder(self, run, draft_book, author, service):
        result = run("--as", author.id, "reorder", draft_book.id, "3", "1", "2")
        assert result.exit_code == 0, result.output
        titles = [t.title for t in service.chapters.table_of_contents(draft_book.id)]
        assert titles == ["Chapter 3", "Chapter 1", "Chapter 2"]

    def test_reorder_invalid(self, run, draft_book, author):
        result = run("--as", author.id, "reorder", draft_book.id, "1", "2")
        assert result.exit_code == 1
        assert "Chapter order" in result.output

    def test_reorder_by_reader_denied(self, run, draft_book, adult_reader):
        result = run("--as", adult_reader.id, "reorder", draft_book.id, "3", "1", "2")
        assert result.exit_code == 1
        assert "permission" in result.output

    def test_delete_chapter_forced(self, run, draft_book, author, service):
        result = run("--as", author.id, "delete-chapter", draft_book.id, "1", "--force")
        assert result.exit_code == 0, result.output
        assert service.chapters.count(draft_book.id) == 2

    def test_delete_chapter_cancelled(self, run, draft_book, author, service):
        result = run("--as", author.id, "delete-chapter", draft_book.id, "1", input="n\n")
        assert result.exit_code == 0
        assert "Cancelled" in result.output
        assert service.chapters.count(draft_book.id) == 3

    def test_publish(self, run, draft_book, author, db):
        result = run("--as", author.id, "publish", draft_book.id)
        assert result.exit_code == 0, result.output
        assert db.get_book(draft_book.id).status.value == "published"

        again = run("--as", author.id, "publish", draft_book.id)
        assert again.exit_code == 1
        assert "already been published" in again.output
