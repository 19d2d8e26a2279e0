"""CLI entry point: serialshelf operator and reader console.

Usage:
  serialshelf init                         create the database
  serialshelf add-user alice --role author set up a user
  serialshelf --as <user> import book.json import a book with its chapters
  serialshelf --as <user> show <book>      book details and table of contents
  serialshelf --help                       all commands
"""

import functools
import json
import logging
import os
import sys
from datetime import timedelta
from pathlib import Path
from typing import Optional

# Ensure UTF-8 output on Windows to avoid encoding errors with Rich
if sys.platform == "win32":
    os.environ.setdefault("PYTHONIOENCODING", "utf-8")

import click
from rich.markup import escape
from rich.panel import Panel

from cli.theme import (
    get_console,
    app_header,
    command_panel,
    success_panel,
    book_summary_panel,
    book_table,
    restriction_panel,
    toc_table,
    styled_status,
)
from config.exceptions import NotFoundError, PermissionDeniedError, ShelfError
from config.logging_config import setup_logging
from config.settings import Settings, get_settings
from models.database import Database, utcnow
from models.enums import Plan, SubscriptionStatus, UserRole
from models.user import Requester, User
from services.book_service import BookService

console = get_console()


def _init_logging(verbose: bool, settings: Settings):
    """Configure logging based on verbosity. Console logging only with --verbose."""
    level = logging.DEBUG if verbose else logging.INFO
    setup_logging(level=level, log_dir=settings.log_dir, console_enabled=verbose)


class ShelfSession:
    """Per-invocation state: settings, lazily opened database and service, acting user."""

    def __init__(self, settings: Settings, as_user: Optional[str] = None):
        self.settings = settings
        self.as_user = as_user
        self._db: Optional[Database] = None
        self._service: Optional[BookService] = None

    @property
    def db(self) -> Database:
        if self._db is None:
            self._db = Database(self.settings.sqlite_db_path)
        return self._db

    @property
    def service(self) -> BookService:
        if self._service is None:
            self._service = BookService(self.db, self.settings)
        return self._service

    def requester(self, required: bool = False) -> Optional[Requester]:
        """Resolve ``--as USER_ID`` against the users table; None means anonymous."""
        if self.as_user is None:
            if required:
                raise PermissionDeniedError("This command requires --as USER_ID")
            return None
        user = self.db.get_user(self.as_user)
        if user is None:
            raise NotFoundError("User", self.as_user)
        return Requester.from_user(user)

    def close(self):
        if self._service is not None:
            self._service.close()


pass_session = click.make_pass_decorator(ShelfSession)


def _domain_errors(func):
    """Print domain errors in red and exit with status 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ShelfError as e:
            console.print(f"[error]Error: {escape(str(e))}[/]")
            sys.exit(1)
    return wrapper


def _echo_json(data: dict):
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--db", "db_path", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="SQLite database path (overrides SHELF_SQLITE_DB_PATH)")
@click.option("--as", "as_user", default=None, metavar="USER_ID", help="Act as this stored user")
@click.pass_context
def cli(ctx, verbose, db_path, as_user):
    """serialshelf: serialized books with chapter ordering and access gating.

    \b
    Examples:
      serialshelf init
      serialshelf add-user alice --role author --age 30
      serialshelf --as alice import book.json --publish
      serialshelf --as bob read <book-id> 1
    """
    settings = Settings(sqlite_db_path=db_path) if db_path else get_settings()
    _init_logging(verbose, settings)
    session = ShelfSession(settings, as_user)
    ctx.obj = session
    ctx.call_on_close(session.close)


# ---------------------------------------------------------------------------
# init / users
# ---------------------------------------------------------------------------

@cli.command()
@pass_session
def init(session):
    """Create the database and its tables."""
    db = session.db
    console.print(app_header())
    console.print(success_panel("Database ready", f"  [stat.label]Path:[/] {db.db_path}"))


@cli.command(name="add-user")
@click.argument("name")
@click.option("--id", "user_id", default=None, help="User id (defaults to NAME)")
@click.option("--role", type=click.Choice([r.value for r in UserRole]), default=UserRole.READER.value)
@click.option("--age", type=click.IntRange(min=0), default=None, help="Age in years")
@click.option("--plan", type=click.Choice([p.value for p in Plan]), default=Plan.FREE.value)
@click.option("--days", type=int, default=None,
              help="Active subscription lasting this many days (negative: already lapsed)")
@pass_session
@_domain_errors
def add_user(session, name, user_id, role, age, plan, days):
    """Create a user.

    \b
    Examples:
      serialshelf add-user alice --role author --age 30
      serialshelf add-user bob --age 25 --plan premium --days 30
    """
    user = User(
        id=user_id or name,
        name=name,
        role=UserRole(role),
        age=age,
        plan=Plan(plan),
    )
    if days is not None:
        user.subscription_status = SubscriptionStatus.ACTIVE
        user.subscription_expires_at = utcnow() + timedelta(days=days)
    if session.db.get_user(user.id) is not None:
        raise ShelfError("User already exists", {"id": user.id})

    created_id = session.db.create_user(user)
    console.print(success_panel("User created", (
        f"  [stat.label]ID:[/] [stat.value]{created_id}[/]\n"
        f"  [stat.label]Role:[/] {user.role.value}  "
        f"[muted]|[/]  [stat.label]Age:[/] {user.age if user.age is not None else '-'}  "
        f"[muted]|[/]  [stat.label]Plan:[/] {user.plan.value}"
    )))


@cli.command()
@click.argument("user_id")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@pass_session
@_domain_errors
def subscription(session, user_id, as_json):
    """Show a user's subscription, applying expiry if it has lapsed."""
    state = session.service.gate.get_subscription_status(user_id)
    if as_json:
        _echo_json(state.to_dict())
        return
    console.print(command_panel(f"Subscription: {user_id}", {
        "Plan": state.plan.value,
        "Status": state.status.value,
        "Expires": state.expires_at.isoformat() if state.expires_at else "-",
    }))


# ---------------------------------------------------------------------------
# Book writes
# ---------------------------------------------------------------------------

@cli.command(name="import")
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option("--publish", "publish_now", is_flag=True, help="Publish right after import")
@pass_session
@_domain_errors
def import_book(session, source, publish_now):
    """Create a book (and its chapters) from a JSON file.

    \b
    The file holds book fields plus a "chapters" list:
      {"title": "...", "genre": "...", "content_type": "kids",
       "chapters": [{"title": "...", "content": "..."}]}
    """
    actor = session.requester(required=True)
    try:
        data = json.load(source)
    except json.JSONDecodeError as e:
        raise ShelfError("Invalid JSON", {"file": source.name, "error": e.msg}) from e

    book = session.service.create_book(data, actor)
    if publish_now:
        book = session.service.publish_book(book.id, actor)

    console.print(success_panel("Book imported", (
        f"  [stat.label]ID:[/] [stat.value]{book.id}[/]\n"
        f"  [stat.label]Title:[/] {escape(book.title)}\n"
        f"  [stat.label]Chapters:[/] [stat.value]{book.chapter_count}[/]  "
        f"[muted]|[/]  [stat.label]Reading time:[/] {book.reading_time}  "
        f"[muted]|[/]  [stat.label]Status:[/] {styled_status(book.status.value)}"
    )))


@cli.command()
@click.argument("book_id")
@pass_session
@_domain_errors
def publish(session, book_id):
    """Publish a draft book."""
    book = session.service.publish_book(book_id, session.requester(required=True))
    console.print(f"[success]Published[/] {escape(book.title)} [muted]({book.id})[/]")


@cli.command(name="add-chapter")
@click.argument("book_id")
@click.option("--title", "-t", required=True, help="Chapter title")
@click.option("--content", "-c", default=None, help="Chapter text")
@click.option("--file", "-f", "content_file", type=click.File("r", encoding="utf-8"), default=None,
              help="Read chapter text from a file")
@pass_session
@_domain_errors
def add_chapter(session, book_id, title, content, content_file):
    """Append a chapter after the current last one."""
    if content_file is not None:
        content = content_file.read()
    chapter = session.service.add_chapter(
        book_id, {"title": title, "content": content}, session.requester(required=True),
    )
    book = session.service.db.get_book(book_id)
    console.print(
        f"[success]Added[/] [chapter.num]#{chapter.chapter_number}[/] {escape(chapter.title)}  "
        f"[muted]({book.reading_time})[/]"
    )


@cli.command(name="delete-chapter")
@click.argument("book_id")
@click.argument("chapter_number", type=int)
@click.option("--force", "-f", is_flag=True, help="Skip confirmation")
@pass_session
@_domain_errors
def delete_chapter(session, book_id, chapter_number, force):
    """Delete a chapter; later chapters move up by one."""
    actor = session.requester(required=True)
    if not force:
        confirmed = click.confirm(f"Delete chapter {chapter_number}? This cannot be undone", default=False)
        if not confirmed:
            console.print("[warning]Cancelled[/]")
            return
    session.service.delete_chapter(book_id, chapter_number, actor)
    book = session.service.db.get_book(book_id)
    console.print(
        f"[success]Deleted chapter {chapter_number}[/]  "
        f"[muted]{book.chapter_count} chapters remain ({book.reading_time})[/]"
    )


@cli.command()
@click.argument("book_id")
@click.argument("order", nargs=-1, required=True, type=int)
@pass_session
@_domain_errors
def reorder(session, book_id, order):
    """Reorder chapters: ORDER lists current numbers in their new sequence.

    \b
    Example (move chapter 3 to the front):
      serialshelf --as alice reorder <book-id> 3 1 2
    """
    chapters = session.service.reorder_chapters(book_id, list(order), session.requester(required=True))
    console.print("[success]Chapters reordered[/]")
    console.print(toc_table(chapters))


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

@cli.command(name="list")
@click.option("--mine", is_flag=True, help="List your own books, drafts included")
@click.option("--status", type=click.Choice(["draft", "published"]), default=None,
              help="With --mine: filter by publication status")
@click.option("--page", type=int, default=1)
@click.option("--limit", type=int, default=None)
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@pass_session
@_domain_errors
def list_books(session, mine, status, page, limit, as_json):
    """List the catalog visible to you, or your own books."""
    if mine:
        listing = session.service.get_books_by_author(session.requester(required=True), status, page, limit)
        title = "My books"
    else:
        listing = session.service.list_books(session.requester(), page, limit)
        title = "Catalog"

    if as_json:
        _echo_json(listing.to_dict())
        return
    if not listing.books:
        console.print("[warning]No books found.[/]")
        return
    console.print(book_table(listing.books, title=title))
    p = listing.pagination
    console.print(f"[muted]Page {p.current_page}/{p.total_pages} ({p.total_items} books)[/]")


@cli.command()
@click.argument("book_id")
@click.option("--page", type=int, default=1, help="Chapter page")
@click.option("--limit", type=int, default=None, help="Chapters per page")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@pass_session
@_domain_errors
def show(session, book_id, page, limit, as_json):
    """Show a book, its table of contents, and access restrictions."""
    view = session.service.get_book_by_id(book_id, session.requester(), page, limit)
    if as_json:
        _echo_json(view.to_dict())
        return

    console.print(app_header())
    console.print(book_summary_panel(view.book))
    if view.access.restrictions:
        console.print(restriction_panel(view.access))
    if view.table_of_contents:
        console.print(toc_table(view.table_of_contents))
    else:
        console.print("[muted]No chapters yet.[/]")


@cli.command()
@click.argument("book_id")
@click.argument("chapter_number", type=int)
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@pass_session
@_domain_errors
def read(session, book_id, chapter_number, as_json):
    """Read one chapter."""
    view = session.service.get_chapter_by_number(book_id, chapter_number, session.requester())
    if as_json:
        _echo_json(view.to_dict())
        return

    chapter = view.chapter
    title = (
        f"[bold]{escape(view.book_title)}[/] [muted]·[/] "
        f"[chapter.num]Chapter {chapter.chapter_number}[/] {escape(chapter.title)}"
    )
    if view.access.can_read_chapters:
        console.print(Panel(escape(chapter.content), title=title, border_style="dim", padding=(1, 2)))
    else:
        console.print(Panel("[muted]Content withheld[/]", title=title, border_style="dim", padding=(0, 2)))
        console.print(restriction_panel(view.access))

    nav = view.navigation
    hints = []
    if nav.has_previous:
        hints.append(f"previous: {chapter.chapter_number - 1}")
    if nav.has_next:
        hints.append(f"next: {chapter.chapter_number + 1}")
    console.print(f"[muted]{chapter.chapter_number}/{nav.total_chapters}  {'  '.join(hints)}[/]")


def main():
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
