"""Unified Rich theme and reusable UI helper functions for the CLI."""

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.theme import Theme

SHELF_THEME = Theme({
    "app.title": "bold",
    "success": "green",
    "warning": "yellow",
    "error": "red",
    "info": "blue",
    "muted": "dim",
    "accent": "cyan",
    "genre": "bold",
    "stat.label": "dim",
    "stat.value": "bold",
    "chapter.num": "blue",
    "restriction": "bold yellow",
})

_STATUS_STYLES = {
    "draft": "yellow",
    "published": "green",
    "ongoing": "cyan",
    "finished": "blue",
}


def get_console() -> Console:
    """Return a Console instance with the shelf theme applied."""
    return Console(theme=SHELF_THEME)


def app_header(title: str = "serialshelf") -> Rule:
    """Return a Rule element for the application header banner."""
    return Rule(title=f"[bold]{title}[/]", style="dim")


def command_panel(title: str, fields: dict[str, str]) -> Panel:
    """Return a Panel displaying label/value pairs.

    Args:
        title: Panel title (e.g. "Import book").
        fields: Ordered dict of label -> value pairs.
    """
    lines = []
    for label, value in fields.items():
        lines.append(f"  [stat.label]{label}:[/] [stat.value]{value}[/]")
    body = "\n".join(lines)
    return Panel(body, title=f"[bold]{title}[/]", box=box.ROUNDED, border_style="dim", padding=(0, 2))


def success_panel(title: str, body: str) -> Panel:
    """Return a green-bordered Panel for success results."""
    return Panel(body, title=f"[success]{title}[/]", box=box.ROUNDED, border_style="green", padding=(0, 2))


def styled_status(value: str) -> str:
    style = _STATUS_STYLES.get(value, "white")
    return f"[{style}]{value}[/]"


def book_summary_panel(book) -> Panel:
    """Return a Panel with a book's metadata and derived stats.

    Args:
        book: Book with .title, .genre, .status, .reading_time, .chapter_count etc.
    """
    description = book.description or ""
    if len(description) > 200:
        description = description[:200] + "..."

    flags = [book.content_type.value]
    if book.is_premium:
        flags.append("premium")

    body = (
        f"  [stat.label]Genre:[/] [genre]{book.genre or '-'}[/]  "
        f"[muted]|[/]  [stat.label]Status:[/] {styled_status(book.status.value)}  "
        f"[muted]|[/]  [stat.label]Progress:[/] {styled_status(book.book_status.value)}\n"
        f"  [stat.label]Chapters:[/] [stat.value]{book.chapter_count}[/]  "
        f"[muted]|[/]  [stat.label]Reading time:[/] [stat.value]{book.reading_time}[/]  "
        f"[muted]|[/]  [stat.label]Views:[/] [stat.value]{book.view_count}[/]  "
        f"[muted]|[/]  [accent]{', '.join(flags)}[/]\n"
        f"  [stat.label]Description:[/] {description}"
    )
    return Panel(
        body,
        title=f"[bold]{book.title}[/] [muted](ID: {book.id})[/]",
        box=box.ROUNDED,
        border_style="dim",
        padding=(0, 2),
    )


def restriction_panel(access) -> Panel:
    """Return a yellow Panel listing why chapter content is withheld."""
    lines = []
    for r in access.restrictions:
        hints = []
        if r.requires_login:
            hints.append("login")
        if r.requires_age:
            hints.append("age")
        if r.requires_subscription:
            hints.append("subscription")
        suffix = f" [muted](requires {', '.join(hints)})[/]" if hints else ""
        lines.append(f"  [restriction]{r.type.value}:[/] {r.reason}{suffix}")
    return Panel(
        "\n".join(lines),
        title="[warning]Content restricted[/]",
        box=box.ROUNDED,
        border_style="yellow",
        padding=(0, 2),
    )


def toc_table(entries: list) -> Table:
    """Build a table of contents from TocEntry items."""
    table = Table(title="Table of contents", box=box.ROUNDED, border_style="dim")
    table.add_column("#", style="chapter.num", justify="right")
    table.add_column("Title")
    for entry in entries:
        table.add_row(str(entry.chapter_number), entry.title)
    return table


def book_table(books: list, title: str = "Books") -> Table:
    """Build a table listing books with their status and chapter counts."""
    table = Table(title=title, box=box.ROUNDED, show_lines=True, border_style="dim")
    table.add_column("ID", style="muted")
    table.add_column("Title", style="bold")
    table.add_column("Genre", style="genre")
    table.add_column("Status")
    table.add_column("Progress")
    table.add_column("Rating")
    table.add_column("Chapters", justify="right")
    table.add_column("Reading time", justify="right")

    for b in books:
        rating = b.content_type.value + (" [accent]premium[/]" if b.is_premium else "")
        table.add_row(
            b.id,
            b.title,
            b.genre or "-",
            styled_status(b.status.value),
            styled_status(b.book_status.value),
            rating,
            str(b.chapter_count),
            b.reading_time,
        )
    return table
