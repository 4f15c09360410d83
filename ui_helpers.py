import os
import json
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.markup import escape

from author import Author
from author_stats import AuthorStats, LibrarySummary
from search import SearchResult

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False))


def _or_dash(value: Optional[Any]) -> str:
    return "-" if value is None else str(value)


def print_authors(authors: List[Author]) -> None:
    """Print the author list in the current output mode.
    - plain: 'ID - Name <email> (N books)' lines, or 'No authors found.'
    - json: JSON array
    - rich: Rich table
    """
    if not authors:
        print("No authors found.")
        return

    mode = get_output_mode()
    if mode == "json":
        _print_json([a.to_dict() for a in authors])
    elif mode == "rich":
        table = Table(title="Authors", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Name", style="white")
        table.add_column("Email", style="white")
        table.add_column("Nationality", style="white")
        table.add_column("Books", justify="right")
        for a in authors:
            table.add_row(a.id, a.name, a.email, _or_dash(a.nationality), str(a.book_count or 0))
        _console.print(table)
    else:
        for a in authors:
            print(f"{a.id} - {a.name} <{a.email}> ({a.book_count or 0} books)")


def print_books_page(result: SearchResult) -> None:
    """Print one page of search results followed by the page position."""
    p = result.pagination
    mode = get_output_mode()

    if mode == "json":
        _print_json({
            "data": [b.to_dict() for b in result.data],
            "pagination": p.to_dict(),
        })
        return

    footer = f"Page {p.page} of {p.total_pages} ({p.total} books)"
    if mode == "rich":
        table = Table(title="Books", show_lines=True, header_style="bold cyan", caption=footer)
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Year", justify="right")
        table.add_column("Genre", style="white")
        table.add_column("Pages", justify="right")
        for b in result.data:
            table.add_row(b.id, b.title, _or_dash(b.author_name), _or_dash(b.published_year),
                          _or_dash(b.genre), _or_dash(b.pages))
        _console.print(table)
        return

    if not result.data:
        print("No books match the criteria.")
    for b in result.data:
        print(f"{b.id} - {b.title} by {_or_dash(b.author_name)} ({_or_dash(b.published_year)})")
    print(footer)


def print_author_stats(stats: AuthorStats) -> None:
    mode = get_output_mode()

    if mode == "json":
        _print_json(stats.to_dict())
        return

    first = f"{stats.first_book.title} ({stats.first_book.year})" if stats.first_book else "-"
    latest = f"{stats.latest_book.title} ({stats.latest_book.year})" if stats.latest_book else "-"
    longest = f"{stats.longest_book.title} ({stats.longest_book.pages} pages)" if stats.longest_book else "-"
    shortest = f"{stats.shortest_book.title} ({stats.shortest_book.pages} pages)" if stats.shortest_book else "-"
    rows = [
        ("Total Books", str(stats.total_books)),
        ("First Book", first),
        ("Latest Book", latest),
        ("Average Pages", _or_dash(stats.average_pages)),
        ("Genres", ", ".join(stats.genres) if stats.genres else "-"),
        ("Longest Book", longest),
        ("Shortest Book", shortest),
    ]

    if mode == "rich":
        content = "\n".join(f"[bold]{label}:[/] {escape(value)}" for label, value in rows)
        _console.print(Panel.fit(content, title=f"Stats: {escape(stats.author_name)}", border_style="blue"))
    else:
        print(f"Author: {stats.author_name}")
        for label, value in rows:
            print(f"{label}: {value}")


def print_summary(summary: LibrarySummary) -> None:
    mode = get_output_mode()
    data: Dict[str, Any] = summary.to_dict()

    if mode == "json":
        _print_json(data)
    elif mode == "rich":
        content = (
            f"[bold]Total Authors:[/] {summary.total_authors}\n"
            f"[bold]Total Books:[/] {summary.total_books}\n"
            f"[bold]Average Books:[/] {summary.average_books}\n"
            f"[bold]Top Author:[/] {escape(summary.top_author)}"
        )
        _console.print(Panel.fit(content, title="Library", border_style="blue"))
    else:
        print(f"Total Authors: {summary.total_authors}")
        print(f"Total Books: {summary.total_books}")
        print(f"Average Books: {summary.average_books}")
        print(f"Top Author: {summary.top_author}")


def print_genres(genres: List[str]) -> None:
    if not genres:
        print("No genres recorded.")
        return
    if get_output_mode() == "json":
        _print_json(genres)
    else:
        for g in genres:
            print(g)
