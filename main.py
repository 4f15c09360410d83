import functools
import os
import subprocess
import sys
from typing import Optional

import typer
from rich.console import Console

import database
from author import Author
from author_stats import compute_author_stats, summarize_authors
from book import Book
from config import settings
from library import DataStoreError, Library
from search import build_search_params, search_books_sync
from ui_helpers import (
    set_output_mode,
    print_authors,
    print_books_page,
    print_author_stats,
    print_summary,
    print_genres,
)

APP_NAME = "Library Admin CLI"

console = Console()


class LibraryManager:
    """Holds one Library per database file."""
    _instance: Optional[Library] = None
    _db_file_snapshot: Optional[str] = None

    @classmethod
    def get_instance(cls) -> Library:
        current_db = database.DATABASE_FILE
        # Rebuild when the database file changes (e.g. a per-test database)
        if cls._instance is None or current_db != cls._db_file_snapshot:
            cls._instance = Library(current_db)
            cls._db_file_snapshot = current_db
        return cls._instance


app = typer.Typer(help=APP_NAME)


def handle_store_errors(func):
    """Report data store failures as a one-line error and a non-zero exit code."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DataStoreError:
            print("Error: The library data store is currently unavailable.")
            raise typer.Exit(code=1)
    return wrapper


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    )
):
    """Global CLI options (e.g. output mode)."""
    if output:
        set_output_mode(output)


# ------------------------- Authors ------------------------- #
@app.command("authors")
@handle_store_errors
def cli_authors(query: Optional[str] = typer.Option(None, "--query", "-q", help="Filter by name, email, bio or nationality")):
    """List authors with their book counts."""
    lib = LibraryManager.get_instance()
    print_authors(lib.list_authors(query))


@app.command("add-author")
@handle_store_errors
def cli_add_author(
    name: str,
    email: str,
    bio: Optional[str] = typer.Option(None, "--bio"),
    nationality: Optional[str] = typer.Option(None, "--nationality"),
    birth_year: Optional[int] = typer.Option(None, "--birth-year"),
):
    """Create a new author."""
    lib = LibraryManager.get_instance()
    try:
        author = lib.add_author(Author(name=name, email=email, bio=bio,
                                       nationality=nationality, birth_year=birth_year))
    except ValueError as e:
        print(f"Error: {e}")
        return
    print(f"Author created: {author.name} ({author.id})")


@app.command("remove-author")
@handle_store_errors
def cli_remove_author(author_id: str):
    """Delete an author that has no books."""
    lib = LibraryManager.get_instance()
    try:
        removed = lib.remove_author(author_id)
    except ValueError as e:
        print(f"Error: {e}")
        return
    if removed:
        print(f"Author {author_id} has been removed.")
    else:
        print(f"Author {author_id} not found.")


@app.command("author-stats")
@handle_store_errors
def cli_author_stats(author_id: str):
    """Show statistics for one author's books."""
    lib = LibraryManager.get_instance()
    author = lib.get_author_with_books(author_id)
    if not author:
        print(f"Author {author_id} not found.")
        return
    print_author_stats(compute_author_stats(author, author.books))


@app.command("summary")
@handle_store_errors
def cli_summary():
    """Show library-wide author figures."""
    lib = LibraryManager.get_instance()
    print_summary(summarize_authors(lib.list_authors()))


# ------------------------- Books ------------------------- #
@app.command("books")
@handle_store_errors
def cli_books(
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Title fragment"),
    genre: Optional[str] = typer.Option(None, "--genre", "-g", help="Exact genre"),
    author_id: Optional[str] = typer.Option(None, "--author-id", help="Exact author id"),
    author_name: Optional[str] = typer.Option(None, "--author-name", "-a", help="Author name fragment"),
    sort_by: str = typer.Option("createdAt", "--sort-by", help="title | publishedYear | createdAt"),
    order: str = typer.Option("desc", "--order", help="asc | desc"),
    page: str = typer.Option("1", "--page", "-p", help="Page number"),
    limit: str = typer.Option("10", "--limit", "-l", help="Books per page (1-50)"),
):
    """Search books with filters, sorting and pagination."""
    lib = LibraryManager.get_instance()
    params = build_search_params(
        search=search,
        genre=genre,
        author_id=author_id,
        author_name=author_name,
        sort_by=sort_by,
        order=order,
        page=page,
        limit=limit,
    )
    print_books_page(search_books_sync(lib, params))


@app.command("add-book")
@handle_store_errors
def cli_add_book(
    title: str,
    isbn: str,
    author_id: str,
    year: Optional[int] = typer.Option(None, "--year", help="Publication year"),
    genre: Optional[str] = typer.Option(None, "--genre"),
    pages: Optional[int] = typer.Option(None, "--pages"),
    description: Optional[str] = typer.Option(None, "--description"),
):
    """Create a new book for an existing author."""
    lib = LibraryManager.get_instance()
    try:
        book = lib.add_book(Book(title=title, isbn=isbn, author_id=author_id, published_year=year,
                                 genre=genre, pages=pages, description=description))
    except ValueError as e:
        print(f"Error: {e}")
        return
    print(f"Book created: {book.title} ({book.id})")


@app.command("remove-book")
@handle_store_errors
def cli_remove_book(book_id: str):
    """Delete a book."""
    lib = LibraryManager.get_instance()
    if lib.remove_book(book_id):
        print(f"Book {book_id} has been removed.")
    else:
        print(f"Book {book_id} not found.")


@app.command("genres")
@handle_store_errors
def cli_genres():
    """List the distinct genres in the catalog."""
    lib = LibraryManager.get_instance()
    print_genres(lib.list_genres())


# ------------------------- Server ------------------------- #
@app.command("serve")
def cli_serve(timeout: int = typer.Option(0, "--timeout", help="Seconds to run before stopping (0 = no timeout)")):
    """Start the API with Uvicorn."""
    host = settings.api_host
    port = int(settings.api_port)
    print(f"Starting API on http://{host}:{port}/")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "api:app",
        "--host", host,
        "--port", str(port),
    ]
    try:
        if timeout and timeout > 0:
            start_new_session = os.name != "nt"
            proc = subprocess.Popen(args, start_new_session=start_new_session)
            try:
                proc.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                proc.terminate()
                try:
                    proc.wait(timeout=5)
                except subprocess.TimeoutExpired:
                    proc.kill()
        else:
            subprocess.run(args)
    except KeyboardInterrupt:
        console.print("[yellow]Server stopped.[/]")


if __name__ == "__main__":
    app()
