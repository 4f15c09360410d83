"""Derived statistics over authors and their books.

Nothing here is stored: every figure is computed on read from records
already loaded into memory (one author's books, or the author list).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from author import Author
from book import Book


@dataclass(frozen=True)
class BookYear:
    title: str
    year: int


@dataclass(frozen=True)
class BookPages:
    title: str
    pages: int


@dataclass(frozen=True)
class AuthorStats:
    """Summary of one author's books; ``None`` fields mean "no data"."""

    author_id: str
    author_name: str
    total_books: int
    first_book: Optional[BookYear] = None
    latest_book: Optional[BookYear] = None
    average_pages: Optional[int] = None
    genres: List[str] = field(default_factory=list)
    longest_book: Optional[BookPages] = None
    shortest_book: Optional[BookPages] = None

    def to_dict(self) -> dict:
        return {
            "author_id": self.author_id,
            "author_name": self.author_name,
            "total_books": self.total_books,
            "first_book": _as_dict(self.first_book),
            "latest_book": _as_dict(self.latest_book),
            "average_pages": self.average_pages,
            "genres": list(self.genres),
            "longest_book": _as_dict(self.longest_book),
            "shortest_book": _as_dict(self.shortest_book),
        }


@dataclass(frozen=True)
class LibrarySummary:
    total_authors: int
    total_books: int
    average_books: float
    top_author: str

    def to_dict(self) -> dict:
        return {
            "total_authors": self.total_authors,
            "total_books": self.total_books,
            "average_books": self.average_books,
            "top_author": self.top_author,
        }


def _as_dict(value) -> Optional[dict]:
    return value.__dict__.copy() if value is not None else None


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with .5 going up, unlike the built-in round()."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def compute_author_stats(author: Author, books: Sequence[Book]) -> AuthorStats:
    """Compute the statistics for ``author`` from its full book collection.

    Ties on year or page count keep collection order: both sorts are
    stable, so among equal values the book that comes first in ``books``
    wins the "first"/"shortest" slot and the one that comes last wins
    "latest"/"longest".
    """
    total = len(books)
    if total == 0:
        return AuthorStats(author_id=author.id, author_name=author.name, total_books=0)

    with_year = sorted((b for b in books if b.published_year is not None),
                       key=lambda b: b.published_year)
    first_book = latest_book = None
    if with_year:
        first_book = BookYear(with_year[0].title, with_year[0].published_year)
        latest_book = BookYear(with_year[-1].title, with_year[-1].published_year)

    with_pages = sorted((b for b in books if b.pages is not None), key=lambda b: b.pages)
    average_pages = longest_book = shortest_book = None
    if with_pages:
        average_pages = int(round_half_up(sum(b.pages for b in with_pages) / len(with_pages)))
        shortest_book = BookPages(with_pages[0].title, with_pages[0].pages)
        longest_book = BookPages(with_pages[-1].title, with_pages[-1].pages)

    # dict keeps first-appearance order
    genres = list(dict.fromkeys(b.genre for b in books if b.genre and b.genre.strip()))

    return AuthorStats(
        author_id=author.id,
        author_name=author.name,
        total_books=total,
        first_book=first_book,
        latest_book=latest_book,
        average_pages=average_pages,
        genres=genres,
        longest_book=longest_book,
        shortest_book=shortest_book,
    )


def summarize_authors(authors: Sequence[Author]) -> LibrarySummary:
    """Library-wide figures for the authors overview.

    ``authors`` must carry ``book_count``; the top author is the first one
    in the given order among those with the most books.
    """
    if not authors:
        return LibrarySummary(total_authors=0, total_books=0, average_books=0, top_author="-")
    counts = [a.book_count or 0 for a in authors]
    total_books = sum(counts)
    top = max(range(len(authors)), key=lambda i: counts[i])
    return LibrarySummary(
        total_authors=len(authors),
        total_books=total_books,
        average_books=round_half_up(total_books / len(authors), 1),
        top_author=f"{authors[top].name} ({counts[top]})",
    )
