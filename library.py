import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple

import database
from author import Author
from book import Book
from database import get_db_connection, initialize_database
from search import BookFilters, SortField, SortOrder
from validators import MAX_PAGES, ISBNValidator, NumberValidator, TextValidator

logger = logging.getLogger(__name__)

_AUTHOR_COLUMNS = "a.id, a.name, a.email, a.bio, a.nationality, a.birth_year, a.created_at"
_BOOK_COLUMNS = (
    "b.id, b.title, b.description, b.isbn, b.published_year, b.genre, b.pages, "
    "b.created_at, b.author_id, a.name AS author_name"
)
_AUTHOR_FIELDS = ("name", "email", "bio", "nationality", "birth_year")
_BOOK_FIELDS = ("title", "isbn", "author_id", "description", "published_year", "genre", "pages")

_SORT_COLUMNS = {
    SortField.TITLE: "b.title COLLATE NOCASE",
    SortField.PUBLISHED_YEAR: "b.published_year",
    SortField.CREATED_AT: "b.created_at",
}


class Library:
    """Manages authors, their books and persistence in SQLite."""

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file or database.DATABASE_FILE
        try:
            initialize_database(self.db_file)
        except sqlite3.Error as exc:
            logger.exception("Could not initialize database %s", self.db_file)
            raise DataStoreError("Database initialization failed") from exc

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection; integrity errors pass through, other sqlite and overflow errors become DataStoreError."""
        try:
            conn = get_db_connection(self.db_file)
        except sqlite3.Error as exc:
            logger.exception("Could not open database %s", self.db_file)
            raise DataStoreError("Database unavailable") from exc
        try:
            yield conn
        except sqlite3.IntegrityError:
            raise
        except (sqlite3.Error, OverflowError) as exc:
            # OverflowError: an integer parameter outside SQLite's 64-bit range
            logger.exception("Database operation failed")
            raise DataStoreError("Database operation failed") from exc
        finally:
            conn.close()

    # ------------------------- Authors ------------------------- #
    def add_author(self, author: Author) -> Author:
        """Validate and insert a new author. Duplicate emails raise ConflictError."""
        self._validate_author(author)
        author.id = author.id or _new_id()
        author.created_at = _now()
        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO authors (id, name, email, bio, nationality, birth_year, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (author.id, author.name, author.email, author.bio,
                     author.nationality, author.birth_year, author.created_at),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                raise _integrity_error(e) from e
        author.book_count = 0
        logger.info("Author created: %s (%s)", author.name, author.id)
        return author

    def list_authors(self, query: Optional[str] = None) -> List[Author]:
        """All authors with their book counts, optionally filtered by a text fragment."""
        sql = f"""
            SELECT {_AUTHOR_COLUMNS}, COUNT(b.id) AS book_count
            FROM authors a LEFT JOIN books b ON b.author_id = a.id
        """
        params: List[Any] = []
        term = (query or "").strip().casefold()
        if term:
            sql += """
            WHERE instr(casefold(a.name), ?) > 0
               OR instr(casefold(a.email), ?) > 0
               OR instr(casefold(COALESCE(a.bio, '')), ?) > 0
               OR instr(casefold(COALESCE(a.nationality, '')), ?) > 0
            """
            params.extend([term] * 4)
        sql += " GROUP BY a.id ORDER BY a.name COLLATE NOCASE, a.created_at"
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
            return [Author.from_dict(dict(row)) for row in rows]

    def find_author(self, author_id: str) -> Optional[Author]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_AUTHOR_COLUMNS} FROM authors a WHERE a.id = ?", (author_id,)
            ).fetchone()
            return Author.from_dict(dict(row)) if row else None

    def get_author_with_books(self, author_id: str) -> Optional[Author]:
        """Fetch an author and the full list of their books.

        Books come ordered by publication year (books without a year last),
        then by creation order. Statistics rely on this order for ties.
        """
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_AUTHOR_COLUMNS} FROM authors a WHERE a.id = ?", (author_id,)
            ).fetchone()
            if not row:
                return None
            author = Author.from_dict(dict(row))
            rows = conn.execute(
                f"""
                SELECT {_BOOK_COLUMNS}
                FROM books b JOIN authors a ON a.id = b.author_id
                WHERE b.author_id = ?
                ORDER BY b.published_year IS NULL, b.published_year ASC, b.created_at ASC, b.rowid ASC
                """,
                (author_id,),
            ).fetchall()
        author.books = [Book.from_dict(dict(r)) for r in rows]
        author.book_count = len(author.books)
        return author

    def update_author(self, author_id: str, **changes: Any) -> Optional[Author]:
        """Apply a partial update. Returns the updated author or None if not found."""
        unknown = set(changes) - set(_AUTHOR_FIELDS)
        if unknown:
            raise ValueError(f"Unknown author fields: {', '.join(sorted(unknown))}")
        author = self.find_author(author_id)
        if not author:
            return None
        for key, value in changes.items():
            setattr(author, key, value)
        self._validate_author(author)
        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    UPDATE authors SET name = ?, email = ?, bio = ?, nationality = ?, birth_year = ?
                    WHERE id = ?
                    """,
                    (author.name, author.email, author.bio, author.nationality,
                     author.birth_year, author_id),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                raise _integrity_error(e) from e
        logger.info("Author updated: %s", author_id)
        return author

    def remove_author(self, author_id: str) -> bool:
        """Delete an author. Refused with ConflictError while the author owns books."""
        with self._connect() as conn:
            try:
                cursor = conn.execute("DELETE FROM authors WHERE id = ?", (author_id,))
                conn.commit()
            except sqlite3.IntegrityError as e:
                raise ConflictError("Author still has books; delete or reassign them first.") from e
            removed = cursor.rowcount > 0
        if removed:
            logger.info("Author removed: %s", author_id)
        return removed

    # ------------------------- Books ------------------------- #
    def add_book(self, book: Book) -> Book:
        """Validate and insert a new book. The author must exist; ISBNs are unique."""
        self._validate_book(book)
        book.id = book.id or _new_id()
        book.created_at = _now()
        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO books (
                        id, title, description, isbn, published_year, genre, pages, created_at, author_id
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (book.id, book.title, book.description, book.isbn, book.published_year,
                     book.genre, book.pages, book.created_at, book.author_id),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                raise _integrity_error(e) from e
        logger.info("Book created: %s (%s) for author %s", book.title, book.id, book.author_id)
        return self.find_book(book.id) or book

    def list_books(self) -> List[Book]:
        """All books, newest first, each with its author's name."""
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {_BOOK_COLUMNS}
                FROM books b JOIN authors a ON a.id = b.author_id
                ORDER BY b.created_at DESC, b.rowid DESC
                """
            ).fetchall()
            return [Book.from_dict(dict(row)) for row in rows]

    def find_book(self, book_id: str) -> Optional[Book]:
        with self._connect() as conn:
            row = conn.execute(
                f"""
                SELECT {_BOOK_COLUMNS}
                FROM books b JOIN authors a ON a.id = b.author_id
                WHERE b.id = ?
                """,
                (book_id,),
            ).fetchone()
            return Book.from_dict(dict(row)) if row else None

    def update_book(self, book_id: str, **changes: Any) -> Optional[Book]:
        """Apply a partial update. Returns the updated book or None if not found."""
        unknown = set(changes) - set(_BOOK_FIELDS)
        if unknown:
            raise ValueError(f"Unknown book fields: {', '.join(sorted(unknown))}")
        book = self.find_book(book_id)
        if not book:
            return None
        for key, value in changes.items():
            setattr(book, key, value)
        self._validate_book(book)
        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    UPDATE books SET title = ?, description = ?, isbn = ?, published_year = ?,
                                     genre = ?, pages = ?, author_id = ?
                    WHERE id = ?
                    """,
                    (book.title, book.description, book.isbn, book.published_year,
                     book.genre, book.pages, book.author_id, book_id),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                raise _integrity_error(e) from e
        logger.info("Book updated: %s", book_id)
        return self.find_book(book_id)

    def remove_book(self, book_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
            conn.commit()
            removed = cursor.rowcount > 0
        if removed:
            logger.info("Book removed: %s", book_id)
        return removed

    # ------------------------- Search ------------------------- #
    def count_books(self, filters: BookFilters) -> int:
        where, params = _where_clause(filters)
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT COUNT(*) FROM books b JOIN authors a ON a.id = b.author_id{where}", params
            ).fetchone()
            return row[0]

    def find_books(self, filters: BookFilters, sort_by: SortField, order: SortOrder,
                   limit: int, offset: int) -> List[Book]:
        """One page of books matching ``filters`` in the requested order."""
        where, params = _where_clause(filters)
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {_BOOK_COLUMNS}
                FROM books b JOIN authors a ON a.id = b.author_id{where}
                ORDER BY {_order_by(sort_by, order)}
                LIMIT ? OFFSET ?
                """,
                [*params, limit, offset],
            ).fetchall()
            return [Book.from_dict(dict(row)) for row in rows]

    def list_genres(self) -> List[str]:
        """Distinct non-empty genres, sorted."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT DISTINCT genre FROM books
                WHERE genre IS NOT NULL AND trim(genre) <> ''
                ORDER BY genre
                """
            ).fetchall()
            return [row[0] for row in rows]

    # ------------------------- Validation ------------------------- #
    @staticmethod
    def _validate_author(author: Author) -> None:
        if not TextValidator.validate_name(author.name):
            raise ValueError("Author name is required.")
        if not TextValidator.validate_email(author.email):
            raise ValueError("A valid email address is required.")
        if not NumberValidator.validate_year(author.birth_year):
            raise ValueError("Birth year is out of range.")
        author.name = author.name.strip()
        author.email = author.email.strip()
        author.bio = TextValidator.clean_optional(author.bio)
        author.nationality = TextValidator.clean_optional(author.nationality)

    @staticmethod
    def _validate_book(book: Book) -> None:
        if not TextValidator.validate_required(book.title):
            raise ValueError("Book title is required.")
        if not ISBNValidator.is_valid_isbn(book.isbn):
            raise ValueError("Invalid ISBN format.")
        if not TextValidator.validate_required(book.author_id):
            raise ValueError("Author is required.")
        if not NumberValidator.validate_year(book.published_year):
            raise ValueError("Publication year is out of range.")
        if not NumberValidator.validate_pages(book.pages):
            raise ValueError(f"Page count must be between 1 and {MAX_PAGES}.")
        book.title = book.title.strip()
        book.isbn = ISBNValidator.normalize_isbn(book.isbn)
        book.author_id = book.author_id.strip()
        book.description = TextValidator.clean_optional(book.description)
        book.genre = TextValidator.clean_optional(book.genre)


class DataStoreError(Exception):
    """Raised when the database cannot serve a request."""


class ConflictError(ValueError):
    """Raised when a write clashes with existing data (duplicates, dependent books)."""


# ------------------------- Helpers ------------------------- #
def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _integrity_error(exc: sqlite3.IntegrityError) -> ValueError:
    message = str(exc)
    if "authors.email" in message:
        return ConflictError("An author with this email already exists.")
    if "books.isbn" in message:
        return ConflictError("A book with this ISBN already exists.")
    if "FOREIGN KEY" in message:
        return ValueError("Author not found.")
    return ValueError(message)


def _where_clause(filters: BookFilters) -> Tuple[str, List[Any]]:
    clauses: List[str] = []
    params: List[Any] = []
    if filters.title:
        clauses.append("instr(casefold(b.title), ?) > 0")
        params.append(filters.title.casefold())
    if filters.genre:
        clauses.append("b.genre = ?")
        params.append(filters.genre)
    if filters.author_id:
        clauses.append("b.author_id = ?")
        params.append(filters.author_id)
    if filters.author_name:
        clauses.append("instr(casefold(a.name), ?) > 0")
        params.append(filters.author_name.casefold())
    if not clauses:
        return "", params
    return " WHERE " + " AND ".join(clauses), params


def _order_by(sort_by: SortField, order: SortOrder) -> str:
    direction = "ASC" if order is SortOrder.ASC else "DESC"
    column = _SORT_COLUMNS[sort_by]
    # insertion order breaks ties so consecutive pages never overlap
    clause = f"{column} {direction}, b.rowid {direction}"
    if sort_by is SortField.PUBLISHED_YEAR:
        # books without a year go last in both directions
        clause = f"b.published_year IS NULL, {clause}"
    return clause
