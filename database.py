import os
import sqlite3
from typing import Optional

from config import settings

# Default database file.
# Priority:
# 1) LIBRARY_DB_FILE (explicit override)
# 2) LIBRARY_DATA_FILE (older env name, still honoured by config.py)
# 3) library.db in the working directory
DATABASE_FILE = settings.data_file or "library.db"


def _casefold(value: Optional[str]) -> Optional[str]:
    return value.casefold() if value is not None else None


def get_db_connection(db_file: Optional[str] = None) -> sqlite3.Connection:
    """Open a connection to the SQLite database.

    Every connection enforces foreign keys and exposes a ``casefold()`` SQL
    function; SQLite's own ``lower()`` and ``LIKE`` only fold ASCII.
    """
    conn = sqlite3.connect(db_file or DATABASE_FILE)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.create_function("casefold", 1, _casefold, deterministic=True)
    return conn


def create_tables(db_file: Optional[str] = None) -> None:
    """Create the tables and indexes if they do not exist yet."""
    conn = get_db_connection(db_file)
    try:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS authors (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                email TEXT NOT NULL UNIQUE,
                bio TEXT,
                nationality TEXT,
                birth_year INTEGER,
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS books (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                description TEXT,
                isbn TEXT NOT NULL UNIQUE,
                published_year INTEGER,
                genre TEXT,
                pages INTEGER,
                created_at TEXT NOT NULL,
                author_id TEXT NOT NULL,
                FOREIGN KEY (author_id) REFERENCES authors(id) ON DELETE RESTRICT
            )
        """)

        # Indexes for the search screen filters and sort keys
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_author_id ON books(author_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_created_at ON books(created_at)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_title ON books(title)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_published_year ON books(published_year)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_genre ON books(genre)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_authors_name ON authors(name)")

        conn.commit()
    finally:
        conn.close()


def initialize_database(db_file: Optional[str] = None) -> None:
    """Make sure the database file and its tables exist."""
    target = db_file or DATABASE_FILE
    parent = os.path.dirname(os.path.abspath(target))
    os.makedirs(parent, exist_ok=True)
    create_tables(target)
