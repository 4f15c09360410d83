import os
import tempfile

import pytest

# Modules that build a Library at import time (api.py) must not touch a real
# database file, so point the default at a throwaway one before they load.
os.environ.setdefault(
    "LIBRARY_DB_FILE", os.path.join(tempfile.gettempdir(), f"library_test_{os.getpid()}.db")
)

import database  # noqa: E402
from library import Library  # noqa: E402


@pytest.fixture
def lib(tmp_path, monkeypatch):
    # Fresh database file per test; the CLI picks it up through database.DATABASE_FILE
    db_file = str(tmp_path / "library.db")
    monkeypatch.setattr(database, "DATABASE_FILE", db_file)
    return Library(db_file=db_file)
