import logging

import pytest
from fastapi.testclient import TestClient

from library import DataStoreError


@pytest.fixture
def client(lib, monkeypatch):
    import api

    monkeypatch.setattr(api, "library", lib)
    return TestClient(api.app)


def _create_author(client, name="Isabel Allende", email="isabel@example.com", **extra):
    resp = client.post("/api/authors", json={"name": name, "email": email, **extra})
    assert resp.status_code == 201, resp.text
    return resp.json()


def _create_book(client, author_id, title="Paula", isbn="9780060927219", **extra):
    resp = client.post("/api/books", json={"title": title, "isbn": isbn, "authorId": author_id, **extra})
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["db"] is True


# ------------------------- Authors ------------------------- #
def test_author_crud_flow(client):
    author = _create_author(client, birthYear=1942, nationality="Chilean")
    assert author["birthYear"] == 1942
    assert "createdAt" in author

    listed = client.get("/api/authors").json()
    assert [(a["id"], a["bookCount"]) for a in listed] == [(author["id"], 0)]

    resp = client.put(f"/api/authors/{author['id']}", json={"bio": "Novelist"})
    assert resp.status_code == 200
    assert resp.json()["bio"] == "Novelist"
    assert resp.json()["nationality"] == "Chilean"

    detail = client.get(f"/api/authors/{author['id']}").json()
    assert detail["books"] == []

    resp = client.delete(f"/api/authors/{author['id']}")
    assert resp.status_code == 200
    assert resp.json() == {"message": "Author removed."}
    assert client.get(f"/api/authors/{author['id']}").status_code == 404


def test_author_query_filter(client):
    _create_author(client)
    _create_author(client, name="Jorge Luis Borges", email="borges@example.com")
    names = [a["name"] for a in client.get("/api/authors", params={"q": "borges"}).json()]
    assert names == ["Jorge Luis Borges"]


def test_author_errors(client):
    _create_author(client)
    resp = client.post("/api/authors", json={"name": "Copy", "email": "isabel@example.com"})
    assert resp.status_code == 409

    resp = client.post("/api/authors", json={"name": "Someone", "email": "nope"})
    assert resp.status_code == 400

    resp = client.post("/api/authors", json={"name": "Someone"})
    assert resp.status_code == 422

    assert client.put("/api/authors/missing", json={"name": "X"}).status_code == 404
    assert client.delete("/api/authors/missing").status_code == 404


def test_empty_update_rejected(client):
    author = _create_author(client)
    resp = client.put(f"/api/authors/{author['id']}", json={})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Nothing to update."


def test_delete_author_with_books_conflicts(client):
    author = _create_author(client)
    book = _create_book(client, author["id"])
    assert client.delete(f"/api/authors/{author['id']}").status_code == 409
    assert client.delete(f"/api/books/{book['id']}").status_code == 200
    assert client.delete(f"/api/authors/{author['id']}").status_code == 200


# ------------------------- Books ------------------------- #
def test_book_crud_flow(client):
    author = _create_author(client)
    book = _create_book(client, author["id"], isbn="978-0-06-092721-9", publishedYear=1994, pages=330)
    assert book["isbn"] == "9780060927219"
    assert book["author"] == {"id": author["id"], "name": "Isabel Allende"}

    fetched = client.get(f"/api/books/{book['id']}").json()
    assert fetched["publishedYear"] == 1994

    resp = client.put(f"/api/books/{book['id']}", json={"genre": "Memoir"})
    assert resp.status_code == 200
    assert resp.json()["genre"] == "Memoir"
    assert resp.json()["pages"] == 330

    assert [b["id"] for b in client.get("/api/books").json()] == [book["id"]]

    assert client.delete(f"/api/books/{book['id']}").json() == {"message": "Book removed."}
    assert client.get(f"/api/books/{book['id']}").status_code == 404
    assert client.delete(f"/api/books/{book['id']}").status_code == 404


def test_book_errors(client):
    author = _create_author(client)
    _create_book(client, author["id"])

    resp = client.post("/api/books", json={"title": "Dup", "isbn": "9780060927219", "authorId": author["id"]})
    assert resp.status_code == 409

    resp = client.post("/api/books", json={"title": "Orphan", "isbn": "9780553383829", "authorId": "missing"})
    assert resp.status_code == 400

    resp = client.post("/api/books", json={"title": "Bad", "isbn": "12", "authorId": author["id"]})
    assert resp.status_code == 400

    resp = client.post("/api/books", json={"title": "Huge", "isbn": "9780553383829", "authorId": author["id"],
                                           "pages": 10 ** 20})
    assert resp.status_code == 400
    assert "Page count" in resp.json()["detail"]

    assert client.put("/api/books/missing", json={"title": "X"}).status_code == 404


# ------------------------- Search ------------------------- #
def test_search_filters_and_pagination(client):
    author = _create_author(client)
    other = _create_author(client, name="Jorge Luis Borges", email="borges@example.com")
    for i in range(1, 6):
        _create_book(client, author["id"], title=f"Novel {i}", isbn=f"978000000000{i}",
                     publishedYear=1980 + i, genre="Novel")
    _create_book(client, other["id"], title="Ficciones", isbn="9780802130303", genre="Short stories")

    resp = client.get("/api/books/search", params={
        "authorName": "allende", "sortBy": "publishedYear", "order": "asc", "page": 2, "limit": 2,
    })
    assert resp.status_code == 200
    body = resp.json()
    assert [b["title"] for b in body["data"]] == ["Novel 3", "Novel 4"]
    assert body["pagination"] == {
        "page": 2, "limit": 2, "total": 5, "totalPages": 3, "hasNext": True, "hasPrev": True,
    }

    body = client.get("/api/books/search", params={"genre": "Short stories"}).json()
    assert [b["title"] for b in body["data"]] == ["Ficciones"]

    body = client.get("/api/books/search", params={"authorId": other["id"], "search": "novel"}).json()
    assert body["data"] == []
    assert body["pagination"]["totalPages"] == 1


def test_search_invalid_params_fall_back(client):
    resp = client.get("/api/books/search", params={
        "page": "abc", "limit": "999", "sortBy": "bogus", "order": "sideways",
    })
    assert resp.status_code == 200
    pagination = resp.json()["pagination"]
    assert pagination["page"] == 1
    assert pagination["limit"] == 50
    assert pagination["total"] == 0


def test_search_failure_is_generic_500(client, lib, monkeypatch):
    def broken(*args, **kwargs):
        raise DataStoreError("disk I/O error at /secret/path")

    monkeypatch.setattr(lib, "count_books", broken)
    resp = client.get("/api/books/search")
    assert resp.status_code == 500
    assert resp.json() == {"detail": "Error searching books."}


def test_data_store_errors_hide_details(client, lib, monkeypatch):
    def broken(*args, **kwargs):
        raise DataStoreError("disk I/O error at /secret/path")

    monkeypatch.setattr(lib, "list_books", broken)
    resp = client.get("/api/books")
    assert resp.status_code == 500
    assert "secret" not in resp.text


def test_data_store_errors_are_logged_with_traceback(client, lib, monkeypatch, caplog):
    def broken(*args, **kwargs):
        raise DataStoreError("disk I/O error")

    monkeypatch.setattr(lib, "list_genres", broken)
    with caplog.at_level(logging.ERROR, logger="api"):
        assert client.get("/api/genres").status_code == 500
    records = [r for r in caplog.records if "Data store failure" in r.getMessage()]
    assert records and records[0].exc_info is not None


def test_search_page_far_past_the_end(client):
    resp = client.get("/api/books/search", params={"page": "99999999999999999999"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["data"] == []
    assert body["pagination"]["page"] == 99999999999999999999
    assert body["pagination"]["hasNext"] is False


# ------------------------- Stats ------------------------- #
def test_author_stats(client):
    author = _create_author(client)
    _create_book(client, author["id"], title="Late", isbn="9780000000001", publishedYear=2001,
                 pages=100, genre="Novel")
    _create_book(client, author["id"], title="Undated", isbn="9780000000002", pages=101)
    _create_book(client, author["id"], title="Early", isbn="9780000000003", publishedYear=1999,
                 genre="Memoir")

    resp = client.get(f"/api/authors/{author['id']}/stats")
    assert resp.status_code == 200
    stats = resp.json()
    assert stats["totalBooks"] == 3
    assert stats["firstBook"] == {"title": "Early", "year": 1999}
    assert stats["latestBook"] == {"title": "Late", "year": 2001}
    assert stats["averagePages"] == 101
    assert stats["longestBook"] == {"title": "Undated", "pages": 101}
    assert stats["shortestBook"] == {"title": "Late", "pages": 100}
    assert sorted(stats["genres"]) == ["Memoir", "Novel"]

    assert client.get("/api/authors/missing/stats").status_code == 404


def test_author_stats_without_books(client):
    author = _create_author(client)
    stats = client.get(f"/api/authors/{author['id']}/stats").json()
    assert stats["totalBooks"] == 0
    assert stats["firstBook"] is None
    assert stats["averagePages"] is None
    assert stats["genres"] == []


def test_genres_and_library_stats(client):
    assert client.get("/api/stats").json() == {
        "totalAuthors": 0, "totalBooks": 0, "averageBooks": 0, "topAuthor": "-",
    }
    allende = _create_author(client)
    _create_author(client, name="Jorge Luis Borges", email="borges@example.com")
    _create_book(client, allende["id"], genre="Memoir")

    assert client.get("/api/genres").json() == ["Memoir"]
    assert client.get("/api/stats").json() == {
        "totalAuthors": 2, "totalBooks": 1, "averageBooks": 0.5, "topAuthor": "Isabel Allende (1)",
    }
