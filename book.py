from __future__ import annotations


class Book:
    """Represents a single catalog entry owned by exactly one author."""

    def __init__(self, title: str, isbn: str, author_id: str, id: str | None = None,
                 description: str | None = None, published_year: int | None = None,
                 genre: str | None = None, pages: int | None = None, created_at: str | None = None,
                 # Filled in when the owning author is joined in
                 author_name: str | None = None) -> None:
        self.id = id
        self.title = title.strip()
        self.isbn = isbn.strip()
        self.author_id = author_id
        self.description = description
        self.published_year = published_year
        self.genre = genre
        self.pages = pages
        self.created_at = created_at
        self.author_name = author_name

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} (ISBN: {self.isbn})"

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "isbn": self.isbn,
            "published_year": self.published_year,
            "genre": self.genre,
            "pages": self.pages,
            "created_at": self.created_at,
            "author_id": self.author_id,
        }
        if self.author_name is not None:
            data["author"] = {"id": self.author_id, "name": self.author_name}
        return data

    @staticmethod
    def from_dict(data: dict) -> "Book":
        return Book(
            id=data.get("id"),
            title=data["title"],
            isbn=data["isbn"],
            author_id=data["author_id"],
            description=data.get("description"),
            published_year=data.get("published_year"),
            genre=data.get("genre"),
            pages=data.get("pages"),
            created_at=data.get("created_at"),
            author_name=data.get("author_name"),
        )
