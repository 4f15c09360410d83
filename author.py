from __future__ import annotations

from typing import List, Optional

from book import Book


class Author:
    """A person owning zero or more books."""

    def __init__(self, name: str, email: str, id: str | None = None, bio: str | None = None,
                 nationality: str | None = None, birth_year: int | None = None,
                 created_at: str | None = None, book_count: int | None = None,
                 books: Optional[List[Book]] = None) -> None:
        self.id = id
        self.name = name.strip()
        self.email = email.strip()
        self.bio = bio
        self.nationality = nationality
        self.birth_year = birth_year
        self.created_at = created_at
        # Only populated by queries that count or join the author's books
        self.book_count = book_count
        self.books = books

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.name} <{self.email}>"

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "bio": self.bio,
            "nationality": self.nationality,
            "birth_year": self.birth_year,
            "created_at": self.created_at,
        }
        if self.book_count is not None:
            data["book_count"] = self.book_count
        if self.books is not None:
            data["books"] = [b.to_dict() for b in self.books]
        return data

    @staticmethod
    def from_dict(data: dict) -> "Author":
        return Author(
            id=data.get("id"),
            name=data["name"],
            email=data["email"],
            bio=data.get("bio"),
            nationality=data.get("nationality"),
            birth_year=data.get("birth_year"),
            created_at=data.get("created_at"),
            book_count=data.get("book_count"),
        )
