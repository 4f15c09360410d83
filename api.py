import logging
from datetime import datetime, timezone
from typing import List, NoReturn, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from author import Author
from author_stats import compute_author_stats, summarize_authors
from book import Book
from config import settings
from database import get_db_connection
from library import ConflictError, DataStoreError, Library
from search import build_search_params, search_books

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

library = Library()

app = FastAPI(title=settings.app_name, version=settings.app_version, debug=settings.debug)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error handling ---
@app.exception_handler(DataStoreError)
async def data_store_error_handler(request: Request, exc: DataStoreError):
    """Log store failures for operators; clients only get a generic message."""
    logger.error("Data store failure on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "The library data store is currently unavailable."},
    )


def _raise_for_value_error(e: ValueError) -> NoReturn:
    if isinstance(e, ConflictError):
        raise HTTPException(status_code=409, detail=str(e))
    raise HTTPException(status_code=400, detail=str(e))


# --- Models ---
class APIModel(BaseModel):
    """camelCase on the wire; snake_case is accepted on input too."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AuthorRefModel(APIModel):
    id: str
    name: str


class BookModel(APIModel):
    id: str
    title: str
    description: str | None = None
    isbn: str
    published_year: int | None = None
    genre: str | None = None
    pages: int | None = None
    created_at: str | None = None
    author_id: str
    author: AuthorRefModel | None = None


class AuthorModel(APIModel):
    id: str
    name: str
    email: str
    bio: str | None = None
    nationality: str | None = None
    birth_year: int | None = None
    created_at: str | None = None


class AuthorSummaryModel(AuthorModel):
    book_count: int = 0


class AuthorDetailModel(AuthorModel):
    books: List[BookModel] = Field(default_factory=list)


class AuthorCreateModel(APIModel):
    name: str
    email: str
    bio: str | None = None
    nationality: str | None = None
    birth_year: int | None = None


class AuthorUpdateModel(APIModel):
    name: str | None = None
    email: str | None = None
    bio: str | None = None
    nationality: str | None = None
    birth_year: int | None = None


class BookCreateModel(APIModel):
    title: str
    isbn: str
    author_id: str
    description: str | None = None
    published_year: int | None = None
    genre: str | None = None
    pages: int | None = None


class BookUpdateModel(APIModel):
    title: str | None = None
    isbn: str | None = None
    author_id: str | None = None
    description: str | None = None
    published_year: int | None = None
    genre: str | None = None
    pages: int | None = None


class PaginationModel(APIModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class BookSearchResponse(APIModel):
    data: List[BookModel]
    pagination: PaginationModel


class BookYearModel(APIModel):
    title: str
    year: int


class BookPagesModel(APIModel):
    title: str
    pages: int


class AuthorStatsModel(APIModel):
    author_id: str
    author_name: str
    total_books: int
    first_book: BookYearModel | None = None
    latest_book: BookYearModel | None = None
    average_pages: int | None = None
    genres: List[str] = Field(default_factory=list)
    longest_book: BookPagesModel | None = None
    shortest_book: BookPagesModel | None = None


class LibrarySummaryModel(APIModel):
    total_authors: int
    total_books: int
    average_books: float
    top_author: str


class HealthModel(APIModel):
    status: str
    timestamp: str
    db: bool


class MessageModel(APIModel):
    message: str


# --- Health ---
@app.get("/health", response_model=HealthModel)
def health():
    """Lightweight health check with a quick database round trip."""
    db_ok = True
    try:
        conn = get_db_connection(library.db_file)
        try:
            conn.execute("SELECT 1")
        finally:
            conn.close()
    except Exception:
        logger.exception("Health check could not reach the database")
        db_ok = False
    return HealthModel(
        status="healthy" if db_ok else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        db=db_ok,
    )


# --- Authors ---
@app.get("/api/authors", response_model=List[AuthorSummaryModel])
def list_authors(q: Optional[str] = Query(None, description="Matches name, email, bio or nationality")):
    """List authors with their book counts."""
    return [AuthorSummaryModel(**a.to_dict()) for a in library.list_authors(q)]


@app.post("/api/authors", response_model=AuthorModel, status_code=201)
def create_author(payload: AuthorCreateModel):
    author = Author(**payload.model_dump())
    try:
        library.add_author(author)
    except ValueError as e:
        _raise_for_value_error(e)
    return AuthorModel(**author.to_dict())


@app.get("/api/authors/{author_id}", response_model=AuthorDetailModel)
def get_author(author_id: str):
    """Get an author together with their books."""
    author = library.get_author_with_books(author_id)
    if not author:
        raise HTTPException(status_code=404, detail="Author not found.")
    return AuthorDetailModel(**author.to_dict())


@app.put("/api/authors/{author_id}", response_model=AuthorModel)
def update_author(author_id: str, update: AuthorUpdateModel):
    changes = update.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="Nothing to update.")
    try:
        author = library.update_author(author_id, **changes)
    except ValueError as e:
        _raise_for_value_error(e)
    if not author:
        raise HTTPException(status_code=404, detail="Author not found.")
    return AuthorModel(**author.to_dict())


@app.delete("/api/authors/{author_id}", response_model=MessageModel)
def delete_author(author_id: str):
    """Delete an author; refused while they still own books."""
    try:
        removed = library.remove_author(author_id)
    except ValueError as e:
        _raise_for_value_error(e)
    if not removed:
        raise HTTPException(status_code=404, detail="Author not found.")
    return MessageModel(message="Author removed.")


@app.get("/api/authors/{author_id}/stats", response_model=AuthorStatsModel)
def get_author_stats(author_id: str):
    """Statistics derived from all of an author's books."""
    author = library.get_author_with_books(author_id)
    if not author:
        raise HTTPException(status_code=404, detail="Author not found.")
    stats = compute_author_stats(author, author.books)
    return AuthorStatsModel(**stats.to_dict())


# --- Books ---
@app.get("/api/books", response_model=List[BookModel])
def list_books():
    """All books, newest first."""
    return [BookModel(**b.to_dict()) for b in library.list_books()]


@app.get("/api/books/search", response_model=BookSearchResponse)
async def search_books_endpoint(
    search: Optional[str] = Query(None, description="Title fragment (case-insensitive)"),
    genre: Optional[str] = Query(None, description="Exact genre"),
    author_id: Optional[str] = Query(None, alias="authorId", description="Exact author id"),
    author_name: Optional[str] = Query(None, alias="authorName", description="Author name fragment"),
    sort_by: Optional[str] = Query(None, alias="sortBy", description="title|publishedYear|createdAt"),
    order: Optional[str] = Query(None, description="asc|desc"),
    page: Optional[str] = Query(None, description="1-indexed page number"),
    limit: Optional[str] = Query(None, description="Results per page (1-50)"),
):
    """Filtered, sorted and paginated book search.

    Parameters are taken as raw strings: invalid values fall back to their
    defaults instead of being rejected.
    """
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
    try:
        result = await search_books(library, params)
    except Exception:
        logger.exception("Book search failed for %s", params)
        raise HTTPException(status_code=500, detail="Error searching books.")
    return BookSearchResponse(
        data=[BookModel(**b.to_dict()) for b in result.data],
        pagination=PaginationModel(**result.pagination.to_dict()),
    )


@app.post("/api/books", response_model=BookModel, status_code=201)
def create_book(payload: BookCreateModel):
    book = Book(**payload.model_dump())
    try:
        created = library.add_book(book)
    except ValueError as e:
        _raise_for_value_error(e)
    return BookModel(**created.to_dict())


@app.get("/api/books/{book_id}", response_model=BookModel)
def get_book(book_id: str):
    book = library.find_book(book_id)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found.")
    return BookModel(**book.to_dict())


@app.put("/api/books/{book_id}", response_model=BookModel)
def update_book(book_id: str, update: BookUpdateModel):
    changes = update.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="Nothing to update.")
    try:
        book = library.update_book(book_id, **changes)
    except ValueError as e:
        _raise_for_value_error(e)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found.")
    return BookModel(**book.to_dict())


@app.delete("/api/books/{book_id}", response_model=MessageModel)
def delete_book(book_id: str):
    if not library.remove_book(book_id):
        raise HTTPException(status_code=404, detail="Book not found.")
    return MessageModel(message="Book removed.")


# --- Lookups and overview ---
@app.get("/api/genres", response_model=List[str])
def list_genres():
    """Distinct genres for filter drop-downs."""
    return library.list_genres()


@app.get("/api/stats", response_model=LibrarySummaryModel)
def get_library_stats():
    """Overview figures for the authors page."""
    summary = summarize_authors(library.list_authors())
    return LibrarySummaryModel(**summary.to_dict())
