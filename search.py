"""Book search and pagination.

Turns loosely typed request parameters (query-string values, CLI options)
into an immutable :class:`SearchParams`, runs the count and the page
query against the store concurrently and shapes the result with its
pagination metadata.

Malformed or out-of-range parameters are never an error here: they are
replaced by safe defaults so every request yields a valid page.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Protocol

from book import Book
from config import settings

logger = logging.getLogger(__name__)

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")

# Largest offset handed to the store; SQLite integers are signed 64-bit
MAX_OFFSET = 2 ** 62


class SortField(str, Enum):
    TITLE = "title"
    PUBLISHED_YEAR = "publishedYear"
    CREATED_AT = "createdAt"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


DEFAULT_SORT_FIELD = SortField.CREATED_AT
DEFAULT_SORT_ORDER = SortOrder.DESC


@dataclass(frozen=True)
class BookFilters:
    """Filters combined with AND; ``None`` means the filter is not applied."""

    title: Optional[str] = None
    genre: Optional[str] = None
    author_id: Optional[str] = None
    author_name: Optional[str] = None


@dataclass(frozen=True)
class SearchParams:
    filters: BookFilters = field(default_factory=BookFilters)
    sort_by: SortField = DEFAULT_SORT_FIELD
    order: SortOrder = DEFAULT_SORT_ORDER
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        # pages far past the end still map to an empty slice
        return min((self.page - 1) * self.limit, MAX_OFFSET)


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    def to_dict(self) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "total_pages": self.total_pages,
            "has_next": self.has_next,
            "has_prev": self.has_prev,
        }


@dataclass(frozen=True)
class SearchResult:
    data: List[Book]
    pagination: Pagination


class BookStore(Protocol):
    """What the search needs from the data store."""

    def count_books(self, filters: BookFilters) -> int: ...

    def find_books(self, filters: BookFilters, sort_by: SortField, order: SortOrder,
                   limit: int, offset: int) -> List[Book]: ...


# ------------------------- Normalization ------------------------- #
def parse_int(value: Any, default: int) -> int:
    """Parse the leading integer of ``value``; ``default`` when there is none.

    ``"3.7"`` gives 3 and ``"5abc"`` gives 5.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    m = _LEADING_INT_RE.match(str(value))
    return int(m.group(1)) if m else default


def normalize_page(value: Any) -> int:
    return max(parse_int(value, 1), 1)


def normalize_limit(value: Any, default: Optional[int] = None, maximum: Optional[int] = None) -> int:
    default = settings.default_page_size if default is None else default
    maximum = settings.max_page_size if maximum is None else maximum
    return min(max(parse_int(value, default), 1), maximum)


def normalize_sort_field(value: Any) -> SortField:
    try:
        return SortField(value)
    except ValueError:
        return DEFAULT_SORT_FIELD


def normalize_sort_order(value: Any) -> SortOrder:
    try:
        return SortOrder(value)
    except ValueError:
        return DEFAULT_SORT_ORDER


def _clean_filter(value: Optional[str]) -> Optional[str]:
    # an empty filter is an absent filter, not "match empty"
    if value is None:
        return None
    value = str(value)
    return value if value.strip() else None


def build_search_params(
    search: Optional[str] = None,
    genre: Optional[str] = None,
    author_id: Optional[str] = None,
    author_name: Optional[str] = None,
    sort_by: Any = None,
    order: Any = None,
    page: Any = None,
    limit: Any = None,
) -> SearchParams:
    """Build normalized, immutable search parameters from raw input."""
    return SearchParams(
        filters=BookFilters(
            title=_clean_filter(search),
            genre=_clean_filter(genre),
            author_id=_clean_filter(author_id),
            author_name=_clean_filter(author_name),
        ),
        sort_by=normalize_sort_field(sort_by),
        order=normalize_sort_order(order),
        page=normalize_page(page),
        limit=normalize_limit(limit),
    )


# ------------------------- Result shaping ------------------------- #
def build_pagination(page: int, limit: int, total: int) -> Pagination:
    # never zero pages, so "page 1 of 1" is valid for an empty result
    total_pages = max(math.ceil(total / limit), 1)
    return Pagination(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


async def search_books(store: BookStore, params: SearchParams) -> SearchResult:
    """Run the count and the page query concurrently and shape the result.

    Store errors propagate unchanged; the caller decides how to report them.
    """
    logger.debug(
        "Searching books: filters=%s sort=%s %s page=%d limit=%d",
        params.filters, params.sort_by.value, params.order.value, params.page, params.limit,
    )
    total, books = await asyncio.gather(
        asyncio.to_thread(store.count_books, params.filters),
        asyncio.to_thread(
            store.find_books, params.filters, params.sort_by, params.order, params.limit, params.offset
        ),
    )
    return SearchResult(data=books, pagination=build_pagination(params.page, params.limit, total))


def search_books_sync(store: BookStore, params: SearchParams) -> SearchResult:
    """Blocking variant for callers without an event loop (the CLI)."""
    return asyncio.run(search_books(store, params))
