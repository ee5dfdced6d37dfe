"""Filters, projections, sorts and pipelines used by the bookstore examples.

Everything here is a plain MongoDB query document. Nothing is executed in
this module; callers hand the documents to :class:`bookstore.mongo_api.BookstoreClient`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

ASCENDING = 1
DESCENDING = -1

TITLE_AUTHOR_PRICE = {"_id": 0, "title": 1, "author": 1, "price": 1}
TITLE_PRICE = {"_id": 0, "title": 1, "price": 1}

SORT_FIELDS = {
    "price": [("price", ASCENDING)],
    "-price": [("price", DESCENDING)],
    "title": [("title", ASCENDING)],
    "-title": [("title", DESCENDING)],
    "year": [("published_year", ASCENDING)],
    "-year": [("published_year", DESCENDING)],
}


@dataclass(frozen=True, slots=True)
class IndexSpec:
    name: str
    keys: tuple[tuple[str, int], ...]


TITLE_INDEX = IndexSpec(name="idx_title_asc", keys=(("title", ASCENDING),))
AUTHOR_YEAR_INDEX = IndexSpec(
    name="idx_author_year",
    keys=(("author", ASCENDING), ("published_year", DESCENDING)),
)
EXAMPLE_INDEXES = (TITLE_INDEX, AUTHOR_YEAR_INDEX)


def genre_filter(genre: str) -> dict[str, Any]:
    return {"genre": genre}


def author_filter(author: str) -> dict[str, Any]:
    return {"author": author}


def title_filter(title: str) -> dict[str, Any]:
    return {"title": title}


def published_after_filter(year: int) -> dict[str, Any]:
    return {"published_year": {"$gt": year}}


def in_stock_filter() -> dict[str, Any]:
    return {"in_stock": True}


def combine_filters(*filters: dict[str, Any]) -> dict[str, Any]:
    """Merge filters into one implicit-AND document.

    Conditions on the same field are merged operator by operator, so
    ``{"published_year": {"$gt": 2010}}`` and ``{"published_year": {"$lt": 2020}}``
    become a single range.
    """
    combined: dict[str, Any] = {}
    for item in filters:
        for field, condition in item.items():
            existing = combined.get(field)
            if isinstance(existing, dict) and isinstance(condition, dict):
                combined[field] = {**existing, **condition}
            else:
                combined[field] = condition
    return combined


def build_book_filter(
    *,
    genre: str | None = None,
    author: str | None = None,
    title: str | None = None,
    published_after: int | None = None,
    in_stock: bool | None = None,
) -> dict[str, Any]:
    parts: list[dict[str, Any]] = []
    if genre:
        parts.append(genre_filter(genre))
    if author:
        parts.append(author_filter(author))
    if title:
        parts.append(title_filter(title))
    if published_after is not None:
        parts.append(published_after_filter(published_after))
    if in_stock is not None:
        parts.append({"in_stock": in_stock})
    return combine_filters(*parts)


def author_since_filter(author: str, year: int) -> dict[str, Any]:
    return {"author": author, "published_year": {"$gte": year}}


def price_update(price: float) -> dict[str, Any]:
    if price < 0:
        raise ValueError("Price cannot be negative.")
    return {"$set": {"price": price}}


def parse_sort(value: str) -> list[tuple[str, int]]:
    key = value.strip().lower()
    if key not in SORT_FIELDS:
        raise ValueError(f"Unknown sort {value!r}. Choose from: {', '.join(SORT_FIELDS)}.")
    return list(SORT_FIELDS[key])


def page_window(page: int, page_size: int) -> tuple[int, int]:
    """Return ``(skip, limit)`` for a 1-based page number."""
    if page < 1:
        raise ValueError("Page numbers start at 1.")
    if page_size < 1:
        raise ValueError("Page size must be positive.")
    return (page - 1) * page_size, page_size


def average_price_by_genre_pipeline() -> list[dict[str, Any]]:
    return [
        {
            "$group": {
                "_id": "$genre",
                "averagePrice": {"$avg": "$price"},
                "count": {"$sum": 1},
            }
        },
        {"$sort": {"averagePrice": DESCENDING}},
    ]


def top_authors_pipeline(limit: int = 1) -> list[dict[str, Any]]:
    if limit < 1:
        raise ValueError("Limit must be positive.")
    return [
        {"$group": {"_id": "$author", "totalBooks": {"$sum": 1}}},
        {"$sort": {"totalBooks": DESCENDING}},
        {"$limit": limit},
    ]


def books_by_decade_pipeline() -> list[dict[str, Any]]:
    # 1987 -> "1980s"
    decade_start = {"$multiply": [{"$floor": {"$divide": ["$published_year", 10]}}, 10]}
    return [
        {"$project": {"decade": {"$concat": [{"$toString": decade_start}, "s"]}}},
        {"$group": {"_id": "$decade", "count": {"$sum": 1}}},
        {"$sort": {"_id": ASCENDING}},
    ]
