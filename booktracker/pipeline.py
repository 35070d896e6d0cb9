# booktracker/pipeline.py
"""
Client-side filter, sort and paginate over an in-memory book collection.

The repositories that query a remote store build the same predicates and
ordering server-side; this module is the reference for what they must return.
"""
from datetime import date
from typing import Dict, Iterable, List, Optional

from booktracker.models import Book, BookQuery, Page, SORT_FIELDS, DEFAULT_PAGE_SIZE

def matches(book: Book, query: BookQuery) -> bool:
    """True when the book satisfies every active filter of the query."""
    if query.search:
        term = query.search.lower()
        haystacks = (book.title or "", book.author or "", book.series_name or "")
        if not any(term in h.lower() for h in haystacks):
            return False
    if query.genre and query.genre not in (book.genres or []):
        return False
    if query.year is not None and book.completion_year != query.year:
        return False
    if query.which_witch and book.which_witch != query.which_witch:
        return False
    return True

def filter_books(books: Iterable[Book], query: BookQuery) -> List[Book]:
    return [b for b in books if matches(b, query)]

def _sort_key(field: str):
    if field == "title":
        return lambda b: (b.title or "").casefold()
    if field == "author":
        return lambda b: (b.author or "").casefold()
    if field == "date":
        return lambda b: (b.completion_year, b.completion_month)
    if field == "rating":
        return lambda b: b.overall_rating or 0.0
    if field == "genre":
        return lambda b: b.genres[0].casefold()
    raise ValueError(f"unknown sort field: {field}")

def sort_books(books: Iterable[Book], field: str = "date", direction: str = "desc") -> List[Book]:
    """
    Return a new list ordered by `field`. Ties keep their input order.
    Books without genres always go last when sorting by genre.
    """
    reverse = direction == "desc"
    items = list(books)
    if field == "genre":
        with_genre = [b for b in items if b.genres]
        without = [b for b in items if not b.genres]
        return sorted(with_genre, key=_sort_key(field), reverse=reverse) + without
    return sorted(items, key=_sort_key(field), reverse=reverse)

def toggle_sort(query: BookQuery, field: str) -> BookQuery:
    """Clicking the active sort field flips its direction; a new field starts ascending."""
    if field not in SORT_FIELDS:
        raise ValueError(f"unknown sort field: {field}")
    if query.sort_field == field:
        return query.with_sort(field, "asc" if query.sort_direction == "desc" else "desc")
    return query.with_sort(field, "asc")

def paginate(items: List[Book], page: int = 0, page_size: int = DEFAULT_PAGE_SIZE) -> Page:
    if page < 0:
        raise ValueError("page must be >= 0")
    if page_size < 1:
        raise ValueError("page_size must be >= 1")
    start = page * page_size
    return Page(items=items[start:start + page_size], total=len(items), page=page, page_size=page_size)

def run_query(books: Iterable[Book], query: BookQuery, page: Optional[int] = None,
              page_size: int = DEFAULT_PAGE_SIZE) -> Page:
    """Filter, sort and window. page=None returns the whole result as one page."""
    ordered = sort_books(filter_books(books, query), query.sort_field, query.sort_direction)
    if page is None:
        return Page(items=ordered, total=len(ordered), page=0, page_size=max(len(ordered), 1))
    return paginate(ordered, page, page_size)

def distinct_years(books: Iterable[Book]) -> List[int]:
    return sorted({b.completion_year for b in books if b.completion_year}, reverse=True)

def collection_stats(books: Iterable[Book], today: Optional[date] = None) -> Dict[str, int]:
    today = today or date.today()
    books = list(books)
    return {
        "total_books": len(books),
        "books_this_year": len([b for b in books if b.completion_year == today.year]),
    }
