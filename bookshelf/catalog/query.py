"""
Read-only queries over a loaded book collection.

``filter_books()`` applies a ``BookFilter`` and ``calculate_stats()``
aggregates counts and averages. Both are pure functions over a list of
``Book`` objects; loading and locking are the caller's business (see
``store.BookCollection``).
"""

from __future__ import annotations

from collections import Counter
from typing import Callable, List

from ..models import Book, BookFilter, BookStats, Status


def _norm(s: str) -> str:
    return (s or "").lower()


def _type_matches(book: Book, query: BookFilter) -> bool:
    if not query.types:
        return True
    wanted = set(query.types)
    return any(t in wanted for t in book.types)


def _status_matches(book: Book, query: BookFilter) -> bool:
    return not query.status or book.status in query.status


def _genre_matches(book: Book, query: BookFilter) -> bool:
    return not query.genre or book.genre in query.genre


def _author_matches(book: Book, query: BookFilter) -> bool:
    return not query.author or book.author in query.author


def _rating_matches(book: Book, query: BookFilter) -> bool:
    return query.rating <= 0 or book.rating >= query.rating


def _search_matches(book: Book, query: BookFilter) -> bool:
    if not query.search:
        return True
    needle = _norm(query.search)
    return (
        needle in _norm(book.title)
        or needle in _norm(book.author)
        or needle in _norm(book.description)
    )


# Evaluated in this order; the first failing constraint excludes the book.
CONSTRAINTS: List[Callable[[Book, BookFilter], bool]] = [
    _type_matches,
    _status_matches,
    _genre_matches,
    _author_matches,
    _rating_matches,
    _search_matches,
]


def filter_books(books: List[Book], query: BookFilter) -> List[Book]:
    """Return the books satisfying every constraint of ``query``.

    Parameters
    ----------
    books : List[Book]
        The collection to filter. It is not modified.
    query : BookFilter
        Empty lists, a zero rating and an empty search string are vacuous
        and accept every book. Within one list field any value matches
        (OR); across fields all must match (AND). The search string is
        matched case-insensitively as a substring of the title, author or
        description.

    Returns
    -------
    List[Book]
        Matching books in their original order.
    """
    return [b for b in books if all(check(b, query) for check in CONSTRAINTS)]


def calculate_stats(books: List[Book]) -> BookStats:
    """Aggregate counts, average rating and pages read in one pass.

    A book in several formats counts once per format in ``by_type``. Unrated
    books (rating 0) stay in the average's denominator. Only completed books
    contribute to ``pages_read``.
    """
    by_type: Counter = Counter()
    by_status: Counter = Counter()
    by_genre: Counter = Counter()
    rating_sum = 0
    pages_read = 0

    for book in books:
        for book_type in book.types:
            by_type[book_type] += 1
        by_status[book.status] += 1
        if book.genre:
            by_genre[book.genre] += 1
        rating_sum += book.rating
        if book.status == Status.COMPLETED and book.pages > 0:
            pages_read += book.pages

    return BookStats(
        total_books=len(books),
        by_type=dict(by_type),
        by_status=dict(by_status),
        by_genre=dict(by_genre),
        average_rating=rating_sum / len(books) if books else 0.0,
        pages_read=pages_read,
    )
