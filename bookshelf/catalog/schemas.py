"""
Request and response envelopes for the bookshelf API.

Domain types (``Book``, ``BookFilter``, ``BookStats``, ...) live in
``bookshelf.models``; the models here only wrap them the way clients send
and receive them, e.g. ``{"book": {...}, "key": "..."}`` for mutations and
``{"books": [...]}`` for listings.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models import Book, BookMetadata, FeaturedBook


class Books(BaseModel):
    """The collection envelope, as served and as stored in ``books.json``."""

    books: List[Book] = Field(default_factory=list)


class PostBook(BaseModel):
    """Mutation envelope for ``POST``/``PUT``/``DELETE /books``.

    ``key`` is the shared secret; it may be omitted when the server runs
    without one. For ``DELETE`` only ``book.id`` is read.
    """

    book: Book
    key: str = ""


class PostFeatured(BaseModel):
    featured_book: FeaturedBook
    key: str = ""


class LookupRequest(BaseModel):
    isbn: str = ""


class LookupResponse(BaseModel):
    success: bool
    book: Optional[BookMetadata] = None
    message: Optional[str] = None


class HealthStatus(BaseModel):
    status: str = "healthy"
    timestamp: datetime
    service: str
    version: str
    storage: str
