"""
Collection engine for the bookshelf API.

``BookCollection`` wraps an injected ``BookStore`` and is the only way
routes read or change the collection. Every call rebuilds the collection
from the store; nothing is cached between requests.

Concurrency: reads take the store's lock shared, mutations take it
exclusively for the whole load/modify/persist cycle, so two concurrent
appends never lose one another's book.

Failures surface as ``BookshelfError`` subclasses (see ``errors.py``).
A failed read in ``load()`` degrades to an empty collection unless
``strict_reads`` is set; a failed read inside a mutation is always a
``PersistenceError`` so the engine never overwrites a store it could not
read.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

from pydantic import ValidationError

from ..errors import (
    BadRequest,
    Conflict,
    DuplicateKey,
    MetadataLookupError,
    MethodNotAllowed,
    NotFound,
    PersistenceError,
    StoreReadError,
    StoreWriteError,
    Unauthorized,
    Unavailable,
)
from ..models import Book, BookFilter, BookMetadata, BookStats, FeaturedBook
from ..storage import BookStore
from .openlibrary_service import enrich_book
from .query import calculate_stats, filter_books


logger = logging.getLogger(__name__)

Enricher = Callable[[str], Optional[BookMetadata]]


class IdGenerator:
    """Time-derived identifiers that never repeat within the process.

    Identifiers are nanoseconds since the epoch as decimal strings. When
    the clock does not advance between two calls (or steps backwards) the
    previous value plus one is used instead. Across restarts,
    ``BookCollection.append`` also skips ids already in the store.
    """

    def __init__(self, clock: Callable[[], int] = time.time_ns) -> None:
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            self._last = max(self._clock(), self._last + 1)
            return str(self._last)


class BookCollection:
    def __init__(
        self,
        store: BookStore,
        secret: str = "",
        strict_reads: bool = False,
        id_factory: Optional[Callable[[], str]] = None,
        enricher: Optional[Enricher] = None,
    ) -> None:
        self.store = store
        self.secret = secret or ""
        self.strict_reads = strict_reads
        self.new_id = id_factory or IdGenerator()
        self.enricher = enricher

    # ------------------------------------------------------------------
    # Reads

    def load(self) -> List[Book]:
        """Return the whole collection.

        A read failure is logged and answered with an empty collection,
        or raised as ``Unavailable`` when ``strict_reads`` is on.
        """
        with self.store.lock.read_locked():
            try:
                return self.store.read_all()
            except StoreReadError as exc:
                logger.error("Error loading books: %s", exc)
                if self.strict_reads:
                    raise Unavailable("Book store is unavailable") from exc
                return []

    def filter(self, query: BookFilter) -> List[Book]:
        return filter_books(self.load(), query)

    def stats(self) -> BookStats:
        return calculate_stats(self.load())

    def featured(self) -> List[str]:
        with self.store.lock.read_locked():
            try:
                return self.store.featured()
            except StoreReadError as exc:
                logger.error("Error loading featured books: %s", exc)
                if self.strict_reads:
                    raise Unavailable("Book store is unavailable") from exc
                return []

    # ------------------------------------------------------------------
    # Mutations

    def authorize(self, key: Optional[str]) -> None:
        """Reject ``key`` unless it matches the secret; an empty secret allows all."""
        if self.secret and key != self.secret:
            raise Unauthorized("Unauthorized")

    def _validate_natural_key(self, book: Book) -> None:
        if not book.isbn or not book.link or not book.title:
            raise BadRequest("isbn, link and name are required")

    def _enrich(self, book: Book) -> Book:
        if self.enricher is None or not book.isbn:
            return book
        try:
            metadata = self.enricher(book.isbn)
            if metadata is None:
                logger.info("No metadata found for ISBN %s", book.isbn)
                return book
            return enrich_book(book, metadata)
        except (MetadataLookupError, ValidationError) as exc:
            logger.warning("Lookup failed for ISBN %s, keeping book as given: %s", book.isbn, exc)
            return book

    def _unused_id(self) -> str:
        # Ids from an earlier run may be ahead of a clock that stepped back.
        taken = {b.id for b in self.store.read_all()}
        book_id = self.new_id()
        while book_id in taken:
            book_id = self.new_id()
        return book_id

    def append(self, book: Book, key: Optional[str] = None) -> Book:
        """Add ``book`` to the end of the collection and persist it.

        The identifier and ``added`` timestamp are assigned here; whatever
        the caller sent for them is discarded. With a natural-key store
        the ISBN is the identifier.
        """
        self.authorize(key)
        if self.store.natural_key:
            self._validate_natural_key(book)
        book = self._enrich(book)
        with self.store.lock.write_locked():
            try:
                book_id = book.isbn if self.store.natural_key else self._unused_id()
                created = book.model_copy(
                    update={"id": book_id, "added": datetime.now(timezone.utc)}
                )
                self.store.insert(created)
            except DuplicateKey as exc:
                raise Conflict(f"Book with ISBN {book.isbn} already exists") from exc
            except (StoreReadError, StoreWriteError) as exc:
                logger.error("Failed to save book: %s", exc)
                raise PersistenceError("Failed to save book") from exc
        logger.info("Added book %s (%s)", created.id, created.title)
        return created

    def replace(self, book_id: str, book: Book, key: Optional[str] = None) -> Book:
        """Overwrite the stored book ``book_id`` with ``book``.

        Every field is replaced except the identifier and the ``added``
        timestamp, which keep their stored values.
        """
        self.authorize(key)
        if not book_id:
            raise BadRequest("Book id is required")
        with self.store.lock.write_locked():
            try:
                existing = next((b for b in self.store.read_all() if b.id == book_id), None)
                if existing is None:
                    raise NotFound("Book not found")
                updates = {"id": existing.id, "added": existing.added}
                if self.store.natural_key:
                    updates["isbn"] = existing.isbn
                updated = book.model_copy(update=updates)
                if not self.store.update(updated):
                    raise NotFound("Book not found")
            except (StoreReadError, StoreWriteError) as exc:
                logger.error("Failed to update book %s: %s", book_id, exc)
                raise PersistenceError("Failed to update book") from exc
        return updated

    def remove(self, book_id: str, key: Optional[str] = None) -> None:
        """Delete the book ``book_id``; the rest keep their order."""
        self.authorize(key)
        if not book_id:
            raise BadRequest("Book id is required")
        with self.store.lock.write_locked():
            try:
                removed = self.store.delete(book_id)
            except (StoreReadError, StoreWriteError) as exc:
                logger.error("Failed to delete book %s: %s", book_id, exc)
                raise PersistenceError("Failed to delete book") from exc
        if not removed:
            raise NotFound("Book not found")
        logger.info("Deleted book %s", book_id)

    def set_featured(self, featured: FeaturedBook, key: Optional[str] = None) -> FeaturedBook:
        """Flag or unflag an ISBN as currently featured (sqlite store only)."""
        self.authorize(key)
        if not self.store.featured_flags:
            raise MethodNotAllowed("Featured books follow the reading status in this store")
        if not featured.isbn:
            raise BadRequest("isbn is required")
        with self.store.lock.write_locked():
            try:
                self.store.set_featured(featured)
            except (StoreReadError, StoreWriteError) as exc:
                logger.error("Failed to update featured %s: %s", featured.isbn, exc)
                raise PersistenceError("Failed to update featured book") from exc
        return featured
