# bookshelf/storage.py
"""Persistent stores for the book collection.

Two interchangeable backends hold the collection:

* ``JsonFileStore`` keeps the whole collection in one JSON document,
  ``{"books": [...]}``. Any change rewrites the document.
* ``SqliteStore`` keeps one row per book keyed by ISBN, plus a
  ``featured`` table of ISBNs flagged as currently read.

Each store owns a ``ReadWriteLock``. The collection engine takes it
shared for reads and exclusive for a whole load/modify/persist cycle; the
stores themselves do no locking. Backend failures are raised as
``StoreReadError`` / ``StoreWriteError`` / ``DuplicateKey`` and translated
by the engine.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
from contextlib import contextmanager, suppress
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .errors import DuplicateKey, StoreReadError, StoreWriteError
from .models import Book, FeaturedBook, Status


logger = logging.getLogger(__name__)

SAMPLE_FILE = Path(__file__).resolve().parent / "data" / "sample_books.json"


class ReadWriteLock:
    """Many concurrent readers or a single writer.

    New readers wait while a writer is queued. Not reentrant.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self):
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
                if not self._writers_waiting:
                    self._cond.notify_all()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def load_sample_books(path: Path = SAMPLE_FILE) -> List[Book]:
    """Load the bundled sample books used to seed an empty store.

    Returns an empty list if the sample file is missing or malformed.
    """
    try:
        with path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
        return [Book.model_validate(entry) for entry in raw.get("books") or []]
    except (OSError, AttributeError, TypeError, ValueError) as exc:
        logger.warning("Could not load sample books from %s: %s", path, exc)
        return []


def _stamp_added(books: List[Book]) -> List[Book]:
    now = datetime.now(timezone.utc)
    return [b if b.added else b.model_copy(update={"added": now}) for b in books]


class BookStore:
    """Interface shared by the store backends."""

    #: tag reported by ``/health``
    name = "abstract"
    #: the ISBN doubles as identifier and must be unique
    natural_key = False
    #: featured books are explicit flags rather than derived from status
    featured_flags = False

    def __init__(self) -> None:
        self.lock = ReadWriteLock()

    def initialize(self, seed: Optional[List[Book]] = None) -> None:
        raise NotImplementedError

    def read_all(self) -> List[Book]:
        raise NotImplementedError

    def insert(self, book: Book) -> None:
        raise NotImplementedError

    def update(self, book: Book) -> bool:
        """Replace the stored book with ``book.id``; False if there is none."""
        raise NotImplementedError

    def delete(self, book_id: str) -> bool:
        """Delete the stored book with ``book_id``; False if there is none."""
        raise NotImplementedError

    def featured(self) -> List[str]:
        raise NotImplementedError

    def set_featured(self, featured: FeaturedBook) -> None:
        raise NotImplementedError


class JsonFileStore(BookStore):
    """Whole collection serialized as a single JSON document."""

    name = "json-file"

    def __init__(self, path) -> None:
        super().__init__()
        self.path = Path(path)

    def initialize(self, seed: Optional[List[Book]] = None) -> None:
        """Create the document if it does not exist yet."""
        if self.path.exists():
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        books = _stamp_added(seed or [])
        self.write_all(books)
        logger.info("Initialized %s with %d book(s)", self.path, len(books))

    def read_all(self) -> List[Book]:
        # A document that was never written is an empty collection, not an error.
        if not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as exc:
            raise StoreReadError(f"Error reading {self.path}: {exc}") from exc
        try:
            return [Book.model_validate(entry) for entry in raw.get("books") or []]
        except (AttributeError, TypeError, ValueError) as exc:
            raise StoreReadError(f"Error parsing {self.path}: {exc}") from exc

    def write_all(self, books: List[Book]) -> None:
        data = {"books": [b.to_document() for b in books]}
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except (OSError, TypeError, ValueError) as exc:
            with suppress(OSError):
                tmp.unlink()
            raise StoreWriteError(f"Error writing {self.path}: {exc}") from exc

    def insert(self, book: Book) -> None:
        books = self.read_all()
        books.append(book)
        self.write_all(books)

    def update(self, book: Book) -> bool:
        books = self.read_all()
        for i, existing in enumerate(books):
            if existing.id == book.id:
                books[i] = book
                self.write_all(books)
                return True
        return False

    def delete(self, book_id: str) -> bool:
        books = self.read_all()
        for i, existing in enumerate(books):
            if existing.id == book_id:
                del books[i]
                self.write_all(books)
                return True
        return False

    def featured(self) -> List[str]:
        return [b.id for b in self.read_all() if b.status == Status.READING]


# Column order of the ``books`` table; names match the wire names of ``Book``.
BOOK_COLUMNS = (
    "isbn", "id", "name", "author", "type", "description", "cover", "genre",
    "tags", "link", "status", "rating", "pages", "duration", "publisher",
    "published", "added", "started", "finished", "notes", "series",
    "series_order",
)
_JSON_COLUMNS = ("type", "tags")


class SqliteStore(BookStore):
    """Row-per-book store keyed by ISBN."""

    name = "sqlite"
    natural_key = True
    featured_flags = True

    def __init__(self, path) -> None:
        super().__init__()
        self.path = str(path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path, timeout=15)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize(self, seed: Optional[List[Book]] = None) -> None:
        """Create the tables if needed. ``seed`` is ignored: sample books carry no ISBN."""
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS books (
                    isbn TEXT PRIMARY KEY,
                    id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    author TEXT,
                    type TEXT,
                    description TEXT,
                    cover TEXT,
                    genre TEXT,
                    tags TEXT,
                    link TEXT NOT NULL,
                    status TEXT,
                    rating INTEGER DEFAULT 0,
                    pages INTEGER DEFAULT 0,
                    duration TEXT,
                    publisher TEXT,
                    published TEXT,
                    added TEXT,
                    started TEXT,
                    finished TEXT,
                    notes TEXT,
                    series TEXT,
                    series_order INTEGER DEFAULT 0
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS featured (
                    isbn TEXT PRIMARY KEY,
                    current INTEGER NOT NULL DEFAULT 0
                )
            """)
            conn.commit()
        except sqlite3.Error as exc:
            raise StoreWriteError(f"Error creating schema in {self.path}: {exc}") from exc
        finally:
            conn.close()

    @staticmethod
    def _to_row(book: Book) -> tuple:
        doc = book.to_document()
        for col in _JSON_COLUMNS:
            doc[col] = json.dumps(doc[col])
        return tuple(doc[col] for col in BOOK_COLUMNS)

    @staticmethod
    def _from_row(row: sqlite3.Row) -> Book:
        doc = dict(row)
        for col in _JSON_COLUMNS:
            doc[col] = json.loads(doc[col]) if doc[col] else []
        return Book.model_validate(doc)

    def read_all(self) -> List[Book]:
        conn = self._connect()
        try:
            rows = conn.execute(
                f"SELECT {', '.join(BOOK_COLUMNS)} FROM books ORDER BY rowid"
            ).fetchall()
            return [self._from_row(row) for row in rows]
        except (sqlite3.Error, ValueError) as exc:
            raise StoreReadError(f"Error reading books from {self.path}: {exc}") from exc
        finally:
            conn.close()

    def _write(self, sql: str, params: tuple) -> int:
        conn = self._connect()
        try:
            cur = conn.execute(sql, params)
            conn.commit()
            return cur.rowcount
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise DuplicateKey(str(exc)) from exc
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreWriteError(f"Error writing to {self.path}: {exc}") from exc
        finally:
            conn.close()

    def insert(self, book: Book) -> None:
        placeholders = ", ".join("?" for _ in BOOK_COLUMNS)
        self._write(
            f"INSERT INTO books ({', '.join(BOOK_COLUMNS)}) VALUES ({placeholders})",
            self._to_row(book),
        )
        logger.info("Inserted book %s", book.isbn)

    def update(self, book: Book) -> bool:
        # The ISBN is the key, so it is matched rather than updated.
        assignments = ", ".join(f"{col} = ?" for col in BOOK_COLUMNS[1:])
        row = self._to_row(book)
        return self._write(
            f"UPDATE books SET {assignments} WHERE isbn = ?",
            row[1:] + (book.id,),
        ) > 0

    def delete(self, book_id: str) -> bool:
        return self._write("DELETE FROM books WHERE isbn = ?", (book_id,)) > 0

    def featured(self) -> List[str]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT isbn FROM featured WHERE current ORDER BY rowid"
            ).fetchall()
            return [row["isbn"] for row in rows]
        except sqlite3.Error as exc:
            raise StoreReadError(f"Error reading featured from {self.path}: {exc}") from exc
        finally:
            conn.close()

    def set_featured(self, featured: FeaturedBook) -> None:
        self._write(
            "INSERT INTO featured (isbn, current) VALUES (?, ?) "
            "ON CONFLICT(isbn) DO UPDATE SET current = excluded.current",
            (featured.isbn, int(featured.current)),
        )
        logger.info("Featured %s set to %s", featured.isbn, featured.current)
