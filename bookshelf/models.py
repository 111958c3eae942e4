# bookshelf/models.py
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BookType(str, Enum):
    PHYSICAL = "physical"
    AUDIBLE = "audible"
    KINDLE = "kindle"
    EBOOK = "ebook"


class Status(str, Enum):
    UNREAD = "unread"
    READING = "reading"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    WANT_TO_READ = "want_to_read"


# Older documents store unset timestamps as the zero time instead of null.
ZERO_TIME_PREFIX = "0001-01-01"


class Book(BaseModel):
    """A single entry of the bookshelf.

    Attribute names are the Python-facing ones; the aliases (``name``,
    ``type``) are the field names used on the wire and in ``books.json``.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    isbn: str = ""
    title: str = Field(default="", alias="name")
    author: str = ""
    types: List[BookType] = Field(default_factory=list, alias="type")
    description: str = ""
    cover: str = ""
    genre: str = ""
    tags: List[str] = Field(default_factory=list)
    link: str = ""
    status: Status = Status.UNREAD
    rating: int = 0
    pages: int = Field(default=0, ge=0)
    duration: str = ""
    publisher: str = ""
    published: Optional[datetime] = None
    added: Optional[datetime] = None
    started: Optional[datetime] = None
    finished: Optional[datetime] = None
    notes: str = ""
    series: str = ""
    series_order: int = 0

    @field_validator("types", "tags", mode="before")
    @classmethod
    def _null_list(cls, value):
        return [] if value is None else value

    @field_validator("status", mode="before")
    @classmethod
    def _blank_status(cls, value):
        return Status.UNREAD if value in (None, "") else value

    @field_validator("published", "added", "started", "finished", mode="before")
    @classmethod
    def _zero_time(cls, value):
        if value in ("", None):
            return None
        if isinstance(value, str) and value.startswith(ZERO_TIME_PREFIX):
            return None
        return value

    def to_document(self) -> dict:
        """Serialize with wire names, as stored and served."""
        return self.model_dump(mode="json", by_alias=True)


class BookFilter(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    types: List[BookType] = Field(default_factory=list, alias="type")
    status: List[Status] = Field(default_factory=list)
    genre: List[str] = Field(default_factory=list)
    author: List[str] = Field(default_factory=list)
    rating: int = 0
    search: str = ""

    @field_validator("types", "status", "genre", "author", mode="before")
    @classmethod
    def _null_list(cls, value):
        return [] if value is None else value


class BookStats(BaseModel):
    total_books: int = 0
    by_type: Dict[BookType, int] = Field(default_factory=dict)
    by_status: Dict[Status, int] = Field(default_factory=dict)
    by_genre: Dict[str, int] = Field(default_factory=dict)
    average_rating: float = 0.0
    pages_read: int = 0


class FeaturedBook(BaseModel):
    isbn: str
    current: bool = False


class BookMetadata(BaseModel):
    """Partial record returned by an ISBN lookup.

    Every field is optional; serialize with ``exclude_none`` so clients only
    see what the provider actually knew.
    """

    isbn: Optional[str] = None
    title: Optional[str] = None
    author: Optional[str] = None
    pages: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = None
    genre: Optional[str] = None
    cover: Optional[str] = None
