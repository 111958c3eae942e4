"""Shared fixtures for the bookshelf tests."""
import pytest
from fastapi.testclient import TestClient

from bookshelf.catalog import BookCollection
from bookshelf.catalog import openlibrary_service
from bookshelf.config import Config
from bookshelf.main import create_app
from bookshelf.models import Book, BookType, Status
from bookshelf.storage import JsonFileStore, SqliteStore


def make_book(**fields) -> Book:
    """Build a Book with sensible defaults for the fields a test does not care about."""
    defaults = {"title": "Untitled", "author": "Anonymous"}
    defaults.update(fields)
    return Book(**defaults)


@pytest.fixture
def sample_books():
    return [
        make_book(
            id="1",
            title="The Great Gatsby",
            author="F. Scott Fitzgerald",
            types=[BookType.PHYSICAL],
            status=Status.COMPLETED,
            rating=5,
            genre="Classic",
            pages=180,
            description="A story of the fabulously wealthy Jay Gatsby.",
        ),
        make_book(
            id="2",
            title="1984",
            author="George Orwell",
            types=[BookType.KINDLE],
            status=Status.READING,
            rating=0,
            genre="Dystopian",
            pages=328,
            description="A dystopian novel about totalitarianism and surveillance.",
        ),
        make_book(
            id="3",
            title="Dune",
            author="Frank Herbert",
            types=[BookType.AUDIBLE, BookType.EBOOK],
            status=Status.WANT_TO_READ,
            rating=4,
            genre="Science Fiction",
            pages=412,
            description="Spice, sandworms and politics on Arrakis.",
        ),
        make_book(
            id="4",
            title="Emma",
            author="Jane Austen",
            types=[BookType.PHYSICAL, BookType.KINDLE],
            status=Status.COMPLETED,
            rating=3,
            genre="",
            pages=0,
            description="",
        ),
    ]


@pytest.fixture
def json_store(tmp_path):
    return JsonFileStore(tmp_path / "books.json")


@pytest.fixture
def sqlite_store(tmp_path):
    store = SqliteStore(tmp_path / "books.db")
    store.initialize()
    return store


@pytest.fixture
def collection(json_store):
    return BookCollection(json_store)


@pytest.fixture(autouse=True)
def clear_author_cache():
    openlibrary_service._author_cache.clear()
    yield
    openlibrary_service._author_cache.clear()


@pytest.fixture
def make_client(tmp_path):
    """Factory returning a TestClient (lifespan started) for the given config overrides."""
    clients = []

    def _make(**overrides):
        options = {
            "BOOKS_FILE": str(tmp_path / "api-books.json"),
            "DATABASE_PATH": str(tmp_path / "api-books.db"),
            "SEED_SAMPLE_DATA": False,
            "POST_KEY": "secret",
            "ENRICH_ON_CREATE": False,
        }
        options.update(overrides)
        client = TestClient(create_app(Config(**options)))
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()


def docs(books):
    """Wire form of ``books``, for comparing collections field by field."""
    return [b.to_document() for b in books]
