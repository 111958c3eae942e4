"""Tests for the Open Library ISBN lookup."""
import http.client

import pytest
from pydantic import ValidationError

from bookshelf.catalog import openlibrary_service as ol
from bookshelf.errors import MetadataLookupError
from bookshelf.models import BookMetadata

from .conftest import make_book


class FakeOpenLibrary:
    """Stands in for ``_http_get_json``: answers from a url -> payload map.

    A payload that is an exception instance is raised instead of returned;
    unknown urls answer like a 404.
    """

    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    def __call__(self, url, timeout=ol.DEFAULT_TIMEOUT):
        self.calls.append((url, timeout))
        payload = self.responses.get(url)
        if isinstance(payload, Exception):
            raise payload
        return payload


def edition_url(isbn):
    return f"https://openlibrary.org/isbn/{isbn}.json"


@pytest.fixture
def fake(monkeypatch):
    def install(responses):
        fake = FakeOpenLibrary(responses)
        monkeypatch.setattr(ol, "_http_get_json", fake)
        return fake
    return install


def test_normalize_isbn():
    assert ol.normalize_isbn("978-0-441 17271-9") == "9780441172719"
    assert ol.normalize_isbn("") == ""


def test_lookup_maps_edition_fields(fake):
    fake({
        edition_url("9780441172719"): {
            "title": "Dune",
            "authors": [{"key": "/authors/OL79034A"}],
            "number_of_pages": 412,
            "description": {"type": "/type/text", "value": " Arrakis. "},
            "subjects": ["Science Fiction", "Ecology"],
            "covers": [12345],
        },
        "https://openlibrary.org/authors/OL79034A.json": {"name": "Frank Herbert"},
    })
    book = ol.lookup_isbn("978-0441172719")
    assert book == BookMetadata(
        isbn="9780441172719",
        title="Dune",
        author="Frank Herbert",
        pages=412,
        description="Arrakis.",
        genre="Science Fiction",
        cover="https://covers.openlibrary.org/b/id/12345-L.jpg",
    )


def test_lookup_passes_timeout(fake):
    calls = fake({edition_url("123"): {"title": "T"}}).calls
    ol.lookup_isbn("123", timeout=2.5)
    assert calls[0] == (edition_url("123"), 2.5)


def test_lookup_not_found(fake):
    fake({})
    assert ol.lookup_isbn("0000000000") is None


def test_lookup_error_propagates(fake):
    fake({edition_url("123"): MetadataLookupError("status 503")})
    with pytest.raises(MetadataLookupError):
        ol.lookup_isbn("123")


def test_cover_prefers_sized_links(fake):
    fake({edition_url("1"): {"cover": {"small": "s.jpg", "medium": "m.jpg"}, "cover_id": 9}})
    assert ol.lookup_isbn("1").cover == "m.jpg"


def test_cover_from_cover_id(fake):
    fake({edition_url("1"): {"cover_id": 9}})
    assert ol.lookup_isbn("1").cover == "https://covers.openlibrary.org/b/id/9-L.jpg"


def test_partial_record_leaves_unknown_fields_unset(fake):
    fake({edition_url("1"): {"title": "Bare", "description": "Plain text"}})
    book = ol.lookup_isbn("1")
    assert book.model_dump(exclude_none=True) == {
        "isbn": "1",
        "title": "Bare",
        "description": "Plain text",
    }


def test_author_resolved_by_key_is_cached(fake):
    calls = fake({"https://openlibrary.org/authors/OL1A.json": {"name": "Ursula K. Le Guin"}}).calls
    data = {"authors": [{"key": "/authors/OL1A"}]}
    assert ol.resolve_author(data, "1") == "Ursula K. Le Guin"
    assert ol.resolve_author(data, "1") == "Ursula K. Le Guin"
    assert len(calls) == 1


def test_author_falls_back_to_embedded_name(fake):
    fake({"https://openlibrary.org/authors/OL1A.json": MetadataLookupError("timeout")})
    data = {"authors": [{"key": "/authors/OL1A", "name": "Embedded Name"}]}
    assert ol.resolve_author(data, "1") == "Embedded Name"


def test_author_falls_back_to_top_level_author(fake):
    fake({})
    assert ol.resolve_author({"author": "Top Level"}, "1") == "Top Level"


def test_author_falls_back_to_correction_table(fake):
    fake({})
    assert ol.resolve_author({"title": "Anything"}, "9780141439518") == "Jane Austen"
    assert ol.resolve_author({"title": "The Hobbit, or There and Back Again"}, "1") == "J.R.R. Tolkien"


def test_author_unresolved(fake):
    fake({})
    assert ol.resolve_author({"title": "Unknown Book"}, "1") is None


def test_resolver_order_is_configurable():
    def first(data, isbn, timeout):
        return None

    def second(data, isbn, timeout):
        return "Second"

    def third(data, isbn, timeout):
        raise AssertionError("not reached")

    assert ol.resolve_author({}, "1", resolvers=[first, second, third]) == "Second"


def test_enrich_book_fills_only_empty_fields():
    book = make_book(title="My Title", author="", pages=0, genre="Mine")
    metadata = BookMetadata(title="Their Title", author="Someone", pages=300, genre="Theirs", cover="c.jpg")
    enriched = ol.enrich_book(book, metadata)
    assert enriched.title == "My Title"
    assert enriched.author == "Someone"
    assert enriched.pages == 300
    assert enriched.genre == "Mine"
    assert enriched.cover == "c.jpg"


def test_enrich_book_without_news_returns_same_book():
    book = make_book(title="Complete")
    assert ol.enrich_book(book, BookMetadata()) is book


@pytest.mark.parametrize("error", [
    http.client.IncompleteRead(b"", 10),
    http.client.LineTooLong("header line"),
    http.client.RemoteDisconnected("closed"),
])
def test_broken_responses_are_lookup_errors(monkeypatch, error):
    def urlopen(request, timeout):
        raise error

    monkeypatch.setattr(ol.urllib.request, "urlopen", urlopen)
    with pytest.raises(MetadataLookupError):
        ol.lookup_isbn("123")


@pytest.mark.parametrize("pages", [-1, 0])
def test_nonpositive_page_counts_are_dropped(fake, pages):
    fake({edition_url("1"): {"title": "T", "number_of_pages": pages}})
    assert ol.lookup_isbn("1").pages is None


def test_enrich_book_rejects_invalid_merge():
    with pytest.raises(ValidationError):
        ol.enrich_book(make_book(), BookMetadata.model_construct(pages=-3))
