"""
Route definitions for the bookshelf API.

Endpoints:
- GET    /books          : the whole collection, ``{"books": [...]}``
- POST   /books          : add a book (201)
- PUT    /books          : replace a book by id
- DELETE /books          : remove a book by id (204)
- POST   /books/filter   : filtered collection
- GET    /books/stats    : aggregate statistics
- POST   /books/lookup   : Open Library lookup by ISBN (advisory)
- GET    /featured       : ids of the books currently being read
- POST   /featured       : flag an ISBN as featured (sqlite store only)

Routes are plain ``def`` functions, so FastAPI runs each request on its
own worker thread; ``BookCollection`` does the locking.
"""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from ..errors import BookshelfError, MetadataLookupError
from ..models import Book, BookFilter, BookStats, FeaturedBook
from . import openlibrary_service
from .schemas import Books, LookupRequest, LookupResponse, PostBook, PostFeatured
from .store import BookCollection


logger = logging.getLogger(__name__)

router = APIRouter(tags=["books"])


def get_collection(request: Request) -> BookCollection:
    return request.app.state.collection


def _http_error(exc: BookshelfError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))


@router.get("/books", response_model=Books)
def list_books(collection: BookCollection = Depends(get_collection)) -> Books:
    try:
        return Books(books=collection.load())
    except BookshelfError as exc:
        raise _http_error(exc) from exc


@router.post("/books", response_model=Book, status_code=201)
def add_book(req: PostBook, collection: BookCollection = Depends(get_collection)) -> Book:
    try:
        return collection.append(req.book, key=req.key)
    except BookshelfError as exc:
        raise _http_error(exc) from exc


@router.put("/books", response_model=Book)
def update_book(req: PostBook, collection: BookCollection = Depends(get_collection)) -> Book:
    try:
        return collection.replace(req.book.id, req.book, key=req.key)
    except BookshelfError as exc:
        raise _http_error(exc) from exc


@router.delete("/books", status_code=204)
def delete_book(req: PostBook, collection: BookCollection = Depends(get_collection)) -> Response:
    try:
        collection.remove(req.book.id, key=req.key)
    except BookshelfError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)


@router.post("/books/filter", response_model=Books)
def filter_books(query: BookFilter, collection: BookCollection = Depends(get_collection)) -> Books:
    try:
        return Books(books=collection.filter(query))
    except BookshelfError as exc:
        raise _http_error(exc) from exc


@router.get("/books/stats", response_model=BookStats)
def book_stats(collection: BookCollection = Depends(get_collection)) -> BookStats:
    try:
        return collection.stats()
    except BookshelfError as exc:
        raise _http_error(exc) from exc


@router.post("/books/lookup", response_model=LookupResponse, response_model_exclude_none=True)
def lookup_book(req: LookupRequest, request: Request) -> LookupResponse:
    """Look up an ISBN on Open Library.

    Failures never become error statuses: the client gets
    ``success: false`` and a message, and can still add the book by hand.
    """
    isbn = openlibrary_service.normalize_isbn(req.isbn)
    if not isbn:
        raise HTTPException(status_code=400, detail="ISBN is required")
    try:
        book = openlibrary_service.lookup_isbn(isbn, timeout=request.app.state.config.LOOKUP_TIMEOUT)
    except MetadataLookupError as exc:
        logger.error("Error looking up book %s: %s", isbn, exc)
        return LookupResponse(success=False, message="Failed to lookup book details")
    if book is None:
        return LookupResponse(success=False, message="Book not found")
    return LookupResponse(success=True, book=book)


@router.get("/featured", response_model=List[str])
def list_featured(collection: BookCollection = Depends(get_collection)) -> List[str]:
    try:
        return collection.featured()
    except BookshelfError as exc:
        raise _http_error(exc) from exc


@router.post("/featured", response_model=FeaturedBook)
def set_featured(req: PostFeatured, collection: BookCollection = Depends(get_collection)) -> FeaturedBook:
    try:
        return collection.set_featured(req.featured_book, key=req.key)
    except BookshelfError as exc:
        raise _http_error(exc) from exc
