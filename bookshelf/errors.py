# bookshelf/errors.py
"""Error taxonomy shared by the store, the collection engine and the API.

Each ``BookshelfError`` carries the HTTP status the router answers with.
Store-level exceptions stay separate so the collection engine decides how
a failed read or write surfaces to callers.
"""


class BookshelfError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)


class BadRequest(BookshelfError):
    status_code = 400


class Unauthorized(BookshelfError):
    status_code = 401


class NotFound(BookshelfError):
    status_code = 404


class MethodNotAllowed(BookshelfError):
    status_code = 405


class Conflict(BookshelfError):
    status_code = 409


class PersistenceError(BookshelfError):
    status_code = 500


class Unavailable(BookshelfError):
    status_code = 503


class StoreError(Exception):
    """Base class for failures raised by a store backend."""


class StoreReadError(StoreError):
    pass


class StoreWriteError(StoreError):
    pass


class DuplicateKey(StoreError):
    pass


class MetadataLookupError(Exception):
    """An ISBN lookup failed for reasons other than "not found"."""
