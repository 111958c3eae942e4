"""
Catalog package for the bookshelf API.

This package holds the collection engine (``store``), the read-only
queries over a loaded collection (``query``), the Open Library lookup
(``openlibrary_service``) and the REST routes that expose them
(``router``). Persistence itself lives in ``bookshelf.storage`` so the
backend can be swapped without touching anything here.
"""

from .router import router as catalog_router  # noqa: F401
from .store import BookCollection  # noqa: F401
