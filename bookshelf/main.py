# bookshelf/main.py
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from functools import partial
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .catalog import BookCollection, catalog_router
from .catalog import openlibrary_service
from .catalog.schemas import HealthStatus
from .config import Config
from .storage import BookStore, JsonFileStore, SqliteStore, load_sample_books


SERVICE_NAME = "virtual-bookshelf"
VERSION = "1.0.0"

logger = logging.getLogger(__name__)


def build_store(config: Config) -> BookStore:
    if config.STORAGE_BACKEND == "json":
        return JsonFileStore(config.BOOKS_FILE)
    if config.STORAGE_BACKEND == "sqlite":
        return SqliteStore(config.DATABASE_PATH)
    raise ValueError(f"Unknown STORAGE_BACKEND: {config.STORAGE_BACKEND!r}")


def create_app(config: Optional[Config] = None) -> FastAPI:
    config = config or Config()
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    store = build_store(config)
    enricher = None
    if config.ENRICH_ON_CREATE:
        enricher = partial(openlibrary_service.lookup_isbn, timeout=config.LOOKUP_TIMEOUT)
    collection = BookCollection(
        store,
        secret=config.POST_KEY,
        strict_reads=config.STRICT_READS,
        enricher=enricher,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        seed = load_sample_books() if config.SEED_SAMPLE_DATA else None
        store.initialize(seed)
        logger.info("Serving %s with %s storage", SERVICE_NAME, store.name)
        if not config.POST_KEY:
            logger.warning("POST_KEY is not set: mutating endpoints are open")
        yield

    app = FastAPI(
        title="Virtual Bookshelf",
        description="Personal book tracking: collection, filters, statistics and ISBN lookup.",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.collection = collection

    @app.exception_handler(RequestValidationError)
    async def bad_request(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": "Bad request"})

    @app.get("/health", response_model=HealthStatus)
    def health_check() -> HealthStatus:
        return HealthStatus(
            timestamp=datetime.now(timezone.utc).replace(microsecond=0),
            service=SERVICE_NAME,
            version=VERSION,
            storage=store.name,
        )

    app.include_router(catalog_router)
    return app


app = create_app()
