"""Configuration management."""
import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration.

    Values are read when the instance is created, so tests can set
    environment variables (or pass keyword overrides) before building one.
    """

    def __init__(self, **overrides):
        # Auth: an empty key disables the check on mutating endpoints
        self.POST_KEY = os.getenv("POST_KEY", "")

        # Storage
        self.STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "json").lower()
        self.BOOKS_FILE = os.getenv("BOOKS_FILE", "books.json")
        self.DATABASE_PATH = os.getenv("DATABASE_PATH", "books.db")
        self.SEED_SAMPLE_DATA = _flag("SEED_SAMPLE_DATA", "true")
        self.STRICT_READS = _flag("STRICT_READS", "false")

        # Open Library
        self.ENRICH_ON_CREATE = _flag("ENRICH_ON_CREATE", "false")
        self.LOOKUP_TIMEOUT = float(os.getenv("LOOKUP_TIMEOUT", "10"))

        # Server
        self.HOST = os.getenv("HOST", "0.0.0.0")
        self.PORT = int(os.getenv("PORT", "4000"))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown config option: {key}")
            setattr(self, key, value)
