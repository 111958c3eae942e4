"""Run the bookshelf API with uvicorn: ``python -m bookshelf``."""
import uvicorn

from .config import Config
from .main import create_app


def main() -> None:
    config = Config()
    uvicorn.run(create_app(config), host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
