"""
Environment based configuration and logging setup.

Values are read from the process environment; a ``.env`` file in the
working directory is loaded first if present.  ``Settings.from_env`` is
called once by the application factory, so environment variables must be
set before the app is created.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """Application settings."""

    mongo_uri: str = "mongodb://localhost:27017/products"
    mongo_db: str = "products"
    mongo_collection: str = "products"
    mongo_timeout_ms: int = 5000
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    log_file: Optional[str] = None
    # Enables the image_url URL check and the /api-docs pages together.
    extended_api: bool = True
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv(find_dotenv(usecwd=True))
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            mongo_uri=os.getenv("MONGO_URI", cls.mongo_uri),
            mongo_db=os.getenv("MONGO_DB", cls.mongo_db),
            mongo_collection=os.getenv("MONGO_COLLECTION", cls.mongo_collection),
            mongo_timeout_ms=int(os.getenv("MONGO_TIMEOUT_MS", str(cls.mongo_timeout_ms))),
            host=os.getenv("HOST", cls.host),
            port=int(os.getenv("PORT", str(cls.port))),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            log_file=os.getenv("LOG_FILE") or None,
            extended_api=_env_flag("EXTENDED_API", "true"),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )


def setup_logging(level: str = "INFO", logfile: Optional[str] = None) -> None:
    """Configure the root logger.

    The level is always applied.  Handlers (console, plus a file handler
    when ``logfile`` is given) are only added if the root logger has none
    yet, so building several apps in one process, or running under
    uvicorn, does not duplicate output.
    """
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if logger.handlers:
        return

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if logfile:
        file_handler = logging.FileHandler(logfile, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
