"""Application configuration."""

import os
from functools import lru_cache
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Settings read from the environment, with local defaults."""

    project_name: str = os.getenv("PROJECT_NAME", "Place Discovery API")
    api_prefix: str = os.getenv("API_PREFIX", "/api")

    mongo_uri: str = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    mongo_db_name: str = os.getenv("MONGO_DB_NAME", "places_db")
    mongo_server_selection_timeout_ms: int = int(os.getenv("MONGO_SERVER_SELECTION_TIMEOUT_MS", "5000"))

    jwt_secret: str = os.getenv("JWT_SECRET", "dev-only-secret-change-me-in-production")
    jwt_algorithm: str = "HS256"
    jwt_expires_hours: int = int(os.getenv("JWT_EXPIRES_HOURS", "24"))

    default_page_limit: int = 10
    max_page_limit: int = int(os.getenv("MAX_PAGE_LIMIT", "100"))
    default_radius_km: float = 5.0
    recent_reviews_limit: int = 5

    debug: bool = _as_bool(os.getenv("DEBUG", "false"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    cors_origins: List[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
