"""
API configuration settings.
"""

from typing import List

from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "Library Catalog API"
    api_version: str = "1.0.0"
    api_description: str = """
    A REST API for a library catalog of authors and books.

    ## Features

    * **Authors**: Create, read, update and delete authors
    * **Books**: Create, read, update and delete books
    * **Search**: Filter books by title, genre and author name, with sorting and pagination
    * **Statistics**: Per-author aggregates (first/latest book, page extremes, genres)
    """

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # CORS Settings
    cors_origins: List[str] = ["*"]  # Configure appropriately for production
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    # Logging
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "extra": "ignore"  # Ignore extra fields from .env
    }


# Global config instance
config = APIConfig()
