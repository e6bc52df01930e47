"""
Tests for configuration and logging setup.
"""

import logging

import pytest
import structlog
from pydantic import ValidationError

from api.config import APIConfig, config as api_config
from api.main import app
from utilities.config import CatalogConfig
from utilities.logger import get_logger, setup_logging


class TestCatalogConfig:
    """Test cases for CatalogConfig."""

    def test_defaults(self, monkeypatch):
        for name in ("MONGODB_URL", "MONGODB_DATABASE", "LOG_LEVEL", "LOG_FORMAT", "DEBUG"):
            monkeypatch.delenv(name, raising=False)

        config = CatalogConfig(_env_file=None)

        assert config.mongodb_url == "mongodb://localhost:27017"
        assert config.mongodb_database == "library_catalog"
        assert config.authors_collection == "authors"
        assert config.books_collection == "books"
        assert config.log_level == "INFO"
        assert config.get_log_file_path() is None
        assert config.debug is False

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("MONGODB_DATABASE", "catalog_test")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("LOG_FORMAT", "CONSOLE")
        monkeypatch.setenv("DEBUG", "true")

        config = CatalogConfig(_env_file=None)

        assert config.mongodb_database == "catalog_test"
        assert config.log_level == "DEBUG"
        assert config.log_format == "console"
        assert config.debug is True

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError) as exc_info:
            CatalogConfig(_env_file=None, log_level="LOUD")

        assert "log_level must be one of" in str(exc_info.value)

    def test_invalid_log_format(self):
        with pytest.raises(ValidationError):
            CatalogConfig(_env_file=None, log_format="xml")


class TestAPIConfig:
    """Test cases for APIConfig."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("PORT", raising=False)
        monkeypatch.delenv("DEBUG", raising=False)

        config = APIConfig(_env_file=None)

        assert config.port == 8000
        assert config.debug is False
        assert config.cors_origins == ["*"]

    def test_description_used_by_app(self):
        assert app.description == api_config.api_description
        assert "Library" in app.openapi()["info"]["description"]


class TestLogging:
    """Test cases for structlog setup."""

    def test_setup_logging_with_file(self, tmp_path):
        log_file = tmp_path / "logs" / "catalog.log"

        setup_logging(log_level="INFO", log_format="json", log_file=log_file)

        assert log_file.parent.exists()
        root_handlers = logging.getLogger().handlers
        file_handlers = [h for h in root_handlers if isinstance(h, logging.FileHandler)]
        assert any(h.baseFilename == str(log_file) for h in file_handlers)

        for handler in file_handlers:
            logging.getLogger().removeHandler(handler)
            handler.close()
        structlog.reset_defaults()

    def test_get_logger(self):
        logger = get_logger("catalog.test")
        assert hasattr(logger, "info")
