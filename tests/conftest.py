"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from catalog.database import CatalogDatabase
from catalog.models import Book


AUTHOR_ID = "65f1c2a9e4b0a1b2c3d4e5f6"
BOOK_ID = "65f1c2a9e4b0a1b2c3d4e5f7"


def make_book(title, published_year=None, pages=None, genre=None, **overrides):
    """Build a Book with only the fields a test cares about."""
    data = {
        "id": overrides.pop("id", f"book-{title}"),
        "title": title,
        "isbn": overrides.pop("isbn", f"isbn-{title}"),
        "author_id": overrides.pop("author_id", AUTHOR_ID),
        "published_year": published_year,
        "pages": pages,
        "genre": genre,
    }
    data.update(overrides)
    return Book(**data)


@pytest.fixture
def author_doc():
    """Author document as returned by the store."""
    return {
        "id": AUTHOR_ID,
        "name": "Ursula K. Le Guin",
        "email": "ursula@example.com",
        "nationality": "American",
        "birth_year": 1929,
        "bio": None,
        "created_at": datetime(2024, 1, 15, 10, 30),
        "updated_at": datetime(2024, 1, 15, 10, 30),
    }


@pytest.fixture
def book_doc(author_doc):
    """Book document with its author embedded, as returned by the store."""
    return {
        "id": BOOK_ID,
        "title": "The Left Hand of Darkness",
        "description": "A human envoy on the planet Gethen",
        "isbn": "978-0441478125",
        "published_year": 1969,
        "genre": "Science Fiction",
        "pages": 304,
        "author_id": AUTHOR_ID,
        "created_at": datetime(2024, 1, 16, 9, 0),
        "updated_at": datetime(2024, 1, 16, 9, 0),
        "author": author_doc,
    }


@pytest.fixture
def mock_store():
    """Create a mock catalog store for testing."""
    store = AsyncMock(spec=CatalogDatabase)
    store.find_author_ids_by_name.return_value = []
    store.count_books.return_value = 0
    store.find_books.return_value = []
    store.find_author.return_value = None
    store.find_book.return_value = None
    store.health_check.return_value = {"status": "healthy", "authors_count": 0, "books_count": 0}
    return store
