"""
Pydantic models for catalog data validation and serialization.
Defines the Author and Book entities plus the derived, non-persisted
result shapes (author statistics, search queries and page envelopes).
"""

from datetime import datetime
from enum import Enum
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


T = TypeVar("T")


class SortBy(str, Enum):
    """Sort options for book searches."""
    TITLE = "title"
    PUBLISHED_YEAR = "publishedYear"
    CREATED_AT = "createdAt"


class SortOrder(str, Enum):
    """Sort order options."""
    ASC = "asc"
    DESC = "desc"


class CatalogModel(BaseModel):
    """Base model: snake_case attributes, camelCase on the wire."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
    }


class Author(CatalogModel):
    """Author record as stored in the catalog."""
    id: str = Field(..., description="Unique author identifier")
    name: str = Field(..., description="Author name")
    email: str = Field(..., description="Author email, unique across authors")
    nationality: Optional[str] = Field(None, description="Nationality")
    birth_year: Optional[int] = Field(None, description="Year of birth")
    bio: Optional[str] = Field(None, description="Short biography")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")


class Book(CatalogModel):
    """Book record as stored in the catalog."""
    id: str = Field(..., description="Unique book identifier")
    title: str = Field(..., description="Book title")
    description: Optional[str] = Field(None, description="Book description")
    isbn: str = Field(..., description="ISBN, unique across books")
    published_year: Optional[int] = Field(None, description="Year of publication")
    genre: Optional[str] = Field(None, description="Book genre")
    pages: Optional[int] = Field(None, description="Number of pages")
    author_id: str = Field(..., description="Identifier of the owning author")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")


class BookWithAuthor(Book):
    """Book with its author embedded."""
    author: Optional[Author] = Field(None, description="Owning author")


class AuthorWithBooks(Author):
    """Author with all of their books embedded."""
    books: List[Book] = Field(default_factory=list, description="Books by this author")


class BookYear(CatalogModel):
    """Title and publication year of a book."""
    title: str
    year: Optional[int] = None


class BookPages(CatalogModel):
    """Title and page count of a book."""
    title: str
    pages: Optional[int] = None


class AuthorStats(CatalogModel):
    """Aggregate statistics over one author's books."""
    author_id: str = Field(..., description="Author identifier")
    author_name: str = Field(..., description="Author name")
    total_books: int = Field(0, ge=0, description="Number of books by the author")
    first_book: Optional[BookYear] = Field(None, description="Earliest published book")
    latest_book: Optional[BookYear] = Field(None, description="Latest published book")
    average_pages: int = Field(0, description="Average page count, rounded half up")
    genres: List[str] = Field(default_factory=list, description="Distinct genres")
    longest_book: Optional[BookPages] = Field(None, description="Book with the most pages")
    shortest_book: Optional[BookPages] = Field(None, description="Book with the fewest pages")


class BookSearchQuery(CatalogModel):
    """Validated book search parameters."""
    search: Optional[str] = Field(None, description="Case-insensitive title substring")
    genre: Optional[str] = Field(None, description="Exact genre match")
    author_name: Optional[str] = Field(None, description="Case-insensitive author name substring")
    page: int = Field(1, ge=1, description="Page number")
    limit: int = Field(10, ge=1, le=50, description="Items per page")
    sort_by: SortBy = Field(SortBy.CREATED_AT, description="Sort field")
    order: SortOrder = Field(SortOrder.DESC, description="Sort order")

    @property
    def skip(self) -> int:
        """Number of rows preceding the current page."""
        return (self.page - 1) * self.limit


class Pagination(CatalogModel):
    """Pagination metadata for a page of results."""
    page: int = Field(..., description="Current page number")
    limit: int = Field(..., description="Number of items per page")
    total: int = Field(..., description="Total number of matching items")
    total_pages: int = Field(..., description="Total number of pages")
    has_next: bool = Field(..., description="Whether there is a next page")
    has_prev: bool = Field(..., description="Whether there is a previous page")


class PageEnvelope(CatalogModel, Generic[T]):
    """One page of results together with its pagination metadata."""
    data: List[T] = Field(default_factory=list, description="Items on the current page")
    pagination: Pagination
