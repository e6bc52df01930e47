"""
API request and response schemas for the FastAPI application.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from catalog.models import CatalogModel


class AuthorCreate(CatalogModel):
    """Request body for creating an author."""
    name: str = Field(..., min_length=1, description="Author name")
    email: str = Field(..., min_length=1, description="Author email")
    nationality: Optional[str] = Field(None, description="Nationality")
    birth_year: Optional[int] = Field(None, description="Year of birth")
    bio: Optional[str] = Field(None, description="Short biography")


class AuthorUpdate(AuthorCreate):
    """
    Request body for updating an author.

    name and email are required; optional fields left out keep their
    stored value, an explicit null clears them.
    """


class BookCreate(CatalogModel):
    """Request body for creating a book."""
    title: str = Field(..., min_length=1, description="Book title")
    description: Optional[str] = Field(None, description="Book description")
    isbn: str = Field(..., min_length=1, description="ISBN")
    published_year: Optional[int] = Field(None, description="Year of publication")
    genre: Optional[str] = Field(None, description="Book genre")
    pages: Optional[int] = Field(None, ge=0, description="Number of pages")
    author_id: str = Field(..., min_length=1, description="Owning author identifier")


class BookUpdate(CatalogModel):
    """Request body for a partial book update; only provided fields change."""
    title: Optional[str] = Field(None, min_length=1, description="Book title")
    description: Optional[str] = Field(None, description="Book description")
    isbn: Optional[str] = Field(None, min_length=1, description="ISBN")
    published_year: Optional[int] = Field(None, description="Year of publication")
    genre: Optional[str] = Field(None, description="Book genre")
    pages: Optional[int] = Field(None, ge=0, description="Number of pages")
    author_id: Optional[str] = Field(None, min_length=1, description="Owning author identifier")

    @field_validator('title', 'isbn', 'author_id')
    @classmethod
    def reject_null(cls, v):
        """Required book fields may be omitted but not cleared."""
        if v is None:
            raise ValueError('field cannot be null')
        return v


class MessageResponse(BaseModel):
    """Plain confirmation message."""
    message: str = Field(..., description="Confirmation message")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
