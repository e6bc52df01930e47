"""
FastAPI main application for the Library Catalog API.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.config import config as api_config
from api.database import APIDatabaseService
from api.models import (
    AuthorCreate, AuthorUpdate, BookCreate, BookUpdate,
    ErrorResponse, HealthResponse, MessageResponse
)
from catalog.database import CatalogDatabase
from catalog.errors import StoreError, StoreErrorKind
from catalog.models import (
    Author, AuthorStats, AuthorWithBooks, Book, BookWithAuthor, PageEnvelope
)
from utilities.config import config
from utilities.logger import setup_logging

logger = structlog.get_logger(__name__)

# HTTP status for each store error kind
STORE_ERROR_STATUS = {
    StoreErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    StoreErrorKind.UNIQUE_VIOLATION: status.HTTP_409_CONFLICT,
    StoreErrorKind.FK_VIOLATION: status.HTTP_400_BAD_REQUEST,
    StoreErrorKind.OTHER: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

# Global database service, set up by the lifespan handler
db_service: Optional[APIDatabaseService] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )
    logger.info("Starting Library Catalog API")

    global db_service
    store = CatalogDatabase(
        connection_url=config.mongodb_url,
        database_name=config.mongodb_database,
        authors_collection=config.authors_collection,
        books_collection=config.books_collection
    )
    try:
        await store.connect()
        db_service = APIDatabaseService(store)
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise

    yield

    logger.info("Shutting down Library Catalog API")
    db_service = None
    await store.disconnect()


app = FastAPI(
    title=api_config.api_title,
    description=api_config.api_description,
    version=api_config.api_version,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
)


def get_db_service() -> APIDatabaseService:
    """Dependency returning the database service."""
    if db_service is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database service not available"
        )
    return db_service


# Exception handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.detail,
            status_code=exc.status_code
        ).model_dump(),
        headers=exc.headers
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle malformed or incomplete request bodies."""
    fields = sorted({
        ".".join(str(part) for part in error["loc"][1:]) or str(error["loc"][0])
        for error in exc.errors()
    })
    logger.info("Request validation failed", path=request.url.path, fields=fields)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(
            error="Invalid request",
            detail=f"Invalid or missing fields: {', '.join(fields)}" if fields else None,
            status_code=status.HTTP_400_BAD_REQUEST
        ).model_dump()
    )


@app.exception_handler(StoreError)
async def store_exception_handler(request: Request, exc: StoreError):
    """Translate store error kinds into HTTP responses."""
    status_code = STORE_ERROR_STATUS[exc.kind]
    if exc.kind == StoreErrorKind.OTHER:
        logger.error("Store operation failed", path=request.url.path, error=exc.message,
                     cause=str(exc.__cause__) if exc.__cause__ else None)
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error="Internal server error",
                detail=exc.message if api_config.debug else None,
                status_code=status_code
            ).model_dump()
        )

    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=exc.message,
            detail=f"Conflicting field: {exc.field}" if exc.kind == StoreErrorKind.UNIQUE_VIOLATION and exc.field else None,
            status_code=status_code
        ).model_dump()
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal server error",
            detail=str(exc) if api_config.debug else None,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        ).model_dump()
    )


# Health check endpoint
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    db_status = "unavailable"
    if db_service:
        health_info = await db_service.health_check()
        db_status = health_info.get("status", "unknown")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.utcnow(),
        version=api_config.api_version,
        database_status=db_status
    )


# Authors endpoints
@app.get("/api/authors", response_model=List[Author], tags=["Authors"])
async def list_authors(service: APIDatabaseService = Depends(get_db_service)):
    """List all authors, newest first."""
    return await service.list_authors()


@app.post("/api/authors", response_model=Author, status_code=status.HTTP_201_CREATED, tags=["Authors"])
async def create_author(payload: AuthorCreate, service: APIDatabaseService = Depends(get_db_service)):
    """Create an author. name and email are required; email must be unique."""
    return await service.create_author(payload)


@app.get("/api/authors/{author_id}", response_model=AuthorWithBooks, tags=["Authors"])
async def get_author(author_id: str, service: APIDatabaseService = Depends(get_db_service)):
    """Get an author together with their books."""
    author = await service.get_author(author_id)
    if not author:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Author not found"
        )
    return author


@app.put("/api/authors/{author_id}", response_model=Author, tags=["Authors"])
async def update_author(
    author_id: str,
    payload: AuthorUpdate,
    service: APIDatabaseService = Depends(get_db_service)
):
    """Replace an author's fields. Optional fields left out are cleared."""
    return await service.update_author(author_id, payload)


@app.delete("/api/authors/{author_id}", response_model=MessageResponse, tags=["Authors"])
async def delete_author(author_id: str, service: APIDatabaseService = Depends(get_db_service)):
    """Delete an author. Authors that still own books cannot be deleted."""
    await service.delete_author(author_id)
    return MessageResponse(message="Author deleted successfully")


@app.get("/api/authors/{author_id}/books", response_model=List[Book], tags=["Authors"])
async def list_author_books(author_id: str, service: APIDatabaseService = Depends(get_db_service)):
    """List the books of an author, newest first."""
    return await service.list_author_books(author_id)


@app.get("/api/authors/{author_id}/stats", response_model=AuthorStats, tags=["Statistics"])
async def get_author_stats(author_id: str, service: APIDatabaseService = Depends(get_db_service)):
    """
    Get aggregate statistics for an author.

    Returns total books, first/latest book by year, average pages,
    distinct genres and the longest/shortest book.
    """
    return await service.get_author_stats(author_id)


# Books endpoints
@app.get("/api/books", response_model=List[BookWithAuthor], tags=["Books"])
async def list_books(
    genre: Optional[str] = None,
    service: APIDatabaseService = Depends(get_db_service)
):
    """List all books with their authors, newest first, optionally filtered by exact genre."""
    return await service.list_books(genre)


@app.post("/api/books", response_model=Book, status_code=status.HTTP_201_CREATED, tags=["Books"])
async def create_book(payload: BookCreate, service: APIDatabaseService = Depends(get_db_service)):
    """Create a book. title, isbn and authorId are required; isbn must be unique."""
    return await service.create_book(payload)


@app.get("/api/books/search", response_model=PageEnvelope[BookWithAuthor], tags=["Books"])
async def search_books(
    search: Optional[str] = None,
    genre: Optional[str] = None,
    author_name: Optional[str] = Query(None, alias="authorName"),
    page: Optional[str] = None,
    limit: Optional[str] = None,
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    order: Optional[str] = None,
    service: APIDatabaseService = Depends(get_db_service)
):
    """
    Search books with filtering, sorting, and pagination.

    - **search**: Case-insensitive title substring
    - **genre**: Exact genre
    - **authorName**: Case-insensitive author name substring
    - **page**: Page number (invalid or < 1 becomes 1)
    - **limit**: Items per page (default 10, clamped to 1-50)
    - **sortBy**: title, publishedYear or createdAt (default createdAt)
    - **order**: asc or desc (default desc)
    """
    raw_params = {
        "search": search,
        "genre": genre,
        "authorName": author_name,
        "page": page,
        "limit": limit,
        "sortBy": sort_by,
        "order": order,
    }
    return await service.search_books(raw_params)


@app.get("/api/books/{book_id}", response_model=BookWithAuthor, tags=["Books"])
async def get_book(book_id: str, service: APIDatabaseService = Depends(get_db_service)):
    """Get a single book with its author."""
    book = await service.get_book(book_id)
    if not book:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Book not found"
        )
    return book


@app.put("/api/books/{book_id}", response_model=Book, tags=["Books"])
async def update_book(
    book_id: str,
    payload: BookUpdate,
    service: APIDatabaseService = Depends(get_db_service)
):
    """Update the provided fields of a book."""
    return await service.update_book(book_id, payload)


@app.delete("/api/books/{book_id}", response_model=MessageResponse, tags=["Books"])
async def delete_book(book_id: str, service: APIDatabaseService = Depends(get_db_service)):
    """Delete a book."""
    await service.delete_book(book_id)
    return MessageResponse(message="Book deleted successfully")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level="info"
    )
