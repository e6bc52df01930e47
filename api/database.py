"""
Database service layer for the FastAPI application.
"""

import asyncio
from typing import Any, Dict, List, Mapping, Optional

import structlog

from api.models import AuthorCreate, AuthorUpdate, BookCreate, BookUpdate
from catalog.database import CatalogDatabase, to_object_id
from catalog.errors import StoreError, StoreErrorKind
from catalog.models import (
    Author, AuthorStats, AuthorWithBooks, Book, BookWithAuthor, PageEnvelope
)
from catalog.search import SearchQueryBuilder
from catalog.stats import compute_author_stats

logger = structlog.get_logger(__name__)


class APIDatabaseService:
    """Database service for API operations."""

    def __init__(self, store: CatalogDatabase):
        self.store = store

    async def search_books(self, raw_params: Mapping[str, Optional[str]]) -> PageEnvelope:
        """
        Search books with filtering, sorting, and pagination.

        The same derived filter is used for the count and the page fetch;
        both are issued concurrently.

        Args:
            raw_params: Raw query-string parameters

        Returns:
            PageEnvelope of BookWithAuthor
        """
        query = SearchQueryBuilder.normalize(raw_params)

        author_ids = None
        author_filter = SearchQueryBuilder.build_author_filter(query)
        if author_filter is not None:
            author_ids = await self.store.find_author_ids_by_name(author_filter)

        filter_query = SearchQueryBuilder.build_filter(query, author_ids)

        total, docs = await asyncio.gather(
            self.store.count_books(filter_query),
            self.store.find_books(
                filter_query,
                sort=SearchQueryBuilder.build_sort(query),
                skip=query.skip,
                take=query.limit,
                include_author=True
            )
        )

        logger.debug(
            "Book search executed",
            total=total,
            page=query.page,
            limit=query.limit,
            returned=len(docs)
        )

        books = [BookWithAuthor(**doc) for doc in docs]
        return SearchQueryBuilder.build_envelope(total, query.page, query.limit, books)

    async def get_author_stats(self, author_id: str) -> AuthorStats:
        """
        Compute statistics over all books of an author.

        Raises:
            StoreError: NOT_FOUND if the author does not exist
        """
        author_doc = await self.store.find_author(author_id, include_books=True)
        if author_doc is None:
            raise StoreError(StoreErrorKind.NOT_FOUND, "Author not found")

        author = AuthorWithBooks(**author_doc)
        return compute_author_stats(author.id, author.name, author.books)

    # Authors

    async def list_authors(self) -> List[Author]:
        docs = await self.store.find_authors()
        return [Author(**doc) for doc in docs]

    async def get_author(self, author_id: str) -> Optional[AuthorWithBooks]:
        doc = await self.store.find_author(author_id, include_books=True)
        if doc is None:
            return None
        return AuthorWithBooks(**doc)

    async def create_author(self, payload: AuthorCreate) -> Author:
        doc = await self.store.create_author(payload.model_dump())
        logger.info("Author created", author_id=doc["id"])
        return Author(**doc)

    async def update_author(self, author_id: str, payload: AuthorUpdate) -> Author:
        doc = await self.store.update_author(author_id, payload.model_dump(exclude_unset=True))
        logger.info("Author updated", author_id=author_id)
        return Author(**doc)

    async def delete_author(self, author_id: str) -> None:
        await self.store.delete_author(author_id)
        logger.info("Author deleted", author_id=author_id)

    async def list_author_books(self, author_id: str) -> List[Book]:
        """Books of an author, newest first."""
        docs = await self.store.find_books(
            {"author_id": self._author_ref(author_id)},
            sort=[("created_at", -1)]
        )
        return [Book(**doc) for doc in docs]

    # Books

    async def list_books(self, genre: Optional[str] = None) -> List[BookWithAuthor]:
        """All books, newest first, optionally restricted to one genre."""
        filter_query: Dict[str, Any] = {}
        if genre:
            filter_query["genre"] = genre

        docs = await self.store.find_books(
            filter_query,
            sort=[("created_at", -1)],
            include_author=True
        )
        return [BookWithAuthor(**doc) for doc in docs]

    async def get_book(self, book_id: str) -> Optional[BookWithAuthor]:
        doc = await self.store.find_book(book_id, include_author=True)
        if doc is None:
            return None
        return BookWithAuthor(**doc)

    async def create_book(self, payload: BookCreate) -> Book:
        doc = await self.store.create_book(payload.model_dump())
        logger.info("Book created", book_id=doc["id"], author_id=doc["author_id"])
        return Book(**doc)

    async def update_book(self, book_id: str, payload: BookUpdate) -> Book:
        doc = await self.store.update_book(book_id, payload.model_dump(exclude_unset=True))
        logger.info("Book updated", book_id=book_id)
        return Book(**doc)

    async def delete_book(self, book_id: str) -> None:
        await self.store.delete_book(book_id)
        logger.info("Book deleted", book_id=book_id)

    async def health_check(self) -> Dict[str, Any]:
        return await self.store.health_check()

    @staticmethod
    def _author_ref(author_id: str) -> Any:
        # Malformed ids cannot match any stored reference
        return to_object_id(author_id) or author_id
