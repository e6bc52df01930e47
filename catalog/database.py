"""
MongoDB store for the catalog.
Handles connection, indexing, CRUD operations for authors and books, and
translation of driver errors into StoreError kinds.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError

from catalog.errors import StoreError, StoreErrorKind

logger = structlog.get_logger(__name__)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Convert an identifier to an ObjectId, or None if it is malformed."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def serialize_document(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Replace MongoDB's _id and ObjectId references with string ids."""
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    if isinstance(doc.get("author_id"), ObjectId):
        doc["author_id"] = str(doc["author_id"])
    return doc


def _duplicate_field(exc: DuplicateKeyError, default: str) -> str:
    key_pattern = (exc.details or {}).get("keyPattern") or {}
    return next(iter(key_pattern), default)


class CatalogDatabase:
    """
    Async MongoDB store for authors and books.

    Uniqueness of author email and book ISBN is enforced by unique indexes.
    Referential integrity between books and authors is enforced here: books
    must reference an existing author, and authors that still own books
    cannot be deleted.
    """

    def __init__(
        self,
        connection_url: str,
        database_name: str,
        authors_collection: str = "authors",
        books_collection: str = "books"
    ):
        """
        Initialize the catalog store.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            authors_collection: Name of the authors collection
            books_collection: Name of the books collection
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.authors_collection_name = authors_collection
        self.books_collection_name = books_collection
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.authors: Optional[AsyncIOMotorCollection] = None
        self.books: Optional[AsyncIOMotorCollection] = None

    async def connect(self) -> None:
        """Establish connection to MongoDB and ensure indexes exist."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url)
            self.database = self.client[self.database_name]
            self.authors = self.database[self.authors_collection_name]
            self.books = self.database[self.books_collection_name]

            await self.client.admin.command("ping")
            logger.info("Successfully connected to MongoDB", database=self.database_name)

            await self.create_indexes()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def create_indexes(self) -> None:
        """Create unique and lookup indexes for both collections."""
        try:
            await self.authors.create_index("email", unique=True)
            await self.authors.create_index("created_at")

            await self.books.create_index("isbn", unique=True)
            await self.books.create_index("author_id")
            await self.books.create_index("genre")
            await self.books.create_index("title")
            await self.books.create_index("created_at")

            logger.info("Successfully created MongoDB indexes")

        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    # ------------------------------------------------------------------
    # Authors
    # ------------------------------------------------------------------

    async def find_authors(self) -> List[Dict[str, Any]]:
        """List all authors, newest first."""
        try:
            cursor = self.authors.find({}).sort("created_at", -1)
            docs = await cursor.to_list(length=None)
            return [serialize_document(doc) for doc in docs]
        except PyMongoError as e:
            logger.error("Failed to list authors", error=str(e))
            raise StoreError(StoreErrorKind.OTHER, "Failed to list authors") from e

    async def find_author(self, author_id: str, include_books: bool = False) -> Optional[Dict[str, Any]]:
        """
        Get an author by id.

        Args:
            author_id: Author identifier
            include_books: Embed the author's books, in insertion order

        Returns:
            Author document or None if not found
        """
        object_id = to_object_id(author_id)
        if object_id is None:
            return None

        try:
            doc = await self.authors.find_one({"_id": object_id})
            if doc is None:
                return None

            author = serialize_document(doc)
            if include_books:
                cursor = self.books.find({"author_id": object_id}).sort("_id", 1)
                books = await cursor.to_list(length=None)
                author["books"] = [serialize_document(book) for book in books]
            return author

        except PyMongoError as e:
            logger.error("Failed to get author", author_id=author_id, error=str(e))
            raise StoreError(StoreErrorKind.OTHER, "Failed to get author") from e

    async def find_author_ids_by_name(self, author_filter: Dict[str, Any]) -> List[ObjectId]:
        """Ids of the authors matching the given filter."""
        try:
            cursor = self.authors.find(author_filter, {"_id": 1})
            docs = await cursor.to_list(length=None)
            return [doc["_id"] for doc in docs]
        except PyMongoError as e:
            logger.error("Failed to resolve authors by name", error=str(e))
            raise StoreError(StoreErrorKind.OTHER, "Failed to resolve authors") from e

    async def create_author(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a new author.

        Raises:
            StoreError: UNIQUE_VIOLATION if the email is already registered
        """
        now = datetime.utcnow()
        doc = {**data, "created_at": now, "updated_at": now}

        try:
            result = await self.authors.insert_one(doc)
            doc["_id"] = result.inserted_id
            logger.debug("Successfully inserted author", author_id=str(result.inserted_id))
            return serialize_document(doc)

        except DuplicateKeyError as e:
            logger.warning("Author email already exists", email=data.get("email"))
            raise StoreError(
                StoreErrorKind.UNIQUE_VIOLATION,
                "Email is already registered",
                field=_duplicate_field(e, "email")
            ) from e

        except PyMongoError as e:
            logger.error("Failed to insert author", error=str(e))
            raise StoreError(StoreErrorKind.OTHER, "Failed to create author") from e

    async def update_author(self, author_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update an author's fields.

        Raises:
            StoreError: NOT_FOUND if the author does not exist,
                UNIQUE_VIOLATION if the new email is taken
        """
        object_id = to_object_id(author_id)
        if object_id is None:
            raise StoreError(StoreErrorKind.NOT_FOUND, "Author not found")

        update_data = {**data, "updated_at": datetime.utcnow()}

        try:
            doc = await self.authors.find_one_and_update(
                {"_id": object_id},
                {"$set": update_data},
                return_document=ReturnDocument.AFTER
            )

        except DuplicateKeyError as e:
            logger.warning("Author email already exists", author_id=author_id, email=data.get("email"))
            raise StoreError(
                StoreErrorKind.UNIQUE_VIOLATION,
                "Email is already registered",
                field=_duplicate_field(e, "email")
            ) from e

        except PyMongoError as e:
            logger.error("Failed to update author", author_id=author_id, error=str(e))
            raise StoreError(StoreErrorKind.OTHER, "Failed to update author") from e

        if doc is None:
            logger.warning("Author not found for update", author_id=author_id)
            raise StoreError(StoreErrorKind.NOT_FOUND, "Author not found")

        logger.debug("Successfully updated author", author_id=author_id)
        return serialize_document(doc)

    async def delete_author(self, author_id: str) -> None:
        """
        Delete an author.

        Raises:
            StoreError: NOT_FOUND if the author does not exist,
                FK_VIOLATION if books still reference the author
        """
        object_id = to_object_id(author_id)
        if object_id is None:
            raise StoreError(StoreErrorKind.NOT_FOUND, "Author not found")

        try:
            owned_books = await self.books.count_documents({"author_id": object_id}, limit=1)
            if owned_books:
                logger.warning("Refusing to delete author with books", author_id=author_id)
                raise StoreError(
                    StoreErrorKind.FK_VIOLATION,
                    "Author still has books",
                    field="author_id"
                )

            result = await self.authors.delete_one({"_id": object_id})

        except PyMongoError as e:
            logger.error("Failed to delete author", author_id=author_id, error=str(e))
            raise StoreError(StoreErrorKind.OTHER, "Failed to delete author") from e

        if result.deleted_count == 0:
            logger.warning("Author not found for deletion", author_id=author_id)
            raise StoreError(StoreErrorKind.NOT_FOUND, "Author not found")

        logger.debug("Successfully deleted author", author_id=author_id)

    # ------------------------------------------------------------------
    # Books
    # ------------------------------------------------------------------

    async def find_books(
        self,
        filter_query: Optional[Dict[str, Any]] = None,
        sort: Optional[Sequence[Tuple[str, int]]] = None,
        skip: int = 0,
        take: Optional[int] = None,
        include_author: bool = False
    ) -> List[Dict[str, Any]]:
        """
        Find books matching a filter.

        Args:
            filter_query: MongoDB filter document
            sort: List of (field, direction) pairs
            skip: Number of books to skip
            take: Maximum number of books to return
            include_author: Embed each book's author

        Returns:
            List of book documents
        """
        try:
            cursor = self.books.find(filter_query or {})
            if sort:
                cursor = cursor.sort(list(sort))
            if skip:
                cursor = cursor.skip(skip)
            if take:
                cursor = cursor.limit(take)
            docs = await cursor.to_list(length=take)

            if include_author:
                await self._attach_authors(docs)

            return [serialize_document(doc) for doc in docs]

        except PyMongoError as e:
            logger.error("Failed to find books", filter_query=str(filter_query), error=str(e))
            raise StoreError(StoreErrorKind.OTHER, "Failed to retrieve books") from e

    async def find_book(self, book_id: str, include_author: bool = False) -> Optional[Dict[str, Any]]:
        """Get a book by id, or None if not found."""
        object_id = to_object_id(book_id)
        if object_id is None:
            return None

        try:
            doc = await self.books.find_one({"_id": object_id})
            if doc is None:
                return None
            if include_author:
                await self._attach_authors([doc])
            return serialize_document(doc)

        except PyMongoError as e:
            logger.error("Failed to get book", book_id=book_id, error=str(e))
            raise StoreError(StoreErrorKind.OTHER, "Failed to get book") from e

    async def count_books(self, filter_query: Optional[Dict[str, Any]] = None) -> int:
        """Count books matching a filter."""
        try:
            return await self.books.count_documents(filter_query or {})
        except PyMongoError as e:
            logger.error("Failed to count books", filter_query=str(filter_query), error=str(e))
            raise StoreError(StoreErrorKind.OTHER, "Failed to count books") from e

    async def create_book(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a new book.

        Raises:
            StoreError: FK_VIOLATION if the author does not exist,
                UNIQUE_VIOLATION if the ISBN is already registered
        """
        doc = dict(data)
        doc["author_id"] = await self._require_author(data.get("author_id"))
        now = datetime.utcnow()
        doc["created_at"] = now
        doc["updated_at"] = now

        try:
            result = await self.books.insert_one(doc)
            doc["_id"] = result.inserted_id
            logger.debug("Successfully inserted book", book_id=str(result.inserted_id), isbn=data.get("isbn"))
            return serialize_document(doc)

        except DuplicateKeyError as e:
            logger.warning("Book ISBN already exists", isbn=data.get("isbn"))
            raise StoreError(
                StoreErrorKind.UNIQUE_VIOLATION,
                "ISBN is already registered",
                field=_duplicate_field(e, "isbn")
            ) from e

        except PyMongoError as e:
            logger.error("Failed to insert book", error=str(e))
            raise StoreError(StoreErrorKind.OTHER, "Failed to create book") from e

    async def update_book(self, book_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update only the given fields of a book.

        Raises:
            StoreError: NOT_FOUND if the book does not exist, FK_VIOLATION if
                the new author does not exist, UNIQUE_VIOLATION if the new
                ISBN is taken
        """
        object_id = to_object_id(book_id)
        if object_id is None:
            raise StoreError(StoreErrorKind.NOT_FOUND, "Book not found")

        update_data = dict(data)
        if "author_id" in update_data:
            update_data["author_id"] = await self._require_author(update_data["author_id"])
        update_data["updated_at"] = datetime.utcnow()

        try:
            doc = await self.books.find_one_and_update(
                {"_id": object_id},
                {"$set": update_data},
                return_document=ReturnDocument.AFTER
            )

        except DuplicateKeyError as e:
            logger.warning("Book ISBN already exists", book_id=book_id, isbn=data.get("isbn"))
            raise StoreError(
                StoreErrorKind.UNIQUE_VIOLATION,
                "ISBN is already registered",
                field=_duplicate_field(e, "isbn")
            ) from e

        except PyMongoError as e:
            logger.error("Failed to update book", book_id=book_id, error=str(e))
            raise StoreError(StoreErrorKind.OTHER, "Failed to update book") from e

        if doc is None:
            logger.warning("Book not found for update", book_id=book_id)
            raise StoreError(StoreErrorKind.NOT_FOUND, "Book not found")

        logger.debug("Successfully updated book", book_id=book_id)
        return serialize_document(doc)

    async def delete_book(self, book_id: str) -> None:
        """
        Delete a book.

        Raises:
            StoreError: NOT_FOUND if the book does not exist
        """
        object_id = to_object_id(book_id)
        if object_id is None:
            raise StoreError(StoreErrorKind.NOT_FOUND, "Book not found")

        try:
            result = await self.books.delete_one({"_id": object_id})
        except PyMongoError as e:
            logger.error("Failed to delete book", book_id=book_id, error=str(e))
            raise StoreError(StoreErrorKind.OTHER, "Failed to delete book") from e

        if result.deleted_count == 0:
            logger.warning("Book not found for deletion", book_id=book_id)
            raise StoreError(StoreErrorKind.NOT_FOUND, "Book not found")

        logger.debug("Successfully deleted book", book_id=book_id)

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform database health check.

        Returns:
            Dictionary with health status and collection sizes
        """
        try:
            await self.database.command("ping")
            authors_count = await self.authors.count_documents({})
            books_count = await self.books.count_documents({})

            return {
                "status": "healthy",
                "authors_count": authors_count,
                "books_count": books_count
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }

    async def _require_author(self, author_id: Any) -> ObjectId:
        """Resolve an author reference, raising FK_VIOLATION if it dangles."""
        object_id = to_object_id(author_id)
        if object_id is None:
            raise StoreError(StoreErrorKind.FK_VIOLATION, "authorId is not valid", field="author_id")

        try:
            exists = await self.authors.count_documents({"_id": object_id}, limit=1)
        except PyMongoError as e:
            logger.error("Failed to check author reference", author_id=str(author_id), error=str(e))
            raise StoreError(StoreErrorKind.OTHER, "Failed to check author") from e

        if not exists:
            logger.warning("Book references unknown author", author_id=str(author_id))
            raise StoreError(StoreErrorKind.FK_VIOLATION, "authorId is not valid", field="author_id")
        return object_id

    async def _attach_authors(self, docs: List[Dict[str, Any]]) -> None:
        """Embed the owning author into each book document, in place."""
        author_ids = list({doc["author_id"] for doc in docs if doc.get("author_id") is not None})
        authors: Dict[ObjectId, Dict[str, Any]] = {}
        if author_ids:
            cursor = self.authors.find({"_id": {"$in": author_ids}})
            for author in await cursor.to_list(length=None):
                authors[author["_id"]] = serialize_document(author)

        for doc in docs:
            doc["author"] = authors.get(doc.get("author_id"))
