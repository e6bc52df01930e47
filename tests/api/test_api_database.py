"""
Tests for the API database service.
The store is mocked; tests cover search orchestration, statistics and
document-to-model mapping.
"""

import pytest

from api.database import APIDatabaseService
from api.models import AuthorUpdate, BookCreate, BookUpdate
from catalog.errors import StoreError, StoreErrorKind
from catalog.models import BookWithAuthor
from conftest import AUTHOR_ID, BOOK_ID


@pytest.fixture
def service(mock_store):
    return APIDatabaseService(mock_store)


class TestSearchBooks:
    """Search orchestration."""

    @pytest.mark.asyncio
    async def test_count_and_fetch_share_filter(self, service, mock_store, book_doc):
        mock_store.count_books.return_value = 23
        mock_store.find_books.return_value = [book_doc]

        envelope = await service.search_books({
            "search": "darkness", "genre": "Science Fiction", "page": "2", "limit": "10",
            "sortBy": "publishedYear", "order": "asc"
        })

        expected_filter = {
            "title": {"$regex": "darkness", "$options": "i"},
            "genre": "Science Fiction",
        }
        mock_store.count_books.assert_awaited_once_with(expected_filter)
        mock_store.find_books.assert_awaited_once_with(
            expected_filter,
            sort=[("published_year", 1), ("_id", 1)],
            skip=10,
            take=10,
            include_author=True
        )
        mock_store.find_author_ids_by_name.assert_not_awaited()

        assert isinstance(envelope.data[0], BookWithAuthor)
        assert envelope.data[0].author.name == "Ursula K. Le Guin"
        assert envelope.pagination.total == 23
        assert envelope.pagination.total_pages == 3
        assert envelope.pagination.has_next is True
        assert envelope.pagination.has_prev is True

    @pytest.mark.asyncio
    async def test_author_name_resolved_to_ids(self, service, mock_store):
        mock_store.find_author_ids_by_name.return_value = ["id-1", "id-2"]

        await service.search_books({"authorName": "guin"})

        mock_store.find_author_ids_by_name.assert_awaited_once_with(
            {"name": {"$regex": "guin", "$options": "i"}}
        )
        mock_store.count_books.assert_awaited_once_with({"author_id": {"$in": ["id-1", "id-2"]}})

    @pytest.mark.asyncio
    async def test_clamped_params(self, service, mock_store):
        envelope = await service.search_books({"page": "-5", "limit": "999"})

        assert envelope.pagination.page == 1
        assert envelope.pagination.limit == 50
        assert mock_store.find_books.await_args.kwargs["take"] == 50
        assert mock_store.find_books.await_args.kwargs["skip"] == 0

    @pytest.mark.asyncio
    async def test_out_of_range_page_returns_empty_page(self, service, mock_store):
        mock_store.count_books.return_value = 3
        mock_store.find_books.return_value = []

        envelope = await service.search_books({"page": "99999999999999999999", "limit": "50"})

        assert envelope.data == []
        assert envelope.pagination.has_next is False
        assert mock_store.find_books.await_args.kwargs["skip"] <= 2 ** 63 - 1

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, service, mock_store):
        mock_store.count_books.side_effect = StoreError(StoreErrorKind.OTHER, "Failed to count books")

        with pytest.raises(StoreError):
            await service.search_books({})


class TestAuthorStats:
    """Statistics endpoint logic."""

    @pytest.mark.asyncio
    async def test_stats_from_author_books(self, service, mock_store, author_doc):
        author_doc["books"] = [
            {"id": "b1", "title": "A", "isbn": "1", "author_id": AUTHOR_ID,
             "published_year": 2005, "pages": 100, "genre": "Fiction"},
            {"id": "b2", "title": "B", "isbn": "2", "author_id": AUTHOR_ID,
             "published_year": 1999, "pages": 300, "genre": "Fiction"},
            {"id": "b3", "title": "C", "isbn": "3", "author_id": AUTHOR_ID,
             "published_year": 2010, "pages": 200, "genre": "Drama"},
        ]
        mock_store.find_author.return_value = author_doc

        stats = await service.get_author_stats(AUTHOR_ID)

        mock_store.find_author.assert_awaited_once_with(AUTHOR_ID, include_books=True)
        assert stats.author_name == "Ursula K. Le Guin"
        assert stats.total_books == 3
        assert stats.first_book.title == "B"
        assert stats.latest_book.title == "C"
        assert stats.average_pages == 200
        assert stats.longest_book.title == "B"
        assert stats.shortest_book.title == "A"
        assert set(stats.genres) == {"Fiction", "Drama"}

    @pytest.mark.asyncio
    async def test_stats_author_without_books(self, service, mock_store, author_doc):
        mock_store.find_author.return_value = author_doc

        stats = await service.get_author_stats(AUTHOR_ID)

        assert stats.total_books == 0
        assert stats.first_book is None

    @pytest.mark.asyncio
    async def test_stats_unknown_author(self, service, mock_store):
        with pytest.raises(StoreError) as exc_info:
            await service.get_author_stats(AUTHOR_ID)

        assert exc_info.value.kind == StoreErrorKind.NOT_FOUND


class TestCrud:
    """Pass-through CRUD mapping."""

    @pytest.mark.asyncio
    async def test_update_author_keeps_omitted_fields(self, service, mock_store, author_doc):
        mock_store.update_author.return_value = author_doc

        await service.update_author(AUTHOR_ID, AuthorUpdate(name="U", email="u@example.com"))

        mock_store.update_author.assert_awaited_once_with(
            AUTHOR_ID, {"name": "U", "email": "u@example.com"}
        )

    @pytest.mark.asyncio
    async def test_update_author_clears_explicit_null(self, service, mock_store, author_doc):
        mock_store.update_author.return_value = author_doc

        await service.update_author(AUTHOR_ID, AuthorUpdate(name="U", email="u@example.com", bio=None))

        mock_store.update_author.assert_awaited_once_with(
            AUTHOR_ID, {"name": "U", "email": "u@example.com", "bio": None}
        )

    @pytest.mark.asyncio
    async def test_create_book_uses_snake_case_fields(self, service, mock_store, book_doc):
        mock_store.create_book.return_value = book_doc

        book = await service.create_book(BookCreate(
            title="The Left Hand of Darkness", isbn="978-0441478125", authorId=AUTHOR_ID,
            publishedYear=1969
        ))

        data = mock_store.create_book.await_args.args[0]
        assert data["author_id"] == AUTHOR_ID
        assert data["published_year"] == 1969
        assert book.id == BOOK_ID

    @pytest.mark.asyncio
    async def test_update_book_sends_only_provided_fields(self, service, mock_store, book_doc):
        mock_store.update_book.return_value = book_doc

        await service.update_book(BOOK_ID, BookUpdate(pages=320))

        mock_store.update_book.assert_awaited_once_with(BOOK_ID, {"pages": 320})

    @pytest.mark.asyncio
    async def test_list_books_by_genre(self, service, mock_store, book_doc):
        mock_store.find_books.return_value = [book_doc]

        books = await service.list_books("Science Fiction")

        mock_store.find_books.assert_awaited_once_with(
            {"genre": "Science Fiction"},
            sort=[("created_at", -1)],
            include_author=True
        )
        assert books[0].author.id == AUTHOR_ID

    @pytest.mark.asyncio
    async def test_get_missing_book(self, service, mock_store):
        assert await service.get_book(BOOK_ID) is None
