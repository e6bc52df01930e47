"""
Per-author statistics aggregation.

Computes counts, extremes, distinct genres and average page count over an
author's books in a single pass. Pure function of its input: no I/O.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional

from catalog.models import AuthorStats, Book, BookPages, BookYear


def round_half_up(numerator: int, denominator: int) -> int:
    """Divide and round to the nearest integer, halves rounding up (2.5 -> 3)."""
    quotient = Decimal(numerator) / Decimal(denominator)
    return int(quotient.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_author_stats(author_id: str, author_name: str, books: Iterable[Book]) -> AuthorStats:
    """
    Compute aggregate statistics over one author's books.

    Books without a published year or page count still count toward
    total_books but are ignored for the year and page extremes. When several
    books share an extreme value, the one listed first wins.

    Args:
        author_id: Author identifier
        author_name: Author name
        books: The author's books, in store order

    Returns:
        AuthorStats for the given books
    """
    total_books = 0
    first: Optional[Book] = None
    latest: Optional[Book] = None
    shortest: Optional[Book] = None
    longest: Optional[Book] = None
    pages_sum = 0
    pages_count = 0
    genres: List[str] = []
    seen_genres = set()

    for book in books:
        total_books += 1

        year = book.published_year
        if year is not None:
            if first is None or year < first.published_year:
                first = book
            if latest is None or year > latest.published_year:
                latest = book

        pages = book.pages
        if pages is not None:
            pages_sum += pages
            pages_count += 1
            if shortest is None or pages < shortest.pages:
                shortest = book
            if longest is None or pages > longest.pages:
                longest = book

        if book.genre and book.genre not in seen_genres:
            seen_genres.add(book.genre)
            genres.append(book.genre)

    return AuthorStats(
        author_id=author_id,
        author_name=author_name,
        total_books=total_books,
        first_book=_book_year(first),
        latest_book=_book_year(latest),
        average_pages=round_half_up(pages_sum, pages_count) if pages_count else 0,
        genres=genres,
        longest_book=_book_pages(longest),
        shortest_book=_book_pages(shortest),
    )


def _book_year(book: Optional[Book]) -> Optional[BookYear]:
    if book is None:
        return None
    return BookYear(title=book.title, year=book.published_year)


def _book_pages(book: Optional[Book]) -> Optional[BookPages]:
    if book is None:
        return None
    return BookPages(title=book.title, pages=book.pages)
