"""
Book search query building.

Turns raw, untrusted query-string parameters into a validated
BookSearchQuery, derives the store filter and sort used by both the count
and the page fetch, and assembles the pagination envelope.
"""

import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from catalog.models import BookSearchQuery, PageEnvelope, Pagination, SortBy, SortOrder


# Plain ASCII integer, optionally signed
INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")

# Stored document field for each public sort option
SORT_FIELDS = {
    SortBy.TITLE: "title",
    SortBy.PUBLISHED_YEAR: "published_year",
    SortBy.CREATED_AT: "created_at",
}


class SearchQueryBuilder:
    """Normalizes search parameters and shapes store queries."""

    DEFAULT_PAGE = 1
    DEFAULT_LIMIT = 10
    MIN_LIMIT = 1
    MAX_LIMIT = 50
    # skip = (page - 1) * limit must fit a signed 64-bit BSON integer
    MAX_PAGE = (2 ** 63 - 1) // MAX_LIMIT + 1

    @staticmethod
    def normalize(raw_params: Mapping[str, Optional[str]]) -> BookSearchQuery:
        """
        Normalize raw query parameters. Never fails: every field is
        defaulted or clamped independently of the others.

        Args:
            raw_params: Query-string mapping (search, genre, authorName,
                page, limit, sortBy, order); any key may be absent

        Returns:
            BookSearchQuery with page in [1, MAX_PAGE] and limit in [1, 50]
        """
        page = _parse_int(raw_params.get("page"))
        if page is None or page < SearchQueryBuilder.DEFAULT_PAGE:
            page = SearchQueryBuilder.DEFAULT_PAGE
        page = min(SearchQueryBuilder.MAX_PAGE, page)

        limit = _parse_int(raw_params.get("limit"))
        if limit is None:
            limit = SearchQueryBuilder.DEFAULT_LIMIT
        limit = min(SearchQueryBuilder.MAX_LIMIT, max(SearchQueryBuilder.MIN_LIMIT, limit))

        try:
            sort_by = SortBy(raw_params.get("sortBy"))
        except ValueError:
            sort_by = SortBy.CREATED_AT

        try:
            order = SortOrder(raw_params.get("order"))
        except ValueError:
            order = SortOrder.DESC

        return BookSearchQuery(
            search=_non_empty(raw_params.get("search")),
            genre=_non_empty(raw_params.get("genre")),
            author_name=_non_empty(raw_params.get("authorName")),
            page=page,
            limit=limit,
            sort_by=sort_by,
            order=order,
        )

    @staticmethod
    def build_author_filter(query: BookSearchQuery) -> Optional[Dict[str, Any]]:
        """Filter selecting the authors whose name matches, or None if unfiltered."""
        if query.author_name is None:
            return None
        return {"name": _contains(query.author_name)}

    @staticmethod
    def build_filter(query: BookSearchQuery, author_ids: Optional[Iterable[Any]] = None) -> Dict[str, Any]:
        """
        Build the books filter shared by the count and the page fetch.

        Args:
            query: Normalized search query
            author_ids: Ids of the authors matching query.author_name; only
                used when an author filter is present

        Returns:
            MongoDB filter document
        """
        filter_query: Dict[str, Any] = {}

        if query.search:
            filter_query["title"] = _contains(query.search)

        if query.genre:
            filter_query["genre"] = query.genre

        if query.author_name is not None:
            filter_query["author_id"] = {"$in": list(author_ids or [])}

        return filter_query

    @staticmethod
    def build_sort(query: BookSearchQuery) -> List[Tuple[str, int]]:
        """Sort keys; _id breaks ties so pages do not overlap."""
        direction = 1 if query.order == SortOrder.ASC else -1
        return [(SORT_FIELDS[query.sort_by], direction), ("_id", direction)]

    @staticmethod
    def build_envelope(total: int, page: int, limit: int, rows: Iterable[Any]) -> PageEnvelope:
        """
        Wrap a page of rows with pagination metadata.

        Assumes total >= 0 and limit >= 1, as guaranteed by normalize().
        """
        total_pages = max(1, -(-total // limit))
        return PageEnvelope(
            data=list(rows),
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                total_pages=total_pages,
                has_next=page < total_pages,
                has_prev=page > 1,
            ),
        )


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    text = str(value).strip()
    if not INTEGER_PATTERN.fullmatch(text):
        return None
    return int(text)


def _non_empty(value: Optional[str]) -> Optional[str]:
    return value if value else None


def _contains(fragment: str) -> Dict[str, str]:
    # literal, case-insensitive substring match
    return {"$regex": re.escape(fragment), "$options": "i"}
