#!/usr/bin/env python3
"""
Catalog Management Utility

This script provides utilities to manage the catalog store:
- Ensure indexes exist
- List all authors
- Show statistics for an author
- Run a book search from the command line
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from api.database import APIDatabaseService
from catalog.database import CatalogDatabase
from catalog.errors import StoreError
from utilities.config import config
from utilities.logger import setup_logging


def build_store() -> CatalogDatabase:
    """Create a store from the environment configuration."""
    return CatalogDatabase(
        connection_url=config.mongodb_url,
        database_name=config.mongodb_database,
        authors_collection=config.authors_collection,
        books_collection=config.books_collection
    )


def parse_search_args(args):
    """Turn key=value arguments into raw search parameters."""
    raw_params = {}
    for arg in args:
        key, sep, value = arg.partition("=")
        if not sep:
            raise ValueError(f"Expected key=value, got '{arg}'")
        raw_params[key] = value
    return raw_params


async def ensure_indexes():
    """Connect and create indexes."""
    store = build_store()
    try:
        # connect() creates the indexes
        await store.connect()
        print("✅ Indexes are in place")
    except Exception as e:
        print(f"❌ Error creating indexes: {e}")
    finally:
        await store.disconnect()


async def list_authors():
    """List all authors in the catalog."""
    print("\n" + "=" * 80)
    print("📋 ALL AUTHORS")
    print("=" * 80)

    store = build_store()
    try:
        await store.connect()
        authors = await APIDatabaseService(store).list_authors()

        if not authors:
            print("❌ No authors found in database")
            return

        print(f"✅ Found {len(authors)} authors:")
        print()
        for i, author in enumerate(authors, 1):
            print(f"{i:3d}. {author.name} <{author.email}>")
            print(f"     ID: {author.id}")
            if author.nationality:
                print(f"     Nationality: {author.nationality}")
            print()

    except Exception as e:
        print(f"❌ Error listing authors: {e}")
    finally:
        await store.disconnect()


async def show_author_stats(author_id: str):
    """Show aggregate statistics for one author."""
    print(f"\n📊 AUTHOR STATISTICS")
    print(f"ID: {author_id}")
    print("=" * 80)

    store = build_store()
    try:
        await store.connect()
        stats = await APIDatabaseService(store).get_author_stats(author_id)

        print(f"Author:        {stats.author_name}")
        print(f"Total books:   {stats.total_books}")
        if stats.first_book:
            print(f"First book:    {stats.first_book.title} ({stats.first_book.year})")
        if stats.latest_book:
            print(f"Latest book:   {stats.latest_book.title} ({stats.latest_book.year})")
        print(f"Average pages: {stats.average_pages}")
        if stats.longest_book:
            print(f"Longest book:  {stats.longest_book.title} ({stats.longest_book.pages} pages)")
        if stats.shortest_book:
            print(f"Shortest book: {stats.shortest_book.title} ({stats.shortest_book.pages} pages)")
        print(f"Genres:        {', '.join(stats.genres) if stats.genres else '-'}")

    except StoreError as e:
        print(f"❌ {e.message}")
    except Exception as e:
        print(f"❌ Error getting statistics: {e}")
    finally:
        await store.disconnect()


async def search_books(raw_params):
    """Run a book search and print one page of results."""
    store = build_store()
    try:
        await store.connect()
        envelope = await APIDatabaseService(store).search_books(raw_params)
        pagination = envelope.pagination

        print(f"\n🔍 {pagination.total} matching books "
              f"(page {pagination.page}/{pagination.total_pages}, {pagination.limit} per page)")
        print("=" * 80)
        for book in envelope.data:
            author_name = book.author.name if book.author else "?"
            year = book.published_year if book.published_year is not None else "n/a"
            print(f"  {book.title} - {author_name} [{year}] ISBN {book.isbn}")

    except Exception as e:
        print(f"❌ Error searching books: {e}")
    finally:
        await store.disconnect()


async def main():
    """Main function."""
    if len(sys.argv) < 2:
        print("Usage: python manage_catalog.py [indexes|authors|stats|search] [args]")
        print()
        print("Commands:")
        print("  indexes  - Create collection indexes")
        print("  authors  - List all authors")
        print("  stats    - Show statistics for an author")
        print("  search   - Search books with key=value parameters")
        print()
        print("Examples:")
        print("  python manage_catalog.py indexes")
        print("  python manage_catalog.py stats 65f1c2a9e4b0a1b2c3d4e5f6")
        print("  python manage_catalog.py search search=night genre=Fiction sortBy=title order=asc")
        sys.exit(1)

    command = sys.argv[1].lower()

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )

    if command == "indexes":
        await ensure_indexes()
    elif command == "authors":
        await list_authors()
    elif command == "stats":
        if len(sys.argv) < 3:
            print("❌ Error: author id required for stats command")
            print("Usage: python manage_catalog.py stats <author_id>")
            sys.exit(1)
        await show_author_stats(sys.argv[2])
    elif command == "search":
        try:
            raw_params = parse_search_args(sys.argv[2:])
        except ValueError as e:
            print(f"❌ Error: {e}")
            sys.exit(1)
        await search_books(raw_params)
    else:
        print(f"❌ Unknown command: {command}")
        print("Available commands: indexes, authors, stats, search")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
