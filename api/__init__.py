"""
FastAPI RESTful API for the Library Catalog.

This module provides a REST API for:
- Author and book management (create, read, update, delete)
- Book search with filtering, sorting and pagination
- Per-author statistics
"""
