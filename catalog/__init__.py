"""
Core catalog package for the Library Catalog API.

This package provides:
- Author and Book models plus derived result shapes
- Per-author statistics aggregation
- Search parameter normalization and pagination envelopes
- The MongoDB-backed catalog store and its error kinds
"""
