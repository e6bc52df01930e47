"""
Store-level error kinds for the catalog.

Every failure coming out of the data store is reduced to one of a small,
closed set of kinds so callers never depend on driver-specific exceptions.
"""

from enum import Enum
from typing import Optional


class StoreErrorKind(str, Enum):
    """Machine-readable kinds of store failures."""
    UNIQUE_VIOLATION = "unique-violation"
    NOT_FOUND = "not-found"
    FK_VIOLATION = "fk-violation"
    OTHER = "other"


class StoreError(Exception):
    """
    Error raised by the catalog store.

    Attributes:
        kind: StoreErrorKind describing the failure
        message: Human-readable message, safe to return to clients
        field: Offending field for unique/foreign-key violations, if known
    """

    def __init__(self, kind: StoreErrorKind, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.field = field

    def __repr__(self) -> str:
        return f"StoreError(kind={self.kind.value!r}, message={self.message!r}, field={self.field!r})"
