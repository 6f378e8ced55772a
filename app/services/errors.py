"""
Exceptions raised by the collection pipeline.
"""
from typing import Optional


class CollectionError(Exception):
    """Base class for collection pipeline failures."""


class FetchError(CollectionError):
    """A single data source could not be read."""

    def __init__(self, source: str, cause: Optional[BaseException] = None):
        self.source = source
        self.cause = cause
        detail = f"{type(cause).__name__}: {cause}" if cause is not None else "unknown error"
        super().__init__(f"Failed to fetch {source}: {detail}")


class AggregationError(CollectionError):
    """Collected records could not be aggregated (malformed input)."""


class PersistenceError(CollectionError):
    """Key-value store read or write failed."""
