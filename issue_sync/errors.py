"""
Failure taxonomy for the sync engine.

Only PaginationFailure escapes a run. The others are converted into
ErrorRecord entries at the point they happen and reported in the summary.
"""

from typing import Any, Optional


class SyncError(Exception):
    """Base class for sync failures."""

    stage = "sync"

    def __init__(self, message: str, identity: Optional[Any] = None):
        super().__init__(message)
        self.identity = identity


class PaginationFailure(SyncError):
    """A page of a paginated listing could not be fetched."""

    stage = "pagination"


class PropertyLookupFailure(SyncError):
    """The identity property of a Notion page could not be retrieved."""

    stage = "index"


class WriteFailure(SyncError):
    """A create or update of a Notion page failed."""

    stage = "write"
