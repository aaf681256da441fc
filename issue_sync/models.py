"""
Data model for GitHub → Notion synchronization.

Everything here is plain data: items fetched from GitHub, records found
in Notion, the identity map that links them, and the run summaries.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ItemKind(Enum):
    """Kind of tracked item."""
    ISSUE = "issue"
    PULL_REQUEST = "pull_request"


@dataclass(frozen=True)
class SyncItem:
    """Canonical record extracted from GitHub."""

    identity_key: Any
    number: Optional[int]
    title: str
    state: str
    url: Optional[str]
    repository: Optional[str]
    author: str
    timestamp: Optional[str]
    kind: ItemKind = ItemKind.ISSUE


@dataclass(frozen=True)
class SinkRecord:
    """Minimal projection of a page stored in a Notion database."""

    sink_page_id: str
    identity_key: Any = None


# identity_key -> Notion page id
IdentityMap = dict[Any, str]


@dataclass(frozen=True)
class PendingUpdate:
    """An item that already has a Notion page."""

    item: SyncItem
    sink_page_id: str


@dataclass
class Reconciliation:
    """Disjoint create/update sets produced by the reconciler."""

    to_create: list[SyncItem] = field(default_factory=list)
    to_update: list[PendingUpdate] = field(default_factory=list)


@dataclass(frozen=True)
class ErrorRecord:
    """A non-fatal failure local to one item or page."""

    stage: str
    identity: Any
    message: str

    def describe(self) -> str:
        return f"[{self.stage}] {self.identity}: {self.message}"


@dataclass
class SinkIndex:
    """Result of scanning one Notion database."""

    records: list[SinkRecord] = field(default_factory=list)
    identity_map: IdentityMap = field(default_factory=dict)
    errors: list[ErrorRecord] = field(default_factory=list)
    duplicates: list[SinkRecord] = field(default_factory=list)

    @property
    def unresolved_count(self) -> int:
        """Pages whose identity could not be determined."""
        return sum(1 for r in self.records if r.identity_key is None)


@dataclass
class CollectionSummary:
    """Counts for one synced collection (issues or pull requests)."""

    name: str
    database_id: str
    indexed: int = 0
    fetched: int = 0
    to_create: int = 0
    to_update: int = 0
    created: int = 0
    updated: int = 0
    errors: list[ErrorRecord] = field(default_factory=list)


@dataclass
class SyncRunSummary:
    """Outcome of one run_sync() invocation."""

    created: int = 0
    updated: int = 0
    errors: list[ErrorRecord] = field(default_factory=list)
    collections: list[CollectionSummary] = field(default_factory=list)
    dry_run: bool = False

    def add(self, collection: CollectionSummary) -> None:
        """Fold a collection's counts into the run totals."""
        self.collections.append(collection)
        self.created += collection.created
        self.updated += collection.updated
        self.errors.extend(collection.errors)

    @property
    def success(self) -> bool:
        """Check if the run finished without any error."""
        return len(self.errors) == 0
