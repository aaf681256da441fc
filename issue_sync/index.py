"""
Notion side of the sync: scan a database and build the identity map.

Direct strategies read the key straight from the queried page.
Indirect strategies retrieve the identity property of every page with
a separate call, concurrently. A failed lookup leaves that page
unmapped and is reported, it never aborts the scan.
"""

from concurrent.futures import ThreadPoolExecutor

from rich.console import Console
from rich.markup import escape

from issue_sync.errors import PropertyLookupFailure
from issue_sync.identity import IdentityStrategy
from issue_sync.models import ErrorRecord, SinkIndex, SinkRecord
from issue_sync.notion_api import NotionAPI

console = Console()

LOOKUP_WORKERS = 10


class SinkIndexBuilder:
    """Builds a SinkIndex for one Notion database."""

    def __init__(self, notion_api: NotionAPI, strategy: IdentityStrategy, workers: int = LOOKUP_WORKERS):
        self.notion_api = notion_api
        self.strategy = strategy
        self.workers = workers

    def build(self, database_id: str) -> SinkIndex:
        """
        Scan a database and map identity keys to page IDs.

        Raises:
            PaginationFailure: If the database cannot be fully queried.
        """
        pages = self.notion_api.query_database(database_id)
        index = SinkIndex()

        if self.strategy.indirect:
            records = self._resolve_indirect(pages, index.errors)
        else:
            records = [
                SinkRecord(sink_page_id=page["id"], identity_key=self.strategy.key_from_page(page))
                for page in pages
            ]

        index.records = records
        index.identity_map = self._build_map(records, index.duplicates)
        return index

    def _resolve_indirect(self, pages: list[dict], errors: list[ErrorRecord]) -> list[SinkRecord]:
        if not pages:
            return []

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = [executor.submit(self._lookup, page) for page in pages]

        records = []
        for page, future in zip(pages, futures):
            error = future.exception()
            if error is None:
                records.append(SinkRecord(sink_page_id=page["id"], identity_key=future.result()))
                continue

            records.append(SinkRecord(sink_page_id=page["id"]))
            record = ErrorRecord(stage=PropertyLookupFailure.stage, identity=page["id"], message=str(error))
            errors.append(record)
            console.print(f"[yellow]Warning: {escape(record.describe())}[/yellow]")

        return records

    def _lookup(self, page: dict):
        property_id = self.strategy.property_id(page)
        if not property_id:
            raise PropertyLookupFailure(
                f"page has no '{self.strategy.property_name}' property", identity=page["id"]
            )
        value = self.notion_api.get_page_property(page["id"], property_id)
        return self.strategy.key_from_value(value)

    def _build_map(self, records: list[SinkRecord], duplicates: list[SinkRecord]) -> dict:
        """
        Map keys to page IDs, first page wins.

        Later pages with an already mapped key are collected in
        `duplicates` and left alone.
        """
        identity_map = {}
        for record in records:
            key = record.identity_key
            if key is None:
                continue
            if key in identity_map:
                duplicates.append(record)
                console.print(
                    f"[yellow]Warning: page {record.sink_page_id} duplicates page "
                    f"{identity_map[key]} for {key}, ignoring it[/yellow]"
                )
                continue
            identity_map[key] = record.sink_page_id
        return identity_map
