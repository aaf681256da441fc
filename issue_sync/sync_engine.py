"""
Main sync engine for GitHub → Notion synchronization.

Orchestrates, for the issues database and the pull request database:
- Identity map construction from the Notion database
- Item discovery on GitHub
- Create/update classification
- Batched page creation
- Batched page updates
"""

from dataclasses import dataclass
from typing import Callable, Optional

from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from issue_sync.batch import BatchWriter
from issue_sync.config import Config
from issue_sync.github_api import GitHubAPI
from issue_sync.identity import strategy_for
from issue_sync.index import SinkIndexBuilder
from issue_sync.models import CollectionSummary, PendingUpdate, SinkIndex, SyncItem, SyncRunSummary
from issue_sync.notion_api import NotionAPI
from issue_sync.properties import to_properties
from issue_sync.reconciler import reconcile
from issue_sync.source import SourceReader

console = Console()


def _label(item: SyncItem) -> str:
    return f"{item.repository}#{item.number} {item.title}"


@dataclass
class Collection:
    """A GitHub item stream and the Notion database it is mirrored into."""

    name: str
    database_id: str
    fetch: Callable[[], list[SyncItem]]


class SyncEngine:
    """
    Main orchestrator for GitHub → Notion synchronization.

    Each run builds its identity maps from scratch, so runs are
    independent and can be repeated safely:
    1. Index the Notion database
    2. Fetch items from GitHub
    3. Split them into creates and updates
    4. Create missing pages
    5. Overwrite (and unarchive) existing pages
    """

    def __init__(
        self,
        config: Config,
        notion_api: Optional[NotionAPI] = None,
        github_api: Optional[GitHubAPI] = None,
    ):
        """
        Initialize sync engine.

        Args:
            config: Configuration instance.
            notion_api: Optional Notion wrapper (built from config if omitted).
            github_api: Optional GitHub wrapper (built from config if omitted).
        """
        self.config = config
        self.notion_api = notion_api or NotionAPI(config)
        self.github_api = github_api or GitHubAPI(config)
        self.strategy = strategy_for(config.resolved_identity_mode, config.schema)
        self.source = SourceReader(self.github_api, config, self.strategy)
        self.index_builder = SinkIndexBuilder(self.notion_api, self.strategy)
        self.create_writer = BatchWriter(config.batch_size, stage="write:create")
        self.update_writer = BatchWriter(config.batch_size, stage="write:update")

    def collections(self) -> list[Collection]:
        """Collections enabled by configuration."""
        collections = []
        if self.config.issues_database_id:
            collections.append(
                Collection("issues", self.config.issues_database_id, self.source.fetch_issues)
            )
        if self.config.pull_requests_database_id:
            collections.append(
                Collection(
                    "pull requests",
                    self.config.pull_requests_database_id,
                    self.source.fetch_pull_requests,
                )
            )
        return collections

    def run_sync(self) -> SyncRunSummary:
        """
        Perform one full synchronization.

        Returns:
            SyncRunSummary with counts and every non-fatal error.

        Raises:
            PaginationFailure: If a GitHub or Notion listing cannot be read.
        """
        summary = SyncRunSummary(dry_run=self.config.dry_run)
        self.source.reset()

        console.print("\n[bold blue]🔄 Starting GitHub → Notion Sync[/bold blue]")
        console.print(
            f"[dim]mode={self.config.mode.value} identity={self.strategy.name} "
            f"batch_size={self.config.batch_size}"
            f"{' dry-run' if self.config.dry_run else ''}[/dim]"
        )

        for collection in self.collections():
            summary.add(self._sync_collection(collection))

        self._print_summary(summary)
        return summary

    def _sync_collection(self, collection: Collection) -> CollectionSummary:
        """Sync one GitHub item stream into its Notion database."""
        result = CollectionSummary(name=collection.name, database_id=collection.database_id)
        console.print(f"\n[bold]{collection.name.capitalize()}[/bold]")

        index = self._build_index(collection)
        result.indexed = len(index.records)
        result.errors.extend(index.errors)
        console.print(
            f"{len(index.records)} {collection.name} found in Notion "
            f"({len(index.identity_map)} mapped)."
        )

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(f"Fetching {collection.name} from GitHub...", total=None)
            items = collection.fetch()
        result.fetched = len(items)
        console.print(f"Fetched {len(items)} {collection.name} from GitHub.")

        plan = reconcile(items, index.identity_map)
        result.to_create = len(plan.to_create)
        result.to_update = len(plan.to_update)
        console.print(f"{len(plan.to_create)} new {collection.name} to add to Notion.")
        console.print(f"{len(plan.to_update)} {collection.name} to update in Notion.")

        if self.config.dry_run:
            self._print_plan(plan.to_create, plan.to_update)
            return result

        schema = self.config.schema

        def create(item: SyncItem) -> str:
            return self.notion_api.create_page(collection.database_id, to_properties(item, schema))

        def update(pending: PendingUpdate) -> None:
            self.notion_api.update_page(
                pending.sink_page_id, to_properties(pending.item, schema), archived=False
            )

        created = self.create_writer.run(plan.to_create, create, describe=lambda i: i.identity_key)
        result.created = created.success_count
        result.errors.extend(created.errors)

        updated = self.update_writer.run(
            plan.to_update, update, describe=lambda p: p.item.identity_key
        )
        result.updated = updated.success_count
        result.errors.extend(updated.errors)

        return result

    def _build_index(self, collection: Collection) -> SinkIndex:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(f"Reading {collection.name} from Notion...", total=None)
            return self.index_builder.build(collection.database_id)

    def _print_plan(self, to_create: list[SyncItem], to_update: list[PendingUpdate]) -> None:
        """Print the writes a dry run would have made."""
        for item in to_create:
            console.print(f"  [green]+[/green] {escape(_label(item))}")
        for pending in to_update:
            console.print(f"  [cyan]~[/cyan] {escape(_label(pending.item))}")

    def _print_summary(self, summary: SyncRunSummary) -> None:
        """Print sync summary."""
        console.print("\n" + "=" * 50)
        console.print("[bold]Sync Summary[/bold]" + (" [dim](dry run)[/dim]" if summary.dry_run else ""))
        console.print("=" * 50)

        table = Table(box=None)
        table.add_column("Collection", style="cyan")
        table.add_column("In Notion", justify="right")
        table.add_column("Fetched", justify="right")
        table.add_column("Created", justify="right", style="green")
        table.add_column("Updated", justify="right", style="blue")
        table.add_column("Errors", justify="right", style="red")

        for c in summary.collections:
            created = f"{c.created}/{c.to_create}"
            updated = f"{c.updated}/{c.to_update}"
            table.add_row(c.name, str(c.indexed), str(c.fetched), created, updated, str(len(c.errors)))

        console.print(table)
        console.print(
            f"\nAPI requests: Notion {self.notion_api.request_count}, "
            f"GitHub {self.github_api.request_count}"
        )

        if summary.errors:
            console.print(f"\n[red]{len(summary.errors)} error(s):[/red]")
            for error in summary.errors:
                console.print(f"  [red]•[/red] {escape(error.describe())}")
        elif not summary.dry_run:
            console.print("\n[green]✅ Notion is synced with GitHub.[/green]")

        console.print("")

    def status(self) -> list[tuple[str, SinkIndex]]:
        """Index every configured database and print what it holds, without writing."""
        console.print("\n[bold]Sync Status[/bold]\n")

        indexes = [(c.name, self._build_index(c)) for c in self.collections()]

        table = Table(title="Notion Databases")
        table.add_column("Collection", style="cyan")
        table.add_column("Pages", justify="right")
        table.add_column("Mapped", justify="right", style="green")
        table.add_column("Unresolved", justify="right", style="yellow")
        table.add_column("Duplicates", justify="right", style="red")

        for name, index in indexes:
            table.add_row(
                name,
                str(len(index.records)),
                str(len(index.identity_map)),
                str(index.unresolved_count),
                str(len(index.duplicates)),
            )

        console.print(table)
        console.print(f"\nIdentity: {self.strategy.name} ({self.strategy.property_name} property)")
        return indexes
