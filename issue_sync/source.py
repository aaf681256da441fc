"""
GitHub side of the sync: fetch issues and pull requests and normalize
them into SyncItem records.
"""

from dataclasses import replace
from typing import Iterable, Iterator, Optional

from rich.console import Console
from rich.markup import escape

from issue_sync.config import Config, SyncMode
from issue_sync.github_api import GitHubAPI
from issue_sync.identity import IdentityStrategy
from issue_sync.models import ItemKind, SyncItem

console = Console()

UNKNOWN_AUTHOR = "unknown"


def is_pull_request(raw: dict) -> bool:
    """Issue listings include pull requests, marked by a pull_request key."""
    return bool(raw.get("pull_request"))


def select_timestamp(raw: dict) -> Optional[str]:
    """
    Last relevant transition time of an issue or pull request.

    Closed items use their own closed_at, open ones their updated_at.
    Falls back to updated_at, then created_at, when the preferred
    field is missing.
    """
    if raw.get("state") == "closed" and raw.get("closed_at"):
        return raw["closed_at"]
    return raw.get("updated_at") or raw.get("created_at") or None


def repository_name(raw: dict, default: Optional[str] = None) -> Optional[str]:
    """
    Repository name of an item.

    Cross-repository listings embed a repository object, per-repository
    listings only carry repository_url (or base.repo for pulls).
    """
    repo = raw.get("repository") or (raw.get("base") or {}).get("repo")
    if repo and repo.get("name"):
        return repo["name"]
    if default:
        return default
    repository_url = raw.get("repository_url")
    if repository_url:
        return repository_url.rstrip("/").rsplit("/", 1)[-1]
    return None


def normalize(raw: dict, kind: ItemKind, repository: Optional[str] = None) -> SyncItem:
    """Convert a raw GitHub issue or pull request into a SyncItem without identity."""
    user = raw.get("user") or {}

    return SyncItem(
        identity_key=None,
        number=raw.get("number"),
        title=raw.get("title") or "",
        state=raw.get("state") or "",
        url=raw.get("html_url") or None,
        repository=repository_name(raw, repository),
        author=user.get("login") or UNKNOWN_AUTHOR,
        timestamp=select_timestamp(raw),
        kind=kind,
    )


class SourceReader:
    """
    Reads issues and pull requests from GitHub according to the sync mode.

    - assigned: issues assigned to the user, PRs of owned repositories
    - owned: issues and PRs of every owned/collaborated repository
    - repository: issues and PRs of a single repository
    """

    def __init__(self, github: GitHubAPI, config: Config, strategy: IdentityStrategy):
        self.github = github
        self.config = config
        self.strategy = strategy
        self._repository_list: Optional[list[tuple[str, str]]] = None

    def reset(self) -> None:
        """Forget the repository list so the next run reads it again."""
        self._repository_list = None

    def fetch_issues(self) -> list[SyncItem]:
        """Fetch every issue for the configured mode, pull requests excluded."""
        if self.config.mode == SyncMode.ASSIGNED:
            raw_items = self._without_pulls(self.github.iter_assigned_issues(), None)
        else:
            raw_items = (
                pair
                for owner, name in self._repositories()
                for pair in self._without_pulls(
                    self.github.iter_repository_issues(owner, name), name
                )
            )

        items = (normalize(raw, ItemKind.ISSUE, repo) for raw, repo in raw_items)
        return self._identify(items, "issue")

    def fetch_pull_requests(self) -> list[SyncItem]:
        """Fetch every pull request for the configured mode."""
        items = (
            normalize(raw, ItemKind.PULL_REQUEST, name)
            for owner, name in self._repositories()
            for raw in self.github.iter_pull_requests(owner, name)
        )
        return self._identify(items, "pull request")

    def _repositories(self) -> list[tuple[str, str]]:
        """
        (owner, name) of every repository to scan.

        Read once and shared by the issue and pull request collections
        until reset() is called.
        """
        if self.config.mode == SyncMode.REPOSITORY:
            return [self.config.repository_owner_and_name]

        if self._repository_list is None:
            self._repository_list = [
                (repo["owner"]["login"], repo["name"])
                for repo in self.github.iter_repositories()
                if (repo.get("owner") or {}).get("login") and repo.get("name")
            ]
        return self._repository_list

    def _without_pulls(
        self, raw_items: Iterable[dict], repository: Optional[str]
    ) -> Iterator[tuple[dict, Optional[str]]]:
        for raw in raw_items:
            if not is_pull_request(raw):
                yield raw, repository

    def _identify(self, items: Iterable[SyncItem], label: str) -> list[SyncItem]:
        """
        Attach identity keys and drop repeated keys.

        Keys must be unique within a run, a repeated one would otherwise
        produce two creates for the same page.
        """
        result = []
        seen = set()

        for item in items:
            key = self.strategy.extract_identity(item)
            if key is None:
                console.print(
                    f"[yellow]Warning: skipping {label} without {self.strategy.name}: "
                    f"{escape(repr(item.title))}[/yellow]"
                )
                continue
            if key in seen:
                console.print(
                    f"[yellow]Warning: duplicate {label} {self.strategy.name} {key} "
                    f"({item.repository}), keeping the first one[/yellow]"
                )
                continue
            seen.add(key)
            result.append(replace(item, identity_key=key))

        return result
