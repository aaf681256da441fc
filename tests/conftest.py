from __future__ import annotations

import copy
import itertools
import threading
from typing import Any, Optional

import httpx
import pytest
from notion_client.errors import HTTPResponseError, RequestTimeoutError

from issue_sync.config import Config, IdentityMode, SyncMode
from issue_sync.models import ItemKind, SyncItem
from issue_sync.notion_api import NotionAPI


def make_raw(
    number: int,
    title: str = "",
    *,
    state: str = "open",
    repo: str = "alpha",
    owner: str = "octo",
    author: Optional[str] = "alice",
    pull_request: bool = False,
    updated_at: str = "2024-05-01T10:00:00Z",
    closed_at: Optional[str] = None,
    embed_repository: bool = False,
) -> dict:
    """Raw GitHub issue/pull request payload."""
    kind = "pull" if pull_request else "issues"
    raw: dict[str, Any] = {
        "number": number,
        "title": title or f"Item {number}",
        "state": state,
        "html_url": f"https://github.com/{owner}/{repo}/{kind}/{number}",
        "repository_url": f"https://api.github.com/repos/{owner}/{repo}",
        "user": {"login": author} if author else None,
        "created_at": "2024-04-01T10:00:00Z",
        "updated_at": updated_at,
        "closed_at": closed_at,
    }
    if pull_request:
        raw["pull_request"] = {"url": f"https://api.github.com/repos/{owner}/{repo}/pulls/{number}"}
    if embed_repository:
        raw["repository"] = {"name": repo, "owner": {"login": owner}}
    return raw


def make_item(number: int, *, key: Any = None, **overrides) -> SyncItem:
    fields = dict(
        identity_key=number if key is None else key,
        number=number,
        title=f"Item {number}",
        state="open",
        url=f"https://github.com/octo/alpha/issues/{number}",
        repository="alpha",
        author="alice",
        timestamp="2024-05-01T10:00:00Z",
        kind=ItemKind.ISSUE,
    )
    fields.update(overrides)
    return SyncItem(**fields)


class FakeGitHub:
    """Stands in for GitHubAPI, serving canned listings."""

    def __init__(
        self,
        assigned: Optional[list[dict]] = None,
        repositories: Optional[list[dict]] = None,
        issues: Optional[dict[str, list[dict]]] = None,
        pulls: Optional[dict[str, list[dict]]] = None,
    ):
        self.assigned = assigned or []
        self.repositories = repositories or []
        self.issues = issues or {}
        self.pulls = pulls or {}
        self.calls: list[tuple] = []
        self.request_count = 0

    def iter_assigned_issues(self):
        self.calls.append(("assigned",))
        return iter(self.assigned)

    def iter_repositories(self):
        self.calls.append(("repositories",))
        return iter(self.repositories)

    def iter_repository_issues(self, owner, repo):
        self.calls.append(("issues", owner, repo))
        return iter(self.issues.get(f"{owner}/{repo}", []))

    def iter_pull_requests(self, owner, repo):
        self.calls.append(("pulls", owner, repo))
        return iter(self.pulls.get(f"{owner}/{repo}", []))


class _Endpoint:
    def __init__(self, **methods):
        for name, method in methods.items():
            setattr(self, name, method)


class FakeNotionClient:
    """
    In-memory Notion with the endpoints the sync uses.

    - databases.query paginates with `page_size` results per call
    - pages.properties.retrieve returns single property items
    - failures can be injected per page title or per page id
    - query_failures are raised, in order, by the next queries
    """

    def __init__(self, page_size: int = 3, truncate_urls: bool = False):
        self.page_size = page_size
        self.truncate_urls = truncate_urls
        self.databases_store: dict[str, list[dict]] = {}
        self.fail_create_titles: set[str] = set()
        self.fail_update_ids: set[str] = set()
        self.fail_lookup_ids: set[str] = set()
        self.fail_query = False
        self.query_failures: list[Exception] = []
        self.calls: list[str] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

        self.databases = _Endpoint(query=self._query)
        self.pages = _Endpoint(
            create=self._create,
            update=self._update,
            properties=_Endpoint(retrieve=self._retrieve),
        )

    # Store helpers

    def add_page(self, database_id: str, properties: dict, archived: bool = False) -> str:
        with self._lock:
            page_id = f"page-{next(self._ids)}"
            self.databases_store.setdefault(database_id, []).append(
                {"id": page_id, "archived": archived, "properties": self._with_ids(properties)}
            )
        return page_id

    def pages_in(self, database_id: str) -> list[dict]:
        return self.databases_store.get(database_id, [])

    def find(self, page_id: str) -> dict:
        for pages in self.databases_store.values():
            for page in pages:
                if page["id"] == page_id:
                    return page
        raise KeyError(page_id)

    @staticmethod
    def _with_ids(properties: dict) -> dict:
        return {
            name: {"id": f"prop-{name.lower()}", **copy.deepcopy(value)}
            for name, value in properties.items()
        }

    @staticmethod
    def _title_of(properties: dict) -> str:
        parts = properties.get("Name", {}).get("title") or []
        return "".join(p["text"]["content"] for p in parts)

    # Endpoints

    def _query(self, database_id, start_cursor=None, page_size=100):
        self.calls.append("query")
        if self.fail_query:
            raise RequestTimeoutError()
        if self.query_failures:
            raise self.query_failures.pop(0)
        # Like Notion, queries skip archived pages
        pages = [p for p in self.pages_in(database_id) if not p["archived"]]
        start = int(start_cursor or 0)
        chunk = copy.deepcopy(pages[start:start + self.page_size])
        if self.truncate_urls:
            for page in chunk:
                if "URL" in page["properties"]:
                    page["properties"]["URL"]["url"] = None
        end = start + len(chunk)
        has_more = end < len(pages)
        return {
            "results": chunk,
            "has_more": has_more,
            "next_cursor": str(end) if has_more else None,
        }

    def _create(self, parent, properties):
        self.calls.append("create")
        if self._title_of(properties) in self.fail_create_titles:
            raise RuntimeError("create rejected")
        page_id = self.add_page(parent["database_id"], properties)
        return {"id": page_id}

    def _update(self, page_id, properties, archived=None):
        self.calls.append("update")
        if page_id in self.fail_update_ids:
            raise RuntimeError("update rejected")
        with self._lock:
            page = self.find(page_id)
            page["properties"] = self._with_ids(properties)
            if archived is not None:
                page["archived"] = archived
        return {"id": page_id}

    def _retrieve(self, page_id, property_id):
        self.calls.append("retrieve")
        if page_id in self.fail_lookup_ids:
            raise RuntimeError("lookup failed")
        page = self.find(page_id)
        for prop in page["properties"].values():
            if prop["id"] == property_id:
                prop_type = "url" if "url" in prop else "number"
                return {"object": "property_item", "type": prop_type, prop_type: prop.get(prop_type)}
        raise KeyError(property_id)


@pytest.fixture
def config() -> Config:
    return Config(
        notion_token="secret_notion",
        github_token="ghp_token",
        issues_database_id="issues-db",
        pull_requests_database_id="prs-db",
        mode=SyncMode.ASSIGNED,
        identity_mode=IdentityMode.NUMBER,
        batch_size=10,
        notion_rate_limit=10000,
    )


@pytest.fixture
def notion_client() -> FakeNotionClient:
    return FakeNotionClient()


@pytest.fixture
def notion_api(config, notion_client) -> NotionAPI:
    return NotionAPI(config, client=notion_client, retry_backoff=0)


def gateway_error(status: int = 502) -> HTTPResponseError:
    """Notion answer with an HTML body, as sent by a proxy in front of the API."""
    return HTTPResponseError(httpx.Response(status, text="<html>Bad Gateway</html>"))
