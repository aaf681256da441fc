"""
GitHub REST API wrapper for the sync system.

Covers the listing endpoints the sync reads from:
- issues assigned to the authenticated user
- repositories the user owns or collaborates on
- issues and pull requests of a repository

Every listing follows the Link header until there is no "next" page.
Rate limits (403/429) and 5xx answers are retried with backoff.
"""

import time
from typing import Any, Iterator, Optional

import requests
from rich.console import Console
from rich.markup import escape

from issue_sync.config import Config
from issue_sync.errors import PaginationFailure

console = Console()

PER_PAGE = 100
# Longest wait for an exhausted rate limit to reset, beyond it the run fails
MAX_RATE_LIMIT_WAIT_S = 900.0


class GitHubAPI:
    """
    Thin GitHub client built on a requests session.

    Handles:
    - Authentication
    - Link header pagination
    - Retry with backoff on rate limits and server errors
    """

    def __init__(
        self,
        config: Config,
        *,
        session: Optional[requests.Session] = None,
        max_retries: int = 4,
        min_backoff_s: float = 1.0,
        max_backoff_s: float = 30.0,
        max_rate_limit_wait_s: float = MAX_RATE_LIMIT_WAIT_S,
    ) -> None:
        self.config = config
        self._base_url = config.github_api_url.rstrip("/")
        self._timeout_s = config.request_timeout
        self._max_retries = max_retries
        self._min_backoff_s = min_backoff_s
        self._max_backoff_s = max_backoff_s
        self._max_rate_limit_wait_s = max_rate_limit_wait_s
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {config.github_token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            }
        )
        self._request_count = 0

    def iter_assigned_issues(self) -> Iterator[dict]:
        """Issues (and PRs) assigned to the authenticated user, across repositories."""
        return self.paginate("/issues", {"filter": "assigned", "state": "all"})

    def iter_repositories(self) -> Iterator[dict]:
        """Repositories the authenticated user owns or collaborates on."""
        return self.paginate("/user/repos", {"affiliation": "owner,collaborator"})

    def iter_repository_issues(self, owner: str, repo: str) -> Iterator[dict]:
        """Issues (and PRs) of one repository."""
        return self.paginate(f"/repos/{owner}/{repo}/issues", {"state": "all"})

    def iter_pull_requests(self, owner: str, repo: str) -> Iterator[dict]:
        """Pull requests of one repository."""
        return self.paginate(f"/repos/{owner}/{repo}/pulls", {"state": "all"})

    def paginate(self, path: str, params: Optional[dict[str, Any]] = None) -> Iterator[dict]:
        """
        Yield every element of a paginated listing.

        Args:
            path: API path relative to the base URL.
            params: Query parameters for the first page.

        Raises:
            PaginationFailure: If a page cannot be fetched after retries.
        """
        url: Optional[str] = f"{self._base_url}{path}"
        query: Optional[dict[str, Any]] = {**(params or {}), "per_page": PER_PAGE}

        while url:
            response = self._get(url, query)
            for element in response.json():
                yield element

            # The "next" URL already carries the query string
            url = response.links.get("next", {}).get("url")
            query = None

    def _get(self, url: str, query: Optional[dict[str, Any]]) -> requests.Response:
        """
        GET with backoff.

        Strategy:
        - 429, or 403 with an exhausted rate limit: wait for Retry-After or
          X-RateLimit-Reset, otherwise exponential. A reset further away
          than max_rate_limit_wait_s fails at once, naming the reset time.
        - 5xx and connection errors: exponential.
        - Other 4xx: fail immediately (auth or configuration problem).
        """
        backoff = self._min_backoff_s

        for attempt in range(self._max_retries + 1):
            self._request_count += 1
            try:
                resp = self._session.get(url, params=query, timeout=self._timeout_s)
            except requests.RequestException as e:
                if attempt == self._max_retries:
                    raise PaginationFailure(f"GET {url} failed: {e}", identity=url) from e
                self._sleep(backoff, f"GET {url} failed ({e})")
                backoff = min(backoff * 2, self._max_backoff_s)
                continue

            if 200 <= resp.status_code < 300:
                return resp

            retryable = resp.status_code == 429 or resp.status_code >= 500 or (
                resp.status_code == 403 and resp.headers.get("X-RateLimit-Remaining") == "0"
            )
            if not retryable or attempt == self._max_retries:
                raise PaginationFailure(
                    f"GET {url} returned {resp.status_code}: {resp.text[:200]}",
                    identity=url,
                )

            delay = self._retry_delay(resp, backoff)
            if delay > self._max_rate_limit_wait_s:
                resets_at = time.strftime("%H:%M:%S UTC", time.gmtime(time.time() + delay))
                raise PaginationFailure(
                    f"GitHub rate limit exhausted for GET {url}, resets at {resets_at} "
                    f"(in {delay:.0f}s, over the {self._max_rate_limit_wait_s:.0f}s wait limit)",
                    identity=url,
                )

            self._sleep(delay, f"GitHub returned {resp.status_code}")
            backoff = min(backoff * 2, self._max_backoff_s)

        # Unreachable, the loop either returns or raises
        raise PaginationFailure(f"GET {url} failed", identity=url)

    def _retry_delay(self, resp: requests.Response, backoff: float) -> float:
        """Seconds until GitHub accepts requests again, backoff when it does not say."""
        retry_after = resp.headers.get("Retry-After")
        if retry_after and retry_after.isdigit():
            return float(retry_after)

        # Every answer carries X-RateLimit-Reset, it only matters once exhausted
        reset = resp.headers.get("X-RateLimit-Reset")
        if resp.headers.get("X-RateLimit-Remaining") == "0" and reset and reset.isdigit():
            return max(float(reset) - time.time(), 0.0)

        return backoff

    def _sleep(self, seconds: float, reason: str) -> None:
        if self.config.debug:
            console.print(f"[dim]{escape(reason)}, retrying in {seconds:.1f}s[/dim]")
        time.sleep(seconds)

    @property
    def request_count(self) -> int:
        """Number of API requests made."""
        return self._request_count
