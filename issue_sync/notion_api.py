"""
Notion API wrapper for the sync system.

Provides a clean interface to Notion's API with:
- Rate limiting compliance
- Cursor pagination over database queries
- Retry on rate limits and server errors
- Error translation into the sync failure taxonomy
"""

import threading
import time
from typing import Any, Optional

import httpx
from notion_client import Client
from notion_client.errors import (
    APIErrorCode,
    APIResponseError,
    HTTPResponseError,
    RequestTimeoutError,
)
from ratelimit import limits, sleep_and_retry
from rich.console import Console
from rich.markup import escape

from issue_sync.config import Config
from issue_sync.errors import PaginationFailure, PropertyLookupFailure, WriteFailure

console = Console()

# Notion API rate limit: 3 requests per second on average
RATE_LIMIT_PERIOD = 1  # second
MAX_RETRIES = 3
RETRY_BACKOFF = 1.0  # seconds, doubled on every attempt

# HTTPResponseError covers answers without a JSON body (gateway pages),
# httpx.HTTPError covers failures below the HTTP layer
NOTION_ERRORS = (HTTPResponseError, RequestTimeoutError, httpx.HTTPError)


def _is_retryable(error: Exception) -> bool:
    """Rate limits, timeouts, network errors and 5xx answers are worth another try."""
    if isinstance(error, (RequestTimeoutError, httpx.TransportError)):
        return True
    if isinstance(error, APIResponseError) and error.code == APIErrorCode.RateLimited:
        return True
    if isinstance(error, HTTPResponseError):
        return error.status >= 500
    return False


class NotionAPI:
    """
    Wrapper around Notion API with rate limiting and utilities.

    Handles:
    - Authentication
    - Rate limiting (shared by every thread using this instance)
    - Database pagination
    - Page creation, update and property retrieval
    """

    def __init__(
        self,
        config: Config,
        client: Optional[Client] = None,
        retry_backoff: float = RETRY_BACKOFF,
    ):
        """
        Initialize the Notion API client.

        Args:
            config: Configuration instance with Notion token.
            client: Optional pre-built client (used by tests).
            retry_backoff: First delay between retries, doubled each time.
        """
        self.config = config
        self.retry_backoff = retry_backoff
        self.client = client or Client(
            auth=config.notion_token,
            timeout_ms=config.request_timeout * 1000,
        )
        self._request_count = 0
        self._count_lock = threading.Lock()
        self._throttled = sleep_and_retry(
            limits(calls=config.notion_rate_limit, period=RATE_LIMIT_PERIOD)(self._invoke)
        )

    def _invoke(self, func, *args, **kwargs) -> Any:
        with self._count_lock:
            self._request_count += 1
        return func(*args, **kwargs)

    def _rate_limited_call(self, func, *args, **kwargs) -> Any:
        """Execute a rate-limited API call, retrying transient failures."""
        delay = self.retry_backoff
        for attempt in range(MAX_RETRIES + 1):
            try:
                return self._throttled(func, *args, **kwargs)
            except NOTION_ERRORS as e:
                if attempt == MAX_RETRIES or not _is_retryable(e):
                    raise
                if self.config.debug:
                    console.print(f"[dim]Notion call failed ({escape(str(e))}), retrying in {delay:.0f}s[/dim]")
                time.sleep(delay)
                delay *= 2

    def query_database(self, database_id: str) -> list[dict]:
        """
        Get every page stored in a database.

        Args:
            database_id: The Notion database ID.

        Returns:
            List of raw page objects.

        Raises:
            PaginationFailure: If any page of results cannot be fetched.
        """
        pages = []
        start_cursor = None
        formatted_id = self._format_page_id(database_id)

        while True:
            try:
                response = self._rate_limited_call(
                    self.client.databases.query,
                    database_id=formatted_id,
                    start_cursor=start_cursor,
                    page_size=100,
                )
            except NOTION_ERRORS as e:
                raise PaginationFailure(
                    f"Failed to query Notion database {database_id}: {e}",
                    identity=database_id,
                ) from e

            pages.extend(response.get("results", []))

            start_cursor = response.get("next_cursor")
            if not response.get("has_more", False) or not start_cursor:
                break

        return pages

    def create_page(self, database_id: str, properties: dict) -> str:
        """
        Create a page in a database.

        Returns:
            The new page ID.

        Raises:
            WriteFailure: If Notion rejects the request.
        """
        try:
            response = self._rate_limited_call(
                self.client.pages.create,
                parent={"database_id": self._format_page_id(database_id)},
                properties=properties,
            )
        except NOTION_ERRORS as e:
            raise WriteFailure(f"create failed: {e}") from e
        return response["id"]

    def update_page(self, page_id: str, properties: dict, archived: bool = False) -> None:
        """
        Overwrite a page's properties and set its archived flag.

        Raises:
            WriteFailure: If Notion rejects the request.
        """
        try:
            self._rate_limited_call(
                self.client.pages.update,
                page_id=page_id,
                properties=properties,
                archived=archived,
            )
        except NOTION_ERRORS as e:
            raise WriteFailure(f"update of page {page_id} failed: {e}", identity=page_id) from e

    def get_page_property(self, page_id: str, property_id: str) -> Any:
        """
        Get the value of a single page property.

        Database queries may truncate property values, this endpoint
        always returns the full one.

        Raises:
            PropertyLookupFailure: If the property cannot be retrieved.
        """
        try:
            response = self._rate_limited_call(
                self.client.pages.properties.retrieve,
                page_id=page_id,
                property_id=property_id,
            )
        except NOTION_ERRORS as e:
            raise PropertyLookupFailure(
                f"lookup of property {property_id} failed: {e}", identity=page_id
            ) from e

        # Paginated property types come back as a list of property items
        if response.get("object") == "list":
            results = response.get("results") or []
            if not results:
                return None
            response = results[0]

        return response.get(response.get("type"))

    def _format_page_id(self, page_id: str) -> str:
        """
        Format a page ID for API calls.

        Notion API sometimes requires dashes, sometimes doesn't.
        This ensures consistent formatting.
        """
        clean_id = page_id.replace("-", "")

        if len(clean_id) == 32:
            return f"{clean_id[:8]}-{clean_id[8:12]}-{clean_id[12:16]}-{clean_id[16:20]}-{clean_id[20:]}"

        return page_id

    @property
    def request_count(self) -> int:
        """Number of API requests made."""
        return self._request_count
