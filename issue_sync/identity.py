"""
Identity strategies.

A strategy decides which field links a GitHub item to its Notion page,
on both sides of the sync:
- extract_identity(item) reads the key from a normalized SyncItem
- key_from_page(page) reads it from a queried Notion page (direct mode)
- key_from_value(value) turns a retrieved property value into a key
  (indirect mode, when queries truncate the property)
"""

from typing import Any, Optional

from issue_sync.config import IdentityMode, PropertySchema
from issue_sync.models import SyncItem


class IdentityStrategy:
    """Base class for identity strategies."""

    name = "identity"
    # True when key_from_page cannot be trusted and each page needs a lookup
    indirect = False

    def __init__(self, schema: Optional[PropertySchema] = None):
        self.schema = schema or PropertySchema()

    @property
    def property_name(self) -> str:
        raise NotImplementedError

    def extract_identity(self, item: SyncItem) -> Any:
        """Key of a normalized GitHub item."""
        raise NotImplementedError

    def key_from_page(self, page: dict) -> Any:
        """Key stored on a queried Notion page, or None."""
        raise NotImplementedError

    def key_from_value(self, value: Any) -> Any:
        """Key from a property value retrieved on its own."""
        return value or None

    def property_id(self, page: dict) -> Optional[str]:
        """ID of the identity property on a page, used for indirect lookups."""
        prop = page.get("properties", {}).get(self.property_name) or {}
        return prop.get("id")


class NumberIdentity(IdentityStrategy):
    """Match on the issue/PR number stored in a number property."""

    name = "number"

    @property
    def property_name(self) -> str:
        return self.schema.number

    def extract_identity(self, item: SyncItem) -> Any:
        return item.number

    def key_from_page(self, page: dict) -> Any:
        prop = page.get("properties", {}).get(self.property_name) or {}
        return prop.get("number")

    def key_from_value(self, value: Any) -> Any:
        return value


class UrlIdentity(IdentityStrategy):
    """
    Match on the item's canonical html_url stored in a URL property.

    URLs are unique across repositories, unlike numbers.
    """

    name = "url"
    indirect = True

    @property
    def property_name(self) -> str:
        return self.schema.url

    def extract_identity(self, item: SyncItem) -> Any:
        return item.url or None

    def key_from_page(self, page: dict) -> Any:
        prop = page.get("properties", {}).get(self.property_name) or {}
        return prop.get("url") or None


def strategy_for(mode: IdentityMode, schema: Optional[PropertySchema] = None) -> IdentityStrategy:
    """Build the strategy selected by configuration."""
    if mode == IdentityMode.URL:
        return UrlIdentity(schema)
    return NumberIdentity(schema)
