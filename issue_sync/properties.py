"""
SyncItem to Notion property conversion.

Every field maps to an explicit value, absent fields to an explicit
empty one, so building a payload never fails.
"""

from typing import Any, Optional

from issue_sync.config import PropertySchema
from issue_sync.models import SyncItem

# Notion limits
MAX_SELECT_LENGTH = 100
MAX_TEXT_LENGTH = 2000


def _title(text: Optional[str]) -> dict:
    if not text:
        return {"title": []}
    return {"title": [{"type": "text", "text": {"content": text[:MAX_TEXT_LENGTH]}}]}


def _select(name: Optional[str]) -> dict:
    """
    Select option by name.

    Notion rejects commas in option names and caps their length.
    """
    if name is None:
        return {"select": None}
    clean = str(name).replace(",", " ").strip()[:MAX_SELECT_LENGTH]
    return {"select": {"name": clean} if clean else None}


def _number(value: Any) -> dict:
    return {"number": value if isinstance(value, (int, float)) else None}


def _url(value: Optional[str]) -> dict:
    return {"url": value or None}


def _date(value: Optional[str]) -> dict:
    return {"date": {"start": value} if value else None}


def to_properties(item: SyncItem, schema: Optional[PropertySchema] = None) -> dict:
    """
    Build the Notion property payload for an item.

    Args:
        item: The item to convert.
        schema: Property names of the target database.

    Returns:
        Dict ready to pass as `properties` to pages.create / pages.update.
    """
    schema = schema or PropertySchema()

    return {
        schema.title: _title(item.title),
        schema.number: _number(item.number),
        schema.repository: _select(item.repository),
        schema.author: _select(item.author),
        schema.state: _select(item.state),
        schema.url: _url(item.url),
        schema.date: _date(item.timestamp),
    }
