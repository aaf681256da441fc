"""
Create-vs-update classification.

This is the only place the sync decides whether an item gets a new
Notion page or overwrites an existing one.
"""

from typing import Iterable

from issue_sync.models import IdentityMap, PendingUpdate, Reconciliation, SyncItem


def reconcile(items: Iterable[SyncItem], identity_map: IdentityMap) -> Reconciliation:
    """
    Split fetched items into pages to create and pages to update.

    Args:
        items: Items fetched from GitHub, identity keys already resolved.
        identity_map: identity_key -> Notion page ID, built before the run.

    Returns:
        Reconciliation with disjoint to_create / to_update lists, each
        keeping the input order.
    """
    result = Reconciliation()

    for item in items:
        page_id = identity_map.get(item.identity_key) if item.identity_key is not None else None
        if page_id:
            result.to_update.append(PendingUpdate(item=item, sink_page_id=page_id))
        else:
            result.to_create.append(item)

    return result
