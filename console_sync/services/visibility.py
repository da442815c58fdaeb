"""
Ownership filter for local inventory listings.

A user sees the local resources that have a catalog row of theirs, and
nothing else. An empty catalog means an empty listing.
"""

import logging
from typing import List, Sequence

from console_sync.errors import MalformedIdentifier
from console_sync.models.resources import CatalogRow, LocalResource, ResourceKind
from console_sync.services.natural_keys import local_key, row_key

logger = logging.getLogger(__name__)


def owned_resources(
    kind: ResourceKind,
    local_list: Sequence[LocalResource],
    rows: Sequence[CatalogRow],
) -> List[LocalResource]:
    """Local resources whose natural key appears in the user's catalog rows."""
    owned_keys = set()
    for row in rows:
        try:
            owned_keys.add(row_key(row))
        except MalformedIdentifier as e:
            logger.debug(f"Ignoring unidentifiable catalog row {row.row_id}: {e}")

    visible = []
    for resource in local_list:
        try:
            key = local_key(kind, resource)
        except MalformedIdentifier:
            continue
        if key in owned_keys:
            visible.append(resource)
    return visible
