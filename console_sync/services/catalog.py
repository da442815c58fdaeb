"""
Supabase catalog client.

CRUD over the per-user metadata tables. Every query and write is scoped
to one user and one resource kind, so a pass for one kind can never
touch another kind's or another user's rows.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from postgrest.exceptions import APIError
from supabase import Client, create_client

from console_sync.config import Settings
from console_sync.errors import (
    CatalogError,
    ConfigurationError,
    Conflict,
    FetchFailed,
    NotAuthenticated,
    NotFound,
)
from console_sync.models.resources import CatalogRow, ResourceKind, spec_for
from console_sync.utils import to_iso, utc_now_iso

logger = logging.getLogger(__name__)

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"

# PostgREST default max-rows; listings are fetched page by page
PAGE_SIZE = 1000


def build_supabase_client(config: Settings) -> Client:
    """Create the Supabase client the application passes around explicitly."""
    if not config.supabase_configured:
        raise ConfigurationError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
    client = create_client(config.supabase_url, config.supabase_key)
    logger.info("Supabase client initialized")
    return client


def _is_conflict(error: APIError) -> bool:
    return str(error.code or "") in (UNIQUE_VIOLATION, "409")


class RemoteCatalogClient:
    """Catalog rows of one kind for one user."""

    def __init__(self, client: Client, user_id: str, kind: ResourceKind, page_size: int = PAGE_SIZE):
        if not user_id:
            raise NotAuthenticated("A user id is required to access the catalog")
        self.client = client
        self.user_id = user_id
        self.kind = ResourceKind(kind)
        self.spec = spec_for(self.kind)
        self.page_size = max(1, page_size)

    def __repr__(self) -> str:
        return f"RemoteCatalogClient(user_id={self.user_id!r}, kind={self.kind.value!r})"

    def _table(self):
        return self.client.table(self.spec.table)

    def _scoped(self, query):
        query = query.eq("user_id", self.user_id)
        if self.spec.type_value:
            query = query.eq("type", self.spec.type_value)
        return query

    # =========================================================================
    # Public API
    # =========================================================================

    async def list(self) -> List[CatalogRow]:
        return await asyncio.to_thread(self._list_sync)

    async def create(self, attributes: Dict[str, Any], created_at: Optional[Any] = None) -> CatalogRow:
        return await asyncio.to_thread(self._create_sync, attributes, created_at)

    async def update(self, row_id: str, changes: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._update_sync, row_id, changes)

    async def delete(self, row_id: str) -> None:
        await asyncio.to_thread(self._delete_sync, row_id)

    # =========================================================================
    # Blocking implementations
    # =========================================================================

    def _list_sync(self) -> List[CatalogRow]:
        rows: List[CatalogRow] = []
        start = 0
        while True:
            records = self._fetch_page(start)
            rows.extend(CatalogRow.from_record(self.kind, record) for record in records)
            # a short page is the last one
            if len(records) < self.page_size:
                break
            start += self.page_size

        logger.debug(f"Catalog holds {len(rows)} {self.kind.value} row(s) for user {self.user_id}")
        return rows

    def _fetch_page(self, start: int) -> List[Dict[str, Any]]:
        end = start + self.page_size - 1
        try:
            query = self._scoped(self._table().select("*")).order("id").range(start, end)
            response = query.execute()
        except APIError as e:
            raise FetchFailed(f"Failed to list {self.kind.value} catalog rows: {e.message}") from e
        except Exception as e:
            raise FetchFailed(f"Catalog unreachable while listing {self.kind.value} rows: {e}") from e

        records = response.data
        if records is None:
            records = []
        if not isinstance(records, list):
            raise FetchFailed(f"Catalog returned a malformed {self.kind.value} listing")
        return records

    def _create_sync(self, attributes: Dict[str, Any], created_at: Optional[Any]) -> CatalogRow:
        now = utc_now_iso()
        payload = dict(attributes)
        payload["user_id"] = self.user_id
        if self.spec.type_value:
            payload["type"] = self.spec.type_value
        payload["created_at"] = to_iso(created_at) or now
        payload["updated_at"] = now

        try:
            response = self._table().insert(payload).execute()
        except APIError as e:
            if _is_conflict(e):
                raise Conflict(f"{self.kind.value} row already exists: {e.message}") from e
            raise CatalogError(f"Failed to create {self.kind.value} row: {e.message}") from e
        except Exception as e:
            raise CatalogError(f"Catalog unreachable while creating {self.kind.value} row: {e}") from e

        if not response.data:
            raise CatalogError(f"Catalog returned no row for created {self.kind.value}")
        return CatalogRow.from_record(self.kind, response.data[0])

    def _update_sync(self, row_id: str, changes: Dict[str, Any]) -> None:
        payload = dict(changes)
        payload["updated_at"] = utc_now_iso()

        try:
            response = self._scoped(self._table().update(payload).eq("id", row_id)).execute()
        except APIError as e:
            raise CatalogError(f"Failed to update {self.kind.value} row {row_id}: {e.message}") from e
        except Exception as e:
            raise CatalogError(f"Catalog unreachable while updating {self.kind.value} row {row_id}: {e}") from e

        if not response.data:
            raise NotFound(f"{self.kind.value} row {row_id} no longer exists")

    def _delete_sync(self, row_id: str) -> None:
        try:
            response = self._scoped(self._table().delete().eq("id", row_id)).execute()
        except APIError as e:
            raise CatalogError(f"Failed to delete {self.kind.value} row {row_id}: {e.message}") from e
        except Exception as e:
            raise CatalogError(f"Catalog unreachable while deleting {self.kind.value} row {row_id}: {e}") from e

        if not response.data:
            raise NotFound(f"{self.kind.value} row {row_id} already deleted")


async def list_all_for_user(client: Client, user_id: str) -> Dict[ResourceKind, List[CatalogRow]]:
    """Every catalog row the user owns, grouped by kind."""
    kinds = list(ResourceKind)
    rows = await asyncio.gather(*(RemoteCatalogClient(client, user_id, kind).list() for kind in kinds))
    return dict(zip(kinds, rows))
