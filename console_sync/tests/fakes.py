"""In-memory stand-ins for the catalog used across the test modules."""

import itertools
from typing import Any, Dict, List, Optional, Tuple

from console_sync.errors import Conflict, NotFound
from console_sync.models.resources import CatalogRow, ResourceKind, spec_for


class InMemoryStore:
    """Rows for every user and kind, with the (user, kind, key) uniqueness rule."""

    def __init__(self):
        self.records: Dict[str, Dict[str, Any]] = {}
        self._ids = itertools.count(1)

    def add(self, user_id: str, kind: ResourceKind, **attributes) -> CatalogRow:
        record = dict(attributes, id=str(next(self._ids)), user_id=user_id, type=ResourceKind(kind).value)
        self.records[record["id"]] = record
        return CatalogRow.from_record(kind, record)

    def rows(self, user_id: str, kind: ResourceKind) -> List[CatalogRow]:
        return [
            CatalogRow.from_record(kind, record)
            for record in self.records.values()
            if record["user_id"] == user_id and record["type"] == ResourceKind(kind).value
        ]


class InMemoryCatalog:
    """Implements the RemoteCatalogClient interface over an InMemoryStore."""

    def __init__(self, store: InMemoryStore, user_id: str, kind: ResourceKind):
        self.store = store
        self.user_id = user_id
        self.kind = ResourceKind(kind)
        self.calls: List[Tuple[str, Any]] = []
        self.failures: Dict[Tuple[str, Optional[str]], Exception] = {}
        self.list_error: Optional[Exception] = None

    def fail(self, operation: str, row_id: Optional[str], error: Exception) -> None:
        self.failures[(operation, row_id)] = error

    def _check(self, operation: str, row_id: Optional[str]) -> None:
        error = self.failures.get((operation, row_id)) or self.failures.get((operation, None))
        if error:
            raise error

    def _key(self, attributes: Dict[str, Any]) -> tuple:
        return tuple(attributes.get(c) for c in spec_for(self.kind).key_columns)

    @property
    def writes(self) -> List[Tuple[str, Any]]:
        return [call for call in self.calls if call[0] != "list"]

    async def list(self) -> List[CatalogRow]:
        self.calls.append(("list", None))
        if self.list_error:
            raise self.list_error
        return self.store.rows(self.user_id, self.kind)

    async def create(self, attributes: Dict[str, Any], created_at=None) -> CatalogRow:
        self.calls.append(("create", dict(attributes)))
        self._check("create", None)
        for row in self.store.rows(self.user_id, self.kind):
            if self._key(row.attributes) == self._key(attributes):
                raise Conflict(f"duplicate key {self._key(attributes)}")
        return self.store.add(self.user_id, self.kind, **attributes)

    async def update(self, row_id: str, changes: Dict[str, Any]) -> None:
        self.calls.append(("update", (row_id, dict(changes))))
        self._check("update", row_id)
        record = self.store.records.get(row_id)
        if not record or record["user_id"] != self.user_id:
            raise NotFound(f"row {row_id} missing")
        record.update(changes)

    async def delete(self, row_id: str) -> None:
        self.calls.append(("delete", row_id))
        self._check("delete", row_id)
        record = self.store.records.get(row_id)
        if not record or record["user_id"] != self.user_id:
            raise NotFound(f"row {row_id} missing")
        del self.store.records[row_id]
