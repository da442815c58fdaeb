"""
Set reconciliation between local inventory and catalog rows.

Matching policy: natural key only.
- key on both sides -> UPDATE when mirrored columns drift, else nothing
- key only local    -> CREATE
- key only remote   -> DELETE (orphan)

Planning is pure; applying the plan is the only part that does I/O.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from console_sync.errors import (
    AmbiguousLocalState,
    AmbiguousRemoteState,
    Conflict,
    MalformedIdentifier,
    NotFound,
)
from console_sync.models.resources import CatalogRow, LocalResource, ResourceKind, spec_for
from console_sync.models.sync import ReconcileResult, RecordError
from console_sync.services.catalog import RemoteCatalogClient
from console_sync.services.natural_keys import NaturalKey, catalog_attributes, local_key, row_key

logger = logging.getLogger(__name__)


@dataclass
class PlannedCreate:
    key: NaturalKey
    attributes: Dict[str, Any]
    created_at: Optional[Any] = None


@dataclass
class PlannedUpdate:
    key: NaturalKey
    row_id: str
    changes: Dict[str, Any]


@dataclass
class PlannedDelete:
    key: NaturalKey
    row_id: str


@dataclass
class ReconcilePlan:
    """Writes needed to converge one kind, plus what could not be planned."""
    kind: ResourceKind
    creates: List[PlannedCreate] = field(default_factory=list)
    updates: List[PlannedUpdate] = field(default_factory=list)
    deletes: List[PlannedDelete] = field(default_factory=list)
    errors: List[RecordError] = field(default_factory=list)
    deletes_suppressed: bool = False

    @property
    def is_empty(self) -> bool:
        return not (self.creates or self.updates or self.deletes)

    @property
    def summary(self) -> Dict[str, int]:
        return {
            "creates": len(self.creates),
            "updates": len(self.updates),
            "deletes": len(self.deletes),
            "errors": len(self.errors),
        }


def _normalize(value: Any) -> Any:
    if value is None or (isinstance(value, str) and value == ""):
        return None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def diff_attributes(columns: Sequence[str], desired: Dict[str, Any], current: Dict[str, Any]) -> Dict[str, Any]:
    """Mirrored columns whose desired value differs from the stored one."""
    changes = {}
    for column in columns:
        if _normalize(desired.get(column)) != _normalize(current.get(column)):
            changes[column] = desired.get(column)
    return changes


def _record_error(kind: ResourceKind, error: Exception, key: Optional[NaturalKey] = None,
                  row_id: Optional[str] = None) -> RecordError:
    return RecordError(
        kind=kind,
        code=getattr(error, "error_code", "UNEXPECTED_ERROR"),
        message=str(error) or error.__class__.__name__,
        key=key.label() if key else None,
        row_id=row_id,
    )


def plan_reconciliation(
    kind: ResourceKind,
    local_list: Sequence[LocalResource],
    remote_list: Sequence[CatalogRow],
) -> ReconcilePlan:
    """
    Compute the writes that converge the catalog to the local inventory.

    Args:
        kind: Resource kind both lists belong to
        local_list: Complete local inventory for the kind
        remote_list: The user's catalog rows for the kind

    Returns:
        ReconcilePlan; keys that are duplicated on either side are
        reported in `errors` and get no writes at all.
    """
    kind = ResourceKind(kind)
    spec = spec_for(kind)
    plan = ReconcilePlan(kind=kind)

    # 1. local side
    local_groups: Dict[NaturalKey, List[Tuple[LocalResource, Dict[str, Any]]]] = defaultdict(list)
    for resource in local_list:
        try:
            key = local_key(kind, resource)
            attributes = catalog_attributes(kind, resource)
        except MalformedIdentifier as e:
            plan.errors.append(_record_error(kind, e))
            # the local set is no longer known to be complete
            plan.deletes_suppressed = True
            continue
        local_groups[key].append((resource, attributes))

    # 2. remote side
    remote_groups: Dict[NaturalKey, List[CatalogRow]] = defaultdict(list)
    for row in remote_list:
        if row.kind != kind:
            plan.errors.append(_record_error(
                kind, MalformedIdentifier(f"Row {row.row_id} belongs to kind {row.kind.value}"), row_id=row.row_id
            ))
            continue
        try:
            key = row_key(row)
        except MalformedIdentifier as e:
            plan.errors.append(_record_error(kind, e, row_id=row.row_id))
            continue
        remote_groups[key].append(row)

    blocked = set()
    for key in sorted(local_groups):
        if len(local_groups[key]) > 1:
            blocked.add(key)
            plan.errors.append(_record_error(kind, AmbiguousLocalState(
                f"{len(local_groups[key])} local {kind.value} resources share key {key.label()}"
            ), key=key))
    for key in sorted(remote_groups):
        if len(remote_groups[key]) > 1:
            blocked.add(key)
            row_ids = ", ".join(row.row_id for row in remote_groups[key])
            plan.errors.append(_record_error(kind, AmbiguousRemoteState(
                f"Catalog rows {row_ids} share {kind.value} key {key.label()}"
            ), key=key))

    # 3-5. diff
    for key in sorted(set(local_groups) | set(remote_groups)):
        if key in blocked:
            continue
        local_entry = local_groups.get(key)
        remote_rows = remote_groups.get(key)

        if local_entry and not remote_rows:
            resource, attributes = local_entry[0]
            plan.creates.append(PlannedCreate(
                key=key,
                attributes=attributes,
                created_at=getattr(resource, "created_at", None),
            ))
        elif local_entry and remote_rows:
            _, attributes = local_entry[0]
            row = remote_rows[0]
            changes = diff_attributes(spec.mirrored_columns, attributes, row.attributes)
            if changes:
                plan.updates.append(PlannedUpdate(key=key, row_id=row.row_id, changes=changes))
        elif not plan.deletes_suppressed:
            plan.deletes.append(PlannedDelete(key=key, row_id=remote_rows[0].row_id))

    if plan.deletes_suppressed:
        logger.warning(f"Orphan deletion skipped for {kind.value}: local inventory has unidentifiable entries")
    return plan


class Reconciler:
    """Applies reconciliation plans against one scoped catalog client."""

    def __init__(self, catalog: RemoteCatalogClient, max_concurrency: int = 8):
        self.catalog = catalog
        self.max_concurrency = max(1, max_concurrency)

    async def reconcile(
        self,
        kind: ResourceKind,
        local_list: Sequence[LocalResource],
        remote_list: Sequence[CatalogRow],
    ) -> ReconcileResult:
        kind = ResourceKind(kind)
        if kind != self.catalog.kind:
            raise ValueError(f"Catalog client is scoped to {self.catalog.kind.value}, not {kind.value}")

        plan = plan_reconciliation(kind, local_list, remote_list)
        logger.debug(f"{kind.value} plan: {plan.summary}")
        return await self.apply(plan)

    async def apply(self, plan: ReconcilePlan) -> ReconcileResult:
        """Run every planned write; one record's failure never stops the others."""
        result = ReconcileResult(kind=plan.kind, errors=list(plan.errors))
        semaphore = asyncio.Semaphore(self.max_concurrency)

        tasks = []
        for op in plan.creates:
            tasks.append(self._guarded(
                semaphore, plan.kind, "created", op.key, None,
                partial(self.catalog.create, op.attributes, created_at=op.created_at)
            ))
        for op in plan.updates:
            tasks.append(self._guarded(
                semaphore, plan.kind, "updated", op.key, op.row_id,
                partial(self.catalog.update, op.row_id, op.changes)
            ))
        for op in plan.deletes:
            tasks.append(self._guarded(
                semaphore, plan.kind, "deleted", op.key, op.row_id,
                partial(self.catalog.delete, op.row_id)
            ))

        for outcome, error in await asyncio.gather(*tasks):
            if outcome == "error":
                result.errors.append(error)
            else:
                setattr(result, outcome, getattr(result, outcome) + 1)

        logger.info(
            f"Reconciled {plan.kind.value}: created={result.created} updated={result.updated} "
            f"deleted={result.deleted} skipped={result.skipped} errors={len(result.errors)}"
        )
        return result

    async def _guarded(
        self,
        semaphore: asyncio.Semaphore,
        kind: ResourceKind,
        outcome: str,
        key: NaturalKey,
        row_id: Optional[str],
        call: Callable[[], Awaitable[Any]],
    ) -> Tuple[str, Optional[RecordError]]:
        async with semaphore:
            try:
                await call()
            except Conflict as e:
                logger.debug(f"Create for {kind.value} {key.label()} lost a race, keeping existing row: {e}")
                return "skipped", None
            except NotFound as e:
                logger.debug(f"{kind.value} {key.label()} already converged: {e}")
                return "skipped", None
            except Exception as e:
                logger.warning(f"Failed to write {kind.value} {key.label()}: {e}")
                return "error", _record_error(kind, e, key=key, row_id=row_id)
        return outcome, None
