"""
Sync orchestration.

Runs one reconciliation pass per resource kind for a user. Kinds are
independent: a kind whose inventory or catalog cannot be listed is
reported and left untouched while the others proceed.
"""

import asyncio
import logging
from typing import Callable, Dict, Iterable, Optional

from console_sync.errors import NotAuthenticated
from console_sync.models.events import NotificationType
from console_sync.models.resources import ResourceKind
from console_sync.models.sync import ReconcileResult, RecordError, SyncReport
from console_sync.services.catalog import RemoteCatalogClient
from console_sync.services.events import SYNC_COMPLETED, SYNC_KIND_COMPLETED, EventBus
from console_sync.services.local_inventory import LocalInventoryAdapter
from console_sync.services.reconciler import Reconciler
from console_sync.utils import utc_now_iso

logger = logging.getLogger(__name__)

CatalogFactory = Callable[[str, ResourceKind], RemoteCatalogClient]


def _kind_failure(kind: ResourceKind, error: Exception) -> RecordError:
    return RecordError(
        kind=kind,
        code=getattr(error, "error_code", "UNEXPECTED_ERROR"),
        message=str(error) or error.__class__.__name__,
    )


class SyncOrchestrator:
    """Entry point for sign-in and manual-refresh syncs."""

    def __init__(
        self,
        adapters: Dict[ResourceKind, LocalInventoryAdapter],
        catalog_factory: CatalogFactory,
        events: Optional[EventBus] = None,
        max_concurrent_writes: int = 8
    ):
        self.adapters = adapters
        self.catalog_factory = catalog_factory
        self.events = events
        self.max_concurrent_writes = max_concurrent_writes

    async def sync_all(self, user_id: str, kinds: Optional[Iterable[ResourceKind]] = None) -> SyncReport:
        """
        Reconcile every requested kind for a user.

        Args:
            user_id: Authenticated user id
            kinds: Kinds to reconcile (all kinds if None, none if empty)

        Returns:
            SyncReport with one ReconcileResult per kind

        Raises:
            NotAuthenticated: no user id; partial failures never raise
        """
        if not user_id:
            raise NotAuthenticated("No authenticated user found. Cannot synchronize data.")

        selected = list(dict.fromkeys(ResourceKind(k) for k in kinds)) if kinds is not None else list(ResourceKind)
        report = SyncReport(user_id=user_id, started_at=utc_now_iso())
        logger.info(f"Starting sync for user {user_id}: {[k.value for k in selected]}")

        results = await asyncio.gather(*(self.sync_kind(user_id, kind) for kind in selected))
        report.per_kind = {result.kind: result for result in results}
        report.completed_at = utc_now_iso()

        totals = report.totals()
        logger.info(
            f"Sync for user {user_id} finished: created={totals['created']} updated={totals['updated']} "
            f"deleted={totals['deleted']} errors={totals['errors']}"
        )
        await self._publish_report(report)
        return report

    async def sync_kind(self, user_id: str, kind: ResourceKind) -> ReconcileResult:
        """One reconciliation pass; failures are folded into the result."""
        kind = ResourceKind(kind)
        adapter = self.adapters.get(kind)
        if adapter is None:
            return ReconcileResult(kind=kind, errors=[RecordError(
                kind=kind, code="CONFIGURATION_ERROR", message=f"No local inventory adapter for {kind.value}"
            )])

        try:
            catalog = self.catalog_factory(user_id, kind)
        except Exception as e:
            logger.error(f"Cannot open {kind.value} catalog for user {user_id}: {e}")
            return ReconcileResult(kind=kind, errors=[_kind_failure(kind, e)])

        local_list, remote_list = await asyncio.gather(
            adapter.list(user_id=user_id),
            catalog.list(),
            return_exceptions=True
        )
        fetch_errors = [r for r in (local_list, remote_list) if isinstance(r, BaseException)]
        if fetch_errors:
            for error in fetch_errors:
                logger.error(f"Skipping {kind.value} reconciliation for user {user_id}: {error}")
            return ReconcileResult(kind=kind, errors=[_kind_failure(kind, e) for e in fetch_errors])

        try:
            reconciler = Reconciler(catalog, max_concurrency=self.max_concurrent_writes)
            return await reconciler.reconcile(kind, local_list, remote_list)
        except Exception as e:
            logger.error(f"Error reconciling {kind.value} for user {user_id}: {e}", exc_info=True)
            return ReconcileResult(kind=kind, errors=[_kind_failure(kind, e)])

    async def _publish_report(self, report: SyncReport) -> None:
        if not self.events:
            return

        for kind, result in report.per_kind.items():
            counts = result.summary()
            await self.events.notify(
                topic=SYNC_KIND_COMPLETED,
                type=NotificationType.WARNING if result.has_errors else NotificationType.SUCCESS,
                message=(
                    f"{kind.value}: {counts['created']} created, {counts['updated']} updated, "
                    f"{counts['deleted']} deleted, {counts['errors']} error(s)"
                ),
                details={"user_id": report.user_id, "kind": kind.value, **counts},
            )

        totals = report.totals()
        if report.has_errors:
            failed = [k.value for k, r in report.per_kind.items() if r.has_errors]
            await self.events.notify(
                topic=SYNC_COMPLETED,
                type=NotificationType.ERROR,
                message=f"Synchronization finished with errors in: {', '.join(failed)}",
                details={"user_id": report.user_id, **totals},
            )
        else:
            await self.events.notify(
                topic=SYNC_COMPLETED,
                type=NotificationType.SUCCESS,
                message="All resources synchronized",
                details={"user_id": report.user_id, **totals},
            )
