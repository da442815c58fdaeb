import unittest

from console_sync.errors import CatalogError, NotFound
from console_sync.models.resources import LocalContainer, LocalDisk, LocalVM, ResourceKind
from console_sync.services.reconciler import Reconciler, diff_attributes, plan_reconciliation

from fakes import InMemoryCatalog, InMemoryStore

USER = "user-1"


def disk(name, size, disk_format="qcow2", path=None):
    return LocalDisk(id=f"disk_{name}_{disk_format}", size=size, path=path or f"/disks/{name}.{disk_format}")


def container(container_id, name, status="Up 1 minute"):
    return LocalContainer(id=container_id, name=name, status=status)


class PlanTests(unittest.TestCase):
    """Pure planning, no catalog involved."""

    def setUp(self):
        self.store = InMemoryStore()

    def add_disk_row(self, name, size, disk_format="qcow2", user_id=USER):
        return self.store.add(user_id, ResourceKind.DISK, name=name, format=disk_format, size=size,
                              path=f"/disks/{name}.{disk_format}")

    def test_create_only_when_absent(self):
        self.add_disk_row("a", 10)
        plan = plan_reconciliation(ResourceKind.DISK, [disk("a", 10), disk("b", 5)],
                                   self.store.rows(USER, ResourceKind.DISK))

        self.assertEqual([c.key.values for c in plan.creates], [("b", "qcow2")])
        self.assertEqual(plan.updates, [])
        self.assertEqual(plan.deletes, [])

    def test_orphan_deletion(self):
        self.add_disk_row("a", 10)
        orphan = self.add_disk_row("b", 5)
        plan = plan_reconciliation(ResourceKind.DISK, [disk("a", 10)], self.store.rows(USER, ResourceKind.DISK))

        self.assertEqual([d.row_id for d in plan.deletes], [orphan.row_id])
        self.assertEqual(plan.creates, [])
        self.assertEqual(plan.updates, [])

    def test_update_only_on_drift(self):
        row = self.add_disk_row("a", 10)
        plan = plan_reconciliation(ResourceKind.DISK, [disk("a", 20)], self.store.rows(USER, ResourceKind.DISK))
        self.assertEqual(len(plan.updates), 1)
        self.assertEqual(plan.updates[0].row_id, row.row_id)
        self.assertEqual(plan.updates[0].changes, {"size": 20})

        plan = plan_reconciliation(ResourceKind.DISK, [disk("a", 10)], self.store.rows(USER, ResourceKind.DISK))
        self.assertTrue(plan.is_empty)

    def test_duplicate_local_keys_block_only_that_key(self):
        self.add_disk_row("dup", 10)
        local = [disk("dup", 10), disk("dup", 30, path="/other/dup.qcow2"), disk("fresh", 1)]
        plan = plan_reconciliation(ResourceKind.DISK, local, self.store.rows(USER, ResourceKind.DISK))

        self.assertEqual([e.code for e in plan.errors], ["AMBIGUOUS_LOCAL_STATE"])
        self.assertEqual(plan.errors[0].key, "dup/qcow2")
        self.assertEqual([c.key.values for c in plan.creates], [("fresh", "qcow2")])
        self.assertEqual(plan.updates, [])
        self.assertEqual(plan.deletes, [])

    def test_duplicate_remote_keys_are_reported_not_merged(self):
        self.add_disk_row("twin", 10)
        self.add_disk_row("twin", 10)
        plan = plan_reconciliation(ResourceKind.DISK, [], self.store.rows(USER, ResourceKind.DISK))

        self.assertEqual([e.code for e in plan.errors], ["AMBIGUOUS_REMOTE_STATE"])
        self.assertTrue(plan.is_empty)

    def test_unidentifiable_local_resource_suppresses_orphan_deletion(self):
        self.add_disk_row("a", 10)
        self.add_disk_row("gone", 10)
        broken = LocalDisk(id="not-a-disk-id")
        plan = plan_reconciliation(ResourceKind.DISK, [disk("a", 12), broken], self.store.rows(USER, ResourceKind.DISK))

        self.assertTrue(plan.deletes_suppressed)
        self.assertEqual(plan.deletes, [])
        self.assertEqual(len(plan.updates), 1)
        self.assertEqual([e.code for e in plan.errors], ["MALFORMED_IDENTIFIER"])

    def test_unidentifiable_row_is_left_alone(self):
        self.store.add(USER, ResourceKind.VM, name="no-local-id")
        plan = plan_reconciliation(ResourceKind.VM, [], self.store.rows(USER, ResourceKind.VM))

        self.assertTrue(plan.is_empty)
        self.assertEqual(plan.errors[0].code, "MALFORMED_IDENTIFIER")
        self.assertIsNotNone(plan.errors[0].row_id)

    def test_empty_and_none_paths_are_equal(self):
        self.assertEqual(diff_attributes(["iso_path"], {"iso_path": None}, {"iso_path": ""}), {})
        self.assertEqual(diff_attributes(["size"], {"size": 20}, {"size": 20.0}), {})
        self.assertEqual(diff_attributes(["size"], {"size": 20}, {"size": 10}), {"size": 20})


class ReconcilerTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.store = InMemoryStore()

    def catalog(self, kind, user_id=USER):
        return InMemoryCatalog(self.store, user_id, kind)

    async def reconcile(self, catalog, local):
        return await Reconciler(catalog).reconcile(catalog.kind, local, await catalog.list())

    async def test_end_to_end_disk_scenario(self):
        """work grows 10 -> 20 and old disappears: one update, one delete."""
        work = self.store.add(USER, ResourceKind.DISK, name="work", format="qcow2", size=10, path="/disks/work.qcow2")
        old = self.store.add(USER, ResourceKind.DISK, name="old", format="raw", size=5, path="/disks/old.raw")
        catalog = self.catalog(ResourceKind.DISK)

        result = await self.reconcile(catalog, [disk("work", 20)])

        self.assertEqual((result.created, result.updated, result.deleted), (0, 1, 1))
        self.assertEqual(result.errors, [])
        self.assertIn(("update", (work.row_id, {"size": 20})), catalog.writes)
        self.assertIn(("delete", old.row_id), catalog.writes)
        self.assertEqual(len(catalog.writes), 2)

    async def test_idempotence(self):
        self.store.add(USER, ResourceKind.CONTAINER, local_id="c-1", name="stale", status="exited")
        self.store.add(USER, ResourceKind.CONTAINER, local_id="c-9", name="gone", status="running")
        local = [container("c-1", "web"), container("c-2", "db", "Exited (1) 2 hours ago")]

        first = await self.reconcile(self.catalog(ResourceKind.CONTAINER), local)
        self.assertEqual((first.created, first.updated, first.deleted), (1, 1, 1))

        second_catalog = self.catalog(ResourceKind.CONTAINER)
        second = await self.reconcile(second_catalog, local)
        self.assertEqual((second.created, second.updated, second.deleted), (0, 0, 0))
        self.assertEqual(second_catalog.writes, [])

    async def test_convergence(self):
        self.store.add(USER, ResourceKind.VM, local_vm_id="vm-1", name="old-name", cpu_cores=1, memory=512,
                       status="stopped", disk_path=None, iso_path=None)
        self.store.add(USER, ResourceKind.VM, local_vm_id="vm-x", name="orphan", cpu_cores=1, memory=512,
                       status="stopped", disk_path=None, iso_path=None)
        local = [
            LocalVM(id="vm-1", name="web", cpuCores=2, memory=2048, status="running", disk_path="/d/web.qcow2"),
            LocalVM(id="vm-2", name="db", cpuCores=4, memory=8192, status="stopped"),
        ]

        await self.reconcile(self.catalog(ResourceKind.VM), local)

        rows = {r.attributes["local_vm_id"]: r.attributes for r in self.store.rows(USER, ResourceKind.VM)}
        self.assertEqual(set(rows), {"vm-1", "vm-2"})
        self.assertEqual(rows["vm-1"]["name"], "web")
        self.assertEqual(rows["vm-1"]["cpu_cores"], 2)
        self.assertEqual(rows["vm-1"]["disk_path"], "/d/web.qcow2")
        self.assertEqual(rows["vm-2"]["memory"], 8192)

    async def test_failure_isolation(self):
        b = self.store.add(USER, ResourceKind.DISK, name="b", format="qcow2", size=1, path="/disks/b.qcow2")
        d = self.store.add(USER, ResourceKind.DISK, name="d", format="qcow2", size=1, path="/disks/d.qcow2")
        catalog = self.catalog(ResourceKind.DISK)
        catalog.fail("update", b.row_id, CatalogError("boom"))

        result = await self.reconcile(catalog, [disk("b", 2), disk("c", 3)])

        self.assertEqual((result.created, result.updated, result.deleted), (1, 0, 1))
        self.assertEqual(len(result.errors), 1)
        self.assertEqual(result.errors[0].code, "CATALOG_ERROR")
        self.assertEqual(result.errors[0].row_id, b.row_id)
        self.assertNotIn(d.row_id, self.store.records)
        self.assertEqual([r.attributes["name"] for r in self.store.rows(USER, ResourceKind.DISK)], ["b", "c"])

    async def test_unexpected_exception_is_recorded_per_record(self):
        catalog = self.catalog(ResourceKind.DISK)
        catalog.fail("create", None, RuntimeError("socket closed"))

        result = await self.reconcile(catalog, [disk("x", 1), disk("y", 1)])

        self.assertEqual(result.created, 0)
        self.assertEqual([e.code for e in result.errors], ["UNEXPECTED_ERROR", "UNEXPECTED_ERROR"])

    async def test_conflict_on_create_is_benign(self):
        """A concurrent pass inserted the row between our list and our create."""
        catalog = self.catalog(ResourceKind.DISK)
        remote_snapshot = await catalog.list()
        self.store.add(USER, ResourceKind.DISK, name="race", format="raw", size=1, path="/disks/race.raw")

        result = await Reconciler(catalog).reconcile(ResourceKind.DISK, [disk("race", 1, "raw")], remote_snapshot)

        self.assertEqual(result.created, 0)
        self.assertEqual(result.skipped, 1)
        self.assertFalse(result.has_errors)
        self.assertEqual(len(self.store.rows(USER, ResourceKind.DISK)), 1)

    async def test_not_found_on_delete_counts_as_converged(self):
        gone = self.store.add(USER, ResourceKind.DISK, name="gone", format="raw", size=1, path="/disks/gone.raw")
        catalog = self.catalog(ResourceKind.DISK)
        catalog.fail("delete", gone.row_id, NotFound("already deleted"))

        result = await self.reconcile(catalog, [])

        self.assertEqual(result.deleted, 0)
        self.assertEqual(result.skipped, 1)
        self.assertFalse(result.has_errors)

    async def test_not_found_on_update_counts_as_converged(self):
        """The row was deleted by another pass between our list and our update."""
        stale = self.store.add(USER, ResourceKind.DISK, name="work", format="qcow2", size=10, path="/disks/work.qcow2")
        catalog = self.catalog(ResourceKind.DISK)
        catalog.fail("update", stale.row_id, NotFound("row no longer exists"))

        result = await self.reconcile(catalog, [disk("work", 20)])

        self.assertEqual(result.updated, 0)
        self.assertEqual(result.skipped, 1)
        self.assertFalse(result.has_errors)
        self.assertEqual(catalog.writes, [("update", (stale.row_id, {"size": 20}))])

    async def test_other_users_and_kinds_are_untouched(self):
        self.store.add("user-2", ResourceKind.DISK, name="theirs", format="raw", size=1, path="/x")
        self.store.add(USER, ResourceKind.VM, local_vm_id="vm-1", name="mine", cpu_cores=1, memory=1,
                       status="running", disk_path=None, iso_path=None)

        result = await self.reconcile(self.catalog(ResourceKind.DISK), [])

        self.assertEqual(result.deleted, 0)
        self.assertEqual(len(self.store.rows("user-2", ResourceKind.DISK)), 1)
        self.assertEqual(len(self.store.rows(USER, ResourceKind.VM)), 1)

    async def test_duplicate_local_keys_write_nothing_for_that_key(self):
        self.store.add(USER, ResourceKind.CONTAINER, local_id="c-1", name="web", status="running")
        catalog = self.catalog(ResourceKind.CONTAINER)

        result = await self.reconcile(catalog, [
            container("c-1", "web", "Exited (0) now"),
            container("c-1", "web-copy"),
            container("c-2", "db"),
        ])

        self.assertEqual([e.code for e in result.errors], ["AMBIGUOUS_LOCAL_STATE"])
        self.assertEqual(result.created, 1)
        self.assertEqual(result.updated, 0)
        self.assertEqual([c[0] for c in catalog.writes], ["create"])

    async def test_kind_mismatch_is_rejected(self):
        with self.assertRaises(ValueError):
            await Reconciler(self.catalog(ResourceKind.VM)).reconcile(ResourceKind.DISK, [], [])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
