import unittest

from console_sync.models.resources import CatalogRow, LocalDisk, LocalVM, ResourceKind
from console_sync.services.visibility import owned_resources


def _row(kind, row_id, user_id="user-1", **attributes):
    return CatalogRow.from_record(kind, dict(attributes, id=row_id, user_id=user_id))


class OwnedResourcesTests(unittest.TestCase):
    def test_only_resources_with_rows_are_visible(self):
        local = [
            LocalVM(id="vm-1", name="mine", cpuCores=1, memory=512, status="running"),
            LocalVM(id="vm-2", name="someone else's", cpuCores=1, memory=512, status="running"),
        ]
        rows = [_row(ResourceKind.VM, "1", local_vm_id="vm-1", name="mine")]

        visible = owned_resources(ResourceKind.VM, local, rows)

        self.assertEqual([vm.id for vm in visible], ["vm-1"])

    def test_empty_catalog_shows_nothing(self):
        local = [LocalDisk(id="disk_work_qcow2", size=1)]
        self.assertEqual(owned_resources(ResourceKind.DISK, local, []), [])

    def test_disks_match_on_name_and_format(self):
        local = [LocalDisk(id="disk_work_qcow2", size=1), LocalDisk(id="disk_work_raw", size=1)]
        rows = [_row(ResourceKind.DISK, "1", name="work", format="raw")]

        visible = owned_resources(ResourceKind.DISK, local, rows)

        self.assertEqual([d.id for d in visible], ["disk_work_raw"])

    def test_unidentifiable_entries_are_ignored(self):
        local = [LocalDisk(id="garbage"), LocalDisk(id="disk_ok_vdi", size=1)]
        rows = [
            _row(ResourceKind.DISK, "1", name="ok", format="vdi"),
            _row(ResourceKind.DISK, "2", name="bad", format="iso"),
        ]

        visible = owned_resources(ResourceKind.DISK, local, rows)

        self.assertEqual([d.id for d in visible], ["disk_ok_vdi"])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
