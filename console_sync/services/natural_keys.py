"""
Natural-key derivation.

Local resources and catalog rows share no surrogate id, so both sides
are matched on a kind-specific key computed here. Composite disk ids
are parsed and built in this module only.
"""

from typing import Any, NamedTuple, Tuple

from console_sync.errors import MalformedIdentifier
from console_sync.models.resources import (
    DISK_FORMATS,
    CatalogRow,
    LocalDisk,
    LocalResource,
    ResourceKind,
    spec_for,
)

DISK_ID_PREFIX = "disk_"
DISK_ID_SEPARATOR = "_"


class DiskIdentity(NamedTuple):
    name: str
    format: str


class NaturalKey(NamedTuple):
    kind: ResourceKind
    values: Tuple[str, ...]

    def label(self) -> str:
        return "/".join(self.values)


def format_disk_id(name: str, disk_format: str) -> str:
    """Build the composite id the console uses for a disk."""
    identity = _validate_disk_identity(name, disk_format, source=f"{name!r}/{disk_format!r}")
    return f"{DISK_ID_PREFIX}{identity.name}{DISK_ID_SEPARATOR}{identity.format}"


def parse_disk_id(disk_id: str) -> DiskIdentity:
    """
    Split a disk_<name>_<format> id into its parts.

    The format never contains the separator, so the split happens on
    the last one; names may contain underscores. Ids without the prefix,
    with an empty name or with an unknown format are rejected.
    """
    if not isinstance(disk_id, str) or not disk_id.startswith(DISK_ID_PREFIX):
        raise MalformedIdentifier(f"Disk id {disk_id!r} does not start with {DISK_ID_PREFIX!r}")

    name, separator, disk_format = disk_id[len(DISK_ID_PREFIX):].rpartition(DISK_ID_SEPARATOR)
    if not separator:
        raise MalformedIdentifier(f"Disk id {disk_id!r} has no format part")
    return _validate_disk_identity(name, disk_format, source=repr(disk_id))


def _validate_disk_identity(name: Any, disk_format: Any, source: str) -> DiskIdentity:
    if not isinstance(name, str) or not name.strip():
        raise MalformedIdentifier(f"Disk {source} has an empty name")
    if disk_format not in DISK_FORMATS:
        raise MalformedIdentifier(f"Disk {source} has unknown format {disk_format!r}")
    return DiskIdentity(name=name, format=disk_format)


def _key_value(kind: ResourceKind, column: str, value: Any, source: str) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MalformedIdentifier(f"{kind.value} {source} has no value for key column {column!r}")
    return str(value)


def disk_identity(disk: LocalDisk) -> DiskIdentity:
    """Identity of a local disk; explicit name/format must agree with the id."""
    identity = parse_disk_id(disk.id)
    if disk.name is not None and disk.name != identity.name:
        raise MalformedIdentifier(f"Disk {disk.id!r} reports name {disk.name!r}")
    if disk.format is not None and disk.format != identity.format:
        raise MalformedIdentifier(f"Disk {disk.id!r} reports format {disk.format!r}")
    return identity


def local_key(kind: ResourceKind, resource: LocalResource) -> NaturalKey:
    """Natural key of a local resource."""
    kind = ResourceKind(kind)
    spec = spec_for(kind)
    if not isinstance(resource, spec.model):
        raise MalformedIdentifier(
            f"Expected {spec.model.__name__} for kind {kind.value}, got {type(resource).__name__}"
        )

    if kind == ResourceKind.DISK:
        return NaturalKey(kind, tuple(disk_identity(resource)))

    columns = resource.catalog_columns()
    source = repr(getattr(resource, "id", None) or getattr(resource, "name", None))
    return NaturalKey(
        kind,
        tuple(_key_value(kind, column, columns.get(column), source) for column in spec.key_columns),
    )


def row_key(row: CatalogRow) -> NaturalKey:
    """Natural key of a catalog row."""
    spec = spec_for(row.kind)
    source = f"row {row.row_id}"
    values = tuple(
        _key_value(row.kind, column, row.attributes.get(column), source)
        for column in spec.key_columns
    )
    if row.kind == ResourceKind.DISK:
        _validate_disk_identity(values[0], values[1], source=source)
    return NaturalKey(row.kind, values)


def catalog_attributes(kind: ResourceKind, resource: LocalResource) -> dict:
    """Key and mirrored columns a row for this resource should carry."""
    kind = ResourceKind(kind)
    spec = spec_for(kind)
    columns = resource.catalog_columns()
    if kind == ResourceKind.DISK:
        identity = disk_identity(resource)
        columns["name"] = identity.name
        columns["format"] = identity.format
    wanted = spec.key_columns + spec.mirrored_columns
    return {column: columns.get(column) for column in wanted}
