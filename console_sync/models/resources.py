"""
Pydantic models for local resources and catalog rows.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from console_sync.utils import parse_size_gb


class ResourceKind(str, Enum):
    VM = "vm"
    DISK = "disk"
    DOCKERFILE = "dockerfile"
    IMAGE = "image"
    CONTAINER = "container"


DISK_FORMATS = ("qcow2", "raw", "vdi", "vmdk")

# docker ps reports uptime-bearing strings ("Up 5 minutes"); mirror the state only
_CONTAINER_STATE_PREFIXES = (
    ("up", "running"),
    ("exited", "exited"),
    ("created", "created"),
    ("restarting", "restarting"),
    ("removal", "removing"),
    ("dead", "dead"),
)


class _AgentModel(BaseModel):
    """Base for payloads coming from the local agent (camelCase tolerant)."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LocalVM(_AgentModel):
    """Virtual machine as reported by the agent."""
    id: str
    name: str
    cpu_cores: int = Field(alias="cpuCores")
    memory: int  # MB
    status: str  # running, stopped, paused
    disk_path: Optional[str] = None
    iso_path: Optional[str] = None
    created_at: Optional[datetime] = Field(None, alias="createdAt")

    @model_validator(mode="before")
    @classmethod
    def _flatten_attachments(cls, data: Any) -> Any:
        # agent nests attachments as {"disk": {"path": ...}, "iso": {"path": ...}}
        if isinstance(data, dict):
            data = dict(data)
            for attachment in ("disk", "iso"):
                nested = data.pop(attachment, None)
                column = f"{attachment}_path"
                if isinstance(nested, dict) and column not in data:
                    data[column] = nested.get("path")
        return data

    def catalog_columns(self) -> Dict[str, Any]:
        return {
            "local_vm_id": self.id,
            "name": self.name,
            "cpu_cores": self.cpu_cores,
            "memory": self.memory,
            "status": self.status,
            "disk_path": self.disk_path,
            "iso_path": self.iso_path,
        }


class LocalDisk(_AgentModel):
    """Virtual disk image; `id` is the composite disk_<name>_<format> string."""
    id: str
    name: Optional[str] = None
    format: Optional[str] = None
    size: Optional[Union[int, float]] = None  # GB
    path: Optional[str] = None
    created_at: Optional[datetime] = Field(None, alias="createdAt")

    @field_validator("size", mode="before")
    @classmethod
    def _normalize_size(cls, value: Any) -> Optional[Union[int, float]]:
        return parse_size_gb(value)

    def catalog_columns(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "format": self.format,
            "size": self.size,
            "path": self.path,
        }


class LocalDockerfile(_AgentModel):
    """Dockerfile stored in the agent's dockerfiles directory."""
    name: str
    path: str
    content: str = ""
    size: Optional[int] = None
    created_at: Optional[datetime] = Field(None, alias="createdAt")

    def catalog_columns(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "content": self.content,
        }


class LocalImage(_AgentModel):
    """Docker image from `docker image ls`."""
    id: str
    repository: str = "<none>"
    tag: str = "<none>"
    size: Optional[str] = None
    created: Optional[str] = None

    @property
    def name(self) -> str:
        return f"{self.repository}:{self.tag}"

    def catalog_columns(self) -> Dict[str, Any]:
        return {
            "local_id": self.id,
            "name": self.name,
        }


class LocalContainer(_AgentModel):
    """Docker container from `docker ps`."""
    id: str
    name: str = ""
    image: str = ""
    status: str = ""
    ports: str = ""
    command: str = ""

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> str:
        text = str(value or "").strip()
        lowered = text.lower()
        if "(paused)" in lowered:
            return "paused"
        for prefix, state in _CONTAINER_STATE_PREFIXES:
            if lowered.startswith(prefix):
                return state
        return lowered

    def catalog_columns(self) -> Dict[str, Any]:
        return {
            "local_id": self.id,
            "name": self.name,
            "status": self.status,
        }


LocalResource = Union[LocalVM, LocalDisk, LocalDockerfile, LocalImage, LocalContainer]


@dataclass(frozen=True)
class KindSpec:
    """Where and how one resource kind is mirrored in the catalog."""
    kind: ResourceKind
    table: str
    key_columns: Tuple[str, ...]
    mirrored_columns: Tuple[str, ...]
    model: Type[_AgentModel]
    type_value: Optional[str] = None  # discriminator for shared tables


KIND_SPECS: Dict[ResourceKind, KindSpec] = {
    ResourceKind.VM: KindSpec(
        kind=ResourceKind.VM,
        table="virtual_machines_metadata",
        key_columns=("local_vm_id",),
        mirrored_columns=("name", "cpu_cores", "memory", "status", "disk_path", "iso_path"),
        model=LocalVM,
    ),
    ResourceKind.DISK: KindSpec(
        kind=ResourceKind.DISK,
        table="virtual_disks_metadata",
        key_columns=("name", "format"),
        mirrored_columns=("size", "path"),
        model=LocalDisk,
    ),
    ResourceKind.DOCKERFILE: KindSpec(
        kind=ResourceKind.DOCKERFILE,
        table="docker_metadata",
        key_columns=("name", "path"),
        mirrored_columns=("content",),
        model=LocalDockerfile,
        type_value="dockerfile",
    ),
    ResourceKind.IMAGE: KindSpec(
        kind=ResourceKind.IMAGE,
        table="docker_metadata",
        key_columns=("local_id",),
        mirrored_columns=("name",),
        model=LocalImage,
        type_value="image",
    ),
    ResourceKind.CONTAINER: KindSpec(
        kind=ResourceKind.CONTAINER,
        table="docker_metadata",
        key_columns=("local_id",),
        mirrored_columns=("name", "status"),
        model=LocalContainer,
        type_value="container",
    ),
}


def spec_for(kind: ResourceKind) -> KindSpec:
    return KIND_SPECS[ResourceKind(kind)]


# Columns the catalog manages itself; never part of key or mirrored attributes
_BOOKKEEPING_COLUMNS = {"id", "user_id", "type", "created_at", "updated_at"}


class CatalogRow(BaseModel):
    """A persisted catalog record for one user and one kind."""
    row_id: str
    user_id: str
    kind: ResourceKind
    attributes: Dict[str, Any] = {}
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_record(cls, kind: ResourceKind, record: Dict[str, Any]) -> "CatalogRow":
        return cls(
            row_id=str(record["id"]),
            user_id=str(record.get("user_id") or ""),
            kind=kind,
            attributes={k: v for k, v in record.items() if k not in _BOOKKEEPING_COLUMNS},
            created_at=record.get("created_at"),
            updated_at=record.get("updated_at"),
        )

    def to_record(self) -> Dict[str, Any]:
        """Flatten back to the column layout the API returns."""
        record = dict(self.attributes)
        record.update({
            "id": self.row_id,
            "user_id": self.user_id,
            "kind": self.kind.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        })
        return record
