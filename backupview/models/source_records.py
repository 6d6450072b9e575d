"""Raw record shapes pushed in by the polling layer, one per source schema."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _size(value: Any) -> int | None:
    """Sizes of zero or garbage mean "unknown"."""
    try:
        size = int(value)
    except (TypeError, ValueError):
        return None
    return size if size > 0 else None


@dataclass(frozen=True)
class GuestSnapshot:
    """Guest snapshot as reported by the virtualization platform."""

    guest_id: int | str
    instance: str
    node: str
    platform_type: str  # "qemu" or "lxc"
    created_at: Any = None  # ISO string, datetime, or epoch number
    name: str = ""
    description: str = ""
    size_bytes: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GuestSnapshot:
        return cls(
            guest_id=data.get("vmid", 0),
            instance=_text(data.get("instance")),
            node=_text(data.get("node")),
            platform_type=_text(data.get("type")),
            created_at=data.get("time"),
            name=_text(data.get("name")),
            description=_text(data.get("description")),
            size_bytes=_size(data.get("sizeBytes")),
        )


@dataclass(frozen=True)
class StorageBackup:
    """Backup volume found in a platform storage listing."""

    guest_id: int | str
    node: str
    instance: str
    ctime: Any = None
    storage: str = ""
    volid: str = ""
    notes: str = ""
    verified: bool = False
    protected: bool = False
    encryption: str = ""
    raw_type: str = ""  # qemu / lxc / host / vztmpl / iso ...
    size: int | None = None
    is_pbs: bool = False  # storage is backed by the backup server

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StorageBackup:
        return cls(
            guest_id=data.get("vmid", 0),
            node=_text(data.get("node")),
            instance=_text(data.get("instance")),
            ctime=data.get("ctime", data.get("time")),
            storage=_text(data.get("storage")),
            volid=_text(data.get("volid")),
            notes=_text(data.get("notes")),
            verified=bool(data.get("verified")),
            protected=bool(data.get("protected")),
            encryption=_text(data.get("encryption")),
            raw_type=_text(data.get("type")),
            size=_size(data.get("size")),
            is_pbs=bool(data.get("isPBS")),
        )


@dataclass(frozen=True)
class RemoteBackup:
    """Backup snapshot from the backup server's own inventory."""

    guest_id: str
    backup_type: str  # "vm", "ct", "host"
    instance: str
    backup_time: Any = None
    comment: str = ""
    size: int | None = None
    datastore: str = ""
    namespace: str = ""
    verified: bool = False
    protected: bool = False
    owner: str = ""
    files: tuple[Any, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteBackup:
        files = data.get("files") or ()
        return cls(
            guest_id=_text(data.get("vmid")),
            backup_type=_text(data.get("backupType")),
            instance=_text(data.get("instance")),
            backup_time=data.get("backupTime"),
            comment=_text(data.get("comment")),
            size=_size(data.get("size")),
            datastore=_text(data.get("datastore")),
            namespace=_text(data.get("namespace")),
            verified=bool(data.get("verified")),
            protected=bool(data.get("protected")),
            owner=_text(data.get("owner")),
            files=tuple(files) if isinstance(files, (list, tuple)) else (),
        )


@dataclass(frozen=True)
class HostConfigBackup:
    """Mail-gateway host configuration backup."""

    record_id: str
    instance: str
    node: str
    filename: str
    backup_time: Any = None
    size: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HostConfigBackup:
        return cls(
            record_id=_text(data.get("id")),
            instance=_text(data.get("instance")),
            node=_text(data.get("node")),
            filename=_text(data.get("filename")),
            backup_time=data.get("backupTime"),
            size=_size(data.get("size")),
        )


@dataclass(frozen=True)
class GuestInfo:
    """Entry of the VM/container registry used to backfill guest names."""

    guest_id: int
    instance: str
    name: str
    kind: str = "qemu"

    @classmethod
    def from_dict(cls, data: dict[str, Any], kind: str = "qemu") -> GuestInfo:
        return cls(
            guest_id=int(data.get("vmid", 0)),
            instance=_text(data.get("instance")),
            name=_text(data.get("name")),
            kind=_text(data.get("type")) or kind,
        )


@dataclass(frozen=True)
class DatastoreStats:
    """Per-datastore figures reported by a backup server instance."""

    instance: str
    name: str
    deduplication_factor: float | None = None


@dataclass(frozen=True)
class NodeRef:
    """A platform node; (instance, name) is unique across clusters."""

    instance: str
    name: str
    id: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NodeRef:
        return cls(
            instance=_text(data.get("instance")),
            name=_text(data.get("name")),
            id=_text(data.get("id")),
        )
