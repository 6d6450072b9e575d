"""Canonical backup record models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

ROOT_NAMESPACE = "root"


class Provenance(StrEnum):
    """Where a backup was discovered."""

    SNAPSHOT = "snapshot"
    LOCAL = "local"  # platform storage listing, incl. backup-server-backed storages
    REMOTE = "remote"  # backup server's own inventory


class GuestType(StrEnum):
    """Display classification of the backed-up guest."""

    VM = "VM"
    LXC = "LXC"
    HOST = "Host"


@dataclass(frozen=True)
class BackupRecord:
    """One physical backup, regardless of how many sources reported it."""

    provenance: Provenance
    guest_id: int | str  # str only for Host backups (node name / filename)
    guest_name: str
    guest_type: GuestType
    source_node: str
    source_instance: str
    timestamp: int  # Unix seconds, 0 when unknown
    label: str = ""
    description: str = ""
    size: int | None = None
    storage: str | None = None
    datastore: str | None = None
    namespace: str | None = None
    verified: bool | None = None
    protected: bool = False
    encrypted: bool = False
    owner: str | None = None

    @property
    def status(self) -> str:
        if self.provenance == Provenance.SNAPSHOT or self.verified is None:
            return "ok"
        return "verified" if self.verified else "unverified"

    @property
    def is_host(self) -> bool:
        return self.guest_type == GuestType.HOST
