"""Normalizer: map each source schema onto the canonical BackupRecord."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from loguru import logger

from backupview.core.identity import (
    GuestRegistry,
    canonical_guest_id,
    classify_guest_type,
    fallback_guest_name,
)
from backupview.models.backup_record import ROOT_NAMESPACE, BackupRecord, GuestType, Provenance
from backupview.models.source_records import (
    GuestSnapshot,
    HostConfigBackup,
    RemoteBackup,
    StorageBackup,
)
from backupview.utils import to_unix_seconds

# Storage content types that are media, not backups
NON_BACKUP_TYPES = frozenset({"vztmpl", "iso"})

HOST_CONFIG_STORAGE = "PMG"
HOST_CONFIG_NODE = "PMG"
BACKUP_SERVER_NODE = "PBS"
ENCRYPTED_SUFFIX = ".enc"


def _seconds(value: Any, source: str, ident: Any) -> int:
    seconds = to_unix_seconds(value)
    if seconds is None:
        if value not in (None, ""):
            logger.debug(f"{source} {ident}: unparseable timestamp {value!r}, using 0")
        return 0
    return seconds


# ── Guest snapshots ──


def normalize_snapshot(snapshot: GuestSnapshot, registry: GuestRegistry | None = None) -> BackupRecord:
    guest_type = GuestType.VM if snapshot.platform_type == "qemu" else GuestType.LXC
    guest_id = canonical_guest_id(snapshot.guest_id, guest_type)
    name = registry.lookup(guest_id, snapshot.instance) if registry else None

    return BackupRecord(
        provenance=Provenance.SNAPSHOT,
        guest_id=guest_id,
        guest_name=name or fallback_guest_name(guest_type, guest_id),
        guest_type=guest_type,
        source_node=snapshot.node,
        source_instance=snapshot.instance,
        timestamp=_seconds(snapshot.created_at, "snapshot", snapshot.name),
        label=snapshot.name,
        description=snapshot.description,
        size=snapshot.size_bytes,
    )


# ── Platform storage listing ──


def is_backup_volume(backup: StorageBackup) -> bool:
    """Templates and ISO images show up in storage listings too."""
    return backup.raw_type.lower() not in NON_BACKUP_TYPES


def normalize_storage_backup(backup: StorageBackup) -> BackupRecord:
    """
    Normalize a storage-listing entry.

    Entries on backup-server-backed storage stay LOCAL: REMOTE is reserved
    for the backup server's own inventory, which outranks this listing.
    """
    guest_type = classify_guest_type(backup.guest_id, backup.raw_type)
    guest_id = canonical_guest_id(backup.guest_id, guest_type)
    volume_name = backup.volid.split("/")[-1] if backup.volid else ""

    return BackupRecord(
        provenance=Provenance.LOCAL,
        guest_id=guest_id,
        guest_name=backup.notes or volume_name or fallback_guest_name(guest_type, guest_id),
        guest_type=guest_type,
        source_node=backup.node,
        source_instance=backup.instance,
        timestamp=_seconds(backup.ctime, "storage backup", backup.volid),
        label=volume_name,
        description=backup.notes,
        size=backup.size,
        storage=backup.storage or None,
        verified=backup.verified,
        protected=backup.protected,
        encrypted=bool(backup.encryption),
    )


# ── Backup server inventory ──


def has_encrypted_files(files: Iterable[Any]) -> bool:
    """True when any file entry is flagged as encrypted or named *.enc."""
    for entry in files:
        if not isinstance(entry, dict):
            continue
        if entry.get("crypt") or entry.get("encrypted"):
            return True
        filename = entry.get("filename")
        if isinstance(filename, str) and ENCRYPTED_SUFFIX in filename:
            return True
    return False


def remote_label(backup_type: str, guest_id: Any, timestamp: int) -> str:
    """Archive path as the backup server shows it: ``vm/100/2024-05-01_120000``."""
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return f"{backup_type}/{guest_id}/{moment:%Y-%m-%d}_{moment:%H%M%S}"


def normalize_remote_backup(backup: RemoteBackup) -> BackupRecord:
    guest_type = classify_guest_type(backup.guest_id, backup.backup_type)
    guest_id = canonical_guest_id(backup.guest_id, guest_type)
    timestamp = _seconds(backup.backup_time, "remote backup", backup.guest_id)
    instance = backup.instance or BACKUP_SERVER_NODE

    return BackupRecord(
        provenance=Provenance.REMOTE,
        guest_id=guest_id,
        guest_name=backup.comment or fallback_guest_name(guest_type, guest_id),
        guest_type=guest_type,
        source_node=instance,
        source_instance=instance,
        timestamp=timestamp,
        label=remote_label(backup.backup_type, backup.guest_id, timestamp),
        description=backup.comment,
        size=backup.size,
        datastore=backup.datastore or None,
        namespace=backup.namespace or ROOT_NAMESPACE,
        verified=backup.verified,
        protected=backup.protected,
        encrypted=has_encrypted_files(backup.files),
        owner=backup.owner or None,
    )


# ── Mail gateway host configs ──


def normalize_host_config(backup: HostConfigBackup) -> BackupRecord:
    """Host-config backups have no VMID; the node name stands in for it."""
    guest_id = backup.node or backup.filename
    display_name = guest_id or "Host config backup"

    return BackupRecord(
        provenance=Provenance.LOCAL,
        guest_id=guest_id,
        guest_name=display_name,
        guest_type=GuestType.HOST,
        source_node=backup.node or HOST_CONFIG_NODE,
        source_instance=backup.instance or HOST_CONFIG_NODE,
        timestamp=_seconds(backup.backup_time, "host config backup", backup.filename),
        label=backup.filename or display_name,
        description=backup.filename,
        size=backup.size,
        storage=HOST_CONFIG_STORAGE,
    )
