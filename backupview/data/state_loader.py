"""State loader: turn a monitoring state dump (file or HTTP) into a SourceState."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, TypeVar

import httpx
from loguru import logger

from backupview.core.pipeline import SourceState
from backupview.models.source_records import (
    DatastoreStats,
    GuestInfo,
    GuestSnapshot,
    HostConfigBackup,
    NodeRef,
    RemoteBackup,
    StorageBackup,
)

_T = TypeVar("_T")


class StateLoadError(RuntimeError):
    """The state dump could not be read or decoded."""


def _entries(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _parse_all(
    raw: list[dict[str, Any]],
    factory: Callable[[dict[str, Any]], _T],
    what: str,
) -> tuple[_T, ...]:
    """Parse each entry, skipping malformed ones."""
    parsed: list[_T] = []
    for index, item in enumerate(raw):
        try:
            parsed.append(factory(item))
        except (TypeError, ValueError, KeyError) as e:
            logger.warning(f"Skipping malformed {what} entry #{index}: {e}")
    return tuple(parsed)


def _section(data: dict[str, Any], name: str, legacy: str) -> Any:
    """``backups.<name>``, falling back to the legacy top-level key."""
    backups = data.get("backups")
    if isinstance(backups, dict) and backups.get(name) is not None:
        return backups[name]
    return data.get(legacy)


def _datastores(instances: list[dict[str, Any]]) -> tuple[DatastoreStats, ...]:
    stats: list[DatastoreStats] = []
    for instance in instances:
        name = str(instance.get("name") or "")
        for ds in _entries(instance.get("datastores")):
            factor = ds.get("deduplicationFactor")
            if not isinstance(factor, (int, float)) or isinstance(factor, bool):
                factor = None
            stats.append(DatastoreStats(instance=name, name=str(ds.get("name") or ""), deduplication_factor=factor))
    return tuple(stats)


def parse_state(data: dict[str, Any]) -> SourceState:
    """Build a SourceState from a decoded state dump."""
    if not isinstance(data, dict):
        raise StateLoadError(f"State dump must be a JSON object, got {type(data).__name__}")

    backup_servers = _entries(data.get("pbs"))
    guests = _parse_all(_entries(data.get("vms")), lambda d: GuestInfo.from_dict(d, "qemu"), "VM")
    guests += _parse_all(_entries(data.get("containers")), lambda d: GuestInfo.from_dict(d, "lxc"), "container")

    platform = _section(data, "pve", "pveBackups")
    if not isinstance(platform, dict):
        platform = {}

    state = SourceState(
        snapshots=_parse_all(
            _entries(platform.get("guestSnapshots")),
            GuestSnapshot.from_dict,
            "guest snapshot",
        ),
        storage_backups=_parse_all(
            _entries(platform.get("storageBackups")),
            StorageBackup.from_dict,
            "storage backup",
        ),
        remote_backups=_parse_all(
            _entries(_section(data, "pbs", "pbsBackups")),
            RemoteBackup.from_dict,
            "backup server",
        ),
        host_config_backups=_parse_all(
            _entries(_section(data, "pmg", "pmgBackups")),
            HostConfigBackup.from_dict,
            "mail gateway",
        ),
        guests=guests,
        datastores=_datastores(backup_servers),
        backup_server_instances=tuple(str(s["name"]) for s in backup_servers if s.get("name")),
        nodes=_parse_all(_entries(data.get("nodes")), NodeRef.from_dict, "node"),
    )
    logger.info(
        f"Loaded state: {len(state.snapshots)} snapshot(s), "
        f"{len(state.storage_backups)} storage backup(s), "
        f"{len(state.remote_backups)} backup server backup(s), "
        f"{len(state.host_config_backups)} host config backup(s)"
    )
    return state


def load_state_file(path: Path) -> SourceState:
    """Load a state dump from a JSON file."""
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        raise StateLoadError(f"Failed to read state file {path}: {e}") from e
    return parse_state(data)


def load_state_url(url: str, client: httpx.Client | None = None, timeout: float = 10.0) -> SourceState:
    """Fetch a state dump over HTTP."""
    own_client = client is None
    http = client or httpx.Client(timeout=timeout)
    try:
        resp = http.get(url)
        resp.raise_for_status()
        data = resp.json()
    except httpx.HTTPError as e:
        raise StateLoadError(f"Failed to fetch state from {url}: {e}") from e
    except ValueError as e:
        raise StateLoadError(f"Invalid JSON from {url}: {e}") from e
    finally:
        if own_client:
            http.close()
    return parse_state(data)
