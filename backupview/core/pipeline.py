"""Pipeline: raw source state -> canonical collection -> view.

Every stage is a pure function of its inputs.  ``BackupPipeline`` only
memoizes the canonical collection for the current ``SourceState`` object;
swapping in a new state invalidates it and the next access recomputes from
scratch.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Iterable

from loguru import logger

from backupview.core.aggregator import aggregate_daily, deduplication_factor
from backupview.core.dedup import Candidate, DedupReport, SourcePriority, deduplicate
from backupview.core.grouper import group_records
from backupview.core.identity import GuestRegistry, guest_key, host_config_key
from backupview.core.normalizer import (
    is_backup_volume,
    normalize_host_config,
    normalize_remote_backup,
    normalize_snapshot,
    normalize_storage_backup,
)
from backupview.core.query import detect_backup_server_instance, filter_records
from backupview.core.sorter import sort_records
from backupview.models.backup_record import BackupRecord, Provenance
from backupview.models.source_records import (
    DatastoreStats,
    GuestInfo,
    GuestSnapshot,
    HostConfigBackup,
    NodeRef,
    RemoteBackup,
    StorageBackup,
)
from backupview.models.view import BackupView, Selection


@dataclass(frozen=True)
class SourceState:
    """Latest raw state of every source, as pushed by the polling layer."""

    snapshots: tuple[GuestSnapshot, ...] = ()
    storage_backups: tuple[StorageBackup, ...] = ()
    remote_backups: tuple[RemoteBackup, ...] = ()
    host_config_backups: tuple[HostConfigBackup, ...] = ()
    guests: tuple[GuestInfo, ...] = ()
    datastores: tuple[DatastoreStats, ...] = ()
    backup_server_instances: tuple[str, ...] = ()
    nodes: tuple[NodeRef, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (
            self.snapshots
            or self.storage_backups
            or self.remote_backups
            or self.host_config_backups
            or self.backup_server_instances
        )


# ── Ingestion ──


def collect_candidates(state: SourceState) -> list[Candidate]:
    """Normalize every dedup-able record and tag it with its source priority."""
    candidates: list[Candidate] = []

    for backup in state.remote_backups:
        record = normalize_remote_backup(backup)
        candidates.append(
            Candidate(SourcePriority.REMOTE, guest_key(record.guest_id, record.timestamp), record)
        )

    for backup in state.host_config_backups:
        key = host_config_key(backup.record_id, backup.instance, backup.node, backup.filename)
        candidates.append(Candidate(SourcePriority.HOST_CONFIG, key, normalize_host_config(backup)))

    for backup in state.storage_backups:
        if not is_backup_volume(backup):
            logger.debug(f"Skipping non-backup volume {backup.volid} ({backup.raw_type})")
            continue
        record = normalize_storage_backup(backup)
        candidates.append(
            Candidate(SourcePriority.STORAGE, guest_key(record.guest_id, record.timestamp), record)
        )

    return candidates


def build_canonical(state: SourceState) -> tuple[list[BackupRecord], DedupReport]:
    """
    One ingestion pass: normalize all sources and drop duplicates.

    Snapshots are never deduplicated; they are a different kind of backup
    even when taken at the same second as an archive.
    """
    registry = GuestRegistry(state.guests)
    snapshots = [normalize_snapshot(s, registry) for s in state.snapshots]
    unique, report = deduplicate(collect_candidates(state))

    logger.info(
        f"Canonical backups: {len(snapshots) + len(unique)} "
        f"({len(snapshots)} snapshot(s), {report.kept} archive(s), "
        f"{report.dropped_count} duplicate(s) dropped)"
    )
    return snapshots + unique, report


# ── View ──


def effective_selection(selection: Selection, known_instances: Iterable[str]) -> Selection:
    """A ``node:<backup server>`` query implies the remote provenance filter."""
    if selection.provenance_locked or selection.provenance is not None:
        return selection
    if detect_backup_server_instance(selection.query, known_instances):
        return replace(selection, provenance=Provenance.REMOTE)
    return selection


def compute_view(
    canonical: list[BackupRecord],
    selection: Selection,
    datastores: Iterable[DatastoreStats] = (),
    known_instances: Iterable[str] = (),
    now: datetime | None = None,
) -> BackupView:
    now = now or datetime.now()
    now_ts = now.timestamp()
    active = effective_selection(selection, known_instances)

    filtered = filter_records(canonical, active, now_ts)
    records = sort_records(filtered, active.sort_key, active.sort_direction)
    groups = group_records(records, active.group_by, active.sort_key, active.sort_direction, now)

    chart_input = filter_records(canonical, active, now_ts, apply_date_range=False)
    chart = aggregate_daily(chart_input, active.chart_days, now)

    return BackupView(
        canonical=list(canonical),
        records=records,
        groups=groups,
        chart=chart,
        dedup_factor=deduplication_factor(datastores),
        has_host_backups=any(r.is_host for r in canonical),
    )


class BackupPipeline:
    """
    Recompute-on-demand wrapper around the pure pipeline.

    Usage::

        pipeline = BackupPipeline()
        pipeline.update(remote_backups=pbs_backups)
        view = pipeline.view(Selection(query="node:pve1"))
    """

    def __init__(self, state: SourceState | None = None) -> None:
        self._state = state or SourceState()
        self._canonical: list[BackupRecord] | None = None
        self._report: DedupReport | None = None
        self._computed_for: SourceState | None = None

    @property
    def state(self) -> SourceState:
        return self._state

    def set_state(self, state: SourceState) -> None:
        self._state = state

    def update(self, **changes: Any) -> SourceState:
        """Replace some source collections; lists are frozen into tuples."""
        frozen = {k: tuple(v) if isinstance(v, (list, tuple)) else v for k, v in changes.items()}
        self._state = replace(self._state, **frozen)
        return self._state

    def _ensure_canonical(self) -> list[BackupRecord]:
        if self._canonical is None or self._computed_for is not self._state:
            self._canonical, self._report = build_canonical(self._state)
            self._computed_for = self._state
        return self._canonical

    def canonical(self) -> list[BackupRecord]:
        return list(self._ensure_canonical())

    @property
    def last_report(self) -> DedupReport | None:
        return self._report

    def view(self, selection: Selection | None = None, now: datetime | None = None) -> BackupView:
        return compute_view(
            self._ensure_canonical(),
            selection or Selection(),
            datastores=self._state.datastores,
            known_instances=self._state.backup_server_instances,
            now=now,
        )
