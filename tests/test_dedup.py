"""Tests for cross-source deduplication."""

from __future__ import annotations

from backupview.core.dedup import Candidate, SourcePriority, deduplicate
from backupview.core.identity import guest_key
from backupview.core.normalizer import normalize_remote_backup, normalize_storage_backup
from backupview.core.pipeline import SourceState, build_canonical
from backupview.models.backup_record import Provenance
from backupview.models.source_records import (
    GuestSnapshot,
    HostConfigBackup,
    RemoteBackup,
    StorageBackup,
)

TS = 1714564800


def _state(**kwargs) -> SourceState:
    return SourceState(**{k: tuple(v) for k, v in kwargs.items()})


def _remote(vmid: str = "100", ts: int = TS) -> RemoteBackup:
    return RemoteBackup(guest_id=vmid, backup_type="vm", instance="pbs1", backup_time=ts,
                        datastore="store", verified=True)


def _storage(vmid: int = 100, ts: int = TS, storage: str = "pbs-store") -> StorageBackup:
    return StorageBackup(guest_id=vmid, node="pve1", instance="lab", ctime=ts, storage=storage,
                         volid=f"{storage}:backup/vm/{vmid}/{ts}", raw_type="qemu", is_pbs=True)


class TestDeduplicate:
    def test_remote_beats_storage_listing(self) -> None:
        canonical, report = build_canonical(_state(remote_backups=[_remote()], storage_backups=[_storage()]))
        assert len(canonical) == 1
        assert canonical[0].provenance == Provenance.REMOTE
        assert canonical[0].datastore == "store"
        assert report.dropped_count == 1
        assert report.dropped[0].priority == SourcePriority.STORAGE

    def test_storage_only_backup_survives(self) -> None:
        canonical, _ = build_canonical(_state(storage_backups=[_storage(vmid=101)]))
        assert len(canonical) == 1
        assert canonical[0].provenance == Provenance.LOCAL

    def test_different_timestamps_are_distinct(self) -> None:
        canonical, report = build_canonical(
            _state(remote_backups=[_remote()], storage_backups=[_storage(ts=TS + 1)])
        )
        assert len(canonical) == 2
        assert report.dropped_count == 0

    def test_snapshots_never_deduplicated(self) -> None:
        snap = GuestSnapshot(guest_id=100, instance="lab", node="pve1", platform_type="qemu", created_at=TS)
        canonical, _ = build_canonical(_state(snapshots=[snap, snap], remote_backups=[_remote()]))
        assert [r.provenance for r in canonical] == [Provenance.SNAPSHOT, Provenance.SNAPSHOT, Provenance.REMOTE]

    def test_snapshot_storage_and_remote_at_same_time(self) -> None:
        snap = GuestSnapshot(guest_id=100, instance="lab", node="pve1", platform_type="qemu", created_at=TS)
        canonical, report = build_canonical(
            _state(snapshots=[snap], storage_backups=[_storage()], remote_backups=[_remote()])
        )
        assert [r.provenance for r in canonical] == [Provenance.SNAPSHOT, Provenance.REMOTE]
        assert all(r.guest_id == 100 and r.timestamp == TS for r in canonical)
        assert report.dropped_count == 1

    def test_host_config_duplicates_collapse(self) -> None:
        backup = HostConfigBackup(record_id="pmg-1", instance="mailgw", node="pmg1", filename="a.tgz", backup_time=TS)
        canonical, report = build_canonical(_state(host_config_backups=[backup, backup]))
        assert len(canonical) == 1
        assert report.kept == 1

    def test_order_independent(self) -> None:
        remote = Candidate(SourcePriority.REMOTE, guest_key("100", TS), normalize_remote_backup(_remote()))
        storage = Candidate(SourcePriority.STORAGE, guest_key(100, TS), normalize_storage_backup(_storage()))

        forward, _ = deduplicate([remote, storage])
        backward, _ = deduplicate([storage, remote])
        assert forward == backward == [remote.record]

    def test_idempotent(self) -> None:
        state = _state(remote_backups=[_remote(), _remote("101")], storage_backups=[_storage(), _storage(102)])
        first, _ = build_canonical(state)
        second, _ = build_canonical(state)
        assert first == second
        assert len(first) == 3

    def test_output_order_remote_then_host_then_storage(self) -> None:
        host = HostConfigBackup(record_id="pmg-1", instance="mailgw", node="pmg1", filename="a.tgz", backup_time=TS)
        canonical, _ = build_canonical(_state(
            storage_backups=[_storage(vmid=300)],
            host_config_backups=[host],
            remote_backups=[_remote()],
        ))
        assert [r.storage for r in canonical] == [None, "PMG", "pbs-store"]
