"""Tests for the end-to-end pipeline and its memoization."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from backupview.core.pipeline import BackupPipeline, SourceState, effective_selection
from backupview.models.backup_record import GuestType, Provenance
from backupview.models.source_records import (
    DatastoreStats,
    GuestInfo,
    GuestSnapshot,
    HostConfigBackup,
    RemoteBackup,
    StorageBackup,
)
from backupview.models.view import DateRange, GroupMode, Selection, SortKey

NOW = datetime(2024, 10, 18, 15, 0)


def _ts(days_ago: int) -> int:
    moment = datetime.combine(NOW.date() - timedelta(days=days_ago), datetime.min.time()).replace(hour=12)
    return int(moment.timestamp())


@pytest.fixture
def state() -> SourceState:
    return SourceState(
        snapshots=(
            GuestSnapshot(guest_id=100, instance="lab", node="pve1", platform_type="qemu",
                          created_at=_ts(0), name="pre-upgrade"),
        ),
        storage_backups=(
            StorageBackup(guest_id=100, node="pve1", instance="lab", ctime=_ts(1), storage="pbs-store",
                          volid="pbs-store:backup/vm/100/a", raw_type="qemu", is_pbs=True),
            StorageBackup(guest_id=200, node="pve2", instance="lab", ctime=_ts(2), storage="local",
                          volid="local:backup/vzdump-lxc-200.tar.zst", raw_type="lxc", size=1024),
            StorageBackup(guest_id=0, node="pve1", instance="lab", ctime=_ts(0), storage="local",
                          volid="local:iso/debian.iso", raw_type="iso"),
        ),
        remote_backups=(
            RemoteBackup(guest_id="100", backup_type="vm", instance="pbs1", backup_time=_ts(1),
                         datastore="store", verified=True),
        ),
        host_config_backups=(
            HostConfigBackup(record_id="pmg-1", instance="mailgw", node="pmg1", filename="a.tgz",
                             backup_time=_ts(3)),
        ),
        guests=(GuestInfo(100, "lab", "web-01"),),
        datastores=(DatastoreStats("pbs1", "store", 2.0),),
        backup_server_instances=("pbs1",),
    )


@pytest.fixture
def pipeline(state: SourceState) -> BackupPipeline:
    return BackupPipeline(state)


class TestCanonical:
    def test_build(self, pipeline: BackupPipeline) -> None:
        canonical = pipeline.canonical()
        assert len(canonical) == 4
        assert canonical[0].guest_name == "web-01"
        assert pipeline.last_report is not None
        assert pipeline.last_report.dropped_count == 1

    def test_memoized_per_state(self, pipeline: BackupPipeline, monkeypatch: pytest.MonkeyPatch) -> None:
        import backupview.core.pipeline as module

        calls = []
        real_build = module.build_canonical

        def counting(state):
            calls.append(state)
            return real_build(state)

        monkeypatch.setattr(module, "build_canonical", counting)
        pipeline.view(now=NOW)
        pipeline.view(Selection(query="web"), now=NOW)
        assert len(calls) == 1

        pipeline.update(snapshots=[])
        pipeline.view(now=NOW)
        assert len(calls) == 2

    def test_update_replaces_source(self, pipeline: BackupPipeline) -> None:
        pipeline.update(remote_backups=[])
        canonical = pipeline.canonical()
        assert all(r.provenance != Provenance.REMOTE for r in canonical)
        assert len(canonical) == 4
        assert isinstance(pipeline.state.remote_backups, tuple)

    def test_far_future_timestamp_degrades_to_zero(self) -> None:
        state = SourceState(
            remote_backups=(
                RemoteBackup(guest_id="100", backup_type="vm", instance="pbs1",
                             backup_time=1_714_564_800_000_000_000),
            ),
            storage_backups=(
                StorageBackup(guest_id=101, node="pve1", instance="lab", ctime=1.7e18,
                              volid="local:backup/a.vma", raw_type="qemu"),
            ),
        )
        pipeline = BackupPipeline(state)
        canonical = pipeline.canonical()
        assert [r.timestamp for r in canonical] == [0, 0]
        assert canonical[0].label == "vm/100/1970-01-01_000000"

        view = pipeline.view(now=NOW)
        assert sum(len(g.items) for g in view.groups) == 2

    def test_empty_state(self) -> None:
        view = BackupPipeline().view(now=NOW)
        assert not view.has_any_backups
        assert view.groups == []
        assert len(view.chart.rows) == 30


class TestView:
    def test_default_view(self, pipeline: BackupPipeline) -> None:
        view = pipeline.view(now=NOW)
        assert len(view.records) == 4
        assert view.records[0].provenance == Provenance.SNAPSHOT
        assert view.groups[0].label == "Today (October 18th)"
        assert view.dedup_factor == pytest.approx(2.0)
        assert view.has_host_backups

    def test_backup_server_node_query_implies_remote(self, pipeline: BackupPipeline) -> None:
        view = pipeline.view(Selection(query="node:pbs1"), now=NOW)
        assert [r.provenance for r in view.records] == [Provenance.REMOTE]

    def test_locked_provenance_is_kept(self) -> None:
        selection = Selection(query="node:pbs1", provenance=Provenance.LOCAL, provenance_locked=True)
        assert effective_selection(selection, ["pbs1"]).provenance == Provenance.LOCAL

    def test_chart_ignores_table_date_range(self, pipeline: BackupPipeline) -> None:
        view = pipeline.view(Selection(date_range=DateRange(_ts(0), _ts(0))), now=NOW)
        assert len(view.records) == 1
        assert sum(row.total for row in view.chart.rows) == 4

    def test_guest_grouping(self, pipeline: BackupPipeline) -> None:
        view = pipeline.view(Selection(group_by=GroupMode.GUEST), now=NOW)
        labels = [g.label for g in view.groups]
        assert labels[0] == "Host pmg1 - pmg1"
        assert "LXC 200 - vzdump-lxc-200.tar.zst" in labels

    def test_type_filter(self, pipeline: BackupPipeline) -> None:
        view = pipeline.view(Selection(guest_type=GuestType.LXC, sort_key=SortKey.SIZE), now=NOW)
        assert len(view.records) == 1
        assert view.groups[0].label == "All Backups"
