"""Tests for the command-line entry point and the mock state generator."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

import backupview.config as config_module
from backupview.config import reset_config
from backupview.data.state_loader import parse_state
from backupview.core.pipeline import BackupPipeline
from backupview.models.view import GroupMode, SortDirection, SortKey
from main import main
from tools.generate_mock_state import generate_state

FIXED_NOW = datetime(2024, 10, 18, 15, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(config_module, "_DEFAULT_DATA_DIR", tmp_path / "home")
    reset_config()
    yield
    reset_config()


@pytest.fixture
def state_file(tmp_path: Path) -> Path:
    path = tmp_path / "state.json"
    path.write_text(json.dumps(generate_state(seed=1, guest_count=12)), encoding="utf-8")
    return path


class TestMain:
    def test_prints_view(self, state_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--state", str(state_file)]) == 0
        out = capsys.readouterr().out
        assert "backup(s)" in out
        assert "Deduplication factor:" in out

    def test_group_by_guest(self, state_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--state", str(state_file), "--group-by", "guest", "--sort", "size"]) == 0
        assert "Host" in capsys.readouterr().out

    def test_missing_state_fails(self, tmp_path: Path) -> None:
        assert main(["--state", str(tmp_path / "nope.json")]) == 1

    def test_no_source_fails(self) -> None:
        assert main([]) == 1

    def test_invalid_chart_window_fails(self, state_file: Path) -> None:
        assert main(["--state", str(state_file), "--chart-days", "-3"]) == 1

    def test_summary_reports_merged_duplicates(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = tmp_path / "dup.json"
        path.write_text(json.dumps({
            "backups": {
                "pve": {"storageBackups": [{"vmid": 100, "node": "pve1", "instance": "lab", "type": "qemu",
                                            "ctime": 1714564800, "volid": "pbs-store:backup/vm/100/a"}]},
                "pbs": [{"vmid": "100", "backupType": "vm", "instance": "pbs1", "backupTime": 1714564800}],
            },
        }), encoding="utf-8")
        assert main(["--state", str(path)]) == 0
        assert "Showing 1 of 1 backup(s), 1 duplicate(s) merged" in capsys.readouterr().out

        assert main(["--state", str(path), "--type", "lxc"]) == 0
        assert "Showing 0 of 1 backup(s) (filtered)" in capsys.readouterr().out

    def test_save_defaults(self, state_file: Path, tmp_path: Path) -> None:
        argv = ["--state", str(state_file), "--sort", "size", "--asc", "--group-by", "guest",
                "--chart-days", "90", "--save-defaults"]
        assert main(argv) == 0

        saved = config_module.Config(config_dir=tmp_path / "home")
        assert saved.default_sort_key == SortKey.SIZE
        assert saved.default_sort_direction == SortDirection.ASC
        assert saved.default_group_by == GroupMode.GUEST
        assert saved.chart_days == 90
        assert saved.state_path == state_file.resolve()

    def test_saved_state_path_is_used(self, state_file: Path) -> None:
        assert main(["--state", str(state_file), "--save-defaults"]) == 0
        reset_config()
        assert main([]) == 0


class TestMockState:
    def test_deterministic(self) -> None:
        first = generate_state(seed=3, guest_count=10, now=FIXED_NOW)
        second = generate_state(seed=3, guest_count=10, now=FIXED_NOW)
        assert first == second

    def test_contains_duplicates_to_collapse(self) -> None:
        state = parse_state(generate_state(seed=5, guest_count=20, now=FIXED_NOW))
        pipeline = BackupPipeline(state)
        pipeline.canonical()
        assert pipeline.last_report is not None
        assert pipeline.last_report.dropped_count > 0
        assert state.backup_server_instances == ("pbs-main", "pbs-secondary")
