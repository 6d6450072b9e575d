"""Tests for shared helpers."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from backupview.utils import (
    age_bucket,
    day_suffix,
    format_relative_time,
    format_size,
    parse_int_prefix,
    to_unix_seconds,
    truncate_middle,
)

TS = int(datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc).timestamp())


class TestTimestamps:
    @pytest.mark.parametrize("value", [
        TS,
        float(TS) + 0.9,
        TS * 1000,
        str(TS),
        "2024-05-01T12:00:00Z",
        "2024-05-01T12:00:00",
        "2024-05-01T14:00:00+02:00",
        "2024-05-01T12:00:00.123456789Z",
        datetime(2024, 5, 1, 12, 0),
    ])
    def test_same_instant(self, value) -> None:
        assert to_unix_seconds(value) == TS

    @pytest.mark.parametrize("value", [
        None,
        "",
        "soon",
        0,
        -5,
        float("nan"),
        True,
        1_714_564_800_000_000_000,
        1.7e18,
        "1714564800000000",
        10 ** 15,
    ])
    def test_unusable(self, value) -> None:
        assert to_unix_seconds(value) is None


class TestParseIntPrefix:
    @pytest.mark.parametrize("value,expected", [
        (100, 100),
        ("100", 100),
        (" 42abc", 42),
        (7.9, 7),
        ("abc", None),
        (None, None),
        (True, None),
    ])
    def test_values(self, value, expected) -> None:
        assert parse_int_prefix(value) == expected


class TestFormatting:
    @pytest.mark.parametrize("size,expected", [
        (512, "512 B"),
        (2048, "2.0 KB"),
        (5 * 1024 ** 2, "5.0 MB"),
        (3 * 1024 ** 3, "3.00 GB"),
        (2 * 1024 ** 4, "2.00 TB"),
    ])
    def test_format_size(self, size: int, expected: str) -> None:
        assert format_size(size) == expected

    @pytest.mark.parametrize("day,suffix", [(1, "st"), (2, "nd"), (3, "rd"), (4, "th"), (11, "th"),
                                            (12, "th"), (13, "th"), (21, "st"), (22, "nd"), (31, "st")])
    def test_day_suffix(self, day: int, suffix: str) -> None:
        assert day_suffix(day) == suffix

    def test_truncate_middle(self) -> None:
        assert truncate_middle("short", 10) == "short"
        truncated = truncate_middle("vzdump-qemu-100-2024_05_01-12_00_00.vma.zst", 20)
        assert "..." in truncated
        assert len(truncated) <= 20

    @pytest.mark.parametrize("delta,expected", [
        (10, "just now"),
        (5 * 60, "5m ago"),
        (3 * 3600, "3h ago"),
        (2 * 86400, "2d ago"),
    ])
    def test_relative_time(self, delta: int, expected: str) -> None:
        assert format_relative_time(TS, now=TS + delta) == expected
        assert format_relative_time(0) == "never"

    @pytest.mark.parametrize("days,bucket", [(1, "fresh"), (5, "recent"), (10, "aging"), (40, "stale")])
    def test_age_bucket(self, days: int, bucket: str) -> None:
        assert age_bucket(TS, now=TS + days * 86400) == bucket
        assert age_bucket(0) == "unknown"
