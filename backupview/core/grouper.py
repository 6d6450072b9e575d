"""Grouper: bucket sorted records by calendar day or by guest."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Iterable

from backupview.models.backup_record import BackupRecord
from backupview.models.view import BackupGroup, GroupMode, SortDirection, SortKey
from backupview.utils import day_suffix

ALL_BACKUPS_LABEL = "All Backups"

_FIRST_NUMBER = re.compile(r"\d+")


def guest_label(record: BackupRecord) -> str:
    label = f"{record.guest_type} {record.guest_id}"
    return f"{label} - {record.guest_name}" if record.guest_name else label


def _label_number(label: str) -> int:
    m = _FIRST_NUMBER.search(label)
    return int(m.group(0)) if m else 0


def group_by_guest(records: Iterable[BackupRecord]) -> list[BackupGroup]:
    """One group per guest, ordered by the numeric id in the label."""
    buckets: dict[str, list[BackupRecord]] = {}
    for record in records:
        buckets.setdefault(guest_label(record), []).append(record)

    groups = [BackupGroup(label, items) for label, items in buckets.items()]
    groups.sort(key=lambda g: _label_number(g.label))
    return groups


def date_label(day: date, today: date) -> str:
    absolute = f"{day:%B} {day.day}{day_suffix(day.day)}"
    if day == today:
        return f"Today ({absolute})"
    if day == today - timedelta(days=1):
        return f"Yesterday ({absolute})"
    if day.year != today.year:
        return f"{absolute}, {day.year}"
    return absolute


def group_by_date(
    records: Iterable[BackupRecord],
    direction: SortDirection = SortDirection.DESC,
    now: datetime | None = None,
) -> list[BackupGroup]:
    """
    Bucket by local calendar day.

    Descending: Today, Yesterday, then the rest newest first.  Ascending is
    the mirror image.  Other days are ordered by their first record's
    timestamp; records keep their incoming order inside a bucket.
    """
    today = (now or datetime.now()).date()
    yesterday = today - timedelta(days=1)

    buckets: dict[date, list[BackupRecord]] = {}
    for record in records:
        day = datetime.fromtimestamp(record.timestamp).date()
        buckets.setdefault(day, []).append(record)

    descending = direction == SortDirection.DESC

    def rank(item: tuple[date, list[BackupRecord]]) -> tuple[int, float]:
        day, items = item
        if day == today:
            special = 0
        elif day == yesterday:
            special = 1
        else:
            special = 2
        first = items[0].timestamp
        if descending:
            return special, -first
        return -special, first

    ordered = sorted(buckets.items(), key=rank)
    return [BackupGroup(date_label(day, today), items) for day, items in ordered]


def group_records(
    records: list[BackupRecord],
    mode: GroupMode,
    sort_key: SortKey,
    direction: SortDirection = SortDirection.DESC,
    now: datetime | None = None,
) -> list[BackupGroup]:
    """
    Group sorted records for display.

    Date grouping only makes sense under a time sort; under any other key
    all records go into a single bucket in their existing order.
    """
    if not records:
        return []
    if mode == GroupMode.GUEST:
        return group_by_guest(records)
    if sort_key != SortKey.TIMESTAMP:
        return [BackupGroup(ALL_BACKUPS_LABEL, list(records))]
    return group_by_date(records, direction, now)
