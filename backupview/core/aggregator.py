"""Aggregator: per-day backup counts for the availability chart."""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime, time, timedelta
from typing import Iterable

from backupview.models.backup_record import BackupRecord, Provenance
from backupview.models.source_records import DatastoreStats
from backupview.models.view import ChartData, ChartRow

CHART_DAY_CHOICES = (7, 30, 90, 365)


def aggregate_daily(
    records: Iterable[BackupRecord],
    days: int = 30,
    now: datetime | None = None,
) -> ChartData:
    """
    Count records per local calendar day over the last *days* days.

    Always returns exactly *days* rows, oldest first, today included.
    ``max_value`` is floored at 1 so callers can scale without guarding
    against division by zero.
    """
    if days < 1:
        raise ValueError(f"Chart window must be at least one day, got {days}")

    now = now or datetime.now()
    today = now.date()
    first_day = today - timedelta(days=days - 1)
    start = datetime.combine(first_day, time.min).timestamp()
    end = datetime.combine(today, time.max).timestamp()

    counts: dict[date, Counter[Provenance]] = {
        first_day + timedelta(days=i): Counter() for i in range(days)
    }
    for record in records:
        if not start <= record.timestamp <= end:
            continue
        day = datetime.fromtimestamp(record.timestamp).date()
        if day in counts:
            counts[day][record.provenance] += 1

    rows = [
        ChartRow(
            date=day.isoformat(),
            snapshots=counter[Provenance.SNAPSHOT],
            pve=counter[Provenance.LOCAL],
            pbs=counter[Provenance.REMOTE],
        )
        for day, counter in counts.items()
    ]
    max_value = max([row.total for row in rows] + [1])
    return ChartData(rows=rows, max_value=max_value)


def deduplication_factor(datastores: Iterable[DatastoreStats]) -> float | None:
    """Simple average of the positive per-datastore dedup ratios."""
    factors = [
        ds.deduplication_factor
        for ds in datastores
        if ds.deduplication_factor is not None and ds.deduplication_factor > 0
    ]
    if not factors:
        return None
    return sum(factors) / len(factors)


def format_dedup_factor(factor: float | None) -> str | None:
    return f"{factor:.1f}x" if factor is not None else None
