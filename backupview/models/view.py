"""Caller selection and view output models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from backupview.models.backup_record import BackupRecord, GuestType, Provenance
from backupview.models.source_records import NodeRef


class SortKey(StrEnum):
    TIMESTAMP = "timestamp"
    GUEST_NAME = "guest_name"
    SOURCE_NODE = "source_node"
    GUEST_ID = "guest_id"
    PROVENANCE = "provenance"
    SIZE = "size"
    STORAGE = "storage"
    VERIFIED = "verified"
    GUEST_TYPE = "guest_type"
    OWNER = "owner"


class SortDirection(StrEnum):
    ASC = "asc"
    DESC = "desc"


class GroupMode(StrEnum):
    DATE = "date"
    GUEST = "guest"


@dataclass(frozen=True)
class DateRange:
    """Inclusive range in Unix seconds."""

    start: int
    end: int

    def contains(self, timestamp: int) -> bool:
        return self.start <= timestamp <= self.end


@dataclass(frozen=True)
class Selection:
    """
    Everything the caller picked: query text, filters, sort and grouping.

    ``None`` is the "all" sentinel for the optional filters.
    """

    query: str = ""
    guest_type: GuestType | None = None
    provenance: Provenance | None = None
    date_range: DateRange | None = None
    node: NodeRef | None = None
    sort_key: SortKey = SortKey.TIMESTAMP
    sort_direction: SortDirection = SortDirection.DESC
    group_by: GroupMode = GroupMode.DATE
    chart_days: int = 30
    provenance_locked: bool = False  # keep provenance even when the query implies one

    @property
    def is_filtered(self) -> bool:
        return bool(
            self.query.strip()
            or self.guest_type
            or self.provenance
            or self.date_range
            or self.node
        )


@dataclass
class BackupGroup:
    """Display bucket: a label plus records in sorter order."""

    label: str
    items: list[BackupRecord] = field(default_factory=list)


@dataclass(frozen=True)
class ChartRow:
    """Per-day counts, keyed by local calendar date (YYYY-MM-DD)."""

    date: str
    snapshots: int = 0
    pve: int = 0
    pbs: int = 0

    @property
    def total(self) -> int:
        return self.snapshots + self.pve + self.pbs


@dataclass(frozen=True)
class ChartData:
    rows: list[ChartRow]
    max_value: int = 1


@dataclass
class BackupView:
    """Everything the presentation layer renders for one selection."""

    canonical: list[BackupRecord]
    records: list[BackupRecord]
    groups: list[BackupGroup]
    chart: ChartData
    dedup_factor: float | None = None
    has_host_backups: bool = False

    @property
    def has_any_backups(self) -> bool:
        return bool(self.canonical)
