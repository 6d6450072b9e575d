"""Sorter: order records by one key, missing values always last."""

from __future__ import annotations

import math
from typing import Any, Iterable

from backupview.models.backup_record import BackupRecord
from backupview.models.view import SortDirection, SortKey

NUMERIC_KEYS = frozenset({SortKey.SIZE, SortKey.GUEST_ID, SortKey.TIMESTAMP})
DESC_BY_DEFAULT = frozenset({SortKey.TIMESTAMP, SortKey.SIZE})

_ATTRIBUTES: dict[SortKey, str] = {
    SortKey.TIMESTAMP: "timestamp",
    SortKey.GUEST_NAME: "guest_name",
    SortKey.SOURCE_NODE: "source_node",
    SortKey.GUEST_ID: "guest_id",
    SortKey.PROVENANCE: "provenance",
    SortKey.SIZE: "size",
    SortKey.STORAGE: "storage",
    SortKey.VERIFIED: "verified",
    SortKey.GUEST_TYPE: "guest_type",
    SortKey.OWNER: "owner",
}


def sort_value(record: BackupRecord, key: SortKey) -> Any:
    return getattr(record, _ATTRIBUTES[key])


def is_empty(value: Any) -> bool:
    return value is None or value == ""


def _numeric(value: Any) -> float:
    """Best-effort number; anything unparseable counts as 0."""
    if isinstance(value, bool):
        return float(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).lower()


def sort_records(
    records: Iterable[BackupRecord],
    key: SortKey = SortKey.TIMESTAMP,
    direction: SortDirection = SortDirection.DESC,
) -> list[BackupRecord]:
    """
    Stable sort on *key*.

    Records whose value is None or "" go after every other record in both
    directions.  Size, guest id and timestamp compare numerically; the rest
    compare as case-insensitive strings.
    """
    present: list[BackupRecord] = []
    missing: list[BackupRecord] = []
    for record in records:
        (missing if is_empty(sort_value(record, key)) else present).append(record)

    convert = _numeric if key in NUMERIC_KEYS else _text
    present.sort(
        key=lambda r: convert(sort_value(r, key)),
        reverse=direction == SortDirection.DESC,
    )
    return present + missing


def default_direction(key: SortKey) -> SortDirection:
    """Newest / largest first for time and size, A-Z for everything else."""
    return SortDirection.DESC if key in DESC_BY_DEFAULT else SortDirection.ASC


def next_sort(
    current_key: SortKey,
    current_direction: SortDirection,
    clicked_key: SortKey,
) -> tuple[SortKey, SortDirection]:
    """Sort state after the user picks *clicked_key*: same key toggles."""
    if clicked_key == current_key:
        flipped = SortDirection.ASC if current_direction == SortDirection.DESC else SortDirection.DESC
        return current_key, flipped
    return clicked_key, default_direction(clicked_key)
