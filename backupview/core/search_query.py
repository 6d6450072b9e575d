"""Filter stack: parse structured search expressions into predicates.

Grammar (case-insensitive, never raises)::

    stack      := condition ( (AND | OR) condition )*
    condition  := metric | text | raw
    metric     := field ( > | < | >= | <= | = | == ) number    e.g. size>10
    text       := field ":" value                               e.g. node:pve1
    raw        := anything else, matched as free text

Mixing AND and OR in one stack resolves to AND.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Callable

from backupview.models.backup_record import BackupRecord
from backupview.utils import DAY_SECONDS, parse_int_prefix

_GIB = 1024 ** 3

_METRIC_PATTERN = re.compile(r"^([a-z_]+)\s*(>=|<=|==|>|<|=)\s*(-?\d+(?:\.\d+)?)$", re.IGNORECASE)
_TEXT_PATTERN = re.compile(r"^([a-z_]+)\s*:\s*(.+)$", re.IGNORECASE)
_JOIN_PATTERN = re.compile(r"\s+(AND|OR)\s+", re.IGNORECASE)


class ConditionType(StrEnum):
    METRIC = "metric"
    TEXT = "text"
    RAW = "raw"


@dataclass(frozen=True)
class FilterCondition:
    type: ConditionType
    field: str = ""
    operator: str = ""
    value: float | str = ""
    raw_text: str = ""


@dataclass(frozen=True)
class FilterStack:
    filters: tuple[FilterCondition, ...] = ()
    logical_operator: str = "AND"


# ── Field tables ──

def _age_days(record: BackupRecord, now: float) -> float | None:
    return (now - record.timestamp) / DAY_SECONDS if record.timestamp else None


METRIC_FIELDS: dict[str, Callable[[BackupRecord, float], float | None]] = {
    "size": lambda r, now: r.size / _GIB if r.size else None,
    "vmid": lambda r, now: parse_int_prefix(r.guest_id),
    "id": lambda r, now: parse_int_prefix(r.guest_id),
    "age": _age_days,
}

TEXT_FIELDS: dict[str, Callable[[BackupRecord], Any]] = {
    "name": lambda r: r.guest_name,
    "node": lambda r: r.source_node,
    "instance": lambda r: r.source_instance,
    "vmid": lambda r: r.guest_id,
    "id": lambda r: r.guest_id,
    "type": lambda r: r.guest_type,
    "source": lambda r: r.provenance,
    "backup": lambda r: r.provenance,
    "provenance": lambda r: r.provenance,
    "storage": lambda r: r.storage,
    "datastore": lambda r: r.datastore,
    "namespace": lambda r: r.namespace,
    "ns": lambda r: r.namespace,
    "owner": lambda r: r.owner,
    "label": lambda r: r.label,
    "notes": lambda r: r.description,
    "description": lambda r: r.description,
    "status": lambda r: r.status,
    "verified": lambda r: r.verified,
    "protected": lambda r: r.protected,
    "encrypted": lambda r: r.encrypted,
}


def free_text_fields(record: BackupRecord) -> list[str]:
    """Lower-cased values that free-text terms are matched against."""
    values = (
        record.guest_id,
        record.guest_name,
        record.source_node,
        record.label,
        record.description,
        record.storage,
        record.datastore,
        record.namespace,
    )
    return [str(v).lower() for v in values if v not in (None, "")]


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).lower()


# ── Parsing ──


def parse_condition(expression: str) -> FilterCondition:
    expr = expression.strip()

    metric_m = _METRIC_PATTERN.match(expr)
    if metric_m and metric_m.group(1).lower() in METRIC_FIELDS:
        return FilterCondition(
            type=ConditionType.METRIC,
            field=metric_m.group(1).lower(),
            operator=metric_m.group(2),
            value=float(metric_m.group(3)),
        )

    text_m = _TEXT_PATTERN.match(expr)
    if text_m and text_m.group(1).lower() in TEXT_FIELDS:
        return FilterCondition(
            type=ConditionType.TEXT,
            field=text_m.group(1).lower(),
            operator=":",
            value=text_m.group(2).strip().lower(),
        )

    return FilterCondition(type=ConditionType.RAW, raw_text=expr.lower())


def parse_filter_stack(text: str) -> FilterStack:
    """Split *text* on AND/OR and parse each part into a condition."""
    parts = _JOIN_PATTERN.split(text.strip())
    expressions = parts[0::2]
    operators = {op.upper() for op in parts[1::2]}

    filters = tuple(parse_condition(e) for e in expressions if e.strip())
    logical = "OR" if operators == {"OR"} else "AND"
    return FilterStack(filters=filters, logical_operator=logical)


# ── Evaluation ──


def _compare(value: float, operator: str, target: float) -> bool:
    if operator == ">":
        return value > target
    if operator == "<":
        return value < target
    if operator == ">=":
        return value >= target
    if operator == "<=":
        return value <= target
    # "=" and "==" tolerate rounding of displayed values
    return target - 0.5 <= value <= target + 0.5


def evaluate_condition(record: BackupRecord, condition: FilterCondition, now: float | None = None) -> bool:
    if condition.type == ConditionType.METRIC:
        getter = METRIC_FIELDS.get(condition.field)
        if getter is None:
            return False
        value = getter(record, time.time() if now is None else now)
        if value is None:
            return False
        return _compare(float(value), condition.operator, float(condition.value))

    if condition.type == ConditionType.TEXT:
        text_getter = TEXT_FIELDS.get(condition.field)
        if text_getter is None:
            return False
        text = _as_text(text_getter(record))
        return text is not None and str(condition.value) in text

    if condition.raw_text:
        return any(condition.raw_text in field for field in free_text_fields(record))
    return False


def evaluate_filter_stack(record: BackupRecord, stack: FilterStack, now: float | None = None) -> bool:
    if not stack.filters:
        return True
    results = (evaluate_condition(record, f, now) for f in stack.filters)
    if stack.logical_operator == "AND":
        return all(results)
    return any(results)
