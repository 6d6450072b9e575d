"""Query engine: turn a search string plus selection filters into one predicate."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable

from backupview.core.search_query import FilterStack, evaluate_filter_stack, free_text_fields, parse_filter_stack
from backupview.models.backup_record import ROOT_NAMESPACE, BackupRecord, Provenance
from backupview.models.view import Selection

NAMESPACE_PREFIX = "pbs:"
STRUCTURED_MARKERS = (">", "<", ":")

_NODE_TOKEN = re.compile(r"node:(\S+)")

RecordPredicate = Callable[[BackupRecord], bool]


@dataclass(frozen=True)
class NamespaceScope:
    """``pbs:<instance>:<datastore>:<namespace>``"""

    instance: str
    datastore: str
    namespace: str


@dataclass(frozen=True)
class ParsedQuery:
    scope: NamespaceScope | None = None
    stack: FilterStack = field(default_factory=FilterStack)
    terms: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return self.scope is None and not self.stack.filters and not self.terms


def normalize_namespace(namespace: str | None) -> str:
    """Empty, "/" and "root" all name the root namespace."""
    if not namespace or namespace == "/":
        return ROOT_NAMESPACE
    return namespace


def parse_query(text: str) -> ParsedQuery:
    """
    Split a search string into a namespace scope, or structured filters
    plus free-text terms.

    Comma-separated tokens holding ``>``, ``<`` or ``:`` are structured and
    AND-ed together; all other tokens are lower-cased free-text terms.
    """
    search = text.strip()
    if not search:
        return ParsedQuery()

    if search.lower().startswith(NAMESPACE_PREFIX):
        parts = search.split(":")
        if len(parts) < 4:
            return ParsedQuery()
        instance, datastore, *namespace_parts = parts[1:]
        return ParsedQuery(
            scope=NamespaceScope(instance, datastore, ":".join(namespace_parts)),
        )

    structured: list[str] = []
    terms: list[str] = []
    for token in (t.strip() for t in search.split(",")):
        if not token:
            continue
        if any(marker in token for marker in STRUCTURED_MARKERS):
            structured.append(token)
        else:
            terms.append(token.lower())

    stack = parse_filter_stack(" AND ".join(structured)) if structured else FilterStack()
    return ParsedQuery(stack=stack, terms=tuple(terms))


def matches_scope(record: BackupRecord, scope: NamespaceScope) -> bool:
    return (
        record.provenance == Provenance.REMOTE
        and record.source_node == scope.instance
        and (record.datastore or "") == scope.datastore
        and normalize_namespace(record.namespace) == normalize_namespace(scope.namespace)
    )


def matches_terms(record: BackupRecord, terms: Iterable[str]) -> bool:
    """True when ANY term is a substring of ANY searchable field."""
    fields = free_text_fields(record)
    return any(term in value for term in terms for value in fields)


def matches_query(record: BackupRecord, parsed: ParsedQuery, now: float | None = None) -> bool:
    if parsed.scope is not None:
        return matches_scope(record, parsed.scope)
    if parsed.stack.filters and not evaluate_filter_stack(record, parsed.stack, now):
        return False
    return not parsed.terms or matches_terms(record, parsed.terms)


def build_predicate(
    selection: Selection,
    now: float | None = None,
    apply_date_range: bool = True,
) -> RecordPredicate:
    """
    Combine the search query and the independent filters into one predicate.

    The chart passes ``apply_date_range=False``: it always shows its own
    window regardless of the table's date selection.
    """
    now = time.time() if now is None else now
    parsed = parse_query(selection.query)
    date_range = selection.date_range if apply_date_range else None
    node = selection.node

    def predicate(record: BackupRecord) -> bool:
        if date_range is not None and not date_range.contains(record.timestamp):
            return False
        if node is not None and (
            record.source_instance != node.instance or record.source_node != node.name
        ):
            return False
        if not parsed.is_empty and not matches_query(record, parsed, now):
            return False
        if selection.guest_type is not None and record.guest_type != selection.guest_type:
            return False
        if selection.provenance is not None and record.provenance != selection.provenance:
            return False
        return True

    return predicate


def filter_records(
    records: Iterable[BackupRecord],
    selection: Selection,
    now: float | None = None,
    apply_date_range: bool = True,
) -> list[BackupRecord]:
    predicate = build_predicate(selection, now, apply_date_range)
    return [r for r in records if predicate(r)]


def detect_backup_server_instance(query: str, known_instances: Iterable[str]) -> str | None:
    """Name of a known backup-server instance referenced as ``node:<name>``."""
    match = _NODE_TOKEN.search(query)
    if match and match.group(1) in set(known_instances):
        return match.group(1)
    return None
