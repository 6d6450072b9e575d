"""Deduplicator: one canonical record per physical backup."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterable

from loguru import logger

from backupview.core.identity import DedupKey
from backupview.models.backup_record import BackupRecord


class SourcePriority(IntEnum):
    """Lower wins.  The backup server's inventory carries namespace,
    datastore and verification data the storage listing lacks."""

    REMOTE = 0
    HOST_CONFIG = 1
    STORAGE = 2


@dataclass(frozen=True)
class Candidate:
    priority: SourcePriority
    key: DedupKey
    record: BackupRecord


@dataclass
class DedupReport:
    kept: int = 0
    dropped: list[Candidate] = field(default_factory=list)

    @property
    def dropped_count(self) -> int:
        return len(self.dropped)


def deduplicate(candidates: Iterable[Candidate]) -> tuple[list[BackupRecord], DedupReport]:
    """
    Keep the first record seen for each dedup key.

    Candidates are stably sorted by source priority first, so the result
    does not depend on the order the sources were fed in.  Records within
    one source keep their relative order.
    """
    ordered = sorted(candidates, key=lambda c: c.priority)
    seen: set[DedupKey] = set()
    unique: list[BackupRecord] = []
    report = DedupReport()

    for candidate in ordered:
        if candidate.key in seen:
            report.dropped.append(candidate)
            logger.debug(
                f"Duplicate skipped: {candidate.priority.name.lower()} "
                f"{candidate.record.guest_type} {candidate.record.guest_id} "
                f"@ {candidate.record.timestamp} ({candidate.record.storage or candidate.record.source_node})"
            )
            continue
        seen.add(candidate.key)
        unique.append(candidate.record)

    report.kept = len(unique)
    return unique, report
