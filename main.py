"""Application entry point: wires services and prints the backup view.

Usage:
    python main.py --state state.json
    python main.py --url http://monitor:7655/api/state --query "node:pve1" --group-by guest
    python main.py --state state.json --query "size>10 AND verified:false" --sort size --asc
"""

from __future__ import annotations

import argparse
import sys
from datetime import date, datetime, time
from pathlib import Path

from loguru import logger

from backupview.config import get_config
from backupview.context import AppContext
from backupview.core.aggregator import format_dedup_factor
from backupview.core.dedup import DedupReport
from backupview.core.pipeline import BackupPipeline, SourceState
from backupview.core.sorter import default_direction
from backupview.data.state_loader import StateLoadError, load_state_file, load_state_url
from backupview.logger import setup_logger
from backupview.models.backup_record import BackupRecord, GuestType, Provenance
from backupview.models.source_records import NodeRef
from backupview.models.view import (
    BackupView,
    DateRange,
    GroupMode,
    Selection,
    SortDirection,
    SortKey,
)
from backupview.utils import (
    age_bucket,
    format_absolute_time,
    format_relative_time,
    format_size,
    truncate_middle,
)

_GUEST_TYPES = {"vm": GuestType.VM, "lxc": GuestType.LXC, "ct": GuestType.LXC, "host": GuestType.HOST}


def create_context() -> AppContext:
    """Wire all services and return an AppContext."""
    config = get_config()
    setup_logger(config.log_dir, config.log_level)
    return AppContext(config=config, pipeline=BackupPipeline())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Unified backup view across snapshots, storage and backup servers.")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--state", type=Path, help="Path to a JSON state dump")
    source.add_argument("--url", help="URL serving the JSON state dump")
    parser.add_argument("--query", default="", help='Search text, e.g. "node:pve1", "size>10", "pbs:pbs1:store:ns"')
    parser.add_argument("--type", choices=sorted(_GUEST_TYPES), help="Guest type filter")
    parser.add_argument("--source", choices=[p.value for p in Provenance], help="Backup provenance filter")
    parser.add_argument("--node", help='Source node, as "<instance>/<node>" or a bare node name')
    parser.add_argument("--since", type=date.fromisoformat, help="First day to include (YYYY-MM-DD)")
    parser.add_argument("--until", type=date.fromisoformat, help="Last day to include (YYYY-MM-DD)")
    parser.add_argument("--sort", choices=[k.value for k in SortKey], help="Sort key")
    direction = parser.add_mutually_exclusive_group()
    direction.add_argument("--desc", dest="direction", action="store_const", const=SortDirection.DESC)
    direction.add_argument("--asc", dest="direction", action="store_const", const=SortDirection.ASC)
    parser.add_argument("--group-by", choices=[g.value for g in GroupMode], help="Group rows by date or guest")
    parser.add_argument("--chart-days", type=int, help="Chart window in days")
    parser.add_argument("--relative", action="store_true", help="Show relative times")
    parser.add_argument(
        "--save-defaults",
        action="store_true",
        help="Store the sort, grouping, chart window and state file as defaults in config.json",
    )
    return parser


def resolve_node(text: str, nodes: tuple[NodeRef, ...]) -> NodeRef:
    """Match "<instance>/<node>" exactly, or a bare node name against known nodes."""
    if "/" in text:
        instance, _, name = text.partition("/")
        return NodeRef(instance=instance, name=name)
    for node in nodes:
        if node.name == text:
            return node
    return NodeRef(instance="", name=text)


def build_selection(args: argparse.Namespace, ctx: AppContext, state: SourceState) -> Selection:
    """Start from the configured defaults and apply command-line overrides."""
    base = ctx.config.default_selection()

    sort_key = SortKey(args.sort) if args.sort else base.sort_key
    if args.direction is not None:
        sort_direction = args.direction
    elif args.sort:
        sort_direction = default_direction(sort_key)
    else:
        sort_direction = base.sort_direction

    date_range = None
    if args.since or args.until:
        start = int(datetime.combine(args.since, time.min).timestamp()) if args.since else 0
        end = datetime.combine(args.until or datetime.now().date(), time.max)
        date_range = DateRange(start, int(end.timestamp()))

    return Selection(
        query=args.query,
        guest_type=_GUEST_TYPES[args.type] if args.type else None,
        provenance=Provenance(args.source) if args.source else None,
        date_range=date_range,
        node=resolve_node(args.node, state.nodes) if args.node else None,
        sort_key=sort_key,
        sort_direction=sort_direction,
        group_by=GroupMode(args.group_by) if args.group_by else base.group_by,
        chart_days=args.chart_days or base.chart_days,
        provenance_locked=args.source is not None,
    )


def load_state(args: argparse.Namespace, ctx: AppContext) -> SourceState:
    if args.url or (not args.state and ctx.config.state_url):
        return load_state_url(args.url or ctx.config.state_url, timeout=ctx.config.request_timeout)
    path = args.state or ctx.config.state_path
    if path is None:
        raise StateLoadError("No state source: pass --state or --url, or set state_path in config.json")
    return load_state_file(path)


def _format_row(record: BackupRecord, relative: bool) -> str:
    when = format_relative_time(record.timestamp) if relative else format_absolute_time(record.timestamp)
    size = format_size(record.size) if record.size else "-"
    where = record.storage or record.datastore or "-"
    return (
        f"  {when:<17} {record.guest_type:<4} {str(record.guest_id):>6}  "
        f"{truncate_middle(record.guest_name, 28):<28} {record.source_node:<12} "
        f"{record.provenance:<8} {size:>10}  {truncate_middle(where, 20):<20} "
        f"{record.status:<10} {age_bucket(record.timestamp)}"
    )


def print_view(
    view: BackupView,
    selection: Selection,
    relative: bool,
    report: DedupReport | None = None,
) -> None:
    if not view.has_any_backups:
        print("No backups found.")
        return

    for group in view.groups:
        print(f"{group.label} ({len(group.items)})")
        for record in group.items:
            print(_format_row(record, relative))
        print()

    summary = f"Showing {len(view.records)} of {len(view.canonical)} backup(s)"
    if selection.is_filtered:
        summary += " (filtered)"
    if report is not None and report.dropped_count:
        summary += f", {report.dropped_count} duplicate(s) merged"
    print(summary)
    chart = view.chart
    totals = [row.total for row in chart.rows]
    active_days = sum(1 for t in totals if t)
    print(
        f"Last {len(chart.rows)} day(s): {sum(totals)} backup(s) on {active_days} day(s), "
        f"peak {chart.max_value}/day"
    )
    factor = format_dedup_factor(view.dedup_factor)
    if factor:
        print(f"Deduplication factor: {factor}")


def main(argv: list[str] | None = None) -> int:
    """Application entry point."""
    args = build_parser().parse_args(argv)
    ctx = create_context()

    try:
        state = load_state(args, ctx)
    except StateLoadError as e:
        logger.error(str(e))
        return 1

    ctx.pipeline.set_state(state)
    selection = build_selection(args, ctx, state)
    try:
        view = ctx.pipeline.view(selection)
    except ValueError as e:
        logger.error(str(e))
        return 1

    if args.save_defaults:
        ctx.config.save_defaults(selection, args.state)
        logger.info(f"Saved view defaults to {ctx.config.data_dir / 'config.json'}")

    print_view(view, selection, args.relative or ctx.config.use_relative_time, ctx.pipeline.last_report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
