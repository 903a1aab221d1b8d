"""Command line interface for StackRadar.

Usage::

    stackradar add react 17.0.2 --env frontend
    stackradar list --sort priority
    stackradar analyze-all
    stackradar report --output reports/stack.md
    stackradar plan 3f2a9c1e  # phased upgrade plan for one record
    stackradar sync            # background re-analysis until Ctrl+C
"""

import argparse
import asyncio
from pathlib import Path
from typing import Optional, Sequence

from pydantic import ValidationError

from . import __version__
from .config import StackRadarConfig, find_config, load_config
from .downloaders import http_session
from .exceptions import PlanUnavailable
from .models import AnalysisResult, TechnologyRecord
from .pipeline import build_pipeline
from .plans import build_upgrade_plan
from .report import PRIORITY_BADGES, render_upgrade_plan, write_markdown_report
from .store import (
    JsonRecordBackend,
    TechnologyStore,
    calculate_stats,
    export_json,
    filter_records,
    import_json,
    sort_records,
)

NETWORK_COMMANDS = {"add", "reanalyze", "analyze-all", "sync"}


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="stackradar",
        description="Track versions, end-of-life dates and vulnerabilities of your tech stack",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--config", type=Path, default=None, help="Path to stackradar.yaml/.json")
    p.add_argument(
        "--ai",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Consult the local AI model for advice (overrides config)",
    )
    sub = p.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Track a technology and analyze it")
    add.add_argument("technology")
    add.add_argument("version")
    add.add_argument("--env", default=None, help="Environment or product the technology belongs to")

    ls = sub.add_parser("list", help="List tracked technologies")
    ls.add_argument("--priority", choices=["critical", "high", "medium", "low"], default=None)
    ls.add_argument("--search", default=None)
    ls.add_argument("--sort", choices=["technology", "priority", "eol", "lastAnalyzed"], default="priority")

    re_ = sub.add_parser("reanalyze", help="Re-run the analysis of one record")
    re_.add_argument("id")

    sub.add_parser("analyze-all", help="Re-analyze every record")

    rm = sub.add_parser("remove", help="Stop tracking a record")
    rm.add_argument("id")

    sub.add_parser("clear", help="Remove all records")

    rep = sub.add_parser("report", help="Write a Markdown report")
    rep.add_argument("--output", type=Path, default=Path("reports/stackradar.md"))

    plan = sub.add_parser("plan", help="Print a phased upgrade plan for one record")
    plan.add_argument("id")
    plan.add_argument("--output", type=Path, default=None, help="Write the plan to a Markdown file instead")

    exp = sub.add_parser("export", help="Export records as JSON")
    exp.add_argument("--output", type=Path, default=Path("stackradar-export.json"))

    imp = sub.add_parser("import", help="Replace records with a JSON export")
    imp.add_argument("path", type=Path)

    sync = sub.add_parser("sync", help="Periodically re-analyze a random record")
    sync.add_argument("--once", action="store_true", help="Run a single tick and exit")
    return p


def _load_config(path: Path | None) -> StackRadarConfig:
    path = path or find_config()
    if path is None:
        return StackRadarConfig()
    return load_config(path)


def _format_record(r: TechnologyRecord) -> str:
    badge = PRIORITY_BADGES.get(r.ai_priority, r.ai_priority)
    parts = [f"{badge:<12} {r.technology} {r.current_version} → {r.latest_version}"]
    if r.version_gap:
        parts.append(f"({r.version_gap})")
    if r.eol_date:
        parts.append(f"EOL: {r.eol_date}")
    if r.vulnerability_count is not None:
        parts.append(f"vulns: {r.vulnerability_count}")
    elif r.runtime_technology:
        parts.append("vulns: vendor advisories")
    return "  ".join(parts) + f"  [{r.id[:8]}]"


def _print_result(result: AnalysisResult) -> None:
    r = result.record
    print(_format_record(r))
    failed = [stage for stage, outcome in result.outcomes.items() if outcome != "success"]
    if failed:
        print(f"    Partial data: {', '.join(failed)} unavailable")
    for rec in r.recommendations[:5]:
        print(f"    - {rec}")


def _resolve_id(store: TechnologyStore, prefix: str) -> str | None:
    """Accept a full id or an unambiguous prefix."""
    if prefix in store:
        return prefix
    matches = [r.id for r in store.all() if r.id.startswith(prefix)]
    return matches[0] if len(matches) == 1 else None


async def _run_pipeline_command(args: argparse.Namespace, config: StackRadarConfig, store: TechnologyStore) -> int:
    async with http_session(config) as session:
        pipeline = build_pipeline(session, config, store)

        if args.command == "add":
            result = await pipeline.add_technology(args.technology, args.version, args.env)
            print(f"✅ Added {result.record.technology}")
            _print_result(result)
            return 0

        if args.command == "reanalyze":
            record_id = _resolve_id(store, args.id)
            result = await pipeline.reanalyze(record_id) if record_id else None
            if result is None:
                print(f"❌ No record with id {args.id}")
                return 1
            _print_result(result)
            return 0

        if args.command == "analyze-all":
            results = await pipeline.analyze_all()
            for result in results:
                _print_result(result)
            print(f"✅ Analyzed {len(results)} technologies")
            return 0

        if args.command == "sync":
            if args.once:
                result = await pipeline.sync_once()
                if result is None:
                    print("Nothing to sync: no technologies tracked")
                else:
                    _print_result(result)
                return 0
            print(f"🔄 Background sync every {pipeline.sync_interval_seconds:.0f}s (Ctrl+C to stop)")
            await pipeline.run_background_sync(asyncio.Event())
            return 0

    raise ValueError(f"Unhandled command: {args.command}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        config = _load_config(args.config)
    except (OSError, ValueError, ValidationError) as e:
        print(f"❌ Could not load configuration: {e}")
        return 1
    if args.ai is not None:
        config.ai.enabled = args.ai

    store = TechnologyStore(JsonRecordBackend(config.storage.records_path))

    if args.command in NETWORK_COMMANDS:
        try:
            return asyncio.run(_run_pipeline_command(args, config, store))
        except KeyboardInterrupt:
            print("\nStopped.")
            return 0
        except ValueError as e:
            print(f"❌ {e}")
            return 1

    if args.command == "list":
        records = filter_records(store.all(), args.search, args.priority)
        records = sort_records(records, args.sort)
        for r in records:
            print(_format_record(r))
        stats = calculate_stats(store.all())
        print(
            f"\n{stats['total']} tracked, {stats['critical']} critical, "
            f"{stats['recommended']} upgrades recommended, {stats['up_to_date']} up to date"
        )
        return 0

    if args.command == "remove":
        record_id = _resolve_id(store, args.id)
        if record_id is None or not store.delete(record_id):
            print(f"❌ No record with id {args.id}")
            return 1
        print(f"✅ Removed {args.id}")
        return 0

    if args.command == "clear":
        count = len(store)
        store.clear()
        print(f"✅ Removed {count} records")
        return 0

    if args.command == "report":
        write_markdown_report(args.output, store.all())
        print(f"✅ Report written to {args.output}")
        return 0

    if args.command == "plan":
        record_id = _resolve_id(store, args.id)
        record = store.get(record_id) if record_id else None
        if record is None:
            print(f"❌ No record with id {args.id}")
            return 1
        if record.version_gap == "up-to-date":
            print(f"✅ {record.technology} {record.current_version} is up to date; nothing to plan")
            return 0
        try:
            rendered = render_upgrade_plan(build_upgrade_plan(record))
        except PlanUnavailable as e:
            print(f"❌ {e}")
            return 1
        if args.output is None:
            print(rendered)
            return 0
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(rendered, encoding="utf-8")
        print(f"✅ Upgrade plan written to {args.output}")
        return 0

    if args.command == "export":
        count = export_json(store.all(), args.output)
        print(f"✅ Exported {count} records to {args.output}")
        return 0

    if args.command == "import":
        try:
            records = import_json(args.path)
        except (OSError, ValueError) as e:
            print(f"❌ Could not import {args.path}: {e}")
            return 1
        store.replace_all(records)
        print(f"✅ Imported {len(records)} records")
        return 0

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
