"""Stack report generation using Jinja2 templates.

Renders the tracked technologies into a GitHub-renderable Markdown file.
Templates live in ``stackradar/templates/``: ``report.md.j2`` for the
stack report and ``plan.md.j2`` for single-technology upgrade plans.
"""

import datetime as dt
from pathlib import Path
from typing import Iterable

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .models import TechnologyRecord
from .plans import UpgradePlan
from .store import calculate_stats, sort_records

_TEMPLATES_DIR = Path(__file__).parent / "templates"

PRIORITY_BADGES = {
    "critical": "🔴 Critical",
    "high": "🟠 High",
    "medium": "🟡 Medium",
    "low": "🟢 Low",
}


def _now_utc_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).replace(microsecond=0).isoformat()


def _environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=select_autoescape(default_for_string=False, default=False),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["badge"] = lambda p: PRIORITY_BADGES.get(p, p)
    env.filters["cell"] = lambda v: "-" if v in (None, "") else str(v).replace("|", "\\|")
    return env


def render_markdown_report(records: Iterable[TechnologyRecord], generated_at: str | None = None) -> str:
    """Render the report to a string.

    Args:
        records: Tracked technologies.
        generated_at: Timestamp shown in the header; defaults to now.

    Returns:
        Markdown text.
    """
    items = sort_records(records, "priority")
    stats = calculate_stats(items)
    urgent = [r for r in items if r.ai_priority in ("critical", "high")]
    template = _environment().get_template("report.md.j2")
    return template.render(
        generated_at=generated_at or _now_utc_iso(),
        stats=stats,
        urgent=urgent,
        items=items,
    )


def render_upgrade_plan(plan: UpgradePlan) -> str:
    """Render an upgrade plan as a Markdown checklist."""
    return _environment().get_template("plan.md.j2").render(plan=plan)


def write_markdown_report(path: Path, records: Iterable[TechnologyRecord]) -> None:
    """Write the Markdown report atomically.

    Args:
        path: Output path for the markdown report.
        records: Tracked technologies.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    rendered = render_markdown_report(records)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        f.write(rendered)
    tmp.replace(path)
