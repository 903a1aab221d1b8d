"""End-of-life and support lookup, and date-proximity assessment.

Lookup precedence:

1. ``version-specific``: catalog tables for runtimes with fixed schedules
2. ``static``: the catalog's general lifecycle description
3. ``api-specific`` / ``api-latest``: endoflife.date cycles
4. ``pattern``: hand-written phrases, only when nothing else answered

When a version was given and the lifecycle API has no matching cycle,
the answer is "no data": showing the newest cycle's dates for an older
version would be wrong.
"""

import datetime as dt
from typing import Any

from .catalog import EOL_PATTERNS, VERSION_EOL
from .config import ThresholdsConfig
from .exceptions import SourceError
from .models import LifecycleAssessment, LifecycleInfo
from .normalizer import NormalizedName
from .parsers import extract_major_version, norm, parse_lifecycle_date, version_key_candidates


def _api_value(value: Any, when_true: str, when_false: str, when_missing: str = "Not specified") -> str:
    if value is True:
        return when_true
    if value is False:
        return when_false
    if value is None or value == "":
        return when_missing
    return str(value)


def _cycle_matches(cycle: dict[str, Any], version: str) -> bool:
    candidates = version_key_candidates(version)
    major = extract_major_version(version)
    cycle_id = str(cycle.get("cycle", "")).strip()
    if cycle_id and cycle_id in candidates:
        return True
    latest = str(cycle.get("latest") or "")
    return bool(major) and (latest == major or latest.startswith(f"{major}."))


class LifecycleResolver:
    """Resolve lifecycle facts for a technology version.

    Args:
        client: Lifecycle API client exposing ``async get_cycles(slug)``.
    """

    def __init__(self, client: Any):
        self.client = client

    def version_specific(self, normalized: NormalizedName, version: str) -> LifecycleInfo | None:
        """Look the version up in the fixed-schedule tables."""
        table = None
        for slug in [normalized.key, *normalized.eol_slugs]:
            if slug in VERSION_EOL:
                table = VERSION_EOL[slug]
                break
        if table is None or not version:
            return None
        cycles: dict[str, dict[str, Any]] = table["cycles"]  # type: ignore[assignment]
        for key in version_key_candidates(version):
            info = cycles.get(key)
            if info:
                return LifecycleInfo(
                    eol=info["eol"],
                    support=info["support"],
                    lts=bool(info["lts"]),
                    cycle=str(table["label"]).format(key),
                    source="version-specific",
                )
        return None

    async def from_api(self, normalized: NormalizedName, version: str) -> tuple[bool, LifecycleInfo | None]:
        """Query the lifecycle API.

        Returns:
            ``(answered, info)``. ``answered`` is True when some slug
            returned cycle data, in which case ``info`` is final even
            when it is None.
        """
        for slug in normalized.eol_slugs:
            try:
                cycles = await self.client.get_cycles(slug)
            except SourceError as e:
                print(f"    Warning: lifecycle lookup failed for {slug}: {e}")
                continue
            if not cycles:
                continue

            if version:
                match = next((c for c in cycles if _cycle_matches(c, version)), None)
                if match is None:
                    return True, None
                source = "api-specific"
            else:
                match = cycles[0]
                source = "api-latest"
            return True, LifecycleInfo(
                eol=_api_value(match.get("eol"), "ended", "Not specified"),
                support=_api_value(match.get("support"), "Active", "ended"),
                lts=bool(match.get("lts")),
                cycle=str(match.get("cycle")) if match.get("cycle") is not None else None,
                source=source,
            )
        return False, None

    async def resolve(self, normalized: NormalizedName, current_version: str) -> LifecycleInfo | None:
        """Resolve lifecycle facts through the four tiers.

        Args:
            normalized: Output of ``NameNormalizer.normalize``.
            current_version: Version the user runs (may be empty).

        Returns:
            ``LifecycleInfo`` tagged with the tier that answered, or None.
        """
        version = (current_version or "").strip()

        info = self.version_specific(normalized, version)
        if info:
            return info

        entry = normalized.entry
        if entry and entry.static_eol:
            return LifecycleInfo(
                eol=entry.static_eol,
                support=entry.static_support_end or "See EOL date",
                lts=bool(entry.lts_version),
                source="static",
            )

        answered, info = await self.from_api(normalized, version)
        if answered:
            return info

        pattern = EOL_PATTERNS.get(normalized.key) or (entry.eol_pattern if entry else None)
        if pattern:
            return LifecycleInfo(eol=pattern, support="See documentation", source="pattern")
        return None


# ── Assessment ───────────────────────────────────────────────────────────────


def _by_days(
    days: int,
    thresholds: ThresholdsConfig,
) -> str:
    if days < 0 or days < thresholds.eol_critical_days:
        return "critical"
    if days < thresholds.eol_high_days:
        return "high"
    if days < thresholds.eol_medium_days:
        return "medium"
    return "low"


def assess_eol(
    text: str | None,
    today: dt.date | None = None,
    thresholds: ThresholdsConfig | None = None,
) -> LifecycleAssessment:
    """Assess how urgent an EOL description is.

    Prose rules come first (``active``, ``rolling``, ``ended``, lists of
    several versions, LTS descriptions); otherwise the date is parsed and
    the time left decides the priority.

    Args:
        text: EOL date or description.
        today: Evaluation date (defaults to today).
        thresholds: Day thresholds.

    Returns:
        ``LifecycleAssessment`` with one recommendation.
    """
    today = today or dt.date.today()
    thresholds = thresholds or ThresholdsConfig()
    t = norm(text or "")

    if not t or "not specified" in t or "active" in t:
        return LifecycleAssessment("low", recommendation="✅ No immediate EOL concerns - continue monitoring")
    if "rolling" in t or "ongoing" in t:
        return LifecycleAssessment("low", recommendation="🔄 Rolling release - stay updated with latest versions")
    if t == "ended" or t.startswith("ended"):
        return LifecycleAssessment(
            "critical",
            days_remaining=None,
            recommendation="⚠️ This version is already end-of-life and no longer receives security updates",
        )
    if "," in t:
        return LifecycleAssessment(
            "medium", recommendation="📅 Multiple version lifecycles - check your specific version EOL"
        )
    if "lts" in t or "months" in t:
        return LifecycleAssessment(
            "medium", recommendation="📊 LTS/Support lifecycle - plan upgrades within support windows"
        )

    eol = parse_lifecycle_date(text)
    if eol is None:
        return LifecycleAssessment(
            "medium", recommendation=f"📋 EOL Information: {text} - review specific dates for your version"
        )

    days = (eol - today).days
    priority = _by_days(days, thresholds)
    if days < 0:
        rec = "⚠️ This version is already end-of-life and no longer receives security updates"
    elif priority == "critical":
        rec = f"🚨 End-of-life in {days} days - immediate upgrade required"
    elif priority == "high":
        rec = f"⏰ End-of-life in {max(1, -(-days // 30))} months - plan upgrade soon"
    elif priority == "medium":
        rec = f"📆 End-of-life in {max(1, -(-days // 30))} months - schedule the upgrade"
    else:
        years = max(1, -(-days // 365))
        rec = f"✅ End-of-life in {years} year{'s' if years > 1 else ''} - good long-term support"
    return LifecycleAssessment(priority, days_remaining=days, recommendation=rec)


def assess_support(
    text: str | None,
    today: dt.date | None = None,
    thresholds: ThresholdsConfig | None = None,
) -> LifecycleAssessment | None:
    """Assess an end-of-active-support date.

    Only dates count: descriptions such as ``See EOL date`` contribute
    nothing and yield None.
    """
    support = parse_lifecycle_date(text)
    if support is None:
        return None
    today = today or dt.date.today()
    thresholds = thresholds or ThresholdsConfig()
    days = (support - today).days
    priority = _by_days(days, thresholds)
    if days < 0:
        rec = "⚠️ Active support has ended - only security fixes, if any, remain"
    elif priority in ("critical", "high"):
        rec = f"⏰ Active support ends in {days} days - plan the upgrade"
    else:
        rec = None
    return LifecycleAssessment(priority, days_remaining=days, recommendation=rec)
