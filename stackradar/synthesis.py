"""Risk synthesis: one upgrade priority from version, lifecycle and advisories.

The rule-based priority is the maximum over three dimensions:

- version gap (major/minor/patch distance to the latest release)
- lifecycle (the more urgent of end-of-support and end-of-life)
- vulnerabilities (any critical forces ``critical``, any high at least ``high``)

An optional AI collaborator may word the recommendations and suggest a
priority, but its priority can only raise the rule result, never lower it.
"""

import datetime as dt

from .ai import AIClient, build_advice_prompt, parse_advice
from .catalog import CATEGORY_INSIGHTS, DEFAULT_INSIGHTS, PRIORITY_NEXT_STEPS, KnownTechnology
from .config import ThresholdsConfig
from .exceptions import AICollaboratorError
from .lifecycle import assess_eol, assess_support
from .models import UNKNOWN_VERSION, Facts, Synthesis
from .normalizer import NormalizedName
from .parsers import max_priority, parse_version_parts


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'s' if n != 1 else ''}"


def analyze_versions(
    current: str | None,
    latest: str | None,
    thresholds: ThresholdsConfig | None = None,
) -> tuple[str, str]:
    """Describe the distance between two versions.

    Args:
        current: Version in use.
        latest: Latest known release.
        thresholds: Gap thresholds.

    Returns:
        ``(version_gap, priority)``, e.g. ``("2 major versions behind",
        "critical")`` or ``("up-to-date", "low")``.
    """
    thresholds = thresholds or ThresholdsConfig()
    if not current or not latest or latest == UNKNOWN_VERSION:
        return "unknown", "medium"
    try:
        cur = parse_version_parts(current)
        lat = parse_version_parts(latest)
    except ValueError:
        return "comparison-failed", "medium"

    major, minor, patch = (lat[0] - cur[0], lat[1] - cur[1], lat[2] - cur[2])
    if major > 0:
        return _plural(major, "major version") + " behind", (
            "critical" if major >= thresholds.major_critical else "high"
        )
    if major == 0 and minor > 0:
        return _plural(minor, "minor version") + " behind", (
            "high" if minor >= thresholds.minor_high else "medium"
        )
    if major == 0 and minor == 0 and patch > 0:
        return _plural(patch, "patch version") + " behind", "low"
    if cur == lat:
        return "up-to-date", "low"
    return "ahead of latest release", "low"


def _lts_insights(entry: KnownTechnology, current: str) -> tuple[list[str], list[str]]:
    try:
        current_major = parse_version_parts(current)[0]
        lts = int(entry.lts_version or "")
    except ValueError:
        return [], []
    if current_major < lts:
        return (
            [f"☕ Version {lts} is the current LTS - consider upgrading for long-term support"],
            [f"Review the {lts} LTS migration guide", f"Test the application on {lts}", "Plan LTS upgrade timeline"],
        )
    if current_major == lts:
        return ([f"✅ You're on the {lts} LTS line - a good choice for production"], [])
    return (["🆕 You're on a non-LTS release - consider the LTS line for production stability"], [])


class RiskSynthesizer:
    """Combine resolved facts into a priority and advice.

    Args:
        thresholds: Priority thresholds.
        ai_client: Optional AI collaborator.
    """

    def __init__(self, thresholds: ThresholdsConfig | None = None, ai_client: AIClient | None = None):
        self.thresholds = thresholds or ThresholdsConfig()
        self.ai_client = ai_client

    def rule_based(
        self,
        facts: Facts,
        normalized: NormalizedName | None = None,
        today: dt.date | None = None,
    ) -> Synthesis:
        """Deterministic synthesis with template recommendations."""
        today = today or dt.date.today()
        gap, version_priority = analyze_versions(facts.current_version, facts.latest_version, self.thresholds)

        recommendations: list[str] = []
        lifecycle_priority = "low"
        if facts.lifecycle:
            eol = assess_eol(facts.lifecycle.eol, today, self.thresholds)
            support = assess_support(facts.lifecycle.support, today, self.thresholds)
            lifecycle_priority = max_priority(eol.priority, support.priority if support else None)
            if eol.recommendation:
                recommendations.append(eol.recommendation)
            if support and support.recommendation:
                recommendations.append(support.recommendation)

        vuln_priority = "low"
        vr = facts.vulnerabilities
        if vr is not None and vr.entries is not None:
            if vr.critical:
                vuln_priority = "critical"
                recommendations.append(
                    f"🚨 {vr.critical} critical "
                    f"{'vulnerability affects' if vr.critical == 1 else 'vulnerabilities affect'} "
                    "this version - patch immediately"
                )
            elif vr.high:
                vuln_priority = "high"
            if vr.high:
                recommendations.append(
                    f"🔒 {vr.high} high-severity "
                    f"{'vulnerability affects' if vr.high == 1 else 'vulnerabilities affect'} this version"
                )
            if not vr.entries:
                recommendations.append("✅ No known vulnerabilities for this version")
        elif vr is not None and vr.note:
            recommendations.append(f"🛡️ {vr.note}")

        priority = max_priority(version_priority, lifecycle_priority, vuln_priority)
        factual = list(recommendations)

        next_steps = list(PRIORITY_NEXT_STEPS.get(priority, ()))
        insights = CATEGORY_INSIGHTS.get(facts.category, DEFAULT_INSIGHTS)
        recommendations.extend(insights.recommendations)
        next_steps.extend(insights.next_steps)

        entry = normalized.entry if normalized else None
        if entry and entry.lts_version:
            lts_recs, lts_steps = _lts_insights(entry, facts.current_version)
            recommendations.extend(lts_recs)
            next_steps.extend(lts_steps)

        return Synthesis(
            priority=priority,
            version_gap=gap,
            recommendations=recommendations,
            next_steps=next_steps,
            rule_priority=priority,
            fact_recommendations=factual,
        )

    async def synthesize(
        self,
        facts: Facts,
        normalized: NormalizedName | None = None,
        today: dt.date | None = None,
    ) -> Synthesis:
        """Rule-based synthesis, reworded by the AI collaborator when available.

        AI failures fall back to the templates; they never fail the pass.
        """
        result = self.rule_based(facts, normalized, today)
        if self.ai_client is None:
            return result

        try:
            text = await self.ai_client.generate(build_advice_prompt(facts))
            advice = parse_advice(text, facts)
        except AICollaboratorError as e:
            print(f"    Warning: AI advice unavailable for {facts.technology} ({e}), using rules")
            return result

        return Synthesis(
            priority=max_priority(result.rule_priority, advice.priority),
            version_gap=result.version_gap,
            recommendations=result.fact_recommendations + advice.recommendations,
            next_steps=advice.next_steps or result.next_steps,
            summary=advice.summary or None,
            ai_used=True,
            rule_priority=result.rule_priority,
            fact_recommendations=result.fact_recommendations,
        )
