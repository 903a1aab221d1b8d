"""Known-vulnerability lookup and severity classification.

Packages from a known ecosystem (npm, PyPI) are checked against OSV.
Runtimes and platforms have no package-level advisory database, so they
get a neutral score and a pointer to vendor advisories instead of an
empty list that would read as "scanned, clean".
"""

from typing import Any

from .catalog import RUNTIME_CATEGORIES
from .exceptions import SourceError
from .models import VulnerabilityEntry, VulnerabilityReport, compute_security_score
from .normalizer import NormalizedName
from .parsers import cvss3_base_score, score_to_severity

RUNTIME_NEUTRAL_SCORE = 70

_LABELS = {
    "CRITICAL": "critical",
    "HIGH": "high",
    "MODERATE": "medium",
    "MEDIUM": "medium",
    "LOW": "low",
}


def _score_from_severity_list(severity: Any) -> float | None:
    if not isinstance(severity, list):
        return None
    best: float | None = None
    for s in severity:
        if not isinstance(s, dict):
            continue
        raw = s.get("score")
        score: float | None
        try:
            score = float(raw)
        except (TypeError, ValueError):
            score = cvss3_base_score(raw) if isinstance(raw, str) else None
        if score is not None and (best is None or score > best):
            best = score
    return best


def _label_from_entry(entry: dict[str, Any]) -> str | None:
    db = entry.get("database_specific")
    if isinstance(db, dict) and isinstance(db.get("severity"), str):
        label = _LABELS.get(db["severity"].strip().upper())
        if label:
            return label
    affected_list = entry.get("affected")
    for affected in affected_list if isinstance(affected_list, list) else []:
        if not isinstance(affected, dict):
            continue
        for key in ("ecosystem_specific", "database_specific"):
            specific = affected.get(key)
            if isinstance(specific, dict) and isinstance(specific.get("severity"), str):
                label = _LABELS.get(specific["severity"].strip().upper())
                if label:
                    return label
    return None


def _text(entry: dict[str, Any], key: str) -> str | None:
    value = entry.get(key)
    return value if isinstance(value, str) else None


def _aliases(entry: dict[str, Any]) -> list[str]:
    aliases = entry.get("aliases")
    return [str(a) for a in aliases] if isinstance(aliases, list) else []


def classify(entry: dict[str, Any]) -> tuple[str, float | None]:
    """Severity and score of one OSV entry.

    A numeric score or a CVSS v3 vector wins, then a severity label.
    Entries with neither but with a CVE or GHSA identifier count as
    ``medium``; anything else is ``unknown``.

    Args:
        entry: Raw OSV vulnerability dict.

    Returns:
        ``(severity, score)``.
    """
    score = _score_from_severity_list(entry.get("severity"))
    if score is not None:
        return score_to_severity(score), score

    label = _label_from_entry(entry)
    if label:
        return label, None

    ids = [str(entry.get("id") or "")] + _aliases(entry)
    if any(i.upper().startswith(("CVE-", "GHSA-")) for i in ids):
        return "medium", None
    return "unknown", None


def to_entry(raw: dict[str, Any]) -> VulnerabilityEntry:
    """Convert a raw OSV dict to a ``VulnerabilityEntry``."""
    severity, score = classify(raw)
    summary = _text(raw, "summary") or ""
    if not summary:
        details = (_text(raw, "details") or "").strip()
        summary = details.splitlines()[0][:200] if details else ""
    references = raw.get("references")
    if not isinstance(references, list):
        references = []
    refs = [str(r["url"]) for r in references if isinstance(r, dict) and r.get("url")]
    return VulnerabilityEntry(
        id=str(raw.get("id") or "UNKNOWN"),
        severity=severity,
        score=score,
        summary=summary,
        published=_text(raw, "published"),
        modified=_text(raw, "modified"),
        references=refs,
        aliases=_aliases(raw),
    )


def build_report(raw_entries: list[dict[str, Any]]) -> VulnerabilityReport:
    entries = [to_entry(r) for r in raw_entries if isinstance(r, dict)]
    counts = {sev: sum(1 for e in entries if e.severity == sev) for sev in ("critical", "high", "medium", "low")}
    return VulnerabilityReport(
        entries=entries,
        score=compute_security_score(counts["critical"], counts["high"], counts["medium"], counts["low"]),
    )


class VulnerabilityResolver:
    """Check a technology version for known vulnerabilities.

    Args:
        client: Vulnerability database client exposing
            ``async query_vulnerabilities(name, ecosystem, version)``.
    """

    def __init__(self, client: Any):
        self.client = client

    async def resolve(
        self,
        normalized: NormalizedName,
        version: str,
        ecosystem: str | None = None,
    ) -> VulnerabilityReport | None:
        """Resolve vulnerabilities in ecosystem or runtime mode.

        Args:
            normalized: Output of ``NameNormalizer.normalize``.
            version: Version the user runs.
            ecosystem: Ecosystem learned by the version resolver, if any;
                overrides the normalizer's.

        Returns:
            ``VulnerabilityReport``, or None when the technology could not
            be checked. Never raises.
        """
        ecosystem = ecosystem or normalized.ecosystem
        if ecosystem and normalized.package_name:
            try:
                raw = await self.client.query_vulnerabilities(normalized.package_name, ecosystem, version or None)
            except SourceError as e:
                print(f"    Warning: vulnerability lookup failed for {normalized.key}: {e}")
                return None
            try:
                return build_report(raw)
            except (TypeError, AttributeError, ValueError) as e:
                print(f"    Warning: unusable OSV data for {normalized.key}: {e}")
                return None

        if normalized.category in RUNTIME_CATEGORIES:
            return VulnerabilityReport(
                entries=None,
                score=RUNTIME_NEUTRAL_SCORE,
                runtime_technology=True,
                note=(
                    f"{normalized.display} is a runtime/platform technology; "
                    "check the vendor's security advisories for this version"
                ),
            )
        return None
