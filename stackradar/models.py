"""Data model for tracked technologies and resolver results.

``TechnologyRecord`` is the persisted unit: one row per technology the
user entered.  It round-trips through JSON with camelCase keys, and
fields that were never resolved stay absent rather than empty.  The
dataclasses below carry intermediate results between the resolvers,
the synthesizer and the pipeline.
"""

import datetime as dt
import uuid
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .parsers import SEVERITY_ORDER

UNKNOWN_VERSION = "Unknown"

Priority = Literal["critical", "high", "medium", "low"]


def utc_now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


def compute_security_score(critical: int, high: int, medium: int, low: int) -> int:
    """Security score in [0, 100] from per-severity counts."""
    return max(0, 100 - 25 * critical - 15 * high - 5 * medium - 1 * low)


class VulnerabilityEntry(BaseModel):
    """One advisory affecting the tracked version.

    Attributes:
        id: Advisory identifier (``GHSA-...``, ``CVE-...``, ``PYSEC-...``).
        severity: ``critical``, ``high``, ``medium``, ``low`` or ``unknown``.
        score: CVSS base score when one was available.
        summary: One-line description.
        published: Publication timestamp as reported by the source.
        modified: Last modification timestamp.
        references: Advisory URLs.
        aliases: Other identifiers for the same issue.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    severity: str = "unknown"
    score: float | None = None
    summary: str = ""
    published: str | None = None
    modified: str | None = None
    references: list[str] = Field(default_factory=list)
    aliases: list[str] = Field(default_factory=list)


def sort_vulnerabilities(entries: list[VulnerabilityEntry]) -> list[VulnerabilityEntry]:
    """Most severe first; higher score breaks ties."""
    return sorted(
        entries,
        key=lambda v: (SEVERITY_ORDER.get(v.severity, 0), v.score or 0.0),
        reverse=True,
    )


class TechnologyRecord(BaseModel):
    """A tracked technology and everything resolved about it.

    ``id`` is assigned once and can never be reassigned.  The derived
    vulnerability aggregates are recomputed on validation and by
    :meth:`set_vulnerabilities`; they are left alone when no vulnerability
    list is present so the runtime-mode neutral score survives a reload.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(default_factory=_new_id, frozen=True)
    technology: str
    current_version: str = Field(alias="currentVersion")
    environment: str | None = None

    latest_version: str = Field(default=UNKNOWN_VERSION, alias="latestVersion")
    check_url: str | None = Field(default=None, alias="checkUrl")
    version_source: str | None = Field(default=None, alias="versionSource")

    eol_date: str | None = Field(default=None, alias="eolDate")
    support_status: str | None = Field(default=None, alias="supportStatus")
    eol_source: str | None = Field(default=None, alias="eolSource")
    eol_cycle: str | None = Field(default=None, alias="eolCycle")
    eol_lts: bool | None = Field(default=None, alias="eolLts")

    vulnerabilities: list[VulnerabilityEntry] | None = None
    vulnerability_count: int | None = Field(default=None, alias="vulnerabilityCount")
    critical_vulns: int | None = Field(default=None, alias="criticalVulns")
    high_vulns: int | None = Field(default=None, alias="highVulns")
    security_score: int | None = Field(default=None, ge=0, le=100, alias="securityScore")
    runtime_technology: bool | None = Field(default=None, alias="runtimeTechnology")
    vulnerability_note: str | None = Field(default=None, alias="vulnerabilityNote")

    ai_priority: Priority = Field(default="medium", alias="aiPriority")
    version_gap: str | None = Field(default=None, alias="versionGap")
    recommendations: list[str] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list, alias="nextSteps")
    ai_summary: str | None = Field(default=None, alias="aiSummary")

    category: str | None = None
    canonical_key: str | None = Field(default=None, alias="canonicalKey")

    added_date: str = Field(default_factory=utc_now_iso, alias="addedDate")
    last_analyzed: str | None = Field(default=None, alias="lastAnalyzed")

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_keys(cls, data: Any) -> Any:
        if isinstance(data, dict) and "environment" not in data and "product" in data:
            data = dict(data)
            data["environment"] = data.pop("product")
        return data

    @model_validator(mode="after")
    def _derive_vulnerability_counts(self) -> "TechnologyRecord":
        if self.vulnerabilities is not None:
            self._apply_counts(self.vulnerabilities)
        return self

    def _apply_counts(self, entries: list[VulnerabilityEntry]) -> None:
        counts = {sev: 0 for sev in ("critical", "high", "medium", "low")}
        for v in entries:
            if v.severity in counts:
                counts[v.severity] += 1
        self.vulnerabilities = sort_vulnerabilities(entries)
        self.vulnerability_count = len(entries)
        self.critical_vulns = counts["critical"]
        self.high_vulns = counts["high"]
        self.security_score = compute_security_score(
            counts["critical"], counts["high"], counts["medium"], counts["low"]
        )

    def set_vulnerabilities(self, entries: list[VulnerabilityEntry]) -> None:
        """Replace the vulnerability list and recompute the aggregates."""
        self.runtime_technology = None
        self.vulnerability_note = None
        self._apply_counts(list(entries))

    def clear_vulnerabilities(self) -> None:
        """Mark vulnerabilities as not checked."""
        self.vulnerabilities = None
        self.vulnerability_count = None
        self.critical_vulns = None
        self.high_vulns = None
        self.security_score = None
        self.runtime_technology = None
        self.vulnerability_note = None

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys and absent fields omitted."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# ── Resolver results ─────────────────────────────────────────────────────────


@dataclass
class Release:
    """A version reported by a registry or repository."""

    version: str
    url: str | None = None


@dataclass
class VersionInfo:
    latest_version: str
    documentation_url: str | None
    source_type: str
    ecosystem: str | None = None


@dataclass
class LifecycleInfo:
    """Lifecycle facts for one technology version.

    Attributes:
        eol: End-of-life date or description.
        support: End of active support, date or description.
        lts: Whether the cycle is a long-term-support line.
        cycle: Display label of the matched release cycle.
        source: Which tier answered: ``version-specific``, ``static``,
            ``api-specific``, ``api-latest`` or ``pattern``.
    """

    eol: str
    support: str
    lts: bool = False
    cycle: str | None = None
    source: str = "static"


@dataclass
class LifecycleAssessment:
    priority: str
    days_remaining: int | None = None
    recommendation: str | None = None


@dataclass
class VulnerabilityReport:
    """Outcome of a vulnerability check.

    ``entries`` is None in runtime mode, where no package-level database
    applies and only ``score`` and ``note`` are meaningful.
    """

    entries: list[VulnerabilityEntry] | None
    score: int
    runtime_technology: bool = False
    note: str | None = None

    @property
    def critical(self) -> int:
        return sum(1 for v in self.entries or [] if v.severity == "critical")

    @property
    def high(self) -> int:
        return sum(1 for v in self.entries or [] if v.severity == "high")


@dataclass
class Facts:
    """Everything the synthesizer may reason about for one pass."""

    technology: str
    current_version: str
    latest_version: str = UNKNOWN_VERSION
    category: str = "unknown"
    lifecycle: LifecycleInfo | None = None
    vulnerabilities: VulnerabilityReport | None = None


@dataclass
class Synthesis:
    priority: str
    version_gap: str
    recommendations: list[str] = field(default_factory=list)
    next_steps: list[str] = field(default_factory=list)
    summary: str | None = None
    ai_used: bool = False
    rule_priority: str = "medium"
    fact_recommendations: list[str] = field(default_factory=list)


@dataclass
class AnalysisResult:
    """Record produced by one pass plus per-stage outcomes.

    Attributes:
        record: The updated record.
        outcomes: Stage name to ``success`` or ``partial-failure``.
        stored: False when the record disappeared before the write.
    """

    record: TechnologyRecord
    outcomes: dict[str, str] = field(default_factory=dict)
    stored: bool = True
