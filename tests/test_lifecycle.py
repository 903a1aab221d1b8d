"""Unit tests for stackradar.lifecycle — tiered EOL lookup and assessment."""

import asyncio
import datetime as dt

import pytest

from stackradar.config import ThresholdsConfig
from stackradar.exceptions import NotFoundError, SourceUnavailable
from stackradar.lifecycle import LifecycleResolver, assess_eol, assess_support
from stackradar.normalizer import NameNormalizer


class FakeLifecycleAPI:
    """endoflife.date stand-in keyed by slug."""

    def __init__(self, products: dict | None = None, error: Exception | None = None):
        self.products = products or {}
        self.error = error
        self.calls: list[str] = []

    async def get_cycles(self, slug: str):
        self.calls.append(slug)
        if self.error:
            raise self.error
        if slug not in self.products:
            raise NotFoundError("endoflife", slug)
        return self.products[slug]


def _resolve(name: str, version: str, api: FakeLifecycleAPI | None = None):
    resolver = LifecycleResolver(api or FakeLifecycleAPI())
    return asyncio.run(resolver.resolve(NameNormalizer().normalize(name), version))


# ── Tier 1: version-specific ─────────────────────────────────────────────────


class TestVersionSpecific:
    def test_java_17(self):
        info = _resolve("java", "17")
        assert info.source == "version-specific"
        assert info.eol == "2029-09"
        assert info.support == "2027-09"
        assert info.lts is True
        assert info.cycle == "Java 17"

    def test_node_alias(self):
        info = _resolve("node", "16.20.2")
        assert info.source == "version-specific"
        assert info.eol == "2024-04-30"
        assert info.cycle == "Node.js 16"

    def test_python_minor(self):
        info = _resolve("python", "3.11.9")
        assert info.source == "version-specific"
        assert info.eol == "2027-10"
        assert info.cycle == "Python 3.11"

    def test_unlisted_version_falls_to_static(self):
        info = _resolve("java", "7")
        assert info.source == "static"
        assert info.eol == "2033-09"
        assert info.support == "2030-09"
        assert info.lts is True


# ── Tier 2: static ───────────────────────────────────────────────────────────


class TestStatic:
    def test_static_before_api(self):
        api = FakeLifecycleAPI({"go": [{"cycle": "1.23", "eol": False}]})
        info = _resolve("go", "1.23.4", api)
        assert info.source == "static"
        assert info.eol == "Rolling release"
        assert info.support == "See EOL date"
        assert api.calls == []


# ── Tier 3: lifecycle API ────────────────────────────────────────────────────


POSTGRES = [
    {"cycle": "17", "latest": "17.2", "eol": "2029-11-08", "support": "2029-11-08", "lts": False},
    {"cycle": "16", "latest": "16.6", "eol": "2028-11-09", "support": "2028-11-09", "lts": False},
    {"cycle": "12", "latest": "12.22", "eol": True, "support": False, "lts": False},
]


class TestApi:
    def test_matching_cycle(self):
        info = _resolve("postgresql", "16.4", FakeLifecycleAPI({"postgresql": POSTGRES}))
        assert info.source == "api-specific"
        assert info.cycle == "16"
        assert info.eol == "2028-11-09"

    def test_boolean_values(self):
        info = _resolve("postgresql", "12", FakeLifecycleAPI({"postgresql": POSTGRES}))
        assert info.eol == "ended"
        assert info.support == "ended"

    def test_missing_support_not_specified(self):
        cycles = [{"cycle": "16", "latest": "16.6", "eol": "2028-11-09"}]
        info = _resolve("postgresql", "16.2", FakeLifecycleAPI({"postgresql": cycles}))
        assert info.eol == "2028-11-09"
        assert info.support == "Not specified"

    def test_no_version_uses_latest_cycle(self):
        info = _resolve("postgresql", "", FakeLifecycleAPI({"postgresql": POSTGRES}))
        assert info.source == "api-latest"
        assert info.cycle == "17"

    def test_latest_field_match(self):
        cycles = [{"cycle": "8.x", "latest": "8.15.3", "eol": "2026-01-15"}]
        info = _resolve("elasticsearch", "8.14", FakeLifecycleAPI({"elasticsearch": cycles}))
        assert info.source == "api-specific"
        assert info.cycle == "8.x"

    def test_version_without_match_is_no_data(self):
        # Scenario: "3.11" supplied, no cycle matches "11", "3.11" or latest "11.*".
        cycles = [
            {"cycle": "4.0", "latest": "4.0.2", "eol": "2030-01-01"},
            {"cycle": "3.10", "latest": "3.10.5", "eol": "2026-01-01"},
        ]
        api = FakeLifecycleAPI({"foolang": cycles})
        assert _resolve("foolang", "3.11", api) is None

    def test_no_match_skips_pattern_tier(self):
        api = FakeLifecycleAPI({"angular": [{"cycle": "19", "latest": "19.0.1", "eol": "2026-05-19"}]})
        assert _resolve("angular", "12.0.0", api) is None

    def test_next_slug_on_not_found(self):
        api = FakeLifecycleAPI({"oracle-jdk": [{"cycle": "26", "eol": "2026-09"}]})
        resolver = LifecycleResolver(api)
        n = NameNormalizer().normalize("java")
        n.entry = None  # drop static data to reach the API tier
        info = asyncio.run(resolver.resolve(n, "26"))
        assert api.calls == ["java", "oracle-jdk"]
        assert info.source == "api-specific"


# ── Tier 4: pattern ──────────────────────────────────────────────────────────


class TestPattern:
    def test_api_unavailable_uses_pattern(self):
        info = _resolve("angular", "17.3.0", FakeLifecycleAPI(error=SourceUnavailable("endoflife", "down")))
        assert info.source == "pattern"
        assert "18 months" in info.eol

    def test_nothing_at_all(self):
        assert _resolve("zzz-unknown", "1.0") is None


# ── assess_eol ───────────────────────────────────────────────────────────────


TODAY = dt.date(2024, 5, 1)


class TestAssessEol:
    def test_already_passed(self):
        # Node 16 reached EOL the day before.
        a = assess_eol("2024-04-30", TODAY)
        assert a.priority == "critical"
        assert a.days_remaining == -1
        assert "already end-of-life" in a.recommendation

    def test_within_90_days(self):
        a = assess_eol("2024-06-30", TODAY)
        assert a.priority == "critical"
        assert "60 days" in a.recommendation

    def test_within_a_year(self):
        assert assess_eol("2025-01-01", TODAY).priority == "high"

    def test_within_three_years(self):
        assert assess_eol("2026-09", TODAY).priority == "medium"

    def test_far_future(self):
        a = assess_eol("2031-09", TODAY)
        assert a.priority == "low"
        assert "years" in a.recommendation

    def test_year_only(self):
        assert assess_eol("2030", TODAY).priority == "low"

    @pytest.mark.parametrize(
        "text,priority",
        [
            ("Not specified", "low"),
            ("Vue 2: Dec 2023, Vue 3: Active", "low"),
            ("Rolling release (6 week cycle)", "low"),
            ("OSS: ongoing, Commercial support available", "low"),
            ("ended", "critical"),
            ("Node 18: April 2025, Node 20: April 2026", "medium"),
            ("Major versions: 18 months LTS support", "medium"),
            ("Major versions: ~5 years support", "medium"),
        ],
    )
    def test_prose_rules(self, text, priority):
        assert assess_eol(text, TODAY).priority == priority

    def test_unparseable_asks_for_review(self):
        a = assess_eol("Major versions: ~5 years support", TODAY)
        assert a.days_remaining is None
        assert "review" in a.recommendation

    def test_custom_thresholds(self):
        t = ThresholdsConfig(eol_critical_days=10, eol_high_days=20, eol_medium_days=30)
        assert assess_eol("2024-06-30", TODAY, t).priority == "low"


class TestAssessSupport:
    def test_past(self):
        assert assess_support("2023-10-30", TODAY).priority == "critical"

    def test_far(self):
        a = assess_support("2029-09", TODAY)
        assert a.priority == "low"
        assert a.recommendation is None

    @pytest.mark.parametrize("text", ["See EOL date", "Not specified", "Active", "ended", None])
    def test_non_dates_contribute_nothing(self, text):
        assert assess_support(text, TODAY) is None

    def test_scenario_java_17_is_low(self):
        today = dt.date(2024, 1, 1)
        eol = assess_eol("2029-09", today)
        support = assess_support("2027-09", today)
        assert eol.priority == "low"
        assert support.priority == "low"
