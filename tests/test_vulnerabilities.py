"""Unit tests for stackradar.vulnerabilities — OSV classification and runtime mode."""

import asyncio

from stackradar.exceptions import SourceUnavailable
from stackradar.normalizer import NameNormalizer
from stackradar.vulnerabilities import (
    RUNTIME_NEUTRAL_SCORE,
    VulnerabilityResolver,
    build_report,
    classify,
    to_entry,
)


class FakeOSV:
    def __init__(self, vulns=None, error: Exception | None = None):
        self.vulns = vulns or []
        self.error = error
        self.calls: list[tuple] = []

    async def query_vulnerabilities(self, name, ecosystem, version=None):
        self.calls.append((name, ecosystem, version))
        if self.error:
            raise self.error
        return self.vulns


def _vuln(vid: str, **kwargs) -> dict:
    return {"id": vid, **kwargs}


# ── classify ─────────────────────────────────────────────────────────────────


class TestClassify:
    def test_numeric_score(self):
        assert classify(_vuln("X-1", severity=[{"type": "CVSS_V3", "score": "9.1"}])) == ("critical", 9.1)

    def test_cvss_vector(self):
        sev, score = classify(
            _vuln("GHSA-aaaa", severity=[{"type": "CVSS_V3", "score": "CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:H/I:H/A:H"}])
        )
        assert sev == "critical"
        assert score == 9.8

    def test_highest_score_wins(self):
        sev, score = classify(
            _vuln(
                "X-2",
                severity=[
                    {"type": "CVSS_V3", "score": "CVSS:3.1/AV:N/AC:L/PR:N/UI:R/S:C/C:L/I:L/A:N"},
                    {"type": "CVSS_V3", "score": "7.5"},
                ],
            )
        )
        assert (sev, score) == ("high", 7.5)

    def test_ghsa_label(self):
        assert classify(_vuln("GHSA-bbbb", database_specific={"severity": "MODERATE"})) == ("medium", None)

    def test_affected_ecosystem_label(self):
        entry = _vuln("PYSEC-1", affected=[{"ecosystem_specific": {"severity": "HIGH"}}])
        assert classify(entry) == ("high", None)

    def test_v4_only_with_cve_alias_is_medium(self):
        entry = _vuln(
            "PYSEC-2024-1",
            aliases=["CVE-2024-1234"],
            severity=[{"type": "CVSS_V4", "score": "CVSS:4.0/AV:N/AC:L/AT:N/PR:N/UI:N/VC:H/VI:H/VA:H/SC:N/SI:N/SA:N"}],
        )
        assert classify(entry) == ("medium", None)

    def test_unscored_cve_is_medium(self):
        assert classify(_vuln("CVE-2024-0001")) == ("medium", None)

    def test_unscored_without_identifier_is_unknown(self):
        assert classify(_vuln("MAL-2024-1")) == ("unknown", None)


class TestToEntry:
    def test_fields(self):
        e = to_entry(
            _vuln(
                "GHSA-cccc",
                summary="Prototype pollution",
                aliases=["CVE-2021-23337"],
                published="2021-02-15T11:00:00Z",
                references=[{"type": "WEB", "url": "https://example.test/a"}, {"type": "WEB"}],
                database_specific={"severity": "HIGH"},
            )
        )
        assert e.id == "GHSA-cccc"
        assert e.severity == "high"
        assert e.summary == "Prototype pollution"
        assert e.references == ["https://example.test/a"]
        assert e.aliases == ["CVE-2021-23337"]

    def test_summary_from_details(self):
        e = to_entry(_vuln("X-3", details="First line\nMore text"))
        assert e.summary == "First line"

    def test_malformed_fields_ignored(self):
        e = to_entry(_vuln("GHSA-1", details=42, aliases=5, references="x", affected=3, published=7))
        assert e.severity == "medium"
        assert e.summary == ""
        assert e.aliases == []
        assert e.references == []
        assert e.published is None


class TestBuildReport:
    def test_score(self):
        raw = [
            _vuln("A", severity=[{"score": "9.8"}]),
            _vuln("B", severity=[{"score": "7.5"}]),
            _vuln("C", severity=[{"score": "5.0"}]),
            _vuln("D", severity=[{"score": "2.0"}]),
        ]
        report = build_report(raw)
        assert report.score == 100 - 25 - 15 - 5 - 1
        assert report.critical == 1
        assert report.high == 1

    def test_floor_at_zero(self):
        raw = [_vuln(f"C{i}", severity=[{"score": "9.9"}]) for i in range(6)]
        assert build_report(raw).score == 0

    def test_clean(self):
        report = build_report([])
        assert report.entries == []
        assert report.score == 100


# ── Resolver ─────────────────────────────────────────────────────────────────


class TestVulnerabilityResolver:
    def test_ecosystem_mode(self):
        osv = FakeOSV([_vuln("GHSA-dddd", database_specific={"severity": "CRITICAL"})])
        n = NameNormalizer().normalize("Next.js")
        report = asyncio.run(VulnerabilityResolver(osv).resolve(n, "13.4.0"))
        assert osv.calls == [("next", "npm", "13.4.0")]
        assert report.runtime_technology is False
        assert report.critical == 1

    def test_ecosystem_from_version_resolver(self):
        osv = FakeOSV([])
        n = NameNormalizer().normalize("httpx")
        report = asyncio.run(VulnerabilityResolver(osv).resolve(n, "0.27.0", "PyPI"))
        assert osv.calls == [("httpx", "PyPI", "0.27.0")]
        assert report.entries == []
        assert report.score == 100

    def test_runtime_mode_for_python(self):
        osv = FakeOSV()
        n = NameNormalizer().normalize("python")
        report = asyncio.run(VulnerabilityResolver(osv).resolve(n, "3.11"))
        assert report.runtime_technology is True
        assert report.entries is None
        assert report.score == RUNTIME_NEUTRAL_SCORE
        assert "advisories" in report.note
        assert osv.calls == []

    def test_unknown_category_not_checked(self):
        n = NameNormalizer().normalize("zzz-tool")
        assert asyncio.run(VulnerabilityResolver(FakeOSV()).resolve(n, "1.0")) is None

    def test_failure_returns_none(self):
        osv = FakeOSV(error=SourceUnavailable("osv", "timeout"))
        n = NameNormalizer().normalize("react")
        assert asyncio.run(VulnerabilityResolver(osv).resolve(n, "16.0.0")) is None

    def test_malformed_entries_still_scored(self):
        osv = FakeOSV([{"id": "GHSA-1", "details": 42}, {"id": "X-1", "aliases": 5}, "junk"])
        n = NameNormalizer().normalize("react")
        report = asyncio.run(VulnerabilityResolver(osv).resolve(n, "16.0.0"))
        assert [e.severity for e in report.entries] == ["medium", "unknown"]
        assert report.score == 95

    def test_unusable_payload_returns_none(self, capsys):
        n = NameNormalizer().normalize("react")
        assert asyncio.run(VulnerabilityResolver(FakeOSV(5)).resolve(n, "16.0.0")) is None
        assert "unusable OSV data" in capsys.readouterr().out
