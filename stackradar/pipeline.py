"""Analysis pipeline: one pass per record, plus bulk and background runs.

A pass normalizes the name, then resolves version, lifecycle and
vulnerabilities one after another, and finally synthesizes a priority.
Each resolver may fail on its own; the pass always finishes with
``aiPriority``, ``versionGap`` and ``checkUrl`` set.

Results are written back as whole records.  If the record was deleted
while its pass was in flight, the result is dropped.
"""

import asyncio
import datetime as dt
import random
from dataclasses import dataclass
from typing import Any, Callable

import aiohttp

from .ai import OllamaClient
from .config import StackRadarConfig
from .downloaders import build_clients
from .exceptions import NoVersionDataError, StackRadarError
from .lifecycle import LifecycleResolver
from .models import UNKNOWN_VERSION, AnalysisResult, Facts, TechnologyRecord, utc_now_iso
from .normalizer import NameNormalizer, NormalizedName, SlugCache, SlugDiscovery
from .store import TechnologyStore
from .synthesis import RiskSynthesizer
from .versions import VersionResolver, fallback_search_url
from .vulnerabilities import VulnerabilityResolver

SUCCESS = "success"
PARTIAL_FAILURE = "partial-failure"


@dataclass
class AnalysisPipeline:
    """Wires the normalizer, resolvers and synthesizer to a store.

    Attributes:
        store: Record store.
        normalizer: Name normalizer.
        versions: Version resolver.
        lifecycle: Lifecycle resolver.
        vulnerabilities: Vulnerability resolver.
        synthesizer: Risk synthesizer.
        discovery: Optional lifecycle slug discovery.
        clock: Returns the evaluation date; defaults to today.
        bulk_delay_seconds: Pause between records in ``analyze_all``.
        sync_interval_seconds: Tick interval of ``run_background_sync``.
    """

    store: TechnologyStore
    normalizer: NameNormalizer
    versions: VersionResolver
    lifecycle: LifecycleResolver
    vulnerabilities: VulnerabilityResolver
    synthesizer: RiskSynthesizer
    discovery: SlugDiscovery | None = None
    clock: Callable[[], dt.date] | None = None
    bulk_delay_seconds: float = 0.5
    sync_interval_seconds: float = 300.0

    def _today(self) -> dt.date:
        return self.clock() if self.clock else dt.date.today()

    async def _normalize(self, technology: str) -> NormalizedName:
        normalized = self.normalizer.normalize(technology)
        if self.discovery is not None and self.normalizer.needs_discovery(normalized):
            if await self.discovery.discover(normalized.key):
                normalized = self.normalizer.normalize(technology)
        return normalized

    async def analyze(self, record: TechnologyRecord) -> AnalysisResult:
        """Run one resolution pass over a copy of ``record``.

        The store is not touched.

        Args:
            record: Record to analyze.

        Returns:
            ``AnalysisResult`` with the updated copy and stage outcomes.
        """
        rec = record.model_copy(deep=True)
        outcomes: dict[str, str] = {}
        n = await self._normalize(rec.technology)
        rec.canonical_key = n.key
        rec.category = n.category

        ecosystem = n.ecosystem
        try:
            info = await self.versions.resolve(n)
        except NoVersionDataError as e:
            print(f"    Warning: {e}")
            rec.latest_version = UNKNOWN_VERSION
            rec.check_url = fallback_search_url(rec.technology)
            rec.version_source = None
            outcomes["version"] = PARTIAL_FAILURE
        else:
            rec.latest_version = info.latest_version
            rec.check_url = info.documentation_url or fallback_search_url(rec.technology)
            rec.version_source = info.source_type
            ecosystem = info.ecosystem or ecosystem
            outcomes["version"] = SUCCESS

        try:
            lifecycle = await self.lifecycle.resolve(n, rec.current_version)
        except StackRadarError as e:
            print(f"    Warning: lifecycle resolution failed for {rec.technology}: {e}")
            lifecycle = None
        if lifecycle is not None:
            rec.eol_date = lifecycle.eol
            rec.support_status = lifecycle.support
            rec.eol_source = lifecycle.source
            rec.eol_cycle = lifecycle.cycle
            rec.eol_lts = lifecycle.lts
            outcomes["lifecycle"] = SUCCESS
        else:
            rec.eol_date = rec.support_status = rec.eol_source = rec.eol_cycle = None
            rec.eol_lts = None
            outcomes["lifecycle"] = PARTIAL_FAILURE

        report = await self.vulnerabilities.resolve(n, rec.current_version, ecosystem)
        if report is None:
            rec.clear_vulnerabilities()
            outcomes["vulnerabilities"] = PARTIAL_FAILURE
        elif report.entries is not None:
            rec.set_vulnerabilities(report.entries)
            outcomes["vulnerabilities"] = SUCCESS
        else:
            rec.clear_vulnerabilities()
            rec.runtime_technology = report.runtime_technology
            rec.security_score = report.score
            rec.vulnerability_note = report.note
            outcomes["vulnerabilities"] = SUCCESS

        facts = Facts(
            technology=rec.technology,
            current_version=rec.current_version,
            latest_version=rec.latest_version,
            category=n.category,
            lifecycle=lifecycle,
            vulnerabilities=report,
        )
        synthesis = await self.synthesizer.synthesize(facts, n, self._today())
        rec.ai_priority = synthesis.priority
        rec.version_gap = synthesis.version_gap
        rec.recommendations = synthesis.recommendations
        rec.next_steps = synthesis.next_steps
        rec.ai_summary = synthesis.summary
        rec.last_analyzed = utc_now_iso()
        outcomes["synthesis"] = SUCCESS
        return AnalysisResult(record=rec, outcomes=outcomes)

    async def _analyze_and_store(self, record: TechnologyRecord) -> AnalysisResult:
        result = await self.analyze(record)
        result.stored = self.store.update(result.record)
        if not result.stored:
            print(f"    Discarding result for {record.technology}: record was removed")
        return result

    async def add_technology(
        self, technology: str, current_version: str, environment: str | None = None
    ) -> AnalysisResult:
        """Create a record and run its first pass."""
        technology = technology.strip()
        if not technology:
            raise ValueError("Technology name is required")
        record = TechnologyRecord(
            technology=technology,
            current_version=(current_version or "").strip(),
            environment=environment,
            check_url=fallback_search_url(technology),
            version_gap="unknown",
        )
        self.store.create(record)
        return await self._analyze_and_store(record)

    async def reanalyze(self, record_id: str) -> AnalysisResult | None:
        """Re-run the pass for one record; None if it doesn't exist."""
        record = self.store.get(record_id)
        if record is None:
            return None
        return await self._analyze_and_store(record)

    async def analyze_all(self, delay: float | None = None) -> list[AnalysisResult]:
        """Re-analyze every record, one at a time with a pause in between."""
        delay = self.bulk_delay_seconds if delay is None else delay
        results: list[AnalysisResult] = []
        ids = [r.id for r in self.store.all()]
        for i, record_id in enumerate(ids):
            if i and delay > 0:
                await asyncio.sleep(delay)
            result = await self.reanalyze(record_id)
            if result is not None:
                results.append(result)
        return results

    async def sync_once(self, rng: random.Random | None = None) -> AnalysisResult | None:
        """Re-analyze one randomly chosen record."""
        records = self.store.all()
        if not records:
            return None
        record = (rng or random).choice(records)
        return await self._analyze_and_store(record)

    async def run_background_sync(self, stop_event: asyncio.Event, interval: float | None = None) -> int:
        """Tick ``sync_once`` every interval until ``stop_event`` is set.

        Returns:
            Number of ticks that ran.
        """
        interval = self.sync_interval_seconds if interval is None else interval
        ticks = 0
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
            if stop_event.is_set():
                break
            try:
                result = await self.sync_once()
            except Exception as e:
                print(f"    Warning: background sync tick failed: {e}")
                continue
            ticks += 1
            if result is not None:
                r = result.record
                print(f"  🔄 {r.technology} {r.current_version}: {r.ai_priority} ({r.version_gap})")
        return ticks


def build_pipeline(
    session: aiohttp.ClientSession,
    config: StackRadarConfig,
    store: TechnologyStore,
    ai_client: Any = None,
) -> AnalysisPipeline:
    """Assemble a pipeline from configuration.

    Args:
        session: Shared HTTP session.
        config: Validated configuration.
        store: Record store.
        ai_client: Overrides the configured AI collaborator.
    """
    clients = build_clients(session, config)
    cache = SlugCache(config.storage.slug_cache_path)
    normalizer = NameNormalizer(cache)
    discovery = SlugDiscovery(clients["endoflife"], cache) if config.storage.discovery else None

    if ai_client is None and config.ai.enabled:
        ai_client = OllamaClient(session, config.ai.base_url, config.ai.model, config.ai.timeout_seconds)

    return AnalysisPipeline(
        store=store,
        normalizer=normalizer,
        versions=VersionResolver(clients["npm"], clients["pypi"], clients["tags"], clients["releases"]),
        lifecycle=LifecycleResolver(clients["endoflife"]),
        vulnerabilities=VulnerabilityResolver(clients["osv"]),
        synthesizer=RiskSynthesizer(config.thresholds, ai_client),
        discovery=discovery,
        bulk_delay_seconds=config.scheduler.bulk_delay_seconds,
        sync_interval_seconds=config.scheduler.sync_interval_seconds,
    )
