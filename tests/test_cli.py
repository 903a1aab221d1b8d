"""Unit tests for stackradar.cli — command dispatch with a fake pipeline."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from stackradar.cli import main
from stackradar.models import AnalysisResult, TechnologyRecord
from stackradar.store import JsonRecordBackend, TechnologyStore


class AsyncContextManager:
    """Stand-in for the aiohttp session used as `async with http_session(config) as session:`."""

    async def __aenter__(self):
        return object()

    async def __aexit__(self, *args):
        pass


class FakePipeline:
    """Marks records as analyzed without touching the network."""

    sync_interval_seconds = 300.0

    def __init__(self, store: TechnologyStore):
        self.store = store

    def _result(self, record: TechnologyRecord) -> AnalysisResult:
        rec = record.model_copy(update={"latest_version": "9.9.9", "ai_priority": "high", "version_gap": "1 major version behind"})
        stored = self.store.update(rec)
        return AnalysisResult(record=rec, outcomes={"version": "success", "lifecycle": "partial-failure"}, stored=stored)

    async def add_technology(self, technology, current_version, environment=None):
        if not technology.strip():
            raise ValueError("Technology name is required")
        record = self.store.create(TechnologyRecord(technology=technology, current_version=current_version, environment=environment))
        return self._result(record)

    async def reanalyze(self, record_id):
        record = self.store.get(record_id)
        return self._result(record) if record else None

    async def analyze_all(self):
        return [self._result(r) for r in self.store.all()]

    async def sync_once(self):
        records = self.store.all()
        return self._result(records[0]) if records else None


@pytest.fixture
def env(tmp_path, monkeypatch):
    """Config pointing storage into tmp_path, with the network layer patched out."""
    monkeypatch.chdir(tmp_path)
    config = tmp_path / "stackradar.yaml"
    config.write_text(
        "storage:\n"
        f"  records_path: {tmp_path / 'records.json'}\n"
        f"  slug_cache_path: {tmp_path / 'cache.json'}\n"
    )
    with patch("stackradar.cli.http_session", return_value=AsyncContextManager()), patch(
        "stackradar.cli.build_pipeline", side_effect=lambda session, cfg, store: FakePipeline(store)
    ):
        yield tmp_path


def _stored(tmp_path: Path) -> list[TechnologyRecord]:
    return TechnologyStore(JsonRecordBackend(tmp_path / "records.json")).all()


def _seed(tmp_path: Path, *names: str) -> list[TechnologyRecord]:
    store = TechnologyStore(JsonRecordBackend(tmp_path / "records.json"))
    return [store.create(TechnologyRecord(technology=n, current_version="1.0.0")) for n in names]


# ── Network commands ─────────────────────────────────────────────────────────


class TestAdd:
    def test_add(self, env, capsys):
        assert main(["add", "react", "17.0.2", "--env", "web"]) == 0
        out = capsys.readouterr().out
        assert "✅ Added react" in out
        assert "Partial data: lifecycle unavailable" in out
        records = _stored(env)
        assert records[0].latest_version == "9.9.9"
        assert records[0].environment == "web"

    def test_add_empty_name(self, env, capsys):
        assert main(["add", " ", "1.0"]) == 1
        assert "Technology name is required" in capsys.readouterr().out


class TestReanalyze:
    def test_by_prefix(self, env, capsys):
        (record,) = _seed(env, "vue")
        assert main(["reanalyze", record.id[:8]]) == 0
        assert _stored(env)[0].ai_priority == "high"

    def test_missing(self, env, capsys):
        assert main(["reanalyze", "deadbeef"]) == 1
        assert "No record" in capsys.readouterr().out


class TestAnalyzeAllAndSync:
    def test_analyze_all(self, env, capsys):
        _seed(env, "a", "b")
        assert main(["analyze-all"]) == 0
        assert "Analyzed 2 technologies" in capsys.readouterr().out
        assert all(r.latest_version == "9.9.9" for r in _stored(env))

    def test_sync_once_empty(self, env, capsys):
        assert main(["sync", "--once"]) == 0
        assert "Nothing to sync" in capsys.readouterr().out

    def test_sync_once(self, env):
        _seed(env, "go")
        assert main(["sync", "--once"]) == 0
        assert _stored(env)[0].latest_version == "9.9.9"


# ── Local commands ───────────────────────────────────────────────────────────


class TestLocalCommands:
    def test_list(self, env, capsys):
        _seed(env, "react", "django")
        assert main(["list", "--search", "dja", "--sort", "technology"]) == 0
        out = capsys.readouterr().out
        assert "django" in out
        assert "react 1.0.0" not in out
        assert "2 tracked" in out

    def test_remove(self, env, capsys):
        (record,) = _seed(env, "react")
        assert main(["remove", record.id]) == 0
        assert _stored(env) == []
        assert main(["remove", record.id]) == 1

    def test_clear(self, env, capsys):
        _seed(env, "a", "b", "c")
        assert main(["clear"]) == 0
        assert "Removed 3 records" in capsys.readouterr().out
        assert _stored(env) == []

    def test_report(self, env):
        _seed(env, "react")
        out = env / "out" / "report.md"
        assert main(["report", "--output", str(out)]) == 0
        assert "# StackRadar Report" in out.read_text(encoding="utf-8")

    def test_export_import(self, env, capsys):
        seeded = _seed(env, "react", "vue")
        out = env / "export.json"
        assert main(["export", "--output", str(out)]) == 0
        assert json.loads(out.read_text())["count"] == 2
        assert main(["clear"]) == 0
        assert main(["import", str(out)]) == 0
        assert [r.id for r in _stored(env)] == [r.id for r in seeded]

    def test_import_skips_unknown_priority(self, env, capsys):
        path = env / "mixed.json"
        items = [
            {"technology": "react", "currentVersion": "1.0", "aiPriority": "urgent"},
            {"technology": "vue", "currentVersion": "3.0", "aiPriority": "low"},
        ]
        path.write_text(json.dumps(items))
        assert main(["import", str(path)]) == 0
        out = capsys.readouterr().out
        assert "Skipping invalid record" in out
        assert "Imported 1 records" in out
        assert [r.technology for r in _stored(env)] == ["vue"]

    def test_import_missing_file(self, env, capsys):
        assert main(["import", str(env / "nope.json")]) == 1
        assert "Could not import" in capsys.readouterr().out


class TestPlan:
    def _seed_java(self, tmp_path: Path) -> TechnologyRecord:
        store = TechnologyStore(JsonRecordBackend(tmp_path / "records.json"))
        return store.create(
            TechnologyRecord(
                technology="java", current_version="17.0.2", latest_version="25.0.0", ai_priority="critical"
            )
        )

    def test_prints_plan(self, env, capsys):
        record = self._seed_java(env)
        assert main(["plan", record.id[:8]]) == 0
        out = capsys.readouterr().out
        assert "# Upgrade plan: java 17.0.2 → 25.0.0" in out
        assert "Set up Java 25 development environments" in out

    def test_writes_file(self, env, capsys):
        record = self._seed_java(env)
        out = env / "plans" / "java.md"
        assert main(["plan", record.id, "--output", str(out)]) == 0
        assert "## Phase 1: Environment Preparation" in out.read_text(encoding="utf-8")

    def test_unknown_latest(self, env, capsys):
        (record,) = _seed(env, "react")
        assert main(["plan", record.id]) == 1
        assert "re-analyze it first" in capsys.readouterr().out

    def test_up_to_date(self, env, capsys):
        store = TechnologyStore(JsonRecordBackend(env / "records.json"))
        record = store.create(
            TechnologyRecord(technology="go", current_version="1.23.4", latest_version="1.23.4", version_gap="up-to-date")
        )
        assert main(["plan", record.id]) == 0
        assert "nothing to plan" in capsys.readouterr().out

    def test_missing(self, env, capsys):
        assert main(["plan", "deadbeef"]) == 1
        assert "No record" in capsys.readouterr().out


class TestConfigErrors:
    def test_bad_config(self, tmp_path, capsys):
        bad = tmp_path / "bad.yaml"
        bad.write_text("http:\n  retries: 0\n")
        assert main(["--config", str(bad), "list"]) == 1
        assert "Could not load configuration" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--version"])
        assert exc.value.code == 0
        assert "stackradar" in capsys.readouterr().out
