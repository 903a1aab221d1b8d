"""Unit tests for stackradar.downloaders — aiohttp source clients."""

import asyncio
import json
import os
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest
from tenacity import wait_none

from stackradar.config import StackRadarConfig
from stackradar.downloaders import (
    EndOfLifeClient,
    GitHubReleasesClient,
    GitHubTagsClient,
    NpmRegistryClient,
    OSVClient,
    PyPIRegistryClient,
    _auth_headers,
    build_clients,
    tag_to_version,
)
from stackradar.exceptions import MalformedResponse, NotFoundError, SourceUnavailable


class AsyncContextManager:
    """Wraps an async mock to support `async with session.get(url) as resp:`."""

    def __init__(self, mock_resp):
        self.mock_resp = mock_resp

    async def __aenter__(self):
        return self.mock_resp

    async def __aexit__(self, *args):
        pass


class FailingContextManager:
    """Raises on enter, like aiohttp does for connection errors."""

    def __init__(self, exc: Exception):
        self.exc = exc

    async def __aenter__(self):
        raise self.exc

    async def __aexit__(self, *args):
        pass


def _json_response(payload) -> AsyncMock:
    resp = AsyncMock()
    resp.json = AsyncMock(return_value=payload)
    resp.raise_for_status = MagicMock()
    return resp


def _status_response(status: int) -> AsyncMock:
    resp = AsyncMock()
    resp.raise_for_status = MagicMock(
        side_effect=aiohttp.ClientResponseError(request_info=MagicMock(), history=(), status=status)
    )
    return resp


def _session_get(payload) -> AsyncMock:
    session = AsyncMock()
    session.get = MagicMock(return_value=AsyncContextManager(_json_response(payload)))
    return session


def _client(cls, session, **kwargs):
    client = cls(session, **kwargs)
    client.wait = wait_none()
    return client


# ── Headers ──────────────────────────────────────────────────────────────────


class TestAuthHeaders:
    def test_default_headers(self):
        with patch.dict(os.environ, {}, clear=True):
            headers = _auth_headers()
            assert "StackRadar" in headers["User-Agent"]
            assert headers["Accept"] == "application/json"
            assert "Authorization" not in headers

    @patch.dict(os.environ, {"GITHUB_TOKEN": "ghp_test"})
    def test_github_token(self):
        assert _auth_headers()["Authorization"] == "Bearer ghp_test"

    def test_gh_token_fallback(self):
        with patch.dict(os.environ, {"GH_TOKEN": "ghp_gh"}, clear=True):
            assert _auth_headers()["Authorization"] == "Bearer ghp_gh"


# ── Package registries ───────────────────────────────────────────────────────


class TestNpmRegistryClient:
    def test_latest_version(self):
        session = _session_get({"name": "react", "version": "18.3.1"})
        release = asyncio.run(_client(NpmRegistryClient, session).get_latest_version("react"))
        assert release.version == "18.3.1"
        assert release.url == "https://www.npmjs.com/package/react"
        assert session.get.call_args[0][0] == "https://registry.npmjs.org/react/latest"

    def test_scoped_package_url(self):
        session = _session_get({"version": "17.0.0"})
        asyncio.run(_client(NpmRegistryClient, session).get_latest_version("@angular/core"))
        assert session.get.call_args[0][0] == "https://registry.npmjs.org/@angular/core/latest"

    def test_missing_version_is_malformed(self):
        session = _session_get({"name": "react"})
        with pytest.raises(MalformedResponse):
            asyncio.run(_client(NpmRegistryClient, session).get_latest_version("react"))

    def test_non_dict_body_is_malformed(self):
        session = _session_get(["18.3.1"])
        with pytest.raises(MalformedResponse):
            asyncio.run(_client(NpmRegistryClient, session).get_latest_version("react"))

    def test_404_is_not_found(self):
        session = AsyncMock()
        session.get = MagicMock(return_value=AsyncContextManager(_status_response(404)))
        with pytest.raises(NotFoundError):
            asyncio.run(_client(NpmRegistryClient, session).get_latest_version("nope"))

    def test_503_is_unavailable_without_retry(self):
        session = AsyncMock()
        session.get = MagicMock(return_value=AsyncContextManager(_status_response(503)))
        with pytest.raises(SourceUnavailable) as exc:
            asyncio.run(_client(NpmRegistryClient, session).get_latest_version("react"))
        assert not isinstance(exc.value, NotFoundError)
        assert session.get.call_count == 1

    def test_connection_errors_are_retried(self):
        session = AsyncMock()
        session.get = MagicMock(
            side_effect=[
                FailingContextManager(aiohttp.ClientConnectionError("reset")),
                AsyncContextManager(_json_response({"version": "1.0.0"})),
            ]
        )
        release = asyncio.run(_client(NpmRegistryClient, session).get_latest_version("x"))
        assert release.version == "1.0.0"
        assert session.get.call_count == 2

    def test_retries_exhausted(self):
        session = AsyncMock()
        session.get = MagicMock(return_value=FailingContextManager(asyncio.TimeoutError()))
        with pytest.raises(SourceUnavailable):
            asyncio.run(_client(NpmRegistryClient, session, retries=3).get_latest_version("x"))
        assert session.get.call_count == 3

    def test_invalid_json_is_malformed(self):
        resp = AsyncMock()
        resp.raise_for_status = MagicMock()
        resp.json = AsyncMock(side_effect=json.JSONDecodeError("bad", "", 0))
        session = AsyncMock()
        session.get = MagicMock(return_value=AsyncContextManager(resp))
        with pytest.raises(MalformedResponse):
            asyncio.run(_client(NpmRegistryClient, session).get_latest_version("x"))


class TestPyPIRegistryClient:
    def test_latest_version(self):
        session = _session_get({"info": {"version": "5.1.4"}})
        release = asyncio.run(_client(PyPIRegistryClient, session).get_latest_version("django"))
        assert release.version == "5.1.4"
        assert release.url == "https://pypi.org/project/django/"
        assert session.get.call_args[0][0] == "https://pypi.org/pypi/django/json"

    def test_missing_info(self):
        session = _session_get({"releases": {}})
        with pytest.raises(MalformedResponse):
            asyncio.run(_client(PyPIRegistryClient, session).get_latest_version("django"))


# ── GitHub ───────────────────────────────────────────────────────────────────


class TestTagToVersion:
    @pytest.mark.parametrize(
        "tag,expected",
        [
            ("v20.11.1", "20.11.1"),
            ("go1.22.3", "1.22.3"),
            ("1.83.0", "1.83.0"),
            ("v3.13.0rc1", None),
            ("jdk-25+36", None),
            ("weekly.2011-01-01", None),
        ],
    )
    def test_tags(self, tag, expected):
        assert tag_to_version(tag) == expected


class TestGitHubTagsClient:
    def test_picks_highest_stable(self):
        tags = [{"name": "v3.9.20"}, {"name": "v3.13.1"}, {"name": "v3.14.0a1"}, {"name": "v3.12.8"}]
        session = _session_get(tags)
        release = asyncio.run(_client(GitHubTagsClient, session).get_latest_release("python/cpython"))
        assert release.version == "3.13.1"
        assert session.get.call_count == 1
        assert session.get.call_args[0][0] == "https://api.github.com/repos/python/cpython/tags?per_page=100&page=1"

    def test_reads_following_pages(self):
        old = [{"name": f"v18.{i}.0"} for i in range(100)]
        pages = [old, [{"name": "v22.12.0"}, {"name": "v20.18.1"}]]
        session = AsyncMock()
        session.get = MagicMock(side_effect=[AsyncContextManager(_json_response(p)) for p in pages])
        release = asyncio.run(_client(GitHubTagsClient, session).get_latest_release("nodejs/node"))
        assert release.version == "22.12.0"
        assert session.get.call_args_list[1][0][0].endswith("page=2")

    def test_page_cap(self):
        session = _session_get([{"name": f"v1.{i}.0"} for i in range(100)])
        client = _client(GitHubTagsClient, session)
        client.max_pages = 3
        release = asyncio.run(client.get_latest_release("o/r"))
        assert release.version == "1.99.0"
        assert session.get.call_count == 3

    @patch.dict(os.environ, {"GITHUB_TOKEN": "ghp_test"})
    def test_sends_token(self):
        session = _session_get([{"name": "v1.0.0"}])
        asyncio.run(_client(GitHubTagsClient, session).get_latest_release("o/r"))
        assert session.get.call_args[1]["headers"]["Authorization"] == "Bearer ghp_test"

    def test_no_stable_tags(self):
        session = _session_get([{"name": "nightly"}])
        with pytest.raises(MalformedResponse):
            asyncio.run(_client(GitHubTagsClient, session).get_latest_release("o/r"))


class TestGitHubReleasesClient:
    def test_strips_v(self):
        session = _session_get({"tag_name": "v4.21.2", "html_url": "https://github.com/expressjs/express/releases/tag/v4.21.2"})
        release = asyncio.run(_client(GitHubReleasesClient, session).get_latest_release("expressjs/express"))
        assert release.version == "4.21.2"
        assert release.url.endswith("v4.21.2")

    def test_missing_tag(self):
        session = _session_get({"name": "x"})
        with pytest.raises(MalformedResponse):
            asyncio.run(_client(GitHubReleasesClient, session).get_latest_release("o/r"))


# ── endoflife.date ───────────────────────────────────────────────────────────


class TestEndOfLifeClient:
    def test_cycles(self):
        cycles = [{"cycle": "22", "eol": "2027-04-30"}, "junk"]
        session = _session_get(cycles)
        result = asyncio.run(_client(EndOfLifeClient, session).get_cycles("nodejs"))
        assert result == [{"cycle": "22", "eol": "2027-04-30"}]
        assert session.get.call_args[0][0] == "https://endoflife.date/api/nodejs.json"

    def test_cycles_not_a_list(self):
        session = _session_get({"message": "Product not found"})
        with pytest.raises(MalformedResponse):
            asyncio.run(_client(EndOfLifeClient, session).get_cycles("nope"))

    def test_products(self):
        session = _session_get(["nodejs", "python", 3])
        result = asyncio.run(_client(EndOfLifeClient, session).list_products())
        assert result == ["nodejs", "python"]
        assert session.get.call_args[0][0].endswith("/all.json")


# ── OSV ──────────────────────────────────────────────────────────────────────


class TestOSVClient:
    def _session(self, payload):
        session = AsyncMock()
        session.post = MagicMock(return_value=AsyncContextManager(_json_response(payload)))
        return session

    def test_posts_query(self):
        session = self._session({"vulns": [{"id": "GHSA-1"}]})
        result = asyncio.run(_client(OSVClient, session).query_vulnerabilities("lodash", "npm", "4.17.20"))
        assert result == [{"id": "GHSA-1"}]
        url = session.post.call_args[0][0]
        body = session.post.call_args[1]["json"]
        assert url == "https://api.osv.dev/v1/query"
        assert body == {"package": {"name": "lodash", "ecosystem": "npm"}, "version": "4.17.20"}

    def test_no_vulns_key_is_clean(self):
        session = self._session({})
        assert asyncio.run(_client(OSVClient, session).query_vulnerabilities("x", "PyPI", "1.0")) == []

    def test_version_optional(self):
        session = self._session({})
        asyncio.run(_client(OSVClient, session).query_vulnerabilities("x", "PyPI"))
        assert "version" not in session.post.call_args[1]["json"]


class TestBuildClients:
    def test_uses_config_endpoints(self):
        config = StackRadarConfig.model_validate({"endpoints": {"npm": "http://mirror.local/npm/"}, "http": {"retries": 5}})
        clients = build_clients(MagicMock(), config)
        assert clients["npm"].base_url == "http://mirror.local/npm"
        assert clients["osv"].retries == 5
        assert set(clients) == {"npm", "pypi", "tags", "releases", "endoflife", "osv"}
