"""Async clients for the public version, lifecycle and advisory sources.

All clients share one ``aiohttp.ClientSession`` (see ``http_session``)
and go through ``JsonSource._request_json``, which retries connection
errors and timeouts with exponential backoff and turns every other
failure into a ``SourceError`` subclass:

- HTTP 404 → ``NotFoundError``
- other non-2xx, network errors, exhausted retries → ``SourceUnavailable``
- a body that isn't JSON or lacks the expected fields → ``MalformedResponse``

Usage::

    async with http_session(config) as session:
        release = await NpmRegistryClient(session).get_latest_version("react")
"""

import asyncio
import os
import re
from typing import Any

import aiohttp
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from . import __version__
from .config import StackRadarConfig
from .exceptions import MalformedResponse, NotFoundError, SourceUnavailable
from .models import Release

NPM_REGISTRY_URL = "https://registry.npmjs.org"
PYPI_API_URL = "https://pypi.org/pypi"
GITHUB_API_URL = "https://api.github.com"
ENDOFLIFE_API_URL = "https://endoflife.date/api"
OSV_API_URL = "https://api.osv.dev/v1"

_TAG_PREFIX = re.compile(r"^(?:v|go|jdk-|release-)", re.IGNORECASE)
_STABLE_VERSION = re.compile(r"^\d+(?:\.\d+)*$")


def _default_headers() -> dict[str, str]:
    return {
        "User-Agent": f"StackRadar/{__version__}",
        "Accept": "application/json",
    }


def _auth_headers() -> dict[str, str]:
    """Build HTTP headers including optional GitHub auth."""
    headers = _default_headers()
    token = os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN")
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def http_session(config: StackRadarConfig | None = None) -> aiohttp.ClientSession:
    """Create the shared client session.

    The GitHub token is attached per request by the GitHub clients only,
    never as a session default.
    """
    timeout_s = config.http.timeout_seconds if config else 20.0
    return aiohttp.ClientSession(
        headers=_default_headers(),
        timeout=aiohttp.ClientTimeout(total=timeout_s, connect=min(15.0, timeout_s)),
    )


def _is_transient(exc: BaseException) -> bool:
    """Connection errors and timeouts are worth retrying; HTTP statuses are not."""
    return isinstance(exc, (aiohttp.ClientConnectionError, asyncio.TimeoutError))


async def _fetch_json(
    session: aiohttp.ClientSession,
    url: str,
    payload: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> Any:
    """GET (or POST when ``payload`` is given) and parse JSON from a URL."""
    if payload is None:
        ctx = session.get(url, headers=headers)
    else:
        ctx = session.post(url, json=payload, headers=headers)
    async with ctx as resp:
        resp.raise_for_status()
        return await resp.json(content_type=None)


class JsonSource:
    """Base class for a JSON-over-HTTP source.

    Attributes:
        source: Short name used in error messages.
        session: Shared aiohttp session.
        base_url: Source base URL without trailing slash.
        retries: Attempts per request for transient errors.
        wait: tenacity wait strategy between attempts.
    """

    source = "http"
    default_base_url = ""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str | None = None,
        retries: int = 3,
    ):
        self.session = session
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self.retries = retries
        self.wait = wait_exponential(multiplier=0.5, min=0.5, max=8)

    def _headers(self) -> dict[str, str] | None:
        return None

    async def _request_json(self, url: str, payload: dict[str, Any] | None = None) -> Any:
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retries),
                wait=self.wait,
                retry=retry_if_exception(_is_transient),
                reraise=True,
            ):
                with attempt:
                    return await _fetch_json(self.session, url, payload, self._headers())
        except aiohttp.ClientResponseError as e:
            if e.status == 404:
                raise NotFoundError(self.source, f"not found: {url}") from e
            raise SourceUnavailable(self.source, f"HTTP {e.status} for {url}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SourceUnavailable(self.source, f"{type(e).__name__} for {url}") from e
        except ValueError as e:
            raise MalformedResponse(self.source, f"invalid JSON from {url}") from e
        raise SourceUnavailable(self.source, f"no response from {url}")

    async def _request_dict(self, url: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        data = await self._request_json(url, payload)
        if not isinstance(data, dict):
            raise MalformedResponse(self.source, f"expected an object from {url}")
        return data


# ── Package registries ───────────────────────────────────────────────────────


class NpmRegistryClient(JsonSource):
    """npm registry: ``GET /{package}/latest``."""

    source = "npm"
    default_base_url = NPM_REGISTRY_URL
    ecosystem = "npm"

    async def get_latest_version(self, package: str) -> Release:
        data = await self._request_dict(f"{self.base_url}/{package}/latest")
        version = data.get("version")
        if not isinstance(version, str) or not version.strip():
            raise MalformedResponse(self.source, f"no version for {package}")
        return Release(version.strip(), f"https://www.npmjs.com/package/{package}")


class PyPIRegistryClient(JsonSource):
    """PyPI JSON API: ``GET /pypi/{package}/json``."""

    source = "pypi"
    default_base_url = PYPI_API_URL
    ecosystem = "PyPI"

    async def get_latest_version(self, package: str) -> Release:
        data = await self._request_dict(f"{self.base_url}/{package}/json")
        info = data.get("info")
        version = info.get("version") if isinstance(info, dict) else None
        if not isinstance(version, str) or not version.strip():
            raise MalformedResponse(self.source, f"no info.version for {package}")
        return Release(version.strip(), f"https://pypi.org/project/{package}/")


# ── GitHub ───────────────────────────────────────────────────────────────────


def tag_to_version(tag: str) -> str | None:
    """Strip common tag prefixes and keep only stable numeric versions.

    ``v20.11.1`` → ``20.11.1``, ``go1.22.3`` → ``1.22.3``; release
    candidates and other suffixed tags yield None.
    """
    if not isinstance(tag, str):
        return None
    candidate = _TAG_PREFIX.sub("", tag.strip())
    if _STABLE_VERSION.match(candidate):
        return candidate
    return None


def _version_tuple(version: str) -> tuple[int, ...]:
    return tuple(int(p) for p in version.split("."))


class GitHubTagsClient(JsonSource):
    """Highest stable tag of a repository (language/runtime releases).

    The tags endpoint is not ordered by version, so pages are read until a
    short page or ``max_pages``.
    """

    source = "github-tags"
    default_base_url = GITHUB_API_URL
    per_page = 100
    max_pages = 10

    def _headers(self) -> dict[str, str]:
        return _auth_headers()

    async def _all_tags(self, repo: str) -> list[Any]:
        tags: list[Any] = []
        for page in range(1, self.max_pages + 1):
            data = await self._request_json(
                f"{self.base_url}/repos/{repo}/tags?per_page={self.per_page}&page={page}"
            )
            if not isinstance(data, list):
                raise MalformedResponse(self.source, f"expected a tag list for {repo}")
            tags.extend(data)
            if len(data) < self.per_page:
                break
        return tags

    async def get_latest_release(self, repo: str) -> Release:
        data = await self._all_tags(repo)
        versions = [v for v in (tag_to_version(t.get("name")) for t in data if isinstance(t, dict)) if v]
        if not versions:
            raise MalformedResponse(self.source, f"no stable tags for {repo}")
        best = max(versions, key=_version_tuple)
        return Release(best, f"https://github.com/{repo}/tags")


class GitHubReleasesClient(JsonSource):
    """Latest published release of a repository."""

    source = "github-releases"
    default_base_url = GITHUB_API_URL

    def _headers(self) -> dict[str, str]:
        return _auth_headers()

    async def get_latest_release(self, repo: str) -> Release:
        data = await self._request_dict(f"{self.base_url}/repos/{repo}/releases/latest")
        tag = data.get("tag_name")
        if not isinstance(tag, str) or not tag.strip():
            raise MalformedResponse(self.source, f"no tag_name for {repo}")
        tag = tag.strip()
        version = tag[1:] if tag[:1] in ("v", "V") else tag
        return Release(version, data.get("html_url") or f"https://github.com/{repo}/releases")


# ── Lifecycle ────────────────────────────────────────────────────────────────


class EndOfLifeClient(JsonSource):
    """endoflife.date product cycles and product list."""

    source = "endoflife"
    default_base_url = ENDOFLIFE_API_URL

    async def get_cycles(self, slug: str) -> list[dict[str, Any]]:
        """Return the cycle records of a product, newest first."""
        data = await self._request_json(f"{self.base_url}/{slug}.json")
        if not isinstance(data, list):
            raise MalformedResponse(self.source, f"expected a cycle list for {slug}")
        return [c for c in data if isinstance(c, dict)]

    async def list_products(self) -> list[str]:
        data = await self._request_json(f"{self.base_url}/all.json")
        if not isinstance(data, list):
            raise MalformedResponse(self.source, "expected a product list")
        return [p for p in data if isinstance(p, str)]


# ── Vulnerabilities ──────────────────────────────────────────────────────────


class OSVClient(JsonSource):
    """OSV.dev ``POST /v1/query`` for one package version."""

    source = "osv"
    default_base_url = OSV_API_URL

    async def query_vulnerabilities(
        self, name: str, ecosystem: str, version: str | None = None
    ) -> list[dict[str, Any]]:
        """Return raw OSV entries affecting ``name@version``.

        A response without a ``vulns`` key means the version is clean.
        """
        payload: dict[str, Any] = {"package": {"name": name, "ecosystem": ecosystem}}
        if version:
            payload["version"] = version
        data = await self._request_dict(f"{self.base_url}/query", payload)
        vulns = data.get("vulns") or []
        if not isinstance(vulns, list):
            raise MalformedResponse(self.source, f"vulns is not a list for {name}")
        return [v for v in vulns if isinstance(v, dict)]


def build_clients(session: aiohttp.ClientSession, config: StackRadarConfig) -> dict[str, JsonSource]:
    """Instantiate every source client from configuration."""
    ep = config.endpoints
    retries = config.http.retries
    return {
        "npm": NpmRegistryClient(session, ep.npm, retries),
        "pypi": PyPIRegistryClient(session, ep.pypi, retries),
        "tags": GitHubTagsClient(session, ep.github, retries),
        "releases": GitHubReleasesClient(session, ep.github, retries),
        "endoflife": EndOfLifeClient(session, ep.endoflife, retries),
        "osv": OSVClient(session, ep.osv, retries),
    }
