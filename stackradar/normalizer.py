"""Technology name normalization and lifecycle slug discovery.

``NameNormalizer`` maps a free-text technology name to a canonical key
plus every lookup hint the resolvers need: registry package, GitHub
repositories, endoflife.date slugs, category and the order in which
version sources should be consulted.  It is pure apart from reading an
injected ``SlugCache``.

``SlugDiscovery`` is the optional async step that learns lifecycle slugs
for names the static tables don't cover, by fuzzy-matching against the
lifecycle API's product list and remembering the answer in the cache.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .catalog import (
    ALIASES,
    API_NPM,
    API_PYPI,
    KNOWN_TECHNOLOGIES,
    KnownTechnology,
)
from .exceptions import SourceError
from .parsers import levenshtein, norm

PACKAGE_REGISTRY = "package-registry"
LANGUAGE_REGISTRY = "language-registry"
SOURCE_REPOSITORY = "source-repository"
STATIC_TABLE = "static-table"

LANGUAGE_STRATEGY = (LANGUAGE_REGISTRY, STATIC_TABLE, SOURCE_REPOSITORY)
LIBRARY_STRATEGY = (PACKAGE_REGISTRY, SOURCE_REPOSITORY, STATIC_TABLE)
PLATFORM_STRATEGY = (STATIC_TABLE, LANGUAGE_REGISTRY, SOURCE_REPOSITORY)
DEFAULT_STRATEGY = (PACKAGE_REGISTRY, LANGUAGE_REGISTRY, SOURCE_REPOSITORY, STATIC_TABLE)


@dataclass
class NormalizedName:
    """Lookup hints for one technology name.

    Attributes:
        key: Lowercase canonical key.
        display: The name as the user typed it.
        category: Category tag, ``unknown`` for names not in the catalog.
        eol_slugs: Lifecycle API slugs to try, in order.
        repos: GitHub ``owner/name`` candidates, in order.
        package_name: Registry package name.
        ecosystem: ``npm``, ``PyPI`` or None when the registry is not known.
        strategy: Version source types to try, in order.
        known: Whether the name matched the catalog.
        entry: The matching catalog entry.
    """

    key: str
    display: str
    category: str = "unknown"
    eol_slugs: list[str] = field(default_factory=list)
    repos: list[str] = field(default_factory=list)
    package_name: str | None = None
    ecosystem: str | None = None
    strategy: list[str] = field(default_factory=lambda: list(DEFAULT_STRATEGY))
    known: bool = False
    entry: KnownTechnology | None = None


def canonical_key(raw_name: str) -> str:
    """Lowercase, whitespace-collapsed name with aliases resolved."""
    key = norm(raw_name)
    return ALIASES.get(key, key)


def guess_slug(key: str) -> str:
    return "-".join(key.replace(".", " ").split())


class SlugCache:
    """Learned key → lifecycle slug mappings, persisted as JSON.

    With ``path=None`` the cache lives in memory only.

    Attributes:
        path: Path to the cache JSON file.
    """

    def __init__(self, path: Path | None = None):
        self.path = path
        self._data: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            print(f"Warning: Could not load slug cache ({e}), starting fresh")
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if isinstance(v, str)}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def set(self, key: str, slug: str) -> None:
        """Remember a slug and persist the cache."""
        self._data[key] = slug
        self.save()

    def save(self) -> None:
        """Save the cache atomically (write-then-rename)."""
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2, sort_keys=True)
        tmp.replace(self.path)


class NameNormalizer:
    """Resolve free-text names against the catalog and the slug cache."""

    def __init__(self, cache: SlugCache | None = None):
        self.cache = cache if cache is not None else SlugCache()

    def normalize(self, raw_name: str) -> NormalizedName:
        """Produce lookup hints for a technology name.

        Never fails: names outside the catalog get generic guesses (the
        key as package name, ``key/key`` as repository, a hyphenated
        slug) and the default strategy.

        Args:
            raw_name: Name as entered by the user.

        Returns:
            ``NormalizedName`` for the resolvers.
        """
        key = canonical_key(raw_name)
        entry = KNOWN_TECHNOLOGIES.get(key)
        cached = self.cache.get(key)

        if entry is None:
            slugs = [cached] if cached else []
            guessed = guess_slug(key)
            if guessed and guessed not in slugs:
                slugs.append(guessed)
            return NormalizedName(
                key=key,
                display=raw_name.strip(),
                eol_slugs=slugs,
                repos=[f"{key}/{key}"] if key and " " not in key else [],
                package_name=key or None,
            )

        slugs = list(entry.eol_slugs)
        if cached and cached not in slugs:
            slugs.insert(0, cached)
        return NormalizedName(
            key=key,
            display=raw_name.strip(),
            category=entry.category,
            eol_slugs=slugs,
            repos=list(entry.repos),
            package_name=entry.package_name or key,
            ecosystem=entry.ecosystem,
            strategy=list(_strategy_for(entry)),
            known=True,
            entry=entry,
        )

    def needs_discovery(self, normalized: NormalizedName) -> bool:
        """True when no slug is known from the catalog or the cache."""
        if normalized.known and normalized.entry and normalized.entry.eol_slugs:
            return False
        return normalized.key not in self.cache


def _strategy_for(entry: KnownTechnology) -> tuple[str, ...]:
    if entry.api in (API_NPM, API_PYPI):
        return LIBRARY_STRATEGY
    if entry.category in ("language", "runtime"):
        return LANGUAGE_STRATEGY
    return PLATFORM_STRATEGY


def best_slug_match(key: str, products: list[str]) -> str | None:
    """Pick the product slug that best matches a canonical key.

    Exact match (after slug-style hyphenation) wins, then the shortest
    product containing the key or contained in it, then the closest
    product within ``max(1, len(key) // 4)`` edits.

    Args:
        key: Canonical key.
        products: Product slugs from the lifecycle API.

    Returns:
        Best slug, or None when nothing is close enough.
    """
    if not key or not products:
        return None
    target = guess_slug(key)
    names = [p for p in products if isinstance(p, str) and p]

    for p in names:
        if p == target or p == key:
            return p

    contained = [p for p in names if target in p or p in target]
    # Very short products ("go", "c") would match almost anything.
    contained = [p for p in contained if len(p) >= 3 or len(target) <= 3]
    if contained:
        return min(contained, key=lambda p: (abs(len(p) - len(target)), p))

    limit = max(1, len(target) // 4)
    scored = [(levenshtein(target, p), p) for p in names]
    scored = [(d, p) for d, p in scored if d <= limit]
    if scored:
        return min(scored)[1]
    return None


class SlugDiscovery:
    """Learn lifecycle slugs from the lifecycle API product list.

    Args:
        client: Lifecycle client exposing ``async list_products()``.
        cache: Cache the discovered slugs are written to.
        enabled: When False, ``discover`` only consults the cache.
    """

    def __init__(self, client: Any, cache: SlugCache, enabled: bool = True):
        self.client = client
        self.cache = cache
        self.enabled = enabled
        self._products: list[str] | None = None

    async def _product_list(self) -> list[str]:
        if self._products is None:
            self._products = await self.client.list_products()
        return self._products

    async def discover(self, key: str) -> str | None:
        """Return a slug for ``key``, fetching the product list if needed.

        Source failures are reported and yield None.
        """
        cached = self.cache.get(key)
        if cached or not self.enabled:
            return cached
        try:
            products = await self._product_list()
        except SourceError as e:
            print(f"    Warning: slug discovery failed for {key}: {e}")
            return None
        slug = best_slug_match(key, products)
        if slug:
            self.cache.set(key, slug)
            print(f"    Discovered lifecycle slug {slug!r} for {key}")
        return slug
