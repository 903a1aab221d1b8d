"""Latest-version resolution across registries, repositories and the catalog.

Sources are consulted in the order the normalizer chose for the
technology, and the first one that answers wins; there is no
cross-validation between sources.
"""

from typing import Any
from urllib.parse import quote_plus

from .exceptions import NoVersionDataError, SourceError
from .models import Release, VersionInfo
from .normalizer import (
    LANGUAGE_REGISTRY,
    PACKAGE_REGISTRY,
    SOURCE_REPOSITORY,
    STATIC_TABLE,
    NormalizedName,
)


def fallback_search_url(name: str) -> str:
    """Search-engine URL used when no source knows the technology."""
    return f"https://www.google.com/search?q={quote_plus(name.strip())}+latest+version"


class VersionResolver:
    """First-success lookup of the latest released version.

    Args:
        npm: npm registry client.
        pypi: PyPI registry client.
        tags: Language/runtime registry client (GitHub tags).
        releases: Source repository client (GitHub releases).
    """

    def __init__(self, npm: Any, pypi: Any, tags: Any, releases: Any):
        self.npm = npm
        self.pypi = pypi
        self.tags = tags
        self.releases = releases

    async def resolve(self, normalized: NormalizedName) -> VersionInfo:
        """Resolve the latest version of a normalized technology.

        Args:
            normalized: Output of ``NameNormalizer.normalize``.

        Returns:
            ``VersionInfo`` from the first source that answered.

        Raises:
            NoVersionDataError: if every source in the strategy failed.
        """
        errors: list[str] = []
        for source_type in normalized.strategy:
            try:
                info = await self._try_source(source_type, normalized)
            except SourceError as e:
                errors.append(str(e))
                continue
            if info is not None:
                return info
        raise NoVersionDataError(normalized.display or normalized.key, errors)

    async def _try_source(self, source_type: str, n: NormalizedName) -> VersionInfo | None:
        if source_type == PACKAGE_REGISTRY:
            return await self._from_package_registry(n)
        if source_type == LANGUAGE_REGISTRY:
            release = await self._first_repo(self.tags, n.repos)
            return _info(release, source_type) if release else None
        if source_type == SOURCE_REPOSITORY:
            release = await self._first_repo(self.releases, n.repos)
            return _info(release, source_type) if release else None
        if source_type == STATIC_TABLE:
            entry = n.entry
            if entry and entry.static_version:
                return VersionInfo(
                    latest_version=entry.static_version,
                    documentation_url=entry.check_url,
                    source_type=STATIC_TABLE,
                )
            return None
        return None

    async def _from_package_registry(self, n: NormalizedName) -> VersionInfo | None:
        if not n.package_name:
            return None
        if n.ecosystem == "npm":
            registries = [self.npm]
        elif n.ecosystem == "PyPI":
            registries = [self.pypi]
        else:
            registries = [self.npm, self.pypi]

        last_error: SourceError | None = None
        for registry in registries:
            try:
                release = await registry.get_latest_version(n.package_name)
            except SourceError as e:
                last_error = e
                continue
            return _info(release, PACKAGE_REGISTRY, registry.ecosystem)
        if last_error is not None:
            raise last_error
        return None

    @staticmethod
    async def _first_repo(client: Any, repos: list[str]) -> Release | None:
        last_error: SourceError | None = None
        for repo in repos:
            try:
                return await client.get_latest_release(repo)
            except SourceError as e:
                last_error = e
        if last_error is not None:
            raise last_error
        return None


def _info(release: Release, source_type: str, ecosystem: str | None = None) -> VersionInfo:
    return VersionInfo(
        latest_version=release.version,
        documentation_url=release.url,
        source_type=source_type,
        ecosystem=ecosystem,
    )
