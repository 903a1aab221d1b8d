"""Exception hierarchy shared by the clients and resolvers."""


class StackRadarError(Exception):
    """Base class for all StackRadar errors."""


class SourceError(StackRadarError):
    """An external data source could not answer.

    Attributes:
        source: Short name of the failing source (``npm``, ``osv``, ...).
    """

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class SourceUnavailable(SourceError):
    """Network error, timeout or non-2xx HTTP status."""


class NotFoundError(SourceUnavailable):
    """The source has no entry for the requested name (HTTP 404)."""


class MalformedResponse(SourceError):
    """The source answered, but the payload does not have the expected shape."""


class NoVersionDataError(StackRadarError):
    """Every configured version source failed for a technology."""

    def __init__(self, technology: str, errors: list[str] | None = None):
        self.technology = technology
        self.errors = errors or []
        detail = "; ".join(self.errors) if self.errors else "no sources configured"
        super().__init__(f"No version data for {technology!r} ({detail})")


class AICollaboratorError(StackRadarError):
    """The AI collaborator is unreachable or returned an unusable answer."""


class PlanUnavailable(StackRadarError):
    """A record has no known upgrade target yet."""
