"""Configuration models using Pydantic.

A single ``stackradar.yaml`` (or JSON) file tunes priority thresholds,
source endpoints, the optional local AI model, scheduling and storage
paths.  Every section has working defaults, so an empty file is valid.
"""

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class ThresholdsConfig(BaseModel):
    """Priority thresholds for version gaps and lifecycle proximity.

    Attributes:
        major_critical: Major versions behind at which the gap is critical.
        minor_high: Minor versions behind at which the gap is high.
        eol_critical_days: Days before an EOL/support date that count as
            critical.
        eol_high_days: Days before the date that count as high.
        eol_medium_days: Days before the date that count as medium;
            anything further away is low.
    """

    major_critical: int = Field(default=2, ge=1)
    minor_high: int = Field(default=5, ge=1)
    eol_critical_days: int = Field(default=90, ge=0)
    eol_high_days: int = Field(default=365, ge=0)
    eol_medium_days: int = Field(default=3 * 365, ge=0)

    @model_validator(mode="after")
    def _ascending_days(self) -> "ThresholdsConfig":
        if not (self.eol_critical_days <= self.eol_high_days <= self.eol_medium_days):
            raise ValueError("EOL day thresholds must be ascending: critical <= high <= medium")
        return self


class EndpointsConfig(BaseModel):
    """Base URLs of the public sources."""

    npm: str = "https://registry.npmjs.org"
    pypi: str = "https://pypi.org/pypi"
    github: str = "https://api.github.com"
    endoflife: str = "https://endoflife.date/api"
    osv: str = "https://api.osv.dev/v1"

    @field_validator("npm", "pypi", "github", "endoflife", "osv")
    @classmethod
    def _strip_slash(cls, v: str) -> str:
        return v.rstrip("/")


class HttpConfig(BaseModel):
    """HTTP client behaviour shared by all sources."""

    timeout_seconds: float = Field(default=20.0, gt=0)
    retries: int = Field(default=3, ge=1, le=10)


class AIConfig(BaseModel):
    """Optional local AI collaborator (Ollama HTTP API).

    Attributes:
        enabled: Consult the model during synthesis.
        base_url: Ollama server URL.
        model: Model name passed to ``/api/generate``.
        timeout_seconds: Per-request timeout.
    """

    enabled: bool = False
    base_url: str = "http://localhost:11434"
    model: str = "llama3.2"
    timeout_seconds: float = Field(default=60.0, gt=0)


class SchedulerConfig(BaseModel):
    """Background sync and bulk analysis pacing."""

    sync_interval_seconds: float = Field(default=300.0, gt=0)
    bulk_delay_seconds: float = Field(default=0.5, ge=0)


class StorageConfig(BaseModel):
    """Where the record list and the learned slug mappings live."""

    records_path: Path = Path("data/stackradar.json")
    slug_cache_path: Path = Path("data/slug_cache.json")
    discovery: bool = True


class StackRadarConfig(BaseModel):
    """Validated top-level configuration.

    Example YAML::

        thresholds:
          minor_high: 3
        ai:
          enabled: true
          model: llama3.2
        scheduler:
          sync_interval_seconds: 600
    """

    thresholds: ThresholdsConfig = Field(default_factory=ThresholdsConfig)
    endpoints: EndpointsConfig = Field(default_factory=EndpointsConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


def load_config(path: Path) -> StackRadarConfig:
    """Load configuration from a YAML or JSON file.

    Args:
        path: Path to the configuration file.

    Returns:
        Validated ``StackRadarConfig`` instance.

    Raises:
        FileNotFoundError: if the file doesn't exist.
        pydantic.ValidationError: if content fails validation.
    """
    suffix = path.suffix.lower()
    content = path.read_text(encoding="utf-8")

    raw: Any
    if suffix in (".yaml", ".yml"):
        raw = yaml.safe_load(content) or {}
    elif suffix == ".json":
        raw = json.loads(content)
    else:
        try:
            raw = yaml.safe_load(content) or {}
        except yaml.YAMLError:
            raw = json.loads(content)

    return StackRadarConfig.model_validate(raw)


def find_config() -> Path | None:
    """Find the configuration file, preferring YAML over JSON.

    Returns:
        Path of the first existing config file, or ``None``.
    """
    for name in ("stackradar.yaml", "stackradar.yml", "stackradar.json"):
        if Path(name).exists():
            return Path(name)
    return None
