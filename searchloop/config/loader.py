"""Configuration loader with Pydantic validation and env var expansion."""

import logging
import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from ..errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "profiles.yaml"


class OracleConfig(BaseModel):
    """Configuration for the LLM backing the oracles."""

    backend: Literal["openrouter", "anthropic", "mock"] = "openrouter"
    model: str | None = None
    api_key: str | None = None
    base_url: str | None = None
    temperature: float = 0.0
    max_tokens: int = 512
    timeout: float = 3.0  # Seconds per oracle call


class SourceConfig(BaseModel):
    """Configuration for one source adapter.

    ``options`` are passed to the adapter constructor, e.g. ``base_url`` for
    SearxNG or ``path`` for the document index.
    """

    kind: Literal["searxng", "semantic_scholar", "arxiv", "documents"]
    source_tag: str | None = None
    enabled: bool = True
    priority: int = 0  # Lower runs first and wins duplicates
    options: dict[str, Any] = Field(default_factory=dict)


class DispatcherConfig(BaseModel):
    """Configuration for the parallel dispatcher."""

    per_adapter_limit: int = 5
    adapter_timeout: float = 4.0
    similarity_threshold: float = 0.92


class ExpanderConfig(BaseModel):
    """Configuration for query expansion."""

    enabled: bool = True
    max_variants: int = 2


class RankerConfig(BaseModel):
    """Configuration for relevance scoring and MMR diversification."""

    candidate_cap: int = 12
    output_cap: int = 8
    mmr_lambda: float = Field(0.7, ge=0.0, le=1.0)
    min_relevance: float = 0.2


class QualityGateConfig(BaseModel):
    """Configuration for the sufficiency check."""

    enabled: bool = True
    summary_top_n: int = 5
    body_chars: int = 200


class EnricherConfig(BaseModel):
    """Configuration for full-text enrichment of the final results."""

    enabled: bool = False
    top_n: int = 3
    max_chars: int = 4000
    timeout: float = 4.0


class OrchestratorConfig(BaseModel):
    """Configuration for the search loop."""

    max_iterations: int = Field(3, ge=1)
    stage_timeout: float = 20.0
    classify_queries: bool = True


class ProfileConfig(BaseModel):
    """Configuration profile containing all engine configs."""

    oracle: OracleConfig = OracleConfig()
    sources: list[SourceConfig] = Field(default_factory=lambda: [SourceConfig(kind="searxng")])
    dispatcher: DispatcherConfig = DispatcherConfig()
    expander: ExpanderConfig = ExpanderConfig()
    ranker: RankerConfig = RankerConfig()
    quality_gate: QualityGateConfig = QualityGateConfig()
    enricher: EnricherConfig = EnricherConfig()
    orchestrator: OrchestratorConfig = OrchestratorConfig()


class ConfigFile(BaseModel):
    """Root configuration file structure."""

    profiles: dict[str, ProfileConfig]


def expand_env_vars(value: str) -> str:
    """Expand ${VAR} references in a string with environment variables.

    Unset variables are left as written.
    """
    if not isinstance(value, str):
        return value

    def replacer(match):
        return os.environ.get(match.group(1), match.group(0))

    return re.sub(r"\$\{([^}]+)\}", replacer, value)


def expand_env_vars_recursive(data):
    """Recursively expand env vars in nested dict/list structures."""
    if isinstance(data, dict):
        return {k: expand_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [expand_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return expand_env_vars(data)
    else:
        return data


def _unset_to_none(value: str | None) -> str | None:
    """Treat an unexpanded ``${VAR}`` as missing."""
    if value and value.startswith("${"):
        return None
    return value


def read_config_file(config_path: Path) -> ConfigFile:
    """Read and validate a profiles YAML file.

    Raises:
        ConfigError: If the file is missing or invalid
    """
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        raw_data = yaml.safe_load(f) or {}

    try:
        config_file = ConfigFile(**expand_env_vars_recursive(raw_data))
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {config_path}: {e}") from e

    for profile in config_file.profiles.values():
        profile.oracle.api_key = _unset_to_none(profile.oracle.api_key)
        profile.oracle.model = _unset_to_none(profile.oracle.model)
        profile.oracle.base_url = _unset_to_none(profile.oracle.base_url)
        for source in profile.sources:
            source.options = {
                k: v for k, v in source.options.items()
                if not (isinstance(v, str) and _unset_to_none(v) is None)
            }
    return config_file


def load_config_from_yaml(config_path: Path, profile_name: str) -> ProfileConfig:
    """Load one profile from a YAML file.

    Args:
        config_path: Path to config YAML file
        profile_name: Name of profile to load

    Returns:
        ProfileConfig for the requested profile

    Raises:
        ConfigError: If the file is invalid or the profile doesn't exist
    """
    config_file = read_config_file(config_path)
    if profile_name not in config_file.profiles:
        available = ", ".join(config_file.profiles.keys())
        raise ConfigError(f"Profile '{profile_name}' not found. Available profiles: {available}")
    return config_file.profiles[profile_name]


def load_config_from_env() -> ProfileConfig:
    """Build a profile from environment variables (fallback mode).

    Uses OpenRouter when OPENROUTER_API_KEY is set, Anthropic when only
    ANTHROPIC_API_KEY is set, and the mock oracle otherwise. The only source
    is the SearxNG instance at SEARXNG_BASE_URL.
    """
    if os.environ.get("OPENROUTER_API_KEY"):
        oracle = OracleConfig(
            backend="openrouter",
            model=os.environ.get("OPENROUTER_DEFAULT_MODEL"),
            api_key=os.environ.get("OPENROUTER_API_KEY"),
        )
    elif os.environ.get("ANTHROPIC_API_KEY"):
        oracle = OracleConfig(backend="anthropic", api_key=os.environ.get("ANTHROPIC_API_KEY"))
    else:
        oracle = OracleConfig(backend="mock")

    return ProfileConfig(
        oracle=oracle,
        sources=[SourceConfig(kind="searxng", options={"base_url": os.environ.get("SEARXNG_BASE_URL")})],
    )


def list_profiles(config_path: Path | None = None) -> dict[str, ProfileConfig]:
    """All profiles of a config file (empty when the file is missing)."""
    config_path = config_path or DEFAULT_CONFIG_PATH
    if not config_path.exists():
        return {}
    return read_config_file(config_path).profiles


def load_config(
    profile: str | None = None,
    config_path: Path | None = None,
) -> ProfileConfig:
    """Load configuration from YAML file or environment variables.

    Args:
        profile: Profile name to load. If None, uses SEARCHLOOP_PROFILE env
                var or "default".
        config_path: Path to config file. If None, uses the bundled
                    searchloop/config/profiles.yaml.

    Returns:
        ProfileConfig with all engine configurations

    Raises:
        ConfigError: If the requested profile doesn't exist in the file
    """
    if profile is None:
        profile = os.environ.get("SEARCHLOOP_PROFILE", "default")

    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if not config_path.exists():
        logger.warning(f"Config file {config_path} not found, using environment variables")
        return load_config_from_env()

    return load_config_from_yaml(config_path, profile)
