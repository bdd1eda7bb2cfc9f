"""Configuration system for the search engine and its backends."""

from .loader import (
    load_config,
    load_config_from_yaml,
    list_profiles,
    ProfileConfig,
    OracleConfig,
    SourceConfig,
    DispatcherConfig,
    ExpanderConfig,
    RankerConfig,
    QualityGateConfig,
    EnricherConfig,
    OrchestratorConfig,
)
from .factory import (
    MockLLMProvider,
    create_llm_provider,
    create_oracle,
    create_adapter,
    create_adapters,
    create_engine,
)

__all__ = [
    # Loader
    "load_config",
    "load_config_from_yaml",
    "list_profiles",
    "ProfileConfig",
    "OracleConfig",
    "SourceConfig",
    "DispatcherConfig",
    "ExpanderConfig",
    "RankerConfig",
    "QualityGateConfig",
    "EnricherConfig",
    "OrchestratorConfig",
    # Factory
    "MockLLMProvider",
    "create_llm_provider",
    "create_oracle",
    "create_adapter",
    "create_adapters",
    "create_engine",
]
