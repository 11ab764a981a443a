"""
SectionForge - Configuration Management

This module provides configuration management including:
- YAML configuration loading and validation
- Environment variable handling
- Generation, service, history and output settings
- Configuration defaults and overrides
"""

from sectionforge.config.environment import (
    API_KEY_ENV_VAR,
    EnvironmentConfig,
    ensure_dotenv_loaded,
    get_api_key,
    load_environment,
    reset_environment,
)
from sectionforge.config.loader import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_PATHS,
    ENV_VAR_OVERRIDES,
    ConfigLoader,
    ConfigurationError,
    create_default_config,
    get_config,
    get_loader,
    load_config,
    load_config_from_env,
    reload_config,
    reset_config,
)
from sectionforge.config.models import (
    CatalogConfig,
    GenerationConfig,
    HistoryBackend,
    HistoryConfig,
    LoggingConfig,
    LogLevel,
    OutputConfig,
    SectionForgeConfig,
    ServiceConfig,
)

__all__ = [
    # Config models
    "GenerationConfig",
    "ServiceConfig",
    "HistoryBackend",
    "HistoryConfig",
    "OutputConfig",
    "CatalogConfig",
    "LogLevel",
    "LoggingConfig",
    "SectionForgeConfig",
    # Loader
    "ConfigLoader",
    "ConfigurationError",
    "load_config",
    "load_config_from_env",
    "get_config",
    "reload_config",
    "reset_config",
    "create_default_config",
    "get_loader",
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_PATHS",
    "ENV_VAR_OVERRIDES",
    # Environment
    "API_KEY_ENV_VAR",
    "EnvironmentConfig",
    "load_environment",
    "ensure_dotenv_loaded",
    "get_api_key",
    "reset_environment",
]
