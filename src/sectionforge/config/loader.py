"""
Configuration Loader.

Resolution order for every setting, lowest to highest:
1. Model defaults
2. The YAML file, after ``${VAR}`` / ``${VAR:-default}`` expansion
3. SECTIONFORGE_* environment overrides

The loaded configuration is cached module-wide so the CLI and library
callers share one instance.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from sectionforge.config.environment import load_environment
from sectionforge.config.models import SectionForgeConfig

logger = logging.getLogger(__name__)

# Looked up in the working directory, first match wins
DEFAULT_CONFIG_PATHS = [
    "sectionforge.yaml",
    "sectionforge.yml",
    ".sectionforge.yaml",
    ".sectionforge.yml",
    "config.yaml",
    "config.yml",
]

CONFIG_ENV_VAR = "SECTIONFORGE_CONFIG"

# Override variable -> dotted settings path
ENV_VAR_OVERRIDES = {
    "SECTIONFORGE_BATCH_SIZE": "generation.batch_size",
    "SECTIONFORGE_MAX_RETRIES": "generation.max_retries",
    "SECTIONFORGE_RETRY_DELAY": "generation.retry_delay_seconds",
    "SECTIONFORGE_AUTO_COMPILE": "generation.auto_compile",
    "SECTIONFORGE_MODEL": "service.model",
    "SECTIONFORGE_BASE_URL": "service.base_url",
    "SECTIONFORGE_TIMEOUT": "service.timeout_seconds",
    "SECTIONFORGE_HISTORY_BACKEND": "history.backend",
    "SECTIONFORGE_HISTORY_DIR": "history.directory",
    "SECTIONFORGE_OUTPUT_DIR": "output.base_dir",
    "SECTIONFORGE_CATALOG": "catalog.path",
    "SECTIONFORGE_LOG_LEVEL": "logging.level",
    "SECTIONFORGE_LOG_FILE": "logging.file",
    "SECTIONFORGE_DEBUG": "debug",
}

# Settings paths taken verbatim, "2024" as a directory stays a string
_TEXT_SETTINGS = frozenset(
    {
        "service.model",
        "service.base_url",
        "history.directory",
        "output.base_dir",
        "catalog.path",
        "logging.file",
    }
)

# ${NAME}, ${NAME:-fallback} or ${NAME:fallback}
_REFERENCE = re.compile(r"\$\{(?P<name>\w+)(?::-?(?P<fallback>[^}]*))?\}")

_TRUE_WORDS = frozenset({"true", "yes", "on"})
_FALSE_WORDS = frozenset({"false", "no", "off"})


class ConfigurationError(Exception):
    """Raised when a configuration file cannot be used.

    Attributes:
        errors: Pydantic error dicts, empty for parse errors
        path: Offending file, if any
    """

    MAX_DETAILS = 5

    def __init__(
        self,
        message: str,
        errors: list[dict] | None = None,
        path: Path | None = None,
    ) -> None:
        super().__init__(message)
        self.errors = errors or []
        self.path = path

    def __str__(self) -> str:
        lines = [super().__str__() + (f" (file: {self.path})" if self.path else "")]
        for err in self.errors[: self.MAX_DETAILS]:
            where = ".".join(str(part) for part in err.get("loc", ()))
            lines.append(f"  - {where}: {err.get('msg', 'invalid value')}")
        hidden = len(self.errors) - self.MAX_DETAILS
        if hidden > 0:
            lines.append(f"  ... and {hidden} more errors")
        return "\n".join(lines)

    @classmethod
    def from_validation(cls, error: ValidationError, path: Path | None = None):
        return cls(
            f"Configuration validation failed: {error.error_count()} errors",
            errors=error.errors(),
            path=path,
        )


def coerce_scalar(text: str) -> Any:
    """Interpret an environment string as None, bool, int, float or str."""
    if text == "":
        return None
    lowered = text.lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False
    for parse in (int, float):
        try:
            return parse(text)
        except ValueError:
            continue
    return text


def expand_env(value: Any) -> Any:
    """Expand ``${VAR}`` references anywhere in a parsed YAML tree.

    A string made of a single reference takes the coerced type of the
    resolved value. References inside longer strings are replaced as
    text. Unresolvable references are left untouched.
    """
    if isinstance(value, dict):
        return {key: expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    if not isinstance(value, str):
        return value

    whole = _REFERENCE.fullmatch(value)
    if whole is not None:
        resolved = os.environ.get(whole["name"], whole["fallback"])
        return value if resolved is None else coerce_scalar(resolved)

    def _resolve(match: re.Match[str]) -> str:
        resolved = os.environ.get(match["name"], match["fallback"])
        return match[0] if resolved is None else resolved

    return _REFERENCE.sub(_resolve, value)


def drop_empty(value: Any) -> Any:
    """Remove None entries so empty YAML sections fall back to defaults."""
    if isinstance(value, dict):
        return {key: drop_empty(item) for key, item in value.items() if item is not None}
    if isinstance(value, list):
        return [drop_empty(item) for item in value]
    return value


def apply_overrides(settings: dict[str, Any], environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Write SECTIONFORGE_* values into ``settings`` (in place)."""
    environ = os.environ if environ is None else environ
    for env_var, dotted in ENV_VAR_OVERRIDES.items():
        raw = environ.get(env_var)
        if raw is None:
            continue
        *parents, leaf = dotted.split(".")
        node = settings
        for part in parents:
            if not isinstance(node.get(part), dict):
                node[part] = {}
            node = node[part]
        node[leaf] = raw if dotted in _TEXT_SETTINGS else coerce_scalar(raw)
        logger.debug(f"Setting {dotted} overridden by {env_var}")
    return settings


def discover_config_path() -> Path | None:
    """Config file named by SECTIONFORGE_CONFIG, else the first default file.

    Raises:
        FileNotFoundError: If SECTIONFORGE_CONFIG names a missing file
    """
    named = os.environ.get(CONFIG_ENV_VAR)
    if named:
        path = Path(named)
        if not path.exists():
            raise FileNotFoundError(f"Config file specified by {CONFIG_ENV_VAR} not found: {named}")
        return path
    return next((Path(name) for name in DEFAULT_CONFIG_PATHS if Path(name).exists()), None)


class ConfigLoader:
    """Builds a SectionForgeConfig from an optional YAML file.

    Usage:
        config = ConfigLoader("sectionforge.yaml").load()

        # SECTIONFORGE_CONFIG, then the default file names, then defaults
        config = ConfigLoader().load_from_env()
    """

    def __init__(self, config_path: str | Path | None = None, env_file: str = ".env") -> None:
        self._config_path = Path(config_path) if config_path else None
        self._env_file = env_file
        self._config: SectionForgeConfig | None = None
        self._source: Path | None = None

    @property
    def config_path(self) -> Path | None:
        return self._config_path

    @property
    def loaded_from_path(self) -> Path | None:
        """File the current config came from; None when only defaults were used."""
        return self._source

    @property
    def config(self) -> SectionForgeConfig | None:
        return self._config

    def get(self) -> SectionForgeConfig:
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call load() or load_from_env() first.")
        return self._config

    def load(self, path: str | Path | None = None) -> SectionForgeConfig:
        """Load the configured file (or defaults when there is none).

        Raises:
            ConfigurationError: If the file is unreadable or invalid
            FileNotFoundError: If the file doesn't exist
        """
        if path is not None:
            self._config_path = Path(path)
        load_environment(self._env_file)

        raw = self._read_yaml(self._config_path) if self._config_path else {}
        self._source = self._config_path
        settings = drop_empty(apply_overrides(expand_env(raw)))

        try:
            self._config = SectionForgeConfig(**settings)
        except ValidationError as e:
            raise ConfigurationError.from_validation(e, self._source) from e

        logger.debug(f"Configuration loaded from {self._source or 'defaults'}")
        return self._config

    def load_from_env(self) -> SectionForgeConfig:
        """Discover the config file, then load it.

        Raises:
            FileNotFoundError: If SECTIONFORGE_CONFIG names a missing file
        """
        load_environment(self._env_file)
        self._config_path = discover_config_path()
        return self.load()

    def reload(self) -> SectionForgeConfig:
        """Load the same source again, picking up file and environment changes."""
        if self._config is None and self._config_path is None:
            raise RuntimeError(
                "Cannot reload: no configuration loaded. Call load() or load_from_env() first."
            )
        self._config = None
        return self.load(self._source or self._config_path)

    def save(self, path: str | Path | None = None) -> None:
        """Write the loaded configuration as YAML.

        Raises:
            ValueError: If nothing is loaded or there is nowhere to write
        """
        if self._config is None:
            raise ValueError("No configuration loaded")
        target = Path(path) if path else self._config_path
        if target is None:
            raise ValueError("No path specified for saving")

        with open(target, "w") as f:
            yaml.safe_dump(self._config.to_yaml_dict(), f, default_flow_style=False, sort_keys=False)

    @staticmethod
    def _read_yaml(path: Path) -> dict[str, Any]:
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}", path=path) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration root must be a mapping", path=path)
        return data


_global_loader: ConfigLoader | None = None
_global_config: SectionForgeConfig | None = None


def _install(loader: ConfigLoader, config: SectionForgeConfig) -> SectionForgeConfig:
    global _global_loader, _global_config
    _global_loader, _global_config = loader, config
    return config


def load_config(config_path: str | Path | None = None, env_file: str = ".env") -> SectionForgeConfig:
    """Load ``config_path`` (defaults when None) and make it the global config."""
    loader = ConfigLoader(config_path, env_file)
    return _install(loader, loader.load())


def load_config_from_env(env_file: str = ".env") -> SectionForgeConfig:
    """Discover, load and globally install the configuration."""
    loader = ConfigLoader(env_file=env_file)
    return _install(loader, loader.load_from_env())


def get_config() -> SectionForgeConfig:
    """The global configuration.

    Raises:
        RuntimeError: If nothing was loaded yet
    """
    if _global_config is None:
        raise RuntimeError(
            "Configuration not loaded. Call load_config() or load_config_from_env() first."
        )
    return _global_config


def reload_config() -> SectionForgeConfig:
    if _global_loader is None:
        raise RuntimeError(
            "Cannot reload: no configuration loaded. "
            "Call load_config() or load_config_from_env() first."
        )
    return _install(_global_loader, _global_loader.reload())


def reset_config() -> None:
    """Forget the global configuration (used by tests)."""
    global _global_loader, _global_config
    _global_loader = None
    _global_config = None


def create_default_config(**overrides: Any) -> SectionForgeConfig:
    """Build a configuration in code, e.g. ``generation={"batch_size": 2}``.

    No file or environment is consulted.
    """
    try:
        return SectionForgeConfig(**overrides)
    except ValidationError as e:
        raise ConfigurationError.from_validation(e) from e


def get_loader() -> ConfigLoader | None:
    return _global_loader
