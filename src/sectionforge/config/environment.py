"""
Environment Variable Handling.

Secrets never live in the YAML configuration. The generation service
credentials are read from the process environment, optionally seeded
from a .env file with python-dotenv. Variables already set in the
process win over the .env file.
"""

import os
from pathlib import Path

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, SecretStr

API_KEY_ENV_VAR = "OPENROUTER_API_KEY"

# Set once a .env lookup happened, found or not
_dotenv_loaded: bool = False
_environment: "EnvironmentConfig | None" = None


def ensure_dotenv_loaded(env_file: str = ".env") -> bool:
    """Load ``env_file`` into os.environ once per process.

    An explicit path is used as given; a bare file name is searched for
    from the working directory upwards.

    Returns:
        True if a .env file was found and set at least one variable
    """
    global _dotenv_loaded

    if _dotenv_loaded:
        return True
    _dotenv_loaded = True

    path = Path(env_file)
    if not path.is_file():
        found = find_dotenv(env_file, usecwd=True) if path.name == env_file else ""
        if not found:
            return False
        path = Path(found)

    return load_dotenv(path, override=False)


class EnvironmentConfig(BaseModel):
    """Credentials read from the environment.

    Attributes:
        openrouter_api_key: API key of the generation service
        env_file: .env file consulted at load time
    """

    openrouter_api_key: SecretStr | None = Field(default=None, description="OpenRouter API key")
    env_file: str = Field(default=".env", description="Path to .env file")

    @classmethod
    def from_environ(cls, env_file: str = ".env") -> "EnvironmentConfig":
        value = os.environ.get(API_KEY_ENV_VAR, "").strip()
        return cls(openrouter_api_key=SecretStr(value) if value else None, env_file=env_file)

    @property
    def has_api_key(self) -> bool:
        return self.openrouter_api_key is not None


def load_environment(env_file: str = ".env") -> EnvironmentConfig:
    """Load (and cache) the environment configuration."""
    global _environment

    ensure_dotenv_loaded(env_file)
    if _environment is None or _environment.env_file != env_file:
        _environment = EnvironmentConfig.from_environ(env_file)
    return _environment


def get_api_key() -> str | None:
    """The generation service API key, or None if not set."""
    config = load_environment()
    if not config.has_api_key:
        return None
    return config.openrouter_api_key.get_secret_value()


def reset_environment() -> None:
    """Forget the cached environment and the .env lookup (used by tests)."""
    global _environment, _dotenv_loaded
    _environment = None
    _dotenv_loaded = False
