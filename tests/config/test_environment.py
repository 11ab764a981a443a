"""Tests for environment and .env handling."""

import pytest

from sectionforge.config import (
    API_KEY_ENV_VAR,
    EnvironmentConfig,
    ensure_dotenv_loaded,
    get_api_key,
    load_environment,
    reset_environment,
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    reset_environment()
    monkeypatch.delenv(API_KEY_ENV_VAR, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    reset_environment()


def test_api_key_from_process_environment(monkeypatch):
    monkeypatch.setenv(API_KEY_ENV_VAR, "sk-process")
    assert get_api_key() == "sk-process"


def test_missing_api_key():
    config = load_environment("missing.env")

    assert config.has_api_key is False
    assert get_api_key() is None


def test_blank_api_key_is_missing(monkeypatch):
    monkeypatch.setenv(API_KEY_ENV_VAR, "   ")
    assert EnvironmentConfig.from_environ().has_api_key is False


def test_dotenv_file_loaded(monkeypatch, tmp_path):
    env_file = tmp_path / "custom.env"
    env_file.write_text(f"{API_KEY_ENV_VAR}=sk-from-file\n")
    # load_dotenv writes to os.environ; let monkeypatch restore it
    monkeypatch.setenv(API_KEY_ENV_VAR, "")
    monkeypatch.delenv(API_KEY_ENV_VAR)

    assert ensure_dotenv_loaded(str(env_file)) is True
    assert load_environment(str(env_file)).openrouter_api_key.get_secret_value() == "sk-from-file"


def test_process_environment_wins_over_dotenv(monkeypatch, tmp_path):
    (tmp_path / ".env").write_text(f"{API_KEY_ENV_VAR}=sk-from-file\n")
    monkeypatch.setenv(API_KEY_ENV_VAR, "sk-process")

    ensure_dotenv_loaded()
    assert get_api_key() == "sk-process"


def test_dotenv_loaded_once(monkeypatch, tmp_path):
    monkeypatch.setenv(API_KEY_ENV_VAR, "")
    monkeypatch.delenv(API_KEY_ENV_VAR)

    assert ensure_dotenv_loaded() is False
    (tmp_path / ".env").write_text(f"{API_KEY_ENV_VAR}=sk-late\n")

    # Already looked up; the late file is not read
    assert ensure_dotenv_loaded() is True
    assert get_api_key() is None


def test_secret_not_in_repr(monkeypatch):
    monkeypatch.setenv(API_KEY_ENV_VAR, "sk-secret")
    assert "sk-secret" not in repr(load_environment())
