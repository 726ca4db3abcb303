"""
Tests for settings loading and the environment check.
"""

import pytest
from pydantic import ValidationError

from icebreaker.config import Settings, check_environment, load_settings


def test_defaults_without_environment(tmp_path):
    settings = load_settings(env_file=str(tmp_path / "missing.env"), environ={})

    assert settings.provider == "gemini"
    assert settings.language == "ja"
    assert settings.api_key is None
    assert settings.voicevox_url == "http://localhost:50021"
    assert settings.voicevox_speaker == 3
    assert settings.history_window is None
    assert not settings.generate_opening
    assert not settings.arangodb_configured


def test_env_file_is_read_and_environment_wins(tmp_path):
    env_file = tmp_path / ".env.local"
    env_file.write_text(
        "GEMINI_API_KEY=file-key\n"
        "ICEBREAKER_LANGUAGE=en\n"
        "VOICEVOX_SPEAKER=1\n"
        "ICEBREAKER_HISTORY_WINDOW=20\n"
    )

    settings = load_settings(env_file=str(env_file), environ={"GEMINI_API_KEY": "env-key"})

    assert settings.api_key == "env-key"
    assert settings.language == "en"
    assert settings.voicevox_speaker == 1
    assert settings.history_window == 20


def test_provider_selection():
    settings = load_settings(env_file=None, environ={
        "ICEBREAKER_PROVIDER": "Anthropic",
        "ANTHROPIC_API_KEY": "sk-ant",
        "ICEBREAKER_MODEL": "claude-3-5-sonnet-latest",
        "ICEBREAKER_GENERATE_OPENING": "true",
    })

    assert settings.provider == "anthropic"
    assert settings.api_key == "sk-ant"
    assert settings.generate_opening
    config = settings.adapter_config()
    assert config.api_key == "sk-ant"
    assert config.model == "claude-3-5-sonnet-latest"


@pytest.mark.parametrize("values", [
    {"provider": "mistral"},
    {"language": "fr"},
    {"history_window": 0},
])
def test_invalid_settings(values):
    with pytest.raises(ValidationError):
        Settings(**values)


def test_check_environment_missing_api_key():
    status = check_environment(Settings(provider="openai"))

    assert not status.ok
    assert not status.api_key
    assert "OPENAI_API_KEY" in status.errors[0]


def test_check_environment_ok():
    settings = Settings(
        api_keys={"gemini": "key"},
        arangodb_host="http://localhost:8529",
        arangodb_username="root",
        arangodb_password="secret"
    )

    status = check_environment(settings)

    assert status.ok
    assert status.api_key
    assert status.arangodb
    assert status.warnings == []


def test_check_environment_partial_arangodb():
    status = check_environment(Settings(api_keys={"gemini": "key"}, arangodb_host="http://localhost:8529"))

    assert status.ok
    assert not status.arangodb
    assert len(status.warnings) == 1
    assert "partially configured" in status.warnings[0]
