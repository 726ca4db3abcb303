"""
Configuration for Icebreaker.

Settings are read from an optional ``.env.local`` file and the process
environment; values in the environment take precedence over the file.
"""

import logging
import os
from typing import Dict, List, Mapping, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, Field, field_validator

from icebreaker.adapters.base.adapter import AdapterConfig, GenerationParams
from icebreaker.orchestrator.instructions import DEFAULT_LANGUAGE, SUPPORTED_LANGUAGES
from icebreaker.speech.voicevox import DEFAULT_SPEAKER, DEFAULT_VOICEVOX_URL

logger = logging.getLogger("icebreaker.config")

DEFAULT_ENV_FILE = ".env.local"

SUPPORTED_PROVIDERS = ("gemini", "openai", "anthropic")

API_KEY_VARIABLES = {
    "gemini": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}

ARANGODB_VARIABLES = ("ARANGODB_HOST", "ARANGODB_USERNAME", "ARANGODB_PASSWORD")


class Settings(BaseModel):
    """Runtime settings for a facilitation session."""

    provider: str = Field(default="gemini", description="Language model provider")
    model: Optional[str] = Field(None, description="Model id, provider default when omitted")
    api_keys: Dict[str, str] = Field(default_factory=dict, description="API keys by provider")
    generation: GenerationParams = Field(default_factory=GenerationParams)
    language: str = Field(default=DEFAULT_LANGUAGE, description="Language of the persona text")
    history_window: Optional[int] = Field(None, description="Replay only the most recent N messages")
    generate_opening: bool = Field(default=False, description="Let the model write the opening greeting")

    voicevox_url: str = DEFAULT_VOICEVOX_URL
    voicevox_speaker: int = DEFAULT_SPEAKER

    arangodb_host: Optional[str] = None
    arangodb_username: Optional[str] = None
    arangodb_password: Optional[str] = None
    arangodb_database: str = "icebreaker"

    whisper_model: str = "small"
    whisper_segment_seconds: float = 6.0

    @field_validator("provider")
    @classmethod
    def provider_supported(cls, value: str) -> str:
        value = value.lower()
        if value not in SUPPORTED_PROVIDERS:
            raise ValueError(f"Unsupported provider: {value}")
        return value

    @field_validator("language")
    @classmethod
    def language_supported(cls, value: str) -> str:
        if value not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {value}")
        return value

    @field_validator("history_window")
    @classmethod
    def window_positive(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 1:
            raise ValueError("history_window must be at least 1")
        return value

    @property
    def api_key(self) -> Optional[str]:
        """API key of the selected provider."""
        return self.api_keys.get(self.provider) or None

    @property
    def arangodb_configured(self) -> bool:
        return bool(self.arangodb_host and self.arangodb_username and self.arangodb_password)

    def adapter_config(self) -> AdapterConfig:
        return AdapterConfig(api_key=self.api_key or "", model=self.model)


class EnvironmentStatus(BaseModel):
    """Result of checking the runtime configuration."""

    api_key: bool = False
    arangodb: bool = False
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def load_settings(
    env_file: Optional[str] = DEFAULT_ENV_FILE,
    environ: Optional[Mapping[str, str]] = None
) -> Settings:
    """
    Build settings from an env file and the environment.

    Args:
        env_file: Path of a dotenv file; missing files are ignored
        environ: Variables to read, ``os.environ`` when omitted

    Returns:
        The loaded settings

    Raises:
        pydantic.ValidationError: If a value is malformed
    """
    values: Dict[str, str] = {}
    if env_file and os.path.exists(env_file):
        values.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
        logger.debug(f"Loaded settings from {env_file}")
    values.update(os.environ if environ is None else environ)

    def get(name: str) -> Optional[str]:
        value = values.get(name)
        return value if value else None

    data = {
        "provider": get("ICEBREAKER_PROVIDER") or "gemini",
        "model": get("ICEBREAKER_MODEL"),
        "api_keys": {
            provider: values[variable]
            for provider, variable in API_KEY_VARIABLES.items()
            if values.get(variable)
        },
        "language": get("ICEBREAKER_LANGUAGE") or DEFAULT_LANGUAGE,
        "history_window": get("ICEBREAKER_HISTORY_WINDOW"),
        "generate_opening": _flag(get("ICEBREAKER_GENERATE_OPENING")),
        "voicevox_url": get("VOICEVOX_URL") or DEFAULT_VOICEVOX_URL,
        "voicevox_speaker": get("VOICEVOX_SPEAKER") or DEFAULT_SPEAKER,
        "arangodb_host": get("ARANGODB_HOST"),
        "arangodb_username": get("ARANGODB_USERNAME"),
        "arangodb_password": get("ARANGODB_PASSWORD"),
        "arangodb_database": get("ARANGODB_DATABASE") or "icebreaker",
        "whisper_model": get("WHISPER_MODEL") or "small",
        "whisper_segment_seconds": get("WHISPER_SEGMENT_SECONDS") or 6.0,
    }
    return Settings.model_validate(data)


def check_environment(settings: Settings) -> EnvironmentStatus:
    """
    Check that the settings are complete enough to run a session.

    A missing API key for the selected provider is an error, since replies
    cannot be generated. Partially configured ArangoDB credentials are a
    warning, since the session still runs without persistence.
    """
    status = EnvironmentStatus()

    if settings.api_key:
        status.api_key = True
    else:
        variable = API_KEY_VARIABLES[settings.provider]
        status.errors.append(f"{variable} is not set. AI conversation features will not work.")

    arango_values = [settings.arangodb_host, settings.arangodb_username, settings.arangodb_password]
    if all(arango_values):
        status.arangodb = True
    elif any(arango_values):
        status.warnings.append(
            "ArangoDB settings are partially configured "
            f"({', '.join(ARANGODB_VARIABLES)}). Conversation history will not be saved."
        )

    return status
