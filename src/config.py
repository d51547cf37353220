"""Unified configuration loaded from .whisperwell.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from whisperwell.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".whisperwell.toml"

API_KEY_ENV = "ANTHROPIC_API_KEY"

# CLI flag name -> (section, field)
_CLI_FIELDS: dict[str, tuple[str, str]] = {
    "model": ("model", "name"),
    "temperature": ("model", "temperature"),
    "store_path": ("store", "path"),
    "recall_delay": ("recall", "delay_seconds"),
}


class ModelSectionConfig(BaseModel):
    """[model] section: completion service settings."""

    name: str = "claude-haiku-4-5-20251001"
    temperature: float = 0.7
    max_tokens: int = 1000
    timeout: int = 60
    api_key: str = Field(default="", repr=False)

    @field_validator("temperature")
    @classmethod
    def _check_temperature(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("temperature must be between 0 and 1")
        return value


class StoreSectionConfig(BaseModel):
    """[store] section."""

    path: str = str(Path.home() / ".local" / "share" / "whisperwell" / "store.json")


class RecallSectionConfig(BaseModel):
    """[recall] section."""

    delay_seconds: float = 2.0


class PromptsSectionConfig(BaseModel):
    """[prompts] section."""

    weekly_trigger_words: list[str] = Field(default_factory=lambda: ["week"])


class WhisperWellConfig(BaseModel):
    """Top-level configuration model."""

    model: ModelSectionConfig = Field(default_factory=ModelSectionConfig)
    store: StoreSectionConfig = Field(default_factory=StoreSectionConfig)
    recall: RecallSectionConfig = Field(default_factory=RecallSectionConfig)
    prompts: PromptsSectionConfig = Field(default_factory=PromptsSectionConfig)

    @property
    def store_path(self) -> Path:
        return Path(self.store.path).expanduser()

    def require_api_key(self) -> str:
        """Return the completion service credential.

        Raises:
            ConfigError: If no credential is configured.
        """
        key = self.model.api_key.strip()
        if not key:
            raise ConfigError(f"{API_KEY_ENV} is not configured")
        return key


def _candidate_files() -> list[Path]:
    """Config files tried in order when no explicit path is given."""
    return [Path.cwd() / CONFIG_FILENAME, Path.home() / ".config" / "whisperwell" / "config.toml"]


def load_config(path: str | Path | None = None) -> WhisperWellConfig:
    """Build the configuration from one TOML file plus environment variables.

    An explicit ``path`` wins. Otherwise the first of ``./.whisperwell.toml``
    and ``~/.config/whisperwell/config.toml`` that exists is read. A missing
    or unreadable file leaves the defaults in place.
    """
    if path is not None:
        source: Path | None = Path(path)
        if not source.exists():
            logger.warning("Config file not found: %s", source)
            source = None
    else:
        source = next((p for p in _candidate_files() if p.exists()), None)

    data = _load_toml(source) if source is not None else {}
    if data:
        logger.info("Loaded config from %s", source)
    return _apply_env_vars(WhisperWellConfig.model_validate(data))


def merge_cli_overrides(config: WhisperWellConfig, **flags: object) -> WhisperWellConfig:
    """Return ``config`` with every flag that was actually passed applied.

    Flags left at ``None`` keep the configured value. Unknown flag names are
    ignored.
    """
    data = config.model_dump()
    for flag, value in flags.items():
        target = _CLI_FIELDS.get(flag)
        if target is None or value is None:
            continue
        section, field = target
        data[section][field] = value
    return WhisperWellConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)
        return {}


def _apply_env_vars(config: WhisperWellConfig) -> WhisperWellConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        API_KEY_ENV: ("model", "api_key"),
        "WHISPERWELL_MODEL": ("model", "name"),
        "WHISPERWELL_STORE": ("store", "path"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    delay_raw = os.environ.get("WHISPERWELL_RECALL_DELAY")
    if delay_raw is not None:
        try:
            data["recall"]["delay_seconds"] = float(delay_raw)
        except ValueError:
            logger.warning("Ignoring invalid WHISPERWELL_RECALL_DELAY=%r", delay_raw)

    return WhisperWellConfig.model_validate(data)
