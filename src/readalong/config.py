# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Configuration management for readalong.
Handles loading and saving settings from a YAML config file.
"""

import copy
import dataclasses
import logging
from pathlib import Path
from typing import Any, TypedDict

import yaml

from .aligner import AlignerSettings
from .supervisor import SessionSettings

logger = logging.getLogger(__name__)

CONFIG_FILENAME: str = ".readalong.yaml"


class TranscriptionConfig(TypedDict):
    """Type definition for transcription configuration settings."""
    provider: str  # "vosk"
    model_id: str  # Model identifier (e.g., "vosk-ar-mgb2")
    model_path: str | None  # Optional custom path
    restrict_vocabulary: bool


class SessionConfig(TypedDict):
    """Type definition for session lifecycle settings."""
    locale: str
    max_retries: int
    retry_backoff_step: float
    retry_backoff_cap: float
    format_retry_delay: float
    restart_delay: float
    hint_count: int


class TrackingConfig(TypedDict):
    """Type definition for aligner settings (see AlignerSettings)."""
    recent_words: int
    min_tail_words: int
    strong_tail_words: int
    near_forward_words: int
    far_forward_words: int
    backward_words: int
    sequential_search_words: int
    sequential_candidates: int
    sequential_min_word_length: int
    sequential_lookahead_cap: int
    jump_window_words: int
    jump_attempts: int
    stall_threshold: int
    short_tail_words: int
    short_tail_long_word: int
    short_tail_min_chars: int


class Config(TypedDict):
    """Type definition for the complete configuration."""
    transcription: TranscriptionConfig
    session: SessionConfig
    tracking: TrackingConfig
    # Server settings
    host: str
    port: int
    audio_device: int | None
    chunk_ms: int


def _dataclass_defaults(cls: type) -> dict[str, Any]:
    return {f.name: f.default for f in dataclasses.fields(cls)}


_SESSION_KEYS: tuple[str, ...] = tuple(SessionConfig.__annotations__)

# Default configuration values
DEFAULT_CONFIG: Config = {
    "transcription": {
        "provider": "vosk",
        "model_id": "vosk-ar-mgb2",
        "model_path": None,
        "restrict_vocabulary": False,
    },
    "session": {  # type: ignore[typeddict-item]
        key: value for key, value in _dataclass_defaults(SessionSettings).items()
        if key in _SESSION_KEYS
    },
    "tracking": _dataclass_defaults(AlignerSettings),  # type: ignore[typeddict-item]

    # Server settings
    "host": "127.0.0.1",
    "port": 8000,
    "audio_device": None,
    "chunk_ms": 100,
}


def get_config_path() -> Path:
    """Get the path to the config file in the current working directory."""
    return Path.cwd() / CONFIG_FILENAME


def _deep_merge(base, override):
    """
    Deep merge two dictionaries, with override taking precedence.
    Returns a new dictionary without modifying the originals.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file, merged with defaults.

    Args:
        config_path: Optional path to config file. If None, uses default location.

    Returns:
        Configuration dictionary with all values (defaults + overrides from file).
    """
    if config_path is None:
        config_path = get_config_path()

    config: dict[str, Any] = copy.deepcopy(DEFAULT_CONFIG)

    if config_path.exists():
        try:
            with open(config_path, encoding='utf-8') as f:
                file_config: Any = yaml.safe_load(f)
            if isinstance(file_config, dict):
                config = _deep_merge(config, file_config)
            elif file_config is not None:
                logger.warning("Ignoring config %s: top level is not a mapping", config_path)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not load config from %s: %s", config_path, e)
            print(f"Warning: Could not load config from {config_path}: {e}")

    return config  # type: ignore[return-value]


def save_config(config: Config, config_path: Path | None = None) -> bool:
    """
    Save configuration to file.

    Returns:
        True if save was successful, False otherwise.
    """
    if config_path is None:
        config_path = get_config_path()

    try:
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(dict(config), f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        return True
    except (OSError, yaml.YAMLError) as e:
        logger.error("Error saving config to %s: %s", config_path, e)
        print(f"Error saving config to {config_path}: {e}")
        return False


def _known_fields(cls: type, section: Any) -> dict[str, Any]:
    """Keep only the keys that are fields of dataclass cls."""
    if not isinstance(section, dict):
        return {}
    names = {f.name for f in dataclasses.fields(cls)}
    unknown = set(section) - names
    if unknown:
        logger.debug("Ignoring unknown %s keys: %s", cls.__name__, sorted(unknown))
    return {k: v for k, v in section.items() if k in names}


def get_aligner_settings(config: Config) -> AlignerSettings:
    """Build AlignerSettings from the tracking section."""
    return AlignerSettings(**_known_fields(AlignerSettings, config.get("tracking")))


def get_session_settings(config: Config) -> SessionSettings:
    """Build SessionSettings from the session section."""
    return SessionSettings(**_known_fields(SessionSettings, config.get("session")))


def get_transcription_settings(config: Config) -> TranscriptionConfig:
    """Extract transcription settings from config."""
    return config.get("transcription",
                      DEFAULT_CONFIG["transcription"]
                      ).copy()  # type: ignore[return-value]
