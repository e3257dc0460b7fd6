# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for configuration management.
"""

import tempfile
from pathlib import Path

import yaml

from readalong.aligner import AlignerSettings
from readalong.config import (
    DEFAULT_CONFIG,
    get_aligner_settings,
    get_session_settings,
    get_transcription_settings,
    load_config,
    save_config,
)
from readalong.supervisor import SessionSettings


def test_defaults_match_settings_dataclasses():
    """Default tracking/session sections mirror the dataclass defaults."""
    assert get_aligner_settings(DEFAULT_CONFIG) == AlignerSettings()
    assert get_session_settings(DEFAULT_CONFIG) == SessionSettings()
    assert DEFAULT_CONFIG["transcription"]["model_id"] == "vosk-ar-mgb2"


def test_missing_file_gives_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = load_config(Path(tmpdir) / ".readalong.yaml")
        assert config == DEFAULT_CONFIG


def test_partial_file_merged_with_defaults():
    """Nested sections are merged key by key, not replaced."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / ".readalong.yaml"
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump({"port": 9000, "tracking": {"stall_threshold": 4}}, f)

        config = load_config(config_path)

        assert config["port"] == 9000
        assert config["host"] == DEFAULT_CONFIG["host"]
        assert config["tracking"]["stall_threshold"] == 4
        assert config["tracking"]["jump_attempts"] == 6
        assert get_aligner_settings(config).stall_threshold == 4


def test_loaded_config_does_not_share_defaults():
    """Mutating a loaded config leaves DEFAULT_CONFIG untouched."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config = load_config(Path(tmpdir) / ".readalong.yaml")
        config["session"]["locale"] = "en"

        assert DEFAULT_CONFIG["session"]["locale"] == "ar"


def test_invalid_yaml_falls_back_to_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / ".readalong.yaml"
        config_path.write_text("port: [unclosed", encoding="utf-8")

        assert load_config(config_path) == DEFAULT_CONFIG


def test_non_mapping_yaml_ignored():
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / ".readalong.yaml"
        config_path.write_text("- just\n- a list\n", encoding="utf-8")

        assert load_config(config_path) == DEFAULT_CONFIG


def test_save_and_reload():
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / ".readalong.yaml"
        config = load_config(config_path)
        config["session"]["locale"] = "ar-EG"
        config["transcription"]["model_id"] = "vosk-ar-linto"

        assert save_config(config, config_path)

        reloaded = load_config(config_path)
        assert reloaded["session"]["locale"] == "ar-EG"
        assert get_transcription_settings(reloaded)["model_id"] == "vosk-ar-linto"


def test_save_to_missing_directory_fails():
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "missing" / ".readalong.yaml"

        assert not save_config(load_config(config_path), config_path)


def test_unknown_keys_ignored():
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / ".readalong.yaml"
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump({"session": {"max_retries": 3, "colour": "blue"}}, f)

        settings = get_session_settings(load_config(config_path))

        assert settings.max_retries == 3
        assert settings.locale == "ar"


def test_transcription_settings_are_a_copy():
    settings = get_transcription_settings(DEFAULT_CONFIG)
    settings["provider"] = "other"

    assert DEFAULT_CONFIG["transcription"]["provider"] == "vosk"
