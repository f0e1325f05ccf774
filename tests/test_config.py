"""Tests for config loading and validation."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from agentchat.config import load_config
from agentchat.schemas.config import AppConfig, ChatDefaults, GenerationSettings


class TestAppConfig:
    """Test the AppConfig Pydantic model directly."""

    def test_defaults(self) -> None:
        cfg = AppConfig()
        assert cfg.database_url == "sqlite+aiosqlite:///agentchat.db"
        assert cfg.generation.api_key_name == "OPENAI_API_KEY"
        assert cfg.generation.default_model == "gpt-4o"
        assert cfg.defaults.system_prompt == "You are a helpful AI assistant."
        assert cfg.defaults.memory_window == 10

    def test_memory_window_must_be_positive(self) -> None:
        with pytest.raises(ValidationError, match="memory_window"):
            ChatDefaults(memory_window=0)

    def test_key_name_must_be_allowed(self) -> None:
        with pytest.raises(ValidationError, match="allowed_keys"):
            GenerationSettings(api_key_name="AWS_SECRET_ACCESS_KEY")

    def test_empty_database_url_rejected(self) -> None:
        with pytest.raises(ValidationError, match="database_url"):
            AppConfig(database_url="")


class TestLoadConfig:
    """Test YAML file loading."""

    def test_none_gives_defaults(self) -> None:
        assert load_config(None) == AppConfig()

    def test_load_valid_file(self, tmp_config: Path) -> None:
        cfg = load_config(tmp_config)
        assert cfg.database_url.startswith("sqlite+aiosqlite:///")
        assert cfg.generation.default_model == "test-model"

    def test_file_not_found(self) -> None:
        with pytest.raises(FileNotFoundError):
            load_config("/nonexistent/agentchat.yml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.yml"
        bad.write_text("just a string")
        with pytest.raises(ValueError, match="YAML mapping"):
            load_config(bad)

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        empty = tmp_path / "empty.yml"
        empty.write_text("# nothing configured\n")
        assert load_config(empty) == AppConfig()

    def test_null_sections_use_defaults(self, tmp_path: Path) -> None:
        """Sections with only commented-out keys load as None."""
        cfg_file = tmp_path / "agentchat.yml"
        cfg_file.write_text(
            """\
database_url: "memory"
generation:
  # base_url: "https://example.com"
defaults:
"""
        )
        cfg = load_config(cfg_file)
        assert cfg.database_url == "memory"
        assert cfg.generation == GenerationSettings()
        assert cfg.defaults == ChatDefaults()

    def test_custom_key_name_is_allowed_implicitly(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "agentchat.yml"
        cfg_file.write_text(
            """\
generation:
  api_key_name: "GOOGLE_AI_API_KEY"
  base_url: "https://generativelanguage.googleapis.com/v1beta/openai/"
"""
        )
        cfg = load_config(cfg_file)
        assert cfg.generation.allowed_keys == ["GOOGLE_AI_API_KEY"]
        assert cfg.generation.base_url.startswith("https://generativelanguage")

    def test_invalid_content_raises_validation_error(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "agentchat.yml"
        cfg_file.write_text("defaults:\n  memory_window: -3\n")
        with pytest.raises(ValidationError):
            load_config(cfg_file)
