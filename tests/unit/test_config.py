"""
Unit tests for configuration.

Tests RunConfig validation and MigrationSettings loading from the
environment.
"""

from pathlib import Path

import pytest

from legacymigrate.config import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_INSERT_CHUNK_SIZE,
    MigrationSettings,
    RunConfig,
    get_settings,
)
from legacymigrate.exceptions import ConfigurationError

ENV_VARS = (
    "PRODUCTION_DATABASE_URL",
    "DATABASE_URL",
    "BATCH_SIZE",
    "INSERT_CHUNK_SIZE",
    "WRITE_CONCURRENCY",
    "MIGRATION_STATE_DIR",
    "LOG_LEVEL",
    "ENABLE_TRACING",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> pytest.MonkeyPatch:
    """Unset every setting and run from a directory without a .env file."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestRunConfig:
    """Tests for RunConfig."""

    def test_defaults(self):
        """Test the default sizes."""
        config = RunConfig()
        assert config.batch_size == DEFAULT_BATCH_SIZE == 5000
        assert config.insert_chunk_size == DEFAULT_INSERT_CHUNK_SIZE == 1000
        assert config.write_concurrency == 1

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"batch_size": 0},
            {"insert_chunk_size": 0},
            {"write_concurrency": 0},
        ],
    )
    def test_rejects_non_positive_values(self, kwargs):
        """Test that every size must be positive."""
        with pytest.raises(ValueError):
            RunConfig(**kwargs)


class TestMigrationSettings:
    """Tests for MigrationSettings and get_settings."""

    def test_reads_environment(self, clean_env: pytest.MonkeyPatch):
        """Test that settings come from the documented variables."""
        clean_env.setenv("PRODUCTION_DATABASE_URL", "postgresql://legacy/db")
        clean_env.setenv("DATABASE_URL", "postgresql://new/db")
        clean_env.setenv("BATCH_SIZE", "250")
        clean_env.setenv("INSERT_CHUNK_SIZE", "50")

        settings = get_settings()

        assert settings.require_urls() == ("postgresql://legacy/db", "postgresql://new/db")
        assert settings.run_config() == RunConfig(batch_size=250, insert_chunk_size=50)

    def test_defaults(self, clean_env: pytest.MonkeyPatch):
        """Test defaults when nothing is set."""
        settings = MigrationSettings()
        assert settings.batch_size == 5000
        assert settings.insert_chunk_size == 1000
        assert settings.state_dir == Path("./scripts/migration")
        assert settings.log_level == "INFO"
        assert settings.enable_tracing is False

    def test_reads_dotenv_file(self, clean_env: pytest.MonkeyPatch, tmp_path: Path):
        """Test that a .env file in the working directory is honored."""
        (tmp_path / ".env").write_text("DATABASE_URL=sqlite:///target.db\nBATCH_SIZE=10\n")
        settings = get_settings()
        assert settings.target_database_url == "sqlite:///target.db"
        assert settings.batch_size == 10

    def test_overrides_take_precedence(self, clean_env: pytest.MonkeyPatch):
        """Test that keyword overrides beat the environment."""
        clean_env.setenv("BATCH_SIZE", "250")
        settings = get_settings(batch_size=2)
        assert settings.batch_size == 2

    def test_missing_urls_raise_configuration_error(self, clean_env: pytest.MonkeyPatch):
        """Test that both connection strings are required."""
        settings = get_settings()
        with pytest.raises(ConfigurationError) as exc_info:
            settings.require_urls()
        assert "PRODUCTION_DATABASE_URL" in str(exc_info.value)
        assert "DATABASE_URL" in str(exc_info.value)

    def test_invalid_value_raises_configuration_error(self, clean_env: pytest.MonkeyPatch):
        """Test that validation failures surface as ConfigurationError."""
        clean_env.setenv("BATCH_SIZE", "0")
        with pytest.raises(ConfigurationError):
            get_settings()

    def test_log_level_is_normalized(self, clean_env: pytest.MonkeyPatch):
        """Test that LOG_LEVEL is case-insensitive."""
        clean_env.setenv("LOG_LEVEL", " debug ")
        assert get_settings().log_level == "DEBUG"

    def test_unknown_log_level_raises_configuration_error(self, clean_env: pytest.MonkeyPatch):
        """Test that a misspelled LOG_LEVEL fails at startup."""
        clean_env.setenv("LOG_LEVEL", "verbose")
        with pytest.raises(ConfigurationError) as exc_info:
            get_settings()
        assert "verbose" in str(exc_info.value)
