"""Unit tests for environment-driven configuration."""

from pathlib import Path

import pytest

from foundry.config import DEFAULT_LINEAR_ENDPOINT, FoundryConfig, LinearConfig
from foundry.errors import InvalidInputError


class TestFoundryConfig:
    """Root, backend and logging settings."""

    def test_defaults(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))

        config = FoundryConfig.from_env({})

        assert config.root == (Path.home() / ".foundry").resolve()
        assert config.backend == "local"
        assert config.log_level == "WARNING"
        assert config.log_file is None

    def test_foundry_home_overrides_root(self, tmp_path):
        config = FoundryConfig.from_env({"FOUNDRY_HOME": str(tmp_path / "ctx")})

        assert config.root == (tmp_path / "ctx").resolve()

    def test_reads_process_environment(self, foundry_home):
        config = FoundryConfig.from_env()

        assert config.root == foundry_home.resolve()

    def test_backend_is_case_insensitive(self, tmp_path):
        config = FoundryConfig.from_env({"FOUNDRY_HOME": str(tmp_path), "FOUNDRY_BACKEND": "Linear"})

        assert config.backend == "linear"

    def test_unknown_backend_rejected(self, tmp_path):
        with pytest.raises(InvalidInputError) as excinfo:
            FoundryConfig.from_env({"FOUNDRY_HOME": str(tmp_path), "FOUNDRY_BACKEND": "s3"})

        assert excinfo.value.field == "FOUNDRY_BACKEND"

    def test_log_settings(self, tmp_path):
        config = FoundryConfig.from_env({
            "FOUNDRY_HOME": str(tmp_path),
            "FOUNDRY_LOG_LEVEL": "debug",
            "FOUNDRY_LOG_FILE": str(tmp_path / "foundry.log"),
        })

        assert config.log_level == "DEBUG"
        assert config.log_file == tmp_path / "foundry.log"


class TestLinearConfig:
    """Linear credentials, team and retry settings."""

    def test_defaults(self):
        config = LinearConfig.from_env({})

        assert config.api_token is None
        assert config.endpoint == DEFAULT_LINEAR_ENDPOINT
        assert config.timeout_secs == 30
        assert config.max_retries == 5
        assert config.initial_backoff == 0.25
        assert config.backoff_multiplier == 2.0
        assert config.max_backoff == 30.0

    def test_token_falls_back_to_api_key(self):
        config = LinearConfig.from_env({"LINEAR_API_KEY": "  lin_api_123  "})

        assert config.api_token == "lin_api_123"

    def test_reads_team_and_retry_settings(self):
        config = LinearConfig.from_env({
            "LINEAR_API_TOKEN": "tok",
            "LINEAR_TEAM_KEY": "ENG",
            "LINEAR_HTTP_TIMEOUT_SECS": "5",
            "LINEAR_MAX_RETRIES": "2",
        })

        assert config.team_key == "ENG"
        assert config.timeout_secs == 5
        assert config.max_retries == 2

    def test_non_integer_setting_rejected(self):
        with pytest.raises(InvalidInputError):
            LinearConfig.from_env({"LINEAR_MAX_RETRIES": "many"})

    def test_negative_setting_rejected(self):
        with pytest.raises(InvalidInputError):
            LinearConfig.from_env({"LINEAR_HTTP_TIMEOUT_SECS": "-1"})

    def test_validate_reports_missing_settings(self):
        assert len(LinearConfig().validate()) == 2
        assert LinearConfig(api_token="tok", team_id="team-1").validate() == []
