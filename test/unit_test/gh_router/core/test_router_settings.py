"""Unit tests for the router settings model.

Tests verify that the Settings model binds environment variables and that the
grouped configuration models are derived consistently from it.
"""

import pytest
from pydantic import ValidationError

from gh_router.core.config import CliConfig, GitHubConfig, RetryPolicy, Settings


class TestSettingsBinding:
    """Test Settings model environment variable binding."""

    def test_defaults(self, monkeypatch):
        """Test defaults when nothing is configured."""
        for name in ("GITHUB_TOKEN", "GH_TOKEN", "GH_ROUTER_MAX_ATTEMPTS_PER_ROUTE", "GH_ROUTER_LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)
        assert settings.github_token is None
        assert settings.max_attempts_per_route == 1
        assert settings.retry_backoff_ms == 200
        assert settings.default_timeout_ms == 10_000
        assert settings.enable_resolution_cache is True
        assert settings.log_level == "INFO"

    @pytest.mark.parametrize("env_name", ["GITHUB_TOKEN", "GH_TOKEN"])
    def test_token_binding(self, env_name, monkeypatch):
        """Test both token variable names bind to github_token."""
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        monkeypatch.setenv(env_name, "ghp_from_env")

        settings = Settings(_env_file=None)
        assert settings.github_token == "ghp_from_env"

    def test_execution_binding(self, monkeypatch):
        """Test GH_ROUTER_* execution variables."""
        monkeypatch.setenv("GH_ROUTER_MAX_ATTEMPTS_PER_ROUTE", "4")
        monkeypatch.setenv("GH_ROUTER_RETRY_BACKOFF_MS", "50")
        monkeypatch.setenv("GH_ROUTER_MAX_CONCURRENCY", "8")
        monkeypatch.setenv("GH_ROUTER_ENABLE_RESOLUTION_CACHE", "false")

        settings = Settings(_env_file=None)
        assert settings.max_attempts_per_route == 4
        assert settings.retry_backoff_ms == 50
        assert settings.max_concurrency == 8
        assert settings.enable_resolution_cache is False

    def test_invalid_attempt_budget_rejected(self, monkeypatch):
        """Test the attempt budget must be positive."""
        monkeypatch.setenv("GH_ROUTER_MAX_ATTEMPTS_PER_ROUTE", "0")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)


class TestGroupedConfigs:
    """Test computed configuration groups."""

    def test_retry_policy(self):
        settings = Settings(_env_file=None, max_attempts_per_route=3, retry_backoff_ms=250)
        retry = settings.retry
        assert isinstance(retry, RetryPolicy)
        assert retry.max_attempts_per_route == 3
        assert retry.backoff_ms == 250

    def test_github_config(self):
        settings = Settings(_env_file=None, github_token="ghp_x", github_api_url="https://ghe.example/api/v3")
        github = settings.github
        assert isinstance(github, GitHubConfig)
        assert github.token == "ghp_x"
        assert github.api_url == "https://ghe.example/api/v3"
        assert github.graphql_url == "https://api.github.com/graphql"

    def test_cli_config(self):
        settings = Settings(_env_file=None, cli_binary="/usr/local/bin/gh", cli_max_output_bytes=2048)
        cli = settings.cli
        assert isinstance(cli, CliConfig)
        assert cli.binary == "/usr/local/bin/gh"
        assert cli.max_output_bytes == 2048


@pytest.mark.parametrize("attempt,expected", [(1, 0.2), (2, 0.4), (3, 0.6)])
def test_linear_backoff(attempt, expected):
    assert RetryPolicy(backoff_ms=200).delay_seconds(attempt) == pytest.approx(expected)
