"""
Configuration Settings.

This module defines the router configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.

The engine never reads these values on its own: callers build a ``Settings``
instance (or use the module-level ``settings``) and pass the derived pieces
(retry policy, adapters, ambient context) into the engine at startup.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class RetryPolicy(BaseModel):
    """Per-transport retry budget and linear backoff."""

    max_attempts_per_route: int = Field(
        default=1,
        ge=1,
        alias="GH_ROUTER_MAX_ATTEMPTS_PER_ROUTE",
        description="Attempts allowed on one transport before advancing to the next candidate",
    )
    backoff_ms: int = Field(
        default=200,
        ge=0,
        alias="GH_ROUTER_RETRY_BACKOFF_MS",
        description="Base delay; the n-th retry waits backoff_ms * n milliseconds",
    )

    model_config = {"populate_by_name": True, "extra": "ignore"}

    def delay_seconds(self, attempt_number: int) -> float:
        return (self.backoff_ms * attempt_number) / 1000.0


class GitHubConfig(BaseModel):
    """GitHub endpoint and credential configuration."""

    token: Optional[str] = Field(default=None, alias="GITHUB_TOKEN", description="Bearer token for GraphQL/REST")
    graphql_url: str = Field(
        default="https://api.github.com/graphql",
        alias="GITHUB_GRAPHQL_URL",
        description="GraphQL endpoint URL",
    )
    api_url: str = Field(default="https://api.github.com", alias="GITHUB_API_URL", description="REST API base URL")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class CliConfig(BaseModel):
    """GitHub CLI invocation configuration."""

    binary: str = Field(default="gh", alias="GH_ROUTER_CLI_BINARY", description="CLI executable name or path")
    max_output_bytes: int = Field(
        default=1_000_000,
        gt=0,
        alias="GH_ROUTER_CLI_MAX_OUTPUT_BYTES",
        description="Combined stdout/stderr ceiling before the process is killed",
    )

    model_config = {"populate_by_name": True, "extra": "ignore"}


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Router settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    # =====================================================================
    # Pydantic Configuration
    # =====================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Logging Configuration
    # =====================================================================
    log_level: str = Field(
        default="INFO",
        description="Router logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="GH_ROUTER_LOG_LEVEL",
    )
    log_format: str = Field(
        default="detailed",
        description="Log line format (simple, detailed, json)",
        alias="GH_ROUTER_LOG_FORMAT",
    )
    log_file_dir: str = Field(default="logs", description="Directory for file logging", alias="GH_ROUTER_LOG_FILE_DIR")
    enable_file_logging: bool = Field(
        default=False,
        description="Write DEBUG-level logs to <log_file_dir>/gh_router.log",
        alias="GH_ROUTER_ENABLE_FILE_LOGGING",
    )

    # =====================================================================
    # Execution Configuration
    # =====================================================================
    max_attempts_per_route: int = Field(default=1, ge=1, alias="GH_ROUTER_MAX_ATTEMPTS_PER_ROUTE")
    retry_backoff_ms: int = Field(default=200, ge=0, alias="GH_ROUTER_RETRY_BACKOFF_MS")
    default_timeout_ms: int = Field(
        default=10_000,
        gt=0,
        description="Per-attempt timeout used when a card declares none",
        alias="GH_ROUTER_DEFAULT_TIMEOUT_MS",
    )
    max_concurrency: int = Field(
        default=4,
        ge=1,
        description="Worker bound for repeat-over-collection steps and batches",
        alias="GH_ROUTER_MAX_CONCURRENCY",
    )
    enable_resolution_cache: bool = Field(default=True, alias="GH_ROUTER_ENABLE_RESOLUTION_CACHE")

    # =====================================================================
    # GitHub / CLI Configuration
    # =====================================================================
    github_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GITHUB_TOKEN", "GH_TOKEN"),
        description="Token used by the GraphQL and REST transports",
    )
    github_graphql_url: str = Field(default="https://api.github.com/graphql", alias="GITHUB_GRAPHQL_URL")
    github_api_url: str = Field(default="https://api.github.com", alias="GITHUB_API_URL")
    cli_binary: str = Field(default="gh", alias="GH_ROUTER_CLI_BINARY")
    cli_max_output_bytes: int = Field(default=1_000_000, gt=0, alias="GH_ROUTER_CLI_MAX_OUTPUT_BYTES")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def retry(self) -> RetryPolicy:
        """Get the retry policy from environment variables."""
        return RetryPolicy.model_validate(self.model_dump(by_alias=True))

    @property
    def github(self) -> GitHubConfig:
        """Get GitHub endpoint configuration from environment variables."""
        return GitHubConfig(
            token=self.github_token,
            graphql_url=self.github_graphql_url,
            api_url=self.github_api_url,
        )

    @property
    def cli(self) -> CliConfig:
        """Get CLI configuration from environment variables."""
        return CliConfig.model_validate(self.model_dump(by_alias=True))


settings = Settings()
