"""Configuration management with Pydantic settings."""

from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

AuthType = Literal["none", "basic", "api_key"]
BackendName = Literal["elasticsearch", "memory"]


class Settings(BaseSettings):
    """IndexLens configuration settings.

    Precedence: CLI flag > environment variable > .env file > defaults.
    Credentials are read from the environment only and never written to disk.
    """

    model_config = SettingsConfigDict(
        env_prefix="INDEXLENS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Connection
    url: str = Field(
        default="http://localhost:9200",
        description="Base URL of the search cluster",
    )

    backend: BackendName = Field(
        default="elasticsearch",
        description="Backend adapter: elasticsearch or memory (in-process)",
    )

    auth_type: AuthType = Field(
        default="none",
        description="Authentication scheme: none, basic, or api_key",
    )

    username: str | None = Field(
        default=None,
        description="Username for basic authentication",
    )

    password: SecretStr | None = Field(
        default=None,
        description="Password for basic authentication",
    )

    api_key: SecretStr | None = Field(
        default=None,
        description="Encoded API key sent as 'Authorization: ApiKey <key>'",
    )

    verify_certs: bool = Field(
        default=True,
        description="Verify TLS certificates of the cluster",
    )

    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        description="Per-request timeout for backend calls (seconds)",
    )

    # View refresh behaviour
    refresh_inactive_views: bool = Field(
        default=False,
        description="Refresh invalidated views in the background after a mutation",
    )

    log_level: str = Field(
        default="WARNING",
        description="Root log level applied by the CLI",
    )

    def get_auth(self) -> tuple[str, str] | None:
        """Return basic-auth credentials, or None for other schemes.

        Raises:
            ValueError: If basic auth is selected without a username and password
        """
        if self.auth_type != "basic":
            return None
        if not self.username or self.password is None:
            raise ValueError(
                "Basic authentication requires INDEXLENS_USERNAME and INDEXLENS_PASSWORD."
            )
        return (self.username, self.password.get_secret_value())

    def get_headers(self) -> dict[str, str]:
        """Return default request headers including API-key authorization."""
        headers = {"Content-Type": "application/json"}
        if self.auth_type == "api_key":
            if self.api_key is None:
                raise ValueError("API key authentication requires INDEXLENS_API_KEY.")
            headers["Authorization"] = f"ApiKey {self.api_key.get_secret_value()}"
        return headers


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Set the global settings instance (useful for testing)."""
    global _settings
    _settings = settings
