"""
Configuration management for appmgmt.

This module uses Pydantic's BaseSettings to manage configuration
through environment variables. A ``Settings`` value is built once per CLI
invocation and passed explicitly to whatever needs it.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings.

    These settings are loaded from environment variables prefixed with
    ``APPMGMT_`` or from a ``.env`` file.
    """

    # Microsoft Graph
    GRAPH_URL: str = "https://graph.microsoft.com"
    API_VERSION: str = "beta"  # identifier URI restrictions are beta-only
    ACCESS_TOKEN: str | None = None
    TIMEOUT_S: float = 30.0

    # Behaviour
    DRY_RUN: bool = False

    # Custom security attribute used for caller exemptions
    EXEMPTION_ATTRIBUTE_SET: str = "AppManagementExemptions"
    EXEMPTION_ATTRIBUTE_NAME: str = "ExemptFromRestriction"
    EXEMPTION_ATTRIBUTE_VALUE: str = "Exempt"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        env_prefix="APPMGMT_",
        extra="ignore",
    )

    @property
    def graph_base_url(self) -> str:
        return f"{self.GRAPH_URL.rstrip('/')}/{self.API_VERSION.strip('/')}"


def get_settings(**overrides) -> Settings:
    """Build settings from the environment, with explicit overrides applied."""
    return Settings(**{k: v for k, v in overrides.items() if v is not None})
