"""Application Configuration: environment-driven settings via pydantic-settings.

Invariants:
    - Settings are read once at process entry and passed explicitly to the server
    - A Settings value is frozen; there is no runtime reconfiguration
    - Every field has a default, so the service starts with an empty environment
    - The service name is not a setting; only the version is configurable

Design Decisions:
    - No env prefix: PORT, HOST and ENVIRONMENT follow the platform conventions the service is deployed under
    - frozen=True over a cached singleton: the value is built once at entry and passed down explicitly
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from optimus import __version__


class Settings(BaseSettings):
    """Process-wide configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, frozen=True, extra="ignore",
    )

    # Service identity
    version: str = __version__
    environment: str = "development"

    # Listener
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=0, le=65535)

    # Request pipeline
    body_limit_bytes: int = Field(default=100 * 1024, gt=0)
    rule_engine: str = "optimus.services.rule_engine:passthrough"

    # Observability
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"
    metrics_port: int | None = Field(default=None, ge=0, le=65535)

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


def load_settings(**overrides) -> Settings:
    """Build the settings value; explicit overrides win over the environment."""
    return Settings(**overrides)
