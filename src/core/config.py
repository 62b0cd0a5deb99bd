"""Configuration management for DFP bulk trafficking.

Provides Pydantic-based configuration classes for type-safe, validated configuration
management using environment variables.
"""

from pathlib import Path

import pytz
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DFP_API_VERSION = "v202411"
DFP_DEFAULT_APPLICATION_NAME = "DFP Bulk Trafficker"
DFP_DEFAULT_TIME_ZONE = "Europe/Oslo"
DFP_DEFAULT_DATE_FORMAT = "%m-%d-%Y, %H:%M:%S"


class DfpSettings(BaseSettings):
    """DFP network, credentials, cache and throughput configuration."""

    network_code: str = Field(default="", description="DFP network code")
    application_name: str = Field(default=DFP_DEFAULT_APPLICATION_NAME, description="Application name sent to DFP")
    api_version: str = Field(default=DFP_API_VERSION, description="DFP SOAP API version")

    # Credentials
    client_id: str = Field(default="", description="OAuth Client ID from Google Cloud Console")
    client_secret: str = Field(default="", description="OAuth Client Secret from Google Cloud Console")
    refresh_token: str | None = Field(default=None, description="OAuth refresh token to resume a session")
    service_account_json: str | None = Field(default=None, description="Service account credentials as JSON")
    service_account_key_file: str | None = Field(default=None, description="Path to service account JSON file")

    # Lookup cache
    cache_dir: Path = Field(default=Path("local"), description="Directory holding one store per cache namespace")
    strict_lookups: bool = Field(
        default=False, description="Fail lookups that match more than one entity instead of taking the first"
    )

    # Line item dates
    time_zone: str = Field(default=DFP_DEFAULT_TIME_ZONE, description="Time zone of line item start dates")
    date_format: str = Field(default=DFP_DEFAULT_DATE_FORMAT, description="strptime format of line item dates")

    # Throughput
    lookup_concurrency: int = Field(default=1, description="Remote lookups in flight at once")
    criteria_concurrency: int = Field(default=1, description="Criteria pairs resolved at once")
    preparation_concurrency: int = Field(default=3, description="Domain objects prepared at once")
    batch_concurrency: int = Field(default=1, description="Batches submitted at once")
    max_batch_size: int = Field(default=100, description="Domain objects per submitted batch")

    model_config = SettingsConfigDict(env_prefix="DFP_", case_sensitive=False)

    @field_validator("time_zone")
    @classmethod
    def validate_time_zone(cls, v):
        """Validate the time zone against the tz database."""
        try:
            pytz.timezone(v)
        except pytz.UnknownTimeZoneError as e:
            raise ValueError(f"Unknown time zone '{v}'") from e
        return v

    @field_validator(
        "lookup_concurrency", "criteria_concurrency", "preparation_concurrency", "batch_concurrency", "max_batch_size"
    )
    @classmethod
    def validate_positive(cls, v, info):
        if v < 1:
            raise ValueError(f"{info.field_name} must be at least 1")
        return v

    @field_validator("client_id")
    @classmethod
    def validate_client_id(cls, v):
        """Validate OAuth Client ID format (only if provided)."""
        if not v:
            return v
        if not v.endswith(".apps.googleusercontent.com"):
            raise ValueError("OAuth Client ID must end with '.apps.googleusercontent.com'")
        return v

    def auth_config(self) -> dict[str, str]:
        """Credentials as the dict consumed by DfpAuthManager."""
        config = {"client_id": self.client_id, "client_secret": self.client_secret}
        if self.refresh_token:
            config["refresh_token"] = self.refresh_token
        if self.service_account_json:
            config["service_account_json"] = self.service_account_json
        if self.service_account_key_file:
            config["service_account_key_file"] = self.service_account_key_file
        return config


# Global configuration instance
_config: DfpSettings | None = None


def get_config() -> DfpSettings:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = DfpSettings()
    return _config


def reset_config() -> None:
    """Drop the global configuration so the next access re-reads the environment."""
    global _config
    _config = None
