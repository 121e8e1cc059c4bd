"""
Client Configuration - Pydantic Settings for type-safe config.

NO DICTIONARIES - All configuration is strongly typed.
FAIL FAST - Invalid config is rejected when settings are loaded.
"""

import base64
import binascii
import sys

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Billing client settings loaded from PLAYBILLING_* environment variables."""

    # Application identity
    package_name: str = ""  # e.g. "com.example.game"

    # Base64 DER public key from the store console. Empty disables signature checks.
    license_key: str = ""

    # Remote billing service
    service_base_url: str = "http://localhost:8080"
    service_timeout_seconds: float = 30.0

    # Durable preference storage (any SQLAlchemy URL)
    preferences_url: str = "sqlite:///playbilling.db"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    service_name: str = "playbilling"
    version: str = "0.1.0"

    model_config = SettingsConfigDict(
        env_prefix="PLAYBILLING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate configuration when it is loaded.

        A license key that does not decode would silently fail every
        signature check at purchase time, so it is rejected here instead.
        """
        errors: list[str] = []

        if self.license_key:
            try:
                base64.b64decode(self.license_key, validate=True)
            except (binascii.Error, ValueError):
                errors.append("LICENSE_KEY is not valid base64")

        if self.log_format not in ("json", "console"):
            errors.append(f"LOG_FORMAT must be 'json' or 'console', got: {self.log_format}")

        if self.service_timeout_seconds <= 0:
            errors.append(
                f"SERVICE_TIMEOUT_SECONDS must be positive, got: {self.service_timeout_seconds}"
            )

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "BILLING CLIENT CONFIGURATION ERROR",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    @property
    def signature_checks_enabled(self) -> bool:
        """Whether purchases will be verified against the license key."""
        return bool(self.license_key)


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get client settings instance."""
    return settings
