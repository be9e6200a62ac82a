"""
Application Configuration - Pydantic Settings for type-safe config.

NO DICTIONARIES - All configuration is strongly typed.
FAIL FAST - Gateway credentials and the database URL are validated at startup.
"""

import sys
from dataclasses import dataclass

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration - NO DEFAULT for production safety
    database_url: str = ""
    database_pool_size: int = 10
    database_max_overflow: int = 5
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600
    run_migrations_on_startup: bool = False

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_title: str = "Paygate API"
    api_version: str = "0.1.0"
    api_description: str = "Przelewy24 checkout and subscription activation"

    # Public base URL of the application (urlReturn / urlStatus are built from it)
    app_base_url: str = ""

    # Przelewy24
    p24_merchant_id: int = 0
    p24_pos_id: int = 0
    p24_crc: str = ""  # Shared secret used in the sign digests
    p24_api_key: str = ""  # Report key, used for HTTP basic auth
    p24_sandbox: bool = True
    p24_timeout_seconds: float = 10.0

    # Optional secondary webhook signature (X-Webhook-Signature: sha256=<hex>)
    webhook_signature_secret: str = ""

    # Session tokens issued by the auth service
    session_jwt_secret: str = ""
    session_jwt_algorithm: str = "HS256"

    # Confirmation email (Resend)
    resend_api_key: str = ""
    email_from: str = "Paygate <noreply@paygate.local>"
    email_timeout_seconds: float = 10.0

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability
    metrics_enabled: bool = True
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "paygate-api"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        A misconfigured gateway produces signatures the gateway rejects, which
        only shows up once real customers try to pay.
        """
        errors: list[str] = []

        if not self.database_url:
            errors.append("DATABASE_URL is required but empty or missing")
        elif not self.database_url.startswith(("postgresql", "postgres")):
            errors.append(
                f"DATABASE_URL must be a PostgreSQL URL, got: {self.database_url[:20]}..."
            )

        if self.p24_merchant_id <= 0:
            errors.append("P24_MERCHANT_ID must be a positive integer")
        if self.p24_pos_id <= 0:
            errors.append("P24_POS_ID must be a positive integer")
        if not self.p24_crc:
            errors.append("P24_CRC is required but empty or missing")
        if not self.p24_api_key:
            errors.append("P24_API_KEY is required but empty or missing")
        if self.p24_timeout_seconds <= 0:
            errors.append("P24_TIMEOUT_SECONDS must be positive")

        if not self.app_base_url:
            errors.append("APP_BASE_URL is required but empty or missing")
        elif not self.app_base_url.startswith(("http://", "https://")):
            errors.append(f"APP_BASE_URL must be an http(s) URL, got: {self.app_base_url}")

        if not self.session_jwt_secret:
            errors.append("SESSION_JWT_SECRET is required but empty or missing")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
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
    def return_url(self) -> str:
        """Where the gateway sends the customer after paying."""
        return f"{self.app_base_url.rstrip('/')}/dashboard?payment=success"

    @property
    def status_url(self) -> str:
        """Where the gateway delivers settlement notifications."""
        return f"{self.app_base_url.rstrip('/')}/api/payments/webhook"

    @property
    def accepts_unsigned_webhooks(self) -> bool:
        """
        Production gateway without a secondary webhook signature secret.

        Any caller knowing a live session id can then trigger a verify call,
        and a definite gateway rejection fails that intent permanently.
        """
        return not self.p24_sandbox and not self.webhook_signature_secret


@dataclass(frozen=True)
class GatewayConfig:
    """Przelewy24 credentials, built once at process start and injected."""

    merchant_id: int
    pos_id: int
    crc: str
    api_key: str
    sandbox: bool = True
    timeout_seconds: float = 10.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "GatewayConfig":
        return cls(
            merchant_id=settings.p24_merchant_id,
            pos_id=settings.p24_pos_id,
            crc=settings.p24_crc,
            api_key=settings.p24_api_key,
            sandbox=settings.p24_sandbox,
            timeout_seconds=settings.p24_timeout_seconds,
        )

    @property
    def api_base_url(self) -> str:
        if self.sandbox:
            return "https://sandbox.przelewy24.pl/api/v1"
        return "https://secure.przelewy24.pl/api/v1"

    @property
    def redirect_base_url(self) -> str:
        if self.sandbox:
            return "https://sandbox.przelewy24.pl"
        return "https://przelewy24.pl"

    def __repr__(self) -> str:
        # Keep the CRC and API key out of logs and tracebacks
        return (
            f"GatewayConfig(merchant_id={self.merchant_id}, pos_id={self.pos_id}, "
            f"sandbox={self.sandbox})"
        )


# Global settings instance - validates at import time
settings = Settings()
