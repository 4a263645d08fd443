"""
Configuration management for the TelyX ingestion backend.

Uses Pydantic Settings for type-safe configuration with multiple sources:
- Environment variables (highest priority)
- .env file
- Defaults (lowest priority)
"""

import logging
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServiceConfig(BaseSettings):
    """HTTP front door configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SERVICE_",
        env_file=".env",
        env_file_encoding="utf-8"
    )

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    health_message: str = Field(
        default="TelyX Backend is running!",
        description="Message returned by the liveness probe",
    )


class OpenSearchConfig(BaseSettings):
    """Document store the ingested records are forwarded to."""

    model_config = SettingsConfigDict(
        env_prefix="OPENSEARCH_",
        env_file=".env",
        env_file_encoding="utf-8"
    )

    url: str = Field(
        default="http://opensearch:9200/logs/_doc",
        description="Index document endpoint receiving one POST per record",
    )
    timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Transport timeout for the forward call (httpx default)",
    )


class TracingConfig(BaseSettings):
    """OpenTelemetry trace provider configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TRACING_",
        env_file=".env",
        env_file_encoding="utf-8"
    )

    enabled: bool = Field(default=True, description="Export sampled spans")
    service_name: str = Field(default="telyx-backend")
    otlp_endpoint: str = Field(
        default="http://otel-collector:4318/v1/traces",
        description="OTLP/HTTP span receiver",
    )
    sampling_ratio: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Fraction of root spans recorded (children follow their parent)",
    )

    # Batch span processor
    max_queue_size: int = Field(default=2048, ge=1)
    max_export_batch_size: int = Field(default=512, ge=1)
    schedule_delay_millis: int = Field(default=5000, ge=1)
    shutdown_timeout_millis: int = Field(
        default=30000, ge=1, description="Bounded flush on shutdown"
    )

    @field_validator("max_export_batch_size")
    @classmethod
    def validate_batch_size(cls, v: int, info) -> int:
        max_queue_size = info.data.get("max_queue_size", 2048)
        if v > max_queue_size:
            raise ValueError(
                f"max_export_batch_size ({v}) must be <= max_queue_size ({max_queue_size})"
            )
        return v


class CORSConfig(BaseSettings):
    """CORS configuration for the dashboard front-end."""

    model_config = SettingsConfigDict(
        env_prefix="CORS_",
        env_file=".env",
        env_file_encoding="utf-8"
    )

    # Allowed origins (comma-separated for multiple origins)
    allowed_origins: str = Field(
        default="*", description="Comma-separated list of allowed origins (* for all, ONLY for dev)"
    )
    allowed_methods: str = Field(
        default="GET,POST,OPTIONS",
        description="Comma-separated list of allowed HTTP methods",
    )
    allowed_headers: str = Field(
        default="*", description="Comma-separated list of allowed headers (* for all)"
    )

    @property
    def origins_list(self) -> list[str]:
        """Parse comma-separated origins into list."""
        if self.allowed_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def methods_list(self) -> list[str]:
        """Parse comma-separated methods into list."""
        return [method.strip() for method in self.allowed_methods.split(",") if method.strip()]

    @property
    def headers_list(self) -> list[str]:
        """Parse comma-separated headers into list."""
        if self.allowed_headers == "*":
            return ["*"]
        return [header.strip() for header in self.allowed_headers.split(",") if header.strip()]


class LoggingConfig(BaseSettings):
    """Structured logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOGGING_",
        env_file=".env",
        env_file_encoding="utf-8"
    )

    # Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Minimum log level"
    )

    # Output format
    json_output: bool = Field(
        default=True, description="Use JSON output (True for production, False for development)"
    )

    # Console colorization (only for non-JSON output)
    colorized: bool = Field(
        default=False, description="Colorize console output (only for development)"
    )

    # Process diagnostics sink (empty string disables the file handler)
    log_file: str = Field(default="backend.log", description="Append-only diagnostics file")

    # Service metadata (injected into all logs)
    service_name: str = Field(
        default="telyx-backend", description="Service name for log aggregation"
    )
    service_version: str = Field(default="0.1.0", description="Service version")
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )


class Settings(BaseSettings):
    """Root configuration for the TelyX ingestion backend."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    opensearch: OpenSearchConfig = Field(default_factory=OpenSearchConfig)
    tracing: TracingConfig = Field(default_factory=TracingConfig)
    cors: CORSConfig = Field(default_factory=CORSConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def validate_configuration(self) -> None:
        """
        Validate cross-field constraints and log warnings.
        Called at application startup.
        """
        if not self.tracing.enabled:
            logging.warning("Tracing disabled - spans will not be sampled or exported")

        if self.tracing.sampling_ratio == 0.0:
            logging.warning("Tracing sampling ratio is 0 - no root spans will be recorded")

        if not self.opensearch.url.startswith(("http://", "https://")):
            logging.warning(f"OpenSearch URL has no http(s) scheme: {self.opensearch.url}")


# Global settings instance (lazy-loaded)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get global settings instance (singleton pattern).

    Returns:
        Settings: Application configuration
    """
    global _settings
    if _settings is None:
        _settings = Settings()
        _settings.validate_configuration()
    return _settings
