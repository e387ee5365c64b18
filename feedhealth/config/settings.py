"""
FeedHealth Configuration System
===============================

Configuration management with environment variables and Pydantic models.
Environment variables override Field defaults with clear precedence. The
settings object is built once per run and handed to every component.
"""

from pathlib import Path
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from ..utils.exceptions import ConfigurationError, ErrorCode


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class MergePolicy(str, Enum):
    """How counts of feeds sharing one magazine are combined."""
    LAST_SUCCESS = "last_success"   # Later catalog entry overwrites earlier
    SUM = "sum"                     # Counts are added


class CatalogSettings(BaseModel):
    """Cloudant feed catalog configuration."""
    url: Optional[str] = Field(default=None, description="Cloudant service URL")
    db_name: Optional[str] = Field(default=None, description="Database holding publisher documents")
    username: Optional[str] = Field(default=None, description="Basic auth username")
    password: Optional[str] = Field(default=None, description="Basic auth password")
    bearer_token: Optional[str] = Field(default=None, description="Bearer token, used when no username is set")
    page_size: int = Field(default=200, ge=1, le=1000, description="Documents requested per _find page")
    request_timeout: int = Field(default=30, ge=1, le=300, description="Request timeout in seconds")

    @field_validator('url')
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip('/') if v else v


class CountServiceSettings(BaseModel):
    """Ingestion counting service configuration."""
    base_url: Optional[str] = Field(default=None, description="Base URL of the article database API")
    endpoint: str = Field(default="v2/get-article-by-ingestdate-magazine", description="Count endpoint path")
    api_key: Optional[str] = Field(default=None, description="API key sent as the apikey parameter")
    max_attempts: int = Field(default=10, ge=1, le=50, description="Attempts per feed before giving up")
    retry_delay_seconds: float = Field(default=1.0, ge=0.0, le=60.0, description="Fixed pause between attempts")
    request_timeout: int = Field(default=30, ge=1, le=300, description="Per-attempt timeout in seconds")

    @field_validator('base_url')
    @classmethod
    def ensure_trailing_slash(cls, v):
        """Endpoint paths are appended directly to the base URL."""
        if v and not v.endswith('/'):
            return v + '/'
        return v

    @property
    def count_url(self) -> str:
        return f"{self.base_url or ''}{self.endpoint}"


class ProcessingSettings(BaseModel):
    """Fetch and aggregation configuration."""
    max_concurrent_fetches: int = Field(default=10, ge=1, le=200, description="Concurrent count fetches")
    lookback_hours: int = Field(default=24, ge=1, le=168, description="Ingestion window length in hours")
    merge_policy: MergePolicy = Field(default=MergePolicy.LAST_SUCCESS, description="Duplicate magazine policy")


class OwnerSettings(BaseModel):
    """Salesforce owner resolver configuration."""
    token_url: Optional[str] = Field(default=None, description="OAuth token endpoint")
    client_id: Optional[str] = Field(default=None, description="Connected app client id")
    client_secret: Optional[str] = Field(default=None, description="Connected app client secret")
    refresh_token: Optional[str] = Field(default=None, description="Long-lived refresh token")
    instance_url: Optional[str] = Field(default=None, description="Salesforce REST base URL")
    api_version: str = Field(default="61.0", description="Salesforce REST API version")
    max_attempts: int = Field(default=3, ge=1, le=10, description="Attempts per owner query")
    retry_delay_seconds: float = Field(default=1.0, ge=0.0, le=60.0, description="Pause between query attempts")
    request_timeout: int = Field(default=30, ge=1, le=300, description="Request timeout in seconds")

    @field_validator('instance_url')
    @classmethod
    def ensure_trailing_slash(cls, v):
        if v and not v.endswith('/'):
            return v + '/'
        return v


class EmailSettings(BaseModel):
    """Brevo transactional email configuration."""
    api_url: str = Field(default="https://api.brevo.com/v3/smtp/email", description="Brevo send endpoint")
    api_key: Optional[str] = Field(default=None, description="Brevo API key")
    sender_name: str = Field(default="RSS Mailer", description="Sender display name")
    sender_email: Optional[str] = Field(default=None, description="Sender address")
    report_recipients: List[str] = Field(default_factory=list, description="Recipients of the daily report")
    reminder_recipients: List[str] = Field(default_factory=list, description="Copied on every paused feed reminder")
    reminder_bcc: List[str] = Field(default_factory=list, description="Blind-copied on every paused feed reminder")
    report_subject: str = Field(default="RSS Feed Health Status", description="Daily report subject")
    reminder_subject: str = Field(default="Paused Feed Reminder", description="Paused feed reminder subject")
    request_timeout: int = Field(default=30, ge=1, le=300, description="Request timeout in seconds")


class ReminderSettings(BaseModel):
    """Paused feed reminder configuration."""
    enabled: bool = Field(default=True, description="Send paused feed reminders")
    weekday: int = Field(default=4, ge=0, le=6, description="Weekday reminders go out (Monday=0, Friday=4)")
    override_publisher: str = Field(
        default="The New York Times",
        description="Publisher always looked up under its own name instead of the feed name",
    )


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default="logs/feedhealth.log", description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging")
    console_logging: bool = Field(default=True, description="Enable console logging")


class FeedHealthSettings(BaseSettings):
    """Main application settings."""

    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    count_service: CountServiceSettings = Field(default_factory=CountServiceSettings)
    processing: ProcessingSettings = Field(default_factory=ProcessingSettings)
    owners: OwnerSettings = Field(default_factory=OwnerSettings)
    email: EmailSettings = Field(default_factory=EmailSettings)
    reminders: ReminderSettings = Field(default_factory=ReminderSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    app_name: str = Field(default="FeedHealth", description="Application name")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "env_prefix": "FEEDHEALTH_",
        "extra": "ignore",
    }

    def validate_configuration(self) -> None:
        """Validate complete configuration.

        Raises:
            ConfigurationError: listing every missing or invalid setting
        """
        errors = []

        if not self.catalog.url:
            errors.append("Missing catalog URL (catalog.url)")
        if not self.catalog.db_name:
            errors.append("Missing catalog database name (catalog.db_name)")
        if not self.count_service.base_url:
            errors.append("Missing counting service URL (count_service.base_url)")
        if not self.count_service.api_key:
            errors.append("Missing counting service API key (count_service.api_key)")
        if not self.email.api_key:
            errors.append("Missing Brevo API key (email.api_key)")
        if not self.email.sender_email:
            errors.append("Missing sender address (email.sender_email)")
        if not self.email.report_recipients:
            errors.append("No report recipients configured (email.report_recipients)")

        if self.reminders.enabled:
            for key in ("token_url", "client_id", "client_secret", "refresh_token", "instance_url"):
                if not getattr(self.owners, key):
                    errors.append(f"Missing owner resolver setting (owners.{key})")

        if self.logging.file_path:
            try:
                Path(self.logging.file_path).parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Invalid log file path: {e}")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_MISSING,
            )

    def get_effective_log_level(self) -> str:
        """Get effective log level considering debug mode."""
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


def load_settings(validate: bool = True) -> FeedHealthSettings:
    """Load settings from environment variables and defaults.

    Args:
        validate: Run validate_configuration() on the loaded settings

    Returns:
        Loaded settings

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        settings = FeedHealthSettings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID
        ) from e

    if validate:
        settings.validate_configuration()

    return settings


_settings: Optional[FeedHealthSettings] = None


def get_settings(reload: bool = False, validate: bool = True) -> FeedHealthSettings:
    """Get global settings instance for the CLI entry point.

    Components never call this; they receive the settings object explicitly.

    Args:
        reload: Force reload of settings
        validate: Validate required settings when (re)loading

    Returns:
        Global settings instance
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings(validate=validate)

    return _settings
