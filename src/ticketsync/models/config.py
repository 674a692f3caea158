"""Configuration models for the ticket synchronizer."""

from enum import Enum

from pydantic import BaseModel, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DetailLevel(str, Enum):
    """How much of a record tree or ticket is shown."""

    TERSE = "terse"
    NORMAL = "normal"
    EXTRA = "extra"
    ALL = "all"


class RegistrationConfig(BaseModel):
    """Configuration for the Registration RESTful Web Service."""

    url: HttpUrl = Field(
        default="https://reg.arin.net", description="Base URL of the registration service"
    )
    api_key: str = Field(default="", description="API key sent with every request")
    timeout: float = Field(default=30.0, gt=0, description="Per request timeout in seconds")
    max_retries: int = Field(default=3, ge=0, le=10, description="Retries per remote call")

    @field_validator("api_key")
    @classmethod
    def normalize_api_key(cls, v: str) -> str:
        """API keys are case insensitive and issued in upper case."""
        return v.strip().upper()


class StorageConfig(BaseModel):
    """Configuration for local ticket storage."""

    data_dir: str = Field(
        default="~/.ticketsync", description="Directory holding tickets and sync state"
    )


class OutputConfig(BaseModel):
    """Configuration for human readable output."""

    auto_wrap: int | None = Field(
        default=80, ge=20, description="Wrap message text at this column; None disables"
    )
    detail: DetailLevel = Field(default=DetailLevel.NORMAL, description="Default detail level")


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    log_level: str = Field(
        default="WARNING",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=False,
        description="If True, output JSON logs. If False, use console format.",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional path to log file. If None, logs only to stderr.",
    )


class AppConfig(BaseSettings):
    """Main application configuration.

    Values may be overridden through environment variables with the
    ``TICKETSYNC_`` prefix, e.g. ``TICKETSYNC_REGISTRATION__API_KEY``.
    """

    model_config = SettingsConfigDict(
        env_prefix="TICKETSYNC_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    registration: RegistrationConfig = Field(default_factory=RegistrationConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
