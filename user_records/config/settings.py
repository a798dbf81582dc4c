"""
Application settings using Pydantic Settings v2.

Environment variables are loaded from .env file and can be overridden
by actual environment variables.
"""

from pathlib import Path
from typing import Annotated, Any

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

VALID_LOG_LEVELS = ("debug", "info", "warning", "error", "critical")
VALID_LOG_FORMATS = ("text", "json")


def find_env_file() -> str:
    """
    Find .env file in current directory or parent directory.

    Returns:
        Path to .env file (current dir, parent dir, or default ".env")
    """
    current = Path.cwd() / ".env"
    parent = Path.cwd().parent / ".env"

    if current.exists():
        return str(current)
    elif parent.exists():
        return str(parent)
    else:
        # Fallback to default (will use environment variables only)
        return ".env"


class DatabaseSettings(BaseSettings):
    """Database connection configuration.

    `uri` takes precedence. Without it, a SQLite file at `sqlite_path` is used
    through the aiosqlite driver.
    """

    uri: Annotated[
        str | None,
        Field(
            default=None,
            description="Async SQLAlchemy connection URI (e.g. postgresql+asyncpg://...)",
            validation_alias="USER_RECORDS_DATABASE_URI",
        ),
    ]
    sqlite_path: Annotated[
        str,
        Field(
            default=".dbdata/sqlite/user_records.db",
            description="Path to SQLite database file (used when no URI is set)",
            validation_alias="USER_RECORDS_SQLITE_PATH",
        ),
    ]
    echo: Annotated[
        bool,
        Field(
            default=False,
            description="Log every SQL statement emitted by the engine",
            validation_alias="USER_RECORDS_DATABASE_ECHO",
        ),
    ]
    busy_timeout_ms: Annotated[
        int,
        Field(
            default=5000,
            ge=0,
            le=600000,
            description="SQLite busy timeout in milliseconds",
            validation_alias="USER_RECORDS_SQLITE_BUSY_TIMEOUT_MS",
        ),
    ]
    options: Annotated[
        dict[str, Any],
        Field(
            default_factory=dict,
            description="Extra keyword arguments for create_async_engine (JSON in env)",
            validation_alias="USER_RECORDS_DATABASE_OPTIONS",
        ),
    ]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def url(self) -> str:
        """Connection URL for the async SQLAlchemy engine.

        Returns:
            The configured URI, or a SQLite URL with an absolute path.
        """
        if self.uri:
            return self.uri

        # Resolve to absolute path (handles relative paths from any working directory)
        abs_path = Path(self.sqlite_path).resolve()
        # Ensure parent directory exists
        abs_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite+aiosqlite:///{abs_path}"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_sqlite(self) -> bool:
        """True when the engine talks to SQLite. Never touches the filesystem."""
        if self.uri:
            return self.uri.startswith("sqlite")
        return True

    model_config = SettingsConfigDict(
        env_file=find_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class AppSettings(BaseSettings):
    """Main application settings"""

    # Environment
    env: Annotated[
        str,
        Field(
            default="development",
            description="Environment (development/production)",
            validation_alias="USER_RECORDS_ENV",
        ),
    ]

    # Logging
    log_level: Annotated[
        str,
        Field(
            default="info",
            description="Log level: debug, info, warning, error, critical",
            validation_alias="USER_RECORDS_LOG_LEVEL",
        ),
    ]
    log_format: Annotated[
        str,
        Field(
            default="json",
            description="Log format: json, text",
            validation_alias="USER_RECORDS_LOG_FORMAT",
        ),
    ]

    default_collection: Annotated[
        str,
        Field(
            default="users",
            min_length=1,
            description="Collection (table) name used when none is given",
            validation_alias="USER_RECORDS_COLLECTION",
        ),
    ]

    # Nested settings
    database: Annotated[
        DatabaseSettings, Field(default_factory=DatabaseSettings, description="Database settings")
    ]

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level.

        Accepts the loguru spelling "warn" as an alias of "warning".
        """
        if not isinstance(v, str):
            raise TypeError(f"Expected str, got {type(v)}")

        level = v.strip().lower()
        if level == "warn":
            level = "warning"
        if level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"USER_RECORDS_LOG_LEVEL must be one of {', '.join(VALID_LOG_LEVELS)}. Got: {v}"
            )
        return level

    @field_validator("log_format", mode="before")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Normalize and validate the log format."""
        if not isinstance(v, str):
            raise TypeError(f"Expected str, got {type(v)}")

        log_format = v.strip().lower()
        if log_format not in VALID_LOG_FORMATS:
            raise ValueError(
                f"USER_RECORDS_LOG_FORMAT must be one of {', '.join(VALID_LOG_FORMATS)}. Got: {v}"
            )
        return log_format

    model_config = SettingsConfigDict(
        env_file=find_env_file(),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


# Global settings instance (singleton, loaded once at import)
settings = AppSettings()
