"""Database configuration logging for connection startup."""

from loguru import logger
from sqlalchemy.engine import make_url

from user_records.config.settings import DatabaseSettings, settings


def redact_url(url: str) -> str:
    """Render a connection URL with the password masked."""
    return make_url(url).render_as_string(hide_password=True)


def log_database_configuration(db_settings: DatabaseSettings) -> None:
    """Log database configuration when a connection is established.

    Called from db_config.connect(). Credentials are never written to logs.
    """
    url = make_url(db_settings.url)

    logger.info("-" * 80)
    if settings.env == "production":
        logger.info("🔒 PRODUCTION MODE")
    else:
        logger.info("🔧 DEVELOPMENT MODE")

    logger.info(f"Backend:  {url.get_backend_name()} (driver: {url.get_driver_name()})")
    logger.info(f"Database: {redact_url(db_settings.url)}")

    if db_settings.is_sqlite:
        logger.info(f"SQLite busy timeout: {db_settings.busy_timeout_ms} ms (WAL journal)")
    if db_settings.echo:
        logger.info("⚠️  SQL echo: ENABLED")
    if db_settings.options:
        logger.info(f"Engine options: {', '.join(sorted(db_settings.options))}")

    logger.info("-" * 80)
