"""
Logging configuration using loguru.

The package itself only emits through `loguru.logger`; applications embedding
it call `setup_logging()` once at startup to choose level, format and sink.
Batch execution logs carry `collection` and `action` extras.
"""

import sys
from typing import Any, TextIO

from loguru import logger

from user_records.config.settings import settings

TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def _text_formatter(record: dict) -> str:
    """Text format with a `[collection:action]` prefix when bound.

    Any other extras are appended at the end, so plain messages stay plain.
    """
    extra = record["extra"]
    fmt = TEXT_FORMAT
    if "collection" in extra:
        scope = "{extra[collection]}"
        if "action" in extra:
            scope += ":{extra[action]}"
        fmt = fmt.replace("<level>{message}", f"<magenta>[{scope}]</magenta> <level>{{message}}")

    if set(extra) - {"collection", "action"}:
        fmt += " | {extra}"

    return fmt + "\n{exception}"


def setup_logging(
    level: str | None = None,
    log_format: str | None = None,
    sink: TextIO | Any = None,
) -> int:
    """Replace loguru's default handler with one configured for this package.

    Args:
        level: Override for USER_RECORDS_LOG_LEVEL
        log_format: Override for USER_RECORDS_LOG_FORMAT ("text" or "json")
        sink: Anything loguru accepts as a sink; stdout by default

    Returns:
        The loguru handler id, for callers that want to remove it later
    """
    logger.remove()

    level = (level or settings.log_level).upper()
    log_format = (log_format or settings.log_format).lower()
    sink = sink if sink is not None else sys.stdout

    if log_format == "text":
        handler_id = logger.add(sink, format=_text_formatter, level=level, colorize=True)
    else:
        # One JSON object per line
        handler_id = logger.add(sink, format="{message}", level=level, serialize=True)

    logger.debug(f"Logging configured (level={level}, format={log_format})")
    return handler_id
