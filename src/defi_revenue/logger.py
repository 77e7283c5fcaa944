"""Logging setup for defi-revenue.

Results are written to files or stdout, so log lines always go to stderr.
"""

import logging
import os
import sys

# Finer than DEBUG: per-page indexer traffic and cache hits
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# Chatty at DEBUG; only shown at TRACE
NOISY_LOGGERS = ("web3", "urllib3", "backoff")

LEVEL_COLORS = {
    TRACE: "\033[90m",
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}


class ColoredFormatter(logging.Formatter):
    """Formatter that wraps the level name in ANSI colors."""

    RESET = "\033[0m"
    BOLD = "\033[1m"

    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().format(record)

        plain = record.levelname
        record.levelname = f"{color}{self.BOLD}{plain}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = plain


def resolve_level(log_level: str | None = None) -> int:
    """Numeric level for ``log_level``, falling back to $LOG_LEVEL, then INFO."""
    name = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    if name == "TRACE":
        return TRACE
    return getattr(logging, name, logging.INFO)


def setup_logging(log_level: str | None = None) -> None:
    """Configure the root logger.

    Colors are used only when stderr is a terminal. Below TRACE, the
    third-party loggers in ``NOISY_LOGGERS`` are held at WARNING.
    """
    level = resolve_level(log_level)

    handler = logging.StreamHandler(sys.stderr)
    formatter_cls = ColoredFormatter if sys.stderr.isatty() else logging.Formatter
    handler.setFormatter(
        formatter_cls(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logging.basicConfig(level=level, handlers=[handler], force=True)

    noisy_level = TRACE if level <= TRACE else max(level, logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module.

    Args:
        name: Usually __name__ of the calling module

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
