"""
Logging configuration.

Console logging through the standard library. Cycle diagnostics are emitted
as ``key=value`` pairs so they can be grepped and parsed by log shippers.
"""

import logging
import sys
from typing import Any

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Chatty third-party loggers that drown out cycle diagnostics at DEBUG level
_NOISY_LOGGERS = ("pymodbus", "httpx", "httpcore", "apscheduler.executors")


def setup_logging(log_level: str = "INFO") -> None:
    """
    Initialize logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        stream=sys.stdout,
        force=True,
    )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)


def kv(**fields: Any) -> str:
    """Render diagnostic context as space separated ``key=value`` pairs."""
    parts = []
    for key, value in fields.items():
        text = str(value)
        if " " in text or "=" in text or not text:
            text = '"' + text.replace('"', '\\"') + '"'
        parts.append(f"{key}={text}")
    return " ".join(parts)
