"""Logging setup for screenpager.

Every module logs through ``logging.getLogger(__name__)``, so the
package logger and its per-component children (``screenpager.scheduler``,
``screenpager.extraction.openai``, ...) are configured here.
"""

from __future__ import annotations

import logging
import sys

from screenpager.config.settings import LoggingConfig

PACKAGE_LOGGER = "screenpager"


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {name}")
    return level


def component_logger_name(component: str) -> str:
    """Map ``"scheduler"`` to ``"screenpager.scheduler"``."""
    if component == PACKAGE_LOGGER or component.startswith(PACKAGE_LOGGER + "."):
        return component
    return f"{PACKAGE_LOGGER}.{component}"


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure the screenpager loggers.

    Installs a stderr handler (and a file handler when ``config.file`` is
    set) on the package logger, applies per-component levels and holds the
    listed client libraries at WARNING. Calling it again replaces the
    handlers it installed previously.

    Raises:
        ValueError: If a configured level name is unknown.
    """
    if config is None:
        config = LoggingConfig()

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(_level(config.level))

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(config.format)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.file:
        handlers.append(logging.FileHandler(config.file))
    for handler in handlers:
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)

    for component, level in config.components.items():
        logging.getLogger(component_logger_name(component)).setLevel(_level(level))

    for name in config.quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

    package_logger.info("Logging initialized at %s level", config.level.upper())
