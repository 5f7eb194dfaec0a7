"""
Nano Director Logging Configuration

Handlers are attached to each top-level ``nanodirector_*`` package logger;
modules log through ``logging.getLogger(__name__)``.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
VERBOSE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(funcName)s | %(message)s"

PACKAGE_LOGGERS = (
    "nanodirector_core_schemas",
    "nanodirector_gemini_client",
    "nanodirector_generators",
    "nanodirector_storage",
    "nanodirector_services",
    "nanodirector_cli",
    "nanodirector_api",
)


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Path] = None,
    verbose: bool = False,
    rich: bool = False,
    console: Optional[Console] = None,
) -> None:
    """
    Set up logging for every Nano Director package.

    Args:
        level: Minimum log level (name or number)
        log_file: Optional path to log file
        verbose: If True, use verbose format with line numbers
        rich: If True, log to the console through rich (CLI); otherwise to stderr
        console: Console for the rich handler (defaults to a stderr console)
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    log_format = VERBOSE_FORMAT if verbose else DEFAULT_FORMAT
    formatter = logging.Formatter(log_format, datefmt="%Y-%m-%d %H:%M:%S")

    handlers: list[logging.Handler] = []
    if rich:
        console_handler: logging.Handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=verbose,
            rich_tracebacks=True,
        )
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
    console_handler.setLevel(level)
    handlers.append(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    for name in PACKAGE_LOGGERS:
        package_logger = logging.getLogger(name)
        package_logger.setLevel(level)
        package_logger.handlers.clear()
        for handler in handlers:
            package_logger.addHandler(handler)
        package_logger.propagate = False

    logging.getLogger("nanodirector_services").debug(
        "Logging initialized - Level: %s, Verbose: %s", logging.getLevelName(level), verbose
    )
