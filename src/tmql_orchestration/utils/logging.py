"""
Logging configuration for tmql-orchestration.

All library loggers live under the ``tmql`` hierarchy (``tmql.project``,
``tmql.executor``, ...). Nothing is configured on import; applications call
``setup_logging`` or ``setup_logging_from_config`` (the CLI does).
"""

import logging
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "tmql"


class FileFormatter(logging.Formatter):
    """Formatter for file logs - clean and parseable."""

    def __init__(self) -> None:
        super().__init__(fmt="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")


class ConsoleFormatter(logging.Formatter):
    """Plain console format: ``LEVEL: time - msg``, with file:line for errors."""

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        where = ""
        if record.levelno >= logging.ERROR and record.pathname:
            where = f"{Path(record.pathname).name}:{record.lineno} - "
        message = f"{record.levelname}: {self.formatTime(record)} - {where}{record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _parse_level(level: str | int | None) -> int:
    """
    Parse logging level from string or int.

    Unknown names fall back to INFO.
    """
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        return LEVEL_MAP.get(level.upper(), logging.INFO)
    return logging.INFO


def setup_logging(
    level: str | int = logging.INFO,
    log_file: str | Path | None = None,
    format_string: str | None = None,
    file_mode: str = "a",
    console: Console | None = None,
    console_enabled: bool = True,
    use_rich: bool = True,
) -> logging.Logger:
    """
    Configure the ``tmql`` logger.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: Logging level as string (DEBUG, INFO, etc.) or int (default: INFO)
        log_file: Optional file path to write logs to (default: console only)
        format_string: Optional format for the plain console handler
        file_mode: 'a' to append, 'w' to overwrite (default: 'a')
        console: Optional Rich Console for the console handler
        console_enabled: Whether to log to the console at all
        use_rich: Use a RichHandler instead of a plain stream handler

    Returns:
        The ``tmql`` logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    level_int = _parse_level(level)
    logger.setLevel(level_int)

    if console_enabled:
        if use_rich:
            handler: logging.Handler = RichHandler(
                level=level_int,
                console=console or Console(stderr=True),
                show_path=False,
                markup=False,
                rich_tracebacks=True,
                tracebacks_show_locals=False,
                log_time_format="[%X]",
                omit_repeated_times=False,
            )
        else:
            handler = logging.StreamHandler(sys.stderr)
            handler.setLevel(level_int)
            handler.setFormatter(logging.Formatter(format_string) if format_string else ConsoleFormatter())
        logger.addHandler(handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode=file_mode)
        # The logger level still filters; the file takes everything that passes
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(FileFormatter())
        logger.addHandler(file_handler)

    return logger


def setup_logging_from_config(
    config: Mapping[str, Any] | Any,
    project_dir: Path | None = None,
    console: Console | None = None,
) -> logging.Logger:
    """
    Configure logging from the ``logging`` section of a project config.

    Recognised keys: ``level``, ``file``, ``file_mode``, ``format``,
    ``console_enabled``, ``console_type`` (``rich`` or ``plain``).

    Args:
        config: Config container or mapping holding a ``logging`` section
        project_dir: Base directory for a relative log file path
        console: Optional Rich Console for the console handler

    Returns:
        The ``tmql`` logger
    """
    data = getattr(config, "data", config) or {}
    section = data.get("logging") or {}

    log_file = section.get("file")
    if log_file and project_dir is not None and not Path(log_file).is_absolute():
        log_file = Path(project_dir) / log_file

    console_enabled = section.get("console_enabled", True)
    return setup_logging(
        level=section.get("level", logging.INFO),
        log_file=log_file,
        format_string=section.get("format"),
        file_mode=section.get("file_mode", "a"),
        console=console,
        console_enabled=console_enabled,
        use_rich=section.get("console_type", "rich") == "rich",
    )


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (default: "tmql"); use ``tmql.<component>``

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
