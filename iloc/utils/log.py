"""
Logging utilities for the iloc toolkit.

Provides unified structured logging:
- pretty console output via Rich
- structured (JSON) file output to `track.log` when running `iloc track`
"""

import logging
import sys
import json
from pathlib import Path

from rich.logging import RichHandler

# commands that run unattended and keep a JSON log next to the site DB
FILE_LOGGED_COMMANDS = ("track",)


class JSONFormatter(logging.Formatter):
    """
    Formatter that serializes log records to JSON.
    """
    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level":     record.levelname,
            "logger":    record.name,
            "message":   record.getMessage(),
        }
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record)


def get_logger(name: str, level: int | str = logging.INFO) -> logging.Logger:
    """
    Return a configured logger for the given name.

    Attaches:
    - a RichHandler for console output
    - when the command is 'track', a FileHandler writing JSON logs to {cwd}/track.log

    Parameters
    ----------
    name
        Logger name (typically __name__).
    level
        Log level (int or string), defaults to INFO.

    Returns
    -------
    logging.Logger
        Configured logger instance.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        # Console via Rich
        console_handler = RichHandler(rich_tracebacks=True)
        console_handler.setLevel(level)
        logger.addHandler(console_handler)

        # File output for long-running commands, as structured JSON
        command = next((a for a in sys.argv[1:] if not a.startswith("-")), None)
        if command in FILE_LOGGED_COMMANDS:
            log_path = Path.cwd() / f"{command}.log"
            file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
            file_handler.setLevel(level)
            file_handler.setFormatter(JSONFormatter())
            logger.addHandler(file_handler)

    return logger


def set_verbosity(verbose: bool) -> None:
    """
    Switch every already-created `iloc.*` logger (and its handlers) between
    INFO and DEBUG. Used by the CLI's `--verbose` flag.
    """
    level = logging.DEBUG if verbose else logging.INFO
    for name, logger in logging.Logger.manager.loggerDict.items():
        if not name.startswith("iloc") or not isinstance(logger, logging.Logger):
            continue
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)
