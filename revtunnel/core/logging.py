"""
Rich-based logging for the tunnel tool
"""
import logging
from typing import Optional
from pathlib import Path

from rich.logging import RichHandler
from rich.console import Console
from rich.traceback import install as install_traceback


# Consoles resolve sys.stdout / sys.stderr when writing, so captured
# streams (tests, CliRunner) see the output
_stdout_console = Console()
_stderr_console = Console(stderr=True)

install_traceback(show_locals=False, width=120)

FILE_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# paramiko logs every channel open and SFTP session at INFO
_CHATTY_LOGGERS = ("paramiko", "paramiko.transport", "paramiko.sftp")


def _console_handler(level: int, rich_tracebacks: bool) -> logging.Handler:
    handler = RichHandler(
        console=_stderr_console,
        show_path=False,
        rich_tracebacks=rich_tracebacks,
        markup=True,
    )
    handler.setLevel(level)
    return handler


def _file_handler(path: Path, level: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    rich_tracebacks: bool = True,
) -> None:
    """
    Route all records to stderr through rich, and optionally to a file.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL); unknown names fall back to INFO
        log_file: Plain-text log file, parent directories are created
        rich_tracebacks: Render exception tracebacks with rich
    """
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO

    root = logging.getLogger()
    root.setLevel(numeric)
    root.handlers.clear()
    root.addHandler(_console_handler(numeric, rich_tracebacks))
    if log_file:
        root.addHandler(_file_handler(log_file, numeric))

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_stdout_console() -> Console:
    """Console for user-facing phase output"""
    return _stdout_console


def get_stderr_console() -> Console:
    """Console for errors (shared with the log handler)"""
    return _stderr_console
