"""Logging utilities with rich output for the attribution tools.

Every module logs through a logger obtained here so that CLI output,
debug traces of attribution reconstruction and pytest's ``caplog`` all
see the same records.

Usage:
    from common.logger import get_logger

    logger = get_logger(__name__)
    logger.debug("Loaded authorship log for abc1234")
    logger.warning("Skipping undecodable note blob")
"""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

# Shared consoles: stdout for reports, stderr for diagnostics
console = Console()
err_console = Console(stderr=True)


def _rich_handler(show_time: bool = False, show_path: bool = False) -> RichHandler:
    handler = RichHandler(
        console=err_console,
        show_time=show_time,
        show_path=show_path,
        rich_tracebacks=True,
        markup=True,
    )
    handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%X]"))
    return handler


def get_logger(
    name: str,
    level: str | None = None,
    show_time: bool = False,
    show_path: bool = False,
) -> logging.Logger:
    """Get a configured logger with rich output.

    Args:
        name: Logger name (typically __name__ of the module)
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               If None, uses environment variable LOG_LEVEL or defaults to INFO.
        show_time: Show timestamp in log output
        show_path: Show file path in log output

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO").upper()

    logger.setLevel(level)
    logger.addHandler(_rich_handler(show_time=show_time, show_path=show_path))

    # Propagate so pytest caplog can capture records
    logger.propagate = True

    return logger


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Configure the root logger once at a CLI entry point.

    Args:
        level: Default logging level for all modules
        log_file: Optional file path to also log to a file
    """
    level = os.getenv("LOG_LEVEL", level).upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(_rich_handler())

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root_logger.addHandler(file_handler)


def progress(message: str) -> None:
    """Print a progress message to stderr without a logger prefix."""
    err_console.print(message)


def success(message: str) -> None:
    """Print a success message with a green checkmark."""
    err_console.print(f"[green]✓[/green] {message}")


def warning(message: str) -> None:
    """Print a warning message with a yellow warning icon."""
    err_console.print(f"[yellow]⚠[/yellow] {message}")


def error(message: str) -> None:
    """Print an error message with a red X icon.

    Example:
        >>> error("Could not resolve commit: nope")
        ✗ Could not resolve commit: nope
    """
    err_console.print(f"[red]✗[/red] {message}")
