"""
Utility functions for flcmd.

Includes logging setup, progress formatting and console output.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape


# Global console for pretty output
console = Console()

LOGGER_NAME = "flcmd"

# Message severity (0 = always shown, 2 = chatty) -> logging level.
# Severity 0 logs at WARNING so it passes the --verbosity 0 threshold.
SEVERITY_LEVELS = {0: logging.WARNING, 1: logging.INFO, 2: logging.DEBUG}


def verbosity_to_level(verbosity: int) -> int:
    """
    Map the --verbosity flag to a logging level.

    Lower verbosity means fewer logs: 0 shows warnings and errors only,
    1 adds progress, 2 and above add per-step detail.
    """
    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def severity_to_level(severity: int) -> int:
    """Map a message severity to the level it is logged at."""
    return SEVERITY_LEVELS.get(severity, logging.DEBUG)


def setup_logging(verbosity: int = 1, log_file: Optional[Path] = None, console_output: bool = True) -> logging.Logger:
    """
    Set up the flcmd logger.

    Args:
        verbosity: Verbosity level from the command line
        log_file: Optional path for a JSON-lines log file
        console_output: Also log to console

    Returns:
        Configured logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(verbosity_to_level(verbosity))
    logger.handlers = []  # Clear existing handlers

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    if console_output:
        console_handler = RichHandler(console=console, rich_tracebacks=True, show_time=False, show_path=False)
        console_handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(console_handler)

    return logger


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add extra fields if present
        if hasattr(record, "event"):
            log_data["event"] = record.event
        if hasattr(record, "metadata"):
            log_data["metadata"] = record.metadata

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def progress_prefix(tag: str, current: int, total: int) -> str:
    """Return the `[tag][Progress][current/total]` line prefix."""
    return f"{tag}[Progress][{current}/{total}]"


def format_duration(seconds: float) -> str:
    """
    Format duration in seconds to human-readable string.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string (e.g., "1m 23s", "45s", "0.42s")
    """
    if seconds < 1:
        return f"{seconds:.2f}s"
    if seconds < 60:
        return f"{int(seconds)}s"

    minutes = int(seconds // 60)
    remaining_seconds = int(seconds % 60)

    if minutes < 60:
        return f"{minutes}m {remaining_seconds}s"

    hours = minutes // 60
    remaining_minutes = minutes % 60
    return f"{hours}h {remaining_minutes}m {remaining_seconds}s"


def print_success(message: str) -> None:
    """Print success message to console."""
    console.print(f"[bold green]✓[/bold green] {escape(message)}")


def print_error(message: str) -> None:
    """Print error message to console."""
    console.print(f"[bold red]✗[/bold red] {escape(message)}")


def print_warning(message: str) -> None:
    """Print warning message to console."""
    console.print(f"[bold yellow]⚠[/bold yellow] {escape(message)}")
