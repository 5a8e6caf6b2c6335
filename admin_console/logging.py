"""
Centralized logging configuration for the admin console.

Provides:
- Console logging with colored, prefixed output by console area
- File logging with timestamps for post-mortem analysis
- A logger factory keyed by area (api, session, kv, cli)
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

LOGGER_ROOT = "admin_console"


# ANSI color codes for console output
class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    WHITE = "\033[37m"

    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_BLUE = "\033[94m"
    BRIGHT_MAGENTA = "\033[95m"
    BRIGHT_CYAN = "\033[96m"


# Area-specific colors and prefixes
AREA_CONFIG = {
    "main": {"color": Colors.BRIGHT_CYAN, "prefix": "CONSOLE.main"},
    "api": {"color": Colors.BRIGHT_GREEN, "prefix": "CONSOLE.api"},
    "session": {"color": Colors.BRIGHT_MAGENTA, "prefix": "CONSOLE.session"},
    "kv": {"color": Colors.BRIGHT_BLUE, "prefix": "CONSOLE.kv"},
    "cli": {"color": Colors.BRIGHT_YELLOW, "prefix": "CONSOLE.cli"},
}

DEFAULT_AREA_CONFIG = {"color": Colors.WHITE, "prefix": "CONSOLE"}


def _area_of(record: logging.LogRecord) -> str:
    """Map ``admin_console.kv.panel`` style names back to their area."""
    name = record.name
    if name.startswith(LOGGER_ROOT + "."):
        name = name[len(LOGGER_ROOT) + 1:]
    return name.split(".", 1)[0] if name else "main"


class ColoredConsoleFormatter(logging.Formatter):
    """Adds colors and area prefixes to console output."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.DIM,
        logging.INFO: Colors.RESET,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BRIGHT_RED + Colors.BOLD,
    }

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        config = AREA_CONFIG.get(_area_of(record), DEFAULT_AREA_CONFIG)
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        if not self.use_color:
            return f"[{config['prefix']}] {timestamp} {record.levelname:<8} {message}"

        # Format: [CONSOLE.area] HH:MM:SS LEVEL: message
        level_color = self.LEVEL_COLORS.get(record.levelno, Colors.RESET)
        prefix = f"{config['color']}[{config['prefix']}]{Colors.RESET}"
        time_str = f"{Colors.DIM}{timestamp}{Colors.RESET}"
        level_str = f"{level_color}{record.levelname:<8}{Colors.RESET}"
        return f"{prefix} {time_str} {level_str} {message}"


class FileFormatter(logging.Formatter):
    """Formatter for file output with full timestamps."""

    def format(self, record: logging.LogRecord) -> str:
        config = AREA_CONFIG.get(_area_of(record), DEFAULT_AREA_CONFIG)
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]

        extra = ""
        if hasattr(record, "user_id"):
            extra += f" user_id={record.user_id}"
        if hasattr(record, "generation"):
            extra += f" generation={record.generation}"

        line = f"{timestamp} [{config['prefix']}] {record.levelname}: {record.getMessage()}{extra}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    log_dir: Optional[Path] = None,
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Optional[Path]:
    """
    Initialize console and (optionally) file logging for the console.

    Args:
        log_dir: Directory for log files. File logging is skipped when None.
        console_level: Minimum level for console output
        file_level: Minimum level for file output

    Returns:
        Path to the log file, or None when only console logging is active
    """
    root = logging.getLogger(LOGGER_ROOT)
    root.setLevel(logging.DEBUG)  # Capture everything, handlers filter
    root.handlers.clear()
    root.propagate = False

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(ColoredConsoleFormatter(use_color=sys.stderr.isatty()))
    root.addHandler(console_handler)

    if log_dir is None:
        return None

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    log_filename = datetime.now().strftime("console_%Y%m%d_%H%M%S.log")
    log_path = log_dir / log_filename

    latest_link = log_dir / "latest.log"
    try:
        if latest_link.is_symlink() or latest_link.exists():
            latest_link.unlink()
        latest_link.symlink_to(log_filename)
    except OSError:
        pass  # Symlinks may not work on all systems

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(FileFormatter())
    root.addHandler(file_handler)

    root.debug(f"Logging initialized. Log file: {log_path}")
    return log_path


def get_logger(area: str = "main") -> logging.Logger:
    """
    Get a logger for a console area.

    Example:
        logger = get_logger("session")
        logger.info("Session verified")
        # Output: [CONSOLE.session] 14:32:15 INFO     Session verified
    """
    return logging.getLogger(f"{LOGGER_ROOT}.{area}")
