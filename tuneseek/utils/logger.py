"""
Logging for tuneseek

Two audiences share one logging tree:
- the terminal, which only sees warnings, errors and records explicitly
  marked as user-facing (logger.console_info)
- an optional rotating log file, which receives every record at the
  configured level with thread names, since playback runs on several threads

Console output goes through tqdm.write so album progress bars stay intact.
"""

import logging
import logging.handlers
import re
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import colorama
from colorama import Back, Fore, Style
from tqdm import tqdm

from ..config.settings import get_settings


colorama.init()

FILE_FORMAT = '%(asctime)s | %(levelname)-8s | %(threadName)-16s | %(name)s | %(message)s'
FILE_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# yt-dlp and ytmusicapi log request-level detail we never want on a player screen
QUIET_LOGGERS = ('urllib3', 'requests', 'yt_dlp', 'ytmusicapi', 'pygame')

_SIZE_UNITS = {'B': 1, 'KB': 1024, 'MB': 1024 ** 2, 'GB': 1024 ** 3}


@dataclass(frozen=True)
class ConsoleStyle:
    """Colours used on the terminal, per level name"""
    enabled: bool = True
    palette: Dict[str, str] = field(default_factory=lambda: {
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.RED + Back.WHITE + Style.BRIGHT,
    })


class UserFacingFilter(logging.Filter):
    """Pass warnings and above, plus records marked for the user"""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.WARNING or getattr(record, 'user_facing', False)


class ConsoleFormatter(logging.Formatter):
    """Plain message text, coloured by level when the style allows it"""

    def __init__(self, style: ConsoleStyle):
        super().__init__('%(message)s')
        self.console_style = style

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        colour = self.console_style.palette.get(record.levelname)
        if self.console_style.enabled and colour:
            return f"{colour}{text}{Style.RESET_ALL}"
        return text


class TqdmHandler(logging.StreamHandler):
    """StreamHandler that prints through tqdm"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            tqdm.write(self.format(record), file=self.stream)
        except Exception:
            self.handleError(record)


def parse_size(size_str: str) -> int:
    """
    Convert a size such as "10MB" or "512 KB" to bytes

    Raises:
        ValueError: If the string is not a size
    """
    match = re.fullmatch(r'(\d+(?:\.\d+)?)\s*([KMG]?B)', size_str.strip().upper())
    if not match:
        raise ValueError(f"Invalid size format: {size_str}")
    return int(float(match.group(1)) * _SIZE_UNITS[match.group(2)])


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    console_output: bool = True,
    style: Optional[ConsoleStyle] = None,
    max_size: str = "10MB",
    backup_count: int = 3
) -> None:
    """
    Install the console and file handlers on the root logger

    Existing root handlers are closed and replaced, so calling this again
    (e.g. after --config or --verbose) is safe.

    Args:
        level: Level for the file handler
        log_file: Log file path, None disables file logging
        console_output: Install the terminal handler
        style: Terminal colours
        max_size: Rotation size for the log file
        backup_count: Rotated files to keep
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    if console_output:
        console = TqdmHandler(sys.stdout)
        console.addFilter(UserFacingFilter())
        console.setFormatter(ConsoleFormatter(style or ConsoleStyle()))
        root.addHandler(console)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=parse_size(max_size), backupCount=backup_count, encoding='utf-8'
        )
        file_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
        root.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        quiet = logging.getLogger(name)
        quiet.setLevel(logging.CRITICAL)
        quiet.propagate = False

    logging.getLogger('tuneseek').debug(f"Logging ready (level={level}, file={log_file})")


def get_current_log_file() -> Optional[Path]:
    """Path of the active rotating log file, if any"""
    for handler in logging.getLogger().handlers:
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            return Path(handler.baseFilename)
    return None


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger

    The logger gains console_info(message), which logs at INFO and marks the
    record as user-facing so it reaches the terminal.
    """
    logger = logging.getLogger(name)
    if not hasattr(logger, 'console_info'):
        logger.console_info = lambda message: logger.info(message, extra={'user_facing': True})
    return logger


def configure_from_settings(verbose: bool = False) -> None:
    """
    Configure logging from the logging section of the settings

    Relative log file names are placed in the configuration directory.

    Args:
        verbose: Log DEBUG to the file regardless of the configured level
    """
    settings = get_settings()
    config = settings.logging

    log_file = None
    if config.file:
        log_file = Path(config.file).expanduser()
        if not log_file.is_absolute():
            log_file = settings.get_config_directory() / log_file

    setup_logging(
        level="DEBUG" if verbose else config.level,
        log_file=log_file,
        console_output=config.console_output,
        style=ConsoleStyle(enabled=config.colored_output),
        max_size=config.max_size,
        backup_count=config.backup_count
    )


class OperationLogger:
    """Reports a counted, long-running operation with a tqdm bar"""

    def __init__(self, logger: logging.Logger, operation_name: str, unit: str = "track"):
        self.logger = logger
        self.operation_name = operation_name
        self.unit = unit
        self.started: Optional[float] = None
        self.bar: Optional[tqdm] = None

    def start(self, message: Optional[str] = None) -> None:
        self.started = time.monotonic()
        get_logger(self.logger.name).console_info(message or self.operation_name)

    def progress(self, message: str, current: int, total: int) -> None:
        """Move the bar to current/total, labelled with message"""
        self.logger.info(f"{self.operation_name}: {message} ({current}/{total})")
        if self.bar is None:
            self.bar = tqdm(total=total, desc=self.operation_name, unit=self.unit,
                            ncols=100, colour='cyan', leave=False)
        self.bar.set_postfix_str(message[:40], refresh=False)
        self.bar.n = current
        self.bar.refresh()

    def complete(self, message: Optional[str] = None) -> None:
        if self.bar is not None:
            self.bar.close()
            self.bar = None
        elapsed = time.monotonic() - self.started if self.started else 0.0
        get_logger(self.logger.name).console_info(message or f"{self.operation_name} done")
        self.logger.info(f"{self.operation_name} finished in {elapsed:.2f}s")
