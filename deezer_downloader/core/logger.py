"""
Logging configuration for deezer-downloader.

setup_logging() attaches four handlers to the root logger:

    console                    INFO and above, colored level names, written
                               through tqdm so progress bars stay intact
    log_full_<ts>.log          everything (DEBUG and above)
    log_errors_<ts>.log        ERROR and CRITICAL only
    download_failures_<ts>.log one entry per track that could not be
                               downloaded, with its Deezer URL, so it can
                               be retried later

All files live in <output directory>/logs, one set per run.

Usage:
    from deezer_downloader.core.logger import setup_logging, get_logger

    setup_logging(output_dir)
    logger = get_logger(__name__)
    logger.info("Starting download")
"""

import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


LOG_FULL_FILENAME = "log_full"
LOG_ERRORS_FILENAME = "log_errors"
DOWNLOAD_FAILURES_FILENAME = "download_failures"

FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Attribute carrying a FailedTrack on failure records
FAILED_TRACK_ATTR = "failed_track"

RESET = "\033[0m"
LEVEL_COLORS = {
    logging.DEBUG: "\033[34m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1m\033[31m",
}


@dataclass(frozen=True)
class FailedTrack:
    """A track that could not be downloaded, as written to the failures report."""
    title: str
    artist: str
    url: str
    reason: str
    number: int | None = None

    def report_entry(self) -> str:
        """
        Format the report entry:

            04 - Harder Better Faster Stronger - Daft Punk
            https://www.deezer.com/track/3135556
            Reason: No available formats
        """
        name = f"{self.title} - {self.artist}"
        if self.number is not None:
            name = f"{self.number:02d} - {name}"
        return f"{name}\n{self.url}\nReason: {self.reason}\n"


class ColoredConsoleFormatter(logging.Formatter):
    """'LEVEL: message' with the level name colored by severity."""

    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelno, "")
        return f"{color}{record.levelname}{RESET}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """Console handler that prints above active progress bars via tqdm.write()."""

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            tqdm.write(self.format(record), file=self.stream)
        except Exception:
            self.handleError(record)


class FailureReportHandler(logging.FileHandler):
    """
    Writes only records produced by log_download_failure().

    The file is created on the first failure, so runs without failures
    leave no empty report behind.
    """

    def __init__(self, report_path: Path) -> None:
        super().__init__(report_path, mode="w", encoding="utf-8", delay=True)

    def filter(self, record: logging.LogRecord) -> bool:
        return isinstance(getattr(record, FAILED_TRACK_ATTR, None), FailedTrack)

    def format(self, record: logging.LogRecord) -> str:
        return getattr(record, FAILED_TRACK_ATTR).report_entry()


class ErrorOnlyFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def _file_handler(path: Path, *filters: logging.Filter) -> logging.FileHandler:
    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    for log_filter in filters:
        handler.addFilter(log_filter)
    return handler


def setup_logging(output_dir: Path) -> None:
    """
    Configure the root logger for a run.

    Call once at startup, after the configuration is loaded. Replaces any
    handlers already attached to the root logger.

    Args:
        output_dir: Music library root. Log files go to output_dir/logs.
    """
    logs_dir = output_dir / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    console = TqdmLoggingHandler()
    console.setLevel(logging.INFO)
    console.setFormatter(ColoredConsoleFormatter())

    handlers = [
        console,
        _file_handler(logs_dir / f"{LOG_FULL_FILENAME}_{timestamp}.log"),
        _file_handler(logs_dir / f"{LOG_ERRORS_FILENAME}_{timestamp}.log", ErrorOnlyFilter()),
        FailureReportHandler(logs_dir / f"{DOWNLOAD_FAILURES_FILENAME}_{timestamp}.log"),
    ]

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()
    for handler in handlers:
        root_logger.addHandler(handler)

    # one DEBUG line per request otherwise
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, usually get_logger(__name__)."""
    return logging.getLogger(name)


def log_download_failure(
    logger: logging.Logger,
    title: str,
    artist: str,
    track_url: str,
    error_message: str,
    track_number: int | None = None
) -> None:
    """
    Log a track whose download failed.

    Logs at ERROR level and attaches a FailedTrack so that the entry also
    lands in download_failures.log.

    Example:
        log_download_failure(
            logger,
            title="Harder Better Faster Stronger",
            artist="Daft Punk",
            track_url="https://www.deezer.com/track/3135556",
            error_message="No available formats",
            track_number=4
        )
    """
    failed = FailedTrack(title=title, artist=artist, url=track_url, reason=error_message, number=track_number)
    logger.error(f"Download failed: {title} - {error_message}", extra={FAILED_TRACK_ATTR: failed})


def shutdown_logging() -> None:
    """Flush, close and detach every root handler. Call in a finally block at exit."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.flush()
        handler.close()
        root_logger.removeHandler(handler)
