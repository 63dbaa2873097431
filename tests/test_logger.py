"""Test log files and the download failures report"""

import logging

import pytest

from deezer_downloader.core.logger import (
    FailedTrack,
    get_logger,
    log_download_failure,
    setup_logging,
    shutdown_logging,
)


@pytest.fixture
def logs(temp_dir):
    setup_logging(temp_dir)
    yield temp_dir / "logs"
    shutdown_logging()


def read_single(logs_dir, prefix):
    (path,) = logs_dir.glob(f"{prefix}_*.log")
    return path.read_text(encoding="utf-8")


class TestSetupLogging:
    """Test handler routing"""

    def test_files_by_level(self, logs):
        """Test full log gets everything, error log only errors"""
        logger = get_logger("deezer_downloader.test")
        logger.debug("debug line")
        logger.error("error line")
        shutdown_logging()

        full = read_single(logs, "log_full")
        errors = read_single(logs, "log_errors")
        assert "debug line" in full and "error line" in full
        assert "debug line" not in errors
        assert "| ERROR    | deezer_downloader.test | error line" in errors

    def test_failures_report(self, logs):
        """Test only log_download_failure records reach the report"""
        logger = get_logger("deezer_downloader.test")
        logger.error("ordinary error")
        log_download_failure(
            logger,
            title="Harder Better Faster Stronger",
            artist="Daft Punk",
            track_url="https://www.deezer.com/track/3135556",
            error_message="No available formats",
            track_number=4,
        )
        shutdown_logging()

        report = read_single(logs, "download_failures")
        assert report == (
            "04 - Harder Better Faster Stronger - Daft Punk\n"
            "https://www.deezer.com/track/3135556\n"
            "Reason: No available formats\n\n"
        )

    def test_no_report_without_failures(self, logs):
        get_logger("deezer_downloader.test").info("all good")
        shutdown_logging()
        assert list(logs.glob("download_failures_*.log")) == []

    def test_shutdown_detaches_handlers(self, logs):
        shutdown_logging()
        assert logging.getLogger().handlers == []


class TestFailedTrack:
    def test_entry_without_number(self):
        entry = FailedTrack("Title", "Artist", "https://www.deezer.com/track/1", "Gone").report_entry()
        assert entry.splitlines()[0] == "Title - Artist"
