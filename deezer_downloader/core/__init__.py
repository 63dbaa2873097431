"""
Core module for deezer-downloader.

Foundational components used throughout the application:
    - exceptions: Custom exception hierarchy
    - config: Configuration loading and validation
    - logger: Logging system with console, file and failure-report outputs
    - progress: Rich progress bar for download batches

Usage:
    from deezer_downloader.core import (
        Config, load_config,
        setup_logging, get_logger,
        DeezerDownloaderError, ConfigError, DeezerError
    )
"""

from deezer_downloader.core.config import (
    Config,
    DeezerConfig,
    DownloadConfig,
    OutputConfig,
    load_config,
)
from deezer_downloader.core.exceptions import (
    ConfigError,
    DecryptionExhaustedError,
    DeezerDownloaderError,
    DeezerError,
    DownloadError,
    EmbeddedStateError,
    FormatRejectedError,
    FormatUnavailableError,
    MarkerNotFoundError,
    MetadataError,
    NoTracksFoundError,
    TransportError,
    UpstreamStatusError,
)
from deezer_downloader.core.logger import (
    get_logger,
    log_download_failure,
    setup_logging,
    shutdown_logging,
)
from deezer_downloader.core.progress import DownloadProgressBar

__all__ = [
    # Config
    "Config",
    "DeezerConfig",
    "OutputConfig",
    "DownloadConfig",
    "load_config",
    # Exceptions
    "DeezerDownloaderError",
    "ConfigError",
    "DeezerError",
    "TransportError",
    "UpstreamStatusError",
    "EmbeddedStateError",
    "MarkerNotFoundError",
    "NoTracksFoundError",
    "MetadataError",
    "DownloadError",
    "FormatRejectedError",
    "FormatUnavailableError",
    "DecryptionExhaustedError",
    # Logger
    "setup_logging",
    "get_logger",
    "log_download_failure",
    "shutdown_logging",
    # Progress
    "DownloadProgressBar",
]
