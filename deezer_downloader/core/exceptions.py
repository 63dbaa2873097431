"""
Exception classes for deezer-downloader.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message plus an optional details
dictionary, so callers can log context without parsing strings.

Exception Hierarchy:
    DeezerDownloaderError (base)
        ConfigError - Configuration file issues
        DeezerError - Upstream (Deezer) issues
            TransportError - Network retries exhausted
            UpstreamStatusError - Non-200 HTTP response
            EmbeddedStateError - App-state blob could not be decoded
                MarkerNotFoundError - App-state markers missing from page
            NoTracksFoundError - Page fallback yielded no track list
        MetadataError - Unusable metadata or tag embedding failure
        DownloadError - Per-track streaming issues
            FormatRejectedError - One format refused by the media endpoint
            FormatUnavailableError - Every candidate format refused
            DecryptionExhaustedError - Stream restarts exhausted
"""

from typing import Any


class DeezerDownloaderError(Exception):
    """
    Base exception for all deezer-downloader errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch every application error with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Dictionary with additional context (ids, URLs, status codes).

    Example:
        try:
            client.get_album("302127")
        except DeezerDownloaderError as e:
            logger.error(f"Operation failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description shown to the user.
            details: Optional dictionary containing additional context.
                     Common keys include:
                     - 'url': URL that caused the error
                     - 'track_id': Deezer track id involved
                     - 'original_error': The wrapped exception as a string
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(DeezerDownloaderError):
    """
    Raised when there's an issue with the configuration file.

    This is a CRITICAL error that stops program execution.

    Common causes:
        - config.yaml not found in any searched location
        - config.yaml has invalid YAML syntax
        - A required secret (arl, license_token, pre_key, iv) is empty
        - iv is not 16 hexadecimal characters

    Example:
        raise ConfigError(
            "'deezer.arl' must be a non-empty string",
            details={'field': 'deezer.arl'}
        )
    """
    pass


class DeezerError(DeezerDownloaderError):
    """
    Raised when Deezer does not give us what we asked for.

    Base class for network, HTTP status and page-parsing failures.
    Whether it is fatal depends on where it happens: a failed album
    lookup aborts that album, a failed stream only skips the track.
    """
    pass


class TransportError(DeezerError):
    """
    Raised when a request keeps failing at the network level.

    DNS failures, refused connections, TLS errors and timeouts are retried
    by the transport without backoff. This error is raised only once the
    configured number of attempts is used up.

    Attributes:
        attempts: Number of attempts made before giving up.
    """

    def __init__(self, message: str, details: dict | None = None, attempts: int = 0) -> None:
        super().__init__(message, details)
        self.attempts = attempts


class UpstreamStatusError(DeezerError):
    """
    Raised when Deezer answers with a non-200 HTTP status.

    Status errors are never retried by the transport; they are surfaced
    to the caller immediately.

    Attributes:
        status_code: The HTTP status code received.

    Example:
        raise UpstreamStatusError(
            "Got status code 403",
            details={'url': url},
            status_code=403
        )
    """

    def __init__(self, message: str, details: dict | None = None, status_code: int = 0) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class EmbeddedStateError(DeezerError):
    """Raised when the app-state JSON embedded in a page cannot be decoded."""
    pass


class MarkerNotFoundError(EmbeddedStateError):
    """
    Raised when a page does not contain the app-state markers.

    Either the start marker (window.__DZR_APP_STATE__ = ) or the closing
    </script> after it is missing. Usually means Deezer served a login
    wall or a different page layout.
    """
    pass


class NoTracksFoundError(DeezerError):
    """
    Raised when the page fallback cannot produce a track list.

    The caller may decide to continue with an empty list. When raised for
    a playlist, the partially resolved playlist (title, no tracks) is
    attached so nothing already known is lost.

    Attributes:
        playlist: Partially resolved PlaylistMetadata, or None.
    """

    def __init__(self, message: str, details: dict | None = None, playlist: Any = None) -> None:
        super().__init__(message, details)
        self.playlist = playlist


class MetadataError(DeezerDownloaderError):
    """
    Raised when metadata is unusable or cannot be written to a file.

    Common causes:
        - Deezer API returned an error object instead of an album
        - Track page has no DATA record
        - mutagen failed to read or save the audio file
    """
    pass


class DownloadError(DeezerDownloaderError):
    """
    Raised when a single track cannot be streamed.

    This is a NON-CRITICAL error: the batch logs it and moves on to the
    next track.
    """
    pass


class FormatRejectedError(DownloadError):
    """Raised when the media endpoint refuses one requested format."""
    pass


class FormatUnavailableError(DownloadError):
    """
    Raised when every candidate format was refused for a track.

    Example:
        raise FormatUnavailableError(
            "No available formats for track",
            details={'formats': ['FLAC', 'MP3_320', 'MP3_256', 'MP3_128']}
        )
    """
    pass


class DecryptionExhaustedError(DownloadError):
    """
    Raised when a stream kept failing mid-download.

    Every read error restarts the download from byte zero. After the
    configured number of attempts the track is abandoned.

    Attributes:
        attempts: Number of attempts made.
    """

    def __init__(self, message: str, details: dict | None = None, attempts: int = 0) -> None:
        super().__init__(message, details)
        self.attempts = attempts
