"""
Stream format negotiation against Deezer's media endpoint.

Given a track token, the media endpoint hands out short-lived download
URLs for one requested format at a time. Formats are tried in preference
order (lossless first, then decreasing MP3 bitrates) and the first one
granted is used. This is a single pass: once every format has been
refused, the track is unavailable.

A response counts as a grant only if:
    - data is a non-empty list
    - data[0].errors is empty
    - data[0].media is non-empty and its first entry lists a source

Request body sent for each format:
    {
        "license_token": "<license token>",
        "media": [{"type": "FULL",
                   "formats": [{"cipher": "BF_CBC_STRIPE", "format": "FLAC"}]}],
        "track_tokens": ["<track token>"]
    }
"""

import dataclasses
from typing import Any, Iterable

from deezer_downloader.core.exceptions import (
    DeezerError,
    FormatRejectedError,
    FormatUnavailableError,
)
from deezer_downloader.core.logger import get_logger
from deezer_downloader.deezer.models import StreamGrant, StreamSource
from deezer_downloader.deezer.transport import Transport

logger = get_logger(__name__)


MEDIA_URL = "https://media.deezer.com/v1/get_url"
CIPHER = "BF_CBC_STRIPE"
MEDIA_TYPE = "FULL"
DEFAULT_FORMATS = ("FLAC", "MP3_320", "MP3_256", "MP3_128")


class FormatNegotiator:
    """
    Requests playable stream URLs for a track token.

    Attributes:
        transport: Rate-limited transport.
        license_token: Account license token sent with every request.
    """

    def __init__(self, transport: Transport, license_token: str) -> None:
        self.transport = transport
        self.license_token = license_token

    def negotiate(self, track_token: str, formats: Iterable[str] = DEFAULT_FORMATS) -> StreamGrant:
        """
        Find the first format the media endpoint grants for this track.

        Args:
            track_token: The track's TRACK_TOKEN.
            formats: Format labels in preference order.

        Returns:
            StreamGrant for the first accepted format. Later formats are
            not requested. Its errors list the formats refused before it.

        Raises:
            FormatUnavailableError: If the token is empty or every format
                                    was refused.
        """
        formats = tuple(formats)
        if not track_token:
            raise FormatUnavailableError(
                "Track has no track token",
                details={"formats": list(formats)}
            )

        reasons: dict[str, str] = {}
        for fmt in formats:
            try:
                grant = self.request_grant(track_token, fmt)
            except (FormatRejectedError, DeezerError) as e:
                logger.debug(f"Format {fmt} refused: {e.message}")
                reasons[fmt] = e.message
                continue
            logger.debug(f"Format {fmt} granted ({len(grant.sources)} sources)")
            refused = tuple(f"{name}: {reason}" for name, reason in reasons.items())
            return dataclasses.replace(grant, errors=refused)

        raise FormatUnavailableError(
            "No available formats",
            details={"formats": list(formats), "reasons": reasons}
        )

    def request_grant(self, track_token: str, fmt: str) -> StreamGrant:
        """
        Ask for a single format.

        Raises:
            FormatRejectedError: If the response does not pass the grant checks.
            TransportError / UpstreamStatusError: On request failure.
        """
        payload = {
            "license_token": self.license_token,
            "media": [{
                "type": MEDIA_TYPE,
                "formats": [{"cipher": CIPHER, "format": fmt}],
            }],
            "track_tokens": [track_token],
        }
        try:
            response = self.transport.post_json(MEDIA_URL, payload)
        except ValueError as e:
            raise FormatRejectedError(
                f"Invalid JSON from media endpoint for {fmt}",
                details={"format": fmt, "original_error": str(e)}
            ) from e

        return parse_grant(response, fmt)


def parse_grant(response: Any, fmt: str) -> StreamGrant:
    """
    Validate a media endpoint response and build a StreamGrant.

    Raises:
        FormatRejectedError: Describing the first failed check.
    """
    data = response.get("data") if isinstance(response, dict) else None
    if not isinstance(data, list) or not data or not isinstance(data[0], dict):
        raise FormatRejectedError(
            f"Empty data array for {fmt}",
            details={"format": fmt}
        )

    entry = data[0]
    errors = entry.get("errors") or []
    if errors:
        messages = tuple(_error_message(error) for error in errors)
        raise FormatRejectedError(
            f"Media endpoint error for {fmt}: {messages[0]}",
            details={"format": fmt, "errors": list(messages)}
        )

    media = entry.get("media") or []
    if not isinstance(media, list) or not media or not isinstance(media[0], dict):
        raise FormatRejectedError(
            f"No media available for {fmt}",
            details={"format": fmt}
        )

    sources = tuple(
        StreamSource(provider=str(item.get("provider", "")), url=item["url"])
        for item in media[0].get("sources") or []
        if isinstance(item, dict) and isinstance(item.get("url"), str)
    )
    if not sources:
        raise FormatRejectedError(
            f"No sources listed for {fmt}",
            details={"format": fmt}
        )

    return StreamGrant(format=fmt, sources=sources)


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message", error))
    return str(error)
