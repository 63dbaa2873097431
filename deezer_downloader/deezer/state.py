"""
Extraction of the app-state JSON embedded in Deezer web pages.

Deezer pages carry a copy of their data in a script tag:

    <script>window.__DZR_APP_STATE__ = {"DATA": {...}, "SONGS": {...}}</script>

When the public API is missing a field (track tokens, album songs) or
returns nothing (some playlists), this blob is the fallback source.
"""

import json
from typing import Any

from deezer_downloader.core.exceptions import EmbeddedStateError, MarkerNotFoundError


APP_STATE_START = "window.__DZR_APP_STATE__ = "
APP_STATE_END = "</script>"


def extract_state(
    html: str,
    start_marker: str = APP_STATE_START,
    end_marker: str = APP_STATE_END,
) -> str:
    """
    Return the raw text between the start marker and the next end marker.

    Args:
        html: Full page body.
        start_marker: Literal text preceding the JSON document.
        end_marker: Literal text following it (first occurrence after the
                    start marker is used).

    Returns:
        The candidate JSON text. It is not validated here.

    Raises:
        MarkerNotFoundError: If either marker is absent.

    Example:
        >>> extract_state('<script>window.__DZR_APP_STATE__ = {"a": 1}</script>')
        '{"a": 1}'
    """
    start = html.find(start_marker)
    if start < 0:
        raise MarkerNotFoundError(
            "App state start marker not found in page",
            details={"marker": start_marker}
        )

    content_start = start + len(start_marker)
    end = html.find(end_marker, content_start)
    if end < 0:
        raise MarkerNotFoundError(
            "App state end marker not found in page",
            details={"marker": end_marker}
        )

    return html[content_start:end]


def load_state(html: str) -> Any:
    """
    Extract and decode the app-state document of a page.

    Only the first JSON value is decoded; anything after it (a trailing
    semicolon, another statement) is ignored.

    Raises:
        MarkerNotFoundError: If the markers are missing.
        EmbeddedStateError: If the text is not valid JSON.
    """
    raw = extract_state(html).lstrip()
    try:
        value, _ = json.JSONDecoder().raw_decode(raw)
    except json.JSONDecodeError as e:
        raise EmbeddedStateError(
            f"App state is not valid JSON: {e}",
            details={"original_error": str(e)}
        ) from e
    return value
