"""
Heuristic search for track lists and titles in app-state documents.

Deezer's page state has no stable schema: the track list of a playlist
can sit under different keys depending on page type and release. The
functions here walk the decoded JSON (dicts, lists, strings, numbers,
booleans, None) without knowing its layout.

Track List Heuristic:
    Depth-first, in document order. At each list, look at its first
    element: if it is a dict with an "id" or "SNG_ID" key, the whole list
    is taken as the track list and the search stops. Otherwise keep
    searching inside every element.

    The FIRST qualifying list wins, not the largest. A page with a
    "related tracks" block before the real list yields the wrong tracks.

Title Heuristic:
    Prefer PLAYLIST.TITLE / PLAYLIST.title, then the first TITLE or title
    string found anywhere.
"""

from typing import Any

from deezer_downloader.core.exceptions import NoTracksFoundError
from deezer_downloader.deezer.models import TrackRef


TRACK_ID_KEYS = ("id", "SNG_ID")
TITLE_KEYS = ("TITLE", "title")
PLAYLIST_KEY = "PLAYLIST"


def find_track_array(node: Any) -> list[Any] | None:
    """
    Return the first list that looks like a track list, or None.

    Args:
        node: Any decoded JSON value.
    """
    if isinstance(node, dict):
        for value in node.values():
            found = find_track_array(value)
            if found is not None:
                return found
        return None

    if isinstance(node, list):
        if node and _looks_like_track(node[0]):
            return node
        for element in node:
            found = find_track_array(element)
            if found is not None:
                return found

    return None


def _looks_like_track(element: Any) -> bool:
    return isinstance(element, dict) and any(key in element for key in TRACK_ID_KEYS)


def mine_tracks(tree: Any) -> list[TrackRef]:
    """
    Find the track list in a document and normalize its entries.

    Entries that are not dicts are skipped. Entries with missing or
    mistyped fields still produce a TrackRef with zero values for those
    fields.

    Returns:
        TrackRefs in document order.

    Raises:
        NoTracksFoundError: If no list qualifies.
    """
    found = find_track_array(tree)
    if found is None:
        raise NoTracksFoundError("No track list found in page state")

    return [TrackRef.from_record(element) for element in found if isinstance(element, dict)]


def find_playlist_title(node: Any) -> str:
    """
    Find the most likely playlist title in a document.

    Returns:
        The title, or "" if the document has no title-like string.
    """
    title = _walk_title(node)
    return title if title is not None else ""


def _walk_title(node: Any) -> str | None:
    if isinstance(node, dict):
        playlist = node.get(PLAYLIST_KEY)
        if isinstance(playlist, dict):
            for key in TITLE_KEYS:
                if isinstance(playlist.get(key), str):
                    return playlist[key]

        for key in TITLE_KEYS:
            if isinstance(node.get(key), str):
                return node[key]

        for value in node.values():
            title = _walk_title(value)
            if title is not None:
                return title
        return None

    if isinstance(node, list):
        for element in node:
            title = _walk_title(element)
            if title is not None:
                return title

    return None
