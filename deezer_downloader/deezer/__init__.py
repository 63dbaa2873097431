"""
Deezer access layer.

    transport   Rate-limited HTTP client (headers, arl cookie, retries)
    state       Embedded app-state extraction from web pages
    fields      Declarative field tables for heterogeneous records
    models      Track, album, playlist and stream dataclasses
    miner       Heuristic track-list search in app-state documents
    client      Album, track, playlist and favorites resolvers
    negotiator  Stream format negotiation with the media endpoint
"""

from deezer_downloader.deezer.client import DeezerClient
from deezer_downloader.deezer.miner import find_playlist_title, find_track_array, mine_tracks
from deezer_downloader.deezer.models import (
    AlbumMetadata,
    PingResult,
    PlaylistMetadata,
    StreamGrant,
    StreamSource,
    TrackDetail,
    TrackRef,
)
from deezer_downloader.deezer.negotiator import DEFAULT_FORMATS, FormatNegotiator
from deezer_downloader.deezer.state import extract_state, load_state
from deezer_downloader.deezer.transport import RateLimiter, Transport, check_status

__all__ = [
    # Transport
    "RateLimiter",
    "Transport",
    "check_status",
    # Page state
    "extract_state",
    "load_state",
    "find_track_array",
    "find_playlist_title",
    "mine_tracks",
    # Models
    "TrackRef",
    "TrackDetail",
    "AlbumMetadata",
    "PlaylistMetadata",
    "StreamSource",
    "StreamGrant",
    "PingResult",
    # Resolvers
    "DeezerClient",
    "FormatNegotiator",
    "DEFAULT_FORMATS",
]
