"""
Metadata resolvers for Deezer albums, playlists and tracks.

DeezerClient wraps the rate-limited Transport and knows where each piece
of metadata lives:

    Album metadata     api.deezer.com/album/{id}                 (JSON API)
    Album songs        www.deezer.com/de/album/{id}              (page state, SONGS.data)
    Track detail       www.deezer.com/de/track/{id}              (page state, DATA)
    Playlist           api.deezer.com/playlist/{id}              (JSON API)
                       www.deezer.com/de/playlist/{id}           (page state, title)
                       www.deezer.com/playlist/{id}              (page state, mined tracks)
    Favorites          api.deezer.com/user/{id}/tracks           (JSON API)
    Session check      www.deezer.com/ajax/gw-light.php          (gateway ping)

Failure Semantics:
    - Albums and tracks have no fallback: a network or status failure is
      raised to the caller.
    - Playlists fall back to the web pages when the API fails or returns
      no tracks. If the fallback cannot produce tracks either,
      NoTracksFoundError is raised with the partially resolved playlist
      attached, so the caller may carry on with an empty list.

Usage:
    client = DeezerClient(transport, license_token=config.deezer.license_token)
    album = client.get_album("302127")
    songs = client.get_album_songs("302127")
"""

from typing import Any

from deezer_downloader.core.exceptions import (
    DeezerError,
    EmbeddedStateError,
    MarkerNotFoundError,
    MetadataError,
    NoTracksFoundError,
)
from deezer_downloader.core.logger import get_logger
from deezer_downloader.deezer.miner import find_playlist_title, mine_tracks
from deezer_downloader.deezer.models import (
    AlbumMetadata,
    PingResult,
    PlaylistMetadata,
    TrackDetail,
    TrackRef,
)
from deezer_downloader.deezer.state import load_state
from deezer_downloader.deezer.transport import Transport

logger = get_logger(__name__)


API_URL = "https://api.deezer.com"
WEB_URL = "https://www.deezer.com"

ALBUM_API_URL = API_URL + "/album/{album_id}"
PLAYLIST_API_URL = API_URL + "/playlist/{playlist_id}?access_token={license_token}"
FAVORITES_API_URL = API_URL + "/user/{user_id}/tracks?limit=10000000000"

ALBUM_PAGE_URL = WEB_URL + "/de/album/{album_id}"
TRACK_PAGE_URL = WEB_URL + "/de/track/{track_id}"
PLAYLIST_TITLE_PAGE_URL = WEB_URL + "/de/playlist/{playlist_id}"
PLAYLIST_TRACKS_PAGE_URL = WEB_URL + "/playlist/{playlist_id}"

PING_URL = WEB_URL + "/ajax/gw-light.php?method=deezer.ping&input=3&api_version=1.0&api_token"


class DeezerClient:
    """
    Resolves Deezer metadata through the API and the web pages.

    Attributes:
        transport: Rate-limited transport used for every request.
        license_token: Token appended to playlist API calls.
    """

    def __init__(self, transport: Transport, license_token: str) -> None:
        self.transport = transport
        self.license_token = license_token

    # =========================================================================
    # Albums
    # =========================================================================

    def get_album(self, album_id: str | int) -> AlbumMetadata:
        """
        Fetch album metadata from the public API.

        Raises:
            TransportError / UpstreamStatusError: On request failure.
            MetadataError: If the body is not an album (API error object,
                           invalid JSON).
        """
        url = ALBUM_API_URL.format(album_id=album_id)
        data = self._get_api_object(url, "album", album_id)
        album = AlbumMetadata.from_api(data)
        logger.debug(f"Album {album_id}: {album.artist_name} - {album.title}")
        return album

    def get_album_songs(self, album_id: str | int) -> list[TrackDetail]:
        """
        Fetch the song records of an album from its web page.

        Only SONGS.data is used. A page whose state is not valid JSON, or
        song entries that are not records, are tolerated and yield fewer
        (possibly zero) songs. A page without the app state at all (login
        wall, region block) is not.

        Raises:
            TransportError / UpstreamStatusError: On request failure.
            MarkerNotFoundError: If the page carries no app state.
        """
        url = ALBUM_PAGE_URL.format(album_id=album_id)
        html = self.transport.get_text(url)

        try:
            state = load_state(html)
        except MarkerNotFoundError:
            raise
        except EmbeddedStateError as e:
            logger.debug(f"Album {album_id} page state unreadable: {e}")
            return []

        songs = state.get("SONGS") if isinstance(state, dict) else None
        records = songs.get("data") if isinstance(songs, dict) else None
        if not isinstance(records, list):
            logger.debug(f"Album {album_id} page state has no SONGS.data")
            return []

        details = [TrackDetail.from_song_info(record) for record in records if isinstance(record, dict)]
        logger.debug(f"Album {album_id}: {len(details)} songs")
        return details

    # =========================================================================
    # Tracks
    # =========================================================================

    def get_track(self, track_id: str | int) -> TrackDetail:
        """
        Fetch the full song record of one track from its web page.

        Raises:
            TransportError / UpstreamStatusError: On request failure.
            MarkerNotFoundError / EmbeddedStateError: If the page state is
                missing or not JSON.
            MetadataError: If the state has no DATA record.
        """
        url = TRACK_PAGE_URL.format(track_id=track_id)
        state = load_state(self.transport.get_text(url))

        data = state.get("DATA") if isinstance(state, dict) else None
        if not isinstance(data, dict):
            raise MetadataError(
                f"Track page has no DATA record: {track_id}",
                details={"track_id": str(track_id), "url": url}
            )
        return TrackDetail.from_song_info(data)

    # =========================================================================
    # Playlists
    # =========================================================================

    def get_playlist(self, playlist_id: str | int) -> PlaylistMetadata:
        """
        Resolve a playlist's title and tracks.

        Behavior:
            1. Ask the API. If it answers with at least one track, done.
            2. Otherwise read the title from the localized playlist page
               and mine the tracks from the plain playlist page.
            3. A non-empty API title always wins over the page title.

        Raises:
            NoTracksFoundError: If step 2 could not produce tracks. The
                                error's `playlist` attribute holds the
                                playlist with its title and no tracks.
        """
        api_playlist = self._get_playlist_from_api(playlist_id)
        if api_playlist is not None and api_playlist.tracks:
            return api_playlist

        api_title = api_playlist.title if api_playlist is not None else ""
        title = api_title or self._get_playlist_page_title(playlist_id)
        numeric_id = api_playlist.id if api_playlist is not None and api_playlist.id else _to_int(playlist_id)

        try:
            tracks = self.get_playlist_tracks(playlist_id)
        except NoTracksFoundError as e:
            e.playlist = PlaylistMetadata(id=numeric_id, title=title, tracks=())
            raise

        return PlaylistMetadata(id=numeric_id, title=title, tracks=tuple(tracks))

    def get_playlist_tracks(self, playlist_id: str | int) -> list[TrackRef]:
        """
        Mine the track list of a playlist from its web page.

        Raises:
            NoTracksFoundError: On any failure (request, markers, JSON,
                                nesting too deep, no qualifying list).
        """
        url = PLAYLIST_TRACKS_PAGE_URL.format(playlist_id=playlist_id)
        try:
            state = load_state(self.transport.get_text(url))
            return mine_tracks(state)
        except NoTracksFoundError:
            raise
        except DeezerError as e:
            raise NoTracksFoundError(
                f"Could not extract playlist tracks from page: {e.message}",
                details={"playlist_id": str(playlist_id), "url": url}
            ) from e
        except RecursionError as e:
            raise NoTracksFoundError(
                "Could not extract playlist tracks from page: state nested too deeply",
                details={"playlist_id": str(playlist_id), "url": url}
            ) from e

    def _get_playlist_from_api(self, playlist_id: str | int) -> PlaylistMetadata | None:
        """Return the API's view of the playlist, or None if unusable."""
        url = PLAYLIST_API_URL.format(playlist_id=playlist_id, license_token=self.license_token)
        try:
            data = self.transport.get_json(url)
        except (DeezerError, ValueError) as e:
            logger.debug(f"Playlist API unusable for {playlist_id}: {e}")
            return None

        if not isinstance(data, dict) or "error" in data:
            logger.debug(f"Playlist API returned no playlist for {playlist_id}")
            return None

        return PlaylistMetadata.from_api(data)

    def _get_playlist_page_title(self, playlist_id: str | int) -> str:
        """Best-effort title lookup; a failure only loses the title."""
        url = PLAYLIST_TITLE_PAGE_URL.format(playlist_id=playlist_id)
        try:
            return find_playlist_title(load_state(self.transport.get_text(url)))
        except (DeezerError, RecursionError) as e:
            logger.debug(f"Playlist page title unavailable for {playlist_id}: {e!r}")
            return ""

    # =========================================================================
    # Favorites and session
    # =========================================================================

    def get_favorites(self, user_id: str | int) -> list[TrackRef]:
        """Fetch a user's favorite tracks from the public API."""
        url = FAVORITES_API_URL.format(user_id=user_id)
        data = self._get_api_object(url, "favorites", user_id)
        records = data.get("data")
        if not isinstance(records, list):
            return []
        return [TrackRef.from_record(record) for record in records if isinstance(record, dict)]

    def ping(self) -> PingResult:
        """
        Check the session cookie against the gateway.

        Returns:
            PingResult. user_id is 0 when the arl cookie is not accepted.
        """
        data = self._get_api_object(PING_URL, "ping", "")
        return PingResult.from_api(data)

    def _get_api_object(self, url: str, kind: str, entity_id: Any) -> dict[str, Any]:
        try:
            data = self.transport.get_json(url)
        except ValueError as e:
            raise MetadataError(
                f"Invalid JSON in {kind} response for {entity_id}",
                details={"url": url, "original_error": str(e)}
            ) from e

        if not isinstance(data, dict):
            raise MetadataError(
                f"Unexpected {kind} response for {entity_id}",
                details={"url": url}
            )

        error = data.get("error")
        # gw-light answers with "error": [] on success
        if error:
            message = error.get("message", error) if isinstance(error, dict) else error
            raise MetadataError(
                f"Deezer returned an error for {kind} {entity_id}: {message}",
                details={"url": url, "error": error}
            )
        return data


def _to_int(value: str | int) -> int:
    try:
        return int(value)
    except ValueError:
        return 0
