"""
Data models for Deezer entities.

This module defines immutable dataclasses for the records that flow
through the download pipeline:

    TrackRef          Lightweight track reference (playlist, favorites, miner)
    TrackDetail       Full song record with the track token needed to stream
    AlbumMetadata     Album fields for paths and tags
    PlaylistMetadata  Playlist title and ordered TrackRefs
    StreamGrant       Playable sources for one negotiated format
    PingResult        Session check result

Design Decisions:
    - All dataclasses are frozen to prevent accidental modification
    - Each record kind has a declarative field table (see fields.py);
      the from_* classmethods only apply the table
    - Missing or mistyped fields fall back to zero values instead of
      failing the whole record

Usage:
    from deezer_downloader.deezer.models import TrackRef, TrackDetail

    ref = TrackRef.from_record({"id": 3135556, "title": "Harder Better Faster Stronger"})
    detail = TrackDetail.from_song_info(state["DATA"])
"""

from dataclasses import dataclass, field
from typing import Any

from deezer_downloader.deezer.fields import (
    Field,
    FieldTable,
    as_int,
    contributor_role,
    names_of,
    normalize_record,
    source,
)


TRACK_URL = "https://www.deezer.com/track/{track_id}"

# Provider tag of Deezer's primary edge cache
PREFERRED_PROVIDER = "ak"


# =============================================================================
# Field tables
# =============================================================================

TRACK_REF_FIELDS: FieldTable = {
    "id": Field(0, (source("id", as_int), source("SNG_ID", as_int))),
    "title": Field("", (source("title"), source("SNG_TITLE"), source("SngTitle"))),
    "duration": Field(0, (source("duration", as_int), source("DURATION", as_int))),
    "md5_image": Field("", (source("md5_image"), source("MD5_ORIGIN"))),
    "album_title": Field("", (source("album.title"), source("ALB_TITLE"))),
    "album_md5_image": Field("", (source("album.md5_image"),)),
    "artist_id": Field(0, (source("artist.id", as_int),)),
    "artist_name": Field("", (source("artist.name"),)),
}

TRACK_DETAIL_FIELDS: FieldTable = {
    "id": Field(0, (source("SNG_ID", as_int),)),
    "title": Field("", (source("SNG_TITLE"),)),
    "version": Field("", (source("VERSION"),)),
    "artist_id": Field(0, (source("ART_ID", as_int),)),
    "artist_name": Field("", (source("ART_NAME"),)),
    "artists": Field((), (source("ARTISTS", names_of("ART_NAME")),)),
    "album_id": Field("", (source("ALB_ID"),)),
    "album_title": Field("", (source("ALB_TITLE"),)),
    "album_picture": Field("", (source("ALB_PICTURE"),)),
    "md5_origin": Field("", (source("MD5_ORIGIN"),)),
    "media_version": Field("", (source("MEDIA_VERSION"),)),
    "duration": Field(0, (source("DURATION", as_int),)),
    "disk_number": Field("", (source("DISK_NUMBER"),)),
    "track_number": Field("", (source("TRACK_NUMBER"),)),
    "track_token": Field("", (source("TRACK_TOKEN"),)),
    "track_token_expire": Field(0, (source("TRACK_TOKEN_EXPIRE", as_int),)),
    "isrc": Field("", (source("ISRC"),)),
    "composers": Field((), (source("SNG_CONTRIBUTORS", contributor_role("composer")),)),
    "copyright": Field("", (source("COPYRIGHT"),)),
    "physical_release_date": Field("", (source("PHYSICAL_RELEASE_DATE"),)),
    "digital_release_date": Field("", (source("DIGITAL_RELEASE_DATE"),)),
}

ALBUM_FIELDS: FieldTable = {
    "id": Field(0, (source("id", as_int),)),
    "title": Field("", (source("title"),)),
    "upc": Field("", (source("upc"),)),
    "cover_xl": Field("", (source("cover_xl"),)),
    "md5_image": Field("", (source("md5_image"),)),
    "genres": Field((), (source("genres.data", names_of("name")),)),
    "label": Field("", (source("label"),)),
    "nb_tracks": Field(0, (source("nb_tracks", as_int),)),
    "nb_discs": Field(0, (source("nb_discs", as_int),)),
    "release_date": Field("", (source("release_date"),)),
    "record_type": Field("", (source("record_type"),)),
    "artist_id": Field(0, (source("artist.id", as_int),)),
    "artist_name": Field("", (source("artist.name"),)),
}

PLAYLIST_FIELDS: FieldTable = {
    "id": Field(0, (source("id", as_int),)),
    "title": Field("", (source("title"),)),
}

PING_FIELDS: FieldTable = {
    "user_id": Field(0, (source("results.USER_ID", as_int),)),
    "session": Field("", (source("results.SESSION"),)),
    "check_form": Field("", (source("results.CHECKFORM"),)),
    "server_timestamp": Field(0, (source("results.SERVER_TIMESTAMP", as_int),)),
}


# =============================================================================
# Models
# =============================================================================

@dataclass(frozen=True)
class TrackRef:
    """
    Lightweight reference to a track.

    Produced by the playlist and favorites API and by the page miner.
    Enough to identify a track and name it in logs; streaming requires
    the full TrackDetail.

    Attributes:
        id: Numeric Deezer track id (0 if it could not be read).
        title: Track title.
        duration: Duration in seconds.
        md5_image: Cover image hash.
        album_title: Title of the album the track belongs to.
        album_md5_image: Album cover image hash.
        artist_id: Main artist id.
        artist_name: Main artist name.
    """
    id: int = 0
    title: str = ""
    duration: int = 0
    md5_image: str = ""
    album_title: str = ""
    album_md5_image: str = ""
    artist_id: int = 0
    artist_name: str = ""

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "TrackRef":
        """
        Create a TrackRef from an API track or an app-state song record.

        Both naming conventions are accepted:
            {"id": 3135556, "title": "...", "duration": 224}
            {"SNG_ID": "3135556", "SNG_TITLE": "...", "DURATION": "224"}
        """
        return cls(**normalize_record(record, TRACK_REF_FIELDS))

    @property
    def url(self) -> str:
        return TRACK_URL.format(track_id=self.id)


@dataclass(frozen=True)
class TrackDetail:
    """
    Complete song record from the Deezer web app state.

    This is the only record that carries the track token needed to
    negotiate a stream. It is obtained from a track page (DATA) or an
    album page (SONGS.data), never from the generic miner.

    Attributes:
        id: Numeric track id (SNG_ID). Also the input of key derivation.
        title: Song title without version.
        version: Version suffix, e.g. "(Radio Edit)". May be empty.
        artist_id: Main artist id.
        artist_name: Main artist name.
        artists: Names of all credited artists.
        album_id: Album id as a string (used to fetch AlbumMetadata).
        album_title: Album title.
        album_picture: Album cover hash.
        md5_origin: Audio file hash.
        media_version: Media version counter.
        duration: Duration in seconds.
        disk_number: Disc number as given by Deezer (string).
        track_number: Position on the disc as given by Deezer (string).
        track_token: Short-lived streaming authorization.
        track_token_expire: Token expiry as a unix timestamp.
        isrc: International Standard Recording Code.
        composers: Composer names.
        copyright: Copyright notice.
        physical_release_date: "YYYY-MM-DD" or empty.
        digital_release_date: "YYYY-MM-DD" or empty.
    """
    id: int = 0
    title: str = ""
    version: str = ""
    artist_id: int = 0
    artist_name: str = ""
    artists: tuple[str, ...] = field(default_factory=tuple)
    album_id: str = ""
    album_title: str = ""
    album_picture: str = ""
    md5_origin: str = ""
    media_version: str = ""
    duration: int = 0
    disk_number: str = ""
    track_number: str = ""
    track_token: str = ""
    track_token_expire: int = 0
    isrc: str = ""
    composers: tuple[str, ...] = field(default_factory=tuple)
    copyright: str = ""
    physical_release_date: str = ""
    digital_release_date: str = ""

    @classmethod
    def from_song_info(cls, record: dict[str, Any]) -> "TrackDetail":
        """Create a TrackDetail from an app-state song record (SNG_* keys)."""
        return cls(**normalize_record(record, TRACK_DETAIL_FIELDS))

    @property
    def full_title(self) -> str:
        """Title with the version appended, e.g. "One More Time (Radio Edit)"."""
        if self.version:
            return f"{self.title} {self.version}"
        return self.title

    @property
    def artist_display(self) -> str:
        """All credited artists, sorted and comma-separated."""
        if self.artists:
            return ", ".join(sorted(self.artists))
        return self.artist_name

    @property
    def composer_display(self) -> str:
        return ", ".join(self.composers)

    @property
    def track_position(self) -> int:
        """Track number as an int, 0 if Deezer gave none or garbage."""
        try:
            return int(self.track_number)
        except ValueError:
            return 0

    @property
    def is_streamable(self) -> bool:
        return bool(self.track_token)

    @property
    def url(self) -> str:
        return TRACK_URL.format(track_id=self.id)


@dataclass(frozen=True)
class AlbumMetadata:
    """
    Album information from the public API.

    Used for the destination path (artist, cover) and for tag enrichment
    (genres, label, release date, track count).

    Attributes:
        id: Album id.
        title: Album title.
        upc: Universal Product Code.
        cover_xl: URL of the largest cover image.
        md5_image: Cover image hash.
        genres: Genre names.
        label: Record label.
        nb_tracks: Number of tracks on the album.
        nb_discs: Number of discs.
        release_date: "YYYY-MM-DD".
        record_type: "album", "single", "ep" or "compile".
        artist_id: Album artist id.
        artist_name: Album artist name.
    """
    id: int = 0
    title: str = ""
    upc: str = ""
    cover_xl: str = ""
    md5_image: str = ""
    genres: tuple[str, ...] = field(default_factory=tuple)
    label: str = ""
    nb_tracks: int = 0
    nb_discs: int = 0
    release_date: str = ""
    record_type: str = ""
    artist_id: int = 0
    artist_name: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "AlbumMetadata":
        """Create AlbumMetadata from an api.deezer.com/album response."""
        return cls(**normalize_record(data, ALBUM_FIELDS))

    @property
    def genre_display(self) -> str:
        """Comma-separated genres, falling back to the label."""
        names = [name for name in self.genres if name.strip()]
        if names:
            return ", ".join(names)
        if self.label.strip():
            return self.label
        return ""


@dataclass(frozen=True)
class PlaylistMetadata:
    """
    A playlist and its ordered track references.

    Attributes:
        id: Playlist id.
        title: Playlist title. May be empty if no source provided one.
        tracks: Track references in playlist order.
    """
    id: int = 0
    title: str = ""
    tracks: tuple[TrackRef, ...] = field(default_factory=tuple)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "PlaylistMetadata":
        """Create PlaylistMetadata from an api.deezer.com/playlist response."""
        tracks_data = data.get("tracks")
        records = tracks_data.get("data") if isinstance(tracks_data, dict) else None
        tracks = tuple(
            TrackRef.from_record(record)
            for record in (records if isinstance(records, list) else [])
            if isinstance(record, dict)
        )
        return cls(tracks=tracks, **normalize_record(data, PLAYLIST_FIELDS))


@dataclass(frozen=True)
class StreamSource:
    """One download location for a negotiated stream."""
    provider: str
    url: str


@dataclass(frozen=True)
class StreamGrant:
    """
    Result of a successful format negotiation.

    Valid only for the download that immediately follows; the URLs
    expire quickly.

    Attributes:
        format: The accepted format label, e.g. "FLAC" or "MP3_320".
        sources: Candidate download locations (at least one).
        errors: Error messages reported alongside the grant, if any.
    """
    format: str
    sources: tuple[StreamSource, ...]
    errors: tuple[str, ...] = field(default_factory=tuple)

    @property
    def url(self) -> str:
        """URL of the primary edge-cache source, else the first one."""
        for stream_source in self.sources:
            if stream_source.provider == PREFERRED_PROVIDER:
                return stream_source.url
        return self.sources[0].url

    @property
    def extension(self) -> str:
        return extension_for(self.format)


def extension_for(fmt: str) -> str:
    """File extension for a format label: "mp3" for MP3_*, else "flac"."""
    return "mp3" if fmt.upper().startswith("MP3") else "flac"


@dataclass(frozen=True)
class PingResult:
    """
    Session check result from the gateway ping.

    Attributes:
        user_id: Logged-in user id, 0 when the arl cookie is not valid.
        session: Session id.
        check_form: API token for gateway calls.
        server_timestamp: Server time.
    """
    user_id: int = 0
    session: str = ""
    check_form: str = ""
    server_timestamp: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "PingResult":
        return cls(**normalize_record(data, PING_FIELDS))

    @property
    def is_logged_in(self) -> bool:
        return self.user_id != 0
