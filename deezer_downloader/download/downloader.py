"""
Track download pipeline for deezer-downloader.

Every track goes through the same strictly sequential pipeline; one
track is finished before the next one starts:

    1. Resolve    TrackDetail (with track token) + AlbumMetadata
    2. Skip       if the file already exists and overwrite is off
    3. Negotiate  first granted format (FLAC, MP3_320, MP3_256, MP3_128)
    4. Prepare    album directory with info.txt and cover.jpg
    5. Stream     download and decrypt to the final path
    6. Tag        embed metadata and cover

Where tracks come from:
    Album      album page SONGS.data (already full song records)
    Playlist   playlist TrackRefs, each resolved through its track page
    Favorites  favorites TrackRefs, each resolved through its track page
    Track      a single track page

Output Layout:
    output_directory/
    └── Daft Punk/
        └── Daft Punk - Discovery/
            ├── info.txt
            ├── cover.jpg
            ├── 01 - One More Time.flac
            └── 02 - Aerodynamic.flac

Failure Policy:
    A track that fails (no format, stream error, tagging error, or, in a
    playlist or favorites batch, an unresolvable track page) is logged
    with log_download_failure() and counted; the batch continues. A
    partially written file is removed so the next run retries it.
    Failing to resolve the entity itself (album metadata, an album page
    without app state, a single track) raises to the caller. A playlist
    whose track list cannot be found yields an empty batch counted as
    unresolved.

Usage:
    downloader = Downloader(client, negotiator, decryptor, output_dir=Path("/music"))
    stats = downloader.download_album("302127")
    print(f"Downloaded: {stats.downloaded}/{stats.total}")
"""

from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import Iterable

from deezer_downloader.core.exceptions import DeezerDownloaderError, NoTracksFoundError
from deezer_downloader.core.logger import get_logger, log_download_failure
from deezer_downloader.core.progress import DownloadProgressBar
from deezer_downloader.deezer.client import DeezerClient
from deezer_downloader.deezer.models import (
    AlbumMetadata,
    StreamGrant,
    TrackDetail,
    TrackRef,
    extension_for,
)
from deezer_downloader.deezer.negotiator import DEFAULT_FORMATS, FormatNegotiator
from deezer_downloader.download.decryptor import StreamDecryptor
from deezer_downloader.download.tagger import embed_metadata
from deezer_downloader.utils import COVER_FILENAME, build_track_path, ensure_song_directory, format_duration

logger = get_logger(__name__)


class TrackOutcome(Enum):
    """Result of processing one track."""
    DOWNLOADED = auto()
    SKIPPED = auto()
    FAILED = auto()


@dataclass
class DownloadStats:
    """
    Statistics from a download batch.

    Attributes:
        total: Number of tracks in the batch.
        downloaded: Downloaded, decrypted and tagged.
        failed: Failed at any pipeline step.
        skipped: Already present on disk.
        unresolved: Batch items whose track list could not be found.
    """

    total: int = 0
    downloaded: int = 0
    failed: int = 0
    skipped: int = 0
    unresolved: int = 0

    @property
    def complete(self) -> bool:
        """No track failed and the track list was found."""
        return self.failed == 0 and self.unresolved == 0

    @property
    def success_rate(self) -> float:
        """Calculate success rate as percentage."""
        if self.total == 0:
            return 0.0
        return (self.downloaded / self.total) * 100

    def record(self, outcome: TrackOutcome) -> None:
        if outcome is TrackOutcome.DOWNLOADED:
            self.downloaded += 1
        elif outcome is TrackOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1

    def add(self, other: "DownloadStats") -> None:
        """Accumulate another batch into this one."""
        self.total += other.total
        self.downloaded += other.downloaded
        self.failed += other.failed
        self.skipped += other.skipped
        self.unresolved += other.unresolved


class Downloader:
    """
    Downloads albums, playlists, favorites and single tracks.

    Attributes:
        _client: Metadata resolver.
        _negotiator: Stream format negotiator.
        _decryptor: Stream downloader and decryptor.
        _output_dir: Root of the music library.
        _formats: Format preference order.
        _overwrite: Re-download files that already exist.
        _albums: Album metadata fetched during this run, by album id.
    """

    def __init__(
        self,
        client: DeezerClient,
        negotiator: FormatNegotiator,
        decryptor: StreamDecryptor,
        output_dir: Path,
        formats: Iterable[str] = DEFAULT_FORMATS,
        overwrite: bool = False,
    ) -> None:
        self._client = client
        self._negotiator = negotiator
        self._decryptor = decryptor
        self._output_dir = output_dir
        self._formats = tuple(formats)
        self._overwrite = overwrite
        self._albums: dict[str, AlbumMetadata] = {}

    # =========================================================================
    # Batches
    # =========================================================================

    def download_album(self, album_id: str) -> DownloadStats:
        """
        Download every song of an album.

        Raises:
            DeezerError / MetadataError: If the album metadata or its song
                                         list cannot be fetched.
        """
        album = self._get_album(album_id)
        songs = self._client.get_album_songs(album_id)
        stats = DownloadStats(total=len(songs))

        if not songs:
            logger.warning(f"Album {album_id} has no downloadable songs")
            return stats

        logger.info(f"Album: {album.artist_name} - {album.title} ({len(songs)} tracks)")
        with DownloadProgressBar(total=len(songs), description=album.title or album_id) as progress:
            for song in songs:
                outcome = self._process_song(song, album)
                stats.record(outcome)
                self._update_progress(progress, outcome)

        self._log_stats(stats)
        return stats

    def download_playlist(self, playlist_id: str) -> DownloadStats:
        """
        Download every track of a playlist.

        A playlist whose tracks cannot be found is logged and yields an
        empty batch marked as unresolved.
        """
        try:
            playlist = self._client.get_playlist(playlist_id)
        except NoTracksFoundError as e:
            title = e.playlist.title if e.playlist is not None else ""
            logger.warning(f"Playlist {title or playlist_id} not resolvable: {e.message}")
            return DownloadStats(unresolved=1)

        logger.info(f"Playlist: {playlist.title or playlist_id} ({len(playlist.tracks)} tracks)")
        return self._download_refs(playlist.tracks, playlist.title or playlist_id)

    def download_favorites(self, user_id: str) -> DownloadStats:
        """Download a user's favorite tracks."""
        refs = self._client.get_favorites(user_id)
        logger.info(f"Favorites of user {user_id}: {len(refs)} tracks")
        return self._download_refs(refs, f"Favorites {user_id}")

    def download_track(self, track_id: str) -> DownloadStats:
        """
        Download a single track.

        Raises:
            DeezerError / MetadataError: If the track or its album cannot
                                         be resolved.
        """
        song = self._client.get_track(track_id)
        album = self._get_album(song.album_id)

        stats = DownloadStats(total=1)
        stats.record(self._process_song(song, album))
        self._log_stats(stats)
        return stats

    def _download_refs(self, refs: Iterable[TrackRef], description: str) -> DownloadStats:
        refs = list(refs)
        stats = DownloadStats(total=len(refs))
        if not refs:
            logger.info("No tracks to download")
            return stats

        with DownloadProgressBar(total=len(refs), description=description) as progress:
            for ref in refs:
                outcome = self._process_ref(ref)
                stats.record(outcome)
                self._update_progress(progress, outcome)

        self._log_stats(stats)
        return stats

    # =========================================================================
    # Single track pipeline
    # =========================================================================

    def _process_ref(self, ref: TrackRef) -> TrackOutcome:
        """Resolve a TrackRef to a full song record, then process it."""
        try:
            song = self._client.get_track(ref.id)
            album = self._get_album(song.album_id)
        except DeezerDownloaderError as e:
            log_download_failure(
                logger,
                title=ref.title,
                artist=ref.artist_name,
                track_url=ref.url,
                error_message=f"Could not resolve track: {e.message}"
            )
            return TrackOutcome.FAILED

        return self._process_song(song, album)

    def _process_song(self, song: TrackDetail, album: AlbumMetadata) -> TrackOutcome:
        existing = self._find_existing(song, album)
        if existing is not None:
            logger.debug(f"File already exists: {existing}")
            return TrackOutcome.SKIPPED

        logger.debug(
            f"Downloading: {song.artist_display} - {song.full_title} "
            f"[{format_duration(song.duration)}]"
        )

        path: Path | None = None
        try:
            grant = self._negotiator.negotiate(song.track_token, self._formats)
            path = build_track_path(self._output_dir, song, album, grant.extension)
            ensure_song_directory(path.parent, album.cover_xl, self._client.transport)
            self._decryptor.download(grant.url, song.id, path)
            embed_metadata(path, song, album, grant.format, path.parent / COVER_FILENAME)
        except (DeezerDownloaderError, OSError) as e:
            message = e.message if isinstance(e, DeezerDownloaderError) else f"Unexpected error: {e}"
            self._discard(path)
            log_download_failure(
                logger,
                title=song.full_title,
                artist=song.artist_display,
                track_url=song.url,
                error_message=message,
                track_number=song.track_position or None
            )
            return TrackOutcome.FAILED

        self._log_downloaded(song, grant)
        return TrackOutcome.DOWNLOADED

    def _find_existing(self, song: TrackDetail, album: AlbumMetadata) -> Path | None:
        """Return an existing file for this song in any configured format."""
        if self._overwrite:
            return None
        extensions = {extension_for(fmt) for fmt in self._formats}
        for extension in sorted(extensions):
            candidate = build_track_path(self._output_dir, song, album, extension)
            if candidate.exists():
                return candidate
        return None

    def _get_album(self, album_id: str) -> AlbumMetadata:
        key = str(album_id)
        if key not in self._albums:
            self._albums[key] = self._client.get_album(key)
        return self._albums[key]

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _discard(path: Path | None) -> None:
        if path is not None and path.exists():
            path.unlink()
            logger.debug(f"Removed incomplete file: {path}")

    @staticmethod
    def _update_progress(progress: DownloadProgressBar, outcome: TrackOutcome) -> None:
        progress.update(
            success=outcome is TrackOutcome.DOWNLOADED,
            skipped=outcome is TrackOutcome.SKIPPED,
        )

    @staticmethod
    def _log_downloaded(song: TrackDetail, grant: StreamGrant) -> None:
        logger.info(f"Downloaded {song.full_title} as {grant.format}")
        if grant.errors:
            logger.debug(f"Refused before {grant.format}: {'; '.join(grant.errors)}")

    @staticmethod
    def _log_stats(stats: DownloadStats) -> None:
        logger.info(
            f"Download complete: {stats.downloaded}/{stats.total} successful, "
            f"{stats.failed} failed, {stats.skipped} skipped"
        )
