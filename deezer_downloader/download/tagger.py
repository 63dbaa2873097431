"""
Metadata embedding for downloaded tracks.

Writes the song and album fields into the audio file right after it has
been decrypted:

    FLAC  Vorbis comments + front cover picture block (mutagen.flac)
    MP3   ID3v2.4 frames + APIC front cover (mutagen.id3)

Field Mapping:
    Tag           FLAC          ID3    Source
    -----------   -----------   ----   --------------------------------
    Title         TITLE         TIT2   song title + version
    Album         ALBUM         TALB   song album title
    Artist        ARTIST        TPE1   all song artists, sorted
    Album artist  ALBUMARTIST   TPE2   album artist name
    Composer      COMPOSER      TCOM   song composers
    Genre         GENRE         TCON   album genres, else album label
    Track         TRACKNUMBER   TRCK   song track number ("n/total" in ID3)
    Track total   TRACKTOTAL           album nb_tracks, if known
    Disc          DISCNUMBER    TPOS   song disk number
    Copyright     COPYRIGHT     TCOP   song copyright
    Date          DATE          TDRC   album release year, else year of
                                       the song's physical release date
    ISRC          ISRC          TSRC   song ISRC
    Cover         picture       APIC   cover.jpg of the album directory

Empty values are not written. For FLAC, when no year can be extracted,
the raw physical release date is written as DATE.
"""

from io import BytesIO
from pathlib import Path

import mutagen
import mutagen.flac
import mutagen.id3
from mutagen.flac import FLAC
from mutagen.id3 import APIC, ID3, TALB, TCOM, TCON, TCOP, TDRC, TIT2, TPE1, TPE2, TPOS, TRCK, TSRC
from mutagen.mp3 import MP3
from PIL import Image, UnidentifiedImageError

from deezer_downloader.core.exceptions import MetadataError
from deezer_downloader.core.logger import get_logger
from deezer_downloader.deezer.models import AlbumMetadata, TrackDetail
from deezer_downloader.utils import extract_year

logger = get_logger(__name__)


COVER_MIME = "image/jpeg"
COVER_DESCRIPTION = "Cover"
FRONT_COVER = 3


def embed_metadata(
    path: Path,
    song: TrackDetail,
    album: AlbumMetadata,
    fmt: str,
    cover_path: Path | None = None,
) -> None:
    """
    Tag a downloaded file according to its format.

    Args:
        path: The decrypted audio file.
        song: Song record the file was downloaded from.
        album: Album metadata for album-level fields.
        fmt: The negotiated format ("FLAC", "MP3_320", ...).
        cover_path: JPEG to embed. Skipped if None or missing.

    Raises:
        MetadataError: If the file cannot be read or saved by mutagen.
    """
    cover = _read_cover(cover_path)
    try:
        if fmt.upper().startswith("MP3"):
            _embed_mp3_metadata(path, song, album, cover)
        else:
            _embed_flac_metadata(path, song, album, cover)
    except (mutagen.MutagenError, OSError) as e:
        raise MetadataError(
            f"Failed to embed metadata: {e}",
            details={"path": str(path), "format": fmt}
        ) from e

    logger.debug(f"{fmt} metadata embedded: {path.name}")


def release_year(song: TrackDetail, album: AlbumMetadata) -> str:
    """Album release year, else the year of the song's physical release."""
    return extract_year(album.release_date) or extract_year(song.physical_release_date)


def _embed_flac_metadata(path: Path, song: TrackDetail, album: AlbumMetadata, cover: bytes | None) -> None:
    audio = FLAC(path)

    fields = {
        "TITLE": song.full_title,
        "ALBUM": song.album_title,
        "ARTIST": song.artist_display,
        "ALBUMARTIST": album.artist_name,
        "COMPOSER": song.composer_display,
        "TRACKNUMBER": song.track_number,
        "TRACKTOTAL": str(album.nb_tracks) if album.nb_tracks > 0 else "",
        "DISCNUMBER": song.disk_number,
        "COPYRIGHT": song.copyright,
        "GENRE": album.genre_display,
        "DATE": release_year(song, album) or song.physical_release_date,
        "ISRC": song.isrc,
    }
    for key, value in fields.items():
        if value:
            audio[key] = value

    if cover:
        picture = mutagen.flac.Picture()
        picture.type = FRONT_COVER
        picture.mime = COVER_MIME
        picture.desc = COVER_DESCRIPTION
        picture.data = cover
        _set_picture_dimensions(picture, cover)
        audio.clear_pictures()
        audio.add_picture(picture)

    audio.save()


def _embed_mp3_metadata(path: Path, song: TrackDetail, album: AlbumMetadata, cover: bytes | None) -> None:
    try:
        audio = MP3(path, ID3=ID3)
        if audio.tags is None:
            audio.add_tags()
    except mutagen.id3.ID3NoHeaderError:
        audio = MP3(path)
        audio.add_tags()

    audio.tags.add(TIT2(encoding=3, text=song.full_title))
    audio.tags.add(TALB(encoding=3, text=song.album_title))
    audio.tags.add(TPE1(encoding=3, text=song.artist_display))
    audio.tags.add(TPE2(encoding=3, text=album.artist_name))

    if song.composer_display:
        audio.tags.add(TCOM(encoding=3, text=song.composer_display))
    if album.genre_display:
        audio.tags.add(TCON(encoding=3, text=album.genre_display))

    track = _track_frame_text(song.track_number, album.nb_tracks)
    if track:
        audio.tags.add(TRCK(encoding=3, text=track))
    if song.disk_number:
        audio.tags.add(TPOS(encoding=3, text=song.disk_number))
    if song.copyright:
        audio.tags.add(TCOP(encoding=3, text=song.copyright))

    year = release_year(song, album)
    if year:
        audio.tags.add(TDRC(encoding=3, text=year))
    if song.isrc:
        audio.tags.add(TSRC(encoding=3, text=song.isrc))

    if cover:
        audio.tags.add(APIC(
            encoding=3,
            mime=COVER_MIME,
            type=FRONT_COVER,
            desc=COVER_DESCRIPTION,
            data=cover
        ))

    audio.save(v2_version=4)


def _track_frame_text(track_number: str, total: int) -> str:
    """TRCK value: "n/total", "n", or just the total when the number is unknown."""
    if track_number:
        return f"{track_number}/{total}" if total > 0 else track_number
    if total > 0:
        return str(total)
    return ""


def _read_cover(cover_path: Path | None) -> bytes | None:
    if cover_path is None or not cover_path.is_file():
        return None
    return cover_path.read_bytes()


def _set_picture_dimensions(picture: mutagen.flac.Picture, data: bytes) -> None:
    try:
        with Image.open(BytesIO(data)) as img:
            picture.width, picture.height = img.size
            picture.depth = 24
    except (UnidentifiedImageError, OSError) as e:
        logger.debug(f"Could not read cover dimensions: {e}")
