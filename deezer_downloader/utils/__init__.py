"""
Utility functions for deezer-downloader.

Common helpers used across the application:
    - Path component sanitization and track path layout
    - Song directory preparation (info.txt, cover.jpg)
    - Deezer id extraction from URLs
    - Date and duration formatting

Usage:
    from deezer_downloader.utils import (
        sanitize_path,
        build_track_path,
        ensure_song_directory,
        extract_deezer_id
    )
"""

import re
from io import BytesIO
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from deezer_downloader.core.exceptions import DeezerError
from deezer_downloader.core.logger import get_logger
from deezer_downloader.deezer.models import AlbumMetadata, TrackDetail
from deezer_downloader.deezer.transport import Transport, check_status

logger = get_logger(__name__)


INFO_FILENAME = "info.txt"
INFO_TEXT = "Downloaded from Deezer.\n"
COVER_FILENAME = "cover.jpg"

# Characters not allowed in a path component on at least one platform
UNSAFE_PATH_CHARS = re.compile(r'[<>:"/\\|?*]')

DEEZER_KINDS = ("album", "playlist", "track", "user", "artist")
DEEZER_URL_PATTERN = re.compile(
    r"deezer\.com/(?:[a-z]{2}(?:-[a-z]{2})?/)?(?P<kind>[a-z]+)/(?P<id>\d+)",
    re.IGNORECASE,
)


def sanitize_path(name: str) -> str:
    """
    Make a string safe to use as a single path component.

    Each of < > : " / \\ | ? * is replaced with "-". A result of "",
    "." or ".." would escape or collapse the directory layout and is
    replaced with "_".

    Examples:
        sanitize_path("AC/DC")               # "AC-DC"
        sanitize_path("What? Why: Because")  # "What- Why- Because"
    """
    cleaned = UNSAFE_PATH_CHARS.sub("-", name)
    if cleaned in ("", ".", ".."):
        return "_"
    return cleaned


def build_track_path(
    destination: Path,
    song: TrackDetail,
    album: AlbumMetadata,
    extension: str,
) -> Path:
    """
    Build the destination path of a track.

    Layout:
        {destination}/{artist}/{artist} - {album}/{NN} - {title}.{ext}

    where artist is the album artist, album is the song's album title,
    NN is the zero-padded track number and title is the song title
    without version.

    Example:
        build_track_path(Path("/music"), song, album, "flac")
        # /music/Daft Punk/Daft Punk - Discovery/04 - Harder Better Faster Stronger.flac
    """
    artist = sanitize_path(album.artist_name)
    album_title = sanitize_path(song.album_title)
    title = sanitize_path(song.title)
    return (
        destination
        / artist
        / f"{artist} - {album_title}"
        / f"{song.track_position:02d} - {title}.{extension}"
    )


def ensure_directory(path: Path) -> Path:
    """
    Ensure a directory exists, creating it and its parents if necessary.

    Returns:
        The same path (for chaining).
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def ensure_song_directory(directory: Path, cover_url: str, transport: Transport) -> bool:
    """
    Prepare a new album directory.

    Only acts when the directory does not exist yet:
        1. Create it (with parents)
        2. Write info.txt
        3. Download the album cover to cover.jpg

    A failed cover download is logged and leaves the directory without
    cover.jpg; tracks are still downloaded and tagged without artwork.

    Args:
        directory: Album directory (parent of the track file).
        cover_url: Album cover URL. Empty to skip the cover.
        transport: Transport for the cover request.

    Returns:
        True if the directory was created by this call.
    """
    if directory.exists():
        return False

    ensure_directory(directory)
    (directory / INFO_FILENAME).write_text(INFO_TEXT, encoding="utf-8")

    if not cover_url:
        logger.info("Skipping cover")
        return True

    try:
        response = transport.get(cover_url)
        check_status(response, cover_url)
    except DeezerError as e:
        logger.warning(f"Failed to download cover from {cover_url}: {e}")
        return True

    (directory / COVER_FILENAME).write_bytes(normalize_cover(response.content))
    return True


def normalize_cover(image_data: bytes) -> bytes:
    """
    Return the cover as RGB JPEG bytes.

    JPEG covers are kept as downloaded. Other formats are converted.
    Data Pillow cannot read is returned unchanged.
    """
    try:
        with Image.open(BytesIO(image_data)) as img:
            if img.format == "JPEG" and img.mode == "RGB":
                return image_data

            if img.mode != "RGB":
                img = img.convert("RGB")

            output = BytesIO()
            img.save(output, format="JPEG", quality=90, optimize=True)
            return output.getvalue()
    except (UnidentifiedImageError, OSError) as e:
        logger.warning(f"Failed to process cover image: {e}")
        return image_data


def extract_year(date: str) -> str:
    """
    Extract the 4-digit year from a date string.

    Examples:
        extract_year("2001-03-12")  # "2001"
        extract_year("2001")        # "2001"
        extract_year("unknown")     # ""
        extract_year("")            # ""
    """
    date = date.strip()
    year = date[:4]
    if len(year) == 4 and all("0" <= char <= "9" for char in year):
        return year
    return ""


def extract_deezer_id(value: str, kind: str) -> str:
    """
    Extract a Deezer id from a URL or return a bare id as-is.

    Handles:
        - 302127
        - https://www.deezer.com/album/302127
        - https://www.deezer.com/en/album/302127?utm_source=x

    Args:
        value: URL or numeric id.
        kind: Expected entity kind ("album", "playlist", "track", "user").

    Returns:
        The numeric id as a string.

    Raises:
        ValueError: If the value is neither a numeric id nor a Deezer URL
                    of the expected kind.
    """
    value = value.strip()
    if value.isdigit():
        return value

    match = DEEZER_URL_PATTERN.search(value)
    if match is None:
        raise ValueError(f"Not a Deezer {kind} id or URL: {value}")

    if match.group("kind").lower() != kind:
        raise ValueError(f"Expected a {kind} URL, got a {match.group('kind')} URL: {value}")

    return match.group("id")


def format_duration(seconds: int) -> str:
    """
    Format a duration in seconds as "M:SS" or "H:MM:SS".

    Examples:
        format_duration(225)   # "3:45"
        format_duration(3750)  # "1:02:30"
    """
    seconds = max(0, seconds)
    if seconds < 3600:
        return f"{seconds // 60}:{seconds % 60:02d}"
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    return f"{hours}:{minutes:02d}:{seconds % 60:02d}"
