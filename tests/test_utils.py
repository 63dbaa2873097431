# tests/test_utils.py
"""Test utilities and helpers"""

from io import BytesIO
from unittest.mock import Mock

import pytest
from PIL import Image

from deezer_downloader.core.exceptions import TransportError
from deezer_downloader.deezer.models import AlbumMetadata, TrackDetail
from deezer_downloader.deezer.transport import Transport
from deezer_downloader.utils import (
    COVER_FILENAME,
    INFO_FILENAME,
    INFO_TEXT,
    build_track_path,
    ensure_song_directory,
    extract_deezer_id,
    extract_year,
    format_duration,
    normalize_cover,
    sanitize_path,
)


def image_bytes(fmt: str, mode: str = "RGB") -> bytes:
    output = BytesIO()
    Image.new(mode, (8, 8), color=0).save(output, format=fmt)
    return output.getvalue()


class TestHelpers:
    """Test helper functions"""

    def test_sanitize_path(self):
        """Test path component sanitization"""
        assert sanitize_path("AC/DC") == "AC-DC"
        assert sanitize_path("What? Why: Because") == "What- Why- Because"
        assert sanitize_path('a<b>c"d\\e|f*g') == "a-b-c-d-e-f-g"
        assert sanitize_path("Plain Title") == "Plain Title"

    def test_sanitize_path_degenerate(self):
        """Test empty and dot components cannot escape the layout"""
        assert sanitize_path("") == "_"
        assert sanitize_path(".") == "_"
        assert sanitize_path("..") == "_"
        assert sanitize_path("...") == "..."

    def test_format_duration(self):
        """Test duration formatting"""
        assert format_duration(90) == "1:30"
        assert format_duration(3661) == "1:01:01"
        assert format_duration(0) == "0:00"
        assert format_duration(-10) == "0:00"

    def test_extract_year(self):
        """Test year extraction"""
        assert extract_year("2001-03-12") == "2001"
        assert extract_year("2001") == "2001"
        assert extract_year(" 1999-01-01 ") == "1999"
        assert extract_year("unknown") == ""
        assert extract_year("") == ""


class TestBuildTrackPath:
    """Test destination layout"""

    def test_layout(self, temp_dir, song_record, album_record):
        """Test artist / artist - album / NN - title.ext"""
        song = TrackDetail.from_song_info(song_record)
        album = AlbumMetadata.from_api(album_record)

        path = build_track_path(temp_dir, song, album, "flac")

        assert path == (
            temp_dir / "Daft Punk" / "Daft Punk - Discovery"
            / "04 - Harder Better Faster Stronger.flac"
        )

    def test_components_sanitized(self, temp_dir):
        """Test every component is sanitized and the version is left out"""
        song = TrackDetail(title="Who/What?", version="(Live)", album_title="Live: 1985", track_number="12")
        album = AlbumMetadata(artist_name="AC/DC")

        path = build_track_path(temp_dir, song, album, "mp3")

        assert path == temp_dir / "AC-DC" / "AC-DC - Live- 1985" / "12 - Who-What-.mp3"
        assert path.parent.parent.parent == temp_dir

    def test_missing_track_number(self, temp_dir):
        """Test an unparseable track number becomes 00"""
        song = TrackDetail(title="Intro", album_title="A", track_number="")
        path = build_track_path(temp_dir, song, AlbumMetadata(artist_name="B"), "flac")
        assert path.name == "00 - Intro.flac"


class TestExtractDeezerId:
    """Test id extraction from ids and URLs"""

    @pytest.mark.parametrize("value", [
        "302127",
        " 302127 ",
        "https://www.deezer.com/album/302127",
        "https://www.deezer.com/en/album/302127",
        "https://www.deezer.com/pt-br/album/302127?utm_source=share",
        "deezer.com/ALBUM/302127",
    ])
    def test_album(self, value):
        """Test every accepted album form"""
        assert extract_deezer_id(value, "album") == "302127"

    def test_wrong_kind(self):
        """Test a playlist URL is refused where an album is expected"""
        with pytest.raises(ValueError, match="Expected a album URL"):
            extract_deezer_id("https://www.deezer.com/playlist/908622995", "album")

    def test_not_a_deezer_url(self):
        """Test arbitrary text is refused"""
        with pytest.raises(ValueError):
            extract_deezer_id("https://example.com/album/1", "album")


class TestEnsureSongDirectory:
    """Test album directory preparation"""

    def test_creates_directory_with_info(self, temp_dir, caplog):
        """Test a new directory gets info.txt and no cover when the URL is empty"""
        directory = temp_dir / "Artist" / "Artist - Album"
        transport = Mock(spec=Transport)

        with caplog.at_level("INFO"):
            assert ensure_song_directory(directory, "", transport) is True

        assert (directory / INFO_FILENAME).read_text(encoding="utf-8") == INFO_TEXT
        assert not (directory / COVER_FILENAME).exists()
        assert "Skipping cover" in caplog.text
        transport.get.assert_not_called()

    def test_existing_directory_untouched(self, temp_dir):
        """Test nothing is written into an existing directory"""
        transport = Mock(spec=Transport)

        assert ensure_song_directory(temp_dir, "https://cdn.example/cover.jpg", transport) is False

        assert not (temp_dir / INFO_FILENAME).exists()
        transport.get.assert_not_called()

    def test_cover_converted_to_jpeg(self, temp_dir, make_response):
        """Test a PNG cover is stored as JPEG"""
        directory = temp_dir / "album"
        transport = Mock(spec=Transport)
        transport.get.return_value = make_response(text=image_bytes("PNG"))

        ensure_song_directory(directory, "https://cdn.example/cover.png", transport)

        with Image.open(directory / COVER_FILENAME) as img:
            assert img.format == "JPEG"
            assert img.mode == "RGB"

    def test_cover_failure_is_not_fatal(self, temp_dir, make_response):
        """Test a failed cover download leaves the directory without cover"""
        directory = temp_dir / "album"
        transport = Mock(spec=Transport)
        transport.get.return_value = make_response(status_code=404, text="Not Found")

        assert ensure_song_directory(directory, "https://cdn.example/cover.jpg", transport) is True

        assert (directory / INFO_FILENAME).exists()
        assert not (directory / COVER_FILENAME).exists()

    def test_cover_transport_error_is_not_fatal(self, temp_dir):
        """Test a transport failure on the cover is only logged"""
        directory = temp_dir / "album"
        transport = Mock(spec=Transport)
        transport.get.side_effect = TransportError("Request failed after 5 attempts", attempts=5)

        assert ensure_song_directory(directory, "https://cdn.example/cover.jpg", transport) is True
        assert not (directory / COVER_FILENAME).exists()


class TestNormalizeCover:
    """Test cover normalization"""

    def test_jpeg_kept(self):
        """Test RGB JPEG bytes are returned unchanged"""
        data = image_bytes("JPEG")
        assert normalize_cover(data) == data

    def test_rgba_png_converted(self):
        """Test RGBA is flattened to RGB JPEG"""
        converted = normalize_cover(image_bytes("PNG", mode="RGBA"))
        with Image.open(BytesIO(converted)) as img:
            assert img.format == "JPEG"
            assert img.mode == "RGB"

    def test_unreadable_data_returned(self):
        """Test data Pillow cannot read is passed through"""
        assert normalize_cover(b"not an image") == b"not an image"
