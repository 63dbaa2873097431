"""Test configuration and fixtures"""

import tempfile
from pathlib import Path
from unittest.mock import Mock

import pytest


class FakeClock:
    """Monotonic clock that only moves when told to (or when slept on)."""

    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _make_response(status_code=200, text="", json_data=None, chunks=None):
    """Build a Mock shaped like a requests.Response."""
    response = Mock()
    response.status_code = status_code
    response.text = text
    response.content = text.encode("utf-8") if isinstance(text, str) else text
    response.json.return_value = json_data
    response.iter_content.return_value = iter(chunks or [])
    return response


def _app_state_page(state_json: str) -> str:
    """Wrap a JSON document the way Deezer pages embed their app state."""
    return (
        "<html><head><script>var x = 1;</script></head><body>"
        f"<script>window.__DZR_APP_STATE__ = {state_json}</script>"
        "</body></html>"
    )


@pytest.fixture
def make_response():
    """Factory for Mock responses: make_response(status_code, text, json_data, chunks)"""
    return _make_response


@pytest.fixture
def app_state_page():
    """Factory for HTML pages embedding an app-state JSON document"""
    return _app_state_page


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def fake_clock():
    """Controllable clock for rate limiter tests"""
    return FakeClock()


@pytest.fixture
def song_record():
    """Sample app-state song record (SNG_* conventions, numbers as strings)"""
    return {
        "SNG_ID": "3135556",
        "SNG_TITLE": "Harder Better Faster Stronger",
        "VERSION": "",
        "ART_ID": "27",
        "ART_NAME": "Daft Punk",
        "ARTISTS": [{"ART_ID": "27", "ART_NAME": "Daft Punk"}],
        "ALB_ID": "302127",
        "ALB_TITLE": "Discovery",
        "ALB_PICTURE": "2e018122cb56986277102d2041a592c8",
        "MD5_ORIGIN": "51afcde9f56a132096c0496cc95eb24b",
        "MEDIA_VERSION": "9",
        "DURATION": "224",
        "DISK_NUMBER": "1",
        "TRACK_NUMBER": "4",
        "TRACK_TOKEN": "AAAAAZ-track-token",
        "TRACK_TOKEN_EXPIRE": 1700000000,
        "ISRC": "GBDUW0000059",
        "SNG_CONTRIBUTORS": {
            "composer": ["Thomas Bangalter", "Guy-Manuel de Homem-Christo"],
            "main_artist": ["Daft Punk"],
        },
        "COPYRIGHT": "(P) 2001 Daft Life Ltd.",
        "PHYSICAL_RELEASE_DATE": "2001-03-07",
        "DIGITAL_RELEASE_DATE": "2001-03-12",
    }


@pytest.fixture
def album_record():
    """Sample api.deezer.com/album response"""
    return {
        "id": 302127,
        "title": "Discovery",
        "upc": "724384960650",
        "cover_xl": "https://e-cdns-images.dzcdn.net/images/cover/2e01/1000x1000-000000-80-0-0.jpg",
        "md5_image": "2e018122cb56986277102d2041a592c8",
        "genres": {"data": [{"id": 113, "name": "Dance"}, {"id": 106, "name": "Electro"}]},
        "label": "Parlophone (France)",
        "nb_tracks": 14,
        "nb_discs": 1,
        "release_date": "2001-03-07",
        "record_type": "album",
        "artist": {"id": 27, "name": "Daft Punk"},
    }
