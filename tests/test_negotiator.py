"""Test stream format negotiation"""

from unittest.mock import Mock

import pytest

from deezer_downloader.core.exceptions import (
    FormatRejectedError,
    FormatUnavailableError,
    TransportError,
    UpstreamStatusError,
)
from deezer_downloader.deezer.negotiator import (
    DEFAULT_FORMATS,
    MEDIA_URL,
    FormatNegotiator,
    parse_grant,
)
from deezer_downloader.deezer.transport import Transport


def rejected(message="License token has no sufficient rights on requested media"):
    return {"data": [{"errors": [{"code": 2002, "message": message}]}]}


def granted(fmt, sources):
    return {
        "data": [{
            "media": [{
                "media_type": "FULL",
                "cipher": {"type": "BF_CBC_STRIPE"},
                "format": fmt,
                "sources": [{"url": url, "provider": provider} for provider, url in sources],
            }],
        }],
    }


def make_negotiator(*answers):
    transport = Mock(spec=Transport)
    transport.post_json.side_effect = list(answers)
    return FormatNegotiator(transport, license_token="license-token")


class TestNegotiate:
    """Test the ordered single-pass negotiation"""

    def test_flac_rejected_mp3_320_accepted(self):
        """Test the first granted format wins and later formats are not tried"""
        negotiator = make_negotiator(
            rejected(),
            granted("MP3_320", [("ak", "https://cdn.example/320.mp3")]),
        )

        grant = negotiator.negotiate("track-token")

        assert grant.format == "MP3_320"
        assert grant.url == "https://cdn.example/320.mp3"
        assert grant.extension == "mp3"
        assert negotiator.transport.post_json.call_count == 2
        assert grant.errors == (
            "FLAC: Media endpoint error for FLAC: License token has no sufficient rights on requested media",
        )

    def test_request_body(self):
        """Test the JSON body sent for each format"""
        negotiator = make_negotiator(granted("FLAC", [("ak", "https://cdn.example/a.flac")]))
        grant = negotiator.negotiate("track-token")
        assert grant.errors == ()

        url, payload = negotiator.transport.post_json.call_args.args
        assert url == MEDIA_URL
        assert payload == {
            "license_token": "license-token",
            "media": [{"type": "FULL", "formats": [{"cipher": "BF_CBC_STRIPE", "format": "FLAC"}]}],
            "track_tokens": ["track-token"],
        }

    def test_request_failures_skip_to_next_format(self):
        """Test non-200 and transport failures count as rejections"""
        negotiator = make_negotiator(
            UpstreamStatusError("Got status code 403", status_code=403),
            TransportError("Request failed after 5 attempts", attempts=5),
            granted("MP3_256", [("ak", "https://cdn.example/256.mp3")]),
        )
        assert negotiator.negotiate("track-token").format == "MP3_256"

    def test_invalid_json_skips_to_next_format(self):
        """Test an undecodable answer counts as a rejection"""
        negotiator = make_negotiator(
            ValueError("Expecting value"),
            granted("MP3_320", [("ak", "https://cdn.example/320.mp3")]),
        )
        assert negotiator.negotiate("track-token").format == "MP3_320"

    def test_all_formats_rejected(self):
        """Test FormatUnavailableError after a single pass"""
        negotiator = make_negotiator(*[rejected() for _ in DEFAULT_FORMATS])

        with pytest.raises(FormatUnavailableError, match="No available formats") as exc_info:
            negotiator.negotiate("track-token")

        assert negotiator.transport.post_json.call_count == len(DEFAULT_FORMATS)
        assert set(exc_info.value.details["reasons"]) == set(DEFAULT_FORMATS)

    def test_custom_format_order(self):
        """Test only the configured formats are requested"""
        negotiator = make_negotiator(rejected())
        with pytest.raises(FormatUnavailableError):
            negotiator.negotiate("track-token", formats=["MP3_128"])
        assert negotiator.transport.post_json.call_count == 1

    def test_empty_token(self):
        """Test no request is made without a track token"""
        negotiator = make_negotiator()
        with pytest.raises(FormatUnavailableError):
            negotiator.negotiate("")
        negotiator.transport.post_json.assert_not_called()


class TestParseGrant:
    """Test grant validation"""

    def test_prefers_ak_provider(self):
        """Test the primary edge cache is chosen regardless of order"""
        grant = parse_grant(granted("FLAC", [
            ("other", "https://other.example/a.flac"),
            ("ak", "https://ak.example/a.flac"),
        ]), "FLAC")
        assert grant.url == "https://ak.example/a.flac"
        assert grant.extension == "flac"

    def test_falls_back_to_first_source(self):
        """Test the first source when no ak provider is listed"""
        grant = parse_grant(granted("FLAC", [
            ("x", "https://x.example/a.flac"),
            ("y", "https://y.example/a.flac"),
        ]), "FLAC")
        assert grant.url == "https://x.example/a.flac"

    @pytest.mark.parametrize("response", [
        {},
        {"data": []},
        {"data": [{"media": []}]},
        {"data": [{"media": [{"sources": []}]}]},
        rejected(),
        [],
    ])
    def test_rejected_shapes(self, response):
        """Test every non-grant shape raises FormatRejectedError"""
        with pytest.raises(FormatRejectedError):
            parse_grant(response, "FLAC")
