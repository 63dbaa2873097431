"""Test key derivation, stripe decryption and the streaming decryptor"""

import hashlib
from io import BytesIO
from unittest.mock import Mock

import pytest
import requests
from Crypto.Cipher import Blowfish

from deezer_downloader.core.exceptions import (
    DecryptionExhaustedError,
    TransportError,
    UpstreamStatusError,
)
from deezer_downloader.deezer.transport import Transport
from deezer_downloader.download.crypto import BLOCK_SIZE, decrypt_block, decrypt_stream, derive_key
from deezer_downloader.download.decryptor import StreamDecryptor


PRE_KEY = "g4el58wc0zvf9na1"
IV_HEX = "0001020304050607"
IV = bytes.fromhex(IV_HEX)
TRACK_ID = 3135556


def plaintext(length: int) -> bytes:
    return bytes(i * 7 % 251 for i in range(length))


def encrypt_stripes(data: bytes, key: bytes) -> bytes:
    """Encrypt every third complete block, the way the server does"""
    out = bytearray()
    for index, offset in enumerate(range(0, len(data), BLOCK_SIZE)):
        block = data[offset:offset + BLOCK_SIZE]
        if index % 3 == 0 and len(block) == BLOCK_SIZE:
            block = Blowfish.new(key, Blowfish.MODE_CBC, iv=IV).encrypt(block)
        out.extend(block)
    return bytes(out)


def chunked(data: bytes, size: int) -> list[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


class TestDeriveKey:
    """Test per-track key derivation"""

    def test_formula(self):
        """Test key[i] = h[i] ^ h[i+16] ^ pre_key[i] over the hex digest"""
        digest = hashlib.md5(b"3135556").hexdigest()
        expected = bytes(
            ord(digest[i]) ^ ord(digest[i + 16]) ^ PRE_KEY.encode()[i]
            for i in range(16)
        )
        assert derive_key(TRACK_ID, PRE_KEY) == expected

    def test_known_vector(self):
        """Test a fixed key for track 3135556"""
        assert derive_key(3135556, "g4el58wc0zvf9na1") == bytes.fromhex("6c6c666b39662c37652575603c643439")

    def test_deterministic(self):
        """Test same inputs give the same 16-byte key"""
        assert derive_key(TRACK_ID, PRE_KEY) == derive_key("3135556", PRE_KEY.encode())
        assert len(derive_key(TRACK_ID, PRE_KEY)) == 16

    def test_depends_on_track(self):
        """Test different tracks get different keys"""
        assert derive_key(1, PRE_KEY) != derive_key(2, PRE_KEY)

    def test_short_pre_key(self):
        """Test a pre_key shorter than 16 bytes is refused"""
        with pytest.raises(ValueError):
            derive_key(TRACK_ID, "short")


class TestDecryptStream:
    """Test 1-in-3 block decryption"""

    def test_round_trip_with_irregular_chunks(self):
        """Test blocks are regrouped regardless of chunk boundaries"""
        key = derive_key(TRACK_ID, PRE_KEY)
        data = plaintext(BLOCK_SIZE * 7 + 100)
        output = BytesIO()

        written = decrypt_stream(chunked(encrypt_stripes(data, key), 1000), key, IV, output)

        assert written == len(data)
        assert output.getvalue() == data

    def test_only_every_third_block_is_encrypted(self):
        """Test blocks 1, 2, 4, 5 pass through untouched"""
        key = derive_key(TRACK_ID, PRE_KEY)
        data = plaintext(BLOCK_SIZE * 6)
        encrypted = encrypt_stripes(data, key)

        for index in range(6):
            block = slice(index * BLOCK_SIZE, (index + 1) * BLOCK_SIZE)
            if index % 3 == 0:
                assert encrypted[block] != data[block]
            else:
                assert encrypted[block] == data[block]

        assert decrypt_block(encrypted[:BLOCK_SIZE], key, IV) == data[:BLOCK_SIZE]

    def test_short_final_block_written_as_is(self):
        """Test a short block at an encrypted index is not decrypted"""
        key = derive_key(TRACK_ID, PRE_KEY)
        data = plaintext(BLOCK_SIZE * 3 + 500)
        encrypted = encrypt_stripes(data, key)
        assert encrypted[-500:] == data[-500:]

        output = BytesIO()
        decrypt_stream([encrypted], key, IV, output)
        assert output.getvalue() == data

    def test_empty_stream(self):
        """Test nothing is written for an empty body"""
        output = BytesIO()
        assert decrypt_stream([b"", b""], b"k" * 16, IV, output) == 0
        assert output.getvalue() == b""


def stream_response(chunks, fail_after=None, status_code=200):
    """Response whose iter_content yields chunks, optionally breaking midway"""
    def iterate(chunk_size=None):
        for n, chunk in enumerate(chunks):
            if fail_after is not None and n == fail_after:
                raise requests.exceptions.ChunkedEncodingError("Connection broken")
            yield chunk

    response = Mock()
    response.status_code = status_code
    response.text = ""
    response.iter_content.side_effect = iterate
    return response


class TestStreamDecryptor:
    """Test download with restart"""

    def make_decryptor(self, responses, max_attempts=3):
        transport = Mock(spec=Transport)
        transport.get.side_effect = responses
        sleep = Mock()
        decryptor = StreamDecryptor(transport, PRE_KEY, IV_HEX, max_attempts=max_attempts, sleep=sleep)
        return decryptor, transport, sleep

    def test_download(self, temp_dir):
        """Test a clean download writes the decrypted file"""
        key = derive_key(TRACK_ID, PRE_KEY)
        data = plaintext(BLOCK_SIZE * 4 + 10)
        response = stream_response(chunked(encrypt_stripes(data, key), 4096))
        decryptor, transport, sleep = self.make_decryptor([response])
        destination = temp_dir / "song.flac"

        written = decryptor.download("https://cdn.example/a", TRACK_ID, destination)

        assert written == len(data)
        assert destination.read_bytes() == data
        transport.get.assert_called_once_with("https://cdn.example/a", stream=True)
        response.close.assert_called_once()
        sleep.assert_not_called()

    def test_restart_from_zero(self, temp_dir):
        """Test a broken stream restarts and the file holds one clean copy"""
        key = derive_key(TRACK_ID, PRE_KEY)
        data = plaintext(BLOCK_SIZE * 5)
        chunks = chunked(encrypt_stripes(data, key), BLOCK_SIZE)
        broken = stream_response(chunks, fail_after=2)
        clean = stream_response(chunks)
        decryptor, transport, sleep = self.make_decryptor([broken, clean])
        destination = temp_dir / "song.flac"

        decryptor.download("https://cdn.example/a", TRACK_ID, destination)

        assert destination.read_bytes() == data
        assert transport.get.call_count == 2
        sleep.assert_called_once_with(0.5)
        broken.close.assert_called_once()

    def test_transport_error_restarts(self, temp_dir):
        """Test a failed request counts as an attempt"""
        key = derive_key(TRACK_ID, PRE_KEY)
        data = plaintext(100)
        decryptor, transport, _ = self.make_decryptor([
            TransportError("Request failed after 5 attempts", attempts=5),
            stream_response([encrypt_stripes(data, key)]),
        ])
        decryptor.download("https://cdn.example/a", TRACK_ID, temp_dir / "song.mp3")
        assert (temp_dir / "song.mp3").read_bytes() == data

    def test_exhaustion(self, temp_dir):
        """Test DecryptionExhaustedError after max_attempts broken streams"""
        responses = [stream_response([b"x" * 10, b"y"], fail_after=1) for _ in range(3)]
        decryptor, transport, sleep = self.make_decryptor(responses, max_attempts=3)

        with pytest.raises(DecryptionExhaustedError) as exc_info:
            decryptor.download("https://cdn.example/a", TRACK_ID, temp_dir / "song.flac")

        assert exc_info.value.attempts == 3
        assert transport.get.call_count == 3
        assert sleep.call_count == 2

    def test_non_200_is_not_retried(self, temp_dir):
        """Test an upstream status error fails immediately"""
        response = stream_response([], status_code=403)
        decryptor, transport, sleep = self.make_decryptor([response])

        with pytest.raises(UpstreamStatusError):
            decryptor.download("https://cdn.example/a", TRACK_ID, temp_dir / "song.flac")

        assert transport.get.call_count == 1
        response.close.assert_called_once()
        sleep.assert_not_called()
