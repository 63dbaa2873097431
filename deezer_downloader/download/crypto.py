"""
Blowfish stripe decryption for Deezer audio streams.

Deezer serves audio files where the stream, split into 2048-byte blocks
counted from zero, has every third block (0, 3, 6, ...) encrypted with
Blowfish in CBC mode. Each encrypted block is a separate CBC message
starting from the same fixed IV. The other blocks, and a short final
block, are plain.

The per-track key is derived from the track id and a secret pre-key:

    h = md5(str(track_id)).hexdigest()          # 32 lowercase hex chars
    key[i] = ord(h[i]) ^ ord(h[i + 16]) ^ pre_key[i]    for i in 0..15
"""

import hashlib
from typing import BinaryIO, Iterable

from Crypto.Cipher import Blowfish


BLOCK_SIZE = 2048
KEY_LENGTH = 16


def derive_key(track_id: int | str, pre_key: str | bytes) -> bytes:
    """
    Derive the 16-byte Blowfish key for a track.

    Args:
        track_id: Numeric Deezer track id (SNG_ID).
        pre_key: Key-derivation secret, at least 16 bytes.

    Returns:
        16-byte key. Deterministic for a given (track_id, pre_key).

    Raises:
        ValueError: If pre_key is shorter than 16 bytes.
    """
    if isinstance(pre_key, str):
        pre_key = pre_key.encode("utf-8")
    if len(pre_key) < KEY_LENGTH:
        raise ValueError(f"pre_key must be at least {KEY_LENGTH} bytes, got {len(pre_key)}")

    digest = hashlib.md5(str(track_id).encode("ascii")).hexdigest()
    return bytes(
        ord(digest[i]) ^ ord(digest[i + KEY_LENGTH]) ^ pre_key[i]
        for i in range(KEY_LENGTH)
    )


def decrypt_block(block: bytes, key: bytes, iv: bytes) -> bytes:
    """Decrypt one complete 2048-byte block (fresh CBC state from the IV)."""
    cipher = Blowfish.new(key, Blowfish.MODE_CBC, iv=iv)
    return cipher.decrypt(block)


def decrypt_stream(chunks: Iterable[bytes], key: bytes, iv: bytes, output: BinaryIO) -> int:
    """
    Decrypt a chunked stream into a writable binary file.

    Chunks may have any size; they are regrouped into 2048-byte blocks so
    block boundaries do not depend on how the network delivers the bytes.
    Each block is written as soon as it is complete.

    Args:
        chunks: Encrypted byte chunks in stream order.
        key: Key from derive_key().
        iv: 8-byte Blowfish IV.
        output: Destination opened in binary write mode.

    Returns:
        Number of bytes written (equal to the number of bytes read).
    """
    buffer = bytearray()
    index = 0
    written = 0

    for chunk in chunks:
        if not chunk:
            continue
        buffer.extend(chunk)
        while len(buffer) >= BLOCK_SIZE:
            block = bytes(buffer[:BLOCK_SIZE])
            del buffer[:BLOCK_SIZE]
            written += _write_block(block, index, key, iv, output)
            index += 1

    if buffer:
        # short final block is never encrypted
        written += _write_block(bytes(buffer), index, key, iv, output)

    return written


def _write_block(block: bytes, index: int, key: bytes, iv: bytes, output: BinaryIO) -> int:
    if index % 3 == 0 and len(block) == BLOCK_SIZE:
        block = decrypt_block(block, key, iv)
    output.write(block)
    return len(block)
