"""
Streaming download and decryption of one audio file.

StreamDecryptor fetches an encrypted stream from a negotiated URL and
writes the decrypted audio to disk block by block. If the connection
breaks mid-stream, the whole download restarts from byte zero after a
short pause, up to a fixed number of attempts.

Failure Semantics:
    - Non-200 response: raised immediately as UpstreamStatusError.
      Retrying will not help (expired URL, region block).
    - Network or read error during the stream: restart after
      `retry_delay` seconds; the destination is truncated.
    - Too many restarts: DecryptionExhaustedError. The destination holds
      whatever the last attempt wrote.

Usage:
    decryptor = StreamDecryptor(transport, config.deezer.pre_key, config.deezer.iv)
    size = decryptor.download(grant.url, song.id, path)
"""

import time
from pathlib import Path
from typing import Callable

import requests

from deezer_downloader.core.exceptions import DecryptionExhaustedError, TransportError
from deezer_downloader.core.logger import get_logger
from deezer_downloader.deezer.transport import Transport, check_status
from deezer_downloader.download.crypto import BLOCK_SIZE, decrypt_stream, derive_key

logger = get_logger(__name__)


DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_RETRY_DELAY = 0.5  # seconds


class StreamDecryptor:
    """
    Downloads and decrypts Deezer audio streams.

    Attributes:
        transport: Rate-limited transport used for the stream request.
        pre_key: Key-derivation secret.
        iv: Blowfish IV as bytes.
        max_attempts: Total attempts per download (>= 1).
        retry_delay: Pause in seconds before restarting.
    """

    def __init__(
        self,
        transport: Transport,
        pre_key: str,
        iv_hex: str,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.transport = transport
        self.pre_key = pre_key
        self.iv = bytes.fromhex(iv_hex)
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self._sleep = sleep

    def download(self, url: str, track_id: int | str, destination: Path) -> int:
        """
        Download, decrypt and write one audio file.

        Args:
            url: Stream URL from a StreamGrant.
            track_id: Numeric track id (key derivation input).
            destination: File to create or overwrite.

        Returns:
            Number of bytes written.

        Raises:
            UpstreamStatusError: If the stream answers with a non-200 status.
            DecryptionExhaustedError: If every attempt broke mid-stream.
        """
        key = derive_key(track_id, self.pre_key)
        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                written = self._attempt(url, key, destination)
            except (requests.exceptions.RequestException, TransportError) as e:
                last_error = e
                logger.warning(f"Error reading stream for track {track_id} (attempt {attempt}): {e}")
                if attempt < self.max_attempts:
                    logger.info("Retrying")
                    self._sleep(self.retry_delay)
                continue

            logger.info(f"Wrote {written} bytes: {destination}")
            return written

        raise DecryptionExhaustedError(
            f"Giving up downloading song after {self.max_attempts} attempts",
            details={
                "track_id": str(track_id),
                "path": str(destination),
                "original_error": str(last_error),
            },
            attempts=self.max_attempts
        )

    def _attempt(self, url: str, key: bytes, destination: Path) -> int:
        response = self.transport.get(url, stream=True)
        try:
            check_status(response, url)
            with open(destination, "wb") as f:
                return decrypt_stream(
                    response.iter_content(chunk_size=BLOCK_SIZE),
                    key,
                    self.iv,
                    f,
                )
        finally:
            response.close()
