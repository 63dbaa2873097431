"""
Download module for deezer-downloader.

This module provides functionality for:
- Decrypting Deezer's Blowfish stripe-encrypted audio streams
- Streaming download with restart on broken connections
- Embedding tags and cover art into FLAC and MP3 files
- Orchestrating album, playlist, favorites and track downloads

Components:
    - crypto: Key derivation and block decryption
    - StreamDecryptor: Download + decrypt of one audio file
    - embed_metadata: FLAC/MP3 tagging
    - Downloader: Per-track pipeline and batch orchestration

Usage:
    from deezer_downloader.download import (
        Downloader,
        DownloadStats,
        StreamDecryptor,
        embed_metadata,
    )
"""

from deezer_downloader.download.crypto import BLOCK_SIZE, decrypt_block, decrypt_stream, derive_key
from deezer_downloader.download.decryptor import StreamDecryptor
from deezer_downloader.download.downloader import Downloader, DownloadStats, TrackOutcome
from deezer_downloader.download.tagger import embed_metadata

__all__ = [
    # Crypto
    "BLOCK_SIZE",
    "derive_key",
    "decrypt_block",
    "decrypt_stream",
    # Pipeline
    "StreamDecryptor",
    "embed_metadata",
    "Downloader",
    "DownloadStats",
    "TrackOutcome",
]
