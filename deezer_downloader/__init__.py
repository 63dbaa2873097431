"""
deezer-downloader: Download albums, playlists and tracks from Deezer.

This package resolves Deezer metadata, negotiates the best available
stream format, downloads and decrypts the audio, and saves it with full
tags and cover art.

Architecture:
    Every track goes through a sequential pipeline:

    RESOLVE (deezer/client.py)
        - Album metadata from the public API
        - Full song records (with track token) from the web app state
        - Playlists from the API, with a web page fallback that mines
          the track list out of the embedded app state

    NEGOTIATE (deezer/negotiator.py)
        - Ask the media endpoint for FLAC, then MP3_320, MP3_256, MP3_128
        - First granted format wins

    STREAM (download/decryptor.py, download/crypto.py)
        - Download the stream and decrypt every third 2048-byte block
          with Blowfish-CBC, restarting on broken connections

    TAG (download/tagger.py)
        - Vorbis comments (FLAC) or ID3v2 frames (MP3) plus cover art

    All requests share one rate-limited Transport (deezer/transport.py).

Modules:
    core/       - Configuration, logging, progress, exceptions
    deezer/     - Transport, page state, models, resolvers, negotiation
    download/   - Decryption, tagging and the download pipeline
    utils/      - Paths, song directories, id parsing
    cli.py      - Command-line interface

Usage:
    Command Line:
        deezer-dl album 302127
        deezer-dl playlist https://www.deezer.com/en/playlist/908622995
        deezer-dl track 3135556

    Python API:
        from deezer_downloader.core import load_config, setup_logging
        from deezer_downloader.deezer import DeezerClient, FormatNegotiator, Transport
        from deezer_downloader.download import Downloader, StreamDecryptor

        config = load_config()
        setup_logging(config.output.directory)

        transport = Transport(arl=config.deezer.arl)
        downloader = Downloader(
            client=DeezerClient(transport, config.deezer.license_token),
            negotiator=FormatNegotiator(transport, config.deezer.license_token),
            decryptor=StreamDecryptor(transport, config.deezer.pre_key, config.deezer.iv),
            output_dir=config.output.directory,
        )
        stats = downloader.download_album("302127")

Dependencies:
    - requests: HTTP
    - pycryptodome: Blowfish decryption
    - mutagen: Audio metadata
    - Pillow: Cover image handling
    - click / rich-click: CLI framework and colors
    - rich: Progress bars
    - tqdm: Log output that cooperates with progress bars
    - pyyaml / python-dotenv: Configuration
"""

__version__ = "0.1.0"
__author__ = "deezer-downloader"
__license__ = "MIT"

from deezer_downloader.core import (
    Config,
    ConfigError,
    DeezerDownloaderError,
    DeezerError,
    DownloadError,
    MetadataError,
    get_logger,
    load_config,
    setup_logging,
)

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "setup_logging",
    "get_logger",
    # Exceptions
    "DeezerDownloaderError",
    "ConfigError",
    "DeezerError",
    "DownloadError",
    "MetadataError",
]
