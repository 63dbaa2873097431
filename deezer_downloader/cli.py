"""
Command-line interface for deezer-downloader.

This module implements the CLI using Click, with rich-click for the
output colors.

Commands:
    deezer-dl album <id|url>...        Download one or more albums
    deezer-dl playlist <id|url>...     Download one or more playlists
    deezer-dl track <id|url>...        Download single tracks
    deezer-dl favorites <user-id>      Download a user's favorite tracks
    deezer-dl ping                     Check the session cookie

Options:
    --config <path>                    Use this config.yaml
    --output <dir>                     Override output.directory

Usage:
    # Download two albums
    deezer-dl album 302127 https://www.deezer.com/en/album/6575789

    # Download a playlist into another library
    deezer-dl --output ~/Music/Mixes playlist 908622995

Batch Behavior:
    Ids are processed one after the other. Each one logs a banner
    ("[001/003] Downloading album 302127") and a summary line
    ("Album download succeeded: 302127"). An id with a failed track, or a
    playlist whose track list could not be found, is reported as failed.
    A failing id is logged and the next one is processed.

Exit Codes:
    0    All ids processed (individual tracks may still have failed)
    1    Configuration error or unexpected error
    2    Deezer error outside a batch (ping)
    4    Other application error
    130  Interrupted by user
"""

import dataclasses
import sys
from pathlib import Path
from typing import Callable

import rich_click as click

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100

from deezer_downloader import __version__
from deezer_downloader.core import (
    Config,
    ConfigError,
    DeezerDownloaderError,
    DeezerError,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from deezer_downloader.deezer import DeezerClient, FormatNegotiator, RateLimiter, Transport
from deezer_downloader.download import DownloadStats, Downloader, StreamDecryptor
from deezer_downloader.utils import ensure_directory, extract_deezer_id

logger = get_logger(__name__)


@click.group()
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Path to the configuration file"
)
@click.option(
    "--output", "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    metavar="<dir>",
    help="Override the output directory from the configuration"
)
@click.version_option(__version__, "--version", prog_name="deezer-dl")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, output_dir: Path | None) -> None:
    """
    deezer-downloader: Download albums, playlists and tracks from Deezer.

    Audio is saved as FLAC when available, otherwise as the best MP3
    bitrate, with full tags and album cover.

    \b
    BASIC USAGE:
        deezer-dl album 302127                     # Download an album
        deezer-dl playlist 908622995               # Download a playlist
        deezer-dl track 3135556                    # Download one track
        deezer-dl favorites 5                      # Download favorites
        deezer-dl ping                             # Check the arl cookie
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["output_dir"] = output_dir


@cli.command()
@click.argument("albums", nargs=-1, required=True)
@click.pass_obj
def album(options: dict, albums: tuple[str, ...]) -> None:
    """Download albums by id or URL."""
    ids = _parse_ids(albums, "album")
    _run_batch(options, "album", ids, lambda downloader: downloader.download_album)


@cli.command()
@click.argument("playlists", nargs=-1, required=True)
@click.pass_obj
def playlist(options: dict, playlists: tuple[str, ...]) -> None:
    """Download playlists by id or URL."""
    ids = _parse_ids(playlists, "playlist")
    _run_batch(options, "playlist", ids, lambda downloader: downloader.download_playlist)


@cli.command()
@click.argument("tracks", nargs=-1, required=True)
@click.pass_obj
def track(options: dict, tracks: tuple[str, ...]) -> None:
    """Download single tracks by id or URL."""
    ids = _parse_ids(tracks, "track")
    _run_batch(options, "track", ids, lambda downloader: downloader.download_track)


@cli.command()
@click.argument("user_id")
@click.pass_obj
def favorites(options: dict, user_id: str) -> None:
    """Download the favorite tracks of a user."""
    ids = _parse_ids((user_id,), "user")
    _run_batch(options, "favorites", ids, lambda downloader: downloader.download_favorites)


@cli.command()
@click.pass_obj
def ping(options: dict) -> None:
    """Check that the configured arl cookie opens a session."""
    try:
        config = _load_configuration(options)
        setup_logging(config.output.directory)

        client = DeezerClient(_build_transport(config), config.deezer.license_token)
        result = client.ping()

        if not result.is_logged_in:
            click.echo("Session cookie not accepted. Check deezer.arl in config.yaml", err=True)
            sys.exit(2)

        logger.info(f"Logged in as user {result.user_id}")

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except DeezerError as e:
        click.echo(f"Deezer error: {e.message}", err=True)
        logger.error(f"Deezer error: {e.message}", exc_info=True)
        sys.exit(2)

    except DeezerDownloaderError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    finally:
        shutdown_logging()


def _parse_ids(values: tuple[str, ...], kind: str) -> list[str]:
    try:
        return [extract_deezer_id(value, kind) for value in values]
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def _run_batch(
    options: dict,
    kind: str,
    ids: list[str],
    select: Callable[[Downloader], Callable[[str], DownloadStats]],
) -> None:
    """
    Download every id of a batch with the selected Downloader method.

    Args:
        options: CLI group options (config_path, output_dir).
        kind: "album", "playlist", "track" or "favorites" (for logging).
        ids: Deezer ids, already extracted from URLs.
        select: Picks the Downloader method for this kind.

    Raises:
        SystemExit: On fatal errors (with appropriate exit code).
    """
    try:
        config = _load_configuration(options)

        setup_logging(config.output.directory)
        logger.info("deezer-downloader starting")
        ensure_directory(config.output.directory)

        download = select(_build_downloader(config))
        totals = DownloadStats()
        failed_ids: list[str] = []

        for idx, entity_id in enumerate(ids, start=1):
            logger.info(f"[{idx:03d}/{len(ids):03d}] Downloading {kind} {entity_id}")
            try:
                stats = download(entity_id)
            except DeezerDownloaderError as e:
                logger.error(f"Error downloading {kind} {entity_id}: {e.message}")
                logger.info(f"{kind.capitalize()} download failed: {entity_id}\n")
                failed_ids.append(entity_id)
                continue

            totals.add(stats)
            if not stats.complete:
                logger.info(f"{kind.capitalize()} download failed: {entity_id}\n")
                failed_ids.append(entity_id)
            else:
                logger.info(f"{kind.capitalize()} download succeeded: {entity_id}\n")

        _print_final_stats(totals, len(ids), failed_ids)
        logger.info("deezer-downloader completed")

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except DeezerError as e:
        click.echo(f"Deezer error: {e.message}", err=True)
        logger.error(f"Deezer error: {e.message}", exc_info=True)
        sys.exit(2)

    except DeezerDownloaderError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        shutdown_logging()


def _load_configuration(options: dict) -> Config:
    """
    Load config.yaml and apply the --output override.

    Raises:
        ConfigError: If configuration is invalid or missing.
    """
    config = load_config(options.get("config_path"))
    output_dir = options.get("output_dir")
    if output_dir is not None:
        output = dataclasses.replace(config.output, directory=output_dir.expanduser().resolve())
        config = dataclasses.replace(config, output=output)
    return config


def _build_transport(config: Config) -> Transport:
    return Transport(
        arl=config.deezer.arl,
        limiter=RateLimiter(config.download.request_interval),
        max_attempts=config.download.max_transport_attempts,
        timeout=config.download.timeout,
    )


def _build_downloader(config: Config) -> Downloader:
    """Wire one shared transport into every component."""
    transport = _build_transport(config)
    return Downloader(
        client=DeezerClient(transport, config.deezer.license_token),
        negotiator=FormatNegotiator(transport, config.deezer.license_token),
        decryptor=StreamDecryptor(
            transport,
            config.deezer.pre_key,
            config.deezer.iv,
            max_attempts=config.download.max_stream_attempts,
        ),
        output_dir=config.output.directory,
        formats=config.download.formats,
        overwrite=config.download.overwrite,
    )


def _print_final_stats(totals: DownloadStats, items: int, failed_ids: list[str]) -> None:
    logger.info("=" * 60)
    logger.info("FINAL STATISTICS")
    logger.info("=" * 60)
    logger.info(f"Items:             {items}")
    logger.info(f"Total tracks:      {totals.total}")
    logger.info(f"Downloaded:        {totals.downloaded}")
    logger.info(f"Skipped:           {totals.skipped}")
    logger.info(f"Failed:            {totals.failed}")
    if totals.unresolved:
        logger.info(f"Unresolved:        {totals.unresolved}")
    if failed_ids:
        logger.info(f"Incomplete items:  {', '.join(failed_ids)}")
    logger.info("=" * 60)


def main() -> None:
    """
    Entry point for the CLI.

    Called when running `deezer-dl` from the command line.
    """
    cli()


if __name__ == "__main__":
    main()
