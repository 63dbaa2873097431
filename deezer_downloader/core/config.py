"""
Configuration management for deezer-downloader.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml.

The configuration file contains:
    - Deezer secrets (arl cookie, license token, key-derivation secret, IV)
    - Output directory for downloaded files
    - Download behavior (format order, request spacing, retry limits)

Configuration File Location:
    Searched in this order:
        1. Explicit path passed with --config
        2. config.yaml in the current working directory
        3. $XDG_CONFIG_HOME/deezer-downloader/config.yaml
           (XDG_CONFIG_HOME defaults to ~/.config)

Environment Overrides:
    Secrets can be kept out of the YAML file. If set (directly or through
    a .env file), these variables override the 'deezer' section:
        DEEZER_ARL, DEEZER_LICENSE_TOKEN, DEEZER_PRE_KEY, DEEZER_IV

Example config.yaml:
    deezer:
      arl: "your_arl_cookie_here"
      license_token: "your_license_token_here"
      pre_key: "your_pre_key_here"
      iv: "0001020304050607"

    output:
      directory: "~/Music/Deezer"

    download:
      formats: [FLAC, MP3_320, MP3_256, MP3_128]
      request_interval: 0.5
      max_transport_attempts: 5   # null = retry forever
      max_stream_attempts: 10
      timeout: 30
      overwrite: false
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from deezer_downloader.core.exceptions import ConfigError


# Default configuration file name
CONFIG_FILENAME = "config.yaml"

# Directory name under $XDG_CONFIG_HOME
CONFIG_DIRNAME = "deezer-downloader"

# Environment variables that override the 'deezer' section
ENV_OVERRIDES = {
    "arl": "DEEZER_ARL",
    "license_token": "DEEZER_LICENSE_TOKEN",
    "pre_key": "DEEZER_PRE_KEY",
    "iv": "DEEZER_IV",
}

KNOWN_FORMATS = ("FLAC", "MP3_320", "MP3_256", "MP3_128")


@dataclass(frozen=True)
class DeezerConfig:
    """
    Deezer secrets configuration.

    All four values are required and treated as immutable strings by the
    rest of the application.

    Attributes:
        arl: Session cookie value, sent as the 'arl' cookie on every request.
        license_token: Authorization token for the media endpoint and the
                       playlist API.
        pre_key: Secret mixed with the per-track MD5 to derive the Blowfish key.
                 Must be at least 16 bytes.
        iv: Blowfish-CBC initialization vector, hex-encoded (16 hex chars).
    """
    arl: str
    license_token: str
    pre_key: str
    iv: str


@dataclass(frozen=True)
class OutputConfig:
    """
    Output directory configuration.

    Attributes:
        directory: Absolute path where downloaded files are saved.
                   ~ is expanded. Created at download time if missing.
    """
    directory: Path


@dataclass(frozen=True)
class DownloadConfig:
    """
    Download behavior configuration.

    Attributes:
        formats: Format preference order for negotiation.
        request_interval: Minimum seconds between the start of two requests.
        max_transport_attempts: Attempts per request on network errors.
                                None means retry forever.
        max_stream_attempts: Full restarts allowed for one audio stream.
        timeout: Per-request timeout in seconds.
        overwrite: Re-download tracks whose file already exists.
    """
    formats: tuple[str, ...] = KNOWN_FORMATS
    request_interval: float = 0.5
    max_transport_attempts: int | None = 5
    max_stream_attempts: int = 10
    timeout: float = 30.0
    overwrite: bool = False


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and treated as immutable.

    Attributes:
        deezer: Deezer secrets.
        output: Output directory settings.
        download: Download behavior settings.

    Example:
        config = load_config()
        print(f"Saving to: {config.output.directory}")
        print(f"Formats: {', '.join(config.download.formats)}")
    """
    deezer: DeezerConfig
    output: OutputConfig
    download: DownloadConfig


def find_config_file(config_path: Path | None = None) -> Path:
    """
    Locate the configuration file.

    Args:
        config_path: Explicit path. Returned as-is when given.

    Returns:
        Path to the first existing candidate, or the current-directory
        candidate if none exists (so the error message points there).
    """
    if config_path is not None:
        return config_path

    local = Path.cwd() / CONFIG_FILENAME
    if local.exists():
        return local

    xdg_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    user_config = Path(xdg_home).expanduser() / CONFIG_DIRNAME / CONFIG_FILENAME
    if user_config.exists():
        return user_config

    return local


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration from config.yaml.

    Args:
        config_path: Optional explicit path to the config file.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If the file is missing, has invalid YAML, is missing
                     required fields, or contains invalid values.

    Behavior:
        1. Load .env into the environment (existing variables win)
        2. Locate and parse the YAML file
        3. Apply DEEZER_* environment overrides to the 'deezer' section
        4. Validate and build each section
    """
    load_dotenv()

    config_path = find_config_file(config_path)

    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    _validate_config(raw_config)

    deezer_section = _apply_env_overrides(raw_config.get("deezer") or {})

    return Config(
        deezer=_parse_deezer_config(deezer_section),
        output=_parse_output_config(raw_config["output"]),
        download=_parse_download_config(raw_config.get("download"))
    )


def _validate_config(raw_config: dict[str, Any]) -> None:
    """
    Check that the required sections exist and are dictionaries.

    The 'deezer' section may be omitted entirely when every secret comes
    from the environment.
    """
    if "output" not in raw_config:
        raise ConfigError(
            "Missing required section: 'output'",
            details={"missing_section": "output"}
        )

    for section in ("deezer", "output", "download"):
        value = raw_config.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )

    if raw_config["output"] is None:
        raise ConfigError(
            "Section 'output' must be a dictionary",
            details={"section": "output"}
        )


def _apply_env_overrides(deezer_section: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of the deezer section with DEEZER_* variables applied."""
    merged = dict(deezer_section)
    for field_name, env_name in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            merged[field_name] = value
    return merged


def _require_string(section: dict[str, Any], key: str, prefix: str) -> str:
    value = section.get(key, "")
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(
            f"'{prefix}.{key}' must be a non-empty string",
            details={"field": f"{prefix}.{key}"}
        )
    return value.strip()


def _parse_deezer_config(deezer_section: dict[str, Any]) -> DeezerConfig:
    """
    Parse and validate the Deezer secrets.

    Raises:
        ConfigError: If a secret is missing, the IV is not 8 hex-encoded
                     bytes, or the pre_key is shorter than 16 bytes.
    """
    arl = _require_string(deezer_section, "arl", "deezer")
    license_token = _require_string(deezer_section, "license_token", "deezer")
    pre_key = _require_string(deezer_section, "pre_key", "deezer")
    iv = _require_string(deezer_section, "iv", "deezer")

    try:
        iv_bytes = bytes.fromhex(iv)
    except ValueError as e:
        raise ConfigError(
            "'deezer.iv' must be a hex string",
            details={"field": "deezer.iv", "original_error": str(e)}
        ) from e

    # Blowfish block size
    if len(iv_bytes) != 8:
        raise ConfigError(
            "'deezer.iv' must encode exactly 8 bytes (16 hex characters)",
            details={"field": "deezer.iv", "length": len(iv_bytes)}
        )

    if len(pre_key.encode("utf-8")) < 16:
        raise ConfigError(
            "'deezer.pre_key' must be at least 16 bytes long",
            details={"field": "deezer.pre_key"}
        )

    return DeezerConfig(
        arl=arl,
        license_token=license_token,
        pre_key=pre_key,
        iv=iv
    )


def _parse_output_config(output_section: dict[str, Any]) -> OutputConfig:
    """
    Parse and validate the output configuration section.

    Expands ~ to the home directory and converts to an absolute Path.
    Does NOT create the directory.
    """
    directory = output_section.get("directory", "")

    if not isinstance(directory, str) or not directory.strip():
        raise ConfigError(
            "'output.directory' must be a non-empty string",
            details={"field": "output.directory"}
        )

    return OutputConfig(directory=Path(directory.strip()).expanduser().resolve())


def _parse_download_config(download_section: dict[str, Any] | None) -> DownloadConfig:
    """
    Parse and validate the download configuration section.

    Applies defaults if the section is missing or fields are not specified.

    Raises:
        ConfigError: If a value has the wrong type or is out of range.
    """
    defaults = DownloadConfig()
    if download_section is None:
        return defaults

    formats = defaults.formats
    raw_formats = download_section.get("formats")
    if raw_formats is not None:
        if (
            not isinstance(raw_formats, list)
            or not raw_formats
            or any(f not in KNOWN_FORMATS for f in raw_formats)
        ):
            raise ConfigError(
                f"'download.formats' must be a non-empty list of: {', '.join(KNOWN_FORMATS)}",
                details={"field": "download.formats", "value": raw_formats}
            )
        formats = tuple(raw_formats)

    request_interval = defaults.request_interval
    raw_interval = download_section.get("request_interval")
    if raw_interval is not None:
        if isinstance(raw_interval, bool) or not isinstance(raw_interval, (int, float)) or raw_interval < 0:
            raise ConfigError(
                "'download.request_interval' must be a non-negative number",
                details={"field": "download.request_interval", "value": raw_interval}
            )
        request_interval = float(raw_interval)

    # Explicit null means unbounded, so only a missing key falls back to the default
    max_transport_attempts = defaults.max_transport_attempts
    if "max_transport_attempts" in download_section:
        raw_attempts = download_section["max_transport_attempts"]
        if raw_attempts is not None and not _is_positive_int(raw_attempts):
            raise ConfigError(
                "'download.max_transport_attempts' must be a positive integer or null",
                details={"field": "download.max_transport_attempts", "value": raw_attempts}
            )
        max_transport_attempts = raw_attempts

    max_stream_attempts = defaults.max_stream_attempts
    raw_stream = download_section.get("max_stream_attempts")
    if raw_stream is not None:
        if not _is_positive_int(raw_stream):
            raise ConfigError(
                "'download.max_stream_attempts' must be a positive integer",
                details={"field": "download.max_stream_attempts", "value": raw_stream}
            )
        max_stream_attempts = raw_stream

    timeout = defaults.timeout
    raw_timeout = download_section.get("timeout")
    if raw_timeout is not None:
        if isinstance(raw_timeout, bool) or not isinstance(raw_timeout, (int, float)) or raw_timeout <= 0:
            raise ConfigError(
                "'download.timeout' must be a positive number",
                details={"field": "download.timeout", "value": raw_timeout}
            )
        timeout = float(raw_timeout)

    overwrite = download_section.get("overwrite", defaults.overwrite)
    if not isinstance(overwrite, bool):
        raise ConfigError(
            "'download.overwrite' must be true or false",
            details={"field": "download.overwrite", "value": overwrite}
        )

    return DownloadConfig(
        formats=formats,
        request_interval=request_interval,
        max_transport_attempts=max_transport_attempts,
        max_stream_attempts=max_stream_attempts,
        timeout=timeout,
        overwrite=overwrite
    )


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1
