#!/usr/bin/env python3

"""
config.py

Configuration loading for the s3archiver package.

Supports:
- TOML (preferred) using stdlib tomllib (Python 3.11+) or if not available, the tomli package
- INI using configparser

Precedence (highest first):
1. CLI flags (passed in as overrides)
2. CLI --config <path>, or the first file found of
   ./s3archiver.toml, ./s3archiver.ini,
   ~/.config/s3archiver.toml, ~/.config/s3archiver.ini
3. Built-in defaults
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from s3archiver.errors import ConfigError

DEFAULT_REGION = "ap-northeast-1"
DEFAULT_STORAGE_CLASS = "DEEP_ARCHIVE"
DEFAULT_MANIFEST_DIR = Path("archives")

STORAGE_CLASSES = (
    "STANDARD",
    "REDUCED_REDUNDANCY",
    "STANDARD_IA",
    "ONEZONE_IA",
    "INTELLIGENT_TIERING",
    "GLACIER",
    "DEEP_ARCHIVE",
    "OUTPOSTS",
    "GLACIER_IR",
    "SNOW",
    "EXPRESS_ONEZONE",
)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Settings:
    # Target
    bucket: str
    local_dir: Path
    region: str = DEFAULT_REGION
    storage_class: str = DEFAULT_STORAGE_CLASS

    # Credentials
    credentials_file: Optional[Path] = None
    profile: Optional[str] = None
    endpoint_url: Optional[str] = None

    # Manifest
    manifest_path: Optional[Path] = None
    manifest_dir: Path = DEFAULT_MANIFEST_DIR
    save_every: int = 25

    # Behaviour
    dry_run: bool = False

    # Performance
    max_upload_workers: int = 1
    upload_batch_size: int = 100

    # Logging
    log_path: Optional[Path] = None
    log_level: str = "INFO"
    rotate_by_time: bool = False
    max_log_files: int = 7
    max_log_size: int = 10 * 1024 * 1024
    status_interval: int = 60

    # archive root exactly as given on the command line or in the config file
    local_dir_arg: Optional[str] = None

    @property
    def manifest_is_default(self) -> bool:
        return self.manifest_path is None

    @property
    def archive_root_name(self) -> str:
        """The archive root string the default manifest name is derived from."""
        return self.local_dir_arg if self.local_dir_arg is not None else str(self.local_dir)


DEFAULT_LOCATIONS = [
    Path("./s3archiver.toml"),
    Path("./s3archiver.ini"),
    Path(os.path.expanduser("~/.config/s3archiver.toml")),
    Path(os.path.expanduser("~/.config/s3archiver.ini")),
]


def _load_toml(path: Path) -> Dict[str, Any]:
    # Prefer stdlib tomllib (3.11+), else fallback to third-party tomli if available.
    try:
        import tomllib  # type: ignore
        loader = tomllib.load
    except ImportError:
        try:
            import tomli  # type: ignore
            loader = tomli.load
        except ImportError:
            raise ConfigError(
                f"TOML config {path} requested but no TOML parser available. "
                f"Install Python 3.11+ or the 'tomli' package, or use an INI config."
            )

    try:
        with open(path, "rb") as f:
            return loader(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e


def _load_ini(path: Path) -> Dict[str, Any]:
    cp = configparser.ConfigParser()
    try:
        cp.read(path, encoding="utf-8")
    except configparser.Error as e:
        raise ConfigError(f"Cannot parse INI config {path}: {e}") from e

    # Everything lives in a single [s3archiver] section
    section = "s3archiver"
    if section not in cp:
        raise ConfigError(f"INI config {path} must have a [{section}] section")

    return {k: v for k, v in cp[section].items()}


def _coerce_bool(v: Any, default: bool) -> bool:
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in ("1", "true", "yes", "on"):
        return True
    if s in ("0", "false", "no", "off"):
        return False
    return default


def _coerce_int(v: Any, default: int) -> int:
    if v is None:
        return default
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def _optional_path(v: Any) -> Optional[Path]:
    if v is None or str(v).strip() == "":
        return None
    return Path(os.path.expanduser(str(v)))


def _optional_str(v: Any) -> Optional[str]:
    if v is None or str(v).strip() == "":
        return None
    return str(v).strip()


def find_config_file(config_path: Optional[Path] = None) -> Optional[Path]:
    if config_path is not None:
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        return config_path
    for p in DEFAULT_LOCATIONS:
        if p.exists():
            return p
    return None


def load_settings(config_path: Optional[Path] = None, overrides: Optional[Dict[str, Any]] = None) -> Settings:
    """
    Build the run's Settings from defaults, an optional config file and CLI overrides.

    `overrides` maps flat setting names to values; None values are ignored so
    unset CLI flags never mask the config file.
    """
    data: Dict[str, Any] = {}

    source_path = find_config_file(config_path)
    if source_path is not None:
        if source_path.suffix.lower() == ".toml":
            data = _load_toml(source_path)
        else:
            data = _load_ini(source_path)

    cli = {k: v for k, v in (overrides or {}).items() if v is not None}

    # Accept either flat keys or one level of [section] nesting
    def pick(*keys: str, default: Any = None) -> Any:
        flat = keys[0]
        if flat in cli:
            return cli[flat]
        for k in keys:
            if k in data:
                return data[k]
        for k in keys:
            parts = k.split(".")
            if len(parts) == 2:
                top, sub = parts
                if top in data and isinstance(data[top], dict):
                    if sub in data[top]:
                        return data[top][sub]
        return default

    bucket = _optional_str(pick("bucket", "s3.bucket"))
    local_dir = _optional_str(pick("local_dir", "paths.local_dir", "local"))
    missing = [name for name, value in (("bucket", bucket), ("local directory", local_dir)) if not value]
    if missing:
        raise ConfigError(f"Missing required setting(s): {', '.join(missing)}")

    region = _optional_str(pick("region", "s3.region")) or DEFAULT_REGION
    storage_class = (_optional_str(pick("storage_class", "s3.storage_class")) or DEFAULT_STORAGE_CLASS).upper()
    if storage_class not in STORAGE_CLASSES:
        raise ConfigError(
            f"Unknown storage class '{storage_class}', expected one of: {', '.join(STORAGE_CLASSES)}"
        )

    credentials_file = _optional_path(pick("credentials_file", "s3.credentials_file"))
    if credentials_file is not None and not credentials_file.is_file():
        raise ConfigError(f"Credentials file not found: {credentials_file}")

    save_every = _coerce_int(pick("save_every", "manifest.save_every"), 25)
    if save_every < 0:
        raise ConfigError(f"save_every must be >= 0, got {save_every}")

    log_level = str(pick("log_level", "logging.log_level", default="INFO")).upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"Unknown log level '{log_level}', expected one of: {', '.join(LOG_LEVELS)}")

    return Settings(
        bucket=bucket,
        local_dir=Path(os.path.expanduser(local_dir)),
        local_dir_arg=local_dir,
        region=region,
        storage_class=storage_class,
        credentials_file=credentials_file,
        profile=_optional_str(pick("profile", "s3.profile")),
        endpoint_url=_optional_str(pick("endpoint_url", "s3.endpoint_url")),
        manifest_path=_optional_path(pick("manifest_path", "manifest.path")),
        manifest_dir=_optional_path(pick("manifest_dir", "manifest.dir")) or DEFAULT_MANIFEST_DIR,
        save_every=save_every,
        dry_run=_coerce_bool(pick("dry_run", "behaviour.dry_run"), False),
        max_upload_workers=max(1, _coerce_int(pick("max_upload_workers", "performance.max_upload_workers"), 1)),
        upload_batch_size=max(1, _coerce_int(pick("upload_batch_size", "performance.upload_batch_size"), 100)),
        log_path=_optional_path(pick("log_path", "logging.log_path")),
        log_level=log_level,
        rotate_by_time=_coerce_bool(pick("rotate_by_time", "logging.rotate_by_time"), False),
        max_log_files=_coerce_int(pick("max_log_files", "logging.max_log_files"), 7),
        max_log_size=_coerce_int(pick("max_log_size", "logging.max_log_size"), 10 * 1024 * 1024),
        status_interval=_coerce_int(pick("status_interval", "logging.status_interval"), 60),
    )
