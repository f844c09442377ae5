"""Startup configuration for the file uploader.

Values come from a dotenv-style file; process environment variables with the
same name take precedence. The result is an immutable ``UploaderConfig`` that
is handed to each component, nothing reads configuration after startup.
"""
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
from urllib.parse import urlparse

from dotenv import dotenv_values

DEFAULT_CONFIG_FILE = "uploader.env"
CONFIG_FILE_ENV = "UPLOADER_CONFIG"

REQUIRED_KEYS = ("SOURCE_DIR", "COMPLETED_DIR", "FAILED_DIR", "UPLOAD_URL")
OPTIONAL_KEYS = ("WATCH_EVENTS", "SCAN_INTERVAL", "UPLOAD_TIMEOUT", "LOG_DIR", "LOG_LEVEL")

DEFAULT_SCAN_INTERVAL = 5.0
# Without live events the scan is the only discovery source.
POLL_ONLY_SCAN_INTERVAL = 1.0

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


class ConfigError(Exception):
    """Raised when the uploader configuration cannot be used."""


@dataclass(frozen=True)
class UploaderConfig:
    source_dir: Path
    completed_dir: Path
    failed_dir: Path
    upload_url: str
    watch_events: bool = True
    scan_interval: float = DEFAULT_SCAN_INTERVAL
    upload_timeout: Optional[float] = None
    log_dir: str = "./logs"
    log_level: str = "INFO"

    @property
    def directories(self):
        return (self.source_dir, self.completed_dir, self.failed_dir)


def load_config(path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> UploaderConfig:
    """Read the config file at ``path`` and build an ``UploaderConfig``.

    Raises ConfigError for a missing file, a missing required key or any value
    that cannot be parsed.
    """
    if environ is None:
        environ = os.environ
    path = path or environ.get(CONFIG_FILE_ENV) or DEFAULT_CONFIG_FILE

    config_file = Path(path)
    if not config_file.is_file():
        raise ConfigError(f"Config file not found: {config_file}")

    values = {k: v for k, v in dotenv_values(config_file).items() if v is not None}
    for key in REQUIRED_KEYS + OPTIONAL_KEYS:
        if key in environ:
            values[key] = environ[key]

    return build_config(values)


def build_config(values: Mapping[str, str]) -> UploaderConfig:
    missing = [key for key in REQUIRED_KEYS if not (values.get(key) or "").strip()]
    if missing:
        raise ConfigError(f"Missing required config keys: {', '.join(missing)}")

    source_dir = _directory(values["SOURCE_DIR"])
    completed_dir = _directory(values["COMPLETED_DIR"])
    failed_dir = _directory(values["FAILED_DIR"])
    _check_disjoint(source_dir, completed_dir, failed_dir)

    watch_events = _parse_bool("WATCH_EVENTS", values.get("WATCH_EVENTS"), default=True)
    default_interval = DEFAULT_SCAN_INTERVAL if watch_events else POLL_ONLY_SCAN_INTERVAL

    log_level = (values.get("LOG_LEVEL") or "INFO").strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigError(f"Unknown LOG_LEVEL: {log_level}")

    return UploaderConfig(
        source_dir=source_dir,
        completed_dir=completed_dir,
        failed_dir=failed_dir,
        upload_url=validate_upload_url(values["UPLOAD_URL"]),
        watch_events=watch_events,
        scan_interval=_parse_seconds("SCAN_INTERVAL", values.get("SCAN_INTERVAL")) or default_interval,
        upload_timeout=_parse_seconds("UPLOAD_TIMEOUT", values.get("UPLOAD_TIMEOUT")),
        log_dir=(values.get("LOG_DIR") or "./logs").strip(),
        log_level=log_level,
    )


def validate_upload_url(raw: str) -> str:
    url = raw.strip()
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise ConfigError(f"Cannot parse UPLOAD_URL {url!r}: {e}")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(f"UPLOAD_URL must be an absolute http(s) URL, got {url!r}")
    return parsed.geturl()


def _directory(raw: str) -> Path:
    return Path(raw.strip()).expanduser().resolve()


def _check_disjoint(*dirs: Path):
    for i, first in enumerate(dirs):
        for second in dirs[i + 1:]:
            if first == second or first in second.parents or second in first.parents:
                raise ConfigError(f"Directories must not overlap: {first} and {second}")


def _parse_bool(key: str, raw: Optional[str], default: bool) -> bool:
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigError(f"{key} must be a boolean, got {raw!r}")


def _parse_seconds(key: str, raw: Optional[str]) -> Optional[float]:
    if raw is None or not raw.strip():
        return None
    try:
        seconds = float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number of seconds, got {raw!r}")
    if seconds <= 0:
        raise ConfigError(f"{key} must be positive, got {raw!r}")
    return seconds
