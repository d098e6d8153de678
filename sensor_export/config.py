"""
Sensor Export Configuration - Preferences, storage roots and limits.

Preferences mirror the dashboard's settings store (language,
temperature unit, push notifications). Values are read from
environment variables, optionally via a .env file.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from .exceptions import InvalidConfigError
from .locales import SUPPORTED_LOCALES
from .models import StorageDirectory
from .periods import TemperatureUnit


ENV_PREFIX = "SENSOR_EXPORT_"

# Read by the platform probe on every call
PLATFORM_ENV_VAR = f"{ENV_PREFIX}PLATFORM"


def _default_root(name: str) -> Path:
    return Path.home() / "SensorExport" / name


@dataclass
class ExportConfig:
    """Main configuration for the export pipeline."""

    # Preferences
    locale: str = "id"
    temperature_unit: TemperatureUnit = TemperatureUnit.CELSIUS
    display_timezone: str = "Asia/Jakarta"
    notifications_enabled: bool = True

    # Output naming
    filename_prefix: str = "analytics"

    # Storage roots
    documents_dir: Path = field(default_factory=lambda: _default_root("Documents"))
    external_storage_dir: Path = field(default_factory=lambda: _default_root("ExternalStorage"))
    downloads_dir: Path = field(default_factory=lambda: Path.home() / "Downloads")

    # Web download
    download_cleanup_delay_seconds: float = 0.1  # not tied to download completion

    # Document layout
    rows_first_page: int = 28
    rows_per_page: int = 40

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if self.locale not in SUPPORTED_LOCALES:
            raise InvalidConfigError("locale", self.locale, f"expected one of {SUPPORTED_LOCALES}")
        try:
            ZoneInfo(self.display_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise InvalidConfigError("display_timezone", self.display_timezone, "unknown timezone")
        if not 0 <= self.download_cleanup_delay_seconds < float("inf"):
            raise InvalidConfigError(
                "download_cleanup_delay_seconds",
                self.download_cleanup_delay_seconds,
                "must be a finite, non-negative number",
            )
        if self.rows_first_page < 1 or self.rows_per_page < 1:
            raise InvalidConfigError(
                "rows_per_page",
                (self.rows_first_page, self.rows_per_page),
                "must be at least 1",
            )
        if not self.filename_prefix:
            raise InvalidConfigError("filename_prefix", self.filename_prefix, "must not be empty")

    @property
    def timezone(self) -> ZoneInfo:
        return ZoneInfo(self.display_timezone)

    def storage_roots(self) -> Dict[StorageDirectory, Path]:
        """Native storage roots keyed by directory."""
        return {
            StorageDirectory.DOCUMENTS: self.documents_dir,
            StorageDirectory.EXTERNAL_STORAGE: self.external_storage_dir,
        }

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "ExportConfig":
        """Build configuration from environment variables."""
        load_dotenv(dotenv_path)

        kwargs: Dict[str, Any] = {}
        env = os.environ

        if f"{ENV_PREFIX}LOCALE" in env:
            kwargs["locale"] = env[f"{ENV_PREFIX}LOCALE"].strip().lower()
        if f"{ENV_PREFIX}TEMP_UNIT" in env:
            raw = env[f"{ENV_PREFIX}TEMP_UNIT"].strip().lower()
            try:
                kwargs["temperature_unit"] = TemperatureUnit(raw)
            except ValueError:
                raise InvalidConfigError("temperature_unit", raw, "expected celsius or fahrenheit")
        if f"{ENV_PREFIX}TIMEZONE" in env:
            kwargs["display_timezone"] = env[f"{ENV_PREFIX}TIMEZONE"].strip()
        if f"{ENV_PREFIX}NOTIFICATIONS" in env:
            kwargs["notifications_enabled"] = _parse_bool(
                "notifications_enabled", env[f"{ENV_PREFIX}NOTIFICATIONS"]
            )
        if f"{ENV_PREFIX}FILENAME_PREFIX" in env:
            kwargs["filename_prefix"] = env[f"{ENV_PREFIX}FILENAME_PREFIX"].strip()
        if f"{ENV_PREFIX}DOCUMENTS_DIR" in env:
            kwargs["documents_dir"] = Path(env[f"{ENV_PREFIX}DOCUMENTS_DIR"]).expanduser()
        if f"{ENV_PREFIX}EXTERNAL_DIR" in env:
            kwargs["external_storage_dir"] = Path(env[f"{ENV_PREFIX}EXTERNAL_DIR"]).expanduser()
        if f"{ENV_PREFIX}DOWNLOADS_DIR" in env:
            kwargs["downloads_dir"] = Path(env[f"{ENV_PREFIX}DOWNLOADS_DIR"]).expanduser()
        if f"{ENV_PREFIX}CLEANUP_DELAY" in env:
            kwargs["download_cleanup_delay_seconds"] = _parse_number(
                "download_cleanup_delay_seconds", env[f"{ENV_PREFIX}CLEANUP_DELAY"], float
            )
        if f"{ENV_PREFIX}ROWS_FIRST_PAGE" in env:
            kwargs["rows_first_page"] = _parse_number(
                "rows_first_page", env[f"{ENV_PREFIX}ROWS_FIRST_PAGE"], int
            )
        if f"{ENV_PREFIX}ROWS_PER_PAGE" in env:
            kwargs["rows_per_page"] = _parse_number(
                "rows_per_page", env[f"{ENV_PREFIX}ROWS_PER_PAGE"], int
            )

        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "locale": self.locale,
            "temperature_unit": self.temperature_unit.value,
            "display_timezone": self.display_timezone,
            "notifications_enabled": self.notifications_enabled,
            "filename_prefix": self.filename_prefix,
            "documents_dir": str(self.documents_dir),
            "external_storage_dir": str(self.external_storage_dir),
            "downloads_dir": str(self.downloads_dir),
            "download_cleanup_delay_seconds": self.download_cleanup_delay_seconds,
            "rows_first_page": self.rows_first_page,
            "rows_per_page": self.rows_per_page,
        }


def _parse_bool(key: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise InvalidConfigError(key, raw, "expected a boolean")


def _parse_number(key: str, raw: str, kind: type) -> Any:
    try:
        return kind(raw.strip())
    except ValueError:
        raise InvalidConfigError(key, raw, f"expected {kind.__name__}")


# Default configuration instance
_default_config: Optional[ExportConfig] = None


def get_config() -> ExportConfig:
    """Get the default configuration."""
    global _default_config
    if _default_config is None:
        _default_config = ExportConfig.from_env()
    return _default_config


def set_config(config: Optional[ExportConfig]) -> None:
    """Set (or with None, reset) the default configuration."""
    global _default_config
    _default_config = config
