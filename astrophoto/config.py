"""
AstroPhoto Configuration System

Configuration management for the astrophoto core using pydantic for
type-safe validation and YAML for human-readable config files.

Configuration loading priority:
1. Environment variables (ASTROPHOTO_*)
2. Config file passed to load_config()
3. ./astrophoto.yaml (current directory)
4. ~/.astrophoto/config.yaml (user home)
5. Built-in defaults

Usage:
    from astrophoto.config import load_config

    config = load_config()
    print(config.location.latitude)
    print(config.ephemeris.ephemeris_file)
"""

from __future__ import annotations

import os
from datetime import tzinfo
from pathlib import Path
from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from astrophoto import constants
from astrophoto.exceptions import ConfigurationError
from astrophoto.models import Location

__all__ = [
    "AstroConfig",
    "LocationConfig",
    "EphemerisConfig",
    "SpaceWeatherConfig",
    "GeocodingConfig",
    "load_config",
    "get_config_paths",
]


# =============================================================================
# Configuration Sections
# =============================================================================


class LocationConfig(BaseModel):
    """Observer location used until the user picks another one."""

    latitude: float = Field(
        default=constants.DEFAULT_LATITUDE,
        ge=-90.0,
        le=90.0,
        description="Latitude in decimal degrees (positive = North)",
    )
    longitude: float = Field(
        default=constants.DEFAULT_LONGITUDE,
        ge=-180.0,
        le=180.0,
        description="Longitude in decimal degrees (positive = East)",
    )
    label: str = Field(
        default=constants.DEFAULT_LOCATION_LABEL,
        description="Human-readable location name",
    )

    # None means the host's local zone
    timezone: Optional[str] = Field(
        default=None,
        description="IANA timezone for the local day boundary and HH:MM formatting",
    )

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        """Validate timezone is a known IANA identifier."""
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}. Use IANA format like 'Europe/Prague'") from e
        return v

    def to_location(self) -> Location:
        return Location(self.latitude, self.longitude, self.label)

    def tz(self) -> Optional[tzinfo]:
        """Resolved tzinfo, or None for the host's local zone."""
        return ZoneInfo(self.timezone) if self.timezone else None


class EphemerisConfig(BaseModel):
    """Skyfield ephemeris data and worker pool settings."""

    ephemeris_file: str = Field(
        default="de440s.bsp",
        description="JPL ephemeris kernel loaded by Skyfield",
    )
    data_dir: str = Field(
        default="~/.astrophoto/skyfield-data",
        description="Directory where Skyfield caches downloaded data",
    )
    workers: int = Field(
        default=2,
        ge=1,
        le=16,
        description="Background worker threads (one per stream is enough)",
    )
    slow_job_warning_sec: float = Field(
        default=10.0,
        ge=0.1,
        description="Log a warning when a recomputation job runs longer than this",
    )


class SpaceWeatherConfig(BaseModel):
    """NOAA SWPC data sources."""

    kp_index_url: str = Field(default=constants.NOAA_KP_INDEX_URL)
    solar_regions_url: str = Field(default=constants.NOAA_SOLAR_REGIONS_URL)
    timeout: float = Field(
        default=constants.DEFAULT_HTTP_TIMEOUT_SEC,
        ge=1.0,
        le=120.0,
        description="Request timeout in seconds",
    )


class GeocodingConfig(BaseModel):
    """Nominatim location search."""

    search_url: str = Field(default=constants.NOMINATIM_SEARCH_URL)
    user_agent: str = Field(
        default=constants.HTTP_USER_AGENT,
        description="Nominatim requires an identifying User-Agent",
    )
    limit: int = Field(default=constants.GEOCODING_RESULT_LIMIT, ge=1, le=50)
    timeout: float = Field(default=constants.DEFAULT_HTTP_TIMEOUT_SEC, ge=1.0, le=120.0)


# =============================================================================
# Master Configuration
# =============================================================================


class AstroConfig(BaseModel):
    """Top-level configuration aggregating all sections."""

    model_config = ConfigDict(extra="ignore")

    location: LocationConfig = Field(default_factory=LocationConfig)
    ephemeris: EphemerisConfig = Field(default_factory=EphemerisConfig)
    space_weather: SpaceWeatherConfig = Field(default_factory=SpaceWeatherConfig)
    geocoding: GeocodingConfig = Field(default_factory=GeocodingConfig)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Global logging level",
    )
    log_file: Optional[str] = Field(default=None, description="Optional rotating log file")


# =============================================================================
# Configuration Loading
# =============================================================================


def get_config_paths() -> list[Path]:
    """Config file paths to search, in priority order (first found wins)."""
    home = Path.home()
    return [
        Path("./astrophoto.yaml"),
        Path("./astrophoto.yml"),
        home / ".astrophoto" / "config.yaml",
        home / ".astrophoto" / "config.yml",
        Path("/etc/astrophoto/config.yaml"),
    ]


# Known sections, matched as prefixes since space_weather holds an underscore
_SECTIONS = ("space_weather", "location", "ephemeris", "geocoding")


def _apply_env_overrides(config_dict: dict) -> dict:
    """Apply environment variable overrides.

    Environment variables are in format ASTROPHOTO_SECTION_KEY, e.g.
    ASTROPHOTO_LOCATION_TIMEZONE=Europe/Prague or
    ASTROPHOTO_SPACE_WEATHER_TIMEOUT=5. ASTROPHOTO_LOG_LEVEL sets the
    top-level field. Values stay strings; pydantic converts them to the
    field's type, so a numeric-looking label is kept as text.
    """
    prefix = "ASTROPHOTO_"

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        name = key[len(prefix):].lower()
        if name in ("log_level", "log_file"):
            config_dict[name] = value.upper() if name == "log_level" else value
            continue

        section = next((s for s in _SECTIONS if name.startswith(s + "_")), None)
        if section is None:
            continue
        setting = name[len(section) + 1:]

        section_dict = config_dict.get(section) or {}
        section_dict[setting] = value
        config_dict[section] = section_dict

    return config_dict


def load_config(config_path: Optional[str | Path] = None) -> AstroConfig:
    """Load configuration from file with validation.

    Args:
        config_path: Explicit config file path, or None for auto-discovery

    Returns:
        Validated AstroConfig object

    Raises:
        ConfigurationError: If config file is invalid or cannot be loaded
    """
    config_dict: dict = {}

    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")
        config_files = [path]
    else:
        config_files = get_config_paths()

    for path in config_files:
        if path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    config_dict = yaml.safe_load(f) or {}
                break
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
            except OSError as e:
                raise ConfigurationError(f"Cannot read {path}: {e}") from e

    if not isinstance(config_dict, dict):
        raise ConfigurationError("Config file must contain a mapping at the top level")

    config_dict = _apply_env_overrides(config_dict)

    try:
        return AstroConfig(**config_dict)
    except Exception as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e
