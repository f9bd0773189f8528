"""
AstroPhoto Unit Tests - Configuration

Unit tests for astrophoto/config.py: defaults, YAML loading, environment
overrides and validation errors.
"""

import os

import pytest
from pydantic import ValidationError

from astrophoto.config import AstroConfig, LocationConfig, load_config
from astrophoto.exceptions import AstroError, ConfigurationError
from astrophoto.models import Location


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """No ASTROPHOTO_* variables and no config files on the search path."""
    for key in list(os.environ):
        if key.startswith("ASTROPHOTO_"):
            monkeypatch.delenv(key)
    monkeypatch.setattr("astrophoto.config.get_config_paths", lambda: [])


def write_yaml(tmp_path, text):
    path = tmp_path / "astrophoto.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestDefaults:

    def test_default_location_is_prague(self):
        config = AstroConfig()
        assert config.location.to_location() == Location(50.0755, 14.4378, "Prague, CZ")
        assert config.location.tz() is None

    def test_default_ephemeris(self):
        config = AstroConfig()
        assert config.ephemeris.ephemeris_file == "de440s.bsp"
        assert config.ephemeris.workers == 2
        assert config.log_level == "INFO"

    def test_default_sources(self):
        config = AstroConfig()
        assert config.space_weather.kp_index_url.endswith("noaa-planetary-k-index.json")
        assert config.geocoding.limit == 5

    def test_load_without_files_gives_defaults(self):
        assert load_config() == AstroConfig()


class TestLoadConfig:

    def test_yaml_sections(self, tmp_path):
        path = write_yaml(tmp_path, """
location:
  latitude: 64.1466
  longitude: -21.9426
  label: Reykjavik, IS
ephemeris:
  workers: 3
log_level: DEBUG
""")
        config = load_config(path)

        assert config.location.to_location() == Location(64.1466, -21.9426, "Reykjavik, IS")
        assert config.ephemeris.workers == 3
        assert config.log_level == "DEBUG"

    def test_unknown_top_level_keys_ignored(self, tmp_path):
        path = write_yaml(tmp_path, "telescope:\n  aperture: 200\n")
        assert load_config(path) == AstroConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = write_yaml(tmp_path, "location: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = write_yaml(tmp_path, "- just\n- a list\n")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_validation_failure(self, tmp_path):
        path = write_yaml(tmp_path, "location:\n  latitude: 123.0\n")
        with pytest.raises(ConfigurationError, match="validation failed"):
            load_config(path)

    def test_configuration_error_is_astro_error(self, tmp_path):
        with pytest.raises(AstroError):
            load_config(tmp_path / "missing.yaml")


class TestEnvironmentOverrides:

    def test_section_values(self, monkeypatch):
        monkeypatch.setenv("ASTROPHOTO_LOCATION_LATITUDE", "48.8566")
        monkeypatch.setenv("ASTROPHOTO_EPHEMERIS_WORKERS", "4")

        config = load_config()

        assert config.location.latitude == 48.8566
        assert config.ephemeris.workers == 4

    def test_section_name_with_underscore(self, monkeypatch):
        monkeypatch.setenv("ASTROPHOTO_SPACE_WEATHER_TIMEOUT", "5")
        assert load_config().space_weather.timeout == 5.0

    def test_log_level_upper_cased(self, monkeypatch):
        monkeypatch.setenv("ASTROPHOTO_LOG_LEVEL", "warning")
        assert load_config().log_level == "WARNING"

    def test_env_wins_over_file(self, tmp_path, monkeypatch):
        path = write_yaml(tmp_path, "geocoding:\n  limit: 3\n")
        monkeypatch.setenv("ASTROPHOTO_GEOCODING_LIMIT", "8")
        assert load_config(path).geocoding.limit == 8

    def test_numeric_label_kept_as_text(self, monkeypatch):
        monkeypatch.setenv("ASTROPHOTO_LOCATION_LABEL", "2024")
        assert load_config().location.label == "2024"

    def test_numeric_user_agent_kept_as_text(self, monkeypatch):
        monkeypatch.setenv("ASTROPHOTO_GEOCODING_USER_AGENT", "1.5")
        assert load_config().geocoding.user_agent == "1.5"

    def test_non_numeric_value_for_number_rejected(self, monkeypatch):
        monkeypatch.setenv("ASTROPHOTO_EPHEMERIS_WORKERS", "many")
        with pytest.raises(ConfigurationError):
            load_config()

    def test_unknown_section_ignored(self, monkeypatch):
        monkeypatch.setenv("ASTROPHOTO_MOUNT_PORT", "/dev/ttyUSB0")
        assert load_config() == AstroConfig()


class TestLocationConfig:

    def test_unknown_timezone_rejected(self):
        with pytest.raises(ValidationError):
            LocationConfig(timezone="Mars/Olympus_Mons")

    def test_longitude_range(self):
        with pytest.raises(ValidationError):
            LocationConfig(longitude=181.0)
