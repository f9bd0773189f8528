"""
AstroPhoto Preferences Tests

Tests for the in-memory and JSON-file preference stores.
"""

import json

import pytest

from astrophoto.preferences import (
    KEY_LOCATION_LAT,
    KEY_LOCATION_NAME,
    KEY_NIGHT_MODE,
    JsonPreferenceStore,
    MemoryPreferenceStore,
)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def prefs_path(tmp_path):
    return tmp_path / "prefs" / "preferences.json"


@pytest.fixture
def prefs(prefs_path):
    return JsonPreferenceStore(prefs_path=prefs_path)


# =============================================================================
# Memory store
# =============================================================================


class TestMemoryPreferenceStore:

    def test_default_when_missing(self):
        store = MemoryPreferenceStore()
        assert store.get(KEY_NIGHT_MODE) is None
        assert store.get(KEY_NIGHT_MODE, False) is False

    def test_initial_values_copied(self):
        initial = {KEY_NIGHT_MODE: True}
        store = MemoryPreferenceStore(initial)
        initial[KEY_NIGHT_MODE] = False

        assert store.get(KEY_NIGHT_MODE) is True

    def test_update_several_keys(self):
        store = MemoryPreferenceStore()
        store.update({KEY_LOCATION_LAT: 50.0755, KEY_LOCATION_NAME: "Prague, CZ"})

        assert store.as_dict() == {KEY_LOCATION_LAT: 50.0755, KEY_LOCATION_NAME: "Prague, CZ"}


# =============================================================================
# JSON store
# =============================================================================


class TestJsonPreferenceStore:

    def test_no_file_until_first_write(self, prefs, prefs_path):
        assert not prefs_path.exists()
        prefs.set(KEY_NIGHT_MODE, True)
        assert prefs_path.exists()

    def test_file_layout(self, prefs, prefs_path):
        prefs.set(KEY_LOCATION_NAME, "Brno")

        data = json.loads(prefs_path.read_text())
        assert data["version"] == 1
        assert "saved_at" in data
        assert data["values"] == {KEY_LOCATION_NAME: "Brno"}

    def test_values_survive_reload(self, prefs, prefs_path):
        prefs.update({KEY_LOCATION_LAT: 64.1466, KEY_NIGHT_MODE: True})

        reloaded = JsonPreferenceStore(prefs_path=prefs_path)
        assert reloaded.get(KEY_LOCATION_LAT) == 64.1466
        assert reloaded.get(KEY_NIGHT_MODE) is True
        assert reloaded.path == prefs_path

    def test_corrupt_file_ignored(self, prefs_path):
        prefs_path.parent.mkdir(parents=True)
        prefs_path.write_text("{not json")

        store = JsonPreferenceStore(prefs_path=prefs_path)
        assert store.as_dict() == {}

        store.set(KEY_NIGHT_MODE, False)
        assert json.loads(prefs_path.read_text())["values"] == {KEY_NIGHT_MODE: False}

    def test_unexpected_top_level_ignored(self, prefs_path):
        prefs_path.parent.mkdir(parents=True)
        prefs_path.write_text("[1, 2, 3]")

        assert JsonPreferenceStore(prefs_path=prefs_path).as_dict() == {}
