"""
AstroPhoto Preferences

Small key/value store for settings that outlive a session: the chosen
observing location, whether it was set by hand, and night mode.

Usage:
    from astrophoto.preferences import JsonPreferenceStore

    prefs = JsonPreferenceStore()
    prefs.set(KEY_NIGHT_MODE, True)
    prefs.get(KEY_NIGHT_MODE, False)
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Union

logger = logging.getLogger("astrophoto.preferences")

__all__ = [
    "PreferenceStore",
    "MemoryPreferenceStore",
    "JsonPreferenceStore",
    "KEY_LOCATION_LAT",
    "KEY_LOCATION_LON",
    "KEY_LOCATION_NAME",
    "KEY_LOCATION_IS_MANUAL",
    "KEY_NIGHT_MODE",
]

KEY_LOCATION_LAT = "location_lat"
KEY_LOCATION_LON = "location_lon"
KEY_LOCATION_NAME = "location_name"
KEY_LOCATION_IS_MANUAL = "location_is_manual"
KEY_NIGHT_MODE = "night_mode"

PreferenceValue = Union[str, float, bool]


class PreferenceStore(Protocol):
    """What the coordinator needs from a settings backend."""

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: PreferenceValue) -> None:
        ...

    def update(self, values: Dict[str, PreferenceValue]) -> None:
        ...


class MemoryPreferenceStore:
    """In-process store, lost on exit. Used by tests and as the default."""

    def __init__(self, initial: Optional[Dict[str, PreferenceValue]] = None):
        self._lock = threading.Lock()
        self._values: Dict[str, PreferenceValue] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def set(self, key: str, value: PreferenceValue) -> None:
        self.update({key: value})

    def update(self, values: Dict[str, PreferenceValue]) -> None:
        """Write several keys at once."""
        with self._lock:
            self._values.update(values)

    def as_dict(self) -> Dict[str, PreferenceValue]:
        with self._lock:
            return dict(self._values)


class JsonPreferenceStore(MemoryPreferenceStore):
    """Store persisted to a JSON file after every write."""

    DEFAULT_PREFS_PATH = Path.home() / ".astrophoto" / "preferences.json"

    def __init__(self, prefs_path: Optional[Path] = None):
        super().__init__()
        self._prefs_path = Path(prefs_path) if prefs_path else self.DEFAULT_PREFS_PATH
        self._load()
        logger.debug(f"Preferences loaded from {self._prefs_path}")

    @property
    def path(self) -> Path:
        return self._prefs_path

    def update(self, values: Dict[str, PreferenceValue]) -> None:
        super().update(values)
        self._save()

    def _save(self):
        """Save preferences to disk. Failures are logged, values stay in memory."""
        data = {
            "version": 1,
            "saved_at": datetime.now().isoformat(),
            "values": self.as_dict(),
        }
        try:
            self._prefs_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._prefs_path, "w") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.warning(f"Failed to save preferences: {e}")

    def _load(self):
        if not self._prefs_path.exists():
            return
        try:
            with open(self._prefs_path, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load preferences from {self._prefs_path}: {e}")
            return
        values = data.get("values", {}) if isinstance(data, dict) else {}
        super().update(values)
