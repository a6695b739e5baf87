"""
Persistent key-value settings for screenshot-imgur-sync.

Stores the Imgur username and refresh token between runs, along with an
optional custom screenshot location. The file is re-read on every lookup
so that edits made while the application is running take effect
immediately.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Optional

from config import config


logger = logging.getLogger(__name__)

USERNAME_KEY = 'ImgurUsername'
REFRESH_TOKEN_KEY = 'RefreshToken'
SCREENSHOT_LOCATION_KEY = 'ScreenshotLocation'


class SettingsStore:
    """JSON file backed key-value store."""

    def __init__(self, path: Optional[str] = None) -> None:
        self.logger = logging.getLogger(__name__)
        self.path = Path(path or config.settings_file)
        self._lock = threading.Lock()

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, ValueError) as e:
            self.logger.warning(f"Could not read settings file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            self.logger.warning(f"Ignoring malformed settings file {self.path}")
            return {}
        return data

    def _save(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding='utf-8')

    def get(self, key: str) -> Optional[str]:
        """Return the string stored under key, or None."""
        with self._lock:
            value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: Optional[str]) -> None:
        """Store value under key. Setting None removes the key."""
        with self._lock:
            data = self._load()
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value
            self._save(data)

    def remove(self, *keys: str) -> None:
        """Remove keys from the store, ignoring keys that are not present."""
        with self._lock:
            data = self._load()
            for key in keys:
                data.pop(key, None)
            self._save(data)
