"""
Screenshot detection for screenshot-imgur-sync.

This module turns file system events in the screenshot folder into
"new screenshot" callbacks. Screenshots that already exist when
monitoring starts are remembered by name and never reported, and each
new screenshot is reported only once.
"""

import os
import fnmatch
import logging
import threading
from pathlib import Path
from typing import Callable, Optional, Set

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from config import config
from settings_store import SettingsStore, SCREENSHOT_LOCATION_KEY


class ScreenshotMonitor(FileSystemEventHandler):
    """Watches the screenshot folder and reports new screenshots."""

    def __init__(self, callback: Callable[[str], None], store: Optional[SettingsStore] = None) -> None:
        """
        Initialize the monitor.

        Args:
            callback: Called with the full path of every new screenshot
            store: Settings store holding an optional custom screenshot location
        """
        self.logger = logging.getLogger(__name__)
        self.callback = callback
        self.store = store or SettingsStore()
        self.blacklist: Set[str] = set()
        self.observer: Optional[Observer] = None
        self._watch = None
        self._watched_path: Optional[Path] = None
        self._lock = threading.Lock()

    @property
    def screenshot_location_path(self) -> Path:
        """
        The folder screenshots are saved to.

        A custom location (from the settings store, then from
        configuration) is only used if it is an existing directory,
        otherwise the Desktop is used.
        """
        for custom_location in (self.store.get(SCREENSHOT_LOCATION_KEY), config.screenshot_location):
            if not custom_location:
                continue
            path = Path(custom_location).expanduser()
            if path.is_dir():
                return path.resolve()
            self.logger.debug(f"Ignoring custom screenshot location that is not a directory: {path}")
        return config.desktop_path.resolve()

    def start_monitoring(self) -> None:
        """Blacklist existing screenshots and start watching for new ones."""
        if self.observer is not None:
            return

        self.observer = Observer()
        self._schedule(self.screenshot_location_path)
        self.observer.start()
        self.logger.info("Screenshot monitoring started")

    def stop_monitoring(self) -> None:
        """Stop watching. Safe to call when monitoring is not running."""
        if self.observer is None:
            return

        if self._watch is not None:
            self.observer.unschedule(self._watch)
        self.observer.stop()
        self.observer.join(timeout=5)  # Wait up to 5 seconds for graceful shutdown

        self.observer = None
        self._watch = None
        self._watched_path = None
        self.logger.info("Screenshot monitoring stopped")

    def refresh_location(self) -> None:
        """Follow the screenshot location if it has changed since it was scheduled."""
        if self.observer is None:
            return

        location = self.screenshot_location_path
        if location == self._watched_path and (self._watch is not None or not location.is_dir()):
            return

        if self._watch is not None:
            self.logger.info(f"Screenshot location changed to: {location}")
            self.observer.unschedule(self._watch)
            self._watch = None
        self._schedule(location)

    def _schedule(self, location: Path) -> None:
        self._watched_path = location
        if not location.is_dir():
            self.logger.warning(f"Screenshot location does not exist: {location}")
            return

        self.gather_existing(location)
        self._watch = self.observer.schedule(self, str(location), recursive=False)
        self.logger.info(f"Watching for screenshots in: {location}")

    def gather_existing(self, location: Path) -> None:
        """Blacklist every screenshot already present in location."""
        try:
            entries = list(location.iterdir())
        except OSError as e:
            self.logger.error(f"Could not list screenshot location {location}: {e}")
            return

        with self._lock:
            for entry in entries:
                if entry.is_file() and self._is_screenshot_name(entry.name):
                    self.blacklist.add(entry.stem)
        self.logger.debug(f"Blacklist contains {len(self.blacklist)} existing screenshots")

    def on_created(self, event) -> None:
        """Handle file creation events."""
        if event.is_directory:
            return
        self._handle_candidate(event.src_path)

    def on_moved(self, event) -> None:
        """Handle file move events (screenshots are often written elsewhere and renamed)."""
        if event.is_directory:
            return
        self._handle_candidate(event.dest_path)

    def _handle_candidate(self, raw_path) -> None:
        screenshot_path = Path(os.fsdecode(raw_path))

        if not self._is_screenshot_name(screenshot_path.name):
            return

        if not self._is_in_screenshot_location(screenshot_path):
            self.logger.debug(f"File outside screenshot location ignored: {screenshot_path}")
            return

        # Screenshots are tracked by name without extension
        screenshot_name = screenshot_path.stem
        with self._lock:
            if screenshot_name in self.blacklist:
                return
            self.blacklist.add(screenshot_name)

        self.logger.info(f"New screenshot detected: {screenshot_path}")
        try:
            self.callback(str(screenshot_path))
        except Exception as e:
            self.logger.error(f"Error handling screenshot {screenshot_path}: {e}", exc_info=True)

    def _is_in_screenshot_location(self, file_path: Path) -> bool:
        try:
            return file_path.parent.resolve() == self.screenshot_location_path
        except OSError as e:
            self.logger.debug(f"Error checking file path: {e}")
            return False

    def _is_screenshot_name(self, filename: str) -> bool:
        # Hidden files are temporary files written by screenshot tools
        if filename.startswith('.'):
            return False
        return fnmatch.fnmatch(filename.lower(), config.screenshot_pattern.lower())
