"""
Application lifecycle management for screenshot-imgur-sync.

This module wires the screenshot monitor to the Imgur client: every new
screenshot is read once it has been fully written and queued for upload.
"""

import time
import logging
from pathlib import Path
from typing import Optional

from config import config
from file_processing import read_image
from imgur_client import ImgurClient, UploadRequest, is_allowed_file_type
from screenshot_monitor import ScreenshotMonitor
from settings_store import SettingsStore


class ScreenshotUploader:
    """Main class for monitoring screenshots and managing the application."""

    def __init__(self, client: Optional[ImgurClient] = None, store: Optional[SettingsStore] = None) -> None:
        """Initialize the uploader."""
        self.logger = logging.getLogger(__name__)
        self.store = store or SettingsStore()
        self.client = client or ImgurClient(config.client_id, config.client_secret, store=self.store)
        self.monitor = ScreenshotMonitor(self.handle_screenshot, store=self.store)
        self._shutdown_requested = False

    def start(self) -> None:
        """Start monitoring and block until interrupted."""
        try:
            if self.client.is_authenticated:
                self.logger.info(f"Uploading as Imgur user: {self.client.username}")
            else:
                self.logger.info("Not logged in, uploading anonymously")

            self.monitor.start_monitoring()
            self.logger.info("Screenshot monitoring started. Press Ctrl+C to stop.")

            # Keep the application running and follow location changes
            try:
                while not self._shutdown_requested:
                    time.sleep(1)
                    self.monitor.refresh_location()
            except KeyboardInterrupt:
                self.logger.info("Received interrupt signal. Stopping...")
            self.stop()

        except Exception as e:
            self.logger.error(f"Error starting screenshot monitor: {e}")
            raise

    def stop(self) -> None:
        """Stop monitoring and wait for running uploads."""
        self._shutdown_requested = True
        self.monitor.stop_monitoring()
        self.client.close()

    def handle_screenshot(self, screenshot_path: str) -> None:
        """
        Queue a newly detected screenshot for upload.

        Args:
            screenshot_path: Full path of the new screenshot
        """
        file_path = Path(screenshot_path)

        if not is_allowed_file_type(file_path):
            self.logger.warning(f"Imgur does not accept this file type, skipping: {file_path}")
            return

        image_data = read_image(file_path)
        if image_data is None:
            self.logger.warning(f"Screenshot was removed or never finished writing: {file_path}")
            return

        self.client.add_to_queue(UploadRequest(
            image_path=str(file_path),
            image_data=image_data,
            description=config.upload_description,
            callback=self.upload_finished,
        ))

    def upload_finished(self, upload: UploadRequest) -> None:
        """Report the outcome of an upload."""
        if upload.error:
            self.logger.error(f"Upload failed for {upload.image_path}: {upload.error}")
            return

        self.logger.info(f"Screenshot uploaded: {upload.link}")

        # Delete file after successful upload if configured
        if config.delete_after_upload:
            try:
                Path(upload.image_path).unlink()
                self.logger.info(f"Deleted screenshot after successful upload: {upload.image_path}")
            except OSError as e:
                self.logger.warning(f"Failed to delete screenshot after upload: {upload.image_path} - {e}")
