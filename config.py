"""Configuration module for screenshot-imgur-sync application."""

import os
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Constants
DEFAULT_API_URL = 'https://api.imgur.com/'
DEFAULT_SETTINGS_FILE = '~/.screenshot-imgur-sync.json'
DEFAULT_UPLOAD_TIMEOUT = 30  # seconds
DEFAULT_AUTH_TIMEOUT = 60  # seconds
DEFAULT_UPLOAD_WORKERS = 4


class Config:
    """Configuration class for application settings."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        # Imgur application credentials
        self.client_id = os.getenv('IMGUR_CLIENT_ID')
        self.client_secret = os.getenv('IMGUR_CLIENT_SECRET')
        self.api_url = os.getenv('IMGUR_API_URL', DEFAULT_API_URL)

        # Persistent key-value settings (username, refresh token, location override)
        self.settings_file = os.path.expanduser(os.getenv('SETTINGS_FILE', DEFAULT_SETTINGS_FILE))

        # Screenshot detection settings
        location_raw = os.getenv('SCREENSHOT_LOCATION')
        self.screenshot_location: Optional[str] = (
            os.path.normpath(os.path.expanduser(location_raw)) if location_raw else None
        )
        self.screenshot_pattern = os.getenv('SCREENSHOT_PATTERN', '*')

        # Logging settings
        self.log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
        self.log_file = os.getenv('LOG_FILE', 'app.log')

        # Screenshot completion detection settings
        self.file_stable_time = float(os.getenv('FILE_STABLE_TIME', '1'))  # seconds size must be unchanged
        self.file_timeout = int(os.getenv('FILE_TIMEOUT', '30'))  # max seconds to wait for file completion

        # Upload settings
        self.upload_description = os.getenv('UPLOAD_DESCRIPTION', '')
        self.upload_timeout = int(os.getenv('UPLOAD_TIMEOUT', str(DEFAULT_UPLOAD_TIMEOUT)))
        self.upload_workers = int(os.getenv('UPLOAD_WORKERS', str(DEFAULT_UPLOAD_WORKERS)))
        self.auth_timeout = int(os.getenv('AUTH_TIMEOUT', str(DEFAULT_AUTH_TIMEOUT)))
        self.delete_after_upload = os.getenv('DELETE_AFTER_UPLOAD', 'false').lower() == 'true'

        # Validate required settings
        self._validate_config()

        # Setup logging
        self._setup_logging()

    def _validate_config(self) -> None:
        """Validate that required configuration is present."""
        errors = []

        if not self.client_id:
            errors.append("IMGUR_CLIENT_ID is required")

        if not self.client_secret:
            errors.append("IMGUR_CLIENT_SECRET is required")

        # Validate API URL
        if not self.api_url:
            errors.append("IMGUR_API_URL is required")
        else:
            try:
                parsed = urlparse(self.api_url)
                if not parsed.scheme or not parsed.netloc:
                    errors.append(f"IMGUR_API_URL is not a valid URL: {self.api_url}")
            except Exception as e:
                errors.append(f"IMGUR_API_URL validation error: {e}")

        if self.upload_timeout <= 0:
            errors.append("UPLOAD_TIMEOUT must be positive")

        if self.upload_workers < 1:
            errors.append("UPLOAD_WORKERS must be at least 1")

        # An invalid SCREENSHOT_LOCATION is not an error: the Desktop is used instead

        if errors:
            raise ValueError("Configuration errors:\n" + "\n".join(f"- {error}" for error in errors))

    def _setup_logging(self) -> None:
        """Setup logging configuration."""
        # Convert string log level to logging constant
        log_levels = {
            'DEBUG': logging.DEBUG,
            'INFO': logging.INFO,
            'WARNING': logging.WARNING,
            'ERROR': logging.ERROR,
            'CRITICAL': logging.CRITICAL
        }

        log_level = log_levels.get(self.log_level, logging.INFO)

        # Configure logging format
        log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

        handlers = [logging.StreamHandler()]
        if self.log_file:
            handlers.insert(0, logging.FileHandler(self.log_file))

        # Configure root logger
        logging.basicConfig(
            level=log_level,
            format=log_format,
            handlers=handlers
        )

        # Get logger for this module
        logger = logging.getLogger(__name__)
        logger.info(f"Logging configured with level: {self.log_level}")

    @property
    def base_url(self) -> str:
        """Get the API base URL, always ending with a slash."""
        return self.api_url.rstrip('/') + '/'

    @property
    def token_url(self) -> str:
        """Get the OAuth2 token endpoint."""
        return f"{self.base_url}oauth2/token"

    @property
    def upload_url(self) -> str:
        """Get the image upload endpoint."""
        return f"{self.base_url}3/upload"

    @property
    def desktop_path(self) -> Path:
        """Get the default screenshot location (the user's Desktop)."""
        return Path.home() / 'Desktop'


# Global configuration instance
config = Config()
