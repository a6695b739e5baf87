"""
Screenshot reading for screenshot-imgur-sync.

A screenshot can be reported before the tool taking it has finished
writing it. ``read_image`` keeps re-reading the file until the image is
whole: either the file ends with its format's trailer, or its size has
not changed for ``FILE_STABLE_TIME`` seconds (formats without a trailer).
"""

import time
import logging
from pathlib import Path
from typing import Optional

from config import config


logger = logging.getLogger(__name__)

CHECK_INTERVAL = 0.25  # seconds between reads

# Bytes a completely written image of each type ends with
PNG_TRAILER = b'IEND\xaeB`\x82'
IMAGE_TRAILERS = {
    '.png': PNG_TRAILER,
    '.apng': PNG_TRAILER,
    '.jpg': b'\xff\xd9',
    '.jpeg': b'\xff\xd9',
    '.gif': b';',
}


def has_image_trailer(file_path: Path, data: bytes) -> bool:
    """Check whether data ends the way a complete image of this type does."""
    trailer = IMAGE_TRAILERS.get(file_path.suffix.lower())
    return trailer is not None and data.endswith(trailer)


def read_image(file_path: Path, timeout: Optional[float] = None) -> Optional[bytes]:
    """
    Read a screenshot once it has been completely written.

    Args:
        file_path: Path to the screenshot
        timeout: Maximum seconds to wait (uses config default if None)

    Returns:
        The image bytes, or None if the file was removed or never completed
    """
    if timeout is None:
        timeout = config.file_timeout

    deadline = time.monotonic() + timeout
    last_size = -1
    stable_since = 0.0

    while True:
        try:
            data = file_path.read_bytes()
        except FileNotFoundError:
            logger.debug(f"Screenshot removed before it could be read: {file_path}")
            return None
        except OSError as e:
            logger.debug(f"Screenshot not readable yet: {file_path} - {e}")
            data = b''

        now = time.monotonic()

        if data and has_image_trailer(file_path, data):
            logger.info(f"Screenshot is ready for upload: {file_path} ({len(data)} bytes)")
            return data

        if data and len(data) == last_size:
            if now - stable_since >= config.file_stable_time:
                logger.info(f"Screenshot size settled, ready for upload: {file_path} ({len(data)} bytes)")
                return data
        else:
            last_size = len(data)
            stable_since = now

        if now >= deadline:
            logger.warning(f"Timeout waiting for screenshot to be written: {file_path}")
            return None

        time.sleep(CHECK_INTERVAL)
