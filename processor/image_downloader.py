"""Download event images to local storage."""
import logging
import os
import re
import time
import unicodedata
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests

logger = logging.getLogger(__name__)


def image_filename(event_name: str, image_url: str, timestamp_ms: Optional[int] = None) -> str:
    """
    Build a collision-resistant file name for an event image.

    Args:
        event_name: Event name used as the readable part of the name
        image_url: Source URL, whose extension is kept (default .jpg)
        timestamp_ms: Millisecond timestamp suffix (default: now)

    Returns:
        File name such as ``le-concert-1710000000000.jpg``
    """
    name = unicodedata.normalize('NFD', event_name.lower())
    name = ''.join(c for c in name if not unicodedata.combining(c))
    name = re.sub(r"[^a-z0-9]+", '-', name)[:50]

    extension = os.path.splitext(urlparse(image_url).path)[1] or '.jpg'
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{name}-{timestamp_ms}{extension}"


class ImageDownloader:
    """Stores remote images under a local directory."""

    CHUNK_SIZE = 8192

    def __init__(
        self,
        images_dir: str,
        url_prefix: str = '/images/events',
        timeout: float = 10,
        session: Optional[requests.Session] = None,
        user_agent: Optional[str] = None,
    ):
        """
        Initialize the downloader.

        Args:
            images_dir: Directory the files are written to
            url_prefix: Prefix of the returned storage-relative path
            timeout: Download timeout in seconds
            session: Optional requests session to reuse
            user_agent: User-Agent header sent with downloads
        """
        self.images_dir = Path(images_dir)
        self.url_prefix = url_prefix.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        if user_agent:
            self.session.headers['User-Agent'] = user_agent

    def download(self, image_url: Optional[str], event_name: str) -> Optional[str]:
        """
        Download an image and return its storage-relative path.

        Never raises: a failed download is logged and gives None.

        Args:
            image_url: Remote image URL
            event_name: Event name used to build the file name

        Returns:
            Path such as ``/images/events/<file>`` or None
        """
        if not image_url:
            return None

        try:
            filename = image_filename(event_name, image_url)
            buffer = bytearray()
            with self.session.get(image_url, timeout=self.timeout, stream=True) as response:
                response.raise_for_status()
                for chunk in response.iter_content(chunk_size=self.CHUNK_SIZE):
                    buffer.extend(chunk)

            self.images_dir.mkdir(parents=True, exist_ok=True)
            (self.images_dir / filename).write_bytes(bytes(buffer))
        except Exception as e:
            logger.error(f"Failed to download image for '{event_name}' from {image_url}: {e}")
            return None

        logger.info(f"Saved image for '{event_name}' as {filename}")
        return f"{self.url_prefix}/{filename}"

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()
