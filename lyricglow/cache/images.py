"""
Image download adapter backed by the unified cache

Album artwork and artist photos are keyed by their URL. Downloaded bytes are
checked with Pillow before caching so an HTML error page or a truncated body
never ends up stored as an image.
"""

import base64
import io
from typing import Optional

from PIL import Image, UnidentifiedImageError

from ..exceptions import FetchError
from ..network.fetch import ResilientFetch
from ..utils.logger import get_logger
from .unified import UnifiedCacheManager, CacheType, IMAGE_DATA_URI_PREFIX


class ImageCacheManager:
    """Fetch images through the cache, returning base64 data URIs"""

    def __init__(self, cache: UnifiedCacheManager, fetcher: ResilientFetch):
        self.cache = cache
        self.fetcher = fetcher
        self.logger = get_logger(__name__)

    def get_image(self, url: Optional[str]) -> Optional[str]:
        """
        Get an image as a data URI, downloading it on a cache miss

        Args:
            url: Image URL

        Returns:
            "data:image/jpeg;base64,..." string, or None if unavailable
        """
        if not url:
            return None
        return self.cache.get_or_fetch(CacheType.IMAGES, url, lambda: self.download_image(url))

    def download_image(self, url: str) -> Optional[str]:
        """
        Download and validate an image

        Returns:
            Data URI for the image, or None on HTTP errors, transport errors
            or undecodable bytes
        """
        try:
            response = self.fetcher.fetch(url)
        except FetchError as e:
            self.logger.error(f"Image download error: {e}")
            return None

        if not response.ok:
            self.logger.debug(f"Image download failed ({response.status}): {url}")
            return None

        content = response.buffer()
        if not is_valid_image(content):
            self.logger.warning(f"Downloaded content is not a readable image: {url}")
            return None

        return IMAGE_DATA_URI_PREFIX + base64.b64encode(content).decode('ascii')


def is_valid_image(content: bytes) -> bool:
    """Check that bytes decode as an image Pillow recognizes"""
    if not content:
        return False
    try:
        with Image.open(io.BytesIO(content)) as image:
            image.verify()
        return True
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        return False
