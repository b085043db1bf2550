"""
Cache package: the unified offline-first store and the image adapter built on it
"""

from .unified import UnifiedCacheManager, CacheType, CacheEntry
from .images import ImageCacheManager, is_valid_image

__all__ = [
    'UnifiedCacheManager',
    'CacheType',
    'CacheEntry',
    'ImageCacheManager',
    'is_valid_image',
]
