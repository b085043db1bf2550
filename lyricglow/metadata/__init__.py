"""
Artist metadata package

- TheAudioDBManager: biographies, years, tags and fan art (no login)
- SpotifyMetadataManager: images, popularity, top tracks and albums (login)
- merge_artist_metadata: combine both into one display record
"""

from .audiodb import TheAudioDBManager
from .spotify import SpotifyMetadataManager
from .merge import merge_artist_metadata

__all__ = [
    'TheAudioDBManager',
    'SpotifyMetadataManager',
    'merge_artist_metadata',
]
