"""
Lyrics package

- LyricsManager: LRCLIB synced lyrics provider using the unified cache
"""

from .lrclib import LyricsManager

__all__ = ['LyricsManager']
