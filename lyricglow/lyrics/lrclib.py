"""
LRCLIB integration for synchronized lyrics

LRCLIB (https://lrclib.net) is a free lyrics database serving LRC-formatted
synchronized lyrics without an API key. The now-playing display needs timing
information to highlight the current line, so only results carrying synced
lyrics are accepted.

Search Strategy:
1. Query /api/search with "<title> <artist>"
2. Prefer an exact normalized match on both title and artist
3. Fall back to an exact normalized title match
4. Fall back to the first result

Results are cached under the key "<title>-<artist>" (lowercased) through the
unified cache, so a track that was played once shows lyrics offline.
"""

from typing import Any, Dict, List, Optional

from ..cache.unified import UnifiedCacheManager, CacheType
from ..exceptions import FetchError
from ..models import LyricsRecord
from ..network.fetch import ResilientFetch
from ..utils.helpers import normalize_match_text
from ..utils.logger import get_logger


class LyricsManager:
    """
    Synced lyrics provider backed by LRCLIB and the unified cache

    Never raises: network failures, HTTP errors and malformed responses all
    degrade to cached data or None.
    """

    def __init__(
        self,
        cache: UnifiedCacheManager,
        fetcher: ResilientFetch,
        base_url: str = "https://lrclib.net/api"
    ):
        self.cache = cache
        self.fetcher = fetcher
        self.base_url = base_url.rstrip('/')
        self.logger = get_logger(__name__)

    @staticmethod
    def cache_key(title: str, artist: str) -> str:
        return f"{title}-{artist}".lower()

    def fetch_lyrics(self, title: str, artist: str) -> Optional[Dict[str, Any]]:
        """
        Get lyrics for a track

        Args:
            title: Track title
            artist: Artist name

        Returns:
            {synced, plain, instrumental} dictionary, or None
        """
        if not title or not artist:
            return None

        return self.cache.get_or_fetch(
            CacheType.LYRICS,
            self.cache_key(title, artist),
            lambda: self.fetch_from_api(title, artist)
        )

    def fetch_from_api(self, title: str, artist: str) -> Optional[Dict[str, Any]]:
        """
        Search LRCLIB and pick the best synced result

        Returns:
            Lyrics record dictionary, or None if nothing usable was found
        """
        try:
            response = self.fetcher.fetch(
                f"{self.base_url}/search",
                params={'q': f"{title} {artist}"}
            )
        except FetchError as e:
            self.logger.warning(f"LRCLIB request failed: {e}")
            return None

        if not response.ok:
            self.logger.warning(f"LRCLIB error: HTTP {response.status}")
            return None

        try:
            results = response.json()
        except ValueError as e:
            self.logger.warning(f"LRCLIB returned invalid JSON: {e}")
            return None

        if not isinstance(results, list) or not results:
            self.logger.info(f"No lyrics found: {artist} - {title}")
            return None

        match = self.find_best_match(results, title, artist)
        if not match or not match.get('syncedLyrics'):
            self.logger.info(f"No synced lyrics found: {artist} - {title}")
            return None

        self.logger.info(f"Lyrics found: {artist} - {title}")
        return LyricsRecord(
            synced=match.get('syncedLyrics'),
            plain=match.get('plainLyrics'),
            instrumental=bool(match.get('instrumental', False)),
        ).to_dict()

    def find_best_match(self, results: List[Any], title: str, artist: str) -> Optional[Dict[str, Any]]:
        """
        Pick the best search result for a track

        Args:
            results: LRCLIB search results
            title: Wanted title
            artist: Wanted artist

        Returns:
            Exact title+artist match, else exact title match, else the first result
        """
        candidates = [item for item in results if isinstance(item, dict)]
        if not candidates:
            return None

        target_title = normalize_match_text(title)
        target_artist = normalize_match_text(artist)

        def item_title(item):
            return normalize_match_text(item.get('trackName') or item.get('name') or '')

        for item in candidates:
            if item_title(item) == target_title and normalize_match_text(item.get('artistName')) == target_artist:
                return item

        for item in candidates:
            if item_title(item) == target_title:
                return item

        return candidates[0]
