"""
TheAudioDB integration for artist metadata

TheAudioDB provides artist biographies, formation years, genre/style tags and
a set of fan-art images without user authentication. It is the metadata source
that always runs; Spotify data is layered on top when the user is logged in.

Rate Limiting:
The free API is shared by many clients, so requests are spaced by a minimum
interval (0.5 seconds by default). Provider lookups run on worker threads, so
the spacing is enforced under a lock.
"""

import threading
import time
from typing import Any, Dict, Optional
from urllib.parse import quote

from ..cache.unified import UnifiedCacheManager, CacheType
from ..exceptions import FetchError
from ..network.fetch import ResilientFetch
from ..utils.helpers import truncate_string
from ..utils.logger import get_logger

# Biography languages exposed by TheAudioDB, keyed by our short code
BIO_LANGUAGES = {
    'de': 'strBiographyDE',
    'fr': 'strBiographyFR',
    'es': 'strBiographyES',
    'pt': 'strBiographyPT',
    'it': 'strBiographyIT',
    'jp': 'strBiographyJP',
    'ru': 'strBiographyRU',
}

IMAGE_FIELDS = (
    'strArtistThumb',
    'strArtistFanart',
    'strArtistFanart2',
    'strArtistFanart3',
    'strArtistFanart4',
    'strArtistWideThumb',
    'strArtistBanner',
)


class TheAudioDBManager:
    """Artist metadata provider backed by TheAudioDB and the unified cache"""

    def __init__(
        self,
        cache: UnifiedCacheManager,
        fetcher: ResilientFetch,
        base_url: str = "https://www.theaudiodb.com",
        api_key: str = "523532",
        min_request_interval: float = 0.5,
        bio_summary_length: int = 300
    ):
        self.cache = cache
        self.fetcher = fetcher
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.bio_summary_length = bio_summary_length
        self.logger = get_logger(__name__)

        # Rate limiting state
        self.last_request_time = 0.0
        self.min_request_interval = min_request_interval
        self._rate_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings, cache: UnifiedCacheManager, fetcher: ResilientFetch) -> 'TheAudioDBManager':
        return cls(
            cache,
            fetcher,
            base_url=settings.audiodb.base_url,
            api_key=settings.audiodb.api_key,
            min_request_interval=settings.audiodb.min_request_interval,
            bio_summary_length=settings.audiodb.bio_summary_length,
        )

    def _rate_limit(self) -> None:
        """Sleep until min_request_interval has passed since the last request"""
        with self._rate_lock:
            time_since_last = time.time() - self.last_request_time
            if time_since_last < self.min_request_interval:
                time.sleep(self.min_request_interval - time_since_last)
            self.last_request_time = time.time()

    def make_request(self, endpoint: str) -> Optional[Dict[str, Any]]:
        """
        Call a TheAudioDB endpoint

        Args:
            endpoint: Path relative to /api/v1/json/<key>/, including query

        Returns:
            Decoded JSON object, or None on any failure
        """
        self._rate_limit()

        url = f"{self.base_url}/api/v1/json/{self.api_key}/{endpoint}"
        try:
            response = self.fetcher.fetch(url)
        except FetchError as e:
            self.logger.error(f"TheAudioDB request failed: {e}")
            return None

        if not response.ok:
            self.logger.error(f"TheAudioDB error: HTTP {response.status}")
            return None

        try:
            data = response.json()
        except ValueError as e:
            self.logger.error(f"TheAudioDB returned invalid JSON: {e}")
            return None

        return data if isinstance(data, dict) else None

    def search_artist(self, artist_name: str) -> Optional[Dict[str, Any]]:
        """
        Look up an artist by name

        Returns:
            Parsed artist record (see parse_artist_data), or None
        """
        if not artist_name:
            return None

        cache_key = f"audiodb_artist:{artist_name.lower()}"
        return self.cache.get_or_fetch(
            CacheType.METADATA, cache_key, lambda: self._fetch_artist(artist_name)
        )

    def _fetch_artist(self, artist_name: str) -> Optional[Dict[str, Any]]:
        start_time = time.time()
        response = self.make_request(f"search.php?s={quote(artist_name)}")
        duration_ms = int((time.time() - start_time) * 1000)

        artists = response.get('artists') if response else None
        if isinstance(artists, list) and artists and isinstance(artists[0], dict):
            self.logger.info(f"TheAudioDB found ({duration_ms}ms): {artist_name}")
            return self.parse_artist_data(artists[0])

        self.logger.warning(f"TheAudioDB not found ({duration_ms}ms): {artist_name}")
        return None

    def parse_artist_data(self, artist: Dict[str, Any]) -> Dict[str, Any]:
        """Normalize a TheAudioDB artist object"""
        bio = artist.get('strBiographyEN')
        return {
            'name': artist.get('strArtist'),
            'alternateName': artist.get('strArtistAlternate'),
            'country': artist.get('strCountry'),
            'countryCode': artist.get('strCountryCode'),
            'formedYear': artist.get('intFormedYear'),
            'bornYear': artist.get('intBornYear'),
            'diedYear': artist.get('intDiedYear'),
            'disbanded': artist.get('strDisbanded'),
            'genre': artist.get('strGenre'),
            'style': artist.get('strStyle'),
            'mood': artist.get('strMood'),
            'gender': artist.get('strGender'),
            'members': artist.get('intMembers'),
            'bio': {
                'summary': truncate_string(bio, self.bio_summary_length),
                'content': bio,
                **{code: artist.get(field) for code, field in BIO_LANGUAGES.items()},
            },
            'website': artist.get('strWebsite'),
            'facebook': artist.get('strFacebook'),
            'twitter': artist.get('strTwitter'),
            'allImages': [artist.get(f) for f in IMAGE_FIELDS if artist.get(f)],
            'thumb': artist.get('strArtistThumb'),
            'logo': artist.get('strArtistLogo'),
            'clearart': artist.get('strArtistClearart'),
            'banner': artist.get('strArtistBanner'),
            'musicBrainzId': artist.get('strMusicBrainzID'),
        }

    def fetch_metadata(self, artist_name: Optional[str]) -> Optional[Dict[str, Any]]:
        """
        Get artist metadata for the now-playing track

        Returns:
            {"artist": record}, or None
        """
        if not artist_name:
            self.logger.debug("TheAudioDB: No artist name provided")
            return None

        artist_data = self.search_artist(artist_name)
        if not artist_data:
            return None
        return {'artist': artist_data}
