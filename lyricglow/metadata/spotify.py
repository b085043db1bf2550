"""
Spotify Web API integration for artist metadata

Adds artist images, genres, popularity, follower counts, top tracks and
albums on top of TheAudioDB data. Only active while the user is logged in:
without an access token every request is skipped and callers get None.

Lookup paths:
- Snapshot carries a Spotify track URL/URI: track -> primary artist id
- Otherwise: artist search by name (first result)

Artist, top tracks and albums are then fetched concurrently. Every response
is cached through the unified cache under a type-prefixed key, so the same
data is available offline once seen.
"""

import re
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

from ..cache.unified import UnifiedCacheManager, CacheType
from ..exceptions import FetchError
from ..models import TrackSnapshot
from ..network.fetch import ResilientFetch
from ..utils.logger import get_logger

SPOTIFY_API_URL = "https://api.spotify.com/v1"

TRACK_URI_PREFIX = "spotify:track:"
TRACK_URL_PATTERN = re.compile(r"open\.spotify\.com/track/([a-zA-Z0-9]+)")


class SpotifyMetadataManager:
    """Artist metadata provider backed by the Spotify Web API"""

    def __init__(
        self,
        auth,
        cache: UnifiedCacheManager,
        fetcher: ResilientFetch,
        market: str = "US",
        albums_limit: int = 4,
        top_tracks_limit: int = 5,
        base_url: str = SPOTIFY_API_URL
    ):
        """
        Args:
            auth: Token provider exposing get_access_token()
            cache: Unified cache
            fetcher: Resilient fetch wrapper
            market: Market code for top tracks
            albums_limit: Number of albums to request
            top_tracks_limit: Number of top tracks to keep
        """
        self.auth = auth
        self.cache = cache
        self.fetcher = fetcher
        self.market = market
        self.albums_limit = albums_limit
        self.top_tracks_limit = top_tracks_limit
        self.base_url = base_url.rstrip('/')
        self.logger = get_logger(__name__)

    @classmethod
    def from_settings(cls, settings, auth, cache: UnifiedCacheManager, fetcher: ResilientFetch) -> 'SpotifyMetadataManager':
        return cls(
            auth,
            cache,
            fetcher,
            market=settings.spotify.market,
            albums_limit=settings.spotify.albums_limit,
            top_tracks_limit=settings.spotify.top_tracks_limit,
        )

    def make_request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """
        Authenticated GET against the Web API

        Returns:
            Decoded JSON object, or None when logged out, on failure, or when
            the API answers with an error body
        """
        access_token = self.auth.get_access_token()
        if not access_token:
            self.logger.warning("No Spotify access token available")
            return None

        try:
            response = self.fetcher.fetch(
                f"{self.base_url}{endpoint}",
                headers={
                    'Authorization': f"Bearer {access_token}",
                    'Content-Type': 'application/json',
                },
                params=params,
            )
        except FetchError as e:
            self.logger.error(f"Spotify request failed: {e}")
            return None

        try:
            data = response.json()
        except ValueError as e:
            self.logger.error(f"Spotify returned invalid JSON: {e}")
            return None

        if not isinstance(data, dict):
            return None
        if data.get('error'):
            self.logger.error(f"Spotify API error: {data['error']}")
            return None
        return data

    @staticmethod
    def extract_track_id(spotify_url: Optional[str]) -> Optional[str]:
        """
        Extract a track id from a Spotify URI or open.spotify.com URL

        >>> SpotifyMetadataManager.extract_track_id("spotify:track:5jkFvD4UJrmdoezzT1FRoP")
        '5jkFvD4UJrmdoezzT1FRoP'
        """
        if not spotify_url:
            return None

        if spotify_url.startswith(TRACK_URI_PREFIX):
            return spotify_url[len(TRACK_URI_PREFIX):].split(':')[0] or None

        match = TRACK_URL_PATTERN.search(spotify_url)
        return match.group(1) if match else None

    def get_track(self, track_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not track_id:
            return None
        return self.cache.get_or_fetch(
            CacheType.METADATA,
            f"track:{track_id}",
            lambda: self.make_request(f"/tracks/{track_id}")
        )

    def get_artist(self, artist_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not artist_id:
            return None

        def fetch_artist():
            response = self.make_request(f"/artists/{artist_id}")
            if not response:
                self.logger.warning(f"Spotify not found: artist {artist_id}")
                return None
            artist = self.parse_artist_data(response)
            self.logger.info(f"Spotify found: {artist['name']}")
            return artist

        return self.cache.get_or_fetch(CacheType.METADATA, f"spotify_artist:{artist_id}", fetch_artist)

    @staticmethod
    def parse_artist_data(artist: Dict[str, Any]) -> Dict[str, Any]:
        """Normalize a Spotify artist object"""
        return {
            'id': artist.get('id'),
            'name': artist.get('name'),
            'images': artist.get('images') or [],
            'genres': artist.get('genres') or [],
            'popularity': artist.get('popularity'),
            'followers': (artist.get('followers') or {}).get('total') or 0,
            'url': (artist.get('external_urls') or {}).get('spotify'),
        }

    def get_artist_top_tracks(self, artist_id: Optional[str]) -> Optional[List[Dict[str, Any]]]:
        if not artist_id:
            return None

        def fetch_top_tracks():
            response = self.make_request(f"/artists/{artist_id}/top-tracks", params={'market': self.market})
            if not response or not isinstance(response.get('tracks'), list):
                return None
            return [
                {
                    'name': track.get('name'),
                    'id': track.get('id'),
                    'popularity': track.get('popularity'),
                    'url': (track.get('external_urls') or {}).get('spotify'),
                    'album': {
                        'name': (track.get('album') or {}).get('name'),
                        'images': (track.get('album') or {}).get('images') or [],
                    },
                    'artist': (track.get('artists') or [{}])[0].get('name'),
                }
                for track in response['tracks'][:self.top_tracks_limit]
            ]

        return self.cache.get_or_fetch(
            CacheType.METADATA, f"spotify_toptracks:{artist_id}", fetch_top_tracks
        ) or []

    def get_artist_albums(self, artist_id: Optional[str]) -> Optional[List[Dict[str, Any]]]:
        if not artist_id:
            return None

        def fetch_albums():
            response = self.make_request(
                f"/artists/{artist_id}/albums",
                params={'limit': self.albums_limit, 'include_groups': 'album'}
            )
            if not response or not isinstance(response.get('items'), list):
                return None
            return [
                {
                    'name': album.get('name'),
                    'id': album.get('id'),
                    'release_date': album.get('release_date'),
                    'total_tracks': album.get('total_tracks'),
                    'images': album.get('images') or [],
                    'url': (album.get('external_urls') or {}).get('spotify'),
                    'artist': (album.get('artists') or [{}])[0].get('name'),
                }
                for album in response['items'][:self.albums_limit]
            ]

        return self.cache.get_or_fetch(
            CacheType.METADATA, f"spotify_albums:{artist_id}", fetch_albums
        ) or []

    def search_artist(self, artist_name: Optional[str]) -> Optional[Dict[str, Any]]:
        """Find an artist by name (first search result)"""
        if not artist_name:
            return None

        def fetch_search():
            response = self.make_request('/search', params={'q': artist_name, 'type': 'artist', 'limit': 1})
            items = ((response or {}).get('artists') or {}).get('items') or []
            if not items:
                return None
            return self.parse_artist_data(items[0])

        return self.cache.get_or_fetch(
            CacheType.METADATA, f"spotify_search:{artist_name.lower()}", fetch_search
        )

    def _fetch_artist_bundle(self, artist_id: str, artist: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        with ThreadPoolExecutor(max_workers=3) as executor:
            artist_future = None if artist else executor.submit(self.get_artist, artist_id)
            tracks_future = executor.submit(self.get_artist_top_tracks, artist_id)
            albums_future = executor.submit(self.get_artist_albums, artist_id)

            return {
                'artist': artist if artist else artist_future.result(),
                'topTracks': tracks_future.result(),
                'topAlbums': albums_future.result(),
            }

    def fetch_metadata(self, track: TrackSnapshot) -> Optional[Dict[str, Any]]:
        """
        Gather artist, top tracks and albums for the playing track

        Returns:
            {"artist", "topTracks", "topAlbums"} dictionary, or None
        """
        try:
            track_id = self.extract_track_id(track.spotify_url)

            if not track_id:
                self.logger.debug("No Spotify track ID, trying artist search")
                artist = self.search_artist(track.artist)
                if not artist or not artist.get('id'):
                    return None
                return self._fetch_artist_bundle(artist['id'], artist)

            track_data = self.get_track(track_id)
            artists = (track_data or {}).get('artists') or []
            if not artists or not artists[0].get('id'):
                return None

            return self._fetch_artist_bundle(artists[0]['id'])

        except Exception as e:
            self.logger.error(f"Spotify metadata fetch failed: {e}")
            return None
