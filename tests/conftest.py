"""Test configuration and fixtures"""

import pytest
import tempfile
from pathlib import Path
from unittest.mock import Mock

from lyricglow.cache.unified import UnifiedCacheManager
from lyricglow.network.connectivity import ConnectivityProber, ConnectivityState

HOUR_MS = 60 * 60 * 1000
WEEK_MS = 168 * HOUR_MS
START_MS = 1_700_000_000_000


class FakeClock:
    """Millisecond clock the tests move by hand"""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def make_response(json_data=None, status=200, content=b""):
    """Mock FetchResponse"""
    response = Mock()
    response.ok = 200 <= status < 300
    response.status = status
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    response.buffer.return_value = content
    return response


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def prober():
    """Prober pinned online; tests flip it with prober.force(...)"""
    prober = ConnectivityProber(session=Mock())
    prober.force(ConnectivityState.ONLINE)
    return prober


@pytest.fixture
def cache(temp_dir, prober, clock):
    """Unified cache in a temporary root with a 168 hour window"""
    return UnifiedCacheManager(temp_dir / "cache", expiry_ms=WEEK_MS, connectivity=prober, clock=clock)


@pytest.fixture
def fetcher():
    """Mock ResilientFetch"""
    return Mock()


@pytest.fixture
def mock_settings():
    """Mock settings for testing"""
    settings = Mock()
    settings.audiodb.base_url = "https://www.theaudiodb.com"
    settings.audiodb.api_key = "523532"
    settings.audiodb.min_request_interval = 0
    settings.audiodb.bio_summary_length = 300
    settings.spotify.market = "US"
    settings.spotify.albums_limit = 4
    settings.spotify.top_tracks_limit = 5
    settings.network.request_timeout = 10.0
    settings.network.user_agent = "LyricGlow/1.0"
    settings.network.probe_url = "https://www.google.com"
    settings.network.probe_timeout = 3.0
    settings.network.probe_cooldown = 60.0
    return settings


@pytest.fixture
def sample_lyrics():
    """Lyrics record as stored in the cache"""
    return {
        'synced': "[00:12.00]First line\n[00:15.50]Second line",
        'plain': "First line\nSecond line",
        'instrumental': False,
    }


@pytest.fixture
def png_bytes():
    """A small real PNG image"""
    import io
    from PIL import Image

    buffer = io.BytesIO()
    Image.new('RGB', (4, 4), color=(200, 30, 30)).save(buffer, format='PNG')
    return buffer.getvalue()
