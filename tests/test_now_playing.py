# tests/test_now_playing.py
"""Test track-change detection, provider fan-out and polling"""

import json
import shlex
import sys
import threading

import pytest
from unittest.mock import Mock

from lyricglow.models import TrackSnapshot, TrackUpdate
from lyricglow.now_playing import NowPlayingService, CommandMediaSource, poll, NO_CHANGE


@pytest.fixture
def providers(sample_lyrics):
    lyrics = Mock()
    lyrics.fetch_lyrics.return_value = sample_lyrics
    audiodb = Mock()
    audiodb.fetch_metadata.return_value = {'artist': {'name': 'Queen', 'allImages': []}}
    spotify = Mock()
    spotify.auth.is_logged_in.return_value = True
    spotify.fetch_metadata.return_value = {
        'artist': {'name': 'Queen', 'images': [], 'genres': [], 'popularity': 80, 'followers': 10},
        'topTracks': [],
        'topAlbums': [],
    }
    images = Mock()
    images.get_image.return_value = "data:image/jpeg;base64,AAAA"
    return {'lyrics': lyrics, 'audiodb': audiodb, 'spotify': spotify, 'images': images}


@pytest.fixture
def service(providers):
    return NowPlayingService(**providers)


def python_command(code):
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(code)}"


def snapshot(title="Bohemian Rhapsody", artist="Queen", **extra):
    return TrackSnapshot(title=title, artist=artist, **extra)


class TestTrackSnapshot:
    """Test snapshot parsing"""

    def test_from_dict(self):
        track = TrackSnapshot.from_dict({
            'title': 'Bohemian Rhapsody',
            'artist': 'Queen',
            'album': 'A Night at the Opera',
            'duration': 354,
            'position': '12.5',
            'isPlaying': 'true',
            'artworkUrl': 'https://img/a.jpg',
            'spotifyUrl': 'spotify:track:abc',
            'player': 'Music',
        })
        assert track.track_key == 'Bohemian Rhapsody-Queen'
        assert track.position == 12.5
        assert track.is_playing is True
        assert track.artwork_url == 'https://img/a.jpg'
        assert track.extra == {'player': 'Music'}
        assert track.progress_str == "0:12 / 5:54"

    def test_from_dict_requires_title_and_artist(self):
        assert TrackSnapshot.from_dict({}) is None
        assert TrackSnapshot.from_dict(None) is None
        assert TrackSnapshot.from_dict({'title': 'Only title'}) is None


class TestNowPlayingService:
    """Test change detection and fan-out"""

    def test_new_track_gathers_everything(self, service, providers):
        update = service.handle_snapshot(snapshot(artwork_url="https://img/a.jpg"))

        assert isinstance(update, TrackUpdate)
        assert update.has_lyrics
        assert update.metadata['hasSpotifyData'] is True
        assert update.metadata['artist']['spotifyPopularity'] == 80
        assert update.artwork == "data:image/jpeg;base64,AAAA"
        providers['lyrics'].fetch_lyrics.assert_called_once_with("Bohemian Rhapsody", "Queen")
        providers['audiodb'].fetch_metadata.assert_called_once_with("Queen")

    def test_same_track_is_no_change(self, service, providers):
        service.handle_snapshot(snapshot(position=1.0))
        assert service.handle_snapshot(snapshot(position=4.0)) is NO_CHANGE
        assert providers['lyrics'].fetch_lyrics.call_count == 1

    def test_track_change_triggers_new_lookup(self, service, providers):
        service.handle_snapshot(snapshot())
        update = service.handle_snapshot(snapshot(title="Under Pressure"))
        assert update.track.title == "Under Pressure"
        assert providers['lyrics'].fetch_lyrics.call_count == 2

    def test_playback_stop(self, service):
        assert service.handle_snapshot(None) is NO_CHANGE
        service.handle_snapshot(snapshot())
        assert service.handle_snapshot(None) is None
        assert service.current_track_key is None
        assert service.handle_snapshot(None) is NO_CHANGE

    def test_provider_failure_is_isolated(self, service, providers):
        providers['audiodb'].fetch_metadata.side_effect = RuntimeError("audiodb exploded")
        providers['lyrics'].fetch_lyrics.side_effect = TimeoutError("slow")

        update = service.handle_snapshot(snapshot())

        assert update.lyrics is None
        assert update.metadata['hasSpotifyData'] is True
        assert update.metadata['artist']['name'] == 'Queen'

    def test_spotify_skipped_when_logged_out(self, service, providers):
        providers['spotify'].auth.is_logged_in.return_value = False

        update = service.handle_snapshot(snapshot())

        providers['spotify'].fetch_metadata.assert_not_called()
        assert update.metadata['hasSpotifyData'] is False

    def test_no_artwork_url_skips_download(self, service, providers):
        update = service.handle_snapshot(snapshot())
        providers['images'].get_image.assert_not_called()
        assert update.artwork is None

    def test_connectivity_refreshed_on_new_track(self, providers):
        connectivity = Mock()
        service = NowPlayingService(connectivity=connectivity, **providers)

        service.handle_snapshot(snapshot())
        service.handle_snapshot(snapshot())

        connectivity.refresh.assert_called_once()

    def test_without_providers(self):
        update = NowPlayingService().handle_snapshot(snapshot())
        assert update.lyrics is None
        assert update.metadata is None


class TestPolling:
    """Test the polling loop and the command source"""

    def test_poll_reports_changes_only(self, service):
        readings = iter([
            {'title': 'A', 'artist': 'X'},
            {'title': 'A', 'artist': 'X'},
            {},
            {'title': 'B', 'artist': 'Y'},
        ])
        stop = threading.Event()
        updates = []

        def source():
            try:
                return next(readings)
            except StopIteration:
                stop.set()
                return {'title': 'B', 'artist': 'Y'}

        poll(service, source, 0, updates.append, stop)

        assert [u.track.title if u else None for u in updates] == ['A', None, 'B']

    def test_poll_survives_source_errors(self, service):
        stop = threading.Event()
        calls = []

        def source():
            calls.append(1)
            if len(calls) == 1:
                raise OSError("player not running")
            stop.set()
            return {'title': 'A', 'artist': 'X'}

        updates = []
        poll(service, source, 0, updates.append, stop)

        assert len(updates) == 1

    def test_command_source_reads_json(self):
        payload = json.dumps({'title': 'A', 'artist': 'X'})
        assert CommandMediaSource(python_command(f"print({payload!r})")).read() == {'title': 'A', 'artist': 'X'}

    def test_command_source_empty_output(self):
        assert CommandMediaSource(python_command("pass")).read() is None

    def test_command_source_invalid_json(self):
        assert CommandMediaSource(python_command("print(123456)")).read() is None
        assert CommandMediaSource(python_command("print('not json')")).read() is None

    def test_command_source_failure(self):
        assert CommandMediaSource(python_command("import sys; sys.exit(3)")).read() is None
