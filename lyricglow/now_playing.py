"""
Now-playing pipeline: track-change detection and provider fan-out

The media player is treated as an opaque source that returns the current
track as a JSON-like dictionary. On every poll the service compares the
track identity ("<title>-<artist>") with the previous one and, only when it
changes, gathers lyrics, artwork and artist metadata concurrently.

Each provider runs on its own worker; a failure in one never prevents the
others from contributing to the update.
"""

import json
import subprocess
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from .cache.images import ImageCacheManager
from .lyrics.lrclib import LyricsManager
from .metadata.audiodb import TheAudioDBManager
from .metadata.merge import merge_artist_metadata
from .metadata.spotify import SpotifyMetadataManager
from .models import TrackSnapshot, TrackUpdate
from .network.connectivity import ConnectivityProber
from .utils.logger import get_logger, log_performance

logger = get_logger(__name__)

# Sentinel meaning "the snapshot did not change anything"
NO_CHANGE = object()


class NowPlayingService:
    """
    Joins the providers into one TrackUpdate per track change

    Spotify metadata is only requested when a SpotifyMetadataManager is given
    and its auth reports a logged-in user.
    """

    def __init__(
        self,
        lyrics: Optional[LyricsManager] = None,
        audiodb: Optional[TheAudioDBManager] = None,
        spotify: Optional[SpotifyMetadataManager] = None,
        images: Optional[ImageCacheManager] = None,
        connectivity: Optional[ConnectivityProber] = None,
        max_workers: int = 4
    ):
        self.lyrics = lyrics
        self.audiodb = audiodb
        self.spotify = spotify
        self.images = images
        self.connectivity = connectivity
        self.max_workers = max_workers

        self.current_track_key: Optional[str] = None
        self.current_update: Optional[TrackUpdate] = None

    def handle_snapshot(self, snapshot: Optional[TrackSnapshot]):
        """
        Process one media-player reading

        Args:
            snapshot: Current track, or None when nothing is playing

        Returns:
            TrackUpdate for a new track, None when playback was cleared, or
            NO_CHANGE when the reading matches the current state
        """
        if snapshot is None:
            if self.current_track_key is None:
                return NO_CHANGE
            logger.info("Playback stopped")
            self.current_track_key = None
            self.current_update = None
            return None

        if snapshot.track_key == self.current_track_key:
            return NO_CHANGE

        logger.info(f"Now playing: {snapshot.artist} - {snapshot.title}")
        self.current_track_key = snapshot.track_key

        if self.connectivity is not None:
            self.connectivity.refresh()

        self.current_update = self.gather(snapshot)
        return self.current_update

    def _spotify_enabled(self) -> bool:
        if self.spotify is None:
            return False
        try:
            return bool(self.spotify.auth.is_logged_in())
        except Exception as e:
            logger.warning(f"Spotify auth check failed: {e}")
            return False

    @staticmethod
    def _result(future, name: str) -> Any:
        if future is None:
            return None
        try:
            return future.result()
        except Exception as e:
            logger.error(f"{name} provider failed: {e}")
            return None

    @log_performance
    def gather(self, snapshot: TrackSnapshot) -> TrackUpdate:
        """Run all providers concurrently for one track"""
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            lyrics_future = (
                executor.submit(self.lyrics.fetch_lyrics, snapshot.title, snapshot.artist)
                if self.lyrics else None
            )
            audiodb_future = (
                executor.submit(self.audiodb.fetch_metadata, snapshot.artist)
                if self.audiodb else None
            )
            spotify_future = (
                executor.submit(self.spotify.fetch_metadata, snapshot)
                if self._spotify_enabled() else None
            )
            artwork_future = (
                executor.submit(self.images.get_image, snapshot.artwork_url)
                if self.images and snapshot.artwork_url else None
            )

            lyrics = self._result(lyrics_future, "Lyrics")
            audiodb_data = self._result(audiodb_future, "TheAudioDB")
            spotify_data = self._result(spotify_future, "Spotify")
            artwork = self._result(artwork_future, "Artwork")

        return TrackUpdate(
            track=snapshot,
            lyrics=lyrics,
            metadata=merge_artist_metadata(audiodb_data, spotify_data),
            artwork=artwork,
        )


class CommandMediaSource:
    """
    Media source backed by a shell command

    The command must print the current track as a JSON object
    (title, artist, album, duration, position, isPlaying, artworkUrl,
    spotifyUrl). Empty output or "{}" means nothing is playing.
    """

    def __init__(self, command: str, timeout: float = 5.0):
        self.command = command
        self.timeout = timeout

    def read(self) -> Optional[Dict[str, Any]]:
        try:
            completed = subprocess.run(
                self.command,
                shell=True,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Media source timed out after {self.timeout}s")
            return None

        if completed.returncode != 0:
            logger.debug(f"Media source exited with {completed.returncode}: {completed.stderr.strip()}")
            return None

        output = completed.stdout.strip()
        if not output:
            return None

        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            logger.warning(f"Media source returned invalid JSON: {e}")
            return None

        return data if isinstance(data, dict) else None

    def __call__(self) -> Optional[Dict[str, Any]]:
        return self.read()


def poll(
    service: NowPlayingService,
    source: Callable[[], Optional[Dict[str, Any]]],
    interval: float,
    on_update: Callable[[Optional[TrackUpdate]], None],
    stop_event: Optional[threading.Event] = None
) -> None:
    """
    Poll the media source until stop_event is set

    on_update receives a TrackUpdate for each new track and None when
    playback is cleared. A failing source read is logged and skipped.
    """
    stop_event = stop_event or threading.Event()

    while not stop_event.is_set():
        try:
            snapshot = TrackSnapshot.from_dict(source())
        except Exception as e:
            logger.error(f"Media source read failed: {e}")
            snapshot = NO_CHANGE

        if snapshot is not NO_CHANGE:
            result = service.handle_snapshot(snapshot)
            if result is not NO_CHANGE:
                on_update(result)

        stop_event.wait(interval)
