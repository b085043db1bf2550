"""
Data models shared between the media source, the providers and the display

TrackSnapshot is what the media player poll produces. LyricsRecord is the
lyrics payload stored in the cache. TrackUpdate is the joined result of one
track-change cycle, handed to whatever renders it.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional

from .utils.helpers import format_duration


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('true', '1', 'yes', 'playing')
    return bool(value)


@dataclass
class TrackSnapshot:
    """
    One reading of the media player state

    Only title and artist drive cache lookups; the rest is passed through
    for display. Unknown fields reported by the player are kept in extra.
    """
    title: str
    artist: str
    album: str = ""
    duration: float = 0.0
    position: float = 0.0
    is_playing: bool = False
    artwork_url: Optional[str] = None
    spotify_url: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    KNOWN_FIELDS = ('title', 'artist', 'album', 'duration', 'position',
                    'isPlaying', 'artworkUrl', 'spotifyUrl')

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['TrackSnapshot']:
        """
        Build a snapshot from the player's JSON object

        Returns:
            TrackSnapshot, or None when the object is empty or lacks title/artist
        """
        if not data or not isinstance(data, dict):
            return None

        title = str(data.get('title') or '').strip()
        artist = str(data.get('artist') or '').strip()
        if not title or not artist:
            return None

        return cls(
            title=title,
            artist=artist,
            album=str(data.get('album') or ''),
            duration=_as_float(data.get('duration')),
            position=_as_float(data.get('position')),
            is_playing=_as_bool(data.get('isPlaying')),
            artwork_url=data.get('artworkUrl') or None,
            spotify_url=data.get('spotifyUrl') or None,
            extra={k: v for k, v in data.items() if k not in cls.KNOWN_FIELDS},
        )

    @property
    def track_key(self) -> str:
        """Identity used to detect track changes"""
        return f"{self.title}-{self.artist}"

    @property
    def progress_str(self) -> str:
        return f"{format_duration(self.position)} / {format_duration(self.duration)}"


@dataclass
class LyricsRecord:
    """
    Lyrics payload as stored in the cache

    synced holds LRC text ("[mm:ss.xx]line"), plain the unsynchronized text.
    """
    synced: Optional[str] = None
    plain: Optional[str] = None
    instrumental: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['LyricsRecord']:
        if not data or not isinstance(data, dict):
            return None
        return cls(
            synced=data.get('synced'),
            plain=data.get('plain'),
            instrumental=bool(data.get('instrumental', False)),
        )


@dataclass
class TrackUpdate:
    """Everything gathered for one track change"""
    track: TrackSnapshot
    lyrics: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None
    artwork: Optional[str] = None

    @property
    def has_lyrics(self) -> bool:
        return bool(self.lyrics and self.lyrics.get('synced'))
