"""
LyricGlow: synced lyrics and artist info for whatever is playing

LyricGlow follows the local media player and, on every track change, gathers
synchronized lyrics (LRCLIB), artist metadata (TheAudioDB, plus Spotify when
logged in) and artwork. All of it flows through one offline-first cache.

## Core Architecture

**Network (`lyricglow/network/`)**
- ConnectivityProber: memoized online/offline answer with a re-probe cooldown
- ResilientFetch: requests wrapper with a one-shot certificate-bypass retry
  for networks that intercept TLS

**Cache (`lyricglow/cache/`)**
- UnifiedCacheManager: content-addressable store (hashed keys, JSON index,
  per-type payload files) with a stale-while-offline freshness policy
- ImageCacheManager: artwork downloads validated with Pillow

**Providers (`lyricglow/lyrics/`, `lyricglow/metadata/`)**
- LyricsManager, TheAudioDBManager, SpotifyMetadataManager, all built on
  UnifiedCacheManager.get_or_fetch()

**Pipeline and CLI**
- NowPlayingService: track-change detection and concurrent provider fan-out
- main: click CLI (lookup, watch, cache, auth, doctor)

## Offline Behaviour

While the network is reachable, entries older than the expiry window
(7 days by default) are refetched. While offline, every cached entry is
served regardless of age and nothing is deleted, so a track that was played
once keeps its lyrics and artist info.
"""

__version__ = "1.0.0"
__author__ = "LyricGlow Team"
