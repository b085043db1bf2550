"""
Merge TheAudioDB and Spotify artist metadata into one display record
"""

from typing import Any, Dict, List, Optional

MAX_ARTIST_IMAGES = 8


def _unique_images(images: List[Optional[str]]) -> List[str]:
    seen = []
    for image in images:
        if image and image not in seen:
            seen.append(image)
    return seen[:MAX_ARTIST_IMAGES]


def _first_url(images: Optional[List[Dict[str, Any]]]) -> Optional[str]:
    if images and isinstance(images[0], dict):
        return images[0].get('url')
    return None


def _reshape_tracks(tracks: Optional[List[Dict[str, Any]]]) -> Optional[List[Dict[str, Any]]]:
    if not tracks:
        return None
    return [
        {
            'name': track.get('name'),
            'playcount': track.get('popularity'),
            'image': _first_url((track.get('album') or {}).get('images')),
            'artist': track.get('artist'),
            'url': track.get('url'),
        }
        for track in tracks
    ]


def _reshape_albums(albums: Optional[List[Dict[str, Any]]]) -> Optional[List[Dict[str, Any]]]:
    if not albums:
        return None
    return [
        {
            'name': album.get('name'),
            'playcount': f"{album.get('total_tracks')} tracks",
            'image': _first_url(album.get('images')),
            'artist': album.get('artist'),
            'url': album.get('url'),
        }
        for album in albums
    ]


def merge_artist_metadata(
    audiodb_data: Optional[Dict[str, Any]],
    spotify_data: Optional[Dict[str, Any]]
) -> Optional[Dict[str, Any]]:
    """
    Combine the two metadata sources

    - Neither available: None
    - AudioDB only: AudioDB artist with up to 8 non-empty images
    - Spotify only: Spotify artist with its image URLs as allImages
    - Both: AudioDB artist enriched with Spotify image (first), popularity,
      genres and formatted follower count; Spotify top tracks and albums
      reshaped to {name, playcount, image, artist, url}

    Args:
        audiodb_data: {"artist": ...} from TheAudioDBManager, or None
        spotify_data: {"artist", "topTracks", "topAlbums"} from
            SpotifyMetadataManager, or None

    Returns:
        Merged record with a hasSpotifyData flag, or None
    """
    audiodb_artist = (audiodb_data or {}).get('artist')
    spotify_artist = (spotify_data or {}).get('artist')

    if not audiodb_artist and not spotify_data:
        return None

    if not spotify_data:
        return {
            **audiodb_data,
            'artist': {
                **audiodb_artist,
                'allImages': _unique_images(audiodb_artist.get('allImages') or []),
            },
            'hasSpotifyData': False,
        }

    if not audiodb_artist:
        artist = dict(spotify_artist or {})
        artist['allImages'] = [
            image.get('url') for image in artist.get('images') or [] if isinstance(image, dict)
        ]
        return {
            'artist': artist,
            'topTracks': spotify_data.get('topTracks'),
            'topAlbums': spotify_data.get('topAlbums'),
            'hasSpotifyData': True,
        }

    merged_artist = dict(audiodb_artist)
    if spotify_artist:
        merged_artist.update({
            'allImages': _unique_images(
                [_first_url(spotify_artist.get('images'))] + list(audiodb_artist.get('allImages') or [])
            ),
            'spotifyPopularity': spotify_artist.get('popularity'),
            'spotifyGenres': spotify_artist.get('genres'),
            'spotifyFollowers': f"{spotify_artist.get('followers') or 0:,}",
        })

    return {
        'artist': merged_artist,
        'topTracks': _reshape_tracks(spotify_data.get('topTracks')),
        'topAlbums': _reshape_albums(spotify_data.get('topAlbums')),
        'hasSpotifyData': True,
    }
