"""
Spotify authentication and token management

Spotify data is optional in LyricGlow: the metadata fan-out only calls the
Spotify Web API when a valid access token is available. Authentication uses
the OAuth2 Authorization Code flow with PKCE, so no client secret is stored.

Login flow:
1. Build the authorization URL (with a fresh PKCE challenge)
2. The user approves access in the browser
3. Spotify redirects to the configured redirect URL with ?code=...
4. The code is exchanged for access/refresh tokens
5. Tokens are persisted to the token file for later sessions

Tokens are refreshed ahead of expiry using a 5-minute safety buffer, so the
metadata provider never receives a token that expires mid-request.

The PKCE verifier lives on the SpotifyPKCE instance between steps 1 and 4,
which is why the authenticator is shared through get_auth().
"""

import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

import requests
import spotipy
from spotipy.cache_handler import CacheFileHandler
from spotipy.oauth2 import SpotifyOauthError, SpotifyPKCE

from .settings import get_settings
from ..exceptions import AuthError

# Refresh tokens this many seconds before they actually expire
REFRESH_BUFFER_SECONDS = 300


class SpotifyAuth:
    """
    Spotify PKCE authentication with persistent token storage

    Attributes:
        client_id: Spotify application client ID
        redirect_uri: OAuth2 callback URL registered for the application
        scope: Requested permission scopes
        token_file: Path of the persisted token JSON
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        scope: Optional[str] = None,
        token_file: Optional[Path] = None,
        oauth: Optional[SpotifyPKCE] = None
    ):
        settings = get_settings()

        self.client_id = client_id if client_id is not None else settings.spotify.client_id
        self.redirect_uri = redirect_uri or settings.spotify.redirect_url
        self.scope = scope or settings.spotify.scope
        self.token_file = Path(token_file) if token_file else settings.get_token_storage_path()
        self.logger = logging.getLogger(__name__)

        self._oauth = oauth
        self._cache_handler = CacheFileHandler(cache_path=str(self.token_file))

    @property
    def is_configured(self) -> bool:
        """True when a client id is available"""
        return bool(self.client_id)

    @property
    def oauth(self) -> SpotifyPKCE:
        """Lazily created spotipy PKCE manager"""
        if self._oauth is None:
            if not self.is_configured:
                raise AuthError(
                    "Spotify client ID not configured",
                    {"hint": "Set SPOTIFY_CLIENT_ID in your environment or .env file"}
                )
            self.token_file.parent.mkdir(parents=True, exist_ok=True)
            self._oauth = SpotifyPKCE(
                client_id=self.client_id,
                redirect_uri=self.redirect_uri,
                scope=self.scope,
                cache_handler=self._cache_handler,
                open_browser=False,
            )
        return self._oauth

    def _load_token(self) -> Optional[Dict[str, Any]]:
        token_info = self._cache_handler.get_cached_token()
        if not token_info or 'access_token' not in token_info:
            return None
        return token_info

    @staticmethod
    def _needs_refresh(token_info: Dict[str, Any]) -> bool:
        expires_at = token_info.get('expires_at')
        if not expires_at:
            return True
        return int(time.time()) >= expires_at - REFRESH_BUFFER_SECONDS

    def get_access_token(self) -> Optional[str]:
        """
        Get a valid access token, refreshing it when close to expiry

        Returns:
            Access token string, or None when not logged in or refresh failed
        """
        token_info = self._load_token()
        if not token_info:
            return None

        if not self._needs_refresh(token_info):
            return token_info['access_token']

        refresh_token = token_info.get('refresh_token')
        if not refresh_token or not self.is_configured:
            self.logger.warning("Spotify token expired and cannot be refreshed")
            return None

        try:
            self.logger.debug("Refreshing Spotify access token")
            refreshed = self.oauth.refresh_access_token(refresh_token)
        except (SpotifyOauthError, AuthError, requests.exceptions.RequestException) as e:
            self.logger.error(f"Spotify token refresh failed: {e}")
            return None

        if not refreshed or 'access_token' not in refreshed:
            return None

        self.logger.info("Spotify access token refreshed")
        return refreshed['access_token']

    def is_logged_in(self) -> bool:
        """Check whether a usable token exists"""
        return self.get_access_token() is not None

    def get_authorize_url(self) -> str:
        """
        Build the Spotify authorization URL for a new login

        Raises:
            AuthError: If the client ID is not configured
        """
        return self.oauth.get_authorize_url()

    def handle_callback(self, callback_url: str) -> Dict[str, Any]:
        """
        Complete login from the redirect URL Spotify sent the browser to

        Args:
            callback_url: Full redirect URL containing the code parameter

        Returns:
            Stored token information

        Raises:
            AuthError: If the URL has no code or the token exchange fails
        """
        try:
            code = self.oauth.parse_response_code(callback_url)
        except SpotifyOauthError as e:
            raise AuthError("Authorization was denied", {"error": str(e)}) from e

        # spotipy hands back the input unchanged when no code is present
        if not code or code == callback_url:
            raise AuthError("No authorization code in callback URL", {"callback_url": callback_url})

        try:
            self.oauth.get_access_token(code=code, check_cache=False)
        except (SpotifyOauthError, requests.exceptions.RequestException) as e:
            raise AuthError("Token exchange failed", {"error": str(e)}) from e

        token_info = self._load_token()
        if not token_info:
            raise AuthError("Token exchange returned no token")

        self.logger.info("Spotify login successful")
        return token_info

    def get_user_info(self) -> Optional[Dict[str, Any]]:
        """Fetch the logged-in user's profile, or None"""
        token = self.get_access_token()
        if not token:
            return None
        try:
            return spotipy.Spotify(auth=token).current_user()
        except spotipy.SpotifyException as e:
            self.logger.warning(f"Failed to fetch Spotify profile: {e}")
            return None

    def logout(self) -> None:
        """Delete stored tokens"""
        if self.token_file.exists():
            self.token_file.unlink()
            self.logger.info("Spotify tokens removed")
        self._oauth = None


_auth_instance: Optional[SpotifyAuth] = None


def get_auth() -> SpotifyAuth:
    """
    Get the global authentication instance

    The PKCE verifier created by get_authorize_url() must survive until
    handle_callback(), so all callers share one instance.
    """
    global _auth_instance
    if not _auth_instance:
        _auth_instance = SpotifyAuth()
    return _auth_instance


def reset_auth() -> None:
    """Drop the global authentication instance (stored tokens are kept)"""
    global _auth_instance
    _auth_instance = None
