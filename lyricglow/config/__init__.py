"""
Configuration package

- Settings: YAML + environment configuration (get_settings / reload_settings)
- SpotifyAuth: PKCE login and token refresh (get_auth / reset_auth)
"""

from .settings import Settings, get_settings, reload_settings
from .auth import SpotifyAuth, get_auth, reset_auth

__all__ = [
    'Settings',
    'get_settings',
    'reload_settings',
    'SpotifyAuth',
    'get_auth',
    'reset_auth',
]
