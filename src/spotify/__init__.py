"""
Whose Track? Spotify Integration.

OAuth login and top-track collection via spotipy.
"""

from src.spotify.auth import SpotifyAuth
from src.spotify.client import SpotifyClient, track_from_item
from src.spotify.errors import SpotifyAuthError, SpotifyFetchError

__all__ = [
    "SpotifyAuth",
    "SpotifyAuthError",
    "SpotifyClient",
    "SpotifyFetchError",
    "track_from_item",
]
