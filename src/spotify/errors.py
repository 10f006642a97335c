"""
Whose Track? - Spotify Errors
"""

from src.engine.base import GameError


class SpotifyAuthError(GameError):
    """Login, code exchange or token refresh failed."""


class SpotifyFetchError(GameError):
    """A Web API call failed after retrying."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status
