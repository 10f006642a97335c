"""
Whose Track? - Spotify OAuth

Wraps spotipy's authorization-code flow for a multi-user Streamlit app:
tokens never touch spotipy's file cache, and the ``state`` parameter is an
HMAC-signed timestamp so a callback can be checked without server-side
session storage.
"""

import hashlib
import hmac
import logging
import time

from spotipy.cache_handler import MemoryCacheHandler
from spotipy.exceptions import SpotifyOauthError
from spotipy.oauth2 import SpotifyOAuth

from src.config.settings import Settings, get_settings
from src.spotify.errors import SpotifyAuthError

logger = logging.getLogger(__name__)

SCOPES = "user-read-email user-read-private user-top-read"


class SpotifyAuth:
    """Builds login URLs, exchanges codes and refreshes tokens."""

    STATE_TTL_SECONDS = 600

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self._secret = settings.spotify_client_secret.encode()
        self.oauth = SpotifyOAuth(
            client_id=settings.spotify_client_id,
            client_secret=settings.spotify_client_secret,
            redirect_uri=settings.spotify_redirect_uri,
            scope=SCOPES,
            cache_handler=MemoryCacheHandler(),
            show_dialog=False,
        )

    # -- State -------------------------------------------------------------

    def _sign(self, payload: str) -> str:
        return hmac.new(self._secret, payload.encode(), hashlib.sha256).hexdigest()[:32]

    def make_state(self, now: float | None = None) -> str:
        issued = str(int(now if now is not None else time.time()))
        return f"{issued}.{self._sign(issued)}"

    def verify_state(self, state: str | None, now: float | None = None) -> bool:
        """Check the signature and age of a returned ``state``."""
        if not state or "." not in state:
            return False
        issued, signature = state.split(".", 1)
        if not hmac.compare_digest(signature, self._sign(issued)):
            return False
        try:
            age = (now if now is not None else time.time()) - int(issued)
        except ValueError:
            return False
        return 0 <= age <= self.STATE_TTL_SECONDS

    # -- Flow --------------------------------------------------------------

    def authorize_url(self) -> str:
        return self.oauth.get_authorize_url(state=self.make_state())

    def exchange_code(self, code: str, state: str | None) -> dict:
        """
        Trade the callback ``code`` for a token.

        Args:
            code: Authorization code from the redirect
            state: State echoed back by Spotify

        Returns:
            spotipy token_info dict (access_token, refresh_token, expires_at)

        Raises:
            SpotifyAuthError: If the state is invalid or Spotify refuses the code
        """
        if not self.verify_state(state):
            raise SpotifyAuthError("Login link expired or was tampered with. Please try again.")
        try:
            token_info = self.oauth.get_access_token(code, check_cache=False)
        except SpotifyOauthError as exc:
            logger.warning("Spotify code exchange failed: %s", exc)
            raise SpotifyAuthError("Spotify rejected the login. Please try again.") from exc
        if not token_info or "access_token" not in token_info:
            raise SpotifyAuthError("Spotify did not return an access token.")
        return token_info

    def refresh(self, token_info: dict) -> dict:
        """Refresh a token, keeping the old refresh token if Spotify omits one."""
        refresh_token = token_info.get("refresh_token")
        if not refresh_token:
            raise SpotifyAuthError("Session expired. Please log in again.")
        try:
            fresh = self.oauth.refresh_access_token(refresh_token)
        except SpotifyOauthError as exc:
            logger.warning("Spotify token refresh failed: %s", exc)
            raise SpotifyAuthError("Session expired. Please log in again.") from exc
        fresh.setdefault("refresh_token", refresh_token)
        return fresh

    def ensure_fresh(self, token_info: dict) -> dict:
        """Return ``token_info`` unchanged, or refreshed if it has expired."""
        if self.oauth.is_token_expired(token_info):
            logger.info("Refreshing expired Spotify token")
            return self.refresh(token_info)
        return token_info
