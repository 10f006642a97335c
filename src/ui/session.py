"""Session helpers shared by the views: service access, retries, login state."""

from __future__ import annotations

import logging
import time
from functools import lru_cache

import streamlit as st
from httpx import RemoteProtocolError

from src.database.accounts import AccountManager
from src.database.client import get_supabase_client
from src.services.game_service import GameService
from src.spotify.auth import SpotifyAuth
from src.spotify.client import SpotifyClient

logger = logging.getLogger(__name__)

# Per-lobby keys dropped when a player leaves or goes home
_LOBBY_KEYS = (
    "lobby_id", "lobby_code", "_last_version", "_revealed_round",
)


@lru_cache(maxsize=1)
def _service_for(client) -> GameService:
    return GameService(client)


def get_service() -> GameService:
    """The game service bound to the current Supabase client.

    Rebuilt when ``db_retry`` replaces the client.
    """
    return _service_for(get_supabase_client())


def db_retry(fn, *args, retries=2, **kwargs):
    """Call *fn* with simple retry on transient connection errors."""
    for attempt in range(retries + 1):
        try:
            return fn(*args, **kwargs)
        except (RemoteProtocolError, ConnectionError, OSError):
            if attempt == retries:
                raise
            logger.warning("Connection dropped calling %s, retrying", getattr(fn, "__name__", fn))
            # A fresh client gets a fresh connection pool
            get_supabase_client.cache_clear()
            time.sleep(0.3)


def current_user() -> dict | None:
    """The logged-in Spotify profile (id, display_name, avatar_url), if any."""
    return st.session_state.get("user")


def _store_token(token_info: dict) -> None:
    ss = st.session_state
    ss["spotify_token"] = token_info
    user = ss.get("user")
    if user:
        AccountManager(get_supabase_client()).update_tokens(user["id"], token_info)


def spotify_client() -> SpotifyClient:
    """Spotify client for the logged-in user, refreshing the token if needed."""
    auth = SpotifyAuth()
    token = st.session_state["spotify_token"]
    fresh = auth.ensure_fresh(token)
    if fresh is not token:
        _store_token(fresh)
    return SpotifyClient(fresh, refresher=auth.refresh, on_refresh=_store_token)


def enter_lobby(lobby_id: str, code: str, page: str = "lobby_waiting") -> None:
    ss = st.session_state
    ss["lobby_id"] = lobby_id
    ss["lobby_code"] = code
    ss["page"] = page


def clear_lobby_state() -> None:
    ss = st.session_state
    for key in _LOBBY_KEYS:
        ss.pop(key, None)
    ss["page"] = "home"


def leave_current_lobby() -> None:
    """Leave the lobby on the server and reset local state."""
    ss = st.session_state
    lobby_id = ss.get("lobby_id")
    user = current_user()
    if lobby_id and user:
        try:
            db_retry(get_service().leave_lobby, lobby_id, user["id"])
        except Exception:
            logger.exception("Failed to leave lobby %s", lobby_id)
    clear_lobby_state()


def logout() -> None:
    leave_current_lobby()
    for key in ("user", "spotify_token"):
        st.session_state.pop(key, None)
