"""Login page — Spotify OAuth redirect and callback handling."""

from __future__ import annotations

import logging

import streamlit as st

from src.database.accounts import AccountManager
from src.database.client import get_supabase_client
from src.spotify.auth import SpotifyAuth
from src.spotify.client import SpotifyClient
from src.spotify.errors import SpotifyAuthError, SpotifyFetchError

logger = logging.getLogger(__name__)


def _handle_callback(auth: SpotifyAuth) -> bool:
    """Finish the OAuth flow if Spotify redirected back here."""
    params = st.query_params
    if "error" in params:
        st.error(f"Spotify login was cancelled ({params['error']}).")
        st.query_params.clear()
        return False
    code = params.get("code")
    if not code:
        return False

    state = params.get("state")
    st.query_params.clear()  # a code can only be used once
    try:
        token_info = auth.exchange_code(code, state)
        profile = SpotifyClient(token_info).current_profile()
    except (SpotifyAuthError, SpotifyFetchError) as exc:
        st.error(str(exc))
        return False

    AccountManager(get_supabase_client()).upsert(
        profile["id"],
        token_info,
        display_name=profile["display_name"],
        email=profile["email"],
        avatar_url=profile["avatar_url"],
    )
    ss = st.session_state
    ss["spotify_token"] = token_info
    ss["user"] = {
        "id": profile["id"],
        "display_name": profile["display_name"],
        "avatar_url": profile["avatar_url"],
    }
    ss["page"] = "home"
    logger.info("Spotify user %s logged in", profile["id"])
    return True


def render_login_page() -> None:
    """Render the login screen."""
    st.title("Whose Track?")
    st.caption("Guess which friend has each song in their top tracks")

    auth = SpotifyAuth()
    if _handle_callback(auth):
        st.rerun()
        return

    st.markdown(
        """
**How it works**

1. Everyone logs in with Spotify and joins the same lobby.
2. When you click *Ready*, we read your top tracks.
3. Each round plays one track from somebody's list. Guess whose it is!
4. Every correct guess is worth points. Most points after the last round wins.
"""
    )
    st.link_button("Log in with Spotify", auth.authorize_url(), type="primary")
    st.caption("We only read your profile and top tracks.")
