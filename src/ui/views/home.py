"""Home page — title, rules, lobby creation/joining."""

from __future__ import annotations

import streamlit as st

from src.config.settings import get_settings
from src.ui.components.lobby import render_lobby
from src.ui.session import current_user


def render_home_page() -> None:
    """Render the home / landing page."""
    user = current_user()
    st.title("Whose Track?")
    st.caption(f"Logged in as {user['display_name']}")

    # Lobby creation/joining
    render_lobby()

    st.divider()

    points = get_settings().points_per_correct
    with st.expander("How to play"):
        st.markdown(
            f"""
**Guess whose top track is playing!**

- Every player logs in with Spotify and clicks **Ready**; that's when your
  top tracks are read.
- The host picks how many rounds to play. Rounds are shared out evenly, so
  everybody's music comes up about equally often.
- Each round plays one track. Pick the player you think it belongs to
  before the timer runs out.
- **Correct guess** = {points} points. The round ends when everyone has guessed
  or time is up, then the owner is revealed.
- Tracks that appear in more than one player's list are left out, since
  nobody could tell whose they are.
"""
        )
