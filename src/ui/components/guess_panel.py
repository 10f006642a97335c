"""Round widgets — track player and guess buttons."""

from __future__ import annotations

import html

import streamlit as st
import streamlit.components.v1 as components

from src.database.models import Player
from src.engine.base import Track


def render_track_player(track: Track, round_number: int, revealed: bool = False) -> None:
    """Play the round's track.

    Uses the 30 second preview when Spotify has one, otherwise the Spotify
    embed player. Title and artist stay hidden until the reveal so the
    album art doesn't give the answer away in a screenshot.
    """
    if revealed:
        cover = ""
        if track.image_url:
            cover = f'<img class="track-cover" src="{html.escape(track.image_url)}" alt="">'
        st.markdown(
            f'<div class="track-card">{cover}'
            f'<div class="track-title">{html.escape(track.name)}</div>'
            f'<div class="track-artists">{html.escape(track.artist_line)}</div>'
            f"</div>",
            unsafe_allow_html=True,
        )
        return

    st.markdown(
        f'<div class="track-card mystery">Round {round_number}: whose track is this?</div>',
        unsafe_allow_html=True,
    )
    if track.preview_url:
        st.audio(track.preview_url, autoplay=True)
    else:
        components.iframe(track.embed_url, height=152)


def render_guess_buttons(
    players: list[Player],
    round_number: int,
    my_guess: str | None,
    disabled: bool = False,
) -> str | None:
    """Render one button per player.

    Returns:
        The user ID picked this run, or None if nothing was clicked.
    """
    if my_guess is not None:
        picked = next((p.username for p in players if p.user_id == my_guess), my_guess)
        st.info(f"You guessed **{picked}**. Waiting for the others...")
        return None

    st.markdown("**Whose track is it?**")
    cols = st.columns(min(len(players), 4) or 1)
    choice = None
    for idx, player in enumerate(players):
        with cols[idx % len(cols)]:
            if st.button(
                player.username,
                key=f"guess_{round_number}_{player.user_id}",
                use_container_width=True,
                disabled=disabled,
            ):
                choice = player.user_id
    return choice
